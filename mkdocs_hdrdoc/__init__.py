"""
mkdocs-hdrdoc: C header API documentation for MkDocs and MDX.

Extracts doc comments and declarations from annotated C/C++ headers,
resolves groups, pages and cross-references across files, and renders
them as Markdown pages (MkDocs plugin) or MDX files (``hdrdoc`` command).
"""

__version__ = "1.0.0"
