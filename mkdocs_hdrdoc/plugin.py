"""
MkDocs plugin entry point.

Parses the configured C/C++ headers once per build, generates one
Markdown page per documentation unit (pages, groups, ungrouped symbols
and an index) under ``output_dir``, injects them into the nav and
expands ``::: c:autounit <id>`` / ``::: c:autosymbol <name>`` directives
in hand-written pages.
"""

from __future__ import annotations

import dataclasses
import fnmatch
import logging
import os
import posixpath
import re

from mkdocs.config import config_options
from mkdocs.config.base import Config as MkDocsConfig
from mkdocs.plugins import BasePlugin
from mkdocs.structure.files import File

from .config import GeneratorConfig
from .extract import generate
from .renderer import INDEX_UNIT, RenderConfig, format_entry_markdown, format_markdown

log = logging.getLogger("mkdocs.plugins.hdrdoc")

_DIRECTIVE_RE = re.compile(
    r"^(?P<indent>[ \t]*):::[ \t]+(?:c|cpp):(?P<directive>autounit|autosymbol)"
    r"[ \t]+(?P<arg>\S+)[ \t]*\n"
    r"(?P<body>(?:(?P=indent)[ \t]+:\w+:.*\n)*)",
    re.MULTILINE,
)
_OPTION_RE = re.compile(r"^\s+:(\w+):\s*(.+)$", re.MULTILINE)


class HdrdocConfig(MkDocsConfig):
    source_root = config_options.Type(str, default="")
    sources = config_options.Type(list, default=[])
    extensions = config_options.Type(list, default=[".h", ".hpp"])
    exclude = config_options.Type(list, default=[])
    defines = config_options.Type(list, default=[])
    show_internal = config_options.Type(bool, default=False)
    show_excluded = config_options.Type(bool, default=False)
    output_dir = config_options.Type(str, default="api")
    nav_title = config_options.Type(str, default="API Reference")
    heading_level = config_options.Type(int, default=3)
    language = config_options.Type(str, default="c")
    jobs = config_options.Type(int, default=1)


def _discover_sources(root, extensions, exclude):
    out = []
    exts = [e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions]
    for dirpath, dirnames, fnames in os.walk(root):
        dirnames.sort()
        for fn in sorted(fnames):
            _, ext = os.path.splitext(fn)
            if ext.lower() not in exts:
                continue
            rel = os.path.relpath(os.path.join(dirpath, fn), root)
            if any(fnmatch.fnmatch(fn, p) or fnmatch.fnmatch(rel, p) for p in exclude):
                continue
            out.append(rel)
    return out


class HdrdocPlugin(BasePlugin[HdrdocConfig]):

    def __init__(self):
        super().__init__()
        self._pages = {}
        self._units = {}
        self._result = None
        self._tmpfiles = []

    # ── Helpers ──

    def _rcfg(self, **overrides):
        cfg = RenderConfig(
            heading_level=self.config["heading_level"],
            language=self.config["language"],
        )
        for key, value in overrides.items():
            setattr(cfg, key, value)
        return cfg

    def _gcfg(self):
        return GeneratorConfig(
            defined=frozenset(self.config["defines"]),
            show_internal=self.config["show_internal"],
            show_excluded=self.config["show_excluded"],
            jobs=self.config["jobs"],
        )

    def _unit_uri(self, unit_id):
        return f"{self.config['output_dir']}/{unit_id}.md"

    def _collect_paths(self, root):
        explicit = self.config["sources"]
        if explicit:
            rels = list(explicit)
        else:
            rels = _discover_sources(root, self.config["extensions"], self.config["exclude"])
        return [os.path.normpath(os.path.join(root, rel)) for rel in rels]

    def _inject_nav(self, config):
        top_title = self.config["nav_title"]
        children = []
        for unit in self._result.units:
            label = "Overview" if unit.id == INDEX_UNIT else unit.title
            entry = {label: self._unit_uri(unit.id)}
            if unit.id == INDEX_UNIT:
                children.insert(0, entry)
            else:
                children.append(entry)
        section = {top_title: children}

        nav = config.get("nav")
        if nav is None:
            config["nav"] = [section]
            return
        for i, item in enumerate(nav):
            if isinstance(item, dict) and top_title in item:
                nav[i] = section
                return
        nav.append(section)

    # ── MkDocs lifecycle hooks ──

    def on_config(self, config, **kwargs):
        config_dir = os.path.dirname(config.get("config_file_path", "") or "") or os.getcwd()
        self._pages.clear()
        self._units.clear()
        self._tmpfiles.clear()
        self._result = None

        root = self.config["source_root"] or "."
        if not os.path.isabs(root):
            root = os.path.normpath(os.path.join(config_dir, root))
        if not os.path.isdir(root):
            log.error("hdrdoc: source root missing: %s", root)
            return config

        paths = self._collect_paths(root)
        if not paths:
            log.warning("hdrdoc: no headers found under %s", root)
            return config
        log.info("hdrdoc: %d headers discovered under %s", len(paths), root)

        self._result = generate(paths, self._gcfg())
        for unit in self._result.units:
            self._units[unit.id] = unit
            self._pages[self._unit_uri(unit.id)] = unit
        self._inject_nav(config)
        return config

    def on_files(self, files, *, config, **kwargs):
        for uri in sorted(self._pages):
            try:
                f = File.generated(config, uri, content="")
            except (AttributeError, TypeError):
                f = File(
                    uri,
                    config["docs_dir"],
                    config["site_dir"],
                    config.get("use_directory_urls", True),
                )
                dest = os.path.join(config["docs_dir"], uri)
                os.makedirs(os.path.dirname(dest), exist_ok=True)
                open(dest, "w").close()
                self._tmpfiles.append(dest)
            f.edit_uri = None
            files.append(f)
        return files

    def on_page_markdown(self, markdown, *, page, config, files, **kwargs):
        src_uri = getattr(page.file, "src_uri", None) or page.file.src_path
        if src_uri in self._pages:
            return format_markdown(self._pages[src_uri], self._rcfg())
        if ":::" not in markdown:
            return markdown
        if not markdown.endswith("\n"):
            markdown += "\n"
        return _DIRECTIVE_RE.sub(lambda m: self._handle_directive(m, src_uri), markdown)

    def on_post_build(self, *, config, **kwargs):
        for p in self._tmpfiles:
            try:
                os.remove(p)
            except OSError:
                pass

    # ── Directives ──

    def _handle_directive(self, match, src_uri):
        directive = match.group("directive")
        arg = match.group("arg")
        opts = {}
        for m in _OPTION_RE.finditer(match.group("body")):
            opts[m.group(1)] = m.group(2).strip()

        page_dir = posixpath.dirname(src_uri.replace(os.sep, "/"))
        prefix = posixpath.relpath(self.config["output_dir"], page_dir or ".") + "/"
        cfg = self._rcfg(link_prefix=prefix)
        if "heading_level" in opts:
            try:
                cfg.heading_level = int(opts["heading_level"])
            except ValueError:
                pass
        if "members" in opts:
            cfg.members = opts["members"].lower() in ("true", "yes", "1")

        if directive == "autounit":
            unit = self._units.get(arg)
            if unit is None:
                log.warning("hdrdoc: %s: unknown documentation unit '%s'", src_uri, arg)
                return f"<!-- hdrdoc: unit '{arg}' not found -->\n"
            return format_markdown(dataclasses.replace(unit, id=""), cfg, title=False)

        for unit in self._units.values():
            entry = unit.find(arg)
            if entry is not None:
                return format_entry_markdown(dataclasses.replace(unit, id=""), entry, cfg)
        log.warning("hdrdoc: %s: symbol '%s' not found", src_uri, arg)
        return f"<!-- hdrdoc: symbol '{arg}' not found -->\n"
