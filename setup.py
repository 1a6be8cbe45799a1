from setuptools import setup, find_packages

setup(
    name="mkdocs-hdrdoc",
    version="1.0.0",
    description="MkDocs plugin and MDX generator for Doxygen-annotated C/C++ headers",
    keywords="mkdocs doxygen c headers mdx documentation python",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "mkdocs>=1.4",
        "PyYAML>=5.1",
    ],
    extras_require={
        "test": ["pytest"],
    },
    classifiers = [
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Documentation",
        "Topic :: Software Development :: Documentation",
        "Framework :: MkDocs",
    ],
    entry_points={
        "mkdocs.plugins": [
            "hdrdoc = mkdocs_hdrdoc.plugin:HdrdocPlugin",
        ],
        "console_scripts": [
            "hdrdoc = mkdocs_hdrdoc.generate:main",
        ],
    },
)
