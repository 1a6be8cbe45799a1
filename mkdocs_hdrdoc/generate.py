#!/usr/bin/env python3
"""
Generate MDX documentation from annotated C/C++ headers.

Usage:
    python -m mkdocs_hdrdoc.generate include/ -o docs/api
    python -m mkdocs_hdrdoc.generate api.h -o out -D EXPERIMENTAL --internal
    hdrdoc include/ -o out --exclude 'private/*' --jobs 4 --clean --strict
"""

from __future__ import annotations

import argparse
import fnmatch
import glob
import logging
import os
import sys

from .config import GeneratorConfig
from .extract import generate
from .renderer import RenderConfig, format_mdx

log = logging.getLogger("mkdocs.plugins.hdrdoc")


def collect_inputs(paths, extensions, exclude=()):
    exts = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions}
    files = []
    for target in paths:
        if os.path.isdir(target):
            for dirpath, dirnames, fnames in os.walk(target):
                dirnames.sort()
                for fn in sorted(fnames):
                    _, ext = os.path.splitext(fn)
                    if ext.lower() not in exts:
                        continue
                    full = os.path.join(dirpath, fn)
                    rel = os.path.relpath(full, target)
                    if any(fnmatch.fnmatch(fn, p) or fnmatch.fnmatch(rel, p) for p in exclude):
                        continue
                    files.append(full)
        elif os.path.isfile(target):
            files.append(target)
        else:
            log.error("hdrdoc: %s not found", target)
    return files


def write_units(units, out_dir, clean=False):
    os.makedirs(out_dir, exist_ok=True)
    if clean:
        for stale in glob.glob(os.path.join(out_dir, "*.mdx")):
            os.remove(stale)
    cfg = RenderConfig(link_suffix="")
    written = []
    for unit in units:
        path = os.path.join(out_dir, f"{unit.id}.mdx")
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(format_mdx(unit, cfg))
        written.append(path)
    return written


def main(argv=None):
    p = argparse.ArgumentParser(description="Generate MDX documentation from annotated C/C++ headers")
    p.add_argument("paths", nargs="+", metavar="PATH", help="Header files or directories")
    p.add_argument("-o", "--output", required=True, help="Output directory for .mdx files")
    p.add_argument(
        "-D",
        "--define",
        action="append",
        default=[],
        metavar="SYM",
        help="Treat SYM as defined for #ifdef/#if blocks (repeatable)",
    )
    p.add_argument("--internal", action="store_true", help="Include @internal symbols")
    p.add_argument("--excluded", action="store_true", help="Include conditionally excluded symbols")
    p.add_argument(
        "--ext",
        nargs="+",
        default=[".h", ".hpp"],
        help="File extensions to process in directories (default: .h .hpp)",
    )
    p.add_argument("--exclude", nargs="+", default=[], metavar="GLOB", help="Glob patterns to skip")
    p.add_argument("--jobs", type=int, default=1, help="Parallel extraction workers")
    p.add_argument("--clean", action="store_true", help="Remove existing .mdx files first")
    p.add_argument("--strict", action="store_true", help="Exit non-zero on file-fatal errors")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = p.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    files = collect_inputs(args.paths, args.ext, args.exclude)
    if not files:
        print("error: no input files found", file=sys.stderr)
        return 1

    config = GeneratorConfig(
        defined=frozenset(args.define),
        show_internal=args.internal,
        show_excluded=args.excluded,
        jobs=args.jobs,
    )
    result = generate(files, config)
    written = write_units(result.units, args.output, clean=args.clean)

    nsym = len(result.table.symbols) + len(result.table.tags)
    print(
        f"{len(written)} units written to {args.output} "
        f"({len(files)} files, {nsym} symbols, {len(result.diagnostics)} diagnostics)"
    )

    if args.strict and result.has_fatal:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
