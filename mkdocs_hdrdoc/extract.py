"""
Extraction pipeline: one header in, declarations out.

Per file: scan into segments, group code into declaration spans, pair
doc comments with the declaration that follows them, tag everything
with the active conditional guards. Files are independent, so they can
be extracted on a thread pool; the symbol table is then filled by a
single writer in caller order.
"""

from __future__ import annotations

import bisect
import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from .comments import DocComment, parse_doc_comment
from .conditions import ConditionalBlock, ConditionalTracker
from .config import GeneratorConfig
from .declarations import DeclKind, Declaration, parse_declaration, parse_macro
from .diagnostics import DiagnosticKind, FileFatalError, report
from .renderer import Renderer
from .scanner import SegmentKind, SourceScanner, normalize_newlines
from .symbols import SymbolTable

log = logging.getLogger("mkdocs.plugins.hdrdoc")

_DEFINE_NAME_RE = re.compile(r"^#\s*define\s+([A-Za-z_]\w*)")
# Wrappers whose braces do not open a declaration
_TRANSPARENT_RE = re.compile(r'^\s*(?:extern\s+"\s*"|namespace(?:\s+[\w:]+)?)\s*$')

_STRUCTURAL_KINDS = {
    "page": DeclKind.PAGE,
    "mainpage": DeclKind.PAGE,
    "defgroup": DeclKind.GROUP,
    "addtogroup": DeclKind.GROUP,
    "file": DeclKind.FILE,
}


@dataclass
class SourceFile:
    path: str
    text: str
    name: str = ""
    blocks: list[ConditionalBlock] = field(default_factory=list)
    doc: DocComment | None = None

    def __post_init__(self):
        self.text = normalize_newlines(self.text)
        if not self.name:
            self.name = os.path.basename(self.path)

    @classmethod
    def from_path(cls, path):
        with open(path, encoding="utf-8", errors="replace", newline="") as f:
            return cls(path=str(path), text=f.read())


@dataclass
class FileResult:
    source: SourceFile
    declarations: list[Declaration] = field(default_factory=list)
    diagnostics: list = field(default_factory=list)


def _masked_views(text, segments):
    """Return ``(masked, raw)`` copies of ``text``.

    ``masked`` blanks comments, directives and literal contents; ``raw``
    blanks comments and directives only. Newlines survive so line
    numbers and offsets keep matching the source.
    """
    masked = list(text)
    raw = list(text)
    for seg in segments:
        if seg.kind == SegmentKind.CODE:
            continue
        lo, hi = seg.start, seg.end
        if seg.kind == SegmentKind.LITERAL:
            lo, hi = lo + 1, hi - 1
        for i in range(lo, hi):
            if text[i] != "\n":
                masked[i] = " "
                if seg.kind != SegmentKind.LITERAL:
                    raw[i] = " "
    return "".join(masked), "".join(raw)


class _FileExtractor:
    def __init__(self, source, config, diagnostics):
        self.source = source
        self.config = config
        self.diagnostics = diagnostics
        self.tracker = ConditionalTracker(config.defined, source.name)
        self.declarations: list[Declaration] = []
        self.segments = list(SourceScanner(source.text))
        self.masked, self.raw = _masked_views(source.text, self.segments)
        self._comments = [seg for seg in self.segments if seg.is_comment]
        self._comment_starts = [seg.start for seg in self._comments]
        self._line_starts = [0] + [i + 1 for i, ch in enumerate(source.text) if ch == "\n"]

        self.pending = None
        self.last_decl = None
        self.chunk_start = None
        self.chunk_conditions = ()
        self.chunk_marks = []
        self.brace = 0
        self.paren = 0
        self.first_brace = -1
        self.transparent = 0

    def line_at(self, offset):
        return bisect.bisect_right(self._line_starts, offset)

    # -- driver --

    def run(self):
        for seg in self.segments:
            if seg.kind == SegmentKind.DIRECTIVE:
                self._directive(seg)
            elif seg.kind == SegmentKind.DOC_BLOCK_COMMENT:
                if self.chunk_start is None:
                    self._doc_comment(seg)
            elif seg.kind == SegmentKind.LITERAL:
                if self.chunk_start is None:
                    self._begin(seg.start)
            elif seg.kind == SegmentKind.CODE:
                self._code(seg)

        if self.chunk_start is not None and self.masked[self.chunk_start :].strip():
            report(
                self.diagnostics,
                DiagnosticKind.DECLARATION_SKIPPED,
                "unterminated declaration at end of file",
                self.source.name,
                self.line_at(self.chunk_start),
            )
        self.tracker.close(len(self.source.text))
        self.source.blocks = self.tracker.blocks
        if self.pending is not None:
            log.debug("hdrdoc: %s:%d: doc comment not attached to any declaration",
                      self.source.name, self.pending[1].line)
        return self.declarations

    # -- directives --

    def _directive(self, seg):
        is_conditional = self.tracker.process(seg.text, seg.start, seg.end, seg.line)
        if is_conditional and self.chunk_start is not None:
            # conditions in force from here on inside the open declaration
            self.chunk_marks.append((seg.end, self.tracker.active()))
        if is_conditional or self.chunk_start is not None:
            return
        m = _DEFINE_NAME_RE.match(seg.text)
        if not m:
            return
        if self.tracker.note_define(m.group(1)):
            return
        decl = parse_macro(seg.text, self.source.name, seg.line, (seg.start, seg.end))
        if decl is None:
            report(
                self.diagnostics,
                DiagnosticKind.DECLARATION_SKIPPED,
                "malformed #define",
                self.source.name,
                seg.line,
            )
            return
        self._emit(decl, self.tracker.active())

    # -- doc comments --

    def _doc_comment(self, seg):
        doc = parse_doc_comment(seg.text)
        if seg.is_trailing_doc:
            if self.last_decl is not None and self.last_decl.doc is None:
                self.last_decl.doc = doc
            return
        if doc.is_structural:
            self._structural(doc, seg)
            return
        if self.pending is not None:
            log.debug("hdrdoc: %s:%d: doc comment orphaned by the next one",
                      self.source.name, self.pending[1].line)
        self.pending = (doc, seg)

    def _structural(self, doc, seg):
        tag, ident, title = doc.structural()
        kind = _STRUCTURAL_KINDS[tag]
        if kind == DeclKind.FILE:
            ident = ident or self.source.name
            self.source.doc = doc
        if not ident:
            report(
                self.diagnostics,
                DiagnosticKind.DECLARATION_SKIPPED,
                f"@{tag} without a name",
                self.source.name,
                seg.line,
            )
            return
        self.declarations.append(
            Declaration(
                kind=kind,
                name=ident,
                filename=self.source.name,
                line=seg.line,
                span=(seg.start, seg.end),
                doc=doc,
                title=title or ident,
            )
        )

    # -- code --

    def _begin(self, pos):
        self.chunk_start = pos
        self.chunk_conditions = self.tracker.active()
        self.chunk_marks = []
        self.brace = self.paren = 0
        self.first_brace = -1
        self.tracker.note_code()

    def _reset(self):
        self.chunk_start = None
        self.first_brace = -1
        self.brace = self.paren = 0

    def _code(self, seg):
        text = self.source.text
        for pos in range(seg.start, seg.end):
            ch = text[pos]
            if ch.isspace():
                continue
            if self.chunk_start is None:
                if ch == "}" and self.transparent:
                    self.transparent -= 1
                    continue
                if ch in "};":
                    continue
                self._begin(pos)

            if ch == "(":
                self.paren += 1
            elif ch == ")":
                self.paren -= 1
            elif ch == "{":
                if self.brace == 0 and _TRANSPARENT_RE.match(self.masked[self.chunk_start : pos]):
                    self.transparent += 1
                    self._reset()
                    continue
                if self.brace == 0 and self.first_brace < 0:
                    self.first_brace = pos
                self.brace += 1
            elif ch == "}":
                self.brace -= 1
                if self.brace == 0 and self._is_definition():
                    self._finish(pos + 1)
            elif ch == ";" and self.brace == 0 and self.paren == 0:
                self._finish(pos + 1)

    def _is_definition(self):
        head = self.masked[self.chunk_start : self.first_brace].rstrip()
        if not head.endswith(")") or "=" in head:
            return False
        return not re.match(r"\s*(typedef|struct|union|enum)\b", head)

    def _finish(self, end):
        start = self.chunk_start
        marks = self.chunk_marks
        self._reset()
        code = self.masked[start:end]
        lo = bisect.bisect_left(self._comment_starts, start)
        hi = bisect.bisect_left(self._comment_starts, end)
        comments = [(seg.start - start, seg) for seg in self._comments[lo:hi]]
        line = self.line_at(start)
        decl = parse_declaration(
            code,
            comments,
            filename=self.source.name,
            line=line,
            base=start,
            raw=self.raw[start:end],
        )
        pending, self.pending = self.pending, None
        if decl is None:
            snippet = " ".join(code.split())
            if len(snippet) > 60:
                snippet = snippet[:57] + "..."
            report(
                self.diagnostics,
                DiagnosticKind.DECLARATION_SKIPPED,
                f"could not classify declaration: {snippet}",
                self.source.name,
                line,
            )
            return
        if pending is not None and decl.doc is None:
            decl.doc = pending[0]
        self._emit(decl, self.chunk_conditions, marks)

    def _emit(self, decl, conditions, marks=()):
        if decl.doc is None and self.pending is not None and decl.kind == DeclKind.MACRO:
            decl.doc = self.pending[0]
            self.pending = None
        decl.conditions = tuple(conditions)
        decl.excluded = not all(c.holds(self.config.defined) for c in conditions)
        offsets = [off for off, _ in marks]
        for nested in decl.walk():
            if nested is decl:
                continue
            i = bisect.bisect_right(offsets, nested.span[0])
            nested.conditions = tuple(marks[i - 1][1]) if i else decl.conditions
            nested.excluded = not all(c.holds(self.config.defined) for c in nested.conditions)
        self.declarations.append(decl)
        self.last_decl = decl


def extract_file(source, config=None):
    """Extract one SourceFile; file-fatal problems empty its declarations."""
    config = config or GeneratorConfig()
    result = FileResult(source=source)
    try:
        result.declarations = _FileExtractor(source, config, result.diagnostics).run()
    except FileFatalError as exc:
        result.declarations = []
        report(result.diagnostics, DiagnosticKind.FILE_FATAL, exc.message, source.name, exc.line)
    log.debug("hdrdoc: %s: %d declarations", source.name, len(result.declarations))
    return result


def load_sources(paths, diagnostics):
    sources = []
    for path in paths:
        if isinstance(path, SourceFile):
            sources.append(path)
            continue
        try:
            sources.append(SourceFile.from_path(path))
        except OSError as exc:
            report(
                diagnostics,
                DiagnosticKind.FILE_FATAL,
                f"cannot read file: {exc.strerror or exc}",
                os.path.basename(str(path)),
            )
    return sources


def extract_sources(sources, config=None):
    """Extract every source; results come back in the order given."""
    config = config or GeneratorConfig()
    if config.jobs > 1 and len(sources) > 1:
        with ThreadPoolExecutor(max_workers=config.jobs) as ex:
            return list(ex.map(lambda s: extract_file(s, config), sources))
    return [extract_file(s, config) for s in sources]


def build_symbol_table(results):
    """Fill a SymbolTable from extraction results, in order, then resolve it."""
    table = SymbolTable()
    for result in results:
        for decl in result.declarations:
            table.insert(decl)
    return table.resolve()


@dataclass
class GenerationResult:
    units: list
    table: SymbolTable
    diagnostics: list
    files: list[SourceFile]

    @property
    def has_fatal(self):
        return any(d.is_fatal for d in self.diagnostics)


def generate(sources, config=None):
    """Run the whole pipeline over paths or SourceFiles."""
    config = config or GeneratorConfig()
    diagnostics = []
    files = load_sources(sources, diagnostics)
    if config.sort_files:
        files.sort(key=lambda s: s.path)
    log.info("hdrdoc: extracting %d files", len(files))

    results = extract_sources(files, config)
    for result in results:
        diagnostics.extend(result.diagnostics)
    table = build_symbol_table(results)
    diagnostics.extend(table.diagnostics)
    units = Renderer(table, config).build()
    return GenerationResult(units=units, table=table, diagnostics=diagnostics, files=files)
