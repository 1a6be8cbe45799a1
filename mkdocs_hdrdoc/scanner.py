"""
Lexical scanner for C/C++ header text.

Splits source into code spans, comments, string/char literals and
preprocessor directive lines. The scanner understands just enough of the
lexical grammar to never mistake a comment opener inside a literal (or a
quote inside a comment) for the real thing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from .diagnostics import FileFatalError


class SegmentKind(Enum):
    CODE = auto()
    LINE_COMMENT = auto()
    BLOCK_COMMENT = auto()
    DOC_BLOCK_COMMENT = auto()
    DIRECTIVE = auto()
    LITERAL = auto()


_COMMENT_KINDS = frozenset(
    {SegmentKind.LINE_COMMENT, SegmentKind.BLOCK_COMMENT, SegmentKind.DOC_BLOCK_COMMENT}
)


@dataclass(frozen=True)
class Segment:
    kind: SegmentKind
    text: str
    start: int
    end: int
    line: int = 1

    @property
    def is_comment(self):
        return self.kind in _COMMENT_KINDS

    @property
    def is_trailing_doc(self):
        """``/**< ... */`` documents the declaration before it."""
        return self.kind == SegmentKind.DOC_BLOCK_COMMENT and self.text.startswith("/**<")


def normalize_newlines(text):
    return text.replace("\r\n", "\n").replace("\r", "\n")


def is_doc_opener(text, pos):
    return text.startswith("/**", pos) and not text.startswith("/**/", pos)


class SourceScanner:
    """Iterable, restartable segment stream over one source text.

    Offsets refer to the newline-normalized text (``self.text``).
    Raises FileFatalError for an unterminated block comment or literal.
    """

    def __init__(self, text):
        self.text = normalize_newlines(text)

    def __iter__(self):
        return self._scan()

    def _line_at(self, pos):
        return self.text.count("\n", 0, pos) + 1

    def _scan(self):
        text = self.text
        n = len(text)
        i = 0
        line = 1
        line_start = True
        code_start = code_end = None
        code_line = 1

        def flush():
            nonlocal code_start, code_end
            if code_start is None:
                return None
            seg = Segment(SegmentKind.CODE, text[code_start:code_end], code_start, code_end, code_line)
            code_start = code_end = None
            return seg

        while i < n:
            c = text[i]
            if c == "\n":
                line += 1
                line_start = True
                i += 1
                continue
            if c in " \t\f\v":
                i += 1
                continue

            if line_start and c == "#":
                seg = flush()
                if seg:
                    yield seg
                end = self._directive_end(i)
                yield Segment(SegmentKind.DIRECTIVE, text[i:end].rstrip(), i, end, line)
                line += text.count("\n", i, end)
                i = end
                line_start = False
                continue
            line_start = False

            if text.startswith("/*", i):
                seg = flush()
                if seg:
                    yield seg
                close = text.find("*/", i + 2)
                if close < 0:
                    raise FileFatalError("unterminated block comment", line)
                end = close + 2
                kind = SegmentKind.DOC_BLOCK_COMMENT if is_doc_opener(text, i) else SegmentKind.BLOCK_COMMENT
                yield Segment(kind, text[i:end], i, end, line)
                line += text.count("\n", i, end)
                i = end
                continue

            if text.startswith("//", i):
                seg = flush()
                if seg:
                    yield seg
                end = text.find("\n", i)
                if end < 0:
                    end = n
                yield Segment(SegmentKind.LINE_COMMENT, text[i:end], i, end, line)
                i = end
                continue

            if c in "\"'":
                seg = flush()
                if seg:
                    yield seg
                end = self._literal_end(i, line)
                yield Segment(SegmentKind.LITERAL, text[i:end], i, end, line)
                line += text.count("\n", i, end)
                i = end
                continue

            if code_start is None:
                code_start = i
                code_line = line
            code_end = i + 1
            i += 1

        seg = flush()
        if seg:
            yield seg

    def _literal_end(self, pos, line):
        text = self.text
        quote = text[pos]
        j = pos + 1
        while j < len(text):
            ch = text[j]
            if ch == "\\":
                j += 2
                continue
            if ch == quote:
                return j + 1
            if ch == "\n":
                break
            j += 1
        what = "string" if quote == '"' else "character"
        raise FileFatalError(f"unterminated {what} literal", line)

    def _directive_end(self, pos):
        # A directive runs to the end of its logical line; a comment on the
        # line ends the directive text and is scanned on its own.
        text = self.text
        n = len(text)
        j = pos + 1
        while j < n:
            ch = text[j]
            if ch == "\\" and text.startswith("\n", j + 1):
                j += 2
                continue
            if ch == "\n":
                break
            if text.startswith("/*", j) or text.startswith("//", j):
                break
            if ch in "\"'":
                close = text.find(ch, j + 1)
                eol = text.find("\n", j + 1)
                if close >= 0 and (eol < 0 or close < eol):
                    j = close + 1
                    continue
            j += 1
        return j


def scan(text):
    """Return the full segment list for ``text``."""
    return list(SourceScanner(text))
