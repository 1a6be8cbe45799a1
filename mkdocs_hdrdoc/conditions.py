"""
Conditional-compilation tracking.

Follows ``#ifdef``/``#ifndef``/``#if``/``#elif``/``#else``/``#endif`` in
file order and tells the extractor which guard conditions are active for
the next declaration. Nothing is evaluated away: declarations in
unsatisfied branches are still extracted, just marked excluded.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from .cexpr import evaluate_condition
from .diagnostics import FileFatalError

log = logging.getLogger("mkdocs.plugins.hdrdoc")

_DIRECTIVE_RE = re.compile(r"^#\s*([A-Za-z_]\w*)\s*(.*)$", re.DOTALL)
_WORD_RE = re.compile(r"[A-Za-z_]\w*")

CONDITIONAL_DIRECTIVES = frozenset({"ifdef", "ifndef", "if", "elif", "else", "endif"})


@dataclass(frozen=True)
class Condition:
    """One guard: a macro symbol (``#ifdef``) or an expression (``#if``)."""

    expr: str
    negated: bool = False
    is_symbol: bool = True

    def holds(self, defined):
        if self.is_symbol:
            return (self.expr in defined) != self.negated
        value = evaluate_condition(self.expr, defined)
        if value is None:
            return True
        return bool(value) != self.negated

    def negate(self):
        return Condition(self.expr, not self.negated, self.is_symbol)

    def describe(self):
        if self.is_symbol:
            return f"{self.expr} {'undefined' if self.negated else 'defined'}"
        return f"!({self.expr})" if self.negated else self.expr

    def __str__(self):
        return f"requires {self.describe()}"


@dataclass
class ConditionalBlock:
    kind: str
    symbol: str
    start: int
    end: int = -1
    line: int = 0


@dataclass
class _Frame:
    opener: ConditionalBlock
    taken: list[Condition] = field(default_factory=list)
    current: tuple = ()
    seen_else: bool = False
    guard: bool = False


def _logical(text):
    return " ".join(piece.rstrip("\\").strip() for piece in text.split("\n")).strip()


class ConditionalTracker:
    def __init__(self, defined=(), filename=""):
        self.defined = frozenset(defined)
        self.filename = filename
        self.blocks: list[ConditionalBlock] = []
        self._stack: list[_Frame] = []
        self._guard_candidate = None
        self._seen_code = False

    # -- feeding --

    def process(self, directive, start=0, end=0, line=0):
        """Feed one directive; returns True when it was a conditional."""
        m = _DIRECTIVE_RE.match(directive.strip())
        if not m or m.group(1) not in CONDITIONAL_DIRECTIVES:
            if not (m and m.group(1) == "define"):
                self._guard_candidate = None
            return False
        kw, body = m.group(1), _logical(m.group(2))
        self._guard_candidate = None

        if kw in ("ifdef", "ifndef"):
            word = _WORD_RE.match(body)
            symbol = word.group(0) if word else body
            cond = Condition(symbol, negated=kw == "ifndef")
            self._open(kw, symbol, cond, start, line)
            if kw == "ifndef" and not self._stack[:-1] and not self._seen_code:
                self._guard_candidate = self._stack[-1]
            return True
        if kw == "if":
            self._open(kw, body, Condition(body, is_symbol=False), start, line)
            return True

        if not self._stack:
            raise FileFatalError(f"#{kw} without matching #if", line)
        frame = self._stack[-1]
        self._close_block(start)

        if kw == "endif":
            self._stack.pop()
            self.blocks.append(ConditionalBlock("endif", frame.opener.symbol, start, end, line))
            return True
        if frame.seen_else:
            raise FileFatalError(f"#{kw} after #else", line)

        negated = tuple(c.negate() for c in frame.taken)
        if kw == "elif":
            cond = Condition(body, is_symbol=False)
            frame.current = negated + (cond,)
            frame.taken.append(cond)
            self.blocks.append(ConditionalBlock("elif", body, start, line=line))
        else:
            frame.current = negated
            frame.seen_else = True
            self.blocks.append(ConditionalBlock("else", frame.opener.symbol, start, line=line))
        return True

    def _open(self, kw, symbol, cond, start, line):
        block = ConditionalBlock(kw, symbol, start, line=line)
        self.blocks.append(block)
        self._stack.append(_Frame(opener=block, taken=[cond], current=(cond,)))

    def _close_block(self, end):
        for block in reversed(self.blocks):
            if block.end < 0 and block.kind != "endif":
                block.end = end
                return

    def note_define(self, name):
        """Report a ``#define``; returns True when it completes an include guard."""
        frame = self._guard_candidate
        self._guard_candidate = None
        if frame is not None and frame.opener.symbol == name:
            frame.guard = True
            log.debug("hdrdoc: %s: include guard %s", self.filename, name)
            return True
        return False

    def note_code(self):
        self._guard_candidate = None
        self._seen_code = True

    # -- queries --

    def active(self):
        """Conditions in force at the current position, outermost first."""
        conds = []
        for frame in self._stack:
            if not frame.guard:
                conds.extend(frame.current)
        return tuple(conds)

    def close(self, end):
        if not self._stack:
            return
        open_blocks = ", ".join(
            f"#{f.opener.kind} {f.opener.symbol} (line {f.opener.line})" for f in self._stack
        )
        first_line = self._stack[0].opener.line
        while self._stack:
            self._close_block(end)
            self._stack.pop()
        raise FileFatalError(f"unterminated conditional block: {open_blocks}", first_line)
