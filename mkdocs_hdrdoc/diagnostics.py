"""
Diagnostics collected while extracting and resolving headers.

Nothing in the pipeline throws output away because of a partial error:
problems are recorded as Diagnostic entries and returned alongside the
generated documentation. Only file-fatal lexing/nesting problems are
raised (as FileFatalError) and they are converted to diagnostics at the
file boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

log = logging.getLogger("mkdocs.plugins.hdrdoc")


class DiagnosticKind(Enum):
    FILE_FATAL = "file-fatal"
    DECLARATION_SKIPPED = "declaration-skipped"
    MERGE_CONFLICT = "merge-conflict"
    UNRESOLVED_REFERENCE = "unresolved-reference"


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    filename: str = ""
    line: int = 0

    @property
    def severity(self):
        return "error" if self.kind == DiagnosticKind.FILE_FATAL else "warning"

    @property
    def is_fatal(self):
        return self.kind == DiagnosticKind.FILE_FATAL

    def __str__(self):
        where = self.filename or "<input>"
        if self.line:
            where = f"{where}:{self.line}"
        return f"{where}: {self.severity}: {self.message} [{self.kind.value}]"


class FileFatalError(Exception):
    """Processing of one source file cannot continue."""

    def __init__(self, message, line=0):
        super().__init__(message)
        self.message = message
        self.line = line


def report(diagnostics, kind, message, filename="", line=0):
    """Append a diagnostic to ``diagnostics`` and log it."""
    diag = Diagnostic(kind=kind, message=message, filename=filename, line=line)
    diagnostics.append(diag)
    if diag.is_fatal:
        log.error("hdrdoc: %s", diag)
    else:
        log.warning("hdrdoc: %s", diag)
    return diag
