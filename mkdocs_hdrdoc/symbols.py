"""
Symbol table: merges declarations from every file and resolves the
documentation-level links between them.

Insertion happens first (single writer, caller order), then
``resolve()`` runs ``@copydoc`` against a snapshot of the inserted docs,
followed by ``@ref``/``@see`` resolution and ``@ingroup`` grouping.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum

from .declarations import AGGREGATE_KINDS, DeclKind
from .diagnostics import DiagnosticKind, report

log = logging.getLogger("mkdocs.plugins.hdrdoc")


class ResolutionState(Enum):
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class CrossReference:
    source: str
    target: str
    state: ResolutionState

    @property
    def resolved(self):
        return self.state == ResolutionState.RESOLVED


def _doc_rank(doc):
    if doc is None:
        return (False, False)
    return (bool(doc.brief), not doc.is_empty())


class SymbolTable:
    def __init__(self):
        self.symbols = {}
        # struct/union/enum tags live in their own namespace, as in C
        self.tags = {}
        self.pages = {}
        self.groups = {}
        self.files = {}
        self.references: list[CrossReference] = []
        self.duplicates = []
        self.diagnostics = []

    # -- insertion --

    def insert(self, decl):
        """Add one declaration; returns the canonical declaration for its name."""
        if decl.kind == DeclKind.PAGE:
            return self._insert_unit(self.pages, decl)
        if decl.kind == DeclKind.GROUP:
            return self._insert_unit(self.groups, decl)
        if decl.kind == DeclKind.FILE:
            return self._insert_unit(self.files, decl)

        body = decl.aggregate
        if body is not None and body.kind == DeclKind.ENUM:
            for const in body.members:
                if not const.parent:
                    const.parent = decl.name
                self._insert_into(self.symbols, const)
            if not decl.name:
                return None

        if not decl.name:
            log.debug("hdrdoc: %s:%d: anonymous %s not indexed",
                      decl.filename, decl.line, decl.kind.name.lower())
            return None
        if decl.kind in AGGREGATE_KINDS:
            return self._insert_into(self.tags, decl)
        return self._insert_into(self.symbols, decl)

    def _insert_unit(self, namespace, decl):
        existing = namespace.get(decl.name)
        if existing is None:
            namespace[decl.name] = decl
            return decl
        # @addtogroup and repeated @page blocks extend the first one
        if _doc_rank(decl.doc) > _doc_rank(existing.doc):
            existing.doc = decl.doc
        if existing.title == existing.name and decl.title != decl.name:
            existing.title = decl.title
        return existing

    def _insert_into(self, namespace, decl):
        name = decl.name
        existing = namespace.get(name)
        if existing is None:
            namespace[name] = decl
            return decl

        if existing.kind == decl.kind and existing.kind in AGGREGATE_KINDS:
            if existing.forward and not decl.forward:
                if _doc_rank(existing.doc) > _doc_rank(decl.doc):
                    decl.doc = existing.doc
                namespace[name] = decl
                existing.duplicate_of = name
                self.duplicates.append(existing)
                return decl
            if decl.forward:
                self._merge_docs(existing, decl)
                decl.duplicate_of = name
                self.duplicates.append(decl)
                return existing

        if existing.shape() == decl.shape():
            canonical, other = existing, decl
            if existing.excluded and not decl.excluded:
                canonical, other = decl, existing
                namespace[name] = canonical
            self._merge_docs(canonical, other)
            canonical.has_body = canonical.has_body or other.has_body
            other.duplicate_of = name
            self.duplicates.append(other)
            log.debug("hdrdoc: %s:%d: re-declaration of %s merged", decl.filename, decl.line, name)
            return canonical

        if existing.excluded != decl.excluded:
            included = decl if existing.excluded else existing
            namespace[name] = included
            return included

        report(
            self.diagnostics,
            DiagnosticKind.MERGE_CONFLICT,
            f"conflicting declaration of '{name}' (first declared at "
            f"{existing.filename}:{existing.line}); keeping the first",
            decl.filename,
            decl.line,
        )
        return existing

    @staticmethod
    def _merge_docs(canonical, other):
        if _doc_rank(other.doc) > _doc_rank(canonical.doc):
            canonical.doc = other.doc

    # -- lookup --

    def lookup(self, name):
        """Find a symbol or tag; ``Parent.member`` / ``Parent::member`` reach members."""
        decl = self.symbols.get(name) or self.tags.get(name)
        if decl is not None:
            return decl
        for sep in ("::", "."):
            if sep in name:
                parent_name, _, member = name.rpartition(sep)
                parent = self.lookup(parent_name)
                body = parent.aggregate if parent is not None else None
                if body is not None:
                    for m in body.members:
                        if m.name == member:
                            return m
        return None

    def lookup_any(self, name):
        return (
            self.lookup(name)
            or self.pages.get(name)
            or self.groups.get(name)
            or self.files.get(name)
        )

    def declarations(self):
        """Canonical top-level declarations in insertion order."""
        return list(self.symbols.values()) + list(self.tags.values())

    def _documented(self):
        seen = set()
        for decl in self.declarations():
            for nested in decl.walk():
                if nested.doc is not None and id(nested) not in seen:
                    seen.add(id(nested))
                    yield decl, nested
        for namespace in (self.pages, self.groups, self.files):
            for decl in namespace.values():
                if decl.doc is not None:
                    yield decl, decl

    # -- resolution --

    def resolve_copydoc(self):
        """Single pass: copy documentation from each ``@copydoc`` target.

        Targets are read from a snapshot taken before any copying, so a
        chain ``a -> b -> c`` resolves one hop only and is reported.
        """
        snapshot = {id(nested): nested.doc for _, nested in self._documented()}
        for top, decl in list(self._documented()):
            doc = decl.doc
            target_name = doc.copydoc
            if not target_name:
                continue
            target = self.lookup(target_name)
            source = snapshot.get(id(target)) if target is not None else None
            if source is None:
                problem = "not found" if target is None else "has no documentation"
                report(
                    self.diagnostics,
                    DiagnosticKind.UNRESOLVED_REFERENCE,
                    f"@copydoc target '{target_name}' {problem} for '{decl.name}'",
                    decl.filename,
                    decl.line,
                )
                continue
            if source.copydoc:
                report(
                    self.diagnostics,
                    DiagnosticKind.UNRESOLVED_REFERENCE,
                    f"@copydoc chain '{decl.name}' -> '{target_name}' -> "
                    f"'{source.copydoc}' resolves one level only",
                    decl.filename,
                    decl.line,
                )
                continue
            local_names = {p.name for p in doc.params}
            decl.doc = dataclasses.replace(
                doc,
                brief=source.brief or doc.brief,
                details=list(source.details) + [d for d in doc.details if d not in source.details],
                params=[p for p in source.params if p.name not in local_names] + list(doc.params)
                if doc.params
                else list(source.params),
                returns=source.returns or doc.returns,
                retvals=list(source.retvals) + list(doc.retvals),
                errors=list(source.errors) + list(doc.errors),
                copydoc_from=target_name,
            )

    def resolve_references(self):
        seen = set()
        for top, decl in self._documented():
            source = decl.name if decl is top else f"{top.name}.{decl.name}"
            for target in decl.doc.references():
                if (source, target) in seen:
                    continue
                seen.add((source, target))
                found = self.lookup_any(target) is not None
                state = ResolutionState.RESOLVED if found else ResolutionState.UNRESOLVED
                self.references.append(CrossReference(source, target, state))
                if not found:
                    report(
                        self.diagnostics,
                        DiagnosticKind.UNRESOLVED_REFERENCE,
                        f"unresolved reference '{target}' in documentation of '{source}'",
                        decl.filename,
                        decl.line,
                    )

    def build_groups(self):
        for decl in self.declarations():
            if decl.doc is None:
                continue
            for group_name in decl.doc.groups:
                group = self.groups.get(group_name)
                if group is None:
                    report(
                        self.diagnostics,
                        DiagnosticKind.UNRESOLVED_REFERENCE,
                        f"'{decl.name}' is @ingroup unknown group '{group_name}'",
                        decl.filename,
                        decl.line,
                    )
                    continue
                if decl.name not in group.group_members:
                    group.group_members.append(decl.name)

    def resolve(self):
        self.resolve_copydoc()
        self.resolve_references()
        self.build_groups()
        log.info(
            "hdrdoc: indexed %d symbols, %d groups, %d pages",
            len(self.symbols) + len(self.tags),
            len(self.groups),
            len(self.pages),
        )
        return self
