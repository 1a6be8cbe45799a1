"""
Renderer for the resolved symbol table.

Builds an ordered, format-neutral model (DocUnit -> Section -> Entry)
from the table, then serializes it as MkDocs Markdown or as MDX. Prose
keeps its Doxygen inline commands until serialization, where ``\\ref``
becomes a link (or plain text when the target is not rendered) and
``@p``/``@b``/``@e`` become code, bold and italics.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

import yaml

from .comments import DocComment
from .config import GeneratorConfig
from .declarations import DeclKind, TypedefKind

log = logging.getLogger("mkdocs.plugins.hdrdoc")

_KIND_LABELS = {
    DeclKind.FUNCTION: "Function",
    DeclKind.VARIABLE: "Variable",
    DeclKind.TYPEDEF: "Type",
    DeclKind.MACRO: "Macro",
    DeclKind.STRUCT: "Struct",
    DeclKind.UNION: "Union",
    DeclKind.ENUM: "Enum",
    DeclKind.ENUM_CONSTANT: "Enumerator",
    DeclKind.FIELD: "Field",
    DeclKind.FILE: "File",
    DeclKind.PAGE: "Page",
    DeclKind.GROUP: "Group",
}

_KIND_ANCHOR_PREFIX = {
    DeclKind.FUNCTION: "func",
    DeclKind.VARIABLE: "var",
    DeclKind.TYPEDEF: "type",
    DeclKind.MACRO: "macro",
    DeclKind.STRUCT: "struct",
    DeclKind.UNION: "union",
    DeclKind.ENUM: "enum",
    DeclKind.ENUM_CONSTANT: "enumval",
    DeclKind.FIELD: "field",
    DeclKind.FILE: "file",
    DeclKind.PAGE: "page",
    DeclKind.GROUP: "group",
}

SECTIONS = (
    ("macros", "Macros"),
    ("typedefs", "Typedefs"),
    ("enums", "Enums"),
    ("structs", "Structs/Unions"),
    ("functions", "Functions"),
    ("variables", "Variables"),
)

# (tag, callout kind, title) in rendering order, after @deprecated
_CALLOUT_TAGS = (
    ("note", "note", "Note"),
    ("warning", "warning", "Warning"),
    ("attention", "danger", "Attention"),
    ("todo", "todo", "Todo"),
    ("bug", "bug", "Bug"),
    ("remark", "info", "Remark"),
    ("pre", "info", "Precondition"),
    ("post", "info", "Postcondition"),
)

OTHER_UNIT = "other"
INDEX_UNIT = "index"


def anchor_id(decl):
    prefix = _KIND_ANCHOR_PREFIX.get(decl.kind, "sym")
    return f"{prefix}-{decl.name}"


class RenderConfig:
    def __init__(
        self,
        *,
        heading_level=3,
        language="c",
        members=True,
        link_prefix="",
        link_suffix=".md",
    ):
        self.heading_level = heading_level
        self.language = language
        self.members = members
        # Prepended to cross-unit links when a unit is embedded elsewhere
        self.link_prefix = link_prefix
        self.link_suffix = link_suffix


# -- model --


@dataclass
class Link:
    text: str
    unit: str
    anchor: str = ""


@dataclass
class Callout:
    kind: str
    title: str
    text: str


@dataclass
class ParamRow:
    name: str
    direction: str = ""
    type: str = ""
    description: str = ""


@dataclass
class MemberRow:
    name: str
    type: str = ""
    description: str = ""
    value: str = ""
    anchor: str = ""
    children: list[MemberRow] = field(default_factory=list)


@dataclass
class Entry:
    kind: DeclKind
    name: str
    anchor: str
    signature: str = ""
    brief: str = ""
    details: list[str] = field(default_factory=list)
    conditions: list[str] = field(default_factory=list)
    params: list[ParamRow] = field(default_factory=list)
    returns: str = ""
    retvals: list = field(default_factory=list)
    errors: list = field(default_factory=list)
    see_also: list = field(default_factory=list)
    since: str = ""
    callouts: list[Callout] = field(default_factory=list)
    assets: list = field(default_factory=list)
    examples: list[str] = field(default_factory=list)
    members: list[MemberRow] = field(default_factory=list)
    filename: str = ""
    line: int = 0

    @property
    def label(self):
        return _KIND_LABELS.get(self.kind, "")


@dataclass
class Section:
    key: str
    title: str
    entries: list[Entry] = field(default_factory=list)


@dataclass
class DocUnit:
    id: str
    title: str
    kind: str
    brief: str = ""
    details: list[str] = field(default_factory=list)
    callouts: list[Callout] = field(default_factory=list)
    assets: list = field(default_factory=list)
    examples: list[str] = field(default_factory=list)
    sections: list[Section] = field(default_factory=list)
    contents: list = field(default_factory=list)
    refs: dict = field(default_factory=dict)

    def entries(self):
        for section in self.sections:
            yield from section.entries

    def find(self, name):
        for entry in self.entries():
            if entry.name == name:
                return entry
        return None


def section_key(decl):
    if decl.kind == DeclKind.MACRO:
        return "macros"
    if decl.kind == DeclKind.TYPEDEF:
        body = decl.aggregate
        if body is not None:
            return "enums" if body.kind == DeclKind.ENUM else "structs"
        return "typedefs"
    if decl.kind in (DeclKind.ENUM, DeclKind.ENUM_CONSTANT):
        return "enums"
    if decl.kind in (DeclKind.STRUCT, DeclKind.UNION):
        return "structs"
    if decl.kind == DeclKind.FUNCTION:
        return "functions"
    if decl.kind == DeclKind.VARIABLE:
        return "variables"
    return None


def derived_returns(rtype):
    """Describe a return type when the comment has no ``@returns``."""
    rt = (rtype or "").strip()
    if not rt or rt == "void":
        return ""
    if "*" in rt:
        base = rt.replace("*", "").strip()
        ptr = "Pointer to pointer to" if rt.count("*") > 1 else "Pointer to"
        return f"{ptr} `{base}`" if base else f"{ptr} void"
    return f"`{rt}`"


# -- model building --


class Renderer:
    def __init__(self, table, config=None):
        self.table = table
        self.config = config or GeneratorConfig()
        self._unit_ids = {}
        self._homes = {}
        self._links = {}

    def is_visible(self, decl):
        if decl.is_internal and not self.config.show_internal:
            return False
        if decl.excluded and not self.config.show_excluded:
            return False
        return True

    def _top_level(self):
        for decl in self.table.declarations():
            if decl.kind == DeclKind.ENUM_CONSTANT and decl.parent:
                continue
            if section_key(decl) and self.is_visible(decl):
                yield decl

    def _assign_units(self):
        taken = {INDEX_UNIT, OTHER_UNIT}
        for name in self.table.pages:
            self._unit_ids[("page", name)] = name
            taken.add(name)
        for name in self.table.groups:
            uid = name if name not in taken else f"group-{name}"
            self._unit_ids[("group", name)] = uid
            taken.add(uid)

        for decl in self._top_level():
            self._homes[id(decl)] = OTHER_UNIT
        for name in reversed(list(self.table.groups)):
            for decl in self._group_members(name):
                self._homes[id(decl)] = self._unit_ids[("group", name)]

    def _group_members(self, name):
        """Visible declarations listed in the resolved membership of group *name*."""
        names = set(self.table.groups[name].group_members)
        return [
            d for d in self._top_level()
            if d.name in names and d.doc is not None and name in d.doc.groups
        ]

    def _index_links(self):
        for key, uid in self._unit_ids.items():
            kind, name = key
            unit = self.table.pages.get(name) if kind == "page" else self.table.groups.get(name)
            self._links.setdefault(name, Link(unit.title or name, uid))
        for name in self.table.files:
            self._links.setdefault(name, Link(name, INDEX_UNIT, f"file-{name}"))
        # ordinary identifiers come before tags, so a typedef wins over its struct
        named = set()
        for decl in self._top_level():
            home = self._homes[id(decl)]
            if decl.name not in named:
                named.add(decl.name)
                self._links[decl.name] = Link(decl.name, home, anchor_id(decl))
            body = decl.aggregate
            if body is None:
                continue
            for member in body.members:
                if not member.name or not self.is_visible(member):
                    continue
                anchor = f"{anchor_id(decl)}-{member.name}"
                if member.kind == DeclKind.ENUM_CONSTANT:
                    anchor = anchor_id(member)
                    self._links.setdefault(member.name, Link(member.name, home, anchor))
                self._links.setdefault(f"{decl.name}.{member.name}", Link(member.name, home, anchor))

    def build(self):
        self._assign_units()
        self._index_links()

        units = []
        for name, page in self.table.pages.items():
            if name == INDEX_UNIT:
                continue
            units.append(self._prose_unit(page, self._unit_ids[("page", name)], "page"))
        for name, group in self.table.groups.items():
            unit = self._prose_unit(group, self._unit_ids[("group", name)], "group")
            members = self._group_members(name)
            unit.sections = self._sections(members)
            units.append(unit)

        ungrouped = [d for d in self._top_level() if self._homes[id(d)] == OTHER_UNIT]
        if ungrouped:
            units.append(DocUnit(
                id=OTHER_UNIT,
                title="Other",
                kind="other",
                brief="Symbols that are not part of any group.",
                sections=self._sections(ungrouped),
            ))

        units.append(self._index_unit(units))
        for unit in units:
            unit.refs = self._links
        log.info("hdrdoc: rendered %d documentation units", len(units))
        return units

    def _prose_unit(self, decl, uid, kind):
        doc = decl.doc or DocComment()
        return DocUnit(
            id=uid,
            title=decl.title or decl.name,
            kind=kind,
            brief=doc.brief,
            details=list(doc.details),
            callouts=self._callouts(decl, doc),
            assets=list(doc.assets),
            examples=list(doc.examples),
        )

    def _index_unit(self, units):
        main = self.table.pages.get(INDEX_UNIT)
        if main is not None:
            unit = self._prose_unit(main, INDEX_UNIT, "index")
        else:
            unit = DocUnit(id=INDEX_UNIT, title="API Reference", kind="index")
        unit.contents = [(Link(u.title, u.id), u.brief) for u in units]
        files = []
        for name, fdecl in self.table.files.items():
            entry = self._entry(fdecl)
            entry.signature = ""
            files.append(entry)
        if files:
            unit.sections = [Section("files", "Files", files)]
        return unit

    def _sections(self, decls):
        buckets = {key: [] for key, _ in SECTIONS}
        for decl in decls:
            buckets[section_key(decl)].append(self._entry(decl))
        return [Section(key, title, buckets[key]) for key, title in SECTIONS if buckets[key]]

    # -- entries --

    def _link_or_text(self, name):
        return self._links.get(name, name)

    def _callouts(self, decl, doc):
        out = []
        if doc.deprecated is not None:
            out.append(Callout("deprecated", "Deprecated", doc.deprecated))
        for tag, kind, title in _CALLOUT_TAGS:
            for text in doc.values(tag):
                out.append(Callout(kind, title, text))
        if decl.excluded and decl.conditions:
            need = " and ".join(c.describe() for c in decl.conditions)
            out.append(Callout("info", "Availability", f"Available only when {need}."))
        if decl.is_internal:
            out.append(Callout("info", "Internal", "Not part of the public API."))
        return out

    def _param_rows(self, decl, doc):
        params = decl.params
        if decl.kind == DeclKind.TYPEDEF and decl.target is not None:
            params = decl.target.params
        documented = {p.name: p for p in doc.params}
        rows = []
        if decl.kind == DeclKind.MACRO:
            for name in decl.macro_params:
                pdoc = documented.pop(name, None)
                rows.append(ParamRow(name, pdoc.direction if pdoc else "", "",
                                     pdoc.description if pdoc else ""))
            if not doc.params:
                rows = []
        else:
            for p in params:
                pdoc = documented.pop(p.name, None) if p.name else None
                rows.append(ParamRow(
                    p.name,
                    pdoc.direction if pdoc else "",
                    p.type,
                    pdoc.description if pdoc else p.comment,
                ))
        for name, pdoc in documented.items():
            rows.append(ParamRow(name, pdoc.direction, "", pdoc.description))
        return rows

    def _member_rows(self, decl, body):
        rows = []
        for member in body.members:
            if not self.is_visible(member):
                continue
            description = member.brief
            if member.doc and member.doc.details:
                description = " ".join([description, *member.doc.details]).strip()
            if member.kind == DeclKind.ENUM_CONSTANT:
                value = member.value if member.enum_value is None else str(member.enum_value)
                rows.append(MemberRow(member.name, "", description, value, anchor_id(member)))
                continue
            mtype = member.type
            if member.value:
                mtype = f"{mtype} : {member.value}"
            row = MemberRow(member.name, mtype, description, anchor=f"{anchor_id(decl)}-{member.name}")
            if member.members:
                row.children = self._member_rows(decl, member)
            rows.append(row)
        return rows

    def _entry(self, decl):
        doc = decl.doc or DocComment()
        entry = Entry(
            kind=decl.kind,
            name=decl.name,
            anchor=anchor_id(decl),
            signature=decl.signature,
            brief=doc.brief,
            details=list(doc.details),
            conditions=[str(c) for c in decl.conditions],
            filename=decl.filename,
            line=decl.line,
        )
        if decl.kind in (DeclKind.FUNCTION, DeclKind.MACRO, DeclKind.TYPEDEF):
            entry.params = self._param_rows(decl, doc)
        entry.returns = doc.returns
        if not entry.returns:
            if decl.kind == DeclKind.FUNCTION:
                entry.returns = derived_returns(decl.return_type)
            elif decl.typedef_kind == TypedefKind.FUNCTION_POINTER and decl.target is not None:
                entry.returns = derived_returns(decl.target.return_type)
        entry.retvals = list(doc.retvals)
        entry.errors = list(doc.errors)
        entry.see_also = [self._link_or_text(n) for n in doc.see_targets()]
        entry.since = doc.first("since")
        entry.callouts = self._callouts(decl, doc)
        entry.assets = list(doc.assets)
        entry.examples = list(doc.examples)
        body = decl.aggregate
        if body is not None:
            entry.members = self._member_rows(decl, body)
        return entry


# -- text conversion --

_REF_RE = re.compile(r'[@\\]ref\s+([A-Za-z_][\w:.]*?)(\(\))?(?=[\s,;)]|[.:](?:\s|$)|$)(?:\s+"([^"]*)")?')
_CODE_WORD_RE = re.compile(r"[@\\][pc]\s+(\S+)")
_BOLD_WORD_RE = re.compile(r"[@\\]b\s+(\S+)")
_EMPH_WORD_RE = re.compile(r"[@\\](?:em|e|a)\s+(\S+)")
_NEWLINE_CMD_RE = re.compile(r"[@\\]n\b\s*")
_CODE_SPAN_RE = re.compile(r"(`[^`]*`)")
_TRAILING_PUNCT = ".,;:"


def _link_target(link, current, mdx, cfg):
    anchor = f"#{link.anchor}" if link.anchor else ""
    if link.unit == current and anchor:
        return anchor
    if mdx:
        return f"./{link.unit}{anchor}"
    return f"{cfg.link_prefix}{link.unit}{cfg.link_suffix}{anchor}"


def format_link(link, current, mdx=False, cfg=None, code=True):
    cfg = cfg or RenderConfig()
    text = f"`{link.text}`" if code else link.text
    return f"[{text}]({_link_target(link, current, mdx, cfg)})"


def _escape_mdx(text):
    parts = _CODE_SPAN_RE.split(text)
    for i in range(0, len(parts), 2):
        parts[i] = (
            parts[i]
            .replace("<", "&lt;")
            .replace(">", "&gt;")
            .replace("{", "\\{")
            .replace("}", "\\}")
        )
    return "".join(parts)


def inline(text, unit, mdx=False, cfg=None):
    """Convert Doxygen inline commands in one prose string."""
    if not text:
        return ""
    refs = unit.refs if unit is not None else {}
    current = unit.id if unit is not None else ""
    if mdx:
        text = _escape_mdx(text)

    def _ref(m):
        name, label = m.group(1), m.group(3)
        link = refs.get(name)
        if link is None:
            return label or name
        if label:
            return format_link(Link(label, link.unit, link.anchor), current, mdx, cfg, code=False)
        return format_link(link, current, mdx, cfg)

    text = _REF_RE.sub(_ref, text)
    text = _CODE_WORD_RE.sub(lambda m: _wrap(m.group(1), "`"), text)
    text = _BOLD_WORD_RE.sub(lambda m: _wrap(m.group(1), "**"), text)
    text = _EMPH_WORD_RE.sub(lambda m: _wrap(m.group(1), "*"), text)
    text = _NEWLINE_CMD_RE.sub("  \n", text)
    return text


def _wrap(word, mark):
    core = word.rstrip(_TRAILING_PUNCT)
    return f"{mark}{core}{mark}{word[len(core):]}"


def prose(text, unit, mdx=False, cfg=None):
    """Like inline(), but leaves fenced code blocks untouched."""
    out = []
    in_fence = False
    for line in (text or "").split("\n"):
        if line.strip().startswith("```"):
            in_fence = not in_fence
            out.append(line)
            continue
        out.append(line if in_fence else inline(line, unit, mdx, cfg))
    return "\n".join(out)


def _cell(text, unit, mdx, cfg):
    return inline(" ".join((text or "").split()), unit, mdx, cfg).replace("|", "\\|")


def _heading(text, level):
    return f"{'#' * level} {text}"


def _code_block(code, language):
    return [f"```{language}", code, "```", ""]


# -- shared layout --


def _table(headers, rows):
    lines = ["| " + " | ".join(headers) + " |", "|" + "|".join("-" * (len(h) + 2) for h in headers) + "|"]
    for row in rows:
        lines.append("| " + " | ".join(row) + " |")
    return lines + [""]


def _member_tables(entry, unit, mdx, cfg):
    parts = []
    if not any(r.type for r in entry.members):
        parts += ["**Values:**", ""]
        rows = [
            [f"`{r.name}`", f"`{r.value}`" if r.value else "", _cell(r.description, unit, mdx, cfg)]
            for r in entry.members
        ]
        parts += _table(["Name", "Value", "Description"], rows)
        return parts

    def _rows(members):
        return [
            [f"`{r.name}`" if r.name else "*(anonymous)*", f"`{r.type}`", _cell(r.description, unit, mdx, cfg)]
            for r in members
        ]

    parts += ["**Members:**", ""]
    parts += _table(["Name", "Type", "Description"], _rows(entry.members))
    pending = [(r.name, r) for r in entry.members if r.children]
    while pending:
        path, row = pending.pop(0)
        label = f"`{path}`" if row.name else "anonymous member"
        parts += [f"**Members of {label}:**", ""]
        parts += _table(["Name", "Type", "Description"], _rows(row.children))
        pending += [(f"{path}.{c.name}", c) for c in row.children if c.children]
    return parts


def _entry_body(entry, unit, mdx, cfg, callout_fn, asset_fn):
    parts = []
    if entry.signature:
        parts += _code_block(entry.signature, cfg.language)
    if entry.conditions:
        conds = "; ".join(entry.conditions)
        parts += [inline(f"*{conds[0].upper() + conds[1:]}.*", unit, mdx, cfg), ""]
    if entry.brief:
        parts += [inline(entry.brief, unit, mdx, cfg), ""]
    for para in entry.details:
        parts += [prose(para, unit, mdx, cfg), ""]

    if entry.params:
        parts += ["**Parameters:**", ""]
        rows = [
            [
                f"`{p.name}`" if p.name else "",
                p.direction,
                f"`{p.type}`" if p.type else "",
                _cell(p.description, unit, mdx, cfg),
            ]
            for p in entry.params
        ]
        parts += _table(["Name", "Direction", "Type", "Description"], rows)
    if entry.returns:
        parts += [f"**Returns:** {inline(entry.returns, unit, mdx, cfg)}", ""]
    if entry.retvals:
        parts += ["**Return values:**", ""]
        parts += _table(
            ["Value", "Description"],
            [[f"`{r.code}`", _cell(r.description, unit, mdx, cfg)] for r in entry.retvals],
        )
    if entry.errors:
        parts += ["**Errors:**", ""]
        parts += _table(
            ["Code", "Description"],
            [[f"`{e.code}`", _cell(e.description, unit, mdx, cfg)] for e in entry.errors],
        )
    if entry.see_also:
        items = [
            format_link(s, unit.id, mdx, cfg) if isinstance(s, Link) else f"`{s}`"
            for s in entry.see_also
        ]
        parts += [f"**See also:** {', '.join(items)}", ""]
    if entry.since:
        parts += [f"**Since:** {inline(entry.since, unit, mdx, cfg)}", ""]
    for callout in entry.callouts:
        parts += callout_fn(callout, unit, cfg)
    for example in entry.examples:
        parts += ["**Example:**", ""] + _code_block(example, cfg.language)
    for asset in entry.assets:
        parts += asset_fn(asset)
    if cfg.members and entry.members:
        parts += _member_tables(entry, unit, mdx, cfg)
    return parts


def _unit_parts(unit, mdx, cfg, callout_fn, asset_fn):
    parts = []
    if unit.brief:
        parts += [inline(unit.brief, unit, mdx, cfg), ""]
    for para in unit.details:
        parts += [prose(para, unit, mdx, cfg), ""]
    for callout in unit.callouts:
        parts += callout_fn(callout, unit, cfg)
    for example in unit.examples:
        parts += ["**Example:**", ""] + _code_block(example, cfg.language)
    for asset in unit.assets:
        parts += asset_fn(asset)

    if unit.contents:
        parts += [_heading("Contents", cfg.heading_level - 1), ""]
        for link, brief in unit.contents:
            line = f"- {format_link(link, unit.id, mdx, cfg, code=False)}"
            if brief:
                line += f": {inline(brief, unit, mdx, cfg)}"
            parts.append(line)
        parts.append("")

    for section in unit.sections:
        parts += [_heading(section.title, cfg.heading_level - 1), ""]
        for entry in section.entries:
            label = entry.label
            htxt = f"`{entry.name}`"
            if label:
                htxt = f"{label}: {htxt}"
            parts += [f'<a id="{entry.anchor}"></a>', "", _heading(htxt, cfg.heading_level), ""]
            parts += _entry_body(entry, unit, mdx, cfg, callout_fn, asset_fn)
    while parts and not parts[-1]:
        parts.pop()
    return parts


# -- Markdown (MkDocs) --

_ADMONITION_KINDS = {
    "deprecated": "warning",
    "note": "note",
    "warning": "warning",
    "danger": "danger",
    "todo": "example",
    "bug": "bug",
    "info": "info",
}


def _md_callout(callout, unit, cfg):
    kind = _ADMONITION_KINDS.get(callout.kind, "note")
    lines = [f'!!! {kind} "{callout.title}"']
    for line in prose(callout.text, unit, False, cfg).split("\n") or [""]:
        lines.append(f"    {line}" if line else "")
    return lines + [""]


def _md_asset(asset):
    if asset.kind == "image":
        return [f"![{asset.caption or asset.path}]({asset.path})", ""]
    target = f"{asset.path}:{asset.fragment}" if asset.fragment else asset.path
    lang = "c" if asset.path.endswith((".c", ".h")) else ""
    return [f"```{lang}", f'--8<-- "{target}"', "```", ""]


def format_markdown(unit, cfg=None, title=True):
    """Serialize one DocUnit as a MkDocs Markdown page."""
    cfg = cfg or RenderConfig()
    parts = [_heading(unit.title, 1), ""] if title else []
    parts += _unit_parts(unit, False, cfg, _md_callout, _md_asset)
    return "\n".join(parts) + "\n"


def format_entry_markdown(unit, entry, cfg=None):
    """Serialize a single entry, used by ``::: c:autosymbol`` directives."""
    cfg = cfg or RenderConfig()
    htxt = f"`{entry.name}`"
    if entry.label:
        htxt = f"{entry.label}: {htxt}"
    parts = [f'<a id="{entry.anchor}"></a>', "", _heading(htxt, cfg.heading_level), ""]
    parts += _entry_body(entry, unit, False, cfg, _md_callout, _md_asset)
    while parts and not parts[-1]:
        parts.pop()
    return "\n".join(parts) + "\n"


# -- MDX --


def _attr(value):
    return (value or "").replace("&", "&amp;").replace('"', "&quot;")


def _mdx_callout(callout, unit, cfg):
    body = prose(callout.text, unit, True, cfg)
    return [
        f'<Callout type="{callout.kind}" title="{_attr(callout.title)}">',
        "",
        body,
        "",
        "</Callout>",
        "",
    ]


def _mdx_asset(asset):
    attrs = [f'kind="{asset.kind}"', f'path="{_attr(asset.path)}"']
    if asset.fragment:
        attrs.append(f'fragment="{_attr(asset.fragment)}"')
    if asset.caption:
        attrs.append(f'caption="{_attr(asset.caption)}"')
    if asset.format:
        attrs.append(f'format="{_attr(asset.format)}"')
    return [f"<AssetRef {' '.join(attrs)} />", ""]


def front_matter(unit):
    data = {"title": unit.title}
    if unit.brief:
        data["description"] = re.sub(r"[@\\]\w+\s+", "", " ".join(unit.brief.split()))
    text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return f"---\n{text}---\n"


def format_mdx(unit, cfg=None):
    """Serialize one DocUnit as an MDX document with front matter."""
    cfg = cfg or RenderConfig()
    parts = [front_matter(unit), _heading(_escape_mdx(unit.title), 1), ""]
    parts += _unit_parts(unit, True, cfg, _mdx_callout, _mdx_asset)
    return "\n".join(parts) + "\n"

