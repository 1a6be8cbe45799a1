"""
Declaration parser for C headers.

Classifies a code span into one Declaration using lexical cues only:
macros, prototypes and inline definitions, typedefs (scalar, tag and
function-pointer), structs/unions with nested anonymous members, enums
and plain variables. No type checking happens here; type text is kept
as written, only whitespace and pointer-star placement are normalized.

Code spans arrive "masked": comments (and literal contents) have been
replaced by spaces so offsets still line up with the original text.
Comments are passed separately as ``(offset, Segment)`` pairs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, auto

from .cexpr import evaluate
from .comments import DocComment, clean_comment, parse_doc_comment
from .scanner import SegmentKind


class DeclKind(Enum):
    FUNCTION = auto()
    MACRO = auto()
    TYPEDEF = auto()
    ENUM = auto()
    ENUM_CONSTANT = auto()
    STRUCT = auto()
    UNION = auto()
    FIELD = auto()
    VARIABLE = auto()
    PAGE = auto()
    GROUP = auto()
    FILE = auto()


class TypedefKind(Enum):
    SCALAR = auto()
    FUNCTION_POINTER = auto()
    STRUCT_REF = auto()
    UNION_REF = auto()
    ENUM_REF = auto()


AGGREGATE_KINDS = (DeclKind.STRUCT, DeclKind.UNION, DeclKind.ENUM)


@dataclass
class Param:
    name: str
    type: str
    comment: str = ""


@dataclass
class Declaration:
    kind: DeclKind
    name: str
    filename: str = ""
    line: int = 0
    span: tuple[int, int] = (0, 0)
    doc: DocComment | None = None
    signature: str = ""
    conditions: tuple = ()
    excluded: bool = False
    # functions
    params: list[Param] = field(default_factory=list)
    return_type: str = ""
    qualifiers: list[str] = field(default_factory=list)
    has_body: bool = False
    duplicate_of: str = ""
    # macros
    is_function_like: bool = False
    macro_params: list[str] = field(default_factory=list)
    value: str = ""
    # typedefs
    typedef_kind: TypedefKind | None = None
    underlying: str = ""
    target: Declaration | None = None
    # aggregates, enumerators and fields
    members: list[Declaration] = field(default_factory=list)
    type: str = ""
    enum_value: int | None = None
    parent: str = ""
    forward: bool = False
    # pages and groups
    title: str = ""
    group_members: list[str] = field(default_factory=list)

    @property
    def brief(self):
        return self.doc.brief if self.doc else ""

    @property
    def is_internal(self):
        return bool(self.doc and self.doc.is_internal)

    @property
    def aggregate(self):
        """The struct/union/enum body this declaration carries, if any."""
        if self.kind in AGGREGATE_KINDS and not self.forward:
            return self
        if self.kind == DeclKind.TYPEDEF and self.target and self.target.kind in AGGREGATE_KINDS:
            return self.target
        return None

    def shape(self):
        """Comparable summary used to tell re-declarations from conflicts."""
        if self.kind == DeclKind.FUNCTION:
            return ("function", self.return_type, tuple(p.type for p in self.params))
        if self.kind == DeclKind.MACRO:
            return ("macro", self.is_function_like, tuple(self.macro_params), self.value)
        if self.kind == DeclKind.TYPEDEF:
            return ("typedef", self.underlying)
        if self.kind in AGGREGATE_KINDS:
            return (self.kind.name, tuple((m.name, m.type, m.value) for m in self.members))
        if self.kind == DeclKind.VARIABLE:
            return ("variable", self.type)
        return (self.kind.name, self.signature)

    def walk(self):
        """Yield this declaration and every nested one (members, embedded target)."""
        yield self
        if self.target is not None:
            yield from self.target.walk()
        for member in self.members:
            yield from member.walk()


# -- lexical helpers --

_DEFINE_RE = re.compile(r"^#\s*define\s+([A-Za-z_]\w*)(\([^)]*\))?\s*(.*)$", re.DOTALL)
_AGG_HEAD_RE = re.compile(
    r"\s*(?:(?:static|extern|const|volatile)\s+)*(struct|union|enum)\b\s*"
    r"([A-Za-z_]\w*)?\s*(?::\s*[^{;]+?)?\s*\{"
)
_FORWARD_RE = re.compile(r"^\s*(struct|union|enum)\s+([A-Za-z_]\w*)\s*;?\s*$")
_TYPEDEF_RE = re.compile(r"^\s*typedef\b")
_FNPTR_RE = re.compile(r"^(.*?)\(\s*\*\s*([A-Za-z_]\w*)?\s*\)\s*\((.*)\)\s*$", re.DOTALL)
_NAMED_RE = re.compile(r"^(.*?)([A-Za-z_]\w*)\s*((?:\[[^\]]*\]\s*)*)$", re.DOTALL)
_NESTED_TYPE_RE = re.compile(r"(struct|union)\s*([A-Za-z_]\w*)?")
_TRAILING_NAME_RE = re.compile(r"([A-Za-z_]\w*)\s*$")
_ATTRIBUTE_RE = re.compile(r"__attribute__\s*\(\((?:[^()]|\([^()]*\))*\)\)|__declspec\s*\([^)]*\)")

_STORAGE = frozenset(
    {"static", "inline", "extern", "__inline", "__inline__", "__forceinline", "_Noreturn"}
)
_TYPE_WORDS = frozenset(
    {
        "void",
        "char",
        "short",
        "int",
        "long",
        "float",
        "double",
        "signed",
        "unsigned",
        "const",
        "volatile",
        "restrict",
        "_Bool",
        "bool",
        "struct",
        "union",
        "enum",
    }
)
_NOT_FUNCTIONS = frozenset({"if", "while", "for", "switch", "return", "sizeof", "do"})


def normalize_type(text):
    t = re.sub(r"\s+", " ", text).strip()
    t = re.sub(r"\s*\*\s*", "*", t)
    t = re.sub(r"\*(?=[A-Za-z_(])", "* ", t)
    t = re.sub(r"\s*\[", "[", t)
    t = re.sub(r"(?<=\w)\(", " (", t)
    return t


def format_declarator(type_text, name):
    if not name:
        return type_text
    if "(*)" in type_text:
        return type_text.replace("(*)", f"(*{name})", 1)
    base, bracket, rest = type_text.partition("[")
    if bracket:
        return f"{base} {name}[{rest}"
    return f"{type_text} {name}"


def _comment_text(seg):
    return " ".join(clean_comment(seg.text).split())


def _match_close(text, pos, opener="{", closer="}"):
    depth = 0
    for i in range(pos, len(text)):
        if text[i] == opener:
            depth += 1
        elif text[i] == closer:
            depth -= 1
            if depth == 0:
                return i
    return -1


def _split_top_level(text, sep):
    """Split on ``sep`` outside any bracket pair; returns ``(start, end)`` ranges."""
    ranges = []
    depth = 0
    start = 0
    for i, ch in enumerate(text):
        if ch in "({[":
            depth += 1
        elif ch in ")}]":
            depth -= 1
        elif ch == sep and depth == 0:
            ranges.append((start, i))
            start = i + 1
    ranges.append((start, len(text)))
    return ranges


def _find_top_level(text, char):
    depth = 0
    for i, ch in enumerate(text):
        if ch == char and depth == 0:
            return i
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
    return -1


def _mask(text, pattern):
    return pattern.sub(lambda m: " " * len(m.group(0)), text)


def _strip_qualifiers(text):
    quals = []
    kept = []
    for word in text.split():
        if word in _STORAGE:
            quals.append(word)
        else:
            kept.append(word)
    return quals, " ".join(kept)


class _Context:
    """Shared state while parsing one span: comments, raw text, location."""

    def __init__(self, code, comments, raw, filename, line, base):
        self.code = code
        self.comments = list(comments or [])
        self.raw = raw if raw is not None else code
        self.filename = filename
        self.line = line
        self.base = base

    def line_at(self, offset):
        return self.line + self.code.count("\n", 0, max(0, offset))

    def comments_in(self, start, end):
        return [(off, seg) for off, seg in self.comments if start <= off < end]

    def make(self, kind, name, offset=0, **kwargs):
        return Declaration(
            kind=kind,
            name=name,
            filename=self.filename,
            line=self.line_at(offset),
            span=(self.base + offset, self.base + offset),
            **kwargs,
        )


# -- macros --


def join_continuations(text):
    """Join backslash-continued lines into one logical line."""
    pieces = []
    for line in text.split("\n"):
        line = line.rstrip()
        if line.endswith("\\"):
            line = line[:-1]
        if line.strip():
            pieces.append(line.strip())
    return " ".join(pieces)


def parse_macro(text, filename="", line=0, span=(0, 0)):
    logical = join_continuations(text)
    m = _DEFINE_RE.match(logical)
    if not m:
        return None
    name, plist, value = m.group(1), m.group(2), m.group(3).strip()
    params = []
    if plist is not None:
        params = [p.strip() for p in plist[1:-1].split(",") if p.strip()]
    return Declaration(
        kind=DeclKind.MACRO,
        name=name,
        filename=filename,
        line=line,
        span=span,
        signature=logical,
        is_function_like=plist is not None,
        macro_params=params,
        value=value,
    )


# -- parameters --


def _parse_param(text, comment=""):
    text = " ".join(text.split())
    if text == "...":
        return Param(name="...", type="", comment=comment)
    m = _FNPTR_RE.match(text)
    if m:
        inner = ", ".join(p.type if not p.name else format_declarator(p.type, p.name)
                          for p in _parse_param_list(m.group(3)))
        ptype = normalize_type(f"{m.group(1)} (*)({inner})")
        return Param(name=m.group(2) or "", type=ptype, comment=comment)
    m = _NAMED_RE.match(text)
    if m:
        head = m.group(1).strip()
        last_head_word = head.split()[-1] if head.split() else ""
        if head and m.group(2) not in _TYPE_WORDS and last_head_word not in ("struct", "union", "enum"):
            return Param(name=m.group(2), type=normalize_type(head + m.group(3)), comment=comment)
    return Param(name="", type=normalize_type(text), comment=comment)


def _parse_param_list(text, ctx=None, base=0):
    if not text.strip() or text.strip() == "void":
        return []
    params = []
    for start, end in _split_top_level(text, ","):
        piece = text[start:end]
        comment = ""
        if ctx is not None:
            found = ctx.comments_in(base + start, base + end)
            comment = " ".join(_comment_text(seg) for _, seg in found if not seg.is_trailing_doc)
        if piece.strip():
            params.append(_parse_param(piece, comment))
    return params


def _format_params(params):
    if not params:
        return "void"
    return ", ".join(format_declarator(p.type, p.name) if p.type else p.name for p in params)


def function_signature(decl):
    quals = " ".join(decl.qualifiers)
    sig = f"{decl.return_type} {decl.name}({_format_params(decl.params)})"
    return f"{quals} {sig}".strip()


# -- member docs --


def _attach_member_docs(entries, ctx, lo, hi):
    """Attach ``/** */`` (leading) and ``/**< */`` (trailing) docs to members.

    ``entries`` holds ``(decl, start, end, inner)`` where ``inner`` is the
    offset range of a nested body whose comments belong to nested members.
    """
    for offset, seg in ctx.comments:
        if seg.kind != SegmentKind.DOC_BLOCK_COMMENT or not lo <= offset < hi:
            continue
        if any(inner and inner[0] <= offset < inner[1] for _, _, _, inner in entries):
            continue
        target = None
        if seg.is_trailing_doc:
            for decl, start, end, _ in entries:
                if start <= offset < end:
                    target = decl
                    break
                if end <= offset:
                    target = decl
        else:
            for decl, start, _, _ in entries:
                if start >= offset:
                    target = decl
                    break
        if target is not None and target.doc is None:
            target.doc = parse_doc_comment(seg.text)


# -- aggregates --


def _parse_enumerators(body, base, ctx, parent):
    entries = []
    known = {}
    prev = None
    for start, end in _split_top_level(body, ","):
        text = body[start:end]
        if not text.strip():
            continue
        lead = start + len(text) - len(text.lstrip())
        name, eq, _ = text.partition("=")
        name = name.strip()
        if not re.match(r"^[A-Za-z_]\w*$", name):
            continue
        if eq:
            expr_start = base + start + text.index("=") + 1
            expr = " ".join(ctx.raw[expr_start : base + end].split())
            value = evaluate(expr, known)
        else:
            expr = ""
            value = 0 if not entries else (prev + 1 if prev is not None else None)
        known[name] = value
        prev = value
        const = ctx.make(
            DeclKind.ENUM_CONSTANT,
            name,
            offset=base + lead,
            value=expr,
            enum_value=value,
            parent=parent,
            signature=f"{name} = {expr}" if expr else name,
        )
        entries.append((const, base + lead, base + end, None))
    _attach_member_docs(entries, ctx, base, base + len(body))
    return [e[0] for e in entries]


def _declarator_name(text):
    """Split a field declarator like ``*name[4]`` into name, stars and arrays."""
    text = text.strip()
    stars = len(text) - len(text.lstrip("*"))
    rest = text.lstrip("*").strip()
    m = re.match(r"^([A-Za-z_]\w*)\s*((?:\[[^\]]*\]\s*)*)(?::\s*(.+))?$", rest)
    if not m:
        return None
    return m.group(1), "*" * stars, re.sub(r"\s+", "", m.group(2)), (m.group(3) or "").strip()


def _parse_fields(body, base, ctx, parent):
    entries = []
    for start, end in _split_top_level(body, ";"):
        text = body[start:end]
        if not text.strip():
            continue
        lead = start + len(text) - len(text.lstrip())
        abs_start, abs_end = base + lead, base + end

        nested = _AGG_HEAD_RE.match(text)
        if nested:
            open_pos = start + nested.end() - 1
            close_pos = _match_close(body, open_pos)
            if close_pos < 0 or close_pos > end:
                continue
            kw, tag = nested.group(1), nested.group(2) or ""
            inner = _parse_body(kw, body[open_pos + 1 : close_pos], base + open_pos + 1, ctx, parent)
            type_text = f"{kw} {tag}".strip()
            tail = body[close_pos + 1 : end].strip()
            inner_range = (base + open_pos, base + close_pos + 1)
            declarators = [d for d in tail.split(",") if d.strip()] or [""]
            for dtext in declarators:
                parsed = _declarator_name(dtext) if dtext else ("", "", "", "")
                if parsed is None:
                    continue
                fname, stars, arrays, bits = parsed
                fdecl = ctx.make(
                    DeclKind.FIELD,
                    fname,
                    offset=abs_start,
                    type=normalize_type(type_text + stars + arrays),
                    members=inner,
                    parent=parent,
                    value=bits,
                )
                entries.append((fdecl, abs_start, abs_end, inner_range))
            continue

        pieces = _split_top_level(text, ",")
        first = _parse_param(text[pieces[0][0] : pieces[0][1]])
        bits = ""
        if ":" in first.name or (not first.name and ":" in text):
            left, _, bits = text[pieces[0][0] : pieces[0][1]].partition(":")
            first = _parse_param(left)
            bits = bits.strip()
        base_type = first.type.rstrip("*").split("[")[0].strip()
        decls = [(first.name, first.type, bits)]
        for pstart, pend in pieces[1:]:
            parsed = _declarator_name(text[pstart:pend])
            if parsed:
                fname, stars, arrays, pbits = parsed
                decls.append((fname, normalize_type(base_type + stars + arrays), pbits))
        for fname, ftype, fbits in decls:
            fdecl = ctx.make(
                DeclKind.FIELD, fname, offset=abs_start, type=ftype, parent=parent, value=fbits
            )
            entries.append((fdecl, abs_start, abs_end, None))
    _attach_member_docs(entries, ctx, base, base + len(body))
    return [e[0] for e in entries]


def _parse_body(keyword, body, base, ctx, parent):
    if keyword == "enum":
        return _parse_enumerators(body, base, ctx, parent)
    return _parse_fields(body, base, ctx, parent)


def _aggregate_kind(keyword):
    return {"struct": DeclKind.STRUCT, "union": DeclKind.UNION, "enum": DeclKind.ENUM}[keyword]


def _parse_aggregate(code, ctx, offset=0):
    """Parse ``struct|union|enum [tag] { ... }`` starting at ``offset``.

    Returns ``(declaration, close_brace_offset)`` or ``(None, -1)``.
    """
    m = _AGG_HEAD_RE.match(code, offset)
    if not m:
        return None, -1
    open_pos = m.end() - 1
    close_pos = _match_close(code, open_pos)
    if close_pos < 0:
        return None, -1
    kw, tag = m.group(1), m.group(2) or ""
    lead = offset + len(code[offset:]) - len(code[offset:].lstrip())
    agg = ctx.make(_aggregate_kind(kw), tag, offset=lead)
    agg.members = _parse_body(kw, code[open_pos + 1 : close_pos], open_pos + 1, ctx, tag)
    agg.span = (ctx.base + lead, ctx.base + close_pos + 1)
    agg.signature = aggregate_signature(agg)
    return agg, close_pos


def aggregate_signature(agg, name="", typedef=False, indent=""):
    kw = agg.kind.name.lower()
    head = f"{kw} {agg.name}".strip()
    if typedef:
        head = f"typedef {head}"
    if not agg.members:
        return f"{indent}{head} {{ }}{' ' + name if name else ''}"
    lines = [f"{indent}{head} {{"]
    inner_indent = indent + "    "
    for member in agg.members:
        if agg.kind == DeclKind.ENUM:
            lines.append(f"{inner_indent}{member.signature},")
        elif member.members:
            m = _NESTED_TYPE_RE.match(member.type)
            nested = Declaration(
                kind=_aggregate_kind(m.group(1) if m else "struct"),
                name=(m.group(2) or "") if m else "",
                members=member.members,
            )
            body = aggregate_signature(nested, indent=inner_indent)
            lines.append(f"{body} {member.name};".rstrip(" ;") + ";")
        else:
            decl = format_declarator(member.type, member.name)
            if member.value:
                decl = f"{decl} : {member.value}"
            lines.append(f"{inner_indent}{decl};")
    tail = f"{indent}}}"
    if name:
        tail += f" {name}"
    elif not indent:
        tail += ";"
    lines.append(tail)
    return "\n".join(lines)


# -- typedefs --


def _parse_typedef(code, ctx):
    kw_at = code.index("typedef")
    body = code[:kw_at] + " " * len("typedef") + code[kw_at + len("typedef") :]

    if _AGG_HEAD_RE.match(body):
        agg, close_pos = _parse_aggregate(body, ctx)
        if agg is None:
            return None
        tail = body[close_pos + 1 :].strip().rstrip(";")
        first = tail.split(",")[0].strip()
        parsed = _declarator_name(first) if first else None
        if parsed is None:
            return None
        name, stars, arrays, _ = parsed
        kw = agg.kind.name.lower()
        underlying = normalize_type(f"{kw} {agg.name}".strip() + stars + arrays)
        tdkind = {
            DeclKind.STRUCT: TypedefKind.STRUCT_REF,
            DeclKind.UNION: TypedefKind.UNION_REF,
            DeclKind.ENUM: TypedefKind.ENUM_REF,
        }[agg.kind]
        for member in agg.members:
            member.parent = name
        decl = ctx.make(
            DeclKind.TYPEDEF,
            name,
            typedef_kind=tdkind,
            underlying=underlying,
            target=agg,
        )
        decl.signature = aggregate_signature(agg, name=f"{stars}{name}{arrays};", typedef=True)
        return decl

    text = body.strip().rstrip(";").strip()
    m = _FNPTR_RE.match(text)
    if m and m.group(2):
        name_at = body.index(m.group(2))
        params_open = body.index("(", body.index(")", name_at))
        params_close = _match_close(body, params_open, "(", ")")
        params = _parse_param_list(body[params_open + 1 : params_close], ctx, params_open + 1)
        ret = normalize_type(m.group(1))
        name = m.group(2)
        fn = ctx.make(DeclKind.FUNCTION, name, return_type=ret, params=params)
        fn.signature = f"{ret} (*{name})({_format_params(params)})"
        return ctx.make(
            DeclKind.TYPEDEF,
            name,
            typedef_kind=TypedefKind.FUNCTION_POINTER,
            underlying=normalize_type(f"{ret} (*)({_format_params(params)})"),
            target=fn,
            signature=f"typedef {fn.signature}",
        )

    text = text.split(",")[0]
    m = _NAMED_RE.match(text)
    if not m or not m.group(1).strip():
        return None
    underlying = normalize_type(m.group(1) + re.sub(r"\s+", "", m.group(3)))
    first_word = underlying.split()[0]
    tdkind = {
        "struct": TypedefKind.STRUCT_REF,
        "union": TypedefKind.UNION_REF,
        "enum": TypedefKind.ENUM_REF,
    }.get(first_word, TypedefKind.SCALAR)
    name = m.group(2)
    return ctx.make(
        DeclKind.TYPEDEF,
        name,
        typedef_kind=tdkind,
        underlying=underlying,
        signature=f"typedef {format_declarator(underlying, name)}",
    )


# -- functions and variables --


def _parse_function(code, ctx):
    body_at = _find_top_level(code, "{")
    head = code[:body_at] if body_at >= 0 else code.rstrip().rstrip(";")
    head = _mask(head, _ATTRIBUTE_RE).rstrip()
    if not head.endswith(")"):
        return None
    close = len(head) - 1
    depth = 0
    open_pos = -1
    for i in range(close, -1, -1):
        if head[i] == ")":
            depth += 1
        elif head[i] == "(":
            depth -= 1
            if depth == 0:
                open_pos = i
                break
    if open_pos < 0:
        return None
    pre = head[:open_pos]

    if pre.rstrip().endswith(")"):
        m = _FNPTR_RE.match(" ".join(head.split()))
        if not m or not m.group(2):
            return None
        quals, cleaned = _strip_qualifiers(head)
        param = _parse_param(cleaned)
        return ctx.make(
            DeclKind.VARIABLE,
            param.name,
            type=param.type,
            qualifiers=quals,
            signature=" ".join(quals + [format_declarator(param.type, param.name)]),
        )

    nm = _TRAILING_NAME_RE.search(pre)
    if not nm or nm.group(1) in _NOT_FUNCTIONS or nm.group(1) in _TYPE_WORDS:
        return None
    quals, ret = _strip_qualifiers(pre[: nm.start()])
    ret = normalize_type(ret)
    if not ret:
        return None
    decl = ctx.make(
        DeclKind.FUNCTION,
        nm.group(1),
        return_type=ret,
        qualifiers=quals,
        has_body=body_at >= 0,
        params=_parse_param_list(head[open_pos + 1 : close], ctx, open_pos + 1),
    )
    decl.signature = function_signature(decl)
    return decl


def _parse_variable(code, ctx):
    text = code.strip().rstrip(";")
    text = text.split("=")[0].split(",")[0]
    m = _NAMED_RE.match(text.strip())
    if not m or not m.group(1).strip():
        return None
    quals, vtype = _strip_qualifiers(m.group(1))
    if not vtype or m.group(2) in _TYPE_WORDS:
        return None
    vtype = normalize_type(vtype + re.sub(r"\s+", "", m.group(3)))
    return ctx.make(
        DeclKind.VARIABLE,
        m.group(2),
        type=vtype,
        qualifiers=quals,
        signature=" ".join(quals + [format_declarator(vtype, m.group(2))]),
    )


def parse_declaration(code, comments=(), filename="", line=0, base=0, raw=None):
    """Classify and parse one masked code span; returns a Declaration or None.

    ``comments`` are ``(offset, Segment)`` pairs relative to ``code``;
    ``raw`` is the same span with literal contents intact (used for
    enumerator values); ``base`` is the span's offset in the file.
    """
    ctx = _Context(code, comments, raw, filename, line, base)
    stripped = code.strip()
    if not stripped:
        return None

    if _TYPEDEF_RE.match(code):
        decl = _parse_typedef(code, ctx)
    elif _FORWARD_RE.match(code):
        m = _FORWARD_RE.match(code)
        decl = ctx.make(_aggregate_kind(m.group(1)), m.group(2), forward=True)
        decl.signature = f"{m.group(1)} {m.group(2)}"
    elif _AGG_HEAD_RE.match(code):
        decl, _ = _parse_aggregate(code, ctx)
    elif _find_top_level(code, "(") >= 0:
        decl = _parse_function(code, ctx)
    else:
        decl = _parse_variable(code, ctx)

    if decl is not None:
        decl.span = (base, base + len(code))
        decl.line = line
    return decl
