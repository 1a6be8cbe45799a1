"""
Doc comment parser.

Turns a ``/** ... */`` block into a DocComment: brief and detailed text
plus every Doxygen-style block tag (``@tag`` or ``\\tag``) with its
payload. Several tags may share one physical line, e.g.
``@ingroup http @brief POST with JSON body.``. Inline commands such as
``\\ref name`` or ``@p buf`` stay in the flowing text.
"""

from __future__ import annotations

import re
import textwrap
from dataclasses import dataclass, field

# Commands that live inside running text and never start a new section
_INLINE_TAGS = frozenset(
    {"ref", "p", "a", "c", "b", "e", "em", "n", "link", "endlink", "anchor", "emoji"}
)

# Canonical spelling for tag synonyms
_TAG_ALIASES = {
    "return": "returns",
    "result": "returns",
    "short": "brief",
    "sa": "see",
    "remarks": "remark",
    "includelineno": "include",
    "dontinclude": "include",
    "verbinclude": "include",
}

KNOWN_TAGS = frozenset(
    {
        "brief",
        "details",
        "param",
        "tparam",
        "returns",
        "retval",
        "see",
        "since",
        "deprecated",
        "internal",
        "note",
        "warning",
        "attention",
        "remark",
        "todo",
        "bug",
        "pre",
        "post",
        "error",
        "copydoc",
        "ingroup",
        "defgroup",
        "addtogroup",
        "page",
        "mainpage",
        "file",
        "image",
        "include",
        "snippet",
        "example",
        "code",
        "endcode",
    }
)

# Tags that make a comment a standalone documentation unit
STRUCTURAL_TAGS = ("page", "mainpage", "defgroup", "addtogroup", "file")

# Tags whose payload ends at the end of the physical line
_LINE_TAGS = frozenset(
    {
        "page",
        "mainpage",
        "defgroup",
        "addtogroup",
        "file",
        "ingroup",
        "image",
        "include",
        "snippet",
        "copydoc",
    }
)

_IMAGE_FORMATS = frozenset({"html", "latex", "rtf", "docbook", "xml"})

# Prose when they follow running text; commands after line tags or at line start
_LEADING_TAGS = frozenset({"copydoc"})

_TAG_RE = re.compile(r"(?:(?<=\s)|^)[@\\]([A-Za-z]\w*)")
_GROUP_MARKER_RE = re.compile(r"(?:(?<=\s)|^)[@\\][{}]")
_CODE_RE = re.compile(r"^[@\\]code(?:\{\.?(\w+)\})?\s*$")
_ENDCODE_RE = re.compile(r"^[@\\]endcode\b")
_INLINE_REF_RE = re.compile(r"[@\\]ref\s+([A-Za-z_][\w:.]*)")
_PARAM_RE = re.compile(
    r"^(?:\[\s*([a-z,\s]+?)\s*\]\s*)?([A-Za-z_]\w*|\.\.\.)?\s*(.*)$", re.DOTALL | re.IGNORECASE
)
_SENTENCE_END_RE = re.compile(r"[.!?](?=\s|$)")
_IDENT_RE = re.compile(r"^[A-Za-z_][\w:.]*$")
_BRACE_OPTS_RE = re.compile(r"^\{[^}]*\}\s*")


@dataclass
class ParamDoc:
    name: str
    description: str = ""
    direction: str = ""


@dataclass
class ErrorDoc:
    code: str
    description: str = ""


@dataclass
class AssetRef:
    kind: str
    path: str
    fragment: str = ""
    caption: str = ""
    format: str = ""


@dataclass
class DocComment:
    brief: str = ""
    details: list[str] = field(default_factory=list)
    tags: dict[str, list[str]] = field(default_factory=dict)
    params: list[ParamDoc] = field(default_factory=list)
    returns: str = ""
    retvals: list[ErrorDoc] = field(default_factory=list)
    errors: list[ErrorDoc] = field(default_factory=list)
    assets: list[AssetRef] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)
    extensions: dict[str, list[str]] = field(default_factory=dict)
    copydoc_from: str = ""

    def has(self, tag):
        return tag in self.tags

    def values(self, tag):
        return list(self.tags.get(tag, []))

    def first(self, tag, default=""):
        vals = self.tags.get(tag)
        return vals[0] if vals else default

    @property
    def copydoc(self):
        payload = self.first("copydoc")
        return _first_word(payload).removesuffix("()") if payload else ""

    @property
    def groups(self):
        names = []
        for payload in self.values("ingroup"):
            for word in payload.split():
                if _IDENT_RE.match(word) and word not in names:
                    names.append(word)
        return names

    @property
    def is_internal(self):
        return "internal" in self.tags

    @property
    def deprecated(self):
        return self.first("deprecated") if "deprecated" in self.tags else None

    @property
    def is_structural(self):
        return any(tag in self.tags for tag in STRUCTURAL_TAGS)

    def structural(self):
        """Return ``(tag, identifier, title)`` for page/group/file comments."""
        for tag in STRUCTURAL_TAGS:
            if tag not in self.tags:
                continue
            payload = self.first(tag).strip()
            if tag == "mainpage":
                return tag, "index", payload or "Main Page"
            name, _, title = payload.partition(" ")
            return tag, name, title.strip()
        return None

    def see_targets(self):
        targets = []
        for payload in self.values("see"):
            for piece in payload.split(","):
                piece = re.sub(r"^[@\\]ref\s+", "", piece.strip())
                word = _first_word(piece).removesuffix("()")
                if word and _IDENT_RE.match(word) and word not in targets:
                    targets.append(word)
        return targets

    def references(self):
        """Every symbol named by ``@see`` or ``@ref`` in this comment, in order."""
        names = self.see_targets()
        texts = [self.brief, *self.details, self.returns]
        texts += [p.description for p in self.params]
        texts += [e.description for e in self.errors + self.retvals]
        for tag, payloads in self.tags.items():
            if tag not in ("see", "param", "brief", "returns", "error", "retval"):
                texts.extend(payloads)
        for text in texts:
            for m in _INLINE_REF_RE.finditer(text or ""):
                name = m.group(1).rstrip(".")
                if name not in names:
                    names.append(name)
        return names

    def is_empty(self):
        return not (self.brief or self.details or self.tags or self.extensions)


# -- comment cleaning --


def clean_comment(raw):
    """Strip comment delimiters and per-line ``*`` decoration."""
    text = raw
    if text.startswith("/**<") or text.startswith("/*!<"):
        text = text[4:]
    elif text.startswith("/**") or text.startswith("/*!"):
        text = text[3:]
    elif text.startswith("/*"):
        text = text[2:]
    elif text.startswith("///<"):
        text = text[4:]
    elif text.startswith("//"):
        text = text.lstrip("/")
    if text.endswith("*/"):
        text = text[:-2]

    lines = text.split("\n")
    cleaned = []
    for line in lines:
        s = line.lstrip()
        if s.startswith("* "):
            cleaned.append(s[2:].rstrip())
        elif s.startswith("*"):
            cleaned.append(s[1:].rstrip())
        else:
            cleaned.append(line.rstrip())

    # Trim banner rules and empty decoration lines at either end
    _JUNK = {"", "*/", "**/", "/**", "*", "/"}
    while cleaned and (cleaned[-1].strip() in _JUNK or _is_rule(cleaned[-1])):
        cleaned.pop()
    while cleaned and (cleaned[0].strip() in _JUNK or _is_rule(cleaned[0])):
        cleaned.pop(0)

    return textwrap.dedent("\n".join(cleaned)).strip("\n")


def _is_rule(line):
    s = line.strip()
    return len(s) > 2 and set(s) <= {"=", "-", "*"}


# -- tag splitting --


@dataclass
class _Section:
    tag: str | None
    lines: list[str] = field(default_factory=list)
    verbatim: bool = False


def _canonical(tag):
    return _TAG_ALIASES.get(tag, tag)


def _split_tags(line):
    """Split one physical line into ``(tag, text)`` pieces."""
    pieces = []
    pos = 0
    current = None
    for m in _TAG_RE.finditer(line):
        if m.group(1) in _INLINE_TAGS:
            continue
        text = line[pos : m.start()]
        if m.group(1) in _LEADING_TAGS and text.strip() and current not in _LINE_TAGS:
            continue
        if current is not None or text.strip():
            pieces.append((current, text.strip() if current is not None else text.rstrip()))
        current = _canonical(m.group(1))
        pos = m.end()
    text = line[pos:]
    if current is not None:
        pieces.append((current, text.strip()))
    elif text.strip():
        pieces.append((None, text.rstrip()))
    return pieces


def _starts_with_block_tag(stripped):
    m = _TAG_RE.match(stripped)
    return bool(m) and m.group(1) not in _INLINE_TAGS


def _split_sections(text):
    sections = [_Section(None)]
    fence = False
    for line in text.split("\n"):
        cur = sections[-1]
        stripped = line.strip()

        if fence:
            if _ENDCODE_RE.match(stripped):
                cur.lines.append("```")
                fence = False
            else:
                cur.lines.append(line)
            continue

        m = _CODE_RE.match(stripped)
        if m:
            if cur.tag is not None and not cur.verbatim:
                cur = _Section(None)
                sections.append(cur)
            cur.lines.append("```" + (m.group(1) or "c"))
            fence = True
            continue

        if cur.verbatim and not (stripped and _starts_with_block_tag(stripped)):
            cur.lines.append(line)
            continue

        if not stripped:
            if cur.tag is not None:
                sections.append(_Section(None))
            else:
                cur.lines.append("")
            continue

        line = _GROUP_MARKER_RE.sub("", line)
        for tag, piece in _split_tags(line):
            if tag is None:
                sections[-1].lines.append(piece)
                continue
            sec = _Section(tag, [piece] if piece else [])
            sec.verbatim = tag == "example" and not piece
            sections.append(sec)
        last = sections[-1]
        if last.tag in _LINE_TAGS or (last.tag == "example" and not last.verbatim):
            sections.append(_Section(None))

    if fence:
        sections[-1].lines.append("```")
    return sections


def _paragraphs(lines):
    """Group lines into blank-line separated paragraphs, keeping code fences whole."""
    paras = []
    buf = []
    fence = False
    for line in lines:
        if line.strip().startswith("```"):
            fence = not fence
        if not line.strip() and not fence:
            if buf:
                paras.append("\n".join(buf).strip("\n"))
                buf = []
            continue
        buf.append(line)
    if buf:
        paras.append("\n".join(buf).strip("\n"))
    return [p for p in paras if p.strip()]


def _first_word(text):
    parts = text.split()
    return parts[0] if parts else ""


def _split_first_sentence(text):
    m = _SENTENCE_END_RE.search(text)
    if not m:
        return text.strip(), ""
    return text[: m.end()].strip(), text[m.end() :].strip()


def _take_brief(lines):
    """An explicit brief runs until its first sentence-ending line."""
    taken = []
    rest = list(lines)
    while rest:
        line = rest.pop(0)
        taken.append(line.strip())
        if _SENTENCE_END_RE.search(line.rstrip()[-1:] or ""):
            break
    return " ".join(t for t in taken if t), rest


# -- payload parsing --


def _normalize_direction(raw):
    words = sorted(w for w in re.split(r"[\s,]+", raw.lower()) if w)
    if words == ["in", "out"]:
        return "in,out"
    return ",".join(words)


def parse_param(payload):
    m = _PARAM_RE.match(payload.strip())
    direction = _normalize_direction(m.group(1)) if m.group(1) else ""
    return ParamDoc(name=m.group(2) or "", description=m.group(3).strip(), direction=direction)


def parse_code_row(payload):
    code, _, desc = payload.strip().partition(" ")
    return ErrorDoc(code=code, description=desc.strip())


def parse_asset(tag, payload):
    payload = _BRACE_OPTS_RE.sub("", payload.strip())
    words = payload.split()
    if not words:
        return None
    if tag == "image":
        fmt = ""
        if words[0].lower() in _IMAGE_FORMATS and len(words) > 1:
            fmt = words.pop(0).lower()
        caption = " ".join(words[1:]).strip().strip('"')
        return AssetRef(kind="image", path=words[0], caption=caption, format=fmt)
    if tag == "snippet":
        fragment = words[1] if len(words) > 1 else ""
        return AssetRef(kind="snippet", path=words[0], fragment=fragment)
    return AssetRef(kind=tag, path=words[0])


def _looks_like_path(line):
    s = line.strip()
    return bool(s) and " " not in s and not re.search(r"[();=]", s)


# -- public entry point --


def parse_doc_comment(raw):
    """Parse one doc block comment (delimiters included) into a DocComment."""
    doc = DocComment()
    sections = _split_sections(clean_comment(raw))

    body = []
    explicit_brief = None
    for sec in sections:
        if sec.tag is None:
            body.extend(sec.lines)
            continue

        tag = sec.tag
        body.append("")
        if tag == "brief":
            brief, rest = _take_brief(sec.lines)
            if explicit_brief is None:
                explicit_brief = brief
            else:
                body.append(brief)
            body.extend(rest)
            doc.tags.setdefault("brief", []).append(brief)
            continue
        if tag == "details":
            body.append("")
            body.extend(sec.lines)
            body.append("")
            continue

        if sec.verbatim:
            payload = textwrap.dedent("\n".join(sec.lines)).strip("\n")
        else:
            payload = " ".join(ln.strip() for ln in sec.lines if ln.strip())

        if tag not in KNOWN_TAGS:
            doc.extensions.setdefault(tag, []).append(payload)
            continue
        doc.tags.setdefault(tag, []).append(payload)

        if tag == "param":
            doc.params.append(parse_param(payload))
        elif tag == "returns":
            doc.returns = f"{doc.returns} {payload}".strip()
        elif tag == "retval":
            doc.retvals.append(parse_code_row(payload))
        elif tag == "error":
            doc.errors.append(parse_code_row(payload))
        elif tag in ("image", "include", "snippet"):
            asset = parse_asset(tag, payload)
            if asset:
                doc.assets.append(asset)
        elif tag == "example":
            _add_example(doc, sec, payload)

    paras = _paragraphs(body)
    if explicit_brief is not None:
        doc.brief = explicit_brief
    elif paras:
        doc.brief, rest = _split_first_sentence(paras[0].replace("\n", " "))
        paras = ([rest] if rest else []) + paras[1:]
    doc.details = paras
    return doc


def _add_example(doc, sec, payload):
    if sec.verbatim:
        if payload:
            doc.examples.append(payload)
        return
    first, _, rest = payload.partition(" ")
    if _looks_like_path(first) and not rest:
        doc.assets.append(AssetRef(kind="example", path=first))
    elif payload:
        doc.examples.append(payload)
