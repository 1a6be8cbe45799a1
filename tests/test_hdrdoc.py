import os
import textwrap
from types import SimpleNamespace

import pytest

from mkdocs_hdrdoc.cexpr import evaluate, evaluate_condition
from mkdocs_hdrdoc.comments import clean_comment, parse_doc_comment
from mkdocs_hdrdoc.conditions import Condition, ConditionalTracker
from mkdocs_hdrdoc.config import GeneratorConfig
from mkdocs_hdrdoc.declarations import (
    DeclKind,
    TypedefKind,
    normalize_type,
    parse_declaration,
    parse_macro,
)
from mkdocs_hdrdoc.diagnostics import Diagnostic, DiagnosticKind, FileFatalError
from mkdocs_hdrdoc.extract import SourceFile, extract_file, generate
from mkdocs_hdrdoc.generate import collect_inputs, main
from mkdocs_hdrdoc.plugin import _DIRECTIVE_RE, HdrdocPlugin, _discover_sources
from mkdocs_hdrdoc.renderer import (
    DocUnit,
    Link,
    RenderConfig,
    derived_returns,
    format_markdown,
    format_mdx,
    inline,
)
from mkdocs_hdrdoc.scanner import SegmentKind, scan
from mkdocs_hdrdoc.symbols import ResolutionState

FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")
TORTURE = os.path.join(FIXTURES, "api_torture.h")


def _source(text, name="test.h"):
    return SourceFile(path=name, text=textwrap.dedent(text))


def _extract(text, **cfg):
    return extract_file(_source(text), GeneratorConfig(**cfg))


def _gen(text, **cfg):
    return generate([_source(text)], GeneratorConfig(**cfg))


def _kinds(diags):
    return [d.kind for d in diags]


def _unit(units, uid):
    return next(u for u in units if u.id == uid)


# -- scanning --


class TestScanner:
    def test_segment_kinds(self):
        segs = scan("int a; // c\n/** d */\n#define X 1\n")
        assert [s.kind for s in segs] == [
            SegmentKind.CODE,
            SegmentKind.LINE_COMMENT,
            SegmentKind.DOC_BLOCK_COMMENT,
            SegmentKind.DIRECTIVE,
        ]

    def test_empty_block_is_not_doc(self):
        segs = scan("/**/ int a;")
        assert segs[0].kind == SegmentKind.BLOCK_COMMENT

    def test_comment_inside_string(self):
        segs = scan('const char* s = "/* not a comment */";')
        assert not any(s.is_comment for s in segs)
        assert any(s.kind == SegmentKind.LITERAL for s in segs)

    def test_crlf_line_numbers(self):
        segs = scan("int a;\r\n#define X 1\r\n")
        directive = [s for s in segs if s.kind == SegmentKind.DIRECTIVE][0]
        assert directive.line == 2
        assert directive.text == "#define X 1"

    def test_trailing_doc(self):
        segs = scan("int a; /**< the a */")
        assert segs[-1].is_trailing_doc

    def test_unterminated_comment(self):
        with pytest.raises(FileFatalError):
            scan("/** never closed\nint a;")

    def test_unterminated_string(self):
        with pytest.raises(FileFatalError):
            scan('const char* s = "oops;\n')


# -- comment cleaning and tags --


class TestCleanComment:
    def test_block_simple(self):
        assert clean_comment("/** Brief. */") == "Brief."

    def test_block_multiline(self):
        raw = "/**\n * Line one.\n *\n * Line two.\n */"
        result = clean_comment(raw)
        assert "Line one." in result and "Line two." in result

    def test_trailing_marker(self):
        assert clean_comment("/**< Member doc. */") == "Member doc."

    def test_banner_rules_dropped(self):
        raw = "/**\n * ==========\n * Text.\n * ==========\n */"
        assert clean_comment(raw) == "Text."


class TestDocComment:
    def test_auto_brief(self):
        doc = parse_doc_comment("/** Brief sentence. More detail here. */")
        assert doc.brief == "Brief sentence."
        assert doc.details == ["More detail here."]

    def test_explicit_brief_and_details(self):
        doc = parse_doc_comment("/**\n * @brief Short.\n * Longer text\n * continues.\n */")
        assert doc.brief == "Short."
        assert doc.details == ["Longer text\ncontinues."]

    def test_tags_on_one_line(self):
        doc = parse_doc_comment("/** @ingroup http @brief POST with JSON body. */")
        assert doc.groups == ["http"]
        assert doc.brief == "POST with JSON body."

    def test_param_direction(self):
        doc = parse_doc_comment("/**\n * @param[in,out] buf The buffer.\n * @param [in] n Size.\n */")
        assert [(p.name, p.direction) for p in doc.params] == [("buf", "in,out"), ("n", "in")]
        assert doc.params[0].description == "The buffer."

    def test_return_alias(self):
        doc = parse_doc_comment("/** Get it.\n * @return The value.\n */")
        assert doc.returns == "The value."

    def test_retval_and_error(self):
        doc = parse_doc_comment("/**\n * @retval 0 Success\n * @error -11 overflow\n */")
        assert doc.retvals[0].code == "0" and doc.retvals[0].description == "Success"
        assert doc.errors[0].code == "-11" and doc.errors[0].description == "overflow"

    def test_see_targets(self):
        doc = parse_doc_comment("/** Thing.\n * @sa foo, bar()\n */")
        assert doc.see_targets() == ["foo", "bar"]

    def test_code_block_kept(self):
        doc = parse_doc_comment("/**\n * Does things.\n *\n * @code\n * int x = 1;\n * @endcode\n */")
        assert doc.brief == "Does things."
        assert doc.details == ["```c\nint x = 1;\n```"]

    def test_unknown_tag_is_extension(self):
        doc = parse_doc_comment("/** Thing.\n * @threadsafe yes\n */")
        assert doc.extensions == {"threadsafe": ["yes"]}

    def test_inline_commands_stay_in_text(self):
        doc = parse_doc_comment("/** Use @p buf with \\ref other. */")
        assert "@p buf" in doc.brief
        assert doc.references() == ["other"]

    def test_structural(self):
        assert parse_doc_comment("/** @defgroup core Core API */").structural() == (
            "defgroup",
            "core",
            "Core API",
        )
        assert parse_doc_comment("/** @mainpage Welcome */").structural() == (
            "mainpage",
            "index",
            "Welcome",
        )

    def test_copydoc_mid_sentence_is_prose(self):
        doc = parse_doc_comment(
            "/**\n * @brief Alias using @copydoc to inherit docs.\n * @copydoc resource_open\n */"
        )
        assert doc.copydoc == "resource_open"
        assert doc.brief == "Alias using @copydoc to inherit docs."

    def test_copydoc_after_line_tag(self):
        doc = parse_doc_comment("/** @ingroup core @copydoc api_version */")
        assert doc.groups == ["core"]
        assert doc.copydoc == "api_version"

    def test_deprecated_and_internal(self):
        doc = parse_doc_comment("/**\n * @deprecated Use bar.\n * @internal\n */")
        assert doc.deprecated == "Use bar."
        assert doc.is_internal

    def test_verbatim_example(self):
        doc = parse_doc_comment("/**\n * Thing.\n * @example\n * int v = f();\n * use(v);\n */")
        assert doc.examples == ["int v = f();\nuse(v);"]

    def test_image_asset(self):
        doc = parse_doc_comment("/** Page.\n * @image html images/logo.png Library Logo\n */")
        asset = doc.assets[0]
        assert (asset.kind, asset.path, asset.caption, asset.format) == (
            "image",
            "images/logo.png",
            "Library Logo",
            "html",
        )


# -- constant expressions --


class TestConstantExpressions:
    def test_arithmetic(self):
        assert evaluate("1 << 4") == 16
        assert evaluate("(-22)") == -22
        assert evaluate("0x10 | 1") == 17

    def test_known_names(self):
        assert evaluate("A + 1", {"A": 5}) == 6

    def test_unknown_name(self):
        assert evaluate("SOMETHING + 1") is None

    def test_condition(self):
        assert evaluate_condition("defined(FOO) && !defined(BAR)", {"FOO"}) == 1
        assert evaluate_condition("defined(FOO) && VERSION >= 2", {"FOO"}) == 0


# -- declarations --


class TestMacros:
    def test_object_like(self):
        m = parse_macro("#define API_OK 0")
        assert m.kind == DeclKind.MACRO
        assert m.name == "API_OK" and m.value == "0"
        assert not m.is_function_like

    def test_parenthesized_value_is_not_params(self):
        m = parse_macro("#define API_ERROR_INVALID (-22)")
        assert not m.is_function_like
        assert m.value == "(-22)"

    def test_function_like(self):
        m = parse_macro("#define API_MIN(a,b) (( (a) < (b) ) ? (a) : (b))")
        assert m.is_function_like
        assert m.macro_params == ["a", "b"]

    def test_continuations_joined(self):
        m = parse_macro("#define API_LOGF(fmt, ...)    \\\n  do {  \\\n    f((fmt)); \\\n  } while (0)")
        assert m.macro_params == ["fmt", "..."]
        assert m.value == "do { f((fmt)); } while (0)"

    def test_empty(self):
        m = parse_macro("#define FEATURE_X")
        assert m.value == ""


class TestFunctions:
    def test_prototype(self):
        d = parse_declaration("int foo(const char* s, int n);")
        assert d.kind == DeclKind.FUNCTION
        assert d.return_type == "int"
        assert [(p.name, p.type) for p in d.params] == [("s", "const char*"), ("n", "int")]
        assert d.signature == "int foo(const char* s, int n)"
        assert not d.has_body

    def test_void_params(self):
        d = parse_declaration("int shutdown_library(void);")
        assert d.params == []
        assert d.signature == "int shutdown_library(void)"

    def test_inline_definition(self):
        d = parse_declaration("static inline int add3(int a, int b, int c) { return a + b + c; }")
        assert d.has_body
        assert d.qualifiers == ["static", "inline"]
        assert d.signature == "static inline int add3(int a, int b, int c)"

    def test_pointer_return(self):
        d = parse_declaration("const char* api_version(void);")
        assert d.return_type == "const char*"

    def test_function_pointer_param(self):
        d = parse_declaration("int run(void (*cb)(int, void*), void* user);")
        assert [p.name for p in d.params] == ["cb", "user"]
        assert "(*)" in d.params[0].type

    def test_spacing_tolerance(self):
        d = parse_declaration("ApiHandle   create_handle   (  const char*  name , int   flags );")
        assert d.name == "create_handle"
        assert d.return_type == "ApiHandle"
        assert [p.name for p in d.params] == ["name", "flags"]

    def test_variable(self):
        d = parse_declaration("extern int api_debug_level;")
        assert d.kind == DeclKind.VARIABLE
        assert d.type == "int" and d.qualifiers == ["extern"]

    def test_normalize_type(self):
        assert normalize_type("const  char  *") == "const char*"
        assert normalize_type("char * * ") == "char**"


class TestTypedefs:
    def test_scalar(self):
        d = parse_declaration("typedef unsigned long api_size_t;")
        assert d.kind == DeclKind.TYPEDEF
        assert d.typedef_kind == TypedefKind.SCALAR
        assert d.underlying == "unsigned long"

    def test_opaque_struct_pointer(self):
        d = parse_declaration("typedef struct ApiHandle_t* ApiHandle;")
        assert d.name == "ApiHandle"
        assert d.typedef_kind == TypedefKind.STRUCT_REF
        assert d.underlying == "struct ApiHandle_t*"

    def test_function_pointer(self):
        d = parse_declaration("typedef void (*ApiCompletionCb)(int status, void* user);")
        assert d.typedef_kind == TypedefKind.FUNCTION_POINTER
        assert d.target.return_type == "void"
        assert [p.name for p in d.target.params] == ["status", "user"]
        assert d.signature == "typedef void (*ApiCompletionCb)(int status, void* user)"

    def test_unnamed_function_pointer_params(self):
        d = parse_declaration("typedef int (*AnonFnPtr)(const char*);")
        assert d.name == "AnonFnPtr"
        assert [p.type for p in d.target.params] == ["const char*"]

    def test_struct_body(self):
        d = parse_declaration("typedef struct ApiResult { int code; char message[128]; } ApiResult;")
        assert d.typedef_kind == TypedefKind.STRUCT_REF
        assert d.target.kind == DeclKind.STRUCT
        assert [(m.name, m.type) for m in d.target.members] == [
            ("code", "int"),
            ("message", "char[128]"),
        ]


class TestStructs:
    def test_trailing_member_docs(self):
        r = _extract(
            """
            struct S {
              int a; /**< first */
              int b; /**< second */
            };
            """
        )
        s = r.declarations[0]
        assert [m.brief for m in s.members] == ["first", "second"]

    def test_leading_member_docs(self):
        r = _extract(
            """
            struct S {
              /** the a */
              int a;
              int b;
            };
            """
        )
        s = r.declarations[0]
        assert s.members[0].brief == "the a"
        assert s.members[1].doc is None

    def test_multiple_declarators(self):
        d = parse_declaration("struct P { int x, *y; };")
        assert [(m.name, m.type) for m in d.members] == [("x", "int"), ("y", "int*")]

    def test_bitfield(self):
        d = parse_declaration("struct F { unsigned a : 3; };")
        assert d.members[0].name == "a"
        assert d.members[0].value == "3"

    def test_nested_union(self):
        d = parse_declaration("struct C { int id; union { int i; double d; } variant; };")
        variant = d.members[1]
        assert variant.name == "variant"
        assert [m.name for m in variant.members] == ["i", "d"]

    def test_forward(self):
        d = parse_declaration("struct Node;")
        assert d.kind == DeclKind.STRUCT and d.forward
        assert d.aggregate is None


class TestEnums:
    def test_values(self):
        d = parse_declaration("enum E { A = 1 << 2, B, C = A + 10 };")
        assert d.kind == DeclKind.ENUM
        assert [(m.name, m.enum_value) for m in d.members] == [("A", 4), ("B", 5), ("C", 14)]

    def test_implicit_start(self):
        d = parse_declaration("enum E { X, Y };")
        assert [m.enum_value for m in d.members] == [0, 1]

    def test_unevaluable_value(self):
        d = parse_declaration("enum E { A = SOME_MACRO, B };")
        assert d.members[0].enum_value is None
        assert d.members[0].value == "SOME_MACRO"
        assert d.members[1].enum_value is None

    def test_trailing_comma(self):
        d = parse_declaration("enum { K = 5000, L = 5, };")
        assert [m.name for m in d.members] == ["K", "L"]
        assert d.name == ""


# -- conditional compilation --


class TestConditionalTracker:
    def test_ifdef_else(self):
        t = ConditionalTracker()
        assert t.process("#ifdef A")
        assert t.active() == (Condition("A"),)
        t.process("#else")
        assert t.active() == (Condition("A", negated=True),)
        t.process("#endif")
        assert t.active() == ()

    def test_define_is_not_conditional(self):
        assert not ConditionalTracker().process("#define X 1")

    def test_elif(self):
        t = ConditionalTracker()
        t.process("#if V > 1")
        t.process("#elif defined(B)")
        active = t.active()
        assert len(active) == 2
        assert active[0].negated

    def test_stray_endif(self):
        with pytest.raises(FileFatalError):
            ConditionalTracker().process("#endif")

    def test_elif_after_else(self):
        t = ConditionalTracker()
        t.process("#ifdef A")
        t.process("#else")
        with pytest.raises(FileFatalError):
            t.process("#elif B")

    def test_unclosed(self):
        t = ConditionalTracker()
        t.process("#ifdef A", line=3)
        with pytest.raises(FileFatalError) as exc:
            t.close(10)
        assert exc.value.line == 3

    def test_condition_text(self):
        assert str(Condition("EXPERIMENTAL")) == "requires EXPERIMENTAL defined"
        assert Condition("X", negated=True).describe() == "X undefined"


class TestConditionalExtraction:
    SRC = """
        #ifdef FEATURE
        int f(void);
        #else
        int g(void);
        #endif
        """

    def test_excluded_by_default(self):
        decls = {d.name: d for d in _extract(self.SRC).declarations}
        assert decls["f"].excluded
        assert decls["f"].conditions == (Condition("FEATURE"),)
        assert not decls["g"].excluded
        assert decls["g"].conditions == (Condition("FEATURE", negated=True),)

    def test_defined(self):
        decls = {d.name: d for d in _extract(self.SRC, defined={"FEATURE"}).declarations}
        assert not decls["f"].excluded
        assert decls["g"].excluded

    def test_member_keeps_own_guard(self):
        r = _extract(
            """
            /** Options. */
            struct Opts {
              int a;
            #ifdef EXTRA
              int b;
            #endif
              int c;
            };
            """
        )
        members = {m.name: m for m in r.declarations[0].members}
        assert members["a"].conditions == ()
        assert members["b"].conditions == (Condition("EXTRA"),)
        assert members["b"].excluded
        assert members["c"].conditions == ()
        assert not members["c"].excluded

    def test_guarded_member_hidden_from_table(self):
        src = "/** Options. */\nstruct Opts {\n  int a;\n#ifdef EXTRA\n  int b;\n#endif\n};\n"
        entry = _unit(_gen(src).units, "other").find("Opts")
        assert [m.name for m in entry.members] == ["a"]
        entry = _unit(_gen(src, show_excluded=True).units, "other").find("Opts")
        assert [m.name for m in entry.members] == ["a", "b"]

    def test_include_guard(self):
        r = _extract(
            """
            #ifndef API_H
            #define API_H
            int f(void);
            #endif
            """
        )
        assert [d.name for d in r.declarations] == ["f"]
        assert r.declarations[0].conditions == ()

    def test_if_expression(self):
        r = _extract(
            """
            #if API_VERSION >= 2
            int v2(void);
            #endif
            #if defined(A) || defined(B)
            int ab(void);
            #endif
            """,
            defined={"B"},
        )
        decls = {d.name: d for d in r.declarations}
        assert decls["v2"].excluded
        assert not decls["ab"].excluded

    def test_unevaluable_counts_as_satisfied(self):
        r = _extract(
            """
            #if __has_include(<foo.h>)
            int maybe(void);
            #endif
            """
        )
        assert not r.declarations[0].excluded

    def test_unbalanced_is_file_fatal(self):
        r = _extract("#ifdef X\nint f(void);\n")
        assert r.declarations == []
        assert _kinds(r.diagnostics) == [DiagnosticKind.FILE_FATAL]

    def test_extern_c_is_transparent(self):
        r = _extract(
            """
            #ifdef __cplusplus
            extern "C" {
            #endif
            /** Doc. */
            int f(void);
            #ifdef __cplusplus
            }
            #endif
            """
        )
        assert [d.name for d in r.declarations] == ["f"]
        assert r.declarations[0].brief == "Doc."


# -- symbol table --


class TestSymbolTable:
    def test_duplicate_prototypes_merged(self):
        res = _gen("int f(int x);\n/** Documented. */\nint f(int x);\n")
        assert res.table.symbols["f"].brief == "Documented."
        assert len(res.table.duplicates) == 1
        assert DiagnosticKind.MERGE_CONFLICT not in _kinds(res.diagnostics)

    def test_conflict_keeps_first(self):
        res = _gen("int f(int x);\nlong f(int x);\n")
        assert res.table.symbols["f"].return_type == "int"
        assert DiagnosticKind.MERGE_CONFLICT in _kinds(res.diagnostics)

    def test_excluded_variant_yields(self):
        res = _gen(
            """
            #ifdef WIDE
            long size(void);
            #else
            int size(void);
            #endif
            """
        )
        assert res.table.symbols["size"].return_type == "int"
        assert DiagnosticKind.MERGE_CONFLICT not in _kinds(res.diagnostics)

    def test_forward_then_definition(self):
        res = _gen("struct Node;\n/** A node. */\nstruct Node { int v; };\n")
        node = res.table.tags["Node"]
        assert not node.forward
        assert node.brief == "A node."

    def test_tags_separate_from_symbols(self):
        res = _gen("/** Tag. */\nstruct point { int x; };\n/** Function. */\nint point(void);\n")
        assert res.table.tags["point"].kind == DeclKind.STRUCT
        assert res.table.symbols["point"].kind == DeclKind.FUNCTION

    def test_member_lookup(self):
        res = _gen("typedef struct Cfg { int timeout; } Cfg;\n")
        assert res.table.lookup("Cfg.timeout").kind == DeclKind.FIELD
        assert res.table.lookup("Cfg::timeout") is not None

    def test_copydoc(self):
        res = _gen(
            """
            /**
             * @brief Opens a resource.
             * @param uri Resource identifier.
             * @returns 0 on success.
             */
            int resource_open(const char* uri);

            /**
             * @brief Alias.
             * @copydoc resource_open
             */
            int open_resource(const char* uri);
            """
        )
        doc = res.table.symbols["open_resource"].doc
        assert doc.brief == "Opens a resource."
        assert [p.name for p in doc.params] == ["uri"]
        assert doc.returns == "0 on success."
        assert doc.copydoc_from == "resource_open"

    def test_copydoc_missing_target(self):
        res = _gen("/** @copydoc nowhere */\nint f(void);\n")
        assert DiagnosticKind.UNRESOLVED_REFERENCE in _kinds(res.diagnostics)

    def test_copydoc_after_ingroup_on_one_line(self):
        res = _gen(
            """
            /** @defgroup core Core */
            /** @brief Returns the semantic version string. */
            const char* api_version(void);
            /** @ingroup core @copydoc api_version */
            const char* alias(void);
            """
        )
        alias = res.table.symbols["alias"]
        assert alias.doc.brief == "Returns the semantic version string."
        assert res.table.groups["core"].group_members == ["alias"]
        assert not any("unknown group" in d.message for d in res.diagnostics)

    def test_copydoc_target_without_docs(self):
        res = _gen("int g(void);\n/** @copydoc g */\nint f(void);\n")
        messages = [d.message for d in res.diagnostics]
        assert "@copydoc target 'g' has no documentation for 'f'" in messages

    def test_copydoc_chain_single_hop(self):
        res = _gen(
            """
            /** Base doc. */
            int c(void);
            /** @copydoc c */
            int b(void);
            /** @copydoc b */
            int a(void);
            """
        )
        assert res.table.symbols["b"].brief == "Base doc."
        assert res.table.symbols["a"].doc.copydoc_from == ""
        assert any("resolves one level only" in d.message for d in res.diagnostics)

    def test_references(self):
        res = _gen("/** Calls \\ref g and \\ref nowhere. */\nint f(void);\nint g(void);\n")
        states = {r.target: r.state for r in res.table.references}
        assert states == {"g": ResolutionState.RESOLVED, "nowhere": ResolutionState.UNRESOLVED}

    def test_unknown_group(self):
        res = _gen("/** @ingroup missing\n * @brief F. */\nint f(void);\n")
        assert any("unknown group 'missing'" in d.message for d in res.diagnostics)

    def test_group_members(self):
        res = _gen("/** @defgroup core Core */\n/** @ingroup core\n * @brief F. */\nint f(void);\n")
        assert res.table.groups["core"].group_members == ["f"]


# -- diagnostics --


class TestDiagnostics:
    def test_str(self):
        d = Diagnostic(DiagnosticKind.MERGE_CONFLICT, "clash", "a.h", 3)
        assert str(d) == "a.h:3: warning: clash [merge-conflict]"

    def test_fatal(self):
        d = Diagnostic(DiagnosticKind.FILE_FATAL, "broken", "a.h")
        assert d.is_fatal and d.severity == "error"

    def test_one_bad_file_does_not_stop_others(self):
        good = _source("/** Good. */\nint good(void);\n", "good.h")
        bad = _source("/** never closed\n", "bad.h")
        res = generate([good, bad])
        assert "good" in res.table.symbols
        assert res.has_fatal
        fatal = [d for d in res.diagnostics if d.is_fatal]
        assert fatal[0].filename == "bad.h"

    def test_missing_file(self, tmp_path):
        res = generate([str(tmp_path / "missing.h")])
        assert res.has_fatal


# -- rendering --


def _refs_unit():
    return DocUnit(
        id="other",
        title="Other",
        kind="other",
        refs={
            "foo": Link("foo", "core", "func-foo"),
            "local": Link("local", "other", "func-local"),
        },
    )


class TestInline:
    def test_ref_to_other_unit(self):
        assert inline("Call \\ref foo now", _refs_unit()) == "Call [`foo`](core.md#func-foo) now"

    def test_ref_same_unit(self):
        assert inline("See \\ref local.", _refs_unit()) == "See [`local`](#func-local)."

    def test_unresolved_ref_is_text(self):
        assert inline("See \\ref bar here", _refs_unit()) == "See bar here"

    def test_labeled_ref(self):
        assert inline('Use \\ref foo "the foo"', _refs_unit()) == "Use [the foo](core.md#func-foo)"

    def test_mdx_link(self):
        assert inline("\\ref foo", _refs_unit(), mdx=True) == "[`foo`](./core#func-foo)"

    def test_word_commands(self):
        assert inline("Pass @p buf.", None) == "Pass `buf`."
        assert inline("@b bold and @e soft", None) == "**bold** and *soft*"

    def test_mdx_escaping(self):
        text = inline("a <b> {c} `x<y>`", None, mdx=True)
        assert text == "a &lt;b&gt; \\{c\\} `x<y>`"

    def test_derived_returns(self):
        assert derived_returns("const char*") == "Pointer to `const char`"
        assert derived_returns("int") == "`int`"
        assert derived_returns("void") == ""


class TestRendering:
    SRC = """
        /** @defgroup core Core API
         * @brief Core functions.
         */

        /**
         * @ingroup core
         * @brief Initializes.
         * @param [in] cfg Configuration.
         * @returns 0 on success.
         * @note Call once.
         */
        int init(const char* cfg);

        /** Hidden. @internal */
        int secret(void);

        /** Ungrouped. */
        #define LIMIT 4
        """

    def test_units(self):
        units = _gen(self.SRC).units
        assert [u.id for u in units] == ["core", "other", "index"]

    def test_markdown_entry(self):
        units = _gen(self.SRC).units
        md = format_markdown(_unit(units, "core"))
        assert md.startswith("# Core API\n")
        assert '<a id="func-init"></a>' in md
        assert "### Function: `init`" in md
        assert "```c\nint init(const char* cfg)\n```" in md
        assert "| `cfg` | in | `const char*` | Configuration. |" in md
        assert "**Returns:** 0 on success." in md
        assert '!!! note "Note"' in md

    def test_internal_hidden(self):
        units = _gen(self.SRC).units
        assert all(u.find("secret") is None for u in units)
        units = _gen(self.SRC, show_internal=True).units
        assert _unit(units, "other").find("secret") is not None

    def test_index_contents(self):
        units = _gen(self.SRC).units
        md = format_markdown(_unit(units, "index"))
        assert "- [Core API](core.md): Core functions." in md

    def test_heading_level(self):
        units = _gen(self.SRC).units
        md = format_markdown(_unit(units, "core"), RenderConfig(heading_level=4))
        assert "#### Function: `init`" in md
        assert "### Functions" in md

    def test_mdx(self):
        units = _gen(self.SRC).units
        mdx = format_mdx(_unit(units, "core"), RenderConfig(link_suffix=""))
        assert mdx.startswith("---\ntitle: Core API\ndescription: Core functions.\n---\n")
        assert '<Callout type="note" title="Note">' in mdx

    def test_mainpage_becomes_index(self):
        units = _gen("/** @mainpage Welcome\n * Start here.\n */\n/** F. */\nint f(void);\n").units
        index = _unit(units, "index")
        assert index.title == "Welcome"
        assert index.brief == "Start here."

    def test_symbol_in_two_groups(self):
        units = _gen(
            """
            /** @defgroup a Group A */
            /** @defgroup b Group B */
            /** @ingroup a b @brief In both. */
            int f(void);
            """
        ).units
        assert _unit(units, "a").find("f") is not None
        assert _unit(units, "b").find("f") is not None
        assert _unit(units, "a").refs["f"] == Link("f", "a", "func-f")

    def test_struct_tag_and_typedef_placed_separately(self):
        units = _gen(
            """
            /** @defgroup types Types */
            /** @ingroup types
             * @brief A point.
             */
            struct Point { int x; int y; };
            typedef struct Point Point;
            """
        ).units
        types = _unit(units, "types")
        other = _unit(units, "other")
        assert [(e.name, e.kind) for e in types.entries()] == [("Point", DeclKind.STRUCT)]
        assert [(e.name, e.kind) for e in other.entries()] == [("Point", DeclKind.TYPEDEF)]
        assert types.refs["Point"] == Link("Point", "other", "type-Point")


# -- end-to-end over the torture header --


@pytest.fixture(scope="module")
def torture():
    return generate([TORTURE])


class TestTorturePipeline:
    def test_unit_order(self, torture):
        assert [u.id for u in torture.units] == [
            "getting_started",
            "core",
            "http",
            "types",
            "other",
            "index",
        ]

    def test_macros(self, torture):
        syms = torture.table.symbols
        assert syms["API_MIN"].macro_params == ["a", "b"]
        assert syms["API_LOGF"].value == "do { printf((fmt), __VA_ARGS__); } while (0)"
        assert syms["API_ERROR_INVALID"].brief == "Another constant with value expression."

    def test_duplicate_prototype(self, torture):
        hits = [e for u in torture.units for e in u.entries() if e.name == "api_set_log_level"]
        assert len(hits) == 1
        assert any(d.name == "api_set_log_level" for d in torture.table.duplicates)

    def test_copydoc_alias(self, torture):
        doc = torture.table.symbols["api_get_version_alias"].doc
        assert doc.brief == "Returns the semantic version string."
        assert doc.returns == "Non-null, static, zero-terminated string."

    def test_copydoc_params(self, torture):
        doc = torture.table.symbols["open_resource"].doc
        assert doc.brief == "Opens a resource."
        assert [p.name for p in doc.params] == ["uri", "outH"]

    def test_experimental_excluded(self, torture):
        core = _unit(torture.units, "core")
        assert core.find("experimental_feature_toggle") is None
        assert torture.table.symbols["experimental_feature_toggle"].excluded

    def test_experimental_defined(self):
        res = generate([TORTURE], GeneratorConfig(defined={"EXPERIMENTAL"}))
        assert _unit(res.units, "core").find("experimental_feature_toggle") is not None

    def test_experimental_shown_with_availability(self):
        res = generate([TORTURE], GeneratorConfig(show_excluded=True))
        entry = _unit(res.units, "core").find("experimental_feature_toggle")
        assert entry is not None
        assert any(c.title == "Availability" for c in entry.callouts)

    def test_anonymous_enum(self, torture):
        syms = torture.table.symbols
        assert syms["API_DEFAULT_TIMEOUT_MS"].enum_value == 5000
        assert syms["API_MAX_RETRIES"].enum_value == 5
        assert "" not in torture.table.tags
        other = _unit(torture.units, "other")
        assert other.find("API_MAX_RETRIES") is not None

    def test_named_enum_constants(self, torture):
        const = torture.table.symbols["API_LOG_WARN"]
        assert const.enum_value == 30
        assert const.parent == "ApiLogLevel"

    def test_member_trailing_doc(self, torture):
        cfg = torture.table.symbols["ApiConfig"].aggregate
        on_ready = [m for m in cfg.members if m.name == "on_ready"][0]
        assert on_ready.brief == "Optional callback when ready."

    def test_nested_members_table(self, torture):
        md = format_markdown(_unit(torture.units, "types"))
        assert "**Members of `variant`:**" in md
        assert "| `d` | `double` |" in md

    def test_param_comments(self, torture):
        params = torture.table.symbols["param_styles"].params
        assert [p.name for p in params] == ["key", "out_value"]
        assert params[0].comment == "in"
        assert params[1].comment == "out may be NULL"

    def test_inline_definitions(self, torture):
        syms = torture.table.symbols
        assert syms["add3"].has_body
        assert syms["http_log_request"].has_body
        assert not syms["maybe_inline"].has_body

    def test_internal_hidden(self, torture):
        assert _unit(torture.units, "core").find("_internal_rehash_caches") is None

    def test_deprecated_callout(self, torture):
        entry = _unit(torture.units, "core").find("set_log_level_legacy")
        assert entry.callouts[0].kind == "deprecated"

    def test_errors(self, torture):
        entry = _unit(torture.units, "core").find("compute_thing")
        assert [(e.code, e.description) for e in entry.errors] == [
            ("-11", "overflow"),
            ("-12", "domain error"),
        ]

    def test_page_links(self, torture):
        md = format_markdown(_unit(torture.units, "getting_started"))
        assert "[`init_library`](core.md#func-init_library)" in md
        assert "![Library Logo](images/logo.png)" in md

    def test_page_mdx(self, torture):
        mdx = format_mdx(_unit(torture.units, "getting_started"), RenderConfig(link_suffix=""))
        assert mdx.startswith("---\ntitle: Getting Started\n")
        assert "[`init_library`](./core#func-init_library)" in mdx
        assert '<AssetRef kind="image" path="images/logo.png"' in mdx

    def test_deterministic(self, torture):
        again = generate([TORTURE])
        first = [format_mdx(u) for u in torture.units]
        second = [format_mdx(u) for u in again.units]
        assert first == second

    def test_parallel_matches_sequential(self, tmp_path):
        (tmp_path / "a.h").write_text("/** A. */\nint a(void);\n")
        (tmp_path / "b.h").write_text("/** B. */\nint b(void);\n")
        paths = [TORTURE, str(tmp_path / "a.h"), str(tmp_path / "b.h")]
        seq = generate(paths, GeneratorConfig(jobs=1))
        par = generate(paths, GeneratorConfig(jobs=4))
        assert [format_mdx(u) for u in seq.units] == [format_mdx(u) for u in par.units]


# -- command line --


class TestGenerateCli:
    def test_writes_units(self, tmp_path):
        out = tmp_path / "out"
        assert main([TORTURE, "-o", str(out)]) == 0
        names = sorted(os.listdir(out))
        assert "index.mdx" in names and "core.mdx" in names
        assert (out / "core.mdx").read_text().startswith("---\ntitle: Core API\n")

    def test_no_inputs(self, tmp_path):
        assert main([str(tmp_path / "nope.h"), "-o", str(tmp_path / "out")]) == 1

    def test_strict(self, tmp_path):
        bad = tmp_path / "bad.h"
        bad.write_text("#ifdef X\nint f(void);\n")
        assert main([str(bad), "-o", str(tmp_path / "out")]) == 0
        assert main([str(bad), "-o", str(tmp_path / "out"), "--strict"]) == 1

    def test_clean(self, tmp_path):
        out = tmp_path / "out"
        out.mkdir()
        (out / "stale.mdx").write_text("old")
        main([TORTURE, "-o", str(out), "--clean"])
        assert not (out / "stale.mdx").exists()

    def test_collect_inputs_filters(self, tmp_path):
        (tmp_path / "a.h").write_text("")
        (tmp_path / "b.c").write_text("")
        (tmp_path / "private").mkdir()
        (tmp_path / "private" / "p.h").write_text("")
        files = collect_inputs([str(tmp_path)], [".h"], ["private/*"])
        assert [os.path.basename(f) for f in files] == ["a.h"]


# -- plugin --


class TestDirectiveRegex:
    def test_autosymbol(self):
        m = _DIRECTIVE_RE.search("::: c:autosymbol api_init\n")
        assert m.group("directive") == "autosymbol"
        assert m.group("arg") == "api_init"

    def test_options(self):
        m = _DIRECTIVE_RE.search("::: c:autounit core\n    :heading_level: 2\n")
        assert m.group("arg") == "core"
        assert ":heading_level: 2" in m.group("body")


class TestDiscoverSources:
    def test_finds_headers(self, tmp_path):
        (tmp_path / "a.h").write_text("")
        (tmp_path / "b.hpp").write_text("")
        (tmp_path / "c.c").write_text("")
        assert _discover_sources(str(tmp_path), [".h", ".hpp"], []) == ["a.h", "b.hpp"]

    def test_exclude(self, tmp_path):
        (tmp_path / "a.h").write_text("")
        (tmp_path / "a_test.h").write_text("")
        assert _discover_sources(str(tmp_path), [".h"], ["*_test.h"]) == ["a.h"]


HEADER = """\
/** @defgroup core Core API */

/**
 * @ingroup core
 * @brief Initializes the library.
 */
int api_init(void);
"""


def _mk_plugin(tmp_path, **overrides):
    (tmp_path / "include").mkdir()
    (tmp_path / "include" / "api.h").write_text(HEADER)
    plugin = HdrdocPlugin()
    plugin.config = {
        "source_root": "include",
        "sources": [],
        "extensions": [".h", ".hpp"],
        "exclude": [],
        "defines": [],
        "show_internal": False,
        "show_excluded": False,
        "output_dir": "api",
        "nav_title": "API Reference",
        "heading_level": 3,
        "language": "c",
        "jobs": 1,
        **overrides,
    }
    return plugin


def _page(uri):
    return SimpleNamespace(file=SimpleNamespace(src_uri=uri))


class TestPlugin:
    def _configured(self, tmp_path, nav=None):
        plugin = _mk_plugin(tmp_path)
        cfg = {"config_file_path": str(tmp_path / "mkdocs.yml"), "nav": nav}
        plugin.on_config(cfg)
        return plugin, cfg

    def test_nav_created(self, tmp_path):
        _, cfg = self._configured(tmp_path)
        children = cfg["nav"][0]["API Reference"]
        assert children[0] == {"Overview": "api/index.md"}
        assert {"Core API": "api/core.md"} in children

    def test_nav_appended(self, tmp_path):
        _, cfg = self._configured(tmp_path, nav=[{"Home": "index.md"}])
        assert len(cfg["nav"]) == 2

    def test_nav_replaced(self, tmp_path):
        _, cfg = self._configured(tmp_path, nav=[{"API Reference": "old.md"}])
        assert len(cfg["nav"]) == 1
        assert isinstance(cfg["nav"][0]["API Reference"], list)

    def test_generated_page(self, tmp_path):
        plugin, cfg = self._configured(tmp_path)
        md = plugin.on_page_markdown("", page=_page("api/core.md"), config=cfg, files=None)
        assert md.startswith("# Core API\n")
        assert "### Function: `api_init`" in md

    def test_autosymbol(self, tmp_path):
        plugin, cfg = self._configured(tmp_path)
        src = "# Guide\n\n::: c:autosymbol api_init\n"
        md = plugin.on_page_markdown(src, page=_page("guide.md"), config=cfg, files=None)
        assert "### Function: `api_init`" in md
        assert "Initializes the library." in md
        assert ":::" not in md

    def test_autounit_heading_level(self, tmp_path):
        plugin, cfg = self._configured(tmp_path)
        src = "::: c:autounit core\n    :heading_level: 4\n"
        md = plugin.on_page_markdown(src, page=_page("guide.md"), config=cfg, files=None)
        assert "#### Function: `api_init`" in md
        assert "# Core API" not in md

    def test_unknown_target(self, tmp_path):
        plugin, cfg = self._configured(tmp_path)
        md = plugin.on_page_markdown(
            "::: c:autounit nope\n", page=_page("guide.md"), config=cfg, files=None
        )
        assert "<!-- hdrdoc: unit 'nope' not found -->" in md

    def test_untouched_page(self, tmp_path):
        plugin, cfg = self._configured(tmp_path)
        src = "# Plain\n"
        assert plugin.on_page_markdown(src, page=_page("plain.md"), config=cfg, files=None) == src

    def test_missing_source_root(self, tmp_path):
        plugin = _mk_plugin(tmp_path, source_root="nowhere")
        cfg = {"config_file_path": str(tmp_path / "mkdocs.yml"), "nav": None}
        plugin.on_config(cfg)
        assert cfg["nav"] is None
