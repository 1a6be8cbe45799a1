"""
Integer constant expressions as they appear in enumerator values and
``#if`` lines. Only literals, known names and arithmetic/bitwise/logical
operators are understood; anything else evaluates to None.
"""

from __future__ import annotations

import ast
import operator
import re

_INT_LITERAL_RE = re.compile(r"\b(0[xX][0-9a-fA-F]+|0[bB][01]+|0[0-7]+|\d+)[uUlL]*\b")
_CHAR_LITERAL_RE = re.compile(r"'(\\?.)'")
_IDENT_RE = re.compile(r"\b[A-Za-z_]\w*\b")
_DEFINED_RE = re.compile(r"\bdefined\s*(?:\(\s*([A-Za-z_]\w*)\s*\)|([A-Za-z_]\w*))")

_ESCAPES = {"n": 10, "t": 9, "r": 13, "0": 0, "\\": 92, "'": 39, '"': 34}

_BINOPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Mod: operator.mod,
    ast.LShift: operator.lshift,
    ast.RShift: operator.rshift,
    ast.BitOr: operator.or_,
    ast.BitAnd: operator.and_,
    ast.BitXor: operator.xor,
}
_CMPOPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}


def _int_literal(m):
    tok = m.group(1)
    if tok.startswith(("0x", "0X")):
        return str(int(tok, 16))
    if tok.startswith(("0b", "0B")):
        return str(int(tok, 2))
    if len(tok) > 1 and tok.startswith("0"):
        return str(int(tok, 8))
    return tok


def _char_literal(m):
    body = m.group(1)
    if body.startswith("\\"):
        return str(_ESCAPES.get(body[1], ord(body[1])))
    return str(ord(body))


def _eval_node(node):
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, int):
        return int(node.value)
    if isinstance(node, ast.UnaryOp):
        val = _eval_node(node.operand)
        if isinstance(node.op, ast.USub):
            return -val
        if isinstance(node.op, ast.UAdd):
            return val
        if isinstance(node.op, ast.Invert):
            return ~val
        if isinstance(node.op, ast.Not):
            return int(not val)
    if isinstance(node, ast.BinOp):
        left, right = _eval_node(node.left), _eval_node(node.right)
        if isinstance(node.op, (ast.Div, ast.FloorDiv)):
            if right == 0:
                raise ValueError("division by zero")
            q = abs(left) // abs(right)
            return q if (left < 0) == (right < 0) else -q
        fn = _BINOPS.get(type(node.op))
        if fn:
            return fn(left, right)
    if isinstance(node, ast.BoolOp):
        vals = [_eval_node(v) for v in node.values]
        if isinstance(node.op, ast.And):
            return int(all(vals))
        return int(any(vals))
    if isinstance(node, ast.Compare):
        left = _eval_node(node.left)
        for op, comp in zip(node.ops, node.comparators):
            right = _eval_node(comp)
            fn = _CMPOPS.get(type(op))
            if fn is None or not fn(left, right):
                return 0
            left = right
        return 1
    raise ValueError(f"unsupported expression: {ast.dump(node)}")


def _to_python(expr):
    text = expr.strip()
    text = text.replace("&&", " and ").replace("||", " or ")
    text = re.sub(r"!(?!=)", " not ", text)
    return text


def evaluate(expr, names=None, default=None):
    """Evaluate a C integer expression; unknown identifiers use ``default``.

    Returns None when the expression cannot be evaluated.
    """
    names = names or {}

    def _name(m):
        word = m.group(0)
        if word in ("and", "or", "not"):
            return word
        if word in names and names[word] is not None:
            return f"({names[word]})"
        if default is not None:
            return str(default)
        raise KeyError(word)

    try:
        text = _CHAR_LITERAL_RE.sub(_char_literal, expr)
        text = _INT_LITERAL_RE.sub(_int_literal, text)
        text = _IDENT_RE.sub(_name, _to_python(text))
        return _eval_node(ast.parse(text.strip(), mode="eval"))
    except (KeyError, ValueError, SyntaxError, TypeError, RecursionError):
        return None


def evaluate_condition(expr, defined):
    """Evaluate a ``#if``/``#elif`` expression against a set of defined names.

    Defined names count as 1 and undefined ones as 0, as the preprocessor
    does. Returns None when the expression is not understood.
    """
    text = _DEFINED_RE.sub(lambda m: "1" if (m.group(1) or m.group(2)) in defined else "0", expr)
    return evaluate(text, {name: 1 for name in defined}, default=0)
