"""Parse infix arithmetic into prefix trees, and simplify them.

The trees use exact integer arithmetic only; a quotient that isn't an integer
stays a `/` node reduced to lowest terms.
"""
import logging
from collections import Counter

from polsky_parser import MAX_BITS, OPS, Node, Num, Var, fits, to_ast

logger = logging.getLogger(__name__)

MAX_PASSES = 1000

ADD, SUB, MUL, DIV, POW = (OPS[o] for o in "+-*/^")


def is_op(expr, op):
    return isinstance(expr, Node) and expr.op is op


def flatten(op, leaves):
    """Splice the leaves of nested `op` nodes into one run, recursively."""
    for leaf in leaves:
        if is_op(leaf, op):
            yield from flatten(op, leaf.leaves)
        else:
            yield leaf


def counted(leaf, repeat_op):
    """The (variable, count) `leaf` stands for: `v`, or a `k * v` / `v ^ k` term."""
    if isinstance(leaf, Var):
        return leaf, 1
    if is_op(leaf, repeat_op) and len(leaf.leaves) == 2:
        v, k = leaf.leaves
        if repeat_op is MUL and isinstance(v, Num):
            v, k = k, v
        if isinstance(v, Var) and isinstance(k, Num) and k.value > 1:
            return v, k.value
    return None


def repeated(v, n, repeat_op):
    if repeat_op is MUL:
        return Node(MUL, (Num(n), v))
    return Node(POW, (v, Num(n)))


def combine_terms(op, leaves, repeat_op):
    """Fold numbers with `op` and merge repeated variables via `repeat_op`.

    A `k * v` term under `+` (or `v ^ k` under `*`) counts as k occurrences of
    `v`, so terms merged earlier keep absorbing later ones. The result is
    ordered: folded constants, repeated variables, remaining sub-expressions,
    single variables. Sub-expressions built here sort ahead of single variables
    on the next pass too, so the order is stable.
    """
    const = []
    counts = Counter()
    rest = []
    for leaf in leaves:
        if isinstance(leaf, Num):
            # start a new constant rather than fold past what prints in decimal
            if const and fits(folded := op(const[-1].value, leaf.value)):
                const[-1] = Num(folded)
            else:
                const.append(Num(leaf.value))
        elif term := counted(leaf, repeat_op):
            v, n = term
            counts[v] += n
        else:
            rest.append(leaf)
    merged = [repeated(v, n, repeat_op) for v, n in counts.items() if n > 1]
    single = [v for v, n in counts.items() if n == 1]
    return Node(op, tuple(const + merged + rest + single))


def reduce_sub(expr):
    left, right = expr.leaves
    return Node(ADD, (left, Node(MUL, (Num(-1), right))))


def reduce_add(expr):
    return combine_terms(ADD, list(flatten(ADD, expr.leaves)), MUL)


def reduce_mul(expr):
    leaves = expr.leaves
    for i, leaf in enumerate(leaves):
        # a * (b / c) -> (a * b) / c, for the first quotient only
        if is_op(leaf, DIV):
            num, den = leaf.leaves
            return Node(DIV, (Node(MUL, leaves[:i] + leaves[i + 1 :] + (num,)), den))
    return combine_terms(MUL, list(flatten(MUL, leaves)), POW)


def reduce_pow(expr):
    base, exp = expr.leaves
    if isinstance(base, Num) and isinstance(exp, Num) and exp.value >= 0:
        # |b ^ e| has at most e * bits(b) bits; bigger powers stay unevaluated
        if abs(base.value) < 2 or exp.value * base.value.bit_length() <= MAX_BITS:
            return Num(POW(base.value, exp.value))
    return expr


def reduce_div(expr):
    left, right = expr.leaves
    if is_op(left, DIV) and not is_op(right, DIV):
        # (a / b) / c -> a / (b * c)
        a, b = left.leaves
        return Node(DIV, (a, Node(MUL, (b, right))))
    if is_op(right, DIV) and not is_op(left, DIV):
        # a / (b / c) -> (a * c) / b
        b, c = right.leaves
        return Node(DIV, (Node(MUL, (left, c)), b))
    if isinstance(left, Num) and isinstance(right, Num) and right.value:
        if isinstance(q := DIV(left.value, right.value), int):
            return Num(q)
        return Node(DIV, tuple(map(Num, q)))
    return expr


RULES = {
    SUB: reduce_sub,
    ADD: reduce_add,
    MUL: reduce_mul,
    POW: reduce_pow,
    DIV: reduce_div,
}


def reduce_step(expr):
    """One top-down rewriting pass over `expr`."""
    if not isinstance(expr, Node):
        return expr
    expr = RULES[expr.op](expr)
    if not isinstance(expr, Node):
        return expr
    if len(expr.leaves) == 1:
        return reduce_step(expr.leaves[0])
    return Node(expr.op, tuple(map(reduce_step, expr.leaves)))


def reduce_expr(expr, max_passes=MAX_PASSES):
    """Rewrite `expr` until a pass leaves it unchanged.

    >>> print(reduce_expr(to_ast("a * a * b * c * c * c * d")))
    (* (^ a 2) (^ c 3) b d)
    >>> print(reduce_expr(to_ast("a * ( b / c ) * ( d / e ) * f")))
    (/ (* a f b d) (* e c))
    >>> print(reduce_expr(to_ast("3 / 9")))
    (/ 1 3)
    """
    for n in range(max_passes):
        if (new := reduce_step(expr)) == expr:
            logger.debug("fixed point after %d passes: %s", n, expr)
            return expr
        logger.debug("pass %d: %s", n + 1, new)
        expr = new
    logger.warning("no fixed point after %d passes, giving up: %s", max_passes, expr)
    return expr


def parse(src, reduce=False, eager=False):
    """Parse the infix string `src`, optionally reducing the result.

    With `eager`, every operator node is reduced as soon as it is built rather
    than the whole tree once at the end.

    >>> print(parse("2 * ( 5 + 1 )"))
    (* 2 (+ 5 1))
    >>> print(parse("2 * ( 5 + 1 )", reduce=True))
    12
    """
    if reduce and eager:
        return to_ast(src, reduce_expr)
    expr = to_ast(src)
    return reduce_expr(expr) if reduce else expr


def prefix(expr, reduce=False):
    """Render `expr` fully parenthesized in prefix notation.

    >>> prefix(parse("3 + 4 * 2 / ( 1 - 5 ) ^ 2 ^ 3"))
    '(+ 3 (/ (* 4 2) (^ (- 1 5) (^ 2 3))))'
    >>> prefix(parse("a * b * c * d"), reduce=True)
    '(* a b c d)'
    """
    return str(reduce_expr(expr) if reduce else expr)
