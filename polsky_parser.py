import re
import sys
import math
import operator
from types import MappingProxyType
from typing import Callable, Literal, NamedTuple, Optional, Union

OPERAND = re.compile(r"-?[0-9]+|[a-zA-Z0-9]+")
NUMBER = re.compile(r"-?[0-9]+")
LPAREN, RPAREN = "(", ")"

# Folded integers stay small enough to print in decimal.
MAX_DIGITS = sys.get_int_max_str_digits() or 4300
MAX_BITS = int(MAX_DIGITS * math.log2(10))


def fits(n):
    return n.bit_length() <= MAX_BITS


class ParseError(ValueError):
    pass


class MismatchedParens(ParseError):
    def __init__(self, msg="Mismatched parens"):
        super().__init__(msg)


class InvalidToken(ParseError):
    def __init__(self, tok):
        super().__init__(f"Invalid token: {tok!r}")
        self.token = tok


class Num(NamedTuple):
    value: int
    text: Optional[str] = None  # source spelling, when not the canonical one

    def __str__(self):
        return self.text or str(self.value)


class Var(NamedTuple):
    name: str

    def __str__(self):
        return self.name


def lex(s):
    """Split `s` on runs of whitespace into operand, operator and paren tokens.

    Operands become `Num` or `Var` leaves here; everything else is passed on as
    a string for the parser to accept or reject.

    >>> list(lex("3 *  x + ( 9 + y )"))
    [Num(value=3, text=None), '*', Var(name='x'), '+', '(', Num(value=9, text=None), '+', Var(name='y'), ')']
    >>> print(*lex("007 -0"))
    007 -0
    """
    for tok in s.split():
        if NUMBER.fullmatch(tok):
            try:
                n = int(tok)
            except ValueError:
                raise InvalidToken(tok) from None
            yield Num(n, None if tok == str(n) else tok)
        elif OPERAND.fullmatch(tok):
            yield Var(tok)
        else:
            yield tok


def divide(a, b):
    """Exact division: an int if `b` divides `a`, else the reduced (a, b) pair.

    >>> divide(12, 4), divide(3, 9), divide(4, -6)
    (3, (1, 3), (-2, 3))
    """
    if a % b == 0:
        return a // b
    g = math.gcd(a, b)
    if b < 0:
        g = -g
    return a // g, b // g


class Op(NamedTuple):
    sym: str
    prec: int
    assoc: Literal["l", "r"]  # left-associative, right-associative
    fun: Callable

    def __call__(self, *args):
        return self.fun(*args)

    def __repr__(self):
        return f"op({self.sym!r:})"

    def left_first(self, other):
        return self.prec > other.prec or self.prec == other.prec and other.assoc == "l"

    def apply(self, stack, combine=None):
        if len(stack) < 2:
            raise InvalidToken(self.sym)
        node = Node(self, tuple(stack[-2:]))
        stack[-2:] = [combine(node) if combine else node]


class Node(NamedTuple):
    op: Op
    leaves: tuple

    def __str__(self):
        return f"({self.op.sym}{''.join(' ' + str(leaf) for leaf in self.leaves)})"


Expr = Union[Num, Var, Node]

OP_GROUPS = """
add+l sub-l
divide/l mul*l
pow^r
""".strip()
OPS = MappingProxyType(
    {
        o: Op(o, prec, assoc, divide if fun == "divide" else getattr(operator, fun))
        for prec, op_groups in enumerate(OP_GROUPS.split("\n"), start=2)
        for [(fun, o, assoc)] in map(
            re.compile(r"^(\w+)(\W+)(\w+)$").findall, op_groups.split()
        )
    }
)


def parse_expr(tokens, combine=None) -> Expr:
    """Shunting-yard: build the operator tree for the infix `tokens`.

    Every operator node is built binary; `combine`, if given, is applied to each
    node as it is pushed onto the output stack.
    """
    exprs: list[Expr] = []
    ops: list[Union[Op, str]] = []
    for x in tokens:
        if isinstance(x, (Num, Var)):
            exprs.append(x)
        elif o := OPS.get(x):
            while ops and isinstance(ops[-1], Op) and ops[-1].left_first(o):
                ops.pop().apply(exprs, combine)
            ops.append(o)
        elif x == LPAREN:
            ops.append(x)
        elif x == RPAREN:
            while ops and ops[-1] != LPAREN:
                ops.pop().apply(exprs, combine)
            if not ops:
                raise MismatchedParens()
            ops.pop()
        else:
            raise InvalidToken(x)
    while ops:
        if (o := ops.pop()) == LPAREN:
            raise MismatchedParens()
        o.apply(exprs, combine)
    if len(exprs) != 1:
        raise InvalidToken(str(exprs[1]) if exprs else "")
    (ans,) = exprs
    return ans


def to_ast(s, combine=None):
    """Parse the infix string `s` into its (unreduced) tree.

    >>> print(to_ast("2 ^ 3 ^ 2"))
    (^ 2 (^ 3 2))
    """
    return parse_expr(lex(s), combine)
