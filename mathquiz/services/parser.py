"""Structural parser for question strings.

Pipeline
--------
1) ``tokenize`` splits the raw string (see tokenizer.py).
2) A recursive-descent pass builds nesting only: groups ``( )``, explicit
   fractions ``{a/b}``, roots ``sqrt( )`` and absolute values ``| |``.
   Numbers and operator symbols stay flat literals at their level.
3) Two fixup passes run on every sequence, innermost first:
   power folding (right-associative) and then fraction folding
   (left-to-right). A ``GroupNode`` consumed as a base, exponent,
   numerator or denominator is unwrapped, so ``(a+b)/(c+d)`` renders as a
   fraction without the parentheses.

The resulting tree drives both rendering and evaluation. Malformed input
raises ``QuestionSyntaxError``; nothing is silently dropped.
"""

from typing import FrozenSet, List, Sequence

from ..config import settings
from ..errors import QuestionSyntaxError
from ..models import (
    AbsoluteNode,
    FractionNode,
    GroupNode,
    LiteralNode,
    PowerNode,
    QuestionNode,
    RootNode,
)
from .tokenizer import OPERATORS, is_number, tokenize


def is_operator(node: QuestionNode, symbol: str | None = None) -> bool:
    if not isinstance(node, LiteralNode) or node.value not in OPERATORS:
        return False
    return symbol is None or node.value == symbol


def _unwrap(node: QuestionNode) -> List[QuestionNode]:
    if isinstance(node, GroupNode):
        return list(node.content)
    return [node]


def fold_powers(nodes: Sequence[QuestionNode]) -> List[QuestionNode]:
    """Fold ``a ^ b`` triples into ``PowerNode``s, binding right to left.

    Walks the sequence from the end with an output stack, so the right
    neighbour of each ``^`` is already folded: ``2^3^2`` becomes
    ``Power(2, [Power(3, 2)])``.
    """
    out: List[QuestionNode] = []
    i = len(nodes) - 1
    while i >= 0:
        node = nodes[i]
        if not is_operator(node, "^"):
            out.append(node)
            i -= 1
            continue
        if not out or i == 0:
            raise QuestionSyntaxError("'^' is missing an operand", code="1004")
        exponent = out.pop()
        base = nodes[i - 1]
        if is_operator(base) or is_operator(exponent):
            raise QuestionSyntaxError("'^' is missing an operand", code="1004")
        out.append(PowerNode(base=_unwrap(base), exponent=_unwrap(exponent)))
        i -= 2
    out.reverse()
    return out


def fold_fractions(nodes: Sequence[QuestionNode]) -> List[QuestionNode]:
    """Fold ``a / b`` triples into ``FractionNode``s, left to right.

    The left operand comes off the output stack, so ``1/2/4`` nests as
    ``Fraction([Fraction(1, 2)], [4])``.
    """
    out: List[QuestionNode] = []
    i = 0
    while i < len(nodes):
        node = nodes[i]
        if not is_operator(node, "/"):
            out.append(node)
            i += 1
            continue
        if not out or i + 1 >= len(nodes):
            raise QuestionSyntaxError("'/' is missing an operand", code="1004")
        numerator = out.pop()
        denominator = nodes[i + 1]
        if is_operator(numerator) or is_operator(denominator):
            raise QuestionSyntaxError("'/' is missing an operand", code="1004")
        out.append(FractionNode(numerator=_unwrap(numerator), denominator=_unwrap(denominator)))
        i += 2
    return out


def _check_sequence(nodes: Sequence[QuestionNode]) -> None:
    if not nodes:
        raise QuestionSyntaxError("Empty slot where a value is required", code="1003")
    first, last = nodes[0], nodes[-1]
    if is_operator(first) and not is_operator(first, "-"):
        raise QuestionSyntaxError(f"Operator without an operand: {first.value}", code="1004")
    if is_operator(last):
        raise QuestionSyntaxError(f"Operator without an operand: {last.value}", code="1004")
    for prev, node in zip(nodes, nodes[1:]):
        # a minus after another operator is unary
        if is_operator(prev) and is_operator(node) and not is_operator(node, "-"):
            raise QuestionSyntaxError(f"Operator without an operand: {node.value}", code="1004")
        if isinstance(prev, LiteralNode) and isinstance(node, LiteralNode) and is_number(prev.value) and is_number(node.value):
            raise QuestionSyntaxError(f"Unexpected token: {node.value}", code="1001")


def apply_fixups(nodes: Sequence[QuestionNode]) -> List[QuestionNode]:
    """Run the precedence fixups on one sequence and check it is well formed.

    Nested slots are expected to be fixed up already; the parser builds
    them bottom-up.
    """
    folded = fold_fractions(fold_powers(nodes))
    _check_sequence(folded)
    return folded


class _Parser:
    def __init__(self, tokens: List[str], max_depth: int) -> None:
        self.tokens = tokens
        self.position = 0
        self.depth = 0
        self.max_depth = max_depth

    def _peek(self) -> str | None:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def _expect(self, token: str) -> None:
        if self._peek() != token:
            raise QuestionSyntaxError(f"Missing closing symbol: {token}", code="1002", position=self.position)
        self.position += 1

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > self.max_depth:
            raise QuestionSyntaxError("Nesting too deep", code="1005", position=self.position)

    def _sub_parse(self, terminators: FrozenSet[str]) -> List[QuestionNode]:
        self._enter()
        try:
            return apply_fixups(self.parse(terminators))
        finally:
            self.depth -= 1

    def parse(self, terminators: FrozenSet[str] = frozenset()) -> List[QuestionNode]:
        parts: List[QuestionNode] = []
        while self.position < len(self.tokens) and self.tokens[self.position] not in terminators:
            token = self.tokens[self.position]
            if is_number(token) or token in OPERATORS:
                parts.append(LiteralNode(value=token))
                self.position += 1
            elif token == "(":
                self.position += 1
                content = self._sub_parse(frozenset({")"}))
                self._expect(")")
                parts.append(GroupNode(content=content))
            elif token == "{":
                self.position += 1
                numerator = self._sub_parse(frozenset({"/"}))
                self._expect("/")
                denominator = self._sub_parse(frozenset({"}"}))
                self._expect("}")
                parts.append(FractionNode(numerator=numerator, denominator=denominator))
            elif token == "sqrt":
                self.position += 1
                self._expect("(")
                content = self._sub_parse(frozenset({")"}))
                self._expect(")")
                parts.append(RootNode(content=content))
            elif token == "|":
                self.position += 1
                content = self._sub_parse(frozenset({"|"}))
                self._expect("|")
                parts.append(AbsoluteNode(content=content))
            else:
                raise QuestionSyntaxError(f"Unexpected token: {token}", code="1001", position=self.position)
        return parts


def parse_question_string(question_string: str, max_depth: int | None = None) -> List[QuestionNode]:
    """Parse a question string into its structural tree."""
    tokens = tokenize(question_string)
    if not tokens:
        raise QuestionSyntaxError("Empty question", code="1003")
    parser = _Parser(tokens, max_depth if max_depth is not None else settings.max_nesting_depth)
    parts = parser.parse()
    if parser.position < len(tokens):
        raise QuestionSyntaxError(f"Unexpected token: {tokens[parser.position]}", code="1001", position=parser.position)
    return apply_fixups(parts)
