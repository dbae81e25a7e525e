"""Numeric evaluation of question trees.

1) Flatten: walk the tree into one infix token stream. Nested structures get
   synthetic parentheses, roots and absolute values become ``sqrt``/``abs``
   calls, a unary minus becomes ``-1 *`` and implicit multiplication is made
   explicit.
2) Convert infix to postfix (shunting-yard).
3) Evaluate the postfix stream on a value stack.

``evaluate`` never raises: any failure is logged and reported as ``None``,
meaning the answer is unavailable.
"""

import logging
import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Optional, Sequence, Union

from ..errors import DivisionByZero, DomainError, ExpressionError, InvalidExpression
from ..models import AbsoluteNode, FractionNode, GroupNode, LiteralNode, PowerNode, QuestionNode, RootNode
from .parser import parse_question_string
from .tokenizer import is_number

logger = logging.getLogger("mathquiz")

Token = Union[float, str]

PRECEDENCE = {
    "+": 1,
    "-": 1,
    "*": 2,
    "/": 2,
    "^": 3,
}
FUNCTIONS = ("sqrt", "abs")
_UNARY_CONTEXT = ("(", "+", "-", "*", "/", "^")


def _needs_implicit_multiplication(current: Token, following: Token) -> bool:
    if isinstance(current, float):
        return following == "(" or following in FUNCTIONS
    if current == ")":
        return isinstance(following, float) or following == "(" or following in FUNCTIONS
    return False


def flatten(nodes: Sequence[QuestionNode]) -> List[Token]:
    raw: List[Token] = []

    def wrap(parts: Sequence[QuestionNode]) -> None:
        raw.append("(")
        walk(parts)
        raw.append(")")

    def walk(parts: Sequence[QuestionNode]) -> None:
        for part in parts:
            if isinstance(part, LiteralNode):
                value = part.value.strip()
                if is_number(value):
                    raw.append(float(value))
                elif value == "-":
                    previous = raw[-1] if raw else None
                    if previous is None or (isinstance(previous, str) and previous in _UNARY_CONTEXT):
                        raw.extend([-1.0, "*"])
                    else:
                        raw.append("-")
                elif value in PRECEDENCE:
                    raw.append(value)
                else:
                    raise InvalidExpression(f"Unexpected literal: {value}")
            elif isinstance(part, GroupNode):
                wrap(part.content)
            elif isinstance(part, FractionNode):
                wrap(part.numerator)
                raw.append("/")
                wrap(part.denominator)
            elif isinstance(part, PowerNode):
                wrap(part.base)
                raw.append("^")
                wrap(part.exponent)
            elif isinstance(part, RootNode):
                raw.append("sqrt")
                wrap(part.content)
            elif isinstance(part, AbsoluteNode):
                raw.append("abs")
                wrap(part.content)
            else:
                raise InvalidExpression(f"Unknown question node: {part!r}")

    walk(nodes)

    tokens: List[Token] = []
    for current, following in zip(raw, raw[1:] + [None]):
        tokens.append(current)
        if following is not None and _needs_implicit_multiplication(current, following):
            tokens.append("*")
    return tokens


def to_postfix(tokens: Sequence[Token]) -> List[Token]:
    output: List[Token] = []
    stack: List[str] = []
    for token in tokens:
        if isinstance(token, float):
            output.append(token)
        elif token in FUNCTIONS:
            stack.append(token)
        elif token in PRECEDENCE:
            while stack and stack[-1] in PRECEDENCE and (
                PRECEDENCE[stack[-1]] > PRECEDENCE[token]
                # equal precedence pops for left-associative operators only
                or (PRECEDENCE[stack[-1]] == PRECEDENCE[token] and token != "^")
            ):
                output.append(stack.pop())
            stack.append(token)
        elif token == "(":
            stack.append(token)
        elif token == ")":
            while stack and stack[-1] != "(":
                output.append(stack.pop())
            if not stack:
                raise InvalidExpression("Mismatched parentheses")
            stack.pop()
            if stack and stack[-1] in FUNCTIONS:
                output.append(stack.pop())
        else:
            raise InvalidExpression(f"Unexpected token: {token}")
    while stack:
        op = stack.pop()
        if op == "(":
            raise InvalidExpression("Mismatched parentheses")
        output.append(op)
    return output


def _apply_operator(op: str, a: float, b: float) -> float:
    if op == "+":
        return a + b
    if op == "-":
        return a - b
    if op == "*":
        return a * b
    if op == "/":
        if b == 0:
            raise DivisionByZero()
        return a / b
    if op == "^":
        try:
            return math.pow(a, b)
        except ValueError:
            raise DomainError(f"Cannot raise {a} to the power {b}")
        except OverflowError:
            raise InvalidExpression("Result is not finite")
    raise InvalidExpression(f"Unsupported operator: {op}")


def _apply_function(name: str, a: float) -> float:
    if name == "sqrt":
        if a < 0:
            raise DomainError("Square root of a negative number")
        return math.sqrt(a)
    if name == "abs":
        return abs(a)
    raise InvalidExpression(f"Unsupported function: {name}")


def evaluate_postfix(postfix: Sequence[Token]) -> float:
    stack: List[float] = []
    for token in postfix:
        if isinstance(token, float):
            stack.append(token)
        elif token in FUNCTIONS:
            if not stack:
                raise InvalidExpression("Not enough values for a function")
            stack.append(_apply_function(token, stack.pop()))
        else:
            if len(stack) < 2:
                raise InvalidExpression("Not enough values for an operator")
            b = stack.pop()
            a = stack.pop()
            stack.append(_apply_operator(token, a, b))
    if len(stack) != 1:
        raise InvalidExpression("The final stack should hold exactly one value")
    return stack[0]


# above this magnitude a float carries no hundredths to round
_ROUNDING_LIMIT = 1e15


def round_answer(value: float) -> float:
    """Round to two decimals, halves away from zero."""
    if abs(value) >= _ROUNDING_LIMIT:
        return value
    try:
        rounded = float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise InvalidExpression(f"Cannot round {value!r}")
    return rounded + 0.0  # no negative zero


def evaluate_strict(nodes: Sequence[QuestionNode]) -> float:
    result = evaluate_postfix(to_postfix(flatten(nodes)))
    if not math.isfinite(result):
        raise InvalidExpression("Result is not finite")
    return round_answer(result)


def evaluate(nodes: Sequence[QuestionNode]) -> Optional[float]:
    try:
        return evaluate_strict(nodes)
    except ExpressionError as exc:
        logger.warning({"event": "evaluation_failed", "code": exc.code, "reason": exc.message})
        return None


def evaluate_question_string(question_string: str) -> Optional[float]:
    try:
        nodes = parse_question_string(question_string)
    except ExpressionError as exc:
        logger.warning({"event": "question_parse_failed", "code": exc.code, "reason": exc.message, "question": question_string})
        return None
    return evaluate(nodes)
