from typing import Sequence

from ..models import AbsoluteNode, FractionNode, GroupNode, LiteralNode, PowerNode, QuestionNode, RootNode
from .tokenizer import is_number


def _slot(nodes: Sequence[QuestionNode]) -> str:
    # bare numbers print as-is; anything else needs parentheses to survive re-parsing
    if len(nodes) == 1 and isinstance(nodes[0], LiteralNode) and is_number(nodes[0].value):
        return nodes[0].value
    return f"({to_question_string(nodes)})"


def node_to_string(node: QuestionNode) -> str:
    if isinstance(node, LiteralNode):
        return node.value
    if isinstance(node, GroupNode):
        return f"({to_question_string(node.content)})"
    if isinstance(node, FractionNode):
        return f"{{{to_question_string(node.numerator)}/{to_question_string(node.denominator)}}}"
    if isinstance(node, PowerNode):
        return f"{_slot(node.base)}^{_slot(node.exponent)}"
    if isinstance(node, RootNode):
        return f"sqrt({to_question_string(node.content)})"
    if isinstance(node, AbsoluteNode):
        # a bar closes the nearest open bar, so a nested absolute needs a group
        inner = " ".join(
            f"({node_to_string(item)})" if isinstance(item, AbsoluteNode) else node_to_string(item)
            for item in node.content
        )
        return f"|{inner}|"
    raise TypeError(f"Unknown question node: {node!r}")


def to_question_string(nodes: Sequence[QuestionNode]) -> str:
    """Print a tree in the question-string grammar.

    Fractions always use the explicit ``{a/b}`` form. For any tree produced
    by ``parse_question_string``, parsing the printed string gives back an
    equal tree. A hand-built tree with an absolute directly inside another
    comes back with a group around the inner one: same value, same printed
    string. Hand-built sequences are expected to be folded already, with no
    bare ``/`` or ``^`` literals left in them.
    """
    return " ".join(node_to_string(node) for node in nodes)
