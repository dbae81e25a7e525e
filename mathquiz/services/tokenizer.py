import re
from typing import Dict, List

OPERATORS = ("+", "-", "*", "/", "^")

_NUMBER = r"\d+(?:\.\d+)?|\.\d+"
_NUMBER_RE = re.compile(_NUMBER)
# numbers, function names, single operator/grouping characters, then any other
# run of letters or a lone unknown character
_TOKEN_RE = re.compile(_NUMBER + r"|sqrt|[-+*/^(){}|]|[A-Za-z_]+|\S")
# spoken shorthands rewritten into the core grammar: "50% of 80" is 50 / 100 * 80
_SHORTHANDS: Dict[str, List[str]] = {
    "%": ["/", "100"],
    "of": ["*"],
}

def tokenize(text: str) -> List[str]:
    """Split a question string into tokens.

    Whitespace is insignificant and operators need no surrounding spaces,
    so ``"2+3"`` gives ``["2", "+", "3"]``. A percent sign becomes ``/ 100``
    and the word ``of`` becomes ``*``. Other characters outside the grammar
    are passed through as tokens of their own for the parser to reject.
    """
    tokens: List[str] = []
    for t in _TOKEN_RE.findall(text or ""):
        if not t.strip():
            continue
        tokens.extend(_SHORTHANDS.get(t.lower(), [t]))
    return tokens

def is_number(token: str) -> bool:
    return isinstance(token, str) and _NUMBER_RE.fullmatch(token) is not None
