"""
Source path parsing and evaluation.

Mapping rules address values in a raw record with a small JSON-path dialect:
``$`` for the root, ``.key`` for object members, ``[0]`` for array indices
(negative indices count from the end) and ``['some key']`` for members whose
names are not plain identifiers. The leading ``$.`` is optional.
"""

import re
from typing import Any, Union

PathToken = Union[str, int]

MISSING = object()

_TOKEN_PATTERN = re.compile(
    r"""
    \.(?P<dot>[^.\[\]]+)              # .key
    | \[(?P<index>-?\d+)\]            # [0]
    | \[(?P<quote>['"])(?P<key>.*?)(?P=quote)\]   # ['key'] or ["key"]
    """,
    re.VERBOSE,
)


def parse_path(path: str) -> tuple[PathToken, ...]:
    """
    Parse a source path into a tuple of member names and indices.

    Args:
        path: Path expression such as ``$.geo_point_2d.lat`` or ``artists[0]``

    Returns:
        Tuple of tokens, empty for the root path ``$``

    Raises:
        ValueError: If the expression cannot be parsed
    """
    if not isinstance(path, str) or not path.strip():
        raise ValueError("Source path cannot be empty")

    expr = path.strip()
    if expr.startswith("$"):
        expr = expr[1:]
    elif not expr.startswith(("[", ".")):
        expr = "." + expr

    tokens: list[PathToken] = []
    position = 0
    while position < len(expr):
        match = _TOKEN_PATTERN.match(expr, position)
        if not match:
            raise ValueError(f"Invalid source path '{path}' near '{expr[position:]}'")
        if match.group("dot") is not None:
            tokens.append(match.group("dot"))
        elif match.group("index") is not None:
            tokens.append(int(match.group("index")))
        else:
            tokens.append(match.group("key"))
        position = match.end()

    return tuple(tokens)


def resolve_path(data: Any, tokens: tuple[PathToken, ...]) -> Any:
    """
    Walk ``data`` along ``tokens``.

    Returns the module-level ``MISSING`` sentinel when any step is absent:
    unknown member, index out of range, or a step into a scalar.
    """
    current = data
    for token in tokens:
        if isinstance(token, int):
            if not isinstance(current, list):
                return MISSING
            if token >= len(current) or token < -len(current):
                return MISSING
            current = current[token]
        else:
            if not isinstance(current, dict) or token not in current:
                return MISSING
            current = current[token]
    return current
