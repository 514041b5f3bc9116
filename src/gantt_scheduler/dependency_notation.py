from __future__ import annotations

import re
from typing import Iterable, Mapping

from .errors import DependencyParseError
from .project_models import Dependency, DependencyType

# 2.1FS+3, 4ss-2d, 7
_TOKEN_RE = re.compile(
    r"""
    ^(?P<position>\d+(?:\.\d+)*)
    \s*(?P<type>[A-Za-z]{2})?
    \s*(?:(?P<sign>[+-])\s*(?P<lag>\d+)\s*(?:d|days?)?)?$
    """,
    re.VERBOSE | re.IGNORECASE,
)
_SEPARATORS = re.compile(r"[,;]")


def parse_dependency_notation(
    text: str,
    positions: Mapping[str, str],
    owner_id: str | None = None,
) -> tuple[Dependency, ...]:
    """
    Parse shorthand such as ``"2.1FS+3, 4SS-1"`` into links.

    ``positions`` maps item ids to outline numbers (see ``hierarchy_positions``).
    The type defaults to FS and the lag to 0. Raises ``DependencyParseError``
    on the first bad token so a caller never applies a partial edit.
    """

    ids_by_position = {position: task_id for task_id, position in positions.items()}
    links: list[Dependency] = []
    for raw in _SEPARATORS.split(text or ""):
        token = raw.strip()
        if not token:
            continue
        match = _TOKEN_RE.match(token)
        if match is None:
            raise DependencyParseError(f"cannot parse dependency '{token}'")

        position = match.group("position")
        predecessor_id = ids_by_position.get(position)
        if predecessor_id is None:
            raise DependencyParseError(f"dependency '{token}' refers to unknown position {position}")
        if owner_id is not None and predecessor_id == owner_id:
            raise DependencyParseError(f"dependency '{token}' refers to the item itself")

        code = (match.group("type") or "FS").upper()
        try:
            link_type = DependencyType(code)
        except ValueError as exc:
            raise DependencyParseError(f"dependency '{token}' has unknown type '{code}'") from exc

        lag = int(match.group("lag") or 0)
        if match.group("sign") == "-":
            lag = -lag
        links.append(Dependency(predecessor_id=predecessor_id, type=link_type, lag_days=lag))
    return tuple(links)


def format_dependency_notation(links: Iterable[Dependency], positions: Mapping[str, str]) -> str:
    """Render links back to shorthand; links to items without a position are dropped."""

    tokens: list[str] = []
    for link in links:
        position = positions.get(link.predecessor_id)
        if position is None:
            continue
        token = f"{position}{DependencyType(link.type).value}"
        if link.lag_days:
            token += f"{link.lag_days:+d}"
        tokens.append(token)
    return ", ".join(tokens)
