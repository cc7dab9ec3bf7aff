"""
tournament_hub/services/bracket.py
Knockout bracket presentation model

Pure functions: group knockout matches by round, name each round counting
back from the final and size each round's container so that match slots
line up between rounds.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

DEFAULT_SLOT_HEIGHT = 80

# Rounds counted back from the final: 0 is the final itself
ROUND_NAMES_FROM_FINAL = {
    0: "Final",
    1: "Semifinal",
    2: "Quarterfinal",
    3: "Round of 16",
}


@dataclass
class BracketRound:
    round: int
    name: str
    height: int
    matches: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round": self.round,
            "name": self.name,
            "height": self.height,
            "matches": [m.to_dict() if hasattr(m, "to_dict") else m for m in self.matches],
        }


def round_name(round_number: int, total_rounds: int) -> str:
    """
    Display name of a round.

    With 4 rounds: 1 -> "Round of 16", 2 -> "Quarterfinal",
    3 -> "Semifinal", 4 -> "Final".
    """
    from_final = total_rounds - round_number
    return ROUND_NAMES_FROM_FINAL.get(from_final, f"Round {round_number}")


def round_height(round_number: int, total_rounds: int, slot_height: int = DEFAULT_SLOT_HEIGHT) -> int:
    return 2 ** (total_rounds - round_number) * slot_height


def _field(match: Any, name: str) -> Optional[Any]:
    if isinstance(match, dict):
        return match.get(name)
    return getattr(match, name, None)


def _position_key(match: Any):
    position = _field(match, "bracket_position")
    return (position is None, position if position is not None else 0)


def layout(matches: Iterable[Any], total_rounds: int, slot_height: int = DEFAULT_SLOT_HEIGHT) -> List[BracketRound]:
    """
    Build the rounds 1..total_rounds from a flat list of matches.

    Matches may be ORM rows or dicts; only bracket_round and
    bracket_position are read. Matches outside 1..total_rounds are ignored.
    Rounds with no matches are still returned, empty.
    """
    if total_rounds < 0:
        raise ValueError("total_rounds must not be negative")

    by_round: Dict[int, List[Any]] = {r: [] for r in range(1, total_rounds + 1)}
    for match in matches:
        r = _field(match, "bracket_round")
        if r in by_round:
            by_round[r].append(match)

    return [
        BracketRound(
            round=r,
            name=round_name(r, total_rounds),
            height=round_height(r, total_rounds, slot_height),
            matches=sorted(by_round[r], key=_position_key),
        )
        for r in range(1, total_rounds + 1)
    ]
