"""
Level ladder lookups.

The ladder is an ordered table of level -> cumulative points required. It is
loaded once per unit of work and never mutated by the engine.
"""

import bisect
import math
from typing import Dict, Iterable, List, Optional

from squadfit.database.models import LevelRequirement
from squadfit.utils.constants import (
    STARTING_LEVEL,
    DEFAULT_LADDER_SIZE,
    LADDER_BASE_POINTS,
    LADDER_GROWTH_RATE,
)


class LevelLadder:
    """Immutable, sorted view over level requirements."""

    def __init__(self, entries: Iterable[LevelRequirement]):
        ordered = sorted(entries, key=lambda e: e.level)
        for previous, current in zip(ordered, ordered[1:]):
            if current.points_required <= previous.points_required:
                raise ValueError(
                    f"Level ladder is not monotonic: level {current.level} requires "
                    f"{current.points_required} points, level {previous.level} requires "
                    f"{previous.points_required}"
                )
        self._entries: List[LevelRequirement] = ordered
        self._by_level: Dict[int, LevelRequirement] = {e.level: e for e in ordered}
        self._thresholds: List[int] = [e.points_required for e in ordered]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    @property
    def starting_level(self) -> int:
        """Level a brand-new member starts at."""
        if not self._entries:
            return STARTING_LEVEL
        return self.level_for_points(0)

    @property
    def max_level(self) -> Optional[int]:
        return self._entries[-1].level if self._entries else None

    def get(self, level: int) -> Optional[LevelRequirement]:
        return self._by_level.get(level)

    def next_entry(self, level: int) -> Optional[LevelRequirement]:
        """Ladder entry for level + 1, or None when the ladder is exhausted."""
        return self._by_level.get(level + 1)

    def level_for_points(self, points: int) -> int:
        """
        Highest level whose points_required <= points.

        Falls back to the lowest ladder level when points are below every
        threshold, and to STARTING_LEVEL for an empty ladder.
        """
        if not self._entries:
            return STARTING_LEVEL
        idx = bisect.bisect_right(self._thresholds, points) - 1
        if idx < 0:
            return self._entries[0].level
        return self._entries[idx].level

    def climb(self, level: int, total_points: int) -> List[LevelRequirement]:
        """
        Entries reached by advancing from level with total_points.

        Level-ups cascade: one large award can pass several thresholds at
        once. Levels never go down here.
        """
        reached = []
        nxt = self.next_entry(level)
        while nxt is not None and total_points >= nxt.points_required:
            reached.append(nxt)
            nxt = self.next_entry(nxt.level)
        return reached

    def points_to_next_level(self, level: int, total_points: int) -> Optional[int]:
        """
        Points still missing to reach level + 1, or None at max level.

        Computed from total_points, never from current_points.
        """
        nxt = self.next_entry(level)
        if nxt is None:
            return None
        return max(nxt.points_required - total_points, 0)


def default_ladder_entries(size: int = DEFAULT_LADDER_SIZE) -> List[LevelRequirement]:
    """
    Build the default exponential ladder.

    Level 1 requires 0 points; level n >= 2 requires floor(100 * 1.5^(n-2)).
    Every fifth level carries a badge reward and every tenth a title.
    """
    entries = []
    for level in range(STARTING_LEVEL, STARTING_LEVEL + size):
        if level == STARTING_LEVEL:
            points_required = 0
        else:
            points_required = math.floor(LADDER_BASE_POINTS * LADDER_GROWTH_RATE ** (level - 2))
        entries.append(
            LevelRequirement(
                level=level,
                points_required=points_required,
                description=f"Level {level}",
                rewards={
                    "badge": f"Level {level} Achievement" if level > 1 and level % 5 == 0 else None,
                    "title": f"Level {level} Master" if level > 1 and level % 10 == 0 else None,
                },
            )
        )
    return entries
