from __future__ import annotations

from typing import List, Optional, Sequence, Set

TILE_MILESTONES = (128, 256, 512, 1024, 2048, 4096)
SCORE_MILESTONES = (10_000, 25_000, 50_000, 100_000)


class AchievementTracker:
    """Unlocks tile, score and first-win milestones; listens to engine events."""

    def __init__(
        self,
        tile_milestones: Sequence[int] = TILE_MILESTONES,
        score_milestones: Sequence[int] = SCORE_MILESTONES,
    ) -> None:
        self.tile_milestones = tuple(sorted(tile_milestones))
        self.score_milestones = tuple(sorted(score_milestones))
        self.unlocked_tiles: Set[int] = set()
        self.unlocked_scores: Set[int] = set()
        self.first_win_unlocked = False
        self.last_unlocked_tile: Optional[int] = None
        self.last_unlocked_score: Optional[int] = None
        self.first_win_just_unlocked = False

    def check_tile(self, max_tile: int) -> bool:
        # One tile milestone per check, lowest first.
        self.last_unlocked_tile = None
        for milestone in self.tile_milestones:
            if max_tile >= milestone and milestone not in self.unlocked_tiles:
                self.unlocked_tiles.add(milestone)
                self.last_unlocked_tile = milestone
                return True
        return False

    def check_score(self, score: int) -> bool:
        self.last_unlocked_score = None
        unlocked = False
        for milestone in self.score_milestones:
            if score >= milestone and milestone not in self.unlocked_scores:
                self.unlocked_scores.add(milestone)
                self.last_unlocked_score = milestone
                unlocked = True
        return unlocked

    def check_first_win(self, is_won: bool) -> bool:
        self.first_win_just_unlocked = False
        if is_won and not self.first_win_unlocked:
            self.first_win_unlocked = True
            self.first_win_just_unlocked = True
            return True
        return False

    def reset_just_unlocked(self) -> None:
        self.last_unlocked_tile = None
        self.last_unlocked_score = None
        self.first_win_just_unlocked = False

    def unlocked(self) -> List[str]:
        names = [f"tile_{value}" for value in sorted(self.unlocked_tiles)]
        names += [f"score_{value}" for value in sorted(self.unlocked_scores)]
        if self.first_win_unlocked:
            names.append("first_win")
        return names

    # engine hooks
    def on_move_made(self, score: int, highest_tile: int) -> None:
        self.check_tile(highest_tile)
        self.check_score(score)

    def on_game_won(self) -> None:
        self.check_first_win(True)
