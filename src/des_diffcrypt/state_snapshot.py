from dataclasses import dataclass, field
from typing import Optional, Tuple, TypeAlias

from des_diffcrypt.analysis.recovery import AttackPhase
from des_diffcrypt.config import SEARCH_SPACE


# (S-box index, 6-bit fragment) pairs, ascending by S-box.
FragmentRow: TypeAlias = Tuple[Tuple[int, int], ...]


@dataclass(frozen=True, slots=True)
class AttackSnapshot:
    """Minimal immutable snapshot of attack progress."""

    state_version: int
    phase: AttackPhase
    complete: bool = False
    char1_pairs: int = 0
    char2_pairs: int = 0
    candidates_checked: int = 0
    search_space: int = SEARCH_SPACE
    key: Optional[int] = None

    char1_fragments: FragmentRow = field(default_factory=tuple)
    char2_fragments: FragmentRow = field(default_factory=tuple)
    fragments: FragmentRow = field(default_factory=tuple)

    @property
    def search_percent(self) -> float:
        return self.candidates_checked / self.search_space * 100
