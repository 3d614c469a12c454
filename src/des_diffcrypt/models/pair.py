from dataclasses import dataclass
from typing import List, TypeAlias


BLOCK_MASK = (1 << 64) - 1


@dataclass(slots=True)
class PairTuple:
    """
    Two plaintexts and their ciphertexts under the same key.

    Values are stored as unsigned 64-bit blocks; signed (two's complement)
    input is folded into that range on construction.
    """

    x1: int
    x2: int
    y1: int
    y2: int
    valid: bool = True

    def __post_init__(self) -> None:
        self.x1 &= BLOCK_MASK
        self.x2 &= BLOCK_MASK
        self.y1 &= BLOCK_MASK
        self.y2 &= BLOCK_MASK

    @property
    def input_difference(self) -> int:
        return self.x1 ^ self.x2

    @property
    def output_difference(self) -> int:
        return self.y1 ^ self.y2

    def invalidate(self) -> None:
        """Exclude this pair from analysis. Values are never rewritten."""
        self.valid = False


PairSet: TypeAlias = List[PairTuple]
