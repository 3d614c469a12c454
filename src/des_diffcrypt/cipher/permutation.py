from typing import List, Optional, Sequence, Tuple


# Source bit value meaning "not selected by any input bit".
SENTINEL = 0


class BitPermutation:
    """Fixed-table bit selection between two word widths.

    table[i] names the 1-indexed, MSB-first input bit that feeds output bit i
    (also MSB-first). An entry of SENTINEL leaves the output bit to be filled
    from caller-supplied guess bits, most significant guess bit first.
    """

    def __init__(self, table: Sequence[int], in_width: int, name: str = "") -> None:
        self.table: Tuple[int, ...] = tuple(table)
        self.in_width = in_width
        self.out_width = len(self.table)
        self.name = name

        for source in self.table:
            if source != SENTINEL and not 1 <= source <= in_width:
                raise ValueError(f"{name or 'table'}: source bit {source} outside 1..{in_width}")

        self._chunks = self._build_chunks()

        # Output masks for the sentinel positions, MSB-first.
        self.guess_masks: Tuple[int, ...] = tuple(
            1 << (self.out_width - 1 - i) for i, source in enumerate(self.table) if source == SENTINEL
        )

    def _build_chunks(self) -> List[Tuple[int, Tuple[int, ...]]]:
        """Precompute one 256-entry lookup per input byte."""
        chunks = []
        for shift in range(0, self.in_width, 8):
            width = min(8, self.in_width - shift)
            lookup = []
            for byte in range(1 << width):
                out = 0
                for i, source in enumerate(self.table):
                    if source == SENTINEL:
                        continue
                    bit = self.in_width - source - shift
                    if 0 <= bit < width and (byte >> bit) & 1:
                        out |= 1 << (self.out_width - 1 - i)
                lookup.append(out)
            chunks.append((shift, tuple(lookup)))
        return chunks

    @property
    def guess_width(self) -> int:
        return len(self.guess_masks)

    def apply(self, value: int, guess: int = 0) -> int:
        out = 0
        for shift, lookup in self._chunks:
            out |= lookup[(value >> shift) & 0xFF]
        if guess:
            n = len(self.guess_masks)
            for i, mask in enumerate(self.guess_masks):
                if (guess >> (n - 1 - i)) & 1:
                    out |= mask
        return out

    __call__ = apply

    def inverse(self, name: Optional[str] = None) -> "BitPermutation":
        """Build the table that undoes this selection.

        Where an input bit is selected more than once (E), its first
        occurrence is used. Input bits never selected become sentinels.
        """
        inverse_table = []
        for source in range(1, self.in_width + 1):
            try:
                inverse_table.append(self.table.index(source) + 1)
            except ValueError:
                inverse_table.append(SENTINEL)
        return BitPermutation(inverse_table, self.out_width, name or f"{self.name}_INV")

    def __repr__(self) -> str:
        return f"BitPermutation({self.name!r}, {self.in_width}->{self.out_width})"


IP_TABLE = (
    58, 50, 42, 34, 26, 18, 10, 2,
    60, 52, 44, 36, 28, 20, 12, 4,
    62, 54, 46, 38, 30, 22, 14, 6,
    64, 56, 48, 40, 32, 24, 16, 8,
    57, 49, 41, 33, 25, 17, 9, 1,
    59, 51, 43, 35, 27, 19, 11, 3,
    61, 53, 45, 37, 29, 21, 13, 5,
    63, 55, 47, 39, 31, 23, 15, 7,
)

E_TABLE = (
    32, 1, 2, 3, 4, 5,
    4, 5, 6, 7, 8, 9,
    8, 9, 10, 11, 12, 13,
    12, 13, 14, 15, 16, 17,
    16, 17, 18, 19, 20, 21,
    20, 21, 22, 23, 24, 25,
    24, 25, 26, 27, 28, 29,
    28, 29, 30, 31, 32, 1,
)

P_TABLE = (
    16, 7, 20, 21,
    29, 12, 28, 17,
    1, 15, 23, 26,
    5, 18, 31, 10,
    2, 8, 24, 14,
    32, 27, 3, 9,
    19, 13, 30, 6,
    22, 11, 4, 25,
)

PC1_TABLE = (
    # C half
    57, 49, 41, 33, 25, 17, 9,
    1, 58, 50, 42, 34, 26, 18,
    10, 2, 59, 51, 43, 35, 27,
    19, 11, 3, 60, 52, 44, 36,
    # D half
    63, 55, 47, 39, 31, 23, 15,
    7, 62, 54, 46, 38, 30, 22,
    14, 6, 61, 53, 45, 37, 29,
    21, 13, 5, 28, 20, 12, 4,
)

PC2_TABLE = (
    14, 17, 11, 24, 1, 5,
    3, 28, 15, 6, 21, 10,
    23, 19, 12, 4, 26, 8,
    16, 7, 27, 20, 13, 2,
    41, 52, 31, 37, 47, 55,
    30, 40, 51, 45, 33, 48,
    44, 49, 39, 56, 34, 53,
    46, 42, 50, 36, 29, 32,
)

# Key bit positions that carry parity (the low bit of every byte).
PARITY_POSITIONS = (8, 16, 24, 32, 40, 48, 56, 64)


def _inverse_pc1_table() -> Tuple[int, ...]:
    """PC1 output position of each non-parity key bit, in key order."""
    return tuple(
        PC1_TABLE.index(position) + 1
        for position in range(1, 65)
        if position not in PARITY_POSITIONS
    )


IP = BitPermutation(IP_TABLE, 64, "IP")
IP_INV = IP.inverse("IP_INV")
E = BitPermutation(E_TABLE, 32, "E")
E_INV = E.inverse("E_INV")
P = BitPermutation(P_TABLE, 32, "P")
P_INV = P.inverse("P_INV")
PC1 = BitPermutation(PC1_TABLE, 64, "PC1")
# 56-bit PC1 output -> the 56 effective key bits, seven per key byte.
PC1_INV = BitPermutation(_inverse_pc1_table(), 56, "PC1_INV")
PC2 = BitPermutation(PC2_TABLE, 56, "PC2")
# 48 -> 56; the eight positions PC2 drops are sentinels.
PC2_INV = PC2.inverse("PC2_INV")


def apply(value: int, permutation: BitPermutation, guess: int = 0) -> int:
    """Run value through one of the module's permutations."""
    return permutation.apply(value, guess)
