from functools import lru_cache
from typing import List, Tuple

from des_diffcrypt.cipher.permutation import P


SBOX_COUNT = 8

# Eight 4x16 substitution tables, S1 first. Row is picked by the outer
# input bits (b5, b0), column by the inner four (b4..b1).
SBOXES: Tuple[Tuple[Tuple[int, ...], ...], ...] = (
    (
        (14, 4, 13, 1, 2, 15, 11, 8, 3, 10, 6, 12, 5, 9, 0, 7),
        (0, 15, 7, 4, 14, 2, 13, 1, 10, 6, 12, 11, 9, 5, 3, 8),
        (4, 1, 14, 8, 13, 6, 2, 11, 15, 12, 9, 7, 3, 10, 5, 0),
        (15, 12, 8, 2, 4, 9, 1, 7, 5, 11, 3, 14, 10, 0, 6, 13),
    ),
    (
        (15, 1, 8, 14, 6, 11, 3, 4, 9, 7, 2, 13, 12, 0, 5, 10),
        (3, 13, 4, 7, 15, 2, 8, 14, 12, 0, 1, 10, 6, 9, 11, 5),
        (0, 14, 7, 11, 10, 4, 13, 1, 5, 8, 12, 6, 9, 3, 2, 15),
        (13, 8, 10, 1, 3, 15, 4, 2, 11, 6, 7, 12, 0, 5, 14, 9),
    ),
    (
        (10, 0, 9, 14, 6, 3, 15, 5, 1, 13, 12, 7, 11, 4, 2, 8),
        (13, 7, 0, 9, 3, 4, 6, 10, 2, 8, 5, 14, 12, 11, 15, 1),
        (13, 6, 4, 9, 8, 15, 3, 0, 11, 1, 2, 12, 5, 10, 14, 7),
        (1, 10, 13, 0, 6, 9, 8, 7, 4, 15, 14, 3, 11, 5, 2, 12),
    ),
    (
        (7, 13, 14, 3, 0, 6, 9, 10, 1, 2, 8, 5, 11, 12, 4, 15),
        (13, 8, 11, 5, 6, 15, 0, 3, 4, 7, 2, 12, 1, 10, 14, 9),
        (10, 6, 9, 0, 12, 11, 7, 13, 15, 1, 3, 14, 5, 2, 8, 4),
        (3, 15, 0, 6, 10, 1, 13, 8, 9, 4, 5, 11, 12, 7, 2, 14),
    ),
    (
        (2, 12, 4, 1, 7, 10, 11, 6, 8, 5, 3, 15, 13, 0, 14, 9),
        (14, 11, 2, 12, 4, 7, 13, 1, 5, 0, 15, 10, 3, 9, 8, 6),
        (4, 2, 1, 11, 10, 13, 7, 8, 15, 9, 12, 5, 6, 3, 0, 14),
        (11, 8, 12, 7, 1, 14, 2, 13, 6, 15, 0, 9, 10, 4, 5, 3),
    ),
    (
        (12, 1, 10, 15, 9, 2, 6, 8, 0, 13, 3, 4, 14, 7, 5, 11),
        (10, 15, 4, 2, 7, 12, 9, 5, 6, 1, 13, 14, 0, 11, 3, 8),
        (9, 14, 15, 5, 2, 8, 12, 3, 7, 0, 4, 10, 1, 13, 11, 6),
        (4, 3, 2, 12, 9, 5, 15, 10, 11, 14, 1, 7, 6, 0, 8, 13),
    ),
    (
        (4, 11, 2, 14, 15, 0, 8, 13, 3, 12, 9, 7, 5, 10, 6, 1),
        (13, 0, 11, 7, 4, 9, 1, 10, 14, 3, 5, 12, 2, 15, 8, 6),
        (1, 4, 11, 13, 12, 3, 7, 14, 10, 15, 6, 8, 0, 5, 9, 2),
        (6, 11, 13, 8, 1, 4, 10, 7, 9, 5, 0, 15, 14, 2, 3, 12),
    ),
    (
        (13, 2, 8, 4, 6, 15, 11, 1, 10, 9, 3, 14, 5, 0, 12, 7),
        (1, 15, 13, 8, 10, 3, 7, 4, 12, 5, 6, 11, 0, 14, 9, 2),
        (7, 11, 4, 1, 9, 12, 14, 2, 0, 6, 10, 13, 15, 3, 5, 8),
        (2, 1, 14, 7, 4, 10, 8, 13, 15, 12, 9, 0, 3, 5, 6, 11),
    ),
)


class InvalidSBoxError(ValueError):
    pass


def _flatten(table: Tuple[Tuple[int, ...], ...]) -> Tuple[int, ...]:
    """Reorder a 4x16 table so it is indexed directly by the 6-bit input."""
    return tuple(table[((v >> 4) & 0b10) | (v & 1)][(v >> 1) & 0xF] for v in range(64))


# Zero-based, indexed by raw 6-bit input.
_LOOKUP: Tuple[Tuple[int, ...], ...] = tuple(_flatten(table) for table in SBOXES)


def _check_index(index: int) -> None:
    if not 1 <= index <= SBOX_COUNT:
        raise InvalidSBoxError(f"S-box index must be 1..{SBOX_COUNT}, got {index}")


def sbox_lookup(index: int, value: int) -> int:
    """Output nibble of S-box `index` (1..8) for a 6-bit input."""
    _check_index(index)
    return _LOOKUP[index - 1][value & 0x3F]


def sbox_table(index: int) -> Tuple[int, ...]:
    """The 64-entry table of S-box `index`, indexed by raw 6-bit input."""
    _check_index(index)
    return _LOOKUP[index - 1]


def sbox_shift(index: int) -> int:
    """Bit offset of S-box `index`'s 6-bit group within a 48-bit word."""
    return (SBOX_COUNT - index) * 6


def nibble_shift(index: int) -> int:
    """Bit offset of S-box `index`'s output nibble within a 32-bit word."""
    return (SBOX_COUNT - index) * 4


def substitute(value: int) -> int:
    """Push a 48-bit word through all eight S-boxes, giving 32 bits."""
    out = 0
    for i, lookup in enumerate(_LOOKUP):
        out = (out << 4) | lookup[(value >> (42 - 6 * i)) & 0x3F]
    return out


# S-box output already routed through P, one table per S-box. F(R, K)
# becomes eight lookups OR'd together.
SP_BOXES: Tuple[Tuple[int, ...], ...] = tuple(
    tuple(P.apply(lookup[v] << nibble_shift(i + 1)) for v in range(64))
    for i, lookup in enumerate(_LOOKUP)
)


@lru_cache(maxsize=None)
def difference_distribution(index: int) -> Tuple[Tuple[int, ...], ...]:
    """64x16 counts of (input XOR, output XOR) over all input pairs."""
    _check_index(index)
    lookup = _LOOKUP[index - 1]
    table: List[List[int]] = [[0] * 16 for _ in range(64)]
    for a in range(64):
        for b in range(64):
            table[a ^ b][lookup[a] ^ lookup[b]] += 1
    return tuple(tuple(row) for row in table)


def sbox_preimages(index: int, output: int) -> List[int]:
    """Every 6-bit input of S-box `index` that produces `output`."""
    _check_index(index)
    lookup = _LOOKUP[index - 1]
    return [v for v in range(64) if lookup[v] == output]
