from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Sequence, Tuple

import structlog

from des_diffcrypt.analysis.characteristic import Characteristic
from des_diffcrypt.cipher.engine import MASK32
from des_diffcrypt.cipher.permutation import E, P_INV
from des_diffcrypt.cipher.sbox import nibble_shift, sbox_shift, sbox_table
from des_diffcrypt.models.pair import PairTuple


log = structlog.get_logger(__name__)

CANDIDATES = 64


def best_candidate(counts: Sequence[int]) -> int:
    """Index of the highest count. Ties go to the lowest index."""
    best = 0
    for j, count in enumerate(counts):
        if count > counts[best]:
            best = j
    return best


@dataclass(frozen=True, slots=True)
class VoteTable:
    """Vote counters for the 64 key fragment candidates of one S-box."""

    sbox: int
    counts: Tuple[int, ...]

    @property
    def best(self) -> int:
        return best_candidate(self.counts)

    @property
    def best_count(self) -> int:
        return self.counts[self.best]


@dataclass(frozen=True, slots=True)
class VoteResult:
    characteristic: Characteristic
    pair_count: int
    tables: Mapping[int, VoteTable] = field(default_factory=dict)

    @property
    def fragments(self) -> Dict[int, int]:
        """S-box index -> inferred 6-bit fragment of the last round key."""
        return {sbox: table.best for sbox, table in self.tables.items()}


def vote_key_bits(pairs: Iterable[PairTuple], characteristic: Characteristic) -> VoteResult:
    """
    Count, for every targeted S-box and every 6-bit key candidate, how many
    pairs would produce the expected last-round S-box output difference.

    The S-box inputs of the last round are E of the ciphertexts' right
    halves, XORed with the unknown key fragment. The expected output
    difference is P^-1 of the left-half difference with the characteristic's
    constant removed.
    """
    counters = {sbox: [0] * CANDIDATES for sbox in characteristic.sboxes}
    layout = [
        (counters[sbox], sbox_table(sbox), sbox_shift(sbox), nibble_shift(sbox))
        for sbox in characteristic.sboxes
    ]

    pair_count = 0
    for pair in pairs:
        if not pair.valid:
            continue
        pair_count += 1

        e1 = E.apply(pair.y1 & MASK32)
        e2 = E.apply(pair.y2 & MASK32)
        expected = P_INV.apply(((pair.y1 ^ pair.y2) >> 32) ^ characteristic.final_round_constant)

        for counts, table, in_shift, out_shift in layout:
            a = (e1 >> in_shift) & 0x3F
            b = (e2 >> in_shift) & 0x3F
            want = (expected >> out_shift) & 0xF
            for j in range(CANDIDATES):
                if table[a ^ j] ^ table[b ^ j] == want:
                    counts[j] += 1

    tables = {sbox: VoteTable(sbox, tuple(counts)) for sbox, counts in counters.items()}
    result = VoteResult(characteristic=characteristic, pair_count=pair_count, tables=tables)
    log.info(
        "key bits voted",
        characteristic=characteristic.name,
        pairs=pair_count,
        fragments=result.fragments,
    )
    return result
