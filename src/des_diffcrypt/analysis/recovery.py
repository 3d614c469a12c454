import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Sequence, TypeAlias

import structlog

from des_diffcrypt.analysis.characteristic import CHARACTERISTIC_ONE, CHARACTERISTIC_TWO, Characteristic
from des_diffcrypt.analysis.voter import VoteResult, best_candidate, vote_key_bits
from des_diffcrypt.cipher.engine import decrypt
from des_diffcrypt.cipher.key_schedule import (
    HALF_MASK,
    expand_key_bits,
    fix_parity,
    inverse_pc1,
    inverse_pc2,
    rotate_right28,
)
from des_diffcrypt.cipher.sbox import sbox_shift
from des_diffcrypt.config import ATTACK_ROUNDS, SEARCH_BLOCK_SIZE, SEARCH_PROGRESS_INTERVAL, SEARCH_SPACE
from des_diffcrypt.models.pair import PairSet, PairTuple


log = structlog.get_logger(__name__)

# Left rotation of C and D after six rounds of the schedule (1+1+2+2+2+2).
SCHEDULE_ROTATION = 10

# The S-box no characteristic exposes; its fragment is part of the search.
UNVOTED_SBOX = 3

ProgressFn: TypeAlias = Callable[[int], None]


class AttackPhase(Enum):
    IDLE = "idle"
    PAIRS_LOADED = "pairs loaded"
    CHAR1_VOTED = "char1 voted"
    CHAR2_VOTED = "char2 voted"
    SEARCHING = "searching"
    KEY_FOUND = "key found"
    SEARCH_EXHAUSTED = "search exhausted"


class SearchStatus(Enum):
    KEY_FOUND = "key found"
    SEARCH_EXHAUSTED = "search exhausted"
    NO_PAIRS = "no pairs"


@dataclass(frozen=True, slots=True)
class SearchOutcome:
    status: SearchStatus
    key: Optional[int] = None
    candidate: Optional[int] = None


@dataclass(frozen=True, slots=True)
class RecoveryResult:
    """Outcome of a full attack. `key` is None unless it was verified."""

    status: SearchStatus
    key: Optional[int]
    candidate: Optional[int]
    char1_votes: VoteResult
    char2_votes: VoteResult
    fragments: Mapping[int, int] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return self.status is SearchStatus.KEY_FOUND

    @property
    def char1_pair_count(self) -> int:
        return self.char1_votes.pair_count

    @property
    def char2_pair_count(self) -> int:
        return self.char2_votes.pair_count


def merge_fragments(char1_votes: VoteResult, char2_votes: VoteResult) -> Dict[int, int]:
    """
    Combine both characteristics' fragments into one per S-box.

    Where both voted on an S-box and disagree, the summed counters decide.
    """
    merged: Dict[int, int] = {}
    for sbox in sorted(set(char1_votes.tables) | set(char2_votes.tables)):
        first = char1_votes.tables.get(sbox)
        second = char2_votes.tables.get(sbox)
        if first is None or second is None:
            merged[sbox] = (first or second).best
            continue
        if first.best == second.best:
            merged[sbox] = first.best
            continue

        summed = [a + b for a, b in zip(first.counts, second.counts)]
        merged[sbox] = best_candidate(summed)
        log.warning(
            "characteristics disagree",
            sbox=sbox,
            char1_fragment=first.best,
            char2_fragment=second.best,
            chosen=merged[sbox],
        )
    return merged


def known_key_bits(fragments: Mapping[int, int]) -> int:
    """Place the voted fragments in a 48-bit last-round subkey."""
    known = 0
    for sbox, fragment in fragments.items():
        known |= (fragment & 0x3F) << sbox_shift(sbox)
    return known


def candidate_key(known_bits: int, candidate: int) -> int:
    """
    Rebuild a full key from the voted subkey bits and one search candidate.

    Candidate bits 13..8 are the S-box 3 fragment and bits 7..0 fill the
    positions PC2 drops.
    """
    subkey = known_bits | ((candidate >> 8) & 0x3F) << sbox_shift(UNVOTED_SBOX)
    cd = inverse_pc2(subkey, candidate & 0xFF)
    c = rotate_right28(cd >> 28, SCHEDULE_ROTATION)
    d = rotate_right28(cd & HALF_MASK, SCHEDULE_ROTATION)
    return fix_parity(expand_key_bits(inverse_pc1((c << 28) | d)))


class _SearchState:
    """Lowest verified candidate seen so far, shared by search tasks."""

    def __init__(self, progress: Optional[ProgressFn]) -> None:
        self._lock = threading.Lock()
        self._progress = progress
        self.best: Optional[int] = None
        self.key: Optional[int] = None
        self.checked = 0

    def beaten(self, candidate: int) -> bool:
        with self._lock:
            return self.best is not None and candidate > self.best

    def offer(self, candidate: int, key: int) -> None:
        with self._lock:
            if self.best is None or candidate < self.best:
                self.best = candidate
                self.key = key

    def advance(self, checked: int) -> None:
        with self._lock:
            self.checked += checked
            total = self.checked
        if self._progress is not None:
            self._progress(total)


def _search_block(known_bits: int, verify: PairTuple, start: int, stop: int, state: _SearchState) -> None:
    pending = 0
    for candidate in range(start, stop):
        if state.beaten(candidate):
            break
        key = candidate_key(known_bits, candidate)
        pending += 1
        if decrypt(verify.y1, key, ATTACK_ROUNDS).ciphertext == verify.x1:
            state.offer(candidate, key)
            break
        if pending == SEARCH_PROGRESS_INTERVAL:
            state.advance(pending)
            pending = 0
    state.advance(pending)


def search_key(
    fragments: Mapping[int, int],
    verify: Optional[PairTuple],
    *,
    workers: int = 1,
    progress: Optional[ProgressFn] = None,
) -> SearchOutcome:
    """
    Try all 16384 completions of the voted subkey bits, lowest first, and
    return the first key that decrypts `verify.y1` back to `verify.x1`.
    """
    if verify is None:
        log.warning("no pair to verify candidates against")
        return SearchOutcome(SearchStatus.NO_PAIRS)

    known_bits = known_key_bits({s: f for s, f in fragments.items() if s != UNVOTED_SBOX})
    state = _SearchState(progress)
    blocks = [(start, min(start + SEARCH_BLOCK_SIZE, SEARCH_SPACE)) for start in range(0, SEARCH_SPACE, SEARCH_BLOCK_SIZE)]

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(_search_block, known_bits, verify, start, stop, state)
                for start, stop in blocks
            ]
            for future in futures:
                future.result()
    else:
        for start, stop in blocks:
            _search_block(known_bits, verify, start, stop, state)
            if state.best is not None:
                break

    if state.best is None:
        log.info("search exhausted", candidates=SEARCH_SPACE)
        return SearchOutcome(SearchStatus.SEARCH_EXHAUSTED)

    log.info("key found", candidate=state.best, key=f"0x{state.key:016X}")
    return SearchOutcome(SearchStatus.KEY_FOUND, state.key, state.best)


def invalidate_nonconforming(pairs: PairSet, input_difference: int) -> int:
    """Mark pairs whose plaintexts do not differ by `input_difference`. Returns how many."""
    rejected = 0
    for pair in pairs:
        if pair.valid and pair.input_difference != input_difference:
            pair.invalidate()
            rejected += 1
    return rejected


def first_valid(pairs: Sequence[PairTuple]) -> Optional[PairTuple]:
    return next((pair for pair in pairs if pair.valid), None)


def recover_key(
    pairs_char1: PairSet,
    pairs_char2: PairSet,
    *,
    characteristics: Sequence[Characteristic] = (CHARACTERISTIC_ONE, CHARACTERISTIC_TWO),
    workers: int = 1,
    progress: Optional[ProgressFn] = None,
) -> RecoveryResult:
    """Vote both pair sets, merge the fragments and search the rest of the key."""
    char1, char2 = characteristics
    for pairs, characteristic in ((pairs_char1, char1), (pairs_char2, char2)):
        rejected = invalidate_nonconforming(pairs, characteristic.input_difference)
        if rejected:
            log.warning("pairs ignored", characteristic=characteristic.name, rejected=rejected)

    char1_votes = vote_key_bits(pairs_char1, char1)
    char2_votes = vote_key_bits(pairs_char2, char2)
    fragments = merge_fragments(char1_votes, char2_votes)

    outcome = search_key(fragments, first_valid(pairs_char1), workers=workers, progress=progress)
    return RecoveryResult(
        status=outcome.status,
        key=outcome.key,
        candidate=outcome.candidate,
        char1_votes=char1_votes,
        char2_votes=char2_votes,
        fragments=fragments,
    )
