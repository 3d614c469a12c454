import threading
from typing import Optional

import structlog

from des_diffcrypt.analysis.characteristic import CHARACTERISTIC_ONE, CHARACTERISTIC_TWO
from des_diffcrypt.analysis.recovery import (
    AttackPhase,
    RecoveryResult,
    SearchStatus,
    first_valid,
    invalidate_nonconforming,
    merge_fragments,
    search_key,
)
from des_diffcrypt.analysis.voter import VoteResult, vote_key_bits
from des_diffcrypt.config import SEARCH_SPACE
from des_diffcrypt.models.pair import PairSet
from des_diffcrypt.state_queue import SingleSlotQueue
from des_diffcrypt.state_snapshot import AttackSnapshot, FragmentRow


log = structlog.get_logger(__name__)


def _rows(fragments: dict) -> FragmentRow:
    return tuple(sorted(fragments.items()))


class AttackSolver:
    """Runs the key recovery step by step, publishing a snapshot after each one."""

    def __init__(self, state_queue: SingleSlotQueue[AttackSnapshot], *, workers: int = 1) -> None:
        self.state_queue = state_queue
        self.workers = workers
        self.phase = AttackPhase.IDLE
        self._version = 0
        self._lock = threading.Lock()
        self._char1_votes: Optional[VoteResult] = None
        self._char2_votes: Optional[VoteResult] = None
        self._char1_pairs = 0
        self._char2_pairs = 0
        self._fragments: dict = {}

    def _publish(self, phase: AttackPhase, **fields) -> None:
        with self._lock:
            self._version += 1
            self.phase = phase
            snapshot = AttackSnapshot(
                state_version=self._version,
                phase=phase,
                char1_pairs=self._char1_pairs,
                char2_pairs=self._char2_pairs,
                char1_fragments=_rows(self._char1_votes.fragments) if self._char1_votes else (),
                char2_fragments=_rows(self._char2_votes.fragments) if self._char2_votes else (),
                fragments=_rows(self._fragments),
                **fields,
            )
            self.state_queue.publish(snapshot)

    def _on_progress(self, checked: int) -> None:
        self._publish(AttackPhase.SEARCHING, candidates_checked=checked)

    def run(self, pairs_char1: PairSet, pairs_char2: PairSet) -> RecoveryResult:
        """
        Idle -> PairsLoaded -> Char1Voted -> Char2Voted -> Searching
        -> KeyFound | SearchExhausted.
        The queue is always closed on the way out so the UI can exit.
        """
        try:
            self._publish(AttackPhase.IDLE)

            for pairs, characteristic in ((pairs_char1, CHARACTERISTIC_ONE), (pairs_char2, CHARACTERISTIC_TWO)):
                rejected = invalidate_nonconforming(pairs, characteristic.input_difference)
                if rejected:
                    log.warning("pairs ignored", characteristic=characteristic.name, rejected=rejected)
            self._char1_pairs = sum(pair.valid for pair in pairs_char1)
            self._char2_pairs = sum(pair.valid for pair in pairs_char2)
            log.info("pairs loaded", char1=self._char1_pairs, char2=self._char2_pairs)
            self._publish(AttackPhase.PAIRS_LOADED)

            self._char1_votes = vote_key_bits(pairs_char1, CHARACTERISTIC_ONE)
            self._publish(AttackPhase.CHAR1_VOTED)

            self._char2_votes = vote_key_bits(pairs_char2, CHARACTERISTIC_TWO)
            self._publish(AttackPhase.CHAR2_VOTED)

            fragments = merge_fragments(self._char1_votes, self._char2_votes)
            self._fragments = fragments
            self._publish(AttackPhase.SEARCHING)
            outcome = search_key(
                fragments,
                first_valid(pairs_char1),
                workers=self.workers,
                progress=self._on_progress,
            )

            result = RecoveryResult(
                status=outcome.status,
                key=outcome.key,
                candidate=outcome.candidate,
                char1_votes=self._char1_votes,
                char2_votes=self._char2_votes,
                fragments=fragments,
            )
            final_phase = AttackPhase.KEY_FOUND if result.status is SearchStatus.KEY_FOUND else AttackPhase.SEARCH_EXHAUSTED
            checked = 0
            if result.found:
                checked = result.candidate + 1
            elif result.status is SearchStatus.SEARCH_EXHAUSTED:
                checked = SEARCH_SPACE
            self._publish(
                final_phase,
                complete=True,
                key=result.key,
                candidates_checked=checked,
            )
            return result
        except Exception:
            log.exception("attack failed", phase=self.phase.value)
            raise
        finally:
            # Always close the queue so the UI can exit
            self.state_queue.close()


def solve_pairs(
    pairs_char1: PairSet,
    pairs_char2: PairSet,
    state_queue: SingleSlotQueue[AttackSnapshot],
    *,
    workers: int = 1,
) -> RecoveryResult:
    """Run one attack, publishing progress to `state_queue`."""
    return AttackSolver(state_queue, workers=workers).run(pairs_char1, pairs_char2)
