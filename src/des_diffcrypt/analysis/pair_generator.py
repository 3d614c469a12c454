import random
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

import structlog

from des_diffcrypt.analysis.characteristic import Characteristic
from des_diffcrypt.cipher.engine import CipherResult, run_rounds
from des_diffcrypt.cipher.key_schedule import round_keys
from des_diffcrypt.config import ATTACK_ROUNDS, DEFAULT_PAIR_COUNT, PAIR_CHUNK_SIZE
from des_diffcrypt.models.pair import PairSet, PairTuple


log = structlog.get_logger(__name__)


class InvalidPairCountError(ValueError):
    pass


def is_right_pair(first: CipherResult, second: CipherResult, characteristic: Characteristic) -> bool:
    """True when both encryptions followed the characteristic through rounds one and three."""
    return (
        first.f_outputs[0] ^ second.f_outputs[0] == characteristic.round1_difference
        and first.f_outputs[2] ^ second.f_outputs[2] == characteristic.round3_difference
    )


def _generate_chunk(
    characteristic: Characteristic,
    subkeys: Sequence[int],
    trials: int,
    seed: int,
) -> List[PairTuple]:
    rng = random.Random(seed)
    difference = characteristic.input_difference
    pairs = []
    for _ in range(trials):
        x1 = rng.getrandbits(64)
        x2 = x1 ^ difference
        first = run_rounds(x1, subkeys)
        second = run_rounds(x2, subkeys)
        if is_right_pair(first, second, characteristic):
            pairs.append(PairTuple(x1, x2, first.ciphertext, second.ciphertext))
    return pairs


def generate_pairs(
    characteristic: Characteristic,
    key: int,
    count: int = DEFAULT_PAIR_COUNT,
    *,
    rng: Optional[random.Random] = None,
    seed: Optional[int] = None,
    workers: int = 1,
) -> PairSet:
    """
    Encrypt `count` random plaintext pairs with the characteristic's input
    difference under 6-round DES and keep only the right pairs.

    Trials are cut into fixed-size chunks, each with its own generator seeded
    from `rng` in chunk order, so the result for a given seed does not depend
    on `workers`.
    """
    if count < 0:
        raise InvalidPairCountError(f"pair count must not be negative, got {count}")
    if rng is None:
        rng = random.Random(seed)

    subkeys = round_keys(key, ATTACK_ROUNDS)
    chunks = [
        (min(PAIR_CHUNK_SIZE, count - start), rng.getrandbits(64))
        for start in range(0, count, PAIR_CHUNK_SIZE)
    ]

    if workers > 1 and len(chunks) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(
                lambda chunk: _generate_chunk(characteristic, subkeys, *chunk),
                chunks,
            ))
    else:
        results = [_generate_chunk(characteristic, subkeys, *chunk) for chunk in chunks]

    pairs = [pair for chunk_pairs in results for pair in chunk_pairs]
    log.info(
        "pairs generated",
        characteristic=characteristic.name,
        trials=count,
        right_pairs=len(pairs),
        workers=workers,
    )
    return pairs
