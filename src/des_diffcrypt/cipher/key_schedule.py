import random
from typing import Optional, Tuple, TypeAlias

from des_diffcrypt.cipher.permutation import PC1, PC1_INV, PC2, PC2_INV


MAX_ROUNDS = 16
HALF_MASK = (1 << 28) - 1

# Left rotation applied to C and D before each round's PC2.
ROTATION_SCHEDULE = (1, 1, 2, 2, 2, 2, 2, 2, 1, 2, 2, 2, 2, 2, 2, 1)

RoundKeySet: TypeAlias = Tuple[int, ...]


class InvalidRoundCountError(ValueError):
    pass


def check_rounds(rounds: int) -> None:
    if not 1 <= rounds <= MAX_ROUNDS:
        raise InvalidRoundCountError(f"round count must be 1..{MAX_ROUNDS}, got {rounds}")


def rotate_left28(value: int, amount: int) -> int:
    return ((value << amount) | (value >> (28 - amount))) & HALF_MASK


def rotate_right28(value: int, amount: int) -> int:
    return ((value >> amount) | (value << (28 - amount))) & HALF_MASK


def cumulative_rotation(rounds: int) -> int:
    """Total left rotation C and D have seen by the end of `rounds` rounds."""
    check_rounds(rounds)
    return sum(ROTATION_SCHEDULE[:rounds])


def round_keys(key: int, rounds: int) -> RoundKeySet:
    """Derive the 48-bit subkeys for `rounds` encryption rounds."""
    check_rounds(rounds)
    cd = PC1.apply(key)
    c, d = cd >> 28, cd & HALF_MASK

    keys = []
    for shift in ROTATION_SCHEDULE[:rounds]:
        c = rotate_left28(c, shift)
        d = rotate_left28(d, shift)
        keys.append(PC2.apply((c << 28) | d))
    return tuple(keys)


def decryption_round_keys(key: int, rounds: int) -> RoundKeySet:
    return tuple(reversed(round_keys(key, rounds)))


def inverse_pc1(value: int) -> int:
    """Undo PC1 on a 56-bit C||D word, giving the 56 effective key bits."""
    return PC1_INV.apply(value)


def inverse_pc2(known_bits: int, guess_bits: int) -> int:
    """Undo PC2 on a 48-bit subkey.

    The eight C||D bits PC2 discards are taken from `guess_bits`, most
    significant guess bit into the earliest missing position.
    """
    return PC2_INV.apply(known_bits, guess_bits & 0xFF)


def expand_key_bits(bits56: int) -> int:
    """Spread 56 key bits over the high seven bits of each byte. Parity bits are left zero."""
    key = 0
    for i in range(8):
        group = (bits56 >> (7 * (7 - i))) & 0x7F
        key |= group << (8 * (7 - i) + 1)
    return key


def fix_parity(key: int) -> int:
    """Set the low bit of every byte so each byte has an odd number of ones."""
    fixed = 0
    for i in range(8):
        byte = (key >> (8 * i)) & 0xFE
        if bin(byte).count("1") % 2 == 0:
            byte |= 1
        fixed |= byte << (8 * i)
    return fixed


def has_odd_parity(key: int) -> bool:
    return all(bin((key >> (8 * i)) & 0xFF).count("1") % 2 == 1 for i in range(8))


def generate_key(rng: Optional[random.Random] = None) -> int:
    """A random 64-bit key with correct odd parity."""
    rng = rng or random.Random()
    return fix_parity(rng.getrandbits(64))
