from dataclasses import dataclass, field
from typing import Mapping, Sequence

from des_diffcrypt.cipher.key_schedule import check_rounds, decryption_round_keys, round_keys
from des_diffcrypt.cipher.permutation import E, IP, IP_INV
from des_diffcrypt.cipher.sbox import SP_BOXES


MASK32 = 0xFFFFFFFF
MASK64 = 0xFFFFFFFFFFFFFFFF

# Round indices (0-based) whose F output is reported back to the caller.
RECORDED_ROUNDS = frozenset({0, 2, 3})

_S1, _S2, _S3, _S4, _S5, _S6, _S7, _S8 = SP_BOXES


@dataclass(frozen=True, slots=True)
class CipherResult:
    """Output block plus the F outputs recorded while producing it."""

    ciphertext: int
    f_outputs: Mapping[int, int] = field(default_factory=dict)

    def f_output(self, round_index: int) -> int:
        return self.f_outputs[round_index]


def feistel(right: int, subkey: int) -> int:
    """F(R, K) = P(S(E(R) ^ K))."""
    x = E.apply(right) ^ subkey
    return (
        _S1[(x >> 42) & 0x3F]
        | _S2[(x >> 36) & 0x3F]
        | _S3[(x >> 30) & 0x3F]
        | _S4[(x >> 24) & 0x3F]
        | _S5[(x >> 18) & 0x3F]
        | _S6[(x >> 12) & 0x3F]
        | _S7[(x >> 6) & 0x3F]
        | _S8[x & 0x3F]
    )


def run_rounds(block: int, subkeys: Sequence[int]) -> CipherResult:
    """Feistel network over `subkeys`. The halves are not swapped after the last round."""
    left = (block >> 32) & MASK32
    right = block & MASK32
    last = len(subkeys) - 1
    recorded = RECORDED_ROUNDS | {last}
    f_outputs = {}

    for i, subkey in enumerate(subkeys):
        f = feistel(right, subkey)
        if i in recorded:
            f_outputs[i] = f
        if i == last:
            left ^= f
        else:
            left, right = right, left ^ f

    return CipherResult(ciphertext=(left << 32) | right, f_outputs=f_outputs)


def encrypt(plaintext: int, key: int, rounds: int, *, standard: bool = False) -> CipherResult:
    """Encrypt one 64-bit block with `rounds` rounds.

    Attack mode (the default) runs the bare Feistel core. With `standard=True`
    the core is wrapped in IP and IP^-1, which gives textbook DES at 16 rounds.
    """
    check_rounds(rounds)
    block = plaintext & MASK64
    if standard:
        block = IP.apply(block)
    result = run_rounds(block, round_keys(key, rounds))
    if standard:
        return CipherResult(IP_INV.apply(result.ciphertext), result.f_outputs)
    return result


def decrypt(ciphertext: int, key: int, rounds: int, *, standard: bool = False) -> CipherResult:
    check_rounds(rounds)
    block = ciphertext & MASK64
    if standard:
        block = IP.apply(block)
    result = run_rounds(block, decryption_round_keys(key, rounds))
    if standard:
        return CipherResult(IP_INV.apply(result.ciphertext), result.f_outputs)
    return result
