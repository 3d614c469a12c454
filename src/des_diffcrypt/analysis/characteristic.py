from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True, slots=True)
class Characteristic:
    """A two-round iterative characteristic for 6-round DES.

    Right pairs see `round_difference` out of F in rounds one and three.
    `final_round_constant` is the part of the last round's left-half
    difference that does not come from the last F, so XORing it away
    from the ciphertext difference leaves the expected F output difference.
    """

    name: str
    input_difference: int
    round1_difference: int
    round3_difference: int
    final_round_constant: int
    sboxes: Tuple[int, ...]

    def __str__(self) -> str:
        return f"{self.name} (0x{self.input_difference:016X})"


CHARACTERISTIC_ONE = Characteristic(
    name="char1",
    input_difference=0x4008000004000000,
    round1_difference=0x40080000,
    round3_difference=0x40080000,
    final_round_constant=0x04000000,
    sboxes=(2, 5, 6, 7, 8),
)

CHARACTERISTIC_TWO = Characteristic(
    name="char2",
    input_difference=0x0020000800000400,
    round1_difference=0x00200008,
    round3_difference=0x00200008,
    final_round_constant=0x00000400,
    sboxes=(1, 2, 4, 5, 6),
)

CHARACTERISTICS = (CHARACTERISTIC_ONE, CHARACTERISTIC_TWO)
