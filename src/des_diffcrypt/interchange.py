"""Line protocol for plaintext/ciphertext pairs.

Each data line is ``x1;x2;y1;y2`` in signed 64-bit decimal. A line of twenty
dashes separates the first characteristic's pairs from the second's.
"""
import random
from typing import Iterable, List, Optional, Sequence, Tuple

import structlog
from pydantic import BaseModel, Field, ValidationError

from des_diffcrypt.analysis.characteristic import CHARACTERISTIC_ONE, CHARACTERISTIC_TWO
from des_diffcrypt.analysis.pair_generator import generate_pairs
from des_diffcrypt.config import DEFAULT_PAIR_COUNT, NOT_FOUND_MARKER, PAIR_SEPARATOR
from des_diffcrypt.models.pair import PairSet, PairTuple


log = structlog.get_logger(__name__)

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1
UINT64_MASK = (1 << 64) - 1

FIELD_SEPARATOR = ";"


class PairFormatError(ValueError):
    def __init__(self, line_number: int, message: str) -> None:
        super().__init__(f"line {line_number}: {message}")
        self.line_number = line_number


def to_signed64(value: int) -> int:
    value &= UINT64_MASK
    return value - (1 << 64) if value > INT64_MAX else value


def to_unsigned64(value: int) -> int:
    return value & UINT64_MASK


def parse_key(text: str) -> int:
    """Key from signed or unsigned decimal, or 0x-prefixed hex."""
    text = text.strip()
    value = int(text, 16) if text.lower().startswith(("0x", "-0x")) else int(text)
    if not INT64_MIN <= value <= UINT64_MASK:
        raise ValueError(f"key out of 64-bit range: {text}")
    return to_unsigned64(value)


def format_key(key: Optional[int]) -> str:
    """Signed decimal key, or the not-found marker."""
    if key is None:
        return NOT_FOUND_MARKER
    return str(to_signed64(key))


class PairRecord(BaseModel):
    x1: int = Field(ge=INT64_MIN, le=INT64_MAX)
    x2: int = Field(ge=INT64_MIN, le=INT64_MAX)
    y1: int = Field(ge=INT64_MIN, le=INT64_MAX)
    y2: int = Field(ge=INT64_MIN, le=INT64_MAX)

    @classmethod
    def from_line(cls, line: str) -> "PairRecord":
        fields = [part.strip() for part in line.strip().split(FIELD_SEPARATOR)]
        if len(fields) != 4:
            raise ValueError(f"expected 4 fields separated by '{FIELD_SEPARATOR}', got {len(fields)}")
        return cls(x1=fields[0], x2=fields[1], y1=fields[2], y2=fields[3])

    @classmethod
    def from_pair(cls, pair: PairTuple) -> "PairRecord":
        return cls(
            x1=to_signed64(pair.x1),
            x2=to_signed64(pair.x2),
            y1=to_signed64(pair.y1),
            y2=to_signed64(pair.y2),
        )

    def to_pair(self) -> PairTuple:
        return PairTuple(self.x1, self.x2, self.y1, self.y2)

    def to_line(self) -> str:
        return FIELD_SEPARATOR.join(str(v) for v in (self.x1, self.x2, self.y1, self.y2))


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]


def parse_pair_lines(lines: Iterable[str]) -> Tuple[PairSet, PairSet]:
    """Split interchange lines into the two characteristics' pair sets."""
    sets: Tuple[PairSet, PairSet] = ([], [])
    section = 0
    for line_number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped:
            continue
        if stripped == PAIR_SEPARATOR:
            if section == 1:
                raise PairFormatError(line_number, "second separator line")
            section = 1
            continue
        try:
            record = PairRecord.from_line(stripped)
        except ValidationError as e:
            raise PairFormatError(line_number, _validation_message(e)) from e
        except ValueError as e:
            raise PairFormatError(line_number, str(e)) from e
        sets[section].append(record.to_pair())

    log.debug("pairs parsed", char1=len(sets[0]), char2=len(sets[1]))
    return sets


def parse_pair_text(text: str) -> Tuple[PairSet, PairSet]:
    return parse_pair_lines(text.splitlines())


def format_pair_lines(pairs_char1: Sequence[PairTuple], pairs_char2: Sequence[PairTuple]) -> List[str]:
    lines = [PairRecord.from_pair(pair).to_line() for pair in pairs_char1]
    lines.append(PAIR_SEPARATOR)
    lines.extend(PairRecord.from_pair(pair).to_line() for pair in pairs_char2)
    return lines


def format_pair_text(pairs_char1: Sequence[PairTuple], pairs_char2: Sequence[PairTuple]) -> str:
    return "\n".join(format_pair_lines(pairs_char1, pairs_char2))


def generate_pair_text(
    key: int,
    count: int = DEFAULT_PAIR_COUNT,
    *,
    rng: Optional[random.Random] = None,
    seed: Optional[int] = None,
    workers: int = 1,
) -> str:
    """Right pairs for both characteristics under `key`, as one interchange document."""
    if rng is None:
        rng = random.Random(seed)
    pairs_char1 = generate_pairs(CHARACTERISTIC_ONE, key, count, rng=rng, workers=workers)
    pairs_char2 = generate_pairs(CHARACTERISTIC_TWO, key, count, rng=rng, workers=workers)
    return format_pair_text(pairs_char1, pairs_char2)
