from typing import List

from pydantic import BaseModel


class PairsResponse(BaseModel):
    rounds: int
    trials: int
    char1_count: int
    char2_count: int
    lines: List[str]


class VerifyRequest(BaseModel):
    # Decimal (signed or unsigned) or 0x-prefixed hex.
    key: str


class VerifyResponse(BaseModel):
    valid: bool
