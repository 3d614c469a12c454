import os
import random
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query
import structlog

from des_diffcrypt.cipher.key_schedule import generate_key
from des_diffcrypt.config import ATTACK_ROUNDS, DEFAULT_PAIR_COUNT, DEMO_KEY_ENV, PAIR_SEPARATOR
from des_diffcrypt.interchange import generate_pair_text, parse_key
from des_diffcrypt.log_config import configure_logging

from . import models

MAX_PAIR_COUNT = 200000

configure_logging("INFO", json=True)
log = structlog.get_logger(__name__)

# Create the FastAPI app
app = FastAPI(title="Differential Cryptanalysis Demo API")

# Create the router for API endpoints
router = APIRouter()


@lru_cache(maxsize=1)
def get_secret_key() -> int:
    """ The key the client is trying to recover. Fixed for the life of the process. """
    configured = os.environ.get(DEMO_KEY_ENV)
    if configured:
        key = parse_key(configured)
        log.info("secret key loaded", source=DEMO_KEY_ENV)
    else:
        key = generate_key()
        log.info("secret key generated")
    return key


@router.get("/pairs", response_model=models.PairsResponse)
def pairs(
    count: int = Query(DEFAULT_PAIR_COUNT, ge=1, le=MAX_PAIR_COUNT),
    seed: Optional[int] = None,
    key: int = Depends(get_secret_key),
):
    """ Right pairs for both characteristics under the secret key.
    Each line is x1;x2;y1;y2 and a line of dashes separates the two sets.
    """
    text = generate_pair_text(key, count, rng=random.Random(seed))
    lines = text.split("\n")
    separator_index = lines.index(PAIR_SEPARATOR)
    response = models.PairsResponse(
        rounds=ATTACK_ROUNDS,
        trials=count,
        char1_count=separator_index,
        char2_count=len(lines) - separator_index - 1,
        lines=lines,
    )
    log.info(
        "pairs served",
        trials=count,
        seed=seed,
        char1_count=response.char1_count,
        char2_count=response.char2_count,
    )
    return response


@router.post("/verify", response_model=models.VerifyResponse)
def verify(req: models.VerifyRequest, key: int = Depends(get_secret_key)):
    """ Report whether the submitted key is the secret one. """
    try:
        submitted = parse_key(req.key)
    except ValueError as e:
        log.warning("bad key submitted", key=req.key)
        raise HTTPException(status_code=400, detail=f"Invalid key: {e}")

    valid = submitted == key
    log.info("key checked", valid=valid)
    return models.VerifyResponse(valid=valid)


# Include the router in the app (after all routes are defined)
app.include_router(router, prefix="/api")
