# Round count of the attacked cipher.
ATTACK_ROUNDS = 6

# Plaintext pairs tried per characteristic. Roughly one in sixteen survives.
DEFAULT_PAIR_COUNT = 20000

# Trials handed to each pair generation task.
PAIR_CHUNK_SIZE = 2500

# 6 bits of S-box 3 plus the 8 bits PC2 drops.
SEARCH_SPACE = 1 << 14

# Candidates per search task, and how often progress is reported.
SEARCH_BLOCK_SIZE = 1024
SEARCH_PROGRESS_INTERVAL = 256

PAIR_SEPARATOR = "-" * 20
NOT_FOUND_MARKER = "NOT FOUND"

ENV_PREFIX = "DES_DIFFCRYPT"
DEMO_API_URL = "http://127.0.0.1:8000"
DEMO_KEY_ENV = f"{ENV_PREFIX}_DEMO_KEY"
