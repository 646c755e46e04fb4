import os

# Ledger
RPC_URL = os.environ.get("RPC_URL", "https://testnet.riselabs.xyz")
CHAIN_ID = int(os.environ.get("CHAIN_ID", "11155931"))
RPC_TIMEOUT = float(os.environ.get("RPC_TIMEOUT", "10"))
BLOCK_TAG = os.environ.get("BLOCK_TAG", "latest")
PROBE_PAYLOAD = b"\x01"

# Burner account
BURNER_KEY = os.environ.get("BURNER_KEY")
WALLET_FILE = os.environ.get("WALLET_FILE", "burner.json")
WALLET_PASSWORD = os.environ.get("WALLET_PASSWORD")

# Pre-signed pool
POOL_BATCH_SIZE = int(os.environ.get("POOL_BATCH_SIZE", "10"))
POOL_REFILL_SIZE = int(os.environ.get("POOL_REFILL_SIZE", str(POOL_BATCH_SIZE)))
POOL_LOW_WATER_FRACTION = float(os.environ.get("POOL_LOW_WATER_FRACTION", "0.5"))
POOL_REFILL_TRIGGER = os.environ.get("POOL_REFILL_TRIGGER", "interval")

# Game
GAME_ROUNDS = int(os.environ.get("GAME_ROUNDS", "5"))
SIGNAL_DELAY_MIN = float(os.environ.get("SIGNAL_DELAY_MIN", "1.0"))
SIGNAL_DELAY_MAX = float(os.environ.get("SIGNAL_DELAY_MAX", "5.0"))
# Compensates for browser render delay between signal and paint
REACTION_ADJUSTMENT_MS = int(os.environ.get("REACTION_ADJUSTMENT_MS", "100"))

# Service
WEB_HOST = os.environ.get("WEB_HOST", "0.0.0.0")
WEB_PORT = int(os.environ.get("WEB_PORT", "8080"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FILE = os.environ.get("LOG_FILE")
