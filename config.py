import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Environment configuration
ENV = os.getenv("VIDGEN_ENV", "p").lower()
if ENV not in ["d", "p"]:
    raise ValueError("VIDGEN_ENV must be either 'd' (development) or 'p' (production)")

# API Keys
# NOTE: Keys are optional at import time so the API can boot without every
# integration; each service raises a configuration error when its key is missing.
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
COINMARKETCAP_API_KEY = os.getenv("COINMARKETCAP_API_KEY")

PINATA_API_KEY = os.getenv("PINATA_API_KEY")
PINATA_API_SECRET = os.getenv("PINATA_API_SECRET")
PINATA_JWT = os.getenv("PINATA_JWT")

# Google Veo video generation
VEO_MODEL = os.getenv("VEO_MODEL", "veo-2.0-generate-001")

# IPFS pinning
PINATA_API_URL = "https://api.pinata.cloud"
PINATA_GATEWAY = os.getenv("PINATA_GATEWAY", "gateway.pinata.cloud")

# Chain (LUKSO testnet by default)
CHAIN_ID = int(os.getenv("CHAIN_ID", "4201"))
CHAIN_RPC_URL = os.getenv("CHAIN_RPC_URL", "https://rpc.testnet.lukso.network")
CHAIN_EXPLORER_URL = os.getenv(
    "CHAIN_EXPLORER_URL", "https://explorer.execution.testnet.lukso.network"
)
CHAIN_EXPLORER_API_URL = os.getenv(
    "CHAIN_EXPLORER_API_URL", f"{CHAIN_EXPLORER_URL}/api/v2"
)
NATIVE_TOKEN = os.getenv("NATIVE_TOKEN", "lyx")

# Payment settings
PAYMENT_ADDRESS = os.getenv(
    "PAYMENT_ADDRESS", "0x49A3E8389aF513d629A462bFfBc9D93B3536f088"
)
WALLET_PRIVATE_KEY = os.getenv("WALLET_PRIVATE_KEY")

# Fallback amount (in native token) used when the price lookup fails
DEFAULT_PAYMENT_AMOUNT = os.getenv("DEFAULT_PAYMENT_AMOUNT", "0.5")
TARGET_USD_AMOUNT = float(os.getenv("TARGET_USD_AMOUNT", "0.5"))
# When set, pricing is per second of generated video instead of a flat rate
USD_PER_SECOND = (
    float(os.getenv("USD_PER_SECOND")) if os.getenv("USD_PER_SECOND") else None
)

# Base URL of this API, used by the workflow client
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8080")

# Project root directory
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))

# Temporary files (downloaded videos, uploaded images) live here until pinned
UPLOADS_DIR = os.path.join(PROJECT_ROOT, "uploads")
