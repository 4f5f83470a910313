# config.py - Supply Schedule Service Configuration

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if present
env_path = Path(__file__).parent / '.env'
if env_path.exists():
    load_dotenv(env_path)
    print(f"[CONFIG] Loaded .env from {env_path}")

# ============================================
# SERVICE IDENTITY
# ============================================
SERVICE_NAME = "supply-schedule"
SERVICE_VERSION = "1.0.0"

# ============================================
# SCHEDULE SETTINGS
# ============================================
# Epoch at which period 0 begins (seconds since Unix epoch)
# 2019-03-06T00:00:00Z
INFLATION_START_TIME = int(os.getenv("INFLATION_START_TIME", "1551830400"))

# ============================================
# LEDGER SETTINGS
# ============================================
LEDGER_URL = os.getenv("LEDGER_URL", "http://localhost:8545")
LEDGER_API_KEY = os.getenv("LEDGER_API_KEY")  # Optional bearer token for the ledger
API_TIMEOUT_SECONDS = int(os.getenv("API_TIMEOUT_SECONDS", "10"))

# Account that receives scheduled issuance
ISSUANCE_RECIPIENT = os.getenv("ISSUANCE_RECIPIENT", "rewards-distribution")

# ============================================
# ACCESS CONTROL
# ============================================
# Only the issuer may trigger issuance; only operators may change settings
ISSUER_ID = os.getenv("ISSUER_ID", "issuer")
ISSUER_API_KEY = os.getenv("ISSUER_API_KEY")
OPERATOR_API_KEY = os.getenv("OPERATOR_API_KEY")

# ============================================
# OPERATOR CONFIG STORAGE
# ============================================
CONFIG_DIR = Path(os.getenv("CONFIG_DIR", str(Path.home() / ".supply-schedule")))
# Ed25519 public key (hex) that signs remote config updates
CONFIG_TRUSTED_PUBLIC_KEY = os.getenv("CONFIG_TRUSTED_PUBLIC_KEY")

# ============================================
# HTTP SERVER
# ============================================
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))
