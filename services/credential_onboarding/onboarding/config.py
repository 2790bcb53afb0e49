import os

LEDGER_PROVIDER = os.getenv("LEDGER_PROVIDER", "solana").lower()
SOLANA_RPC_URL = os.getenv("SOLANA_RPC_URL", "https://api.devnet.solana.com")
PROGRAM_ID = os.getenv("PROGRAM_ID", "FFQUgGaWxQFGnCe3VBmRZ259wtWHxjkpCqePouiyfzH5")
WALLET_SECRET_KEY = os.getenv("WALLET_SECRET_KEY", "")

LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()

# --- Funding ---
# 1 SOL = 1_000_000_000 lamports
LAMPORTS_PER_SOL = 1_000_000_000
MIN_FUNDING_LAMPORTS = int(os.getenv("MIN_FUNDING_LAMPORTS", "10000000"))
AIRDROP_LAMPORTS = int(os.getenv("AIRDROP_LAMPORTS", "1000000000"))

# --- Timeouts (seconds) ---
PROBE_TIMEOUT_SECS = float(os.getenv("PROBE_TIMEOUT_SECS", "15"))
WRITE_TIMEOUT_SECS = float(os.getenv("WRITE_TIMEOUT_SECS", "90"))
CONFIRM_POLL_SECS = float(os.getenv("CONFIRM_POLL_SECS", "0.5"))

# Reads are bounded to [10, 30]s
PROBE_TIMEOUT_SECS = min(max(PROBE_TIMEOUT_SECS, 10.0), 30.0)

if WRITE_TIMEOUT_SECS < PROBE_TIMEOUT_SECS:
    WRITE_TIMEOUT_SECS = PROBE_TIMEOUT_SECS

# --- Default resource fields ---
ISSUER_NAME = os.getenv("ISSUER_NAME", "UnB Campus Virtual")
ISSUER_URL = os.getenv("ISSUER_URL", "https://unb.br")
ISSUER_EMAIL = os.getenv("ISSUER_EMAIL", "campus-virtual@unb.br")

DEFAULT_ACHIEVEMENT_NAME = os.getenv("DEFAULT_ACHIEVEMENT_NAME", "Campus Explorer")
DEFAULT_ACHIEVEMENT_DESCRIPTION = os.getenv(
    "DEFAULT_ACHIEVEMENT_DESCRIPTION",
    "Awarded for exploring the virtual campus",
)
DEFAULT_ACHIEVEMENT_CRITERIA = os.getenv(
    "DEFAULT_ACHIEVEMENT_CRITERIA",
    "Talk to the campus guides and visit the different areas of the virtual campus",
)
