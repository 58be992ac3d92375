"""Configuration for the support decision engine (environment-driven)."""

import os

REDIS_URL: str = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
REDIS_CONN_TIMEOUT: int = int(os.environ.get("REDIS_CONN_TIMEOUT", "2"))
# Optional: Slack or Discord webhook URL; if set, cases routed to a human trigger a POST.
WEBHOOK_URL: str = os.environ.get("WEBHOOK_URL", "")

# --- Text generation (Ollama) ---
OLLAMA_HOST: str = os.environ.get("OLLAMA_HOST", "http://127.0.0.1:11434")
OLLAMA_MODEL: str = os.environ.get("OLLAMA_MODEL", "llama3.1:8b")
GENERATION_TIMEOUT_SECONDS: float = float(os.environ.get("GENERATION_TIMEOUT_SECONDS", "60"))
ANALYSIS_TEMPERATURE: float = float(os.environ.get("ANALYSIS_TEMPERATURE", "0.2"))
ANALYSIS_MAX_TOKENS: int = int(os.environ.get("ANALYSIS_MAX_TOKENS", "512"))
CHAT_TEMPERATURE: float = float(os.environ.get("CHAT_TEMPERATURE", "0.7"))
CHAT_MAX_TOKENS: int = int(os.environ.get("CHAT_MAX_TOKENS", "2048"))

# --- Decision engine ---
# Profiles that must pass e-mail verification before an account unlock.
VERIFICATION_PLAYER_IDS: frozenset[str] = frozenset(
    p.strip() for p in os.environ.get("VERIFICATION_PLAYER_IDS", "lannister-gold").split(",") if p.strip()
)
MIN_DESCRIPTION_LENGTH: int = int(os.environ.get("MIN_DESCRIPTION_LENGTH", "10"))

# --- Tickets ---
AUTOMATED_TICKET_PREFIX: str = os.environ.get("AUTOMATED_TICKET_PREFIX", "AR")
MANUAL_TICKET_PREFIX: str = os.environ.get("MANUAL_TICKET_PREFIX", "TK")
TICKET_TTL_SECONDS: int = int(os.environ.get("TICKET_TTL_SECONDS", "0"))  # 0 = keep forever

LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")
