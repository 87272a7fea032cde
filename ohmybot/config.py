import os
from pathlib import Path

# ======== CONFIG: every value can be overridden from the environment ========
PORT = int(os.getenv("PORT", "3978"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

APP_ID = os.getenv("MICROSOFT_APP_ID", "")              # leave "" for local Emulator without auth
APP_PW = os.getenv("MICROSOFT_APP_PASSWORD", "")

TRANSLATOR_KEY = os.getenv("TRANSLATOR_KEY", "")
TRANSLATOR_REGION = os.getenv("TRANSLATOR_REGION", "")
TRANSLATOR_ENDPOINT = os.getenv("TRANSLATOR_ENDPOINT", "").rstrip("/")
SOURCE_LOCALE = os.getenv("OHMYBOT_SOURCE_LOCALE", "en")
PIVOT_LOCALE = os.getenv("OHMYBOT_PIVOT_LOCALE", "de")

CLU_ENDPOINT = os.getenv("CLU_ENDPOINT", "").rstrip("/")
CLU_API_KEY = os.getenv("CLU_API_KEY", "")
CLU_PROJECT_NAME = os.getenv("CLU_PROJECT_NAME", "")
CLU_DEPLOYMENT_NAME = os.getenv("CLU_DEPLOYMENT_NAME", "")
CLU_CONF_THRESHOLD = float(os.getenv("CLU_CONF_THRESHOLD", "0.50"))


def _optional_seconds(name):
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else None


LOOKBACK_SECONDS = _optional_seconds("OHMYBOT_LOOKBACK_SECONDS")  # None: no recency window
CLARIFY_DELAY_SECONDS = float(os.getenv("OHMYBOT_CLARIFY_DELAY_SECONDS", "1.0"))
CLARIFY_TTL_SECONDS = float(os.getenv("OHMYBOT_CLARIFY_TTL_SECONDS", "86400"))  # unanswered clarifications expire

BASE_DIR = Path(__file__).resolve().parent.parent
TRAFFIC_LOG = os.getenv("OHMYBOT_TRAFFIC_LOG", str(BASE_DIR / "traffic.log"))
# ============================================================================


def clu_configured():
    return all((CLU_ENDPOINT, CLU_API_KEY, CLU_PROJECT_NAME, CLU_DEPLOYMENT_NAME))
