"""Runtime configuration helpers read from the environment."""

import os
from typing import List

from dotenv import load_dotenv

# Honor a local .env file; real environment variables win.
load_dotenv(override=False)

SITE_NAME = "The Tech Deputies"

_DEFAULT_ORIGINS = [
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:8000",
    "https://thetechdeputies.com",
    "https://www.thetechdeputies.com",
]


def app_base_url() -> str:
    """Public base URL used to build links in emails."""
    return os.getenv("APP_BASE_URL", "http://localhost:3000").rstrip("/")


def cors_origins() -> List[str]:
    raw = os.getenv("CORS_ORIGINS", "")
    if not raw:
        return list(_DEFAULT_ORIGINS)
    return [o.strip() for o in raw.split(",") if o.strip()]


def session_ttl_hours() -> int:
    try:
        return max(1, int(os.getenv("SESSION_TTL_HOURS", str(24 * 7))))
    except ValueError:
        return 24 * 7


def bmad_project_root() -> str:
    return os.getenv("BMAD_PROJECT_ROOT", os.getcwd())


def acuity_configured_from_env() -> bool:
    return bool(os.getenv("ACUITY_USER_ID") and os.getenv("ACUITY_API_KEY"))


def email_delivery_mode() -> str:
    """``direct`` sends during the request; ``queue`` hands mail to the in-process email queue."""
    mode = os.getenv("EMAIL_DELIVERY", "direct").strip().lower()
    return mode if mode in ("direct", "queue") else "direct"
