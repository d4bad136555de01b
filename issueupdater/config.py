import os
from dotenv import load_dotenv

# Load params from .env file
load_dotenv()

VERSION = "0.1.0"

# Environment fallbacks for the connection part of a step configuration
JIRA_BASE_URL_ENV = "JIRA_BASE_URL"
JIRA_USER_ENV = "JIRA_USER"
JIRA_API_TOKEN_ENV = "JIRA_API_TOKEN"


def _env_bool(name: str, default: bool) -> bool:
    raw = str(os.getenv(name, "true" if default else "false")).strip().lower()
    return raw in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_jira_timeout_seconds() -> float:
    """Per-request timeout for every Jira REST call."""
    return max(0.1, _env_float("ISSUEUPDATER_JIRA_TIMEOUT_SECONDS", 10.0))


def get_search_page_size() -> int:
    return max(1, _env_int("ISSUEUPDATER_SEARCH_PAGE_SIZE", 50))


def is_fixed_versions_enabled() -> bool:
    """
    Controls whether the update loop also applies fixed versions.
    Disabled by default; the step only transitions, comments and sets the custom field.
    """
    return _env_bool("ISSUEUPDATER_APPLY_FIXED_VERSIONS", False)
