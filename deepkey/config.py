"""
Configuration module for Deepkey.

Settings come from environment variables, read once at import. The
validation rules themselves take no configuration: every peer must reach
the same decision, so only operational concerns are configurable.
"""

import logging
import os
from typing import Dict

from .logging_config import configure_logging

logger = logging.getLogger(__name__)

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("DEEPKEY_ENV", "dev")  # dev|stage|prod

# Logging
LOG_LEVEL = os.getenv("DEEPKEY_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("DEEPKEY_LOG_JSON", "1").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("DEEPKEY_LOG_FILE", "") or None

# Store snapshot used by the CLI when --store is not given
STORE_PATH = os.getenv("DEEPKEY_STORE_PATH", "store.json")

VALID_ENVS = ("dev", "stage", "prod")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Check the configured values.
    Returns dict of setting -> acceptable.
    """
    return {
        "env": ENV in VALID_ENVS,
        "log_level": LOG_LEVEL.upper() in VALID_LOG_LEVELS,
        "store_path": bool(STORE_PATH),
    }


def setup_logging() -> None:
    """
    Configure logging from the environment.

    Unusable settings fall back to defaults and are reported once logging
    is up. Production always logs JSON lines.
    """
    checks = validate_config()
    level = LOG_LEVEL.upper() if checks["log_level"] else "INFO"
    if is_debug():
        level = "DEBUG"
    configure_logging(level=level, json_format=LOG_JSON or is_production(), log_file=LOG_FILE)

    for setting, ok in checks.items():
        if not ok:
            logger.warning("Ignoring invalid %s setting", setting)


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("DEEPKEY_DEBUG", "").lower() in ("1", "true", "yes")
