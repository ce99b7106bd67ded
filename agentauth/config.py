"""
Configuration module for AgentAuth.

Centralizes environment-driven settings. Values are read once at import;
the identity namespace is deliberately absent here because it must never be
configurable.
"""

import os
from typing import Optional

# ============================================================
# Environment Configuration
# ============================================================

# Freshness window for request timestamps (milliseconds)
DEFAULT_FRESHNESS_MS = int(os.getenv("AGENTAUTH_FRESHNESS_MS", "60000"))

# Logging
LOG_LEVEL = os.getenv("AGENTAUTH_LOG_LEVEL", "WARNING").upper()
LOG_FORMAT = os.getenv("AGENTAUTH_LOG_FORMAT", "text").lower()  # text|json

TOKEN_ENV_VAR = "AGENTAUTH_TOKEN"


def get_token() -> Optional[str]:
    """Read the agent's private key token from the environment, if set."""
    token = os.getenv(TOKEN_ENV_VAR)
    return token or None


# ============================================================
# Feature Flags
# ============================================================

def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("AGENTAUTH_DEBUG", "").lower() in ("1", "true", "yes")


def use_json_logs() -> bool:
    """Check if structured JSON log output is selected."""
    return LOG_FORMAT == "json"
