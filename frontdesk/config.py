"""Centralized configuration for the FrontDesk scheduling agent.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/frontdesk/<VARIABLE_NAME>``.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or the lookup fails, so
    that the caller can raise its own configuration error.
    """
    try:
        import boto3  # noqa: PLC0415 (lazy import, only needed on AWS)

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/frontdesk/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed", name)
        return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value

    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store /frontdesk/{name} (AWS)."
    )


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


# ── LLM ─────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY: str = _require_env("ANTHROPIC_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-sonnet-4-5")
LLM_MAX_TOKENS: int = _env_int("LLM_MAX_TOKENS", 500)
LLM_TEMPERATURE: float = _env_float("LLM_TEMPERATURE", 0.7)
LLM_TIMEOUT_SECONDS: float = _env_float("LLM_TIMEOUT_SECONDS", 60.0)

# ── EHR backend ─────────────────────────────────────────────────────
EHR_BASE_URL: str = os.getenv("EHR_BASE_URL", "http://localhost:8000/api/ehr")
EHR_TIMEOUT_SECONDS: float = _env_float("EHR_TIMEOUT_SECONDS", 10.0)

# ── Chat presentation ───────────────────────────────────────────────
STREAM_CHUNK_DELAY_SECONDS: float = _env_float("STREAM_CHUNK_DELAY_SECONDS", 0.05)
LOG_HISTORY_SIZE: int = _env_int("LOG_HISTORY_SIZE", 200)

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = _env_int("SERVER_PORT", 8000)
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
