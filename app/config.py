"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Environment ───────────────────────────────────────────────────────────

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

APP_VERSION = "0.1.0"

# ── Shared TTL store ──────────────────────────────────────────────────────

# "memory" keeps everything in-process (single worker only), "redis" uses REDIS_URL.
STORE_BACKEND: str = os.getenv("STORE_BACKEND", "memory").lower()
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
REDIS_TIMEOUT_SECONDS: float = float(os.getenv("REDIS_TIMEOUT_SECONDS", "2"))

# Prepended to every key so several deployments can share one Redis.
STORE_KEY_PREFIX: str = os.getenv("STORE_KEY_PREFIX", "OtpApi:")

# ── OTP lifecycle ─────────────────────────────────────────────────────────

OTP_TTL_SECONDS: int = int(os.getenv("OTP_TTL_SECONDS", "300"))

# Window shared by the per-address counter and the per-phone lock.
RATE_WINDOW_SECONDS: int = int(os.getenv("RATE_WINDOW_SECONDS", "60"))

IP_REQUEST_LIMIT: int = int(os.getenv("IP_REQUEST_LIMIT", "5"))

# Counts above this are logged as sequential behaviour but not blocked.
IP_SEQUENTIAL_WARN_THRESHOLD: int = int(os.getenv("IP_SEQUENTIAL_WARN_THRESHOLD", "2"))

# slowapi limit string for the verify endpoint.
VERIFY_RATE_LIMIT: str = os.getenv("VERIFY_RATE_LIMIT", "10/minute")

# ── Server ────────────────────────────────────────────────────────────────

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))
API_RELOAD: bool = os.getenv("API_RELOAD", "false").lower() == "true"
