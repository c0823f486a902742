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

# ── Paths ─────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# SQLite database file
DB_PATH: str = os.getenv("DB_PATH", str(DATA_DIR / "turf_booking.db"))

# ── JWT ───────────────────────────────────────────────────────────────────

JWT_SECRET: str = os.getenv("JWT_SECRET", "dev-secret-change-me-in-production")
JWT_ALGORITHM: str = "HS256"
JWT_EXPIRY_DAYS: int = int(os.getenv("JWT_EXPIRY_DAYS", "7"))

# ── CORS ──────────────────────────────────────────────────────────────────

# Comma-separated list of allowed origins.
CORS_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
    ).split(",")
    if origin.strip()
]

# ── Booking slots ─────────────────────────────────────────────────────────

# Window used when a turf has no operating-hours entry for a weekday.
DEFAULT_OPEN_TIME: str = os.getenv("DEFAULT_OPEN_TIME", "06:00")
DEFAULT_CLOSE_TIME: str = os.getenv("DEFAULT_CLOSE_TIME", "23:00")

# Length of one bookable unit slot (minutes).
SLOT_MINUTES: int = int(os.getenv("SLOT_MINUTES", "60"))

# ── Games ─────────────────────────────────────────────────────────────────

# How many times a game mutation is retried after losing a write race.
GAME_WRITE_RETRIES: int = int(os.getenv("GAME_WRITE_RETRIES", "3"))
