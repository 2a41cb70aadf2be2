import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent

# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR}/betpool.db")

# Security
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "betpool_session")
SESSION_EXPIRE_DAYS = int(os.getenv("SESSION_EXPIRE_DAYS", "7"))

# Seeded admin account (override through the environment in production)
ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "password")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "false").lower() in ("1", "true", "yes")

# Leaderboards
LEADERBOARD_DEFAULT_LIMIT = int(os.getenv("LEADERBOARD_DEFAULT_LIMIT", "10"))
AVERAGE_MIN_PREDICTIONS = int(os.getenv("AVERAGE_MIN_PREDICTIONS", "5"))
RECENT_PERFORMANCE_LIMIT = int(os.getenv("RECENT_PERFORMANCE_LIMIT", "10"))
