# barberbook/config.py

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./barber.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

# Auth
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

# Scheduling
# Cancellation cutoff lives on each shop (Shop.cancellation_cutoff_hours).
SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", "30"))
PROVIDER_LOCK_TIMEOUT_SECONDS = float(os.getenv("PROVIDER_LOCK_TIMEOUT_SECONDS", "5"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
