# backend/tms/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/tms.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tms.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Fraction digits kept on every stored money amount (half-up rounding)
    MONEY_PRECISION = int(os.environ.get("MONEY_PRECISION", "2"))

    # Upper bound on "{order}-{seq}" trip code allocation attempts
    TRIP_CODE_MAX_ATTEMPTS = int(os.environ.get("TRIP_CODE_MAX_ATTEMPTS", "10"))

    # Unit label attached to payroll settlement amounts
    PAYROLL_UNIT = os.environ.get("PAYROLL_UNIT", "VND")
