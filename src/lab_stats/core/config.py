"""
Application configuration using python-dotenv.

This module loads environment variables from .env file into os.environ
for use throughout the statistics engine.
"""

import os
import pathlib
from dotenv import load_dotenv


# Don't load .env file during testing to ensure predictable test behavior
is_testing = os.getenv("PYTEST_VERSION") is not None

if not is_testing:
    possible_paths = [
        pathlib.Path(__file__).parent.parent.parent.parent / ".env",  # repository root
        pathlib.Path.cwd() / ".env",  # .env in current directory
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(env_path)
            break


def get_database_url():
    """Get the database URL from environment."""
    return os.getenv(
        "DATABASE_URL",
        "postgresql://localhost/lab_stats_dev"
    )


def get_local_currency_methods():
    """
    Get the payment method names treated as local currency.

    Returns None when not configured, so the built-in list is used.
    """
    raw = os.getenv("LOCAL_CURRENCY_METHODS", "")
    methods = [method.strip() for method in raw.split(",") if method.strip()]
    return methods or None


ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
DATABASE_URL = get_database_url()

# Laboratory business timezone (Venezuela has a fixed UTC-4 offset)
LAB_UTC_OFFSET_HOURS = int(os.getenv("LAB_UTC_OFFSET_HOURS", "-4"))

# Statistics cache
STATS_CACHE_TTL_SECONDS = int(os.getenv("STATS_CACHE_TTL_SECONDS", "900"))  # 15 minutes

LOCAL_CURRENCY_METHODS = get_local_currency_methods()
