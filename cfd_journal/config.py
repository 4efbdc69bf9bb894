# cfd_journal/config.py
"""Runtime settings read from the environment."""

import os

# Database URL, default to local SQLite
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cfd_journal.db")

# Timezone used whenever a timestamp must be turned into a calendar day
REPORT_TIMEZONE = os.getenv("REPORT_TIMEZONE", "UTC")

# Account commission defaults (percent)
DEFAULT_OPEN_CLOSE_COMMISSION_PCT = float(os.getenv("DEFAULT_OPEN_CLOSE_COMMISSION_PCT", "0.25"))
DEFAULT_NIGHT_COMMISSION_PCT = float(os.getenv("DEFAULT_NIGHT_COMMISSION_PCT", "7.0"))

# Smallest quantity a close may produce
MIN_CLOSE_QUANTITY = float(os.getenv("MIN_CLOSE_QUANTITY", "0.01"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
