"""Root conftest — shared test configuration."""

import os

# Ensure tests don't accidentally use real API keys
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_fake_key")
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.setdefault("LOG_FORMAT", "text")
