import os
from datetime import datetime

import pytest

# In-memory database for anything that imports the app
os.environ.setdefault("DATABASE_URL", "sqlite://")

FIXED_NOW = datetime(2025, 6, 15, 12, 0, 0)


@pytest.fixture
def frozen_now(monkeypatch):
    """Pin the clock used for relative dates."""
    from fieldguard.services import date_validation

    monkeypatch.setattr(date_validation, "_now", lambda: FIXED_NOW)
    return FIXED_NOW
