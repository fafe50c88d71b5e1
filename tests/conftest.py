"""Shared test fixtures."""

import base64
import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from src.backend.session import AuthSession

# Test fixture config directory with synthetic data
FIXTURE_CONFIG_DIR = Path(__file__).parent / "fixtures" / "config"

CSV_HEADER = (
    "Account ID,Transaction ID,Date,Description,Check Number,"
    "Category,Tags,Amount,Balance\n"
)


def make_jwt(payload: dict) -> str:
    """Unsigned three-part token carrying the given payload."""
    def seg(obj):
        raw = json.dumps(obj).encode()
        return base64.urlsafe_b64encode(raw).decode().rstrip("=")
    return f"{seg({'alg': 'none'})}.{seg(payload)}.sig"


@pytest.fixture
def auth_session():
    return AuthSession(token=make_jwt({"id": 42}), user_id="42")


@pytest.fixture
def mock_repo():
    """Repository double for the signed-in user 42 with no existing data."""
    repo = MagicMock()
    repo.user_id = "42"
    repo.list_active_bills.return_value = []
    repo.list_bills.return_value = []
    repo.list_bill_payments.return_value = []
    repo.list_transactions.return_value = []
    return repo
