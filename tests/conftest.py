from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from config import TestingSettings
from main import create_app
from services import PaymentsEngine, TransactionService

RESOURCES = Path(__file__).parent / "resources"


@pytest.fixture
def engine():
    """Fresh, empty ledger for each test."""
    return PaymentsEngine()


@pytest.fixture
def service(engine):
    return TransactionService(engine)


@pytest.fixture
def client(service):
    """HTTP client bound to an app that owns the `service` fixture."""
    return TestClient(create_app(TestingSettings(), service=service))


@pytest.fixture
def resources():
    return RESOURCES


@pytest.fixture
def write_csv(tmp_path):
    """Write CSV lines to a temporary file and return its path."""
    def _write(*lines, name="transactions.csv"):
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path
    return _write
