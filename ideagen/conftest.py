# ideagen/conftest.py
import sys
from pathlib import Path

import pytest

# Add project root to PYTHONPATH
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from ideagen.tests.mocks import generate_rsa_material


@pytest.fixture(scope="session")
def rsa_material():
    """(private_pem, jwks) pair shared by RS256 tests."""
    return generate_rsa_material()


@pytest.fixture(autouse=True)
def skip_env_validation(monkeypatch):
    monkeypatch.setenv("SKIP_ENV_VALIDATION", "1")
