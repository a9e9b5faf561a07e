import json

import pytest

from .helpers import FAKE_SERVICE_ACCOUNT, FakeDrive


@pytest.fixture
def credentials(monkeypatch):
    monkeypatch.setenv("GOOGLE_SERVICE_ACCOUNT_CREDENTIALS", json.dumps(FAKE_SERVICE_ACCOUNT))
    return FAKE_SERVICE_ACCOUNT


@pytest.fixture
def fake_drive():
    drive = FakeDrive()
    yield drive
    if drive.hang is not None:
        drive.hang.set()
