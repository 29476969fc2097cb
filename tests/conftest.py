from __future__ import annotations

import pytest

from bucketkit.common.config import get_settings
from bucketkit.infra.storage.client import Auth
from bucketkit.infra.storage.s3_client import S3StorageClient
from tests.mock_http import FIXED_NOW, make_session


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch, tmp_path):
    monkeypatch.setattr("bucketkit.common.config.ENV_FILE", tmp_path / ".env")
    for name in (
        "S3_ENDPOINT_URL",
        "S3_ACCESS_KEY_ID",
        "S3_SECRET_ACCESS_KEY",
        "S3_DEFAULT_MAX_KEYS",
        "LOG_LEVEL",
        "LOG_JSON",
        "ENABLE_METRICS",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
def auth():
    return Auth(access_key="AKID", secret_key="secret")


@pytest.fixture
def mock_session():
    """Mock requests.Session answering 200 OK with an empty body."""
    return make_session()


@pytest.fixture
def client(auth, mock_session):
    """S3StorageClient with a mocked session and a frozen clock."""
    return S3StorageClient(auth=auth, session=mock_session, clock=lambda: FIXED_NOW)
