import os
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("SQLUPSERT_DEFAULT_SCHEMA", "dbo")

from sqlupsert.config import Settings, get_settings  # noqa: E402
from tests.helpers.stubs import StubConnectionFactory  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None, upsert_batch_size=2, command_timeout_seconds=30)


@pytest.fixture()
def stub_factory() -> StubConnectionFactory:
    return StubConnectionFactory()
