from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from typer.testing import CliRunner

from sdm_ui.db import init_db
from sdm_ui.services.storage import CacheStorage
from tests.sdm_utils import ACCOUNT


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def storage(engine) -> CacheStorage:
    return CacheStorage(ACCOUNT, engine)


@pytest.fixture()
def cli_runner(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("SDM_UI_DB_PATH", str(tmp_path / "data"))
    monkeypatch.setenv("NO_COLOR", "1")
    for name in (
        "SDM_UI_EMAIL",
        "SDM_UI_VERBOSE",
        "SDM_UI_BLACKLIST_PATTERNS",
        "SDM_UI_MENU_COMMAND",
        "SDM_UI_PASSWORD_COMMAND",
        "SDM_UI_SDM_EXECUTABLE",
    ):
        monkeypatch.delenv(name, raising=False)

    import sdm_ui.cli as cli

    return CliRunner(), cli.app
