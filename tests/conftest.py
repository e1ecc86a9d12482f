from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SYNC_ROOT = ROOT / "datasync_sync"

if str(SYNC_ROOT) not in sys.path:
    sys.path.insert(0, str(SYNC_ROOT))


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for variable in (
        "SOURCE_URL",
        "SOURCE_SECRET",
        "SYNC_TARGET",
        "CHECKPOINT_BACKEND",
        "SYNC_MAX_PAGES",
        "SYNC_MAX_ATTEMPTS",
        "SYNC_APPLY_DELETES",
        "DATASYNC_DEBUG",
    ):
        monkeypatch.delenv(variable, raising=False)
    monkeypatch.setenv("DATASYNC_CONFIG_FILE", str(tmp_path / "config.toml"))
    monkeypatch.setenv("DATASYNC_ENV_FILE", str(tmp_path / ".env"))
