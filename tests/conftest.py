import pytest

from core.config import reload_config


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    # Keep every test away from the real ~/.katepanel and the repo config.
    monkeypatch.setenv("KATE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("KATE_CONFIG", str(tmp_path / "no-such-panel.json"))
    monkeypatch.delenv("KATE_DEBUG", raising=False)
    reload_config()
    yield
