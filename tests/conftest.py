import pytest

from bulbctl.core.config import ENV_ADDRESS, ENV_PORT, ENV_TIMEOUT


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep user config files and BULB_* variables out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    for name in (ENV_ADDRESS, ENV_PORT, ENV_TIMEOUT):
        monkeypatch.delenv(name, raising=False)
