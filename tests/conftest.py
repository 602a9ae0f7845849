import pytest


@pytest.fixture(autouse=True)
def isolate_home_config(tmp_path, monkeypatch):
    """Point the configuration loader at an empty directory.

    Tests that need a configuration file patch the directory themselves;
    everything else must never read the real user-level config.
    """
    config_dir = tmp_path / "ollama_server"
    config_dir.mkdir()
    monkeypatch.setattr(
        "commitscribe.config.loader._get_config_directory", lambda: config_dir
    )
    yield config_dir
