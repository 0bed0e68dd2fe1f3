import os
import pytest
import yaml
from pathlib import Path
from upgrader.config import load_config, get_upgrader_home, UpgraderConfig
from upgrader.errors import ConfigError

def test_get_upgrader_home_default(monkeypatch):
    monkeypatch.delenv("UPGRADER_HOME", raising=False)
    home = get_upgrader_home()
    assert home == Path("~/.config/upgrader").expanduser()

def test_get_upgrader_home_env_var(monkeypatch, tmp_path):
    custom_home = tmp_path / "custom_home"
    monkeypatch.setenv("UPGRADER_HOME", str(custom_home))
    assert get_upgrader_home() == custom_home

def test_load_config_missing_file(monkeypatch, tmp_path):
    monkeypatch.setenv("UPGRADER_HOME", str(tmp_path))
    with pytest.raises(FileNotFoundError, match="upgrader config.yaml not found"):
        load_config()

def test_load_config_valid(monkeypatch, tmp_path):
    monkeypatch.setenv("UPGRADER_HOME", str(tmp_path))
    config_path = tmp_path / "config.yaml"

    config_data = {
        "data_dir": str(tmp_path / "data"),
        "local_version_file": str(tmp_path / "local.json"),
        "clustered": True,
        "step_modules": ["myapp.upgrades"],
        "log_level": "debug",
    }
    config_path.write_text(yaml.dump(config_data))

    cfg = load_config()
    assert isinstance(cfg, UpgraderConfig)
    assert cfg.clustered is True
    assert cfg.log_level == "DEBUG"
    assert cfg.step_modules == ["myapp.upgrades"]
    assert cfg.version_path == tmp_path / "data" / "model-versions.json"
    assert cfg.local_version_path == tmp_path / "local.json"

def test_load_config_with_env_file(monkeypatch, tmp_path):
    monkeypatch.setenv("UPGRADER_HOME", str(tmp_path))
    config_path = tmp_path / "config.yaml"
    env_file = tmp_path / ".env.test"

    env_file.write_text(f"UPGRADER_DATA_DIR={tmp_path / 'from_env'}\nUPGRADER_CLUSTERED=yes\n")

    config_data = {
        "data_dir": "/nowhere",
        "env_file": str(env_file),
    }
    config_path.write_text(yaml.dump(config_data))

    cfg = load_config()
    assert os.environ.get("UPGRADER_DATA_DIR") == str(tmp_path / "from_env")
    assert cfg.data_path == tmp_path / "from_env"
    assert cfg.clustered is True

def test_load_config_invalid_yaml(monkeypatch, tmp_path):
    monkeypatch.setenv("UPGRADER_HOME", str(tmp_path))
    (tmp_path / "config.yaml").write_text("data_dir: [unclosed")
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config()

def test_load_config_empty(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    with pytest.raises(ConfigError, match="empty"):
        load_config(path)

def test_load_config_unknown_key(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"data_dir": "/d", "colour": "blue"}))
    with pytest.raises(ConfigError, match="Unknown config keys: colour"):
        load_config(path)

def test_load_config_missing_data_dir(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"clustered": False}))
    with pytest.raises(ConfigError, match="data_dir"):
        load_config(path)

def test_invalid_log_format():
    with pytest.raises(ConfigError, match="log_format"):
        UpgraderConfig(data_dir="/d", log_format="xml")

def test_invalid_clustered_env(monkeypatch, tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"data_dir": "/d"}))
    monkeypatch.setenv("UPGRADER_CLUSTERED", "maybe")
    with pytest.raises(ConfigError, match="Invalid boolean"):
        load_config(path)
