import pytest

from chat_core.config.settings import DEFAULT_MODEL, load_settings
from chat_core.domain.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in ("MODEL", "TEMPERATURE", "STREAM", "API_KEY", "API_KEYS", "STORAGE_BACKEND"):
        monkeypatch.delenv(f"OPENAI_{key}", raising=False)
    monkeypatch.delenv("CHATGPT_CONFIG_FILE", raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults(tmp_path):
    cfg = load_settings(tmp_path)
    assert cfg.model == DEFAULT_MODEL
    assert cfg.stream is False
    assert cfg.temperature == 1.0
    assert cfg.api_key == ""
    assert cfg.api_keys == []
    assert cfg.storage_backend == "disk"


def test_yaml_file(tmp_path):
    (tmp_path / "chatgpt.yaml").write_text(
        "model: gpt-4\ntemperature: 0.2\napi_keys:\n  - k1\n  - k2\n", encoding="utf-8"
    )
    cfg = load_settings(tmp_path)
    assert cfg.model == "gpt-4"
    assert cfg.temperature == 0.2
    assert cfg.api_keys == ["k1", "k2"]


def test_env_overrides_yaml(tmp_path, monkeypatch):
    (tmp_path / "chatgpt.yaml").write_text("model: gpt-4\n", encoding="utf-8")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4o")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    cfg = load_settings(tmp_path)
    assert cfg.model == "gpt-4o"
    assert cfg.api_key == "sk-env"


def test_invalid_value_is_config_error(tmp_path):
    (tmp_path / "chatgpt.yaml").write_text("temperature: hot\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(tmp_path)


def test_non_mapping_file_is_config_error(tmp_path):
    (tmp_path / "chatgpt.yaml").write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(tmp_path)
