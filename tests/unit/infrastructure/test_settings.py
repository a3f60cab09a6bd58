import json
import os

import pytest

from compassone.domain.errors import ConfigurationError
from compassone.infrastructure.config import settings


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ("COMPASSONE_API_ENDPOINT", "COMPASSONE_API_TIMEOUT", "COMPASSONE_MAX_RETRIES"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


def test_yaml_file_is_loaded(workdir):
    config_file = workdir / "config.yaml"
    config_file.write_text("API_ENDPOINT: https://yaml.example.com\nMAX_RETRIES: 4\n")
    settings.load_configuration(config_file=config_file, force=True)
    assert settings.get_config("api_endpoint") == "https://yaml.example.com"
    assert settings.get_config("max_retries") == 4


def test_environment_overrides_yaml(workdir, monkeypatch):
    config_file = workdir / "config.yaml"
    config_file.write_text("api_endpoint: https://yaml.example.com\n")
    monkeypatch.setenv("COMPASSONE_API_ENDPOINT", "https://env.example.com")
    settings.load_configuration(config_file=config_file, force=True)
    assert settings.get_config("api_endpoint") == "https://env.example.com"


def test_module_config_keys_are_mapped(workdir, monkeypatch):
    module_config = workdir / "module.config"
    module_config.write_text(json.dumps({
        "ApiEndpoint": "https://module.example.com",
        "MaxRetries": 5,
        "RequestTimeout": 45,
        "CacheEnabled": False,
        "Unrelated": "ignored",
    }))
    monkeypatch.setenv("COMPASSONE_CONFIG", str(workdir))
    settings.load_configuration(config_file=workdir / "missing.yaml", force=True)

    config = settings.load_client_config()
    assert config.endpoint == "https://module.example.com"
    assert config.max_retries == 5
    assert config.timeout == 45
    assert config.cache_enabled is False


def test_broken_module_config_raises(workdir, monkeypatch):
    (workdir / "module.config").write_text("{not json")
    monkeypatch.setenv("COMPASSONE_CONFIG", str(workdir / "module.config"))
    with pytest.raises(ConfigurationError):
        settings.load_configuration(config_file=workdir / "missing.yaml", force=True)


def test_dotenv_file_is_read(workdir, monkeypatch):
    (workdir / ".env").write_text("COMPASSONE_API_TIMEOUT=12\n")
    monkeypatch.delenv("COMPASSONE_API_TIMEOUT", raising=False)
    settings.load_configuration(config_file=workdir / "missing.yaml", force=True)
    try:
        assert settings.get_config("api_timeout") == 12
    finally:
        os.environ.pop("COMPASSONE_API_TIMEOUT", None)


def test_client_config_overrides_and_missing_endpoint(workdir):
    settings.load_configuration(config_file=workdir / "missing.yaml", force=True)
    with pytest.raises(ConfigurationError):
        settings.load_client_config()
    config = settings.load_client_config({"endpoint": "https://override.example.com", "timeout": 9})
    assert (config.endpoint, config.timeout) == ("https://override.example.com", 9)


def test_testing_config_takes_precedence(workdir, monkeypatch):
    monkeypatch.setenv("COMPASSONE_LOG_LEVEL", "ERROR")
    settings.set_config_for_testing({"log_level": "DEBUG"})
    assert settings.get_config("log_level") == "DEBUG"
    settings.clear_test_config()
    assert settings.get_config("log_level") == "ERROR"
