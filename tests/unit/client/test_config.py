import pytest
from pydantic import ValidationError

from tgpic.client import config as config_module
from tgpic.client.config import ClientConfig, UploadConfig


@pytest.mark.unit
class TestClientConfig:
    def test_nested_env_overrides(self, monkeypatch):
        monkeypatch.setenv("TGPIC_SERVER__URL", "https://img.example.com/")
        monkeypatch.setenv("TGPIC_UPLOAD__CONCURRENCY", "5")

        cfg = ClientConfig()

        assert cfg.server.api_base == "https://img.example.com/api"
        assert cfg.upload.concurrency == 5
        assert cfg.upload.max_bytes == 10 * 1024 * 1024

    def test_concurrency_is_bounded(self):
        with pytest.raises(ValidationError):
            UploadConfig(concurrency=6)

    def test_quality_floor_not_above_start(self):
        with pytest.raises(ValidationError):
            UploadConfig(quality_start=30, quality_floor=40)

    def test_global_instance_is_cached_and_resettable(self):
        config_module.reset_config()
        first = config_module.get_config()
        assert config_module.get_config() is first

        custom = ClientConfig()
        config_module.set_config(custom)
        assert config_module.get_config() is custom
        config_module.reset_config()
