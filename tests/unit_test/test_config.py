import pytest

from deepthink.config import DeepThinkConfig


def test_defaults_without_settings_or_env():
    cfg = DeepThinkConfig.from_settings(environ={})
    assert cfg.model_name == "gpt-4o-mini"
    assert cfg.api == "chat"
    assert cfg.api_key == "EMPTY"
    assert cfg.base_url is None
    assert cfg.developer_role_as_system is False
    assert cfg.dump_dir is None


def test_env_overrides_settings():
    settings = {"model_name": "from-settings", "api": "chat", "base_url": "http://settings/v1", "max_tokens": 64}
    env = {
        "DEEPTHINK_MODEL_NAME": "from-env",
        "DEEPTHINK_API": "Responses",
        "OPENAI_BASE_URL": "http://env/v1",
        "DEEPTHINK_DEVELOPER_AS_SYSTEM": "yes",
    }
    cfg = DeepThinkConfig.from_settings(settings, environ=env)
    assert cfg.model_name == "from-env"
    assert cfg.api == "responses"
    assert cfg.base_url == "http://env/v1"
    assert cfg.developer_role_as_system is True
    assert cfg.max_tokens == 64


def test_bad_numbers_keep_defaults():
    cfg = DeepThinkConfig.from_settings({"max_tokens": -1, "timeout_s": "soon"}, environ={})
    assert cfg.max_tokens == 1200
    assert cfg.timeout_s == 60.0


def test_unknown_api_is_rejected():
    with pytest.raises(ValueError):
        DeepThinkConfig.from_settings({"api": "completions"}, environ={})


def test_to_dict_masks_real_keys():
    assert DeepThinkConfig(api_key="sk-secret").to_dict()["api_key"] == "***"
    assert DeepThinkConfig().to_dict()["api_key"] == "EMPTY"
