from acn_python_backend.config import EMBEDDING_MODEL, REASONING_MODEL
from acn_python_backend.services.llm_config import get_env_llm_defaults, merge_llm_config


def test_env_llm_defaults(monkeypatch):
    monkeypatch.setenv("DEFAULT_LLM_MODE", "local")
    monkeypatch.setenv("LOCAL_LLM_BASE_URL", "http://localhost:8080")
    monkeypatch.setenv("LOCAL_LLM_CHAT_MODEL", "llama-3.1-8b-instruct")
    monkeypatch.setenv("LOCAL_LLM_EMBEDDING_MODEL", "embed-model")
    monkeypatch.setenv("LOCAL_LLM_JSON_MODE", "false")
    monkeypatch.setenv("LOCAL_LLM_TIMEOUT_SECONDS", "45")

    defaults = get_env_llm_defaults()

    assert defaults["mode"] == "local"
    assert defaults["base_url"] == "http://localhost:8080"
    assert defaults["chat_model"] == "llama-3.1-8b-instruct"
    assert defaults["embedding_model"] == "embed-model"
    assert defaults["json_mode"] is False
    assert defaults["timeout_seconds"] == 45.0
    assert defaults["online_reasoning_model"] == REASONING_MODEL
    assert defaults["online_embedding_model"] == EMBEDDING_MODEL


def test_unknown_env_mode_falls_back_to_online(monkeypatch):
    monkeypatch.setenv("DEFAULT_LLM_MODE", "offline-ish")

    assert get_env_llm_defaults()["mode"] == "online"


def test_merge_llm_config_sanitizes_mode(monkeypatch):
    monkeypatch.setenv("DEFAULT_LLM_MODE", "local")

    merged = merge_llm_config({"mode": "invalid", "json_mode": "0"})

    assert merged["mode"] == "local"
    assert merged["json_mode"] is False


def test_merge_llm_config_skips_none_and_coerces_timeout(monkeypatch):
    monkeypatch.setenv("LOCAL_LLM_CHAT_MODEL", "qwen2.5-7b-instruct")

    merged = merge_llm_config({"chat_model": None, "timeout_seconds": "12", "mode": " ONLINE "})

    assert merged["chat_model"] == "qwen2.5-7b-instruct"
    assert merged["timeout_seconds"] == 12.0
    assert merged["mode"] == "online"
