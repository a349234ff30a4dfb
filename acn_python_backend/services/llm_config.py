"""Transport selection for the embedding and reasoning collaborators.

``online`` routes embeddings to OpenAI and reasoning to Anthropic. ``local``
routes both to an OpenAI-compatible server (LM Studio, llama.cpp, vLLM).
"""
import os
from typing import Any, Dict, Optional

from acn_python_backend.config import EMBEDDING_MODEL, REASONING_MODEL

DEFAULT_LOCAL_LLM_BASE_URL = "http://localhost:1234"
LLM_MODES = {"local", "online"}


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _normalize_mode(value: Any, fallback: str = "online") -> str:
    normalized = str(value or "").strip().lower()
    return normalized if normalized in LLM_MODES else fallback


def get_env_llm_defaults() -> Dict[str, Any]:
    return {
        "mode": _normalize_mode(os.getenv("DEFAULT_LLM_MODE", "online")),
        "base_url": os.getenv("LOCAL_LLM_BASE_URL", DEFAULT_LOCAL_LLM_BASE_URL),
        "chat_model": os.getenv("LOCAL_LLM_CHAT_MODEL", "qwen2.5-7b-instruct"),
        "embedding_model": os.getenv("LOCAL_LLM_EMBEDDING_MODEL", "text-embedding-nomic-embed-text-v1.5"),
        "json_mode": _to_bool(os.getenv("LOCAL_LLM_JSON_MODE", "true")),
        "timeout_seconds": float(os.getenv("LOCAL_LLM_TIMEOUT_SECONDS", "60")),
        "online_reasoning_model": REASONING_MODEL,
        "online_embedding_model": EMBEDDING_MODEL,
    }


def merge_llm_config(overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Layer caller overrides on top of the environment defaults."""
    config = get_env_llm_defaults()
    if not overrides:
        return config

    for key, value in overrides.items():
        if value is None:
            continue
        if key == "json_mode":
            config[key] = _to_bool(value)
        elif key == "mode":
            config[key] = _normalize_mode(value, config["mode"])
        elif key == "timeout_seconds":
            config[key] = float(value)
        else:
            config[key] = value
    return config
