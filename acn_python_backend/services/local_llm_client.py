"""
HTTP transport for OpenAI-compatible local model servers (LM Studio, llama.cpp,
Ollama's compatibility endpoint). Used when the LLM mode is ``local``.
"""

import json
import logging
import os
import re
from typing import Any, Dict, List, Optional, Tuple

import httpx

from acn_python_backend.services.llm_config import get_env_llm_defaults

logger = logging.getLogger(__name__)

ClientKey = Tuple[str, float, bool]

_CLIENT_CACHE: Dict[ClientKey, "LocalLLMClient"] = {}
# Base URLs whose server refused response_format=json_object
_JSON_MODE_REJECTED: set[str] = set()

TRACE_API_CALLS = os.getenv("TRACE_API_CALLS", "false").strip().lower() in {"1", "true", "yes", "on"}
API_LOG_PREVIEW_CHARS = int(os.getenv("API_LOG_PREVIEW_CHARS", "280"))

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL)
_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def _preview_text(value: Any, limit: int = API_LOG_PREVIEW_CHARS) -> str:
    text = "" if value is None else str(value)
    overflow = len(text) - limit
    return text if overflow <= 0 else f"{text[:limit]}...<truncated {overflow} chars>"


def _json_candidates(reply: str):
    """Yield progressively looser slices of ``reply`` that may hold JSON."""
    yield reply
    fenced = _FENCED_BLOCK.search(reply)
    if fenced:
        yield fenced.group(1).strip()


def extract_json_from_text(text: Optional[str]) -> Any:
    """Pull the first JSON value out of a model reply.

    Handles bare JSON, fenced blocks and prose with an embedded object.
    ``<think>`` sections emitted by reasoning-tuned local models are dropped.
    """
    if text is None:
        raise ValueError("LLM response text is empty")

    reply = _THINK_BLOCK.sub("", str(text)).strip()

    for candidate in (_json_candidates(reply) if reply else ()):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    # Last resort: decode from the first brace or bracket that parses
    decoder = json.JSONDecoder()
    starts = (i for i, ch in enumerate(reply) if ch in "{[")
    for start in starts:
        try:
            value, _end = decoder.raw_decode(reply, start)
        except json.JSONDecodeError:
            continue
        return value

    raise json.JSONDecodeError("No JSON object found", reply or str(text), 0)


def _client_key(config: Dict[str, Any]) -> ClientKey:
    return (
        str(config.get("base_url", "")).rstrip("/"),
        float(config.get("timeout_seconds", 60)),
        bool(config.get("json_mode", True)),
    )


def get_local_client(config: Optional[Dict[str, Any]] = None) -> "LocalLLMClient":
    """Shared client per (base_url, timeout, json_mode)."""
    key = _client_key(config or get_env_llm_defaults())
    client = _CLIENT_CACHE.get(key)
    if client is None:
        base_url, timeout, json_mode = key
        client = _CLIENT_CACHE[key] = LocalLLMClient(base_url, timeout_seconds=timeout, json_mode=json_mode)
    return client


CHAT_PATH = "/v1/chat/completions"
EMBEDDINGS_PATH = "/v1/embeddings"


class LocalLLMClient:
    """Minimal client for an OpenAI-compatible HTTP server."""

    def __init__(self, base_url: str, timeout_seconds: float = 60, json_mode: bool = True) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.json_mode = json_mode

    @property
    def wants_json_mode(self) -> bool:
        return self.json_mode and self.base_url not in _JSON_MODE_REJECTED

    async def _post(self, client: httpx.AsyncClient, path: str, payload: Dict[str, Any]) -> httpx.Response:
        url = self.base_url + path
        if TRACE_API_CALLS:
            logger.info("[LLM API] POST %s model=%s", url, payload.get("model"))
        response = await client.post(url, json=payload)
        response.raise_for_status()
        if TRACE_API_CALLS:
            logger.info("[LLM API] %s -> %s %s", url, response.status_code, _preview_text(response.text))
        return response

    async def chat(
        self,
        model: str,
        messages: List[Dict[str, str]],
        temperature: float = 0.3,
        max_tokens: int = 300,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(model=model, messages=messages, temperature=temperature, max_tokens=max_tokens)
        json_mode = self.wants_json_mode
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            try:
                response = await self._post(client, CHAT_PATH, payload)
            except httpx.HTTPStatusError as exc:
                if not json_mode:
                    raise
                logger.warning(
                    "[LLM API] %s refused json_object output (%s), falling back to plain text",
                    self.base_url,
                    _preview_text(exc.response.text),
                )
                _JSON_MODE_REJECTED.add(self.base_url)
                del payload["response_format"]
                response = await self._post(client, CHAT_PATH, payload)
        return response.json()

    async def embeddings(self, model: str, input_data: Any) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await self._post(
                client,
                EMBEDDINGS_PATH,
                {"model": model, "input": input_data, "encoding_format": "float"},
            )
        return response.json()


async def local_chat_json(
    config: Dict[str, Any],
    messages: List[Dict[str, str]],
    temperature: float = 0.3,
    max_tokens: int = 300,
) -> Any:
    """Run a chat completion and return the JSON value found in the reply."""
    reply = await get_local_client(config).chat(
        config.get("chat_model", ""), messages, temperature=temperature, max_tokens=max_tokens
    )
    choices = reply.get("choices") or [{}]
    return extract_json_from_text(choices[0].get("message", {}).get("content"))


async def local_embed_text(config: Dict[str, Any], text: str) -> List[float]:
    reply = await get_local_client(config).embeddings(config.get("embedding_model", ""), text)
    first = reply["data"][0]
    return list(map(float, first["embedding"]))
