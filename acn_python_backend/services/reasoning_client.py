"""
External reasoning collaborator.

Asks an LLM to grade an argument's logical validity and evidence quality.
Online mode uses Anthropic; local mode uses an OpenAI-compatible chat server.
Any failure is raised as ``ReasoningUnavailableError``; callers treat it as
soft and fall back to heuristics.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import anthropic
import httpx

from acn_python_backend.config import ANTHROPIC_API_KEY
from acn_python_backend.services.llm_config import merge_llm_config
from acn_python_backend.services.local_llm_client import extract_json_from_text, local_chat_json
from acn_python_backend.services.prompt_manager import PromptManager, get_prompt_manager

logger = logging.getLogger(__name__)

PROMPT_NAME = "argument_reasoning"
MAX_CONTENT_CHARS = 1500


class ReasoningUnavailableError(RuntimeError):
    """The reasoning collaborator timed out, failed or returned junk."""


@dataclass
class ArgumentContext:
    id: Any
    content: str
    confidence: float
    similarity: float


@dataclass
class ReasoningJudgment:
    logical_validity: float
    evidence_quality: float
    summary: str


def _clamp_unit(value: Any, field_name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ReasoningUnavailableError(f"Non-numeric {field_name}: {value!r}") from exc
    return max(0.0, min(1.0, number))


def parse_judgment(payload: Any) -> ReasoningJudgment:
    if not isinstance(payload, dict):
        raise ReasoningUnavailableError("Reasoning response is not a JSON object")
    for key in ("logicalValidity", "evidenceQuality"):
        if key not in payload:
            raise ReasoningUnavailableError(f"Reasoning response missing {key}")

    return ReasoningJudgment(
        logical_validity=_clamp_unit(payload["logicalValidity"], "logicalValidity"),
        evidence_quality=_clamp_unit(payload["evidenceQuality"], "evidenceQuality"),
        summary=str(payload.get("summary") or "").strip(),
    )


def build_prompt_variables(content: str, related: Sequence[ArgumentContext], fallacies: Sequence[str]) -> Dict[str, str]:
    context = ""
    if related:
        lines = "\n".join(f"- (confidence: {arg.confidence:.2f}) {arg.content}" for arg in related)
        context = f"\n\nRelated arguments from the discourse:\n{lines}"

    fallacy_text = ""
    if fallacies:
        fallacy_text = f"\n\nPotentially detected fallacies: {', '.join(fallacies)}"

    return {
        "content": content[:MAX_CONTENT_CHARS],
        "context": context,
        "fallacies": fallacy_text,
    }


class ReasoningClient:
    def __init__(
        self,
        llm_config: Optional[Dict[str, Any]] = None,
        prompt_manager: Optional[PromptManager] = None,
    ):
        self.config = merge_llm_config(llm_config)
        self.mode = self.config["mode"]
        self.model = self.config["online_reasoning_model"]
        self.prompt_manager = prompt_manager or get_prompt_manager()
        self._client: Optional[anthropic.AsyncAnthropic] = None

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            if not ANTHROPIC_API_KEY:
                raise ReasoningUnavailableError("ANTHROPIC_API_KEY not found in environment")
            self._client = anthropic.AsyncAnthropic(api_key=ANTHROPIC_API_KEY)
        return self._client

    async def _call_model(self, system: str, prompt: str, temperature: float, max_tokens: int) -> Any:
        if self.mode == "local":
            messages: List[Dict[str, str]] = [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ]
            return await local_chat_json(self.config, messages, temperature=temperature, max_tokens=max_tokens)

        response = await self._get_client().messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        return extract_json_from_text(response.content[0].text)

    async def assess(
        self,
        content: str,
        related: Sequence[ArgumentContext],
        fallacies: Sequence[str],
    ) -> ReasoningJudgment:
        """
        Grade ``content`` in light of related arguments and detected fallacies.

        Raises:
            ReasoningUnavailableError: On transport error or malformed output
        """
        metadata = self.prompt_manager.get_prompt_metadata(PROMPT_NAME)
        prompt = self.prompt_manager.render_prompt(PROMPT_NAME, build_prompt_variables(content, related, fallacies))

        try:
            payload = await self._call_model(
                metadata["system"],
                prompt,
                temperature=metadata["temperature"],
                max_tokens=metadata["max_tokens"],
            )
        except (anthropic.APIError, httpx.HTTPError, json.JSONDecodeError, ValueError, KeyError, IndexError) as exc:
            raise ReasoningUnavailableError(str(exc)) from exc

        judgment = parse_judgment(payload)
        logger.debug(
            "[REASONING] validity=%.2f evidence=%.2f",
            judgment.logical_validity,
            judgment.evidence_quality,
        )
        return judgment


_reasoning_client = None


def get_reasoning_client() -> ReasoningClient:
    global _reasoning_client

    if _reasoning_client is None:
        _reasoning_client = ReasoningClient()

    return _reasoning_client
