from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from acn_python_backend.services import reasoning_client as reasoning_module
from acn_python_backend.services.reasoning_client import (
    ArgumentContext,
    ReasoningClient,
    ReasoningUnavailableError,
    build_prompt_variables,
    parse_judgment,
)


def _anthropic_reply(text):
    return SimpleNamespace(content=[SimpleNamespace(text=text)])


def _online_client(create):
    client = ReasoningClient(llm_config={"mode": "online"})
    client._client = MagicMock()
    client._client.messages.create = create
    return client


def test_parse_judgment_clamps_scores():
    judgment = parse_judgment({"logicalValidity": 1.7, "evidenceQuality": -0.2, "summary": "  Weak.  "})

    assert judgment.logical_validity == 1.0
    assert judgment.evidence_quality == 0.0
    assert judgment.summary == "Weak."


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "an", "object"],
        {"logicalValidity": 0.5},
        {"logicalValidity": "high", "evidenceQuality": 0.5},
    ],
)
def test_parse_judgment_rejects_malformed_payloads(payload):
    with pytest.raises(ReasoningUnavailableError):
        parse_judgment(payload)


def test_build_prompt_variables_formats_context_and_fallacies():
    related = [
        ArgumentContext(id="a1", content="Transit cuts emissions.", confidence=0.734, similarity=0.9),
        ArgumentContext(id="a2", content="Buses are slow.", confidence=0.2, similarity=0.86),
    ]

    variables = build_prompt_variables("x" * 2000, related, ["Straw Man", "Slippery Slope"])

    assert len(variables["content"]) == 1500
    assert "- (confidence: 0.73) Transit cuts emissions." in variables["context"]
    assert "- (confidence: 0.20) Buses are slow." in variables["context"]
    assert variables["fallacies"].endswith("Potentially detected fallacies: Straw Man, Slippery Slope")


def test_build_prompt_variables_empty_sections():
    variables = build_prompt_variables("Short claim.", [], [])

    assert variables == {"content": "Short claim.", "context": "", "fallacies": ""}


@pytest.mark.asyncio
async def test_assess_online_uses_prompt_settings():
    create = AsyncMock(return_value=_anthropic_reply(
        '{"logicalValidity": 0.65, "evidenceQuality": 0.4, "summary": "Plausible but thin."}'
    ))
    client = _online_client(create)

    judgment = await client.assess("Rent control lowers supply.", [], ["False Dichotomy"])

    assert judgment.logical_validity == pytest.approx(0.65)
    assert judgment.evidence_quality == pytest.approx(0.4)
    assert judgment.summary == "Plausible but thin."

    kwargs = create.call_args.kwargs
    assert kwargs["temperature"] == 0.3
    assert kwargs["max_tokens"] == 300
    assert "objective logic analyst" in kwargs["system"]
    prompt = kwargs["messages"][0]["content"]
    assert '"Rent control lowers supply."' in prompt
    assert "False Dichotomy" in prompt


@pytest.mark.asyncio
async def test_assess_accepts_fenced_json():
    create = AsyncMock(return_value=_anthropic_reply(
        'Sure:\n```json\n{"logicalValidity": 0.5, "evidenceQuality": 0.5}\n```'
    ))

    judgment = await _online_client(create).assess("Claim.", [], [])

    assert judgment.summary == ""


@pytest.mark.asyncio
async def test_assess_wraps_transport_errors():
    create = AsyncMock(side_effect=httpx.ConnectError("connection refused"))

    with pytest.raises(ReasoningUnavailableError):
        await _online_client(create).assess("Claim.", [], [])


@pytest.mark.asyncio
async def test_assess_wraps_prose_replies():
    create = AsyncMock(return_value=_anthropic_reply("I think this argument is decent."))

    with pytest.raises(ReasoningUnavailableError):
        await _online_client(create).assess("Claim.", [], [])


@pytest.mark.asyncio
async def test_missing_api_key_is_unavailable(monkeypatch):
    monkeypatch.setattr(reasoning_module, "ANTHROPIC_API_KEY", None)
    client = ReasoningClient(llm_config={"mode": "online"})

    with pytest.raises(ReasoningUnavailableError):
        await client.assess("Claim.", [], [])


@pytest.mark.asyncio
async def test_assess_local_mode_routes_to_chat_server(monkeypatch):
    local_chat = AsyncMock(return_value={"logicalValidity": 0.9, "evidenceQuality": 0.1, "summary": "ok"})
    monkeypatch.setattr(reasoning_module, "local_chat_json", local_chat)
    client = ReasoningClient(llm_config={"mode": "local", "chat_model": "local-chat"})

    judgment = await client.assess("Claim.", [], [])

    assert judgment.logical_validity == pytest.approx(0.9)
    config, messages = local_chat.call_args.args
    assert config["chat_model"] == "local-chat"
    assert messages[0]["role"] == "system"
    assert messages[1]["role"] == "user"
