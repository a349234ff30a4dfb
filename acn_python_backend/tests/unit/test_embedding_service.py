from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from acn_python_backend.services import embedding_service as embedding_module
from acn_python_backend.services.embedding_service import EmbeddingService, EmbeddingUnavailableError


def _online_service(create):
    service = EmbeddingService(llm_config={"mode": "online"})
    service._client = MagicMock()
    service._client.embeddings.create = create
    return service


@pytest.mark.asyncio
async def test_embed_text_online():
    create = AsyncMock(return_value=SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2, 0.3])]))
    service = _online_service(create)

    vector = await service.embed_text("Transit reduces congestion.")

    assert vector == [0.1, 0.2, 0.3]
    assert create.call_args.kwargs["input"] == "Transit reduces congestion."
    assert create.call_args.kwargs["model"] == service.model


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   "])
async def test_embed_text_rejects_empty_input(text):
    create = AsyncMock()
    service = _online_service(create)

    with pytest.raises(EmbeddingUnavailableError):
        await service.embed_text(text)
    create.assert_not_called()


@pytest.mark.asyncio
async def test_embed_text_wraps_provider_errors():
    service = _online_service(AsyncMock(side_effect=httpx.ConnectError("connection refused")))

    with pytest.raises(EmbeddingUnavailableError):
        await service.embed_text("Some claim.")


@pytest.mark.asyncio
async def test_embed_text_rejects_empty_vector():
    create = AsyncMock(return_value=SimpleNamespace(data=[SimpleNamespace(embedding=[])]))

    with pytest.raises(EmbeddingUnavailableError):
        await _online_service(create).embed_text("Some claim.")


@pytest.mark.asyncio
async def test_missing_api_key_is_unavailable(monkeypatch):
    monkeypatch.setattr(embedding_module, "OPENAI_API_KEY", None)
    service = EmbeddingService(llm_config={"mode": "online"})

    with pytest.raises(EmbeddingUnavailableError):
        await service.embed_text("Some claim.")


@pytest.mark.asyncio
async def test_embed_text_local_mode(monkeypatch):
    local_embed = AsyncMock(return_value=[0.5, 0.5])
    monkeypatch.setattr(embedding_module, "local_embed_text", local_embed)
    service = EmbeddingService(llm_config={"mode": "local", "embedding_model": "embed-model"})

    assert await service.embed_text("Some claim.") == [0.5, 0.5]
    config, text = local_embed.call_args.args
    assert config["embedding_model"] == "embed-model"
    assert text == "Some claim."
