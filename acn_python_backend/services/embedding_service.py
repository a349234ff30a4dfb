"""
Embedding Service for argument and fact similarity.

Online mode uses OpenAI's text-embedding-3-small (1536 dimensions); local mode
calls an OpenAI-compatible /v1/embeddings endpoint.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from acn_python_backend.config import OPENAI_API_KEY
from acn_python_backend.services.llm_config import merge_llm_config
from acn_python_backend.services.local_llm_client import local_embed_text

logger = logging.getLogger(__name__)


class EmbeddingUnavailableError(RuntimeError):
    """The embedding collaborator could not produce a vector."""


class EmbeddingService:
    """
    Service for generating text embeddings.

    Every failure (empty input, missing key, transport error, empty vector)
    surfaces as ``EmbeddingUnavailableError`` so callers can decide whether
    the missing vector is fatal.
    """

    DIMENSIONS = 1536

    def __init__(self, llm_config: Optional[Dict[str, Any]] = None):
        self.config = merge_llm_config(llm_config)
        self.mode = self.config["mode"]
        self.model = self.config["online_embedding_model"]
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not OPENAI_API_KEY:
                raise EmbeddingUnavailableError(
                    "OPENAI_API_KEY not found in environment. "
                    "Please set it to use embedding service."
                )
            self._client = AsyncOpenAI(api_key=OPENAI_API_KEY)
        return self._client

    async def embed_text(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Raises:
            EmbeddingUnavailableError: On empty text or any provider failure
        """
        if not text or not text.strip():
            raise EmbeddingUnavailableError("Cannot embed empty text")

        try:
            if self.mode == "local":
                embedding = await local_embed_text(self.config, text)
            else:
                response = await self._get_client().embeddings.create(
                    model=self.model,
                    input=text,
                    encoding_format="float",
                )
                embedding = list(response.data[0].embedding)
        except (OpenAIError, httpx.HTTPError, KeyError, IndexError, ValueError) as exc:
            logger.warning("[EMBEDDING] %s embedding failed: %s", self.mode, exc)
            raise EmbeddingUnavailableError(str(exc)) from exc

        if not embedding:
            raise EmbeddingUnavailableError("Embedding provider returned an empty vector")

        return embedding


# Global singleton instance
_embedding_service = None


def get_embedding_service() -> EmbeddingService:
    """Get or create singleton embedding service instance."""
    global _embedding_service

    if _embedding_service is None:
        _embedding_service = EmbeddingService()

    return _embedding_service
