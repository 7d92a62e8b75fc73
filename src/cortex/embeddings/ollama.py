"""
Ollama embedding provider for Cortex.
"""

import asyncio
from collections import OrderedDict
from typing import Any, Dict, List, Optional

import aiohttp

from cortex.core.exceptions import EmbeddingUnavailableError
from cortex.core.logging import logger


class OllamaEmbeddingProvider:
    """
    Embeds text through a local Ollama server.

    1. POST {base_url}/api/embeddings with {"model", "prompt"}
    2. In-process LRU cache keyed by the exact text
    3. Every failure surfaces as EmbeddingUnavailableError
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        cache_size: Optional[int] = None,
        session: Optional[aiohttp.ClientSession] = None,
        settings: Optional[Any] = None,
    ) -> None:
        """Initialize the provider.

        Args:
            base_url: Ollama server URL (None reads embeddings.base_url)
            model: Embedding model name (None reads embeddings.model)
            timeout_seconds: Per-request timeout
            cache_size: Maximum cached embeddings
            session: Shared aiohttp session; one is created lazily otherwise
            settings: Settings instance used for missing values
        """
        if None in (base_url, model, timeout_seconds, cache_size):
            if settings is None:
                from cortex.core.config import Settings

                settings = Settings()
            embeddings = settings.section("embeddings")
            base_url = base_url or embeddings["base_url"]
            model = model or embeddings["model"]
            timeout_seconds = timeout_seconds or embeddings["timeout_seconds"]
            cache_size = cache_size if cache_size is not None else embeddings["cache_size"]

        self.base_url = str(base_url).rstrip("/")
        self.model = str(model)
        self.timeout = aiohttp.ClientTimeout(total=float(timeout_seconds or 30))
        self.cache_size = int(cache_size or 0)
        self.cache: "OrderedDict[str, List[float]]" = OrderedDict()
        self._session = session
        self._owns_session = session is None
        logger.info("OllamaEmbeddingProvider ready", base_url=self.base_url, model=self.model)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        Raises:
            EmbeddingUnavailableError: Server unreachable, HTTP error or bad payload
        """
        if text in self.cache:
            self.cache.move_to_end(text)
            return list(self.cache[text])

        payload = {"model": self.model, "prompt": text}
        url = f"{self.base_url}/api/embeddings"

        try:
            async with self._get_session().post(url, json=payload, timeout=self.timeout) as response:
                response.raise_for_status()
                result: Dict[str, Any] = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Embedding request failed", url=url, error=str(e))
            error = EmbeddingUnavailableError(
                f"Ollama embedding request failed: {e}",
                code="OLLAMA_EMBEDDING_FAILED",
                context={"url": url, "model": self.model},
                cause=e,
            )
            error.add_suggestion("Start Ollama with 'ollama serve'")
            error.add_suggestion(f"Pull the model with 'ollama pull {self.model}'")
            raise error from e

        embedding = result.get("embedding")
        if not isinstance(embedding, list) or not embedding:
            raise EmbeddingUnavailableError(
                "Ollama returned no embedding",
                code="OLLAMA_EMPTY_EMBEDDING",
                context={"url": url, "model": self.model},
            )

        vector = [float(x) for x in embedding]
        if self.cache_size > 0:
            self.cache[text] = list(vector)
            if len(self.cache) > self.cache_size:
                self.cache.popitem(last=False)
        return vector

    async def close(self) -> None:
        """Close the session if this provider created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
