"""
Embedding provider contract, caching and factory.

CRITICAL: Never compare vectors from different provider configurations.

A provider must be deterministic for identical text within one
configuration (noisy simulation with a fixed seed is deterministic per call
sequence, not per text).
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from shared.cancellation import CancellationToken, check_cancelled
from shared.config import EmbeddingConfig

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingResult:
    """Embedding result with metadata for tracking."""

    vectors: np.ndarray
    provider_name: str
    embedding_timestamp: str
    config_hash: str


class EmbeddingProvider(ABC):
    """
    Maps text to a fixed-dimension float32 vector.

    Usage:
        provider = SemanticHashEmbeddingProvider()
        vec = provider.embed("storm damage to the roof")
        docs = provider.embed_documents({"doc1": "...", "doc2": "..."})
    """

    def __init__(self, name: str, dimension: int):
        if dimension <= 0:
            raise ValueError(f"Embedding dimension must be positive, got {dimension}")
        self.name = name
        self.dimension = dimension

    @abstractmethod
    def embed(self, text: str) -> np.ndarray:
        """Embed one text."""

    def embed_batch(
        self,
        texts: Sequence[str],
        cancellation: Optional[CancellationToken] = None,
    ) -> EmbeddingResult:
        """
        Embed a batch of texts.

        Args:
            texts: Texts to embed
            cancellation: Checked once per text

        Returns:
            EmbeddingResult with an (n, dimension) array
        """
        vectors = np.zeros((len(texts), self.dimension), dtype=np.float32)
        for i, text in enumerate(texts):
            check_cancelled(cancellation)
            vectors[i] = self.embed(text)

        return EmbeddingResult(
            vectors=vectors,
            provider_name=self.name,
            embedding_timestamp=datetime.now(timezone.utc).isoformat(),
            config_hash=self.config_hash(),
        )

    def embed_documents(
        self,
        documents: Mapping[str, str],
        cancellation: Optional[CancellationToken] = None,
    ) -> Dict[str, np.ndarray]:
        """Embed a {doc_id: text} mapping, preserving key order."""
        embedded = {}
        for doc_id, text in documents.items():
            check_cancelled(cancellation)
            embedded[doc_id] = self.embed(text)
        return embedded

    def config_hash(self) -> str:
        """Short hash identifying provider name and dimension."""
        return hashlib.md5(f"{self.name}:{self.dimension}".encode()).hexdigest()[:8]


class CachingEmbeddingProvider(EmbeddingProvider):
    """
    Exact-match in-memory cache in front of another provider.

    Keys are whitespace-normalized, lower-cased text. Cached vectors are
    returned as copies so in-place shifts never leak back into the cache.
    The least recently used entry is evicted once max_entries is exceeded.
    """

    def __init__(self, inner: EmbeddingProvider, max_entries: int = 10_000):
        super().__init__(f"{inner.name}+cache", inner.dimension)
        self.inner = inner
        self.max_entries = max_entries
        self._cache: "OrderedDict[str, np.ndarray]" = OrderedDict()
        self.hits = 0
        self.misses = 0
        self.evicted = 0

    @staticmethod
    def _key(text: str) -> str:
        normalized = " ".join((text or "").lower().split())
        return hashlib.sha256(normalized.encode("utf-8")).hexdigest()

    def embed(self, text: str) -> np.ndarray:
        key = self._key(text)
        cached = self._cache.get(key)
        if cached is not None:
            self.hits += 1
            self._cache.move_to_end(key)
            return cached.copy()

        self.misses += 1
        vec = self.inner.embed(text)
        self._cache[key] = vec.copy()
        while len(self._cache) > self.max_entries:
            self._cache.popitem(last=False)
            self.evicted += 1
        return vec

    def stats(self) -> Dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evicted": self.evicted,
            "entries": len(self._cache),
        }


def create_embedding_provider(config: Optional[EmbeddingConfig] = None) -> EmbeddingProvider:
    """
    Build a provider from configuration.

    Args:
        config: Embedding configuration (defaults to the SHA-256 simulation)

    Returns:
        Configured provider, wrapped in a cache when enabled
    """
    from .simulation import (
        KeywordCountEmbeddingProvider,
        SemanticHashEmbeddingProvider,
        SimEmbeddingProvider,
    )

    config = config or EmbeddingConfig()
    kind = config.provider.strip().lower()

    if kind == "sim":
        provider: EmbeddingProvider = SimEmbeddingProvider(
            dimension=config.dimension,
            noisy=config.sim_mode.strip().lower() == "noisy",
            noise_amplitude=max(0.0, config.noise_amplitude),
            noise_seed=config.noise_seed,
        )
    elif kind in ("semantic-hash", "semantic", "semantichash"):
        provider = SemanticHashEmbeddingProvider(dimension=config.dimension)
    elif kind == "keyword":
        provider = KeywordCountEmbeddingProvider(dimension=config.dimension)
    else:
        raise ValueError(
            f"Unknown embedding provider {config.provider!r}; "
            f"expected sim, semantic-hash or keyword"
        )

    if config.cache_enabled:
        provider = CachingEmbeddingProvider(provider)

    logger.info(f"Embedding provider: {provider.name} (dim={provider.dimension})")
    return provider


def embed_texts(provider: EmbeddingProvider, texts: List[str]) -> np.ndarray:
    """Convenience wrapper returning only the vector matrix."""
    return provider.embed_batch(texts).vectors
