"""
Embeddings Module.

CRITICAL: Never compare vectors from different provider configurations.

This module handles:
- The embedding provider contract (text -> fixed-dimension vector)
- Deterministic simulations standing in for a real embedding model
- An exact-match cache in front of any provider

Usage:
    from embeddings import EmbeddingConfig, create_embedding_provider

    provider = create_embedding_provider(EmbeddingConfig(provider="semantic-hash"))
    doc_vectors = provider.embed_documents({"doc1": "Flood damage ..."})
"""

from shared.config import EmbeddingConfig

from .embedder import (
    CachingEmbeddingProvider,
    EmbeddingProvider,
    EmbeddingResult,
    create_embedding_provider,
    embed_texts,
)
from .simulation import (
    KeywordCountEmbeddingProvider,
    SemanticHashEmbeddingProvider,
    SimEmbeddingProvider,
)

__all__ = [
    "EmbeddingConfig",
    "EmbeddingProvider",
    "EmbeddingResult",
    "CachingEmbeddingProvider",
    "create_embedding_provider",
    "embed_texts",
    "SimEmbeddingProvider",
    "SemanticHashEmbeddingProvider",
    "KeywordCountEmbeddingProvider",
]
