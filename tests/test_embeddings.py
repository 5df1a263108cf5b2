import numpy as np
import pytest

from embeddings.embedder import CachingEmbeddingProvider, create_embedding_provider, embed_texts
from embeddings.simulation import (
    KeywordCountEmbeddingProvider,
    SemanticHashEmbeddingProvider,
    SimEmbeddingProvider,
    fnv1a32,
    tokenize,
)
from shared.cancellation import CancellationToken, OperationCancelledError
from shared.config import EmbeddingConfig
from shared.vector_ops import cosine_similarity, l2_norm


def test_sim_embeddings_are_deterministic_and_bounded():
    provider = SimEmbeddingProvider(dimension=64)

    first = provider.embed("flood damage")
    second = provider.embed("flood damage")

    np.testing.assert_array_equal(first, second)
    assert first.dtype == np.float32
    assert first.shape == (64,)
    assert first.min() >= -0.5 and first.max() <= 0.5
    # 32 digest bytes repeat across the vector
    np.testing.assert_array_equal(first[:32], first[32:])


def test_seeded_noisy_sim_is_reproducible():
    a = SimEmbeddingProvider(dimension=16, noisy=True, noise_amplitude=0.1, noise_seed=7)
    b = SimEmbeddingProvider(dimension=16, noisy=True, noise_amplitude=0.1, noise_seed=7)
    plain = SimEmbeddingProvider(dimension=16)

    noisy = a.embed("fire")

    np.testing.assert_array_equal(noisy, b.embed("fire"))
    assert not np.array_equal(noisy, plain.embed("fire"))
    assert np.abs(noisy - plain.embed("fire")).max() <= 0.1 + 1e-6


def test_semantic_hash_is_normalized_and_tracks_overlap():
    provider = SemanticHashEmbeddingProvider(dimension=256)

    a = provider.embed("Flood damage in the basement")
    b = provider.embed("basement flood damage")
    c = provider.embed("stolen bicycle reported to police")

    assert l2_norm(a) == pytest.approx(1.0, abs=1e-5)
    assert cosine_similarity(a, b) > cosine_similarity(a, c)


def test_semantic_hash_empty_text_is_zero():
    vec = SemanticHashEmbeddingProvider(dimension=32).embed("   ")

    assert not vec.any()


def test_tokenize_drops_stopwords_and_stems():
    assert list(tokenize("The floods are covered")) == ["flood"]


def test_fnv1a32_reference_values():
    assert fnv1a32("") == 2166136261
    assert fnv1a32("a") == 0xE40C292C


def test_keyword_counts_are_substring_counts():
    vec = KeywordCountEmbeddingProvider(dimension=8).embed("Floods and FLOOD water")

    assert vec[5] == 2.0
    assert vec[1] == 1.0
    assert vec[0] == 0.0
    assert vec[7] == 0.0


def test_keyword_provider_rejects_small_dimension():
    with pytest.raises(ValueError):
        KeywordCountEmbeddingProvider(dimension=3)


def test_cache_returns_copies_and_counts():
    provider = CachingEmbeddingProvider(KeywordCountEmbeddingProvider(dimension=8))

    first = provider.embed("Fire")
    first[0] = 99.0
    second = provider.embed("  fire ")

    assert second[0] == 1.0
    assert provider.stats() == {"hits": 1, "misses": 1, "evicted": 0, "entries": 1}


def test_cache_evicts_oldest_entry():
    provider = CachingEmbeddingProvider(KeywordCountEmbeddingProvider(dimension=8), max_entries=1)

    provider.embed("fire")
    provider.embed("flood")
    provider.embed("fire")

    assert provider.stats()["evicted"] == 2
    assert provider.stats()["misses"] == 3


def test_factory_builds_configured_provider():
    keyword = create_embedding_provider(
        EmbeddingConfig(provider="keyword", dimension=8, cache_enabled=True)
    )
    semantic = create_embedding_provider(EmbeddingConfig(provider="Semantic", dimension=16))

    assert isinstance(keyword, CachingEmbeddingProvider)
    assert keyword.name == "keyword+cache"
    assert isinstance(semantic, SemanticHashEmbeddingProvider)
    assert semantic.dimension == 16


def test_factory_rejects_unknown_provider():
    with pytest.raises(ValueError):
        create_embedding_provider(EmbeddingConfig(provider="openai"))


def test_batch_embedding_and_cancellation(keyword_provider):
    matrix = embed_texts(keyword_provider, ["fire", "theft theft"])

    assert matrix.shape == (2, 8)
    assert matrix[1, 3] == 2.0

    token = CancellationToken()
    token.cancel()
    with pytest.raises(OperationCancelledError):
        keyword_provider.embed_documents({"a": "fire"}, token)


def test_batch_result_carries_provider_metadata(keyword_provider):
    result = keyword_provider.embed_batch(["flood", "storm"])

    assert result.vectors.shape == (2, 8)
    assert result.provider_name == "keyword"
    assert result.config_hash == keyword_provider.config_hash()
    assert result.config_hash != KeywordCountEmbeddingProvider(dimension=16).config_hash()
    assert len(result.config_hash) == 8


def test_batch_embedding_stops_when_cancelled(keyword_provider):
    token = CancellationToken()
    token.cancel()

    with pytest.raises(OperationCancelledError):
        keyword_provider.embed_batch(["fire"], token)


def test_cache_keeps_recently_used_entries():
    provider = CachingEmbeddingProvider(KeywordCountEmbeddingProvider(dimension=8), max_entries=2)

    provider.embed("fire")
    provider.embed("flood")
    provider.embed("fire")
    provider.embed("storm")
    provider.embed("fire")

    assert provider.stats() == {"hits": 2, "misses": 3, "evicted": 1, "entries": 2}
