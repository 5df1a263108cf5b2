"""
Deterministic embedding simulations.

No real model is used. These providers map text to fixed-dimension vectors
so that training and evaluation are reproducible:

- SimEmbeddingProvider: SHA-256 byte pattern (no semantic locality)
- SemanticHashEmbeddingProvider: hashed tokens and character n-grams, so
  texts sharing words land close together
- KeywordCountEmbeddingProvider: counts of insurance keywords in the first
  dimensions, everything else zero
"""

import hashlib
import logging
import re
from typing import Iterator, Optional, Sequence

import numpy as np

from shared.vector_ops import DIM
from shifts.keyword_boost import INSURANCE_KEYWORDS
from shifts.noise import RandomNoiseShift

from .embedder import EmbeddingProvider

logger = logging.getLogger(__name__)

_MASK32 = 0xFFFFFFFF

# Kept small so domain terms survive
STOPWORDS = frozenset(
    """
    a an and are as at be but by for from has have in into is it its of on or
    that the their then this to was were with what when where which who why
    section policy coverage claim claims cover covered provide provides include
    includes including exclusion exclusions limit limits
    """.split()
)


class SimEmbeddingProvider(EmbeddingProvider):
    """
    SHA-256 based simulation.

    vec[i] = bytes[i % 32] / 255 - 0.5. In noisy mode a seeded RandomNoiseShift
    is applied after hashing.
    """

    def __init__(
        self,
        dimension: int = DIM,
        noisy: bool = False,
        noise_amplitude: float = 0.05,
        noise_seed: Optional[int] = None,
    ):
        super().__init__("sim", dimension)
        self._noise: Optional[RandomNoiseShift] = None
        if noisy and noise_amplitude > 0:
            self._noise = RandomNoiseShift(noise_amplitude, seed=noise_seed)
            logger.info(
                f"Sim embeddings in noisy mode (amplitude={noise_amplitude}, "
                f"seed={noise_seed})"
            )

    def embed(self, text: str) -> np.ndarray:
        digest = np.frombuffer(
            hashlib.sha256((text or "").encode("utf-8")).digest(), dtype=np.uint8
        )
        idx = np.arange(self.dimension) % digest.shape[0]
        vec = (digest[idx].astype(np.float32) / np.float32(255.0)) - np.float32(0.5)
        if self._noise is not None:
            self._noise.apply_in_place(vec)
        return vec


def fnv1a32(text: str) -> int:
    h = 2166136261
    for ch in text:
        h ^= ord(ch)
        h = (h * 16777619) & _MASK32
    return h


def mix32(x: int, salt: int) -> int:
    x ^= (salt + 0x9E3779B9) & _MASK32
    x ^= x >> 16
    x = (x * 0x7FEB352D) & _MASK32
    x ^= x >> 15
    x = (x * 0x846CA68B) & _MASK32
    x ^= x >> 16
    return x


def simple_stem(token: str) -> str:
    if len(token) <= 4:
        return token
    if token.endswith("ing") and len(token) > 5:
        return token[:-3]
    if token.endswith("ed") and len(token) > 4:
        return token[:-2]
    if token.endswith("es") and len(token) > 4:
        return token[:-2]
    if token.endswith("s") and len(token) > 3:
        return token[:-1]
    return token


def tokenize(text: str) -> Iterator[str]:
    for raw in re.split(r"[^0-9a-z]+", text.lower()):
        if len(raw) < 3 or raw.isdigit():
            continue
        token = simple_stem(raw)
        if len(token) < 3 or token in STOPWORDS:
            continue
        yield token


def char_ngrams(text: str, n: int) -> Iterator[str]:
    s = "".join(ch for ch in text.lower() if ch.isalnum())
    for i in range(len(s) - n + 1):
        yield s[i:i + n]


class SemanticHashEmbeddingProvider(EmbeddingProvider):
    """
    Hash features of tokens and character n-grams into a dense vector.

    Cosine similarity between two outputs correlates with textual overlap.
    Vectors are L2-normalized; empty text gives the zero vector.
    """

    def __init__(
        self,
        dimension: int = DIM,
        token_features: int = 8,
        include_char_ngrams: bool = True,
        ngram_size: int = 3,
        ngram_features: int = 2,
    ):
        if token_features <= 0 or ngram_features <= 0:
            raise ValueError("Feature counts must be positive")
        if ngram_size <= 1:
            raise ValueError(f"ngram_size must be > 1, got {ngram_size}")
        super().__init__("semantic-hash", dimension)
        self.token_features = token_features
        self.include_char_ngrams = include_char_ngrams
        self.ngram_size = ngram_size
        self.ngram_features = ngram_features

    def _add_features(self, vec: np.ndarray, base_hash: int, count: int) -> None:
        for k in range(count):
            h = mix32(base_hash, k)
            sign = 1.0 if h & 0x80000000 else -1.0
            vec[h % self.dimension] += sign * (0.5 + (h & 0xFFFF) / 65535.0)

    def embed(self, text: str) -> np.ndarray:
        vec = np.zeros(self.dimension, dtype=np.float64)
        if not text or not text.strip():
            return vec.astype(np.float32)

        for token in tokenize(text):
            self._add_features(vec, fnv1a32(token), self.token_features)
        if self.include_char_ngrams:
            for gram in char_ngrams(text, self.ngram_size):
                self._add_features(vec, fnv1a32(gram), self.ngram_features)

        norm = np.linalg.norm(vec)
        if norm > 0:
            vec /= norm
        return vec.astype(np.float32)


class KeywordCountEmbeddingProvider(EmbeddingProvider):
    """
    Counts keyword occurrences into the first len(keywords) dimensions.

    Counts are case-insensitive substring occurrences, so "floods" counts as
    one "flood".
    """

    def __init__(self, dimension: int = DIM, keywords: Sequence[str] = INSURANCE_KEYWORDS):
        if dimension < len(keywords):
            raise ValueError(
                f"Dimension {dimension} too small for {len(keywords)} keywords"
            )
        super().__init__("keyword", dimension)
        self.keywords = tuple(k.lower() for k in keywords)

    def embed(self, text: str) -> np.ndarray:
        vec = np.zeros(self.dimension, dtype=np.float32)
        lowered = (text or "").lower()
        for i, keyword in enumerate(self.keywords):
            vec[i] = lowered.count(keyword)
        return vec
