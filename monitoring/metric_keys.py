"""
Stable metric key names.

External reporting discovers baseline, variant and delta values by these
keys, so they must not change.
"""

MAP_AT_1 = "map@1"
NDCG_AT_3 = "ndcg@3"
COSINE = "cosine"

RANKING_METRICS = (MAP_AT_1, NDCG_AT_3)


def baseline_key(metric: str) -> str:
    return f"eval.{metric}.baseline"


def variant_key(metric: str) -> str:
    return f"eval.{metric}.variant"


def delta_key(metric: str) -> str:
    return f"eval.delta.{metric}"


MAP_AT_1_BASELINE = baseline_key(MAP_AT_1)
MAP_AT_1_VARIANT = variant_key(MAP_AT_1)
MAP_AT_1_DELTA = delta_key(MAP_AT_1)
NDCG_AT_3_BASELINE = baseline_key(NDCG_AT_3)
NDCG_AT_3_VARIANT = variant_key(NDCG_AT_3)
NDCG_AT_3_DELTA = delta_key(NDCG_AT_3)
COSINE_BASELINE = baseline_key(COSINE)
COSINE_VARIANT = variant_key(COSINE)
COSINE_DELTA = delta_key(COSINE)
