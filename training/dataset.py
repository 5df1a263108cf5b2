"""
Labeled dataset loader.

Layout:
    root/documents/*.txt   (or root/policies/*.txt), doc id = file stem
    root/queries/queries.json
        [{"id": "q1", "text": "...", "relevantDocId": "doc1"}, ...]
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Union

from shared.schemas import TrainingQuery

logger = logging.getLogger(__name__)

DOCUMENT_DIRS = ("documents", "policies")


@dataclass
class LabeledDataset:
    name: str
    documents: Dict[str, str] = field(default_factory=dict)
    queries: List[TrainingQuery] = field(default_factory=list)


def load_documents(directory: Union[str, Path]) -> Dict[str, str]:
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Documents directory not found: {directory}")
    return {
        path.stem: path.read_text(encoding="utf-8")
        for path in sorted(directory.glob("*.txt"))
    }


def load_queries(path: Union[str, Path]) -> List[TrainingQuery]:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Queries file not found: {path}")
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list of queries")
    queries = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValueError(
                f"{path}: query entry {index} must be a JSON object, got {item!r}"
            )
        # Keys are matched case-insensitively
        queries.append(
            TrainingQuery.model_validate({_canonical_key(k): v for k, v in item.items()})
        )
    return queries


def _canonical_key(key: str) -> str:
    lowered = key.lower()
    if lowered == "id":
        return "id"
    if lowered == "text":
        return "text"
    if lowered in ("relevantdocid", "relevantdocumentid", "relevant_doc_id"):
        return "relevantDocId"
    return key


def load_dataset(root: Union[str, Path]) -> LabeledDataset:
    root = Path(root)
    doc_dir = next((root / d for d in DOCUMENT_DIRS if (root / d).is_dir()), None)
    if doc_dir is None:
        raise FileNotFoundError(
            f"No documents directory ({' or '.join(DOCUMENT_DIRS)}) under {root}"
        )
    dataset = LabeledDataset(
        name=root.name,
        documents=load_documents(doc_dir),
        queries=load_queries(root / "queries" / "queries.json"),
    )
    logger.info(
        f"Loaded dataset {dataset.name}: {len(dataset.documents)} documents, "
        f"{len(dataset.queries)} queries"
    )
    return dataset
