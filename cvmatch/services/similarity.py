"""
Text similarity used by the dimension scorers.

The default ``token`` backend is a bag-of-words overlap over short labels
(skills, job titles, industry names). The ``embedding`` backend asks Ollama for
embeddings and uses cosine similarity instead. Both backends share the same
contract, so the scorer thresholds mean the same thing either way:

* empty input on either side -> 0.0
* case-insensitive, trimmed equality -> 1.0
* anything else -> a value in [0, 1]
"""
import os
from functools import lru_cache
from typing import Iterable, Optional, Tuple

import numpy as np
from dotenv import load_dotenv

from cvmatch.utils.exceptions import ExternalServiceError
from cvmatch.utils.logging_config import get_logger
from cvmatch.utils.utils import ollama_embed

load_dotenv()
logger = get_logger(__name__)

SIMILARITY_BACKEND = os.getenv("SIMILARITY_BACKEND", "token").lower()


def _normalize(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def token_similarity(a: str, b: str) -> float:
    words_a = _normalize(a).split()
    words_b = _normalize(b).split()
    if not words_a or not words_b:
        return 0.0
    set_b = set(words_b)
    common = [w for w in words_a if w in set_b]
    union = set(words_a) | set_b
    # repeated tokens on the left can push the ratio past 1
    return min(1.0, len(common) / len(union))


@lru_cache(maxsize=2048)
def _embedding(text: str) -> np.ndarray:
    return ollama_embed(text)


def embedding_similarity(a: str, b: str) -> float:
    va = _embedding(_normalize(a))
    vb = _embedding(_normalize(b))
    num = float(np.dot(va, vb))
    den = float(np.linalg.norm(va) * np.linalg.norm(vb)) or 1e-8
    return max(0.0, min(1.0, num / den))


def text_similarity(a: Optional[str], b: Optional[str], backend: str = None) -> float:
    """Similarity of two short strings in [0, 1]."""
    na, nb = _normalize(a), _normalize(b)
    if not na or not nb:
        return 0.0
    if na == nb:
        return 1.0

    backend = backend or SIMILARITY_BACKEND
    if backend == "embedding":
        try:
            return embedding_similarity(na, nb)
        except (ExternalServiceError, KeyError, ValueError) as e:
            logger.warning(f"Embedding similarity unavailable, using token overlap: {e}")
    return token_similarity(na, nb)


def best_match(target: str, candidates: Iterable[str], backend: str = None) -> Tuple[Optional[str], float]:
    """Return the candidate most similar to ``target``; ties keep the earliest."""
    best, best_sim = None, 0.0
    for candidate in candidates:
        sim = text_similarity(target, candidate, backend)
        if best is None or sim > best_sim:
            best, best_sim = candidate, sim
    return best, best_sim
