from typing import Sequence

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as pairwise_cosine


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of two vectors; 0.0 when either has zero norm."""
    return float(similarity_scores(a, np.asarray([b], dtype=np.float64))[0])


def similarity_scores(query: Sequence[float], candidates: np.ndarray) -> np.ndarray:
    """Cosine similarity of ``query`` against each row of ``candidates``.

    Zero rows (and a zero query) score 0 instead of NaN.
    """
    candidates = np.asarray(candidates, dtype=np.float64)
    if candidates.size == 0:
        return np.zeros(len(candidates), dtype=np.float64)
    query = np.asarray(query, dtype=np.float64).reshape(1, -1)
    scores = pairwise_cosine(query, candidates)[0]
    return np.nan_to_num(scores, nan=0.0)
