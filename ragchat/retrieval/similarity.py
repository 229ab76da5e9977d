"""Cosine similarity over embedding vectors."""

from collections.abc import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute ``dot(a, b) / (|a| * |b|)``.

    Vectors of different length are compared as if the shorter one were
    padded with zeros.

    Returns:
        A score in [-1, 1]; exactly 0.0 when either vector has zero
        magnitude.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    size = min(va.shape[0], vb.shape[0])
    score = float(np.dot(va[:size], vb[:size])) / (norm_a * norm_b)
    # Rounding can push parallel vectors just past 1.
    return max(-1.0, min(1.0, score))
