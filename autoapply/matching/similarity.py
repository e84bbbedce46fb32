"""Cosine similarity between embedding vectors."""

import math
from typing import Sequence


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Return the cosine of the angle between two vectors.

    Vectors of different length, and any vector with zero magnitude, give 0.0
    rather than an error. The result is not clamped: opposed vectors give a
    negative value.

    Examples:
        >>> cosine_similarity([1, 0], [1, 0])
        1.0
        >>> cosine_similarity([1, 0], [0, 1])
        0.0
        >>> cosine_similarity([1, 0, 0], [1, 0])
        0.0
    """
    if len(vec_a) != len(vec_b):
        return 0.0

    dot_product = 0.0
    magnitude_a = 0.0
    magnitude_b = 0.0
    for a, b in zip(vec_a, vec_b):
        dot_product += a * b
        magnitude_a += a * a
        magnitude_b += b * b

    magnitude_a = math.sqrt(magnitude_a)
    magnitude_b = math.sqrt(magnitude_b)
    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0

    return dot_product / (magnitude_a * magnitude_b)
