"""Epsilon-rule relevance utilities shared by the layer helpers."""

from __future__ import annotations

import numpy as np

from ..core.types import Array

RELEVANCE_EPSILON = 0.01


def stabilizer(y: Array) -> Array:
    """``+eps`` where ``y >= 0``, ``-eps`` elsewhere (never zero)."""

    return np.where(y >= 0.0, RELEVANCE_EPSILON, -RELEVANCE_EPSILON)


def relevance_of(
    y: Array,
    y_relevance: Array,
    contributions: Array,
    n_inputs: int | None = None,
) -> Array:
    """Distribute ``y_relevance`` over the columns of ``contributions``.

    ``contributions[j, i]`` is the share of input ``i`` in the output ``y[j]``.
    Each input receives ``sum_j R_y[j] * (c[j, i] + eps_j / n) / (y[j] + eps_j)``
    where ``n`` is the number of inputs sharing ``y`` (defaults to the
    number of columns). The relevance is conserved when the rows of the
    contributions sum to ``y``.
    """

    n = contributions.shape[1] if n_inputs is None else n_inputs
    eps = stabilizer(y)
    ratio = (contributions + eps / n) / (y + eps)
    return ratio.T @ y_relevance


def partition(y_relevance: Array, y: Array, y_part: Array, y_split: Array, n_parts: int = 2) -> Array:
    """Share of ``y_relevance`` owed to ``y_part``, one of ``n_parts`` summands of ``y``.

    The stabilizer sign is taken from ``y_split`` for every part, so the
    shares of all parts add up to ``y_relevance``.
    """

    eps = stabilizer(y_split)
    return y_relevance * (y_part + eps / n_parts) / (y + eps)


__all__ = ["RELEVANCE_EPSILON", "stabilizer", "relevance_of", "partition"]
