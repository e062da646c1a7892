"""2-opt local search over an open delivery path.

The path's first node (origin, or the first stop when no origin is given) is
fixed. Two moves are considered for positions ``i < j`` with ``j >= i + 2``:

* classic: edges ``(i, i+1)`` and ``(j, j+1)`` become ``(i, j)`` and
  ``(i+1, j+1)``;
* tail: ``j`` is the last node, so only ``(i, i+1)`` becomes ``(i, j)``.

Either way the segment ``path[i+1 .. j]`` is reversed. The scan order is
ascending ``i`` then ascending ``j`` and the first improving move is applied
before rescanning.
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

from .distance import DistanceMatrix
from .models import TwoOptOutcome
from .tour import node_offset, path_nodes

logger = logging.getLogger(__name__)


def move_delta(path: Sequence[int], i: int, j: int, matrix: DistanceMatrix) -> tuple[float, float]:
    """Return ``(delta, removed)`` for reversing ``path[i+1 .. j]``."""

    a, b, c = path[i], path[i + 1], path[j]
    removed = matrix.distance(a, b)
    added = matrix.distance(a, c)
    if j + 1 < len(path):
        d = path[j + 1]
        removed += matrix.distance(c, d)
        added += matrix.distance(b, d)
    return added - removed, removed


def find_improving_move(
    path: Sequence[int],
    matrix: DistanceMatrix,
    epsilon: float,
) -> Optional[tuple[int, int]]:
    last = len(path) - 1
    for i in range(0, last - 1):
        for j in range(i + 2, last + 1):
            delta, removed = move_delta(path, i, j, matrix)
            if delta < -epsilon * max(1.0, removed):
                return i, j
    return None


def two_opt(
    order: Sequence[int],
    matrix: DistanceMatrix,
    *,
    has_origin: bool,
    max_iterations: int,
    epsilon: float = 1e-9,
    time_limit_seconds: Optional[float] = None,
    deadline: Optional[float] = None,
) -> TwoOptOutcome:
    """Improve ``order`` until no move helps or the budget runs out.

    ``max_iterations`` bounds the number of accepted reversals. Running out of
    budget while an improving move remains is reported through
    ``converged=False``; the returned order is always a complete tour no
    longer than the input. ``deadline`` is a ``time.monotonic()`` timestamp
    and takes precedence over ``time_limit_seconds``.
    """
    path = path_nodes(order, has_origin)
    iterations = 0
    converged = True
    if deadline is None and time_limit_seconds:
        deadline = time.monotonic() + time_limit_seconds

    while True:
        move = find_improving_move(path, matrix, epsilon)
        if move is None:
            break
        if iterations >= max_iterations or (deadline is not None and time.monotonic() >= deadline):
            converged = False
            break
        i, j = move
        path[i + 1 : j + 1] = path[i + 1 : j + 1][::-1]
        iterations += 1

    if not converged:
        logger.debug(
            "2-opt stopped after %d reversal(s) with improving moves left (cap=%d)",
            iterations,
            max_iterations,
        )

    offset = node_offset(has_origin)
    stops = path[1:] if has_origin else path
    return TwoOptOutcome(
        order=tuple(node - offset for node in stops),
        iterations=iterations,
        converged=converged,
    )
