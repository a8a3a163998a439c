"""Pre-check for coincident and nearly coincident sites.

The engine computes no bisector for two sites that sit on top of each other,
so their cells overlap and share no face. :func:`duplicate_check` finds such
pairs before the cells are computed.

Sites are bucketed on a cubic grid whose spacing equals the threshold. A site
can then only be too close to sites in its own bucket or in one of the 26
buckets around it, which keeps the scan linear for evenly spread sites.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import islice, product
from typing import Any, Iterator, Literal, Sequence

import warnings

import numpy as np

from .domains import Domain
from ._util import is_periodic_domain


_STENCIL = tuple(product((-1, 0, 1), repeat=3))


@dataclass(frozen=True, slots=True)
class DuplicatePair:
    """Ids of two sites that are too close; `i` was registered before `j`."""

    i: int
    j: int
    distance: float


class DuplicateError(ValueError):
    """Sites closer than the threshold were found.

    Attributes:
        pairs: Offending pairs, at most ``max_pairs`` of them.
        threshold: Distance the pairs fell under.
    """

    def __init__(
        self, message: str, pairs: tuple[DuplicatePair, ...], threshold: float
    ):
        super().__init__(message)
        self.pairs = pairs
        self.threshold = float(threshold)


def _as_sites(points: Any, ids: Any) -> tuple[np.ndarray, np.ndarray]:
    pts = np.asarray(points, dtype=np.float64)
    if pts.size == 0:
        pts = pts.reshape(0, 3)
    if pts.ndim != 2 or pts.shape[1] != 3:
        raise ValueError('points must have shape (n, 3)')
    if not np.all(np.isfinite(pts)):
        raise ValueError('points must contain only finite values')

    n = pts.shape[0]
    if ids is None:
        return pts, np.arange(n, dtype=np.int64)
    labels = np.asarray(ids, dtype=np.int64).reshape(-1)
    if labels.shape != (n,):
        raise ValueError('ids must have length n')
    return pts, labels


def _close_pairs(pts: np.ndarray, spacing: float) -> Iterator[tuple[int, int, float]]:
    """Yield ``(earlier_row, later_row, distance)`` for rows closer than `spacing`."""

    cells = np.floor(pts / spacing).astype(np.int64)
    limit = spacing * spacing
    grid: dict[tuple[int, int, int], list[int]] = {}
    for row, (cx, cy, cz) in enumerate(cells.tolist()):
        for dx, dy, dz in _STENCIL:
            for other in grid.get((cx + dx, cy + dy, cz + dz), ()):
                diff = pts[row] - pts[other]
                dist_sq = float(diff @ diff)
                if dist_sq < limit:
                    yield other, row, float(np.sqrt(dist_sq))
        grid.setdefault((cx, cy, cz), []).append(row)


def duplicate_check(
    points: Any,
    *,
    ids: Sequence[int] | np.ndarray | None = None,
    threshold: float = 1e-5,
    domain: Domain | None = None,
    wrap: bool = True,
    mode: Literal['raise', 'warn', 'return'] = 'raise',
    max_pairs: int = 10,
) -> tuple[DuplicatePair, ...]:
    """Find site pairs separated by less than `threshold`.

    Args:
        points: Site positions, shape (n, 3).
        ids: Site ids in the same order as `points`; pairs are reported with
            these. Row numbers are used when omitted.
        threshold: Absolute separation below which two sites clash.
        domain: Container domain. Periodic axes are folded into the primary
            cell first (when `wrap` is set), the same way the container
            places sites.
        wrap: Fold positions on periodic axes of `domain`.
        mode: 'raise' raises :class:`DuplicateError`; 'warn' emits a
            RuntimeWarning and returns the pairs; 'return' only returns them.
        max_pairs: Stop after this many pairs.

    Returns:
        The clashing pairs in discovery order; empty if there are none.
    """

    if mode not in ('raise', 'warn', 'return'):
        raise ValueError('mode must be one of: \'raise\', \'warn\', \'return\'')
    thr = float(threshold)
    if not np.isfinite(thr) or thr <= 0:
        raise ValueError('threshold must be a positive finite number')
    if int(max_pairs) <= 0:
        raise ValueError('max_pairs must be > 0')

    pts, labels = _as_sites(points, ids)
    if pts.shape[0] < 2:
        return tuple()
    if domain is not None and wrap and is_periodic_domain(domain):
        pts = np.asarray(domain.remap_cart(pts), dtype=np.float64)  # type: ignore[union-attr]

    pairs = tuple(
        DuplicatePair(int(labels[a]), int(labels[b]), dist)
        for a, b, dist in islice(_close_pairs(pts, thr), int(max_pairs))
    )
    if not pairs:
        return pairs

    msg = (
        f'{len(pairs)} site pair(s) are closer than threshold={thr:g}; '
        'each pair gets no separating face and the two cells overlap.'
    )
    if mode == 'raise':
        raise DuplicateError(msg, pairs, thr)
    if mode == 'warn':
        warnings.warn(msg, RuntimeWarning, stacklevel=2)
    return pairs
