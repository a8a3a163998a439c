"""One step of Lloyd relaxation."""

from __future__ import annotations

from typing import Any, Iterable

import warnings

import numpy as np

from .engine import Container, ConvexCell
from .sites import SiteStore


def relax_step(
    container: Container,
    store: SiteStore,
    walls: Iterable[Any] = (),
) -> np.ndarray:
    """Return the centroid of every site's current cell.

    The result has shape ``(len(store), 3)`` and row ``i`` belongs to the site
    with id ``i``. Rows start at zero; a site whose cell cannot be computed
    keeps that zero row.

    Known limitation: placement assumes ids form the dense range
    ``0..len(store)-1``. Sites with ids outside that range are left out and
    reported with a ``RuntimeWarning``.
    """

    n = len(store)
    out = np.zeros((n, 3), dtype=np.float64)
    loop = container.loop_all(store)
    walls = list(walls)
    cell = ConvexCell()
    unplaced: list[int] = []

    for k in range(len(loop)):
        if not container.compute_cell(cell, loop, k, walls):
            continue
        pid = int(loop.ids[k])
        if not 0 <= pid < n:
            unplaced.append(pid)
            continue
        out[pid] = loop.positions[k] + cell.centroid()

    if unplaced:
        shown = ', '.join(str(i) for i in sorted(unplaced)[:10])
        warnings.warn(
            f'relax() indexes output by site id but {len(unplaced)} id(s) fall '
            f'outside 0..{n - 1} and were skipped: {shown}',
            RuntimeWarning,
            stacklevel=3,
        )
    return out
