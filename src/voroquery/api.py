"""Query facade: a stateful Voronoi context.

A :class:`VoronoiContext3D` owns one container, one site store and one set of
walls. Sites and walls are added incrementally; cells are computed on demand
and returned as :class:`~voroquery.serialize.CellRecord` values.

Lookup policy:
  - ``get_cell`` on an id that has no cell (unknown id, site outside the
    container, or a cell cut away completely) returns the empty record
    ``CellRecord()`` instead of raising. Callers test ``record.is_empty``.
  - Sites whose cell cannot be computed are left out of ``get_all_cells``.
"""

from __future__ import annotations

from typing import Any, Callable, Literal, Sequence

import logging
import warnings

import numpy as np

from .domains import Domain, domain_from_bounds
from ._util import as_point, domain_length_scale
from .duplicates import duplicate_check as _duplicate_check
from .engine import Container, NeighborCell, SiteLoop
from .relax import relax_step
from .serialize import CellRecord, serialize_cell
from .sites import SiteStore
from .walls import (
    WALL_ID_DEFAULT,
    BoundarySet,
    ConeWall,
    CustomWall,
    CylinderWall,
    PlaneWall,
    SphereWall,
    Wall,
)

logger = logging.getLogger(__name__)


def _warn_if_scale_suspicious(domain: Domain) -> None:
    """Warn if the box scale is likely to be numerically problematic.

    The engine and the walls use a few fixed absolute tolerances (e.g. a
    1e-5 dead zone around wall axes). Very small or very large coordinate
    systems degrade them. Inputs are never rescaled automatically.
    """

    L = float(domain_length_scale(domain))
    if not np.isfinite(L) or L <= 0:
        return
    if L < 1e-3:
        warnings.warn(
            'The box length scale appears very small (L≈{:.3g}). '
            'Wall and duplicate tolerances are absolute (~1e-5); consider '
            'rescaling your coordinates.'.format(L),
            RuntimeWarning,
            stacklevel=3,
        )
    elif L > 1e9:
        warnings.warn(
            'The box length scale appears very large (L≈{:.3g}). '
            'Floating-point precision may be poor at this scale; consider '
            'rescaling your coordinates.'.format(L),
            RuntimeWarning,
            stacklevel=3,
        )


class VoronoiContext3D:
    """Voronoi cells of labeled 3D sites inside a box with optional walls.

    Args:
        box_min: Lower box corner (x, y, z).
        box_max: Upper box corner (x, y, z).
        periodic: Per-axis periodicity flags. Periodic axes and walls may be
            combined freely; keeping them consistent is up to the caller.
        blocks: Block grid (nx, ny, nz) of the container. It determines the
            order in which cells are traversed.
        duplicate_check: Near-duplicate pre-check run before every
            computation: 'off', 'warn' or 'raise'.
        duplicate_threshold: Absolute distance used by the pre-check.

    The context is single-threaded. Use it as a context manager, or call
    :meth:`close`, to release its walls deterministically.
    """

    def __init__(
        self,
        box_min: Sequence[float],
        box_max: Sequence[float],
        periodic: Sequence[bool] = (False, False, False),
        *,
        blocks: tuple[int, int, int] = (6, 6, 6),
        duplicate_check: Literal['off', 'warn', 'raise'] = 'off',
        duplicate_threshold: float = 1e-5,
    ) -> None:
        if duplicate_check not in ('off', 'warn', 'raise'):
            raise ValueError('duplicate_check must be one of: \'off\', \'warn\', \'raise\'')
        self.domain: Domain = domain_from_bounds(box_min, box_max, periodic)
        _warn_if_scale_suspicious(self.domain)
        self._container: Container | None = Container(self.domain, blocks=blocks)
        self._sites = SiteStore()
        self._walls = BoundarySet()
        self._duplicate_check = duplicate_check
        self._duplicate_threshold = float(duplicate_threshold)

    def __repr__(self) -> str:
        state = 'closed' if self.closed else f'{len(self._sites)} sites, {len(self._walls)} walls'
        return f'{type(self).__name__}({self.domain!r}, {state})'

    def __len__(self) -> int:
        return len(self._sites)

    def __enter__(self) -> 'VoronoiContext3D':
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._container is None

    @property
    def sites(self) -> SiteStore:
        return self._sites

    @property
    def walls(self) -> BoundarySet:
        return self._walls

    def _require_container(self) -> Container:
        if self._container is None:
            raise RuntimeError('VoronoiContext3D is closed')
        return self._container

    # --- sites ---

    def add_point(self, pid: int, position: Sequence[float] | np.ndarray) -> None:
        """Insert a site, overwriting any site with the same id."""

        self._require_container()
        self._sites.add(pid, position)

    def add_points(
        self,
        ids: Sequence[int] | np.ndarray,
        xs: Sequence[float] | np.ndarray,
        ys: Sequence[float] | np.ndarray,
        zs: Sequence[float] | np.ndarray,
    ) -> None:
        """Insert sites from parallel sequences.

        Raises:
            InvalidArgumentError: If the lengths differ; nothing is inserted.
        """

        self._require_container()
        self._sites.add_many(ids, xs, ys, zs)

    # --- walls ---

    def add_wall(self, wall: Wall) -> Wall:
        """Register a wall; the context takes ownership of it."""

        self._require_container()
        return self._walls.add(wall)

    def add_wall_plane(
        self,
        normal: Sequence[float],
        offset: float,
        wall_id: int = WALL_ID_DEFAULT,
    ) -> PlaneWall:
        """Keep the half-space ``normal·x <= offset``."""

        return self.add_wall(PlaneWall(normal, offset, wall_id=wall_id))  # type: ignore[return-value]

    def add_wall_sphere(
        self,
        center: Sequence[float],
        radius: float,
        wall_id: int = WALL_ID_DEFAULT,
    ) -> SphereWall:
        return self.add_wall(SphereWall(center, radius, wall_id=wall_id))  # type: ignore[return-value]

    def add_wall_cylinder(
        self,
        axis_point: Sequence[float],
        axis_dir: Sequence[float],
        radius: float,
        wall_id: int = WALL_ID_DEFAULT,
    ) -> CylinderWall:
        wall = CylinderWall(axis_point, axis_dir, radius, wall_id=wall_id)
        return self.add_wall(wall)  # type: ignore[return-value]

    def add_wall_cone(
        self,
        apex: Sequence[float],
        axis_dir: Sequence[float],
        half_angle: float,
        wall_id: int = WALL_ID_DEFAULT,
    ) -> ConeWall:
        """Keep the inside of a cone; `half_angle` is in radians."""

        return self.add_wall(ConeWall(apex, axis_dir, half_angle, wall_id=wall_id))  # type: ignore[return-value]

    def add_wall_custom(
        self,
        point_inside: Callable[[float, float, float], Any],
        cut_cell: Callable[[float, float, float], Any],
        wall_id: int = WALL_ID_DEFAULT,
    ) -> CustomWall:
        """Register host boundary logic.

        Args:
            point_inside: ``(x, y, z) -> bool``.
            cut_cell: ``(x, y, z) -> {'cut': bool, 'nx', 'ny', 'nz', 'd'}``
                (or ``None`` / ``(nx, ny, nz, d)``). The cut retains
                ``n·r <= d`` for ``r`` relative to the site at (x, y, z).
        """

        return self.add_wall(CustomWall(point_inside, cut_cell, wall_id=wall_id))  # type: ignore[return-value]

    def point_inside(self, point: Sequence[float] | np.ndarray) -> bool:
        """True if `point` is inside the container and every wall."""

        container = self._require_container()
        return container.point_inside(as_point(point), self._walls)

    # --- queries ---

    def _loop(self) -> SiteLoop:
        container = self._require_container()
        loop = container.loop_all(self._sites)
        if self._duplicate_check != 'off' and len(loop) > 1:
            _duplicate_check(
                loop.positions,
                ids=loop.ids,
                threshold=self._duplicate_threshold,
                domain=self.domain,
                mode='warn' if self._duplicate_check == 'warn' else 'raise',
            )
        return loop

    def get_cell(self, pid: int) -> CellRecord:
        """Compute one cell; an id without a cell yields ``CellRecord()``."""

        container = self._require_container()
        loop = self._loop()
        k = loop.find(int(pid))
        if k < 0:
            logger.debug('get_cell: no site with id %d', pid)
            return CellRecord()
        cell = NeighborCell()
        if not container.compute_cell(cell, loop, k, self._walls):
            return CellRecord()
        return serialize_cell(cell.to_raw(), int(loop.ids[k]), loop.positions[k])

    def get_all_cells(self) -> list[CellRecord]:
        """Compute every cell, in the container's traversal order."""

        container = self._require_container()
        loop = self._loop()
        cell = NeighborCell()
        out: list[CellRecord] = []
        for k in range(len(loop)):
            if not container.compute_cell(cell, loop, k, self._walls):
                continue
            out.append(serialize_cell(cell.to_raw(), int(loop.ids[k]), loop.positions[k]))
        return out

    def relax(self) -> np.ndarray:
        """One Lloyd step: centroids as an ``(n, 3)`` array indexed by site id.

        See :func:`voroquery.relax.relax_step` for the dense-id requirement.
        """

        container = self._require_container()
        self._loop()  # duplicate pre-check
        return relax_step(container, self._sites, self._walls)

    # --- lifecycle ---

    def clear(self) -> None:
        """Discard all sites and release all walls."""

        self._require_container()
        n_sites = self._sites.clear()
        n_walls = self._walls.clear()
        logger.debug('cleared %d site(s) and %d wall(s)', n_sites, n_walls)

    def close(self) -> None:
        """Tear the context down. Safe to call more than once."""

        if self._container is None:
            return
        self.clear()
        self._container = None
