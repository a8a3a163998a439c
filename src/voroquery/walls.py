"""Boundary walls.

Walls constrain Voronoi cells beyond the container box. Every wall kind offers
the same two-method capability:

  - ``point_inside(point) -> bool``: whether a point lies in the allowed
    region;
  - ``cut_cell(cell, point) -> bool``: clip the cell of the site at `point`
    and report whether anything is left of it.

Built-in kinds are planes, spheres, cylinders and cones. :class:`CustomWall`
forwards both calls to a pair of host-supplied callables, so arbitrary
boundary logic takes part in clipping exactly like the built-in kinds.

All clipping goes through :func:`clip_half_space`, which retains
``n·r <= d`` for ``r`` measured from the site, on any polytope that offers
``nplane`` (see :mod:`voroquery.engine`).

Walls are owned by the :class:`BoundarySet` they are registered with. Clearing
the set releases each wall exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Iterator, Mapping, Protocol, Sequence, TypeAlias

import enum
import logging

import numpy as np

from ._util import as_point

logger = logging.getLogger(__name__)


WALL_ID_DEFAULT = -99

# Points this close outside a built-in wall still count as inside.
INSIDE_TOL = 1e-9

# Sites closer than this (squared) to a wall's axis/centre are not cut.
_AXIS_EPS_SQ = 1e-5


class WallKind(enum.Enum):
    PLANE = 'plane'
    SPHERE = 'sphere'
    CYLINDER = 'cylinder'
    CONE = 'cone'
    CUSTOM = 'custom'


class Polytope(Protocol):
    """What a wall needs from a cell: a half-space cut that records `pid`."""

    def nplane(self, x: float, y: float, z: float, offset: float, pid: int = 0) -> bool:
        ...


@dataclass(frozen=True, slots=True)
class CutPlane:
    """Half-space ``nx*rx + ny*ry + nz*rz <= d`` relative to the tested point."""

    nx: float
    ny: float
    nz: float
    d: float

    @classmethod
    def from_host(cls, result: Any) -> 'CutPlane | None':
        """Interpret a host cut result.

        Accepted shapes: None/False (no cut), a CutPlane, a mapping with keys
        ``cut, nx, ny, nz, d``, or a length-4 sequence ``(nx, ny, nz, d)``.
        """

        if result is None or result is False:
            return None
        if isinstance(result, CutPlane):
            return result
        if isinstance(result, Mapping):
            if not result.get('cut', False):
                return None
            try:
                return cls(
                    float(result['nx']),
                    float(result['ny']),
                    float(result['nz']),
                    float(result['d']),
                )
            except KeyError as e:
                raise TypeError(f'cut result is missing key {e.args[0]!r}') from None
        if isinstance(result, Sequence) and not isinstance(result, (str, bytes)):
            if len(result) != 4:
                raise TypeError('cut result sequence must be (nx, ny, nz, d)')
            return cls(*(float(v) for v in result))
        raise TypeError(f'unsupported cut result: {type(result).__name__}')


def clip_half_space(cell: Polytope, plane: CutPlane, wall_id: int) -> bool:
    """Clip `cell` to ``plane`` and tag the new face with `wall_id`.

    Returns:
        False if the cell vanished.
    """

    return bool(cell.nplane(plane.nx, plane.ny, plane.nz, plane.d, wall_id))


@dataclass(eq=False)
class _WallBase:
    kind: ClassVar[WallKind]

    wall_id: int = field(default=WALL_ID_DEFAULT, kw_only=True)
    _owner: Any = field(default=None, init=False, repr=False)

    @property
    def registered(self) -> bool:
        return self._owner is not None

    def _attach(self, owner: Any) -> None:
        if self._owner is not None:
            raise ValueError(f'{self.kind.value} wall is already registered')
        self._owner = owner

    def _release(self) -> None:
        if self._owner is None:
            raise RuntimeError(f'{self.kind.value} wall released twice')
        self._owner = None


@dataclass(eq=False)
class PlaneWall(_WallBase):
    """Half-space ``normal·x <= offset``."""

    kind: ClassVar[WallKind] = WallKind.PLANE

    normal: np.ndarray
    offset: float

    def __post_init__(self) -> None:
        self.normal = as_point(self.normal, 'normal')
        if not np.any(self.normal):
            raise ValueError('normal must be non-zero')
        self.offset = float(self.offset)

    def point_inside(self, point: Any) -> bool:
        p = np.asarray(point, dtype=np.float64)
        return bool(self.normal @ p <= self.offset + INSIDE_TOL)

    def cut_cell(self, cell: Polytope, point: Any) -> bool:
        p = np.asarray(point, dtype=np.float64)
        nx, ny, nz = self.normal
        return clip_half_space(cell, CutPlane(nx, ny, nz, self.offset - self.normal @ p), self.wall_id)


def _radial_cut(dvec: np.ndarray, radius: float) -> CutPlane | None:
    """Tangent plane of a round wall seen from radial offset `dvec`."""

    dq = float(dvec @ dvec)
    if dq <= _AXIS_EPS_SQ:
        return None
    return CutPlane(dvec[0], dvec[1], dvec[2], np.sqrt(dq) * radius - dq)


@dataclass(eq=False)
class SphereWall(_WallBase):
    """Solid sphere."""

    kind: ClassVar[WallKind] = WallKind.SPHERE

    center: np.ndarray
    radius: float

    def __post_init__(self) -> None:
        self.center = as_point(self.center, 'center')
        self.radius = float(self.radius)
        if not self.radius > 0:
            raise ValueError('radius must be positive')

    def point_inside(self, point: Any) -> bool:
        d = np.asarray(point, dtype=np.float64) - self.center
        return bool(np.sqrt(d @ d) <= self.radius + INSIDE_TOL)

    def cut_cell(self, cell: Polytope, point: Any) -> bool:
        plane = _radial_cut(np.asarray(point, dtype=np.float64) - self.center, self.radius)
        if plane is None:
            return True
        return clip_half_space(cell, plane, self.wall_id)


@dataclass(eq=False)
class CylinderWall(_WallBase):
    """Solid infinite cylinder around the line ``axis_point + t*axis_dir``."""

    kind: ClassVar[WallKind] = WallKind.CYLINDER

    axis_point: np.ndarray
    axis_dir: np.ndarray
    radius: float

    def __post_init__(self) -> None:
        self.axis_point = as_point(self.axis_point, 'axis_point')
        a = as_point(self.axis_dir, 'axis_dir')
        na = float(np.linalg.norm(a))
        if na == 0.0:
            raise ValueError('axis_dir must be non-zero')
        self.axis_dir = a / na
        self.radius = float(self.radius)
        if not self.radius > 0:
            raise ValueError('radius must be positive')

    def _perp(self, point: Any) -> np.ndarray:
        d = np.asarray(point, dtype=np.float64) - self.axis_point
        return d - self.axis_dir * (d @ self.axis_dir)

    def point_inside(self, point: Any) -> bool:
        d = self._perp(point)
        return bool(np.sqrt(d @ d) <= self.radius + INSIDE_TOL)

    def cut_cell(self, cell: Polytope, point: Any) -> bool:
        plane = _radial_cut(self._perp(point), self.radius)
        if plane is None:
            return True
        return clip_half_space(cell, plane, self.wall_id)


@dataclass(eq=False)
class ConeWall(_WallBase):
    """Solid infinite cone opening from `apex` along `axis_dir`."""

    kind: ClassVar[WallKind] = WallKind.CONE

    apex: np.ndarray
    axis_dir: np.ndarray
    half_angle: float

    def __post_init__(self) -> None:
        self.apex = as_point(self.apex, 'apex')
        a = as_point(self.axis_dir, 'axis_dir')
        na = float(np.linalg.norm(a))
        if na == 0.0:
            raise ValueError('axis_dir must be non-zero')
        self.axis_dir = a / na
        self.half_angle = float(self.half_angle)
        if not 0.0 < self.half_angle < 0.5 * np.pi:
            raise ValueError('half_angle must lie in (0, pi/2)')

    def point_inside(self, point: Any) -> bool:
        d = np.asarray(point, dtype=np.float64) - self.apex
        axial = float(d @ self.axis_dir)
        radial = d - self.axis_dir * axial
        # Signed distance to the cone surface, positive outside.
        dist = np.sqrt(radial @ radial) * np.cos(self.half_angle) - axial * np.sin(self.half_angle)
        return bool(dist <= INSIDE_TOL)

    def cut_cell(self, cell: Polytope, point: Any) -> bool:
        p = np.asarray(point, dtype=np.float64)
        d = p - self.apex
        radial = d - self.axis_dir * (d @ self.axis_dir)
        rr = float(np.sqrt(radial @ radial))
        if rr * rr <= _AXIS_EPS_SQ:
            return True
        f = np.cos(self.half_angle) * radial / rr - np.sin(self.half_angle) * self.axis_dir
        # Tangent plane through the apex: f·(X - apex) <= 0.
        plane = CutPlane(f[0], f[1], f[2], float(f @ (self.apex - p)))
        return clip_half_space(cell, plane, self.wall_id)


@dataclass(eq=False)
class CustomWall(_WallBase):
    """Wall backed by two host callables.

    Args:
        inside_fn: ``(x, y, z) -> bool``; True if the point is allowed.
        cut_fn: ``(x, y, z) -> result`` describing the cut for a site at
            (x, y, z); see :meth:`CutPlane.from_host` for accepted results.
            The plane offset ``d`` is relative to the site.

    Both callables run synchronously on the caller's thread, once per test.
    They must not mutate the context that is computing cells. On release the
    callables are dropped and the wall can no longer be used.
    """

    kind: ClassVar[WallKind] = WallKind.CUSTOM

    inside_fn: Callable[[float, float, float], Any] | None
    cut_fn: Callable[[float, float, float], Any] | None

    def __post_init__(self) -> None:
        if not callable(self.inside_fn) or not callable(self.cut_fn):
            raise TypeError('inside_fn and cut_fn must be callable')

    @property
    def closed(self) -> bool:
        return self.cut_fn is None

    def _check_open(self) -> None:
        if self.closed:
            raise RuntimeError('custom wall has been released')

    def _attach(self, owner: Any) -> None:
        if self.closed:
            raise ValueError('custom wall has been released and cannot be registered')
        super()._attach(owner)

    def _release(self) -> None:
        super()._release()
        self.inside_fn = None
        self.cut_fn = None

    def point_inside(self, point: Any) -> bool:
        self._check_open()
        x, y, z = (float(v) for v in point)
        return bool(self.inside_fn(x, y, z))  # type: ignore[misc]

    def cut_cell(self, cell: Polytope, point: Any) -> bool:
        self._check_open()
        x, y, z = (float(v) for v in point)
        plane = CutPlane.from_host(self.cut_fn(x, y, z))  # type: ignore[misc]
        if plane is None:
            return True
        return clip_half_space(cell, plane, self.wall_id)


Wall: TypeAlias = PlaneWall | SphereWall | CylinderWall | ConeWall | CustomWall


class BoundarySet:
    """Ordered, owning collection of walls.

    Walls are applied in registration order.
    """

    def __init__(self) -> None:
        self._walls: list[Wall] = []

    def __len__(self) -> int:
        return len(self._walls)

    def __iter__(self) -> Iterator[Wall]:
        return iter(list(self._walls))

    def add(self, wall: Wall) -> Wall:
        """Take ownership of `wall`.

        Raises:
            ValueError: If the wall is already owned or has been released.
        """

        if not isinstance(wall, _WallBase):
            raise TypeError(f'not a wall: {type(wall).__name__}')
        wall._attach(self)
        self._walls.append(wall)
        logger.debug('registered %s wall (id %d)', wall.kind.value, wall.wall_id)
        return wall

    def point_inside(self, point: Any) -> bool:
        return all(w.point_inside(point) for w in self._walls)

    def clear(self) -> int:
        """Release every wall exactly once and return how many were released."""

        walls, self._walls = self._walls, []
        for w in walls:
            w._release()
        if walls:
            logger.debug('released %d wall(s)', len(walls))
        return len(walls)
