"""Convex-cell geometry engine.

This module is the computational-geometry back end used by the rest of the
package. It follows the classic cell-based approach: every Voronoi cell starts
as the container box around its site and is cut down by half-spaces, first by
the registered walls and then by the bisector planes of nearby sites.

Two polytope representations are provided:
  - :class:`ConvexCell` keeps geometry only (enough for volume/centroid);
  - :class:`NeighborCell` additionally remembers, for every face, the id of
    the site or wall that created it.

Conventions shared by both representations:
  - Coordinates are stored **relative to the site** (``VERTEX_FRAME``).
    Consumers add the site position back.
  - ``nplane(nx, ny, nz, d, pid)`` retains ``{r : n·r <= d}``.
  - Face loops are counter-clockwise as seen from outside the cell, and
    :meth:`ConvexCell.face_vertices` emits them count-prefixed:
    ``[k0, i0_0, ..., i0_k0-1, k1, ...]``.

The :class:`Container` ties the cells to a domain and a site store: it decides
which sites are accepted, in which order they are traversed, and which
neighbours may cut a given cell.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import product
from typing import Any, Callable, Iterable, Iterator

import logging

import numpy as np

from .domains import Domain

logger = logging.getLogger(__name__)


VERTEX_FRAME = 'site-relative'

# Face labels of the six container walls: xmin, xmax, ymin, ymax, zmin, zmax.
BOX_WALL_IDS = (-1, -2, -3, -4, -5, -6)

# Relative tolerance for classifying vertices against a cutting plane.
_PLANE_TOL = 1e-10

# Squared separation below which two sites are treated as coincident.
_COINCIDENT_SQ = 1e-20


@dataclass(frozen=True, slots=True)
class RawPolytope:
    """Flattened snapshot of a computed cell, as handed to the serializer.

    Attributes:
        volume: Cell volume.
        vertices: Flattened vertex triples, shape (3*m,), relative to the site.
        face_vertices: Count-prefixed face loops.
        neighbors: One neighbour id per face (all zeros without tracking).
        centroid: Cell centroid relative to the site, shape (3,).
    """

    volume: float
    vertices: np.ndarray
    face_vertices: np.ndarray
    neighbors: np.ndarray
    centroid: np.ndarray
    frame: str = VERTEX_FRAME

    @property
    def n_faces(self) -> int:
        return int(self.neighbors.shape[0])


class ConvexCell:
    """Convex polyhedron without neighbour tracking.

    Faces are kept as independent (k, 3) coordinate loops; a shared vertex is
    stored once per incident face with bitwise identical coordinates, so the
    indexed form can be rebuilt by exact lookup. Cuts weld new vertices that
    land within the plane tolerance of an existing one.
    """

    tracks_neighbors = False

    def __init__(self) -> None:
        self._faces: list[np.ndarray] = []
        self._labels: list[int] = []

    def _label(self, pid: int) -> int:
        return 0

    @property
    def is_empty(self) -> bool:
        return not self._faces

    def reset(self) -> None:
        self._faces = []
        self._labels = []

    def init_box(
        self,
        xmin: float,
        xmax: float,
        ymin: float,
        ymax: float,
        zmin: float,
        zmax: float,
    ) -> None:
        """Initialise the cell to an axis-aligned box (site-relative bounds)."""

        x0, x1 = float(xmin), float(xmax)
        y0, y1 = float(ymin), float(ymax)
        z0, z1 = float(zmin), float(zmax)
        loops = (
            ((x0, y0, z0), (x0, y0, z1), (x0, y1, z1), (x0, y1, z0)),
            ((x1, y0, z0), (x1, y1, z0), (x1, y1, z1), (x1, y0, z1)),
            ((x0, y0, z0), (x1, y0, z0), (x1, y0, z1), (x0, y0, z1)),
            ((x0, y1, z0), (x0, y1, z1), (x1, y1, z1), (x1, y1, z0)),
            ((x0, y0, z0), (x0, y1, z0), (x1, y1, z0), (x1, y0, z0)),
            ((x0, y0, z1), (x1, y0, z1), (x1, y1, z1), (x0, y1, z1)),
        )
        self._faces = [np.array(f, dtype=np.float64) for f in loops]
        self._labels = [self._label(w) for w in BOX_WALL_IDS]

    def plane(self, x: float, y: float, z: float, rsq: float | None = None) -> bool:
        """Cut by the bisector-style plane ``(x, y, z)·r <= rsq / 2``.

        With ``rsq`` omitted this is the perpendicular bisector between the
        site and a neighbour at relative position (x, y, z).
        """

        if rsq is None:
            rsq = x * x + y * y + z * z
        return self.nplane(x, y, z, 0.5 * float(rsq), 0)

    def nplane(self, x: float, y: float, z: float, offset: float, pid: int = 0) -> bool:
        """Retain the half-space ``(x, y, z)·r <= offset``.

        Returns:
            False if the cell became empty, True otherwise (whether or not the
            plane actually intersected it).
        """

        if not self._faces:
            return False
        n = np.array([x, y, z], dtype=np.float64)
        nn = float(np.linalg.norm(n))
        if nn == 0.0:
            return True
        scale = max(1.0, float(np.sqrt(self.max_radius_sq())))
        tol = _PLANE_TOL * nn * scale
        d = float(offset)

        # Elementwise so a vertex shared by several faces gets identical values.
        dists = [f[:, 0] * n[0] + f[:, 1] * n[1] + f[:, 2] * n[2] - d for f in self._faces]
        if all(bool(np.all(s <= tol)) for s in dists):
            return True
        if not any(bool(np.any(s < -tol)) for s in dists):
            self.reset()
            return False

        # New points closer than eps to a known vertex are welded onto it.
        pool = _VertexPool(np.concatenate(self._faces, axis=0), tol / nn)
        faces: list[np.ndarray] = []
        labels: list[int] = []
        cap: list[np.ndarray] = []
        for f, s, lab in zip(self._faces, dists, self._labels):
            side = np.where(s > tol, 1, np.where(s < -tol, -1, 0))
            if not np.any(side == 1):
                faces.append(f)
                labels.append(lab)
                cap.extend(f[side == 0])
                continue
            if np.all(side >= 0):
                cap.extend(f[side == 0])
                continue
            poly = _clip_loop(f, s, side, cap, pool.snap)
            if poly is not None:
                faces.append(poly)
                labels.append(lab)

        loop = _order_cap(cap, n / nn)
        if loop is not None:
            faces.append(loop)
            labels.append(self._label(pid))

        self._faces = faces
        self._labels = labels
        if not self._faces:
            return False
        return True

    def max_radius_sq(self) -> float:
        """Largest squared distance from the site to a vertex."""

        if not self._faces:
            return 0.0
        return float(max(np.max(np.einsum('ij,ij->i', f, f)) for f in self._faces))

    def volume(self) -> float:
        return float(sum(_fan_volumes(f).sum() for f in self._faces))

    def centroid(self) -> np.ndarray:
        """Volume centroid relative to the site."""

        total = 0.0
        acc = np.zeros(3, dtype=np.float64)
        for f in self._faces:
            vols = _fan_volumes(f)
            if vols.size == 0:
                continue
            # Each tetrahedron is (site, f0, fi, fi+1); the site is the origin.
            centers = (f[0][None, :] + f[1:-1] + f[2:]) / 4.0
            acc += vols @ centers
            total += float(vols.sum())
        if total <= 0.0:
            return np.zeros(3, dtype=np.float64)
        return acc / total

    def _indexed(self) -> tuple[np.ndarray, list[list[int]]]:
        index: dict[tuple[float, float, float], int] = {}
        verts: list[tuple[float, float, float]] = []
        loops: list[list[int]] = []
        for f in self._faces:
            loop = []
            for p in f:
                key = (float(p[0]), float(p[1]), float(p[2]))
                k = index.get(key)
                if k is None:
                    k = len(verts)
                    index[key] = k
                    verts.append(key)
                loop.append(k)
            loops.append(loop)
        return np.asarray(verts, dtype=np.float64).reshape(-1, 3), loops

    def vertices(self) -> np.ndarray:
        """Flattened site-relative vertex triples."""
        v, _ = self._indexed()
        return v.reshape(-1)

    def face_orders(self) -> list[int]:
        return [int(f.shape[0]) for f in self._faces]

    def face_vertices(self) -> np.ndarray:
        """Count-prefixed face loops."""
        _, loops = self._indexed()
        return _count_prefixed(loops)

    def to_raw(self) -> RawPolytope:
        v, loops = self._indexed()
        return RawPolytope(
            volume=self.volume(),
            vertices=v.reshape(-1),
            face_vertices=_count_prefixed(loops),
            neighbors=np.asarray(self._labels, dtype=np.int64),
            centroid=self.centroid(),
        )


class NeighborCell(ConvexCell):
    """Convex polyhedron that records which site or wall created each face."""

    tracks_neighbors = True

    def _label(self, pid: int) -> int:
        return int(pid)

    def neighbors(self) -> list[int]:
        return list(self._labels)


def _count_prefixed(loops: list[list[int]]) -> np.ndarray:
    out: list[int] = []
    for loop in loops:
        out.append(len(loop))
        out.extend(loop)
    return np.asarray(out, dtype=np.int64)


def _fan_volumes(f: np.ndarray) -> np.ndarray:
    """Signed volumes of the tetrahedra (origin, f0, fi, fi+1)."""

    if f.shape[0] < 3:
        return np.zeros(0, dtype=np.float64)
    b = f[1:-1]
    c = f[2:]
    return np.cross(b, c) @ f[0] / 6.0


def _crossing(a: np.ndarray, sa: float, b: np.ndarray, sb: float) -> np.ndarray:
    # Canonical endpoint order so both faces sharing an edge get the same bits.
    if tuple(b) < tuple(a):
        a, sa, b, sb = b, sb, a, sa
    t = sa / (sa - sb)
    return a + t * (b - a)


class _VertexPool:
    """Known vertices of a cell during one cut.

    ``snap`` returns the known vertex within `eps` of a point, or registers
    the point as a new vertex. Welded points are bitwise equal, so every face
    that sees them agrees on the topology.
    """

    def __init__(self, known: np.ndarray, eps: float) -> None:
        self._pts = np.asarray(known, dtype=np.float64).reshape(-1, 3)
        self._eps_sq = eps * eps

    def snap(self, p: np.ndarray) -> np.ndarray:
        if self._pts.shape[0]:
            diff = self._pts - p
            d2 = np.einsum('ij,ij->i', diff, diff)
            k = int(np.argmin(d2))
            if d2[k] <= self._eps_sq:
                return self._pts[k]
        self._pts = np.vstack([self._pts, p])
        return p


def _clip_loop(
    f: np.ndarray,
    s: np.ndarray,
    side: np.ndarray,
    cap: list[np.ndarray],
    snap: Callable[[np.ndarray], np.ndarray],
) -> np.ndarray | None:
    """Clip one face loop against the retained half-space.

    Points lying on the cutting plane are appended to `cap`. A loop that
    collapses below three distinct vertices is dropped.
    """

    k = f.shape[0]
    out: list[np.ndarray] = []
    for i in range(k):
        j = (i + 1) % k
        if side[i] <= 0:
            out.append(f[i])
            if side[i] == 0:
                cap.append(f[i])
        if side[i] * side[j] == -1:
            p = snap(_crossing(f[i], float(s[i]), f[j], float(s[j])))
            out.append(p)
            cap.append(p)

    uniq: list[np.ndarray] = []
    for p in out:
        if uniq and np.array_equal(p, uniq[-1]):
            continue
        uniq.append(p)
    if len(uniq) > 1 and np.array_equal(uniq[0], uniq[-1]):
        uniq.pop()
    if len({(float(p[0]), float(p[1]), float(p[2])) for p in uniq}) < 3:
        return None
    return np.asarray(uniq, dtype=np.float64)


def _order_cap(points: list[np.ndarray], normal: np.ndarray) -> np.ndarray | None:
    """Order on-plane points counter-clockwise around `normal`.

    Returns None for fewer than three distinct points; caps of any area are kept.
    """

    uniq: list[np.ndarray] = []
    seen: set[tuple[float, float, float]] = set()
    for p in points:
        key = (float(p[0]), float(p[1]), float(p[2]))
        if key in seen:
            continue
        seen.add(key)
        uniq.append(p)
    if len(uniq) < 3:
        return None

    pts = np.asarray(uniq, dtype=np.float64)
    center = pts.mean(axis=0)
    # u, v, normal form a right-handed basis of the cutting plane.
    helper = np.array([1.0, 0.0, 0.0]) if abs(normal[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
    u = np.cross(normal, helper)
    u /= np.linalg.norm(u)
    v = np.cross(normal, u)
    rel = pts - center
    ang = np.arctan2(rel @ v, rel @ u)
    return pts[np.argsort(ang, kind='stable')]


@dataclass(frozen=True, slots=True)
class SiteLoop:
    """Accepted sites of a container, in traversal order."""

    ids: np.ndarray
    positions: np.ndarray

    def __len__(self) -> int:
        return int(self.ids.shape[0])

    def __iter__(self) -> Iterator[tuple[int, np.ndarray]]:
        for k in range(len(self)):
            yield int(self.ids[k]), self.positions[k]

    def find(self, pid: int) -> int:
        """Index of the first entry with id `pid` (linear scan), or -1."""
        for k in range(len(self)):
            if int(self.ids[k]) == pid:
                return k
        return -1


class Container:
    """Spatial container binding cells to a domain.

    Args:
        domain: Container extents and per-axis periodicity.
        blocks: Block grid (nx, ny, nz) that defines the traversal order.
    """

    def __init__(self, domain: Domain, blocks: tuple[int, int, int] = (6, 6, 6)) -> None:
        if len(blocks) != 3 or any(int(b) < 1 for b in blocks):
            raise ValueError('blocks must be three positive integers')
        self.domain = domain
        self.blocks = tuple(int(b) for b in blocks)
        self.periodic = tuple(bool(p) for p in domain.periodic)
        self._lo = np.array([lo for lo, _ in domain.bounds], dtype=np.float64)
        self._hi = np.array([hi for _, hi in domain.bounds], dtype=np.float64)
        self._len = self._hi - self._lo
        axes = [(-1, 0, 1) if per else (0,) for per in self.periodic]
        self._shifts = np.array(list(product(*axes)), dtype=np.float64) * self._len

    def accepts(self, position: np.ndarray) -> bool:
        """True if a site at `position` is inside the bounds of every walled axis."""

        p = np.asarray(position, dtype=np.float64)
        for axis in range(3):
            if self.periodic[axis]:
                continue
            if p[axis] < self._lo[axis] or p[axis] > self._hi[axis]:
                return False
        return True

    def _remap(self, pts: np.ndarray) -> np.ndarray:
        if not any(self.periodic):
            return pts
        return self.domain.remap_cart(pts)  # type: ignore[union-attr]

    def point_inside(self, point: Any, walls: Iterable[Any] = ()) -> bool:
        p = np.asarray(point, dtype=np.float64)
        if not self.accepts(p):
            return False
        return all(w.point_inside(p) for w in walls)

    def loop_all(self, store: Iterable[tuple[int, np.ndarray]]) -> SiteLoop:
        """Snapshot the accepted sites of `store` in block order."""

        ids: list[int] = []
        pts: list[np.ndarray] = []
        for pid, pos in store:
            if not self.accepts(pos):
                logger.debug('site %d at %s lies outside the container; ignored', pid, pos)
                continue
            ids.append(int(pid))
            pts.append(np.asarray(pos, dtype=np.float64))
        if not ids:
            return SiteLoop(
                ids=np.zeros(0, dtype=np.int64), positions=np.zeros((0, 3), dtype=np.float64)
            )

        positions = self._remap(np.asarray(pts, dtype=np.float64))
        nb = np.array(self.blocks, dtype=np.int64)
        g = np.floor((positions - self._lo) / self._len * nb).astype(np.int64)
        g = np.clip(g, 0, nb - 1)
        ijk = g[:, 0] + nb[0] * (g[:, 1] + nb[1] * g[:, 2])
        order = np.argsort(ijk, kind='stable')
        return SiteLoop(
            ids=np.asarray(ids, dtype=np.int64)[order], positions=positions[order]
        )

    def compute_cell(
        self,
        cell: ConvexCell,
        loop: SiteLoop,
        index: int,
        walls: Iterable[Any] = (),
    ) -> bool:
        """Compute the cell of ``loop`` entry `index` into `cell`.

        Returns:
            False if no cell exists for the site (it was cut away entirely).
        """

        p = loop.positions[index]
        pid = int(loop.ids[index])

        lo = self._lo - p
        hi = self._hi - p
        for axis in range(3):
            if self.periodic[axis]:
                lo[axis] = -self._len[axis]
                hi[axis] = self._len[axis]
        cell.init_box(lo[0], hi[0], lo[1], hi[1], lo[2], hi[2])

        for wall in walls:
            if not wall.cut_cell(cell, p):
                logger.debug('site %d removed by wall %r', pid, wall)
                return False

        rel = (loop.positions[None, :, :] + self._shifts[:, None, :] - p).reshape(-1, 3)
        ids = np.tile(loop.ids, self._shifts.shape[0])
        d2 = np.einsum('ij,ij->i', rel, rel)
        mask = d2 > _COINCIDENT_SQ
        rel, ids, d2 = rel[mask], ids[mask], d2[mask]

        rmax = cell.max_radius_sq()
        for k in np.argsort(d2, kind='stable'):
            if d2[k] > 4.0 * rmax:
                break
            x, y, z = rel[k]
            if not cell.nplane(x, y, z, 0.5 * d2[k], int(ids[k])):
                logger.debug('site %d has an empty cell', pid)
                return False
            rmax = cell.max_radius_sq()
        return True
