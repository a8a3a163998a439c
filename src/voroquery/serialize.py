"""Cell serialization.

Turns the engine's flattened polytope (:class:`~voroquery.engine.RawPolytope`)
into a :class:`CellRecord`: absolute vertex positions, face loops in the
engine's winding order, the deduplicated edge set and the per-face neighbour
ids.

Records built here satisfy, by construction:

  - ``len(faces) == len(neighbors)``;
  - every face index lies in ``[0, len(vertices))``;
  - ``edges`` is exactly the set of consecutive (and wrap-around) index pairs
    of all faces, each stored once as ``(lo, hi)`` and sorted.

A malformed engine buffer is rejected with ``ValueError`` instead of producing
a record that breaks these rules.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

import numpy as np

from .engine import VERTEX_FRAME, RawPolytope


Point3 = tuple[float, float, float]


@dataclass(frozen=True, slots=True)
class CellRecord:
    """Geometry of one Voronoi cell.

    The default-constructed record is the *empty* record: id 0, volume 0 and
    no geometry. It is what a query for an unknown site returns.

    Records compare by value but are unhashable: the geometry fields are
    lists. Use ``record.id`` as a key instead.

    Attributes:
        id: Site id.
        position: Site position.
        volume: Cell volume.
        vertices: Absolute vertex positions.
        faces: Vertex-index loops, counter-clockwise seen from outside.
        edges: Sorted unique ``(lo, hi)`` vertex-index pairs.
        neighbors: Per-face neighbour: a site id, or a negative wall id.
    """

    id: int = 0
    position: Point3 = (0.0, 0.0, 0.0)
    volume: float = 0.0
    vertices: list[Point3] = field(default_factory=list)
    faces: list[list[int]] = field(default_factory=list)
    edges: list[tuple[int, int]] = field(default_factory=list)
    neighbors: list[int] = field(default_factory=list)

    __hash__ = None  # type: ignore[assignment]

    @property
    def is_empty(self) -> bool:
        return not self.faces and not self.vertices

    def to_dict(self) -> dict[str, Any]:
        """Plain-container form for hosts (lists and numbers only)."""

        return {
            'id': int(self.id),
            'position': list(self.position),
            'volume': float(self.volume),
            'vertices': [list(v) for v in self.vertices],
            'faces': [list(f) for f in self.faces],
            'edges': [list(e) for e in self.edges],
            'neighbors': list(self.neighbors),
        }


def parse_face_vertices(buf: Sequence[int] | np.ndarray) -> list[list[int]]:
    """Split a count-prefixed face buffer into loops.

    Raises:
        ValueError: If a count is not positive or runs past the buffer end.
    """

    data = [int(v) for v in np.asarray(buf, dtype=np.int64).reshape(-1)]
    loops: list[list[int]] = []
    i = 0
    while i < len(data):
        k = data[i]
        if k <= 0:
            raise ValueError(f'face buffer has non-positive count {k} at offset {i}')
        if i + 1 + k > len(data):
            raise ValueError(
                f'face buffer count {k} at offset {i} overruns buffer of length {len(data)}'
            )
        loops.append(data[i + 1:i + 1 + k])
        i += 1 + k
    return loops


def cell_edges(faces: Iterable[Sequence[int]]) -> list[tuple[int, int]]:
    """Unique undirected edges of a set of face loops, sorted."""

    edges: set[tuple[int, int]] = set()
    for f in faces:
        m = len(f)
        for k in range(m):
            a = int(f[k])
            b = int(f[(k + 1) % m])
            if a == b:
                continue
            edges.add((a, b) if a < b else (b, a))
    return sorted(edges)


def serialize_cell(
    raw: RawPolytope,
    site_id: int,
    position: Sequence[float] | np.ndarray,
) -> CellRecord:
    """Build the :class:`CellRecord` of one computed cell.

    Args:
        raw: Engine output for the cell.
        site_id: Id of the cell's site.
        position: Site position; added to the site-relative engine vertices.

    Raises:
        ValueError: If the raw buffers are inconsistent.
    """

    if raw.frame != VERTEX_FRAME:
        raise ValueError(f'unsupported vertex frame: {raw.frame!r}')
    origin = np.asarray(position, dtype=np.float64).reshape(3)

    flat = np.asarray(raw.vertices, dtype=np.float64).reshape(-1)
    if flat.size % 3 != 0:
        raise ValueError('vertex buffer length must be a multiple of 3')
    verts = flat.reshape(-1, 3) + origin
    n_verts = int(verts.shape[0])

    faces = parse_face_vertices(raw.face_vertices)
    for f in faces:
        for v in f:
            if not 0 <= v < n_verts:
                raise ValueError(f'face index {v} out of range for {n_verts} vertices')

    neighbors = [int(n) for n in np.asarray(raw.neighbors).reshape(-1)]
    if len(neighbors) != len(faces):
        raise ValueError(
            f'neighbor buffer has {len(neighbors)} entries for {len(faces)} faces'
        )

    return CellRecord(
        id=int(site_id),
        position=(float(origin[0]), float(origin[1]), float(origin[2])),
        volume=float(raw.volume),
        vertices=[(float(x), float(y), float(z)) for x, y, z in verts],
        faces=faces,
        edges=cell_edges(faces),
        neighbors=neighbors,
    )
