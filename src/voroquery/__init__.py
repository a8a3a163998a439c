"""voroquery package.

Voronoi cell queries for labeled 3D sites inside a box, with optional
periodicity and boundary walls (planes, spheres, cylinders, cones and
host-supplied callables).

Public API:
    - VoronoiContext3D
    - CellRecord, serialize_cell
    - wall kinds and BoundarySet
    - relax_step
"""

from __future__ import annotations

from .__about__ import __version__

from .domains import Box, OrthorhombicCell, domain_from_bounds
from .api import VoronoiContext3D
from .engine import ConvexCell, NeighborCell, RawPolytope, Container
from .sites import SiteStore, InvalidArgumentError
from .serialize import CellRecord, serialize_cell, parse_face_vertices, cell_edges
from .walls import (
    WALL_ID_DEFAULT,
    WallKind,
    CutPlane,
    PlaneWall,
    SphereWall,
    CylinderWall,
    ConeWall,
    CustomWall,
    BoundarySet,
    clip_half_space,
)
from .relax import relax_step
from .diagnostics import (
    TessellationDiagnostics,
    TessellationIssue,
    TessellationError,
    analyze_tessellation,
    validate_tessellation,
)
from .validation import (
    CellRecordIssue,
    CellRecordError,
    validate_cell_record,
)
from .duplicates import (
    DuplicatePair,
    DuplicateError,
    duplicate_check,
)

__all__ = [
    'Box',
    'OrthorhombicCell',
    'domain_from_bounds',
    'VoronoiContext3D',
    'ConvexCell',
    'NeighborCell',
    'RawPolytope',
    'Container',
    'SiteStore',
    'InvalidArgumentError',
    'CellRecord',
    'serialize_cell',
    'parse_face_vertices',
    'cell_edges',
    'WALL_ID_DEFAULT',
    'WallKind',
    'CutPlane',
    'PlaneWall',
    'SphereWall',
    'CylinderWall',
    'ConeWall',
    'CustomWall',
    'BoundarySet',
    'clip_half_space',
    'relax_step',
    'TessellationDiagnostics',
    'TessellationIssue',
    'TessellationError',
    'analyze_tessellation',
    'validate_tessellation',
    'CellRecordIssue',
    'CellRecordError',
    'validate_cell_record',
    'DuplicatePair',
    'DuplicateError',
    'duplicate_check',
    '__version__',
]
