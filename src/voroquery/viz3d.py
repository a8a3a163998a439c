# SPDX-License-Identifier: MIT
"""Optional 3D visualization helpers.

Small convenience functions for looking at cell records with **py3Dmol**
(a Python wrapper around 3Dmol.js). The dependency is optional:

.. code-block:: bash

    pip install "voroquery[viz]"

The helpers accept :class:`~voroquery.serialize.CellRecord` objects as well as
their ``to_dict()`` form, so records that went through a host can be drawn
too. They are best-effort helpers for interactive exploration, not a
rendering pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

import warnings

import numpy as np

from .domains import Domain
from ._util import domain_length_scale
from .serialize import CellRecord, cell_edges

try:  # optional dependency
    import py3Dmol as _py3Dmol  # type: ignore
except Exception:  # pragma: no cover
    _py3Dmol = None


def _require_py3dmol() -> Any:
    """Return the imported `py3Dmol` module or raise a helpful ImportError."""

    if _py3Dmol is None:
        raise ImportError(
            'py3Dmol is required for visualization. Install with '
            '`pip install "voroquery[viz]"` (or `pip install py3Dmol`).'
        )
    return _py3Dmol


def _xyz(p: Sequence[float]) -> dict[str, float]:
    return {'x': float(p[0]), 'y': float(p[1]), 'z': float(p[2])}


def _field(cell: CellRecord | dict[str, Any], name: str) -> Any:
    if isinstance(cell, CellRecord):
        return getattr(cell, name)
    return cell.get(name)


@dataclass(frozen=True, slots=True)
class VizStyle:
    """Styling options for visualization helpers."""

    background: str = '0xffffff'

    site_color: str = '0x777777'
    site_radius: float = 0.093
    site_label_color: str = '0x000000'
    site_label_background: str = '0xffffff'
    site_label_font_size: int = 8

    edge_color: str = '0x1f77b4'
    edge_line_width: float = 2.5
    # Faces towards walls (negative neighbour ids) are drawn in this color.
    wall_edge_color: str = '0xd62728'

    domain_color: str = '0x000000'
    domain_line_width: float = 2.5

    vertex_color: str = '0xff7f0e'
    vertex_radius: float = 0.04


def make_view(
    *, width: int = 640, height: int = 480, background: str = '0xffffff'
) -> Any:
    """Create a py3Dmol view."""

    py3Dmol = _require_py3dmol()
    v = py3Dmol.view(width=width, height=height)
    v.setBackgroundColor(background)
    return v


def add_sites(
    view: Any,
    points: np.ndarray,
    *,
    labels: Sequence[str] | None = None,
    color: str = '0x777777',
    radius: float = 0.093,
    label_color: str = '0x000000',
    label_background: str = '0xffffff',
    label_font_size: int = 8,
) -> Any:
    """Add sites as spheres, optionally with text labels."""

    _require_py3dmol()
    pts = np.asarray(points, dtype=float)
    if pts.ndim != 2 or pts.shape[1] != 3:
        raise ValueError('points must have shape (n, 3)')
    if labels is not None and len(labels) != len(pts):
        raise ValueError('labels must have the same length as points')

    for i, p in enumerate(pts):
        view.addSphere({'center': _xyz(p), 'radius': float(radius), 'color': color})
        if labels is not None:
            view.addLabel(
                str(labels[i]),
                {
                    'position': _xyz(p),
                    'fontColor': label_color,
                    'backgroundColor': label_background,
                    'fontSize': int(label_font_size),
                },
            )
    return view


def add_vertices(
    view: Any,
    vertices: np.ndarray,
    *,
    color: str = '0xff7f0e',
    radius: float = 0.04,
) -> Any:
    """Add vertex markers as small spheres."""

    _require_py3dmol()
    v = np.asarray(vertices, dtype=float)
    if v.ndim != 2 or v.shape[1] != 3:
        raise ValueError('vertices must have shape (m, 3)')
    for p in v:
        view.addSphere({'center': _xyz(p), 'radius': float(radius), 'color': color})
    return view


def add_domain_wireframe(
    view: Any,
    domain: Domain,
    *,
    color: str = '0x000000',
    line_width: float = 2.5,
) -> Any:
    """Draw the container box as a wireframe."""

    _require_py3dmol()
    (xmin, xmax), (ymin, ymax), (zmin, zmax) = domain.bounds
    corners = [
        (x, y, z) for z in (zmin, zmax) for y in (ymin, ymax) for x in (xmin, xmax)
    ]
    # Corner k has bits (x, y, z) = (k & 1, k & 2, k & 4).
    edges = [
        (a, a | bit) for a in range(8) for bit in (1, 2, 4) if not a & bit
    ]
    for i, j in edges:
        view.addLine(
            {
                'start': _xyz(corners[i]),
                'end': _xyz(corners[j]),
                'color': color,
                'lineWidth': float(line_width),
            }
        )
    return view


def add_cell_wireframe(
    view: Any,
    cell: CellRecord | dict[str, Any],
    *,
    color: str = '0x1f77b4',
    line_width: float = 2.5,
    wall_color: str | None = None,
) -> Any:
    """Add a single cell wireframe.

    Edges come from the record's ``edges`` when present, else from its faces.
    With `wall_color`, edges that belong to a wall face use that color.
    """

    _require_py3dmol()
    verts = _field(cell, 'vertices')
    faces = _field(cell, 'faces')
    if verts is None or faces is None or len(faces) == 0:
        return view
    v = np.asarray(verts, dtype=float)
    if v.ndim != 2 or v.shape[1] != 3 or v.size == 0:
        return view

    edges = _field(cell, 'edges')
    if edges is None or len(edges) == 0:
        edges = cell_edges(faces)

    wall_edges: set[tuple[int, int]] = set()
    neighbors = _field(cell, 'neighbors')
    if wall_color is not None and neighbors is not None and len(neighbors) == len(faces):
        wall_edges = set(
            cell_edges([f for f, nb in zip(faces, neighbors) if int(nb) < 0])
        )

    for e in edges:
        a, b = int(e[0]), int(e[1])
        if a < 0 or b < 0 or a >= len(v) or b >= len(v):
            continue
        key = (a, b) if a < b else (b, a)
        view.addLine(
            {
                'start': _xyz(v[a]),
                'end': _xyz(v[b]),
                'color': wall_color if key in wall_edges else color,
                'lineWidth': float(line_width),
            }
        )
    return view


def _dedup_vertices(vertices: np.ndarray, *, tol: float) -> np.ndarray:
    """Deduplicate vertices by quantized coordinate tuples, keeping first order."""

    v = np.asarray(vertices, dtype=float)
    if v.size == 0:
        return v.reshape((0, 3)).astype(np.float64)
    if v.ndim != 2 or v.shape[1] != 3:
        raise ValueError('vertices must have shape (n, 3)')

    tol_f = float(tol)
    if tol_f <= 0:
        raise ValueError('tol must be positive')

    q = np.rint(v / tol_f).astype(np.int64)
    seen: set[tuple[int, int, int]] = set()
    uniq: list[np.ndarray] = []
    for i in range(len(v)):
        key = (int(q[i, 0]), int(q[i, 1]), int(q[i, 2]))
        if key in seen:
            continue
        seen.add(key)
        uniq.append(v[i])
    return np.asarray(uniq, dtype=np.float64)


def view_cells(
    cells: Iterable[CellRecord | dict[str, Any]],
    *,
    domain: Domain | None = None,
    show_sites: bool = True,
    show_site_labels: bool = True,
    max_site_labels: int = 200,
    show_domain: bool = True,
    show_vertices: bool = False,
    highlight_walls: bool = True,
    cell_ids: set[int] | None = None,
    style: VizStyle | None = None,
    width: int = 640,
    height: int = 480,
    zoom: bool = True,
) -> Any:
    """Create a py3Dmol view of a set of cells.

    Args:
        cells: Records from ``get_all_cells`` (or their ``to_dict()`` form).
        domain: If provided, draws the container box.
        cell_ids: Optional subset of cell ids to draw.
        highlight_walls: Color edges of wall faces with ``style.wall_edge_color``.
    """

    py3Dmol = _require_py3dmol()
    st = style or VizStyle()
    v = py3Dmol.view(width=width, height=height)
    v.setBackgroundColor(st.background)

    draw = [c for c in cells if cell_ids is None or int(_field(c, 'id')) in cell_ids]

    if show_domain and domain is not None:
        add_domain_wireframe(v, domain, color=st.domain_color, line_width=st.domain_line_width)

    if show_sites and draw:
        pts = np.asarray([_field(c, 'position') for c in draw], dtype=float)
        labels: list[str] | None = [f'p{int(_field(c, "id"))}' for c in draw]
        if show_site_labels and len(draw) > int(max_site_labels):
            warnings.warn(
                f'Skipping site labels because n={len(draw)} exceeds '
                f'max_site_labels={max_site_labels}.'
            )
            labels = None
        add_sites(
            v,
            pts,
            labels=labels if show_site_labels else None,
            color=st.site_color,
            radius=st.site_radius,
            label_color=st.site_label_color,
            label_background=st.site_label_background,
            label_font_size=st.site_label_font_size,
        )

    for c in draw:
        add_cell_wireframe(
            v,
            c,
            color=st.edge_color,
            line_width=st.edge_line_width,
            wall_color=st.wall_edge_color if highlight_walls else None,
        )

    if show_vertices:
        all_v = [np.asarray(_field(c, 'vertices'), dtype=float) for c in draw]
        all_v = [a for a in all_v if a.ndim == 2 and a.shape[1] == 3 and a.size]
        if all_v:
            tol = 1e-8 * (float(domain_length_scale(domain)) if domain is not None else 1.0)
            vtx = _dedup_vertices(np.concatenate(all_v, axis=0), tol=tol)
            add_vertices(v, vtx, color=st.vertex_color, radius=st.vertex_radius)

    if zoom:
        v.zoomTo()
    return v


__all__ = [
    'VizStyle',
    'make_view',
    'add_sites',
    'add_vertices',
    'add_domain_wireframe',
    'add_cell_wireframe',
    'view_cells',
]
