from __future__ import annotations

import dataclasses

import numpy as np
import pytest

import voroquery
from voroquery import VoronoiContext3D


def _cells(n: int = 20, seed: int = 0) -> tuple[list[voroquery.CellRecord], voroquery.Box]:
    rng = np.random.default_rng(seed)
    pts = rng.uniform(0.0, 8.0, size=(n, 3))
    with VoronoiContext3D((0.0, 0.0, 0.0), (8.0, 8.0, 8.0)) as ctx:
        ctx.add_points(np.arange(n), pts[:, 0], pts[:, 1], pts[:, 2])
        return ctx.get_all_cells(), ctx.domain  # type: ignore[return-value]


def test_box_tessellation_is_consistent() -> None:
    cells, dom = _cells()
    diag = voroquery.validate_tessellation(cells, dom, expected_ids=range(20))
    assert diag.ok
    assert diag.n_cells_returned == 20
    assert diag.volume_ratio == pytest.approx(1.0)
    assert diag.n_faces_orphan == 0
    for c in cells:
        assert voroquery.validate_cell_record(c) == ()


def test_missing_cell_is_a_gap() -> None:
    cells, dom = _cells()
    diag = voroquery.analyze_tessellation(cells[1:], dom, expected_ids=range(20))
    codes = {i.code for i in diag.issues}
    assert not diag.ok
    assert 'GAP' in codes
    assert 'MISSING_IDS' in codes
    assert diag.missing_ids == (cells[0].id,)

    with pytest.raises(voroquery.TessellationError) as exc:
        voroquery.validate_tessellation(cells[1:], dom, expected_ids=range(20))
    assert exc.value.diagnostics.missing_ids == (cells[0].id,)


def test_orphan_face_is_reported() -> None:
    cells, dom = _cells()
    c0 = cells[0]
    k = next(i for i, nb in enumerate(c0.neighbors) if nb >= 0)
    nb = c0.neighbors[k]
    # Relabel the face so it points at a site that does not point back.
    stranger = next(c.id for c in cells if c.id != c0.id and c0.id not in c.neighbors)
    neighbors = list(c0.neighbors)
    neighbors[k] = stranger
    cells[0] = dataclasses.replace(c0, neighbors=neighbors)

    diag = voroquery.analyze_tessellation(cells, dom)
    assert not diag.ok_reciprocity
    assert diag.ok_volume
    # Both the relabelled face and the face of `nb` lost their partner.
    assert diag.n_faces_orphan == 2
    assert (c0.id, stranger) in diag.issues[0].examples
    assert (nb, c0.id) in diag.issues[0].examples


def test_walls_need_explicit_expected_volume() -> None:
    with VoronoiContext3D((0.0, 0.0, 0.0), (10.0, 10.0, 10.0)) as ctx:
        ctx.add_wall_plane((1.0, 0.0, 0.0), 5.0)
        ctx.add_points([0, 1], [1.0, 4.0], [5.0, 5.0], [5.0, 5.0])
        cells = ctx.get_all_cells()
        dom = ctx.domain

    diag = voroquery.analyze_tessellation(cells, dom)
    assert not diag.ok_volume
    assert diag.volume_gap == pytest.approx(500.0)

    diag = voroquery.analyze_tessellation(cells, dom, expected_volume=500.0)
    assert diag.ok
