from __future__ import annotations

import numpy as np
import pytest

import voroquery
from voroquery.engine import BOX_WALL_IDS, Container, SiteLoop


def _unit_box(cell: voroquery.ConvexCell) -> voroquery.ConvexCell:
    cell.init_box(-1.0, 1.0, -1.0, 1.0, -1.0, 1.0)
    return cell


def test_box_cell_geometry() -> None:
    cell = _unit_box(voroquery.ConvexCell())
    assert not cell.is_empty
    assert cell.volume() == pytest.approx(8.0)
    assert np.allclose(cell.centroid(), 0.0)
    assert cell.max_radius_sq() == pytest.approx(3.0)
    assert cell.face_orders() == [4] * 6
    assert cell.vertices().shape == (24,)

    loops = voroquery.parse_face_vertices(cell.face_vertices())
    assert len(loops) == 6
    assert all(len(f) == 4 for f in loops)


def test_plane_cuts_off_corner() -> None:
    cell = _unit_box(voroquery.ConvexCell())
    # Bisector towards (1, 1, 1): keeps x + y + z <= 1.5.
    assert cell.plane(1.0, 1.0, 1.0)
    assert cell.volume() == pytest.approx(8.0 - 1.5**3 / 6.0)
    assert len(cell.face_orders()) == 7
    assert cell.vertices().shape == (30,)

    raw = cell.to_raw()
    assert raw.frame == 'site-relative'
    assert raw.n_faces == 7
    assert raw.volume == pytest.approx(cell.volume())


def test_nplane_that_misses_keeps_cell() -> None:
    cell = _unit_box(voroquery.ConvexCell())
    assert cell.nplane(1.0, 0.0, 0.0, 2.0, 5)
    assert cell.volume() == pytest.approx(8.0)


def test_nplane_that_removes_everything_empties_cell() -> None:
    cell = _unit_box(voroquery.ConvexCell())
    assert not cell.nplane(1.0, 0.0, 0.0, -2.0, 5)
    assert cell.is_empty
    assert cell.volume() == 0.0
    # Further cuts on an empty cell keep reporting failure.
    assert not cell.nplane(0.0, 1.0, 0.0, 0.0, 5)


def test_neighbor_cell_labels_faces() -> None:
    cell = _unit_box(voroquery.NeighborCell())
    assert cell.neighbors() == list(BOX_WALL_IDS)
    assert cell.nplane(1.0, 0.0, 0.0, 0.5, 42)
    labels = cell.neighbors()
    assert 42 in labels
    # The +x box face was removed entirely.
    assert -2 not in labels
    assert cell.volume() == pytest.approx(6.0)


def test_plain_cell_does_not_track_labels() -> None:
    cell = _unit_box(voroquery.ConvexCell())
    cell.nplane(1.0, 0.0, 0.0, 0.5, 42)
    assert np.all(cell.to_raw().neighbors == 0)


def test_centroid_of_half_box() -> None:
    cell = _unit_box(voroquery.ConvexCell())
    cell.nplane(1.0, 0.0, 0.0, 0.0, 1)
    assert np.allclose(cell.centroid(), [-0.5, 0.0, 0.0])


def test_loop_all_orders_by_block_then_insertion() -> None:
    cont = Container(voroquery.Box(((0.0, 10.0), (0.0, 10.0), (0.0, 10.0))))
    store = voroquery.SiteStore()
    store.add(0, (8.0, 5.0, 5.0))
    store.add(7, (1.0, 1.0, 1.0))
    store.add(3, (1.1, 1.0, 1.0))
    store.add(9, (20.0, 5.0, 5.0))  # outside, not accepted

    loop = cont.loop_all(store)
    assert isinstance(loop, SiteLoop)
    assert loop.ids.tolist() == [7, 3, 0]
    assert loop.find(0) == 2
    assert loop.find(9) == -1


def test_container_rejects_bad_blocks() -> None:
    box = voroquery.Box(((0.0, 1.0), (0.0, 1.0), (0.0, 1.0)))
    with pytest.raises(ValueError):
        Container(box, blocks=(0, 1, 1))


def _rng_for_run(seed: int, run: int) -> np.random.Generator:
    mixed = (seed + 0x9E3779B97F4A7C15 + 104729 * int(run)) & 0xFFFFFFFFFFFFFFFF
    return np.random.default_rng(mixed)


def test_compute_cell_partitions_box(fuzz_settings) -> None:
    cont = Container(voroquery.Box(((0.0, 4.0), (0.0, 4.0), (0.0, 4.0))), blocks=(2, 2, 2))
    for run in range(int(fuzz_settings['n'])):
        rng = _rng_for_run(int(fuzz_settings['seed']), run)
        store = voroquery.SiteStore()
        pts = rng.uniform(0.0, 4.0, size=(12, 3))
        for i, p in enumerate(pts):
            store.add(i, p)
        loop = cont.loop_all(store)
        cell = voroquery.ConvexCell()
        total = 0.0
        for k in range(len(loop)):
            assert cont.compute_cell(cell, loop, k)
            total += cell.volume()
        assert total == pytest.approx(64.0, rel=1e-9)
