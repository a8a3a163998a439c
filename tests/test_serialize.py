from __future__ import annotations

import numpy as np
import pytest

import voroquery
from voroquery import CellRecord, NeighborCell, RawPolytope, serialize_cell


def test_parse_face_vertices_splits_loops() -> None:
    loops = voroquery.parse_face_vertices([3, 0, 1, 2, 4, 0, 1, 2, 3])
    assert loops == [[0, 1, 2], [0, 1, 2, 3]]
    assert voroquery.parse_face_vertices([]) == []


@pytest.mark.parametrize('buf', [[0], [3, 0, 1], [-1, 2]])
def test_parse_face_vertices_rejects_malformed(buf) -> None:
    with pytest.raises(ValueError):
        voroquery.parse_face_vertices(buf)


def test_cell_edges_are_unique_and_sorted() -> None:
    edges = voroquery.cell_edges([[0, 1, 2], [2, 1, 3]])
    assert edges == [(0, 1), (0, 2), (1, 2), (1, 3), (2, 3)]


def test_standalone_box_serializes_to_eight_six_twelve() -> None:
    cell = NeighborCell()
    cell.init_box(-1.0, 1.0, -2.0, 2.0, -3.0, 3.0)
    rec = serialize_cell(cell.to_raw(), 9, (10.0, 20.0, 30.0))

    assert rec.id == 9
    assert rec.volume == pytest.approx(48.0)
    assert len(rec.vertices) == 8
    assert len(rec.faces) == 6
    assert len(rec.edges) == 12
    assert rec.neighbors == [-1, -2, -3, -4, -5, -6]

    v = np.asarray(rec.vertices)
    assert np.allclose(v.min(axis=0), [9.0, 18.0, 27.0])
    assert np.allclose(v.max(axis=0), [11.0, 22.0, 33.0])
    assert voroquery.validate_cell_record(rec, level='strict') == ()


def test_face_loops_wind_counter_clockwise_from_outside() -> None:
    cell = NeighborCell()
    cell.init_box(-1.0, 1.0, -1.0, 1.0, -1.0, 1.0)
    cell.plane(1.0, 1.0, 0.0)
    rec = serialize_cell(cell.to_raw(), 0, (0.0, 0.0, 0.0))
    v = np.asarray(rec.vertices)
    for f in rec.faces:
        p = v[f]
        n = np.cross(p[1:-1] - p[0], p[2:] - p[0]).sum(axis=0)
        # Outward normal points away from the site at the origin.
        assert n @ p.mean(axis=0) > 0


def _raw(**kwargs) -> RawPolytope:
    base = dict(
        volume=1.0,
        vertices=np.zeros(9),
        face_vertices=np.array([3, 0, 1, 2]),
        neighbors=np.array([4]),
        centroid=np.zeros(3),
    )
    base.update(kwargs)
    return RawPolytope(**base)


def test_serialize_rejects_inconsistent_buffers() -> None:
    with pytest.raises(ValueError, match='neighbor'):
        serialize_cell(_raw(neighbors=np.array([4, 5])), 0, (0.0, 0.0, 0.0))
    with pytest.raises(ValueError, match='out of range'):
        serialize_cell(_raw(face_vertices=np.array([3, 0, 1, 7])), 0, (0.0, 0.0, 0.0))
    with pytest.raises(ValueError, match='multiple of 3'):
        serialize_cell(_raw(vertices=np.zeros(8)), 0, (0.0, 0.0, 0.0))
    with pytest.raises(ValueError, match='frame'):
        serialize_cell(_raw(frame='absolute'), 0, (0.0, 0.0, 0.0))


def test_empty_record_defaults() -> None:
    rec = CellRecord()
    assert rec.is_empty
    assert rec.to_dict() == {
        'id': 0,
        'position': [0.0, 0.0, 0.0],
        'volume': 0.0,
        'vertices': [],
        'faces': [],
        'edges': [],
        'neighbors': [],
    }


def test_records_compare_by_value_but_are_unhashable() -> None:
    assert CellRecord(id=3, neighbors=[1]) == CellRecord(id=3, neighbors=[1])
    with pytest.raises(TypeError):
        hash(CellRecord())
