from __future__ import annotations

import dataclasses

import pytest

import voroquery
from voroquery import VoronoiContext3D


def _record() -> voroquery.CellRecord:
    with VoronoiContext3D((0.0, 0.0, 0.0), (10.0, 10.0, 10.0)) as ctx:
        ctx.add_point(0, (3.0, 3.0, 3.0))
        ctx.add_point(1, (7.0, 7.0, 7.0))
        return ctx.get_cell(0)


def test_computed_record_is_valid() -> None:
    rec = _record()
    assert voroquery.validate_cell_record(rec) == ()
    assert voroquery.validate_cell_record(rec, level='strict') == ()


def test_empty_record_is_valid() -> None:
    assert voroquery.validate_cell_record(voroquery.CellRecord()) == ()


def test_missing_edge_is_reported() -> None:
    rec = _record()
    broken = dataclasses.replace(rec, edges=rec.edges[:-1])
    codes = {i.code for i in voroquery.validate_cell_record(broken)}
    assert 'EDGE_SET_MISMATCH' in codes
    assert 'EULER' in codes

    with pytest.raises(voroquery.CellRecordError) as exc:
        voroquery.validate_cell_record(broken, level='strict')
    assert any(i.code == 'EDGE_SET_MISMATCH' for i in exc.value.issues)


def test_duplicate_edge_is_reported() -> None:
    rec = _record()
    a, b = rec.edges[0]
    broken = dataclasses.replace(rec, edges=rec.edges + [(b, a)])
    issues = voroquery.validate_cell_record(broken)
    dup = [i for i in issues if i.code == 'DUPLICATE_EDGE']
    assert len(dup) == 1
    assert dup[0].examples == ((a, b),)


def test_face_neighbor_mismatch_and_range() -> None:
    rec = _record()
    broken = dataclasses.replace(
        rec,
        neighbors=rec.neighbors[:-1],
        faces=rec.faces[:-1] + [[0, 1, len(rec.vertices) + 3]],
    )
    codes = {i.code for i in voroquery.validate_cell_record(broken, check_euler=False)}
    assert 'FACE_NEIGHBOR_MISMATCH' in codes
    assert 'FACE_INDEX_RANGE' in codes
    assert 'EULER' not in codes


def test_bad_level_raises() -> None:
    with pytest.raises(ValueError):
        voroquery.validate_cell_record(voroquery.CellRecord(), level='paranoid')  # type: ignore[arg-type]
