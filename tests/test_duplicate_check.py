from __future__ import annotations

import numpy as np
import pytest

import voroquery


def test_duplicate_check_returns_empty_for_small_inputs() -> None:
    assert voroquery.duplicate_check(np.zeros((0, 3))) == tuple()
    assert voroquery.duplicate_check([]) == tuple()
    assert voroquery.duplicate_check(np.zeros((1, 3))) == tuple()


def test_duplicate_check_detects_exact_duplicate() -> None:
    pts = np.array([[0.0, 0.0, 0.0], [0.0, 0.0, 0.0]], dtype=float)
    with pytest.raises(voroquery.DuplicateError) as exc:
        voroquery.duplicate_check(pts)
    assert exc.value.pairs[0] == voroquery.DuplicatePair(0, 1, 0.0)


def test_duplicate_check_reports_site_ids() -> None:
    pts = np.array([[1.0, 1.0, 1.0], [5.0, 5.0, 5.0], [1.0, 1.0, 1.0 + 1e-6]])
    pairs = voroquery.duplicate_check(pts, ids=[10, 20, 30], mode='return')
    assert len(pairs) == 1
    assert (pairs[0].i, pairs[0].j) == (10, 30)
    assert pairs[0].distance == pytest.approx(1e-6)


def test_duplicate_check_warn_mode() -> None:
    pts = np.array([[0.0, 0.0, 0.0], [0.5e-5, 0.0, 0.0]], dtype=float)
    with pytest.warns(RuntimeWarning, match='closer than threshold'):
        pairs = voroquery.duplicate_check(pts, threshold=1e-5, mode='warn')
    assert len(pairs) == 1


def test_duplicate_check_periodic_wrap_catches_modulo_duplicates() -> None:
    L = 10.0
    dom = voroquery.OrthorhombicCell(
        bounds=((0.0, L), (0.0, L), (0.0, L)), periodic=(True, True, True)
    )
    pts = np.array(
        [
            [0.1, 0.2, 0.3],
            [L + 0.1, 0.2, 0.3],  # same point modulo x-periodicity
        ],
        dtype=float,
    )
    # With wrapping, they coincide -> duplicate.
    with pytest.raises(voroquery.DuplicateError):
        voroquery.duplicate_check(pts, domain=dom, wrap=True)

    # Without wrapping, distance is ~L -> no duplicate.
    pairs = voroquery.duplicate_check(pts, domain=dom, wrap=False, mode='return')
    assert pairs == tuple()


def test_duplicate_check_argument_validation() -> None:
    pts = np.zeros((2, 3))
    with pytest.raises(ValueError):
        voroquery.duplicate_check(pts, mode='ignore')  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        voroquery.duplicate_check(pts, threshold=0.0)
    with pytest.raises(ValueError):
        voroquery.duplicate_check(pts, ids=[1, 2, 3])
    with pytest.raises(ValueError):
        voroquery.duplicate_check(np.zeros((2, 2)))


def test_duplicate_check_stops_at_max_pairs() -> None:
    pts = np.zeros((5, 3))
    pairs = voroquery.duplicate_check(pts, ids=[7, 8, 9, 10, 11], mode='return', max_pairs=3)
    assert len(pairs) == 3
    assert all(p.i < p.j for p in pairs)
    assert pairs[0] == voroquery.DuplicatePair(7, 8, 0.0)
    with pytest.raises(ValueError):
        voroquery.duplicate_check(pts, max_pairs=0)
