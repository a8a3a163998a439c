import numpy as np

from voroquery import VoronoiContext3D


def test_two_sites_split_box_at_bisector():
    with VoronoiContext3D((-5.0, -5.0, -5.0), (15.0, 5.0, 5.0)) as ctx:
        ctx.add_point(0, (0.0, 0.0, 0.0))
        ctx.add_point(1, (10.0, 0.0, 0.0))
        cells = ctx.get_all_cells()

    assert [c.id for c in cells] == [0, 1]
    vols = [c.volume for c in cells]
    assert np.allclose(vols, [1000.0, 1000.0])

    # Both cells share exactly one face, lying on x == 5.
    for c, other in ((cells[0], 1), (cells[1], 0)):
        assert c.neighbors.count(other) == 1
        face = c.faces[c.neighbors.index(other)]
        xs = [c.vertices[i][0] for i in face]
        assert np.allclose(xs, 5.0)


def test_single_site_cell_is_the_box():
    ctx = VoronoiContext3D((0.0, 0.0, 0.0), (10.0, 10.0, 10.0))
    ctx.add_point(3, (1.0, 1.0, 1.0))
    rec = ctx.get_cell(3)
    assert rec.id == 3
    assert rec.position == (1.0, 1.0, 1.0)
    assert abs(rec.volume - 1000.0) < 1e-9
    assert len(rec.vertices) == 8
    assert len(rec.faces) == 6
    assert len(rec.edges) == 12
    assert sorted(rec.neighbors) == [-6, -5, -4, -3, -2, -1]
    ctx.close()
