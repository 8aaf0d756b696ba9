"""Tests of the localization of interaction regions.

Content:
    - Successor rules and corners on Cartesian grids, for both registered element
        kinds.
    - Interior, boundary fan and single cell regions on a 2x2 grid.
    - Enumeration of all regions, and caching of regions per corner.
    - Failure on unknown element kinds and inconsistent topology.

The 2x2 grid has nodes 0, 1, 2 on the bottom row and 3, 4, 5 in the middle; cell 0 has
faces [0, 1, 6, 8] (west, east, south, north).
"""

import numpy as np
import pytest
import scipy.sparse as sps

import porevel as pv
from porevel.applications.test_utils.reference_solution import polygon_copy
from porevel.numerics.fv import interaction_region


@pytest.fixture
def g():
    g = pv.CartGrid(np.array([2, 2]))
    g.compute_geometry()
    return g


@pytest.mark.parametrize("element_kind", ["cartesian", "polygon"])
def test_next_face(g, element_kind):
    g.element_kind = element_kind
    successors = [pv.next_face(g, 0, i) for i in range(4)]
    # West -> south -> east -> north -> west.
    assert successors == [2, 3, 1, 0]


@pytest.mark.parametrize("element_kind", ["cartesian", "polygon"])
def test_corner(g, element_kind):
    g.element_kind = element_kind
    assert [pv.corner(g, 0, i) for i in range(4)] == [0, 4, 1, 3]
    assert [pv.corner(g, 3, i) for i in range(4)] == [4, 8, 5, 7]


def test_cartesian_successor_rule_wraps_around():
    successors = interaction_region._cartesian_successors(
        None, np.arange(6), np.ones(6)
    )
    assert np.array_equal(successors, [2, 3, 4, 5, 1, 0])


def test_polygon_rule_on_triangle():
    # A single triangle, counter-clockwise nodes 0, 1, 2; faces stored in the order
    # (1, 2), (0, 1), (0, 2), with the last face oriented against the cell.
    nodes = np.array([[0, 1, 0], [0, 0, 1], [0, 0, 0]], dtype=float)
    face_nodes = _csc_matrix([[1, 2], [0, 1], [0, 2]], num_rows=3)
    cell_faces = _csc_matrix([[0, 1, 2]], num_rows=3, data=[1, 1, -1])
    g = pv.Grid(2, nodes, face_nodes, cell_faces, "triangle")
    g.compute_geometry()
    assert [pv.next_face(g, 0, i) for i in range(3)] == [2, 0, 1]
    assert [pv.corner(g, 0, i) for i in range(3)] == [2, 1, 0]


def _csc_matrix(columns, num_rows, data=None):
    indices = np.hstack(columns)
    indptr = np.cumsum([0] + [len(c) for c in columns])
    if data is None:
        data = np.ones(indices.size, dtype=int)
    return sps.csc_matrix(
        (np.asarray(data), indices, indptr), shape=(num_rows, len(columns))
    )


def test_interior_region(g):
    locator = pv.InteractionRegionLocator(g)
    region = locator.locate(0, 1)

    assert region.corner == 4
    assert region.closed
    assert region.home == 0
    # Counter-clockwise around the center node.
    assert np.array_equal(region.cells, [0, 2, 3, 1])
    assert np.array_equal(region.faces, [1, 8, 4, 9])
    assert np.array_equal(region.sub_faces, [[0, 1], [1, 2], [2, 3], [3, 0]])
    assert np.array_equal(region.local_indices, [[1, 3], [2, 1], [0, 2], [3, 0]])
    assert not np.any(region.is_boundary)

    # Each sub-face is seen with opposite orientations from its two sub-cells.
    sign = np.zeros(region.num_faces)
    np.add.at(sign, region.sub_faces.ravel(), region.signs.ravel())
    assert np.allclose(sign, 0)


def test_boundary_fan(g):
    locator = pv.InteractionRegionLocator(g)
    region = locator.locate(1, 0)

    assert region.corner == 1
    assert not region.closed
    assert np.array_equal(region.cells, [0, 1])
    assert region.home == 1
    assert np.array_equal(region.faces, [6, 1, 7])
    assert np.array_equal(region.sub_faces, [[0, 1], [1, 2]])
    assert np.array_equal(region.is_boundary, [True, False, True])
    assert np.array_equal(region.signs, [[-1, 1], [-1, -1]])


def test_boundary_cell(g):
    locator = pv.InteractionRegionLocator(g)
    region = locator.locate(0, 0)
    assert region.corner == 0
    assert region.num_cells == 1
    assert np.array_equal(region.faces, [0, 6])
    assert np.all(region.is_boundary)
    assert np.array_equal(region.local_indices, [[0, 2]])


def test_locate_same_corner_from_all_cells(g):
    locator = pv.InteractionRegionLocator(g)
    homes = [(0, 1), (2, 2), (3, 0), (1, 3)]
    regions = [locator.locate(c, i) for c, i in homes]
    for k, region in enumerate(regions):
        assert region.corner == 4
        assert region.home == k
        assert region.cells[region.home] == homes[k][0]
        assert np.array_equal(region.cells, regions[0].cells)


def test_position(g):
    region = pv.InteractionRegionLocator(g).locate(0, 1)
    assert region.position(3, 0) == 2
    with pytest.raises(KeyError):
        region.position(3, 1)


@pytest.mark.parametrize("nx", [np.array([2, 2]), np.array([3, 4])])
def test_regions(nx):
    g = pv.CartGrid(nx)
    g.compute_geometry()
    regions = list(pv.InteractionRegionLocator(g).regions())

    # One region per node.
    assert len(regions) == g.num_nodes
    assert np.array_equal(np.sort([r.corner for r in regions]), np.arange(g.num_nodes))

    # Every (cell, local face) pair is the first face of exactly one sub-cell.
    pairs = [
        (c, i) for r in regions for c, i in zip(r.cells, r.local_indices[:, 0])
    ]
    assert len(pairs) == len(set(pairs)) == g.num_half_faces

    boundary = g.tags["domain_boundary_nodes"]
    for r in regions:
        assert r.closed == (not boundary[r.corner])
        if r.closed:
            assert r.num_cells == 4
        else:
            assert r.num_faces == r.num_cells + 1


@pytest.mark.parametrize(
    "nx, flip, valence",
    [
        # One diagonal direction: six cells around each internal node.
        (np.array([2, 2]), None, {4: 6}),
        (np.array([2, 2]), [False, True, True, False], {4: 8}),
        # Checkerboard of diagonal directions.
        (
            np.array([3, 3]),
            [False, True, False, True, False, True, False, True, False],
            {5: 8, 6: 4, 9: 4, 10: 8},
        ),
    ],
)
def test_regions_on_triangles(nx, flip, valence):
    g = pv.StructuredTriangleGrid(nx, flip=flip)
    g.compute_geometry()
    locator = pv.InteractionRegionLocator(g)
    regions = list(locator.regions())
    assert len(regions) == g.num_nodes

    rings = {r.corner: r.num_cells for r in regions if r.closed}
    assert rings == valence

    pairs = [
        (c, i) for r in regions for c, i in zip(r.cells, r.local_indices[:, 0])
    ]
    assert len(pairs) == len(set(pairs)) == g.num_half_faces
    for r in regions:
        if r.closed:
            assert np.array_equal(r.sub_faces[:, 1], np.roll(r.sub_faces[:, 0], -1))
            sign = np.zeros(r.num_faces)
            np.add.at(sign, r.sub_faces.ravel(), r.signs.ravel())
            assert np.allclose(sign, 0)
        else:
            assert r.is_boundary[0] and r.is_boundary[-1]
            assert not np.any(r.is_boundary[1:-1])


def test_polygon_and_cartesian_regions_agree():
    g = pv.perturb_nodes(pv.CartGrid(np.array([3, 3])), rate=0.4, dx=1, seed=2)
    h = polygon_copy(g)
    cart = pv.InteractionRegionLocator(g)
    poly = pv.InteractionRegionLocator(h)
    for c in range(g.num_cells):
        for i in range(4):
            r1, r2 = cart.locate(c, i), poly.locate(c, i)
            assert r1.corner == r2.corner
            assert np.array_equal(r1.cells, r2.cells)
            assert np.array_equal(r1.faces, r2.faces)
            assert r1.home == r2.home


def test_unknown_element_kind(g):
    g.element_kind = "hexagon"
    with pytest.raises(pv.ConfigurationError):
        pv.InteractionRegionLocator(g)
    with pytest.raises(pv.ConfigurationError):
        pv.next_face(g, 0, 0)


def test_register_element_kind(g, monkeypatch):
    monkeypatch.setitem(
        interaction_region.SUCCESSOR_RULES,
        "reversed",
        lambda sd, faces, signs: np.array([3, 2, 0, 1]),
    )
    g.element_kind = "reversed"
    # West -> north, the successor is now taken clockwise.
    assert pv.next_face(g, 0, 0) == 3
    assert pv.corner(g, 0, 0) == 3


def test_faces_without_common_node(g, monkeypatch):
    # Pair the west face with the east face, which do not meet.
    monkeypatch.setitem(
        interaction_region.SUCCESSOR_RULES,
        "broken",
        lambda sd, faces, signs: np.array([1, 0, 3, 2]),
    )
    g.element_kind = "broken"
    with pytest.raises(pv.ConfigurationError):
        pv.corner(g, 0, 0)
    with pytest.raises(pv.ConfigurationError):
        pv.InteractionRegionLocator(g)


def test_polygon_rule_requires_oriented_faces(g):
    # Flip the nodes of an internal face, the loops around cell 0 and 1 are broken.
    start = g.face_nodes.indptr[1]
    g.face_nodes.indices[start : start + 2] = g.face_nodes.indices[
        start : start + 2
    ][::-1].copy()
    g.element_kind = "polygon"
    with pytest.raises(pv.ConfigurationError):
        pv.next_face(g, 0, 0)
