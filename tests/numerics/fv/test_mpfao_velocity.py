"""Tests of the MPFA-O velocity reconstruction.

Content:
    - The 2x2 reference case with a known flux across the bottom internal face.
    - Reproduction of linear pressure fields on Cartesian, tensor, perturbed and
        anisotropic grids, with both element kinds, and on triangle grids with
        internal nodes shared by four, six and eight cells.
    - Antisymmetry of fluxes, local conservation for pressures from the reference
        solve, repeated passes and substitution of boundary conditions.
    - Mobility on faces with a prescribed saturation.
    - The face accumulator, the velocity field queries and error handling.

"""

import logging

import numpy as np
import pytest

import porevel as pv
from porevel.applications.test_utils.reference_solution import (
    LinearPressure,
    polygon_copy,
    setup_linear_problem,
    solve_pressure,
)


def _compute(g, parameters, pressure, keyword="flow"):
    data = pv.initialize_data({}, keyword, parameters)
    data[pv.STATE]["pressure"] = pressure
    field = pv.MpfaOVelocity(keyword).compute(g, data)
    return field, data


def _outer_normals(g, cell):
    faces, signs = g.faces_of_cell(cell)
    return faces, signs * g.face_normals[:, faces]


@pytest.fixture
def g():
    g = pv.CartGrid(np.array([2, 2]))
    g.compute_geometry()
    return g


def test_two_by_two_reference_case(g):
    pressure = LinearPressure(-1, -2, 4.5)
    parameters = setup_linear_problem(g, pressure)
    p = np.array([3.0, 2.0, 1.0, 0.0])
    assert np.allclose(pressure(g.cell_centers), p)

    field, data = _compute(g, parameters, p)

    # Pressure drop 1 over unit distance from the bottom-left to the bottom-right cell.
    assert np.isclose(field.normal_flux(0, 1), 1)
    assert np.isclose(field.normal_flux(1, 0), -1)
    assert np.allclose(field.velocity(0, 1), [1, 0, 0])
    assert np.allclose(field.velocity(0, 3), [0, 2, 0])
    assert np.allclose(field.velocity(2, 2), [0, 2, 0])

    assert np.all(np.abs(field.report.residuals) < 1e-10)
    assert field.report.is_conservative
    assert data[pv.STATE]["flow_velocity"] is field


def _anisotropic(g):
    nc = g.num_cells
    return pv.SecondOrderTensor(
        3 * np.ones(nc), kyy=np.ones(nc), kxy=-0.9 * np.ones(nc)
    )


def _checkerboard(nx):
    i, j = np.meshgrid(np.arange(nx[0]), np.arange(nx[1]))
    return ((i + j) % 2 == 1).ravel()


def _linear_cases():
    cart = pv.CartGrid(np.array([4, 3]), np.array([1, 1]))
    cart.compute_geometry()

    tensor = pv.TensorGrid(np.array([0, 0.1, 0.5, 1.2, 2]), np.array([0, 1, 1.5, 3]))
    tensor.compute_geometry()

    perturbed = pv.perturb_nodes(
        pv.CartGrid(np.array([5, 5]), np.array([1, 1])), rate=0.6, dx=0.2, seed=11
    )

    # Internal nodes shared by six cells, by four and eight cells, and a mix.
    nx = np.array([4, 4])
    triangles = pv.StructuredTriangleGrid(nx, np.array([1, 1]))
    triangles.compute_geometry()
    checkerboard = pv.StructuredTriangleGrid(
        nx, np.array([1, 1]), flip=_checkerboard(nx)
    )
    checkerboard.compute_geometry()
    mixed = pv.perturb_nodes(
        pv.StructuredTriangleGrid(
            nx, np.array([1, 1]), flip=np.random.default_rng(3).random(16) < 0.5
        ),
        rate=0.4,
        dx=0.25,
        seed=12,
    )

    return [
        (cart, None),
        (tensor, None),
        (perturbed, None),
        (perturbed, _anisotropic(perturbed)),
        (polygon_copy(perturbed), _anisotropic(perturbed)),
        (triangles, None),
        (triangles, _anisotropic(triangles)),
        (checkerboard, _anisotropic(checkerboard)),
        (mixed, _anisotropic(mixed)),
    ]


@pytest.mark.parametrize("neumann_sides", [None, ["south", "east"]])
@pytest.mark.parametrize("g, perm", _linear_cases())
def test_linear_pressure_is_reproduced(g, perm, neumann_sides):
    pressure = LinearPressure(1.5, -0.5, 1.0)
    parameters = setup_linear_problem(
        g, pressure, perm, mobility=2.0, neumann_sides=neumann_sides
    )
    if perm is None:
        perm = parameters["second_order_tensor"]
    velocity = pressure.velocity(perm.values[:, :, 0], mobility=2.0)

    field, _ = _compute(g, parameters, pressure(g.cell_centers))

    for c in range(g.num_cells):
        faces, normals = _outer_normals(g, c)
        for i, (f, n) in enumerate(zip(faces, normals.T)):
            unit = n / g.face_areas[f]
            assert np.isclose(field.normal_flux(c, i), velocity @ n)
            assert np.allclose(field.velocity(c, i), (velocity @ unit) * unit)
            for phase in pv.PHASES:
                assert np.isclose(field.potential(phase, c, i), velocity @ unit)

    assert np.allclose(field.face_fluxes(), velocity @ g.face_normals)
    assert field.report.is_conservative


def test_polygon_and_cartesian_rules_give_same_field():
    g = pv.perturb_nodes(pv.CartGrid(np.array([4, 4])), rate=0.5, dx=1, seed=3)
    h = polygon_copy(g)
    rng = np.random.default_rng(0)
    parameters = pv.two_phase_defaults(g)
    parameters["bc"] = pv.BoundaryCondition(g, g.get_boundary_faces(), "dir")
    parameters["bc_values"] = rng.random(g.num_faces)
    parameters["mobility"] = 1 + rng.random(g.num_cells)
    p = rng.random(g.num_cells)

    field_cart, _ = _compute(g, parameters, p)
    field_poly, _ = _compute(h, parameters, p)
    assert np.allclose(field_cart.velocities, field_poly.velocities)


def _heterogeneous_problem(seed, triangles=False):
    if triangles:
        flip = np.random.default_rng(seed).random(30) < 0.5
        g = pv.perturb_nodes(
            pv.StructuredTriangleGrid(np.array([6, 5]), np.array([1, 1]), flip=flip),
            rate=0.3,
            dx=0.2,
            seed=seed,
        )
    else:
        g = pv.perturb_nodes(
            pv.CartGrid(np.array([6, 5]), np.array([1, 1])),
            rate=0.5,
            dx=0.2,
            seed=seed,
        )
    rng = np.random.default_rng(seed)
    nc, nf = g.num_cells, g.num_faces

    west, east = pv.face_on_side(g, ["west", "east"])
    dirichlet = np.hstack((west, east))
    neumann = np.setdiff1d(g.get_boundary_faces(), dirichlet)

    kxx = 1 + rng.random(nc)
    kyy = 1 + rng.random(nc)
    parameters = pv.two_phase_defaults(g)
    parameters.update(
        {
            "second_order_tensor": pv.SecondOrderTensor(kxx, kyy, 0.3 * kxx),
            "mobility": 0.5 + rng.random(nc),
            "density": np.vstack((np.full(nc, 1000.0), np.full(nc, 800.0))),
            "source": np.vstack((100 * rng.random(nc), np.zeros(nc))),
            "bc": pv.BoundaryCondition(g, dirichlet, "dir"),
            "bc_values": np.where(np.isin(np.arange(nf), west), 1.0, 0.0),
        }
    )
    parameters["neumann_values"][1, neumann] = rng.random(neumann.size)
    return g, parameters


@pytest.mark.parametrize("triangles", [False, True])
def test_antisymmetry(triangles):
    g, parameters = _heterogeneous_problem(seed=1, triangles=triangles)
    p = np.random.default_rng(2).random(g.num_cells)
    field, _ = _compute(g, parameters, p)

    face_cells = g.cell_face_as_dense()
    for f in g.get_internal_faces():
        c1, c2 = face_cells[:, f]
        i1 = np.where(g.faces_of_cell(c1)[0] == f)[0][0]
        i2 = np.where(g.faces_of_cell(c2)[0] == f)[0][0]
        assert np.allclose(field.velocity(c1, i1), field.velocity(c2, i2))
        assert np.isclose(field.normal_flux(c1, i1), -field.normal_flux(c2, i2))


@pytest.mark.parametrize("triangles", [False, True])
def test_conservation_for_reference_pressure(triangles):
    g, parameters = _heterogeneous_problem(seed=4, triangles=triangles)
    p = solve_pressure(g, parameters)
    field, _ = _compute(g, parameters, p)

    report = field.report
    assert report.is_conservative
    assert np.all(report.relative_imbalance < 1e-10)

    # The residual is measured against the volumetric source.
    outflow = np.zeros(g.num_cells)
    for c in range(g.num_cells):
        num_faces = g.faces_of_cell(c)[0].size
        outflow[c] = sum(field.normal_flux(c, i) for i in range(num_faces))
    source = parameters["source"][0] / parameters["density"][0]
    assert np.allclose(outflow, source * g.cell_volumes)


def test_imbalance_is_logged(g, caplog):
    # Zero Neumann data everywhere, and a pressure that drives a flow.
    p = np.array([3.0, 2.0, 1.0, 0.0])
    with caplog.at_level(logging.WARNING):
        field, data = _compute(g, {}, p)
    assert not field.report.is_conservative
    assert "Mass balance violated" in caplog.text
    # The field is still stored.
    assert data[pv.STATE]["flow_velocity"] is field


def test_closed_boundary(g):
    # No flow across the boundary: each internal face carries the pressure drop.
    data = pv.initialize_data({}, "flow", {"mobility": np.ones(4)})
    data[pv.STATE]["pressure"] = np.array([3.0, 2.0, 1.0, 0.0])
    field = pv.MpfaOVelocity("flow").compute(g, data)
    assert np.allclose(field.velocity(0, 1), [1, 0, 0])
    assert np.allclose(field.velocity(0, 3), [0, 2, 0])
    assert np.allclose(field.velocity(0, 0), 0)
    assert np.allclose(field.velocity(0, 2), 0)


def test_repeated_passes():
    g, parameters = _heterogeneous_problem(seed=6)
    p = np.random.default_rng(6).random(g.num_cells)
    data = pv.initialize_data({}, "flow", parameters)
    data[pv.STATE]["pressure"] = p
    reconstruction = pv.MpfaOVelocity("flow")

    first = reconstruction.compute(g, data)
    second = reconstruction.compute(g, data)
    assert second is not first
    assert np.allclose(first.velocities, second.velocities)
    assert data[pv.STATE]["flow_velocity"] is second


@pytest.mark.parametrize("gx, gy", [(-1.0, 0.0), (0.5, 2.0)])
def test_neumann_substitution(gx, gy):
    g = pv.perturb_nodes(
        pv.CartGrid(np.array([3, 3]), np.array([1, 1])), rate=0.4, dx=1 / 3, seed=9
    )
    pressure = LinearPressure(gx, gy, 2.0)
    p = pressure(g.cell_centers)

    dirichlet = setup_linear_problem(g, pressure)
    mixed = setup_linear_problem(g, pressure, neumann_sides=["south", "north"])
    assert np.any(mixed["bc"].is_neu)

    field_dir, _ = _compute(g, dirichlet, p)
    field_mixed, _ = _compute(g, mixed, p)
    assert np.allclose(field_dir.velocities, field_mixed.velocities)


def test_boundary_mobility_from_saturation():
    # One unit cell, pressure 1 on the west side and 0 on the east side.
    g = pv.CartGrid(np.array([1, 1]))
    g.compute_geometry()
    west, east = pv.face_on_side(g, ["west", "east"])
    parameters = {
        "bc": pv.BoundaryCondition(g, np.hstack((west, east)), "dir"),
        "bc_values": np.where(np.isin(np.arange(g.num_faces), west), 1.0, 0.0),
    }
    p = np.array([0.5])

    field, _ = _compute(g, parameters, p)
    assert np.isclose(field.normal_flux(0, 0), -1)
    assert np.isclose(field.normal_flux(0, 1), 1)

    # Water saturation 1/2 on the west side: mobility 1/4 + 1/4.
    parameters["saturation_bc"] = pv.BoundaryCondition(g, west, "dir")
    parameters["saturation_bc_values"] = 0.5 * np.ones(g.num_faces)
    field, _ = _compute(g, parameters, p)
    assert np.isclose(field.normal_flux(0, 0), -0.5)
    assert np.isclose(field.normal_flux(0, 1), 1)

    # The same value, interpreted as non-wetting saturation.
    parameters["saturation_type"] = "sn"
    parameters["saturation_bc_values"] = 0.0 * np.ones(g.num_faces)
    field, _ = _compute(g, parameters, p)
    assert np.isclose(field.normal_flux(0, 0), -1)


def test_non_positive_mobility_aborts_pass(g):
    data = pv.initialize_data({}, "flow", {"mobility": np.array([1.0, 0.0, 1.0, 1.0])})
    data[pv.STATE]["pressure"] = np.zeros(4)
    with pytest.raises(pv.ConfigurationError):
        pv.MpfaOVelocity("flow").compute(g, data)
    assert "flow_velocity" not in data[pv.STATE]


def test_wrong_pressure_shape(g):
    data = pv.initialize_data({}, "flow")
    data[pv.STATE]["pressure"] = np.zeros(3)
    with pytest.raises(ValueError):
        pv.MpfaOVelocity().compute(g, data)


@pytest.mark.parametrize(
    "key, value",
    [("mobility", np.ones(3)), ("density", np.ones(4)), ("bc_values", np.zeros(4))],
)
def test_wrong_parameter_shape(g, key, value):
    data = pv.initialize_data({}, "flow", {key: value})
    data[pv.STATE]["pressure"] = np.zeros(4)
    with pytest.raises(ValueError):
        pv.MpfaOVelocity().compute(g, data)


def test_keyword(g):
    reconstruction = pv.MpfaOVelocity("pressure_equation")
    assert reconstruction.velocity_key == "pressure_equation_velocity"
    data = pv.initialize_data({}, "pressure_equation", {"mobility": 2 * np.ones(4)})
    data[pv.STATE]["pressure"] = np.zeros(4)
    field = reconstruction.compute(g, data)
    assert data[pv.STATE]["pressure_equation_velocity"] is field
    assert np.allclose(field.velocities, 0)


def test_velocity_field_queries(g):
    field, _ = _compute(g, setup_linear_problem(g, LinearPressure(-1, 0)), np.zeros(4))
    assert field.velocity(3, 3).shape == (3,)
    with pytest.raises(ValueError):
        field.potential("gas", 0, 0)
    with pytest.raises(IndexError):
        field.velocity(0, 4)
    assert field.normal_fluxes().shape == (g.num_half_faces,)
    assert field.face_fluxes().shape == (g.num_faces,)


def test_sweep_touches_every_half_face_twice(g):
    parameters = pv.MpfaOVelocity().parameters(g, {})
    accumulator = pv.MpfaOVelocity().sweep(g, parameters, np.zeros(4))
    assert np.all(accumulator.touched == 2)


def test_accumulator(g):
    accumulator = pv.FaceFluxAccumulator(g)
    assert accumulator.index(1, 2) == g.half_face_index(1, 2)
    accumulator.add(1, 2, np.array([1.0, 0, 0]))
    accumulator.add(1, 2, np.array([0.5, 1, 0]))
    assert np.allclose(accumulator.values[:, 6], [1.5, 1, 0])
    assert accumulator.touched[6] == 2
    with pytest.raises(pv.ConfigurationError):
        accumulator.check_complete()


@pytest.mark.skipped
def test_conservation_on_large_grid():
    g = pv.perturb_nodes(
        pv.CartGrid(np.array([40, 40]), np.array([1, 1])), rate=0.5, dx=0.025, seed=0
    )
    rng = np.random.default_rng(0)
    west = pv.face_on_side(g, "west")[0]
    parameters = pv.two_phase_defaults(g)
    parameters["second_order_tensor"] = pv.SecondOrderTensor(
        np.power(10, rng.uniform(-2, 2, g.num_cells))
    )
    parameters["bc"] = pv.BoundaryCondition(g, west, "dir")
    parameters["source"][0] = 1 - 2 * (g.cell_centers[0] > 0.5)
    p = solve_pressure(g, parameters)
    field, _ = _compute(g, parameters, p)
    assert field.report.is_conservative
