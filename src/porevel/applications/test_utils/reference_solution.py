"""Reference pressure solutions used to test the velocity reconstruction.

Content:
    - assemble_pressure_system: Global MPFA-O matrix of the pressure equation,
        assembled from the local systems of all interaction regions.
    - solve_pressure: Solve the pressure equation with the assembled system.
    - LinearPressure: Analytical linear pressure field with its gradient.
    - setup_linear_problem: Parameters on a grid with Dirichlet data from a linear
        field.
    - polygon_copy: The same grid, with the generic polygon successor rule.

"""

from __future__ import annotations

from typing import Any, Optional

import numpy as np
import scipy.sparse as sps
import scipy.sparse.linalg as spla
import sympy

import porevel as pv


def assemble_pressure_system(
    sd: pv.Grid, parameters: dict[str, Any]
) -> tuple[sps.csr_matrix, np.ndarray]:
    """Assemble the MPFA-O discretization of the pressure equation.

    The net outflow of a cell is the sum of the fluxes through all its half-edges,
    each half-edge belonging to exactly one interaction region. The equation of cell
    ``c`` states that the outflow equals the volumetric source integrated over the
    cell.

    Parameters:
        sd: Grid with geometry computed.
        parameters: Complete parameters, see :func:`porevel.two_phase_defaults`.

    Returns:
        A 2-tuple containing

        :obj:`~scipy.sparse.csr_matrix`: The system matrix, one row per cell.

        :obj:`~numpy.ndarray`: The right hand side.

    """
    rows, cols, vals = [], [], []
    rhs = np.zeros(sd.num_cells)

    density = np.asarray(parameters["density"])
    source = np.asarray(parameters["source"])
    volume_source = source[0] / density[0] + source[1] / density[1]
    rhs += volume_source * sd.cell_volumes

    locator = pv.InteractionRegionLocator(sd)
    for region in locator.regions():
        system = pv.compute_local_system(sd, region, parameters)
        for k, c in enumerate(region.cells):
            outflow = system.flux_matrix[2 * k] + system.flux_matrix[2 * k + 1]
            rows.append(np.full(region.num_cells, c))
            cols.append(region.cells)
            vals.append(outflow)
            rhs[c] -= system.flux_forcing[2 * k] + system.flux_forcing[2 * k + 1]

    matrix = sps.coo_matrix(
        (np.hstack(vals), (np.hstack(rows), np.hstack(cols))),
        shape=(sd.num_cells, sd.num_cells),
    ).tocsr()
    return matrix, rhs


def solve_pressure(sd: pv.Grid, parameters: dict[str, Any]) -> np.ndarray:
    """Cell pressures of the MPFA-O discretization.

    The boundary conditions must make the problem well posed, that is, contain at
    least one Dirichlet face.

    """
    matrix, rhs = assemble_pressure_system(sd, parameters)
    return spla.spsolve(matrix.tocsc(), rhs)


class LinearPressure:
    """Convenience class for representing a linear pressure field and its gradient.

    Parameters:
        gx: Derivative in x-direction.
        gy: Derivative in y-direction.
        offset: Value at the origin.

    """

    def __init__(self, gx: float, gy: float, offset: float = 0.0) -> None:
        x, y = sympy.symbols("x y")
        p = offset + gx * x + gy * y
        self.p_f = sympy.lambdify((x, y), p, "numpy")
        self.gradient = np.array(
            [float(sympy.diff(p, x)), float(sympy.diff(p, y)), 0.0]
        )

    def __call__(self, points: np.ndarray) -> np.ndarray:
        """Values in points, ``shape=(3, n)``."""
        return self.p_f(points[0], points[1]) * np.ones(points.shape[1])

    def velocity(self, permeability: np.ndarray, mobility: float = 1.0) -> np.ndarray:
        """Darcy velocity ``-lambda K grad p`` for a constant 3x3 permeability."""
        return -mobility * permeability @ self.gradient


def setup_linear_problem(
    sd: pv.Grid,
    pressure: LinearPressure,
    perm: Optional[pv.SecondOrderTensor] = None,
    mobility: float = 1.0,
    neumann_sides: Optional[list[str]] = None,
) -> dict[str, Any]:
    """Parameters for a problem whose exact solution is a linear pressure field.

    Dirichlet data are taken from the pressure field. On the sides listed in
    ``neumann_sides`` the exact outward flux is prescribed instead, as a mass flux of
    the wetting phase with unit density.

    Parameters:
        sd: Grid with geometry computed.
        pressure: The pressure field.
        perm: Constant permeability. Defaults to the identity.
        mobility: Constant total mobility.
        neumann_sides: Sides of the domain, see :func:`porevel.face_on_side`.

    Returns:
        Complete parameters of the pressure equation.

    """
    if perm is None:
        perm = pv.SecondOrderTensor(np.ones(sd.num_cells))

    boundary = sd.get_boundary_faces()
    is_neumann = np.zeros(sd.num_faces, dtype=bool)
    if neumann_sides:
        for faces in pv.face_on_side(sd, neumann_sides):
            is_neumann[faces] = True
    dirichlet = boundary[~is_neumann[boundary]]
    neumann = boundary[is_neumann[boundary]]

    bc = pv.BoundaryCondition(
        sd,
        np.hstack((dirichlet, neumann)),
        ["dir"] * dirichlet.size + ["neu"] * neumann.size,
    )

    bc_values = np.zeros(sd.num_faces)
    bc_values[dirichlet] = pressure(sd.face_centers[:, dirichlet])

    # Outward flux per unit area on the Neumann faces.
    velocity = pressure.velocity(perm.values[:, :, 0], mobility)
    cell_of_face = sd.cell_face_as_dense().max(axis=0)
    neumann_values = np.zeros((2, sd.num_faces))
    for f in neumann:
        c = cell_of_face[f]
        sign = sd.cell_faces[f, c]
        flux = sign * velocity @ sd.face_normals[:, f]
        neumann_values[0, f] = flux / sd.face_areas[f]

    parameters = pv.two_phase_defaults(sd)
    parameters.update(
        {
            "second_order_tensor": perm,
            "mobility": mobility * np.ones(sd.num_cells),
            "bc": bc,
            "bc_values": bc_values,
            "neumann_values": neumann_values,
        }
    )
    return parameters


def polygon_copy(sd: pv.Grid) -> pv.Grid:
    """Copy of a grid that uses the generic polygon successor rule."""
    copy = sd.copy()
    copy.element_kind = "polygon"
    return copy
