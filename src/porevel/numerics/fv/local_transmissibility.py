"""Local linear systems of the MPFA-O method.

In each sub-cell of an interaction region the pressure is approximated by a linear
function, determined by the cell pressure ``p_k`` and the potentials ``u_a``, ``u_b`` in
the centers of the two faces meeting at the corner. With ``d_s`` the vector from the
cell center to the center of face ``s``, and the co-normals

    nu_a = R d_b,    nu_b = -R d_a,    R = [[0, 1], [-1, 0]],

the gradient is ``((u_a - p_k) nu_a + (u_b - p_k) nu_b) / T``, where ``T = d_a x d_b``
is the signed area of the parallelogram spanned by the two vectors. The outward flux
through sub-face ``s`` (half of the face) is then

    q_s = sum_j g[s, j] (p_k - u_j),    g[s, j] = lambda (N_s . K nu_j) / T,

with ``N_s`` the outward normal of the face scaled to the length of the sub-face.

The potentials of the sub-faces are eliminated by requiring flux continuity on
internal sub-faces and prescribed fluxes on Neumann sub-faces, while potentials on
Dirichlet sub-faces are known. The result is a relation ``q = T p + r`` between the
pressures of the cells of the region and the fluxes through all half-edges of the
region.

"""

from __future__ import annotations

import dataclasses
import enum
import logging
from typing import Any, Callable

import numpy as np

import porevel as pv
from porevel.numerics.fv.interaction_region import InteractionRegion

module_sections = ["numerics"]
logger = logging.getLogger(__name__)

ROTATION = np.array([[0, 1], [-1, 0]])
"""Rotation by 90 degrees clockwise, used to form co-normals."""

AREA_TOLERANCE = 1e-10
"""Smallest accepted parallelogram area relative to the squared sub-cell size."""

CONDITION_LIMIT = 1e12
"""Largest accepted condition number of the matrix of the local system."""


class RegionKind(enum.Enum):
    """Classification of interaction regions."""

    INTERIOR = "interior"
    """Closed ring of cells around an internal vertex."""
    BOUNDARY_FAN = "boundary_fan"
    """Two or more cells around a boundary vertex."""
    BOUNDARY_CELL = "boundary_cell"
    """A single cell with both sub-faces on the boundary."""


@dataclasses.dataclass(frozen=True, eq=False)
class RegionData:
    """Geometry and physics of an interaction region, in region numbering."""

    cell_centers: np.ndarray
    """``shape=(num_cells, 2)``."""
    permeability: np.ndarray
    """In-plane permeability, ``shape=(num_cells, 2, 2)``."""
    mobility: np.ndarray
    """Total mobility of each sub-cell, boundary adjusted, ``shape=(num_cells,)``."""
    face_centers: np.ndarray
    """``shape=(num_faces, 2)``."""
    normals: np.ndarray
    """Outward normals of the two sub-faces of each sub-cell, scaled to the length of
    the sub-face, ``shape=(num_cells, 2, 2)``. Axis 1 runs over the sub-faces."""
    is_dirichlet: np.ndarray
    """``shape=(num_faces,)``."""
    is_neumann: np.ndarray
    """``shape=(num_faces,)``."""
    dirichlet_values: np.ndarray
    """Boundary pressure, zero where not Dirichlet, ``shape=(num_faces,)``."""
    neumann_fluxes: np.ndarray
    """Outward volumetric flux through the sub-face, zero where not Neumann,
    ``shape=(num_faces,)``."""


@dataclasses.dataclass(frozen=True, eq=False)
class LocalTransmissibility:
    """Fluxes through the two half-edges of the home cell of a region.

    The fluxes are ``trans @ pressure[cells] + forcing``, outward from the home cell,
    row 0 for the home face and row 1 for its successor.
    """

    cells: np.ndarray
    trans: np.ndarray
    forcing: np.ndarray

    def fluxes(self, pressure: np.ndarray) -> np.ndarray:
        return self.trans @ pressure[self.cells] + self.forcing


@dataclasses.dataclass(frozen=True, eq=False)
class LocalSystem:
    """Solved local system of an interaction region.

    Row ``2 k + s`` of :attr:`flux_matrix` and :attr:`flux_forcing` gives the flux out
    of sub-cell ``k`` through its sub-face ``s``, see
    :attr:`~porevel.numerics.fv.interaction_region.InteractionRegion.sub_faces`.
    """

    region: InteractionRegion
    kind: RegionKind
    flux_matrix: np.ndarray
    """``shape=(2 * num_cells, num_cells)``."""
    flux_forcing: np.ndarray
    """``shape=(2 * num_cells,)``."""

    def transmissibility(self, home: int | None = None) -> LocalTransmissibility:
        """Transmissibility of the two half-edges of a sub-cell.

        Parameters:
            home: Position of the sub-cell. Defaults to the home of the region.

        """
        if home is None:
            home = self.region.home
        rows = slice(2 * home, 2 * home + 2)
        return LocalTransmissibility(
            cells=self.region.cells,
            trans=self.flux_matrix[rows],
            forcing=self.flux_forcing[rows],
        )

    def fluxes(self, pressure: np.ndarray) -> np.ndarray:
        """Fluxes through all half-edges of the region, see class documentation."""
        return self.flux_matrix @ pressure[self.region.cells] + self.flux_forcing


def classify(region: InteractionRegion) -> RegionKind:
    """Kind of an interaction region."""
    if region.closed:
        return RegionKind.INTERIOR
    if region.num_cells == 1:
        return RegionKind.BOUNDARY_CELL
    return RegionKind.BOUNDARY_FAN


def gather_region_data(
    sd: pv.Grid, region: InteractionRegion, parameters: dict[str, Any]
) -> RegionData:
    """Collect the geometry and parameters needed for the local system of a region.

    Parameters:
        sd: Grid with geometry computed.
        region: Interaction region.
        parameters: Parameters of the pressure equation, with all keys of
            :func:`~porevel.params.data.two_phase_defaults` present.

    Raises:
        ConfigurationError: If a boundary sub-face is neither Dirichlet nor Neumann.

    Returns:
        The region data.

    """
    cells = region.cells
    faces = region.faces
    bc: pv.BoundaryCondition = parameters["bc"]

    is_dirichlet = bc.is_dir[faces] & region.is_boundary
    is_neumann = bc.is_neu[faces] & region.is_boundary & ~is_dirichlet
    if np.any(region.is_boundary & ~(is_dirichlet | is_neumann)):
        raise pv.ConfigurationError(
            f"Boundary face without condition next to node {region.corner}"
        )

    # Each boundary sub-face belongs to exactly one sub-cell.
    sub_face_cell = np.zeros(region.num_faces, dtype=int)
    sub_face_cell[region.sub_faces[:, 1]] = np.arange(region.num_cells)
    sub_face_cell[region.sub_faces[:, 0]] = np.arange(region.num_cells)
    adjacent = cells[sub_face_cell]

    dirichlet_values = np.where(
        is_dirichlet, np.asarray(parameters["bc_values"])[faces], 0.0
    )

    density = np.asarray(parameters["density"])
    neumann = np.asarray(parameters["neumann_values"])
    volume_flux = (
        neumann[0, faces] / density[0, adjacent]
        + neumann[1, faces] / density[1, adjacent]
    )
    neumann_fluxes = np.where(is_neumann, volume_flux * sd.face_areas[faces] / 2, 0.0)

    mobility = np.asarray(parameters["mobility"], dtype=float)[cells].copy()
    saturation_bc = parameters["saturation_bc"]
    if saturation_bc is not None:
        # The later sub-face of a sub-cell takes precedence.
        for column in (0, 1):
            sub = region.sub_faces[:, column]
            hit = is_dirichlet[sub] & saturation_bc.is_dir[faces[sub]]
            if np.any(hit):
                mobility[hit] = pv.boundary_mobility(
                    parameters, faces[sub[hit]], cells[hit]
                )

    perm: pv.SecondOrderTensor = parameters["second_order_tensor"]
    normals = (
        0.5
        * region.signs[:, :, None]
        * sd.face_normals[:2, faces[region.sub_faces]].transpose(1, 2, 0)
    )

    return RegionData(
        cell_centers=sd.cell_centers[:2, cells].T,
        permeability=perm.values[:2, :2, cells].transpose(2, 0, 1),
        mobility=mobility,
        face_centers=sd.face_centers[:2, faces].T,
        normals=normals,
        is_dirichlet=is_dirichlet,
        is_neumann=is_neumann,
        dirichlet_values=dirichlet_values,
        neumann_fluxes=neumann_fluxes,
    )


def g_coefficients(region: InteractionRegion, data: RegionData) -> np.ndarray:
    """Interaction coefficients of the sub-cells of a region.

    Parameters:
        region: Interaction region.
        data: Geometry and parameters of the region.

    Raises:
        ConfigurationError: If a mobility is not positive, or if the cell center and
            the two face centers of a sub-cell are (close to) collinear.

    Returns:
        Array ``g`` with ``shape=(num_cells, 2, 2)``, where ``g[k, s, j]`` couples the
        flux through sub-face ``s`` of sub-cell ``k`` to the potential difference on
        sub-face ``j``.

    """
    if np.any(data.mobility <= 0):
        raise pv.ConfigurationError(
            f"Non-positive mobility in the cells around node {region.corner}"
        )
    d_a = data.face_centers[region.sub_faces[:, 0]] - data.cell_centers
    d_b = data.face_centers[region.sub_faces[:, 1]] - data.cell_centers

    area = d_a[:, 0] * d_b[:, 1] - d_a[:, 1] * d_b[:, 0]
    size = np.maximum(np.sum(d_a**2, axis=1), np.sum(d_b**2, axis=1))
    if np.any(np.abs(area) <= AREA_TOLERANCE * size):
        raise pv.ConfigurationError(
            f"Degenerate sub-cell geometry around node {region.corner}"
        )

    # Co-normals, stored column-wise: conormals[k, :, j].
    conormals = np.stack((d_b @ ROTATION.T, -(d_a @ ROTATION.T)), axis=2)
    k_conormals = np.einsum("kij,kjl->kil", data.permeability, conormals)
    g = np.einsum("ksi,kil->ksl", data.normals, k_conormals)
    return g * (data.mobility / area)[:, None, None]


def _flux_matrices(
    region: InteractionRegion, g: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Half-edge fluxes ``F p - G u`` and the continuity selector ``E``."""
    num_cells, num_faces = region.num_cells, region.num_faces
    rows = np.arange(2 * num_cells)

    direct = np.zeros((2 * num_cells, num_cells))
    direct[rows, np.repeat(np.arange(num_cells), 2)] = g.sum(axis=2).ravel()

    coupling = np.zeros((2 * num_cells, num_faces))
    for s in range(2):
        for j in range(2):
            np.add.at(
                coupling,
                (rows[s::2], region.sub_faces[:, j]),
                g[:, s, j],
            )

    selector = np.zeros((num_faces, 2 * num_cells))
    selector[region.sub_faces.ravel(), rows] = 1
    return direct, coupling, selector


def _eliminate(
    region: InteractionRegion, data: RegionData, g: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Eliminate the sub-face potentials that are not given by Dirichlet data."""
    direct, coupling, selector = _flux_matrices(region, g)
    free = ~data.is_dirichlet
    dirichlet_flux = coupling[:, data.is_dirichlet] @ data.dirichlet_values[
        data.is_dirichlet
    ]

    if not np.any(free):
        return direct, -dirichlet_flux

    # Flux continuity on internal sub-faces, prescribed flux on Neumann sub-faces.
    continuity = selector[free]
    matrix = continuity @ coupling[:, free]
    try:
        condition = np.linalg.cond(matrix)
    except np.linalg.LinAlgError as e:
        raise pv.ConfigurationError(
            f"Local system around node {region.corner} cannot be factorized"
        ) from e
    if not np.isfinite(condition) or condition > CONDITION_LIMIT:
        raise pv.ConfigurationError(
            f"Singular local system around node {region.corner} "
            f"(condition number {condition:.2e})"
        )

    rhs_pressure = continuity @ direct
    rhs_boundary = continuity @ dirichlet_flux + data.neumann_fluxes[free]
    solved = np.linalg.solve(matrix, np.column_stack((rhs_pressure, rhs_boundary)))

    flux_matrix = direct - coupling[:, free] @ solved[:, :-1]
    flux_forcing = coupling[:, free] @ solved[:, -1] - dirichlet_flux
    return flux_matrix, flux_forcing


def _prescribe_neumann(
    region: InteractionRegion,
    data: RegionData,
    flux_matrix: np.ndarray,
    flux_forcing: np.ndarray,
) -> None:
    """Use the prescribed flux on Neumann half-edges, instead of the eliminated one."""
    sub_faces = region.sub_faces.ravel()
    rows = np.where(data.is_neumann[sub_faces])[0]
    flux_matrix[rows] = 0
    flux_forcing[rows] = data.neumann_fluxes[sub_faces[rows]]


def _interior_system(
    region: InteractionRegion, data: RegionData
) -> tuple[np.ndarray, np.ndarray]:
    g = g_coefficients(region, data)
    return _eliminate(region, data, g)


def _boundary_fan_system(
    region: InteractionRegion, data: RegionData
) -> tuple[np.ndarray, np.ndarray]:
    g = g_coefficients(region, data)
    flux_matrix, flux_forcing = _eliminate(region, data, g)
    _prescribe_neumann(region, data, flux_matrix, flux_forcing)
    return flux_matrix, flux_forcing


def _check_pivot(region: InteractionRegion, pivot: float, other: float) -> None:
    # The potential on a Neumann sub-face is recovered by dividing by its own
    # coefficient.
    if abs(pivot) <= AREA_TOLERANCE * abs(other):
        raise pv.ConfigurationError(
            f"Singular boundary cell system around node {region.corner}"
        )


def _boundary_cell_system(
    region: InteractionRegion, data: RegionData
) -> tuple[np.ndarray, np.ndarray]:
    (g00, g01), (g10, g11) = g_coefficients(region, data)[0]
    u_a, u_b = data.dirichlet_values
    q_a, q_b = data.neumann_fluxes
    dir_a, dir_b = data.is_dirichlet

    if dir_a and dir_b:
        trans = np.array([g00 + g01, g10 + g11])
        forcing = np.array([-(g00 * u_a + g01 * u_b), -(g10 * u_a + g11 * u_b)])
    elif dir_b:
        # Neumann on the first face: the potential there follows from its flux.
        _check_pivot(region, g00, g11)
        t_b = g11 - g10 * g01 / g00
        trans = np.array([0.0, t_b])
        forcing = np.array([q_a, g10 * q_a / g00 - t_b * u_b])
    elif dir_a:
        _check_pivot(region, g11, g00)
        t_a = g00 - g01 * g10 / g11
        trans = np.array([t_a, 0.0])
        forcing = np.array([g01 * q_b / g11 - t_a * u_a, q_b])
    else:
        # Both fluxes are prescribed.
        trans = np.zeros(2)
        forcing = np.array([q_a, q_b])
    return trans[:, None], forcing


HANDLERS: dict[
    RegionKind,
    Callable[[InteractionRegion, RegionData], tuple[np.ndarray, np.ndarray]],
] = {
    RegionKind.INTERIOR: _interior_system,
    RegionKind.BOUNDARY_FAN: _boundary_fan_system,
    RegionKind.BOUNDARY_CELL: _boundary_cell_system,
}
"""Assembly and elimination of the local system, per region kind."""


def compute_local_system(
    sd: pv.Grid, region: InteractionRegion, parameters: dict[str, Any]
) -> LocalSystem:
    """Solve the local system of an interaction region.

    Parameters:
        sd: Grid with geometry computed.
        region: Interaction region.
        parameters: Parameters of the pressure equation, with all keys of
            :func:`~porevel.params.data.two_phase_defaults` present.

    Raises:
        ConfigurationError: If the local system is degenerate or singular.

    Returns:
        Flux relation for all half-edges of the region.

    """
    kind = classify(region)
    data = gather_region_data(sd, region, parameters)
    flux_matrix, flux_forcing = HANDLERS[kind](region, data)
    return LocalSystem(
        region=region, kind=kind, flux_matrix=flux_matrix, flux_forcing=flux_forcing
    )
