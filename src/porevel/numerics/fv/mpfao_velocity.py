"""Reconstruction of face velocities from a cell pressure field with the MPFA-O method.

The reconstruction visits every face of every cell as the home face of the
interaction region around the corner between the face and its successor. The local
system of the region gives the fluxes through the two half-edges of the home cell
touching the corner, which are added to the velocities of the two faces. After the
sweep, every face of a cell has received one contribution per corner, that is, two.

Example:
    >>> sd = pv.CartGrid([2, 2])
    >>> sd.compute_geometry()
    >>> data = pv.initialize_data({}, "flow", {"mobility": np.ones(4)})
    >>> data[pv.STATE]["pressure"] = np.array([3.0, 2.0, 1.0, 0.0])
    >>> field = pv.MpfaOVelocity("flow").compute(sd, data)
    >>> field.velocity(0, 1)
    array([1., 0., 0.])

"""

from __future__ import annotations

import logging
from typing import Any, Optional

import numpy as np

import porevel as pv
from porevel.numerics.fv.interaction_region import InteractionRegionLocator
from porevel.numerics.fv.local_transmissibility import (
    LocalSystem,
    compute_local_system,
)

module_sections = ["numerics"]
logger = logging.getLogger(__name__)


class FaceFluxAccumulator:
    """Velocity vectors of the half-faces of a grid.

    There is one slot per (cell, local face) pair, at the position of the pair in the
    storage of ``sd.cell_faces``. Slots are only ever added to. Each slot is written
    twice during a sweep, once for each corner of the face; the two writes are made
    while visiting the owning cell as home cell, never from its neighbor. The
    neighbor holds its own slot for the same physical face.

    Parameters:
        sd: Grid the velocities are defined on.

    """

    EXPECTED_TOUCHES = 2

    def __init__(self, sd: pv.Grid) -> None:
        self._indptr = sd.cell_faces.indptr
        self.values = np.zeros((3, sd.num_half_faces))
        """Velocity vectors, ``shape=(3, num_half_faces)``."""
        self.touched = np.zeros(sd.num_half_faces, dtype=int)
        """Number of contributions added to each slot."""

    def index(self, cell: int, local_index: int) -> int:
        return int(self._indptr[cell] + local_index)

    def add(self, cell: int, local_index: int, vector: np.ndarray) -> None:
        ind = self.index(cell, local_index)
        self.values[:, ind] += vector
        self.touched[ind] += 1

    def check_complete(self) -> None:
        """Verify that every slot received one contribution per corner.

        Raises:
            ConfigurationError: If some slot was missed or written too often.

        """
        wrong = np.where(self.touched != self.EXPECTED_TOUCHES)[0]
        if wrong.size > 0:
            raise pv.ConfigurationError(
                f"{wrong.size} half-faces were not covered by exactly "
                f"{self.EXPECTED_TOUCHES} interaction regions"
            )


class VelocityField:
    """Face velocities of a grid, indexed by cell and local face index.

    The velocity stored for a half-face is the unit face normal times the flux
    density through the face; both cells next to a face hold the same vector.

    Parameters:
        sd: Grid with geometry computed.
        velocities: Velocity vectors, ``shape=(3, num_half_faces)``.
        report: Result of the conservation check, if performed.

    """

    def __init__(
        self,
        sd: pv.Grid,
        velocities: np.ndarray,
        report: Optional[pv.ConservationReport] = None,
    ) -> None:
        self.sd = sd
        self.velocities = velocities
        self.report = report

        faces = sd.cell_faces.indices
        self._outer_unit_normals = (
            sd.face_normals[:, faces] / sd.face_areas[faces] * sd.cell_faces.data
        )

    def _index(self, cell: int, local_index: int) -> int:
        indptr = self.sd.cell_faces.indptr
        num_faces = indptr[cell + 1] - indptr[cell]
        if not 0 <= local_index < num_faces:
            raise IndexError(f"Cell {cell} has no local face {local_index}")
        return self.sd.half_face_index(cell, local_index)

    def velocity(self, cell: int, local_index: int) -> np.ndarray:
        """Velocity vector of a face of a cell, ``shape=(3,)``."""
        return self.velocities[:, self._index(cell, local_index)].copy()

    def normal_flux(self, cell: int, local_index: int) -> float:
        """Volumetric flux out of a cell through a face."""
        ind = self._index(cell, local_index)
        face = self.sd.cell_faces.indices[ind]
        return float(
            self.velocities[:, ind] @ self._outer_unit_normals[:, ind]
        ) * float(self.sd.face_areas[face])

    def potential(self, phase: str, cell: int, local_index: int) -> float:
        """Projection of the velocity on the outer unit normal of a face.

        The total velocity drives both phases, so the potential is the same for the
        wetting and non-wetting phase; the phase split is left to the transport
        discretization.

        Parameters:
            phase: ``"wetting"`` or ``"nonwetting"``.
            cell: Index of the cell.
            local_index: Local index of the face in the cell.

        Raises:
            ValueError: If the phase is unknown.

        """
        if phase not in pv.PHASES:
            raise ValueError(f"Unknown phase {phase}")
        ind = self._index(cell, local_index)
        return float(self.velocities[:, ind] @ self._outer_unit_normals[:, ind])

    def normal_fluxes(self) -> np.ndarray:
        """Outward fluxes of all half-faces, ``shape=(num_half_faces,)``."""
        faces = self.sd.cell_faces.indices
        return (
            np.sum(self.velocities * self._outer_unit_normals, axis=0)
            * self.sd.face_areas[faces]
        )

    def face_fluxes(self) -> np.ndarray:
        """Fluxes in the direction of the face normals, ``shape=(num_faces,)``.

        Internal faces get the average of the values seen from the two sides.
        """
        faces = self.sd.cell_faces.indices
        signed = self.normal_fluxes() * self.sd.cell_faces.data
        total = np.bincount(faces, weights=signed, minlength=self.sd.num_faces)
        count = np.bincount(faces, minlength=self.sd.num_faces)
        return total / np.maximum(count, 1)


class MpfaOVelocity:
    """Velocity reconstruction for the two-phase pressure equation.

    Parameters are read from ``data[pv.PARAMETERS][keyword]``, see
    :func:`~porevel.params.data.two_phase_defaults` for the keys and their defaults.
    The pressure is read from ``data[pv.STATE]["pressure"]``.

    Parameters:
        keyword: Keyword of the parameters. Defaults to ``"flow"``.

    """

    def __init__(self, keyword: str = "flow") -> None:
        self.keyword = keyword
        self.velocity_key = keyword + "_velocity"
        """Key of the velocity field in ``data[pv.STATE]``."""
        self.pressure_key = "pressure"

    def __repr__(self) -> str:
        return f"MPFA-O velocity reconstruction with keyword {self.keyword}"

    def parameters(self, sd: pv.Grid, data: dict) -> dict[str, Any]:
        """Parameters of the keyword, completed with default values.

        Raises:
            ValueError: If a parameter array has the wrong shape.

        """
        parameters = pv.two_phase_defaults(sd)
        parameters.update(data.get(pv.PARAMETERS, {}).get(self.keyword, {}))

        nc, nf = sd.num_cells, sd.num_faces
        expected = {
            "mobility": (nc,),
            "density": (2, nc),
            "source": (2, nc),
            "bc_values": (nf,),
            "neumann_values": (2, nf),
            "saturation_bc_values": (nf,),
        }
        for key, shape in expected.items():
            parameters[key] = np.asarray(parameters[key], dtype=float)
            if parameters[key].shape != shape:
                raise ValueError(
                    f"Parameter {key} has shape {parameters[key].shape}, "
                    f"expected {shape}"
                )
        return parameters

    @pv.time_logger(sections=module_sections)
    def compute(self, sd: pv.Grid, data: dict) -> VelocityField:
        """Reconstruct the face velocities from the cell pressures.

        The velocity field is stored in ``data[pv.STATE][self.velocity_key]`` and
        returned. A conservation check is run on the result, imbalances are logged.

        Parameters:
            sd: Grid with geometry computed.
            data: Data dictionary with parameters and pressure.

        Raises:
            ConfigurationError: If an interaction region cannot be formed or its local
                system is singular. Nothing is stored in this case.
            ValueError: If the pressure or a parameter has the wrong shape.

        Returns:
            The velocity field.

        """
        parameters = self.parameters(sd, data)
        pressure = np.asarray(data[pv.STATE][self.pressure_key], dtype=float)
        if pressure.shape != (sd.num_cells,):
            raise ValueError(
                f"Pressure has shape {pressure.shape}, expected ({sd.num_cells},)"
            )

        accumulator = self.sweep(sd, parameters, pressure)

        field = VelocityField(sd, accumulator.values)
        density = parameters["density"]
        source = parameters["source"]
        volume_source = source[0] / density[0] + source[1] / density[1]
        field.report = pv.audit_conservation(sd, field, volume_source)

        data[pv.STATE][self.velocity_key] = field
        return field

    def sweep(
        self, sd: pv.Grid, parameters: dict[str, Any], pressure: np.ndarray
    ) -> FaceFluxAccumulator:
        """Accumulate the half-edge fluxes of all cells.

        Parameters:
            sd: Grid with geometry computed.
            parameters: Complete parameters, see :meth:`parameters`.
            pressure: Cell pressures.

        Returns:
            The accumulated velocities.

        """
        locator = InteractionRegionLocator(sd)
        accumulator = FaceFluxAccumulator(sd)
        unit_normals = sd.face_normals / sd.face_areas

        systems: dict[int, LocalSystem] = {}
        for c in range(sd.num_cells):
            faces, signs = sd.faces_of_cell(c)
            for i in range(faces.size):
                region = locator.locate(c, i)
                system = systems.get(region.corner)
                if system is None:
                    system = compute_local_system(sd, region, parameters)
                    systems[region.corner] = system

                fluxes = system.transmissibility(region.home).fluxes(pressure)
                for local, flux in zip(region.local_indices[region.home], fluxes):
                    face = faces[local]
                    velocity = flux / sd.face_areas[face] * unit_normals[:, face]
                    accumulator.add(c, local, signs[local] * velocity)

        accumulator.check_complete()
        logger.debug(
            "Reconstructed velocities on %i cells from %i interaction regions",
            sd.num_cells,
            len(systems),
        )
        return accumulator
