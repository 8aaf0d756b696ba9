"""Check of local mass conservation of a reconstructed velocity field."""

from __future__ import annotations

import dataclasses
import logging
from typing import Optional

import numpy as np

import porevel as pv

module_sections = ["numerics", "diagnostics"]
logger = logging.getLogger(__name__)


def default_tolerance() -> float:
    """Relative imbalance tolerance, from section ``[mpfao]`` of porevel.cfg."""
    section = pv.config.get("mpfao", {})
    return float(section.get("conservation_tolerance", 1e-8))


@dataclasses.dataclass(frozen=True, eq=False)
class ConservationReport:
    """Per-cell mass balance of a velocity field."""

    residuals: np.ndarray
    """Outward flux minus volumetric source, ``shape=(num_cells,)``."""
    relative_imbalance: np.ndarray
    """Absolute residual divided by the sum of absolute fluxes and absolute source.
    Zero for cells without any flow."""
    tolerance: float

    @property
    def flagged_cells(self) -> np.ndarray:
        """Cells whose relative imbalance exceeds the tolerance."""
        return np.where(self.relative_imbalance > self.tolerance)[0]

    @property
    def is_conservative(self) -> bool:
        return self.flagged_cells.size == 0


@pv.time_logger(sections=module_sections)
def audit_conservation(
    sd: pv.Grid,
    velocity_field: pv.VelocityField,
    source: Optional[np.ndarray] = None,
    tolerance: Optional[float] = None,
) -> ConservationReport:
    """Compare the net outflow of each cell with its source.

    Imbalances above the tolerance are logged as warnings. The velocity field is not
    changed.

    Parameters:
        sd: Grid with geometry computed.
        velocity_field: Reconstructed velocities.
        source: Volumetric source rate per unit volume, ``shape=(num_cells,)``.
            Defaults to zero.
        tolerance: Relative imbalance tolerance. Defaults to
            :func:`default_tolerance`.

    Raises:
        ValueError: If the grid is not two-dimensional.

    Returns:
        The per-cell balance.

    """
    if sd.dim != 2:
        raise ValueError("Conservation check is only available for 2d grids")
    if tolerance is None:
        tolerance = default_tolerance()
    if source is None:
        source = np.zeros(sd.num_cells)

    cellno = pv.matrix_operations.rldecode(
        np.arange(sd.num_cells), np.diff(sd.cell_faces.indptr)
    )
    fluxes = velocity_field.normal_fluxes()
    outflow = np.bincount(cellno, weights=fluxes, minlength=sd.num_cells)
    magnitude = np.bincount(cellno, weights=np.abs(fluxes), minlength=sd.num_cells)

    cell_source = source * sd.cell_volumes
    residuals = outflow - cell_source
    scale = magnitude + np.abs(cell_source)
    relative = np.zeros(sd.num_cells)
    nonzero = scale > 0
    relative[nonzero] = np.abs(residuals[nonzero]) / scale[nonzero]

    report = ConservationReport(
        residuals=residuals, relative_imbalance=relative, tolerance=tolerance
    )
    for c in report.flagged_cells:
        logger.warning(
            "Mass balance violated in cell %i: relative imbalance %.3e", c, relative[c]
        )
    return report
