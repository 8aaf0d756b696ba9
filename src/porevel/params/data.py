r"""Contains functions to initialize a dictionary for storing parameters associated
with a single grid, and the default parameters of the two-phase pressure equation.

The structure of the dictionary is the following:
```
outer_dictionary = {
    pv.PARAMETERS: {
        "flow": {
            # Parameters corresponding to the keyword "flow".
        },
    },
    pv.STATE: {
        "pressure": ...,  # Cell pressures from the global solve.
        "flow_velocity": ...,  # Velocity field reconstructed for keyword "flow".
    },
}
```
The keywords link parameters to discretization operators. For example, the operator
`reconstruction = pv.MpfaOVelocity(keyword="flow")` will access parameters under the
keyword "flow". For instance, the Dirichlet values are extracted from this dictionary
as `bc_values = outer_dictionary[pv.PARAMETERS]["flow"]["bc_values"]`.

For most instances, a convenient way to initialize the parameters is:
```
specified_parameters = {pm_1: val_1, ..., pm_n: val_n}
data = {}  # Or existing data dictionary.
data = pv.initialize_data(data, keyword, specified_parameters)
```
Parameters that are not specified take the values of :func:`two_phase_defaults`.

"""

from __future__ import annotations

import logging
from typing import Any, Optional

import numpy as np

import porevel as pv

module_sections = ["parameters"]
logger = logging.getLogger(__name__)


def initialize_data(
    data: dict,
    keyword: str,
    specified_parameters: Optional[dict] = None,
) -> dict:
    """Initialize or update a data dictionary for a single keyword.

    This ensures that the proper nested structure sub-dictionaries is created and
    updates the sub-dictionary corresponding to the passed `keyword` with the
    `specified_parameters`. It can be called multiple times on the same dictionary to
    update it incrementally.

    Parameters:
        data: Outer data dictionary, to which the parameters will be added. Can be empty
            if creating a new data dictionary. The same object will be returned from
            this function.
        keyword: String identifying the parameters.
        specified_parameters: A dictionary with specified parameters, defaults to empty
            dictionary.

    Returns:
        The modified dictionary, same object as passed in `data` parameter.
    """
    if not specified_parameters:
        specified_parameters = {}
    add_nonpresent_dictionary(data, pv.STATE)
    add_nonpresent_dictionary(data, pv.PARAMETERS)
    add_nonpresent_dictionary(data[pv.PARAMETERS], keyword)
    data[pv.PARAMETERS][keyword].update(specified_parameters)
    return data


def add_nonpresent_dictionary(dictionary: dict, key: str) -> None:
    """Check if key is in the dictionary, if not add it with an empty dictionary.

    Parameters:
        dictionary: Dictionary to be updated.
        key: Keyword to be added to the dictionary if missing.
    """
    if key not in dictionary:
        dictionary[key] = {}


def two_phase_defaults(sd: pv.Grid) -> dict[str, Any]:
    """Default parameters of the two-phase pressure equation on a grid.

    Unit permeability, mobility and densities, no sources, and homogeneous Neumann
    conditions on the whole boundary.

    Parameters:
        sd: Grid the parameters are defined on.

    Returns:
        Dictionary with one entry for each parameter read by the velocity
        reconstruction.

    """
    nc, nf = sd.num_cells, sd.num_faces
    return {
        "second_order_tensor": pv.SecondOrderTensor(np.ones(nc)),
        "mobility": np.ones(nc),
        "density": np.ones((2, nc)),
        "source": np.zeros((2, nc)),
        "bc": pv.BoundaryCondition(sd),
        "bc_values": np.zeros(nf),
        "neumann_values": np.zeros((2, nf)),
        "saturation_bc": None,
        "saturation_bc_values": np.zeros(nf),
        "saturation_type": "sw",
        "relative_permeability": pv.QuadraticRelativePermeability(),
        "fluids": (pv.UnitFluid(), pv.UnitFluid()),
        "temperature": None,
    }


def _viscosities(fluids, temperature) -> tuple[Any, Any]:
    wetting, nonwetting = fluids
    return (
        wetting.dynamic_viscosity(temperature),
        nonwetting.dynamic_viscosity(temperature),
    )


def total_mobility(
    sw: np.ndarray,
    relative_permeability: pv.RelativePermeability,
    fluids: tuple,
    temperature: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Total mobility ``krw(sw) / mu_w + krn(sw) / mu_n``.

    Parameters:
        sw: Wetting saturation.
        relative_permeability: Relative permeability curves.
        fluids: Wetting and non-wetting fluid.
        temperature: Temperature in Celsius, same shape as ``sw`` or None. If None,
            the reference temperature of the fluids is used.

    Returns:
        The total mobility, same shape as ``sw``.

    """
    mu_w, mu_n = _viscosities(fluids, temperature)
    return relative_permeability.krw(sw) / mu_w + relative_permeability.krn(sw) / mu_n


def boundary_mobility(
    parameters: dict[str, Any], faces: np.ndarray, cells: np.ndarray
) -> np.ndarray:
    """Total mobility evaluated with the saturation prescribed on boundary faces.

    The relative permeabilities are evaluated at the boundary saturation, the
    viscosities at the temperature of the cell next to the face.

    Parameters:
        parameters: Parameter dictionary of the pressure equation, see
            :func:`two_phase_defaults` for the keys.
        faces: Boundary faces with a Dirichlet saturation.
        cells: For each face, the cell next to it.

    Raises:
        ValueError: If the saturation type is neither ``"sw"`` nor ``"sn"``.

    Returns:
        The mobility for each face.

    """
    s = np.asarray(parameters["saturation_bc_values"])[faces]
    saturation_type = parameters["saturation_type"].lower()
    if saturation_type == "sw":
        sw = s
    elif saturation_type == "sn":
        sw = 1 - s
    else:
        raise ValueError(f"Unknown saturation type {saturation_type}")

    temperature = parameters["temperature"]
    if temperature is not None:
        temperature = np.asarray(temperature)[cells]
    return total_mobility(
        sw, parameters["relative_permeability"], parameters["fluids"], temperature
    )
