"""Utility functions for manipulation of grid geometry."""
from __future__ import annotations

from typing import Optional

import numpy as np

import porevel as pv

module_sections = ["grids"]


@pv.time_logger(sections=module_sections)
def perturb_nodes(
    sd: pv.Grid, rate: float, dx: float, seed: Optional[int] = None
) -> pv.Grid:
    """Randomly move the internal nodes of a grid, and recompute its geometry.

    Nodes on the domain boundary are kept fixed, so that the domain is unchanged. The
    perturbation of each coordinate is drawn uniformly from
    ``[-rate * dx / 2, rate * dx / 2]``; with ``rate < 1`` cells of a grid with
    characteristic size ``dx`` stay convex.

    Parameters:
        sd: Grid to be perturbed. Modified in place.
        rate: Relative size of the perturbation.
        dx: Characteristic cell size.
        seed: Seed of the random number generator.

    Returns:
        The perturbed grid, same object as ``sd``.

    """
    rng = np.random.default_rng(seed)
    internal = np.logical_not(sd.tags["domain_boundary_nodes"])
    num_internal = internal.sum()
    rand = np.vstack((rng.random((2, num_internal)), np.zeros(num_internal)))
    sd.nodes[:, internal] += rate * dx * (rand - 0.5)
    # Ensure there are no perturbations in the z-coordinate
    sd.nodes[2, :] = 0
    sd.history.append("Perturb nodes")
    sd.compute_geometry()
    return sd
