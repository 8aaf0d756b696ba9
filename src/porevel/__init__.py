"""   PoreVel.

Root directory for the PoreVel package. Contains the following sub-packages:

grids: Two-dimensional grid class and structured constructors.

numerics: Reconstruction of face velocities with the MPFA-O method.

params: Permeability, fluids, relative permeability, boundary conditions.

utils: Keywords, logging, error classes, array manipulation.

applications: Helpers shared by the test suite.


isort:skip_file

"""

import os
from pathlib import Path
import configparser


__version__ = "0.1.0"

# Try to read the config file from the directory where python process was launched
try:
    cwd = Path(os.getcwd())
    pth = cwd / Path("porevel.cfg")
    cfg = configparser.ConfigParser()
    cfg.read(pth)
    config = dict(cfg)
except configparser.Error:
    # the assumption is that no configurations are given
    config = {}

# ------------------------------------
# Simplified namespaces. The rule of thumb is that classes and modules that a
# user can be exposed to should have a shortcut here.

from porevel.utils.common_constants import *
from porevel.utils.error import ConfigurationError
from porevel.utils.logging import time_logger
from porevel.utils import matrix_operations

# Grids
from porevel.grids.grid import Grid
from porevel.grids.structured import TensorGrid, CartGrid
from porevel.grids.simplex import TriangleGrid, StructuredTriangleGrid
from porevel.grids.grid_utils import perturb_nodes

# Parameters
from porevel.params.bc import BoundaryCondition, face_on_side
from porevel.params.tensor import SecondOrderTensor
from porevel.params.fluid import UnitFluid, Water, Oil
from porevel.params.relative_permeability import (
    RelativePermeability,
    LinearRelativePermeability,
    QuadraticRelativePermeability,
    BrooksCoreyRelativePermeability,
)
from porevel.params.data import (
    initialize_data,
    two_phase_defaults,
    total_mobility,
    boundary_mobility,
)

# Discretization and reconstruction
from porevel.numerics.fv.interaction_region import (
    InteractionRegion,
    InteractionRegionLocator,
    next_face,
    corner,
)
from porevel.numerics.fv.local_transmissibility import (
    RegionKind,
    RegionData,
    LocalSystem,
    LocalTransmissibility,
    compute_local_system,
)
from porevel.numerics.fv.conservation import ConservationReport, audit_conservation
from porevel.numerics.fv.mpfao_velocity import (
    FaceFluxAccumulator,
    VelocityField,
    MpfaOVelocity,
)
