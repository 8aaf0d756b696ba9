"""Exception classes specific to PoreVel."""


class ConfigurationError(Exception):
    """Custom exception class to alert the user that a velocity reconstruction cannot
    be carried out with the given grid and parameters.

    Such situations include for example:

    - an element kind without a registered successor rule,
    - faces of a cell that do not share a corner, or a broken ring of cells around
      a vertex,
    - degenerate geometry, i.e. a cell center lying on the line through the two
      face centers of an interaction region,
    - non-positive mobility, or a local system that is singular to working
      precision.

    The reconstruction pass is aborted when the error is raised; no partially
    assembled velocity field is stored.

    """
