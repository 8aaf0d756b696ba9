"""Parameters of the two-phase pressure equation: permeability tensors, fluids,
relative permeability curves, boundary conditions and the data dictionary."""
