"""The subpackage ``grids`` contains the classes and functions necessary to create a
geometrical representation of a two-dimensional domain.

Next to the base class representing a single grid, structured tensor, Cartesian and
triangle grids are provided, together with a utility to perturb node coordinates.

"""
