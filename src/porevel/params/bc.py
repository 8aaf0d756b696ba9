"""
Classes representing of boundary conditions.

The class identifies faces of a grid which have Dirichlet and Neumann type boundary
conditions. The same class is used for the pressure equation and for the saturation
conditions that modify the mobility on Dirichlet faces.
"""

from __future__ import annotations

from typing import Optional, Union

import numpy as np

import porevel as pv


class BoundaryCondition:
    """Class to store information on boundary conditions for problems of a single
    variable.

    The BCs are specified by face number, and can have type Dirichlet or Neumann. For
    details on default values etc. see constructor.

    Attributes:
        num_faces (int): Number of faces in the grid of the subdomain
        dim (int): Dimension of the boundary. One less than the dimension of
            the subdomain.
        bf (np.ndarray, int): Indices of the boundary faces of the grid.
        is_neu (np.ndarray boolean, size sd.num_faces): Element i is true if
            face i has been assigned a Neumann condition. Tacitly assumes that
            the face is on the boundary. Should be false for internal faces, as
            well as Dirichlet faces.
        is_dir (np.ndarray, boolean, size sd.num_faces): Element i is true if
            face i has been assigned a Dirichlet condition.
    """

    def __init__(
        self,
        sd: pv.Grid,
        faces: Optional[np.ndarray] = None,
        cond: Optional[Union[list[str], str]] = None,
    ):
        """Constructor for BoundaryCondition.

        The conditions are specified by face numbers. Faces that do not get an
        explicit condition will have Neumann conditions assigned.

        Parameters:
            sd (pv.Grid): Subdomain for which boundary conditions are set.
            faces (np.ndarray): Faces for which conditions are assigned.
            cond (list of str or str): Conditions on the faces, in the same order as
                used in faces. Should be as long as faces. The list elements
                should be one of "dir", "neu".

        Raises:
            ValueError if faces are a boolean array with size not matching the number
                of faces.
            ValueError if internal faces are marked
            ValueError if the numbers of boundary condition types and faces are not
                matching
            ValueError if another keyword is used as for the boundary condition type
                than "dir" or "neu"

        Example:
            # Assign Dirichlet conditions on the left side of a subdomain; implicit
            # Neumann conditions on the rest
            sd = CartGrid([2, 2])
            west_face = bc.face_on_side(sd, 'west')[0]
            bound_cond = BoundaryCondition(sd, faces=west_face, cond='dir')
        """

        self.num_faces: int = sd.num_faces
        self.dim: int = sd.dim - 1

        # Find boundary faces
        self.bf: np.ndarray = sd.get_boundary_faces()

        self.is_neu: np.ndarray = np.zeros(self.num_faces, dtype=bool)
        self.is_dir: np.ndarray = np.zeros(self.num_faces, dtype=bool)

        # By default, all faces are Neumann.
        self.is_neu[self.bf] = True

        if faces is not None:
            # Validate arguments
            assert cond is not None
            faces = np.atleast_1d(np.asarray(faces))
            if faces.dtype == bool:
                if faces.size != self.num_faces:
                    raise ValueError(
                        "When giving logical faces, the size of array must match "
                        "number of faces"
                    )
                faces = np.argwhere(faces).ravel()
            if not np.all(np.isin(faces, self.bf)):
                raise ValueError("Give boundary condition only on the boundary")
            if isinstance(cond, str):
                cond = [cond] * faces.size
            if faces.size != len(cond):
                raise ValueError("One BC per face")

            for ind in np.arange(faces.size):
                s = cond[ind]
                if s.lower() == "neu":
                    pass  # Neumann is already default
                elif s.lower() == "dir":
                    self.is_dir[faces[ind]] = True
                    self.is_neu[faces[ind]] = False
                else:
                    raise ValueError("Boundary should be Dirichlet or Neumann")

    def copy(self) -> BoundaryCondition:
        """
        Create a deep copy of the boundary condition.

        Returns:
            BoundaryCondition: A deep copy of self. All attributes will also be copied.

        """
        # We don't call the init since we don't have access to the grid.
        bc = BoundaryCondition.__new__(BoundaryCondition)
        bc.is_neu = self.is_neu.copy()
        bc.is_dir = self.is_dir.copy()
        bc.num_faces = self.num_faces
        bc.dim = self.dim
        bc.bf = self.bf.copy()
        return bc

    def __repr__(self) -> str:
        num_cond = self.is_neu.sum() + self.is_dir.sum()
        s = (
            f"Boundary condition for scalar problem in {self.dim + 1} dimensions\n"
            f"Grid has {self.num_faces} faces.\n"
            f"Conditions set for {num_cond} faces.\n"
            f"Number of faces with Dirichlet conditions: {self.is_dir.sum()} \n"
            f"Number of faces with Neumann conditions: {self.is_neu.sum()} \n"
        )

        bc_sum = self.is_neu.astype(int) + self.is_dir.astype(int)
        if np.any(bc_sum > 1):
            s += f"Conflicting boundary conditions set on {np.sum(bc_sum > 1)} faces.\n"

        not_bound = np.setdiff1d(np.arange(self.num_faces), self.bf)
        if np.any(self.is_dir[not_bound]):
            s += f"Dirichlet conditions set on {self.is_dir[not_bound].sum()}"
            s += " non-boundary faces.\n"
        if np.any(self.is_neu[not_bound]):
            s += f"Neumann conditions set on {self.is_neu[not_bound].sum()}"
            s += " non-boundary faces.\n"

        return s


def face_on_side(
    sd: pv.Grid, side: Union[list[str], str], tol: float = 1e-8
) -> list[np.ndarray]:
    """Find faces on specified sides of a subdomain.

    It is assumed that the grid forms a box in 2d.

    The faces are specified by one of two type of keywords: (xmin / west),
    (xmax / east), (ymin / south), (ymax / north).

    Parameters:
        sd (pv.Grid): Subdomain for which we want to find faces.
        side (str, or list of str): Sides for which we want to find the
            boundary faces.
        tol (float): Geometric tolerance for deciding whether a face
            lays on the boundary. Defaults to 1e-8.

    Returns:
        list of arrays: Outer list has one element per element in side (same
            ordering). Arrays contain global indices of faces laying on
            that side.

    Raises:
        ValueError if not supported keyword is used to identify a boundary part
    """
    if isinstance(side, str):
        side = [side]

    faces = []
    for s in side:
        s = s.lower().strip()
        if s == "west" or s == "xmin":
            coord, xm = 0, sd.nodes[0].min()
        elif s == "east" or s == "xmax":
            coord, xm = 0, sd.nodes[0].max()
        elif s == "south" or s == "ymin":
            coord, xm = 1, sd.nodes[1].min()
        elif s == "north" or s == "ymax":
            coord, xm = 1, sd.nodes[1].max()
        else:
            raise ValueError("Unknown face side")
        faces.append(np.where(np.abs(sd.face_centers[coord] - xm) < tol)[0])
    return faces
