""" Module containing classes for structured grids.

Acknowledgements:
    The implementation of structured grids is in practice a translation of the
    corresponding functions found in the Matlab Reservoir Simulation Toolbox
    (MRST) developed by SINTEF ICT, see www.sintef.no/projectweb/mrst/

"""
from __future__ import annotations

from typing import Optional

import numpy as np
import scipy.sparse as sps

from porevel.grids.grid import Grid


class TensorGrid(Grid):
    """Representation of grid formed by a tensor product of line point
    distributions.

    The faces of each cell are stored in the order west, east, south, north, and the
    grid is tagged with the element kind ``"cartesian"``. For information on
    attributes and methods, see the documentation of the parent Grid class.

    """

    def __init__(
        self, x: np.ndarray, y: np.ndarray, name: Optional[str] = None
    ) -> None:
        """
        Constructor for 2D tensor grid.

        Parameters:
            x: Node coordinates in x-direction.
            y: Node coordinates in y-direction.
            name: Name of grid, passed to super constructor.

        """
        if name is None:
            name = "TensorGrid"

        nodes, face_nodes, cell_faces = self._create_2d_grid(
            np.asarray(x, dtype=float), np.asarray(y, dtype=float)
        )
        super().__init__(
            2, nodes, face_nodes, cell_faces, name, element_kind="cartesian"
        )

    def _create_2d_grid(
        self, nodes_x: np.ndarray, nodes_y: np.ndarray
    ) -> tuple[np.ndarray, sps.csc_matrix, sps.csc_matrix]:
        """
        Compute grid topology for 2D grids.

        This is really a part of the constructor, but put it here to improve
        readability.

        The nodes of the faces are ordered so that the grid is consistently oriented:
        x-faces run from the lower to the upper node, y-faces from the right to the
        left node.

        """

        num_x = nodes_x.size - 1
        num_y = nodes_y.size - 1

        num_cells = num_x * num_y
        num_nodes = (num_x + 1) * (num_y + 1)
        num_faces_x = (num_x + 1) * num_y
        num_faces_y = num_x * (num_y + 1)
        num_faces = num_faces_x + num_faces_y

        x_coord, y_coord = np.meshgrid(nodes_x, nodes_y)

        nodes = np.vstack(
            (x_coord.flatten(), y_coord.flatten(), np.zeros(x_coord.size))
        )

        # Face nodes
        node_array = np.arange(0, num_nodes).reshape(num_y + 1, num_x + 1)
        fn1 = node_array[:-1, ::].ravel(order="C")
        fn2 = node_array[1:, ::].ravel(order="C")
        face_nodes_x = np.vstack((fn1, fn2)).ravel(order="F")

        fn1 = node_array[::, :-1].ravel(order="C")
        fn2 = node_array[::, 1:].ravel(order="C")
        face_nodes_y = np.vstack((fn2, fn1)).ravel(order="F")

        num_nodes_per_face = 2
        indptr = np.append(
            np.arange(0, num_nodes_per_face * num_faces, num_nodes_per_face),
            num_nodes_per_face * num_faces,
        )
        face_nodes = np.hstack((face_nodes_x, face_nodes_y))
        data = np.ones(face_nodes.shape, dtype=bool)
        face_nodes = sps.csc_matrix(
            (data, face_nodes, indptr), shape=(num_nodes, num_faces)
        )

        # Cell faces
        face_x = np.arange(num_faces_x).reshape(num_y, num_x + 1)
        face_y = num_faces_x + np.arange(num_faces_y).reshape(num_y + 1, num_x)

        face_west = face_x[::, :-1].ravel(order="C")
        face_east = face_x[::, 1:].ravel(order="C")
        face_south = face_y[:-1, ::].ravel(order="C")
        face_north = face_y[1:, ::].ravel(order="C")

        cell_faces = np.vstack((face_west, face_east, face_south, face_north)).ravel(
            order="F"
        )

        num_faces_per_cell = 4
        indptr = np.append(
            np.arange(0, num_faces_per_cell * num_cells, num_faces_per_cell),
            num_faces_per_cell * num_cells,
        )
        data = np.vstack(
            (
                -np.ones(face_west.size),
                np.ones(face_east.size),
                -np.ones(face_south.size),
                np.ones(face_north.size),
            )
        ).ravel(order="F")
        cell_faces = sps.csc_matrix(
            (data, cell_faces, indptr), shape=(num_faces, num_cells)
        )
        return nodes, face_nodes, cell_faces


class CartGrid(TensorGrid):
    """Representation of a 2D Cartesian grid.

    For information on attributes and methods, see the documentation of the
    parent Grid class.

    """

    def __init__(self, nx: np.ndarray, physdims: Optional[np.ndarray] = None) -> None:
        """
        Constructor for Cartesian grid.

        Parameters:
            nx: Number of cells in each direction. Should be of length 2.
            physdims: Physical dimensions in each direction. Defaults to same as nx,
                that is, cells of unit size.

        Raises:
            ValueError: If nx or physdims are not of length 2.

        """
        if physdims is None:
            physdims = nx

        nx = np.asarray(nx)
        physdims = np.asarray(physdims)
        if nx.shape != (2,) or physdims.shape != (2,):
            raise ValueError("Cartesian grid only implemented in two dimensions")

        nodes_x = np.linspace(0, physdims[0], nx[0] + 1)
        nodes_y = np.linspace(0, physdims[1], nx[1] + 1)
        super().__init__(nodes_x, nodes_y, name="CartGrid")
