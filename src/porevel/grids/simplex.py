"""Module containing classes for triangle grids.

.. rubric:: Acknowledgement

The implementation of structured grids is in practice a translation of the corresponding
functions found in the `Matlab Reservoir Simulation Toolbox (MRST)
<www.sintef.no/projectweb/mrst/>`_ developed by SINTEF ICT.

"""

from __future__ import annotations

from typing import Optional

import numpy as np
import scipy.sparse as sps
import scipy.spatial

from porevel.grids.grid import Grid


class TriangleGrid(Grid):
    """Class representation of a general triangular grid.

    If no triangulation is provided, Delaunay will be applied. The grid is tagged with
    the element kind ``"polygon"``, and the faces are oriented so that each cell walks
    counter-clockwise along the faces with positive sign in :attr:`cell_faces`.

    Example:

        >>> p = np.random.rand(2, 10)
        >>> tri = scipy.spatial.Delaunay(p.transpose()).simplices
        >>> g = TriangleGrid(p, tri.transpose())

    Parameters:
        p: ``shape=(2, num_nodes)``

            Cloud of point coordinates.
        tri: ``shape=(3, num_cells), default=None``

            Cell-node connections. If None, a Delaunay triangulation will be applied.
            Cells with clockwise node ordering are reordered.
        name: ``default=None``

            Name of the grid. If None, ``'TriangleGrid'`` will be assigned.

    """

    def __init__(
        self,
        p: np.ndarray,
        tri: Optional[np.ndarray] = None,
        name: Optional[str] = None,
    ) -> None:
        if tri is None:
            triangulation = scipy.spatial.Delaunay(p[:2].transpose())
            tri = triangulation.simplices.transpose()

        if name is None:
            name = "TriangleGrid"

        num_nodes = p.shape[1]

        # Add a zero z-coordinate.
        if p.shape[0] == 2:
            nodes = np.vstack((p, np.zeros(num_nodes)))
        else:
            nodes = p

        tri = self._counter_clockwise(nodes, np.array(tri, dtype=int))

        # Tabulate the nodes in [first, second, third] faces of each triangle in
        # counterclockwise order.
        cell_wise_face_nodes = np.hstack(
            (tri[[0, 1]], tri[[1, 2]], tri[[2, 0]])
        ).transpose()

        # Match the faces of neighboring cells. The first occurrence of a face sets
        # its orientation.
        _, face_node_mapping, cell_face_mapping = np.unique(
            np.sort(cell_wise_face_nodes, axis=1),
            axis=0,
            return_index=True,
            return_inverse=True,
        )
        cell_face_mapping = cell_face_mapping.ravel()
        face_nodes = cell_wise_face_nodes[face_node_mapping]

        # A cell traversing a face in its stored direction sees the normal pointing
        # outwards.
        cf_data = np.where(
            cell_wise_face_nodes[:, 0] == face_nodes[cell_face_mapping, 0], 1, -1
        )

        num_faces = face_nodes.shape[0]
        num_cells = tri.shape[1]

        num_nodes_per_face = 2
        indptr = np.arange(0, num_nodes_per_face * num_faces + 1, num_nodes_per_face)
        face_nodes = sps.csc_matrix(
            (np.ones(face_nodes.size, dtype=bool), face_nodes.ravel("C"), indptr),
            shape=(num_nodes, num_faces),
        )

        # The faces were stacked with the first face of all cells first. Reshape so
        # that the local face order of each cell follows its nodes.
        num_faces_per_cell = 3
        cell_face_indices = cell_face_mapping.reshape(
            num_faces_per_cell, num_cells
        ).ravel("F")
        cf_data = cf_data.reshape(num_faces_per_cell, num_cells).ravel("F")
        indptr = np.arange(0, num_faces_per_cell * num_cells + 1, num_faces_per_cell)
        cell_faces = sps.csc_matrix(
            (cf_data, cell_face_indices, indptr), shape=(num_faces, num_cells)
        )

        super().__init__(2, nodes, face_nodes, cell_faces, name)

    @staticmethod
    def _counter_clockwise(nodes: np.ndarray, tri: np.ndarray) -> np.ndarray:
        a = nodes[:2, tri[1]] - nodes[:2, tri[0]]
        b = nodes[:2, tri[2]] - nodes[:2, tri[0]]
        clockwise = a[0] * b[1] - a[1] * b[0] < 0
        tri[1:, clockwise] = tri[2:0:-1, clockwise]
        return tri


class StructuredTriangleGrid(TriangleGrid):
    """Class for structured triangular grids, composed of rectangles divided into two.

    Each rectangle is split along the diagonal from its lower left to its upper right
    corner, or along the other diagonal where ``flip`` is set. With a single diagonal
    direction, internal nodes are shared by six cells; flipping every second rectangle
    in a checkerboard pattern gives internal nodes shared by four and eight cells.

    Example:

        >>> nx = np.array([2, 3])
        >>> flip = np.array([False, True, True, False, False, True])
        >>> g = StructuredTriangleGrid(nx, np.ones(2), flip=flip)

    Parameters:
        nx: ``shape=(2,)``

            Number of cells in each direction of the underlying Cartesian grid.
        physdims: ``shape=(2,), default=None``

            Domain size. If None, ``nx`` is used, thus Cartesian cells are unit squares.
        flip: ``shape=(nx[0] * nx[1],), default=None``

            Rectangles, numbered row by row, that are split along the diagonal from
            upper left to lower right.

    Raises:
        ValueError: If ``nx``, ``physdims`` or ``flip`` have the wrong size.

    """

    def __init__(
        self,
        nx: np.ndarray,
        physdims: Optional[np.ndarray] = None,
        flip: Optional[np.ndarray] = None,
    ) -> None:
        nx = np.asarray(nx, dtype=int)
        if physdims is None:
            physdims = nx
        physdims = np.asarray(physdims)
        if nx.shape != (2,) or physdims.shape != (2,):
            raise ValueError("Structured triangle grid needs two-dimensional sizes")

        num_rectangles = nx[0] * nx[1]
        if flip is None:
            flip = np.zeros(num_rectangles, dtype=bool)
        flip = np.asarray(flip, dtype=bool)
        if flip.shape != (num_rectangles,):
            raise ValueError(f"Expected {num_rectangles} values for flip")

        x = np.linspace(0, physdims[0], nx[0] + 1)
        y = np.linspace(0, physdims[1], nx[1] + 1)

        # Node coordinates
        x_coord, y_coord = np.meshgrid(x, y)
        p = np.vstack((x_coord.ravel(order="C"), y_coord.ravel(order="C")))

        # Corners of the rectangles, numbered row by row.
        i, j = np.meshgrid(np.arange(nx[0]), np.arange(nx[1]))
        ind_1 = (j * (nx[0] + 1) + i).ravel()  # Lower left node
        ind_2 = ind_1 + 1  # Lower right node
        ind_4 = ind_1 + nx[0] + 1  # Upper left node
        ind_3 = ind_4 + 1  # Upper right node

        first = np.where(
            flip, np.vstack((ind_1, ind_2, ind_4)), np.vstack((ind_1, ind_2, ind_3))
        )
        second = np.where(
            flip, np.vstack((ind_2, ind_3, ind_4)), np.vstack((ind_1, ind_3, ind_4))
        )
        # The two triangles of a rectangle are consecutive cells.
        tri = np.stack((first, second), axis=2).reshape((3, -1))

        super().__init__(p, tri, name="StructuredTriangleGrid")
