"""Module containing the parent class for all grids.

See documentation of class :class:`Grid` for further details.

.. rubric:: Acknowledgements
    The data structure for the grid is inspired by that used in the
    `Matlab Reservoir Simulation Toolbox (MRST) <www.sintef.no/projectweb/mrst/>`_
    developed by SINTEF ICT. The geometry computation is to a large degree a
    translation of the corresponding function in MRST as it was defined around 2016.

"""

from __future__ import annotations

import copy
import logging
import warnings
from itertools import count
from typing import Any, Optional, Union

import numpy as np
from scipy import sparse as sps

import porevel as pv
from porevel.utils.matrix_operations import (
    slice_indices,
    sparse_array_to_row_col_data,
)

module_sections = ["grids", "geometry"]
logger = logging.getLogger(__name__)


class Grid:
    """Parent class for all grids.

    The grid stores topological information, as well as geometric information. Geometric
    information requires calling :meth:`compute_geometry` to be initialized.

    Only two-dimensional grids embedded in the xy-plane are supported. The nodes are
    nevertheless stored with three coordinates, the third being zero.

    Parameters:
        dim: Grid dimension. Must be 2.
        nodes: ``shape=(3, num_nodes)``

            Node coordinates.
        face_nodes: ``shape=(num_nodes, num_faces)``

            A map from faces to respective nodes spanning the face.
        cell_faces: ``shape=(num_faces, num_cells)``

            A map from cells to faces bordering the respective cell.
        name: Name of grid.
        element_kind: ``default="polygon"``

            Topology family of the cells, used to pick the successor of a face when
            walking around a cell. See
            :mod:`porevel.numerics.fv.interaction_region` for the registered kinds.
        history: ``default=None``

            Information on the formation of the grid.

    """

    _counter = count(0)
    """Counter of instantiated grids. See :meth:`__new__` and :meth:`id`."""
    __id: int
    """Name-mangled reference to assigned ID."""

    def __new__(cls, *args, **kwargs) -> Grid:
        """Make object and set ID by forwarding :attr:`_counter`."""

        obj = object.__new__(cls)
        obj.__id = next(cls._counter)
        return obj

    def __init__(
        self,
        dim: int,
        nodes: np.ndarray,
        face_nodes: sps.csc_matrix,
        cell_faces: sps.csc_matrix,
        name: str,
        element_kind: str = "polygon",
        history: Optional[Union[str, list[str]]] = None,
    ) -> None:
        if dim != 2:
            raise ValueError("Only two-dimensional grids are supported.")

        self.dim: int = dim
        """Grid dimension."""

        self.nodes: np.ndarray = nodes
        """An array with ``shape=(3, num_nodes)`` containing node coordinates
        column-wise."""

        # Force topological information to be stored as integers.
        cell_faces.data = cell_faces.data.astype(int)
        face_nodes.data = face_nodes.data.astype(int)

        self.cell_faces: sps.csc_matrix = cell_faces
        """An array with ``shape=(num_faces, num_cells)`` representing the map from
        cells to faces bordering respective cell.

        Matrix elements have value +-1, where + corresponds to the face normal vector
        being outwards.

        The storage order of the faces of a cell,
        ``cell_faces.indices[cell_faces.indptr[c]:cell_faces.indptr[c+1]]``, defines the
        local face numbering of cell ``c``. The velocity field is indexed by it.

        """
        self.face_nodes: sps.csc_matrix = face_nodes
        """An array with ``shape=(num_nodes, num_faces)`` representing the map from
        faces to nodes spanning respective face.

        Note:
            ``face_nodes.indices[face_nodes.indptr[i]:face_nodes.indptr[i+1]]``
            are the start and end node of face i. The orientation should be such that
            the start node comes first when walking counter-clockwise around the cell
            with ``cell_faces[i, :] == 1``. Operations on the face_nodes matrix (such
            as converting it to a csr-matrix) may change the ordering of the nodes,
            which will break :meth:`compute_geometry` and the interaction regions.

        """

        self.name: str = name
        """Name assigned to this grid."""

        self.element_kind: str = element_kind
        """Topology family of the cells."""

        self.history: list[str]
        """Information on the formation of the grid, such as the
        constructor, computations of geometry etc.

        """
        if history is None:
            self.history = []
        elif isinstance(history, list):
            self.history = history
        else:  # history is str
            self.history = [history]

        # Infer bookkeeping from size of parameters
        self.num_nodes: int = nodes.shape[1]
        """Number of nodes in the grid."""
        self.num_faces: int = face_nodes.shape[1]
        """Number of faces in the grid."""
        self.num_cells: int = cell_faces.shape[1]
        """Number of cells in the grid."""

        self.tags: dict[str, Any] = {}
        """Tags allow to mark subdomains of interest. The default tags mark faces and
        nodes on the domain boundary."""
        self.update_boundary_face_tag()
        self.update_boundary_node_tag()

        # NOTE: These attributes are defined in compute_geometry.
        self.face_areas: np.ndarray
        """Areas (lengths) of all faces ``(shape=(num_faces,))``.
        Available after calling :meth:`~compute_geometry`.

        """
        self.face_centers: np.ndarray
        """Centers of all faces. ``(shape=(3, num_faces))``.
        Available after calling :meth:`~compute_geometry`.

        """
        self.face_normals: np.ndarray
        """An array containing column-wise normal vectors of all faces with
        ``shape=(3, num_faces)``. The length of a normal vector equals the face area.

        See also :attr:`cell_faces`.

        Available after calling :meth:`compute_geometry`.

        """
        self.cell_centers: np.ndarray
        """An array containing column-wise the centers of all cells with
        ``shape=(3, num_cells)``.

        Available after calling :meth:`~compute_geometry`.

        """
        self.cell_volumes: np.ndarray
        """An array containing the volumes (areas) per cell with
        ``shape=(num_cells,)``.

        Available after calling :meth:`~compute_geometry`.

        """

    @property
    def id(self) -> int:
        """Grid ID.

        The attribute is set in :meth:`__new__`.
        This avoids calls to ``super().__init__`` in child classes.

        """
        return self.__id

    def copy(self) -> Grid:
        """Create a new instance with some attributes deep-copied from the grid.

        Returns:
            A deep copy of ``self``. Some predefined attributes are also copied.

        """
        # Instantiating a new object gives it a unique id (see __new__)
        h = Grid(
            self.dim,
            self.nodes.copy(),
            self.face_nodes.copy(),
            self.cell_faces.copy(),
            name=self.name,
            element_kind=self.element_kind,
            history=list(self.history),
        )
        copy_attributes = [
            "cell_volumes",
            "cell_centers",
            "face_centers",
            "face_normals",
            "face_areas",
            "tags",
        ]
        for attr in copy_attributes:
            if hasattr(self, attr):
                setattr(h, attr, copy.deepcopy(getattr(self, attr)))

        return h

    def __repr__(self) -> str:
        """Returns a string representation of the grid including topological
        information."""
        s = f"Grid with name {self.name} and id {self.id}" + "\n"
        s += "Grid history: " + ", ".join(self.history) + "\n"
        s += "Element kind " + self.element_kind + "\n"
        s += "Number of cells " + str(self.num_cells) + "\n"
        s += "Number of faces " + str(self.num_faces) + "\n"
        s += "Number of nodes " + str(self.num_nodes) + "\n"
        s += "Dimension " + str(self.dim)
        return s

    def __str__(self) -> str:
        """Returns a simplified string representation including the given name and some
        topological information."""
        if "CartGrid" in self.name:
            s = "Cartesian grid in " + str(self.dim) + " dimensions.\n"
        elif "TensorGrid" in self.name:
            s = "Tensor grid in " + str(self.dim) + " dimensions.\n"
        else:
            s = self.name + "\n"
        s = s + "Number of cells " + str(self.num_cells) + "\n"
        s = s + "Number of faces " + str(self.num_faces) + "\n"
        s = s + "Number of nodes " + str(self.num_nodes) + "\n"

        return s

    @pv.time_logger(sections=module_sections)
    def compute_geometry(self) -> None:
        """Compute geometric quantities for the grid.

        The method could have been called from the constructor, however, in cases where
        the grid is modified after the initial construction (say, perturbation of the
        nodes), this may lead to costly, unnecessary computations.

        Computes the face areas, face centers, face normals and cell volumes.

        """
        logger.debug("Compute geometry for grid with %i cells", self.num_cells)
        self._compute_geometry_2d()
        self.history.append("Compute geometry")

    def _compute_geometry_2d(self) -> None:
        """Auxiliary function to compute the geometry for 2D grids.

        We assume that:
        - either the cell_faces and face_nodes are consistently oriented
        - or that the grid is composed of convex cells.
        """

        # Each face is determined by a start and end node, the tangent is given by
        # the x_end - x_start. The face normal is a 90 degree clock-wise rotation
        # of the tangent.

        # Define an oriented face to nodes mapping, the orientation is determined by the
        # ordering in self.face_nodes.indices. The start node gets a -1 and the end node
        # a +1.
        fn_orient = sps.csc_matrix(self.face_nodes, dtype=int, copy=True)
        fn_orient.data = -np.power(-1, np.arange(fn_orient.data.size))

        # Consistency check: For each cell, the nodes should occur twice in the
        # face-node relation: Once as a start node and once as an end node. Summed over
        # all faces of the cell, the result should be zero.
        is_oriented = (fn_orient @ self.cell_faces).nnz == 0
        if not is_oriented:
            # Fall back to an implementation which is only valid for convex cells.
            warnings.warn(
                "Orientations in face_nodes and cell_faces are inconsistent. "
                "Fall back on an implementation that assumes all cells are convex."
            )

        # Compute the tangent vectors and use them to compute face attributes
        tangent = self.nodes @ fn_orient
        self.face_areas = np.sqrt(np.square(tangent).sum(axis=0))
        self.face_centers = 0.5 * self.nodes @ abs(fn_orient)

        # Compute the temporary cell centers as average of the face centers
        faceno, cellno, cf_orient = sparse_array_to_row_col_data(self.cell_faces)
        cx = np.bincount(cellno, weights=self.face_centers[0, faceno])
        cy = np.bincount(cellno, weights=self.face_centers[1, faceno])
        cz = np.bincount(cellno, weights=self.face_centers[2, faceno])
        temp_cell_centers = np.vstack((cx, cy, cz)) / np.bincount(cellno)

        # Create sub-simplexes based on triplets, each consisting of a cell center and
        # the start and end of a face. Compute the vectors that are normal to the
        # sub-simplex and whose length is the area.
        subsimplex_heights = self.face_centers[:, faceno] - temp_cell_centers[:, cellno]
        subsimplex_normals = 0.5 * np.cross(
            subsimplex_heights, cf_orient * tangent[:, faceno], axis=0
        )

        # The grid lies in the xy-plane. For an oriented grid the orientation of the
        # plane follows from the sub-simplexes.
        plane_normal = np.array([0, 0, 1.0])
        if is_oriented and subsimplex_normals[2].sum() < 0:
            plane_normal *= -1

        # Compute the face normals by rotating the tangent according to the orientation
        # of the plane
        self.face_normals = np.cross(tangent, plane_normal, axis=0)

        # Compute the signed volumes of sub-simplexes. Positive values indicate that
        # cell_faces and face_nodes are consistently oriented.
        subsimplex_volumes = np.dot(plane_normal, subsimplex_normals)

        if not is_oriented:
            # The volume is still correct, but it may be negative. Fix this.
            subsimplex_volumes = np.abs(subsimplex_volumes)

            # We flip the normal if the inner product between the height (face_center -
            # cell_center) and the face normal is different from what is expected from
            # the cell-face relation (as contained in cf_orient).
            flip = (
                cf_orient
                * np.sum(subsimplex_heights * self.face_normals[:, faceno], axis=0)
            ) < 0
            flip = np.bincount(faceno, weights=flip).astype(bool)
            self.face_normals[:, flip] *= -1

        # Compute the cell volumes by adding all relevant sub-simplex volumes.
        self.cell_volumes = np.bincount(cellno, weights=subsimplex_volumes)

        # Sanity check on the cell_volumes
        assert np.all(self.cell_volumes >= 0)

        # Compute cells centroids as weighted average of the sub-simplex centroids
        sub_centroids = (
            temp_cell_centers[:, cellno] + 2 * self.face_centers[:, faceno]
        ) / 3
        ccx = np.bincount(cellno, weights=subsimplex_volumes * sub_centroids[0])
        ccy = np.bincount(cellno, weights=subsimplex_volumes * sub_centroids[1])
        ccz = np.bincount(cellno, weights=subsimplex_volumes * sub_centroids[2])

        self.cell_centers = np.vstack((ccx, ccy, ccz)) / self.cell_volumes

    def get_boundary_faces(self) -> np.ndarray:
        """
        Returns:
            An array with ``shape=(n,)`` containing the indices of all faces tagged as
            domain boundary.

        """
        return self._indices(self.tags["domain_boundary_faces"])

    def get_internal_faces(self) -> np.ndarray:
        """
        Returns:
            An array with ``shape=(num_internal_faces,)`` containing indices of internal
            faces.

        """
        return np.setdiff1d(
            np.arange(self.num_faces), self.get_boundary_faces(), assume_unique=True
        )

    def update_boundary_face_tag(self) -> None:
        """Tags faces on the boundary of the grid with boundary tag."""
        self.tags["domain_boundary_faces"] = np.zeros(self.num_faces, dtype=bool)
        bd_faces = np.argwhere(np.diff(self.cell_faces.tocsr().indptr) == 1).ravel()
        self.tags["domain_boundary_faces"][bd_faces] = True

    def update_boundary_node_tag(self) -> None:
        """Tags nodes on the boundary of the grid with boundary tag."""
        self.tags["domain_boundary_nodes"] = np.zeros(self.num_nodes, dtype=bool)
        faces = np.where(self.tags["domain_boundary_faces"])[0]
        if faces.size > 0:
            nodes = self.face_nodes[:, faces].nonzero()[0]
            self.tags["domain_boundary_nodes"][nodes] = True

    def cell_face_as_dense(self) -> np.ndarray:
        """Obtain the cell-face relation in the form of two rows, rather than a
        sparse matrix.

        Each column in the array corresponds to a face, and the elements in that column
        refers to cell indices. The value -1 signifies a boundary. The normal vector of
        the face points from the first to the second row.

        Returns:
            Array representation of face-cell relations with ``shape=(2, num_faces)``.

        """
        if self.num_faces == 0:
            return np.zeros((2, 0), dtype=int)
        n = self.cell_faces.tocsr()
        d = np.diff(n.indptr)
        rows = pv.matrix_operations.rldecode(np.arange(d.size), d)
        # Increase the data by one to distinguish cell indices from boundary
        # cells
        data = n.indices + 1
        cols = ((n.data + 1) / 2).astype(int)
        neighs = sps.coo_matrix(
            (data, (rows, cols)), shape=(self.num_faces, 2)
        ).toarray()
        # Subtract 1 to get back to real cell indices
        neighs = neighs.transpose().astype(int) - 1
        # Finally, we need to switch order of rows to get normal vectors
        # pointing from first to second row.
        return neighs[::-1]

    def faces_of_cell(self, cell: int) -> tuple[np.ndarray, np.ndarray]:
        """Faces of a cell in local order, with the orientation of their normals.

        Parameters:
            cell: Index of the cell.

        Returns:
            A 2-tuple containing

            :obj:`~numpy.ndarray`: Global indices of the faces of the cell, ordered by
            local face index.

            :obj:`~numpy.ndarray`: +1 if the face normal points out of the cell, -1
            otherwise.

        """
        faces, array_ind = slice_indices(self.cell_faces, cell, return_array_ind=True)
        return faces, self.cell_faces.data[array_ind]

    def nodes_of_face(self, face: int) -> np.ndarray:
        """Start and end node of a face, see :attr:`face_nodes`.

        Parameters:
            face: Index of the face.

        Returns:
            Node indices in storage order.

        """
        return slice_indices(self.face_nodes, face)

    def half_face_index(self, cell: int, local_index: int) -> int:
        """Position of a (cell, local face) pair in the storage of :attr:`cell_faces`.

        Parameters:
            cell: Index of the cell.
            local_index: Local index of the face in the cell.

        Returns:
            Index into ``cell_faces.indices`` and ``cell_faces.data``.

        """
        return int(self.cell_faces.indptr[cell] + local_index)

    @property
    def num_half_faces(self) -> int:
        """Number of (cell, face) pairs in the grid."""
        return int(self.cell_faces.indptr[-1])

    @staticmethod
    def _indices(true_false: np.ndarray) -> np.ndarray:
        """Auxiliary function for :obj:`~numpy.argwhere` with ``ravel('F')."""
        return np.argwhere(true_false).ravel("F")
