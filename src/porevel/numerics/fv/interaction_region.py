"""Localization of MPFA-O interaction regions.

An interaction region gathers the cells around one grid vertex (the corner). Each cell
contributes a sub-cell, spanned by the cell center and the two faces of the cell that
meet at the corner. The half of a face closest to the corner is a sub-face; every
sub-face is shared by two sub-cells, except on the domain boundary.

The pairing of a face with the next face around a cell depends on how the faces of the
cells are numbered, which is a property of the element family of the grid. The rules
are kept in a table keyed by :attr:`~porevel.grids.grid.Grid.element_kind`:

- ``"polygon"``: the faces are connected through their oriented nodes, the successor
  of a face is the face starting where the current face ends when walking
  counter-clockwise around the cell.
- ``"cartesian"``: faces stored as west, east, south, north. The successor is the
  second next face, wrapping around at the end of the list.

"""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Iterator

import numpy as np

import porevel as pv

module_sections = ["numerics"]
logger = logging.getLogger(__name__)


def _polygon_successors(
    sd: pv.Grid, faces: np.ndarray, signs: np.ndarray
) -> np.ndarray:
    # Oriented edges of the cell boundary, counter-clockwise.
    nodes = np.array([sd.nodes_of_face(f) for f in faces])
    if nodes.ndim != 2 or nodes.shape[1] != 2:
        raise pv.ConfigurationError("Polygon faces must have exactly two nodes")
    start = np.where(signs > 0, nodes[:, 0], nodes[:, 1])
    end = np.where(signs > 0, nodes[:, 1], nodes[:, 0])

    match = end[:, None] == start[None, :]
    if not np.all(match.sum(axis=1) == 1):
        raise pv.ConfigurationError(
            "Faces of a polygon do not form a closed oriented loop"
        )
    return np.argmax(match, axis=1)


def _cartesian_successors(
    sd: pv.Grid, faces: np.ndarray, signs: np.ndarray
) -> np.ndarray:
    n = faces.size
    successors = np.arange(2, n + 2)
    successors[n - 2] = 1
    successors[n - 1] = 0
    return successors


SUCCESSOR_RULES: dict[
    str, Callable[[pv.Grid, np.ndarray, np.ndarray], np.ndarray]
] = {
    "polygon": _polygon_successors,
    "cartesian": _cartesian_successors,
}
"""Successor rules keyed by element kind. Each rule maps the faces of a cell (in local
order) and their orientation to the local index of the successor of each face."""


def successor_rule(
    element_kind: str,
) -> Callable[[pv.Grid, np.ndarray, np.ndarray], np.ndarray]:
    """Look up the successor rule of an element kind.

    Parameters:
        element_kind: Topology family of the cells.

    Raises:
        ConfigurationError: If no rule is registered for the element kind.

    Returns:
        The successor rule.

    """
    try:
        return SUCCESSOR_RULES[element_kind]
    except KeyError:
        raise pv.ConfigurationError(
            f"No interaction region rule registered for element kind {element_kind}"
        ) from None


def next_face(sd: pv.Grid, cell: int, local_index: int) -> int:
    """Local index of the face following a face around a cell.

    Parameters:
        sd: Grid.
        cell: Index of the cell.
        local_index: Local index of the face in the cell.

    Returns:
        Local index of the successor face.

    """
    faces, signs = sd.faces_of_cell(cell)
    return int(successor_rule(sd.element_kind)(sd, faces, signs)[local_index])


def corner(sd: pv.Grid, cell: int, local_index: int) -> int:
    """The node shared by a face of a cell and its successor.

    Parameters:
        sd: Grid.
        cell: Index of the cell.
        local_index: Local index of the face in the cell.

    Raises:
        ConfigurationError: If the two faces do not share exactly one node.

    Returns:
        Index of the corner node.

    """
    faces, _ = sd.faces_of_cell(cell)
    successor = next_face(sd, cell, local_index)
    return _common_node(sd, faces[local_index], faces[successor])


def _common_node(sd: pv.Grid, first: int, second: int) -> int:
    common = np.intersect1d(sd.nodes_of_face(first), sd.nodes_of_face(second))
    if common.size != 1:
        raise pv.ConfigurationError(
            f"Faces {first} and {second} share {common.size} nodes, expected one"
        )
    return int(common[0])


@dataclasses.dataclass(frozen=True, eq=False)
class InteractionRegion:
    """Cells and faces around one grid vertex.

    Sub-cells are ordered counter-clockwise around the corner. The second sub-face of
    sub-cell ``k`` is the first sub-face of sub-cell ``k + 1``. For a closed ring the
    last sub-cell connects back to the first one; for an open fan the first and last
    sub-faces lie on the domain boundary.

    """

    corner: int
    """Index of the grid node the region is built around."""
    cells: np.ndarray
    """Cell of each sub-cell, ``shape=(num_cells,)``."""
    faces: np.ndarray
    """Grid face of each sub-face, ``shape=(num_faces,)``."""
    sub_faces: np.ndarray
    """Region indices of the two sub-faces of each sub-cell, ``shape=(num_cells, 2)``.
    Column 0 is the face of the pair, column 1 its successor around the cell."""
    local_indices: np.ndarray
    """Local face indices in the cell matching :attr:`sub_faces`."""
    signs: np.ndarray
    """Orientation of the grid face normal relative to the sub-cell, +1 if it points
    outwards, matching :attr:`sub_faces`."""
    is_boundary: np.ndarray
    """Whether a sub-face lies on the domain boundary, ``shape=(num_faces,)``."""
    closed: bool
    """True if the sub-cells form a ring around an internal vertex."""
    home: int = 0
    """Position of the sub-cell whose fluxes are requested."""

    @property
    def num_cells(self) -> int:
        return self.cells.size

    @property
    def num_faces(self) -> int:
        return self.faces.size

    def position(self, cell: int, local_index: int) -> int:
        """Position of the sub-cell formed by a cell and a local face.

        Raises:
            KeyError: If the pair is not part of the region.

        """
        hit = np.where(
            (self.cells == cell) & (self.local_indices[:, 0] == local_index)
        )[0]
        if hit.size != 1:
            raise KeyError(f"Face {local_index} of cell {cell} not in region")
        return int(hit[0])

    def with_home(self, home: int) -> InteractionRegion:
        """The same region, with fluxes requested for another sub-cell."""
        return dataclasses.replace(self, home=home)


class InteractionRegionLocator:
    """Find the interaction region of a face of a cell.

    The topology of all cells (local faces, successors and corners) is evaluated on
    construction. Regions are cached per corner, so a locator should live no longer
    than the grid it was built for is left unchanged.

    Parameters:
        sd: Grid. The geometry is not needed.

    Raises:
        ConfigurationError: If the element kind of the grid is not registered, or if
            the faces of some cell do not pair up into corners.

    """

    def __init__(self, sd: pv.Grid) -> None:
        self.sd = sd
        rule = successor_rule(sd.element_kind)
        self._face_cells = sd.cell_face_as_dense()

        self._faces: list[np.ndarray] = []
        self._signs: list[np.ndarray] = []
        self._successors: list[np.ndarray] = []
        self._corners: list[np.ndarray] = []
        for c in range(sd.num_cells):
            faces, signs = sd.faces_of_cell(c)
            successors = rule(sd, faces, signs)
            corners = np.array(
                [_common_node(sd, f, faces[s]) for f, s in zip(faces, successors)],
                dtype=int,
            )
            self._faces.append(faces)
            self._signs.append(signs)
            self._successors.append(successors)
            self._corners.append(corners)

        self._regions: dict[int, InteractionRegion] = {}

    def next_face(self, cell: int, local_index: int) -> int:
        """Local index of the successor of a face, see :func:`next_face`."""
        return int(self._successors[cell][local_index])

    def corner(self, cell: int, local_index: int) -> int:
        """Corner node between a face and its successor, see :func:`corner`."""
        return int(self._corners[cell][local_index])

    def neighbor(self, cell: int, face: int) -> int:
        """The cell on the other side of a face, -1 on the boundary."""
        first, second = self._face_cells[:, face]
        return int(second if first == cell else first)

    def locate(self, cell: int, local_index: int) -> InteractionRegion:
        """Interaction region around the corner between a face and its successor.

        Parameters:
            cell: Home cell.
            local_index: Local index of the home face in the cell.

        Raises:
            ConfigurationError: If the cells around the corner cannot be traversed
                consistently.

        Returns:
            The region, with :attr:`~InteractionRegion.home` pointing to the home
            cell.

        """
        node = self.corner(cell, local_index)
        region = self._regions.get(node)
        if region is None:
            region = self._build(cell, local_index, node)
            self._regions[node] = region
        return region.with_home(region.position(cell, local_index))

    def regions(self) -> Iterator[InteractionRegion]:
        """Iterate over all interaction regions of the grid, one per vertex."""
        visited: set[int] = set()
        for c in range(self.sd.num_cells):
            for i in range(self._faces[c].size):
                if self.corner(c, i) in visited:
                    continue
                region = self.locate(c, i)
                visited.add(region.corner)
                yield region

    def _pair_starting_with(self, cell: int, face: int, node: int) -> int:
        hit = np.where((self._faces[cell] == face) & (self._corners[cell] == node))[0]
        if hit.size != 1:
            raise pv.ConfigurationError(
                f"Cell {cell} has no face pair starting with face {face} at node {node}"
            )
        return int(hit[0])

    def _pair_ending_with(self, cell: int, face: int, node: int) -> int:
        faces = self._faces[cell]
        hit = np.where(
            (faces[self._successors[cell]] == face) & (self._corners[cell] == node)
        )[0]
        if hit.size != 1:
            raise pv.ConfigurationError(
                f"Cell {cell} has no face pair ending with face {face} at node {node}"
            )
        return int(hit[0])

    def _build(self, cell: int, local_index: int, node: int) -> InteractionRegion:
        pairs = [(cell, local_index)]
        max_cells = self.sd.num_cells

        # Walk forward across the successor faces until the ring closes or the
        # boundary is reached.
        closed = False
        c, i = cell, local_index
        while True:
            face = self._faces[c][self._successors[c][i]]
            neighbor = self.neighbor(c, face)
            if neighbor < 0:
                break
            if neighbor == cell:
                if self._faces[cell][local_index] != face:
                    raise pv.ConfigurationError(
                        f"Ring of cells around node {node} does not close"
                    )
                closed = True
                break
            c, i = neighbor, self._pair_starting_with(neighbor, face, node)
            pairs.append((c, i))
            if len(pairs) > max_cells:
                raise pv.ConfigurationError(f"Cannot traverse cells around node {node}")

        if not closed:
            # Walk backward from the home face to the other boundary face.
            c, i = cell, local_index
            while True:
                face = self._faces[c][i]
                neighbor = self.neighbor(c, face)
                if neighbor < 0:
                    break
                c, i = neighbor, self._pair_ending_with(neighbor, face, node)
                pairs.insert(0, (c, i))
                if len(pairs) > max_cells:
                    raise pv.ConfigurationError(
                        f"Cannot traverse cells around node {node}"
                    )

        num_cells = len(pairs)
        cells = np.array([p[0] for p in pairs], dtype=int)
        local_indices = np.array(
            [(i, self._successors[c][i]) for c, i in pairs], dtype=int
        )
        signs = np.array(
            [self._signs[c][local_indices[k]] for k, (c, _) in enumerate(pairs)]
        )
        first_faces = [self._faces[c][i] for c, i in pairs]
        if closed:
            faces = np.array(first_faces, dtype=int)
            sub_faces = np.column_stack(
                (np.arange(num_cells), (np.arange(num_cells) + 1) % num_cells)
            )
        else:
            last_cell, last_index = pairs[-1]
            last_face = self._faces[last_cell][self._successors[last_cell][last_index]]
            faces = np.array(first_faces + [last_face], dtype=int)
            sub_faces = np.column_stack(
                (np.arange(num_cells), np.arange(num_cells) + 1)
            )
        is_boundary = self._face_cells[:, faces].min(axis=0) < 0

        logger.debug(
            "Interaction region around node %i with %i cells, %s",
            node,
            num_cells,
            "closed" if closed else "open",
        )
        return InteractionRegion(
            corner=node,
            cells=cells,
            faces=faces,
            sub_faces=sub_faces,
            local_indices=local_indices,
            signs=signs,
            is_boundary=is_boundary,
            closed=closed,
        )
