""" Functions for compressed matrices and sparse storage manipulations.

Acknowledgements:
    The function rldecode is a python translation of the corresponding matlab
    function found in the Matlab Reservoir Simulation Toolbox (MRST) developed
    by SINTEF ICT, see www.sintef.no/projectweb/mrst/ .

"""
from __future__ import annotations

import numpy as np
import scipy.sparse as sps


def rldecode(A: np.ndarray, n: np.ndarray) -> np.ndarray:
    """Decode compressed information.

    The code is heavily inspired by MRST's function with the same name,
    however, requirements on the shape of functions are probably somewhat
    different.

    >>> rldecode(np.array([1, 2, 3]), np.array([2, 3, 1]))
    [1, 1, 2, 2, 2, 3]

    >>> rldecode(np.array([1, 2]), np.array([1, 3]))
    [1, 2, 2, 2]

    Parameters:
        A: Compressed array to be recovered. The compression should be along
            dimension 0.
        n: Number of occurences for each element.

    Returns:
        The decoded array.

    """
    r = n > 0
    i = np.cumsum(np.hstack((np.zeros(1, dtype=int), n[r])), dtype=int)
    j = np.zeros(i[-1], dtype=int)
    j[i[1:-1:]] = 1
    B = A[r][np.cumsum(j)]
    return B


def sparse_array_to_row_col_data(
    A: sps.spmatrix, remove_nz: bool = False
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Extract row indices, column indices and values of a sparse matrix.

    The entries are returned in the storage order of a coo copy of ``A``; for csc
    matrices this is column by column.

    Parameters:
        A: The sparse matrix.
        remove_nz: If True, explicitly stored zeros are dropped before extraction.

    Returns:
        Row indices, column indices and values of the stored entries.

    """
    mat_copy = sps.coo_matrix(A, copy=True)
    if remove_nz:
        nz_mask = mat_copy.data != 0
        return mat_copy.row[nz_mask], mat_copy.col[nz_mask], mat_copy.data[nz_mask]
    return mat_copy.row, mat_copy.col, mat_copy.data


def slice_indices(
    A: sps.csc_matrix, slice_ind: int, return_array_ind: bool = False
) -> np.ndarray | tuple[np.ndarray, slice]:
    """Get the row indices stored for one column of a csc matrix.

    The indices are returned in storage order, which for the grid relations carries
    meaning (local face numbering of a cell, start and end node of a face).

    Parameters:
        A: Matrix in csc format.
        slice_ind: Column to be sliced.
        return_array_ind: If True, also return the slice into ``A.indices`` and
            ``A.data``.

    Raises:
        ValueError: If ``A`` is not a csc matrix.

    Returns:
        The row indices of column ``slice_ind``, and optionally the slice used.

    """
    if A.format != "csc":
        raise ValueError("slice_indices is only implemented for csc matrices")
    array_ind = slice(A.indptr[slice_ind], A.indptr[slice_ind + 1])
    indices = A.indices[array_ind]
    if return_array_ind:
        return indices, array_ind
    return indices
