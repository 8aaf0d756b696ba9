"""
The tensor module contains the class for second order tensors, intended for the
representation of permeability.
"""

from __future__ import annotations

from typing import Optional

import numpy as np


class SecondOrderTensor:
    """Cell-wise permeability represented.

    The permeability is always stored as a 3x3 tensor per cell (since the geometry is
    always 3D). The grids are two-dimensional, so kzz gets unit values and there are
    no cross terms in the z-direction. The reconstruction only uses the upper-left
    2x2 block.
    """

    def __init__(
        self,
        kxx: np.ndarray,
        kyy: Optional[np.ndarray] = None,
        kxy: Optional[np.ndarray] = None,
    ):
        """Initialize permeability

        Parameters:
            kxx: Nc array, with cell-wise values of kxx permeability.
            kyy: Nc array of kyy. Default equal to kxx.
            kxy: Nc array of kxy. Defaults to zero.

        Raises:
            ValueError if the permeability is not positive definite.

        """
        kxx = np.asarray(kxx, dtype=float)
        Nc = kxx.size
        perm = np.zeros((3, 3, Nc))

        if np.any(kxx <= 0):
            raise ValueError(
                "Tensor is not positive definite because of components in x-direction"
            )

        if kyy is None:
            kyy = kxx
        if kxy is None:
            kxy = 0 * kxx
        kyy = np.asarray(kyy, dtype=float)
        kxy = np.asarray(kxy, dtype=float)

        # Onsager's principle - tensor should be positive definite
        if np.any((kxx * kyy - kxy * kxy) <= 0):
            raise ValueError(
                "Tensor is not positive definite because of components in y-direction"
            )

        perm[0, 0, ::] = kxx
        perm[1, 0, ::] = kxy
        perm[0, 1, ::] = kxy
        perm[1, 1, ::] = kyy
        perm[2, 2, ::] = 1

        self.values = perm

    def copy(self) -> SecondOrderTensor:
        """Define a deep copy of the tensor.

        Returns:
            SecondOrderTensor: New tensor with identical fields, but separate arrays (in
                the memory sense).
        """
        kxx = self.values[0, 0].copy()
        kxy = self.values[1, 0].copy()
        kyy = self.values[1, 1].copy()
        return SecondOrderTensor(kxx, kyy=kyy, kxy=kxy)

    def __str__(self) -> str:
        s = f"Second order tensor of shape {self.values.shape[:2]}"
        s += f" defined on {self.values.shape[2]} cells"
        return s

    def __repr__(self) -> str:
        return self.__str__()
