"""Relative permeability curves of the wetting and non-wetting phase.

All curves are functions of the wetting saturation. They are used to compute total
mobilities, both in the cells and at boundary faces with a prescribed saturation.
"""
from __future__ import annotations

import abc

import numpy as np


class RelativePermeability(abc.ABC):
    """Base class for pairs of relative permeability curves."""

    @abc.abstractmethod
    def krw(self, sw: np.ndarray) -> np.ndarray:
        """Relative permeability of the wetting phase.

        Parameters:
            sw: Wetting saturation.

        Returns:
            Relative permeability, same shape as ``sw``.

        """

    @abc.abstractmethod
    def krn(self, sw: np.ndarray) -> np.ndarray:
        """Relative permeability of the non-wetting phase.

        Parameters:
            sw: Wetting saturation.

        Returns:
            Relative permeability, same shape as ``sw``.

        """


class LinearRelativePermeability(RelativePermeability):
    def krw(self, sw):
        return np.clip(sw, 0, 1)

    def krn(self, sw):
        return np.clip(1 - sw, 0, 1)


class QuadraticRelativePermeability(RelativePermeability):
    def krw(self, sw):
        return np.clip(sw, 0, 1) ** 2

    def krn(self, sw):
        return np.clip(1 - sw, 0, 1) ** 2


class BrooksCoreyRelativePermeability(RelativePermeability):
    """Power law curves with residual saturations.

    ``kr_alpha = ((s_alpha - s_c_alpha) / (1 - s_c_alpha)) ** rho_alpha``, clipped to
    the unit interval, see Hamon et al. (2018).
    """

    def __init__(
        self,
        s_c_w: float = 0.0,
        s_c_n: float = 0.0,
        rho_w: float = 2.0,
        rho_n: float = 2.0,
    ):
        if not (0 <= s_c_w < 1 and 0 <= s_c_n < 1):
            raise ValueError("Residual saturations must be in [0, 1)")
        self.s_c_w = s_c_w
        self.s_c_n = s_c_n
        self.rho_w = rho_w
        self.rho_n = rho_n

    @staticmethod
    def _perm(saturation, s_c_alpha, rho_alpha):
        reduced = (saturation - s_c_alpha) / (1 - s_c_alpha)
        return np.clip(reduced, 0, 1) ** rho_alpha

    def krw(self, sw):
        return self._perm(sw, self.s_c_w, self.rho_w)

    def krn(self, sw):
        return self._perm(1 - np.asarray(sw), self.s_c_n, self.rho_n)
