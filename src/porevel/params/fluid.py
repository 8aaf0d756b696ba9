""" Hard coded typical parameters that may be of use in simulations.

Contains standard values (e.g. found in Wikipedia) for density and viscosity of the
fluids entering the two-phase pressure equation. The viscosities are needed to
evaluate the mobility at boundary faces where the saturation is prescribed.

Note that thermal expansion coefficients are volumetric (m^3/m^3K) for fluids.
"""
from typing import Optional

import numpy as np

import porevel as pv


class UnitFluid(object):
    """Mother of all fluids, with properties equal 1.

    Attributes:
        theta_ref: Reference temperature in Celsius, used when no temperature is
            passed to the property functions.
    """

    def __init__(self, theta_ref: Optional[float] = None):
        """Initialization of unit fluid.

        Parameters:
            theta_ref (float, optional): reference temperature in Celsius.
        """
        if theta_ref is None:
            self.theta_ref = 20 * (pv.CELSIUS)
        else:
            self.theta_ref = theta_ref

    def density(self, theta: Optional[float] = None) -> float:
        """Returns fluid density with unit: kg / m^3.

        Parameters:
            theta (float): temperature in Celsius.

        Returns:
            float: density
        """
        return 1

    def dynamic_viscosity(self, theta: Optional[float] = None) -> float:
        """Returns dynamic viscosity with unit: Pa s.

        Parameters:
            theta (float, optional): temperature in Celsius

        Returns:
            float: dynamic viscosity
        """
        return 1


class Water(UnitFluid):
    """Water with temperature dependent density and viscosity."""

    def thermal_expansion(self, delta_theta: float) -> float:
        """Returns thermal expansion with unit m^3 / m^3 K, i.e. volumetric.

        Parameters:
            delta_theta (float): temperature increment in Celsius.

        Returns:
            float: themal expansion
        """
        return (
            0.0002115
            + 1.32 * 1e-6 * delta_theta
            + 1.09 * 1e-8 * np.power(delta_theta, 2)
        )

    def density(self, theta: Optional[float] = None) -> float:
        if theta is None:
            theta = self.theta_ref
        theta_0 = 10 * (pv.CELSIUS)
        rho_0 = 999.8349 * (pv.KILOGRAM / pv.METER**3)
        return rho_0 / (1.0 + self.thermal_expansion(theta - theta_0))

    def dynamic_viscosity(self, theta: Optional[float] = None) -> float:
        if theta is None:
            theta = self.theta_ref
        theta = pv.CELSIUS_to_KELVIN(theta)
        mu_0 = 2.414 * 1e-5 * (pv.PASCAL * pv.SECOND)
        return mu_0 * np.power(10, 247.8 / (theta - 140))


class Oil(UnitFluid):
    """Non-wetting fluid with constant density and viscosity.

    The default values are those of a light crude oil.
    """

    def __init__(
        self,
        theta_ref: Optional[float] = None,
        density: float = 850 * (pv.KILOGRAM / pv.METER**3),
        viscosity: float = 5 * pv.MILLI * (pv.PASCAL * pv.SECOND),
    ):
        super().__init__(theta_ref)
        self._density = density
        self._viscosity = viscosity

    def density(self, theta: Optional[float] = None) -> float:
        return self._density

    def dynamic_viscosity(self, theta: Optional[float] = None) -> float:
        return self._viscosity
