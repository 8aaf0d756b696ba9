"""
The module is intended to give access to a set of unified keywords, units etc.

To access the quantities, invoke pv.KEY.

"""

""" Global keywords

Define unified keywords used throughout the software.
"""
# Used in data dictionary to store parameters for discretizations
PARAMETERS = "parameters"

# Used in data dictionary to store the system state, e.g. the pressure and the
# reconstructed velocities.
STATE = "state"

# Phase names accepted by the velocity field.
WETTING = "wetting"
NONWETTING = "nonwetting"
PHASES = (WETTING, NONWETTING)

""" Units """
# SI Prefixes
MILLI = 1e-3

# Time
SECOND = 1.0

# Weight
KILOGRAM = 1.0

# Length
METER = 1.0

# Pressure
PASCAL = 1.0

# Temperature
CELSIUS = 1.0


def CELSIUS_to_KELVIN(celsius):
    return celsius + 273.15
