"""Timing of selected functions of PoreVel.

Timing is switched off by default. It is switched on in the ``logging`` section of
the configuration file ``porevel.cfg``, read from the working directory when PoreVel
is imported. Timings are appended to ``PoreVelTimings.log`` unless another file is
given.

Each timed function belongs to one or more of the sections

    geometry: Computation of cell and face geometry.
    grids: Grid construction and modification.
    parameters: Setup of parameters.
    numerics: Interaction regions, local systems and velocity reconstruction.
    diagnostics: Conservation checks.

and is timed if one of its sections is listed in the configuration. The section
``all`` times every decorated function.

Example logging section of porevel.cfg:

    [logging]
    active: True
    sections: numerics, diagnostics
    file: timings.log

"""
import functools
import inspect
import logging
import os
import time
from typing import Dict

import porevel as pv

__all__ = ["time_logger"]


# The configuration is read on import of PoreVel.
try:
    config: Dict = pv.config["logging"]  # type: ignore
    raw_sections = config.get("sections", "all")
    active_sections = [s.strip().lower() for s in raw_sections.split(",")]
    logger_is_active = config.get("active", "false").strip().lower() == "true"
    always_log = "all" in active_sections

except KeyError:
    config = {}
    active_sections = ["all"]
    logger_is_active = False
    always_log = False

t_logger = logging.getLogger("Timer")
t_logger.setLevel(logging.INFO)


if logger_is_active and not t_logger.hasHandlers():
    time_handler = logging.FileHandler(config.get("file", "PoreVelTimings.log"))
    time_handler.setLevel(logging.INFO)
    time_handler.setFormatter(logging.Formatter("%(message)s"))
    t_logger.addHandler(time_handler)

# File names in the log are given relative to the directory holding the package.
package_root = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))


def time_logger(sections):
    """Decorator that logs the wall clock time spent in a function.

    Parameters:
        sections (list of str): Sections the decorated function belongs to.

    """

    # Two levels of nesting, since the decorator takes arguments.
    def inner_func(func):
        @functools.wraps(func)
        def log_time(*args, **kwargs):
            if not logger_is_active:
                return func(*args, **kwargs)
            if not (always_log or any(s in active_sections for s in sections)):
                return func(*args, **kwargs)

            fn = os.path.relpath(inspect.getfile(func), package_root)
            name = f"{func.__name__} in file {fn}."
            t_logger.info(f"Calling {name}")

            start_time = time.perf_counter()
            value = func(*args, **kwargs)
            run_time = time.perf_counter() - start_time

            t_logger.info(f"Finished {name} Elapsed time: {run_time:.8f} s")
            return value

        return log_time

    return inner_func
