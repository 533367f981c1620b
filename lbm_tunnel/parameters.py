"""
Simulation Parameters

Scalar configuration shared by every stage of the wind tunnel.

A Parameters object is validated when it is built or edited. The solver
takes a copy of it at the start of each sub-step, so stages always see a
consistent set of values.
"""

import warnings

import numpy as np
from .collision import validate_tau, tau_from_viscosity, viscosity_from_tau


# Visualization modes, in display-switch order
VIS_MODES = ('density', 'speed', 'curl', 'schlieren')

DEFAULT_TAU = 0.6
DEFAULT_INFLOW = 0.1
DEFAULT_STEPS_PER_FRAME = 1
DEFAULT_MODE = 'curl'

# Mach number above which compressibility errors dominate
MAX_MACH = 0.3


def validate_grid(nx, ny):
    """Return (nx, ny) as ints, raising ValueError unless both are positive."""
    nx_i, ny_i = int(nx), int(ny)
    if nx_i != nx or ny_i != ny or nx_i <= 0 or ny_i <= 0:
        raise ValueError(f"grid dimensions must be positive integers, got ({nx}, {ny})")
    return nx_i, ny_i


def validate_mode(mode):
    """Return mode if it is a known visualization mode."""
    if mode not in VIS_MODES:
        raise ValueError(f"unknown visualization mode {mode!r}; expected one of {VIS_MODES}")
    return mode


def validate_inflow(inflow):
    """
    Validate the inflow velocity.

    Warns when the Mach number u * sqrt(3) exceeds 0.3.
    """
    inflow = float(inflow)
    if not np.isfinite(inflow):
        raise ValueError(f"inflow velocity must be finite, got {inflow}")
    mach = abs(inflow) * np.sqrt(3)
    if mach > MAX_MACH:
        warnings.warn(f"Ma = {mach:.3f} > {MAX_MACH}, compressibility effects")
    return inflow


def validate_steps(steps):
    """Return steps as an int, raising ValueError unless it is positive."""
    steps_i = int(steps)
    if steps_i != steps or steps_i <= 0:
        raise ValueError(f"steps per frame must be a positive integer, got {steps}")
    return steps_i


class Parameters:
    """
    Configuration record for the wind tunnel.

    Parameters
    ----------
    nx, ny : int
        Active grid size
    tau : float
        Relaxation time (must be > 0.5)
    inflow : float
        Inflow velocity in lattice units (keep well below 0.3)
    no_slip : bool
        Bounce-back walls at the top and bottom edges
    mode : str
        Visualization mode, one of VIS_MODES
    steps_per_frame : int
        Collision+streaming sub-steps per rendered frame
    """

    FIELDS = ('nx', 'ny', 'tau', 'inflow', 'no_slip', 'mode', 'steps_per_frame')

    def __init__(self, nx, ny, tau=DEFAULT_TAU, inflow=DEFAULT_INFLOW,
                 no_slip=True, mode=DEFAULT_MODE,
                 steps_per_frame=DEFAULT_STEPS_PER_FRAME):
        self.nx, self.ny = validate_grid(nx, ny)
        self.tau = validate_tau(tau)
        self.inflow = validate_inflow(inflow)
        self.no_slip = bool(no_slip)
        self.mode = validate_mode(mode)
        self.steps_per_frame = validate_steps(steps_per_frame)

    @classmethod
    def from_viscosity(cls, nx, ny, viscosity, **kwargs):
        """Build parameters with tau = 3 * viscosity + 0.5."""
        return cls(nx, ny, tau=tau_from_viscosity(viscosity), **kwargs)

    @property
    def viscosity(self):
        return viscosity_from_tau(self.tau)

    def copy(self):
        """Return an independent snapshot."""
        snapshot = Parameters.__new__(Parameters)
        snapshot.__dict__.update(self.__dict__)
        return snapshot

    def updated(self, **changes):
        """
        Return a validated copy with the given fields replaced.

        Raises
        ------
        ValueError
            If a field name is unknown or a value is invalid
        """
        unknown = set(changes) - set(self.FIELDS)
        if unknown:
            raise ValueError(f"unknown parameter(s): {sorted(unknown)}")
        values = {name: getattr(self, name) for name in self.FIELDS}
        values.update(changes)
        return Parameters(**values)

    def as_dict(self):
        return {name: getattr(self, name) for name in self.FIELDS}

    def __eq__(self, other):
        if not isinstance(other, Parameters):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self):
        fields = ", ".join(f"{name}={getattr(self, name)!r}" for name in self.FIELDS)
        return f"Parameters({fields})"
