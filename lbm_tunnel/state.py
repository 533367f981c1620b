"""
Lattice State

Two generations of the distribution field plus the post-collision buffer.

All three buffers are allocated for a capacity (max_nx, max_ny). The active
grid is a view [:, :ny, :nx] into each of them, so the grid can shrink in
place. Growing past the capacity reallocates every buffer and reseeds it;
there is no partial resize.

Which generation is current is a pure function of the sub-step count:
even steps read A and write B, odd steps read B and write A.
"""

import numpy as np
from .lattice import Q
from .equilibrium import inflow_equilibrium
from .parameters import validate_grid


class LatticeState:
    """
    Double-buffered D2Q9 distribution storage.

    Parameters
    ----------
    nx, ny : int
        Active grid size
    inflow : float
        Velocity of the initial equilibrium
    max_nx, max_ny : int, optional
        Buffer capacity (defaults to the active size)

    Attributes
    ----------
    reallocations : int
        Number of times the buffers were reallocated to grow
    """

    def __init__(self, nx, ny, inflow=0.0, max_nx=None, max_ny=None):
        self.nx, self.ny = validate_grid(nx, ny)
        self.max_nx, self.max_ny = validate_grid(
            max(self.nx, max_nx or self.nx), max(self.ny, max_ny or self.ny)
        )
        self.reallocations = 0
        self._allocate()
        self.reseed(inflow)

    def _allocate(self):
        shape = (Q, self.max_ny, self.max_nx)
        self._a = np.zeros(shape, dtype=np.float64)
        self._b = np.zeros(shape, dtype=np.float64)
        self._post = np.zeros(shape, dtype=np.float64)

    @property
    def capacity(self):
        return self.max_nx, self.max_ny

    @property
    def shape(self):
        return Q, self.ny, self.nx

    def _view(self, buffer):
        return buffer[:, :self.ny, :self.nx]

    @property
    def a(self):
        """Generation A (active view)."""
        return self._view(self._a)

    @property
    def b(self):
        """Generation B (active view)."""
        return self._view(self._b)

    @property
    def post(self):
        """Post-collision buffer (active view)."""
        return self._view(self._post)

    def current(self, step):
        """Generation read by collision at the given sub-step."""
        return self.a if step % 2 == 0 else self.b

    def next(self, step):
        """Generation written by streaming at the given sub-step."""
        return self.b if step % 2 == 0 else self.a

    def reseed(self, inflow):
        """Set every buffer to the equilibrium of rho = 1, u = (inflow, 0)."""
        f_in = inflow_equilibrium(inflow)[:, None, None]
        self._a[...] = f_in
        self._b[...] = f_in
        self._post[...] = f_in

    def resize(self, nx, ny, inflow=0.0):
        """
        Change the active grid size and reseed.

        Returns
        -------
        reallocated : bool
            True if the buffers had to grow
        """
        nx, ny = validate_grid(nx, ny)
        reallocated = nx > self.max_nx or ny > self.max_ny
        if reallocated:
            self.max_nx = max(nx, self.max_nx)
            self.max_ny = max(ny, self.max_ny)
            self._allocate()
            self.reallocations += 1
        self.nx, self.ny = nx, ny
        self.reseed(inflow)
        return reallocated
