"""
Streaming Stage

Propagation of post-collision distributions along lattice velocities,
using the pull scheme:

    f_i(x, t + 1) = f_i^post(x - e_i, t)

The tunnel is not periodic. When the upstream site x - e_i is off the grid:

- off the left or right edge: the inflow equilibrium value is used
  (rho = 1, u = (u_in, 0)), which makes both vertical edges open;
- off the top or bottom edge: with no-slip walls the destination site's
  own post-collision value for the opposite direction is bounced back,
  otherwise the inflow equilibrium is used as on the vertical edges.

Every written value is clamped to [F_MIN, F_MAX]. The clamp bounds the
state under extreme parameters; it does not make the result physical.

The output must be a different buffer from the post-collision input.
"""

import numpy as np
from numba import njit, prange
from .lattice import EX, EY, OPPOSITE, Q, F_MIN, F_MAX
from .equilibrium import inflow_equilibrium


def _check_output(f_post, out):
    if out is None:
        return np.empty_like(f_post)
    if out.shape != f_post.shape:
        raise ValueError(f"output shape {out.shape} does not match input {f_post.shape}")
    if np.shares_memory(out, f_post):
        raise ValueError("streaming output must not alias the post-collision buffer")
    return out


def stream(f_post, inflow, no_slip, out=None):
    """
    Streaming step with open/no-slip boundaries (NumPy reference).

    Parameters
    ----------
    f_post : ndarray
        Post-collision distribution, shape (Q, ny, nx)
    inflow : float
        Inflow velocity used by the boundary equilibrium
    no_slip : bool
        Bounce back at the top and bottom edges
    out : ndarray, optional
        Next generation buffer, shape (Q, ny, nx)

    Returns
    -------
    f_next : ndarray
        Post-streaming distribution
    """
    f_next = _check_output(f_post, out)
    q, ny, nx = f_post.shape
    f_in = inflow_equilibrium(inflow)

    for i in range(Q):
        ex = int(EX[i])
        ey = int(EY[i])

        # Destination range whose upstream site lies on the grid
        x_lo, x_hi = max(0, ex), min(nx, nx + ex)
        y_lo, y_hi = max(0, ey), min(ny, ny + ey)

        plane = np.full((ny, nx), f_in[i], dtype=np.float64)

        if x_hi > x_lo and y_hi > y_lo:
            plane[y_lo:y_hi, x_lo:x_hi] = f_post[i, y_lo - ey:y_hi - ey, x_lo - ex:x_hi - ex]

        if no_slip and ey != 0 and x_hi > x_lo:
            # Row whose upstream site is off the bottom (ey=1) or top (ey=-1)
            row = 0 if ey > 0 else ny - 1
            plane[row, x_lo:x_hi] = f_post[OPPOSITE[i], row, x_lo:x_hi]

        # fmax/fmin send NaN to F_MIN
        np.fmin(np.fmax(plane, F_MIN), F_MAX, out=f_next[i])

    return f_next


@njit(parallel=True, cache=True)
def stream_numba(f_post, f_next, f_in, no_slip, ex, ey, opposite, f_min, f_max):
    """
    Numba-accelerated streaming; one independent update per cell.

    Parameters
    ----------
    f_post : ndarray
        Post-collision distribution, shape (Q, ny, nx)
    f_next : ndarray
        Output next generation, shape (Q, ny, nx)
    f_in : ndarray
        Inflow equilibrium, shape (Q,)
    no_slip : bool
        Bounce back at the top and bottom edges
    ex, ey : ndarray
        Lattice velocity components (integer)
    opposite : ndarray
        Opposite direction indices
    f_min, f_max : float
        Clamp bounds
    """
    q, ny, nx = f_post.shape

    for j in prange(ny):
        for i in range(nx):
            for k in range(q):
                i_src = i - ex[k]
                j_src = j - ey[k]

                if i_src < 0 or i_src >= nx:
                    value = f_in[k]
                elif j_src < 0 or j_src >= ny:
                    if no_slip:
                        value = f_post[opposite[k], j, i]
                    else:
                        value = f_in[k]
                else:
                    value = f_post[k, j_src, i_src]

                f_next[k, j, i] = min(max(f_min, value), f_max)


def stream_fast(f_post, inflow, no_slip, out=None):
    """
    Fast streaming using Numba.

    Same contract as :func:`stream`.
    """
    f_next = _check_output(f_post, out)
    f_in = inflow_equilibrium(inflow)
    stream_numba(f_post, f_next, f_in, bool(no_slip), EX, EY, OPPOSITE, F_MIN, F_MAX)
    return f_next
