"""
Macroscopic Observable Extraction

Density, velocity and the derived display quantities of a generation.

Macroscopic fields are moments of the distributions:
    - Density (0th moment): rho = sum_i(f_i)
    - Momentum (1st moment): rho*u = sum_i(f_i * e_i)

The wind tunnel is not periodic, so the finite-difference estimators here
never wrap around the domain edges.
"""

import numpy as np
from numba import njit, prange
from .lattice import EX, EY


def compute_density(f):
    """
    Compute density field from distribution functions.

    Parameters
    ----------
    f : ndarray
        Distribution functions, shape (Q, ny, nx)

    Returns
    -------
    rho : ndarray
        Density field, shape (ny, nx)
    """
    return np.sum(f, axis=0)


def compute_velocity(f, rho=None):
    """
    Compute velocity field from distribution functions.

    Sites with non-positive density get zero velocity.

    Parameters
    ----------
    f : ndarray
        Distribution functions, shape (Q, ny, nx)
    rho : ndarray, optional
        Density field, shape (ny, nx). If None, computed from f.

    Returns
    -------
    ux, uy : ndarray
        Velocity components, shape (ny, nx)
    """
    if rho is None:
        rho = compute_density(f)

    # First moments, contracted over the direction axis
    rho_ux = np.tensordot(EX.astype(np.float64), f, axes=1)
    rho_uy = np.tensordot(EY.astype(np.float64), f, axes=1)

    fluid = rho > 0.0
    rho_safe = np.where(fluid, rho, 1.0)

    ux = np.where(fluid, rho_ux / rho_safe, 0.0)
    uy = np.where(fluid, rho_uy / rho_safe, 0.0)

    return ux, uy


def compute_macroscopic(f):
    """
    Compute all macroscopic quantities from distribution functions.

    Returns
    -------
    rho, ux, uy : ndarray
        Density and velocity fields, shape (ny, nx)
    """
    rho = compute_density(f)
    ux, uy = compute_velocity(f, rho)
    return rho, ux, uy


@njit(parallel=True, cache=True)
def compute_macroscopic_numba(f, rho, ux, uy, ex, ey):
    """
    Numba-accelerated macroscopic quantity computation.

    Parameters
    ----------
    f : ndarray
        Distribution functions, shape (Q, ny, nx)
    rho, ux, uy : ndarray
        Output fields, shape (ny, nx)
    ex, ey : ndarray
        Lattice velocity components
    """
    q, ny, nx = f.shape

    for j in prange(ny):
        for i in range(nx):
            rho_local = 0.0
            rho_ux = 0.0
            rho_uy = 0.0

            for k in range(q):
                f_k = f[k, j, i]
                rho_local += f_k
                rho_ux += f_k * ex[k]
                rho_uy += f_k * ey[k]

            rho[j, i] = rho_local

            if rho_local > 0.0:
                ux[j, i] = rho_ux / rho_local
                uy[j, i] = rho_uy / rho_local
            else:
                ux[j, i] = 0.0
                uy[j, i] = 0.0


def compute_macroscopic_fast(f):
    """Fast macroscopic quantity computation using Numba."""
    q, ny, nx = f.shape
    rho = np.zeros((ny, nx), dtype=np.float64)
    ux = np.zeros((ny, nx), dtype=np.float64)
    uy = np.zeros((ny, nx), dtype=np.float64)

    ex = EX.astype(np.float64)
    ey = EY.astype(np.float64)

    compute_macroscopic_numba(np.ascontiguousarray(f), rho, ux, uy, ex, ey)

    return rho, ux, uy


def compute_curl(ux, uy):
    """
    Compute the curl estimator used by the display.

    curl = du_y/dx - du_x/dy

    Each derivative is a central difference 0.5 * (next - previous) and is
    zero on the first and last column (d/dx) or row (d/dy). There is no
    division by grid spacing: the result is a display quantity, not a
    vorticity in physical units.

    Parameters
    ----------
    ux, uy : ndarray
        Velocity components, shape (ny, nx)

    Returns
    -------
    curl : ndarray
        Curl field, shape (ny, nx)
    """
    duy_dx = np.zeros_like(uy)
    dux_dy = np.zeros_like(ux)

    duy_dx[:, 1:-1] = 0.5 * (uy[:, 2:] - uy[:, :-2])
    dux_dy[1:-1, :] = 0.5 * (ux[2:, :] - ux[:-2, :])

    return duy_dx - dux_dy


def compute_density_gradient(rho):
    """
    Compute the magnitude of the density gradient (schlieren quantity).

    Central differences in x and y; an edge cell uses its own density
    in place of the missing neighbor.

    Parameters
    ----------
    rho : ndarray
        Density field, shape (ny, nx)

    Returns
    -------
    grad : ndarray
        Gradient magnitude, shape (ny, nx)
    """
    padded = np.pad(rho, 1, mode='edge')

    d_rho_x = 0.5 * (padded[1:-1, 2:] - padded[1:-1, :-2])
    d_rho_y = 0.5 * (padded[2:, 1:-1] - padded[:-2, 1:-1])

    return np.sqrt(d_rho_x * d_rho_x + d_rho_y * d_rho_y)


def compute_velocity_magnitude(ux, uy):
    """
    Compute velocity magnitude field.

    |u| = sqrt(ux^2 + uy^2)
    """
    return np.sqrt(ux * ux + uy * uy)


def total_mass(f):
    """Return the total mass on the lattice."""
    return float(np.sum(f))
