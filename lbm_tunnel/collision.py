"""
Collision Stage

BGK collision with full bounce-back at obstacle cells.

The collision step drives each fluid cell toward its local equilibrium:

    f_post = f - (f - f_eq) / tau

The relaxation time tau controls the viscosity:

    nu = c_s^2 * (tau - 0.5)        (dt = 1 in lattice units)

Stability requires tau > 0.5 (nu > 0).

Obstacle cells skip relaxation and reflect their own distributions:

    f_post[i] = f[opp(i)]

The stage reads the current generation and writes a separate
post-collision buffer. It never writes its input.
"""

import warnings

import numpy as np
from numba import njit, prange
from .lattice import EX, EY, W, CS2, OPPOSITE
from .equilibrium import compute_equilibrium
from .observables import compute_macroscopic


def tau_from_viscosity(nu, dt=1.0, cs2=CS2):
    """
    Compute relaxation time from kinematic viscosity.

    tau = nu / (c_s^2 * dt) + 0.5 = 3 * nu + 0.5
    """
    return nu / (cs2 * dt) + 0.5


def viscosity_from_tau(tau, dt=1.0, cs2=CS2):
    """
    Compute kinematic viscosity from relaxation time.

    nu = c_s^2 * (tau - 0.5) * dt

    Raises
    ------
    ValueError
        If tau <= 0.5
    """
    if tau <= 0.5:
        raise ValueError(f"tau must be > 0.5 for stability, got {tau}")
    return cs2 * (tau - 0.5) * dt


def validate_tau(tau, name="tau"):
    """
    Validate that relaxation time is in stable range.

    Parameters
    ----------
    tau : float
        Relaxation time to validate
    name : str
        Name for error messages

    Raises
    ------
    ValueError
        If tau <= 0.5

    Returns
    -------
    tau : float
        Validated tau value
    """
    tau = float(tau)
    if not tau > 0.5:
        raise ValueError(
            f"{name} must be > 0.5 for stability (got {tau}). "
            f"This corresponds to nu > 0."
        )
    if tau < 0.52:
        warnings.warn(
            f"{name} = {tau} is close to the stability limit; "
            f"expect saturated output."
        )
    elif tau > 2.0:
        warnings.warn(
            f"{name} = {tau} is large, which makes the flow very viscous. "
            f"Consider tau in range (0.5, 2.0)."
        )
    return tau


def _check_output(f, out):
    if out is None:
        return np.empty_like(f)
    if out.shape != f.shape:
        raise ValueError(f"output shape {out.shape} does not match input {f.shape}")
    if np.shares_memory(out, f):
        raise ValueError("collision output must not alias the current generation")
    return out


def collide(f, barrier, tau, out=None):
    """
    BGK collision with obstacle bounce-back (NumPy reference).

    Parameters
    ----------
    f : ndarray
        Current generation, shape (Q, ny, nx). Not modified.
    barrier : ndarray
        Boolean obstacle mask, shape (ny, nx)
    tau : float
        Relaxation time (tau > 0.5)
    out : ndarray, optional
        Post-collision buffer to write, shape (Q, ny, nx)

    Returns
    -------
    f_post : ndarray
        Post-collision distribution
    """
    if tau <= 0.5:
        raise ValueError(f"tau must be > 0.5 for stability, got {tau}")
    f_post = _check_output(f, out)

    rho, ux, uy = compute_macroscopic(f)
    f_eq = compute_equilibrium(rho, ux, uy)

    f_post[...] = f - (f - f_eq) / tau

    # Obstacles reflect their own pre-collision state
    if np.any(barrier):
        f_post[:, barrier] = f[OPPOSITE][:, barrier]

    return f_post


@njit(parallel=True, cache=True)
def collide_numba(f, barrier, inv_tau, f_post, ex, ey, w, opposite):
    """
    Numba-accelerated collision; one independent update per cell.

    Parameters
    ----------
    f : ndarray
        Current generation, shape (Q, ny, nx)
    barrier : ndarray
        Boolean obstacle mask, shape (ny, nx)
    inv_tau : float
        Relaxation frequency (1/tau)
    f_post : ndarray
        Output post-collision buffer, shape (Q, ny, nx)
    ex, ey : ndarray
        Lattice velocity components
    w : ndarray
        Lattice weights
    opposite : ndarray
        Opposite direction indices
    """
    q, ny, nx = f.shape

    for j in prange(ny):
        for i in range(nx):
            if barrier[j, i]:
                for k in range(q):
                    f_post[k, j, i] = f[opposite[k], j, i]
                continue

            rho_local = 0.0
            rho_ux = 0.0
            rho_uy = 0.0
            for k in range(q):
                f_k = f[k, j, i]
                rho_local += f_k
                rho_ux += f_k * ex[k]
                rho_uy += f_k * ey[k]

            if rho_local > 0.0:
                ux_local = rho_ux / rho_local
                uy_local = rho_uy / rho_local
            else:
                ux_local = 0.0
                uy_local = 0.0

            u_sq = ux_local * ux_local + uy_local * uy_local

            for k in range(q):
                eu = ex[k] * ux_local + ey[k] * uy_local
                f_eq = w[k] * rho_local * (
                    1.0 + 3.0 * eu + 4.5 * eu * eu - 1.5 * u_sq
                )
                f_post[k, j, i] = f[k, j, i] - inv_tau * (f[k, j, i] - f_eq)


def collide_fast(f, barrier, tau, out=None):
    """
    Numba-accelerated collision.

    Same contract as :func:`collide`.
    """
    if tau <= 0.5:
        raise ValueError(f"tau must be > 0.5 for stability, got {tau}")
    f_post = _check_output(f, out)

    ex = EX.astype(np.float64)
    ey = EY.astype(np.float64)
    collide_numba(f, barrier, 1.0 / tau, f_post, ex, ey, W, OPPOSITE)
    return f_post
