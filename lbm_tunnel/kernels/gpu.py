"""
CUDA Implementation

Collision and streaming kernels for Numba CUDA, one thread per cell.

The kernels mirror lbm_tunnel.collision and lbm_tunnel.streaming. Each
stage is a separate launch on the same stream, so all collision writes
land before streaming reads them.
"""

import numpy as np
from numba import cuda

from ..lattice import EX, EY, W, OPPOSITE, F_MIN, F_MAX
from ..equilibrium import inflow_equilibrium


def check_cuda_available():
    """Check if CUDA is available."""
    return cuda.is_available()


@cuda.jit
def collision_kernel(f, barrier, inv_tau, f_post, ex, ey, w, opposite, nx, ny):
    """
    BGK collision with obstacle bounce-back.

    Parameters
    ----------
    f : device array
        Current generation, shape (Q, ny, nx)
    barrier : device array
        Boolean obstacle mask, shape (ny, nx)
    inv_tau : float
        Relaxation frequency (1/tau)
    f_post : device array
        Post-collision buffer, shape (Q, ny, nx)
    """
    i, j = cuda.grid(2)

    if i < nx and j < ny:
        if barrier[j, i]:
            for k in range(9):
                f_post[k, j, i] = f[opposite[k], j, i]
            return

        rho_local = 0.0
        rho_ux = 0.0
        rho_uy = 0.0
        for k in range(9):
            f_k = f[k, j, i]
            rho_local += f_k
            rho_ux += f_k * ex[k]
            rho_uy += f_k * ey[k]

        ux_local = 0.0
        uy_local = 0.0
        if rho_local > 0.0:
            ux_local = rho_ux / rho_local
            uy_local = rho_uy / rho_local

        u_sq = ux_local * ux_local + uy_local * uy_local

        for k in range(9):
            eu = ex[k] * ux_local + ey[k] * uy_local
            f_eq = w[k] * rho_local * (1.0 + 3.0 * eu + 4.5 * eu * eu - 1.5 * u_sq)
            f_post[k, j, i] = f[k, j, i] - inv_tau * (f[k, j, i] - f_eq)


@cuda.jit
def streaming_kernel(f_post, f_next, f_in, no_slip, ex, ey, opposite,
                     f_min, f_max, nx, ny):
    """
    Pull streaming with open left/right edges and optional no-slip walls.

    Parameters
    ----------
    f_post : device array
        Post-collision buffer, shape (Q, ny, nx)
    f_next : device array
        Next generation, shape (Q, ny, nx)
    f_in : device array
        Inflow equilibrium, shape (Q,)
    no_slip : bool
        Bounce back at the top and bottom edges
    """
    i, j = cuda.grid(2)

    if i < nx and j < ny:
        for k in range(9):
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


class GPUStepper:
    """
    Device-resident double buffer for the wind tunnel.

    Parameters
    ----------
    f : ndarray
        Initial generation, shape (Q, ny, nx)
    barrier : ndarray
        Boolean obstacle mask, shape (ny, nx)
    block_size : tuple
        CUDA block dimensions (default (16, 16))
    """

    def __init__(self, f, barrier, block_size=(16, 16)):
        q, ny, nx = f.shape
        self.nx = nx
        self.ny = ny
        self.block_size = block_size
        self.grid_size = (
            (nx + block_size[0] - 1) // block_size[0],
            (ny + block_size[1] - 1) // block_size[1]
        )

        host = np.ascontiguousarray(f, dtype=np.float64)
        self.d_a = cuda.to_device(host)
        self.d_b = cuda.to_device(host)
        self.d_post = cuda.device_array_like(host)
        self.d_barrier = cuda.to_device(np.ascontiguousarray(barrier, dtype=np.bool_))

        self.d_ex = cuda.to_device(EX)
        self.d_ey = cuda.to_device(EY)
        self.d_w = cuda.to_device(W)
        self.d_opposite = cuda.to_device(OPPOSITE)

    def set_barrier(self, barrier):
        self.d_barrier = cuda.to_device(np.ascontiguousarray(barrier, dtype=np.bool_))

    def current(self, step):
        return self.d_a if step % 2 == 0 else self.d_b

    def next(self, step):
        return self.d_b if step % 2 == 0 else self.d_a

    def substep(self, step, tau, inflow, no_slip):
        """Run collision then streaming for sub-step ``step``."""
        d_f_in = cuda.to_device(inflow_equilibrium(inflow))

        collision_kernel[self.grid_size, self.block_size](
            self.current(step), self.d_barrier, 1.0 / tau, self.d_post,
            self.d_ex, self.d_ey, self.d_w, self.d_opposite, self.nx, self.ny
        )
        streaming_kernel[self.grid_size, self.block_size](
            self.d_post, self.next(step), d_f_in, bool(no_slip),
            self.d_ex, self.d_ey, self.d_opposite, F_MIN, F_MAX, self.nx, self.ny
        )

    def copy_to_host(self, step):
        """Return the generation that is current at ``step``."""
        return self.current(step).copy_to_host()

    def post_to_host(self):
        return self.d_post.copy_to_host()

    def synchronize(self):
        """Synchronize GPU (wait for all kernels to complete)."""
        cuda.synchronize()
