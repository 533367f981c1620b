"""
Wind Tunnel Simulation Loop

Orchestrates the stages of the solver:

    for each sub-step:  collide(current) -> post ; stream(post) -> next
    after N sub-steps:  colorize(latest)

Parameter and obstacle edits are queued and applied together at the next
sub-step boundary, so a sub-step never sees a half-applied change. The
sub-step counter alone decides which generation is current.
"""

import time

import numpy as np
from .parameters import (
    Parameters, validate_mode, validate_inflow, validate_steps
)
from .state import LatticeState
from .boundary import BarrierField
from .collision import collide, collide_fast, validate_tau, tau_from_viscosity
from .streaming import stream, stream_fast
from .observables import compute_macroscopic_fast, total_mass
from .visualization import colorize


BACKENDS = ('numpy', 'numba', 'cuda')


def _check_mask(mask, nx, ny):
    """Return a boolean copy of mask, raising ValueError unless it is (ny, nx)."""
    mask = np.array(mask, dtype=np.bool_)
    if mask.shape != (ny, nx):
        raise ValueError(f"barrier mask shape {mask.shape} does not match grid {(ny, nx)}")
    return mask


class WindTunnel:
    """
    Interactive D2Q9 wind tunnel.

    Parameters
    ----------
    params : Parameters
        Initial configuration
    max_nx, max_ny : int, optional
        Buffer capacity; defaults to the initial grid size
    backend : str
        'numpy' (reference), 'numba' (parallel CPU, default) or 'cuda'

    Attributes
    ----------
    params : Parameters
        Configuration in effect for the next sub-step
    state : LatticeState
        Distribution buffers
    barriers : BarrierField
        Obstacle mask
    step_count : int
        Sub-steps since the last reinitialization
    frame_count : int
        Frames rendered since the last reinitialization
    """

    def __init__(self, params, max_nx=None, max_ny=None, backend='numba'):
        if backend not in BACKENDS:
            raise ValueError(f"unknown backend {backend!r}; expected one of {BACKENDS}")
        self.params = params.copy()
        self.backend = backend

        self.state = LatticeState(params.nx, params.ny, params.inflow, max_nx, max_ny)
        self.barriers = BarrierField(
            params.nx, params.ny, self.state.max_nx, self.state.max_ny
        )

        if backend == 'numpy':
            self._collide, self._stream = collide, stream
        else:
            self._collide, self._stream = collide_fast, stream_fast

        self._gpu = None
        if backend == 'cuda':
            from .kernels.gpu import check_cuda_available
            if not check_cuda_available():
                raise ValueError("backend 'cuda' requested but CUDA is not available")
            self._build_gpu()

        self._pending_params = {}
        self._pending_edits = []
        self.paused = False

        self.step_count = 0
        self.frame_count = 0
        self.total_time = 0.0

    def _build_gpu(self):
        from .kernels.gpu import GPUStepper
        self._gpu = GPUStepper(self.state.current(0), self.barriers.mask)

    # ------------------------------------------------------------------
    # Queued parameter edits
    # ------------------------------------------------------------------

    def set_tau(self, tau):
        self._pending_params['tau'] = validate_tau(tau)

    def set_viscosity(self, viscosity):
        """Set tau = 3 * viscosity + 0.5."""
        self.set_tau(tau_from_viscosity(viscosity))

    def set_inflow(self, inflow):
        self._pending_params['inflow'] = validate_inflow(inflow)

    def set_no_slip(self, no_slip):
        self._pending_params['no_slip'] = bool(no_slip)

    def set_mode(self, mode):
        self._pending_params['mode'] = validate_mode(mode)

    def set_steps_per_frame(self, steps):
        self._pending_params['steps_per_frame'] = validate_steps(steps)

    # ------------------------------------------------------------------
    # Queued obstacle edits
    # ------------------------------------------------------------------

    def toggle_barrier(self, x, y):
        self._pending_edits.append(('toggle', (int(x), int(y))))

    def begin_stroke(self):
        self._pending_edits.append(('begin_stroke', ()))

    def paint(self, x, y):
        self._pending_edits.append(('paint', (int(x), int(y))))

    def end_stroke(self):
        self._pending_edits.append(('end_stroke', ()))

    def replace_barriers(self, mask):
        mask = _check_mask(mask, self.params.nx, self.params.ny)
        self._pending_edits.append(('replace', (mask,)))

    def clear_barriers(self):
        self._pending_edits.append(('clear', ()))

    @property
    def has_pending(self):
        return bool(self._pending_params or self._pending_edits)

    def apply_pending(self):
        """Apply every queued edit; last write wins for each parameter."""
        if self._pending_params:
            changes, self._pending_params = self._pending_params, {}
            self.params = self.params.updated(**changes)

        if self._pending_edits:
            edits, self._pending_edits = self._pending_edits, []
            for name, args in edits:
                getattr(self.barriers, name)(*args)
            if self._gpu is not None:
                self._gpu.set_barrier(self.barriers.mask)

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def substep(self):
        """One collision + streaming sub-step."""
        self.apply_pending()
        p = self.params
        step = self.step_count

        if self._gpu is not None:
            self._gpu.substep(step, p.tau, p.inflow, p.no_slip)
        else:
            barrier = self.barriers.mask
            self._collide(self.state.current(step), barrier, p.tau, out=self.state.post)
            self._stream(self.state.post, p.inflow, p.no_slip, out=self.state.next(step))

        self.step_count += 1

    def frame(self):
        """
        Advance one rendered frame and return its colors.

        While paused no sub-steps run and the latest state is redrawn.

        Returns
        -------
        colors : ndarray
            RGB colors, shape (ny, nx, 3)
        """
        self.apply_pending()
        if not self.paused:
            start = time.perf_counter()
            for _ in range(self.params.steps_per_frame):
                self.substep()
            self.total_time += time.perf_counter() - start
            self.frame_count += 1

        p = self.params
        return colorize(self.latest(), self.barriers.mask, p.mode, p.inflow)

    def pause(self):
        self.paused = True

    def resume(self):
        self.paused = False

    def run(self, num_frames, verbose=True, report_interval=100, callback=None):
        """
        Render frames repeatedly.

        Parameters
        ----------
        num_frames : int
            Number of frames to render
        verbose : bool
            Print progress information
        report_interval : int
            Frames between progress reports
        callback : callable, optional
            Called as callback(frame_index, colors) after each frame

        Returns
        -------
        mlups : float
            Million Lattice Updates Per Second over the run
        """
        start = time.perf_counter()
        steps_before = self.step_count
        cells = self.params.nx * self.params.ny

        for frame in range(num_frames):
            colors = self.frame()
            if callback is not None:
                callback(frame, colors)

            if verbose and (frame + 1) % report_interval == 0:
                elapsed = time.perf_counter() - start
                mlups = (self.step_count - steps_before) * cells / elapsed / 1e6
                print(f"Frame {frame + 1}/{num_frames}, step {self.step_count}, "
                      f"MLUPS: {mlups:.2f}")

        total = time.perf_counter() - start
        steps = self.step_count - steps_before
        mlups = steps * cells / total / 1e6 if total > 0 else 0.0

        if verbose:
            print(f"Completed {num_frames} frames ({steps} steps) in {total:.2f}s")
            print(f"Performance: {mlups:.2f} MLUPS")

        return mlups

    # ------------------------------------------------------------------
    # Reinitialization
    # ------------------------------------------------------------------

    def reinitialize(self, inflow=None, mask=None, keep_barriers=False):
        """
        Reseed both generations to the inflow equilibrium.

        Parameters
        ----------
        inflow : float, optional
            New inflow velocity (defaults to the current one)
        mask : ndarray, optional
            Obstacle mask installed by the same request
        keep_barriers : bool
            Keep the existing obstacles instead of clearing them

        Raises
        ------
        ValueError
            If the inflow or mask is invalid; nothing is changed then
        """
        self.apply_pending()
        params = self.params if inflow is None else self.params.updated(inflow=inflow)
        if mask is not None:
            mask = _check_mask(mask, params.nx, params.ny)

        self.params = params
        self.state.reseed(params.inflow)
        if mask is not None:
            self.barriers.replace(mask)
        elif not keep_barriers:
            self.barriers.clear()
        self.barriers.end_stroke()

        self.step_count = 0
        self.frame_count = 0
        if self._gpu is not None:
            self._build_gpu()

    def set_resolution(self, nx, ny, mask=None):
        """
        Change the grid size; always reinitializes.

        Parameters
        ----------
        nx, ny : int
            New grid size
        mask : ndarray, optional
            Obstacle mask of the new size installed by the same request

        Returns
        -------
        reallocated : bool
            True if the buffers had to grow
        """
        self.apply_pending()
        params = self.params.updated(nx=nx, ny=ny)
        if mask is not None:
            mask = _check_mask(mask, params.nx, params.ny)

        reallocated = self.state.resize(params.nx, params.ny, params.inflow)
        self.barriers.resize(params.nx, params.ny)
        if mask is not None:
            self.barriers.replace(mask)
        self.params = params

        self.step_count = 0
        self.frame_count = 0
        if self._gpu is not None:
            self._build_gpu()
        return reallocated

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def latest(self):
        """The most recently completed generation (host array)."""
        if self._gpu is not None:
            return self._gpu.copy_to_host(self.step_count)
        return self.state.current(self.step_count)

    def post_collision(self):
        """Post-collision buffer of the last sub-step (host array)."""
        if self._gpu is not None:
            return self._gpu.post_to_host()
        return self.state.post

    def distribution(self):
        """Copy of the latest generation, shape (Q, ny, nx)."""
        return np.array(self.latest(), copy=True)

    def macroscopic(self):
        """Density and velocity of the latest generation."""
        return compute_macroscopic_fast(self.latest())

    def total_mass(self):
        return total_mass(self.latest())

    def __repr__(self):
        return (f"WindTunnel({self.params.nx}x{self.params.ny}, backend={self.backend!r}, "
                f"step={self.step_count})")
