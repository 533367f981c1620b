"""
Tests for the CUDA backend

Validates GPU kernels against the NumPy reference implementation.
"""

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lbm_tunnel.kernels.gpu import check_cuda_available

CUDA_AVAILABLE = check_cuda_available()

# Skip all tests if CUDA not available
pytestmark = pytest.mark.skipif(not CUDA_AVAILABLE, reason="CUDA not available")


from lbm_tunnel.lattice import Q, OPPOSITE
from lbm_tunnel.parameters import Parameters
from lbm_tunnel.solver import WindTunnel
from lbm_tunnel.boundary import create_cylinder_mask
from lbm_tunnel.collision import collide
from lbm_tunnel.streaming import stream


class TestGPUKernels:
    """Single sub-step against the CPU reference."""

    @pytest.fixture
    def setup(self):
        rng = np.random.default_rng(1)
        nx, ny = 48, 24
        f = rng.uniform(0.01, 0.2, size=(Q, ny, nx))
        barrier = create_cylinder_mask(nx, ny, 12, 12, 4)
        return f, barrier

    @pytest.mark.parametrize("no_slip", [False, True])
    def test_substep_matches_cpu(self, setup, no_slip):
        from lbm_tunnel.kernels.gpu import GPUStepper

        f, barrier = setup
        stepper = GPUStepper(f, barrier)

        stepper.substep(0, 0.6, 0.1, no_slip)
        gpu_next = stepper.copy_to_host(1)
        gpu_post = stepper.post_to_host()

        cpu_post = collide(f, barrier, 0.6)
        cpu_next = stream(cpu_post, 0.1, no_slip)

        np.testing.assert_allclose(gpu_post, cpu_post, rtol=1e-12, atol=1e-15)
        np.testing.assert_allclose(gpu_next, cpu_next, rtol=1e-12, atol=1e-15)

    def test_bounce_back_on_gpu(self, setup):
        from lbm_tunnel.kernels.gpu import GPUStepper

        f, barrier = setup
        stepper = GPUStepper(f, barrier)

        stepper.substep(0, 0.6, 0.1, True)
        post = stepper.post_to_host()

        np.testing.assert_array_equal(post[:, barrier], f[OPPOSITE][:, barrier])


class TestGPUTunnel:
    """Full loop on the CUDA backend."""

    def test_matches_numpy_backend(self):
        params = Parameters(64, 32, tau=0.6, inflow=0.1, no_slip=True)
        mask = create_cylinder_mask(64, 32, 16, 16, 4)
        results = []

        for backend in ('numpy', 'cuda'):
            tunnel = WindTunnel(params, backend=backend)
            tunnel.replace_barriers(mask)
            for _ in range(30):
                tunnel.substep()
            results.append(tunnel.distribution())

        np.testing.assert_allclose(results[1], results[0], rtol=1e-9, atol=1e-12)

    def test_barrier_edit_reaches_device(self):
        params = Parameters(32, 16, tau=0.6, inflow=0.1)
        tunnel = WindTunnel(params, backend='cuda')
        tunnel.substep()
        before = tunnel.distribution()

        tunnel.toggle_barrier(10, 8)
        tunnel.substep()

        np.testing.assert_array_equal(
            tunnel.post_collision()[:, 8, 10], before[OPPOSITE, 8, 10]
        )

    def test_frame_colors(self):
        params = Parameters(32, 16, mode='speed', steps_per_frame=5)
        tunnel = WindTunnel(params, backend='cuda')

        colors = tunnel.frame()

        assert colors.shape == (16, 32, 3)
        assert tunnel.step_count == 5


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
