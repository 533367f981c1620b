"""
Tests for the visualization stage.
"""

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import matplotlib
matplotlib.use('Agg')

from lbm_tunnel.equilibrium import compute_equilibrium, uniform_equilibrium
from lbm_tunnel.observables import compute_curl, compute_density_gradient
from lbm_tunnel.visualization import (
    ramp_color, barrier_color, colorize, to_rgba8, save_frame,
    BARRIER_BLACK, BARRIER_HIGHLIGHT, CURL_SCALE, SCHLIEREN_SCALE
)


@pytest.fixture
def uniform_flow():
    return uniform_equilibrium(12, 8, 0.1)


@pytest.fixture
def no_barrier():
    return np.zeros((8, 12), dtype=bool)


class TestRamp:

    def test_ramp_values(self):
        np.testing.assert_allclose(ramp_color(0.0), [0.0, 0.5, 1.0])
        np.testing.assert_allclose(ramp_color(0.5), [0.5, 1.0, 0.5])
        np.testing.assert_allclose(ramp_color(1.0), [1.0, 0.5, 0.0])

    def test_ramp_not_clamped(self):
        np.testing.assert_allclose(ramp_color(2.0), [2.0, -0.5, -1.0])

    def test_ramp_array_shape(self):
        assert ramp_color(np.zeros((3, 4))).shape == (3, 4, 3)


class TestModes:

    def test_density_mode(self, uniform_flow, no_barrier):
        """rho = 1 maps to ramp(0.5)."""
        colors = colorize(uniform_flow, no_barrier, 'density', 0.1)

        assert colors.shape == (8, 12, 3)
        np.testing.assert_allclose(colors[3, 4], [0.5, 1.0, 0.5], atol=1e-12)

    def test_speed_mode(self, uniform_flow, no_barrier):
        """|u| = u_in maps to ramp(u_in)."""
        colors = colorize(uniform_flow, no_barrier, 'speed', 0.1)

        np.testing.assert_allclose(colors[3, 4], [0.1, 0.6, 0.9], atol=1e-12)

    @pytest.mark.parametrize("mode", ['curl', 'schlieren'])
    def test_uniform_flow_is_black(self, uniform_flow, no_barrier, mode):
        colors = colorize(uniform_flow, no_barrier, mode, 0.1)

        np.testing.assert_allclose(colors, 0.0, atol=1e-12)

    def test_curl_of_shear_flow(self):
        ny, nx = 8, 6
        a = 0.001
        Y = np.repeat(np.arange(ny, dtype=np.float64)[:, None], nx, axis=1)
        f = compute_equilibrium(np.ones((ny, nx)), a * Y, np.zeros((ny, nx)))

        colors = colorize(f, np.zeros((ny, nx), dtype=bool), 'curl', 0.0)

        np.testing.assert_allclose(colors[1:-1, :, 0], CURL_SCALE * a, rtol=1e-8)
        np.testing.assert_allclose(colors[0], 0.0, atol=1e-12)
        np.testing.assert_allclose(colors[-1], 0.0, atol=1e-12)

    def test_schlieren_of_density_ramp(self):
        ny, nx = 4, 6
        b = 0.001
        X = np.repeat(np.arange(nx, dtype=np.float64)[None, :], ny, axis=0)
        f = compute_equilibrium(1.0 + b * X, np.zeros((ny, nx)), np.zeros((ny, nx)))

        colors = colorize(f, np.zeros((ny, nx), dtype=bool), 'schlieren', 0.0)

        np.testing.assert_allclose(colors[:, 1:-1, 1], SCHLIEREN_SCALE * b, rtol=1e-8)
        np.testing.assert_allclose(colors[:, 0, 1], SCHLIEREN_SCALE * b / 2, rtol=1e-8)

    def test_invalid_mode(self, uniform_flow, no_barrier):
        with pytest.raises(ValueError):
            colorize(uniform_flow, no_barrier, 'pressure', 0.1)


class TestDerivatives:

    def test_curl_edges_zero(self):
        rng = np.random.default_rng(0)
        ux = rng.random((5, 7))
        uy = rng.random((5, 7))

        curl = compute_curl(ux, uy)
        dux_dy = 0.5 * (ux[2:, :] - ux[:-2, :])

        np.testing.assert_allclose(curl[1:-1, 0], -dux_dy[:, 0])
        np.testing.assert_allclose(curl[0, 1:-1], 0.5 * (uy[0, 2:] - uy[0, :-2]))

    def test_density_gradient_corner(self):
        rho = np.array([[1.0, 1.2], [1.0, 1.2]])

        grad = compute_density_gradient(rho)

        np.testing.assert_allclose(grad, 0.1)


class TestObstacleOverlay:

    @pytest.mark.parametrize("mode,expected", [
        ('density', BARRIER_BLACK),
        ('speed', BARRIER_BLACK),
        ('curl', BARRIER_HIGHLIGHT),
        ('schlieren', BARRIER_HIGHLIGHT),
    ])
    def test_overlay_color(self, uniform_flow, mode, expected):
        barrier = np.zeros((8, 12), dtype=bool)
        barrier[4, 6] = True

        colors = colorize(uniform_flow, barrier, mode, 0.1)

        np.testing.assert_array_equal(colors[4, 6], expected)
        assert barrier_color(mode) == expected


class TestOutput:

    def test_rgba8_flips_rows(self):
        colors = np.zeros((2, 1, 3))
        colors[0, 0] = [1.0, 0.0, 0.0]
        colors[1, 0] = [0.0, 0.0, 1.0]

        rgba = to_rgba8(colors)

        assert rgba.dtype == np.uint8
        np.testing.assert_array_equal(rgba[0, 0], [0, 0, 255, 255])
        np.testing.assert_array_equal(rgba[1, 0], [255, 0, 0, 255])

    def test_rgba8_saturates(self):
        colors = np.array([[[2.0, -1.0, 0.5]]])

        np.testing.assert_array_equal(to_rgba8(colors)[0, 0], [255, 0, 128, 255])

    def test_save_frame(self, tmp_path, uniform_flow, no_barrier):
        path = os.path.join(str(tmp_path), 'frames', 'frame.png')

        save_frame(colorize(uniform_flow, no_barrier, 'speed', 0.1), path)

        assert os.path.exists(path)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
