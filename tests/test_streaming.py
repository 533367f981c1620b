"""
Tests for the streaming stage.

Pull propagation, open equilibrium edges, optional no-slip walls and
the clamp on every written value.
"""

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lbm_tunnel.lattice import EX, EY, W, Q, OPPOSITE, F_MIN, F_MAX
from lbm_tunnel.equilibrium import uniform_equilibrium
from lbm_tunnel.streaming import stream, stream_fast


def expected_inflow_value(d, u):
    """w_d (1 + 3 e.u + 4.5 (e.u)^2 - 1.5 u^2) with rho = 1, u = (u, 0)."""
    eu = EX[d] * u
    return W[d] * (1 + 3 * eu + 4.5 * eu**2 - 1.5 * u**2)


@pytest.fixture
def random_post():
    """Post-collision buffer with distinct in-range values."""
    rng = np.random.default_rng(42)
    return rng.uniform(0.01, 0.2, size=(Q, 10, 12))


@pytest.fixture(params=[stream, stream_fast], ids=['numpy', 'numba'])
def stream_fn(request):
    return request.param


class TestInterior:
    """Interior sites pull from their upstream neighbor."""

    def test_pull_scheme(self, stream_fn, random_post):
        f_next = stream_fn(random_post, 0.1, True)
        _, ny, nx = random_post.shape

        for d in range(Q):
            for j in range(1, ny - 1):
                for i in range(1, nx - 1):
                    assert f_next[d, j, i] == random_post[d, j - EY[d], i - EX[d]]

    def test_rest_direction_unchanged(self, stream_fn, random_post):
        f_next = stream_fn(random_post, 0.1, False)

        np.testing.assert_array_equal(f_next[0], random_post[0])


class TestOpenEdges:
    """Sites whose source is off the left or right edge get the inflow equilibrium."""

    @pytest.mark.parametrize("no_slip", [False, True])
    def test_left_edge_equilibrium(self, stream_fn, random_post, no_slip):
        u = 0.1
        f_next = stream_fn(random_post, u, no_slip)
        _, ny, nx = random_post.shape

        for d in (1, 5, 8):
            for j in range(1, ny - 1):
                assert np.isclose(f_next[d, j, 0], expected_inflow_value(d, u), rtol=1e-14)

    def test_right_edge_equilibrium(self, stream_fn, random_post):
        u = 0.08
        f_next = stream_fn(random_post, u, False)
        _, ny, nx = random_post.shape

        for d in (3, 6, 7):
            np.testing.assert_allclose(
                f_next[d, :, nx - 1], expected_inflow_value(d, u), rtol=1e-14
            )

    def test_corner_uses_equilibrium_even_with_walls(self, stream_fn, random_post):
        """An off-grid x source takes precedence over the wall rule."""
        u = 0.1
        f_next = stream_fn(random_post, u, True)

        # Direction 5 (+x, +y) at the bottom-left corner
        assert np.isclose(f_next[5, 0, 0], expected_inflow_value(5, u), rtol=1e-14)


class TestTopBottomEdges:
    """Horizontal edges bounce back with no-slip, else take the inflow equilibrium."""

    def test_no_slip_bottom_row(self, stream_fn, random_post):
        f_next = stream_fn(random_post, 0.1, True)
        _, ny, nx = random_post.shape

        for d in (2, 5, 6):
            for i in range(1, nx - 1):
                assert f_next[d, 0, i] == random_post[OPPOSITE[d], 0, i]

    def test_no_slip_top_row(self, stream_fn, random_post):
        f_next = stream_fn(random_post, 0.1, True)
        _, ny, nx = random_post.shape

        for d in (4, 7, 8):
            for i in range(1, nx - 1):
                assert f_next[d, ny - 1, i] == random_post[OPPOSITE[d], ny - 1, i]

    def test_without_walls_equilibrium(self, stream_fn, random_post):
        u = 0.1
        f_next = stream_fn(random_post, u, False)
        _, ny, nx = random_post.shape

        for d in (2, 5, 6):
            np.testing.assert_allclose(
                f_next[d, 0, 1:nx - 1], expected_inflow_value(d, u), rtol=1e-14
            )
        for d in (4, 7, 8):
            np.testing.assert_allclose(
                f_next[d, ny - 1, 1:nx - 1], expected_inflow_value(d, u), rtol=1e-14
            )


class TestClamp:
    """Every written value lies in [F_MIN, F_MAX]."""

    def test_adversarial_input(self, stream_fn):
        rng = np.random.default_rng(3)
        f_post = rng.uniform(-1e6, 1e6, size=(Q, 9, 11))
        f_post[1, 4, 4] = np.inf
        f_post[2, 5, 5] = -np.inf
        f_post[3, 6, 6] = np.nan

        for no_slip in (False, True):
            f_next = stream_fn(f_post, 0.5, no_slip)
            assert np.all(f_next >= F_MIN)
            assert np.all(f_next <= F_MAX)

    def test_in_range_values_untouched(self, stream_fn, random_post):
        f_next = stream_fn(random_post, 0.1, True)

        assert np.all(f_next > F_MIN)
        assert np.all(f_next < F_MAX)

    def test_nan_clamped_alike(self, random_post):
        """A NaN upstream value becomes F_MIN in both versions."""
        random_post[1, 2, 1] = np.nan

        f_std = stream(random_post, 0.1, True)
        f_fast = stream_fast(random_post, 0.1, True)

        assert f_std[1, 2, 2] == F_MIN
        np.testing.assert_array_equal(f_std, f_fast)


class TestStreamingConsistency:
    """NumPy and Numba versions agree and respect buffer rules."""

    @pytest.mark.parametrize("no_slip", [False, True])
    def test_fast_equals_standard(self, random_post, no_slip):
        f_std = stream(random_post, 0.12, no_slip)
        f_fast = stream_fast(random_post, 0.12, no_slip)

        np.testing.assert_allclose(f_fast, f_std, rtol=1e-15)

    def test_uniform_equilibrium_fixed_point(self, stream_fn):
        f = uniform_equilibrium(8, 6, 0.1)

        f_next = stream_fn(f, 0.1, False)

        np.testing.assert_allclose(f_next, f, rtol=1e-14)

    def test_single_cell_grid(self, stream_fn):
        f = uniform_equilibrium(1, 1, 0.05)

        f_next = stream_fn(f, 0.05, True)

        assert f_next.shape == (Q, 1, 1)
        assert np.all(np.isfinite(f_next))

    def test_aliased_output_rejected(self, stream_fn, random_post):
        with pytest.raises(ValueError):
            stream_fn(random_post, 0.1, True, out=random_post)

    def test_shape_mismatch_rejected(self, stream_fn, random_post):
        with pytest.raises(ValueError):
            stream_fn(random_post, 0.1, True, out=np.zeros((Q, 3, 3)))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
