"""
Visualization Stage

Derive one display color per cell from a finished generation.

Modes:
    density    ramp(1.5 * rho - 1)
    speed      ramp(2 * |u| - u_in)
    curl       gray(|50 * curl|)
    schlieren  gray(100 * |grad rho|)

with ramp(v) = (v, 1 - |v - 0.5|, 1 - v). Colors are not clamped; values
outside [0, 1] saturate only when converted for display.

Obstacles are drawn black in density and speed modes and red in curl and
schlieren modes.
"""

import os

import numpy as np
import matplotlib.pyplot as plt
from .observables import (
    compute_macroscopic, compute_curl, compute_density_gradient,
    compute_velocity_magnitude
)
from .parameters import validate_mode


CURL_SCALE = 50.0
SCHLIEREN_SCALE = 100.0

BARRIER_BLACK = (0.0, 0.0, 0.0)
BARRIER_HIGHLIGHT = (1.0, 0.0, 0.0)


def ramp_color(value):
    """
    Map scalar values to RGB: (v, 1 - |v - 0.5|, 1 - v).

    Parameters
    ----------
    value : float or ndarray

    Returns
    -------
    rgb : ndarray
        Shape value.shape + (3,)
    """
    v = np.asarray(value, dtype=np.float64)
    return np.stack([v, 1.0 - np.abs(v - 0.5), 1.0 - v], axis=-1)


def gray_color(value):
    v = np.asarray(value, dtype=np.float64)
    return np.stack([v, v, v], axis=-1)


def barrier_color(mode):
    """Overlay color for obstacle cells in the given mode."""
    validate_mode(mode)
    if mode in ('density', 'speed'):
        return BARRIER_BLACK
    return BARRIER_HIGHLIGHT


def colorize(f, barrier, mode, inflow):
    """
    Compute the display color of every cell.

    Parameters
    ----------
    f : ndarray
        Finished generation, shape (Q, ny, nx)
    barrier : ndarray
        Boolean obstacle mask, shape (ny, nx)
    mode : str
        One of 'density', 'speed', 'curl', 'schlieren'
    inflow : float
        Inflow velocity (offsets the speed ramp)

    Returns
    -------
    colors : ndarray
        RGB colors, shape (ny, nx, 3)
    """
    validate_mode(mode)
    rho, ux, uy = compute_macroscopic(f)

    if mode == 'density':
        colors = ramp_color(1.5 * rho - 1.0)
    elif mode == 'speed':
        colors = ramp_color(2.0 * compute_velocity_magnitude(ux, uy) - inflow)
    elif mode == 'curl':
        colors = gray_color(np.abs(CURL_SCALE * compute_curl(ux, uy)))
    else:
        colors = gray_color(SCHLIEREN_SCALE * compute_density_gradient(rho))

    colors[barrier] = barrier_color(mode)
    return colors


def to_rgba8(colors):
    """
    Convert colors to an 8-bit RGBA image for a rasterizer.

    Values are clipped to [0, 1]. Rows are flipped so image row 0 is the
    top of the tunnel.
    """
    ny, nx, _ = colors.shape
    rgba = np.empty((ny, nx, 4), dtype=np.uint8)
    rgba[..., :3] = np.round(np.clip(colors, 0.0, 1.0) * 255.0).astype(np.uint8)
    rgba[..., 3] = 255
    return rgba[::-1]


def plot_frame(colors, ax=None, title=None):
    """Show a color frame with y increasing upward."""
    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 10 * colors.shape[0] / colors.shape[1] + 0.5))
    ax.imshow(np.clip(colors, 0.0, 1.0), origin='lower', aspect='equal',
              interpolation='nearest')
    ax.set_axis_off()
    if title:
        ax.set_title(title)
    return ax


def save_frame(colors, save_path):
    """Write a color frame to an image file."""
    directory = os.path.dirname(save_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    plt.imsave(save_path, np.clip(colors, 0.0, 1.0), origin='lower')
