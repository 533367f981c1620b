"""
Obstacle Handling

The barrier field is a boolean mask with one flag per cell. Compute stages
only read it; every change goes through the editing interface below:

- single-cell toggles,
- strokes (device-independent pointer drawing),
- bulk replacement of the whole mask.

Mask helpers build common obstacle shapes and rasterize a brightness image
into grid space (row 0 = bottom of the displayed image).
"""

import numpy as np
from scipy import ndimage
from .parameters import validate_grid


class BarrierField:
    """
    Editable obstacle mask.

    Like the lattice state, the mask is allocated for a capacity and the
    active grid is a view into it.

    Parameters
    ----------
    nx, ny : int
        Active grid size
    max_nx, max_ny : int, optional
        Capacity (defaults to the active size)
    """

    def __init__(self, nx, ny, max_nx=None, max_ny=None):
        self.nx, self.ny = validate_grid(nx, ny)
        self.max_nx = max(self.nx, max_nx or self.nx)
        self.max_ny = max(self.ny, max_ny or self.ny)
        self._mask = np.zeros((self.max_ny, self.max_nx), dtype=np.bool_)

        # Stroke state
        self._stroke_value = None
        self._last = None
        self._in_stroke = False

    @property
    def mask(self):
        """Active obstacle mask, shape (ny, nx)."""
        return self._mask[:self.ny, :self.nx]

    def count(self):
        """Number of obstacle cells."""
        return int(np.count_nonzero(self.mask))

    def contains(self, x, y):
        return 0 <= x < self.nx and 0 <= y < self.ny

    def is_barrier(self, x, y):
        return bool(self._mask[y, x]) if self.contains(x, y) else False

    def clear(self):
        self._mask[...] = False

    def replace(self, mask):
        """
        Replace the whole mask.

        Raises
        ------
        ValueError
            If the mask shape is not (ny, nx)
        """
        mask = np.asarray(mask)
        if mask.shape != (self.ny, self.nx):
            raise ValueError(
                f"barrier mask shape {mask.shape} does not match grid {(self.ny, self.nx)}"
            )
        self.clear()
        self.mask[...] = mask.astype(np.bool_)

    def resize(self, nx, ny):
        """Change the active size and clear; grows the storage if needed."""
        nx, ny = validate_grid(nx, ny)
        if nx > self.max_nx or ny > self.max_ny:
            self.max_nx = max(nx, self.max_nx)
            self.max_ny = max(ny, self.max_ny)
            self._mask = np.zeros((self.max_ny, self.max_nx), dtype=np.bool_)
        self.nx, self.ny = nx, ny
        self.end_stroke()
        self.clear()

    # ------------------------------------------------------------------
    # Strokes
    # ------------------------------------------------------------------

    def begin_stroke(self):
        """Start a stroke; its first contact decides set or erase."""
        self._stroke_value = None
        self._last = None
        self._in_stroke = True

    def end_stroke(self):
        self._stroke_value = None
        self._last = None
        self._in_stroke = False

    def paint(self, x, y):
        """
        Extend the current stroke to grid point (x, y).

        The segment from the previous point is filled so fast pointer
        motion leaves no gaps. Points outside the grid are skipped.
        """
        if not self._in_stroke:
            self.begin_stroke()
        x, y = int(x), int(y)

        if self._last is None:
            self._place(x, y)
        else:
            x0, y0 = self._last
            dx, dy = x - x0, y - y0
            steps = int(np.ceil(np.hypot(dx, dy)))
            for i in range(1, steps + 1):
                t = i / steps
                # Round half up, like a screen-space rasterizer
                ix = int(np.floor(x0 + dx * t + 0.5))
                iy = int(np.floor(y0 + dy * t + 0.5))
                self._place(ix, iy)

        self._last = (x, y)

    def _place(self, x, y):
        if not self.contains(x, y):
            return
        if self._stroke_value is None:
            self._stroke_value = not self._mask[y, x]
        self._mask[y, x] = self._stroke_value

    def toggle(self, x, y):
        """Flip a single cell (a one-point stroke)."""
        self.begin_stroke()
        self.paint(x, y)
        self.end_stroke()


def create_cylinder_mask(nx, ny, cx, cy, radius):
    """
    Create a solid mask for a circular cylinder.

    Parameters
    ----------
    nx, ny : int
        Grid dimensions
    cx, cy : float
        Cylinder center coordinates
    radius : float
        Cylinder radius

    Returns
    -------
    mask : ndarray
        Boolean mask (True for solid), shape (ny, nx)
    """
    x = np.arange(nx)
    y = np.arange(ny)
    X, Y = np.meshgrid(x, y)

    distance = np.sqrt((X - cx)**2 + (Y - cy)**2)
    return distance <= radius


def create_plate_mask(nx, ny, x, y0, y1):
    """Vertical plate in column x spanning rows y0..y1 inclusive."""
    mask = np.zeros((ny, nx), dtype=bool)
    mask[max(0, y0):min(ny, y1 + 1), x] = True
    return mask


def image_brightness(image):
    """
    Normalized brightness of an image array.

    Accepts grayscale (h, w) or color (h, w, 3|4) arrays, either uint8 or
    float in [0, 1]. Color brightness is the mean of the RGB channels.
    """
    image = np.asarray(image)
    if image.dtype == np.uint8:
        image = image.astype(np.float64) / 255.0
    else:
        image = image.astype(np.float64)
    if image.ndim == 3:
        image = image[..., :3].mean(axis=2)
    if image.ndim != 2:
        raise ValueError(f"expected a 2D or 3D image array, got shape {image.shape}")
    return image


def rasterize_image_mask(image, nx, ny, threshold=0.5, scale=1.0, invert=False):
    """
    Rasterize an image into an obstacle mask.

    The image is fitted into the grid keeping its aspect ratio, multiplied
    by ``scale``, centered, and thresholded: a cell is solid where the
    (optionally inverted) brightness exceeds ``threshold``. Image row 0 is
    the top of the picture; grid row 0 is the bottom.

    Parameters
    ----------
    image : ndarray
        Image array (see :func:`image_brightness`)
    nx, ny : int
        Grid dimensions
    threshold : float
        Brightness threshold in [0, 1]
    scale : float
        Extra scale factor applied after fitting
    invert : bool
        Use 1 - brightness

    Returns
    -------
    mask : ndarray
        Boolean mask, shape (ny, nx)
    """
    nx, ny = validate_grid(nx, ny)
    brightness = image_brightness(image)
    img_h, img_w = brightness.shape
    mask = np.zeros((ny, nx), dtype=bool)
    if img_h == 0 or img_w == 0:
        return mask

    fit = min(nx / img_w, ny / img_h)
    target_w = int(np.floor(img_w * fit * scale + 0.5))
    target_h = int(np.floor(img_h * fit * scale + 0.5))
    if target_w <= 0 or target_h <= 0:
        return mask

    # Bilinear resample at the target pixel centers
    rows = (np.arange(target_h) + 0.5) * img_h / target_h - 0.5
    cols = (np.arange(target_w) + 0.5) * img_w / target_w - 0.5
    rr, cc = np.meshgrid(rows, cols, indexing='ij')
    scaled = ndimage.map_coordinates(brightness, [rr, cc], order=1, mode='nearest')

    if invert:
        scaled = 1.0 - scaled
    solid = (scaled > threshold)[::-1]

    offset_x = (nx - target_w) // 2
    offset_y = (ny - target_h) // 2

    # Clip the placed image to the grid
    gx0, gy0 = max(0, offset_x), max(0, offset_y)
    gx1, gy1 = min(nx, offset_x + target_w), min(ny, offset_y + target_h)
    mask[gy0:gy1, gx0:gx1] = solid[gy0 - offset_y:gy1 - offset_y, gx0 - offset_x:gx1 - offset_x]
    return mask
