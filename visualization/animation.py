"""
Animation Generation

Render wind tunnel frames into an animation with matplotlib.
"""

import os
import sys

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.animation as animation

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lbm_tunnel.visualization import plot_frame


class LBMAnimator:
    """
    Generate animations from wind tunnel color frames.

    Parameters
    ----------
    output_path : str
        Target file (.gif uses Pillow, .mp4 needs FFmpeg)
    fps : int
        Frames per second
    """

    def __init__(self, output_path, fps=30):
        self.output_path = output_path
        self.fps = fps
        self.frames = []

    def add_frame(self, colors):
        """Store a copy of one color frame, shape (ny, nx, 3)."""
        self.frames.append(np.clip(colors, 0.0, 1.0).astype(np.float32))

    def record(self, tunnel, num_frames):
        """Advance the tunnel and store every frame."""
        tunnel.run(num_frames, verbose=False,
                   callback=lambda frame, colors: self.add_frame(colors))

    def generate_animation(self, frames_data=None):
        """
        Write the animation file.

        Parameters
        ----------
        frames_data : list of ndarray, optional
            Frames to use instead of the recorded ones
        """
        frames = self.frames if frames_data is None else frames_data
        if not frames:
            raise ValueError("no frames to animate")

        ny, nx, _ = frames[0].shape
        fig, ax = plt.subplots(figsize=(10, 10 * ny / nx))
        plot_frame(frames[0], ax=ax)
        image = ax.images[0]

        def update(i):
            image.set_data(np.clip(frames[i], 0.0, 1.0))
            return [image]

        anim = animation.FuncAnimation(
            fig, update, frames=len(frames), interval=1000 / self.fps, blit=True
        )

        directory = os.path.dirname(self.output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        writer = 'pillow' if self.output_path.endswith('.gif') else 'ffmpeg'
        anim.save(self.output_path, writer=writer, fps=self.fps)
        plt.close(fig)
        print(f"Saved: {self.output_path}")
        return self.output_path


if __name__ == "__main__":
    from lbm_tunnel.parameters import Parameters
    from lbm_tunnel.solver import WindTunnel
    from lbm_tunnel.boundary import create_cylinder_mask

    params = Parameters(300, 80, tau=0.53, inflow=0.1, mode='curl', steps_per_frame=20)
    tunnel = WindTunnel(params)
    tunnel.replace_barriers(create_cylinder_mask(300, 80, 60, 40, 8))

    animator = LBMAnimator('results/wind_tunnel.gif', fps=20)
    animator.record(tunnel, 200)
    animator.generate_animation()
