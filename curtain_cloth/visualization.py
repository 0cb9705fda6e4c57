"""
Visualization utilities for cloth simulation.
"""

from typing import List, Optional

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.animation as animation
from mpl_toolkits.mplot3d.art3d import Poly3DCollection

from .surface import SurfaceBuffer


def animate_particles(trajectory, path: Optional[str] = "cloth_animation.gif", interval=50):
    """Create an animated front view (x, y) of particle positions"""
    fig, ax = plt.subplots(figsize=(10, 8))

    x_min, x_max = trajectory[:, :, 0].min(), trajectory[:, :, 0].max()
    y_min, y_max = trajectory[:, :, 1].min(), trajectory[:, :, 1].max()

    def animate(frame):
        ax.clear()
        positions = trajectory[frame]
        ax.scatter(positions[:, 0], positions[:, 1], s=10, alpha=0.7)
        ax.set_xlim(x_min - 0.1, x_max + 0.1)
        ax.set_ylim(y_min - 0.1, y_max + 0.1)
        ax.set_title(f'Cloth Simulation - Frame {frame}/{len(trajectory)}')
        ax.set_xlabel('X Position')
        ax.set_ylabel('Y Position')
        ax.grid(True, alpha=0.3)

    anim = animation.FuncAnimation(fig, animate, frames=len(trajectory),
                                   interval=interval, repeat=True)

    if path:
        anim.save(path, writer=animation.PillowWriter(fps=max(1, 1000 // interval)))

    return anim


def plot_trajectories(
    trajectory: np.ndarray,
    particle_indices: Optional[List[int]] = None,
    figsize: tuple = (12, 8),
) -> plt.Figure:
    """Plot 3D paths of selected particles.

    Args:
        trajectory: Array of shape (frames, num_particles, 3) containing positions.
        particle_indices: Indices of particles to plot. If None, plots a sample.
        figsize: Figure size.

    Returns:
        The matplotlib figure.
    """
    if particle_indices is None:
        # Sample some particles across the cloth
        num_particles = trajectory.shape[1]
        particle_indices = list(range(0, num_particles, max(1, num_particles // 10)))

    fig = plt.figure(figsize=figsize)
    ax = fig.add_subplot(111, projection="3d")

    for idx in particle_indices:
        x = trajectory[:, idx, 0]
        y = trajectory[:, idx, 1]
        z = trajectory[:, idx, 2]
        ax.plot(x, z, y, label=f"Particle {idx}", alpha=0.7)

    ax.set_xlabel("X Position")
    ax.set_ylabel("Z Position")
    ax.set_zlabel("Y Position")
    ax.set_title("Particle Trajectories")
    ax.legend(loc="upper left", fontsize="small")

    return fig


def plot_particle_over_time(
    trajectory: np.ndarray,
    particle_index: int,
    figsize: tuple = (15, 4),
) -> plt.Figure:
    """Plot x, y and z position of a single particle over time.

    Args:
        trajectory: Array of shape (frames, num_particles, 3) containing positions.
        particle_index: Index of the particle to plot.
        figsize: Figure size.

    Returns:
        The matplotlib figure.
    """
    fig, axes = plt.subplots(1, 3, figsize=figsize)

    frames = np.arange(len(trajectory))
    for axis, (ax, label) in enumerate(zip(axes, ("X", "Y", "Z"))):
        ax.plot(frames, trajectory[:, particle_index, axis])
        ax.set_xlabel("Time (frame)")
        ax.set_ylabel(f"{label} Position")
        ax.set_title(f"Particle {particle_index} - {label} Position")
        ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def plot_surface(
    buffer: SurfaceBuffer,
    figsize: tuple = (10, 8),
    color: str = "#b01818",
) -> plt.Figure:
    """Render a surface buffer as a shaded triangle mesh.

    The cloth's y axis (up) is drawn as matplotlib's z axis.
    """
    fig = plt.figure(figsize=figsize)
    ax = fig.add_subplot(111, projection="3d")

    # Swap y and z so the cloth stands upright
    positions = buffer.positions[:, [0, 2, 1]]
    faces = positions[buffer.triangles().astype(np.int64)]
    ax.add_collection3d(
        Poly3DCollection(faces, facecolor=color, edgecolor="k", linewidths=0.1, alpha=0.9)
    )

    lo = positions.min(axis=0)
    hi = positions.max(axis=0)
    pad = 0.1
    ax.set_xlim(lo[0] - pad, hi[0] + pad)
    ax.set_ylim(lo[1] - pad, hi[1] + pad)
    ax.set_zlim(lo[2] - pad, hi[2] + pad)
    ax.set_xlabel("X")
    ax.set_ylabel("Z")
    ax.set_zlabel("Y")
    ax.set_title(f"Cloth surface ({buffer.num_triangles} triangles)")

    return fig
