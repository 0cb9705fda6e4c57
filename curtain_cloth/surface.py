"""
Renderable surface buffers for a cloth grid.
"""

from dataclasses import dataclass

import numpy as np
import warp as wp

from . import kernels


@dataclass
class SurfaceBuffer:
    """Vertex and index data for rendering a cloth sheet.

    Vertices are row-major (row * (cols + 1) + col). A renderer may keep a
    handle to any of these arrays: refreshing rewrites positions and normals
    in place and never reallocates or reorders them.

    Attributes:
        positions: Vertex positions, shape (num_vertices, 3).
        uvs: Texture coordinates, shape (num_vertices, 2).
        normals: Unit vertex normals, shape (num_vertices, 3).
        indices: Triangle vertex indices, shape (num_triangles * 3,).
        version: Incremented whenever positions change, so a renderer can tell
            it needs to re-upload.
    """

    positions: np.ndarray
    uvs: np.ndarray
    normals: np.ndarray
    indices: np.ndarray
    version: int = 0

    @property
    def num_vertices(self) -> int:
        return self.positions.shape[0]

    @property
    def num_triangles(self) -> int:
        return self.indices.shape[0] // 3

    def triangles(self) -> np.ndarray:
        """Indices reshaped to (num_triangles, 3)."""
        return self.indices.reshape(-1, 3)


class NormalSolver:
    """Computes area-weighted vertex normals on a warp device."""

    def __init__(self, indices: np.ndarray, num_vertices: int, device=None):
        self._device = wp.get_device(device)
        self.num_vertices = num_vertices
        self.num_triangles = indices.shape[0] // 3
        self._triangles = wp.array(
            indices.astype(np.int32), dtype=wp.int32, device=self._device
        )
        self._normals = wp.zeros(num_vertices, dtype=wp.vec3, device=self._device)

    def compute(self, pos: wp.array) -> np.ndarray:
        """Compute vertex normals for the given positions.

        Returns:
            Array of shape (num_vertices, 3). Vertices touching only
            degenerate triangles get a zero normal.
        """
        self._normals.zero_()
        wp.launch(
            kernels.accumulate_normals,
            dim=self.num_triangles,
            inputs=[pos, self._triangles, self._normals],
            device=self._device,
        )
        wp.launch(
            kernels.normalize_normals,
            dim=self.num_vertices,
            inputs=[self._normals],
            device=self._device,
        )
        return self._normals.numpy()
