"""
Cloth geometry creation functions.

These functions create the initial particle positions, constraint topology,
rest lengths, and the triangle/uv layout used to render the cloth surface.
Particles are stored row-major: particle (row, col) lives at index
row * (cols + 1) + col, with row 0 being the top edge.
"""

from typing import Dict, Optional, Tuple

import numpy as np

from .config import ClothConfig

STRUCTURAL = 0
SHEAR = 1
BENDING = 2

FAMILY_NAMES = {
    STRUCTURAL: "structural",
    SHEAR: "shear",
    BENDING: "bending",
}

# Bending constraints relax at this fraction of the configured stiffness.
BENDING_SCALE = 0.5


def make_grid_positions(config: ClothConfig) -> np.ndarray:
    """Create rest positions for cloth particles.

    The sheet is centred on x = 0 and hangs downward from y = 0.

    Args:
        config: Cloth configuration.

    Returns:
        Array of shape (num_particles, 3) containing 3D positions.
    """
    rows, cols = config.rows, config.cols
    x = np.zeros((config.num_particles, 3), dtype=np.float32)

    for row in range(rows + 1):
        for col in range(cols + 1):
            idx = row * (cols + 1) + col
            x[idx, 0] = (col / cols) * config.width - config.width / 2
            x[idx, 1] = -(row / rows) * config.height
            x[idx, 2] = 0.0

    return x


def make_constraint_pairs(config: ClothConfig) -> Tuple[np.ndarray, np.ndarray]:
    """Create the particle index pairs of every distance constraint.

    Order is structural (per particle, horizontal then vertical), shear (per
    cell, both diagonals), horizontal bending, vertical bending.

    Args:
        config: Cloth configuration.

    Returns:
        Tuple of:
            - pairs: Array of shape (num_constraints, 2) with particle indices.
            - families: Array of shape (num_constraints,) with family ids.
    """
    rows, cols = config.rows, config.cols
    stride = cols + 1

    pairs = []
    families = []

    for row in range(rows + 1):
        for col in range(cols + 1):
            curr = row * stride + col
            # Horizontal edge (right neighbor)
            if col < cols:
                pairs.append((curr, curr + 1))
                families.append(STRUCTURAL)
            # Vertical edge (neighbor below)
            if row < rows:
                pairs.append((curr, curr + stride))
                families.append(STRUCTURAL)

    for row in range(rows):
        for col in range(cols):
            curr = row * stride + col
            pairs.append((curr, curr + stride + 1))
            pairs.append((curr + 1, curr + stride))
            families.extend((SHEAR, SHEAR))

    # Skip-one neighbors, horizontal first
    for row in range(rows + 1):
        for col in range(cols - 1):
            curr = row * stride + col
            pairs.append((curr, curr + 2))
            families.append(BENDING)

    for row in range(rows - 1):
        for col in range(cols + 1):
            curr = row * stride + col
            pairs.append((curr, curr + 2 * stride))
            families.append(BENDING)

    return (
        np.array(pairs, dtype=np.int32).reshape(-1, 2),
        np.array(families, dtype=np.int8),
    )


def compute_rest_lengths(positions: np.ndarray, pairs: np.ndarray) -> np.ndarray:
    """Measure the distance between the endpoints of each pair.

    Raises:
        ValueError: If any pair has coincident endpoints.
    """
    delta = positions[pairs[:, 1]] - positions[pairs[:, 0]]
    rest = np.linalg.norm(delta.astype(np.float64), axis=1).astype(np.float32)
    degenerate = np.flatnonzero(rest <= 0.0)
    if degenerate.size:
        a, b = pairs[degenerate[0]]
        raise ValueError(
            f"{degenerate.size} constraint(s) have zero rest length "
            f"(first between particles {a} and {b})"
        )
    return rest


def family_stiffness(families: np.ndarray, stiffness: float) -> np.ndarray:
    """Per-constraint stiffness, with bending scaled down."""
    values = np.full(families.shape[0], stiffness, dtype=np.float32)
    values[families == BENDING] = stiffness * BENDING_SCALE
    return values


def make_constraints(
    positions: np.ndarray, config: ClothConfig
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Create the full constraint set for a grid.

    Rest lengths are taken from the given positions, so any displacement
    applied before this call becomes part of the rest shape.

    Returns:
        Tuple of (pairs, rest_lengths, stiffness, families).
    """
    pairs, families = make_constraint_pairs(config)
    rest = compute_rest_lengths(positions, pairs)
    return pairs, rest, family_stiffness(families, config.stiffness), families


def constraint_counts(rows: int, cols: int) -> Dict[str, int]:
    """Number of constraints per family for a rows x cols cell grid."""
    return {
        "structural": rows * (cols + 1) + cols * (rows + 1),
        "shear": 2 * rows * cols,
        "bending": (rows + 1) * max(cols - 1, 0) + (cols + 1) * max(rows - 1, 0),
    }


def make_triangles(config: ClothConfig) -> np.ndarray:
    """Create the triangle index buffer.

    Every cell (row, col) yields triangles (a, b, c) and (b, d, c) where
    a is its top-left corner, b top-right, c bottom-left and d bottom-right.

    Returns:
        Array of shape (num_cells * 6,) of uint32 vertex indices.
    """
    rows, cols = config.rows, config.cols
    stride = cols + 1

    indices = np.zeros(config.num_cells * 6, dtype=np.uint32)
    k = 0
    for row in range(rows):
        for col in range(cols):
            a = row * stride + col
            b = a + 1
            c = a + stride
            d = c + 1
            indices[k:k + 6] = (a, b, c, b, d, c)
            k += 6

    return indices


def make_uvs(config: ClothConfig) -> np.ndarray:
    """Texture coordinates (col / cols, row / rows) per particle."""
    cols_uv = np.arange(config.cols + 1, dtype=np.float32) / config.cols
    rows_uv = np.arange(config.rows + 1, dtype=np.float32) / config.rows
    u, v = np.meshgrid(cols_uv, rows_uv)
    return np.stack([u.ravel(), v.ravel()], axis=1).astype(np.float32)


def make_pleats(
    config: ClothConfig, depth: float, fold_width: float
) -> np.ndarray:
    """Depth displacement producing vertical pleats.

    Each column is pushed along z by sin(col * 2*pi / fold_width) * depth, so
    the pleats run from the top edge to the bottom edge.

    Returns:
        Array of shape (num_particles,) with z offsets.
    """
    if fold_width <= 0:
        raise ValueError(f"fold_width must be positive, got {fold_width}")
    frequency = 2.0 * np.pi / fold_width
    cols = np.arange(config.cols + 1, dtype=np.float64)
    profile = np.sin(cols * frequency) * depth
    return np.tile(profile, config.rows + 1).astype(np.float32)


def row_indices(config: ClothConfig, row: int) -> Optional[np.ndarray]:
    """Particle indices of a grid row, or None when out of range."""
    if row < 0 or row > config.rows:
        return None
    start = row * config.row_stride
    return np.arange(start, start + config.row_stride, dtype=np.int32)
