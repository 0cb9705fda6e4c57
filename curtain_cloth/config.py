"""
Configuration dataclass for cloth mesh parameters.
"""

import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

import warp as wp

DEFAULT_ITERATIONS = 10


def check_stiffness(stiffness: float) -> float:
    """Validate a constraint stiffness (correction strength per pass)."""
    stiffness = float(stiffness)
    if not 0.0 <= stiffness <= 1.0:
        raise ValueError(f"stiffness must be in [0, 1], got {stiffness}")
    return stiffness


def check_damping(damping: float) -> float:
    """Validate an integration damping factor."""
    damping = float(damping)
    if not 0.0 <= damping < 1.0:
        raise ValueError(f"damping must be in [0, 1), got {damping}")
    return damping


def check_vec3(value, name: str = "vector") -> Tuple[float, float, float]:
    """Coerce a 3-component sequence into a tuple of finite floats."""
    try:
        components = tuple(float(v) for v in value)
    except TypeError:
        raise ValueError(f"{name} must be a sequence of 3 numbers, got {value!r}")
    if len(components) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(components)}")
    if not all(math.isfinite(v) for v in components):
        raise ValueError(f"{name} must be finite, got {components}")
    return components


@dataclass
class ClothConfig:
    """Configuration for a cloth mesh.

    Attributes:
        rows: Number of grid cells along y. The grid has rows + 1 particle rows.
        cols: Number of grid cells along x. The grid has cols + 1 particle columns.
        width: Extent of the sheet along x.
        height: Extent of the sheet along y (row 0 is the top edge).
        mass: Mass of every particle.
        stiffness: Constraint correction strength per relaxation pass, in [0, 1].
        damping: Verlet damping factor in [0, 1). 0 keeps momentum, values near 1
            kill motion.
        gravity: Gravity vector. Its direction is an art-direction choice.
        iterations: Relaxation passes over every constraint per step.
        dt: Time step for batch runs (seconds per step).
        steps: Number of steps for batch runs.
        device: Warp device to use ('cpu' or 'cuda:0', etc.).
    """

    rows: int = 20
    cols: int = 20
    width: float = 2.0
    height: float = 2.0
    mass: float = 0.1
    stiffness: float = 1.0
    damping: float = 0.01
    gravity: Tuple[float, float, float] = field(default=(0.0, -9.8, 0.0))
    iterations: int = DEFAULT_ITERATIONS
    dt: float = 1.0 / 60.0
    steps: int = 240
    device: Optional[str] = None

    def __post_init__(self):
        """Validate parameters and set default device if not specified."""
        if int(self.rows) != self.rows or self.rows <= 0:
            raise ValueError(f"rows must be a positive integer, got {self.rows}")
        if int(self.cols) != self.cols or self.cols <= 0:
            raise ValueError(f"cols must be a positive integer, got {self.cols}")
        self.rows = int(self.rows)
        self.cols = int(self.cols)
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"width and height must be positive, got {self.width}x{self.height}"
            )
        if self.mass <= 0:
            raise ValueError(f"mass must be positive, got {self.mass}")
        self.stiffness = check_stiffness(self.stiffness)
        self.damping = check_damping(self.damping)
        self.gravity = check_vec3(self.gravity, "gravity")
        if self.iterations < 1:
            raise ValueError(f"iterations must be >= 1, got {self.iterations}")
        if self.dt < 0:
            raise ValueError(f"dt must be non-negative, got {self.dt}")
        if self.steps < 0:
            raise ValueError(f"steps must be non-negative, got {self.steps}")

        wp.init()
        if self.device is None:
            self.device = str(wp.get_device())

    @property
    def row_stride(self) -> int:
        """Particles per grid row."""
        return self.cols + 1

    @property
    def num_particles(self) -> int:
        """Total number of particles in the cloth."""
        return (self.rows + 1) * (self.cols + 1)

    @property
    def num_cells(self) -> int:
        """Number of grid quads."""
        return self.rows * self.cols

    @property
    def wp_device(self):
        """Get the warp device object."""
        return wp.get_device(self.device)
