"""
Cloth mesh: a rectangular grid of particles held together by distance constraints.
"""

import copy
import logging
import math
from typing import Optional, Tuple

import numpy as np

from .config import ClothConfig, check_damping, check_stiffness, check_vec3
from .geometry import (
    FAMILY_NAMES,
    family_stiffness,
    make_constraints,
    make_grid_positions,
    make_pleats,
    make_triangles,
    make_uvs,
    row_indices,
)
from .particles import Particle, ParticleSystem
from .surface import NormalSolver, SurfaceBuffer

logger = logging.getLogger(__name__)


class ClothMesh:
    """Cloth grid simulated with damped Verlet integration and constraint relaxation.

    Particles are built first, then structural, shear and bending constraints,
    in that order, so two meshes with the same configuration evolve
    identically under the same steps.

    Attributes:
        config: Cloth configuration. Only stiffness and damping change after
            construction, through set_stiffness and set_damping.
        particles: The particle system holding positions and constraints.
        families: Family id (structural, shear, bending) of each constraint.
        indices: Static triangle index buffer.
        uvs: Static texture coordinates.
    """

    def __init__(self, config: ClothConfig):
        """Build the particle grid and its constraints.

        Args:
            config: Cloth configuration.
        """
        # Private copy: stiffness and damping change only through the setters
        self.config = copy.copy(config)
        self._device = config.wp_device

        positions = make_grid_positions(config)
        self.particles = ParticleSystem(positions, config.mass, device=self._device)

        pairs, rest, stiffness, families = make_constraints(positions, config)
        self.particles.add_constraints(pairs, stiffness, rest_lengths=rest)
        self.families = families

        self.indices = make_triangles(config)
        self.uvs = make_uvs(config)
        self._normals = NormalSolver(self.indices, config.num_particles, self._device)

        logger.info(
            "Built %dx%d cloth: %d particles, %d constraints on %s",
            config.cols,
            config.rows,
            config.num_particles,
            self.particles.num_constraints,
            config.device,
        )

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def step(self, dt: float):
        """Advance the cloth by one frame.

        Gravity is accumulated, particles are integrated, then every
        constraint is relaxed once per iteration in construction order.

        Args:
            dt: Elapsed time in seconds. Zero is allowed and only relaxes.

        Raises:
            ValueError: If dt is negative or not finite. The mesh is left untouched.
        """
        dt = float(dt)
        if not math.isfinite(dt) or dt < 0.0:
            raise ValueError(f"dt must be a non-negative finite number, got {dt}")

        config = self.config
        self.particles.apply_gravity(config.gravity)
        self.particles.integrate(dt * dt, config.damping)
        self.particles.relax(config.iterations)

    def run(
        self,
        steps: Optional[int] = None,
        dt: Optional[float] = None,
        record: bool = True,
    ) -> Optional[np.ndarray]:
        """Run simulation for multiple steps.

        Args:
            steps: Number of steps to run. If None, uses config.steps.
            dt: Time step. If None, uses config.dt.
            record: Whether to record trajectory.

        Returns:
            If record=True, returns trajectory array of shape (steps, num_particles, 3).
            Otherwise returns None.
        """
        if steps is None:
            steps = self.config.steps
        if dt is None:
            dt = self.config.dt

        trajectory = [] if record else None

        for _ in range(steps):
            self.step(dt)
            if record:
                trajectory.append(self.particles.positions())

        if record:
            if not trajectory:
                return np.zeros((0, self.config.num_particles, 3), dtype=np.float32)
            return np.array(trajectory)
        return None

    def reset(self):
        """Reset simulation to rest state."""
        self.particles.reset()

    def set_stiffness(self, stiffness: float):
        """Change constraint stiffness live. Bending keeps its reduced share."""
        stiffness = check_stiffness(stiffness)
        self.config.stiffness = stiffness
        self.particles.set_constraint_stiffness(
            family_stiffness(self.families, stiffness)
        )
        logger.debug("Stiffness set to %.4f", stiffness)

    def set_damping(self, damping: float):
        """Change integration damping live."""
        self.config.damping = check_damping(damping)
        logger.debug("Damping set to %.4f", self.config.damping)

    # ------------------------------------------------------------------
    # Grid addressing and pinning
    # ------------------------------------------------------------------

    def index_of(self, col: int, row: int) -> Optional[int]:
        """Flat particle index of (col, row), or None when out of range or not integral."""
        try:
            if int(col) != col or int(row) != row:
                return None
        except (TypeError, ValueError, OverflowError):
            return None
        col, row = int(col), int(row)
        if col < 0 or col > self.config.cols or row < 0 or row > self.config.rows:
            return None
        return row * self.config.row_stride + col

    def coordinate_of(self, index: int) -> Tuple[int, int]:
        """(col, row) of a flat particle index."""
        row, col = divmod(int(index), self.config.row_stride)
        return col, row

    def particle_at(self, col: int, row: int) -> Optional[Particle]:
        """Snapshot of the particle at (col, row), or None when out of range."""
        index = self.index_of(col, row)
        if index is None:
            return None
        return self.particles.particle(index)

    def _row(self, row: int) -> np.ndarray:
        indices = row_indices(self.config, row)
        if indices is None:
            raise ValueError(f"row {row} out of range [0, {self.config.rows}]")
        return indices

    def pin_row(self, row: int):
        """Pin every particle in a row, e.g. the top edge hanging from a rod."""
        self.particles.set_pinned(self._row(row), True)

    def unpin_row(self, row: int):
        self.particles.set_pinned(self._row(row), False)

    def pin(self, col: int, row: int) -> bool:
        index = self.index_of(col, row)
        if index is None:
            return False
        self.particles.pin(index)
        return True

    def unpin(self, col: int, row: int) -> bool:
        index = self.index_of(col, row)
        if index is None:
            return False
        self.particles.unpin(index)
        return True

    def pinned_mask(self) -> np.ndarray:
        """Boolean pin state of every particle, row-major."""
        return self.particles.pinned_mask()

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------

    def nearest_particle(self, point) -> Tuple[int, int]:
        """(col, row) of the particle closest to a point.

        Scans every particle; meant for the start of an interaction, not for
        every frame. Ties resolve to the first particle in row-major order.
        """
        target = np.asarray(check_vec3(point, "point"), dtype=np.float64)
        positions = self.particles.pos.numpy().astype(np.float64)
        distances = np.linalg.norm(positions - target, axis=1)
        return self.coordinate_of(int(np.argmin(distances)))

    def override_position(self, col: int, row: int, position) -> bool:
        """Move a pinned particle. Returns False when out of range or free."""
        index = self.index_of(col, row)
        if index is None:
            return False
        return self.particles.override_position(index, position)

    def drag_to(self, col: int, row: int, position) -> bool:
        """Move a free particle under a drag. Returns False when out of range or pinned."""
        index = self.index_of(col, row)
        if index is None:
            return False
        return self.particles.drag_to(index, position)

    def add_force(self, col: int, row: int, force) -> bool:
        index = self.index_of(col, row)
        if index is None:
            return False
        self.particles.add_force(index, force)
        return True

    # ------------------------------------------------------------------
    # Placement and offset animation
    # ------------------------------------------------------------------

    def translate(self, offset):
        """Move the whole sheet, rest shape included."""
        self.particles.shift(np.asarray(check_vec3(offset, "offset"), dtype=np.float32))

    def add_pleats(self, depth: float, fold_width: float):
        """Push columns along z into vertical pleats, rest shape included.

        Constraint rest lengths stay those of the flat sheet.
        """
        displacement = np.zeros((self.config.num_particles, 3), dtype=np.float32)
        displacement[:, 2] = make_pleats(self.config, depth, fold_width)
        self.particles.shift(displacement)

    def apply_offset(self, offset, axes=(True, True, True)):
        """Place particles at rest + offset on the selected axes without velocity.

        Args:
            offset: A 3-vector or an array of shape (num_particles, 3).
            axes: Which of x, y, z are driven.
        """
        self.particles.apply_offset(offset, axes)

    # ------------------------------------------------------------------
    # Topology readback
    # ------------------------------------------------------------------

    def constraint_count(self, family: Optional[str] = None) -> int:
        """Number of constraints, optionally of one family ('structural', 'shear', 'bending')."""
        if family is None:
            return self.particles.num_constraints
        ids = [k for k, name in FAMILY_NAMES.items() if name == family]
        if not ids:
            raise ValueError(f"unknown constraint family {family!r}")
        return int(np.count_nonzero(self.families == ids[0]))

    def constraint_pairs(self) -> np.ndarray:
        return self.particles.constraint_pairs()

    def rest_lengths(self) -> np.ndarray:
        return self.particles.constraint_rest_lengths()

    def get_positions(self) -> np.ndarray:
        """Get current positions as numpy array."""
        return self.particles.positions()

    def get_free_mask(self) -> np.ndarray:
        """Get mask for free (non-pinned) particles.

        Returns:
            Array of shape (num_particles,) with 1.0 for free, 0.0 for pinned.
        """
        return (~self.pinned_mask()).astype(np.float32)

    # ------------------------------------------------------------------
    # Surface export
    # ------------------------------------------------------------------

    def export_surface(self) -> SurfaceBuffer:
        """Allocate a render buffer holding the current cloth shape."""
        return SurfaceBuffer(
            positions=self.particles.positions(),
            uvs=self.uvs.copy(),
            normals=self._normals.compute(self.particles.pos).copy(),
            indices=self.indices.copy(),
        )

    def refresh_surface(self, buffer: SurfaceBuffer):
        """Rewrite a buffer's positions and normals in place from the current state.

        Raises:
            ValueError: If the buffer was not exported from a grid of this size.
        """
        expected = (self.config.num_particles, 3)
        if buffer.positions.shape != expected or buffer.normals.shape != expected:
            raise ValueError(
                f"buffer holds {buffer.positions.shape[0]} vertices, "
                f"cloth has {self.config.num_particles}"
            )
        np.copyto(buffer.positions, self.particles.pos.numpy())
        np.copyto(buffer.normals, self._normals.compute(self.particles.pos))
        buffer.version += 1
