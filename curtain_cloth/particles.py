"""
Point masses and distance constraints.

A ParticleSystem stores every point mass in flat warp arrays addressed by
particle index, and every distance constraint as a pair of those indices.
Constraints never hold references to particles, only indices into the arrays.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import warp as wp

from . import kernels
from .config import check_vec3

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Particle:
    """Snapshot of a single point mass.

    Attributes:
        index: Index of the particle in its system.
        position: Current position.
        previous: Position one step ago.
        rest: Undeformed position, the base for offset animation.
        mass: Particle mass.
        pinned: Whether the simulation may move the particle.
    """

    index: int
    position: Tuple[float, float, float]
    previous: Tuple[float, float, float]
    rest: Tuple[float, float, float]
    mass: float
    pinned: bool


class ParticleSystem:
    """Point masses advanced by Verlet integration and relaxed by distance constraints.

    Attributes:
        pos: Current particle positions (warp array).
        prev: Particle positions one step ago (warp array).
        rest: Rest positions (warp array).
        acc: Acceleration accumulator (warp array).
        masses: Particle masses (warp array).
        pins: Pin mask (warp array).
        pairs: Constraint endpoints (warp array, M x 2).
        rest_lengths: Constraint rest lengths (warp array).
        stiffness: Constraint stiffness (warp array).
        degenerate_hits: Zero-length constraints met during relaxation so far.
    """

    def __init__(
        self,
        positions: np.ndarray,
        masses: Union[float, Sequence[float], np.ndarray],
        device=None,
    ):
        """Create particles at rest at the given positions.

        Args:
            positions: Array of shape (num_particles, 3).
            masses: Mass of every particle, or one mass per particle.
            device: Warp device.

        Raises:
            ValueError: If positions are malformed or a mass is not positive.
        """
        positions = np.asarray(positions, dtype=np.float32)
        if positions.ndim != 2 or positions.shape[1] != 3 or positions.shape[0] == 0:
            raise ValueError(
                f"positions must have shape (n, 3) with n > 0, got {positions.shape}"
            )
        n = positions.shape[0]

        masses_np = np.broadcast_to(np.asarray(masses, dtype=np.float32), (n,)).copy()
        if not np.all(masses_np > 0.0):
            raise ValueError("particle masses must be positive")

        self._device = wp.get_device(device)
        self.num_particles = n

        self.pos = wp.array(positions, dtype=wp.vec3, device=self._device)
        self.prev = wp.array(positions, dtype=wp.vec3, device=self._device)
        self.rest = wp.array(positions, dtype=wp.vec3, device=self._device)
        self.acc = wp.zeros(n, dtype=wp.vec3, device=self._device)
        self.masses = wp.array(masses_np, dtype=wp.float32, device=self._device)
        self.pins = wp.zeros(n, dtype=wp.int32, device=self._device)

        self._pairs_np = np.zeros((0, 2), dtype=np.int32)
        self._rest_np = np.zeros(0, dtype=np.float32)
        self._stiffness_np = np.zeros(0, dtype=np.float32)
        self._upload_constraints()

        self._degenerate = wp.zeros(1, dtype=wp.int32, device=self._device)
        self.degenerate_hits = 0

    @property
    def device(self):
        return self._device

    @property
    def num_constraints(self) -> int:
        return self._pairs_np.shape[0]

    def _check_index(self, index: int) -> int:
        index = int(index)
        if index < 0 or index >= self.num_particles:
            raise IndexError(
                f"particle index {index} out of range [0, {self.num_particles})"
            )
        return index

    def _upload_constraints(self):
        if self.num_constraints == 0:
            self.pairs = None
            self.rest_lengths = None
            self.stiffness = None
            return
        device = self._device
        self.pairs = wp.array(self._pairs_np, dtype=wp.int32, device=device)
        self.rest_lengths = wp.array(self._rest_np, dtype=wp.float32, device=device)
        self.stiffness = wp.array(self._stiffness_np, dtype=wp.float32, device=device)

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def add_constraints(
        self,
        pairs: np.ndarray,
        stiffness: Union[float, np.ndarray],
        rest_lengths: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Append distance constraints.

        Rest lengths default to the current distance between the endpoints.
        They never change afterwards.

        Args:
            pairs: Array of shape (m, 2) with particle indices.
            stiffness: Stiffness shared by the new constraints, or one per constraint.
            rest_lengths: Optional precomputed rest lengths.

        Returns:
            Indices of the new constraints.

        Raises:
            ValueError: On self-pairs, out-of-range indices, stiffness outside
                [0, 1] or zero rest lengths.
        """
        pairs = np.asarray(pairs, dtype=np.int32).reshape(-1, 2)
        m = pairs.shape[0]
        if m == 0:
            return np.zeros(0, dtype=np.int64)
        if pairs.min() < 0 or pairs.max() >= self.num_particles:
            raise ValueError("constraint references a particle out of range")
        if np.any(pairs[:, 0] == pairs[:, 1]):
            raise ValueError("constraint endpoints must be distinct particles")

        stiffness_np = np.broadcast_to(
            np.asarray(stiffness, dtype=np.float32), (m,)
        ).copy()
        if np.any(stiffness_np < 0.0) or np.any(stiffness_np > 1.0):
            raise ValueError("constraint stiffness must be in [0, 1]")

        if rest_lengths is None:
            positions = self.pos.numpy()
            delta = positions[pairs[:, 1]] - positions[pairs[:, 0]]
            rest_lengths = np.linalg.norm(delta, axis=1)
        rest_np = np.asarray(rest_lengths, dtype=np.float32).reshape(m)
        if np.any(rest_np <= 0.0):
            raise ValueError(
                "constraint rest length must be positive (coincident endpoints)"
            )

        first = self.num_constraints
        self._pairs_np = np.concatenate([self._pairs_np, pairs])
        self._rest_np = np.concatenate([self._rest_np, rest_np])
        self._stiffness_np = np.concatenate([self._stiffness_np, stiffness_np])
        self._upload_constraints()
        return np.arange(first, first + m)

    def add_constraint(self, i: int, j: int, stiffness: float) -> int:
        """Append one distance constraint between particles i and j."""
        return int(self.add_constraints([(i, j)], stiffness)[0])

    def constraint_pairs(self) -> np.ndarray:
        return self._pairs_np.copy()

    def constraint_rest_lengths(self) -> np.ndarray:
        return self._rest_np.copy()

    def constraint_stiffness(self) -> np.ndarray:
        return self._stiffness_np.copy()

    def set_constraint_stiffness(self, stiffness: Union[float, np.ndarray]):
        """Replace the stiffness of every constraint."""
        values = np.broadcast_to(
            np.asarray(stiffness, dtype=np.float32), (self.num_constraints,)
        ).copy()
        if np.any(values < 0.0) or np.any(values > 1.0):
            raise ValueError("constraint stiffness must be in [0, 1]")
        self._stiffness_np = values
        self._upload_constraints()

    def relax(
        self, iterations: int = 1, begin: int = 0, end: Optional[int] = None
    ) -> int:
        """Relax constraints begin..end-1, once each per iteration, in order.

        Zero-length constraints are skipped for the pass that meets them.

        Returns:
            Number of zero-length constraints met.
        """
        if end is None:
            end = self.num_constraints
        if begin < 0 or end > self.num_constraints:
            raise IndexError(
                f"constraint range [{begin}, {end}) outside [0, {self.num_constraints})"
            )
        if iterations <= 0 or end <= begin:
            return 0

        self._degenerate.zero_()
        wp.launch(
            kernels.relax_constraints,
            dim=1,
            inputs=[
                self.pos,
                self.pins,
                self.pairs,
                self.rest_lengths,
                self.stiffness,
                int(begin),
                int(end),
                int(iterations),
                self._degenerate,
            ],
            device=self._device,
        )

        hits = int(self._degenerate.numpy()[0])
        if hits:
            self.degenerate_hits += hits
            logger.warning(
                "Skipped %d zero-length constraint correction(s); "
                "check for coincident rest positions",
                hits,
            )
        return hits

    def satisfy(self, index: int) -> int:
        """Relax a single constraint once."""
        index = int(index)
        if index < 0 or index >= self.num_constraints:
            raise IndexError(
                f"constraint index {index} out of range [0, {self.num_constraints})"
            )
        return self.relax(1, index, index + 1)

    # ------------------------------------------------------------------
    # Forces and integration
    # ------------------------------------------------------------------

    def add_force(self, index: int, force):
        """Accumulate force / mass into one particle's acceleration."""
        index = self._check_index(index)
        fx, fy, fz = check_vec3(force, "force")
        wp.launch(
            kernels.add_force,
            dim=1,
            inputs=[self.acc, self.masses, index, wp.vec3(fx, fy, fz)],
            device=self._device,
        )

    def apply_gravity(self, gravity):
        """Accumulate gravity * mass as a force on every particle."""
        gx, gy, gz = check_vec3(gravity, "gravity")
        wp.launch(
            kernels.apply_gravity,
            dim=self.num_particles,
            inputs=[self.acc, self.masses, wp.vec3(gx, gy, gz)],
            device=self._device,
        )

    def integrate(self, dt_squared: float, damping: float):
        """Verlet-integrate every free particle and clear accelerations."""
        wp.launch(
            kernels.integrate,
            dim=self.num_particles,
            inputs=[
                self.pos,
                self.prev,
                self.acc,
                self.pins,
                float(dt_squared),
                float(damping),
            ],
            device=self._device,
        )

    # ------------------------------------------------------------------
    # Pinning and external placement
    # ------------------------------------------------------------------

    def set_pinned(self, indices, pinned: bool = True):
        """Pin or unpin particles. Positions are left as they are."""
        indices = np.atleast_1d(np.asarray(indices, dtype=np.int64))
        if indices.size and (indices.min() < 0 or indices.max() >= self.num_particles):
            raise IndexError("particle index out of range")
        pins = self.pins.numpy()
        pins[indices] = 1 if pinned else 0
        wp.copy(self.pins, wp.array(pins, dtype=wp.int32, device=self._device))

    def pin(self, index: int):
        self.set_pinned(self._check_index(index), True)

    def unpin(self, index: int):
        self.set_pinned(self._check_index(index), False)

    def is_pinned(self, index: int) -> bool:
        return bool(self.pins.numpy()[self._check_index(index)])

    def pinned_mask(self) -> np.ndarray:
        return self.pins.numpy().astype(bool)

    def _place(self, index: int, position):
        x, y, z = check_vec3(position, "position")
        wp.launch(
            kernels.place_particle,
            dim=1,
            inputs=[self.pos, self.prev, index, wp.vec3(x, y, z)],
            device=self._device,
        )

    def override_position(self, index: int, position) -> bool:
        """Relocate a pinned particle, e.g. to carry it along with a moving rod.

        Position and previous are both set so no velocity is introduced.

        Returns:
            True if the particle is pinned and was moved.
        """
        index = self._check_index(index)
        if not self.is_pinned(index):
            return False
        self._place(index, position)
        return True

    def drag_to(self, index: int, position) -> bool:
        """Relocate a free particle held by an interactive drag.

        Returns:
            True if the particle is free and was moved.
        """
        index = self._check_index(index)
        if self.is_pinned(index):
            return False
        self._place(index, position)
        return True

    def apply_offset(self, offsets, axes=(True, True, True)):
        """Place particles at rest + offset on the selected axes.

        Args:
            offsets: A single 3-vector for all particles or an array of shape
                (num_particles, 3).
            axes: Which of x, y, z are driven; other axes keep their state.
        """
        offsets = np.asarray(offsets, dtype=np.float32)
        if offsets.shape == (3,):
            offsets = np.broadcast_to(offsets, (self.num_particles, 3))
        if offsets.shape != (self.num_particles, 3):
            raise ValueError(
                f"offsets must have shape (3,) or ({self.num_particles}, 3), "
                f"got {offsets.shape}"
            )
        ax, ay, az = (1.0 if a else 0.0 for a in axes)
        wp.launch(
            kernels.offset_from_rest,
            dim=self.num_particles,
            inputs=[
                self.pos,
                self.prev,
                self.rest,
                wp.array(np.ascontiguousarray(offsets), dtype=wp.vec3, device=self._device),
                wp.vec3(ax, ay, az),
            ],
            device=self._device,
        )

    def shift(self, displacement: np.ndarray):
        """Displace position, previous and rest of every particle alike.

        Constraint rest lengths are not recomputed.

        Args:
            displacement: A 3-vector or an array of shape (num_particles, 3).
        """
        displacement = np.broadcast_to(
            np.asarray(displacement, dtype=np.float32), (self.num_particles, 3)
        )
        for arr in (self.pos, self.prev, self.rest):
            moved = arr.numpy() + displacement
            wp.copy(arr, wp.array(moved, dtype=wp.vec3, device=self._device))

    def reset(self):
        """Return every particle to rest with no velocity or pending force."""
        wp.copy(self.pos, self.rest)
        wp.copy(self.prev, self.rest)
        wp.launch(
            kernels.zero_vec3,
            dim=self.num_particles,
            inputs=[self.acc],
            device=self._device,
        )

    # ------------------------------------------------------------------
    # Readback
    # ------------------------------------------------------------------

    def positions(self) -> np.ndarray:
        """Get current positions as numpy array."""
        return self.pos.numpy().copy()

    def previous_positions(self) -> np.ndarray:
        return self.prev.numpy().copy()

    def rest_positions(self) -> np.ndarray:
        return self.rest.numpy().copy()

    def accelerations(self) -> np.ndarray:
        return self.acc.numpy().copy()

    def particle(self, index: int) -> Particle:
        """Snapshot of one particle."""
        index = self._check_index(index)
        return Particle(
            index=index,
            position=tuple(float(v) for v in self.pos.numpy()[index]),
            previous=tuple(float(v) for v in self.prev.numpy()[index]),
            rest=tuple(float(v) for v in self.rest.numpy()[index]),
            mass=float(self.masses.numpy()[index]),
            pinned=bool(self.pins.numpy()[index]),
        )
