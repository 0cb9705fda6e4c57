"""
Curtain panel rig.

A panel is a cloth sheet hanging from a rod: its top row is pinned, it is
placed left or right of centre and pleated along z. Opening and closing slide
the panel sideways at constant speed while a gentle wave runs down it.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from .config import ClothConfig
from .mesh import ClothMesh

logger = logging.getLogger(__name__)


@dataclass
class PanelConfig:
    """Settings of one curtain panel.

    Attributes:
        side: 'left' or 'right' of the opening.
        width: Width of the whole opening. A panel spans width / 2 + 2.
        height: Height of the panel.
        fold_depth: Depth of the pleats along z.
        fold_width: Number of columns per pleat.
        cols: Grid cells across the panel.
        rows: Grid cells down the panel.
        stiffness: Constraint stiffness.
        damping: Verlet damping.
        mass: Particle mass.
        gravity: Gravity vector.
        slide_speed: Opening/closing speed in units per second.
        flow_amount: Amplitude of the travelling wave.
        flow_speed: Angular speed of the travelling wave.
        physics: Step the cloth simulation during updates.
        max_dt: Largest time step handed to the simulation.
        device: Warp device.
    """

    side: str = "left"
    width: float = 10.0
    height: float = 8.0
    fold_depth: float = 0.3
    fold_width: float = 6.0
    cols: int = 80
    rows: int = 40
    stiffness: float = 0.01
    damping: float = 0.08
    mass: float = 0.1
    gravity: Tuple[float, float, float] = field(default=(0.0, -2.0, 0.0))
    slide_speed: float = 7.0
    flow_amount: float = 0.5
    flow_speed: float = 2.0
    physics: bool = False
    max_dt: float = 0.016
    device: Optional[str] = None

    def __post_init__(self):
        if self.side not in ("left", "right"):
            raise ValueError(f"side must be 'left' or 'right', got {self.side!r}")
        if self.slide_speed < 0:
            raise ValueError(f"slide_speed must be non-negative, got {self.slide_speed}")
        if self.max_dt <= 0:
            raise ValueError(f"max_dt must be positive, got {self.max_dt}")

    @property
    def direction(self) -> float:
        """-1 for the left panel, +1 for the right one."""
        return -1.0 if self.side == "left" else 1.0

    @property
    def open_offset(self) -> float:
        """Sideways offset that takes the panel fully off the opening."""
        return self.direction * (self.width * 0.75 + 2.0)

    def cloth_config(self) -> ClothConfig:
        return ClothConfig(
            rows=self.rows,
            cols=self.cols,
            width=self.width / 2 + 2,
            height=self.height,
            mass=self.mass,
            stiffness=self.stiffness,
            damping=self.damping,
            gravity=self.gravity,
            device=self.device,
        )


def build_panel_mesh(panel: PanelConfig) -> ClothMesh:
    """Create a pinned, placed and pleated cloth for a panel."""
    mesh = ClothMesh(panel.cloth_config())
    mesh.pin_row(0)
    mesh.translate((panel.direction * panel.width / 4, panel.height / 2, 0.0))
    mesh.add_pleats(panel.fold_depth, panel.fold_width)
    return mesh


class CurtainPanel:
    """A curtain panel that slides open and closed and can be dragged.

    Attributes:
        panel: Panel settings.
        mesh: The simulated cloth.
        surface: Render buffer kept current by update().
        offset: Current sideways offset from the closed position.
        target: Offset the panel is sliding towards.
        elapsed: Time accumulated by update(), drives the wave.
    """

    def __init__(self, panel: PanelConfig, is_open: bool = False):
        self.panel = panel
        self.mesh = build_panel_mesh(panel)
        self.surface = self.mesh.export_surface()
        self.offset = 0.0
        self.target = panel.open_offset if is_open else 0.0
        self.elapsed = 0.0
        self._dragged = None

        rows = panel.rows
        self._row_phase = np.repeat(
            np.arange(rows + 1, dtype=np.float64) / rows * math.pi, panel.cols + 1
        )

    @property
    def is_open(self) -> bool:
        return self.target != 0.0

    @property
    def settled(self) -> bool:
        return self.offset == self.target

    def open(self):
        self.target = self.panel.open_offset

    def close(self):
        self.target = 0.0

    def _advance_slide(self, delta: float):
        distance = self.target - self.offset
        step = self.panel.slide_speed * delta
        if abs(distance) > step:
            self.offset += math.copysign(step, distance)
        else:
            self.offset = self.target

    def wave(self) -> np.ndarray:
        """Sideways wave of every particle at the current time."""
        panel = self.panel
        return np.sin(self.elapsed * panel.flow_speed + self._row_phase) * panel.flow_amount

    def update(self, delta: float):
        """Advance the panel by one frame and refresh its surface.

        Raises:
            ValueError: If delta is negative.
        """
        if delta < 0:
            raise ValueError(f"delta must be non-negative, got {delta}")

        self.elapsed += delta
        self._advance_slide(delta)

        offsets = np.zeros((self.mesh.config.num_particles, 3), dtype=np.float32)
        offsets[:, 0] = self.offset + self.wave()
        self.mesh.apply_offset(offsets, axes=(True, False, False))

        if self.panel.physics:
            self.mesh.step(min(delta, self.panel.max_dt))

        self.mesh.refresh_surface(self.surface)

    # ------------------------------------------------------------------
    # Dragging
    # ------------------------------------------------------------------

    @property
    def dragged(self) -> Optional[Tuple[int, int]]:
        """(col, row) of the particle being dragged, if any."""
        return self._dragged

    def begin_drag(self, point) -> Tuple[int, int]:
        """Grab the particle nearest to a point on the panel."""
        self._dragged = self.mesh.nearest_particle(point)
        logger.debug("Dragging particle %s", self._dragged)
        return self._dragged

    def drag(self, point) -> bool:
        """Move the grabbed particle. Pinned particles stay on the rod."""
        if self._dragged is None:
            return False
        col, row = self._dragged
        return self.mesh.drag_to(col, row, point)

    def end_drag(self):
        self._dragged = None
