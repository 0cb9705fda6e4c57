"""
Curtain Cloth Package

Interactive cloth simulation for curtain-like panels: a grid of point masses
advanced by damped Verlet integration and relaxed by distance constraints,
run with NVIDIA Warp kernels and exported as a renderable surface.
"""

from .config import ClothConfig
from .geometry import (
    make_grid_positions,
    make_constraints,
    make_triangles,
    make_uvs,
    constraint_counts,
)
from .particles import Particle, ParticleSystem
from .surface import SurfaceBuffer
from .mesh import ClothMesh
from .curtain import PanelConfig, CurtainPanel, build_panel_mesh
from .io import save_trajectory, load_trajectory
from .logging_config import setup_logging

__all__ = [
    "ClothConfig",
    "make_grid_positions",
    "make_constraints",
    "make_triangles",
    "make_uvs",
    "constraint_counts",
    "Particle",
    "ParticleSystem",
    "SurfaceBuffer",
    "ClothMesh",
    "PanelConfig",
    "CurtainPanel",
    "build_panel_mesh",
    "save_trajectory",
    "load_trajectory",
    "setup_logging",
]
