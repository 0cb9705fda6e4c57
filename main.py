#!/usr/bin/env python3
"""
Main entry point for curtain cloth simulation.

Usage:
    python main.py simulate --rows 16 --cols 16 --save trajectory.npy --animate
    python main.py curtain --side left --frames 120 --open --snapshot curtain.png
"""

import argparse
import logging
import sys

from curtain_cloth import (
    ClothConfig,
    ClothMesh,
    CurtainPanel,
    PanelConfig,
    save_trajectory,
    setup_logging,
)


def run_simulate(args):
    """Drape a cloth hanging from its top row."""
    print("=== Cloth Drape ===")

    config = ClothConfig(
        rows=args.rows,
        cols=args.cols,
        width=args.width,
        height=args.height,
        mass=args.mass,
        stiffness=args.stiffness,
        damping=args.damping,
        gravity=tuple(args.gravity),
        iterations=args.iterations,
        dt=args.dt,
        steps=args.steps,
        device=args.device,
    )

    print(f"Config: {config.cols}x{config.rows} cells, stiffness={config.stiffness}, damping={config.damping}")
    print(f"Steps: {config.steps}, dt={config.dt:.6f}")

    mesh = ClothMesh(config)
    mesh.pin_row(0)
    print(f"Device: {config.device}")
    for family in ("structural", "shear", "bending"):
        print(f"  {family}: {mesh.constraint_count(family)} constraints")

    print("Running simulation...")
    rest = mesh.particles.rest_positions()
    trajectory = mesh.run(record=True)
    print(f"Trajectory shape: {trajectory.shape}")

    if len(trajectory):
        sag = rest[:, 1] - trajectory[-1][:, 1]
        print(f"Max sag: {sag.max():.4f}, mean sag: {sag.mean():.4f}")

    if args.save:
        save_trajectory(trajectory, args.save)

    if args.animate:
        from curtain_cloth.visualization import animate_particles

        print("Creating animation...")
        animate_particles(trajectory, path=args.gif_path)
        print(f"Animation saved to {args.gif_path}")

    if args.plot:
        import matplotlib.pyplot as plt
        from curtain_cloth.visualization import plot_trajectories

        fig = plot_trajectories(trajectory)
        plt.savefig(args.plot_path)
        print(f"Trajectory plot saved to {args.plot_path}")

    print("Done!")
    return trajectory


def run_curtain(args):
    """Slide a curtain panel and capture its surface."""
    print("=== Curtain Panel ===")

    panel = PanelConfig(
        side=args.side,
        width=args.width,
        height=args.height,
        fold_depth=args.fold_depth,
        fold_width=args.fold_width,
        cols=args.cols,
        rows=args.rows,
        physics=args.physics,
        device=args.device,
    )
    curtain = CurtainPanel(panel, is_open=False)
    if args.open:
        curtain.open()

    dt = 1.0 / args.fps
    for _ in range(args.frames):
        curtain.update(dt)

    positions = curtain.surface.positions
    print(f"Offset: {curtain.offset:.3f} (target {curtain.target:.3f})")
    print(f"Surface: {curtain.surface.num_vertices} vertices, {curtain.surface.num_triangles} triangles")
    print(f"X range: [{positions[:, 0].min():.3f}, {positions[:, 0].max():.3f}]")

    if args.snapshot:
        import matplotlib.pyplot as plt
        from curtain_cloth.visualization import plot_surface

        plot_surface(curtain.surface)
        plt.savefig(args.snapshot)
        print(f"Surface snapshot saved to {args.snapshot}")

    return curtain


def main():
    parser = argparse.ArgumentParser(
        description="Curtain cloth simulation"
    )
    parser.add_argument(
        "--log-level", type=str, default="WARNING", help="Logging level (DEBUG, INFO, ...)"
    )
    parser.add_argument("--log-file", type=str, help="Also write logs to this file")
    parser.add_argument("--device", type=str, default=None, help="Warp device")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # --- Drape simulation ---
    sim_parser = subparsers.add_parser("simulate", help="Run a drape simulation")

    # Grid parameters
    sim_parser.add_argument("--rows", type=int, default=16, help="Grid cells along y")
    sim_parser.add_argument("--cols", type=int, default=16, help="Grid cells along x")
    sim_parser.add_argument("--width", type=float, default=2.0, help="Sheet width")
    sim_parser.add_argument("--height", type=float, default=2.0, help="Sheet height")
    sim_parser.add_argument("--mass", type=float, default=0.1, help="Particle mass")

    # Physics parameters
    sim_parser.add_argument("--stiffness", type=float, default=1.0, help="Constraint stiffness")
    sim_parser.add_argument("--damping", type=float, default=0.01, help="Verlet damping")
    sim_parser.add_argument(
        "--gravity", type=float, nargs=3, default=[0.0, -9.8, 0.0], help="Gravity vector"
    )
    sim_parser.add_argument(
        "--iterations", type=int, default=10, help="Relaxation passes per step"
    )

    # Simulation parameters
    sim_parser.add_argument("--dt", type=float, default=1.0 / 60.0, help="Time step")
    sim_parser.add_argument("--steps", type=int, default=240, help="Number of steps")

    # Output options
    sim_parser.add_argument("--save", type=str, help="Save trajectory to file")
    sim_parser.add_argument("--animate", action="store_true", help="Create animation GIF")
    sim_parser.add_argument(
        "--gif-path", type=str, default="cloth_animation.gif", help="GIF output path"
    )
    sim_parser.add_argument("--plot", action="store_true", help="Plot particle trajectories")
    sim_parser.add_argument(
        "--plot-path", type=str, default="trajectories.png", help="Plot output path"
    )

    # --- Curtain panel ---
    cur_parser = subparsers.add_parser("curtain", help="Run a curtain panel")
    cur_parser.add_argument("--side", choices=["left", "right"], default="left")
    cur_parser.add_argument("--width", type=float, default=10.0, help="Opening width")
    cur_parser.add_argument("--height", type=float, default=8.0, help="Panel height")
    cur_parser.add_argument("--fold-depth", type=float, default=0.3, help="Pleat depth")
    cur_parser.add_argument("--fold-width", type=float, default=6.0, help="Columns per pleat")
    cur_parser.add_argument("--rows", type=int, default=40, help="Grid cells along y")
    cur_parser.add_argument("--cols", type=int, default=80, help="Grid cells along x")
    cur_parser.add_argument("--physics", action="store_true", help="Step the cloth simulation")
    cur_parser.add_argument("--open", action="store_true", help="Slide the panel open")
    cur_parser.add_argument("--frames", type=int, default=120, help="Frames to run")
    cur_parser.add_argument("--fps", type=float, default=60.0, help="Frames per second")
    cur_parser.add_argument("--snapshot", type=str, help="Save a surface plot to this path")

    args = parser.parse_args()

    level = getattr(logging, args.log_level.upper(), None)
    if not isinstance(level, int):
        parser.error(f"unknown log level {args.log_level!r}")
    setup_logging(level, args.log_file)

    if args.command == "simulate":
        run_simulate(args)
    elif args.command == "curtain":
        run_curtain(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
