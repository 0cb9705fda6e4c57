"""
Warp kernels for cloth simulation.

Per-particle kernels are launched with one thread per particle. Constraint
relaxation is launched with dim=1 so every constraint is visited in a fixed
order (Gauss-Seidel); two constraints share endpoints, so running them in
parallel would race on those writes.

Note: Kernels must be defined at module level (not inside classes) per Warp requirements.
"""

import warp as wp


@wp.kernel
def zero_vec3(a: wp.array(dtype=wp.vec3)):
    """Zero out a vec3 array.

    Args:
        a: Array to zero out (modified in place).
    """
    i = wp.tid()
    a[i] = wp.vec3(0.0, 0.0, 0.0)


@wp.kernel
def apply_gravity(
    acc: wp.array(dtype=wp.vec3),
    masses: wp.array(dtype=wp.float32),
    gravity: wp.vec3,
):
    """Accumulate the weight force of every particle.

    The force is gravity * mass, converted to acceleration like any other
    external force.

    Args:
        acc: Acceleration accumulator (modified in place).
        masses: Mass of each particle.
        gravity: Gravity vector.
    """
    i = wp.tid()
    force = gravity * masses[i]
    acc[i] = acc[i] + force / masses[i]


@wp.kernel
def add_force(
    acc: wp.array(dtype=wp.vec3),
    masses: wp.array(dtype=wp.float32),
    index: int,
    force: wp.vec3,
):
    """Accumulate force / mass into a single particle. Launch with dim=1."""
    acc[index] = acc[index] + force / masses[index]


@wp.kernel
def integrate(
    pos: wp.array(dtype=wp.vec3),
    prev: wp.array(dtype=wp.vec3),
    acc: wp.array(dtype=wp.vec3),
    pinned: wp.array(dtype=wp.int32),
    dt_sq: float,
    damping: float,
):
    """Advance particle positions with damped Verlet integration.

    next = pos * (2 - damping) - prev * (1 - damping) + acc * dt^2

    Args:
        pos: Particle positions (modified in place).
        prev: Positions one step ago (modified in place).
        acc: Accumulated acceleration, cleared after use.
        pinned: Pin mask (1 = pinned, 0 = free).
        dt_sq: Squared time step.
        damping: Damping factor in [0, 1).
    """
    i = wp.tid()

    # Pinned particles don't move
    if pinned[i] != 0:
        acc[i] = wp.vec3(0.0, 0.0, 0.0)
        return

    current = pos[i]
    next_pos = current * (2.0 - damping) - prev[i] * (1.0 - damping) + acc[i] * dt_sq

    prev[i] = current
    pos[i] = next_pos
    acc[i] = wp.vec3(0.0, 0.0, 0.0)


@wp.kernel
def relax_constraints(
    pos: wp.array(dtype=wp.vec3),
    pinned: wp.array(dtype=wp.int32),
    pairs: wp.array2d(dtype=wp.int32),
    rest: wp.array(dtype=wp.float32),
    stiffness: wp.array(dtype=wp.float32),
    begin: int,
    end: int,
    iterations: int,
    degenerate: wp.array(dtype=wp.int32),
):
    """Relax distance constraints sequentially. Launch with dim=1.

    Each iteration visits constraints begin..end-1 once, in order. Each free
    endpoint moves by half the stiffness-scaled error; a pinned endpoint
    stays put and its partner does not make up the difference.

    Args:
        pos: Particle positions (modified in place).
        pinned: Pin mask (1 = pinned, 0 = free).
        pairs: Constraint endpoints (M x 2 array of particle indices).
        rest: Rest length of each constraint.
        stiffness: Stiffness of each constraint.
        begin: First constraint to relax.
        end: One past the last constraint to relax.
        iterations: Number of passes over the range.
        degenerate: Counter of zero-length constraints met (length 1).
    """
    for it in range(iterations):
        for c in range(begin, end):
            i = pairs[c, 0]
            j = pairs[c, 1]

            delta = pos[j] - pos[i]
            distance = wp.length(delta)

            if distance > 0.0:
                correction = (rest[c] - distance) / distance
                translation = delta * correction * stiffness[c] * 0.5
                if pinned[i] == 0:
                    pos[i] = pos[i] - translation
                if pinned[j] == 0:
                    pos[j] = pos[j] + translation
            else:
                degenerate[0] = degenerate[0] + 1


@wp.kernel
def place_particle(
    pos: wp.array(dtype=wp.vec3),
    prev: wp.array(dtype=wp.vec3),
    index: int,
    value: wp.vec3,
):
    """Move one particle without giving it velocity. Launch with dim=1."""
    pos[index] = value
    prev[index] = value


@wp.kernel
def offset_from_rest(
    pos: wp.array(dtype=wp.vec3),
    prev: wp.array(dtype=wp.vec3),
    rest: wp.array(dtype=wp.vec3),
    offsets: wp.array(dtype=wp.vec3),
    axes: wp.vec3,
):
    """Set particles to rest + offset on the selected axes.

    Args:
        pos: Particle positions (modified in place).
        prev: Positions one step ago (modified in place).
        rest: Rest positions.
        offsets: Offset of each particle.
        axes: 1 for every axis that is driven, 0 for axes left to the simulation.
    """
    i = wp.tid()
    keep = wp.vec3(1.0, 1.0, 1.0) - axes
    target = wp.cw_mul(rest[i] + offsets[i], axes)
    p = wp.cw_mul(pos[i], keep) + target
    pos[i] = p
    prev[i] = wp.cw_mul(prev[i], keep) + target


@wp.kernel
def accumulate_normals(
    pos: wp.array(dtype=wp.vec3),
    triangles: wp.array(dtype=wp.int32),
    normals: wp.array(dtype=wp.vec3),
):
    """Add each triangle's area-weighted normal to its three vertices."""
    t = wp.tid()

    a = triangles[3 * t]
    b = triangles[3 * t + 1]
    c = triangles[3 * t + 2]
    normal = wp.cross(pos[b] - pos[a], pos[c] - pos[a])
    wp.atomic_add(normals, a, normal)
    wp.atomic_add(normals, b, normal)
    wp.atomic_add(normals, c, normal)


@wp.kernel
def normalize_normals(normals: wp.array(dtype=wp.vec3)):
    i = wp.tid()
    normals[i] = wp.normalize(normals[i])
