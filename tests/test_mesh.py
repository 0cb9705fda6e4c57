import numpy as np
import pytest

from curtain_cloth import ClothMesh
from curtain_cloth.geometry import BENDING

from conftest import make_config


def test_pinned_row_never_moves(hanging_mesh):
    rest = hanging_mesh.particles.rest_positions()
    top = np.arange(hanging_mesh.config.row_stride)

    for _ in range(30):
        hanging_mesh.step(1.0 / 60.0)

    np.testing.assert_array_equal(hanging_mesh.get_positions()[top], rest[top])
    np.testing.assert_array_equal(
        hanging_mesh.particles.previous_positions()[top], rest[top]
    )


def test_structural_constraint_count():
    rows, cols = 3, 5
    cloth = ClothMesh(make_config(rows=rows, cols=cols))
    assert cloth.constraint_count("structural") == rows * (cols + 1) + cols * (rows + 1)
    assert cloth.constraint_count("shear") == 2 * rows * cols
    assert cloth.constraint_count() == (
        cloth.constraint_count("structural")
        + cloth.constraint_count("shear")
        + cloth.constraint_count("bending")
    )
    with pytest.raises(ValueError):
        cloth.constraint_count("tearing")


def test_identical_meshes_evolve_identically():
    a = ClothMesh(make_config(rows=6, cols=6, damping=0.02))
    b = ClothMesh(make_config(rows=6, cols=6, damping=0.02))
    a.pin_row(0)
    b.pin_row(0)

    for dt in [0.016] * 20 + [0.01] * 5:
        a.step(dt)
        b.step(dt)

    np.testing.assert_array_equal(a.get_positions(), b.get_positions())
    np.testing.assert_array_equal(
        a.particles.previous_positions(), b.particles.previous_positions()
    )


def test_export_then_refresh_without_motion_is_idempotent():
    cloth = ClothMesh(make_config(gravity=(0.0, 0.0, 0.0)))
    cloth.pin_row(0)
    buffer = cloth.export_surface()
    initial = buffer.positions.copy()
    positions_handle = buffer.positions
    uvs = buffer.uvs.copy()
    indices = buffer.indices.copy()

    cloth.step(0.0)
    cloth.refresh_surface(buffer)

    assert buffer.positions is positions_handle
    assert buffer.version == 1
    np.testing.assert_allclose(buffer.positions, initial, atol=1e-6)
    np.testing.assert_array_equal(buffer.uvs, uvs)
    np.testing.assert_array_equal(buffer.indices, indices)


def test_exported_surface_layout(mesh):
    buffer = mesh.export_surface()
    config = mesh.config

    assert buffer.positions.shape == (config.num_particles, 3)
    assert buffer.uvs.shape == (config.num_particles, 2)
    assert buffer.num_triangles == 2 * config.num_cells
    np.testing.assert_array_equal(buffer.positions, mesh.particles.rest_positions())
    # Flat sheet: every normal faces the same way
    np.testing.assert_allclose(
        buffer.normals, np.tile([0.0, 0.0, -1.0], (config.num_particles, 1)), atol=1e-6
    )


def test_refresh_tracks_motion(hanging_mesh):
    buffer = hanging_mesh.export_surface()
    for _ in range(5):
        hanging_mesh.step(0.016)
    hanging_mesh.refresh_surface(buffer)

    np.testing.assert_array_equal(buffer.positions, hanging_mesh.get_positions())
    np.testing.assert_allclose(np.linalg.norm(buffer.normals, axis=1), 1.0, atol=1e-5)


def test_refresh_rejects_foreign_buffer(mesh):
    other = ClothMesh(make_config(rows=2, cols=2)).export_surface()
    with pytest.raises(ValueError):
        mesh.refresh_surface(other)


def test_drape_end_to_end():
    config = make_config(
        rows=4,
        cols=4,
        width=2.0,
        height=2.0,
        mass=1.0,
        stiffness=1.0,
        damping=0.0,
        gravity=(0.0, -1.0, 0.0),
    )
    cloth = ClothMesh(config)
    cloth.pin_row(0)
    rest = cloth.particles.rest_positions()

    trajectory = cloth.run(steps=60, dt=0.016)

    assert trajectory.shape == (60, config.num_particles, 3)
    final = cloth.get_positions()
    pinned = cloth.pinned_mask()

    assert pinned.sum() == config.cols + 1
    np.testing.assert_array_equal(final[pinned], rest[pinned])
    assert np.all(np.isfinite(final))
    assert np.all(final[~pinned, 1] < rest[~pinned, 1])


def test_negative_dt_is_rejected_without_side_effects(hanging_mesh):
    hanging_mesh.step(0.016)
    before = hanging_mesh.get_positions()

    with pytest.raises(ValueError):
        hanging_mesh.step(-0.016)
    with pytest.raises(ValueError):
        hanging_mesh.step(float("nan"))

    np.testing.assert_array_equal(hanging_mesh.get_positions(), before)


def test_particle_at_bounds(mesh):
    config = mesh.config
    assert mesh.particle_at(-1, 0) is None
    assert mesh.particle_at(0, -1) is None
    assert mesh.particle_at(config.cols + 1, 0) is None
    assert mesh.particle_at(0, config.rows + 1) is None

    particle = mesh.particle_at(2, 1)
    assert particle.index == 1 * config.row_stride + 2
    assert particle.rest == pytest.approx((0.0, -0.5, 0.0))
    assert not particle.pinned


def test_nearest_particle(mesh):
    assert mesh.nearest_particle((0.05, -0.45, 0.2)) == (2, 1)
    assert mesh.nearest_particle((-10.0, 10.0, 0.0)) == (0, 0)
    assert mesh.nearest_particle((10.0, -10.0, 0.0)) == (4, 4)


def test_pin_management(mesh):
    mesh.pin_row(0)
    assert mesh.pinned_mask()[: mesh.config.row_stride].all()
    assert not mesh.pinned_mask()[mesh.config.row_stride:].any()

    mesh.unpin_row(0)
    assert not mesh.pinned_mask().any()

    assert mesh.pin(3, 2)
    assert mesh.particle_at(3, 2).pinned
    assert mesh.unpin(3, 2)
    assert not mesh.pin(9, 9)

    with pytest.raises(ValueError):
        mesh.pin_row(mesh.config.rows + 1)


def test_override_carries_pinned_point(hanging_mesh):
    target = (0.3, 0.25, 0.1)
    assert hanging_mesh.override_position(0, 0, target)
    assert not hanging_mesh.override_position(0, 1, target)
    assert not hanging_mesh.override_position(-1, 0, target)

    for _ in range(10):
        hanging_mesh.step(0.016)

    particle = hanging_mesh.particle_at(0, 0)
    assert particle.position == pytest.approx(target)
    assert particle.previous == pytest.approx(target)


def test_drag_moves_free_point(hanging_mesh):
    assert not hanging_mesh.drag_to(1, 0, (0.0, 0.0, 1.0))
    assert hanging_mesh.drag_to(2, 3, (0.2, -1.2, 0.4))

    particle = hanging_mesh.particle_at(2, 3)
    assert particle.position == pytest.approx((0.2, -1.2, 0.4))
    assert particle.previous == pytest.approx((0.2, -1.2, 0.4))


def test_live_stiffness_and_damping(mesh):
    mesh.set_stiffness(0.4)
    stiffness = mesh.particles.constraint_stiffness()
    bending = mesh.families == BENDING
    np.testing.assert_allclose(stiffness[~bending], 0.4)
    np.testing.assert_allclose(stiffness[bending], 0.2)
    assert mesh.config.stiffness == 0.4

    mesh.set_damping(0.2)
    assert mesh.config.damping == 0.2

    with pytest.raises(ValueError):
        mesh.set_stiffness(1.5)
    with pytest.raises(ValueError):
        mesh.set_damping(1.0)
    assert mesh.config.damping == 0.2


def test_rest_lengths_are_fixed_after_construction(mesh):
    lengths = mesh.rest_lengths()
    mesh.translate((1.0, 2.0, 3.0))
    mesh.add_pleats(0.5, 4.0)
    for _ in range(3):
        mesh.step(0.016)
    np.testing.assert_array_equal(mesh.rest_lengths(), lengths)


def test_translate_moves_rest_shape(mesh):
    rest = mesh.particles.rest_positions()
    mesh.translate((1.0, 2.0, 0.0))
    np.testing.assert_allclose(mesh.particles.rest_positions(), rest + [1.0, 2.0, 0.0])
    np.testing.assert_allclose(mesh.get_positions(), rest + [1.0, 2.0, 0.0])
    np.testing.assert_allclose(mesh.particles.previous_positions(), rest + [1.0, 2.0, 0.0])


def test_pleats_displace_depth_only(mesh):
    rest = mesh.particles.rest_positions()
    mesh.add_pleats(1.0, 4.0)
    pleated = mesh.particles.rest_positions()

    np.testing.assert_array_equal(pleated[:, :2], rest[:, :2])
    np.testing.assert_allclose(pleated[:5, 2], [0.0, 1.0, 0.0, -1.0, 0.0], atol=1e-6)


def test_apply_offset_from_rest(hanging_mesh):
    for _ in range(5):
        hanging_mesh.step(0.016)
    rest = hanging_mesh.particles.rest_positions()
    sagged = hanging_mesh.get_positions()

    hanging_mesh.apply_offset((0.5, 0.0, 0.0), axes=(True, False, False))
    moved = hanging_mesh.get_positions()
    np.testing.assert_allclose(moved[:, 0], rest[:, 0] + 0.5)
    np.testing.assert_array_equal(moved[:, 1:], sagged[:, 1:])

    hanging_mesh.apply_offset((0.0, 1.0, 0.0))
    np.testing.assert_allclose(hanging_mesh.get_positions(), rest + [0.0, 1.0, 0.0])
    np.testing.assert_allclose(
        hanging_mesh.particles.previous_positions(), rest + [0.0, 1.0, 0.0]
    )

    with pytest.raises(ValueError):
        hanging_mesh.apply_offset(np.zeros((3, 3)))


def test_reset_returns_to_rest(hanging_mesh):
    for _ in range(10):
        hanging_mesh.step(0.016)
    hanging_mesh.reset()
    rest = hanging_mesh.particles.rest_positions()
    np.testing.assert_array_equal(hanging_mesh.get_positions(), rest)
    np.testing.assert_array_equal(hanging_mesh.particles.previous_positions(), rest)


def test_add_force_on_grid_point(mesh):
    assert mesh.add_force(1, 1, (0.0, 0.0, 4.0))
    assert not mesh.add_force(-1, 1, (0.0, 0.0, 4.0))
    index = mesh.index_of(1, 1)
    np.testing.assert_allclose(mesh.particles.accelerations()[index], [0.0, 0.0, 4.0])


def test_free_mask(hanging_mesh):
    mask = hanging_mesh.get_free_mask()
    assert mask.dtype == np.float32
    assert mask.sum() == hanging_mesh.config.num_particles - hanging_mesh.config.row_stride


def _constraint_error(cloth):
    positions = cloth.get_positions().astype(np.float64)
    pairs = cloth.constraint_pairs()
    lengths = np.linalg.norm(positions[pairs[:, 1]] - positions[pairs[:, 0]], axis=1)
    rest = cloth.rest_lengths().astype(np.float64)
    return float(np.mean(np.abs(lengths - rest) / rest))


def _hanging(**overrides):
    cloth = ClothMesh(make_config(**overrides))
    cloth.pin_row(0)
    return cloth


def test_meshes_from_one_config_stay_independent():
    config = make_config()
    a = ClothMesh(config)
    b = ClothMesh(config)

    a.set_damping(0.9)
    a.set_stiffness(0.2)

    assert a.config is not config
    assert b.config.damping == 0.0
    assert b.config.stiffness == 1.0
    assert config.damping == 0.0
    assert config.stiffness == 1.0
    stiffness = b.particles.constraint_stiffness()
    np.testing.assert_allclose(stiffness[b.families != BENDING], 1.0)


def test_non_integral_coordinates_are_out_of_range(mesh):
    assert mesh.particle_at(0.5, 0) is None
    assert mesh.index_of(0, 1.5) is None
    assert mesh.index_of("a", 0) is None
    assert not mesh.pin(1.25, 0)
    assert mesh.index_of(1.0, 2.0) == 2 * mesh.config.row_stride + 1
    assert mesh.particle_at(1.0, 0).index == 1


def test_upward_gravity_lifts_free_particles():
    cloth = _hanging(gravity=(0.0, 1.0, 0.0))
    rest = cloth.particles.rest_positions()

    for _ in range(30):
        cloth.step(0.016)

    final = cloth.get_positions()
    free = ~cloth.pinned_mask()
    bottom = np.arange(cloth.config.rows * cloth.config.row_stride, cloth.config.num_particles)

    assert np.all(np.isfinite(final))
    assert np.mean(final[free, 1] - rest[free, 1]) > 0.0
    assert np.all(final[bottom, 1] > rest[bottom, 1])


def test_damping_setter_slows_motion():
    still = _hanging(stiffness=0.1)
    damped = _hanging(stiffness=0.1)
    damped.set_damping(0.9)
    rest = still.particles.rest_positions()

    for _ in range(10):
        still.step(0.016)
        damped.step(0.016)

    travel = np.linalg.norm(still.get_positions() - rest, axis=1).sum()
    damped_travel = np.linalg.norm(damped.get_positions() - rest, axis=1).sum()
    assert damped_travel < travel


def test_stiffness_setter_loosens_constraints():
    stiff = _hanging()
    loose = _hanging()
    loose.set_stiffness(0.05)

    for _ in range(30):
        stiff.step(0.016)
        loose.step(0.016)

    assert _constraint_error(loose) > _constraint_error(stiff)
