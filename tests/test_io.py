import logging

import numpy as np
import pytest

from curtain_cloth import ClothMesh, load_trajectory, save_trajectory, setup_logging

from conftest import make_config


def test_trajectory_round_trip(tmp_path):
    cloth = ClothMesh(make_config(rows=2, cols=3))
    cloth.pin_row(0)
    trajectory = cloth.run(steps=4, dt=0.016)

    path = tmp_path / "trajectory.npy"
    save_trajectory(trajectory, str(path))
    loaded = load_trajectory(str(path))

    np.testing.assert_array_equal(loaded, trajectory)


def test_load_rejects_non_trajectory(tmp_path):
    path = tmp_path / "flat.npy"
    np.save(path, np.zeros((4, 3)))
    with pytest.raises(ValueError):
        load_trajectory(str(path))


def test_run_without_recording_returns_none():
    cloth = ClothMesh(make_config(rows=2, cols=2, steps=3, dt=0.01))
    assert cloth.run(record=False) is None
    assert cloth.run(steps=0).shape == (0, 9, 3)


def test_setup_logging_is_idempotent(tmp_path):
    log_file = tmp_path / "cloth.log"
    logger = setup_logging(logging.DEBUG)
    assert len(logger.handlers) == 1

    logger = setup_logging(logging.INFO, str(log_file))
    assert len(logger.handlers) == 2
    assert logger.level == logging.INFO

    ClothMesh(make_config(rows=1, cols=1))
    for handler in logger.handlers:
        handler.flush()
    assert "Built 1x1 cloth" in log_file.read_text()

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
