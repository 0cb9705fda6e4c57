import matplotlib

matplotlib.use("Agg")

import pytest

from curtain_cloth import ClothConfig, ClothMesh

DEVICE = "cpu"


def make_config(**overrides) -> ClothConfig:
    params = dict(
        rows=4,
        cols=4,
        width=2.0,
        height=2.0,
        mass=1.0,
        stiffness=1.0,
        damping=0.0,
        gravity=(0.0, -1.0, 0.0),
        device=DEVICE,
    )
    params.update(overrides)
    return ClothConfig(**params)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def mesh(config):
    return ClothMesh(config)


@pytest.fixture
def hanging_mesh(config):
    cloth = ClothMesh(config)
    cloth.pin_row(0)
    return cloth
