import numpy as np
import pytest
from pyquaternion import Quaternion

from ismvoting.global_features import GlobalFeature
from ismvoting.utils import get_configs
from ismvoting.votes import BoundingBox, Maximum


def make_configs(voting=None, global_features=None, **finders):
    """Default configs with overridden entries. Nested dicts must be changed by item access."""
    configs = get_configs()
    configs['voting']['num_threads'] = 1
    for key, value in (voting or {}).items():
        configs['voting'][key] = value
    for key, value in (global_features or {}).items():
        configs['global_features'][key] = value
    for finder, overrides in finders.items():
        for key, value in overrides.items():
            configs['voting'][finder][key] = value
    return configs


def make_box(size=(1, 1, 1), rotation=None):
    return BoundingBox((0, 0, 0), size, rotation)


def cast(engine, class_id, positions, weight=1.0, size=(1, 1, 1), rotation=None):
    for position in positions:
        engine.vote(position, weight, class_id, position, make_box(size, rotation), 0)


def make_maximum(class_id, position, weight, size=(1, 1, 1), rotation=None, vote_indices=(0,)):
    return Maximum(class_id, position, weight, BoundingBox(position, size, rotation), list(vote_indices))


def make_feature(class_id, descriptor, radius=0.5):
    return GlobalFeature(tuple(float(value) for value in np.eye(3).flatten()),
                         tuple(float(value) for value in descriptor), float(radius), class_id)


@pytest.fixture
def configs():
    return make_configs()


@pytest.fixture
def features_by_class():
    return {
        1: [[make_feature(1, (1.0, 0.0), 0.4), make_feature(1, (0.9, 0.1), 0.6)]],
        2: [[make_feature(2, (0.0, 1.0), 1.0)], [make_feature(2, (0.1, 0.9), 2.0)]],
    }


@pytest.fixture
def rotation():
    return Quaternion(axis=(0, 0, 1), angle=0.3)
