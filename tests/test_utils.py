import numpy as np
import pytest
from pyquaternion import Quaternion

from ismvoting.utils import (farthest_distance, get_configs, principal_axes_box,
                             quaternion_weighted_average)


def test_default_configs():
    configs = get_configs()
    assert configs.voting.method == 'mean_shift'
    assert configs.global_features.strategy == 'KNN'


def test_experiment_configs_override_defaults(tmp_path):
    experiment = tmp_path / 'experiment'
    experiment.mkdir()
    (experiment / 'config.json').write_text('{"voting": {"radius": 0.5}}')
    configs = get_configs('experiment', str(tmp_path))
    assert configs.voting.radius == 0.5
    assert configs.voting.method == 'mean_shift'


def test_single_quaternion_average(rotation):
    average = quaternion_weighted_average([rotation], [0.3])
    assert Quaternion.absolute_distance(average, rotation) == pytest.approx(0, abs=1e-9)


def test_quaternion_average_respects_double_cover():
    rotation = Quaternion(axis=(1, 0, 0), angle=0.5)
    average = quaternion_weighted_average([rotation, -rotation], [1.0, 1.0])
    assert Quaternion.absolute_distance(average, rotation) == pytest.approx(0, abs=1e-9)


def test_quaternion_average_between_rotations():
    first = Quaternion(axis=(0, 0, 1), angle=0.0)
    second = Quaternion(axis=(0, 0, 1), angle=0.4)
    average = quaternion_weighted_average([first, second], [1.0, 1.0])
    assert average.angle == pytest.approx(0.2, abs=1e-6)


def test_principal_axes_box_of_axis_aligned_points():
    points = np.array([[x, y, z] for x in (0, 4) for y in (0, 2) for z in (0, 1)], dtype=float)
    center, size, rotation = principal_axes_box(points)
    np.testing.assert_allclose(center, [2, 1, 0.5], atol=1e-9)
    np.testing.assert_allclose(size, [4, 2, 1], atol=1e-9)
    assert rotation.norm == pytest.approx(1.0)


def test_farthest_distance():
    assert farthest_distance(np.zeros((0, 3)), np.zeros(3)) == 0.0
    assert farthest_distance([[3, 4, 0], [1, 0, 0]], np.zeros(3)) == pytest.approx(5.0)
