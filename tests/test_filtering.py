import numpy as np
import pytest
from pyquaternion import Quaternion

from ismvoting.exceptions import ConfigurationInvalid
from ismvoting.filtering import MaximaFilterMerger, gaussian_reweight, merge_maxima
from ismvoting.votes import Hypothesis

from conftest import make_configs, make_maximum

RADII = {1: 0.5, 2: 2.0, 3: 0.3}


def make_filter(filter_type):
    return MaximaFilterMerger(make_configs(voting={'max_filter_type': filter_type}), RADII.get)


def test_merge_single_maximum_is_identity(rotation):
    maximum = make_maximum(1, (1, 2, 3), 0.4, size=(1, 2, 3), rotation=rotation, vote_indices=[4, 5])
    maximum.global_hypothesis = Hypothesis(1, 0.8)
    merged = merge_maxima([maximum])

    np.testing.assert_allclose(merged.position, maximum.position)
    np.testing.assert_allclose(merged.bounding_box.size, maximum.bounding_box.size)
    assert Quaternion.absolute_distance(merged.bounding_box.rotation, rotation) == pytest.approx(0, abs=1e-9)
    assert merged.weight == 0.4
    assert merged.class_id == 1
    assert merged.vote_indices == [4, 5]
    assert merged.global_hypothesis == Hypothesis(1, 0.8)


def test_merge_is_weighted_average():
    first = make_maximum(1, (0, 0, 0), 1.0, size=(1, 1, 1), vote_indices=[0])
    second = make_maximum(1, (4, 0, 0), 3.0, size=(3, 3, 3), vote_indices=[1, 2])
    second.global_hypothesis = Hypothesis(2, 0.9)
    merged = merge_maxima([first, second])

    np.testing.assert_allclose(merged.position, [3, 0, 0])
    np.testing.assert_allclose(merged.bounding_box.size, [2.5, 2.5, 2.5])
    assert merged.weight == 4.0
    assert merged.vote_indices == [0, 1, 2]
    assert merged.global_hypothesis == Hypothesis(2, 0.9)


def test_gaussian_reweight():
    assert gaussian_reweight(2.0, 0.0, 1.0) == 2.0
    assert gaussian_reweight(1.0, 1.0, 1.0) == pytest.approx(np.exp(-0.5))


def test_unknown_filter_type_fails_fast():
    with pytest.raises(ConfigurationInvalid):
        make_filter('median')


def test_none_keeps_maxima():
    maxima = [make_maximum(1, (0, 0, 0), 1.0), make_maximum(1, (0.1, 0, 0), 0.5)]
    assert make_filter('none').run(maxima) is maxima


def test_larger_radius_absorbs_smaller():
    small = make_maximum(1, (0, 0, 0), 1.0)
    large = make_maximum(2, (0.4, 0, 0), 0.5)

    # The maximum with the smaller search distance cannot subsume a larger one
    assert make_filter('simple').run([small, large]) == [small, large]
    # But the larger one subsumes the smaller, the stronger survives
    assert make_filter('simple').run([large, small]) == [small]


def test_equal_or_smaller_radius_is_absorbed():
    first = make_maximum(1, (0, 0, 0), 0.2)
    second = make_maximum(3, (0.4, 0, 0), 0.7)
    assert make_filter('simple').run([first, second]) == [second]


def test_distant_maxima_are_kept():
    first = make_maximum(1, (0, 0, 0), 0.2)
    second = make_maximum(1, (0.6, 0, 0), 0.7)
    assert make_filter('simple').run([first, second]) == [first, second]


def test_merge_filter_combines_same_class():
    maxima = [make_maximum(1, (0, 0, 0), 0.4, vote_indices=[0]),
              make_maximum(1, (0.2, 0, 0), 0.4, vote_indices=[1]),
              make_maximum(3, (0.1, 0, 0), 0.6, vote_indices=[2])]
    filtered = make_filter('merge').run(maxima)

    assert len(filtered) == 1
    assert filtered[0].class_id == 1
    assert filtered[0].weight == pytest.approx(0.8)
    assert sorted(filtered[0].vote_indices) == [0, 1]
