import numpy as np
import pytest
from pyquaternion import Quaternion

from ismvoting.aggregation import MaximaAggregator
from ismvoting.votes import Vote, BoundingBox

from conftest import make_configs


def make_votes(sizes, rotations=None):
    rotations = rotations or [None] * len(sizes)
    return [Vote(np.zeros(3), 1.0, 1, np.zeros(3), BoundingBox((0, 0, 0), size, rotation), index)
            for index, (size, rotation) in enumerate(zip(sizes, rotations))]


def test_size_is_contribution_weighted():
    aggregator = MaximaAggregator(make_configs())
    votes = make_votes([(1, 1, 1), (3, 3, 3)])
    maximum = aggregator.build_maximum(1, votes, np.zeros(3), 2.0, [0, 1], [3.0, 1.0])

    np.testing.assert_allclose(maximum.bounding_box.size, [1.5, 1.5, 1.5])
    assert maximum.bounding_box.rotation == Quaternion()
    assert maximum.vote_indices == [0, 1]


def test_zero_contributions_average_uniformly():
    aggregator = MaximaAggregator(make_configs())
    votes = make_votes([(1, 1, 1), (3, 3, 3)])
    maximum = aggregator.build_maximum(1, votes, np.zeros(3), 0.0, [0, 1], [0.0, 0.0])
    np.testing.assert_allclose(maximum.bounding_box.size, [2, 2, 2])


def test_rotation_average_of_equal_rotations(rotation):
    aggregator = MaximaAggregator(make_configs(voting={'average_rotation': True}))
    votes = make_votes([(1, 1, 1)] * 3, [rotation, -rotation, rotation])
    maximum = aggregator.build_maximum(1, votes, np.zeros(3), 3.0, [0, 1, 2], [1.0, 1.0, 1.0])
    assert Quaternion.absolute_distance(maximum.bounding_box.rotation, rotation) == pytest.approx(0, abs=1e-9)


@pytest.mark.parametrize('num_threads', [1, 4])
def test_thresholds_and_order(num_threads):
    configs = make_configs(voting={'min_threshold': 1.0, 'min_votes_threshold': 2, 'num_threads': num_threads})
    aggregator = MaximaAggregator(configs)
    votes = make_votes([(1, 1, 1)] * 6)
    clusters = ([np.array([index, 0.0, 0.0]) for index in range(4)],
                [5.0, 0.5, 2.0, 3.0],
                [[0, 1], [2, 3], [4], [3, 5]],
                [[1, 1], [1, 1], [1], [1, 1]])
    maxima = aggregator.aggregate(1, votes, clusters, [])

    assert [maximum.weight for maximum in maxima] == [5.0, 3.0]
    assert [maximum.vote_indices for maximum in maxima] == [[0, 1], [3, 5]]


def test_verifier_is_called_for_accepted_maxima():
    verified = []
    aggregator = MaximaAggregator(make_configs(), verifier=verified.append)
    votes = make_votes([(1, 1, 1)])
    maxima = aggregator.aggregate(2, votes, ([np.zeros(3)], [1.0], [[0]], [[1.0]]), [])
    assert verified == maxima
    assert maxima[0].class_id == 2


def test_misaligned_clusters_are_rejected():
    aggregator = MaximaAggregator(make_configs())
    votes = make_votes([(1, 1, 1)])
    with pytest.raises(ValueError):
        aggregator.aggregate(1, votes, ([np.zeros(3)], [1.0, 2.0], [[0]], [[1.0]]), [])
