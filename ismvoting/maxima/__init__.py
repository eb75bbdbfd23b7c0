"""Clustering strategies turning the votes of one class into weighted maxima."""
from abc import abstractmethod
from importlib import import_module

import numpy as np

from ismvoting.exceptions import ConfigurationInvalid


def get_finder(configs):
    """Load the strategy named by configs.voting.method."""
    method = configs.voting.method
    try:
        module = import_module('.' + method, __name__)
    except ImportError as error:
        raise ConfigurationInvalid('Unknown maxima finder: {}'.format(method)) from error
    return getattr(module, 'Finder')(configs)


class FinderIf:
    """
    Maxima finder interface.

    find() returns four index aligned lists:
        centers     - array (3,) per cluster, the weighted centroid
        weights     - float per cluster
        vote_indices - list of member vote indices per cluster
        reweighted  - list of per member contributions, same length as vote_indices
    """
    def __init__(self, configs, finder_configs):
        self._configs = configs
        self._finder_configs = getattr(configs.voting, finder_configs)

    @abstractmethod
    def find(self, votes, radius):
        """Cluster votes of a single class."""

    @staticmethod
    def vote_arrays(votes):
        positions = np.array([vote.position for vote in votes], dtype=np.float64).reshape(-1, 3)
        weights = np.array([vote.weight for vote in votes], dtype=np.float64)
        return positions, weights
