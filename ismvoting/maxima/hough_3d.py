"""Hough voting in a regular 3D grid."""
from collections import defaultdict
from itertools import product

import numpy as np

from ismvoting.exceptions import ConfigurationInvalid
from ismvoting.maxima import FinderIf

NEIGHBOR_OFFSETS = [offset for offset in product((-1, 0, 1), repeat=3) if offset != (0, 0, 0)]


class Finder(FinderIf):
    """Accumulate votes in cubic bins, local maxima of the accumulator become clusters."""
    def __init__(self, configs):
        super(Finder, self).__init__(configs, 'hough_3d')

    def _is_local_maximum(self, accumulator, key):
        value = accumulator[key]
        for offset in NEIGHBOR_OFFSETS:
            neighbor = tuple(np.add(key, offset))
            neighbor_value = accumulator.get(neighbor, 0.0)
            # On plateaus only the lexicographically smallest bin survives
            if neighbor_value > value or (neighbor_value == value and neighbor < key):
                return False
        return True

    def find(self, votes, radius):
        centers, bin_weights, vote_indices, reweighted = [], [], [], []
        if len(votes) == 0:
            return centers, bin_weights, vote_indices, reweighted
        if radius <= 0:
            raise ConfigurationInvalid('Hough bin size must be positive, got {}'.format(radius))

        positions, weights = self.vote_arrays(votes)
        origin = positions.min(axis=0)
        bins = np.floor((positions - origin) / radius).astype(int)

        accumulator = defaultdict(float)
        members = defaultdict(list)
        for index, key in enumerate(map(tuple, bins)):
            accumulator[key] += weights[index]
            members[key].append(index)
        accumulator = dict(accumulator)

        for key in sorted(accumulator):
            if accumulator[key] <= self._finder_configs.min_bin_weight:
                continue
            if not self._is_local_maximum(accumulator, key):
                continue
            indices = members[key]
            member_weights = weights[indices]
            if member_weights.sum() > 0:
                center = member_weights @ positions[indices] / member_weights.sum()
            else:
                center = positions[indices].mean(axis=0)
            centers.append(center)
            bin_weights.append(float(accumulator[key]))
            vote_indices.append(list(indices))
            reweighted.append(member_weights.tolist())
        return centers, bin_weights, vote_indices, reweighted
