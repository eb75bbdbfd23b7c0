"""Suppression and merging of nearby competing maxima."""
import logging

import numpy as np

from ismvoting.constants import FILTER_NONE, FILTER_SIMPLE, FILTER_MERGE, FILTER_TYPES
from ismvoting.exceptions import ConfigurationInvalid
from ismvoting.votes import BoundingBox, Maximum
from ismvoting.utils import quaternion_weighted_average


def merge_maxima(maxima):
    """
    Merge maxima of one class into a single maximum.

    Position and size are running weighted averages, the rotation a running
    quaternion average and the weight the sum of all weights. Hypotheses are
    taken from the member with the highest weight.
    """
    result = Maximum()
    strongest = None
    for maximum in maxima:
        total = result.weight + maximum.weight
        # Position and bounding box must be combined before the weight changes
        if result.weight > 0 and total > 0:
            position = (result.position * result.weight + maximum.position * maximum.weight) / total
            size = (result.bounding_box.size * result.weight + maximum.bounding_box.size * maximum.weight) / total
            rotation = quaternion_weighted_average([result.bounding_box.rotation, maximum.bounding_box.rotation],
                                                   [result.weight, maximum.weight])
        else:
            position = maximum.position.copy()
            size = maximum.bounding_box.size
            rotation = maximum.bounding_box.rotation
        result.position = position
        result.bounding_box = BoundingBox(position, size, rotation)
        result.class_id = maximum.class_id
        result.weight = total
        result.vote_indices.extend(maximum.vote_indices)
        if strongest is None or maximum.weight > strongest.weight:
            strongest = maximum

    if strongest is not None:
        result.global_hypothesis = strongest.global_hypothesis
        result.current_class_hypothesis = strongest.current_class_hypothesis
    return result


def gaussian_reweight(weight, distance_sqr, search_dist):
    """Gaussian kernel on the squared distance normalized by the search distance."""
    u = distance_sqr / (search_dist * search_dist)
    return float(np.exp(-0.5 * u) * weight)


def reweight_maximum(maximum, query, search_dist):
    distance_sqr = float(np.sum((maximum.position - query)**2))
    return gaussian_reweight(maximum.weight, distance_sqr, search_dist)


class MaximaFilterMerger:
    """Keeps the strongest of all maxima closer than the adaptive search distance."""
    def __init__(self, configs, search_dist):
        self._filter_type = configs.voting.max_filter_type
        if self._filter_type not in FILTER_TYPES:
            raise ConfigurationInvalid('Unknown max filter type: {}, expected one of {}'.format(
                self._filter_type, FILTER_TYPES))
        self._search_dist = search_dist
        self._logger = logging.getLogger(self.__class__.__name__)

    def run(self, maxima):
        if self._filter_type == FILTER_SIMPLE:
            return self.filter(maxima)
        if self._filter_type == FILTER_MERGE:
            return self.filter(maxima, merge=True)
        return maxima

    def filter(self, maxima, merge=False):
        filtered = []
        consumed = [False] * len(maxima)
        for i, max_i in enumerate(maxima):
            if consumed[i]:
                continue
            search_dist = self._search_dist(max_i.class_id)

            close = []
            for j in range(i + 1, len(maxima)):
                if consumed[j]:
                    continue
                max_j = maxima[j]
                dist = np.linalg.norm(max_j.position - max_i.position)
                # Only subsume maxima of classes with a smaller or equal search distance
                if dist < search_dist and self._search_dist(max_j.class_id) <= search_dist:
                    close.append(max_j)
                    consumed[j] = True

            if not close:
                filtered.append(max_i)
                continue
            close.append(max_i)

            if merge:
                same_class = {}
                for maximum in close:
                    same_class.setdefault(maximum.class_id, []).append(maximum)
                close = [merge_maxima(group) for group in same_class.values()]

            filtered.append(max(close, key=lambda maximum: maximum.weight))
        self._logger.debug('Filtered %d maxima to %d', len(maxima), len(filtered))
        return filtered
