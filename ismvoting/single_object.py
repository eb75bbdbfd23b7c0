"""One maximum per class when the scene is known to contain a single object."""
import logging

import numpy as np
from scipy.spatial import cKDTree

from ismvoting.constants import SINGLE_OBJECT_TYPES, SINGLE_NONE, VOTING_SPACE, BANDWIDTH, MODEL_RADIUS
from ismvoting.exceptions import ConfigurationInvalid
from ismvoting.filtering import gaussian_reweight, merge_maxima, reweight_maximum
from ismvoting.votes import BoundingBox, Maximum
from ismvoting.utils import compute_centroid, farthest_distance, principal_axes_box


def scene_bounding_box(points):
    center, size, rotation = principal_axes_box(points)
    return BoundingBox(center, size, rotation)


class SingleObjectReducer:
    """
    The scene centroid is the query point. The neighborhood of each class is
    either its search distance (bandwidth), the farthest scene point from the
    centroid (model radius) or the complete voting space.
    """
    def __init__(self, configs, search_dist):
        self._max_type = configs.voting.single_object_max_type
        if self._max_type != SINGLE_NONE and self._max_type not in SINGLE_OBJECT_TYPES:
            raise ConfigurationInvalid('Unknown single object max type: {}, expected one of {}'.format(
                self._max_type, (SINGLE_NONE,) + tuple(SINGLE_OBJECT_TYPES)))
        self._search_dist = search_dist
        self._logger = logging.getLogger(self.__class__.__name__)

    def run(self, votes, maxima, points):
        if self._max_type == SINGLE_NONE:
            return maxima
        policy, source = SINGLE_OBJECT_TYPES[self._max_type]
        if source == 'votes':
            return self.compute_single_max_per_class(votes, points, policy)
        return self.merge_maxima_for_each_class(maxima, points, policy)

    def _class_search_dist(self, class_id, policy, model_radius):
        if policy == BANDWIDTH:
            return self._search_dist(class_id)
        if policy == MODEL_RADIUS:
            return model_radius
        raise ConfigurationInvalid('No fixed search distance for policy {}'.format(policy))

    def compute_single_max_per_class(self, votes, points, policy):
        """Gaussian kernel density of each class's votes around the scene centroid."""
        query = compute_centroid(points)
        model_radius = farthest_distance(points, query)
        bounding_box = scene_bounding_box(points)

        maxima = []
        for class_id, class_votes in sorted(votes.items()):
            positions = np.array([vote.position for vote in class_votes]).reshape(-1, 3)
            distances_sqr = np.sum((positions - query)**2, axis=1)
            if policy == VOTING_SPACE:
                indices = list(range(len(class_votes)))
                search_dist = float(np.sqrt(distances_sqr.max())) if len(class_votes) else 0.0
            else:
                search_dist = self._class_search_dist(class_id, policy, model_radius)
                indices = sorted(cKDTree(positions).query_ball_point(query, search_dist))

            density = 0.0
            if search_dist > 0:
                for index in indices:
                    density += gaussian_reweight(class_votes[index].weight, distances_sqr[index], search_dist)
            elif indices:
                # All votes coincide with the query point
                density = float(sum(class_votes[index].weight for index in indices))

            maxima.append(Maximum(class_id=class_id,
                                  position=query,
                                  weight=density,
                                  bounding_box=BoundingBox(query, bounding_box.size, bounding_box.rotation),
                                  vote_indices=indices))
        return maxima

    def merge_maxima_for_each_class(self, maxima, points, policy):
        """Reweight maxima near the scene centroid and merge them into one per class."""
        query = compute_centroid(points)
        model_radius = farthest_distance(points, query)

        used = [False] * len(maxima)
        result = []
        for i, max_i in enumerate(maxima):
            if used[i]:
                continue
            class_id = max_i.class_id
            search_dist = None if policy == VOTING_SPACE else self._class_search_dist(class_id, policy, model_radius)

            class_maxima = []
            for j in range(i, len(maxima)):
                if used[j] or maxima[j].class_id != class_id:
                    continue
                candidate = maxima[j]
                if search_dist is None:
                    class_maxima.append(candidate)
                    used[j] = True
                elif np.linalg.norm(candidate.position - query) < search_dist:
                    candidate = candidate.copy()
                    candidate.weight = reweight_maximum(candidate, query, search_dist)
                    class_maxima.append(candidate)
                    used[j] = True

            if class_maxima:
                result.append(merge_maxima(class_maxima))
        self._logger.debug('Merged %d maxima into %d', len(maxima), len(result))
        return result
