"""Build maxima with pose from clustered votes."""
import logging
import threading
from multiprocessing.pool import ThreadPool

import numpy as np

from ismvoting.votes import BoundingBox, Maximum
from ismvoting.utils import quaternion_weighted_average


class MaximaAggregator:
    """Computes position, bounding box and orientation of each maximum from its member votes."""
    def __init__(self, configs, verifier=None):
        self._configs = configs.voting
        self._verifier = verifier
        self._logger = logging.getLogger(self.__class__.__name__)
        self._lock = threading.Lock()

    def _accepted(self, weight, indices):
        return (weight >= self._configs.min_threshold
                and len(indices) >= self._configs.min_votes_threshold
                and len(indices) > 0)

    def build_maximum(self, class_id, votes, center, weight, indices, contributions):
        contributions = np.asarray(contributions, dtype=np.float64)
        total = contributions.sum()
        if total > 0:
            contributions = contributions / total
        else:
            contributions = np.full(len(indices), 1.0 / len(indices))

        member_votes = [votes[index] for index in indices]
        size = contributions @ np.array([vote.bounding_box.size for vote in member_votes])
        rotation = None
        if self._configs.average_rotation:
            rotation = quaternion_weighted_average([vote.bounding_box.rotation for vote in member_votes],
                                                   contributions)
        return Maximum(class_id=class_id,
                       position=center,
                       weight=float(weight),
                       bounding_box=BoundingBox(center, size, rotation),
                       vote_indices=indices)

    def aggregate(self, class_id, votes, clusters, maxima):
        """Append one maximum per accepted cluster to maxima."""
        centers, weights, vote_indices, reweighted = clusters
        if not len(centers) == len(weights) == len(vote_indices) == len(reweighted):
            raise ValueError('Cluster lists differ in length: {} centers, {} weights, {} members, '
                             '{} contributions'.format(len(centers), len(weights), len(vote_indices),
                                                       len(reweighted)))

        def run(cluster):
            center, weight, indices, contributions = cluster
            if not self._accepted(weight, indices):
                return None
            maximum = self.build_maximum(class_id, votes, center, weight, indices, contributions)
            if self._verifier is not None:
                self._verifier(maximum)
            return maximum

        clusters = list(zip(centers, weights, vote_indices, reweighted))
        num_threads = self._configs.num_threads
        if num_threads > 1 and len(clusters) > 1:
            with ThreadPool(min(num_threads, len(clusters))) as pool:
                results = pool.map(run, clusters)
        else:
            results = [run(cluster) for cluster in clusters]

        accepted = [maximum for maximum in results if maximum is not None]
        with self._lock:
            maxima.extend(accepted)
        self._logger.debug('class %s: %d of %d clusters accepted', class_id, len(accepted), len(clusters))
        return maxima
