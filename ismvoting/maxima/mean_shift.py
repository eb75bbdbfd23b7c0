"""Mean-shift clustering of votes."""
import numpy as np
from scipy.spatial import cKDTree

from ismvoting.exceptions import ConfigurationInvalid
from ismvoting.maxima import FinderIf

KERNELS = ('gaussian', 'flat')


class Finder(FinderIf):
    """
    Every vote seeds a mean-shift trajectory. Trajectories converging to the same
    mode form one cluster, its members being the seeding votes.
    """
    def __init__(self, configs):
        super(Finder, self).__init__(configs, 'mean_shift')
        if self._finder_configs.kernel not in KERNELS:
            raise ConfigurationInvalid('Unknown mean-shift kernel: {}'.format(self._finder_configs.kernel))

    def _kernel_weights(self, positions, weights, center, bandwidth):
        if self._finder_configs.kernel == 'flat':
            return weights.copy()
        distances_sqr = np.sum((positions - center)**2, axis=1)
        return np.exp(-0.5 * distances_sqr / (bandwidth * bandwidth)) * weights

    def _shift(self, tree, positions, weights, center, bandwidth):
        for _ in range(self._finder_configs.max_iter):
            neighbors = tree.query_ball_point(center, bandwidth)
            if not neighbors:
                break
            kernel_weights = self._kernel_weights(positions[neighbors], weights[neighbors], center, bandwidth)
            total = kernel_weights.sum()
            if total <= 0:
                break
            new_center = kernel_weights @ positions[neighbors] / total
            shift = np.linalg.norm(new_center - center)
            center = new_center
            if shift < self._finder_configs.epsilon:
                break
        return center

    def _group_modes(self, modes, merge_dist):
        """Greedily assign each mode to the first cluster closer than merge_dist."""
        labels = np.empty(len(modes), dtype=int)
        anchors = []
        for index, mode in enumerate(modes):
            for label, anchor in enumerate(anchors):
                if np.linalg.norm(mode - anchor) < merge_dist:
                    labels[index] = label
                    break
            else:
                labels[index] = len(anchors)
                anchors.append(mode)
        return labels, len(anchors)

    def find(self, votes, radius):
        centers, densities, vote_indices, reweighted = [], [], [], []
        if len(votes) == 0:
            return centers, densities, vote_indices, reweighted
        if radius <= 0:
            raise ConfigurationInvalid('Mean-shift bandwidth must be positive, got {}'.format(radius))

        positions, weights = self.vote_arrays(votes)
        tree = cKDTree(positions)
        modes = np.array([self._shift(tree, positions, weights, seed, radius) for seed in positions])
        labels, nbr_clusters = self._group_modes(modes, self._finder_configs.merge_ratio * radius)

        for label in range(nbr_clusters):
            members = np.flatnonzero(labels == label)
            member_weights = weights[members]
            if member_weights.sum() > 0:
                center = member_weights @ modes[members] / member_weights.sum()
            else:
                center = modes[members].mean(axis=0)

            neighbors = tree.query_ball_point(center, radius)
            density = self._kernel_weights(positions[neighbors], weights[neighbors], center, radius).sum() \
                if neighbors else 0.0

            centers.append(center)
            densities.append(float(density))
            vote_indices.append(members.tolist())
            reweighted.append(self._kernel_weights(positions[members], member_weights, center, radius).tolist())
        return centers, densities, vote_indices, reweighted
