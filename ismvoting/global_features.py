"""Global feature classification and its fusion into the local voting results."""
import logging
import threading
from collections import namedtuple

import numpy as np
import torch

from ismvoting.constants import KNN, SVM, GLOBAL_STRATEGIES, DISTANCE_TYPES, INFLUENCE_TYPES
from ismvoting.exceptions import ClassifierUnavailable, ConfigurationInvalid
from ismvoting.votes import Hypothesis, NO_HYPOTHESIS
from ismvoting.utils import get_device

GlobalFeature = namedtuple('GlobalFeature', ['reference_frame', 'descriptor', 'radius', 'class_id'])


class GlobalFeatureDatabase:
    """
    Learned global features: class id -> list of feature clouds -> list of GlobalFeature.

    all_features is the flattened collection the nearest neighbor index is built on.
    """
    def __init__(self, features_by_class=None):
        self.features_by_class = {}
        self.all_features = []
        self.average_radii = {}
        if features_by_class:
            self.set_features(features_by_class)

    def set_features(self, features_by_class):
        self.features_by_class = {class_id: [list(cloud) for cloud in clouds]
                                  for class_id, clouds in features_by_class.items()}
        self.all_features = [feature
                             for class_id in sorted(self.features_by_class)
                             for cloud in self.features_by_class[class_id]
                             for feature in cloud]
        self.average_radii = {}
        for class_id, clouds in self.features_by_class.items():
            radii = [feature.radius for cloud in clouds for feature in cloud]
            if radii:
                self.average_radii[class_id] = float(np.mean(radii))

    def descriptors(self):
        return np.array([feature.descriptor for feature in self.all_features], dtype=np.float32)

    def labels(self):
        return np.array([feature.class_id for feature in self.all_features], dtype=np.int64)

    def __len__(self):
        return len(self.all_features)


class KnnIndex:
    """Brute force nearest neighbor search over the global feature database."""
    def __init__(self, database, distance_type):
        if distance_type not in DISTANCE_TYPES:
            raise ConfigurationInvalid('Unknown distance type: {}, expected one of {}'.format(
                distance_type, DISTANCE_TYPES))
        self._database = database
        self._distance_type = distance_type
        self._logger = logging.getLogger(self.__class__.__name__)
        self._lock = threading.Lock()
        self._built = False
        self._data = None
        self._labels = None
        self.build_count = 0

    @property
    def built(self):
        return self._built

    def build(self):
        """Build the index once, concurrent callers wait for the first build."""
        if self._built:
            return
        with self._lock:
            if self._built:
                return
            self._logger.info('Creating index for %d global features', len(self._database))
            self._data = torch.from_numpy(self._database.descriptors()).to(get_device())
            self._labels = self._database.labels()
            self.build_count += 1
            self._built = True

    def _distances(self, query):
        data = self._data
        if self._distance_type == 'Euclidean':
            return torch.sum((data - query)**2, dim=1)
        if self._distance_type == 'ChiSquared':
            total = data + query
            diff_sqr = (data - query)**2
            return torch.sum(torch.where(total > 0, diff_sqr / total.clamp(min=1e-12), torch.zeros_like(total)), dim=1)
        if self._distance_type == 'Hellinger':
            return torch.sum((data.clamp(min=0).sqrt() - query.clamp(min=0).sqrt())**2, dim=1)
        # Larger intersection means closer
        return -torch.sum(torch.min(data, query.expand_as(data)), dim=1)

    def knn_labels(self, descriptor, k):
        """Class labels of the k nearest database entries, closest first."""
        self.build()
        if len(self._labels) == 0:
            return []
        query = torch.as_tensor(np.asarray(descriptor, dtype=np.float32), device=self._data.device)
        distances = self._distances(query.reshape(1, -1))
        k = min(k, len(self._labels))
        _, indices = torch.topk(distances, k, largest=False)
        return self._labels[indices.cpu().numpy()].tolist()


class GlobalFeatureClassifier:
    """Classifies global descriptors by nearest neighbor voting or by SVM."""
    def __init__(self, configs, index, svm):
        self._configs = configs.global_features
        if self._configs.strategy not in GLOBAL_STRATEGIES:
            raise ConfigurationInvalid('Unknown global feature strategy: {}, expected one of {}'.format(
                self._configs.strategy, GLOBAL_STRATEGIES))
        self.index = index
        self._svm = svm
        self.svm_unavailable = False
        self._logger = logging.getLogger(self.__class__.__name__)
        self._lock = threading.Lock()

    @property
    def strategy(self):
        # Sticky fallback: without a usable SVM model the nearest neighbor strategy is used
        return KNN if self.svm_unavailable else self._configs.strategy

    def classify(self, descriptors, class_id, single_object_mode=False):
        """Return (global hypothesis, hypothesis for class_id)."""
        if self.strategy == SVM:
            if self._svm is None or not self._svm.loaded:
                self._fall_back('No SVM model loaded')
            else:
                try:
                    return self._classify_svm(descriptors, class_id, single_object_mode)
                except ClassifierUnavailable as error:
                    self._fall_back(error)
        return self._classify_knn(descriptors, class_id)

    def _fall_back(self, reason):
        with self._lock:
            if self.svm_unavailable:
                return
            self.svm_unavailable = True
        self._logger.error('%s, falling back to %s', reason, KNN)

    def _classify_knn(self, descriptors, class_id):
        occurrences = {}
        all_entries = 0
        for descriptor in descriptors:
            # Might be less than k for a small database
            labels = self.index.knn_labels(descriptor, self._configs.k)
            all_entries += len(labels)
            for label in labels:
                occurrences[label] = occurrences.get(label, 0) + 1

        current = Hypothesis(class_id, 0.0)
        if all_entries > 0 and class_id in occurrences:
            current = Hypothesis(class_id, occurrences[class_id] / all_entries)

        best = NO_HYPOTHESIS
        for label in sorted(occurrences):
            score = occurrences[label] / all_entries
            if score > best.score:
                best = Hypothesis(int(label), score)
        return best, current

    def _classify_svm(self, descriptors, class_id, single_object_mode):
        responses = [self._svm.predict(descriptor) for descriptor in descriptors]
        response = select_svm_response(responses)
        if response is None:
            return NO_HYPOTHESIS, Hypothesis(class_id, 0.0)
        current_score = 0.0 if single_object_mode else float(response.all_scores.get(class_id, 0.0))
        return Hypothesis(int(response.label), float(response.score)), Hypothesis(class_id, current_score)


def select_svm_response(responses):
    """
    Majority label over all responses, then the response of that label with the highest score.

    Equal occurrence counts are resolved in favor of the label seen first.
    """
    if not responses:
        return None
    if len(responses) == 1:
        return responses[0]

    occurrences = {}
    for response in responses:
        occurrences[response.label] = occurrences.get(response.label, 0) + 1
    best_label, best_count = None, 0
    for label, count in occurrences.items():
        if count > best_count:
            best_label, best_count = label, count

    best_response = responses[0]
    best_score = -np.inf
    for response in responses:
        if response.label == best_label and response.score > best_score:
            best_score = response.score
            best_response = response
    return best_response


class GlobalFeatureFusion:
    """
    Fuses global hypotheses into maxima sorted by descending weight.

    1: take the global class for the top maximum if its score is high enough
    2: like 1, but the global class must be among the top classes as well
    3: take the global class for the top maximum if it is among the top classes
    4: upweight maxima agreeing with the global class by a fixed factor
    5: upweight maxima agreeing with the global class by the global score
    6: probabilistic sum of local weight and global score
    """
    def __init__(self, configs):
        self._configs = configs.global_features
        if self._configs.influence_type not in INFLUENCE_TYPES:
            raise ConfigurationInvalid('Unknown global feature influence type: {}, expected one of {}'.format(
                self._configs.influence_type, INFLUENCE_TYPES))

    def _global_class_among_top(self, maxima):
        top_weight = maxima[0].weight
        global_class = maxima[0].global_hypothesis.class_id
        for maximum in maxima:
            if maximum.weight < top_weight * self._configs.rate_limit:
                return False
            if maximum.class_id == global_class:
                return True
        return False

    def fuse(self, maxima):
        influence_type = self._configs.influence_type
        if not maxima or influence_type == 0:
            return maxima

        top = maxima[0]
        if influence_type in (1, 2):
            if top.global_hypothesis.score > self._configs.min_svm_score:
                if influence_type == 1 or self._global_class_among_top(maxima):
                    top.class_id = top.global_hypothesis.class_id
        elif influence_type == 3:
            if self._global_class_among_top(maxima):
                top.class_id = top.global_hypothesis.class_id
        elif influence_type == 4:
            for maximum in maxima:
                if maximum.class_id == maximum.global_hypothesis.class_id:
                    maximum.weight *= self._configs.weight_factor
        elif influence_type == 5:
            for maximum in maxima:
                if maximum.class_id == maximum.global_hypothesis.class_id:
                    maximum.weight *= 1 + maximum.global_hypothesis.score
        elif influence_type == 6:
            for maximum in maxima:
                local_weight = maximum.weight
                global_score = maximum.global_hypothesis.score
                maximum.weight = local_weight + global_score - local_weight * global_score
        return maxima
