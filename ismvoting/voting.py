"""Hough voting engine of the implicit shape model."""
import json
from functools import partial

import numpy as np
from scipy.spatial import cKDTree

from ismvoting.aggregation import MaximaAggregator
from ismvoting.constants import KNN, RADIUS_TYPES, SVM
from ismvoting.exceptions import ClassifierUnavailable, ConfigurationInvalid
from ismvoting.filtering import MaximaFilterMerger
from ismvoting.global_features import (GlobalFeatureClassifier, GlobalFeatureDatabase, GlobalFeatureFusion,
                                       KnnIndex)
from ismvoting.log import Logger
from ismvoting.maxima import get_finder
from ismvoting.persistence import VotingData, data_from_json, data_to_json, read_binary, write_binary
from ismvoting.ranking import keep_best_k, rank
from ismvoting.single_object import SingleObjectReducer, scene_bounding_box
from ismvoting.statistics import BoundingBoxStatistics
from ismvoting.svm import SvmClassifier
from ismvoting.utils import compute_centroid
from ismvoting.votes import Maximum, VoteStore


class Voting:
    """
    Accumulates votes of local features and extracts ranked maxima.

    global_descriptor(points, normals) computes global descriptors (array (n, D))
    of a scene region and is needed to verify maxima with global features when
    more than one object may be present. unpacker(path) extracts a packaged
    SVM model and returns the extracted file paths.
    """
    def __init__(self, configs, global_descriptor=None, unpacker=None):
        self._configs = configs
        self._logger = Logger(self.__class__.__name__)
        if configs.voting.radius_type not in RADIUS_TYPES:
            raise ConfigurationInvalid('Unknown radius type: {}, expected one of {}'.format(
                configs.voting.radius_type, RADIUS_TYPES))

        self._vote_store = VoteStore()
        self._statistics = BoundingBoxStatistics()
        self._finder = get_finder(configs)
        self._filter = MaximaFilterMerger(configs, self.search_dist)
        self._single_object = SingleObjectReducer(configs, self.search_dist)
        self._fusion = GlobalFeatureFusion(configs)

        self._database = GlobalFeatureDatabase()
        self._svm = SvmClassifier(unpacker)
        self._classifier = GlobalFeatureClassifier(configs, self._new_index(), self._svm)
        self._global_descriptor = global_descriptor
        self._single_object_features = None
        self._single_object_mode = False

    def _new_index(self):
        return KnnIndex(self._database, self._configs.global_features.distance_type)

    @property
    def statistics(self):
        return self._statistics

    @property
    def database(self):
        return self._database

    @property
    def classifier(self):
        return self._classifier

    @property
    def single_object_mode(self):
        return self._single_object_mode

    @property
    def svm_unavailable(self):
        return self._classifier.svm_unavailable

    ## Votes ##

    def vote(self, position, weight, class_id, keypoint, bounding_box, codeword_id):
        self._vote_store.vote(position, weight, class_id, keypoint, bounding_box, codeword_id)

    def get_votes(self, class_id=None):
        return self._vote_store.get_votes(class_id)

    def clear(self):
        self._vote_store.clear()

    ## Training data ##

    def determine_average_bounding_box_dimensions(self, boxes_by_class):
        self._statistics.determine(boxes_by_class)

    def forward_global_features(self, features_by_class):
        """Set the global features learned during training."""
        self._database.set_features(features_by_class)
        self._classifier.index = self._new_index()

    def set_global_features(self, global_features):
        """Global descriptors of the whole scene, switches to single object mode."""
        self._single_object_features = [getattr(feature, 'descriptor', feature) for feature in global_features]
        self._single_object_mode = True

    def search_dist(self, class_id):
        voting_configs = self._configs.voting
        return self._statistics.search_dist(class_id, voting_configs.radius_type,
                                            voting_configs.radius, voting_configs.radius_factor)

    ## Detection ##

    def find_maxima(self, points, normals=None):
        """Cluster the votes of each class and return maxima sorted by normalized weight."""
        votes = self._vote_store.get_votes()
        if not votes:
            return []
        self._logger.log_votes(votes)

        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        normals = None if normals is None else np.asarray(normals, dtype=np.float64)
        use_global_features = self._configs.global_features.enabled

        verifier = None
        if use_global_features and not self._single_object_mode:
            if self._global_descriptor is None:
                self._logger.warning('No global descriptor given, maxima are not verified with global features')
            elif len(points) > 0:
                verifier = partial(self._verify_with_global_features, points, normals, cKDTree(points))

        aggregator = MaximaAggregator(self._configs, verifier)
        maxima = []
        for class_id, class_votes in sorted(votes.items()):
            clusters = self._finder.find(class_votes, self._configs.voting.radius)
            aggregator.aggregate(class_id, class_votes, clusters, maxima)

        global_max = None
        if use_global_features and self._single_object_mode:
            global_max = self._classify_scene(points, maxima)

        if self._single_object_mode:
            if len(points) == 0:
                self._logger.warning('Empty scene, skipping single object maxima computation')
            else:
                maxima = self._single_object.run(votes, maxima, points)
            if global_max is not None:
                for maximum in maxima:
                    maximum.global_hypothesis = global_max.global_hypothesis
        else:
            maxima = self._filter.run(maxima)

        rank(maxima)
        if use_global_features:
            # Fusion might change weights and classes
            self._fusion.fuse(maxima)
            rank(maxima)
        keep_best_k(maxima, self._configs.voting.best_k)

        self._logger.log_maxima(maxima)
        return maxima

    def _classify_scene(self, points, maxima):
        """Classify the scene's global features and attach the result to all maxima."""
        global_max = Maximum()
        global_max.global_hypothesis, global_max.current_class_hypothesis = self._classifier.classify(
            self._single_object_features or [], 0, single_object_mode=True)
        for maximum in maxima:
            maximum.global_hypothesis = global_max.global_hypothesis

        # Without local maxima the global hypothesis is the only result
        if not maxima and len(points) > 0:
            global_max.class_id = global_max.global_hypothesis.class_id
            global_max.weight = global_max.global_hypothesis.score
            global_max.position = compute_centroid(points)
            global_max.bounding_box = scene_bounding_box(points)
            maxima.append(global_max)
        return global_max

    def _verify_with_global_features(self, points, normals, scene_tree, maximum):
        radius = self._database.average_radii.get(maximum.class_id)
        if radius is None:
            self._logger.warning('No global feature radius for class %s', maximum.class_id)
            return
        indices = sorted(scene_tree.query_ball_point(maximum.position, radius))
        if not indices:
            self._logger.warning('No scene points within %.4f of maximum of class %s', radius, maximum.class_id)
            return
        segmented_normals = None if normals is None else normals[indices]
        descriptors = self._global_descriptor(points[indices], segmented_normals)
        maximum.global_hypothesis, maximum.current_class_hypothesis = self._classifier.classify(
            descriptors, maximum.class_id)

    ## Persistence ##

    def _data(self):
        return VotingData(self._statistics.dimensions,
                          self._statistics.variances,
                          self._database.features_by_class,
                          self._configs.global_features.svm_path)

    def _commit(self, data):
        """Take over loaded data, nothing is changed if loading failed before."""
        global_configs = self._configs.global_features
        # A broken model only switches to the fallback, so it is loaded before anything is replaced
        if global_configs.enabled and global_configs.strategy == SVM:
            self._load_svm(data.svm_path or global_configs.svm_path)
        self._statistics = BoundingBoxStatistics(data.dimensions, data.variances)
        if global_configs.enabled:
            self.forward_global_features(data.global_features)

    def _load_svm(self, path):
        self._svm.close()
        try:
            self._svm.load(path)
        except ClassifierUnavailable as error:
            self._logger.error('%s, falling back to %s', error, KNN)
            self._classifier.svm_unavailable = True

    def save_data(self, path):
        with open(path, 'wb') as file:
            write_binary(file, self._data())

    def load_data(self, path):
        with open(path, 'rb') as file:
            data = read_binary(file, self._configs.global_features.enabled)
        self._commit(data)

    def data_to_json(self):
        return data_to_json(self._data())

    def data_from_json(self, json_data):
        self._commit(data_from_json(json_data, self._configs.global_features.enabled))

    def save_json(self, path):
        with open(path, 'w') as file:
            json.dump(self.data_to_json(), file, indent=4)

    def load_json(self, path):
        with open(path) as file:
            self.data_from_json(json.load(file))

    def close(self):
        """Delete files unpacked for the SVM."""
        self._svm.close()
