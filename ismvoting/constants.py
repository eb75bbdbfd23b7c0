"""Constants for ISM voting."""
import os

# Paths
PACKAGE_PATH = os.path.dirname(__file__)
SETTINGS_PATH = os.path.join(PACKAGE_PATH, 'settings')

# Search distance per class
RADIUS_CONFIG = 'config'
RADIUS_FIRST_DIM = 'first_dim'
RADIUS_SECOND_DIM = 'second_dim'
RADIUS_TYPES = (RADIUS_CONFIG, RADIUS_FIRST_DIM, RADIUS_SECOND_DIM)

# Maxima filtering
FILTER_NONE = 'none'
FILTER_SIMPLE = 'simple'
FILTER_MERGE = 'merge'
FILTER_TYPES = (FILTER_NONE, FILTER_SIMPLE, FILTER_MERGE)

# Single object mode
SINGLE_NONE = 'none'
VOTING_SPACE = 'voting_space'
BANDWIDTH = 'bandwidth'
MODEL_RADIUS = 'model_radius'
SINGLE_OBJECT_TYPES = {
    'voting_space_votes': (VOTING_SPACE, 'votes'),
    'bandwidth_votes': (BANDWIDTH, 'votes'),
    'model_radius_votes': (MODEL_RADIUS, 'votes'),
    'voting_space_maxima': (VOTING_SPACE, 'maxima'),
    'bandwidth_maxima': (BANDWIDTH, 'maxima'),
    'model_radius_maxima': (MODEL_RADIUS, 'maxima'),
}

# Global features
KNN = 'KNN'
SVM = 'SVM'
GLOBAL_STRATEGIES = (KNN, SVM)
DISTANCE_TYPES = ('Euclidean', 'ChiSquared', 'Hellinger', 'HistIntersection')
# 0 disables fusion, see GlobalFeatureFusion for 1-6
INFLUENCE_TYPES = (0, 1, 2, 3, 4, 5, 6)

# Persistence
REFERENCE_FRAME_SIZE = 9
ARCHIVE_EXTENSIONS = ('.tar', '.tar.gz', '.tgz', '.tar.bz2', '.tar.xz')

# Logging, one logger per engine component
COMPONENT_LOGGERS = ('Voting', 'MaximaAggregator', 'MaximaFilterMerger', 'SingleObjectReducer', 'KnnIndex',
                     'GlobalFeatureClassifier', 'SvmClassifier', 'ResultRanker')
