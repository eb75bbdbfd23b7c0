"""Per class bounding box statistics learned from training objects."""
import numpy as np

from ismvoting.constants import RADIUS_CONFIG, RADIUS_FIRST_DIM, RADIUS_SECOND_DIM, RADIUS_TYPES
from ismvoting.exceptions import ConfigurationInvalid


class BoundingBoxStatistics:
    """
    Average half extents of the training bounding boxes of each class.

    dimensions[class_id] = (avg_half_major, avg_half_median)
    variances[class_id] = (var_major, var_median)
    """
    def __init__(self, dimensions=None, variances=None):
        self.dimensions = {} if dimensions is None else dict(dimensions)
        self.variances = {} if variances is None else dict(variances)

    def determine(self, boxes_by_class):
        """Learn statistics from a mapping class id -> list of BoundingBox."""
        dimensions, variances = {}, {}
        for class_id, boxes in boxes_by_class.items():
            if len(boxes) == 0:
                continue
            # Sorted extents: [min, median, max], halved to get a "radius"
            half_sizes = np.array([np.sort(box.size) for box in boxes]) / 2
            major = half_sizes[:, 2]
            median = half_sizes[:, 1]
            dimensions[class_id] = (float(major.mean()), float(median.mean()))
            variances[class_id] = (float(np.mean(major**2) - major.mean()**2),
                                   float(np.mean(median**2) - median.mean()**2))
        self.dimensions = dimensions
        self.variances = variances

    def search_dist(self, class_id, radius_type, radius, factor):
        if radius_type == RADIUS_CONFIG:
            return radius
        if radius_type == RADIUS_FIRST_DIM:
            return self.dimensions[class_id][0] * factor
        if radius_type == RADIUS_SECOND_DIM:
            return self.dimensions[class_id][1] * factor
        raise ConfigurationInvalid('Unknown radius type: {}, expected one of {}'.format(radius_type, RADIUS_TYPES))
