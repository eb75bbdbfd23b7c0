"""Read and write learned voting data in binary and JSON format."""
from collections import namedtuple

import numpy as np

from ismvoting.constants import REFERENCE_FRAME_SIZE
from ismvoting.exceptions import DataInconsistency
from ismvoting.global_features import GlobalFeature

VotingData = namedtuple('VotingData', ['dimensions', 'variances', 'global_features', 'svm_path'])


def check_statistics(dimensions, variances):
    if set(dimensions) != set(variances):
        raise DataInconsistency('Bounding box dimensions and variances cover different classes: {} vs {}'.format(
            sorted(dimensions), sorted(variances)))


def check_global_features(global_features):
    if not any(cloud for clouds in global_features.values() for cloud in clouds):
        raise DataInconsistency('No global features in loaded dataset found, disable global features and try again')


def make_feature(reference_frame, descriptor, radius, class_id):
    reference_frame = tuple(float(value) for value in reference_frame)
    if len(reference_frame) != REFERENCE_FRAME_SIZE:
        raise DataInconsistency('Reference frame has {} values, expected {}'.format(
            len(reference_frame), REFERENCE_FRAME_SIZE))
    return GlobalFeature(reference_frame, tuple(float(value) for value in descriptor), float(radius), int(class_id))


## Binary ##

class BinaryWriter:
    """Little endian, count prefixed fields."""
    def __init__(self, stream):
        self._stream = stream

    def int32(self, value):
        self._stream.write(np.array(value, dtype='<i4').tobytes())

    def int64(self, value):
        self._stream.write(np.array(value, dtype='<i8').tobytes())

    def floats(self, values):
        self._stream.write(np.asarray(values, dtype='<f8').tobytes())


class BinaryReader:
    def __init__(self, stream):
        self._stream = stream

    def _read(self, dtype, count):
        size = np.dtype(dtype).itemsize * count
        buffer = self._stream.read(size)
        if len(buffer) != size:
            raise DataInconsistency('Unexpected end of data: wanted {} bytes, got {}'.format(size, len(buffer)))
        return np.frombuffer(buffer, dtype=dtype, count=count)

    def int32(self):
        return int(self._read('<i4', 1)[0])

    def count(self):
        value = self.int32()
        if value < 0:
            raise DataInconsistency('Negative element count: {}'.format(value))
        return value

    def int64(self):
        return int(self._read('<i8', 1)[0])

    def floats(self, count):
        return [float(value) for value in self._read('<f8', count)]


def write_binary(stream, data):
    writer = BinaryWriter(stream)
    for statistics in (data.dimensions, data.variances):
        writer.int32(len(statistics))
        for class_id in sorted(statistics):
            writer.int32(class_id)
            writer.floats(statistics[class_id])

    global_features = data.global_features or {}
    writer.int32(len(global_features))
    for class_id in sorted(global_features):
        writer.int32(class_id)
        clouds = global_features[class_id]
        writer.int32(len(clouds))
        for cloud in clouds:
            writer.int32(len(cloud))
            for feature in cloud:
                writer.floats(feature.reference_frame)
                writer.int64(len(feature.descriptor))
                writer.floats(feature.descriptor)
                writer.floats([feature.radius])


def read_binary(stream, read_global_features):
    reader = BinaryReader(stream)
    statistics = []
    for _ in range(2):
        entries = {}
        for _ in range(reader.count()):
            class_id = reader.int32()
            entries[class_id] = tuple(reader.floats(2))
        statistics.append(entries)
    dimensions, variances = statistics
    check_statistics(dimensions, variances)

    global_features = None
    if read_global_features:
        global_features = {}
        for _ in range(reader.count()):
            class_id = reader.int32()
            clouds = []
            for _ in range(reader.count()):
                cloud = []
                for _ in range(reader.count()):
                    reference_frame = reader.floats(REFERENCE_FRAME_SIZE)
                    descriptor_length = reader.int64()
                    if descriptor_length < 0:
                        raise DataInconsistency('Negative descriptor length: {}'.format(descriptor_length))
                    descriptor = reader.floats(descriptor_length)
                    radius = reader.floats(1)[0]
                    cloud.append(make_feature(reference_frame, descriptor, radius, class_id))
                clouds.append(cloud)
            global_features[class_id] = clouds
        check_global_features(global_features)
    return VotingData(dimensions, variances, global_features, None)


## JSON ##

def data_to_json(data):
    json_data = {
        'BoundingBoxDimensions': [{'ClassId': class_id,
                                   'FirstDimension': data.dimensions[class_id][0],
                                   'SecondDimension': data.dimensions[class_id][1]}
                                  for class_id in sorted(data.dimensions)],
        'BoundingBoxVariances': [{'ClassId': class_id,
                                  'FirstDimVariance': data.variances[class_id][0],
                                  'SecondDimVariance': data.variances[class_id][1]}
                                 for class_id in sorted(data.variances)],
    }

    global_features = data.global_features or {}
    json_data['GlobalFeatures'] = [{
        'ClassId': class_id,
        'FeatureList': [[{'ReferenceFrame': list(feature.reference_frame),
                          'Descriptor': list(feature.descriptor),
                          'GlobalDescriptorRadius': feature.radius}
                         for feature in cloud]
                        for cloud in global_features[class_id]],
    } for class_id in sorted(global_features)]

    if data.svm_path:
        json_data['ObjectDataSVM'] = data.svm_path
    return json_data


def data_from_json(json_data, read_global_features):
    bb_dimensions = json_data.get('BoundingBoxDimensions')
    bb_variances = json_data.get('BoundingBoxVariances')
    if not isinstance(bb_dimensions, list) or not isinstance(bb_variances, list):
        raise DataInconsistency('Bounding box dimensions or variances missing')

    try:
        dimensions = {int(entry['ClassId']): (float(entry['FirstDimension']), float(entry['SecondDimension']))
                      for entry in bb_dimensions}
        variances = {int(entry['ClassId']): (float(entry['FirstDimVariance']), float(entry['SecondDimVariance']))
                     for entry in bb_variances}
    except (KeyError, TypeError, ValueError) as error:
        raise DataInconsistency('Malformed bounding box entry: {}'.format(error)) from error
    check_statistics(dimensions, variances)

    global_features = None
    if read_global_features:
        json_features = json_data.get('GlobalFeatures')
        if not isinstance(json_features, list) or len(json_features) == 0:
            raise DataInconsistency('No global features in loaded dataset found, disable global features and try again')
        global_features = {}
        try:
            for class_features in json_features:
                class_id = int(class_features['ClassId'])
                cloud_list = class_features['FeatureList']
                if not isinstance(cloud_list, list):
                    raise DataInconsistency('Global feature list of class {} is not a list'.format(class_id))
                global_features[class_id] = [[make_feature(point['ReferenceFrame'],
                                                           point['Descriptor'],
                                                           point['GlobalDescriptorRadius'],
                                                           class_id)
                                              for point in cloud]
                                             for cloud in cloud_list]
        except (KeyError, TypeError, ValueError) as error:
            raise DataInconsistency('Malformed global feature entry: {}'.format(error)) from error
        check_global_features(global_features)

    return VotingData(dimensions, variances, global_features, json_data.get('ObjectDataSVM'))
