import io
import json

import pytest

from ismvoting.exceptions import DataInconsistency
from ismvoting.persistence import VotingData, data_from_json, data_to_json, read_binary, write_binary


@pytest.fixture
def data(features_by_class):
    return VotingData({1: (0.5, 0.25), 2: (1.5, 1.0)},
                      {1: (0.01, 0.02), 2: (0.1, 0.2)},
                      features_by_class,
                      '/models/svm.tar.gz')


def to_bytes(data):
    stream = io.BytesIO()
    write_binary(stream, data)
    return stream.getvalue()


def test_binary_keeps_everything_but_svm_path(data):
    loaded = read_binary(io.BytesIO(to_bytes(data)), True)
    assert loaded.dimensions == data.dimensions
    assert loaded.variances == data.variances
    assert loaded.global_features == data.global_features
    assert loaded.svm_path is None


def test_binary_without_global_features(data):
    loaded = read_binary(io.BytesIO(to_bytes(data)), False)
    assert loaded.dimensions == data.dimensions
    assert loaded.global_features is None


def test_binary_missing_global_features(data):
    empty = data._replace(global_features={})
    with pytest.raises(DataInconsistency):
        read_binary(io.BytesIO(to_bytes(empty)), True)


def test_binary_truncated(data):
    raw = to_bytes(data)
    with pytest.raises(DataInconsistency):
        read_binary(io.BytesIO(raw[:len(raw) - 5]), True)


def test_binary_mismatching_statistics(data):
    broken = data._replace(variances={1: (0.01, 0.02)})
    with pytest.raises(DataInconsistency):
        read_binary(io.BytesIO(to_bytes(broken)), False)


def test_json_layout(data):
    json_data = data_to_json(data)
    assert json_data['BoundingBoxDimensions'][0] == {'ClassId': 1, 'FirstDimension': 0.5, 'SecondDimension': 0.25}
    assert json_data['BoundingBoxVariances'][1] == {'ClassId': 2, 'FirstDimVariance': 0.1, 'SecondDimVariance': 0.2}
    assert [entry['ClassId'] for entry in json_data['GlobalFeatures']] == [1, 2]
    point = json_data['GlobalFeatures'][0]['FeatureList'][0][0]
    assert sorted(point) == ['Descriptor', 'GlobalDescriptorRadius', 'ReferenceFrame']
    assert len(point['ReferenceFrame']) == 9
    assert json_data['ObjectDataSVM'] == '/models/svm.tar.gz'


def test_json_through_text(data):
    loaded = data_from_json(json.loads(json.dumps(data_to_json(data))), True)
    assert loaded == data


def test_json_without_svm_path(data):
    json_data = data_to_json(data._replace(svm_path=None))
    assert 'ObjectDataSVM' not in json_data
    assert data_from_json(json_data, False).svm_path is None


def test_json_missing_global_features(data):
    json_data = data_to_json(data)
    del json_data['GlobalFeatures']
    with pytest.raises(DataInconsistency):
        data_from_json(json_data, True)
    assert data_from_json(json_data, False).global_features is None


@pytest.mark.parametrize('key', ['BoundingBoxDimensions', 'BoundingBoxVariances'])
def test_json_missing_statistics(data, key):
    json_data = data_to_json(data)
    del json_data[key]
    with pytest.raises(DataInconsistency):
        data_from_json(json_data, False)


def test_json_malformed_feature(data):
    json_data = data_to_json(data)
    json_data['GlobalFeatures'][0]['FeatureList'][0][0]['ReferenceFrame'] = [1.0, 0.0]
    with pytest.raises(DataInconsistency):
        data_from_json(json_data, True)


def test_json_global_features_without_any_feature(data):
    json_data = data_to_json(data)
    for class_features in json_data['GlobalFeatures']:
        class_features['FeatureList'] = [[] for _ in class_features['FeatureList']]
    with pytest.raises(DataInconsistency):
        data_from_json(json_data, True)
