"""Utils"""
import os
import json
from attrdict import AttrDict

import numpy as np
import torch
from pyquaternion import Quaternion

from ismvoting.constants import SETTINGS_PATH


## Device ##

def get_device():
    """Get best available device."""
    return torch.device("cuda" if torch.cuda.is_available() else "cpu")


## File ops ##

def read_json(path):
    """Read json file to AttrDict."""
    with open(path) as file:
        json_dict = json.loads(file.read())
    return AttrDict(json_dict)


# Load settings

def get_configs(config_name=None, settings_path=SETTINGS_PATH):
    default_config_path = os.path.join(SETTINGS_PATH, 'default_config.json')
    configs = read_json(default_config_path)

    if config_name is not None:
        experiment_config_path = os.path.join(settings_path, config_name, 'config.json')
        if os.path.isfile(experiment_config_path):
            configs += read_json(experiment_config_path)
    return configs


# Geometry

def as_point(values):
    return np.asarray(values, dtype=np.float64).reshape(3)


def compute_centroid(points):
    return np.mean(np.asarray(points, dtype=np.float64)[:, :3], axis=0)


def farthest_distance(points, query):
    """Distance of the farthest point from query, 0 for an empty cloud."""
    points = np.asarray(points, dtype=np.float64)[:, :3]
    if len(points) == 0:
        return 0.0
    return float(np.max(np.linalg.norm(points - query, axis=1)))


def principal_axes_box(points):
    """
    Returns (center, size, rotation) of a box aligned with the principal axes of points.
    """
    points = np.asarray(points, dtype=np.float64)[:, :3]
    center = points.mean(axis=0)
    centered = points - center
    covariance = centered.T @ centered / len(points)
    _, axes = np.linalg.eigh(covariance)
    # Right-handed frame, largest variance first
    axes = axes[:, ::-1]
    if np.linalg.det(axes) < 0:
        axes[:, 2] = -axes[:, 2]
    local = centered @ axes
    low, high = local.min(axis=0), local.max(axis=0)
    center = center + axes @ (0.5 * (low + high))
    return center, high - low, Quaternion(matrix=axes)


def quaternion_weighted_average(quaternions, weights):
    """
    Weighted mean of unit quaternions.

    q and -q encode the same rotation, so every quaternion is flipped into the
    hemisphere of the highest-weighted one before the linear combination.
    """
    weights = np.asarray(weights, dtype=np.float64)
    reference = quaternions[int(np.argmax(weights))].elements
    accumulated = np.zeros(4)
    for quaternion, weight in zip(quaternions, weights):
        elements = quaternion.elements
        if np.dot(elements, reference) < 0:
            elements = -elements
        accumulated += weight * elements
    norm = np.linalg.norm(accumulated)
    if norm < 1e-12:
        return Quaternion(reference)
    return Quaternion(accumulated / norm)
