"""Votes, maxima and vote accumulation."""
import threading
from collections import namedtuple

import numpy as np
from pyquaternion import Quaternion

from ismvoting.exceptions import VotesNotFound
from ismvoting.utils import as_point

Vote = namedtuple('Vote', ['position', 'weight', 'class_id', 'keypoint', 'bounding_box', 'codeword_id'])
Hypothesis = namedtuple('Hypothesis', ['class_id', 'score'])

NO_HYPOTHESIS = Hypothesis(0, 0.0)


class BoundingBox(namedtuple('BoundingBox', ['position', 'size', 'rotation'])):
    """Object aligned box: center position, extents and unit quaternion orientation."""
    __slots__ = ()

    def __new__(cls, position=(0, 0, 0), size=(0, 0, 0), rotation=None):
        rotation = Quaternion() if rotation is None else Quaternion(rotation)
        return super(BoundingBox, cls).__new__(cls, as_point(position), as_point(size), rotation)


class Maximum:
    """A clustered detection candidate for one class."""
    def __init__(self, class_id=0, position=(0, 0, 0), weight=0.0, bounding_box=None, vote_indices=None):
        self.class_id = class_id
        self.position = as_point(position)
        self.weight = weight
        self.bounding_box = BoundingBox() if bounding_box is None else bounding_box
        self.vote_indices = [] if vote_indices is None else list(vote_indices)
        self.global_hypothesis = NO_HYPOTHESIS
        self.current_class_hypothesis = NO_HYPOTHESIS

    def copy(self):
        maximum = Maximum(self.class_id, self.position.copy(), self.weight,
                          self.bounding_box, self.vote_indices)
        maximum.global_hypothesis = self.global_hypothesis
        maximum.current_class_hypothesis = self.current_class_hypothesis
        return maximum

    def __repr__(self):
        return 'Maximum(class_id={}, weight={:.4f}, position={}, votes={})'.format(
            self.class_id, self.weight, np.round(self.position, 4).tolist(), len(self.vote_indices))


class VoteStore:
    """Thread safe accumulation of votes, grouped by class id."""
    def __init__(self):
        self._votes = {}
        self._lock = threading.Lock()

    def vote(self, position, weight, class_id, keypoint, bounding_box, codeword_id):
        if weight < 0:
            raise ValueError('Vote weight must be non-negative, got {}'.format(weight))
        new_vote = Vote(as_point(position), float(weight), class_id,
                        as_point(keypoint), bounding_box, codeword_id)
        with self._lock:
            self._votes.setdefault(class_id, []).append(new_vote)

    def get_votes(self, class_id=None):
        if class_id is None:
            return self._votes
        if class_id not in self._votes:
            raise VotesNotFound('No votes found for class id {}'.format(class_id))
        return self._votes[class_id]

    def clear(self):
        with self._lock:
            self._votes = {}

    def __len__(self):
        return sum(len(votes) for votes in self._votes.values())

    def __bool__(self):
        return bool(self._votes)
