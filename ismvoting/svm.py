"""SVM backend for global feature classification."""
import logging
import os
import re
import tarfile
from collections import namedtuple

import joblib
import numpy as np

from ismvoting.constants import ARCHIVE_EXTENSIONS
from ismvoting.exceptions import ClassifierUnavailable

SvmResponse = namedtuple('SvmResponse', ['label', 'score', 'all_scores'])

# One-vs-all models are stored as <prefix>_<class_id>.<ext>
CLASS_ID_PATTERN = re.compile(r'_(\d+)\.[^./]+$')


def is_archive(path):
    return path.lower().endswith(ARCHIVE_EXTENSIONS)


class TarUnpacker:
    """Extracts all files of an archive next to it and returns their paths."""
    def __call__(self, path):
        target_dir = os.path.dirname(os.path.abspath(path))
        with tarfile.open(path, 'r:*') as archive:
            members = [member for member in archive.getmembers() if member.isfile()]
            archive.extractall(target_dir, members=members, filter='data')
        return [os.path.join(target_dir, member.name) for member in members]


class SvmClassifier:
    """
    Wraps scikit-learn estimators persisted with joblib.

    A single model file holds a multi-class estimator. An archive holds one binary
    one-vs-all estimator per class, the class with the highest decision score wins.
    """
    def __init__(self, unpacker=None):
        self._unpacker = TarUnpacker() if unpacker is None else unpacker
        self._logger = logging.getLogger(self.__class__.__name__)
        self._multiclass = None
        self._one_vs_all = {}
        self.files = []
        self.unpacked_files = []

    @property
    def loaded(self):
        return self._multiclass is not None or bool(self._one_vs_all)

    def load(self, path):
        if not path:
            raise ClassifierUnavailable('SVM path is empty')
        path = os.path.abspath(path)
        if not os.path.isfile(path):
            raise ClassifierUnavailable('SVM file not valid or missing: {}'.format(path))
        self._multiclass = None
        self._one_vs_all = {}
        self.files = []

        if is_archive(path):
            try:
                files = self._unpacker(path)
            except (tarfile.TarError, OSError) as error:
                raise ClassifierUnavailable('Failed to unpack {}: {}'.format(path, error)) from error
            self.unpacked_files = list(files)
            one_vs_all = {self._class_id_from_path(file_path): self._read_model(file_path)
                          for file_path in files}
            if not one_vs_all:
                raise ClassifierUnavailable('No models found in {}'.format(path))
            self._one_vs_all = one_vs_all
            self.files = list(files)
        else:
            self._multiclass = self._read_model(path)
            self.files = [path]
        self._logger.info('Loaded SVM from %s (%d files)', path, len(self.files))

    @staticmethod
    def _class_id_from_path(path):
        match = CLASS_ID_PATTERN.search(os.path.basename(path))
        if match is None:
            raise ClassifierUnavailable('Cannot read class id from model file name: {}'.format(path))
        return int(match.group(1))

    @staticmethod
    def _read_model(path):
        try:
            estimator = joblib.load(path)
        # Unpickling foreign or corrupt files can raise almost anything
        except Exception as error:
            raise ClassifierUnavailable('Failed to read SVM model {}: {}'.format(path, error)) from error
        if not hasattr(estimator, 'classes_') or not (hasattr(estimator, 'predict_proba')
                                                      or hasattr(estimator, 'decision_function')):
            raise ClassifierUnavailable('Not a fitted classifier: {} ({})'.format(path, type(estimator).__name__))
        return estimator

    @staticmethod
    def _class_scores(estimator, data):
        if hasattr(estimator, 'predict_proba'):
            scores = estimator.predict_proba(data)[0]
        else:
            scores = np.atleast_1d(estimator.decision_function(data)[0])
            if len(scores) == 1:
                # Binary decision function: score of the positive class
                scores = np.array([-scores[0], scores[0]])
        return {int(label): float(score) for label, score in zip(estimator.classes_, scores)}

    def predict(self, descriptor):
        data = np.asarray(descriptor, dtype=np.float32).reshape(1, -1)
        if self._multiclass is not None:
            all_scores = self._class_scores(self._multiclass, data)
        elif self._one_vs_all:
            all_scores = {}
            for class_id, estimator in self._one_vs_all.items():
                scores = self._class_scores(estimator, data)
                all_scores[class_id] = scores[max(scores)]
        else:
            raise ClassifierUnavailable('No SVM model loaded')
        label = max(all_scores, key=all_scores.get)
        return SvmResponse(label, all_scores[label], all_scores)

    def close(self):
        """Delete files extracted from a model archive."""
        for path in self.unpacked_files:
            if os.path.isfile(path):
                os.remove(path)
        self.unpacked_files = []
