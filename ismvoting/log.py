"""Logger."""

import logging


class Logger():
    """Logger."""

    def __init__(self, name):
        """Constructor."""
        self._logger = logging.getLogger(name)

    def info(self, msg, *args):
        self._logger.info(msg, *args)

    def warning(self, msg, *args):
        self._logger.warning(msg, *args)

    def error(self, msg, *args):
        self._logger.error(msg, *args)

    def log_maxima(self, maxima):
        """Log detected maxima, best first."""
        for index, maximum in enumerate(maxima):
            status = ('maximum {index:<3d} '
                      'class:{cls:<4d} '
                      'weight:{weight:>8.4f}  '.
                      format(index=index,
                             cls=maximum.class_id,
                             weight=maximum.weight))
            status += 'glob:({:d}, {:.3f})  '.format(*maximum.global_hypothesis)
            status += 'this:({:d}, {:.3f})  '.format(*maximum.current_class_hypothesis)
            status += 'votes:{:d}'.format(len(maximum.vote_indices))
            self._logger.info(status)

    def log_votes(self, votes):
        """Log number of votes per class."""
        for class_id, class_votes in sorted(votes.items()):
            self._logger.info('class %s: %d votes', class_id, len(class_votes))
