"""Sorting, normalization and truncation of maxima."""
import logging

_logger = logging.getLogger('ResultRanker')


def sort_maxima(maxima):
    maxima.sort(key=lambda maximum: maximum.weight, reverse=True)
    return maxima


def normalize_weights(maxima):
    """Turn weights into probabilities. Returns False if there is nothing valid to normalize."""
    total = sum(maximum.weight for maximum in maxima)
    if total <= 0:
        if maxima:
            _logger.warning('Sum of %d maxima weights is %s, skipping normalization', len(maxima), total)
        return False
    for maximum in maxima:
        maximum.weight /= total
    return True


def keep_best_k(maxima, best_k):
    if 0 < best_k <= len(maxima):
        del maxima[best_k:]
    return maxima


def rank(maxima):
    """Sort descending by weight and normalize."""
    sort_maxima(maxima)
    normalize_weights(maxima)
    return maxima
