"""Hough voting and maxima extraction for 3D implicit shape models."""
from ismvoting.voting import Voting
from ismvoting.votes import BoundingBox, Hypothesis, Maximum, Vote
from ismvoting.utils import get_configs
from ismvoting.setup import prepare_environment, setup_logging
