"""Token estimation."""

from chatgroup.tokens.estimator import DEFAULT_ENCODING, TokenEstimator

__all__ = ["DEFAULT_ENCODING", "TokenEstimator"]
