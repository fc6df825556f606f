from .TokenEstimator import TokenEstimator
from .WhitespaceTokenCalculator import WhitespaceTokenCalculator

__all__ = ["TokenEstimator", "WhitespaceTokenCalculator"]
