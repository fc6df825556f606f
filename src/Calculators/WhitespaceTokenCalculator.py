from .TokenEstimator import TokenEstimator


class WhitespaceTokenCalculator(TokenEstimator):
    """
    Default TokenEstimator: counts maximal runs of non-whitespace characters.

    Empty or whitespace-only text counts as 1 token, so a budget of 1 never fits
    anything. Deleting characters can only merge or drop runs, never add one.
    """

    EMPTY_TEXT_TOKENS = 1

    def estimate(self, text: str) -> int:
        return len(text.split()) or self.EMPTY_TEXT_TOKENS
