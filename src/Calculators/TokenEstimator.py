from typing import Protocol, runtime_checkable

@runtime_checkable
class TokenEstimator(Protocol):
    def estimate(self, text: str) -> int:
        pass
