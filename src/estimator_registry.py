"""Simple registry for token estimator factories."""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from Calculators.TokenEstimator import TokenEstimator

EstimatorFactory = Callable[..., "TokenEstimator"]

DEFAULT_ESTIMATOR = "whitespace"

_REGISTRY: Dict[str, EstimatorFactory] = {}


def register_token_estimator(name: str, factory: EstimatorFactory) -> None:
    key = _normalize(name)
    if not key:
        raise ValueError("Estimator name must be non-empty")
    if not callable(factory):
        raise TypeError("Estimator factory must be callable")
    _REGISTRY[key] = factory


def unregister_token_estimator(name: str) -> None:
    key = _normalize(name)
    _REGISTRY.pop(key, None)


def get_token_estimator(name: str) -> Optional[EstimatorFactory]:
    key = _normalize(name)
    return _REGISTRY.get(key)


def available_token_estimators() -> Iterable[str]:
    return sorted(_REGISTRY.keys())


def create_token_estimator(name: str | None = None, **kwargs: Any) -> "TokenEstimator":
    key = _normalize(name or DEFAULT_ESTIMATOR)
    factory = get_token_estimator(key)
    if factory is None:
        raise ValueError(f"Unsupported token estimator '{name}'")
    return factory(**kwargs)


def _normalize(name: str) -> str:
    return (name or "").strip().lower()


def _whitespace_factory(**_kwargs: Any) -> "TokenEstimator":
    from Calculators.WhitespaceTokenCalculator import WhitespaceTokenCalculator

    return WhitespaceTokenCalculator()


def _model_factory(*, model_id: str | None = None, device: str | None = None, **_kwargs: Any) -> "TokenEstimator":
    # sentence-transformers is heavy; import only when this estimator is chosen.
    from Calculators.ModelTokenCalculator import ModelTokenCalculator

    return ModelTokenCalculator(model_id=model_id, device=device)


register_token_estimator("whitespace", _whitespace_factory)
register_token_estimator("model", _model_factory)


__all__ = [
    "DEFAULT_ESTIMATOR",
    "register_token_estimator",
    "unregister_token_estimator",
    "get_token_estimator",
    "available_token_estimators",
    "create_token_estimator",
]
