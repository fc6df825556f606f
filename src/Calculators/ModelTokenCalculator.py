import logging
from typing import Optional

from sentence_transformers import SentenceTransformer

from .TokenEstimator import TokenEstimator


logger = logging.getLogger(__name__)


class ModelTokenCalculator(TokenEstimator):
    """
    TokenEstimator backed by the tokenizer of a SentenceTransformer embedding model.

    Counts the tokens the embedding model would actually see for a chunk
    (no special tokens). Empty text counts as 1, like the whitespace estimator.
    The model is loaded on first use and cached on the instance.
    """

    MODEL_ID = "Qwen/Qwen3-Embedding-0.6B"
    EMPTY_TEXT_TOKENS = 1

    def __init__(self, model_id: Optional[str] = None, device: Optional[str] = None) -> None:
        self._model: Optional[SentenceTransformer] = None
        self._model_id = model_id or self.MODEL_ID
        self._device = device

    @property
    def model_id(self) -> str:
        return self._model_id

    def _load_model(self) -> SentenceTransformer:
        """Load the embedding model whose tokenizer defines the token count."""
        if self._model is not None:
            return self._model
        try:
            if self._device:
                self._model = SentenceTransformer(self._model_id, trust_remote_code=True, device=self._device)
            else:
                self._model = SentenceTransformer(self._model_id, trust_remote_code=True)
            logger.info("Loaded tokenizer model from %s", self._model_id)
        except Exception as e:
            msg = f"Failed to load tokenizer model: {self._model_id}"
            logger.error("%s; error: %r", msg, e)
            raise RuntimeError(msg) from e
        return self._model

    def estimate(self, text: str) -> int:
        if not text.strip():
            return self.EMPTY_TEXT_TOKENS
        model = self._load_model()
        ids = model.tokenizer.encode(text, add_special_tokens=False)
        return len(ids) or self.EMPTY_TEXT_TOKENS
