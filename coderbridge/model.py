"""
Model handle and decoding context.

``ModelHandle`` owns loaded weights plus vocabulary and is immutable once
loaded. ``DecodingContext`` owns the position/attention working state bound to
one handle. Both release their native resources exactly once through
``close()``.
"""

import logging
import os
from typing import Any, Optional

import numpy as np

from .backend import ContextParams, ModelParams
from .batch import TokenBatch
from .exceptions import BackendError, ModelLoadError

logger = logging.getLogger(__name__)


class ModelHandle:
    """
    Loaded model weights and vocabulary.

    Args:
        backend: Engine backend (``LlamaCppBackend`` or a test double)
        path: Path to the GGUF model file
        params: Load-time parameters

    Raises:
        ModelLoadError: If the path is unreadable or the backend fails to load it
    """

    def __init__(self, backend: Any, path: str, params: ModelParams):
        self.backend = backend
        self.path = path
        self.params = params
        self.model = None
        self.vocab = None

        if not path or not os.path.isfile(path) or not os.access(path, os.R_OK):
            raise ModelLoadError(f"Model path is missing or unreadable: {path}")

        model = backend.load_model(path, params)
        if model is None:
            raise ModelLoadError(f"Failed to load model at {path}")
        self.model = model
        try:
            self.vocab = backend.get_vocab(model)
        except Exception:
            self.close()
            raise

    @property
    def closed(self) -> bool:
        return self.model is None

    def require_vocab(self) -> Any:
        if self.vocab is None:
            raise BackendError("Vocabulary missing.")
        return self.vocab

    def n_vocab(self) -> int:
        return self.backend.n_vocab(self.require_vocab())

    def token_eos(self) -> int:
        return self.backend.token_eos(self.require_vocab())

    def close(self) -> None:
        """Free the model. Safe to call more than once."""
        if self.model is not None:
            self.backend.free_model(self.model)
            self.model = None
        self.vocab = None


class DecodingContext:
    """
    Attention cache and batch state bound to one ``ModelHandle``.

    Args:
        handle: Loaded model this context decodes with
        params: Context length, batch width and thread count

    Raises:
        ModelLoadError: If the backend cannot create the context
    """

    def __init__(self, handle: ModelHandle, params: ContextParams):
        self.handle = handle
        self.backend = handle.backend
        self.params = params
        self.ctx = None

        ctx = self.backend.new_context(handle.model, params)
        if ctx is None:
            raise ModelLoadError(f"Failed to create context for {handle.path}")
        self.ctx = ctx
        try:
            self.backend.set_n_threads(ctx, params.n_threads, params.n_threads)
        except Exception:
            self.close()
            raise

    @property
    def closed(self) -> bool:
        return self.ctx is None

    def n_ctx(self) -> int:
        return self.backend.n_ctx(self.ctx)

    def clear_memory(self) -> None:
        """Drop everything in the attention cache."""
        self.backend.memory_clear(self.ctx)

    def decode(self, batch: TokenBatch) -> int:
        return self.backend.decode(self.ctx, batch)

    def logits(self, n_vocab: int) -> Optional[np.ndarray]:
        return self.backend.get_logits(self.ctx, n_vocab)

    def close(self) -> None:
        """Free the context. Safe to call more than once."""
        if self.ctx is not None:
            self.backend.free_context(self.ctx)
            self.ctx = None
