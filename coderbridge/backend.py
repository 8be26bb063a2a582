"""
llama.cpp backend adapter.

This module is the only place that touches the ``llama_cpp`` low-level bindings
shipped by llama-cpp-python. Everything above it (tokenizer adapter, prefill,
decode loop, engine) talks to a backend object with the surface of
``LlamaCppBackend``, which lets tests swap in a resource-counting double.

Native buffers that report "too small" with a negative length are surfaced as
tagged results (``TokenizeResult`` / ``PieceResult``) carrying the required
capacity; retry policy lives in the caller.
"""

import contextlib
import ctypes
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

import numpy as np

from .batch import TokenBatch

logger = logging.getLogger(__name__)

# llama-cpp-python's convention for "offload every layer"
MAX_OFFLOAD_LAYERS = 0x7FFFFFFF


@dataclass
class ModelParams:
    """Load-time parameters for a model."""

    use_mmap: bool = True
    use_mlock: bool = False
    n_gpu_layers: int = -1


@dataclass
class ContextParams:
    """Decoding context parameters."""

    n_ctx: int = 4096
    n_batch: int = 64
    n_threads: int = 1


@dataclass
class TokenizeResult:
    """Token ids, or the capacity the vocabulary needs when the buffer was too small."""

    tokens: List[int] = field(default_factory=list)
    required: int = 0

    @property
    def ok(self) -> bool:
        return self.required == 0


@dataclass
class PieceResult:
    """Rendered token bytes, or the capacity needed when the buffer was too small."""

    piece: bytes = b""
    required: int = 0

    @property
    def ok(self) -> bool:
        return self.required == 0


def _load_llama_cpp():
    # Imported lazily so the pure-Python layers work without the native library.
    import llama_cpp

    return llama_cpp


class LlamaCppBackend:
    """
    Thin wrapper over llama.cpp's C API as exposed by ``llama_cpp``.

    Handles returned by this class (model, vocab, context) are raw ctypes
    pointers; ownership is tracked by ``ModelHandle`` / ``DecodingContext``.

    Args:
        verbose: Let llama.cpp print its own load/progress output
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self._lib = _load_llama_cpp()

    def _quiet(self):
        if self.verbose:
            return contextlib.nullcontext()
        from llama_cpp._utils import suppress_stdout_stderr

        return suppress_stdout_stderr(disable=False)

    # Process-wide backend

    def start(self) -> None:
        self._lib.llama_backend_init()

    def stop(self) -> None:
        self._lib.llama_backend_free()

    # Model

    def load_model(self, path: str, params: ModelParams) -> Optional[Any]:
        mparams = self._lib.llama_model_default_params()
        mparams.use_mmap = params.use_mmap
        mparams.use_mlock = params.use_mlock
        mparams.n_gpu_layers = params.n_gpu_layers if params.n_gpu_layers >= 0 else MAX_OFFLOAD_LAYERS
        with self._quiet():
            model = self._lib.llama_model_load_from_file(path.encode("utf-8"), mparams)
        return model or None

    def free_model(self, model: Any) -> None:
        self._lib.llama_model_free(model)

    def get_vocab(self, model: Any) -> Optional[Any]:
        return self._lib.llama_model_get_vocab(model) or None

    def n_vocab(self, vocab: Any) -> int:
        return self._lib.llama_vocab_n_tokens(vocab)

    def token_eos(self, vocab: Any) -> int:
        return self._lib.llama_vocab_eos(vocab)

    # Context

    def new_context(self, model: Any, params: ContextParams) -> Optional[Any]:
        cparams = self._lib.llama_context_default_params()
        cparams.n_ctx = params.n_ctx
        cparams.n_batch = params.n_batch
        cparams.n_threads = params.n_threads
        cparams.n_threads_batch = params.n_threads
        with self._quiet():
            ctx = self._lib.llama_init_from_model(model, cparams)
        return ctx or None

    def free_context(self, ctx: Any) -> None:
        self._lib.llama_free(ctx)

    def set_n_threads(self, ctx: Any, n_threads: int, n_threads_batch: int) -> None:
        self._lib.llama_set_n_threads(ctx, n_threads, n_threads_batch)

    def n_ctx(self, ctx: Any) -> int:
        return self._lib.llama_n_ctx(ctx)

    def memory_clear(self, ctx: Any) -> None:
        self._lib.llama_memory_clear(self._lib.llama_get_memory(ctx), True)

    # Vocabulary

    def tokenize(
        self, vocab: Any, text: bytes, capacity: int, add_special: bool, parse_special: bool
    ) -> TokenizeResult:
        buf = (self._lib.llama_token * capacity)()
        n = self._lib.llama_tokenize(vocab, text, len(text), buf, capacity, add_special, parse_special)
        if n < 0:
            return TokenizeResult(required=-n)
        return TokenizeResult(tokens=list(buf[:n]))

    def token_to_piece(self, vocab: Any, token: int, capacity: int, special: bool) -> PieceResult:
        buf = (ctypes.c_char * capacity)()
        n = self._lib.llama_token_to_piece(vocab, token, buf, capacity, 0, special)
        if n < 0:
            return PieceResult(required=-n)
        return PieceResult(piece=bytes(buf[:n]))

    # Decoding

    def decode(self, ctx: Any, batch: TokenBatch) -> int:
        n = len(batch)
        native = self._lib.llama_batch_init(n, 0, 1)
        try:
            native.n_tokens = n
            for i in range(n):
                native.token[i] = batch.tokens[i]
                native.pos[i] = batch.positions[i]
                native.seq_id[i][0] = batch.seq_ids[i]
                native.n_seq_id[i] = 1
                native.logits[i] = batch.logits[i]
            return self._lib.llama_decode(ctx, native)
        finally:
            self._lib.llama_batch_free(native)

    def get_logits(self, ctx: Any, n_vocab: int) -> Optional[np.ndarray]:
        """
        Logits of the output position from the last decode.

        The returned array is a view over llama.cpp's buffer and is overwritten
        by the next decode call.
        """
        ptr = self._lib.llama_get_logits(ctx)
        if not ptr:
            return None
        return np.ctypeslib.as_array(ptr, shape=(n_vocab,))
