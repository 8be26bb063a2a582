"""
coderbridge Engine - lifecycle controller for one llama.cpp model.

The engine owns the model handle and its decoding context and serializes
``init``, ``generate`` and ``release`` behind a single exclusive lock. No two
calls of any kind run concurrently against the model. Every failure is turned
into the host contract at this boundary: ``init`` returns a bool, ``generate``
always returns a string (``"[error] <reason>"`` on failure), ``release`` never
fails.
"""

import enum
import logging
import threading
import time
from typing import Any, Optional, Union

from .backend import ContextParams, ModelParams
from .config import EngineConfig
from .decoding import DecodeResult, decode_loop
from .exceptions import (
    BackendError,
    CoderBridgeError,
    ContextLimitExceededError,
    EngineNotReadyError,
    InferenceError,
    InvalidPromptError,
    TokenizationError,
    to_error_output,
)
from .model import DecodingContext, ModelHandle
from .prefill import prefill
from .template import format_prompt
from .tokenizer import TokenizerAdapter

logger = logging.getLogger(__name__)


class EngineState(enum.Enum):
    """
    Engine lifecycle state.

    ``RELEASED`` is only entered once a model has been live; a fresh engine
    whose first init fails stays ``UNINITIALIZED``.
    """

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    GENERATING = "generating"
    RELEASED = "released"


class Engine:
    """
    Synchronous single-model text generation engine.

    Args:
        config: Engine configuration (defaults to ``EngineConfig()``)
        backend: Engine backend; a ``LlamaCppBackend`` is created on first init
            when omitted

    Examples:
        Basic usage:

        >>> engine = Engine()
        >>> engine.init("./qwen2.5-coder-1.5b-instruct-q4_k_m.gguf", 4)
        True
        >>> html = engine.generate("Show a login form", 512)
        >>> engine.release()

        With context manager (releases on exit):

        >>> with Engine() as engine:
        ...     if engine.init("./model.gguf", 4):
        ...         print(engine.generate("What is 2+2?", 32))
    """

    def __init__(self, config: Optional[EngineConfig] = None, backend: Optional[Any] = None):
        self.config = config or EngineConfig()
        self._backend = backend
        self._lock = threading.Lock()
        self._handle: Optional[ModelHandle] = None
        self._context: Optional[DecodingContext] = None
        self._backend_started = False
        self._state = EngineState.UNINITIALIZED
        self._model_path = ""
        self._threads = 0

    def __enter__(self) -> "Engine":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"Engine(state={self._state.value}, model_path={self._model_path!r}, threads={self._threads})"

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is EngineState.READY

    @property
    def model_path(self) -> str:
        return self._model_path

    @property
    def backend(self) -> Any:
        if self._backend is None:
            try:
                from .backend import LlamaCppBackend

                self._backend = LlamaCppBackend(verbose=self.config.verbose)
            except ImportError as e:
                raise BackendError(
                    "llama-cpp-python is not installed. Install it with: pip install llama-cpp-python"
                ) from e
        return self._backend

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self, model_path: Optional[str], thread_count: int) -> bool:
        """
        Load ``model_path`` and build a decoding context for it.

        Any previously loaded model is torn down first, backend included. On
        failure nothing is retained.

        Args:
            model_path: Path to the GGUF model file
            thread_count: Threads for decoding (values below 1 become 1)

        Returns:
            True iff the engine is ready to generate
        """
        threads = max(1, thread_count)

        with self._lock:
            try:
                self._load_locked(model_path, threads)
            except CoderBridgeError as e:
                logger.error("Failed to initialize engine: %s", e.message)
                self._release_locked()
                return False
            except Exception:
                logger.exception("Unexpected error while initializing engine")
                self._release_locked()
                return False

        logger.info("Loaded model %s using %d threads", model_path, threads)
        return True

    def _start_backend(self) -> None:
        self.backend.start()
        self._backend_started = True

    def _load_locked(self, model_path: Optional[str], threads: int) -> None:
        if not self._backend_started:
            self._start_backend()

        if self._handle is not None or self._context is not None:
            # The backend must not outlive its model.
            self._release_locked()
            self._start_backend()

        config = self.config
        self._handle = ModelHandle(
            self.backend,
            model_path,
            ModelParams(
                use_mmap=config.use_mmap,
                use_mlock=config.use_mlock,
                n_gpu_layers=config.n_gpu_layers,
            ),
        )
        self._context = DecodingContext(
            self._handle,
            ContextParams(
                n_ctx=config.context_length,
                n_batch=config.prefill_batch_size,
                n_threads=threads,
            ),
        )
        self._model_path = model_path
        self._threads = threads
        self._state = EngineState.READY

    def release(self) -> None:
        """Free context, model and backend, in that order. Idempotent."""
        with self._lock:
            self._release_locked()

    def _release_locked(self) -> None:
        had_model = self._handle is not None or self._context is not None

        if self._context is not None:
            self._context.close()
            self._context = None
        if self._handle is not None:
            self._handle.close()
            self._handle = None
        if self._backend_started:
            self._backend.stop()
            self._backend_started = False

        if had_model:
            logger.debug("Released engine resources for %s", self._model_path or "<none>")
            self._state = EngineState.RELEASED
        self._model_path = ""
        self._threads = 0

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(self, prompt: Union[str, bytes, None], max_tokens: int = 0) -> str:
        """
        Generate a completion for ``prompt``.

        Args:
            prompt: User text (or a fully templated ChatML prompt); UTF-8 bytes accepted
            max_tokens: Requested output length; non-positive uses the default budget

        Returns:
            Generated text, or ``"[error] <reason>"`` on failure. Never raises
            for engine failures.
        """
        try:
            text = _read_prompt(prompt)
        except InvalidPromptError as e:
            return to_error_output(e)

        with self._lock:
            try:
                result = self._generate_locked(text, max_tokens)
            except CoderBridgeError as e:
                logger.warning("Generation failed: %s", e.message)
                return to_error_output(e)
            except Exception:
                logger.exception("Unexpected error during generation")
                return to_error_output(InferenceError())
        return result.text

    def _generate_locked(self, prompt: str, max_tokens: int) -> DecodeResult:
        if self._state is not EngineState.READY or self._handle is None or self._context is None:
            raise EngineNotReadyError()

        handle = self._handle
        context = self._context
        config = self.config

        tokenizer = TokenizerAdapter(handle, config.marker_probe_size, config.piece_buffer_size)
        tokens = tokenizer.tokenize(format_prompt(prompt, config.system_instruction))
        if not tokens:
            raise TokenizationError()

        n_ctx = context.n_ctx()
        if len(tokens) >= n_ctx:
            raise ContextLimitExceededError()

        budget = config.token_budget(max_tokens, len(tokens), n_ctx)

        start = time.perf_counter()
        self._state = EngineState.GENERATING
        try:
            context.clear_memory()
            n_past = prefill(context, tokens, config.prefill_batch_size)
            result = decode_loop(context, tokenizer, n_past, budget)
        finally:
            self._state = EngineState.READY

        logger.debug(
            "Generated %d tokens from %d prompt tokens (budget %d, finish=%s) in %.2fs",
            result.tokens,
            len(tokens),
            budget,
            result.finish_reason,
            time.perf_counter() - start,
        )
        return result


def _read_prompt(prompt: Union[str, bytes, None]) -> str:
    if prompt is None:
        raise InvalidPromptError("Prompt is null.")
    if isinstance(prompt, bytes):
        try:
            return prompt.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidPromptError() from e
    if not isinstance(prompt, str):
        raise InvalidPromptError()
    return prompt


# ==============================================================================
# Process-wide default engine (host boundary)
# ==============================================================================

_DEFAULT_ENGINE: Optional[Engine] = None
_DEFAULT_ENGINE_LOCK = threading.Lock()


def get_engine() -> Engine:
    """
    Get the process-wide engine (Singleton).
    """
    global _DEFAULT_ENGINE
    with _DEFAULT_ENGINE_LOCK:
        if _DEFAULT_ENGINE is None:
            _DEFAULT_ENGINE = Engine()
        return _DEFAULT_ENGINE


def init(model_path: Optional[str], thread_count: int) -> bool:
    """Load a model into the process-wide engine."""
    return get_engine().init(model_path, thread_count)


def generate(prompt: Union[str, bytes, None], max_tokens: int = 0) -> str:
    """Generate with the process-wide engine; failures come back as ``"[error] ..."``."""
    return get_engine().generate(prompt, max_tokens)


def release() -> None:
    """Release the process-wide engine's model. Idempotent."""
    get_engine().release()
