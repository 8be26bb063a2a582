"""
coderbridge - Synchronous on-device text generation with llama.cpp

coderbridge loads one GGUF causal language model and turns a prompt into a
complete generated string with greedy decoding. All operations on the model
are serialized; failures come back as ``"[error] <reason>"`` strings instead
of exceptions.

Quick Start:
    >>> import coderbridge

    # Process-wide engine, as a host bridge would use it
    >>> coderbridge.init("./model.gguf", 4)
    True
    >>> html = coderbridge.generate(coderbridge.build_prompt("Your bill is due"), 1024)
    >>> coderbridge.release()

    # Or an explicit engine
    >>> engine = coderbridge.Engine(coderbridge.EngineConfig(context_length=2048))
    >>> engine.init("./model.gguf", coderbridge.recommended_thread_config().threads)
    True
"""

from .config import EngineConfig
from .engine import Engine, EngineState, generate, get_engine, init, release
from .exceptions import (
    ERROR_PREFIX,
    BackendError,
    CoderBridgeError,
    ContextLimitExceededError,
    EngineNotReadyError,
    InferenceError,
    InvalidPromptError,
    ModelLoadError,
    TokenizationError,
    is_error_output,
)
from .template import format_prompt
from .threads import ThreadConfig, recommended_thread_config
from .ui import UI_MAX_TOKENS, build_prompt, sanitize_html

# Version info
__version__ = "1.0.0"

__all__ = [
    # Main class
    "Engine",
    "EngineState",
    "EngineConfig",
    # Host boundary
    "init",
    "generate",
    "release",
    "get_engine",
    # Prompting
    "format_prompt",
    "build_prompt",
    "sanitize_html",
    "UI_MAX_TOKENS",
    # Threads
    "ThreadConfig",
    "recommended_thread_config",
    # Errors
    "ERROR_PREFIX",
    "is_error_output",
    "CoderBridgeError",
    "ModelLoadError",
    "EngineNotReadyError",
    "InvalidPromptError",
    "TokenizationError",
    "ContextLimitExceededError",
    "InferenceError",
    "BackendError",
    # Version
    "__version__",
]


def get_version() -> str:
    """Return the package version."""
    return __version__
