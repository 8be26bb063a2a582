"""
coderbridge exception hierarchy for structured error handling.

Components raise these exceptions internally. The engine catches them at its
boundary and turns them into the result channel the host sees: ``False`` from
``init`` and an ``"[error] <reason>"`` string from ``generate``.
"""

ERROR_PREFIX = "[error] "


class CoderBridgeError(Exception):
    """
    Base exception for all coderbridge errors.

    Attributes:
        message: Human-readable reason, shown to the host after the error prefix
        error_code: Negative error code (llama.cpp return code where one exists)
    """

    default_message = "Unknown error."

    def __init__(self, message: str = "", error_code: int = -1):
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        self.error_code = error_code

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, error_code={self.error_code})"


class ModelLoadError(CoderBridgeError):
    """
    Failed to load the model or build its decoding context.

    Raised when:
    - Model path is missing or unreadable
    - llama.cpp could not load the file
    - Context creation failed
    """

    default_message = "Failed to load model."


class EngineNotReadyError(CoderBridgeError):
    """Generation requested before a successful init, or after release."""

    default_message = "Model is not initialized."


class InvalidPromptError(CoderBridgeError):
    """
    Prompt could not be read.

    Raised when:
    - Prompt is None
    - Prompt bytes are not valid UTF-8
    """

    default_message = "Unable to read prompt."


class TokenizationError(CoderBridgeError):
    """Failed to tokenize the formatted prompt."""

    default_message = "Failed to tokenize prompt."


class ContextLimitExceededError(CoderBridgeError):
    """Prompt alone fills the context window."""

    default_message = "Prompt is longer than the context window."


class InferenceError(CoderBridgeError):
    """
    Error during prefill or decoding.

    Raised when:
    - A batch decode call returned non-zero
    - Logits were unavailable after a decode step
    """

    default_message = "Failed to decode token."


class BackendError(CoderBridgeError):
    """Vocabulary or other backend state unexpectedly unavailable."""

    default_message = "Vocabulary missing."


def to_error_output(exc: CoderBridgeError) -> str:
    """
    Render an exception as a result-channel string.

    Example:
        >>> to_error_output(EngineNotReadyError())
        '[error] Model is not initialized.'
    """
    return f"{ERROR_PREFIX}{exc.message}"


def is_error_output(output: str) -> bool:
    """Return True if ``output`` is an error string from ``generate``."""
    return output.startswith(ERROR_PREFIX.rstrip())
