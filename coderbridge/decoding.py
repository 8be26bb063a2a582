"""
Greedy autoregressive decode loop.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .batch import TokenBatch
from .exceptions import ERROR_PREFIX, InferenceError
from .model import DecodingContext
from .tokenizer import TokenizerAdapter

logger = logging.getLogger(__name__)

EMPTY_RESPONSE = f"{ERROR_PREFIX}Model returned empty response."


@dataclass
class DecodeResult:
    """
    Output of one decode loop.

    Attributes:
        text: Generated text (the empty-response placeholder if nothing was produced)
        tokens: Number of tokens appended to the output
        finish_reason: "eos", "stop" (control marker) or "length"
    """

    text: str
    tokens: int = 0
    finish_reason: str = "length"

    def __str__(self) -> str:
        return self.text


def greedy_token(logits: Optional[np.ndarray]) -> int:
    """
    Argmax over the vocabulary; the lowest index wins a tie.

    Returns:
        Token id, or -1 when no logits are available
    """
    if logits is None or len(logits) == 0:
        return -1
    return int(np.argmax(logits))


def decode_loop(
    context: DecodingContext,
    tokenizer: TokenizerAdapter,
    n_past: int,
    max_tokens: int,
) -> DecodeResult:
    """
    Generate up to ``max_tokens`` tokens after a prefill ending at ``n_past``.

    Stops on the end-of-sequence token, on a control marker (which is never
    appended) or when the budget runs out.

    Raises:
        InferenceError: If logits are unavailable or a decode step fails
    """
    handle = context.handle
    n_vocab = handle.n_vocab()
    eos = handle.token_eos()

    output = bytearray()
    produced = 0
    finish_reason = "length"

    for _ in range(max(1, max_tokens)):
        token = greedy_token(context.logits(n_vocab))
        if token < 0:
            raise InferenceError("Failed to sample token.")
        if token == eos:
            finish_reason = "eos"
            break

        piece, keep_going = tokenizer.detokenize_one(token)
        if not keep_going:
            finish_reason = "stop"
            break
        output += piece
        produced += 1

        rc = context.decode(TokenBatch.single(token, n_past))
        if rc != 0:
            logger.debug("Decode step at position %d failed with code %d", n_past, rc)
            raise InferenceError("Failed to decode token.", error_code=-abs(rc))
        n_past += 1

    text = output.decode("utf-8", errors="replace")
    if not text:
        text = EMPTY_RESPONSE
    return DecodeResult(text=text, tokens=produced, finish_reason=finish_reason)
