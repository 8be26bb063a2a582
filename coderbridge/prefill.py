"""
Prompt prefill.

The prompt is pushed through the decoding context in bounded batches on
sequence 0. Only the very last prompt position asks for logits; that is the row
the decode loop samples its first token from.
"""

import logging
from typing import Sequence

from .batch import TokenBatch
from .exceptions import InferenceError
from .model import DecodingContext

logger = logging.getLogger(__name__)


def prefill(context: DecodingContext, tokens: Sequence[int], batch_size: int, n_past: int = 0) -> int:
    """
    Decode ``tokens`` starting at position ``n_past``.

    Args:
        context: Context to decode into
        tokens: Prompt token ids
        batch_size: Maximum tokens per decode call
        n_past: Position of the first prompt token

    Returns:
        Position after the last prompt token

    Raises:
        InferenceError: If ``tokens`` is empty or any batch fails to decode
    """
    if not tokens:
        raise InferenceError("Failed to prefill prompt.")

    total = len(tokens)
    batch = TokenBatch(capacity=batch_size)
    consumed = 0
    while consumed < total:
        cur = min(batch_size, total - consumed)
        batch.clear()
        for i in range(cur):
            batch.add(tokens[consumed + i], n_past + i, 0, logits=(consumed + i == total - 1))

        rc = context.decode(batch)
        if rc != 0:
            logger.debug("Prefill batch at position %d failed with code %d", n_past, rc)
            raise InferenceError("Failed to prefill prompt.", error_code=-abs(rc))

        n_past += cur
        consumed += cur

    return n_past
