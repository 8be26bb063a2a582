"""
Tokenizer adapter over a model's vocabulary.

Both directions use a first buffer sized by heuristic and, when the vocabulary
reports the buffer was too small, exactly one retry with the capacity it asked
for. A third attempt is never made.
"""

import logging
from typing import List, Tuple

from .model import ModelHandle
from .template import CONTROL_MARKERS

logger = logging.getLogger(__name__)

# Slack added to the text length for the first tokenize attempt.
TOKENIZE_SLACK = 16


class TokenizerAdapter:
    """
    Text <-> token conversion for one loaded model.

    Args:
        handle: Model whose vocabulary is used
        marker_probe_size: Buffer for rendering a token with control tokens included
        piece_buffer_size: First buffer for rendering a token as plain text
    """

    def __init__(self, handle: ModelHandle, marker_probe_size: int = 64, piece_buffer_size: int = 256):
        self.handle = handle
        self.backend = handle.backend
        self.vocab = handle.require_vocab()
        self.marker_probe_size = marker_probe_size
        self.piece_buffer_size = piece_buffer_size

    def tokenize(self, text: str) -> List[int]:
        """
        Tokenize ``text``, adding the leading special token and parsing control
        sequences as control tokens.

        Returns:
            Token ids, or an empty list if the vocabulary still refuses after one retry
        """
        data = text.encode("utf-8")
        result = self.backend.tokenize(self.vocab, data, len(data) + TOKENIZE_SLACK, True, True)
        if not result.ok:
            logger.debug("Tokenize buffer too small, retrying with %d", result.required)
            result = self.backend.tokenize(self.vocab, data, result.required, True, True)
        if not result.ok:
            return []
        return result.tokens

    def is_control_marker(self, token: int) -> bool:
        probe = self.backend.token_to_piece(self.vocab, token, self.marker_probe_size, True)
        return probe.ok and probe.piece.decode("utf-8", errors="replace") in CONTROL_MARKERS

    def detokenize_one(self, token: int) -> Tuple[bytes, bool]:
        """
        Render one generated token.

        Returns:
            ``(piece, keep_going)``. ``keep_going`` is False when the token is a
            turn/role control marker; the piece is then empty and must not be shown.
            Pieces are raw bytes since a single token may hold part of a
            multi-byte UTF-8 character.
        """
        if self.is_control_marker(token):
            return b"", False

        result = self.backend.token_to_piece(self.vocab, token, self.piece_buffer_size, False)
        if not result.ok:
            result = self.backend.token_to_piece(self.vocab, token, result.required, False)
        return result.piece, True
