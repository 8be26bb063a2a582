"""
Shared fixtures: a scripted, resource-counting stand-in for LlamaCppBackend.
"""

from typing import Dict, List, Optional

import numpy as np
import pytest

from coderbridge.backend import ContextParams, ModelParams, PieceResult, TokenizeResult
from coderbridge.batch import TokenBatch

BOS = 1
EOS = 2
IM_END = 3
IM_START = 4
HELLO = 10
WORLD = 11
BANG = 12
LONG = 13
SPLIT_A = 14
SPLIT_B = 15

N_VOCAB = 64

# Text rendered with control tokens included.
SPECIAL_PIECES: Dict[int, bytes] = {
    BOS: b"<s>",
    EOS: b"</s>",
    IM_END: b"<|im_end|>",
    IM_START: b"<|im_start|>",
}

# Text rendered in plain mode; control tokens render as nothing.
PLAIN_PIECES: Dict[int, bytes] = {
    HELLO: b"Hello",
    WORLD: b" world",
    BANG: b"!",
    LONG: b"x" * 300,
    SPLIT_A: "é".encode("utf-8")[:1],
    SPLIT_B: "é".encode("utf-8")[1:],
}


class FakeBackend:
    """
    Backend double that counts live resources and plays back a token script.

    After the n-th decode that asks for logits, the logits point at
    ``script[n-1]``; once the script runs out every step yields EOS.
    """

    def __init__(self, script: Optional[List[int]] = None, prompt_tokens: Optional[int] = None):
        self.script = list(script or [])
        self.prompt_tokens = prompt_tokens

        self.running = False
        self.starts = 0
        self.stops = 0
        self.live_models = 0
        self.live_contexts = 0
        self.loads = 0

        self.fail_load = False
        self.fail_context = False
        self.vocab_missing = False
        self.logits_missing = False
        self.decode_fail_at: Optional[int] = None
        self.tokenize_required: Optional[int] = None
        self.tokenize_always_short = False

        self.context_params: Optional[ContextParams] = None
        self.model_params: Optional[ModelParams] = None
        self.threads_set: Optional[tuple] = None
        self.batches: List[TokenBatch] = []
        self.total_decodes = 0
        self.logits_reads = 0
        self.memory_clears = 0
        self.tokenize_capacities: List[int] = []
        self.piece_calls: List[tuple] = []

    # Process-wide backend

    def start(self):
        self.running = True
        self.starts += 1

    def stop(self):
        self.running = False
        self.stops += 1

    # Model

    def load_model(self, path, params):
        self.loads += 1
        self.model_params = params
        if self.fail_load:
            return None
        self.live_models += 1
        return object()

    def free_model(self, model):
        self.live_models -= 1

    def get_vocab(self, model):
        return None if self.vocab_missing else "vocab"

    def n_vocab(self, vocab):
        return N_VOCAB

    def token_eos(self, vocab):
        return EOS

    # Context

    def new_context(self, model, params):
        self.context_params = params
        if self.fail_context:
            return None
        self.live_contexts += 1
        return object()

    def free_context(self, ctx):
        self.live_contexts -= 1

    def set_n_threads(self, ctx, n_threads, n_threads_batch):
        self.threads_set = (n_threads, n_threads_batch)

    def n_ctx(self, ctx):
        return self.context_params.n_ctx

    def memory_clear(self, ctx):
        self.memory_clears += 1
        self.batches.clear()

    # Vocabulary

    def tokenize(self, vocab, text, capacity, add_special, parse_special):
        self.tokenize_capacities.append(capacity)
        if self.tokenize_always_short:
            return TokenizeResult(required=capacity + 1)
        if self.tokenize_required is not None and capacity < self.tokenize_required:
            return TokenizeResult(required=self.tokenize_required)
        n = self.prompt_tokens if self.prompt_tokens is not None else len(text.split()) + 1
        tokens = [BOS] + [20 + (i % 40) for i in range(n - 1)]
        return TokenizeResult(tokens=tokens[:n])

    def token_to_piece(self, vocab, token, capacity, special):
        self.piece_calls.append((token, capacity, special))
        piece = SPECIAL_PIECES.get(token, b"") if special and token in SPECIAL_PIECES else PLAIN_PIECES.get(token, b"")
        if len(piece) > capacity:
            return PieceResult(required=len(piece))
        return PieceResult(piece=piece)

    # Decoding

    @property
    def decode_calls(self) -> int:
        return len(self.batches)

    def decode(self, ctx, batch):
        snapshot = TokenBatch(capacity=batch.capacity)
        for tok, pos, seq, want in zip(batch.tokens, batch.positions, batch.seq_ids, batch.logits):
            snapshot.add(tok, pos, seq, want)
        self.batches.append(snapshot)
        self.total_decodes += 1
        if self.decode_fail_at is not None and len(self.batches) == self.decode_fail_at:
            return 1
        return 0

    def get_logits(self, ctx, n_vocab):
        self.logits_reads += 1
        if self.logits_missing:
            return None
        step = sum(1 for b in self.batches if any(b.logits)) - 1
        token = self.script[step] if 0 <= step < len(self.script) else EOS
        logits = np.zeros(n_vocab, dtype=np.float32)
        logits[token] = 1.0
        return logits


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "model.gguf"
    path.write_bytes(b"GGUF")
    return str(path)


@pytest.fixture
def handle(backend, model_file):
    from coderbridge.model import ModelHandle

    return ModelHandle(backend, model_file, ModelParams())


@pytest.fixture
def context(handle):
    from coderbridge.model import DecodingContext

    return DecodingContext(handle, ContextParams(n_ctx=128, n_batch=32, n_threads=2))
