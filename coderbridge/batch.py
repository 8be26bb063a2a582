"""
Token batch builder.

A ``TokenBatch`` is one submission unit for the decode primitive. Callers append
``(token, position, sequence id, wants logits)`` entries; the backend copies them
into a native ``llama_batch`` when the batch is decoded.
"""

from dataclasses import dataclass, field
from typing import List


@dataclass
class TokenBatch:
    """
    Fixed-capacity batch of tokens for one decode call.

    Attributes:
        capacity: Maximum number of entries
        tokens: Token ids
        positions: Position of each token in its sequence
        seq_ids: Sequence id each token belongs to
        logits: Whether the engine must produce logits for each position
    """

    capacity: int
    tokens: List[int] = field(default_factory=list)
    positions: List[int] = field(default_factory=list)
    seq_ids: List[int] = field(default_factory=list)
    logits: List[bool] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValueError(f"capacity must be positive, got {self.capacity}")

    def __len__(self) -> int:
        return len(self.tokens)

    def add(self, token: int, pos: int, seq_id: int = 0, logits: bool = False) -> None:
        """Append one token; raises IndexError when the batch is full."""
        if len(self.tokens) >= self.capacity:
            raise IndexError(f"TokenBatch overflow: capacity {self.capacity} reached")
        self.tokens.append(token)
        self.positions.append(pos)
        self.seq_ids.append(seq_id)
        self.logits.append(logits)

    def clear(self) -> None:
        """Drop all entries, keeping the capacity."""
        self.tokens.clear()
        self.positions.clear()
        self.seq_ids.clear()
        self.logits.clear()

    @classmethod
    def single(cls, token: int, pos: int, seq_id: int = 0) -> "TokenBatch":
        """One-token batch that requests logits, as used by each decode step."""
        batch = cls(capacity=1)
        batch.add(token, pos, seq_id, logits=True)
        return batch
