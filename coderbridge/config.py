"""
Configuration for the coderbridge engine.

Context capacity, batch width, token budgets and the injected system instruction
are fixed policy unless the host overrides them here.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Optional

DEFAULT_SYSTEM_INSTRUCTION = "You are an expert front-end engineer producing accessible HTML/CSS."


@dataclass
class EngineConfig:
    """
    Configuration for model loading and generation.

    Args:
        context_length: Token capacity of the decoding context
        batch_size: Prompt tokens submitted per prefill batch
        min_batch_size: Floor applied to ``batch_size``
        default_max_tokens: Budget used when the caller passes a non-positive value
        min_max_tokens: Floor applied to every generation budget
        use_mmap: Use memory-mapped file for model loading
        use_mlock: Lock model in memory (prevent swapping)
        n_gpu_layers: Layers to offload to the GPU (-1 = as many as available)
        system_instruction: System turn injected by the prompt formatter
        marker_probe_size: Buffer used to probe a token for a control marker
        piece_buffer_size: First buffer used to render a token as text
        verbose: Let llama.cpp write its own log output

    Example:
        >>> config = EngineConfig(context_length=2048, batch_size=128)
        >>> engine = Engine(config=config)
    """

    context_length: int = 4096
    batch_size: int = 64
    min_batch_size: int = 32
    default_max_tokens: int = 512
    min_max_tokens: int = 16
    use_mmap: bool = True
    use_mlock: bool = False
    n_gpu_layers: int = -1
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION
    marker_probe_size: int = 64
    piece_buffer_size: int = 256
    verbose: bool = False

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.context_length <= 0:
            raise ValueError(f"context_length must be > 0, got {self.context_length}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be > 0, got {self.batch_size}")
        if self.min_batch_size <= 0:
            raise ValueError(f"min_batch_size must be > 0, got {self.min_batch_size}")
        if self.default_max_tokens <= 0:
            raise ValueError(f"default_max_tokens must be > 0, got {self.default_max_tokens}")
        if self.min_max_tokens <= 0:
            raise ValueError(f"min_max_tokens must be > 0, got {self.min_max_tokens}")
        if self.marker_probe_size <= 0 or self.piece_buffer_size <= 0:
            raise ValueError("detokenizer buffer sizes must be > 0")

    @property
    def prefill_batch_size(self) -> int:
        """Width of each prefill batch; also the context's batch capacity."""
        return max(self.batch_size, self.min_batch_size)

    def token_budget(self, requested: int, prompt_tokens: int, n_ctx: Optional[int] = None) -> int:
        """
        Clamp a requested output length against the room left in the context.

        ``max(min_max_tokens, min(requested_or_default, n_ctx - prompt_tokens))``
        where ``n_ctx`` defaults to ``context_length``.

        Example:
            >>> EngineConfig().token_budget(0, 100)
            512
            >>> EngineConfig().token_budget(10_000, 4000)
            96
        """
        wanted = requested if requested > 0 else self.default_max_tokens
        capacity = self.context_length if n_ctx is None else n_ctx
        available = capacity - prompt_tokens
        return max(self.min_max_tokens, min(wanted, available))

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> EngineConfig:
        """Create config from dictionary, ignoring unknown keys."""
        return cls(**{k: v for k, v in config_dict.items() if k in cls.__dataclass_fields__})

    def save(self, path: str) -> None:
        """Save config to JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: str) -> EngineConfig:
        """Load config from JSON file."""
        with open(path) as f:
            return cls.from_dict(json.load(f))
