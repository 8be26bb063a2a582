"""
ChatML prompt formatting.

Raw user text is wrapped in a system turn, a user turn and an open assistant
turn. Text that already carries a turn-start marker is assumed to be a complete
templated prompt and is passed through untouched.
"""

from .config import DEFAULT_SYSTEM_INSTRUCTION

IM_START = "<|im_start|>"
IM_END = "<|im_end|>"

# Rendered control tokens that end generation and never reach the caller.
CONTROL_MARKERS = frozenset(
    {
        IM_END,
        IM_START,
        "<|assistant|>",
        "<|user|>",
        "<|system|>",
    }
)


def format_prompt(user_prompt: str, system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION) -> str:
    """
    Apply the chat template to ``user_prompt``.

    Example:
        >>> format_prompt("Hi", "Be brief.")
        '<|im_start|>system\\nBe brief.\\n<|im_end|>\\n<|im_start|>user\\nHi\\n<|im_end|>\\n<|im_start|>assistant\\n'
    """
    if IM_START in user_prompt:
        return user_prompt

    return (
        f"{IM_START}system\n{system_instruction}\n{IM_END}\n"
        f"{IM_START}user\n{user_prompt}\n{IM_END}\n"
        f"{IM_START}assistant\n"
    )
