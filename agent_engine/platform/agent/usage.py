"""Token usage accounting."""

from dataclasses import dataclass
from typing import Self


@dataclass(frozen=True)
class Usage:
    """Token counters for one or more model calls.

    Attributes:
        requests: Number of model calls these counters cover
        input_tokens: Prompt tokens
        output_tokens: Completion tokens
        total_tokens: Always input_tokens + output_tokens; computed when omitted
    """

    requests: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int | None = None

    def __post_init__(self) -> None:
        expected = self.input_tokens + self.output_tokens
        if self.total_tokens is None:
            object.__setattr__(self, "total_tokens", expected)
        for name in ("requests", "input_tokens", "output_tokens", "total_tokens"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.total_tokens != expected:
            raise ValueError(
                f"total_tokens ({self.total_tokens}) must equal input + output ({expected})"
            )

    def add(self, other: "Usage") -> Self:
        """Return the field-wise sum of two usages."""
        return type(self)(
            requests=self.requests + other.requests,
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )

    __add__ = add

    def to_dict(self) -> dict[str, int]:
        return {
            "requests": self.requests,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens or 0,
        }
