"""Generator-facing types: what goes into a generator call and what it must provide."""
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class GenerationPrompt:
    """System instructions plus the user-facing task."""
    instructions: str
    content: str


@dataclass(frozen=True)
class GenerationOptions:
    """Sampling settings for one generator call."""
    temperature: float
    max_tokens: int
    purpose: str = "generate"  # generate | repair | surgical


@runtime_checkable
class TextGenerator(Protocol):
    """Anything that turns a prompt into draft text."""

    async def generate(self, prompt: GenerationPrompt, options: GenerationOptions) -> str:
        ...
