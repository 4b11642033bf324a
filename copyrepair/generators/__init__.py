"""Text generators."""
from .base import GenerationOptions, GenerationPrompt, TextGenerator
from .llm_generator import LLMGenerator

__all__ = [
    "GenerationOptions",
    "GenerationPrompt",
    "TextGenerator",
    "LLMGenerator",
]
