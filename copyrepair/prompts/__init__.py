"""Prompt builders for generation and repair."""

from .repair_prompts import (
    build_full_repair_prompt,
    build_generation_prompt,
    build_surgical_repair_prompt,
    format_violations,
)

__all__ = [
    "build_full_repair_prompt",
    "build_generation_prompt",
    "build_surgical_repair_prompt",
    "format_violations",
]
