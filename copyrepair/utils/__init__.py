"""Configuration, rulebooks, knowledge loading and text helpers."""
from .config import Config, config
from .knowledge_loader import load_knowledge_base
from .rulebook import Rulebook, email_rulebook, get_rulebook, multiformat_rulebook

__all__ = [
    "Config",
    "config",
    "load_knowledge_base",
    "Rulebook",
    "email_rulebook",
    "get_rulebook",
    "multiformat_rulebook",
]
