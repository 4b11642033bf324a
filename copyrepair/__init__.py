"""
Validation-guided generation and repair of SimpleWine marketing copy.

Modules:
- extractors: Draft lexer and structure extractor (field tree)
- validators: Deterministic rule checks and the RuleValidator
- core: Repair scope resolver, knowledge selector, repair orchestrator
- graph: LangGraph state machine driving the orchestrator
- generators: Text generator protocol and the OpenAI-backed generator
- prompts: Generation, full repair and surgical repair prompts
- api: FastAPI routes
"""
from .core import RepairOrchestrator, select_best_attempt
from .exceptions import CopyRepairError, GenerationFailure, KnowledgeLoadError
from .models import GenerationResult, Severity, ValidationResult, Violation
from .utils import email_rulebook, get_rulebook, multiformat_rulebook
from .validators import RuleValidator, ValidationContext

__version__ = "1.0.0"

__all__ = [
    "RepairOrchestrator",
    "select_best_attempt",
    "CopyRepairError",
    "GenerationFailure",
    "KnowledgeLoadError",
    "GenerationResult",
    "Severity",
    "ValidationResult",
    "Violation",
    "email_rulebook",
    "get_rulebook",
    "multiformat_rulebook",
    "RuleValidator",
    "ValidationContext",
]
