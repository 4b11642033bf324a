"""FastAPI routes for the copy repair API."""
import logging
import time
from functools import lru_cache
from typing import Mapping

from fastapi import APIRouter, Depends, HTTPException

from copyrepair.core.repair_loop import RepairOrchestrator
from copyrepair.exceptions import GenerationFailure, KnowledgeLoadError
from copyrepair.generators.base import TextGenerator
from copyrepair.generators.llm_generator import LLMGenerator
from copyrepair.models.schemas import (
    GenerateRequest,
    GenerateResponse,
    HealthResponse,
    ValidateRequest,
    ValidateResponse,
)
from copyrepair.utils.config import config
from copyrepair.utils.knowledge_loader import load_knowledge_base
from copyrepair.utils.rulebook import get_rulebook
from copyrepair.validators.base import ValidationContext
from copyrepair.validators.rule_validator import RuleValidator

logger = logging.getLogger(__name__)

router = APIRouter()

FORMATS = ["email", "multiformat"]


# ============================================================================
# DEPENDENCIES
# ============================================================================

@lru_cache(maxsize=1)
def get_knowledge_base() -> Mapping[str, str]:
    """Knowledge sections, read once per process."""
    try:
        return load_knowledge_base(config.KNOWLEDGE_DIR)
    except KnowledgeLoadError as e:
        logger.warning(f"Running without knowledge base: {e}")
        return {}


@lru_cache(maxsize=1)
def get_generator() -> TextGenerator:
    return LLMGenerator()


# ============================================================================
# HEALTH CHECK
# ============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(knowledge_base: Mapping[str, str] = Depends(get_knowledge_base)):
    """Check that the API is up and which knowledge sections are loaded."""
    return HealthResponse(
        status="healthy",
        version=config.APP_VERSION,
        formats=FORMATS,
        knowledge_sections=len(knowledge_base),
    )


# ============================================================================
# VALIDATION
# ============================================================================

@router.post("/validate", response_model=ValidateResponse)
async def validate_draft(request: ValidateRequest):
    """Validate a draft without generating anything."""
    rulebook = get_rulebook(request.format)

    if request.brief:
        context = ValidationContext.from_brief(
            request.brief, rulebook, discount_threshold=config.DISCOUNT_DISTINCT_THRESHOLD
        )
    else:
        context = ValidationContext(discount_threshold=config.DISCOUNT_DISTINCT_THRESHOLD)
    if request.required_variants or request.char_limits:
        context = ValidationContext(
            required_variants={**context.required_variants, **(request.required_variants or {})},
            char_limits={**context.char_limits, **(request.char_limits or {})},
            discount_threshold=context.discount_threshold,
        )

    result = RuleValidator(rulebook).validate(request.draft, context)
    logger.info(f"Validated {request.format} draft: {result.error_count} errors, {result.warning_count} warnings")
    return ValidateResponse.from_result(result)


# ============================================================================
# GENERATION
# ============================================================================

@router.post("/generate", response_model=GenerateResponse)
async def generate_copy(
    request: GenerateRequest,
    generator: TextGenerator = Depends(get_generator),
    knowledge_base: Mapping[str, str] = Depends(get_knowledge_base),
):
    """Generate copy for a brief and repair it until it passes validation."""
    start_time = time.time()
    orchestrator = RepairOrchestrator(
        generator=generator,
        rulebook=get_rulebook(request.format),
        knowledge_base=knowledge_base,
        max_attempts=request.max_attempts,
        enable_repair=request.enable_repair,
    )

    try:
        result = await orchestrator.run(request.brief)
    except GenerationFailure as e:
        logger.error(f"Generation failed: {e}")
        raise HTTPException(status_code=502, detail=f"Generation failed: {e}")

    execution_time_ms = int((time.time() - start_time) * 1000)
    if isinstance(generator, LLMGenerator):
        generator.stats.log_summary()
    return GenerateResponse.from_result(result, execution_time_ms)
