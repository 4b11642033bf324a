"""
Repair Orchestrator - generate, validate, repair until valid or out of attempts.

Attempt 1 generates from the brief. Each following attempt repairs the latest
draft: surgically when every ERROR sits in one field whose section can be
found, otherwise by regenerating the whole draft with the violations and the
knowledge sections they need. The loop stops early when two consecutive
repairs end with the same violation signature.

The caller always gets the best attempt seen: the first valid one, or the
one with the fewest ERRORs (earliest on ties).
"""
import inspect
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from langsmith import traceable

from ..exceptions import GenerationFailure
from ..generators.base import GenerationOptions, TextGenerator
from ..graph.state import ProgressCallback, RepairState, create_initial_state
from ..graph.workflow import build_repair_graph
from ..models.violation import Attempt, GenerationResult, RepairScope, Violation
from ..prompts.repair_prompts import (
    build_full_repair_prompt,
    build_generation_prompt,
    build_surgical_repair_prompt,
)
from ..utils.config import config
from ..utils.rulebook import Rulebook, email_rulebook
from ..validators.base import ValidationContext
from ..validators.rule_validator import RuleValidator
from .knowledge_selector import KnowledgeSelector
from .scope_resolver import RepairScopeResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepairOptions:
    """Sampling settings per call kind."""
    generation: GenerationOptions
    full_repair: GenerationOptions
    surgical: GenerationOptions

    @classmethod
    def from_config(cls) -> "RepairOptions":
        return cls(
            generation=GenerationOptions(
                temperature=config.GENERATION_TEMPERATURE,
                max_tokens=config.MAX_OUTPUT_TOKENS,
                purpose="generate",
            ),
            full_repair=GenerationOptions(
                temperature=config.REPAIR_TEMPERATURE,
                max_tokens=config.MAX_OUTPUT_TOKENS,
                purpose="repair",
            ),
            surgical=GenerationOptions(
                temperature=config.SURGICAL_TEMPERATURE,
                max_tokens=config.SURGICAL_MAX_OUTPUT_TOKENS,
                purpose="surgical",
            ),
        )


def select_best_attempt(history: list[Attempt]) -> Attempt:
    """First valid attempt, else fewest ERRORs with the earliest index winning ties."""
    if not history:
        raise ValueError("No attempts to choose from")
    for attempt in history:
        if attempt.validation.is_valid:
            return attempt
    return min(history, key=lambda a: (a.error_count, a.index))


class RepairOrchestrator:
    """
    Runs one generation session per call to ``run``.

    All collaborators are injected; defaults are built from the rulebook.
    The orchestrator keeps no per-request state, so one instance can serve
    concurrent requests.
    """

    def __init__(
        self,
        generator: TextGenerator,
        rulebook: Optional[Rulebook] = None,
        validator: Optional[RuleValidator] = None,
        resolver: Optional[RepairScopeResolver] = None,
        selector: Optional[KnowledgeSelector] = None,
        knowledge_base: Optional[Mapping[str, str]] = None,
        max_attempts: Optional[int] = None,
        enable_repair: Optional[bool] = None,
        options: Optional[RepairOptions] = None,
        discount_threshold: Optional[int] = None,
    ):
        self.generator = generator
        self.rulebook = rulebook or (validator.rulebook if validator else email_rulebook())
        self.validator = validator or RuleValidator(self.rulebook)
        self.resolver = resolver or RepairScopeResolver(self.rulebook, extractor=self.validator.extractor)
        self.selector = selector or KnowledgeSelector()
        self.knowledge_base = knowledge_base if knowledge_base is not None else MappingProxyType({})
        self.max_attempts = max(1, max_attempts if max_attempts is not None else config.MAX_REPAIR_ATTEMPTS)
        self.enable_repair = config.ENABLE_REPAIR_LOOP if enable_repair is None else enable_repair
        self.options = options or RepairOptions.from_config()
        self.discount_threshold = (
            discount_threshold if discount_threshold is not None else config.DISCOUNT_DISTINCT_THRESHOLD
        )
        self.graph = build_repair_graph(self)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @traceable(name="run_repair_loop", run_type="chain")
    async def run(
        self,
        request: str,
        context: Optional[ValidationContext] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> GenerationResult:
        """
        Generate copy for ``request`` and repair it until it validates.

        Args:
            request: Parsed brief
            context: Per-request overrides; read from the brief's directives when omitted
            progress: Called as ``progress(message, attempt, violations)``; may be async

        Returns:
            GenerationResult for the best attempt

        Raises:
            GenerationFailure: The first generation call failed
        """
        if context is None:
            context = ValidationContext.from_brief(
                request, self.rulebook, discount_threshold=self.discount_threshold
            )
        logger.info(
            f"Starting {self.rulebook.name} session: max_attempts={self.max_attempts}, "
            f"repair={'on' if self.enable_repair else 'off'}"
        )

        state = create_initial_state(request, context, progress)
        final_state = await self.graph.ainvoke(
            state,
            config={"recursion_limit": self.max_attempts * 3 + 10},
        )
        return final_state["result"]

    # =========================================================================
    # GRAPH NODES
    # =========================================================================

    async def generate_node(self, state: RepairState) -> RepairState:
        state["attempt"] = 1
        await self._notify(state, "Generating draft", 1, [])

        knowledge = self.selector.full_knowledge(self.knowledge_base)
        prompt = build_generation_prompt(state["request"], knowledge, self.rulebook, state["context"])
        try:
            draft = await self.generator.generate(prompt, self.options.generation)
        except GenerationFailure as e:
            logger.error(f"Attempt 1 generation failed: {e}")
            if e.attempt is None:
                raise GenerationFailure(str(e), attempt=1) from e
            raise

        state["draft"] = draft
        state["strategy"] = "generate"
        await self._notify(state, "Draft generated", 1, [])
        return state

    async def validate_node(self, state: RepairState) -> RepairState:
        index = state["attempt"]
        validation = self.validator.validate(state["draft"], state["context"])
        history = state["history"] + [Attempt(index, state["draft"], validation, state["strategy"])]

        state["validation"] = validation
        state["history"] = history
        logger.info(
            f"Attempt {index}/{self.max_attempts} ({state['strategy']}): "
            f"{validation.error_count} errors, {validation.warning_count} warnings"
        )
        await self._notify(state, "Draft validated", index, validation.violations)

        state["stopped_reason"] = self._stop_reason(history, index)
        return state

    async def repair_node(self, state: RepairState) -> RepairState:
        index = state["attempt"] + 1
        state["attempt"] = index
        state["repair_failed"] = False

        validation = state["validation"]
        await self._notify(state, f"Repair attempt {index}/{self.max_attempts}", index, validation.errors())

        scope = self.resolver.resolve(validation.violations)
        try:
            draft = None
            if scope.is_surgical:
                draft = await self._surgical_repair(state, scope, validation.violations)
            if draft is not None:
                strategy = "surgical"
            else:
                draft = await self._full_repair(state, validation.violations)
                strategy = "full"
        except GenerationFailure as e:
            logger.warning(f"Repair attempt {index}/{self.max_attempts} failed: {e}")
            state["repair_failed"] = True
            if index >= self.max_attempts:
                state["stopped_reason"] = "exhausted"
            return state

        state["draft"] = draft
        state["strategy"] = strategy
        await self._notify(state, "Repaired draft generated", index, [])
        return state

    async def finalize_node(self, state: RepairState) -> RepairState:
        history = state["history"]
        best = select_best_attempt(history)
        reason = state.get("stopped_reason") or "exhausted"

        state["result"] = GenerationResult(
            success=best.validation.is_valid,
            content=best.draft,
            violations=list(best.validation.violations),
            attempts=state["attempt"],
            attempt_history=list(history),
            structure=best.validation.structure,
            stopped_reason=reason,
            best_attempt=best.index,
        )
        logger.info(
            f"Session finished ({reason}): best attempt {best.index} of {state['attempt']}, "
            f"{best.error_count} errors"
        )
        return state

    # =========================================================================
    # REPAIR STRATEGIES
    # =========================================================================

    async def _surgical_repair(
        self, state: RepairState, scope: RepairScope, violations: list[Violation]
    ) -> Optional[str]:
        """Rewrite one field and splice it back; None when its section cannot be found."""
        span = self.resolver.extract_field_span(state["draft"], scope.field)
        if span is None:
            logger.warning(f"No section found for '{scope.field}', falling back to full repair")
            return None

        field_violations = [v for v in violations if v.location == scope.field]
        prompt = build_surgical_repair_prompt(
            state["request"], scope.field, span.text, field_violations, self.rulebook, state["context"]
        )
        new_section = await self.generator.generate(prompt, self.options.surgical)
        logger.info(f"Surgical repair of '{scope.field}' ({len(field_violations)} violations)")
        return self.resolver.replace_field_span(state["draft"], scope.field, new_section)

    async def _full_repair(self, state: RepairState, violations: list[Violation]) -> str:
        errors = [v for v in violations if v.is_error]
        knowledge = self.selector.select(errors or violations, self.knowledge_base)
        prompt = build_full_repair_prompt(
            state["request"], state["draft"], violations, knowledge, self.rulebook, state["context"]
        )
        logger.info(f"Full repair ({len(violations)} violations)")
        return await self.generator.generate(prompt, self.options.full_repair)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _stop_reason(self, history: list[Attempt], index: int) -> Optional[str]:
        latest = history[-1]
        if latest.validation.is_valid:
            return "valid"
        if not self.enable_repair:
            return "repair_disabled"
        # history[0] is the initial draft, so from three entries on the last two are repairs
        if len(history) >= 3 and latest.validation.signature == history[-2].validation.signature:
            logger.warning(
                f"Repairs not converging: attempts {history[-2].index} and {latest.index} "
                f"share signature {list(latest.validation.signature)}"
            )
            return "non_convergence"
        if index >= self.max_attempts:
            return "exhausted"
        return None

    async def _notify(self, state: RepairState, message: str, attempt: int, violations: list[Violation]):
        callback = state.get("progress")
        if callback is None:
            return
        try:
            outcome = callback(message, attempt, list(violations))
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Progress callback raised {type(e).__name__}: {e}")
