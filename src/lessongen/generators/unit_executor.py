"""Turn lesson plan units into compiled, schema-validated units.

Each unit is one completion call wrapped in a fixed retry policy: up to
``max_attempts`` attempts with ``retry_delay`` seconds between them. Any error
raised by the completion client triggers a retry; the final attempt's error is
re-raised unchanged. Unknown unit types fail before any call is made.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from pydantic import BaseModel

from lessongen import constants
from lessongen.exceptions import UnknownUnitTypeError
from lessongen.generators.unit_registry import UNIT_REGISTRY, UnitSpec
from lessongen.models.lesson import CompiledUnit, LessonContext, LessonPlanUnit
from lessongen.models.units import ExplanationOutput, UnitType
from lessongen.utils.debug_recorder import DebugSession
from lessongen.utils.llm_client import CompletionClient
from lessongen.utils.template import render_template

logger = logging.getLogger(__name__)


class UnitExecutor:
    """Executes unit plans against a completion client with bounded retries.

    Usage:
        executor = UnitExecutor(client)
        unit = await executor.execute_unit(plan, context)
        units = await executor.execute_units(plans, context, section_index=0, session=session)
    """

    def __init__(
        self,
        client: CompletionClient,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        """Initialize the executor.

        Args:
            client: Completion client used for every unit
            max_attempts: Attempts per unit (default: UNIT_MAX_ATTEMPTS env var, 3)
            retry_delay: Seconds between attempts (default: UNIT_RETRY_DELAY_SECONDS env var, 0.5)
        """
        self.client = client
        self.max_attempts = constants.UNIT_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.retry_delay = (
            constants.UNIT_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        )
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    def _spec(self, unit_type: object) -> UnitSpec:
        try:
            return UNIT_REGISTRY[UnitType(unit_type)]
        except (KeyError, ValueError):
            raise UnknownUnitTypeError(str(getattr(unit_type, "value", unit_type))) from None

    def build_unit_prompt(
        self,
        plan: LessonPlanUnit,
        context: LessonContext,
        avoid_context: Optional[str] = None,
    ) -> str:
        """Render the unit's prompt template for a learner context.

        A non-empty ``avoid_context`` is prepended, followed by a blank line.

        Raises:
            UnknownUnitTypeError: If the plan's type has no registry entry
        """
        spec = self._spec(plan.type)
        values = {**context.template_values(), "instructions": plan.instructions}
        prompt = render_template(spec.template, values).strip()
        if avoid_context:
            prompt = f"{avoid_context}\n\n{prompt}"
        return prompt

    async def execute_unit(
        self,
        plan: LessonPlanUnit,
        context: LessonContext,
        avoid_context: Optional[str] = None,
    ) -> CompiledUnit:
        """Generate one unit, retrying failed completion calls.

        Args:
            plan: Unit plan to execute
            context: Learner context for the prompt
            avoid_context: Optional "do not repeat" preamble

        Returns:
            CompiledUnit whose output matches the plan's type

        Raises:
            UnknownUnitTypeError: If the plan's type has no registry entry (never retried)
            Exception: Whatever the client raised on the final attempt
        """
        prompt = self.build_unit_prompt(plan, context, avoid_context)
        return await self.execute_prompt(plan, prompt)

    async def execute_prompt(self, plan: LessonPlanUnit, prompt: str) -> CompiledUnit:
        """Run an already-rendered unit prompt through the retry loop."""
        spec = self._spec(plan.type)
        unit_type = UnitType(plan.type)

        for attempt in range(1, self.max_attempts + 1):
            try:
                output = await self._complete(spec, prompt)
                break
            except Exception as e:
                if attempt == self.max_attempts:
                    logger.error(
                        f"Unit '{unit_type.value}' failed after {attempt} attempts: {e}"
                    )
                    raise
                logger.warning(
                    f"Unit '{unit_type.value}' attempt {attempt}/{self.max_attempts} failed: {e}. "
                    f"Retrying in {self.retry_delay}s"
                )
                await asyncio.sleep(self.retry_delay)

        return CompiledUnit(type=unit_type, plan=plan, output=output)

    async def _complete(self, spec: UnitSpec, prompt: str) -> BaseModel:
        if spec.free_text:
            text = await self.client.complete_free_text(prompt)
            return ExplanationOutput(explanation=text)
        return await self.client.complete_structured(prompt, spec.schema)

    def build_avoid_context(self, previous: CompiledUnit) -> str:
        """Describe a previous output so a regeneration does not repeat it.

        Returns:
            The type's avoid-context text, or "" for an unknown type
        """
        try:
            spec = self._spec(previous.type)
        except UnknownUnitTypeError:
            return ""
        return spec.avoid_context(previous.output)

    async def redo_unit(
        self,
        plan: LessonPlanUnit,
        previous: CompiledUnit,
        context: LessonContext,
    ) -> CompiledUnit:
        """Regenerate a unit, steering away from its previous output."""
        avoid_context = self.build_avoid_context(previous)
        logger.info(f"Regenerating '{previous.type.value}' unit with avoid-context")
        return await self.execute_unit(plan, context, avoid_context=avoid_context)

    async def execute_units(
        self,
        plans: Sequence[LessonPlanUnit],
        context: LessonContext,
        section_index: int,
        session: Optional[DebugSession] = None,
        contexts: Optional[Sequence[LessonContext]] = None,
    ) -> List[CompiledUnit]:
        """Execute all plans concurrently, returning units in plan order.

        Every unit's prompt and output (or error) is logged to ``session``.
        All units run to completion; if any failed, the first failure in plan
        order is raised.

        Args:
            plans: Unit plans for one section
            context: Learner context shared by all units
            section_index: Section the units belong to (for logging)
            session: Debug session of the current run
            contexts: Optional per-unit contexts overriding ``context``
        """
        if contexts is not None and len(contexts) != len(plans):
            raise ValueError(f"{len(contexts)} contexts for {len(plans)} unit plans")

        async def run(unit_index: int, plan: LessonPlanUnit) -> CompiledUnit:
            unit_context = contexts[unit_index] if contexts is not None else context
            unit_type = str(getattr(plan.type, "value", plan.type))
            prompt = ""
            try:
                prompt = self.build_unit_prompt(plan, unit_context)
                unit = await self.execute_prompt(plan, prompt)
            except Exception as e:
                if session is not None:
                    session.log_unit_execution(section_index, unit_index, unit_type, prompt, error=e)
                raise
            if session is not None:
                session.log_unit_execution(
                    section_index, unit_index, unit_type, prompt, output=unit.output
                )
            return unit

        logger.debug(f"Executing {len(plans)} units for section {section_index}")
        results = await asyncio.gather(
            *(run(i, plan) for i, plan in enumerate(plans)), return_exceptions=True
        )

        for result in results:
            if isinstance(result, BaseException):
                raise result
        return list(results)
