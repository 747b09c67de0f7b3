"""Turns a user request into a search query and an extraction prompt."""

import logging

from src.errors import ConfigurationError, ModelOutputError, PlanningFailed
from src.llm.client import CompletionModel, parse_json_response
from src.llm.prompts import build_planner_prompt
from src.models import Plan

logger = logging.getLogger(__name__)


class Planner:
    """Asks the language model for a :class:`Plan`."""

    def __init__(self, llm: CompletionModel):
        self.llm = llm

    async def create_plan(self, user_prompt: str) -> Plan:
        """Generate a plan for ``user_prompt``.

        Raises:
            ConfigurationError: If the model client is not configured.
            PlanningFailed: If the model call fails or returns a plan that
                is not JSON or lacks a required field.
        """
        if not user_prompt or not user_prompt.strip():
            raise PlanningFailed("prompt is empty")

        try:
            raw = await self.llm.complete(build_planner_prompt(user_prompt.strip()))
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error("Planner model call failed: %s", e)
            raise PlanningFailed(f"language model call failed: {e}") from e

        try:
            plan = Plan.from_dict(parse_json_response(raw))
        except (ModelOutputError, ValueError) as e:
            logger.error("Planner returned an unusable plan: %s", e)
            raise PlanningFailed(str(e)) from e

        logger.info("Plan generated: query=%r", plan.search_query)
        return plan
