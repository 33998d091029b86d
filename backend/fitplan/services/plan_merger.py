"""Apply AI-proposed partial modifications to an existing plan."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List

from pydantic import ValidationError

from fitplan.core.errors import AiError, AiErrorKind
from fitplan.domain.plan import DayPlan, WeeklyPlan
from fitplan.observability.metrics import timed
from fitplan.observability.tracing import trace
from fitplan.services.ai.client import AiClient
from fitplan.services.ai.prompt_builder import build_partial_modification_prompt
from fitplan.services.ai.response_validator import validate_modification
from fitplan.services.ai.schemas import ModificationType, PartialModificationResponse

logger = logging.getLogger(__name__)


@dataclass
class ModificationOutcome:
    plan: WeeklyPlan
    modification_type: ModificationType
    changed_days: List[int]
    explanation: str


def merge_modification(plan: WeeklyPlan, response: PartialModificationResponse) -> WeeklyPlan:
    """Replace the listed days wholesale and re-validate the plan.

    A rejected modification raises ``AiError(invalidRequest)`` carrying the AI's
    explanation. Days not listed are carried over as the same objects. Each
    replaced day keeps the prior day's id when the AI omits one and always
    keeps the prior calendar date.
    """
    if response.is_rejected:
        explanation = response.explanation.strip()
        raise AiError(
            AiErrorKind.INVALID_REQUEST,
            f"Modification rejected: {explanation or 'no explanation given'}",
            explanation=explanation or None,
        )

    replacements: Dict[int, DayPlan] = {}
    for payload in response.modified_days:
        prior = plan.days[payload.day_index]
        try:
            replacements[payload.day_index] = payload.to_domain(plan_id=plan.id, day_date=prior.date, day_id=prior.id)
        except ValidationError as exc:
            raise AiError(
                AiErrorKind.INVALID_RESPONSE,
                f"modified day {payload.day_index} failed validation: {exc.errors()[0].get('msg')}",
            ) from exc

    try:
        return plan.with_days(replacements)
    except ValidationError as exc:
        raise AiError(AiErrorKind.INVALID_RESPONSE, f"merged plan failed validation: {exc}") from exc


class PlanModifier:
    """Prompt -> AI -> validate -> merge for one free-text modification request."""

    def __init__(self, ai_client: AiClient) -> None:
        self.ai_client = ai_client

    def modify(self, plan: WeeklyPlan, request: str) -> ModificationOutcome:
        if not request or not request.strip():
            raise AiError(AiErrorKind.INVALID_REQUEST, "Modification request is empty")

        metadata = {"plan_id": plan.id, "request_chars": len(request)}
        with trace("plan.modify", metadata=metadata, user_id=plan.user_id), timed("plan.modify", metadata) as extra:
            raw = self.ai_client.generate(
                build_partial_modification_prompt(plan, request),
                operation="plan.modify",
            )
            response = validate_modification(raw)
            extra["modification_type"] = response.modification_type.value
            merged = merge_modification(plan, response)

        changed = sorted(day.day_index for day in response.modified_days)
        logger.info(
            "Plan %s modified (%s), days changed: %s",
            plan.id,
            response.modification_type.value,
            changed,
        )
        return ModificationOutcome(
            plan=merged,
            modification_type=response.modification_type,
            changed_days=changed,
            explanation=response.explanation,
        )
