from __future__ import annotations

from collections.abc import Sequence

import structlog

from capex.domain.notifications.enums import RuleTrigger
from capex.domain.notifications.schemas.notifications import NotificationDraft
from capex.domain.notifications.services.rules import ALL_RULES, BusinessRule, RuleContext


logger = structlog.get_logger(__name__)


class RuleEngine:
    """
    Evaluates business rules against a context and fans out notifications.

    A rule that raises is logged and skipped; it never blocks the other
    rules or the workflow action that triggered the evaluation.
    """

    def __init__(self, rules: Sequence[BusinessRule] = ALL_RULES) -> None:
        self.rules = list(rules)

    def get_rule(self, rule_id: str) -> BusinessRule | None:
        return next((r for r in self.rules if r.id == rule_id), None)

    def daily_rules(self) -> list[BusinessRule]:
        return [r for r in self.rules if r.trigger == RuleTrigger.DAILY]

    def event_rules(self) -> list[BusinessRule]:
        return [r for r in self.rules if r.trigger == RuleTrigger.EVENT]

    def evaluate_rules(self, context: RuleContext, rules: Sequence[BusinessRule] | None = None) -> list[NotificationDraft]:
        out: list[NotificationDraft] = []
        for rule in self.rules if rules is None else rules:
            out.extend(self._evaluate(rule, context))
        return out

    def evaluate_rule(self, rule_id: str, context: RuleContext) -> list[NotificationDraft]:
        rule = self.get_rule(rule_id)
        if rule is None:
            logger.warning("notifications.rule_not_found", rule_id=rule_id)
            return []
        return self._evaluate(rule, context)

    def _evaluate(self, rule: BusinessRule, context: RuleContext) -> list[NotificationDraft]:
        try:
            result = rule.evaluate(context)
            if result is None or not result.should_trigger:
                return []

            recipients = list(dict.fromkeys(rule.get_recipients(context)))
            message = rule.get_message(context)
        except Exception:
            logger.exception("notifications.rule_failed", rule_id=rule.id)
            return []

        created_at = context.timestamp()
        return [
            NotificationDraft(
                user_id=user_id,
                type=rule.type,
                title=message.title,
                message=message.message,
                priority=rule.priority,
                related_type=result.related_type,
                related_id=result.related_id,
                read=False,
                created_at=created_at,
            )
            for user_id in recipients
        ]


rule_engine = RuleEngine()
