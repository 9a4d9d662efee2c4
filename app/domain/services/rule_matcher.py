"""Pure rule matching over immutable rule snapshots.

Routing answers "where does this lead live": the first matching rule wins.
Forwarding answers "who else should be told": every matching rule fires,
except that one lead is never sent twice to the same target URL.
"""

import logging
from collections.abc import Iterable

from app.domain.models.rules import LeadCriteria, RuleMatch, RuleSnapshot

logger = logging.getLogger(__name__)


def evaluate(rule: RuleSnapshot, lead: LeadCriteria) -> RuleMatch | None:
    """Match one rule against a lead; all three dimensions must match."""
    if not (
        rule.products.matches(lead.product_type)
        and rule.zips.matches(lead.zip_code)
        and rule.states.matches(lead.state)
    ):
        return None
    return RuleMatch(
        rule=rule,
        product=rule.products.witness(lead.product_type),
        zip=rule.zips.witness(lead.zip_code),
        state=rule.states.witness(lead.state),
    )


def match(rules: Iterable[RuleSnapshot], lead: LeadCriteria) -> list[RuleMatch]:
    """Every active rule matching the lead, in (priority, id) order."""
    matches = []
    for rule in sorted(rules, key=lambda r: r.order_key):
        if not rule.is_active:
            continue
        result = evaluate(rule, lead)
        if result is not None:
            matches.append(result)
    return matches


def match_routing(rules: Iterable[RuleSnapshot], lead: LeadCriteria) -> RuleMatch | None:
    """First-match-wins: the single routing rule that assigns the workspace."""
    for rule in sorted(rules, key=lambda r: r.order_key):
        if not rule.is_active:
            continue
        result = evaluate(rule, lead)
        if result is not None:
            return result
    return None


def match_forwarding(rules: Iterable[RuleSnapshot], lead: LeadCriteria) -> list[RuleMatch]:
    """All-matches-fire over active, forward-enabled rules, deduplicated by target URL.

    When two rules point at the same URL the earlier one in (priority, id)
    order keeps the delivery.
    """
    seen_targets: set[str] = set()
    matches = []
    for result in match((r for r in rules if r.forward_enabled), lead):
        target = result.rule.target_webhook_url
        if target in seen_targets:
            logger.info(
                "Forwarding rule shadowed by earlier rule with same target",
                extra={"rule_id": result.rule.id, "target_webhook_url": target},
            )
            continue
        seen_targets.add(target)
        matches.append(result)
    return matches
