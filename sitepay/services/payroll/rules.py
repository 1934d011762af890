from typing import Iterable, Optional

from sitepay.core.enums import RuleType


def _specificity(rule, ignore_role: bool) -> int:
    score = 0
    if rule.site_id is not None:
        score += 2
    if not ignore_role and rule.role:
        score += 1
    return score


def match_rule(rules: Iterable, rule_type: str, site_id: Optional[int], role: Optional[str]):
    """Pick the active rule of ``rule_type`` that applies to (site, role).

    A rule applies when its site is unset or equal and its role is unset or
    equal. Site-specific beats role-specific beats global; among equals the
    most recently created rule wins. Overtime multipliers never filter by role.
    """
    ignore_role = rule_type == RuleType.OVERTIME_MULTIPLIER.value
    candidates = []
    for rule in rules:
        if not rule.is_active or rule.rule_type != rule_type:
            continue
        if rule.site_id is not None and rule.site_id != site_id:
            continue
        if not ignore_role and rule.role and rule.role != role:
            continue
        candidates.append(rule)

    if not candidates:
        return None
    return max(candidates, key=lambda r: (_specificity(r, ignore_role), r.id or 0))
