from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List

from inbox_triage.models import AutomationRule, rule_from_dict, to_dict

logger = logging.getLogger(__name__)


def load_rules(path: Path) -> List[AutomationRule]:
    if not path.exists():
        return []
    data = json.loads(path.read_text(encoding="utf-8"))
    # Accept both {"automations": [...]} and a bare list.
    raw_rules = data.get("automations") if isinstance(data, dict) else data
    rules: List[AutomationRule] = []
    for raw in raw_rules or []:
        if not isinstance(raw, dict):
            continue
        rule = rule_from_dict(raw)
        # Keep load resilient to legacy/partial records, drop the unusable ones.
        if not rule.label.id and not rule.label.name:
            logger.warning("[RULES] dropping rule without label id=%s", rule.id)
            continue
        rules.append(rule)
    return rules


def save_rules(path: Path, rules: Iterable[AutomationRule]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"automations": [to_dict(rule) for rule in rules]}
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
