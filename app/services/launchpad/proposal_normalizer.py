"""Structural repair of model-proposed plans.

``normalize_proposal`` is the single boundary between the untyped model
response and the typed ``ProposedPlan``. It never raises: it patches missing
titles from ``name`` or ``description``, coerces field shapes, and drops items
that still have no title. Everything downstream may assume every item it sees
carries a non-empty title.
"""

import re
from typing import Any, Dict, List, Optional

from app.schemas.launchpad import ProposedPlan
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

DESCRIPTION_TITLE_LENGTH = 100

LIST_SECTIONS = ("values", "goals", "strategies", "objectives", "bigRocks")

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def _text(value: Any) -> Optional[str]:
    """Return value as text when it carries visible content, else None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value
    return None


def resolve_title(item: Dict[str, Any]) -> Optional[str]:
    """Title precedence: title, then name, then description cut to 100 chars."""
    title = _text(item.get("title"))
    if title:
        return title
    name = _text(item.get("name"))
    if name:
        return name
    description = _text(item.get("description"))
    if description:
        return description[:DESCRIPTION_TITLE_LENGTH]
    return None


def _first_list(item: Dict[str, Any], *keys: str) -> List[Any]:
    for key in keys:
        value = item.get(key)
        if isinstance(value, list):
            return value
    return []


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _NUMBER_RE.search(value.replace(",", ""))
        if match:
            return float(match.group(0))
    return None


def _quarter(value: Any) -> Any:
    """Keep integers and labels for commit-time resolution; drop anything else."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (int, str)):
        return value
    return None


def _as_item(raw: Any) -> Optional[Dict[str, Any]]:
    if isinstance(raw, str):
        return {"title": raw}
    if isinstance(raw, dict):
        return dict(raw)
    return None


def _normalize_item(raw: Any) -> Optional[Dict[str, Any]]:
    item = _as_item(raw)
    if item is None:
        return None

    title = resolve_title(item)
    if not title:
        return None

    item["title"] = title
    item.pop("name", None)
    description = item.get("description")
    item["description"] = description if isinstance(description, str) else _text(description)
    return item


def _normalize_strategy(raw: Any) -> Optional[Dict[str, Any]]:
    item = _normalize_item(raw)
    if item is None:
        return None
    linked = _first_list(item, "linkedGoals", "linked_goals")
    item.pop("linked_goals", None)
    item["linkedGoals"] = [str(goal) for goal in linked if _text(goal)]
    return item


def _normalize_key_result(raw: Any) -> Optional[Dict[str, Any]]:
    item = _normalize_item(raw)
    if item is None:
        return None
    metric_type = item.get("metricType", item.get("metric_type"))
    target_value = item.get("targetValue", item.get("target_value"))
    item.pop("metric_type", None)
    item.pop("target_value", None)
    item["metricType"] = _text(metric_type)
    item["targetValue"] = _number(target_value)
    item["unit"] = _text(item.get("unit"))
    return item


def _normalize_big_rock(raw: Any) -> Optional[Dict[str, Any]]:
    item = _normalize_item(raw)
    if item is None:
        return None
    item["priority"] = _text(item.get("priority"))
    item["quarter"] = _quarter(item.get("quarter"))
    return item


def _normalize_objective(raw: Any) -> Optional[Dict[str, Any]]:
    item = _as_item(raw)
    if item is None:
        return None

    # Children are repaired before the objective's own title check
    item["keyResults"] = _normalize_list(
        _first_list(item, "keyResults", "key_results"), _normalize_key_result
    )
    item["bigRocks"] = _normalize_list(
        _first_list(item, "bigRocks", "big_rocks"), _normalize_big_rock
    )
    item.pop("key_results", None)
    item.pop("big_rocks", None)

    item = _normalize_item(item)
    if item is None:
        return None
    item["level"] = _text(item.get("level"))
    item["team"] = _text(item.get("team"))
    return item


def _normalize_list(raw_items: Any, normalize_one) -> List[Dict[str, Any]]:
    if not isinstance(raw_items, list):
        return []
    normalized = []
    for raw in raw_items:
        item = normalize_one(raw)
        if item is not None:
            normalized.append(item)
    return normalized


def normalize_proposal(raw: Any) -> Dict[str, Any]:
    """Repair a raw plan into the minimal camelCase shape.

    Args:
        raw: Parsed model response or user-edited plan. Anything that is not
            a dict is treated as an empty plan.

    Returns:
        Clean plan dict: mission, vision, values, goals, strategies,
        objectives (with keyResults and bigRocks) and top-level bigRocks.
    """
    if not isinstance(raw, dict):
        LOGGER.warning(f"Proposal is not an object ({type(raw).__name__}); using an empty plan")
        raw = {}

    mission = _text(raw.get("mission"))
    vision = _text(raw.get("vision"))

    clean = {
        "mission": mission.strip() if mission else None,
        "vision": vision.strip() if vision else None,
        "values": _normalize_list(raw.get("values"), _normalize_item),
        "goals": _normalize_list(raw.get("goals"), _normalize_item),
        "strategies": _normalize_list(raw.get("strategies"), _normalize_strategy),
        "objectives": _normalize_list(raw.get("objectives"), _normalize_objective),
        "bigRocks": _normalize_list(_first_list(raw, "bigRocks", "big_rocks"), _normalize_big_rock),
    }

    dropped = sum(
        len(raw.get(section)) - len(clean[section])
        for section in ("values", "goals", "strategies", "objectives")
        if isinstance(raw.get(section), list)
    )
    if dropped:
        LOGGER.info(f"Dropped {dropped} untitled top-level proposal item(s)")

    return clean


def to_plan(raw: Any) -> ProposedPlan:
    """Normalize and type a raw plan."""
    return ProposedPlan.model_validate(normalize_proposal(raw))


def is_empty_plan(plan: Dict[str, Any]) -> bool:
    return not (plan.get("mission") or plan.get("vision")) and not any(
        plan.get(section) for section in LIST_SECTIONS
    )
