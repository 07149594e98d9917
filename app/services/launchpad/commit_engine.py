"""Write an approved plan into the tenant's planning store.

The engine reads the tenant's existing titles once, then creates entities
item by item, skipping anything whose case- and whitespace-insensitive title
already exists or was created earlier in the same call. Re-running a commit
with the same plan therefore creates nothing new. Two commits running
concurrently for one tenant each read their own title sets and can both
create the same title; only a uniqueness constraint in the store prevents
that, and the strategies table is the only one that has it.

A failure while creating one item is recorded in the result and the engine
moves on to the next item.
"""

import re
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Set, Union

from app.schemas.launchpad import (
    ApprovalFlags,
    CommitResult,
    ExistingEntities,
    ProposedBigRock,
    ProposedGoal,
    ProposedObjective,
    ProposedPlan,
)
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

GOAL_MIN_WORDS = 3
GOAL_CLAUSE_MIN_LENGTH = 10
GOAL_TITLE_MAX_LENGTH = 60

_CLAUSE_SPLIT_RE = re.compile(r"[.;,]")
_DIGITS_RE = re.compile(r"\d+")


def normalize_title(title: Optional[str]) -> str:
    """Dedup key: lower-cased and trimmed."""
    return (title or "").lower().strip()


def current_quarter(today: date) -> int:
    return (today.month - 1) // 3 + 1


def parse_quarter(value: Union[int, str, None]) -> Optional[int]:
    """Return the quarter 1-4 expressed by value, or None.

    Integers are taken as is; text such as "Q3" or "3" yields its first
    run of digits.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        quarter = value
    elif isinstance(value, str):
        match = _DIGITS_RE.search(value)
        if not match:
            return None
        quarter = int(match.group(0))
    else:
        return None
    return quarter if 1 <= quarter <= 4 else None


def repair_goal_title(title: Optional[str], description: Optional[str]) -> str:
    """Derive a descriptive goal title when the proposed one is under three words.

    The replacement is the first clause of the description longer than ten
    characters, cut at a word boundary when it exceeds sixty characters.
    """
    title = (title or "").strip()
    description = (description or "").strip()

    if len(title.split()) >= GOAL_MIN_WORDS or not description:
        return title or description[:GOAL_TITLE_MAX_LENGTH]

    clauses = [c.strip() for c in _CLAUSE_SPLIT_RE.split(description)]
    clause = next((c for c in clauses if len(c) > GOAL_CLAUSE_MIN_LENGTH), description)

    if len(clause) > GOAL_TITLE_MAX_LENGTH:
        cut = clause[:GOAL_TITLE_MAX_LENGTH]
        boundary = cut.rfind(" ")
        clause = cut[:boundary] if boundary > 0 else cut

    return clause.strip() or description[:GOAL_TITLE_MAX_LENGTH]


class CommitEngine:
    """Creates approved plan entities with duplicate suppression.

    Args:
        store: Planning store (see ``PlanningRepository``)
        clock: Returns today's date; used for the last-resort big rock quarter
    """

    def __init__(self, store: Any, clock: Callable[[], date] = date.today):
        self.store = store
        self.clock = clock

    async def commit(
        self,
        plan: ProposedPlan,
        flags: ApprovalFlags,
        existing: ExistingEntities,
        tenant_id: str,
        target_year: int,
        target_quarter: Optional[int] = None,
        quarter_override: Optional[int] = None,
    ) -> CommitResult:
        """Create everything approved in ``plan`` that does not already exist.

        Args:
            plan: Normalized proposal
            flags: Per-section approval flags
            existing: Tenant entities read before the commit
            tenant_id: Owning tenant of every created entity
            target_year: Year stamped on goals, objectives and big rocks
            target_quarter: Session quarter; objectives' quarter and big rock fallback
            quarter_override: Request-level big rock quarter

        Returns:
            CommitResult with created counts, skips and per-item failures
        """
        result = CommitResult()
        strategy_titles = {normalize_title(s.title) for s in existing.strategies}
        objective_titles = {normalize_title(o.title) for o in existing.objectives}
        big_rock_titles = {normalize_title(b.title) for b in existing.big_rocks}

        fallback_quarter = (
            parse_quarter(quarter_override)
            or parse_quarter(target_quarter)
            or current_quarter(self.clock())
        )

        await self._commit_foundation(plan, flags, existing, tenant_id, target_year, result)
        await self._commit_strategies(plan, flags, tenant_id, strategy_titles, result)
        await self._commit_objectives(
            plan, flags, tenant_id, target_year, target_quarter,
            fallback_quarter, objective_titles, big_rock_titles, result,
        )
        await self._commit_top_level_big_rocks(
            plan, flags, tenant_id, target_year, fallback_quarter, big_rock_titles, result
        )

        LOGGER.info(
            "Commit finished",
            extra={
                "tenant_id": tenant_id,
                "summary": result.model_dump(exclude={"failures"}),
                "failures": len(result.failures),
            }
        )
        return result

    # ------------------------------------------------------------------
    # Foundation
    # ------------------------------------------------------------------

    def _new_goals(
        self,
        goals: List[ProposedGoal],
        existing: ExistingEntities,
        target_year: int,
        result: CommitResult,
    ) -> List[Dict[str, Any]]:
        seen = {normalize_title(t) for t in existing.annual_goal_titles()}
        added = []
        for goal in goals:
            title = repair_goal_title(goal.title, goal.description)
            if not title:
                result.untitled_skipped += 1
                continue
            key = normalize_title(title)
            if key in seen:
                result.record_duplicate("goals")
                continue
            seen.add(key)
            entry: Dict[str, Any] = {"title": title, "year": target_year}
            if goal.description:
                entry["description"] = goal.description
            added.append(entry)
        return added

    async def _commit_foundation(
        self,
        plan: ProposedPlan,
        flags: ApprovalFlags,
        existing: ExistingEntities,
        tenant_id: str,
        target_year: int,
        result: CommitResult,
    ) -> None:
        fields: Dict[str, Any] = {}

        for section, approved, value in (
            ("mission", flags.approve_mission, plan.mission),
            ("vision", flags.approve_vision, plan.vision),
        ):
            if not (value and value.strip()):
                continue
            if approved:
                fields[section] = value
            else:
                result.skipped.append(section)
                result.record_unapproved(section, 1)

        if plan.values:
            if flags.approve_values:
                fields["values"] = [
                    {"title": v.title, "description": v.description or ""} for v in plan.values
                ]
            else:
                result.skipped.append("values")
                result.record_unapproved("values", len(plan.values))

        new_goals: List[Dict[str, Any]] = []
        if plan.goals:
            if flags.approve_goals:
                new_goals = self._new_goals(plan.goals, existing, target_year, result)
            else:
                result.skipped.append("goals")
                result.record_unapproved("goals", len(plan.goals))

        if new_goals:
            # Legacy string goals predate per-year goals; file them under the previous year
            migrated = [
                {"title": goal, "year": target_year - 1} if isinstance(goal, str) else goal
                for goal in existing.annual_goals
            ]
            fields["annual_goals"] = migrated + new_goals

        if not fields:
            return

        try:
            await self.store.upsert_foundation(tenant_id, **fields)
        except Exception as e:
            LOGGER.error(f"Foundation upsert failed for tenant {tenant_id}: {e}", exc_info=True)
            result.record_failure("foundation", None, e)
            return

        result.foundation = True
        result.values = len(plan.values) if "values" in fields else 0
        result.goals = len(new_goals)

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    async def _commit_strategies(
        self,
        plan: ProposedPlan,
        flags: ApprovalFlags,
        tenant_id: str,
        seen: Set[str],
        result: CommitResult,
    ) -> None:
        if not plan.strategies:
            return
        if not flags.approve_strategies:
            result.skipped.append("strategies")
            result.record_unapproved("strategies", len(plan.strategies))
            return

        for strategy in plan.strategies:
            key = normalize_title(strategy.title)
            if not key:
                result.untitled_skipped += 1
                continue
            if key in seen:
                result.record_duplicate("strategies")
                continue
            try:
                await self.store.create_strategy(
                    tenant_id,
                    title=strategy.title.strip(),
                    description=strategy.description,
                    linked_goals=strategy.linked_goals,
                    status="active",
                )
            except Exception as e:
                LOGGER.error(f"Failed to create strategy '{strategy.title}': {e}", exc_info=True)
                result.record_failure("strategies", strategy.title, e)
                continue
            seen.add(key)
            result.strategies += 1

    # ------------------------------------------------------------------
    # Objectives with their key results and big rocks
    # ------------------------------------------------------------------

    async def _commit_objectives(
        self,
        plan: ProposedPlan,
        flags: ApprovalFlags,
        tenant_id: str,
        target_year: int,
        target_quarter: Optional[int],
        fallback_quarter: int,
        objective_titles: Set[str],
        big_rock_titles: Set[str],
        result: CommitResult,
    ) -> None:
        if not plan.objectives:
            return

        if not flags.approve_objectives:
            result.skipped.append("objectives")
            result.record_unapproved("objectives", len(plan.objectives))
            result.record_unapproved("keyResults", sum(len(o.key_results) for o in plan.objectives))
            if flags.approve_big_rocks:
                result.children_skipped += sum(len(o.big_rocks) for o in plan.objectives)
            return

        for obj in plan.objectives:
            key = normalize_title(obj.title)
            if not key:
                result.untitled_skipped += 1
                self._skip_children(obj, flags, result)
                continue
            if key in objective_titles:
                result.record_duplicate("objectives")
                self._skip_children(obj, flags, result)
                continue

            try:
                objective = await self.store.create_objective(
                    tenant_id,
                    title=obj.title.strip(),
                    description=obj.description,
                    level=obj.level or "organization",
                    team=obj.team,
                    quarter=parse_quarter(target_quarter),
                    year=target_year,
                    status="not_started",
                )
            except Exception as e:
                LOGGER.error(f"Failed to create objective '{obj.title}': {e}", exc_info=True)
                result.record_failure("objectives", obj.title, e)
                self._skip_children(obj, flags, result)
                continue

            objective_id = objective.id
            objective_titles.add(key)
            result.objectives += 1

            await self._commit_key_results(obj, objective_id, tenant_id, result)

            if flags.approve_big_rocks:
                for big_rock in obj.big_rocks:
                    await self._commit_big_rock(
                        big_rock, tenant_id, target_year, fallback_quarter,
                        big_rock_titles, result, objective_id=objective_id,
                    )

    def _skip_children(self, obj: ProposedObjective, flags: ApprovalFlags, result: CommitResult) -> None:
        result.children_skipped += len(obj.key_results)
        if flags.approve_big_rocks:
            result.children_skipped += len(obj.big_rocks)

    async def _commit_key_results(
        self,
        obj: ProposedObjective,
        objective_id: Any,
        tenant_id: str,
        result: CommitResult,
    ) -> None:
        # Key results are scoped to their objective and never deduplicated
        for kr in obj.key_results:
            if not kr.title.strip():
                result.untitled_skipped += 1
                continue
            try:
                await self.store.create_key_result(
                    tenant_id,
                    objective_id,
                    title=kr.title.strip(),
                    metric_type=kr.metric_type or "numeric",
                    target_value=100 if kr.target_value is None else kr.target_value,
                    current_value=0,
                    initial_value=0,
                    unit=kr.unit or "",
                )
            except Exception as e:
                LOGGER.error(f"Failed to create key result '{kr.title}': {e}", exc_info=True)
                result.record_failure("keyResults", kr.title, e)
                continue
            result.key_results += 1

    # ------------------------------------------------------------------
    # Big rocks
    # ------------------------------------------------------------------

    async def _commit_top_level_big_rocks(
        self,
        plan: ProposedPlan,
        flags: ApprovalFlags,
        tenant_id: str,
        target_year: int,
        fallback_quarter: int,
        big_rock_titles: Set[str],
        result: CommitResult,
    ) -> None:
        if not flags.approve_big_rocks:
            if plan.has_big_rocks():
                result.skipped.append("bigRocks")
                parented = sum(len(o.big_rocks) for o in plan.objectives)
                result.record_unapproved("bigRocks", len(plan.big_rocks) + parented)
            return

        for big_rock in plan.big_rocks:
            await self._commit_big_rock(
                big_rock, tenant_id, target_year, fallback_quarter, big_rock_titles, result
            )

    async def _commit_big_rock(
        self,
        big_rock: ProposedBigRock,
        tenant_id: str,
        target_year: int,
        fallback_quarter: int,
        seen: Set[str],
        result: CommitResult,
        objective_id: Any = None,
    ) -> None:
        key = normalize_title(big_rock.title)
        if not key:
            result.untitled_skipped += 1
            return
        if key in seen:
            result.record_duplicate("bigRocks")
            return

        # A valid quarter on the item wins; anything unparseable falls back silently
        quarter = parse_quarter(big_rock.quarter) or fallback_quarter

        try:
            await self.store.create_big_rock(
                tenant_id,
                objective_id=objective_id,
                title=big_rock.title.strip(),
                description=big_rock.description,
                priority=big_rock.priority or "high",
                status="not_started",
                quarter=quarter,
                year=target_year,
            )
        except Exception as e:
            LOGGER.error(f"Failed to create big rock '{big_rock.title}': {e}", exc_info=True)
            result.record_failure("bigRocks", big_rock.title, e)
            return

        seen.add(key)
        result.big_rocks += 1
