"""Idempotence guard for rule-created side effects.

Two kinds of guard:

- Task existence: a rule only creates a task if no open task exists for the
  same (related_to, related_id, automation_kind). The lookup and the insert
  that follows are separate statements, so two overlapping runs can still
  both pass the check.
- Flag claim: a one-shot boolean column is flipped with a conditional UPDATE
  and the caller acts only if it changed exactly one row.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bizabode_automation.domain.enums import OPEN_TASK_STATUSES, AutomationKind, RelatedTo
from bizabode_automation.domain.models import Task


async def find_open_task(
    db: AsyncSession,
    related_to: RelatedTo,
    related_id: str,
    automation_kind: Optional[AutomationKind] = None,
) -> Optional[Task]:
    """Return an open (Pending / In Progress) task for the relation.

    With ``automation_kind`` the match is restricted to tasks created by that
    rule; without it any open task on the relation counts.
    """
    conditions = [
        Task.related_to == related_to.value,
        Task.related_id == related_id,
        Task.status.in_(OPEN_TASK_STATUSES),
    ]
    if automation_kind is not None:
        conditions.append(Task.automation_kind == automation_kind.value)

    result = await db.execute(select(Task).where(*conditions).limit(1))
    return result.scalars().first()


async def already_handled(
    db: AsyncSession,
    related_to: RelatedTo,
    related_id: str,
    automation_kind: Optional[AutomationKind] = None,
) -> bool:
    return await find_open_task(db, related_to, related_id, automation_kind) is not None


async def claim_flag(db: AsyncSession, model, row_id: str, flag: str) -> bool:
    """Set ``model.<flag>`` to True if it is still False. Returns True if this call set it.

    The UPDATE runs inside the caller's transaction; the claim becomes durable
    with the caller's commit, together with the side effect it guards.
    """
    column = getattr(model, flag)
    result = await db.execute(
        update(model)
        .where(model.id == row_id, column == False)  # noqa: E712
        .values({flag: True})
    )
    return result.rowcount == 1
