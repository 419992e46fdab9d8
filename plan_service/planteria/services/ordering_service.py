"""
Sibling ordering and subtree operations for Outcome -> Deliverable -> Action.
Each level is described once by a TreeLevel; append, compact, delete and done-cascade are written
once and walk the levels recursively.
Within a sibling set, order is 0..n-1 at rest.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from planteria.logging_config import get_logger
from planteria.models import Action, Deliverable, Outcome

logger = get_logger(__name__)


@dataclass(frozen=True)
class TreeLevel:
    """One level of the tree: its model, the column pointing at its parent, and the level below it."""

    name: str
    model: Any
    parent_attr: str
    child: Optional["TreeLevel"] = None

    @property
    def parent_column(self):  # noqa: ANN201
        return getattr(self.model, self.parent_attr)


ACTIONS = TreeLevel(name="action", model=Action, parent_attr="deliverable_id")
DELIVERABLES = TreeLevel(name="deliverable", model=Deliverable, parent_attr="outcome_id", child=ACTIONS)
OUTCOMES = TreeLevel(name="outcome", model=Outcome, parent_attr="plan_id", child=DELIVERABLES)


async def list_children(db: AsyncSession, level: TreeLevel, parent_id: UUID) -> List[Any]:
    """Siblings under parent_id sorted by order (created_at, id break ties left by corrupted data)."""
    model = level.model
    q = (
        select(model)
        .where(level.parent_column == parent_id)
        .order_by(model.order.asc(), model.created_at.asc(), model.id.asc())
    )
    r = await db.execute(q)
    return list(r.scalars().all())


async def next_order(db: AsyncSession, level: TreeLevel, parent_id: UUID) -> int:
    """max(order) + 1 among siblings, 0 when there are none. Gaps from earlier corruption are tolerated."""
    q = select(func.max(level.model.order)).where(level.parent_column == parent_id)
    r = await db.execute(q)
    current = r.scalar()
    return 0 if current is None else current + 1


async def compact_siblings(db: AsyncSession, level: TreeLevel, parent_id: UUID) -> int:
    """
    Re-number siblings to 0..n-1 keeping their relative order.
    Only rows whose stored order differs from their position are written. Returns the number patched.
    """
    patched = 0
    for index, node in enumerate(await list_children(db, level, parent_id)):
        if node.order != index:
            node.order = index
            patched += 1
    if patched:
        await db.flush()
        logger.debug("ordering.compacted", level=level.name, parent_id=str(parent_id), patched=patched)
    return patched


async def delete_subtree(db: AsyncSession, level: TreeLevel, node: Any) -> int:
    """
    Delete node and everything below it, children before their parent.
    Does not compact the node's own siblings; callers do that once per removal.
    Returns the number of rows deleted.
    """
    deleted = 0
    if level.child is not None:
        for child in await list_children(db, level.child, node.id):
            deleted += await delete_subtree(db, level.child, child)
    await db.delete(node)
    await db.flush()
    return deleted + 1


async def cascade_done(db: AsyncSession, level: TreeLevel, node: Any, timestamp: datetime) -> int:
    """Force every non-done descendant of node to done, stamping them with one timestamp. Returns rows changed."""
    if level.child is None:
        return 0
    changed = 0
    for child in await list_children(db, level.child, node.id):
        if child.status != "done":
            child.status = "done"
            child.updated_at = timestamp
            changed += 1
        changed += await cascade_done(db, level.child, child, timestamp)
    if changed:
        await db.flush()
    return changed
