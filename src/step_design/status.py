import logging
from typing import Iterable, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.future_state.models import FutureStateNode
from src.solutions.models import SolutionCard, StepDesignStatus
from src.step_design.models import StepDesignVersion, StepDesignVersionStatus

logger = logging.getLogger(__name__)


def compute_solution_status(node_statuses: Iterable[StepDesignStatus]) -> StepDesignStatus:
    """Roll linked node statuses up to one solution status.

    Partial completion (some nodes complete, others untouched) counts as
    ``needs_step_design``. A solution with no linked nodes is ``strategy_only``.
    """
    statuses = list(node_statuses)
    if statuses and all(s == StepDesignStatus.STEP_DESIGN_COMPLETE for s in statuses):
        return StepDesignStatus.STEP_DESIGN_COMPLETE
    if any(
        s in (StepDesignStatus.NEEDS_STEP_DESIGN, StepDesignStatus.STEP_DESIGN_COMPLETE)
        for s in statuses
    ):
        return StepDesignStatus.NEEDS_STEP_DESIGN
    return StepDesignStatus.STRATEGY_ONLY


def derive_node_status(
    current: StepDesignStatus,
    history: Sequence[Tuple[int, StepDesignVersionStatus]],
    reopened: bool = False,
) -> StepDesignStatus:
    """Node status from its design history of ``(version, status)`` pairs.

    A node with an accepted version is complete. ``reopened`` marks a fresh
    draft, which sends even a complete node back to ``needs_step_design``.
    Without history the status is left alone.
    """
    if not history:
        return current
    if reopened:
        return StepDesignStatus.NEEDS_STEP_DESIGN
    if any(s == StepDesignVersionStatus.ACCEPTED for _, s in history):
        return StepDesignStatus.STEP_DESIGN_COMPLETE
    return StepDesignStatus.NEEDS_STEP_DESIGN


class StatusAggregator:
    """Recomputes node and solution design status. Flushes but never commits."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def recompute_node_status(
        self, node: FutureStateNode, user_id: Optional[UUID] = None, reopened: bool = False
    ) -> StepDesignStatus:
        await self.db.flush()
        result = await self.db.execute(
            select(StepDesignVersion.version, StepDesignVersion.status)
            .where(StepDesignVersion.node_id == node.id)
        )
        history = [(row.version, row.status) for row in result.all()]

        status = derive_node_status(node.step_design_status, history, reopened)
        if status != node.step_design_status:
            logger.info(f"Node {node.id} step design status {node.step_design_status.value} -> {status.value}")
            node.step_design_status = status
            node.updated_by = user_id
        await self.db.flush()
        return status

    async def recompute_solution_status(self, solution_id: UUID) -> Optional[StepDesignStatus]:
        solution = await self.db.get(SolutionCard, solution_id)
        if not solution:
            logger.warning(f"Linked solution {solution_id} not found, skipping status rollup")
            return None

        await self.db.flush()
        result = await self.db.execute(
            select(FutureStateNode.step_design_status)
            .where(FutureStateNode.linked_solution_id == solution_id)
        )
        status = compute_solution_status(result.scalars().all())

        if status != solution.step_design_status:
            logger.info(
                f"Solution {solution_id} step design status "
                f"{solution.step_design_status.value} -> {status.value}"
            )
            solution.step_design_status = status
        await self.db.flush()
        return status
