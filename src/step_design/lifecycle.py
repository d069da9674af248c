import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.config import settings
from src.core.exceptions import AgentError, ConflictError, NotFoundError, ValidationError
from src.future_state.graph_store import GraphStore
from src.future_state.models import FutureStateNode
from src.processes.models import ProcessStep, WorkflowContext
from src.sessions.models import WasteWalkSession
from src.solutions.models import SolutionCard
from src.step_design.agent_runner import DesignAgentRunner
from src.step_design.context_store import StepContextStore
from src.step_design.models import (
    StepDesignVersion, StepDesignVersionStatus, StepDesignOption, DesignAssumption,
)
from src.step_design.status import StatusAggregator

logger = logging.getLogger(__name__)


class StepDesignLifecycle:
    """Generates design versions for a node and accepts one of their options.

    Node and solution status are never written directly here; every
    transition ends with a recomputation through ``StatusAggregator``.
    """

    def __init__(self, db: AsyncSession, runner: Optional[DesignAgentRunner] = None):
        self.db = db
        self.graph = GraphStore(db)
        self.contexts = StepContextStore(db)
        self.status = StatusAggregator(db)
        self.runner = runner or DesignAgentRunner(db)

    async def _list_design_versions(self, node_id: UUID) -> List[StepDesignVersion]:
        result = await self.db.execute(
            select(StepDesignVersion)
            .where(StepDesignVersion.node_id == node_id)
            .order_by(StepDesignVersion.version.desc())
        )
        return list(result.scalars().all())

    async def _load_options(self, version_id: UUID) -> List[StepDesignOption]:
        result = await self.db.execute(
            select(StepDesignOption)
            .where(StepDesignOption.version_id == version_id)
            .options(selectinload(StepDesignOption.assumptions))
            .order_by(StepDesignOption.option_key)
        )
        return list(result.scalars().all())

    async def get_bundle(self, node_id: UUID) -> Dict[str, Any]:
        node = await self.graph.get_node(node_id)
        context = await self.contexts.get(node_id)
        versions = await self._list_design_versions(node_id)
        latest = versions[0] if versions else None
        options = await self._load_options(latest.id) if latest else []

        linked_solution = None
        if node.linked_solution_id:
            linked_solution = await self.db.get(SolutionCard, node.linked_solution_id)
        source_step = None
        if node.source_step_id:
            source_step = await self.db.get(ProcessStep, node.source_step_id)

        return {
            "node": node,
            "context": context,
            "versions": versions,
            "latest_version": latest,
            "options": options,
            "linked_solution": linked_solution,
            "source_step": source_step,
        }

    async def _build_agent_inputs(
        self, node: FutureStateNode, session_id: UUID, research_mode: bool
    ) -> Dict[str, Any]:
        """Assemble the JSON-safe input bundle for the design agent."""
        workflow_context = None
        session = await self.db.get(WasteWalkSession, session_id)
        if session:
            result = await self.db.execute(
                select(WorkflowContext).where(WorkflowContext.process_id == session.process_id)
            )
            wc = result.scalars().first()
            if wc:
                workflow_context = {
                    "purpose": wc.purpose,
                    "business_value": wc.business_value,
                    "trigger_events": wc.trigger_events or [],
                    "end_outcomes": wc.end_outcomes or [],
                    "volume_frequency": wc.volume_frequency,
                    "sla_targets": wc.sla_targets,
                    "constraints": wc.constraints or [],
                }

        solution = None
        if node.linked_solution_id:
            card = await self.db.get(SolutionCard, node.linked_solution_id)
            if card:
                solution = {
                    "id": str(card.id),
                    "title": card.title,
                    "description": card.description or "",
                    "bucket": card.bucket.value,
                }

        current_step = None
        if node.source_step_id:
            step = await self.db.get(ProcessStep, node.source_step_id)
            if step:
                current_step = {
                    "id": str(step.id),
                    "step_name": step.step_name,
                    "description": step.description,
                    "lane": step.lane,
                    "lead_time_minutes": step.lead_time_minutes,
                    "cycle_time_minutes": step.cycle_time_minutes,
                }

        context = await self.contexts.get(node.id)

        result = await self.db.execute(
            select(StepDesignVersion)
            .where(
                StepDesignVersion.node_id == node.id,
                StepDesignVersion.status == StepDesignVersionStatus.ACCEPTED,
            )
            .order_by(StepDesignVersion.version.desc())
        )
        prior_versions = []
        for accepted in result.scalars().all():
            selected = None
            if accepted.selected_option_id:
                option = await self.db.get(StepDesignOption, accepted.selected_option_id)
                if option:
                    selected = {"title": option.title, "summary": option.summary}
            prior_versions.append({"version": accepted.version, "selected_option": selected})

        return {
            "workflow_context": workflow_context,
            "node": {
                "id": str(node.id),
                "name": node.name,
                "description": node.description,
                "lane": node.lane,
                "step_type": node.step_type.value,
                "action": node.action.value,
                "linked_solution_id": str(node.linked_solution_id) if node.linked_solution_id else None,
            },
            "solution": solution,
            "current_step": current_step,
            "existing_context": dict(context.context_json or {}) if context else None,
            "prior_versions": prior_versions,
            "research_mode": research_mode,
        }

    async def generate(
        self,
        node_id: UUID,
        session_id: UUID,
        future_state_id: UUID,
        user_id: Optional[UUID] = None,
        research_mode: bool = False,
        force_rerun: bool = False,
    ) -> Dict[str, Any]:
        """Run the design agent for a node and persist its options as a new draft version.

        The version, its options and assumptions and the recomputed statuses
        commit together. Clarifying questions are merged into the step
        context afterwards; a failure there is logged and does not undo the
        new version.
        """
        node = await self.graph.get_node(node_id)
        if node.future_state_id != future_state_id:
            raise ValidationError(f"Node {node_id} does not belong to future state {future_state_id}")

        inputs = await self._build_agent_inputs(node, session_id, research_mode)
        result = await self.runner.run(session_id, inputs, user_id=user_id, force_rerun=force_rerun)
        if not result.success or result.data is None:
            raise AgentError(result.error or "Agent run failed")
        output = result.data
        if not output.options:
            raise AgentError("Agent returned no design options")

        retries = settings.VERSION_ALLOCATION_RETRIES
        design_version = None
        next_version = None
        for attempt in range(1, retries + 1):
            node = await self.graph.get_node(node_id)
            latest = await self._list_design_versions(node_id)
            next_version = latest[0].version + 1 if latest else 1

            try:
                design_version = StepDesignVersion(
                    session_id=session_id,
                    future_state_id=future_state_id,
                    node_id=node_id,
                    version=next_version,
                    status=StepDesignVersionStatus.DRAFT,
                    created_by=user_id,
                    updated_by=user_id,
                )
                self.db.add(design_version)
                await self.db.flush()

                for opt in output.options:
                    self.db.add(StepDesignOption(
                        version_id=design_version.id,
                        option_key=opt.option_key,
                        title=opt.title,
                        summary=opt.summary,
                        changes=opt.changes,
                        waste_addressed=opt.waste_addressed,
                        risks=opt.risks,
                        dependencies=opt.dependencies,
                        confidence=opt.confidence,
                        research_mode_used=research_mode,
                        pattern_labels=opt.pattern_labels,
                        design_json=opt.design,
                        assumptions=[
                            DesignAssumption(
                                assumption=a.assumption,
                                risk_if_wrong=a.risk_if_wrong,
                                validation_method=a.validation_method,
                            )
                            for a in opt.assumptions
                        ],
                    ))
                await self.db.flush()

                await self.status.recompute_node_status(node, user_id, reopened=True)
                if node.linked_solution_id:
                    await self.status.recompute_solution_status(node.linked_solution_id)
                await self.db.commit()
                break
            except IntegrityError:
                await self.db.rollback()
                design_version = None
                logger.warning(
                    f"Step design version collision for node {node_id} "
                    f"(attempt {attempt}/{retries})"
                )
            except Exception:
                await self.db.rollback()
                raise

        if design_version is None:
            raise ConflictError("Step design version", "version", next_version)

        logger.info(
            f"Generated step design v{design_version.version} for node {node_id} "
            f"with {len(output.options)} option(s) (run {result.run_id}, cached={result.cached})"
        )

        if output.questions:
            try:
                await self.contexts.merge_questions(
                    node_id,
                    [q.model_dump() for q in output.questions],
                    session_id=session_id,
                    future_state_id=future_state_id,
                    user_id=user_id,
                )
            except Exception as e:
                logger.warning(f"Failed to merge clarifying questions for node {node_id}: {e}")
                await self.db.rollback()

        await self.db.refresh(design_version)
        return {
            "version": design_version,
            "options": await self._load_options(design_version.id),
            "questions": output.questions,
            "context_needed": output.context_needed,
            "run_id": result.run_id,
            "cached": result.cached,
        }

    async def select_option(
        self, version_id: UUID, option_id: UUID, user_id: Optional[UUID] = None
    ) -> Dict[str, Any]:
        """Accept ``option_id`` of ``version_id``, archiving the node's previously accepted version."""
        design_version = await self.db.get(StepDesignVersion, version_id)
        if not design_version:
            raise NotFoundError("Step design version", version_id)

        option = await self.db.get(StepDesignOption, option_id)
        if not option or option.version_id != version_id:
            raise NotFoundError("Option", option_id)

        node = await self.graph.get_node(design_version.node_id)

        try:
            # Archive first so the single-accepted index never sees two rows
            archived = await self.db.execute(
                update(StepDesignVersion)
                .where(
                    StepDesignVersion.node_id == design_version.node_id,
                    StepDesignVersion.status == StepDesignVersionStatus.ACCEPTED,
                    StepDesignVersion.id != version_id,
                )
                .values(status=StepDesignVersionStatus.ARCHIVED, updated_by=user_id)
                .execution_options(synchronize_session="fetch")
            )

            design_version.status = StepDesignVersionStatus.ACCEPTED
            design_version.selected_option_id = option_id
            design_version.updated_by = user_id
            node.active_step_design_version_id = version_id
            node.updated_by = user_id
            await self.db.flush()

            await self.status.recompute_node_status(node, user_id)
            if node.linked_solution_id:
                await self.status.recompute_solution_status(node.linked_solution_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(design_version)
        await self.db.refresh(node)
        logger.info(
            f"Selected option {option.option_key} of step design v{design_version.version} "
            f"for node {node.id}; {archived.rowcount} prior version(s) archived"
        )
        return {"version": design_version, "node": node}
