import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.agents.models import AgentRun, AgentRunStatus, AgentType
from src.agents.step_design.agent import step_design_agent, StepDesignAgentState
from src.config import settings
from src.llm.factory import get_model_name
from src.step_design.schemas import StepDesignAgentOutput

logger = logging.getLogger(__name__)


def generate_input_hash(inputs: Dict[str, Any]) -> str:
    """Stable 32-hex-char digest of the canonical JSON form of ``inputs``."""
    normalized = json.dumps(inputs, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:32]


@dataclass
class DesignAgentResult:
    success: bool
    data: Optional[StepDesignAgentOutput] = None
    error: Optional[str] = None
    run_id: Optional[UUID] = None
    cached: bool = False


class DesignAgentRunner:
    """Runs the step design agent and records every run.

    Successful runs double as a cache keyed by session, agent type and input
    hash. Failures are returned as an unsuccessful result, never raised.
    """

    def __init__(self, db: AsyncSession, agent=None):
        self.db = db
        self.agent = agent or step_design_agent

    async def _find_cached_run(self, session_id: UUID, input_hash: str) -> Optional[AgentRun]:
        result = await self.db.execute(
            select(AgentRun)
            .where(
                AgentRun.session_id == session_id,
                AgentRun.agent_type == AgentType.STEP_DESIGN,
                AgentRun.input_hash == input_hash,
                AgentRun.status == AgentRunStatus.SUCCEEDED,
            )
            .order_by(AgentRun.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def run(
        self,
        session_id: UUID,
        inputs: Dict[str, Any],
        user_id: Optional[UUID] = None,
        force_rerun: bool = False,
    ) -> DesignAgentResult:
        input_hash = generate_input_hash(inputs)

        if settings.STEP_DESIGN_AGENT_CACHE_ENABLED and not force_rerun:
            cached_run = await self._find_cached_run(session_id, input_hash)
            if cached_run and cached_run.outputs:
                try:
                    data = StepDesignAgentOutput.model_validate(cached_run.outputs)
                    logger.info(f"Step design cache hit for session {session_id} (run {cached_run.id})")
                    return DesignAgentResult(success=True, data=data, run_id=cached_run.id, cached=True)
                except PydanticValidationError:
                    logger.warning(f"Cached run {cached_run.id} no longer matches the output schema, rerunning")

        agent_run = AgentRun(
            session_id=session_id,
            agent_type=AgentType.STEP_DESIGN,
            input_hash=input_hash,
            inputs=json.loads(json.dumps(inputs, default=str)),
            status=AgentRunStatus.QUEUED,
            provider=settings.LLM_PROVIDER_PRIMARY,
            model=get_model_name(),
            created_by=user_id,
        )
        self.db.add(agent_run)
        await self.db.commit()

        agent_run.status = AgentRunStatus.RUNNING
        agent_run.started_at = datetime.utcnow()
        await self.db.commit()

        try:
            initial_state: StepDesignAgentState = {
                "inputs": inputs,
                "step_brief": "",
                "design_output": None,
                "messages": [],
                "errors": [],
            }
            final_state = await self.agent.ainvoke(initial_state)

            if final_state.get("errors"):
                raise ValueError(f"Agent failed: {final_state['errors']}")

            output = final_state.get("design_output")
            if output is None:
                raise ValueError("Agent returned no design output")
            # Structured output may arrive as a dict depending on the provider
            data = StepDesignAgentOutput.model_validate(
                output.model_dump() if isinstance(output, StepDesignAgentOutput) else output
            )
        except Exception as e:
            logger.error(f"Step design agent run {agent_run.id} failed: {e}", exc_info=True)
            agent_run.status = AgentRunStatus.FAILED
            agent_run.error = str(e)
            agent_run.completed_at = datetime.utcnow()
            await self.db.commit()
            return DesignAgentResult(success=False, error=str(e), run_id=agent_run.id)

        agent_run.status = AgentRunStatus.SUCCEEDED
        agent_run.outputs = data.model_dump(mode="json")
        agent_run.completed_at = datetime.utcnow()
        await self.db.commit()

        logger.info(f"Step design agent run {agent_run.id} succeeded with {len(data.options)} option(s)")
        return DesignAgentResult(success=True, data=data, run_id=agent_run.id)
