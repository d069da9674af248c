import pytest
from sqlalchemy import select

from src.agents.models import AgentRun, AgentRunStatus, AgentType
from src.config import settings
from src.step_design.agent_runner import DesignAgentRunner, generate_input_hash
from tests.factories import TEST_USER_ID, FakeStepDesignAgent, make_agent_output


INPUTS = {"node": {"name": "Match invoice", "lane": "AP"}, "research_mode": False}


def test_input_hash_is_key_order_independent():
    reordered = {"research_mode": False, "node": {"lane": "AP", "name": "Match invoice"}}

    assert generate_input_hash(INPUTS) == generate_input_hash(reordered)
    assert len(generate_input_hash(INPUTS)) == 32
    assert generate_input_hash(INPUTS) != generate_input_hash({**INPUTS, "research_mode": True})


async def _runs(db):
    result = await db.execute(select(AgentRun).order_by(AgentRun.created_at))
    return result.scalars().all()


@pytest.mark.asyncio
async def test_successful_run_is_recorded(db_session, session_row):
    agent = FakeStepDesignAgent(make_agent_output(option_count=3))

    result = await DesignAgentRunner(db_session, agent=agent).run(session_row.id, INPUTS, user_id=TEST_USER_ID)

    assert result.success is True
    assert result.cached is False
    assert len(result.data.options) == 3

    (run,) = await _runs(db_session)
    assert run.id == result.run_id
    assert run.agent_type == AgentType.STEP_DESIGN
    assert run.status == AgentRunStatus.SUCCEEDED
    assert run.input_hash == generate_input_hash(INPUTS)
    assert run.outputs["options"][0]["option_key"] == "A"
    assert run.started_at is not None
    assert run.completed_at is not None
    assert run.created_by == TEST_USER_ID


@pytest.mark.asyncio
async def test_identical_inputs_reuse_cached_run(db_session, session_row):
    agent = FakeStepDesignAgent()
    runner = DesignAgentRunner(db_session, agent=agent)

    first = await runner.run(session_row.id, INPUTS)
    second = await runner.run(session_row.id, dict(INPUTS))

    assert len(agent.calls) == 1
    assert second.cached is True
    assert second.run_id == first.run_id
    assert second.data == first.data
    assert len(await _runs(db_session)) == 1


@pytest.mark.asyncio
async def test_force_rerun_bypasses_cache(db_session, session_row):
    agent = FakeStepDesignAgent()
    runner = DesignAgentRunner(db_session, agent=agent)

    await runner.run(session_row.id, INPUTS)
    again = await runner.run(session_row.id, INPUTS, force_rerun=True)

    assert again.cached is False
    assert len(agent.calls) == 2
    assert len(await _runs(db_session)) == 2


@pytest.mark.asyncio
async def test_cache_can_be_disabled(db_session, session_row, monkeypatch):
    monkeypatch.setattr(settings, "STEP_DESIGN_AGENT_CACHE_ENABLED", False)
    agent = FakeStepDesignAgent()
    runner = DesignAgentRunner(db_session, agent=agent)

    await runner.run(session_row.id, INPUTS)
    await runner.run(session_row.id, INPUTS)

    assert len(agent.calls) == 2


@pytest.mark.asyncio
async def test_failed_run_is_recorded_and_not_cached(db_session, session_row):
    failing = DesignAgentRunner(db_session, agent=FakeStepDesignAgent(errors=["timeout"]))

    result = await failing.run(session_row.id, INPUTS)

    assert result.success is False
    assert "timeout" in result.error
    (run,) = await _runs(db_session)
    assert run.status == AgentRunStatus.FAILED
    assert "timeout" in run.error
    assert run.outputs is None

    agent = FakeStepDesignAgent()
    retried = await DesignAgentRunner(db_session, agent=agent).run(session_row.id, INPUTS)
    assert retried.success is True
    assert retried.cached is False
    assert len(agent.calls) == 1
