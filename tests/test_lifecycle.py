"""
StepDesignLifecycle: generation, option selection and the status transitions they drive.
"""

import uuid
import pytest
import pytest_asyncio
from sqlalchemy import select, func

from src.agents.models import AgentRun, AgentRunStatus
from src.core.exceptions import AgentError, NotFoundError, ValidationError
from src.future_state.graph_store import GraphStore
from src.future_state.schemas import CreateNodeRequest
from src.solutions.models import StepDesignStatus
from src.step_design.agent_runner import DesignAgentRunner
from src.step_design.context_store import StepContextStore
from src.step_design.lifecycle import StepDesignLifecycle
from src.step_design.models import StepDesignVersion, StepDesignVersionStatus
from tests.factories import TEST_USER_ID, FakeStepDesignAgent, add_solution, make_agent_output


@pytest_asyncio.fixture
async def solution(db_session, session_row):
    return await add_solution(db_session, session_row.id)


@pytest_asyncio.fixture
async def node(db_session, version, solution):
    return await GraphStore(db_session).create_node(version.id, CreateNodeRequest(
        name="Match invoice", lane="AP", linked_solution_id=solution.id,
        step_design_status=StepDesignStatus.STRATEGY_ONLY,
    ))


def _lifecycle(db, agent=None):
    return StepDesignLifecycle(db, runner=DesignAgentRunner(db, agent=agent or FakeStepDesignAgent()))


async def _generate(lifecycle, node, session_row, version, **kwargs):
    return await lifecycle.generate(
        node_id=node.id,
        session_id=session_row.id,
        future_state_id=version.id,
        user_id=TEST_USER_ID,
        **kwargs,
    )


async def _count_versions(db, node_id):
    result = await db.execute(
        select(func.count(StepDesignVersion.id)).where(StepDesignVersion.node_id == node_id)
    )
    return result.scalar()


@pytest.mark.asyncio
async def test_generate_creates_draft_with_options(db_session, node, session_row, version, solution):
    agent = FakeStepDesignAgent(make_agent_output(option_count=3))

    result = await _generate(_lifecycle(db_session, agent), node, session_row, version)

    design_version = result["version"]
    assert design_version.version == 1
    assert design_version.status == StepDesignVersionStatus.DRAFT
    assert [o.option_key for o in result["options"]] == ["A", "B", "C"]
    assert all(len(o.assumptions) == 1 for o in result["options"])
    assert result["cached"] is False
    assert result["run_id"] is not None

    await db_session.refresh(node)
    await db_session.refresh(solution)
    assert node.step_design_status == StepDesignStatus.NEEDS_STEP_DESIGN
    assert solution.step_design_status == StepDesignStatus.NEEDS_STEP_DESIGN

    # The agent saw the assembled inputs
    inputs = agent.calls[0]["inputs"]
    assert inputs["node"]["name"] == "Match invoice"
    assert inputs["solution"]["title"] == "Auto-match"
    assert inputs["workflow_context"]["purpose"] == "Pay suppliers on time"
    assert inputs["research_mode"] is False


@pytest.mark.asyncio
async def test_generate_numbers_versions_per_node(db_session, node, session_row, version):
    lifecycle = _lifecycle(db_session)

    first = await _generate(lifecycle, node, session_row, version)
    second = await _generate(lifecycle, node, session_row, version, force_rerun=True)

    assert (first["version"].version, second["version"].version) == (1, 2)


@pytest.mark.asyncio
async def test_generate_agent_failure_leaves_nothing_behind(db_session, node, session_row, version):
    lifecycle = _lifecycle(db_session, FakeStepDesignAgent(errors=["model unavailable"]))

    with pytest.raises(AgentError):
        await _generate(lifecycle, node, session_row, version)

    assert await _count_versions(db_session, node.id) == 0
    runs = (await db_session.execute(select(AgentRun))).scalars().all()
    assert [r.status for r in runs] == [AgentRunStatus.FAILED]
    await db_session.refresh(node)
    assert node.step_design_status == StepDesignStatus.STRATEGY_ONLY


@pytest.mark.asyncio
async def test_generate_rejects_node_from_other_version(db_session, node, session_row):
    with pytest.raises(ValidationError):
        await _lifecycle(db_session).generate(
            node_id=node.id, session_id=session_row.id, future_state_id=uuid.uuid4(),
        )


@pytest.mark.asyncio
async def test_generate_merges_questions_without_duplicates(db_session, node, session_row, version):
    questions = [
        {"id": "volume", "question": "How many invoices per month?", "required": True},
        {"id": "owner", "question": "Who owns exceptions?"},
    ]
    lifecycle = _lifecycle(db_session, FakeStepDesignAgent(make_agent_output(questions=questions)))

    result = await _generate(lifecycle, node, session_row, version)
    assert result["context_needed"] is True
    await StepContextStore(db_session).answer_question(node.id, "volume", "1200")
    await _generate(lifecycle, node, session_row, version, force_rerun=True)

    context = await StepContextStore(db_session).get(node.id)
    ids = [q["id"] for q in context.context_json["questions"]]
    assert ids == ["volume", "owner"]
    assert context.context_json["questions"][0]["answer"] == "1200"


@pytest.mark.asyncio
async def test_question_merge_failure_keeps_new_version(db_session, node, session_row, version, monkeypatch):
    async def broken_merge(self, *args, **kwargs):
        raise RuntimeError("context store offline")

    monkeypatch.setattr(StepContextStore, "merge_questions", broken_merge)
    output = make_agent_output(questions=[{"id": "q1", "question": "Volume?"}])

    result = await _generate(_lifecycle(db_session, FakeStepDesignAgent(output)), node, session_row, version)

    assert result["version"].version == 1
    assert await _count_versions(db_session, node.id) == 1
    assert len(result["options"]) == 2


@pytest.mark.asyncio
async def test_select_option_accepts_and_archives_previous(db_session, node, session_row, version, solution):
    lifecycle = _lifecycle(db_session)

    v1 = await _generate(lifecycle, node, session_row, version)
    selected = await lifecycle.select_option(v1["version"].id, v1["options"][0].id, TEST_USER_ID)

    assert selected["version"].status == StepDesignVersionStatus.ACCEPTED
    assert selected["version"].selected_option_id == v1["options"][0].id
    assert selected["node"].active_step_design_version_id == v1["version"].id
    assert selected["node"].step_design_status == StepDesignStatus.STEP_DESIGN_COMPLETE
    await db_session.refresh(solution)
    assert solution.step_design_status == StepDesignStatus.STEP_DESIGN_COMPLETE

    # A newer draft reopens the node
    v2 = await _generate(lifecycle, node, session_row, version, force_rerun=True)
    await db_session.refresh(node)
    assert node.step_design_status == StepDesignStatus.NEEDS_STEP_DESIGN

    selected = await lifecycle.select_option(v2["version"].id, v2["options"][1].id, TEST_USER_ID)
    assert selected["node"].active_step_design_version_id == v2["version"].id
    assert selected["node"].step_design_status == StepDesignStatus.STEP_DESIGN_COMPLETE

    result = await db_session.execute(
        select(StepDesignVersion.version, StepDesignVersion.status)
        .where(StepDesignVersion.node_id == node.id)
        .order_by(StepDesignVersion.version)
    )
    assert result.all() == [
        (1, StepDesignVersionStatus.ARCHIVED),
        (2, StepDesignVersionStatus.ACCEPTED),
    ]


@pytest.mark.asyncio
async def test_selecting_older_version_completes_node(db_session, node, session_row, version, solution):
    lifecycle = _lifecycle(db_session)
    v1 = await _generate(lifecycle, node, session_row, version)
    v2 = await _generate(lifecycle, node, session_row, version, force_rerun=True)

    selected = await lifecycle.select_option(v1["version"].id, v1["options"][0].id, TEST_USER_ID)

    assert selected["node"].active_step_design_version_id == v1["version"].id
    assert selected["node"].step_design_status == StepDesignStatus.STEP_DESIGN_COMPLETE
    await db_session.refresh(solution)
    assert solution.step_design_status == StepDesignStatus.STEP_DESIGN_COMPLETE
    await db_session.refresh(v2["version"])
    assert v2["version"].status == StepDesignVersionStatus.DRAFT


@pytest.mark.asyncio
async def test_solution_rollup_waits_for_every_linked_node(db_session, node, version, session_row, solution):
    other = await GraphStore(db_session).create_node(version.id, CreateNodeRequest(
        name="Pay supplier", lane="AP", linked_solution_id=solution.id,
        step_design_status=StepDesignStatus.STRATEGY_ONLY,
    ))
    lifecycle = _lifecycle(db_session)

    first = await _generate(lifecycle, node, session_row, version)
    await lifecycle.select_option(first["version"].id, first["options"][0].id)
    await db_session.refresh(solution)
    assert solution.step_design_status == StepDesignStatus.NEEDS_STEP_DESIGN

    second = await lifecycle.generate(node_id=other.id, session_id=session_row.id, future_state_id=version.id)
    await lifecycle.select_option(second["version"].id, second["options"][0].id)
    await db_session.refresh(solution)
    assert solution.step_design_status == StepDesignStatus.STEP_DESIGN_COMPLETE


@pytest.mark.asyncio
async def test_select_option_from_other_version_is_not_found(db_session, node, session_row, version):
    lifecycle = _lifecycle(db_session)
    v1 = await _generate(lifecycle, node, session_row, version)
    v2 = await _generate(lifecycle, node, session_row, version, force_rerun=True)

    with pytest.raises(NotFoundError):
        await lifecycle.select_option(v2["version"].id, v1["options"][0].id)
    with pytest.raises(NotFoundError):
        await lifecycle.select_option(uuid.uuid4(), v1["options"][0].id)


@pytest.mark.asyncio
async def test_prior_accepted_versions_feed_agent_inputs(db_session, node, session_row, version):
    agent = FakeStepDesignAgent()
    lifecycle = _lifecycle(db_session, agent)

    v1 = await _generate(lifecycle, node, session_row, version)
    await lifecycle.select_option(v1["version"].id, v1["options"][1].id)
    await _generate(lifecycle, node, session_row, version)

    prior = agent.calls[-1]["inputs"]["prior_versions"]
    assert prior == [{"version": 1, "selected_option": {"title": "Option B", "summary": "Summary B"}}]


@pytest.mark.asyncio
async def test_get_bundle(db_session, node, session_row, version, solution):
    lifecycle = _lifecycle(db_session)
    empty = await lifecycle.get_bundle(node.id)
    assert empty["versions"] == []
    assert empty["latest_version"] is None
    assert empty["linked_solution"].id == solution.id

    await _generate(lifecycle, node, session_row, version)
    latest = await _generate(lifecycle, node, session_row, version, force_rerun=True)

    bundle = await lifecycle.get_bundle(node.id)
    assert [v.version for v in bundle["versions"]] == [2, 1]
    assert bundle["latest_version"].id == latest["version"].id
    assert [o.option_key for o in bundle["options"]] == ["A", "B"]
    assert bundle["source_step"] is None

    with pytest.raises(NotFoundError):
        await lifecycle.get_bundle(uuid.uuid4())
