"""
GraphStore: lanes, edges, nodes and annotations of a single version.
"""

import uuid
import pytest
from sqlalchemy import select

from src.core.exceptions import (
    ConflictError, LockedError, NotEmptyError, NotFoundError, ValidationError,
)
from src.future_state.graph_store import GraphStore
from src.future_state.models import FutureStateNode, LaneColor
from src.future_state.schemas import (
    CreateLaneRequest, UpdateLaneRequest, CreateNodeRequest, UpdateNodeRequest,
    CreateEdgeRequest, UpdateEdgeRequest, CreateAnnotationRequest,
    CreateInitialVersionRequest, UpdateVersionRequest,
)
from src.future_state.version_manager import VersionManager
from tests.factories import TEST_USER_ID


async def _node(store, version_id, name="Step", lane="Ops"):
    return await store.create_node(version_id, CreateNodeRequest(name=name, lane=lane), TEST_USER_ID)


# ---------------------------------------------------------------------------
# Lanes
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_lane_assigns_next_order_index(db_session, version):
    store = GraphStore(db_session)

    first = await store.create_lane(version.id, CreateLaneRequest(name="Ops"), TEST_USER_ID)
    second = await store.create_lane(version.id, CreateLaneRequest(name="Finance", color=LaneColor.AMBER))
    explicit = await store.create_lane(version.id, CreateLaneRequest(name="IT", order_index=10))
    after = await store.create_lane(version.id, CreateLaneRequest(name="Legal"))

    assert first.order_index == 0
    assert first.color == LaneColor.BLUE
    assert second.order_index == 1
    assert second.color == LaneColor.AMBER
    assert explicit.order_index == 10
    assert after.order_index == 11
    assert [lane.name for lane in await store.list_lanes(version.id)] == ["Ops", "Finance", "IT", "Legal"]


@pytest.mark.asyncio
async def test_create_lane_duplicate_name_conflicts(db_session, version):
    store = GraphStore(db_session)
    await store.create_lane(version.id, CreateLaneRequest(name="Ops"))

    with pytest.raises(ConflictError):
        await store.create_lane(version.id, CreateLaneRequest(name="Ops"))


@pytest.mark.asyncio
async def test_rename_lane_cascades_to_nodes(db_session, version):
    store = GraphStore(db_session)
    lane = await store.create_lane(version.id, CreateLaneRequest(name="Ops"))
    for i in range(5):
        await _node(store, version.id, name=f"Step {i}", lane="Ops")
    bystander = await _node(store, version.id, name="Other", lane="Finance")

    renamed = await store.rename_lane(lane.id, "Operations", TEST_USER_ID)

    assert renamed.name == "Operations"
    result = await db_session.execute(
        select(FutureStateNode.lane).where(FutureStateNode.future_state_id == version.id)
    )
    lanes = result.scalars().all()
    assert lanes.count("Operations") == 5
    assert "Ops" not in lanes
    assert (await store.get_node(bystander.id)).lane == "Finance"


@pytest.mark.asyncio
async def test_rename_lane_to_existing_name_conflicts(db_session, version):
    store = GraphStore(db_session)
    ops = await store.create_lane(version.id, CreateLaneRequest(name="Ops"))
    await store.create_lane(version.id, CreateLaneRequest(name="Operations"))
    node = await _node(store, version.id, lane="Ops")

    with pytest.raises(ConflictError):
        await store.rename_lane(ops.id, "Operations")

    assert (await store.get_node(node.id)).lane == "Ops"


@pytest.mark.asyncio
async def test_update_lane_color_only(db_session, version):
    store = GraphStore(db_session)
    lane = await store.create_lane(version.id, CreateLaneRequest(name="Ops"))

    updated = await store.update_lane(lane.id, UpdateLaneRequest(color=LaneColor.ROSE))

    assert updated.color == LaneColor.ROSE
    assert updated.name == "Ops"


@pytest.mark.asyncio
async def test_delete_lane_with_nodes_is_blocked(db_session, version):
    store = GraphStore(db_session)
    lane = await store.create_lane(version.id, CreateLaneRequest(name="Ops"))
    await _node(store, version.id, lane="Ops")

    with pytest.raises(NotEmptyError) as exc_info:
        await store.delete_lane(lane.id)
    assert exc_info.value.node_count == 1


@pytest.mark.asyncio
async def test_delete_empty_lane(db_session, version):
    store = GraphStore(db_session)
    lane = await store.create_lane(version.id, CreateLaneRequest(name="Ops"))

    await store.delete_lane(lane.id)

    assert await store.list_lanes(version.id) == []
    with pytest.raises(NotFoundError):
        await store.delete_lane(lane.id)


# ---------------------------------------------------------------------------
# Edges
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_edge_defaults_order_index_per_source(db_session, version):
    store = GraphStore(db_session)
    a = await _node(store, version.id, "A")
    b = await _node(store, version.id, "B")
    c = await _node(store, version.id, "C")

    ab = await store.create_edge(version.id, CreateEdgeRequest(source_node_id=a.id, target_node_id=b.id))
    ac = await store.create_edge(version.id, CreateEdgeRequest(source_node_id=a.id, target_node_id=c.id, label="yes"))
    bc = await store.create_edge(version.id, CreateEdgeRequest(source_node_id=b.id, target_node_id=c.id))

    assert (ab.order_index, ac.order_index, bc.order_index) == (0, 1, 0)
    assert ac.label == "yes"


@pytest.mark.asyncio
async def test_create_edge_rejects_node_from_other_version(db_session, version, session_row):
    store = GraphStore(db_session)
    a = await _node(store, version.id, "A")
    other = await VersionManager(db_session).create_initial_version(
        CreateInitialVersionRequest(session_id=session_row.id, name="Other"),
    )
    foreign = await _node(store, other.id, "Foreign")

    with pytest.raises(ValidationError):
        await store.create_edge(version.id, CreateEdgeRequest(source_node_id=a.id, target_node_id=foreign.id))


@pytest.mark.asyncio
async def test_create_edge_rejects_self_loop_and_duplicates(db_session, version):
    store = GraphStore(db_session)
    a = await _node(store, version.id, "A")
    b = await _node(store, version.id, "B")

    with pytest.raises(ValidationError):
        await store.create_edge(version.id, CreateEdgeRequest(source_node_id=a.id, target_node_id=a.id))

    await store.create_edge(version.id, CreateEdgeRequest(source_node_id=a.id, target_node_id=b.id))
    with pytest.raises(ConflictError):
        await store.create_edge(version.id, CreateEdgeRequest(source_node_id=a.id, target_node_id=b.id))


@pytest.mark.asyncio
async def test_delete_edge_checks_owning_version(db_session, version):
    store = GraphStore(db_session)
    a = await _node(store, version.id, "A")
    b = await _node(store, version.id, "B")
    edge = await store.create_edge(version.id, CreateEdgeRequest(source_node_id=a.id, target_node_id=b.id))

    with pytest.raises(ValidationError):
        await store.delete_edge(edge.id, version_id=uuid.uuid4())

    await store.delete_edge(edge.id, version_id=version.id)
    assert await store.list_edges(version.id) == []


@pytest.mark.asyncio
async def test_update_edge_label(db_session, version):
    store = GraphStore(db_session)
    a = await _node(store, version.id, "A")
    b = await _node(store, version.id, "B")
    edge = await store.create_edge(version.id, CreateEdgeRequest(source_node_id=a.id, target_node_id=b.id))

    updated = await store.update_edge(edge.id, UpdateEdgeRequest(label="approved"))

    assert updated.label == "approved"
    with pytest.raises(ValidationError):
        await store.update_edge(edge.id, UpdateEdgeRequest())


# ---------------------------------------------------------------------------
# Nodes & annotations
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_node_removes_edges_and_anchored_annotations(db_session, version):
    store = GraphStore(db_session)
    a = await _node(store, version.id, "A")
    b = await _node(store, version.id, "B")
    await store.create_edge(version.id, CreateEdgeRequest(source_node_id=a.id, target_node_id=b.id))
    await store.create_annotation(version.id, CreateAnnotationRequest(title="Check", node_id=a.id))
    floating = await store.create_annotation(version.id, CreateAnnotationRequest(title="General"))

    await store.delete_node(a.id)

    graph = await store.get_graph(version.id)
    assert [n.id for n in graph.nodes] == [b.id]
    assert graph.edges == []
    assert [an.id for an in graph.annotations] == [floating.id]


@pytest.mark.asyncio
async def test_update_node_fields(db_session, version):
    store = GraphStore(db_session)
    node = await _node(store, version.id, "A")

    updated = await store.update_node(
        node.id, UpdateNodeRequest(name="A2", position_x=120.5, modified_fields={"name": "A"}), TEST_USER_ID
    )

    assert updated.name == "A2"
    assert updated.position_x == 120.5
    assert updated.modified_fields == {"name": "A"}
    assert updated.updated_by == TEST_USER_ID


@pytest.mark.asyncio
async def test_annotation_node_must_belong_to_version(db_session, version):
    store = GraphStore(db_session)

    with pytest.raises(ValidationError):
        await store.create_annotation(version.id, CreateAnnotationRequest(title="Bad", node_id=uuid.uuid4()))


# ---------------------------------------------------------------------------
# Locking
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_locked_version_rejects_every_mutation(db_session, version):
    store = GraphStore(db_session)
    lane = await store.create_lane(version.id, CreateLaneRequest(name="Ops"))
    empty_lane = await store.create_lane(version.id, CreateLaneRequest(name="Empty"))
    a = await _node(store, version.id, "A")
    b = await _node(store, version.id, "B")
    c = await _node(store, version.id, "C")
    edge = await store.create_edge(version.id, CreateEdgeRequest(source_node_id=a.id, target_node_id=b.id))

    manager = VersionManager(db_session)
    await manager.update_version(version.id, UpdateVersionRequest(is_locked=True))

    with pytest.raises(LockedError):
        await store.create_lane(version.id, CreateLaneRequest(name="New"))
    with pytest.raises(LockedError):
        await store.rename_lane(lane.id, "Operations")
    with pytest.raises(LockedError):
        await store.delete_lane(empty_lane.id)
    with pytest.raises(LockedError):
        await store.create_edge(version.id, CreateEdgeRequest(source_node_id=b.id, target_node_id=c.id))
    with pytest.raises(LockedError):
        await store.delete_edge(edge.id)
    with pytest.raises(LockedError):
        await _node(store, version.id, "D")
    with pytest.raises(LockedError):
        await store.create_annotation(version.id, CreateAnnotationRequest(title="Note"))

    # Reads still work
    assert len((await store.get_graph(version.id)).nodes) == 3

    await manager.update_version(version.id, UpdateVersionRequest(is_locked=False))

    await store.create_lane(version.id, CreateLaneRequest(name="New"))
    await store.rename_lane(lane.id, "Operations")
    await store.delete_lane(empty_lane.id)
    await store.create_edge(version.id, CreateEdgeRequest(source_node_id=b.id, target_node_id=c.id))
    await store.delete_edge(edge.id)
    assert len(await store.list_edges(version.id)) == 1
