import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, update, delete, func
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import (
    ConflictError, LockedError, NotEmptyError, NotFoundError, ValidationError,
)
from src.future_state.models import (
    FutureStateVersion, FutureStateNode, FutureStateEdge, FutureStateLane, FutureStateAnnotation,
)
from src.future_state.schemas import (
    CreateNodeRequest, UpdateNodeRequest,
    CreateEdgeRequest, UpdateEdgeRequest,
    CreateLaneRequest, UpdateLaneRequest,
    CreateAnnotationRequest, UpdateAnnotationRequest,
)
from src.step_design.models import (
    StepContext, StepDesignVersion, StepDesignOption, DesignAssumption,
)

logger = logging.getLogger(__name__)

# Node columns copied verbatim when a graph is cloned into a new version
NODE_CLONE_FIELDS = (
    "source_step_id", "name", "description", "lane", "step_type",
    "lead_time_minutes", "cycle_time_minutes", "position_x", "position_y",
    "action", "modified_fields", "linked_solution_id", "step_design_status",
)
ANNOTATION_CLONE_FIELDS = (
    "type", "title", "content", "priority", "resolved", "position_x", "position_y",
)


def collect_updates(request: BaseModel, model) -> Dict[str, Any]:
    """Fields the caller set on a PATCH request.

    An explicit null is only accepted for columns that allow it.
    """
    updates = request.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationError("No fields provided for update")

    columns = model.__table__.columns
    rejected = sorted(
        attr for attr, value in updates.items()
        if value is None and attr in columns and not columns[attr].nullable
    )
    if rejected:
        raise ValidationError(
            f"Fields cannot be null: {', '.join(rejected)}",
            details={attr: "must not be null" for attr in rejected},
        )
    return updates


@dataclass
class Graph:
    nodes: List[FutureStateNode] = field(default_factory=list)
    edges: List[FutureStateEdge] = field(default_factory=list)
    lanes: List[FutureStateLane] = field(default_factory=list)
    annotations: List[FutureStateAnnotation] = field(default_factory=list)


class GraphStore:
    """Nodes, edges, lanes and annotations of one future-state version.

    Every mutation is rejected with ``LockedError`` while the owning version
    is locked. Reads are always allowed.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Version guards
    # ------------------------------------------------------------------

    async def _get_version(self, version_id: UUID) -> FutureStateVersion:
        version = await self.db.get(FutureStateVersion, version_id)
        if not version:
            raise NotFoundError("Future state version", version_id)
        return version

    async def _get_unlocked_version(self, version_id: UUID) -> FutureStateVersion:
        version = await self._get_version(version_id)
        if version.is_locked:
            raise LockedError(version_id)
        return version

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_graph(self, version_id: UUID) -> Graph:
        nodes = await self.list_nodes(version_id)
        edges = await self.list_edges(version_id)
        lanes = await self.list_lanes(version_id)
        annotations = await self.list_annotations(version_id)
        return Graph(nodes=nodes, edges=edges, lanes=lanes, annotations=annotations)

    async def list_nodes(self, version_id: UUID) -> List[FutureStateNode]:
        result = await self.db.execute(
            select(FutureStateNode)
            .where(FutureStateNode.future_state_id == version_id)
            .order_by(FutureStateNode.created_at, FutureStateNode.id)
        )
        return list(result.scalars().all())

    async def list_edges(self, version_id: UUID) -> List[FutureStateEdge]:
        result = await self.db.execute(
            select(FutureStateEdge)
            .where(FutureStateEdge.future_state_id == version_id)
            .order_by(FutureStateEdge.source_node_id, FutureStateEdge.order_index)
        )
        return list(result.scalars().all())

    async def list_lanes(self, version_id: UUID) -> List[FutureStateLane]:
        result = await self.db.execute(
            select(FutureStateLane)
            .where(FutureStateLane.future_state_id == version_id)
            .order_by(FutureStateLane.order_index)
        )
        return list(result.scalars().all())

    async def list_annotations(self, version_id: UUID) -> List[FutureStateAnnotation]:
        result = await self.db.execute(
            select(FutureStateAnnotation)
            .where(FutureStateAnnotation.future_state_id == version_id)
            .order_by(FutureStateAnnotation.created_at)
        )
        return list(result.scalars().all())

    async def get_node(self, node_id: UUID) -> FutureStateNode:
        node = await self.db.get(FutureStateNode, node_id)
        if not node:
            raise NotFoundError("Node", node_id)
        return node

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    async def create_node(
        self, version_id: UUID, request: CreateNodeRequest, user_id: Optional[UUID] = None
    ) -> FutureStateNode:
        await self._get_unlocked_version(version_id)
        node = FutureStateNode(
            future_state_id=version_id,
            created_by=user_id,
            updated_by=user_id,
            **request.model_dump(),
        )
        self.db.add(node)
        await self.db.commit()
        await self.db.refresh(node)
        return node

    async def update_node(
        self, node_id: UUID, request: UpdateNodeRequest, user_id: Optional[UUID] = None
    ) -> FutureStateNode:
        node = await self.get_node(node_id)
        await self._get_unlocked_version(node.future_state_id)

        updates = collect_updates(request, FutureStateNode)
        for attr, value in updates.items():
            setattr(node, attr, value)
        node.updated_by = user_id

        await self.db.commit()
        await self.db.refresh(node)
        return node

    async def delete_node(self, node_id: UUID) -> None:
        """Delete a node together with its edges, anchored annotations and design data."""
        node = await self.get_node(node_id)
        await self._get_unlocked_version(node.future_state_id)

        await self.db.execute(
            delete(FutureStateEdge).where(
                (FutureStateEdge.source_node_id == node_id) | (FutureStateEdge.target_node_id == node_id)
            )
        )
        await self.db.execute(
            delete(FutureStateAnnotation).where(FutureStateAnnotation.node_id == node_id)
        )
        await self._delete_design_data([node_id])
        await self.db.delete(node)
        await self.db.commit()

    async def _delete_design_data(self, node_ids: List[UUID]) -> None:
        if not node_ids:
            return
        # Break the node -> design version pointer before the versions go away
        await self.db.execute(
            update(FutureStateNode)
            .where(FutureStateNode.id.in_(node_ids))
            .values(active_step_design_version_id=None)
        )
        version_ids = select(StepDesignVersion.id).where(StepDesignVersion.node_id.in_(node_ids))
        option_ids = select(StepDesignOption.id).where(StepDesignOption.version_id.in_(version_ids))
        await self.db.execute(
            update(StepDesignVersion)
            .where(StepDesignVersion.node_id.in_(node_ids))
            .values(selected_option_id=None)
        )
        await self.db.execute(delete(DesignAssumption).where(DesignAssumption.option_id.in_(option_ids)))
        await self.db.execute(delete(StepDesignOption).where(StepDesignOption.version_id.in_(version_ids)))
        await self.db.execute(delete(StepDesignVersion).where(StepDesignVersion.node_id.in_(node_ids)))
        await self.db.execute(delete(StepContext).where(StepContext.node_id.in_(node_ids)))

    async def delete_version_contents(self, version_id: UUID) -> None:
        """Remove everything a version owns. Caller commits."""
        node_ids = list(
            (await self.db.execute(
                select(FutureStateNode.id).where(FutureStateNode.future_state_id == version_id)
            )).scalars().all()
        )
        await self.db.execute(delete(FutureStateEdge).where(FutureStateEdge.future_state_id == version_id))
        await self.db.execute(
            delete(FutureStateAnnotation).where(FutureStateAnnotation.future_state_id == version_id)
        )
        await self._delete_design_data(node_ids)
        await self.db.execute(delete(FutureStateNode).where(FutureStateNode.future_state_id == version_id))
        await self.db.execute(delete(FutureStateLane).where(FutureStateLane.future_state_id == version_id))

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    async def create_edge(self, version_id: UUID, request: CreateEdgeRequest) -> FutureStateEdge:
        await self._get_unlocked_version(version_id)

        if request.source_node_id == request.target_node_id:
            raise ValidationError("Cannot create edge from a node to itself")

        result = await self.db.execute(
            select(FutureStateNode.id).where(
                FutureStateNode.future_state_id == version_id,
                FutureStateNode.id.in_([request.source_node_id, request.target_node_id]),
            )
        )
        if len(result.scalars().all()) != 2:
            raise ValidationError(
                "One or both nodes not found in this future state",
                details={
                    "source_node_id": str(request.source_node_id),
                    "target_node_id": str(request.target_node_id),
                },
            )

        result = await self.db.execute(
            select(FutureStateEdge.id).where(
                FutureStateEdge.future_state_id == version_id,
                FutureStateEdge.source_node_id == request.source_node_id,
                FutureStateEdge.target_node_id == request.target_node_id,
            )
        )
        if result.scalar_one_or_none():
            raise ConflictError(
                "Edge", "source_node_id/target_node_id",
                f"{request.source_node_id}->{request.target_node_id}",
            )

        order_index = request.order_index
        if order_index is None:
            result = await self.db.execute(
                select(func.max(FutureStateEdge.order_index)).where(
                    FutureStateEdge.future_state_id == version_id,
                    FutureStateEdge.source_node_id == request.source_node_id,
                )
            )
            current_max = result.scalar()
            order_index = current_max + 1 if current_max is not None else 0

        edge = FutureStateEdge(
            future_state_id=version_id,
            source_node_id=request.source_node_id,
            target_node_id=request.target_node_id,
            label=request.label,
            order_index=order_index,
        )
        self.db.add(edge)
        await self.db.commit()
        await self.db.refresh(edge)
        return edge

    async def _get_edge(self, edge_id: UUID) -> FutureStateEdge:
        edge = await self.db.get(FutureStateEdge, edge_id)
        if not edge:
            raise NotFoundError("Edge", edge_id)
        return edge

    async def update_edge(self, edge_id: UUID, request: UpdateEdgeRequest) -> FutureStateEdge:
        edge = await self._get_edge(edge_id)
        await self._get_unlocked_version(edge.future_state_id)

        updates = collect_updates(request, FutureStateEdge)
        for attr, value in updates.items():
            setattr(edge, attr, value)

        await self.db.commit()
        await self.db.refresh(edge)
        return edge

    async def delete_edge(self, edge_id: UUID, version_id: Optional[UUID] = None) -> None:
        edge = await self._get_edge(edge_id)
        if version_id is not None and edge.future_state_id != version_id:
            raise ValidationError(f"Edge {edge_id} does not belong to future state {version_id}")
        await self._get_unlocked_version(edge.future_state_id)

        await self.db.delete(edge)
        await self.db.commit()

    # ------------------------------------------------------------------
    # Lanes
    # ------------------------------------------------------------------

    async def _lane_name_taken(self, version_id: UUID, name: str, exclude_id: Optional[UUID] = None) -> bool:
        stmt = select(FutureStateLane.id).where(
            FutureStateLane.future_state_id == version_id,
            FutureStateLane.name == name,
        )
        if exclude_id is not None:
            stmt = stmt.where(FutureStateLane.id != exclude_id)
        result = await self.db.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def create_lane(
        self, version_id: UUID, request: CreateLaneRequest, user_id: Optional[UUID] = None
    ) -> FutureStateLane:
        await self._get_unlocked_version(version_id)

        if await self._lane_name_taken(version_id, request.name):
            raise ConflictError("Lane", "name", request.name)

        order_index = request.order_index
        if order_index is None:
            result = await self.db.execute(
                select(func.max(FutureStateLane.order_index)).where(
                    FutureStateLane.future_state_id == version_id
                )
            )
            current_max = result.scalar()
            order_index = current_max + 1 if current_max is not None else 0

        lane = FutureStateLane(
            future_state_id=version_id,
            name=request.name,
            color=request.color,
            order_index=order_index,
            created_by=user_id,
            updated_by=user_id,
        )
        self.db.add(lane)
        await self.db.commit()
        await self.db.refresh(lane)
        return lane

    async def _get_lane(self, lane_id: UUID) -> FutureStateLane:
        lane = await self.db.get(FutureStateLane, lane_id)
        if not lane:
            raise NotFoundError("Lane", lane_id)
        return lane

    async def update_lane(
        self, lane_id: UUID, request: UpdateLaneRequest, user_id: Optional[UUID] = None
    ) -> FutureStateLane:
        lane = await self._get_lane(lane_id)
        await self._get_unlocked_version(lane.future_state_id)

        updates = collect_updates(request, FutureStateLane)

        new_name = updates.pop("name", None)
        if new_name is not None and new_name != lane.name:
            await self._rename_lane(lane, new_name, user_id)
        for attr, value in updates.items():
            setattr(lane, attr, value)
        lane.updated_by = user_id

        await self.db.commit()
        await self.db.refresh(lane)
        return lane

    async def rename_lane(
        self, lane_id: UUID, new_name: str, user_id: Optional[UUID] = None
    ) -> FutureStateLane:
        return await self.update_lane(lane_id, UpdateLaneRequest(name=new_name), user_id)

    async def _rename_lane(self, lane: FutureStateLane, new_name: str, user_id: Optional[UUID]) -> None:
        if await self._lane_name_taken(lane.future_state_id, new_name, exclude_id=lane.id):
            raise ConflictError("Lane", "name", new_name)

        # Nodes carry the lane by name
        result = await self.db.execute(
            update(FutureStateNode)
            .where(
                FutureStateNode.future_state_id == lane.future_state_id,
                FutureStateNode.lane == lane.name,
            )
            .values(lane=new_name, updated_by=user_id)
            .execution_options(synchronize_session="fetch")
        )
        logger.info(
            f"Renamed lane {lane.name!r} -> {new_name!r} in future state "
            f"{lane.future_state_id}; {result.rowcount} node(s) moved"
        )
        lane.name = new_name

    async def delete_lane(self, lane_id: UUID) -> None:
        lane = await self._get_lane(lane_id)
        await self._get_unlocked_version(lane.future_state_id)

        result = await self.db.execute(
            select(func.count(FutureStateNode.id)).where(
                FutureStateNode.future_state_id == lane.future_state_id,
                FutureStateNode.lane == lane.name,
            )
        )
        node_count = result.scalar() or 0
        if node_count:
            raise NotEmptyError(lane.name, node_count)

        await self.db.delete(lane)
        await self.db.commit()

    # ------------------------------------------------------------------
    # Annotations
    # ------------------------------------------------------------------

    async def create_annotation(
        self, version_id: UUID, request: CreateAnnotationRequest, user_id: Optional[UUID] = None
    ) -> FutureStateAnnotation:
        await self._get_unlocked_version(version_id)

        if request.node_id is not None:
            result = await self.db.execute(
                select(FutureStateNode.id).where(
                    FutureStateNode.id == request.node_id,
                    FutureStateNode.future_state_id == version_id,
                )
            )
            if not result.scalar_one_or_none():
                raise ValidationError(f"Node {request.node_id} not found in this future state")

        annotation = FutureStateAnnotation(
            future_state_id=version_id,
            resolved=False,
            created_by=user_id,
            updated_by=user_id,
            **request.model_dump(),
        )
        self.db.add(annotation)
        await self.db.commit()
        await self.db.refresh(annotation)
        return annotation

    async def _get_annotation(self, annotation_id: UUID) -> FutureStateAnnotation:
        annotation = await self.db.get(FutureStateAnnotation, annotation_id)
        if not annotation:
            raise NotFoundError("Annotation", annotation_id)
        return annotation

    async def update_annotation(
        self, annotation_id: UUID, request: UpdateAnnotationRequest, user_id: Optional[UUID] = None
    ) -> FutureStateAnnotation:
        annotation = await self._get_annotation(annotation_id)
        await self._get_unlocked_version(annotation.future_state_id)

        updates = collect_updates(request, FutureStateAnnotation)
        for attr, value in updates.items():
            setattr(annotation, attr, value)
        annotation.updated_by = user_id

        await self.db.commit()
        await self.db.refresh(annotation)
        return annotation

    async def delete_annotation(self, annotation_id: UUID) -> None:
        annotation = await self._get_annotation(annotation_id)
        await self._get_unlocked_version(annotation.future_state_id)

        await self.db.delete(annotation)
        await self.db.commit()

    # ------------------------------------------------------------------
    # Clone
    # ------------------------------------------------------------------

    async def clone_graph(
        self, source: Graph, target_version_id: UUID, user_id: Optional[UUID] = None
    ) -> Dict[UUID, UUID]:
        """Copy ``source`` into ``target_version_id`` with fresh ids.

        Nodes are cloned first and flushed so the old -> new id map is
        complete before any edge or annotation reference is translated.
        Edges with an unmapped endpoint are dropped; annotations anchored to
        an unmapped node are kept un-anchored. Does not commit.
        """
        node_id_map: Dict[UUID, UUID] = {}

        # Phase 1: nodes
        new_nodes = []
        for node in source.nodes:
            clone = FutureStateNode(
                future_state_id=target_version_id,
                created_by=user_id,
                updated_by=user_id,
                **{attr: getattr(node, attr) for attr in NODE_CLONE_FIELDS},
            )
            self.db.add(clone)
            new_nodes.append((node.id, clone))
        await self.db.flush()
        for old_id, clone in new_nodes:
            node_id_map[old_id] = clone.id

        # Phase 2: references
        for edge in source.edges:
            new_source = node_id_map.get(edge.source_node_id)
            new_target = node_id_map.get(edge.target_node_id)
            if not new_source or not new_target:
                logger.warning(
                    f"Dropping edge {edge.id} while cloning into {target_version_id}: "
                    "endpoint outside the source graph"
                )
                continue
            self.db.add(FutureStateEdge(
                future_state_id=target_version_id,
                source_node_id=new_source,
                target_node_id=new_target,
                label=edge.label,
                order_index=edge.order_index,
            ))

        for lane in source.lanes:
            self.db.add(FutureStateLane(
                future_state_id=target_version_id,
                name=lane.name,
                order_index=lane.order_index,
                color=lane.color,
                created_by=user_id,
                updated_by=user_id,
            ))

        for annotation in source.annotations:
            self.db.add(FutureStateAnnotation(
                future_state_id=target_version_id,
                node_id=node_id_map.get(annotation.node_id) if annotation.node_id else None,
                created_by=user_id,
                updated_by=user_id,
                **{attr: getattr(annotation, attr) for attr in ANNOTATION_CLONE_FIELDS},
            ))

        await self.db.flush()
        return node_id_map
