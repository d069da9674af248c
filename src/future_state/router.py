from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db
from src.auth.dependencies import get_current_user_id
from src.future_state.graph_store import GraphStore
from src.future_state.version_manager import VersionManager
from src.future_state.schemas import (
    CreateVersionRequest, CreateInitialVersionRequest, UpdateVersionRequest,
    VersionResponse, VersionWithGraphResponse, GraphResponse,
    CreateNodeRequest, UpdateNodeRequest, NodeResponse,
    CreateEdgeRequest, UpdateEdgeRequest, EdgeResponse,
    CreateLaneRequest, UpdateLaneRequest, LaneResponse,
    CreateAnnotationRequest, UpdateAnnotationRequest, AnnotationResponse,
)

router = APIRouter(prefix="/future-state", tags=["future-state"])


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------

@router.post("/versions", response_model=VersionResponse, status_code=status.HTTP_201_CREATED)
async def create_version(
    request: CreateVersionRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await VersionManager(db).create_version(request, user_id)


@router.post("/versions/initial", response_model=VersionResponse, status_code=status.HTTP_201_CREATED)
async def create_initial_version(
    request: CreateInitialVersionRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await VersionManager(db).create_initial_version(request, user_id)


@router.get("/versions", response_model=List[VersionResponse])
async def list_versions(
    session_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
):
    return await VersionManager(db).list_versions(session_id)


@router.get("/versions/{version_id}", response_model=VersionWithGraphResponse)
async def get_version(
    version_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    version, graph = await VersionManager(db).get_version_graph(version_id)
    return VersionWithGraphResponse(
        **VersionResponse.model_validate(version).model_dump(),
        graph=GraphResponse.model_validate(graph),
    )


@router.patch("/versions/{version_id}", response_model=VersionResponse)
async def update_version(
    version_id: UUID,
    request: UpdateVersionRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await VersionManager(db).update_version(version_id, request, user_id)


@router.delete("/versions/{version_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_version(
    version_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await VersionManager(db).delete_version(version_id)


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

@router.post("/versions/{version_id}/nodes", response_model=NodeResponse, status_code=status.HTTP_201_CREATED)
async def create_node(
    version_id: UUID,
    request: CreateNodeRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await GraphStore(db).create_node(version_id, request, user_id)


@router.get("/versions/{version_id}/nodes", response_model=List[NodeResponse])
async def list_nodes(version_id: UUID, db: AsyncSession = Depends(get_db)):
    return await GraphStore(db).list_nodes(version_id)


@router.patch("/nodes/{node_id}", response_model=NodeResponse)
async def update_node(
    node_id: UUID,
    request: UpdateNodeRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await GraphStore(db).update_node(node_id, request, user_id)


@router.delete("/nodes/{node_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_node(
    node_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await GraphStore(db).delete_node(node_id)


# ---------------------------------------------------------------------------
# Edges
# ---------------------------------------------------------------------------

@router.post("/versions/{version_id}/edges", response_model=EdgeResponse, status_code=status.HTTP_201_CREATED)
async def create_edge(
    version_id: UUID,
    request: CreateEdgeRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await GraphStore(db).create_edge(version_id, request)


@router.get("/versions/{version_id}/edges", response_model=List[EdgeResponse])
async def list_edges(version_id: UUID, db: AsyncSession = Depends(get_db)):
    return await GraphStore(db).list_edges(version_id)


@router.patch("/edges/{edge_id}", response_model=EdgeResponse)
async def update_edge(
    edge_id: UUID,
    request: UpdateEdgeRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await GraphStore(db).update_edge(edge_id, request)


@router.delete("/edges/{edge_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_edge(
    edge_id: UUID,
    version_id: Optional[UUID] = Query(None),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await GraphStore(db).delete_edge(edge_id, version_id)


# ---------------------------------------------------------------------------
# Lanes
# ---------------------------------------------------------------------------

@router.post("/versions/{version_id}/lanes", response_model=LaneResponse, status_code=status.HTTP_201_CREATED)
async def create_lane(
    version_id: UUID,
    request: CreateLaneRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await GraphStore(db).create_lane(version_id, request, user_id)


@router.get("/versions/{version_id}/lanes", response_model=List[LaneResponse])
async def list_lanes(version_id: UUID, db: AsyncSession = Depends(get_db)):
    return await GraphStore(db).list_lanes(version_id)


@router.patch("/lanes/{lane_id}", response_model=LaneResponse)
async def update_lane(
    lane_id: UUID,
    request: UpdateLaneRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await GraphStore(db).update_lane(lane_id, request, user_id)


@router.delete("/lanes/{lane_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lane(
    lane_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await GraphStore(db).delete_lane(lane_id)


# ---------------------------------------------------------------------------
# Annotations
# ---------------------------------------------------------------------------

@router.post(
    "/versions/{version_id}/annotations",
    response_model=AnnotationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_annotation(
    version_id: UUID,
    request: CreateAnnotationRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await GraphStore(db).create_annotation(version_id, request, user_id)


@router.get("/versions/{version_id}/annotations", response_model=List[AnnotationResponse])
async def list_annotations(version_id: UUID, db: AsyncSession = Depends(get_db)):
    return await GraphStore(db).list_annotations(version_id)


@router.patch("/annotations/{annotation_id}", response_model=AnnotationResponse)
async def update_annotation(
    annotation_id: UUID,
    request: UpdateAnnotationRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await GraphStore(db).update_annotation(annotation_id, request, user_id)


@router.delete("/annotations/{annotation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_annotation(
    annotation_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await GraphStore(db).delete_annotation(annotation_id)
