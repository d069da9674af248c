from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db
from src.auth.dependencies import get_current_user_id
from src.step_design.context_store import StepContextStore
from src.step_design.lifecycle import StepDesignLifecycle
from src.step_design.schemas import (
    GenerateRequest, GenerateResponse,
    SelectOptionRequest, SelectOptionResponse,
    StepDesignBundleResponse,
    StepContextUpsertRequest, AnswerQuestionRequest, StepContextResponse,
)

router = APIRouter(prefix="/future-state/step-design", tags=["step-design"])


async def get_lifecycle(db: AsyncSession = Depends(get_db)) -> StepDesignLifecycle:
    return StepDesignLifecycle(db)


@router.post("/generate", response_model=GenerateResponse)
async def generate_step_design(
    request: GenerateRequest,
    user_id: UUID = Depends(get_current_user_id),
    lifecycle: StepDesignLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.generate(
        node_id=request.node_id,
        session_id=request.session_id,
        future_state_id=request.future_state_id,
        user_id=user_id,
        research_mode=request.research_mode,
        force_rerun=request.force_rerun,
    )


@router.patch("/select-option", response_model=SelectOptionResponse)
async def select_step_design_option(
    request: SelectOptionRequest,
    user_id: UUID = Depends(get_current_user_id),
    lifecycle: StepDesignLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.select_option(request.version_id, request.option_id, user_id)


@router.get("/{node_id}", response_model=StepDesignBundleResponse)
async def get_step_design_bundle(
    node_id: UUID,
    lifecycle: StepDesignLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.get_bundle(node_id)


@router.get("/{node_id}/context", response_model=Optional[StepContextResponse])
async def get_step_context(node_id: UUID, db: AsyncSession = Depends(get_db)):
    return await StepContextStore(db).get(node_id)


@router.patch("/{node_id}/context", response_model=StepContextResponse)
async def upsert_step_context(
    node_id: UUID,
    request: StepContextUpsertRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await StepContextStore(db).upsert(node_id, request, user_id)


@router.post("/{node_id}/context/answer", response_model=StepContextResponse)
async def answer_step_context_question(
    node_id: UUID,
    request: AnswerQuestionRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await StepContextStore(db).answer_question(node_id, request.question_id, request.answer, user_id)
