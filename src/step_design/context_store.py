import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import NotFoundError, ValidationError
from src.step_design.models import StepContext
from src.step_design.schemas import StepContextUpsertRequest

logger = logging.getLogger(__name__)


class StepContextStore:
    """Free-form Q&A and notes per node, created lazily on first write.

    ``context_json`` is replaced with a new dict on every write so the JSON
    column change is always detected.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, node_id: UUID) -> Optional[StepContext]:
        result = await self.db.execute(
            select(StepContext).where(StepContext.node_id == node_id)
        )
        return result.scalars().first()

    async def upsert(
        self, node_id: UUID, request: StepContextUpsertRequest, user_id: Optional[UUID] = None
    ) -> StepContext:
        context = await self.get(node_id)

        if context is None:
            if not request.session_id or not request.future_state_id:
                raise ValidationError(
                    "session_id and future_state_id are required to create a step context",
                    details={"node_id": str(node_id)},
                )
            context = StepContext(
                session_id=request.session_id,
                future_state_id=request.future_state_id,
                node_id=node_id,
                context_json=dict(request.context_json or {}),
                notes=request.notes,
                created_by=user_id,
                updated_by=user_id,
            )
            self.db.add(context)
        else:
            if request.context_json is not None:
                # Shallow merge: top-level keys in the patch replace existing ones
                context.context_json = {**(context.context_json or {}), **request.context_json}
            if request.notes is not None:
                context.notes = request.notes
            context.updated_by = user_id

        await self.db.commit()
        await self.db.refresh(context)
        return context

    async def answer_question(
        self, node_id: UUID, question_id: str, answer: str, user_id: Optional[UUID] = None
    ) -> StepContext:
        context = await self.get(node_id)
        if context is None:
            raise NotFoundError("Step context for node", node_id)

        document = dict(context.context_json or {})
        questions = []
        for question in document.get("questions") or []:
            if question.get("id") == question_id:
                question = {
                    **question,
                    "answer": answer,
                    "answeredBy": str(user_id) if user_id else None,
                    "answeredAt": datetime.now(timezone.utc).isoformat(),
                }
            questions.append(question)
        document["questions"] = questions

        context.context_json = document
        context.updated_by = user_id

        await self.db.commit()
        await self.db.refresh(context)
        return context

    async def merge_questions(
        self,
        node_id: UUID,
        questions: List[Dict[str, Any]],
        session_id: UUID,
        future_state_id: UUID,
        user_id: Optional[UUID] = None,
    ) -> Optional[StepContext]:
        """Append questions whose ids are not yet present. Existing entries are never overwritten."""
        if not questions:
            return None

        context = await self.get(node_id)
        document = dict(context.context_json or {}) if context else {}
        existing = list(document.get("questions") or [])
        known_ids = {q.get("id") for q in existing}

        added = 0
        for question in questions:
            if question["id"] in known_ids:
                continue
            existing.append({
                "id": question["id"],
                "question": question["question"],
                "required": question.get("required", False),
                "answer": None,
            })
            known_ids.add(question["id"])
            added += 1
        document["questions"] = existing

        if context is None:
            context = StepContext(
                session_id=session_id,
                future_state_id=future_state_id,
                node_id=node_id,
                context_json=document,
                created_by=user_id,
                updated_by=user_id,
            )
            self.db.add(context)
        else:
            context.context_json = document
            context.updated_by = user_id

        await self.db.commit()
        await self.db.refresh(context)
        logger.info(f"Merged {added} new question(s) into step context of node {node_id}")
        return context
