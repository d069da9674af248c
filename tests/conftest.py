import os

# Must be set before src.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from typing import AsyncGenerator

from src.main import app
from src.database import get_db, Base
from src.auth.dependencies import get_current_user_id
# Import all models so create_all sees every table
from src.agents.models import AgentRun
from src.processes.models import Process, ProcessStep, WorkflowContext
from src.sessions.models import WasteWalkSession
from src.solutions.models import SolutionCard
from src.future_state.models import (
    FutureStateVersion, FutureStateNode, FutureStateEdge, FutureStateLane, FutureStateAnnotation,
)
from src.step_design.models import StepContext, StepDesignVersion, StepDesignOption, DesignAssumption
from src.future_state.schemas import CreateInitialVersionRequest
from src.future_state.version_manager import VersionManager
from tests.factories import TEST_USER_ID


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database and session for each test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    TestingSessionLocal = sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with TestingSessionLocal() as session:
        yield session

    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Client for testing API endpoints."""
    # Override the get_db dependency to use our test session
    async def override_get_db():
        yield db_session

    async def override_user_id():
        return TEST_USER_ID

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user_id] = override_user_id

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def session_row(db_session: AsyncSession) -> WasteWalkSession:
    """A process with one as-is step and workflow context, plus a waste-walk session over it."""
    process = Process(name="Invoice to Pay")
    db_session.add(process)
    await db_session.flush()

    db_session.add(ProcessStep(
        process_id=process.id, step_name="Match to PO", lane="AP",
        lead_time_minutes=1440, cycle_time_minutes=15,
    ))
    db_session.add(WorkflowContext(
        process_id=process.id,
        purpose="Pay suppliers on time",
        trigger_events=["Invoice received"],
        end_outcomes=["Supplier paid"],
        constraints=[],
    ))
    ww = WasteWalkSession(name="Walk 1", process_id=process.id)
    db_session.add(ww)
    await db_session.commit()
    return ww


@pytest_asyncio.fixture
async def version(db_session: AsyncSession, session_row: WasteWalkSession) -> FutureStateVersion:
    return await VersionManager(db_session).create_initial_version(
        CreateInitialVersionRequest(session_id=session_row.id, name="Future State v1"),
        TEST_USER_ID,
    )

