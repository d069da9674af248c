import asyncio
from src.database import engine, Base

# Import all models to ensure they are registered in Base.metadata
from src.processes.models import Process, ProcessStep, WorkflowContext
from src.sessions.models import WasteWalkSession
from src.solutions.models import SolutionCard
from src.future_state.models import (
    FutureStateVersion, FutureStateNode, FutureStateEdge, FutureStateLane, FutureStateAnnotation,
)
from src.step_design.models import StepContext, StepDesignVersion, StepDesignOption, DesignAssumption
from src.agents.models import AgentRun

async def init_models():
    async with engine.begin() as conn:
        # await conn.run_sync(Base.metadata.drop_all) # Optional: Reset DB
        await conn.run_sync(Base.metadata.create_all)
    print("Database tables created.")

if __name__ == "__main__":
    asyncio.run(init_models())
