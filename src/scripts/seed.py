import asyncio
from uuid import UUID
from sqlalchemy import select
from src.database import AsyncSessionLocal
from src.auth.security import create_access_token
from src.processes.models import Process, ProcessStep, WorkflowContext
from src.sessions.models import WasteWalkSession
from src.solutions.models import SolutionCard, SolutionBucket
from src.future_state.models import LaneColor, NodeAction
from src.future_state.graph_store import GraphStore
from src.future_state.version_manager import VersionManager
from src.future_state.schemas import (
    CreateInitialVersionRequest, CreateLaneRequest, CreateNodeRequest, CreateEdgeRequest,
)

DEMO_USER_ID = UUID("00000000-0000-0000-0000-000000000002")
DEMO_PROCESS_ID = UUID("00000000-0000-0000-0000-000000000010")
DEMO_SESSION_ID = UUID("00000000-0000-0000-0000-000000000020")

AS_IS_STEPS = [
    ("Receive invoice", "Accounts Payable", 240, 5),
    ("Match to purchase order", "Accounts Payable", 1440, 15),
    ("Approve invoice", "Finance", 2880, 10),
    ("Schedule payment", "Treasury", 720, 5),
]

async def seed_data():
    async with AsyncSessionLocal() as session:
        # 1. As-is process
        process = await session.get(Process, DEMO_PROCESS_ID)
        if not process:
            print("Creating Demo Process...")
            process = Process(
                id=DEMO_PROCESS_ID,
                name="Invoice to Pay",
                description="Supplier invoice handling from receipt to payment",
                created_by=DEMO_USER_ID,
            )
            session.add(process)
            for name, lane, lead, cycle in AS_IS_STEPS:
                session.add(ProcessStep(
                    process_id=DEMO_PROCESS_ID,
                    step_name=name,
                    lane=lane,
                    lead_time_minutes=lead,
                    cycle_time_minutes=cycle,
                ))
            session.add(WorkflowContext(
                process_id=DEMO_PROCESS_ID,
                purpose="Pay suppliers accurately and on time",
                business_value="Capture early-payment discounts and avoid late fees",
                trigger_events=["Invoice received by email", "Invoice uploaded to supplier portal"],
                end_outcomes=["Supplier paid", "Invoice posted to ledger"],
                volume_frequency="~1,200 invoices per month",
                sla_targets="Pay within 30 days of receipt",
                constraints=["Two-person approval above 10k"],
            ))
            await session.commit()

        # 2. Waste walk session
        ww_session = await session.get(WasteWalkSession, DEMO_SESSION_ID)
        if not ww_session:
            print("Creating Demo Session...")
            session.add(WasteWalkSession(
                id=DEMO_SESSION_ID,
                name="Invoice to Pay waste walk",
                process_id=DEMO_PROCESS_ID,
                created_by=DEMO_USER_ID,
            ))
        await session.commit()

        # 3. Initial future state
        manager = VersionManager(session)
        if await manager.get_latest_version(DEMO_SESSION_ID):
            print("Future state already seeded.")
        else:
            print("Creating Future State v1...")
            solution = SolutionCard(
                session_id=DEMO_SESSION_ID,
                bucket=SolutionBucket.MODIFY,
                title="Automated three-way match",
                description="Match invoices to PO and receipt automatically",
                created_by=DEMO_USER_ID,
            )
            session.add(solution)
            await session.commit()

            version = await manager.create_initial_version(
                CreateInitialVersionRequest(session_id=DEMO_SESSION_ID, name="Future State v1"),
                DEMO_USER_ID,
            )
            graph = GraphStore(session)
            for lane_name, color in (("Accounts Payable", LaneColor.BLUE), ("Finance", LaneColor.EMERALD)):
                await graph.create_lane(version.id, CreateLaneRequest(name=lane_name, color=color), DEMO_USER_ID)

            steps = (await session.execute(
                select(ProcessStep).where(ProcessStep.process_id == DEMO_PROCESS_ID)
            )).scalars().all()
            by_name = {s.step_name: s for s in steps}

            receive = await graph.create_node(version.id, CreateNodeRequest(
                name="Capture invoice data", lane="Accounts Payable", action=NodeAction.MODIFY,
                source_step_id=by_name["Receive invoice"].id, position_x=0, position_y=0,
            ), DEMO_USER_ID)
            match = await graph.create_node(version.id, CreateNodeRequest(
                name="Auto-match invoice", lane="Accounts Payable", action=NodeAction.MODIFY,
                source_step_id=by_name["Match to purchase order"].id,
                linked_solution_id=solution.id, position_x=250, position_y=0,
            ), DEMO_USER_ID)
            approve = await graph.create_node(version.id, CreateNodeRequest(
                name="Approve exceptions", lane="Finance", action=NodeAction.MODIFY,
                source_step_id=by_name["Approve invoice"].id,
                linked_solution_id=solution.id, position_x=500, position_y=150,
            ), DEMO_USER_ID)

            await graph.create_edge(version.id, CreateEdgeRequest(source_node_id=receive.id, target_node_id=match.id))
            await graph.create_edge(version.id, CreateEdgeRequest(
                source_node_id=match.id, target_node_id=approve.id, label="exception",
            ))

        print("Seeding complete.")
        print(f"Demo bearer token: {create_access_token(DEMO_USER_ID)}")

if __name__ == "__main__":
    asyncio.run(seed_data())
