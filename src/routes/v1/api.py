from fastapi import APIRouter

from src.future_state.router import router as future_state_router
from src.step_design.router import router as step_design_router

api_router = APIRouter()

api_router.include_router(future_state_router)
api_router.include_router(step_design_router)
