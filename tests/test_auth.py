import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient

from src.auth.dependencies import get_current_user_id
from src.auth.security import create_access_token
from src.main import app


@pytest.fixture
def unauthenticated(async_client: AsyncClient):
    """The test client with real bearer-token resolution restored."""
    app.dependency_overrides.pop(get_current_user_id, None)
    return async_client


@pytest.mark.asyncio
async def test_missing_token_is_rejected(unauthenticated: AsyncClient, session_row):
    response = await unauthenticated.post(
        "/v1/future-state/versions/initial",
        json={"session_id": str(session_row.id), "name": "v1"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Could not validate credentials"


@pytest.mark.asyncio
async def test_valid_token_sets_actor(unauthenticated: AsyncClient, session_row):
    user_id = uuid.uuid4()
    token = create_access_token(user_id)

    response = await unauthenticated.post(
        "/v1/future-state/versions/initial",
        json={"session_id": str(session_row.id), "name": "v1"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 201
    assert response.json()["created_by"] == str(user_id)


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [
    "not-a-jwt",
    create_access_token("not-a-uuid"),
    create_access_token(uuid.uuid4(), expires_delta=timedelta(minutes=-5)),
])
async def test_bad_tokens_are_rejected(unauthenticated: AsyncClient, session_row, token):
    response = await unauthenticated.post(
        "/v1/future-state/versions/initial",
        json={"session_id": str(session_row.id), "name": "v1"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401
