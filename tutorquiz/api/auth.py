from typing import List, Literal

from fastapi import APIRouter
from pydantic import BaseModel, Field, constr

from tutorquiz.core.auth import create_token
from tutorquiz.core.config import settings

router = APIRouter()

Role = Literal["tutor", "student", "admin"]


class MockLogin(BaseModel):
    user_id: constr(strip_whitespace=True, min_length=1)
    roles: List[Role] = Field(min_length=1)


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    roles: List[Role]
    expires_in: int


@router.post("/mock-login", response_model=TokenOut)
def mock_login(payload: MockLogin):
    """Development login: issues a token for any user id with the platform roles given."""
    roles = list(dict.fromkeys(payload.roles))
    token = create_token(payload.user_id, roles)
    return TokenOut(access_token=token, roles=roles, expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60)
