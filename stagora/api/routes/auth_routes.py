"""
Authentication Routes

POST /auth/register - Register a student or company account
POST /auth/login - Login and get JWT token
GET /auth/me - Get current user info
"""

from fastapi import APIRouter, Depends

from stagora.core.auth import get_current_user
from stagora.services.user_service import UserService, get_user_service
from stagora.schemas.schemas import RegisterRequest, LoginRequest, TokenResponse, UserResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(request: RegisterRequest, service: UserService = Depends(get_user_service)):
    """
    Register a new account and log it in.

    Company signups also create the company profile, student signups the
    student profile. Admin accounts cannot self-register.
    """
    return service.register(request)


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, service: UserService = Depends(get_user_service)):
    """
    Login and receive JWT access token.

    Include token in requests: Authorization: Bearer <token>
    """
    return service.authenticate(request.email, request.password)


@router.get("/me", response_model=UserResponse)
async def get_me(user: dict = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    """Get current authenticated user's info."""
    doc = service.get_user(user["user_id"])
    return UserResponse(user_id=doc["_id"], **{k: v for k, v in doc.items() if k != "_id"})
