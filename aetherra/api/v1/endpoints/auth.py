from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from datetime import timedelta

from aetherra.core.database import commit_or_raise, get_db
from aetherra.core.logging import log_auth_event
from aetherra.core.security import (
    hash_password, verify_password, create_access_token, get_current_user
)
from aetherra.dependencies.rate_limiter import WRITE, client_identity, rate_limit
from aetherra.models.user import User
from aetherra.schemas.user import (
    UserCreate, UserOut, UserLogin, Token
)
from aetherra.core.config import settings
from aetherra.services.activity import log_activity

router = APIRouter()


# ─────────────────────────────────────────────────────────────
# 🔐 Register new user
# ─────────────────────────────────────────────────────────────
@router.post("/register", response_model=UserOut, status_code=201, dependencies=[Depends(rate_limit(WRITE))])
async def register_user(
    user_data: UserCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    email = user_data.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    existing_user = result.scalar_one_or_none()

    if existing_user:
        log_auth_event("register", email=email, success=False, error="Email already registered",
                       ip_address=client_identity(request))
        raise HTTPException(status_code=400, detail="Email already registered")

    new_user = User(
        email=email,
        full_name=user_data.full_name,
        hashed_password=hash_password(user_data.password),
        is_active=True,
    )
    db.add(new_user)
    await commit_or_raise(db, "register user")
    await db.refresh(new_user)

    log_auth_event("register", user_id=new_user.id, email=email, ip_address=client_identity(request))
    await log_activity(db, new_user.id, "Registered account", "auth", request=request)
    return new_user


# ─────────────────────────────────────────────────────────────
# 🔐 Login and return JWT token
# ─────────────────────────────────────────────────────────────
@router.post("/login", response_model=Token, dependencies=[Depends(rate_limit(WRITE))])
async def login(user_data: UserLogin, request: Request, db: AsyncSession = Depends(get_db)):
    email = user_data.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active or not verify_password(user_data.password, user.hashed_password):
        log_auth_event("login", email=email, success=False, error="Invalid credentials",
                       ip_address=client_identity(request))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": str(user.id)},
        expires_delta=access_token_expires
    )

    log_auth_event("login", user_id=user.id, email=email, ip_address=client_identity(request))
    await log_activity(db, user.id, "Logged in", "auth", request=request)
    return Token(access_token=access_token, token_type="bearer")


# ─────────────────────────────────────────────────────────────
# 🔎 Get current user profile
# ─────────────────────────────────────────────────────────────
@router.get("/me", response_model=UserOut)
async def get_my_profile(current_user: User = Depends(get_current_user)):
    return current_user
