import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models.user import User
from app.core.auth_dependency import get_current_user_obj
from app.core.exceptions import DuplicateEmail
from app.core.rate_limit import check_rate_limit
from app.core.security import hash_password, verify_password, create_access_token
from app.schemas.auth import SignupRequest, SignupResponse, TokenResponse, UserResponse
from app.services.quota_service import assign_default_plan

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def signup(
    payload: SignupRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """Create an account and put it on the default plan in one transaction."""
    check_rate_limit(request)

    existing_user = db.query(User).filter(User.email == payload.email).first()
    if existing_user:
        raise DuplicateEmail(email=payload.email)

    user = User(
        full_name=payload.full_name,
        email=payload.email,
        password_hash=hash_password(payload.password),
    )

    try:
        db.add(user)
        db.flush()
        assign_default_plan(db, user.id, commit=False)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    logger.info(f"User signed up: user_id={user.id}")

    return {
        "message": "User created successfully",
        "user_id": user.id
    }


@router.post("/login", response_model=TokenResponse)
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    # Swagger sends "username", but we treat it as email
    check_rate_limit(request)

    user = db.query(User).filter(User.email == form_data.username).first()

    if not user or not verify_password(form_data.password, user.password_hash):
        logger.warning(f"Failed login attempt for {form_data.username}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    if not user.is_active:
        logger.warning(f"Login refused for {user.status} account: user_id={user.id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    token = create_access_token({"sub": user.email})

    return {
        "access_token": token,
        "token_type": "bearer"
    }


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user_obj)):
    return user
