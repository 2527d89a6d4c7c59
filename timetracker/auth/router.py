from datetime import datetime, date, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..logging import get_logger
from ..models.models import User, Employee, ROLE_EMPLOYEE
from ..schemas.auth import LoginRequest, TokenResponse, MeResponse, RegisterForm
from ..schemas.common import clean_form, error_messages
from ..templating import render
from .security import (
    get_password_hash,
    verify_password,
    create_session_token,
    set_session_cookie,
    clear_session_cookie,
    default_page_for,
    get_current_user,
    get_optional_user,
)


logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])
pages = APIRouter(tags=["auth"])


def authenticate(db: Session, email: str, password: str):
    user = db.query(User).filter(User.email == (email or "").strip().lower()).first()
    if not user or not user.is_active or not verify_password(password or "", user.password_hash):
        logger.info("login_failed", email=email)
        return None
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    logger.info("login_succeeded", user_id=str(user.id), role=user.role)
    return user


def _signed_in_redirect(user: User) -> RedirectResponse:
    resp = RedirectResponse(default_page_for(user), status_code=status.HTTP_303_SEE_OTHER)
    set_session_cookie(resp, create_session_token(user))
    return resp


@pages.get("/")
def index(user=Depends(get_optional_user)):
    return RedirectResponse(default_page_for(user) if user else "/login", status_code=status.HTTP_303_SEE_OTHER)


@pages.get("/login")
def login_page(request: Request, user=Depends(get_optional_user)):
    if user:
        return RedirectResponse(default_page_for(user), status_code=status.HTTP_303_SEE_OTHER)
    return render(request, "login.html", {"error": None, "email": ""})


@pages.post("/login")
async def login_submit(request: Request, db: Session = Depends(get_db)):
    form = await request.form()
    email = (form.get("email") or "").strip()
    user = authenticate(db, email, form.get("password") or "")
    if not user:
        return render(request, "login.html", {"error": "Invalid email or password", "email": email})
    return _signed_in_redirect(user)


@pages.post("/logout")
def logout():
    resp = RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)
    clear_session_cookie(resp)
    return resp


@pages.get("/register")
def register_page(request: Request):
    return render(request, "register.html", {"errors": {}, "form": {}})


@pages.post("/register")
async def register_submit(request: Request, db: Session = Depends(get_db)):
    data = clean_form(await request.form())
    try:
        payload = RegisterForm.model_validate(data)
    except ValidationError as e:
        return render(request, "register.html", {"errors": error_messages(e), "form": data})
    if payload.password != payload.confirm_password:
        return render(request, "register.html", {"errors": {"confirm_password": "Passwords do not match"}, "form": data})

    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        return render(request, "register.html", {"errors": {"email": "Email already registered"}, "form": data})

    user = User(
        email=email,
        password_hash=get_password_hash(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=ROLE_EMPLOYEE,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    db.add(user)
    try:
        db.flush()
        db.add(Employee(user_id=user.id, position=payload.position, department=payload.department, hire_date=date.today()))
        db.commit()
    except IntegrityError:
        db.rollback()
        return render(request, "register.html", {"errors": {"email": "Email already registered"}, "form": data})
    db.refresh(user)
    logger.info("user_registered", user_id=str(user.id))
    return _signed_in_redirect(user)


@router.post("/token", response_model=TokenResponse)
def issue_token(req: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate(db, req.email, req.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return TokenResponse(access_token=create_session_token(user), expires_in=settings.session_ttl_seconds)


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return MeResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        employee_id=user.employee.id if user.employee else None,
    )
