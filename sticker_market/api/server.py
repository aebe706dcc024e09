from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from sticker_market import __version__
from sticker_market.auth import (
    change_password,
    create_access_token,
    create_user,
    get_identity,
    verify_user_credentials,
)
from sticker_market.auth.crud import public_user
from sticker_market.auth.deps import get_config, get_database
from sticker_market.config import Config, load_config
from sticker_market.db import Database
from sticker_market.errors import InvalidCredentials, MarketError, NotFound
from sticker_market.market import (
    get_user_info,
    list_stickers,
    list_uploaded_stickers,
    list_user_stickers,
    purchase_sticker,
    upload_sticker,
)
from sticker_market.market.storage import sticker_dir
from sticker_market.models import Identity


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


router = APIRouter()


# -----------------------------
# Error envelope
# -----------------------------


def _fail(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"isSuccess": False, "message": message},
        headers=headers,
    )


async def _market_error_handler(request: Request, exc: MarketError) -> JSONResponse:
    if exc.status_code >= 500:
        _debug(f"{request.method} {request.url.path} failed: {exc.message} ({exc.__cause__!r})")
    return _fail(exc.status_code, exc.message)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _fail(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Missing or malformed request bodies are plain 400s for this API.
    return _fail(400, "invalid_request")


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    _debug(f"{request.method} {request.url.path} crashed: {exc!r}")
    return _fail(500, "server_error")


# -----------------------------
# Health
# -----------------------------


@router.get("/")
def root() -> Dict[str, Any]:
    return {"isSuccess": True, "message": "server_running"}


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Auth
# -----------------------------


class SignupRequest(BaseModel):
    name: Optional[str] = None
    userId: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    userId: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    currentPassword: Optional[str] = None
    newPassword: Optional[str] = None


@router.post("/signup", status_code=201)
def signup(
    payload: SignupRequest,
    cfg: Config = Depends(get_config),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    with db.connect() as conn:
        create_user(
            conn,
            name=payload.name or "",
            login_id=payload.userId or "",
            password=payload.password or "",
            coins=cfg.SIGNUP_STARTING_COINS,
            password_rounds=cfg.AUTH_PASSWORD_ROUNDS,
        )
    return {"isSuccess": True, "message": "signup_success"}


@router.post("/login")
def login(
    payload: LoginRequest,
    cfg: Config = Depends(get_config),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    with db.connect() as conn:
        try:
            row = verify_user_credentials(conn, payload.userId or "", payload.password or "")
        except NotFound:
            raise InvalidCredentials("user_not_found")

    token = create_access_token(
        secret=cfg.AUTH_JWT_SECRET,
        user_id=int(row["id"]),
        name=str(row["name"]),
        login_id=str(row["user_id"]),
        expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
    )
    return {"isSuccess": True, "message": "login_success", "token": token, "user": public_user(row)}


@router.get("/userinfo")
def userinfo(
    identity: Identity = Depends(get_identity),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    with db.connect() as conn:
        user = get_user_info(conn, identity)
    return {"isSuccess": True, "user": user}


@router.post("/changepassword")
def changepassword(
    payload: ChangePasswordRequest,
    identity: Identity = Depends(get_identity),
    cfg: Config = Depends(get_config),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    with db.connect() as conn:
        change_password(
            conn,
            identity,
            current_password=payload.currentPassword or "",
            new_password=payload.newPassword or "",
            password_rounds=cfg.AUTH_PASSWORD_ROUNDS,
        )
    return {"isSuccess": True, "message": "password_changed"}


# -----------------------------
# Stickers
# -----------------------------


class PurchaseRequest(BaseModel):
    stickerId: Optional[int] = None


@router.post("/api/upload-sticker", status_code=201)
def upload_sticker_route(
    name: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    identity: Identity = Depends(get_identity),
    cfg: Config = Depends(get_config),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    data = image.file.read() if image is not None else None
    sticker_id = upload_sticker(
        db,
        identity,
        name=name,
        price=price,
        image=data,
        image_filename=image.filename if image is not None else None,
        upload_dir=cfg.UPLOAD_DIR,
    )
    return {"isSuccess": True, "message": "sticker_uploaded", "stickerId": sticker_id}


@router.get("/api/stickers")
def stickers(db: Database = Depends(get_database)) -> Dict[str, Any]:
    with db.connect() as conn:
        rows = list_stickers(conn)
    return {"isSuccess": True, "stickers": rows}


@router.get("/api/user-stickers")
def user_stickers(
    identity: Identity = Depends(get_identity),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    with db.connect() as conn:
        rows = list_user_stickers(conn, identity)
    return {"isSuccess": True, "stickers": rows}


@router.get("/api/my-uploads")
def my_uploads(
    identity: Identity = Depends(get_identity),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    with db.connect() as conn:
        rows = list_uploaded_stickers(conn, identity)
    return {"isSuccess": True, "stickers": rows}


@router.post("/api/purchase-sticker")
def purchase(
    payload: PurchaseRequest,
    identity: Identity = Depends(get_identity),
    db: Database = Depends(get_database),
) -> Dict[str, Any]:
    with db.connect() as conn:
        coins = purchase_sticker(conn, identity, payload.stickerId)
    return {"isSuccess": True, "message": "sticker_purchased", "coins": coins}


# -----------------------------
# App factory
# -----------------------------


def create_app(cfg: Optional[Config] = None) -> FastAPI:
    """Build the API around an explicit config and store handle.

    Run with: uvicorn --factory sticker_market.api.server:create_app
    """
    cfg = cfg or load_config()
    db = Database(cfg.DB_DSN)
    db.init()
    sticker_dir(cfg.UPLOAD_DIR)

    app = FastAPI(title="Sticker Market", version=__version__)
    app.state.cfg = cfg
    app.state.db = db

    origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials="*" not in origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(MarketError, _market_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(router)
    # Uploaded images: /uploads/stickers/<filename>
    app.mount("/uploads", StaticFiles(directory=cfg.UPLOAD_DIR), name="uploads")

    _debug(f"API ready (db={db.dialect}, uploads={cfg.UPLOAD_DIR})")
    return app
