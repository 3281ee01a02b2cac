from __future__ import annotations

from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Callable, Dict, Iterator, List, Optional, Type, TypeVar

from fastapi import APIRouter, Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from devsource_platform import __version__
from devsource_platform.auth import Principal, get_current_user, require_admin
from devsource_platform.auth.crud import (
    bootstrap_admin_if_needed,
    create_user,
    delete_user,
    get_user_by_id,
    list_users,
    public_user,
    touch_last_login,
    update_profile,
    verify_user_credentials,
)
from devsource_platform.auth.security import create_access_token
from devsource_platform.blogs.crud import (
    create_blog,
    delete_blog,
    list_blogs,
    list_user_blogs,
    search_blogs,
    toggle_vote,
)
from devsource_platform.config import Config, load_config
from devsource_platform.context import AppContext, build_context, get_context
from devsource_platform.db import connect, init_db
from devsource_platform.errors import (
    AppError,
    InvalidCredentials,
    NotFound,
    UpstreamFailure,
    ValidationError,
)
from devsource_platform.projects.crud import create_project, list_projects


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


@contextmanager
def _handler(failure_message: str) -> Iterator[None]:
    """Route boundary: domain errors pass through, anything else becomes a JSON 500."""
    try:
        yield
    except AppError:
        raise
    except Exception as e:
        _debug(f"{failure_message}: {type(e).__name__}: {e}")
        raise AppError(failure_message, error=str(e)) from e


def _format_errors(errors: List[Dict[str, Any]], prefix: tuple = ()) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in (*prefix, *err.get('loc', ())))}: {err.get('msg')}" for err in errors
    )


M = TypeVar("M", bound=BaseModel)


def _gated_body(model: Type[M], gate: Callable[..., Principal]) -> Callable[..., Any]:
    """JSON body dependency that only reads the body once `gate` has accepted the caller.

    FastAPI decodes declared body parameters before dependencies run.
    """

    async def dependency(request: Request, _principal: Principal = Depends(gate)) -> M:
        try:
            data = await request.json()
        except ValueError as e:
            raise ValidationError("Invalid request", error="body: JSON decode error") from e
        try:
            return model.model_validate(data)
        except ModelValidationError as e:
            raise ValidationError("Invalid request", error=_format_errors(e.errors(), ("body",))) from e

    return dependency


router = APIRouter()


# -----------------------------
# Health
# -----------------------------


@router.get("/", response_class=PlainTextResponse)
def home() -> str:
    return "It's working"


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Auth
# -----------------------------


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    profilePicture: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


def _register(ctx: AppContext, payload: RegisterRequest, role: str) -> Dict[str, Any]:
    with _handler("Server error"), connect(ctx.cfg.DB_DSN) as conn:
        return create_user(
            conn,
            ctx.pwd,
            name=payload.name or "",
            email=payload.email or "",
            password=payload.password or "",
            role=role,
            profile_picture=payload.profilePicture,
        )


def _login(ctx: AppContext, payload: LoginRequest, role: str) -> Dict[str, Any]:
    label = "Admin" if role == "admin" else "User"
    with _handler("Server error"), connect(ctx.cfg.DB_DSN) as conn:
        row = verify_user_credentials(conn, ctx.pwd, payload.email or "", payload.password or "", role)
        if row is None:
            raise InvalidCredentials(f"Invalid {label.lower()} credentials")

        touch_last_login(conn, int(row["user_id"]))
        token = create_access_token(
            secret=ctx.cfg.AUTH_JWT_SECRET,
            user_id=int(row["user_id"]),
            role=str(row["role"]),
        )
        return {
            "message": f"{label} login successful",
            "token": token,
            "token_type": "bearer",
            label.lower(): public_user(get_user_by_id(conn, int(row["user_id"]))),
        }


@router.post("/register/user", status_code=201)
def register_user(payload: RegisterRequest, ctx: AppContext = Depends(get_context)) -> Dict[str, Any]:
    user = _register(ctx, payload, "user")
    return {"message": "User registered successfully", "user": user}


@router.post("/register/admin", status_code=201)
def register_admin(payload: RegisterRequest, ctx: AppContext = Depends(get_context)) -> Dict[str, Any]:
    """Admin self-registration.

    Admins get the same password hashing and the same global email uniqueness
    as regular users.
    """
    admin = _register(ctx, payload, "admin")
    return {"message": "Admin registered successfully", "admin": admin}


@router.post("/login/user")
def login_user(payload: LoginRequest, ctx: AppContext = Depends(get_context)) -> Dict[str, Any]:
    return _login(ctx, payload, "user")


@router.post("/login/admin")
def login_admin(payload: LoginRequest, ctx: AppContext = Depends(get_context)) -> Dict[str, Any]:
    return _login(ctx, payload, "admin")


# -----------------------------
# Users
# -----------------------------


class ProfileInfoRequest(BaseModel):
    description: Optional[str] = None
    address: Optional[str] = None


@router.post("/upload/profile-picture")
def upload_profile_picture(
    profilePicture: Optional[UploadFile] = File(None),
    user: Principal = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    if profilePicture is None or not profilePicture.filename:
        raise ValidationError("No file uploaded")

    with _handler("Upload failed"):
        if ctx.images is None:
            raise UpstreamFailure("Upload failed", error="image_host_not_configured")

        content = profilePicture.file.read()
        url = ctx.images.upload_image(
            filename=profilePicture.filename,
            content=content,
            content_type=profilePicture.content_type,
        )
        with connect(ctx.cfg.DB_DSN) as conn:
            updated = update_profile(conn, user.user_id, profile_picture=url)

    return {"message": "Profile picture updated", "user": updated}


@router.put("/user/profile-info")
def update_profile_info(
    user: Principal = Depends(get_current_user),
    payload: ProfileInfoRequest = Depends(_gated_body(ProfileInfoRequest, get_current_user)),
    ctx: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    with _handler("Failed to update info"), connect(ctx.cfg.DB_DSN) as conn:
        updated = update_profile(conn, user.user_id, description=payload.description, address=payload.address)
    return {"message": "Profile info updated", "user": updated}


@router.get("/user/{user_id}")
def get_user(
    user_id: int,
    _user: Principal = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    with _handler("Failed to get user"), connect(ctx.cfg.DB_DSN) as conn:
        row = get_user_by_id(conn, user_id)
        if row is None:
            raise NotFound("User not found")
        return public_user(row)


@router.get("/user/{user_id}/blogs")
def get_user_blogs(
    user_id: int,
    _user: Principal = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> List[Dict[str, Any]]:
    with _handler("Failed to get user blogs"), connect(ctx.cfg.DB_DSN) as conn:
        return list_user_blogs(conn, user_id)


# Admin: users
@router.get("/getAllUser")
def admin_list_users(
    _admin: Principal = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
) -> List[Dict[str, Any]]:
    with _handler("Failed to get users"), connect(ctx.cfg.DB_DSN) as conn:
        return list_users(conn)


@router.delete("/unauthorize/{user_id}")
def admin_delete_user(
    user_id: int,
    _admin: Principal = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    with _handler("Failed to delete user"), connect(ctx.cfg.DB_DSN) as conn:
        delete_user(conn, user_id)
    return {"message": "User deleted by admin"}


# -----------------------------
# Blogs
# -----------------------------


class CreateBlogRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None


@router.get("/searchBlogs")
def search(
    q: Optional[str] = Query(None),
    _user: Principal = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> List[Dict[str, Any]]:
    with _handler("Failed to search blogs"), connect(ctx.cfg.DB_DSN) as conn:
        return search_blogs(conn, q)


@router.get("/getAllBlogs")
def get_all_blogs(
    _user: Principal = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> List[Dict[str, Any]]:
    with _handler("Failed to get blogs"), connect(ctx.cfg.DB_DSN) as conn:
        return list_blogs(conn)


@router.post("/addBlog", status_code=201)
def add_blog(
    user: Principal = Depends(get_current_user),
    payload: CreateBlogRequest = Depends(_gated_body(CreateBlogRequest, get_current_user)),
    ctx: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    with _handler("Failed to create blog"), connect(ctx.cfg.DB_DSN) as conn:
        blog = create_blog(
            conn,
            user_id=user.user_id,
            title=payload.title,
            description=payload.description,
            image=payload.image,
        )
    return {"message": "Blog created successfully", "blog": blog}


@router.post("/blog/like/{blog_id}")
def like_blog(
    blog_id: int,
    user: Principal = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    with _handler("Failed to like blog"), connect(ctx.cfg.DB_DSN) as conn:
        likes, dislikes = toggle_vote(conn, blog_id=blog_id, user_id=user.user_id, vote="like")
    return {"message": "Like status updated", "likes": likes, "dislikes": dislikes}


@router.post("/blog/dislike/{blog_id}")
def dislike_blog(
    blog_id: int,
    user: Principal = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    with _handler("Failed to dislike blog"), connect(ctx.cfg.DB_DSN) as conn:
        likes, dislikes = toggle_vote(conn, blog_id=blog_id, user_id=user.user_id, vote="dislike")
    return {"message": "Dislike status updated", "likes": likes, "dislikes": dislikes}


@router.delete("/deleteBlog/{blog_id}")
def delete_own_blog(
    blog_id: int,
    user: Principal = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    with _handler("Failed to delete"), connect(ctx.cfg.DB_DSN) as conn:
        delete_blog(conn, blog_id=blog_id, user_id=user.user_id)
    return {"message": "Blog deleted"}


@router.delete("/admin/deleteBlog/{blog_id}")
def admin_delete_blog(
    blog_id: int,
    admin: Principal = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    with _handler("Failed to delete blog"), connect(ctx.cfg.DB_DSN) as conn:
        delete_blog(conn, blog_id=blog_id, user_id=admin.user_id, as_admin=True)
    return {"message": "Blog deleted by admin"}


# -----------------------------
# Projects
# -----------------------------


class CreateProjectRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    type: Any = None  # must be 1|2|3; validated in create_project
    images: Optional[List[Any]] = None
    createdAt: Optional[str] = None
    endDate: Optional[str] = None


@router.get("/getAllProjects")
def get_all_projects(
    _user: Principal = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> List[Dict[str, Any]]:
    with _handler("Failed to get projects"), connect(ctx.cfg.DB_DSN) as conn:
        return list_projects(conn)


@router.post("/addProject", status_code=201)
def add_project(
    _admin: Principal = Depends(require_admin),
    payload: CreateProjectRequest = Depends(_gated_body(CreateProjectRequest, require_admin)),
    ctx: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    with _handler("Failed to add project"), connect(ctx.cfg.DB_DSN) as conn:
        project = create_project(
            conn,
            title=payload.title,
            description=payload.description,
            type=payload.type,
            images=payload.images,
            created_at=payload.createdAt,
            end_date=payload.endDate,
        )
    return {"message": "Project added successfully", "project": project}


# -----------------------------
# App
# -----------------------------


def _app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_body(),
        headers=getattr(exc, "headers", None),
    )


def _request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": "Invalid request", "error": _format_errors(exc.errors())})


def _startup(cfg: Config, context: Optional[AppContext]) -> AppContext:
    cfg.validate()

    init_db(cfg.DB_DSN)

    ctx = context or build_context(cfg)
    if ctx.images is not None:
        ok = ctx.images.ping()
        _debug(f"Cloudinary {'connected' if ok else 'ping failed'} (cloud={cfg.CLOUDINARY_CLOUD_NAME})")
    else:
        _debug("Cloudinary not configured; profile picture upload disabled")

    # Bootstrap first admin if configured and none exists
    boot = bootstrap_admin_if_needed(cfg, ctx.pwd)
    if boot:
        _debug(f"Bootstrapped initial admin: email={boot.get('email')} id={boot.get('id')}")
    return ctx


def create_app(cfg: Optional[Config] = None, *, context: Optional[AppContext] = None) -> FastAPI:
    """Build the API.

    Configuration is validated and the database/image host are initialized on
    startup, so a missing signing secret stops the server before it serves
    anything. Pass `context` to supply a prebuilt AppContext (tests).
    """
    cfg = context.cfg if context is not None else (cfg or load_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.ctx = _startup(cfg, context)
        try:
            yield
        finally:
            app.state.ctx.close()
            app.state.ctx = None

    app = FastAPI(title="DevSource Platform API", version=__version__, lifespan=lifespan)

    if cfg.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cfg.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["Content-Type", "Authorization"],
        )

    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    app.include_router(router)
    return app


app = create_app()
