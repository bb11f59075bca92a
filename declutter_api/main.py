from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from bson import ObjectId
from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from declutter_api.auth import CurrentEmail, get_current_email, hash_password, issue_token
from declutter_api.config import settings
from declutter_api.database import (
    connect,
    create_document,
    ensure_indexes_ready,
    get_db,
    get_documents,
    parse_object_id,
    store_errors,
    to_public,
    utcnow,
)
from declutter_api.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
    setup_exception_handlers,
)
from declutter_api.logging import logger
from declutter_api.middleware import BodySizeLimitMiddleware, RequestContextMiddleware
from declutter_api.schemas import (
    Comment,
    CommentCreate,
    CommentCreated,
    CommentOut,
    LoginRequest,
    MessageResponse,
    Notification,
    NotificationCreate,
    NotificationOut,
    Post,
    PostCreate,
    PostCreated,
    PostOut,
    ProfileImageOut,
    ProfileImageUpdate,
    ProfileImageUpdated,
    RegisterRequest,
    TokenResponse,
    User,
)

# usernames in /posts/user/{username} map onto registration emails
USERNAME_EMAIL_TEMPLATE = "{username}@example.com"

COMMENT_NOTIFICATION_TYPE = "comment"

router = APIRouter()


def _object_id_or_404(post_id: str) -> ObjectId:
    oid = parse_object_id(post_id)
    if oid is None:
        raise NotFoundError("Post not found")
    return oid


def _find_post(db: Database, post_id: str) -> dict:
    oid = _object_id_or_404(post_id)
    with store_errors("Failed to load post", post_id=post_id):
        post = db["post"].find_one({"_id": oid})
    if not post:
        raise NotFoundError("Post not found")
    return post


def _posts_for(db: Database, email: str) -> List[dict]:
    with store_errors("Failed to load posts", owner=email):
        posts = get_documents(db, "post", {"email": email})
    return [to_public(p) for p in posts]


def notify_post_owner(db: Database, post_id: ObjectId, commenter: str) -> None:
    """Tell the post's owner about a new comment. Best effort: failures are only logged."""
    try:
        post = db["post"].find_one({"_id": post_id})
        if not post or post["email"] == commenter:
            return
        notification = Notification(
            to_email=post["email"],
            type=COMMENT_NOTIFICATION_TYPE,
            post_id=post_id,
            from_email=commenter,
            created_at=utcnow(),
        )
        create_document(db, "notification", notification)
    except PyMongoError as exc:
        logger.warning(
            "Comment notification skipped",
            post_id=str(post_id),
            commenter=commenter,
            error=str(exc),
        )
        return
    logger.info("Notification created", post_id=str(post_id), to_email=post["email"])


@router.get("/")
def read_root():
    return {"message": "Declutter API is running"}


@router.get("/health")
def health(request: Request):
    db = request.app.state.db
    if db is None:
        return {"status": "degraded", "database": "unavailable"}
    try:
        db.command("ping")
    except PyMongoError as exc:
        logger.error("Database ping failed", error=str(exc))
        return {"status": "degraded", "database": "unavailable"}
    ensure_indexes_ready(request.app.state)
    return {"status": "ok", "database": "connected"}


# ----------------- Auth -----------------

@router.post("/register", response_model=TokenResponse)
def register(body: RegisterRequest, db: Database = Depends(get_db)):
    user = User(email=body.email, password_hash=hash_password(body.password))
    with store_errors("Registration failed", email=body.email):
        existing = db["user"].find_one({"email": body.email})
        if existing is None:
            try:
                create_document(db, "user", user)
            except DuplicateKeyError as exc:
                raise ConflictError("Email already registered") from exc
        else:
            # a profile image saved before registering leaves a record without a password
            claimed = db["user"].update_one(
                {"_id": existing["_id"], "password_hash": {"$exists": False}},
                {"$set": {"password_hash": user.password_hash}},
            )
            if claimed.matched_count == 0:
                raise ConflictError("Email already registered")
    logger.info("User registered", email=body.email)
    return {"token": issue_token(body.email)}


@router.post("/login", response_model=TokenResponse)
def login(body: LoginRequest):
    # TODO: verify body.password against the stored hash once clients send it
    logger.warning("Token issued", email=body.email, password_checked=False)
    return {"token": issue_token(body.email)}


# ----------------- Posts -----------------

@router.post("/posts", response_model=PostCreated, status_code=201)
def create_post(body: PostCreate, email: CurrentEmail, db: Database = Depends(get_db)):
    post = Post(**body.model_dump(), email=email, created_at=utcnow())
    with store_errors("Failed to save post"):
        saved = create_document(db, "post", post)
    logger.info("Post created", post_id=str(saved["_id"]), category=post.category)
    return {"message": "Post saved", "post": to_public(saved)}


@router.get("/posts/me", response_model=List[PostOut])
def my_posts(email: CurrentEmail, db: Database = Depends(get_db)):
    return _posts_for(db, email)


@router.get("/posts/user/{username}", response_model=List[PostOut])
def posts_by_username(username: str, db: Database = Depends(get_db)):
    return _posts_for(db, USERNAME_EMAIL_TEMPLATE.format(username=username))


@router.get("/posts/user-email/{email}", response_model=List[PostOut])
def posts_by_email(email: str, db: Database = Depends(get_db)):
    return _posts_for(db, email)


@router.get("/posts/{post_id}", response_model=PostOut, dependencies=[Depends(get_current_email)])
def get_post(post_id: str, db: Database = Depends(get_db)):
    return to_public(_find_post(db, post_id))


@router.delete("/posts/{post_id}", response_model=MessageResponse)
def delete_post(post_id: str, email: CurrentEmail, db: Database = Depends(get_db)):
    post = _find_post(db, post_id)
    if post["email"] != email:
        raise ForbiddenError("Only the owner can delete this post")
    # comments and notifications are left in place
    with store_errors("Failed to delete post", post_id=post_id):
        db["post"].delete_one({"_id": post["_id"]})
    logger.info("Post deleted", post_id=post_id)
    return {"message": "Post deleted"}


# ----------------- Comments -----------------

@router.get("/posts/{post_id}/comments", response_model=List[CommentOut])
def list_comments(post_id: str, db: Database = Depends(get_db)):
    oid = _object_id_or_404(post_id)
    with store_errors("Failed to load comments", post_id=post_id):
        comments = get_documents(db, "comment", {"post_id": oid}, direction=ASCENDING)
    return [to_public(c) for c in comments]


@router.post("/posts/{post_id}/comments", response_model=CommentCreated, status_code=201)
def create_comment(
    post_id: str,
    body: CommentCreate,
    email: CurrentEmail,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
):
    oid = _object_id_or_404(post_id)
    comment = Comment(text=body.text, post_id=oid, email=email, created_at=utcnow())
    with store_errors("Failed to save comment", post_id=post_id):
        saved = create_document(db, "comment", comment)
    logger.info("Comment created", post_id=post_id, comment_id=str(saved["_id"]))
    background_tasks.add_task(notify_post_owner, db, oid, email)
    return {"message": "Comment saved", "comment": to_public(saved)}


# ----------------- Notifications -----------------

@router.get("/notifications/me", response_model=List[NotificationOut])
def my_notifications(email: CurrentEmail, db: Database = Depends(get_db)):
    with store_errors("Failed to load notifications"):
        notifications = get_documents(db, "notification", {"to_email": email})
        post_ids = list({n["post_id"] for n in notifications if n.get("post_id")})
        posts = {p["_id"]: p for p in db["post"].find({"_id": {"$in": post_ids}})} if post_ids else {}

    expanded = []
    for notification in notifications:
        public = to_public(notification)
        if notification.get("post_id") is not None:
            public["post_id"] = to_public(posts.get(notification["post_id"]))
        expanded.append(public)
    return expanded


@router.post("/notifications", response_model=NotificationOut, status_code=201)
def create_notification(body: NotificationCreate, email: CurrentEmail, db: Database = Depends(get_db)):
    post_id = parse_object_id(body.post_id)
    if post_id is None:
        raise ValidationError("postId is not a valid identifier")
    notification = Notification(
        to_email=body.to_email,
        type=body.type,
        post_id=post_id,
        from_email=email,
        created_at=utcnow(),
    )
    with store_errors("Failed to save notification"):
        saved = create_document(db, "notification", notification)
    logger.info("Notification created", to_email=body.to_email, type=body.type)
    return to_public(saved)


# ----------------- Profile image -----------------

@router.get("/user/profile-image", response_model=ProfileImageOut)
def get_profile_image(email: CurrentEmail, db: Database = Depends(get_db)):
    with store_errors("Failed to load profile image"):
        user = db["user"].find_one({"email": email})
    if not user:
        raise NotFoundError("User not found")
    return {"profile_image": user.get("profile_image")}


@router.put("/user/profile-image", response_model=ProfileImageUpdated)
def set_profile_image(body: ProfileImageUpdate, email: CurrentEmail, db: Database = Depends(get_db)):
    with store_errors("Failed to save profile image"):
        user = db["user"].find_one_and_update(
            {"email": email},
            {"$set": {"profile_image": body.image}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    logger.info("Profile image updated")
    return {"success": True, "profile_image": user.get("profile_image")}


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the application.

    When ``database`` is given it is used as-is; otherwise a client for
    MONGO_URI is opened at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Starting Declutter API", version=settings.APP_VERSION, environment=settings.APP_ENV)
        client = None
        try:
            if database is None:
                client = connect(settings.MONGO_URI)
                app.state.db = client.get_default_database(default=settings.DATABASE_NAME)
            if ensure_indexes_ready(app.state):
                logger.info("MongoDB connected", database=app.state.db.name)
        except PyMongoError as exc:
            # keep serving; store-backed routes answer 500 until the store is usable
            logger.error("MongoDB connection failed", error=str(exc))

        yield

        if client is not None:
            client.close()
        logger.info("Declutter API stopped")

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
    app.state.db = database

    # the last middleware added runs first: CORS, then log context, then the size limit
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.MAX_BODY_BYTES)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    setup_exception_handlers(app)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("declutter_api.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
