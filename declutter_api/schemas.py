"""
Database Schemas for the Declutter App

Each stored model maps to a MongoDB collection named after the lowercased
class name (class Post -> "post" collection). Documents are written with
snake_case keys; JSON bodies use the camelCase aliases (createdAt, postId,
toEmail, fromEmail, profileImage).
"""

from datetime import datetime
from typing import Any, Literal, Optional, Union

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Category = Literal["unused", "bored", "broken"]

# labels sent by the Japanese front end
CATEGORY_ALIASES = {"使わん": "unused", "飽きた": "bored", "壊れた": "broken"}

REASON_MAX_LENGTH = 30


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StoredModel(CamelModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


# ----------------- Request bodies -----------------

class RegisterRequest(CamelModel):
    email: str = Field(..., min_length=1, description="Email address")
    password: str = Field(..., min_length=1, description="Plain text password")


class LoginRequest(CamelModel):
    email: str = Field(..., min_length=1, description="Email address")
    # accepted but not checked
    password: Optional[str] = Field(None, description="Plain text password")


class PostCreate(CamelModel):
    name: str = Field(..., min_length=1, description="Item name")
    image: str = Field(..., min_length=1, description="Opaque image value (URL or base64)")
    reason: str = Field(..., min_length=1, max_length=REASON_MAX_LENGTH, description="Why it is going")
    category: Category = Field(..., description="unused, bored or broken")

    @field_validator("category", mode="before")
    @classmethod
    def _normalise_category(cls, value: Any) -> Any:
        return CATEGORY_ALIASES.get(value, value) if isinstance(value, str) else value


class CommentCreate(CamelModel):
    text: str = Field(..., min_length=1, description="Comment text")


class NotificationCreate(CamelModel):
    to_email: str = Field(..., min_length=1, description="Recipient email")
    type: str = Field(..., min_length=1, description="Free-form label, e.g. comment")
    post_id: str = Field(..., min_length=1, description="Post the notification is about")


class ProfileImageUpdate(CamelModel):
    image: str = Field(..., min_length=1, description="Opaque image value (URL or base64)")


# ----------------- Stored documents -----------------

class User(StoredModel):
    email: str = Field(..., description="Email address, unique")
    password_hash: str = Field(..., description="bcrypt hash")
    profile_image: Optional[str] = Field(None, description="Opaque image value")


class Post(PostCreate, StoredModel):
    email: str = Field(..., description="Owner email")
    created_at: datetime


class Comment(CommentCreate, StoredModel):
    post_id: ObjectId = Field(..., description="Post being commented on")
    email: str = Field(..., description="Author email")
    created_at: datetime


class Notification(StoredModel):
    to_email: str = Field(..., min_length=1, description="Recipient email")
    type: str = Field(..., min_length=1, description="Free-form label")
    post_id: Optional[ObjectId] = Field(None, description="Related post")
    from_email: Optional[str] = Field(None, description="Actor email")
    created_at: datetime


# ----------------- Responses -----------------

class TokenResponse(CamelModel):
    token: str


class MessageResponse(CamelModel):
    message: str


class PostOut(CamelModel):
    id: str
    name: str
    image: str
    reason: str
    category: str
    email: str
    created_at: datetime


class PostCreated(CamelModel):
    message: str
    post: PostOut


class CommentOut(CamelModel):
    id: str
    post_id: str
    text: str
    email: str
    created_at: datetime


class CommentCreated(CamelModel):
    message: str
    comment: CommentOut


class NotificationOut(CamelModel):
    id: str
    to_email: str
    type: str
    # the full post when expanded, otherwise its id
    post_id: Optional[Union[PostOut, str]] = None
    from_email: Optional[str] = None
    created_at: datetime


class ProfileImageOut(CamelModel):
    profile_image: Optional[str] = None


class ProfileImageUpdated(CamelModel):
    success: bool = True
    profile_image: Optional[str] = None
