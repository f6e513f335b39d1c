"""
Data Models for Thread Poster

This module contains the data classes used throughout the application:
the draft aggregate (Thread -> ThreadItem -> Attachment), the immutable
PublishedPost record, the OAuth Credential and the AuthenticatedUser.

Ownership is expressed with identifiers, never object references:
a Thread lists its item ids, an item lists its attachment ids, and each
child keeps its parent's id as a plain foreign key.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ThreadStatus(str, Enum):
    """Lifecycle of a thread and of each of its items."""
    EDITING = "editing"
    READY = "ready"
    POSTING = "posting"
    POSTED = "posted"
    FAILED = "failed"


EDITABLE_STATUSES = (ThreadStatus.EDITING, ThreadStatus.READY, ThreadStatus.FAILED)


@dataclass
class Attachment:
    """An image attached to a thread item."""
    item_id: str                        # Owning ThreadItem
    data: bytes                         # Full-resolution payload
    thumbnail: bytes                    # Thumbnail payload for list display
    alt_text: str = ""
    sort_order: int = 0                 # 0-3 within the item
    media_type: str = "image/jpeg"
    uploaded_media_id: Optional[str] = None   # Set only after a successful upload
    id: str = field(default_factory=new_id)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ThreadItem:
    """A single post within a thread."""
    thread_id: str                      # Owning Thread
    text: str = ""
    sort_order: int = 0
    status: ThreadStatus = ThreadStatus.EDITING
    attachment_ids: List[str] = field(default_factory=list)
    posted_post_id: Optional[str] = None
    id: str = field(default_factory=new_id)

    @property
    def has_content(self) -> bool:
        """True when the item has non-blank text or at least one attachment."""
        return bool(self.text.strip()) or bool(self.attachment_ids)

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES


@dataclass
class Thread:
    """A draft thread: an ordered container of one or more items."""
    item_ids: List[str] = field(default_factory=list)
    status: ThreadStatus = ThreadStatus.EDITING
    failure_message: Optional[str] = None
    thread_group_id: Optional[str] = None     # Assigned on the first multi-item post
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=new_id)

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES

    def touch(self) -> None:
        self.updated_at = utcnow()


@dataclass(frozen=True)
class PublishedPost:
    """Immutable record of one successfully published item."""
    post_id: str                        # Platform post id
    text: str
    attachment_count: int = 0
    posted_at: datetime = field(default_factory=utcnow)
    view_url: Optional[str] = None
    thread_group_id: Optional[str] = None   # None for standalone posts
    position_in_thread: int = 0
    id: str = field(default_factory=new_id)

    @property
    def is_in_thread(self) -> bool:
        return self.thread_group_id is not None

    @property
    def is_thread_start(self) -> bool:
        return self.thread_group_id is not None and self.position_in_thread == 0


@dataclass
class PostResult:
    """Id and text of a post as returned by the post-creation endpoint."""
    post_id: str
    text: str


@dataclass
class Credential:
    """OAuth 2.0 token set plus the basis for computing its expiry."""
    access_token: str
    token_type: str = "bearer"
    refresh_token: Optional[str] = None
    scope: Optional[str] = None
    lifetime_seconds: int = 7200
    issued_at: datetime = field(default_factory=utcnow)

    def is_expired_at(self, now: datetime, buffer_seconds: int = 300) -> bool:
        """
        Whether the access token should be considered expired at ``now``.

        The token is treated as expired ``buffer_seconds`` before its real
        expiry so a request never starts with a token about to lapse.
        """
        expires_at = self.issued_at + timedelta(seconds=self.lifetime_seconds - buffer_seconds)
        return now >= expires_at

    @property
    def is_expired(self) -> bool:
        return self.is_expired_at(utcnow())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "scope": self.scope,
            "expires_in": self.lifetime_seconds,
            "issued_at": self.issued_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credential":
        issued_at = datetime.fromisoformat(data["issued_at"])
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=timezone.utc)
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            token_type=data.get("token_type", "bearer"),
            scope=data.get("scope"),
            lifetime_seconds=int(data["expires_in"]),
            issued_at=issued_at,
        )

    @classmethod
    def from_token_response(cls, payload: Dict[str, Any],
                            fallback_refresh_token: Optional[str] = None,
                            default_lifetime: int = 7200) -> "Credential":
        """
        Build a Credential from a token endpoint JSON response.

        Platforms do not always rotate the refresh token; when the response
        omits it, ``fallback_refresh_token`` is kept.

        Raises:
            KeyError: If ``access_token`` is missing.
        """
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or fallback_refresh_token,
            token_type=payload.get("token_type", "bearer"),
            scope=payload.get("scope"),
            lifetime_seconds=int(payload.get("expires_in", default_lifetime)),
        )


@dataclass(frozen=True)
class AuthenticatedUser:
    """The signed-in account. Cached in memory only."""
    id: str
    username: str
    name: str
    profile_image_url: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AuthenticatedUser":
        return cls(
            id=str(data["id"]),
            username=data["username"],
            name=data["name"],
            profile_image_url=data.get("profile_image_url"),
        )


@dataclass
class ProcessedImage:
    """Full-size and thumbnail byte buffers produced from a raw image."""
    data: bytes
    thumbnail: bytes
    media_type: str = "image/jpeg"
