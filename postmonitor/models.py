from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


SourceStatus = Literal["Active", "Inactive"]
UrlType = Literal["profile", "company", "unknown"]
RunTrigger = Literal["startup", "schedule", "api"]

CONTENT_MAX_CHARS = 1000


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuthState(str, Enum):
    UNAUTHENTICATED = "Unauthenticated"
    COOKIE_ATTEMPTED = "CookieAttempted"
    CREDENTIAL_ATTEMPTED = "CredentialAttempted"
    AUTHENTICATED = "Authenticated"
    CHALLENGE_REQUIRED = "ChallengeRequired"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AuthState.AUTHENTICATED, AuthState.CHALLENGE_REQUIRED, AuthState.FAILED)


class Source(BaseModel):
    id: str = ""
    name: str = ""
    target_url: str
    group: str = ""
    priority: Optional[Union[int, str]] = None
    status: SourceStatus = "Active"


class CookieEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    value: str = ""
    domain: str = ""
    path: str = "/"
    expires: Optional[float] = None
    http_only: Optional[bool] = Field(default=None, alias="httpOnly")
    secure: Optional[bool] = None
    same_site: Optional[str] = Field(default=None, alias="sameSite")

    @field_validator("expires", mode="before")
    @classmethod
    def _coerce_expires(cls, value: Any) -> Optional[float]:
        # Browser exports use -1 or omit the field for session cookies.
        if value is None or value == "":
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None


class CredentialPair(BaseModel):
    identifier: str
    secret: str

    def __repr__(self) -> str:
        return f"CredentialPair(identifier={self.identifier!r}, secret='***')"


class ExpiryPrediction(BaseModel):
    expired: bool
    days_left: Optional[int] = None


class ExtractedPost(BaseModel):
    content: str
    published_at: str
    canonical_url: str
    like_count: int = 0
    comment_count: int = 0
    has_media: bool = False
    media_url: Optional[str] = None

    @field_validator("content")
    @classmethod
    def _truncate_content(cls, value: str) -> str:
        return value[:CONTENT_MAX_CHARS]

    @field_validator("like_count", "comment_count")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        return max(0, int(value))


class SourceContext(BaseModel):
    author_name: str
    author_source_url: str
    group: str = ""
    url_type: UrlType = "unknown"


class StoredPost(ExtractedPost):
    author_name: str
    author_source_url: str
    group: str = ""
    source_type: str = ""
    status: Literal["New"] = "New"

    @classmethod
    def from_extracted(cls, post: ExtractedPost, context: SourceContext) -> "StoredPost":
        source_type = {"profile": "Profile", "company": "Company"}.get(context.url_type, "")
        return cls(
            **post.model_dump(),
            author_name=context.author_name,
            author_source_url=context.author_source_url,
            group=context.group,
            source_type=source_type,
        )


class PersistResult(BaseModel):
    saved_count: int = 0
    saved_urls: List[str] = Field(default_factory=list)
    skipped_count: int = 0
    errors: List[str] = Field(default_factory=list)


class SourceResult(BaseModel):
    source_id: str = ""
    name: str = ""
    url: str = ""
    url_type: UrlType = "unknown"
    success: bool = False
    posts_found: int = 0
    posts_saved: int = 0
    saved_urls: List[str] = Field(default_factory=list)
    posts: List[ExtractedPost] = Field(default_factory=list)
    store_errors: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class RunSummary(BaseModel):
    run_id: str
    trigger: RunTrigger = "schedule"
    started_at: str = Field(default_factory=utc_now_iso)
    finished_at: Optional[str] = None
    auth_state: AuthState = AuthState.UNAUTHENTICATED
    sources_total: int = 0
    sources_succeeded: int = 0
    sources_failed: int = 0
    posts_new_total: int = 0
    per_source: List[SourceResult] = Field(default_factory=list)
    error: Optional[str] = None


class ScrapeTarget(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: Optional[str] = None
    max_posts: Optional[int] = Field(default=None, alias="maxPosts", ge=1, le=50)


class ScrapeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    urls: Optional[Any] = None
    max_posts: Optional[int] = Field(default=None, alias="maxPosts", ge=1, le=50)
    group: Optional[str] = None


class StoreSummary(BaseModel):
    total_processed: int = 0
    total_saved: int = 0
    by_url: List[Dict[str, Any]] = Field(default_factory=list)


class ScrapeResponse(BaseModel):
    success: bool
    total_urls: int = 0
    successful_urls: int = 0
    failed_urls: int = 0
    results: List[SourceResult] = Field(default_factory=list)
    store: Optional[StoreSummary] = None
    error: Optional[str] = None
