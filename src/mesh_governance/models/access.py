"""Access request and access grant models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class AccessType(str, Enum):
    """How a grant holder consumes a product."""

    API = "api"
    DOWNLOAD = "download"


class RequestStatus(str, Enum):
    """Status of an access request.

    ``under_review`` is entered only once a domain owner starts handling a
    ``pending`` request.
    """

    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    DENIED = "denied"


OPEN_REQUEST_STATUSES = frozenset({RequestStatus.PENDING, RequestStatus.UNDER_REVIEW})


class GrantStatus(str, Enum):
    """Status of an access grant.

    Only ``active`` and ``revoked`` are ever stored; ``expiring`` and
    ``expired`` are derived from ``expires_at`` at read time.
    """

    ACTIVE = "active"
    EXPIRING = "expiring"
    EXPIRED = "expired"
    REVOKED = "revoked"


USABLE_GRANT_STATUSES = frozenset({GrantStatus.ACTIVE, GrantStatus.EXPIRING})


class AccessRequest(BaseModel):
    """A consumer's request for access to a data product."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    product_id: str
    access_type: AccessType = AccessType.API
    justification: Optional[str] = None
    requested_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: RequestStatus = RequestStatus.PENDING
    reviewer_id: Optional[str] = None
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None
    decision_reason: Optional[str] = None
    grant_id: Optional[str] = None
    version: int = 1

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_REQUEST_STATUSES


class AccessGrant(BaseModel):
    """Permission for one identity to consume one data product."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    request_id: Optional[str] = None
    product_id: str
    holder_id: str
    access_type: AccessType
    justification: Optional[str] = None
    granted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: Optional[datetime] = None
    status: GrantStatus = GrantStatus.ACTIVE
    usage_count: int = Field(default=0, ge=0)
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[str] = None
    revocation_reason: Optional[str] = None
    version: int = 1

    @property
    def is_usable(self) -> bool:
        return self.status in USABLE_GRANT_STATUSES


class RequestFilters(BaseModel):
    """Filters for listing access requests."""

    user_id: Optional[str] = None
    product_id: Optional[str] = None
    status: Optional[list[RequestStatus]] = None


class GrantFilters(BaseModel):
    """Filters for listing access grants. ``status`` matches derived status."""

    holder_id: Optional[str] = None
    product_id: Optional[str] = None
    status: Optional[list[GrantStatus]] = None


class ApiKeyStatus(str, Enum):
    """Status of an API key. ``expired`` follows the grant's derived status."""

    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class ApiKey(BaseModel):
    """A credential for consuming a product through an ``api`` grant.

    Only the SHA-256 hash of the raw key is kept; the raw key is returned
    once, when the key is issued.
    """

    id: str = Field(default_factory=lambda: f"key-{uuid4().hex[:8]}")
    grant_id: str
    product_id: str
    holder_id: str
    name: str
    masked_key: str = Field(..., description="Display form, e.g. dp_live_sk_1234...8901")
    key_hash: str = Field(..., exclude=True, repr=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_used: Optional[datetime] = None
    status: ApiKeyStatus = ApiKeyStatus.ACTIVE
    revoked_at: Optional[datetime] = None
