"""
Access request and grant lifecycle.

Request states::

    pending --(start_review)--> under_review
    pending | under_review --(approve)--> approved   (creates one grant)
    pending | under_review --(deny)--> denied

On submission the policy engine may settle the request immediately
(auto-approved or denied) instead of leaving it pending.

Grant states: ``active`` --(revoke)--> ``revoked``. ``expiring`` and
``expired`` are derived from the clock on every read.
API keys belong to ``api`` grants: they are revoked with their grant and
read as expired once it expires.

Each transition is serialized per entity, writes exactly one audit entry
(when the policy enables audit logging) before any state is committed, and
either fully applies or not at all.
"""

import hashlib
import hmac
import secrets
import threading
from datetime import datetime, timedelta
from typing import Iterable, Optional, Union

from mesh_governance.access.status import derived_status, refresh_derived_status
from mesh_governance.audit.log import AuditLog
from mesh_governance.catalog.index import CatalogIndex
from mesh_governance.core import (
    AuthorizationError,
    Clock,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    get_logger,
    traced,
    utc_now,
)
from mesh_governance.models.access import (
    AccessGrant,
    AccessRequest,
    AccessType,
    ApiKey,
    ApiKeyStatus,
    GrantFilters,
    GrantStatus,
    RequestFilters,
    RequestStatus,
)
from mesh_governance.models.audit import AuditAction, AuditOutcome
from mesh_governance.models.policy import Policy, PolicyDecision
from mesh_governance.models.product import DataProduct, ProductStatus, Sensitivity
from mesh_governance.notifications.dispatcher import (
    Notification,
    NotificationDispatcher,
    NotificationType,
)
from mesh_governance.policy.engine import evaluate
from mesh_governance.policy.store import PolicyStore

logger = get_logger(__name__)

POLICY_ENGINE_ACTOR = "policy-engine"
API_KEY_PREFIX = "dp_live_sk_"


def _hash_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def _mask(raw_key: str) -> str:
    visible = len(API_KEY_PREFIX) + 4
    return f"{raw_key[:visible]}...{raw_key[-4:]}"


class AccessLifecycleManager:
    """
    Owns access requests and grants.

    Reads products from the catalog and only ever changes them by bumping
    consumer and download counters.
    """

    def __init__(
        self,
        catalog: CatalogIndex,
        policy_store: PolicyStore,
        audit_log: AuditLog,
        dispatcher: Optional[NotificationDispatcher] = None,
        grant_duration: timedelta = timedelta(days=180),
        warning_window: timedelta = timedelta(days=30),
        clock: Clock = utc_now,
    ):
        """
        Initialize the lifecycle manager.

        Args:
            catalog: Catalog index holding the products being requested.
            policy_store: Source of the current policy for every decision.
            audit_log: Destination of one entry per transition.
            dispatcher: Optional fire-and-forget notification dispatcher.
            grant_duration: Lifetime of grants on non-public products.
            warning_window: Window before expiry in which grants read as expiring.
            clock: Time source.
        """
        self._catalog = catalog
        self._policy_store = policy_store
        self._audit_log = audit_log
        self._dispatcher = dispatcher
        self._grant_duration = grant_duration
        self._warning_window = warning_window
        self._clock = clock

        self._requests: dict[str, AccessRequest] = {}
        self._grants: dict[str, AccessGrant] = {}
        self._api_keys: dict[str, ApiKey] = {}
        self._store_lock = threading.Lock()
        # One lock per request or grant ID, kept as long as the entity itself;
        # neither is ever pruned.
        self._entity_locks: dict[str, threading.Lock] = {}
        self._entity_locks_guard = threading.Lock()

    @property
    def warning_window(self) -> timedelta:
        return self._warning_window

    # ==================== Requests ====================

    @traced("submit_request")
    def submit_request(
        self,
        user_id: str,
        product_id: str,
        access_type: Union[AccessType, str] = AccessType.API,
        justification: Optional[str] = None,
    ) -> AccessRequest:
        """
        Submit a request for access and let the policy engine triage it.

        A policy denial is returned as a request in ``denied`` status, not
        raised.

        Returns:
            The stored request: ``approved`` (with a grant), ``denied`` or ``pending``.

        Raises:
            ValidationError: If user_id is blank or access_type is unknown.
            NotFoundError: If the product does not exist.
            InvalidStateError: If the product is deprecated.
        """
        if not user_id or not user_id.strip():
            raise ValidationError("user_id is required", field="user_id")
        try:
            access_type = AccessType(access_type)
        except ValueError:
            raise ValidationError(
                f"Unknown access type '{access_type}'",
                field="access_type",
                failed_checks=[t.value for t in AccessType],
            ) from None

        product = self._catalog.get(product_id)
        if product.status == ProductStatus.DEPRECATED:
            raise InvalidStateError(
                f"Data product '{product_id}' is deprecated and no longer grants access",
                entity_type="data_product",
                entity_id=product_id,
                current_state=product.status.value,
            )

        policy = self._policy_store.get()
        now = self._clock()
        request = AccessRequest(
            user_id=user_id,
            product_id=product_id,
            access_type=access_type,
            justification=justification,
            requested_at=now,
        )
        evaluation = evaluate(product, request, policy)
        details = {
            "product_id": product_id,
            "access_type": access_type.value,
            "decision": evaluation.decision.value,
            "policy_version": policy.version,
        }

        if evaluation.decision == PolicyDecision.DENY:
            request = request.model_copy(update={
                "status": RequestStatus.DENIED,
                "decided_at": now,
                "decided_by": POLICY_ENGINE_ACTOR,
                "decision_reason": evaluation.reason,
            })
            self._audit(
                policy, AuditAction.ACCESS_DENIED, user_id, request.id,
                AuditOutcome.DENIED, {**details, "reason": evaluation.reason},
            )
            self._commit(request=request)

        elif evaluation.decision == PolicyDecision.AUTO_APPROVE:
            grant = self._build_grant(request, product)
            request = request.model_copy(update={
                "status": RequestStatus.APPROVED,
                "decided_at": now,
                "decided_by": POLICY_ENGINE_ACTOR,
                "decision_reason": evaluation.reason,
                "grant_id": grant.id,
            })
            self._audit(
                policy, AuditAction.ACCESS_AUTO_APPROVED, user_id, request.id,
                AuditOutcome.SUCCESS, {**details, "grant_id": grant.id},
            )
            self._catalog.increment_consumers(product_id)
            self._commit(request=request, grant=grant)

        else:
            self._audit(
                policy, AuditAction.ACCESS_REQUESTED, user_id, request.id,
                AuditOutcome.SUCCESS, details,
            )
            self._commit(request=request)
            self._notify(
                policy,
                NotificationType.ACCESS_REQUESTED,
                recipient=product.owner,
                product=product,
                subject_id=request.id,
                message=f"{user_id} requested {access_type.value} access to {product.name}",
            )

        logger.info(
            "access_request_submitted",
            request_id=request.id,
            product_id=product_id,
            user_id=user_id,
            status=request.status,
            decision=evaluation.decision,
        )
        return request.model_copy(deep=True)

    @traced("start_review")
    def start_review(self, request_id: str, reviewer_id: str) -> AccessRequest:
        """
        Mark a pending request as being actively handled by an owner.

        Raises:
            NotFoundError: If the request does not exist.
            InvalidStateError: If the request is not pending.
        """
        with self._lock_for(request_id):
            request = self._stored_request(request_id)
            if request.status != RequestStatus.PENDING:
                raise self._request_state_error(request, "start review on")

            policy = self._policy_store.get()
            updated = request.model_copy(update={
                "status": RequestStatus.UNDER_REVIEW,
                "reviewer_id": reviewer_id,
                "version": request.version + 1,
            })
            self._audit(
                policy, AuditAction.ACCESS_REVIEW_STARTED, reviewer_id, request_id,
                AuditOutcome.SUCCESS, {"product_id": request.product_id},
            )
            self._commit(request=updated)

        logger.info("access_review_started", request_id=request_id, reviewer_id=reviewer_id)
        return updated.model_copy(deep=True)

    @traced("approve_request")
    def approve(
        self,
        request_id: str,
        approver_id: str,
        expected_version: Optional[int] = None,
    ) -> AccessRequest:
        """
        Approve an open request, creating exactly one active grant.

        Args:
            request_id: Request to approve.
            approver_id: Owner or administrator approving it.
            expected_version: If given, the version the caller last read.

        Returns:
            The approved request; ``grant_id`` names the new grant.

        Raises:
            NotFoundError: If the request does not exist.
            ConflictError: If expected_version is stale.
            InvalidStateError: If the request is not pending or under review,
                or its product has been deprecated.
        """
        with self._lock_for(request_id):
            request = self._stored_request(request_id)
            self._check_version(request, expected_version)
            if not request.is_open:
                raise self._request_state_error(request, "approve")

            product = self._catalog.get(request.product_id)
            if product.status == ProductStatus.DEPRECATED:
                raise InvalidStateError(
                    f"Data product '{product.id}' is deprecated",
                    entity_type="data_product",
                    entity_id=product.id,
                    current_state=product.status.value,
                )

            policy = self._policy_store.get()
            grant = self._build_grant(request, product)
            updated = request.model_copy(update={
                "status": RequestStatus.APPROVED,
                "decided_at": grant.granted_at,
                "decided_by": approver_id,
                "grant_id": grant.id,
                "version": request.version + 1,
            })
            self._audit(
                policy, AuditAction.ACCESS_APPROVED, approver_id, request_id,
                AuditOutcome.SUCCESS,
                {
                    "product_id": product.id,
                    "holder_id": request.user_id,
                    "grant_id": grant.id,
                    "expires_at": grant.expires_at.isoformat() if grant.expires_at else None,
                },
            )
            self._catalog.increment_consumers(product.id)
            self._commit(request=updated, grant=grant)

        self._notify(
            policy,
            NotificationType.ACCESS_APPROVED,
            recipient=request.user_id,
            product=product,
            subject_id=request_id,
            message=f"Your access to {product.name} was approved",
        )
        logger.info(
            "access_request_approved",
            request_id=request_id,
            grant_id=grant.id,
            approver_id=approver_id,
        )
        return updated.model_copy(deep=True)

    @traced("deny_request")
    def deny(
        self,
        request_id: str,
        approver_id: str,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> AccessRequest:
        """
        Deny an open request. No grant is created.

        Raises:
            NotFoundError: If the request does not exist.
            ConflictError: If expected_version is stale.
            InvalidStateError: If the request is not pending or under review.
        """
        with self._lock_for(request_id):
            request = self._stored_request(request_id)
            self._check_version(request, expected_version)
            if not request.is_open:
                raise self._request_state_error(request, "deny")

            policy = self._policy_store.get()
            updated = request.model_copy(update={
                "status": RequestStatus.DENIED,
                "decided_at": self._clock(),
                "decided_by": approver_id,
                "decision_reason": reason,
                "version": request.version + 1,
            })
            self._audit(
                policy, AuditAction.ACCESS_DENIED, approver_id, request_id,
                AuditOutcome.DENIED,
                {"product_id": request.product_id, "holder_id": request.user_id, "reason": reason},
            )
            self._commit(request=updated)

        product = self._catalog.get(request.product_id)
        self._notify(
            policy,
            NotificationType.ACCESS_DENIED,
            recipient=request.user_id,
            product=product,
            subject_id=request_id,
            message=f"Your access to {product.name} was denied",
        )
        logger.info("access_request_denied", request_id=request_id, approver_id=approver_id)
        return updated.model_copy(deep=True)

    def get_request(self, request_id: str) -> AccessRequest:
        return self._stored_request(request_id).model_copy(deep=True)

    def list_requests(self, filters: Optional[RequestFilters] = None) -> list[AccessRequest]:
        """Requests matching the filters, newest first."""
        with self._store_lock:
            requests = list(self._requests.values())

        if filters:
            if filters.user_id:
                requests = [r for r in requests if r.user_id == filters.user_id]
            if filters.product_id:
                requests = [r for r in requests if r.product_id == filters.product_id]
            if filters.status:
                requests = [r for r in requests if r.status in filters.status]

        requests.sort(key=lambda r: r.id)
        requests.sort(key=lambda r: r.requested_at, reverse=True)
        return [r.model_copy(deep=True) for r in requests]

    # ==================== Grants ====================

    @traced("revoke_grant")
    def revoke(self, grant_id: str, actor_id: str, reason: Optional[str] = None) -> AccessGrant:
        """
        Revoke a usable grant. Revocation is permanent.

        Raises:
            NotFoundError: If the grant does not exist.
            InvalidStateError: If the grant is already expired or revoked.
        """
        with self._lock_for(grant_id):
            stored = self._stored_grant(grant_id)
            now = self._clock()
            current = refresh_derived_status(stored, now, self._warning_window)
            if not current.is_usable:
                raise self._grant_state_error(current, "revoke")

            policy = self._policy_store.get()
            updated = stored.model_copy(update={
                "status": GrantStatus.REVOKED,
                "revoked_at": now,
                "revoked_by": actor_id,
                "revocation_reason": reason,
                "version": stored.version + 1,
            })
            revoked_keys = [
                k.model_copy(update={"status": ApiKeyStatus.REVOKED, "revoked_at": now})
                for k in self._active_keys_for(grant_id)
            ]
            self._audit(
                policy, AuditAction.GRANT_REVOKED, actor_id, grant_id,
                AuditOutcome.SUCCESS,
                {
                    "product_id": stored.product_id,
                    "holder_id": stored.holder_id,
                    "reason": reason,
                    "api_keys_revoked": [k.id for k in revoked_keys],
                },
                subject_type="access_grant",
            )
            self._commit(grant=updated, api_keys=revoked_keys)

        product = self._catalog.get(stored.product_id)
        self._notify(
            policy,
            NotificationType.GRANT_REVOKED,
            recipient=stored.holder_id,
            product=product,
            subject_id=grant_id,
            message=f"Your access to {product.name} was revoked",
        )
        logger.info("grant_revoked", grant_id=grant_id, actor_id=actor_id)
        return refresh_derived_status(updated, now, self._warning_window)

    @traced("record_usage")
    def record_usage(self, grant_id: str) -> AccessGrant:
        """
        Count one use of a grant against the grant and its product.

        Raises:
            NotFoundError: If the grant does not exist.
            InvalidStateError: If the grant is expired or revoked.
        """
        with self._lock_for(grant_id):
            stored = self._stored_grant(grant_id)
            now = self._clock()
            current = refresh_derived_status(stored, now, self._warning_window)
            if not current.is_usable:
                raise self._grant_state_error(current, "record usage on")

            policy = self._policy_store.get()
            updated = stored.model_copy(update={
                "usage_count": stored.usage_count + 1,
                "version": stored.version + 1,
            })
            self._audit(
                policy, AuditAction.GRANT_USED, stored.holder_id, grant_id,
                AuditOutcome.SUCCESS,
                {
                    "product_id": stored.product_id,
                    "access_type": stored.access_type.value,
                    "usage_count": updated.usage_count,
                },
                subject_type="access_grant",
            )
            self._catalog.increment_downloads(stored.product_id)
            self._commit(grant=updated, api_keys=[
                k.model_copy(update={"last_used": now}) for k in self._active_keys_for(grant_id)
            ])

        logger.debug("grant_usage_recorded", grant_id=grant_id, usage_count=updated.usage_count)
        return refresh_derived_status(updated, now, self._warning_window)

    def get_grant(self, grant_id: str) -> AccessGrant:
        """Get a grant with its status as of now."""
        return refresh_derived_status(self._stored_grant(grant_id), self._clock(), self._warning_window)

    def list_grants(self, filters: Optional[GrantFilters] = None) -> list[AccessGrant]:
        """Grants matching the filters (status by derived value), newest first."""
        with self._store_lock:
            stored = list(self._grants.values())

        now = self._clock()
        grants = [refresh_derived_status(g, now, self._warning_window) for g in stored]
        if filters:
            if filters.holder_id:
                grants = [g for g in grants if g.holder_id == filters.holder_id]
            if filters.product_id:
                grants = [g for g in grants if g.product_id == filters.product_id]
            if filters.status:
                grants = [g for g in grants if g.status in filters.status]

        grants.sort(key=lambda g: g.id)
        grants.sort(key=lambda g: g.granted_at, reverse=True)
        return grants

    # ==================== API keys ====================

    @traced("issue_api_key")
    def issue_api_key(
        self,
        grant_id: str,
        actor_id: str,
        name: Optional[str] = None,
    ) -> tuple[str, ApiKey]:
        """
        Issue an API key for an ``api`` grant, revoking any key it replaces.

        Args:
            grant_id: Grant the key authenticates.
            actor_id: Identity issuing the key.
            name: Display name; defaults to holder and product.

        Returns:
            Tuple of (raw_key, ApiKey). Only the hash of the raw key is kept.

        Raises:
            NotFoundError: If the grant does not exist.
            ValidationError: If the grant is not an ``api`` grant.
            InvalidStateError: If the grant is expired or revoked.
        """
        with self._lock_for(grant_id):
            stored = self._stored_grant(grant_id)
            if stored.access_type != AccessType.API:
                raise ValidationError(
                    f"Access grant '{grant_id}' does not allow API access",
                    field="access_type",
                    failed_checks=[AccessType.API.value],
                )
            now = self._clock()
            current = refresh_derived_status(stored, now, self._warning_window)
            if not current.is_usable:
                raise self._grant_state_error(current, "issue an API key for")

            raw_key = API_KEY_PREFIX + secrets.token_urlsafe(24)
            api_key = ApiKey(
                grant_id=grant_id,
                product_id=stored.product_id,
                holder_id=stored.holder_id,
                name=(name or "").strip() or f"{stored.holder_id} - {stored.product_id}",
                masked_key=_mask(raw_key),
                key_hash=_hash_key(raw_key),
                created_at=now,
            )
            replaced = [
                k.model_copy(update={"status": ApiKeyStatus.REVOKED, "revoked_at": now})
                for k in self._active_keys_for(grant_id)
            ]
            self._audit(
                self._policy_store.get(), AuditAction.API_KEY_ISSUED, actor_id, api_key.id,
                AuditOutcome.SUCCESS,
                {
                    "grant_id": grant_id,
                    "product_id": stored.product_id,
                    "replaced": [k.id for k in replaced],
                },
                subject_type="api_key",
            )
            self._commit(api_keys=[*replaced, api_key])

        logger.info("api_key_issued", key_id=api_key.id, grant_id=grant_id, replaced=len(replaced))
        return raw_key, api_key.model_copy()

    def get_api_key(self, key_id: str) -> ApiKey:
        """Get an API key with its status as of now."""
        with self._store_lock:
            api_key = self._api_keys.get(key_id)
        if api_key is None:
            raise NotFoundError(
                f"API key '{key_id}' not found",
                entity_type="api_key",
                entity_id=key_id,
            )
        return self._refresh_key(api_key, self._clock())

    def list_api_keys(
        self,
        holder_id: Optional[str] = None,
        grant_id: Optional[str] = None,
    ) -> list[ApiKey]:
        """API keys, newest first."""
        with self._store_lock:
            keys = list(self._api_keys.values())
        if holder_id:
            keys = [k for k in keys if k.holder_id == holder_id]
        if grant_id:
            keys = [k for k in keys if k.grant_id == grant_id]

        now = self._clock()
        keys.sort(key=lambda k: k.id)
        keys.sort(key=lambda k: k.created_at, reverse=True)
        return [self._refresh_key(k, now) for k in keys]

    def validate_api_key(self, raw_key: str) -> AccessGrant:
        """
        Resolve a raw API key to the grant it authenticates.

        Raises:
            AuthorizationError: If the key is unknown, revoked or expired.
        """
        key_hash = _hash_key(raw_key or "")
        with self._store_lock:
            match = next(
                (k for k in self._api_keys.values() if hmac.compare_digest(k.key_hash, key_hash)),
                None,
            )
        if match is None:
            logger.warning("api_key_not_found")
            raise AuthorizationError("Unknown API key")

        api_key = self._refresh_key(match, self._clock())
        if api_key.status != ApiKeyStatus.ACTIVE:
            logger.warning("api_key_inactive", key_id=api_key.id, status=api_key.status)
            raise AuthorizationError(
                f"API key '{api_key.id}' is {api_key.status.value}",
                principal_id=api_key.holder_id,
            )
        return self.get_grant(api_key.grant_id)

    # ==================== Internals ====================

    def _active_keys_for(self, grant_id: str) -> list[ApiKey]:
        with self._store_lock:
            return [
                k for k in self._api_keys.values()
                if k.grant_id == grant_id and k.status == ApiKeyStatus.ACTIVE
            ]

    def _refresh_key(self, api_key: ApiKey, now: datetime) -> ApiKey:
        if api_key.status == ApiKeyStatus.ACTIVE:
            grant = self._stored_grant(api_key.grant_id)
            if derived_status(grant, now, self._warning_window) == GrantStatus.EXPIRED:
                return api_key.model_copy(update={"status": ApiKeyStatus.EXPIRED})
        return api_key.model_copy()

    def _build_grant(self, request: AccessRequest, product: DataProduct) -> AccessGrant:
        granted_at = self._clock()
        expires_at = None
        if product.access_level != Sensitivity.PUBLIC:
            expires_at = granted_at + self._grant_duration
        return AccessGrant(
            request_id=request.id,
            product_id=product.id,
            holder_id=request.user_id,
            access_type=request.access_type,
            justification=request.justification,
            granted_at=granted_at,
            expires_at=expires_at,
        )

    def _lock_for(self, entity_id: str) -> threading.Lock:
        with self._entity_locks_guard:
            lock = self._entity_locks.get(entity_id)
            if lock is None:
                lock = self._entity_locks[entity_id] = threading.Lock()
            return lock

    def _stored_request(self, request_id: str) -> AccessRequest:
        with self._store_lock:
            request = self._requests.get(request_id)
        if request is None:
            raise NotFoundError(
                f"Access request '{request_id}' not found",
                entity_type="access_request",
                entity_id=request_id,
            )
        return request

    def _stored_grant(self, grant_id: str) -> AccessGrant:
        with self._store_lock:
            grant = self._grants.get(grant_id)
        if grant is None:
            raise NotFoundError(
                f"Access grant '{grant_id}' not found",
                entity_type="access_grant",
                entity_id=grant_id,
            )
        return grant

    def _commit(
        self,
        request: Optional[AccessRequest] = None,
        grant: Optional[AccessGrant] = None,
        api_keys: Iterable[ApiKey] = (),
    ) -> None:
        with self._store_lock:
            if request is not None:
                self._requests[request.id] = request
            if grant is not None:
                self._grants[grant.id] = grant
            for api_key in api_keys:
                self._api_keys[api_key.id] = api_key

    @staticmethod
    def _check_version(request: AccessRequest, expected_version: Optional[int]) -> None:
        if expected_version is not None and expected_version != request.version:
            raise ConflictError(
                f"Access request '{request.id}' changed since it was read",
                entity_id=request.id,
                expected_version=expected_version,
                actual_version=request.version,
            )

    @staticmethod
    def _request_state_error(request: AccessRequest, operation: str) -> InvalidStateError:
        return InvalidStateError(
            f"Cannot {operation} access request '{request.id}' in status '{request.status.value}'",
            entity_type="access_request",
            entity_id=request.id,
            current_state=request.status.value,
        )

    @staticmethod
    def _grant_state_error(grant: AccessGrant, operation: str) -> InvalidStateError:
        return InvalidStateError(
            f"Cannot {operation} access grant '{grant.id}' in status '{grant.status.value}'",
            entity_type="access_grant",
            entity_id=grant.id,
            current_state=grant.status.value,
        )

    def _audit(
        self,
        policy: Policy,
        action: AuditAction,
        actor_id: str,
        subject_id: str,
        outcome: AuditOutcome,
        details: dict,
        subject_type: str = "access_request",
    ) -> None:
        if policy.audit_logging:
            self._audit_log.append(
                action=action,
                actor_id=actor_id,
                subject_type=subject_type,
                subject_id=subject_id,
                outcome=outcome,
                details=details,
            )

    def _notify(
        self,
        policy: Policy,
        notification_type: NotificationType,
        recipient: str,
        product: DataProduct,
        subject_id: str,
        message: str,
    ) -> None:
        if self._dispatcher is None or not policy.notify_owners:
            return
        self._dispatcher.dispatch(Notification(
            notification_type=notification_type,
            recipient=recipient,
            product_id=product.id,
            subject_id=subject_id,
            message=message,
        ))
