"""
HTTP API for the governance engine.

Every route is a thin wrapper over ``GovernanceService``. Successful
responses use a ``{"data": ...}`` envelope; failures use
``{"error": {"code", "message", "details"}}``. The caller's identity comes
from the ``X-Actor-Id`` and ``X-Actor-Role`` headers.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import pydantic
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from mesh_governance.core import (
    AuditStorageExhaustedError,
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    MeshGovernanceError,
    NotFoundError,
    ValidationError,
    bind_actor,
    get_logger,
)
from mesh_governance.models.access import (
    AccessType,
    GrantFilters,
    GrantStatus,
    RequestFilters,
    RequestStatus,
)
from mesh_governance.models.audit import AuditAction, AuditFilters
from mesh_governance.models.compliance import RuleSeverity
from mesh_governance.models.policy import Principal, Role
from mesh_governance.models.product import (
    ALL_DOMAINS,
    DataProduct,
    ProductCategory,
    ProductStatus,
    Sensitivity,
    UpdateFrequency,
)
from mesh_governance.service import GovernanceService

logger = get_logger(__name__)

STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    AuthorizationError: 403,
    NotFoundError: 404,
    InvalidStateError: 409,
    ConflictError: 412,
    AuditStorageExhaustedError: 507,
}

CORS_ORIGINS = ["http://localhost:3000", "http://localhost:5173"]


# ==================== Request bodies ====================

class PublishProductBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    description: str = ""
    domain: str
    owner: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    status: ProductStatus = ProductStatus.DEVELOPMENT
    access_level: Sensitivity = Sensitivity.INTERNAL
    quality_score: int = Field(default=0, ge=0, le=100)
    category: Optional[ProductCategory] = None
    update_frequency: Optional[UpdateFrequency] = None


class FeedbackBody(BaseModel):
    rating: int
    comment: Optional[str] = None


class LineageBody(BaseModel):
    source: str
    destination: str
    transformations: list[str] = Field(default_factory=list)


class AccessRequestBody(BaseModel):
    product_id: str
    access_type: AccessType = AccessType.API
    justification: Optional[str] = None


class DecisionBody(BaseModel):
    reason: Optional[str] = None
    expected_version: Optional[int] = None


class RevokeBody(BaseModel):
    reason: Optional[str] = None


class ApiKeyBody(BaseModel):
    name: Optional[str] = None


class PolicyUpdateBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    auto_approve: Optional[bool] = None
    require_justification: Optional[bool] = None
    notify_owners: Optional[bool] = None
    audit_logging: Optional[bool] = None


class RuleBody(BaseModel):
    name: str
    description: str = ""
    severity: RuleSeverity = RuleSeverity.MEDIUM
    warning_threshold: int = Field(default=3, ge=1)


class CheckBody(BaseModel):
    violations: int = Field(..., ge=0)
    checked_at: Optional[datetime] = None


# ==================== Helpers ====================

def _data(value: Any) -> dict[str, Any]:
    if isinstance(value, BaseModel):
        return {"data": value.model_dump(mode="json")}
    if isinstance(value, list):
        return {"data": [
            v.model_dump(mode="json") if isinstance(v, BaseModel) else v
            for v in value
        ]}
    return {"data": value}


def _error_response(status_code: int, code: str, message: str, details: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": details or {}}},
    )


def _build_model(model: type[BaseModel], **values: Any) -> BaseModel:
    try:
        return model(**values)
    except pydantic.ValidationError as e:
        failed = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ValidationError(
            f"Invalid fields: {', '.join(failed)}",
            field=failed[0] if failed else None,
            failed_checks=failed,
        ) from e


async def current_principal(
    x_actor_id: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None),
) -> Principal:
    """Resolve the acting principal from request headers."""
    if not x_actor_id or not x_actor_id.strip():
        raise ValidationError("X-Actor-Id header is required", field="X-Actor-Id")
    try:
        role = Role(x_actor_role) if x_actor_role else Role.DATA_CONSUMER
    except ValueError:
        raise ValidationError(
            f"Unknown role '{x_actor_role}'",
            field="X-Actor-Role",
            failed_checks=[r.value for r in Role],
        ) from None
    bind_actor(x_actor_id)
    return Principal(id=x_actor_id.strip(), role=role)


# ==================== Application ====================

def create_app(service: GovernanceService) -> FastAPI:
    """Build the FastAPI application around a governance service."""
    app = FastAPI(
        title="Data Mesh Governance API",
        description="Catalog, access lifecycle and governance engine",
        version="0.1.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.service = service

    @app.exception_handler(MeshGovernanceError)
    async def governance_error_handler(request: Request, exc: MeshGovernanceError) -> JSONResponse:
        status_code = next(
            (code for cls, code in STATUS_CODES.items() if isinstance(exc, cls)),
            500,
        )
        if status_code >= 500:
            logger.error("request_failed", path=request.url.path, error_code=exc.error_code, error=exc.message)
        else:
            logger.warning("request_rejected", path=request.url.path, error_code=exc.error_code, error=exc.message)
        return _error_response(status_code, exc.error_code or "ERROR", exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        failed = [".".join(str(p) for p in err["loc"]) for err in exc.errors()]
        return _error_response(
            400,
            "VALIDATION",
            "Request failed validation",
            {"field": failed[0] if failed else None, "failed_checks": failed},
        )

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    # ---------- Catalog ----------

    @app.get("/api/catalog/products")
    def search_products(
        q: str = "",
        domain: Optional[str] = ALL_DOMAINS,
        sort: str = "updated",
    ):
        return _data(service.search_products(query=q, domain=domain, sort_key=sort))

    @app.post("/api/catalog/products", status_code=201)
    def publish_product(body: PublishProductBody, principal: Principal = Depends(current_principal)):
        fields = body.model_dump()
        fields["owner"] = fields["owner"] or principal.id
        fields["last_updated"] = service.clock()
        product = _build_model(DataProduct, **fields)
        return _data(service.publish_product(principal, product))

    @app.get("/api/catalog/products/{product_id}")
    def get_product(product_id: str):
        return _data(service.get_product(product_id))

    @app.post("/api/catalog/products/{product_id}/deprecate")
    def deprecate_product(product_id: str, principal: Principal = Depends(current_principal)):
        return _data(service.deprecate_product(principal, product_id))

    @app.get("/api/catalog/products/{product_id}/feedback")
    def list_feedback(product_id: str):
        return _data(service.list_feedback(product_id))

    @app.post("/api/catalog/products/{product_id}/feedback", status_code=201)
    def submit_feedback(
        product_id: str,
        body: FeedbackBody,
        principal: Principal = Depends(current_principal),
    ):
        return _data(service.submit_feedback(principal, product_id, body.rating, body.comment))

    @app.get("/api/catalog/products/{product_id}/lineage")
    def list_product_lineage(product_id: str):
        return _data(service.list_lineage(product_id))

    @app.post("/api/catalog/products/{product_id}/lineage", status_code=201)
    def register_lineage(
        product_id: str,
        body: LineageBody,
        principal: Principal = Depends(current_principal),
    ):
        return _data(service.register_lineage(
            principal,
            product_id,
            source=body.source,
            destination=body.destination,
            transformations=body.transformations,
        ))

    @app.get("/api/governance/lineage")
    def list_lineage():
        return _data(service.list_lineage())

    @app.get("/api/catalog/domains")
    def list_domains():
        return _data(service.list_domains())

    @app.get("/api/catalog/stats")
    def catalog_stats():
        return _data(service.catalog_stats())

    # ---------- Access ----------

    @app.post("/api/access/requests", status_code=201)
    def submit_request(body: AccessRequestBody, principal: Principal = Depends(current_principal)):
        return _data(service.submit_request(
            principal,
            product_id=body.product_id,
            access_type=body.access_type,
            justification=body.justification,
        ))

    @app.get("/api/access/requests")
    def list_requests(
        user_id: Optional[str] = None,
        product_id: Optional[str] = None,
        status: Optional[list[RequestStatus]] = Query(None),
    ):
        filters = RequestFilters(user_id=user_id, product_id=product_id, status=status)
        return _data(service.list_requests(filters))

    @app.get("/api/access/requests/{request_id}")
    def get_request(request_id: str):
        return _data(service.get_request(request_id))

    @app.post("/api/access/requests/{request_id}/review")
    def start_review(request_id: str, principal: Principal = Depends(current_principal)):
        return _data(service.start_review(principal, request_id))

    @app.post("/api/access/requests/{request_id}/approve")
    def approve_request(
        request_id: str,
        body: Optional[DecisionBody] = None,
        principal: Principal = Depends(current_principal),
    ):
        body = body or DecisionBody()
        return _data(service.approve_request(principal, request_id, expected_version=body.expected_version))

    @app.post("/api/access/requests/{request_id}/deny")
    def deny_request(
        request_id: str,
        body: Optional[DecisionBody] = None,
        principal: Principal = Depends(current_principal),
    ):
        body = body or DecisionBody()
        return _data(service.deny_request(
            principal,
            request_id,
            reason=body.reason,
            expected_version=body.expected_version,
        ))

    @app.get("/api/access/grants")
    def list_grants(
        holder_id: Optional[str] = None,
        product_id: Optional[str] = None,
        status: Optional[list[GrantStatus]] = Query(None),
    ):
        filters = GrantFilters(holder_id=holder_id, product_id=product_id, status=status)
        return _data(service.list_grants(filters))

    @app.get("/api/access/grants/{grant_id}")
    def get_grant(grant_id: str):
        return _data(service.get_grant(grant_id))

    @app.post("/api/access/grants/{grant_id}/revoke")
    def revoke_grant(
        grant_id: str,
        body: Optional[RevokeBody] = None,
        principal: Principal = Depends(current_principal),
    ):
        reason = body.reason if body else None
        return _data(service.revoke_grant(principal, grant_id, reason=reason))

    @app.post("/api/access/grants/{grant_id}/usage")
    def record_usage(grant_id: str, principal: Principal = Depends(current_principal)):
        return _data(service.record_usage(principal, grant_id))

    @app.post("/api/access/grants/{grant_id}/api-keys", status_code=201)
    def issue_api_key(
        grant_id: str,
        body: Optional[ApiKeyBody] = None,
        principal: Principal = Depends(current_principal),
    ):
        raw_key, api_key = service.issue_api_key(principal, grant_id, name=body.name if body else None)
        return {"data": {"key": raw_key, "api_key": api_key.model_dump(mode="json")}}

    @app.get("/api/access/api-keys")
    def list_api_keys(holder_id: Optional[str] = None, grant_id: Optional[str] = None):
        return _data(service.list_api_keys(holder_id=holder_id, grant_id=grant_id))

    @app.get("/api/access/api-keys/{key_id}")
    def get_api_key(key_id: str):
        return _data(service.get_api_key(key_id))

    # ---------- Audit and policy ----------

    @app.get("/api/audit")
    def query_audit(
        actor_id: Optional[str] = None,
        subject_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 50,
    ):
        filters = _build_model(
            AuditFilters,
            actor_id=actor_id,
            subject_id=subject_id,
            action=action,
            since=since,
            until=until,
            page=page,
            page_size=page_size,
        )
        return _data(service.query_audit(filters))

    @app.get("/api/audit/verify")
    def verify_audit_chain():
        return _data(service.verify_audit_chain())

    @app.get("/api/policy")
    def get_policy(principal: Principal = Depends(current_principal)):
        return _data(service.get_policy(principal))

    @app.put("/api/policy")
    def update_policy(body: PolicyUpdateBody, principal: Principal = Depends(current_principal)):
        return _data(service.update_policy(principal, **body.model_dump(exclude_none=True)))

    # ---------- Compliance ----------

    @app.get("/api/compliance/rules")
    def list_rules():
        return _data(service.list_rules())

    @app.post("/api/compliance/rules", status_code=201)
    def register_rule(body: RuleBody, principal: Principal = Depends(current_principal)):
        return _data(service.register_rule(
            principal,
            name=body.name,
            description=body.description,
            severity=body.severity,
            warning_threshold=body.warning_threshold,
        ))

    @app.post("/api/compliance/rules/{rule_id}/checks")
    def record_check(rule_id: str, body: CheckBody, principal: Principal = Depends(current_principal)):
        return _data(service.record_check(principal, rule_id, body.violations, body.checked_at))

    # ---------- Dashboards ----------

    @app.get("/api/dashboard/domains")
    def domain_rollups():
        return _data(service.domain_rollups())

    @app.get("/api/dashboard/domains/{domain}")
    def domain_rollup(domain: str):
        return _data(service.domain_rollup(domain))

    @app.get("/api/dashboard/compliance")
    def compliance_rollup():
        return _data(service.compliance_rollup())

    @app.get("/api/dashboard/access")
    def access_summary():
        return _data(service.access_summary())

    return app
