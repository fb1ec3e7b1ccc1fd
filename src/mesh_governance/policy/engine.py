"""
Access policy evaluation.

Pure decision functions: the same product, request and policy always yield
the same decision, and nothing is mutated. Rules, in order:

1. Deny when justification is required and the request carries none.
2. Auto-approve public products when auto-approval is enabled.
3. Restricted products always need a human reviewer.
4. Everything else (internal, or public without auto-approval) needs review.
"""

from typing import Optional

from mesh_governance.models.access import AccessRequest
from mesh_governance.models.policy import Policy, PolicyDecision, PolicyEvaluation
from mesh_governance.models.product import DataProduct, Sensitivity


def has_justification(justification: Optional[str]) -> bool:
    return bool(justification and justification.strip())


def evaluate(product: DataProduct, request: AccessRequest, policy: Policy) -> PolicyEvaluation:
    """Evaluate an access request and explain which rule decided it."""
    if policy.require_justification and not has_justification(request.justification):
        return PolicyEvaluation(
            decision=PolicyDecision.DENY,
            reason="Policy requires a justification for access requests",
            policy_version=policy.version,
        )

    if product.access_level == Sensitivity.PUBLIC and policy.auto_approve:
        return PolicyEvaluation(
            decision=PolicyDecision.AUTO_APPROVE,
            reason="Public product with automatic approval enabled",
            policy_version=policy.version,
        )

    if product.access_level == Sensitivity.RESTRICTED:
        return PolicyEvaluation(
            decision=PolicyDecision.REQUIRE_REVIEW,
            reason="Restricted products always require owner review",
            policy_version=policy.version,
        )

    return PolicyEvaluation(
        decision=PolicyDecision.REQUIRE_REVIEW,
        reason=f"{product.access_level.value.capitalize()} product requires owner review",
        policy_version=policy.version,
    )


def decide(product: DataProduct, request: AccessRequest, policy: Policy) -> PolicyDecision:
    """Return the policy decision for an access request."""
    return evaluate(product, request, policy).decision
