"""
Property: Concurrent decisions on one request serialize

When ``approve`` and ``deny`` race on the same pending request, exactly one
succeeds and the other observes ``InvalidStateError``. Concurrent approvals
of different requests each create their own grant and every consumer
increment is kept. A revocation racing usage leaves the grant revoked with
exactly the successful uses counted.
"""

import threading

import pytest

from mesh_governance.core import InvalidStateError
from mesh_governance.models import (
    AccessType,
    AuditAction,
    DataProduct,
    GrantStatus,
    ProductStatus,
    RequestStatus,
    Sensitivity,
)


@pytest.fixture
def product(catalog):
    return catalog.publish(DataProduct(
        id="fin",
        name="Financial Reports API",
        domain="Finance",
        owner="carlos.silva",
        status=ProductStatus.ACTIVE,
        access_level=Sensitivity.RESTRICTED,
    ))


def run_concurrently(*calls):
    """Start all calls behind a barrier; return (results, errors)."""
    barrier = threading.Barrier(len(calls))
    results, errors = [], []
    lock = threading.Lock()

    def worker(call):
        barrier.wait()
        try:
            value = call()
        except Exception as e:
            with lock:
                errors.append(e)
        else:
            with lock:
                results.append(value)

    threads = [threading.Thread(target=worker, args=(call,)) for call in calls]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)
    return results, errors


@pytest.mark.parametrize("attempt", range(25))
def test_approve_deny_race_has_one_winner(lifecycle, product, audit_log, attempt):
    request = lifecycle.submit_request("joao.lima", product.id, AccessType.API, "Budget review")

    results, errors = run_concurrently(
        lambda: lifecycle.approve(request.id, "carlos.silva"),
        lambda: lifecycle.deny(request.id, "carlos.silva", reason="Not needed"),
    )

    assert len(results) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], InvalidStateError)

    final = lifecycle.get_request(request.id)
    assert final.status == results[0].status
    expected_grants = 1 if final.status == RequestStatus.APPROVED else 0
    assert len(lifecycle.list_grants()) == expected_grants
    # one entry for submission, one for the winning decision
    assert len(audit_log.entries_for(request.id)) == 2


def test_parallel_approvals_keep_every_consumer_increment(lifecycle, product, catalog):
    requests = [
        lifecycle.submit_request(f"user{i}", product.id, AccessType.API, "Budget review")
        for i in range(16)
    ]

    results, errors = run_concurrently(*[
        (lambda rid=r.id: lifecycle.approve(rid, "carlos.silva"))
        for r in requests
    ])

    assert errors == []
    assert len(results) == 16
    assert len({r.grant_id for r in results}) == 16
    assert catalog.get(product.id).consumers == 16


def test_parallel_usage_is_counted_once_each(lifecycle, product, catalog):
    request = lifecycle.submit_request("joao.lima", product.id, AccessType.DOWNLOAD, "Budget review")
    grant_id = lifecycle.approve(request.id, "carlos.silva").grant_id

    results, errors = run_concurrently(*[
        (lambda: lifecycle.record_usage(grant_id)) for _ in range(12)
    ])

    assert errors == []
    assert lifecycle.get_grant(grant_id).usage_count == 12
    assert catalog.get(product.id).downloads == 12


@pytest.mark.parametrize("attempt", range(25))
def test_revoke_racing_usage_counts_only_successful_uses(lifecycle, product, catalog, audit_log, attempt):
    request = lifecycle.submit_request("joao.lima", product.id, AccessType.API, "Budget review")
    grant_id = lifecycle.approve(request.id, "carlos.silva").grant_id

    results, errors = run_concurrently(
        lambda: lifecycle.revoke(grant_id, "carlos.silva", reason="Review finished"),
        *[(lambda: lifecycle.record_usage(grant_id)) for _ in range(6)],
    )

    assert all(isinstance(e, InvalidStateError) for e in errors)
    assert len(results) + len(errors) == 7
    assert sum(1 for r in results if r.status == GrantStatus.REVOKED) == 1
    uses = len(results) - 1

    final = lifecycle.get_grant(grant_id)
    assert final.status == GrantStatus.REVOKED
    assert final.usage_count == uses
    assert catalog.get(product.id).downloads == uses
    used_entries = [e for e in audit_log.entries_for(grant_id) if e.action == AuditAction.GRANT_USED]
    assert len(used_entries) == uses
