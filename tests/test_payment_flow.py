# tests/test_payment_flow.py

"""
Charged requests: intent creation, webhook reconciliation, failure cap,
replays and re-drive of stale intents.
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError, PaymentGatewayError
from models.enums import AccessStatus, PaymentEventKind, PaymentStatus, ReconcileOutcome
from models.payment import IntentState, PaymentEvent


def charged(engine, amount="49.99", agent="A1"):
    request = engine.request_access(agent, "L1")
    return engine.admin_decide(request.id, "charge", "admin-1", charge_amount=Decimal(amount))


def success_event(ref, request_id=None, event_type="payment_intent.succeeded"):
    metadata = {"access_request_id": request_id} if request_id else {}
    return PaymentEvent(kind=PaymentEventKind.succeeded, event_type=event_type, event_id="evt_ok", external_ref=ref, metadata=metadata)


def failure_event(ref, event_type="payment_intent.payment_failed", event_id="evt_fail"):
    return PaymentEvent(kind=PaymentEventKind.failed, event_type=event_type, event_id=event_id, external_ref=ref)


# -----------------------------------------------------
# CreatePaymentIntent
# -----------------------------------------------------
def test_create_intent_sends_minor_unit_ready_amount_and_metadata(engine, gateway, repository):
    request = charged(engine)

    intent = engine.create_payment_intent(request.id, agent_id="A1")

    assert intent.client_secret == "pi_1_secret"
    assert intent.amount == Decimal("49.99")
    assert intent.currency == "USD"
    call = gateway.created[0]
    assert call["metadata"] == {"access_request_id": request.id, "agent_id": "A1", "listing_id": "L1"}
    assert call["idempotency_key"] == f"access-{request.id}-attempt-0"
    assert repository.get(request.id).payment.external_ref == "pi_1"


def test_create_intent_other_agent_forbidden(engine):
    request = charged(engine)

    with pytest.raises(ForbiddenError):
        engine.create_payment_intent(request.id, agent_id="A2")


def test_create_intent_missing_request(engine):
    with pytest.raises(NotFoundError):
        engine.create_payment_intent("nope")


def test_create_intent_without_charge_decision(engine):
    request = engine.request_access("A1", "L1")

    with pytest.raises(BadRequestError):
        engine.create_payment_intent(request.id)


def test_create_intent_for_free_approval(engine):
    request = engine.request_access("A1", "L1")
    engine.admin_decide(request.id, "approve", "admin-1")

    with pytest.raises(BadRequestError):
        engine.create_payment_intent(request.id)


def test_create_intent_after_payment(engine, repository):
    request = charged(engine)
    repository.rows[request.id].payment.succeeded_at = repository.rows[request.id].created_at

    with pytest.raises(ConflictError):
        engine.create_payment_intent(request.id)


def test_gateway_error_surfaces_as_bad_gateway(engine, gateway):
    request = charged(engine)
    gateway.fail_with = RuntimeError("card network down")

    with pytest.raises(PaymentGatewayError):
        engine.create_payment_intent(request.id)


# -----------------------------------------------------
# Webhook success
# -----------------------------------------------------
def test_success_marks_paid_grants_viewer_and_notifies(engine, repository, listings, dispatcher):
    request = charged(engine)
    engine.create_payment_intent(request.id)

    result = engine.reconcile_webhook_event(success_event("pi_1"))

    assert result.outcome == ReconcileOutcome.processed
    assert result.access_request_id == request.id
    stored = repository.get(request.id)
    assert stored.status == AccessStatus.paid
    assert stored.payment.payment_status == PaymentStatus.succeeded
    assert stored.payment.succeeded_at is not None
    assert ("L1", "A1", "normal_agents") in listings.viewers
    assert "grant_access_payment_succeeded" in dispatcher.kinds()
    assert ("renter_access_granted", "renter-1@renters.test") in [(k, r) for k, r, _ in dispatcher.emails]


def test_success_replay_is_duplicate_noop(engine, repository, dispatcher):
    request = charged(engine)
    engine.create_payment_intent(request.id)
    engine.reconcile_webhook_event(success_event("pi_1"))
    paid_at = repository.get(request.id).payment.succeeded_at
    sent = len(dispatcher.emails)

    result = engine.reconcile_webhook_event(success_event("pi_1"))

    assert result.outcome == ReconcileOutcome.duplicate
    assert repository.get(request.id).payment.succeeded_at == paid_at
    assert len(dispatcher.emails) == sent


def test_unsubscribed_renter_not_emailed(engine, directory, dispatcher):
    directory.add_renter("renter-1", subscribed=False)
    request = charged(engine)
    engine.create_payment_intent(request.id)

    engine.reconcile_webhook_event(success_event("pi_1"))

    assert "renter_access_granted" not in dispatcher.kinds()


def test_success_falls_back_to_metadata_and_backfills_ref(engine, repository):
    request = charged(engine)

    result = engine.reconcile_webhook_event(success_event("pi_unknown", request_id=request.id))

    assert result.outcome == ReconcileOutcome.processed
    assert repository.get(request.id).payment.external_ref == "pi_unknown"


def test_unmatched_event_is_acknowledged_and_alerted(engine, alert):
    result = engine.reconcile_webhook_event(success_event("pi_ghost"))

    assert result.outcome == ReconcileOutcome.unmatched
    alert.assert_called_once()
    assert "pi_ghost" in alert.call_args[0][0]


def test_other_events_are_ignored(engine):
    event = PaymentEvent(kind=PaymentEventKind.other, event_type="charge.refunded", external_ref="pi_1")

    result = engine.reconcile_webhook_event(event)

    assert result.outcome == ReconcileOutcome.ignored


# -----------------------------------------------------
# Webhook failure + cap
# -----------------------------------------------------
def test_failure_increments_count_and_notifies(engine, repository, dispatcher):
    request = charged(engine)
    engine.create_payment_intent(request.id)

    result = engine.reconcile_webhook_event(failure_event("pi_1"))

    assert result.outcome == ReconcileOutcome.processed
    stored = repository.get(request.id)
    assert stored.status == AccessStatus.pending
    assert stored.payment.failure_count == 1
    assert stored.payment.payment_status == PaymentStatus.failed
    assert len(stored.payment.failed_at) == 1
    notice = [p for k, _, p in dispatcher.emails if k == "grant_access_payment_failed"][0]
    assert notice.attempts_remaining == 2


def test_failure_cap_blocks_new_intents(engine, repository, gateway):
    request = charged(engine)

    for attempt in range(3):
        intent = engine.create_payment_intent(request.id)
        assert gateway.created[-1]["idempotency_key"] == f"access-{request.id}-attempt-{attempt}"
        engine.reconcile_webhook_event(failure_event(f"pi_{attempt + 1}"))

    assert repository.get(request.id).payment.failure_count == 3

    with pytest.raises(BadRequestError) as exc:
        engine.create_payment_intent(request.id)
    assert "Maximum payment attempts" in exc.value.detail


def test_redelivered_failure_is_counted_once(engine, repository, dispatcher):
    request = charged(engine)
    engine.create_payment_intent(request.id)

    first = engine.reconcile_webhook_event(failure_event("pi_1"))
    replays = [engine.reconcile_webhook_event(failure_event("pi_1")) for _ in range(3)]

    assert first.outcome == ReconcileOutcome.processed
    assert all(r.outcome == ReconcileOutcome.ignored for r in replays)
    stored = repository.get(request.id)
    assert stored.payment.failure_count == 1
    assert len(stored.payment.failed_at) == 1
    assert dispatcher.kinds().count("grant_access_payment_failed") == 1


def test_charge_and_intent_failure_for_one_decline_count_once(engine, repository):
    request = charged(engine)
    engine.create_payment_intent(request.id)

    engine.reconcile_webhook_event(failure_event("pi_1", event_type="charge.failed", event_id="evt_charge"))
    engine.reconcile_webhook_event(failure_event("pi_1", event_id="evt_intent"))

    assert repository.get(request.id).payment.failure_count == 1


def test_failure_counter_saturates_at_cap(engine, repository):
    request = charged(engine)

    for ref in ("pi_a", "pi_b", "pi_c", "pi_d", "pi_e"):
        repository.set_external_ref(request.id, ref)
        engine.reconcile_webhook_event(failure_event(ref))

    assert repository.get(request.id).payment.failure_count == 3


def test_failure_after_success_is_ignored(engine, repository):
    request = charged(engine)
    engine.create_payment_intent(request.id)
    engine.reconcile_webhook_event(success_event("pi_1"))

    result = engine.reconcile_webhook_event(failure_event("pi_1"))

    assert result.outcome == ReconcileOutcome.ignored
    stored = repository.get(request.id)
    assert stored.status == AccessStatus.paid
    assert stored.payment.failure_count == 0


def test_new_intent_after_failure_resets_payment_status(engine, repository):
    request = charged(engine)
    engine.create_payment_intent(request.id)
    engine.reconcile_webhook_event(failure_event("pi_1"))

    engine.create_payment_intent(request.id)

    stored = repository.get(request.id)
    assert stored.payment.payment_status == PaymentStatus.pending
    assert stored.payment.external_ref == "pi_2"


def test_end_to_end_charge_fail_then_pay(engine, repository, visibility):
    request = charged(engine, amount="50")
    engine.create_payment_intent(request.id, agent_id="A1")
    engine.reconcile_webhook_event(failure_event("pi_1"))

    assert not visibility.resolve_viewer_access("A1", "L1").allowed

    engine.create_payment_intent(request.id, agent_id="A1")
    engine.reconcile_webhook_event(success_event("pi_2"))

    access = visibility.resolve_viewer_access("A1", "L1")
    assert access.allowed
    assert access.access_kind == "paid"
    assert repository.get(request.id).payment.failure_count == 1


# -----------------------------------------------------
# Re-drive
# -----------------------------------------------------
def test_redrive_applies_succeeded_intent(engine, gateway, repository):
    request = charged(engine)
    engine.create_payment_intent(request.id)
    gateway.intent_states["pi_1"] = IntentState(external_ref="pi_1", status="succeeded")

    result = engine.redrive_payment_intent("pi_1")

    assert result.outcome == ReconcileOutcome.processed
    assert repository.get(request.id).status == AccessStatus.paid


def test_redrive_leaves_fresh_intent_alone(engine, gateway, repository):
    request = charged(engine)
    engine.create_payment_intent(request.id)
    gateway.intent_states["pi_1"] = IntentState(external_ref="pi_1", status="requires_payment_method")

    result = engine.redrive_payment_intent("pi_1")

    assert result.outcome == ReconcileOutcome.ignored
    assert repository.get(request.id).payment.failure_count == 0


def test_sweep_only_touches_stale_intents(engine, gateway, repository):
    stale = charged(engine, agent="A1")
    fresh = charged(engine, agent="A2")
    engine.create_payment_intent(stale.id)
    engine.create_payment_intent(fresh.id)
    row = repository.rows[stale.id]
    row.updated_at = row.updated_at - timedelta(hours=2)
    gateway.intent_states["pi_1"] = IntentState(external_ref="pi_1", status="succeeded")

    counts = engine.sweep_stale_intents(stale_minutes=30)

    assert counts == {"processed": 1}
    assert repository.get(stale.id).status == AccessStatus.paid
    assert repository.get(fresh.id).status == AccessStatus.pending


def test_second_sweep_skips_intent_already_checked(engine, gateway, repository):
    request = charged(engine)
    engine.create_payment_intent(request.id)
    row = repository.rows[request.id]
    row.updated_at = row.updated_at - timedelta(hours=2)
    gateway.intent_states["pi_1"] = IntentState(external_ref="pi_1", status="requires_payment_method")

    first = engine.sweep_stale_intents(stale_minutes=30)
    second = engine.sweep_stale_intents(stale_minutes=30)

    assert first == {"ignored": 1}
    assert second == {}
    assert repository.get(request.id).status == AccessStatus.pending


def test_sweep_skips_charges_past_payment_link_validity(engine, gateway, repository):
    request = charged(engine)
    engine.create_payment_intent(request.id)
    row = repository.rows[request.id]
    row.updated_at = row.updated_at - timedelta(days=30)
    row.admin_decision.decided_at = row.admin_decision.decided_at - timedelta(days=30)
    gateway.intent_states["pi_1"] = IntentState(external_ref="pi_1", status="succeeded")

    assert engine.sweep_stale_intents(stale_minutes=30) == {}
    assert repository.get(request.id).status == AccessStatus.pending


# -----------------------------------------------------
# Soft-deleted records
# -----------------------------------------------------
def test_deleted_request_cannot_be_paid(engine, repository, gateway):
    request = charged(engine)
    repository.soft_delete(repository.get(request.id), "admin-1", "duplicate")

    with pytest.raises(NotFoundError):
        engine.create_payment_intent(request.id)
    assert gateway.created == []


def test_deleted_request_cannot_be_decided(engine, repository):
    request = engine.request_access("A1", "L1")
    repository.soft_delete(repository.get(request.id), "admin-1", None)

    with pytest.raises(NotFoundError):
        engine.admin_decide(request.id, "approve", "admin-1")
    assert repository.get(request.id).admin_decision is None
