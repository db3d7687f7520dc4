import asyncio
from datetime import timedelta

import pytest

from domain.payment_intent.entity import PaymentIntentStatus, PaymentMethod
from domain.payment_intent.events import (
    ExpiredIntentsSwept,
    PaymentIntentCreated,
    PaymentIntentExpired,
    PaymentIntentSucceeded,
)
from domain.payment_intent.exceptions import (
    InvalidPaymentIntentInputException,
    PaymentIntentAlreadyFinalException,
    PaymentIntentExpiredException,
    PaymentIntentNotFoundException,
    PaymentIntentUpdateBlockedException,
)
from domain.payment_intent.repository import IntentGuard, IntentMutation
from domain.payment_intent.service import PaymentIntentDomainService
from infrastructure.repositories.in_memory_payment_intent_repository import InMemoryPaymentIntentRepository
from tests.factories import SCOPE, START


@pytest.mark.asyncio
async def test_create_applies_defaults(domain_service):
    intent = await domain_service.create_intent(scope_id=SCOPE, amount=1250)

    assert intent.status == PaymentIntentStatus.PENDING
    assert intent.currency == "GBP"
    assert intent.method == PaymentMethod.QR
    assert intent.expires_at == START + timedelta(seconds=300)
    assert intent.created_at == START
    assert intent.failure_reason is None
    assert isinstance(domain_service.events[0], PaymentIntentCreated)


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -5, 12.5, True])
async def test_create_rejects_invalid_amount_without_touching_store(domain_service, repository, amount):
    with pytest.raises(InvalidPaymentIntentInputException) as exc_info:
        await domain_service.create_intent(scope_id=SCOPE, amount=amount)

    assert exc_info.value.field == "amount"
    assert await repository.query(SCOPE) == []
    assert domain_service.events == []


@pytest.mark.asyncio
async def test_create_with_same_idempotency_key_returns_existing(domain_service, repository, clock):
    first = await domain_service.create_intent(scope_id=SCOPE, amount=500, idempotency_key="key-1")
    clock.advance(10)
    second = await domain_service.create_intent(scope_id=SCOPE, amount=999, idempotency_key="key-1")

    assert second.id == first.id
    assert second.amount == 500
    assert len(await repository.query(SCOPE)) == 1


@pytest.mark.asyncio
async def test_idempotency_key_is_scoped(domain_service):
    a = await domain_service.create_intent(scope_id=SCOPE, amount=500, idempotency_key="key-1")
    b = await domain_service.create_intent(scope_id="merchant-b", amount=500, idempotency_key="key-1")

    assert a.id != b.id


@pytest.mark.asyncio
async def test_concurrent_creates_with_same_key_yield_one_record(domain_service, repository):
    results = await asyncio.gather(*[
        domain_service.create_intent(scope_id=SCOPE, amount=100, idempotency_key="retry")
        for _ in range(5)
    ])

    assert len({r.id for r in results}) == 1
    assert len(await repository.query(SCOPE)) == 1


@pytest.mark.asyncio
async def test_get_unknown_id_raises_not_found(domain_service):
    with pytest.raises(PaymentIntentNotFoundException):
        await domain_service.get_intent(scope_id=SCOPE, intent_id="missing")


@pytest.mark.asyncio
async def test_get_is_scoped(domain_service):
    intent = await domain_service.create_intent(scope_id=SCOPE, amount=100)

    with pytest.raises(PaymentIntentNotFoundException):
        await domain_service.get_intent(scope_id="merchant-b", intent_id=intent.id)


@pytest.mark.asyncio
async def test_get_expires_pending_intent_lazily(domain_service, repository, clock):
    intent = await domain_service.create_intent(scope_id=SCOPE, amount=100, expires_in_seconds=60)

    clock.advance(59)
    assert (await domain_service.get_intent(scope_id=SCOPE, intent_id=intent.id)).status == PaymentIntentStatus.PENDING

    clock.advance(1)
    expired = await domain_service.get_intent(scope_id=SCOPE, intent_id=intent.id)

    assert expired.status == PaymentIntentStatus.EXPIRED
    assert expired.updated_at == clock.now()
    stored = await repository.find_by_id(SCOPE, intent.id)
    assert stored.status == PaymentIntentStatus.EXPIRED
    assert isinstance(domain_service.events[-1], PaymentIntentExpired)

    # 再次读取不再写入，也不再产生事件
    expired_at = expired.updated_at
    clock.advance(120)
    again = await domain_service.get_intent(scope_id=SCOPE, intent_id=intent.id)

    assert again.status == PaymentIntentStatus.EXPIRED
    assert again.updated_at == expired_at
    assert sum(isinstance(e, PaymentIntentExpired) for e in domain_service.events) == 1


@pytest.mark.asyncio
async def test_get_never_expires_terminal_intent(domain_service, clock):
    intent = await domain_service.create_intent(scope_id=SCOPE, amount=100)
    await domain_service.confirm_intent(scope_id=SCOPE, intent_id=intent.id)

    clock.advance(3600)
    fetched = await domain_service.get_intent(scope_id=SCOPE, intent_id=intent.id)

    assert fetched.status == PaymentIntentStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_confirm_before_expiry_succeeds(domain_service, clock):
    intent = await domain_service.create_intent(scope_id=SCOPE, amount=100, expires_in_seconds=60)
    clock.advance(59)

    confirmed = await domain_service.confirm_intent(scope_id=SCOPE, intent_id=intent.id)

    assert confirmed.status == PaymentIntentStatus.SUCCEEDED
    assert confirmed.updated_at == clock.now()
    assert isinstance(domain_service.events[-1], PaymentIntentSucceeded)


@pytest.mark.asyncio
async def test_confirm_at_expiry_instant_is_expired(domain_service, repository, clock):
    intent = await domain_service.create_intent(scope_id=SCOPE, amount=100, expires_in_seconds=60)
    clock.advance(60)

    with pytest.raises(PaymentIntentExpiredException):
        await domain_service.confirm_intent(scope_id=SCOPE, intent_id=intent.id)

    # 转换失败不写入任何状态
    stored = await repository.find_by_id(SCOPE, intent.id)
    assert stored.status == PaymentIntentStatus.PENDING


@pytest.mark.asyncio
async def test_confirm_twice_reports_already_final(domain_service):
    intent = await domain_service.create_intent(scope_id=SCOPE, amount=100)
    await domain_service.confirm_intent(scope_id=SCOPE, intent_id=intent.id)

    with pytest.raises(PaymentIntentAlreadyFinalException) as exc_info:
        await domain_service.confirm_intent(scope_id=SCOPE, intent_id=intent.id)

    assert exc_info.value.status == PaymentIntentStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_terminal_state_wins_over_expiry_when_explaining(domain_service, clock):
    intent = await domain_service.create_intent(scope_id=SCOPE, amount=100, expires_in_seconds=60)
    await domain_service.cancel_intent(scope_id=SCOPE, intent_id=intent.id)
    clock.advance(120)

    with pytest.raises(PaymentIntentAlreadyFinalException) as exc_info:
        await domain_service.fail_intent(scope_id=SCOPE, intent_id=intent.id)

    assert exc_info.value.status == PaymentIntentStatus.CANCELLED


@pytest.mark.asyncio
async def test_failure_reason_is_immutable_once_terminal(domain_service, repository, clock):
    intent = await domain_service.create_intent(scope_id=SCOPE, amount=100)
    await domain_service.fail_intent(scope_id=SCOPE, intent_id=intent.id, reason="CARD_DECLINED")
    clock.advance(5)

    for attempt in (
        domain_service.confirm_intent(scope_id=SCOPE, intent_id=intent.id),
        domain_service.cancel_intent(scope_id=SCOPE, intent_id=intent.id),
        domain_service.fail_intent(scope_id=SCOPE, intent_id=intent.id, reason="OTHER"),
    ):
        with pytest.raises(PaymentIntentAlreadyFinalException) as exc_info:
            await attempt
        assert exc_info.value.status == PaymentIntentStatus.FAILED

    stored = await repository.find_by_id(SCOPE, intent.id)
    assert stored.status == PaymentIntentStatus.FAILED
    assert stored.failure_reason == "CARD_DECLINED"
    assert stored.updated_at == START


@pytest.mark.asyncio
async def test_transition_on_unknown_id_raises_not_found(domain_service):
    with pytest.raises(PaymentIntentNotFoundException):
        await domain_service.cancel_intent(scope_id=SCOPE, intent_id="missing")


@pytest.mark.asyncio
async def test_fail_uses_default_reason(domain_service):
    intent = await domain_service.create_intent(scope_id=SCOPE, amount=100)

    failed = await domain_service.fail_intent(scope_id=SCOPE, intent_id=intent.id)

    assert failed.status == PaymentIntentStatus.FAILED
    assert failed.failure_reason == "DECLINED"


@pytest.mark.asyncio
async def test_fail_records_given_reason(domain_service):
    intent = await domain_service.create_intent(scope_id=SCOPE, amount=100)

    failed = await domain_service.fail_intent(scope_id=SCOPE, intent_id=intent.id, reason="INSUFFICIENT_FUNDS")

    assert failed.failure_reason == "INSUFFICIENT_FUNDS"


@pytest.mark.asyncio
async def test_cancel_keeps_failure_reason_empty(domain_service):
    intent = await domain_service.create_intent(scope_id=SCOPE, amount=100)

    cancelled = await domain_service.cancel_intent(scope_id=SCOPE, intent_id=intent.id)

    assert cancelled.status == PaymentIntentStatus.CANCELLED
    assert cancelled.failure_reason is None


@pytest.mark.asyncio
async def test_concurrent_confirm_and_cancel_have_single_winner(repository, clock):
    setup = PaymentIntentDomainService(repository, clock)
    intent = await setup.create_intent(scope_id=SCOPE, amount=100)

    confirmer = PaymentIntentDomainService(repository, clock)
    canceller = PaymentIntentDomainService(repository, clock)
    results = await asyncio.gather(
        confirmer.confirm_intent(scope_id=SCOPE, intent_id=intent.id),
        canceller.cancel_intent(scope_id=SCOPE, intent_id=intent.id),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], PaymentIntentAlreadyFinalException)
    assert losers[0].status == winners[0].status

    stored = await repository.find_by_id(SCOPE, intent.id)
    assert stored.status == winners[0].status


@pytest.mark.asyncio
async def test_list_sweeps_expired_pending_and_orders_newest_first(domain_service, clock):
    older = await domain_service.create_intent(scope_id=SCOPE, amount=100, expires_in_seconds=30)
    clock.advance(1)
    paid = await domain_service.create_intent(scope_id=SCOPE, amount=200, expires_in_seconds=30)
    await domain_service.confirm_intent(scope_id=SCOPE, intent_id=paid.id)
    clock.advance(1)
    newest = await domain_service.create_intent(scope_id=SCOPE, amount=300, expires_in_seconds=600)
    clock.advance(60)
    domain_service.clear_events()

    items = await domain_service.list_intents(scope_id=SCOPE)

    assert [i.id for i in items] == [newest.id, paid.id, older.id]
    assert [i.status for i in items] == [
        PaymentIntentStatus.PENDING,
        PaymentIntentStatus.SUCCEEDED,
        PaymentIntentStatus.EXPIRED,
    ]
    swept = domain_service.clear_events()
    assert len(swept) == 1
    assert isinstance(swept[0], ExpiredIntentsSwept)
    assert swept[0].count == 1


@pytest.mark.asyncio
async def test_list_respects_status_filter_and_limit(domain_service, clock):
    for _ in range(4):
        await domain_service.create_intent(scope_id=SCOPE, amount=100, expires_in_seconds=10)
        clock.advance(1)
    clock.advance(30)

    expired = await domain_service.list_intents(scope_id=SCOPE, status=PaymentIntentStatus.EXPIRED, limit=3)
    pending = await domain_service.list_intents(scope_id=SCOPE, status=PaymentIntentStatus.PENDING)

    assert len(expired) == 3
    assert all(i.status == PaymentIntentStatus.EXPIRED for i in expired)
    assert pending == []


@pytest.mark.asyncio
async def test_list_clamps_limit(domain_service, clock):
    for _ in range(3):
        await domain_service.create_intent(scope_id=SCOPE, amount=100)
        clock.advance(1)

    assert len(await domain_service.list_intents(scope_id=SCOPE, limit=0)) == 1
    assert len(await domain_service.list_intents(scope_id=SCOPE, limit=10_000)) == 3


@pytest.mark.asyncio
async def test_list_does_not_touch_other_scopes(domain_service, repository, clock):
    other = await domain_service.create_intent(scope_id="merchant-b", amount=100, expires_in_seconds=10)
    clock.advance(30)

    await domain_service.list_intents(scope_id=SCOPE)

    stored = await repository.find_by_id("merchant-b", other.id)
    assert stored.status == PaymentIntentStatus.PENDING


class _IgnoringGuardRepository(InMemoryPaymentIntentRepository):
    """条件更新永远不命中的仓储，用于触发无法解释的失败"""

    async def conditional_update(self, intent_id: str, guard: IntentGuard, mutation: IntentMutation):
        return None


@pytest.mark.asyncio
async def test_unexplained_guard_miss_is_update_blocked(clock):
    service = PaymentIntentDomainService(_IgnoringGuardRepository(), clock)
    intent = await service.create_intent(scope_id=SCOPE, amount=100)

    with pytest.raises(PaymentIntentUpdateBlockedException):
        await service.confirm_intent(scope_id=SCOPE, intent_id=intent.id)
