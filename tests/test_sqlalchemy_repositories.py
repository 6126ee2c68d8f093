from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from domain.account.entity import AccountKind
from domain.booking.entity import Booking, BookingStatus
from domain.certificate.entity import CertificatePurchase
from domain.common.exceptions import DuplicateInProgressException
from domain.payment.entity import PaymentOrder, PaymentPurpose, PaymentStatus
from domain.subject.entity import SubjectKind, SubjectRef
from infrastructure.models import (
    Base,
    OrganizationModel,
    SpecialUserModel,
    TestModel,
    TestResultModel,
    UserModel,
)
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

USER = SubjectRef.user("SAP001")


@pytest_asyncio.fixture
async def uow_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async with session_factory() as session:
        session.add_all([
            UserModel(sap_id="SAP001", username="Asha Rao", email="Asha@Example.com", phone="9876543210"),
            OrganizationModel(sap_id="ORG01", name="Acme", email="admin@acme.example"),
            SpecialUserModel(
                sap_id="SAP900", organization_sap_id="ORG01", username="Vikram Shah", email="vikram@acme.example"
            ),
            TestModel(id=1, title="Python Basics", price=Decimal("499.50"), max_attempts=2),
            TestResultModel(
                id=10, test_id=1, subject_kind="user", subject_sap_id="SAP001", total_questions=10, correct_answers=8
            ),
        ])
        await session.commit()

    def factory(readonly: bool = False) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory, readonly=readonly)

    yield factory
    await engine.dispose()


def _order(transaction_id="book_1", reference_id=1, **kwargs):
    return PaymentOrder(
        id=None,
        transaction_id=transaction_id,
        purpose=PaymentPurpose.BOOKING,
        reference_id=reference_id,
        subject=USER,
        amount=Decimal("499.50"),
        amount_minor=49950,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_subject_resolution_checks_users_then_special_users(uow_factory):
    async with uow_factory(readonly=True) as uow:
        user = await uow.subject_repository.resolve("SAP001")
        special = await uow.subject_repository.resolve("SAP900")
        missing = await uow.subject_repository.resolve("SAP404")

    assert user.ref == USER and user.email == "Asha@Example.com"
    assert special.ref.kind is SubjectKind.SPECIAL_USER
    assert special.organization_sap_id == "ORG01"
    assert missing is None


@pytest.mark.asyncio
async def test_account_lookup_is_case_insensitive_and_saves_otp(uow_factory):
    async with uow_factory() as uow:
        account = await uow.account_repository.get_by_email("asha@example.com")
        account.issue_otp("123456", timedelta(minutes=10))
        await uow.account_repository.save_otp_state(account)

    async with uow_factory(readonly=True) as uow:
        stored = await uow.account_repository.get_by_email("ASHA@EXAMPLE.COM")
        org = await uow.account_repository.get_by_email("admin@acme.example")

    assert stored.kind is AccountKind.USER
    assert stored.otp_code == "123456"
    assert stored.otp_expires_at.tzinfo is not None
    assert org.kind is AccountKind.ORGANIZATION


@pytest.mark.asyncio
async def test_second_pending_booking_is_rejected(uow_factory):
    async with uow_factory() as uow:
        first = await uow.booking_repository.create(Booking(id=None, test_id=1, subject=USER, transaction_id="book_1"))

    with pytest.raises(DuplicateInProgressException):
        async with uow_factory() as uow:
            await uow.booking_repository.create(Booking(id=None, test_id=1, subject=USER, transaction_id="book_2"))

    async with uow_factory() as uow:
        booking = await uow.booking_repository.get_by_id(first.id)
        booking.confirm()
        await uow.booking_repository.update(booking)
        # the slot frees up once the first booking leaves pending
        await uow.booking_repository.create(Booking(id=None, test_id=1, subject=USER, transaction_id="book_3"))

    async with uow_factory(readonly=True) as uow:
        assert await uow.booking_repository.count_confirmed(1, USER) == 1
        assert [b.status for b in await uow.booking_repository.list_pending(1, USER)] == [BookingStatus.PENDING]
        assert len(await uow.booking_repository.list_by_subject(USER)) == 2


@pytest.mark.asyncio
async def test_only_one_live_certificate_purchase(uow_factory):
    def purchase(txn):
        return CertificatePurchase(id=None, test_result_id=10, subject=USER, amount=Decimal("1000"), transaction_id=txn)

    async with uow_factory() as uow:
        first = await uow.certificate_repository.create(purchase("cert_1"))

    with pytest.raises(DuplicateInProgressException):
        async with uow_factory() as uow:
            await uow.certificate_repository.create(purchase("cert_2"))

    async with uow_factory() as uow:
        stored = await uow.certificate_repository.get_by_id(first.id)
        stored.fail("declined")
        await uow.certificate_repository.update(stored)
        retry = await uow.certificate_repository.create(purchase("cert_3"))

    async with uow_factory(readonly=True) as uow:
        live = await uow.certificate_repository.get_live_by_test_result(10)
        history = await uow.certificate_repository.list_by_test_result(10)

    assert live.id == retry.id
    assert len(history) == 2


@pytest.mark.asyncio
async def test_save_transition_is_conditional(uow_factory):
    async with uow_factory() as uow:
        created = await uow.payment_order_repository.create(_order())

    async with uow_factory() as uow:
        winner = await uow.payment_order_repository.get_by_transaction_id("book_1")
        loser = await uow.payment_order_repository.get_by_transaction_id("book_1")
        winner.mark_completed("pay_1")
        loser.mark_failed("declined")
        assert await uow.payment_order_repository.save_transition(winner, PaymentStatus.PENDING) is True
        assert await uow.payment_order_repository.save_transition(loser, PaymentStatus.PENDING) is False

    async with uow_factory(readonly=True) as uow:
        stored = await uow.payment_order_repository.get_by_transaction_id(created.transaction_id)

    assert stored.status is PaymentStatus.COMPLETED
    assert stored.provider_payment_id == "pay_1"
    assert stored.failure_reason is None


@pytest.mark.asyncio
async def test_duplicate_transaction_id_rejected(uow_factory):
    async with uow_factory() as uow:
        await uow.payment_order_repository.create(_order())
    with pytest.raises(DuplicateInProgressException):
        async with uow_factory() as uow:
            await uow.payment_order_repository.create(_order(reference_id=2))


@pytest.mark.asyncio
async def test_list_pending_and_provider_lookup(uow_factory):
    old = datetime.now(timezone.utc) - timedelta(hours=1)
    async with uow_factory() as uow:
        repo = uow.payment_order_repository
        stale = await repo.create(_order("book_old", created_at=old))
        await repo.create(_order("book_new", reference_id=2))
        stale.attach_provider_order("order_abc")
        await repo.update(stale)

    async with uow_factory(readonly=True) as uow:
        repo = uow.payment_order_repository
        pending = await repo.list_pending(datetime.now(timezone.utc) - timedelta(minutes=15))
        by_provider = await repo.get_by_provider_order_id("order_abc")

    assert [o.transaction_id for o in pending] == ["book_old"]
    assert by_provider.transaction_id == "book_old"
