"""Pytest bootstrap configuration.

Environment overrides must be set before any module that reads application
settings is imported.
"""
import os

os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PAYMENT_INTENT__PUBLIC_BASE_URL", "https://pay.example.test")

import httpx
import pytest
import pytest_asyncio

from api.dependencies import get_payment_intent_service, get_scope_id
from application.services.payment_intent_service import PaymentIntentApplicationService
from domain.payment_intent.service import PaymentIntentDomainService
from infrastructure.clock import FixedClock
from infrastructure.database import build_engine, build_session_factory, create_tables, drop_tables
from infrastructure.repositories.in_memory_payment_intent_repository import InMemoryPaymentIntentRepository
from infrastructure.unit_of_work import InMemoryUnitOfWork, SQLAlchemyUnitOfWork
from main import app as fastapi_app
from tests.factories import BASE_URL, SCOPE, START


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START)


@pytest.fixture
def repository() -> InMemoryPaymentIntentRepository:
    return InMemoryPaymentIntentRepository()


@pytest.fixture
def domain_service(repository, clock) -> PaymentIntentDomainService:
    return PaymentIntentDomainService(repository, clock)


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'payment_intents.db'}")
    await create_tables(bind=eng)
    yield eng
    await drop_tables(bind=eng)
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def sql_service(session_factory, clock) -> PaymentIntentApplicationService:
    return PaymentIntentApplicationService(
        uow_factory=lambda: SQLAlchemyUnitOfWork(session_factory=session_factory),
        clock=clock,
        public_base_url=BASE_URL,
    )


@pytest.fixture
def memory_service(repository, clock) -> PaymentIntentApplicationService:
    return PaymentIntentApplicationService(
        uow_factory=lambda: InMemoryUnitOfWork(repository),
        clock=clock,
        public_base_url=BASE_URL,
    )


@pytest_asyncio.fixture
async def client(sql_service):
    fastapi_app.dependency_overrides[get_payment_intent_service] = lambda: sql_service
    fastapi_app.dependency_overrides[get_scope_id] = lambda: SCOPE
    transport = httpx.ASGITransport(app=fastapi_app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()
