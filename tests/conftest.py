"""Pytest fixtures for testing"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from datetime import datetime
from decimal import Decimal
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from card_ledger.api.main import create_app
from card_ledger.domain.credit_cards import CreditCardManager
from card_ledger.domain.invoices import InvoiceManager
from card_ledger.domain.limits import AvailableLimitCalculator
from card_ledger.domain.models import CreditCard
from card_ledger.domain.payments import PartialPaymentManager
from card_ledger.domain.purchases import PurchaseManager
from card_ledger.infrastructure.database.models import Base
from card_ledger.infrastructure.database.repositories import (
    BillRepository,
    CreditCardRepository,
    InstallmentRepository,
    InvoiceRepository,
    PartialPaymentRepository,
)
from card_ledger.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def invoice_repo(db: Session) -> InvoiceRepository:
    return InvoiceRepository(db)


@pytest.fixture
def payment_repo(db: Session) -> PartialPaymentRepository:
    return PartialPaymentRepository(db)


@pytest.fixture
def installment_repo(db: Session) -> InstallmentRepository:
    return InstallmentRepository(db)


@pytest.fixture
def card_repo(db: Session) -> CreditCardRepository:
    return CreditCardRepository(db)


@pytest.fixture
def credit_card_manager(db: Session) -> CreditCardManager:
    return CreditCardManager(CreditCardRepository(db), InvoiceRepository(db), BillRepository(db))


@pytest.fixture
def limit_calculator(db: Session) -> AvailableLimitCalculator:
    return AvailableLimitCalculator(
        CreditCardRepository(db),
        InvoiceRepository(db),
        InstallmentRepository(db),
        PartialPaymentRepository(db),
    )


@pytest.fixture
def invoice_manager(db: Session) -> InvoiceManager:
    return InvoiceManager(
        InvoiceRepository(db),
        PartialPaymentRepository(db),
        InstallmentRepository(db),
        CreditCardRepository(db),
    )


@pytest.fixture
def payment_manager(db: Session, limit_calculator: AvailableLimitCalculator) -> PartialPaymentManager:
    return PartialPaymentManager(
        PartialPaymentRepository(db),
        InvoiceRepository(db),
        CreditCardRepository(db),
        limit_calculator,
        clock=lambda: datetime(2025, 3, 10, 12, 0),
    )


@pytest.fixture
def purchase_manager(
    db: Session,
    invoice_manager: InvoiceManager,
    limit_calculator: AvailableLimitCalculator,
) -> PurchaseManager:
    return PurchaseManager(
        BillRepository(db),
        CreditCardRepository(db),
        InvoiceRepository(db),
        InstallmentRepository(db),
        invoice_manager,
        limit_calculator,
    )


@pytest.fixture
def make_card(card_repo: CreditCardRepository) -> Callable[..., CreditCard]:
    """Persist a credit card; defaults to closing day 21, due day 28"""

    def _make_card(
        credit_limit: str = "5000.00",
        closing_day: int = 21,
        due_day: int = 28,
        allows_partial_payment: bool = True,
    ) -> CreditCard:
        return card_repo.create(
            CreditCard(
                id=None,
                name="Test Card",
                credit_limit=Decimal(credit_limit),
                closing_day=closing_day,
                due_day=due_day,
                allows_partial_payment=allows_partial_payment,
            )
        )

    return _make_card
