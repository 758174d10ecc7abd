"""
Shared fixtures: a throwaway SQLite database and a seeded hire-purchase ledger.
"""
import pytest
from types import SimpleNamespace
from datetime import date
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import chainmove.models  # noqa: F401  registers every table
from chainmove.db.base import Base
from chainmove.db.unit_of_work import UnitOfWork
from chainmove.models import (
    User, UserRole, InvestmentPool, PoolInvestment, PoolInvestmentStatus,
    HirePurchaseContract, ContractStatus, AssetType
)

START_DATE = date(2026, 1, 5)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def uow(session_factory):
    return UnitOfWork(session_factory)


def add_user(db, username, role=UserRole.DRIVER, hashed_password="not-a-real-hash"):
    user = User(
        username=username,
        email=f"{username}@example.com",
        hashed_password=hashed_password,
        role=role,
        available_balance=Decimal("0"),
        total_returns=Decimal("0"),
    )
    db.add(user)
    db.flush()
    return user


def add_contract(db, driver, pool, total_payable="100000", weekly_payment="5000",
                 duration_weeks=20, amount_paid="0", status=ContractStatus.ACTIVE):
    contract = HirePurchaseContract(
        driver_id=driver.id,
        pool_id=pool.id,
        asset_type=AssetType.KEKE,
        vehicle_display_name="TVS King Deluxe",
        principal=Decimal("80000"),
        deposit=Decimal("10000"),
        total_payable=Decimal(total_payable),
        duration_weeks=duration_weeks,
        weekly_payment=Decimal(weekly_payment),
        start_date=START_DATE,
        status=status,
        amount_paid=Decimal(amount_paid),
    )
    db.add(contract)
    db.flush()
    return contract


def add_investment(db, pool, investor, amount, status=PoolInvestmentStatus.CONFIRMED):
    investment = PoolInvestment(
        pool_id=pool.id,
        investor_id=investor.id,
        amount=Decimal(amount),
        tx_ref=f"pool_{pool.id}_{investor.id}_{amount}",
        status=status,
    )
    db.add(investment)
    db.flush()
    return investment


@pytest.fixture
def ledger(db):
    """Driver on an ACTIVE 100,000 contract backed by a 70/30 pool."""
    driver = add_user(db, "driver1")
    other_driver = add_user(db, "driver2")
    investor_a = add_user(db, "investor_a", role=UserRole.INVESTOR)
    investor_b = add_user(db, "investor_b", role=UserRole.INVESTOR)

    pool = InvestmentPool(name="Keke pool #1", target_amount=Decimal("100000"))
    db.add(pool)
    db.flush()

    add_investment(db, pool, investor_a, "70000")
    add_investment(db, pool, investor_b, "30000")
    contract = add_contract(db, driver, pool)
    db.commit()

    return SimpleNamespace(
        driver_id=driver.id,
        other_driver_id=other_driver.id,
        investor_a_id=investor_a.id,
        investor_b_id=investor_b.id,
        pool_id=pool.id,
        contract_id=contract.id,
    )
