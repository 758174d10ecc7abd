"""Models package - Import all models for SQLAlchemy registration."""
from chainmove.models.user import User, UserRole
from chainmove.models.pool import InvestmentPool, PoolInvestment, PoolInvestmentStatus
from chainmove.models.contract import HirePurchaseContract, ContractStatus, AssetType
from chainmove.models.payment import DriverPayment, PaymentStatus
from chainmove.models.investor_credit import InvestorCredit
from chainmove.models.transaction import Transaction, TransactionKind, ActorType

__all__ = [
    "User",
    "UserRole",
    "InvestmentPool",
    "PoolInvestment",
    "PoolInvestmentStatus",
    "HirePurchaseContract",
    "ContractStatus",
    "AssetType",
    "DriverPayment",
    "PaymentStatus",
    "InvestorCredit",
    "Transaction",
    "TransactionKind",
    "ActorType",
]
