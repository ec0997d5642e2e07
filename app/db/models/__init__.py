from app.db.models.role import Role
from app.db.models.user import User
from app.db.models.property import Property
from app.db.models.owner_payment_account import OwnerPaymentAccount
from app.db.models.kyc_verification import KycVerification
from app.db.models.contract import Contract
from app.db.models.payment import Payment

__all__ = [
    "Role",
    "User",
    "Property",
    "OwnerPaymentAccount",
    "KycVerification",
    "Contract",
    "Payment",
]
