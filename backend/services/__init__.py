"""
Service layer for business logic.
"""

from services.checkout import PurchaseCheckout
from services.credential_vault import CredentialVault
from services.entitlement import EntitlementResolver
from services.identity import IdentityVerifier, SessionTokens
from services.subscription_ledger import CheckoutOrder, SubscriptionLedger

__all__ = [
    "CheckoutOrder",
    "CredentialVault",
    "EntitlementResolver",
    "IdentityVerifier",
    "PurchaseCheckout",
    "SessionTokens",
    "SubscriptionLedger",
]
