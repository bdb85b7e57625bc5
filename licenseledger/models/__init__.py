from licenseledger.models.ledger import LedgerCounter, LedgerEvent
from licenseledger.models.listing import Listing
from licenseledger.models.subscription import (
    Participant,
    ResolutionCause,
    Subscription,
    SubscriptionStatus,
)
from licenseledger.models.treasury import Payout, TreasuryAccount

__all__ = [
    "LedgerCounter",
    "LedgerEvent",
    "Listing",
    "Participant",
    "Payout",
    "ResolutionCause",
    "Subscription",
    "SubscriptionStatus",
    "TreasuryAccount",
]
