"""Commerce configuration.

Every business constant the engines rely on lives in CommerceConfig so
that tests and callers can refer to named values instead of numbers.
The defaults are part of the marketplace's public contract.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Mapping

# Hard floor for any offer or counter-offer: $10
DEFAULT_MINIMUM_OFFER_CENTS = 1000

# Offers and counter-offers lapse after a week without a response
DEFAULT_OFFER_EXPIRY_DAYS = 7

# Platform commission on every sale
DEFAULT_COMMISSION_RATE = Decimal("0.18")

# Funds are held this long before release to the seller
DEFAULT_ESCROW_HOLD_DAYS = 7

# Featured placement tiers: duration in days -> price in cents
DEFAULT_FEATURED_TIERS: Dict[int, int] = {
    7: 2999,
    14: 4999,
    30: 7999,
}

# Max escrow releases handled per sweep invocation
DEFAULT_ESCROW_RELEASE_BATCH_SIZE = 50

DEFAULT_MIN_ADMIN_REASON_LENGTH = 10
DEFAULT_MAX_OFFER_MESSAGE_LENGTH = 1000


@dataclass(frozen=True)
class CommerceConfig:
    """Business constants shared by the offer, escrow and placement engines."""

    minimum_offer_cents: int = DEFAULT_MINIMUM_OFFER_CENTS
    offer_expiry_days: int = DEFAULT_OFFER_EXPIRY_DAYS
    commission_rate: Decimal = DEFAULT_COMMISSION_RATE
    escrow_hold_days: int = DEFAULT_ESCROW_HOLD_DAYS
    featured_tiers: Mapping[int, int] = field(
        default_factory=lambda: dict(DEFAULT_FEATURED_TIERS)
    )
    escrow_release_batch_size: int = DEFAULT_ESCROW_RELEASE_BATCH_SIZE
    min_admin_reason_length: int = DEFAULT_MIN_ADMIN_REASON_LENGTH
    max_offer_message_length: int = DEFAULT_MAX_OFFER_MESSAGE_LENGTH

    def __post_init__(self):
        if self.minimum_offer_cents <= 0:
            raise ValueError("minimum_offer_cents must be positive")
        if self.offer_expiry_days <= 0:
            raise ValueError("offer_expiry_days must be positive")
        if self.escrow_hold_days < 0:
            raise ValueError("escrow_hold_days cannot be negative")
        rate = Decimal(str(self.commission_rate))
        if not (Decimal("0") <= rate < Decimal("1")):
            raise ValueError("commission_rate must be in [0, 1)")
        # Normalize floats passed by callers
        object.__setattr__(self, "commission_rate", rate)
        if not self.featured_tiers:
            raise ValueError("featured_tiers cannot be empty")
        for days, cents in self.featured_tiers.items():
            if days <= 0 or cents < 0:
                raise ValueError(f"Invalid featured tier: {days} days / {cents} cents")
        if self.escrow_release_batch_size <= 0:
            raise ValueError("escrow_release_batch_size must be positive")

    @property
    def featured_durations(self) -> list[int]:
        """Allowed featured durations, shortest first."""
        return sorted(self.featured_tiers)

    def featured_price_cents(self, duration_days: int) -> int:
        """Price of a featured tier. Raises KeyError for unknown durations."""
        return self.featured_tiers[duration_days]

    @classmethod
    def from_env(cls, prefix: str = "DEALDESK_") -> "CommerceConfig":
        """Build a config, letting environment variables override defaults.

        Recognized: {prefix}MINIMUM_OFFER_CENTS, {prefix}OFFER_EXPIRY_DAYS,
        {prefix}COMMISSION_RATE, {prefix}ESCROW_HOLD_DAYS,
        {prefix}ESCROW_RELEASE_BATCH_SIZE.
        """
        kwargs = {}
        int_fields = {
            "MINIMUM_OFFER_CENTS": "minimum_offer_cents",
            "OFFER_EXPIRY_DAYS": "offer_expiry_days",
            "ESCROW_HOLD_DAYS": "escrow_hold_days",
            "ESCROW_RELEASE_BATCH_SIZE": "escrow_release_batch_size",
        }
        for env_name, attr in int_fields.items():
            raw = os.environ.get(prefix + env_name)
            if raw:
                kwargs[attr] = int(raw)
        rate = os.environ.get(prefix + "COMMISSION_RATE")
        if rate:
            kwargs["commission_rate"] = Decimal(rate)
        return cls(**kwargs)
