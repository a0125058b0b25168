"""Sale listing service."""

from autotrade.listings.service import EDITABLE_FIELDS, ListingService

__all__ = ["EDITABLE_FIELDS", "ListingService"]
