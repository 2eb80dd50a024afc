from __future__ import annotations


class QuoteError(Exception):
    """Base for kiosk quote failures the user can retry."""


class StoreError(QuoteError):
    """The quote store could not read or write a draft."""


class FinalizationError(QuoteError):
    """Deposit/booking step failed; the draft is unchanged."""


class AlreadyBookedError(FinalizationError):
    def __init__(self, quote_id: str, reference_code: str | None = None):
        self.quote_id = quote_id
        self.reference_code = reference_code
        super().__init__(f"Quote {quote_id} is already booked (reference {reference_code})")
