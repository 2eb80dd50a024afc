# core/booking.py
# Deposit + appointment finalization: DRAFT -> APPOINTMENT_BOOKED, exactly once.

from __future__ import annotations

import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Optional

from .errors import AlreadyBookedError, FinalizationError, StoreError
from .models import QuoteDraft
from .store import QuoteStore

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_uppercase


def _base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_BASE36[r])
    return "".join(reversed(out))


def mint_reference_code(now: Optional[datetime] = None) -> str:
    """KQ-<base36 epoch millis>-<4 random chars>, e.g. KQ-LZ8K3M2A-7QX1."""
    millis = int((now.timestamp() if now else time.time()) * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"KQ-{_base36(millis)}-{suffix}"


async def finalize(
    store: QuoteStore,
    draft: QuoteDraft,
    *,
    reference_code: str,
    now: Optional[datetime] = None,
) -> QuoteDraft:
    """Marks a saved draft booked with its deposit paid, in one partial update.

    The caller mints reference_code and passes the same one on every retry.
    If the store already holds this booking under the same code (an earlier
    attempt committed but the reply was lost) the stored quote is returned;
    a booking under any other code raises AlreadyBookedError.
    """
    if draft.id is None:
        raise FinalizationError("Quote must be saved before payment")
    if draft.is_booked:
        raise AlreadyBookedError(draft.id, draft.reference_code)

    try:
        current = await store.get(draft.id)
    except StoreError as e:
        raise FinalizationError(f"Payment failed for quote {draft.id}: {e}") from e

    if current is not None and current.is_booked:
        if current.reference_code == reference_code:
            logger.info("Quote %s already committed as %s; reusing", draft.id, reference_code)
            return current
        raise AlreadyBookedError(draft.id, current.reference_code)

    paid_at = now or datetime.now(timezone.utc)
    fields = {
        "status": "APPOINTMENT_BOOKED",
        "deposit_paid": True,
        "deposit_paid_at": paid_at.isoformat(),
        "reference_code": reference_code,
        "payment_receipt": f"RECEIPT-{reference_code}",
    }

    try:
        await store.update(draft.id, fields)
    except StoreError as e:
        raise FinalizationError(f"Payment failed for quote {draft.id}: {e}") from e

    logger.info("Quote %s booked for %s, reference %s", draft.id, draft.appointment_slot, reference_code)
    return draft.model_copy(
        update={
            "status": "APPOINTMENT_BOOKED",
            "deposit_paid": True,
            "deposit_paid_at": paid_at,
            "reference_code": reference_code,
            "payment_receipt": fields["payment_receipt"],
        }
    )
