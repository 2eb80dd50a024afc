from __future__ import annotations

import asyncio

import pytest

from core.errors import StoreError
from core.pricebook import default_pricebook
from core.store import InMemoryQuoteStore
from core.wizard import ChooseSlot, EditCustomer, KioskWizard


class RecordingNotifier:
    def __init__(self):
        self.notices: list[tuple[str, str]] = []

    def notify(self, kind, message):
        self.notices.append((kind, message))

    def kinds(self):
        return [k for k, _ in self.notices]


class FlakyStore(InMemoryQuoteStore):
    """In-memory store that can be told to fail the next N writes."""

    def __init__(self):
        super().__init__()
        self.fail_upserts = 0
        self.fail_updates = 0
        # commit the update, then report a failure (lost reply)
        self.lose_update_replies = 0
        self.upsert_calls = 0
        self.update_calls = 0

    async def upsert(self, draft):
        self.upsert_calls += 1
        if self.fail_upserts:
            self.fail_upserts -= 1
            raise StoreError("store unreachable")
        return await super().upsert(draft)

    async def update(self, quote_id, fields):
        self.update_calls += 1
        if self.fail_updates:
            self.fail_updates -= 1
            raise StoreError("write rejected")
        await super().update(quote_id, fields)
        if self.lose_update_replies:
            self.lose_update_replies -= 1
            raise StoreError("connection reset")


@pytest.fixture
def pricebook():
    return default_pricebook()


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def wizard(store, notifier, pricebook):
    return KioskWizard(store, pricebook=pricebook, notifier=notifier)


def advance_to(wizard: KioskWizard, step: str) -> None:
    """Walk a wizard forward with valid input until it reaches step."""
    while wizard.state.step != step:
        current = wizard.state.step
        if current == "customer":
            wizard.dispatch(EditCustomer(name="Jane Customer", phone="(555) 123-4567", email="jane@example.com"))
        elif current == "appointment":
            wizard.dispatch(ChooseSlot(slot="Tue 10:00 AM"))
        outcome = asyncio.run(wizard.advance())
        assert outcome.ok, outcome.messages
