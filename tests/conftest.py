"""Pytest configuration and fixtures."""

import asyncio
from typing import Dict, List, Optional, Set

import pytest

from astrbot_plugin_quote_board.codec import encode
from astrbot_plugin_quote_board.model import QuoteRecord
from astrbot_plugin_quote_board.moderation import ContentModerator, load_rules
from astrbot_plugin_quote_board.repository import QuoteRepository


class FakeKVStore:
    """In-memory key-value store with injectable failures."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.list_error: Optional[Exception] = None
        self.set_error: Optional[Exception] = None
        self.failing_gets: Set[str] = set()
        self.list_calls = 0
        self.get_calls: List[str] = []
        self.set_calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.get_delay = 0.0

    async def list(self, prefix: str, shared: bool = True) -> List[str]:
        self.list_calls += 1
        if self.list_error:
            raise self.list_error
        return [k for k in self.data if k.startswith(prefix)]

    async def get(self, key: str, shared: bool = True) -> Optional[str]:
        self.get_calls.append(key)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.get_delay)
            if key in self.failing_gets:
                raise ConnectionError(f"timeout fetching {key}")
            return self.data.get(key)
        finally:
            self.in_flight -= 1

    async def set(self, key: str, value: str, shared: bool = True) -> None:
        self.set_calls.append(key)
        if self.set_error:
            raise self.set_error
        self.data[key] = value


def make_record(millis: int, text: str = "A quote", context: str = "", suffix: str = "abc") -> QuoteRecord:
    return QuoteRecord(
        id=f"quote:{millis}-{suffix}",
        quote_text=text,
        context=context,
        origin_url="",
        extra_info="",
        created_at_millis=millis,
    )


def put(store: FakeKVStore, record: QuoteRecord):
    store.data[record.id] = encode(record)


@pytest.fixture
def store():
    return FakeKVStore()


@pytest.fixture
def repository(store):
    return QuoteRepository(store)


@pytest.fixture
def moderator():
    return ContentModerator(load_rules())


@pytest.fixture
def clock():
    """A clock that advances one second per call."""
    state = {"now": 1_700_000_000.0}

    def tick():
        state["now"] += 1.0
        return state["now"]

    return tick
