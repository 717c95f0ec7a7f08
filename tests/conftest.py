"""Test configuration and shared fixtures."""

import itertools

import pytest

from storage.dashboard_store import DashboardStore
from storage.repository import MemoryRepository
from storage.widgets import build_chart_config, build_widget


@pytest.fixture
def sample_payload():
    """Probe payload from a quote-style API."""
    return {"price": 42.5, "symbol": "BTC", "meta": {"source": "x"}}


@pytest.fixture
def repository():
    return MemoryRepository()


@pytest.fixture
def clock():
    """Deterministic epoch-ms clock advancing 1s per call."""
    ticks = itertools.count(1_700_000_000_000, 1000)
    return lambda: next(ticks)


@pytest.fixture
def store(repository, clock):
    return DashboardStore(repository, clock=clock)


@pytest.fixture
def card_widget():
    return build_widget("card", "BTC price", "https://api.example.com/btc",
                        refresh_interval=5, selected_fields=["price", "meta.source"])


@pytest.fixture
def chart_widget():
    return build_widget(
        "chart", "Rates", "https://api.example.com/rates",
        refresh_interval=30,
        chart_config=build_chart_config("date", "close", "bar", "#ff0000"),
    )


@pytest.fixture
def table_widget():
    return build_widget("table", "Users", "https://api.example.com/users")
