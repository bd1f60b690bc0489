"""Pytest fixtures for live Binance API tests."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

from integrations.binance_client import BinanceClient


@pytest.fixture(scope="session", autouse=True)
def load_test_env():
    """Load test environment variables from .env.test."""
    env_test_path = Path(__file__).parent.parent.parent / ".env.test"
    if not env_test_path.exists():
        pytest.skip(
            "Binance test credentials not found. "
            "Create backend/.env.test with BINANCE_API_KEY and BINANCE_API_SECRET."
        )
    load_dotenv(env_test_path, override=True)


@pytest.fixture(scope="session")
def binance_client(load_test_env) -> BinanceClient:
    """Create a real BinanceClient using read-only test credentials."""
    api_key = os.getenv("BINANCE_API_KEY")
    api_secret = os.getenv("BINANCE_API_SECRET")
    if not api_key or not api_secret:
        pytest.skip("Missing Binance test credentials: set BINANCE_API_KEY + BINANCE_API_SECRET")

    client = BinanceClient(
        api_key=api_key,
        api_secret=api_secret,
        base_url=os.getenv("BINANCE_BASE_URL") or None,
    )
    yield client
    client.close()
