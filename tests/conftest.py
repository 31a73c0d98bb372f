"""
Pytest configuration and fixtures for Lumen Supply Stats tests.
"""

import json
import sys
from pathlib import Path

import pytest
import requests

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from lumens.balance import BalanceFetcher  # noqa: E402
from lumens.horizon import HorizonClient  # noqa: E402
from lumens.supply import (  # noqa: E402
    ASSETS_AND_LIQUIDITY,
    DIRECT_DEVELOPMENT,
    GROWTH,
    PRODUCT_AND_INNOVATION,
    AccountRegistry,
    SupplyAggregator,
)

BASE_URL = "https://horizon.test"


def account_id(tag: str) -> str:
    """Deterministic, well-formed Stellar account ID for tests."""
    return ("G" + tag.upper() + "A" * 55)[:56]


def make_response(url: str, status: int = 200, payload=None, body: bytes | None = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.url = url
    if body is None:
        body = json.dumps(payload if payload is not None else {}).encode()
    response._content = body
    response.headers["Content-Type"] = "application/json"
    return response


class FakeHorizon:
    """
    Stand-in for requests.Session that answers like Horizon.

    balances: {account_id: "123.4567890" | int status | Exception}
    """

    def __init__(self, balances=None, total_coins="105000000000", fee_pool="1200000", sequence=50000000):
        self.balances = dict(balances or {})
        self.ledger = {"sequence": sequence, "total_coins": total_coins, "fee_pool": fee_pool}
        self.ledger_error = None
        self.calls: list[str] = []
        self.closed = False

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append(url)
        path = url[len(BASE_URL):]
        if path.startswith("/ledgers"):
            if self.ledger_error is not None:
                return self._error(url, self.ledger_error)
            assert params == {"order": "desc", "limit": 1}
            return make_response(url, payload={"_embedded": {"records": [self.ledger]}})

        account = path[len("/accounts/"):]
        value = self.balances.get(account, 404)
        if isinstance(value, str):
            payload = {
                "id": account,
                "balances": [
                    {"asset_type": "credit_alphanum4", "asset_code": "USDC", "balance": "999.0000000"},
                    {"asset_type": "native", "balance": value},
                ],
            }
            return make_response(url, payload=payload)
        return self._error(url, value)

    @staticmethod
    def _error(url, value):
        if isinstance(value, Exception):
            raise value
        return make_response(url, status=value, payload={"status": value, "title": "Resource Missing"})

    def close(self):
        self.closed = True

    def ledger_calls(self) -> int:
        return sum(1 for url in self.calls if "/ledgers" in url)


@pytest.fixture
def registry() -> AccountRegistry:
    return AccountRegistry(
        programs={
            DIRECT_DEVELOPMENT: (account_id("DDX"), account_id("DDY")),
            PRODUCT_AND_INNOVATION: (account_id("PIX"),),
            GROWTH: (account_id("GRX"), account_id("GRY")),
            ASSETS_AND_LIQUIDITY: (account_id("ALX"),),
        },
        void_account=account_id("VOID"),
        upgrade_reserve_account=account_id("RES"),
        escrow=(account_id("ESCX"),),
    )


@pytest.fixture
def balances() -> dict:
    return {
        account_id("DDX"): "1000.5000000",
        account_id("DDY"): "250.2500000",
        account_id("PIX"): "300.0000001",
        account_id("GRX"): "400.0000000",
        # GRY never funded -> 404
        account_id("ALX"): "50.1234567",
        account_id("ESCX"): "20000000000.0000000",
        account_id("VOID"): "55000000.1234567",
        account_id("RES"): "100000000.0000000",
    }


@pytest.fixture
def horizon(balances) -> FakeHorizon:
    return FakeHorizon(balances)


@pytest.fixture
def client(horizon) -> HorizonClient:
    return HorizonClient(BASE_URL, session=horizon)


@pytest.fixture
def aggregator(client, registry) -> SupplyAggregator:
    return SupplyAggregator(BalanceFetcher(client), registry, client=client, max_workers=4)
