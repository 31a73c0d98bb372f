"""
tests/unit/test_balance.py - Tests for lumens/balance.py

- Native balance selection
- 404/400 mapped to zero
- Every other failure propagates unchanged
"""

import logging
from decimal import Decimal

import pytest
import requests

from lumens.balance import BalanceFetcher, get_balance
from lumens.horizon import HorizonClient, HorizonResponseError
from tests.conftest import BASE_URL, FakeHorizon, account_id, make_response


def fetcher_for(horizon) -> BalanceFetcher:
    return BalanceFetcher(HorizonClient(BASE_URL, session=horizon))


class TestNativeBalance:

    def test_returns_native_entry(self):
        acct = account_id("A")
        fetcher = fetcher_for(FakeHorizon({acct: "100.5000000"}))
        assert fetcher.get_balance(acct) == Decimal("100.5")

    def test_result_is_decimal_not_float(self):
        acct = account_id("A")
        fetcher = fetcher_for(FakeHorizon({acct: "12345678901.1234567"}))
        result = fetcher.get_balance(acct)
        assert isinstance(result, Decimal)
        assert result == Decimal("12345678901.1234567")

    def test_queries_account_endpoint(self):
        acct = account_id("A")
        horizon = FakeHorizon({acct: "1.0000000"})
        fetcher_for(horizon).get_balance(acct)
        assert horizon.calls == [f"{BASE_URL}/accounts/{acct}"]

    def test_empty_account_id_rejected(self):
        with pytest.raises(ValueError):
            fetcher_for(FakeHorizon()).get_balance("")


class TestNotFound:

    @pytest.mark.parametrize("status", [404, 400])
    def test_not_found_is_zero(self, status):
        acct = account_id("A")
        fetcher = fetcher_for(FakeHorizon({acct: status}))
        result = fetcher.get_balance(acct)
        assert result == Decimal("0")
        assert isinstance(result, Decimal)

    def test_not_found_logs_warning(self, caplog):
        acct = account_id("A")
        with caplog.at_level(logging.WARNING, logger="lumens.balance"):
            fetcher_for(FakeHorizon()).get_balance(acct)
        assert "treating as 0 balance" in caplog.text


class TestErrorsPropagate:

    @pytest.mark.parametrize("status", [401, 429, 500, 502, 503])
    def test_error_status_propagates(self, status):
        acct = account_id("A")
        fetcher = fetcher_for(FakeHorizon({acct: status}))
        with pytest.raises(requests.HTTPError) as exc_info:
            fetcher.get_balance(acct)
        assert exc_info.value.response.status_code == status

    def test_network_error_propagates(self):
        acct = account_id("A")
        error = requests.ConnectionError("connection reset")
        fetcher = fetcher_for(FakeHorizon({acct: error}))
        with pytest.raises(requests.ConnectionError) as exc_info:
            fetcher.get_balance(acct)
        assert exc_info.value is error

    def test_error_is_logged(self, caplog):
        acct = account_id("A")
        with caplog.at_level(logging.ERROR, logger="lumens.balance"):
            with pytest.raises(requests.HTTPError):
                fetcher_for(FakeHorizon({acct: 500})).get_balance(acct)
        assert acct in caplog.text

    def test_missing_native_entry_is_malformed(self):
        acct = account_id("A")

        class NoNative(FakeHorizon):
            def get(self, url, params=None, headers=None, timeout=None):
                return make_response(url, payload={"balances": []})

        with pytest.raises(HorizonResponseError):
            fetcher_for(NoNative()).get_balance(acct)

    def test_invalid_json_is_malformed(self):
        acct = account_id("A")

        class Garbage(FakeHorizon):
            def get(self, url, params=None, headers=None, timeout=None):
                return make_response(url, body=b"<html>oops</html>")

        with pytest.raises(HorizonResponseError):
            fetcher_for(Garbage()).get_balance(acct)



class TestOneShotGetBalance:
    """get_balance(endpoint, account_id) opens its own client."""

    @pytest.fixture
    def horizon(self, monkeypatch):
        horizon = FakeHorizon()
        monkeypatch.setattr(requests, "Session", lambda: horizon)
        return horizon

    def test_uses_endpoint(self, horizon):
        acct = account_id("A")
        horizon.balances[acct] = "42.0000000"
        assert get_balance(BASE_URL + "/", acct) == Decimal("42")
        assert horizon.calls == [f"{BASE_URL}/accounts/{acct}"]
        assert horizon.closed

    def test_not_found_is_zero(self, horizon):
        assert get_balance(BASE_URL, account_id("A")) == Decimal("0")

    def test_server_error_propagates(self, horizon):
        acct = account_id("A")
        horizon.balances[acct] = 500
        with pytest.raises(requests.HTTPError) as exc_info:
            get_balance(BASE_URL, acct)
        assert exc_info.value.response.status_code == 500
