"""
Horizon API client for the Stellar network.
"""

import logging
import threading
from dataclasses import dataclass
from decimal import Decimal

import requests

from lumens import HORIZON_URL
from lumens.utils import to_decimal

logger = logging.getLogger(__name__)


class HorizonResponseError(Exception):
    """Horizon answered, but the body is not what we expected."""


@dataclass(frozen=True)
class LedgerTotals:
    """Supply fields of the most recent closed ledger."""
    sequence: int
    total_coins: Decimal
    fee_pool: Decimal


class HorizonClient:
    """Horizon API client for account and ledger queries."""

    def __init__(
        self,
        base_url: str = HORIZON_URL,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        # Injected session is shared across threads; otherwise one per thread
        self._session = session
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self.headers = {"Accept": "application/json"}
        self.timeout = timeout

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def session(self) -> requests.Session:
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def close(self):
        """Close every HTTP session this client opened."""
        if self._session is not None:
            self._session.close()
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()

    def _get(self, path: str, params: dict | None = None) -> dict:
        """Make GET request to Horizon."""
        url = f"{self.base_url}{path}"
        response = self.session.get(
            url, params=params, headers=self.headers, timeout=self.timeout
        )
        response.raise_for_status()
        try:
            result = response.json()
        except ValueError as e:
            raise HorizonResponseError(f"Invalid JSON from {url}: {e}") from e
        if not isinstance(result, dict):
            raise HorizonResponseError(f"Unexpected payload from {url}")
        return result

    def get_account(self, account_id: str) -> dict:
        """
        Get the account record.

        Raises:
            requests.HTTPError: On any error status (404 for unfunded accounts)
        """
        return self._get(f"/accounts/{account_id}")

    def get_latest_ledger(self) -> LedgerTotals:
        """
        Get total coins and fee pool of the latest ledger.

        Both values come from the same record, so callers needing
        both should call this once.
        """
        data = self._get("/ledgers/", params={"order": "desc", "limit": 1})

        try:
            record = data["_embedded"]["records"][0]
            return LedgerTotals(
                sequence=int(record.get("sequence", 0)),
                total_coins=to_decimal(record["total_coins"]),
                fee_pool=to_decimal(record["fee_pool"]),
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise HorizonResponseError(f"Malformed ledger response: {e!r}") from e
