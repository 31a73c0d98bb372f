"""
Balance query module for Stellar accounts.
"""

import logging
from decimal import Decimal

import requests

from lumens import HORIZON_URL, NATIVE_ASSET_TYPE
from lumens.horizon import HorizonClient, HorizonResponseError
from lumens.utils import to_decimal

logger = logging.getLogger(__name__)

# Horizon answers 404 for unfunded/merged accounts and 400 for malformed IDs
NOT_FOUND_STATUSES = (400, 404)

ZERO = Decimal("0")


class BalanceFetcher:
    """Native (XLM) balance fetcher."""

    def __init__(self, client: HorizonClient | None = None):
        self.client = client or HorizonClient()

    def get_balance(self, account_id: str) -> Decimal:
        """
        Get the native balance of an account.

        Args:
            account_id: Stellar public key (G...)

        Returns:
            Balance as Decimal. Zero if the account does not exist,
            has been merged, or the ID is invalid.

        Raises:
            requests.HTTPError: Any other error status
            HorizonResponseError: Malformed response
        """
        if not account_id:
            raise ValueError("account_id must be a non-empty string")

        try:
            account = self.client.get_account(account_id)
            return self._native_balance(account_id, account)
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status in NOT_FOUND_STATUSES:
                logger.warning(
                    f"Account {account_id} not found or invalid ({status}), treating as 0 balance"
                )
                return ZERO
            logger.error(f"Error fetching balance for account {account_id}: {e}")
            raise
        except Exception as e:
            logger.error(f"Error fetching balance for account {account_id}: {e}")
            raise

    @staticmethod
    def _native_balance(account_id: str, account: dict) -> Decimal:
        """Pick the native entry out of the account's balance list."""
        for entry in account.get("balances") or []:
            if entry.get("asset_type") == NATIVE_ASSET_TYPE:
                try:
                    return to_decimal(entry["balance"])
                except (KeyError, ValueError) as e:
                    raise HorizonResponseError(
                        f"Bad native balance for {account_id}: {e!r}"
                    ) from e
        raise HorizonResponseError(f"No native balance for {account_id}")


def get_balance(endpoint: str, account_id: str) -> Decimal:
    """One-shot balance lookup against the given Horizon endpoint."""
    with HorizonClient(endpoint or HORIZON_URL) as client:
        return BalanceFetcher(client).get_balance(account_id)
