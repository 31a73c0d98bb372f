"""
Lumen supply aggregation.

Every figure is derived from native balances of a fixed set of known
accounts plus the latest ledger header:

    inflation        = total_coins - ORIGINAL_SUPPLY_AMOUNT
    total_supply     = ORIGINAL_SUPPLY_AMOUNT + inflation - burned
    non_circulating  = upgrade_reserve + fee_pool + sum(tracked accounts)
    circulating      = total_supply - non_circulating

All amounts are Decimal. A failed balance fetch fails the whole
computation; there is no partial result.
"""

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Context, Decimal, localcontext
from typing import Any, Iterable, Mapping

from lumens import (
    CONCURRENCY_BALANCES,
    LUMEN_SUPPLY_METRICS_URL,
    ORIGINAL_SUPPLY_AMOUNT,
)
from lumens.balance import BalanceFetcher
from lumens.horizon import HorizonClient, LedgerTotals
from lumens.utils import format_amount, isoformat_utc, parse_utc, to_decimal, utc_now

logger = logging.getLogger(__name__)

# Program names (keys of AccountRegistry.programs)
DIRECT_DEVELOPMENT = "direct_development"
PRODUCT_AND_INNOVATION = "product_and_innovation"
GROWTH = "growth"
ASSETS_AND_LIQUIDITY = "assets_and_liquidity"
PROGRAMS = (DIRECT_DEVELOPMENT, PRODUCT_AND_INNOVATION, GROWTH, ASSETS_AND_LIQUIDITY)

# Enough digits for any sum of 64-bit stroop amounts
SUM_PRECISION = 60


EXACT_CONTEXT = Context(prec=SUM_PRECISION)


def exact():
    """Decimal context wide enough that supply arithmetic never rounds."""
    return localcontext(EXACT_CONTEXT)


def sum_balances(balances: Iterable[Decimal]) -> Decimal:
    """Exact Decimal sum."""
    with exact():
        total = Decimal("0")
        for balance in balances:
            total += balance
        return total


@dataclass(frozen=True)
class AccountRegistry:
    """Static account configuration."""

    programs: Mapping[str, tuple[str, ...]]
    void_account: str
    upgrade_reserve_account: str
    escrow: tuple[str, ...] = ()

    def program(self, name: str) -> tuple[str, ...]:
        try:
            return self.programs[name]
        except KeyError:
            raise KeyError(f"Unknown program: {name}") from None

    @property
    def tracked_accounts(self) -> tuple[str, ...]:
        """
        Accounts whose balances count as non-circulating.

        Escrow plus every program account, in registry order. These
        overlap with the per-program sums on purpose.
        """
        accounts = list(self.escrow)
        for name in PROGRAMS:
            accounts.extend(self.programs.get(name, ()))
        return tuple(accounts)

    def all_accounts(self) -> list[str]:
        """Every distinct account the registry knows about."""
        seen = dict.fromkeys(
            [self.void_account, self.upgrade_reserve_account, *self.tracked_accounts]
        )
        return list(seen)


@dataclass(frozen=True)
class ProgramDistribution:
    """Per-program balances."""
    direct_development: Decimal
    product_and_innovation: Decimal
    growth: Decimal
    assets_and_liquidity: Decimal

    @property
    def total(self) -> Decimal:
        return sum_balances(
            [
                self.direct_development,
                self.product_and_innovation,
                self.growth,
                self.assets_and_liquidity,
            ]
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "directDevelopment": format_amount(self.direct_development),
            "productAndInnovation": format_amount(self.product_and_innovation),
            "growth": format_amount(self.growth),
            "assetsAndLiquidity": format_amount(self.assets_and_liquidity),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProgramDistribution":
        return cls(
            direct_development=to_decimal(data["directDevelopment"]),
            product_and_innovation=to_decimal(data["productAndInnovation"]),
            growth=to_decimal(data["growth"]),
            assets_and_liquidity=to_decimal(data["assetsAndLiquidity"]),
        )


@dataclass(frozen=True)
class SupplySnapshot:
    """Result of one aggregation run. Replaced wholesale, never merged."""

    updated_at: datetime
    original_supply: Decimal
    inflation: Decimal
    burned: Decimal
    total_supply: Decimal
    upgrade_reserve: Decimal
    fee_pool: Decimal
    sdf_mandate: Decimal
    non_circulating_supply: Decimal
    circulating_supply: Decimal
    total_supply_sum: Decimal
    programs: ProgramDistribution
    ledger_sequence: int = 0
    details: str = field(default=LUMEN_SUPPLY_METRICS_URL, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Full representation (camelCase, amounts as decimal strings)."""
        return {
            "updatedAt": isoformat_utc(self.updated_at),
            "originalSupply": format_amount(self.original_supply),
            "inflationLumens": format_amount(self.inflation),
            "burnedLumens": format_amount(self.burned),
            "totalSupply": format_amount(self.total_supply),
            "upgradeReserve": format_amount(self.upgrade_reserve),
            "feePool": format_amount(self.fee_pool),
            "sdfMandate": format_amount(self.sdf_mandate),
            "nonCirculatingSupply": format_amount(self.non_circulating_supply),
            "circulatingSupply": format_amount(self.circulating_supply),
            "totalSupplySum": format_amount(self.total_supply_sum),
            "programs": self.programs.to_dict(),
            "ledgerSequence": self.ledger_sequence,
            "_details": self.details,
        }

    def to_v1_dict(self) -> dict[str, Any]:
        """Compact representation served by /api/lumens."""
        return {
            "updatedAt": isoformat_utc(self.updated_at),
            "totalCoins": format_amount(self.total_supply),
            "availableCoins": format_amount(self.circulating_supply),
            "programs": self.programs.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SupplySnapshot":
        return cls(
            updated_at=parse_utc(data["updatedAt"]),
            original_supply=to_decimal(data["originalSupply"]),
            inflation=to_decimal(data["inflationLumens"]),
            burned=to_decimal(data["burnedLumens"]),
            total_supply=to_decimal(data["totalSupply"]),
            upgrade_reserve=to_decimal(data["upgradeReserve"]),
            fee_pool=to_decimal(data["feePool"]),
            sdf_mandate=to_decimal(data["sdfMandate"]),
            non_circulating_supply=to_decimal(data["nonCirculatingSupply"]),
            circulating_supply=to_decimal(data["circulatingSupply"]),
            total_supply_sum=to_decimal(data["totalSupplySum"]),
            programs=ProgramDistribution.from_dict(data["programs"]),
            ledger_sequence=int(data.get("ledgerSequence", 0)),
            details=data.get("_details", LUMEN_SUPPLY_METRICS_URL),
        )


class SupplyAggregator:
    """Derives supply figures from Horizon."""

    def __init__(
        self,
        fetcher: BalanceFetcher,
        registry: AccountRegistry,
        client: HorizonClient | None = None,
        original_supply: Decimal = ORIGINAL_SUPPLY_AMOUNT,
        max_workers: int = CONCURRENCY_BALANCES,
    ):
        self.fetcher = fetcher
        self.client = client or fetcher.client
        self.registry = registry
        self._original_supply = to_decimal(original_supply)
        self.max_workers = max_workers

    # --- Ledger ---

    def original_supply(self) -> Decimal:
        return self._original_supply

    def latest_ledger(self) -> LedgerTotals:
        return self.client.get_latest_ledger()

    def latest_ledger_total_coins(self) -> Decimal:
        return self.latest_ledger().total_coins

    def latest_ledger_fee_pool(self) -> Decimal:
        return self.latest_ledger().fee_pool

    def inflation(self, ledger: LedgerTotals | None = None) -> Decimal:
        ledger = ledger or self.latest_ledger()
        with exact():
            return ledger.total_coins - self._original_supply

    # --- Balances ---

    def _fetch_with(self, executor: Executor, account_ids: Iterable[str]) -> dict[str, Decimal]:
        """Fetch each distinct account once on the given executor."""
        future_to_account: dict[Future, str] = {
            executor.submit(self.fetcher.get_balance, account_id): account_id
            for account_id in dict.fromkeys(account_ids)
        }
        balances = {}
        try:
            for future in as_completed(future_to_account):
                balances[future_to_account[future]] = future.result()
        except Exception:
            for future in future_to_account:
                future.cancel()
            raise
        return balances

    def fetch_balances(self, account_ids: Iterable[str]) -> dict[str, Decimal]:
        """Fetch balances concurrently. Any failure fails the whole batch."""
        account_ids = list(account_ids)
        if not account_ids:
            return {}
        workers = max(1, min(self.max_workers, len(account_ids)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return self._fetch_with(executor, account_ids)

    def sum_accounts(self, account_ids: Iterable[str]) -> Decimal:
        account_ids = list(account_ids)
        balances = self.fetch_balances(account_ids)
        return sum_balances(balances[account_id] for account_id in account_ids)

    def burned(self) -> Decimal:
        return self.fetcher.get_balance(self.registry.void_account)

    def upgrade_reserve(self) -> Decimal:
        return self.fetcher.get_balance(self.registry.upgrade_reserve_account)

    def direct_development(self) -> Decimal:
        return self.sum_accounts(self.registry.program(DIRECT_DEVELOPMENT))

    def distribution_product_and_innovation(self) -> Decimal:
        return self.sum_accounts(self.registry.program(PRODUCT_AND_INNOVATION))

    def distribution_growth(self) -> Decimal:
        return self.sum_accounts(self.registry.program(GROWTH))

    def distribution_assets_and_liquidity(self) -> Decimal:
        return self.sum_accounts(self.registry.program(ASSETS_AND_LIQUIDITY))

    def distribution_all(self) -> Decimal:
        return self.sum_accounts(
            [account for name in PROGRAMS for account in self.registry.program(name)]
        )

    def all_tracked_accounts_sum(self) -> Decimal:
        return self.sum_accounts(self.registry.tracked_accounts)

    # --- Derived supply ---

    def total_supply(self, ledger: LedgerTotals | None = None) -> Decimal:
        inflation = self.inflation(ledger)
        burned = self.burned()
        with exact():
            return self._original_supply + inflation - burned

    def non_circulating_supply(self, ledger: LedgerTotals | None = None) -> Decimal:
        ledger = ledger or self.latest_ledger()
        return sum_balances(
            [self.upgrade_reserve(), ledger.fee_pool, self.all_tracked_accounts_sum()]
        )

    def circulating_supply(self, ledger: LedgerTotals | None = None) -> Decimal:
        ledger = ledger or self.latest_ledger()
        total_supply = self.total_supply(ledger)
        non_circulating = self.non_circulating_supply(ledger)
        with exact():
            return total_supply - non_circulating

    def total_supply_sum(self, ledger: LedgerTotals | None = None) -> Decimal:
        """Circulating plus non-circulating; equals total_supply by construction."""
        ledger = ledger or self.latest_ledger()
        circulating = self.circulating_supply(ledger)
        non_circulating = self.non_circulating_supply(ledger)
        with exact():
            return circulating + non_circulating

    # --- Snapshot ---

    def snapshot(self, now: datetime | None = None) -> SupplySnapshot:
        """
        Compute every figure from a single ledger read and a single
        balance fan-out, so the snapshot is internally consistent.
        """
        registry = self.registry
        account_ids = registry.all_accounts()
        workers = max(1, min(self.max_workers, len(account_ids) + 1))

        with ThreadPoolExecutor(max_workers=workers) as executor:
            ledger_future = executor.submit(self.latest_ledger)
            try:
                balances = self._fetch_with(executor, account_ids)
            except Exception:
                ledger_future.cancel()
                raise
            ledger = ledger_future.result()

        def total(ids: Iterable[str]) -> Decimal:
            return sum_balances(balances[account_id] for account_id in ids)

        programs = ProgramDistribution(
            direct_development=total(registry.program(DIRECT_DEVELOPMENT)),
            product_and_innovation=total(registry.program(PRODUCT_AND_INNOVATION)),
            growth=total(registry.program(GROWTH)),
            assets_and_liquidity=total(registry.program(ASSETS_AND_LIQUIDITY)),
        )

        burned = balances[registry.void_account]
        upgrade_reserve = balances[registry.upgrade_reserve_account]
        sdf_mandate = total(registry.tracked_accounts)
        with exact():
            inflation = ledger.total_coins - self._original_supply
            total_supply = self._original_supply + inflation - burned
            non_circulating = upgrade_reserve + ledger.fee_pool + sdf_mandate
            circulating = total_supply - non_circulating
            total_supply_sum = circulating + non_circulating

        return SupplySnapshot(
            updated_at=now or utc_now(),
            original_supply=self._original_supply,
            inflation=inflation,
            burned=burned,
            total_supply=total_supply,
            upgrade_reserve=upgrade_reserve,
            fee_pool=ledger.fee_pool,
            sdf_mandate=sdf_mandate,
            non_circulating_supply=non_circulating,
            circulating_supply=circulating,
            total_supply_sum=total_supply_sum,
            programs=programs,
            ledger_sequence=ledger.sequence,
        )
