"""
Supply Schedule Test Fixtures
"""

import pytest

from network import LedgerError
from tokenomics import UNIT, SupplySchedule, ScheduleState, IssuanceTrigger
from tokenomics.schedule import DEFAULT_INFLATION_START_TIME, WEEK_SECONDS
from settings import ConfigManager

START = DEFAULT_INFLATION_START_TIME
WEEK = WEEK_SECONDS


class FakeLedger:
    """In-memory ledger that records mints and can be told to fail."""

    def __init__(self, total_supply: int = 300_000_000 * UNIT):
        self.supply = total_supply
        self.mints = []
        self.supply_queries = 0
        self.fail_supply = False
        self.fail_mint = False
        self.rejected_recipients = set()

    def total_supply(self) -> int:
        self.supply_queries += 1
        if self.fail_supply:
            raise LedgerError("Connection error: ledger unreachable")
        return self.supply

    def mint(self, recipient: str, amount: int) -> dict:
        if self.fail_mint or recipient in self.rejected_recipients:
            raise LedgerError("HTTP 500: mint rejected")
        self.mints.append((recipient, amount))
        self.supply += amount
        return {"tx_id": f"tx-{len(self.mints)}"}

    def __repr__(self) -> str:
        return "FakeLedger()"


@pytest.fixture
def ledger_factory():
    """Build fresh fake ledgers."""
    return FakeLedger


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def schedule() -> SupplySchedule:
    """A schedule that has never issued."""
    return SupplySchedule()


@pytest.fixture
def schedule_at():
    """Build a schedule resumed at a given period counter, last issued at its period boundary."""
    def _build(period_counter: int, total_supply_query=None) -> SupplySchedule:
        state = ScheduleState(
            last_issuance_time=START + period_counter * WEEK,
            period_counter=period_counter,
        )
        return SupplySchedule(total_supply_query=total_supply_query, state=state)
    return _build


@pytest.fixture
def trigger(schedule, ledger) -> IssuanceTrigger:
    return IssuanceTrigger(schedule=schedule, ledger=ledger, authorized_issuer="issuer")


@pytest.fixture
def config_manager(tmp_path) -> ConfigManager:
    return ConfigManager(config_dir=tmp_path / "config")
