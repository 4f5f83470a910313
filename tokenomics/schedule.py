# tokenomics/schedule.py
"""
Token Supply Schedule

Derives how many new tokens become mintable from elapsed weekly periods.

Phases (by upcoming period index):
    Flat      index <  DECAY_START   INITIAL_PERIOD_SUPPLY per period
    Decay     index <  DECAY_END     INITIAL_PERIOD_SUPPLY × (1 - DECAY_RATE)^n
    Terminal  index >= DECAY_END     TotalSupply × ((1 + ANNUAL_RATE/52)^k - 1)

The terminal phase compounds every remaining period in one lump step on a
snapshot of total supply, so it queries the ledger once per calculation.

Reads are pure. record_issuance() is the only state transition and must be
called exactly once per external mint, after the tokens were minted.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .fixed_point import UNIT, multiply, power, from_fixed

WEEK_SECONDS = 7 * 24 * 60 * 60

# 2019-03-06T00:00:00Z
DEFAULT_INFLATION_START_TIME = 1551830400

SUPPLY_DECAY_START = 40
SUPPLY_DECAY_END = 234

# 1.25% weekly decay, 2.5% annual terminal inflation
WEEKLY_DECAY_RATE = 12_500_000_000_000_000
ANNUAL_TERMINAL_RATE = 25_000_000_000_000_000

PERIODS_PER_YEAR = 52

# First year supply of 75M tokens spread over weekly periods
INITIAL_PERIOD_SUPPLY = 75_000_000 * UNIT // PERIODS_PER_YEAR

TotalSupplyQuery = Callable[[], int]


class SupplyQueryError(RuntimeError):
    """Total supply could not be read; no terminal-phase amount is produced."""


class SchedulePhase(Enum):
    """Issuance phase of a period index."""
    FLAT = "flat"
    DECAY = "decay"
    TERMINAL = "terminal"


class ScheduleStatus(Enum):
    """Lifecycle of the schedule state."""
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"


@dataclass(frozen=True)
class ScheduleConfig:
    """
    Immutable schedule constants.

    All supply and rate values are fixed-point integers (UNIT = 1.0).
    """
    period_duration: int = WEEK_SECONDS
    inflation_start_time: int = DEFAULT_INFLATION_START_TIME
    decay_start_period: int = SUPPLY_DECAY_START
    decay_end_period: int = SUPPLY_DECAY_END
    weekly_decay_rate: int = WEEKLY_DECAY_RATE
    annual_terminal_rate: int = ANNUAL_TERMINAL_RATE
    initial_period_supply: int = INITIAL_PERIOD_SUPPLY

    def validate(self) -> bool:
        """Check that the constants describe a usable schedule."""
        return (
            self.period_duration > 0 and
            0 < self.decay_start_period <= self.decay_end_period and
            0 <= self.weekly_decay_rate <= UNIT and
            self.annual_terminal_rate >= 0 and
            self.initial_period_supply >= 0
        )

    def to_dict(self) -> dict:
        return {
            "period_duration": self.period_duration,
            "inflation_start_time": self.inflation_start_time,
            "decay_start_period": self.decay_start_period,
            "decay_end_period": self.decay_end_period,
            "weekly_decay_rate": str(self.weekly_decay_rate),
            "annual_terminal_rate": str(self.annual_terminal_rate),
            "initial_period_supply": str(self.initial_period_supply),
        }


@dataclass
class ScheduleState:
    """Mutable schedule state. last_issuance_time == 0 means never issued."""
    last_issuance_time: int = 0
    period_counter: int = 0

    def to_dict(self) -> dict:
        return {
            "last_issuance_time": self.last_issuance_time,
            "period_counter": self.period_counter,
        }


@dataclass
class IssuanceEvent:
    """Record of one issuance applied to the schedule."""
    timestamp: int
    supply_minted: int
    periods_issued: int
    period_counter: int
    recorded_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "supply_minted": str(self.supply_minted),
            "supply_minted_tokens": str(from_fixed(self.supply_minted)),
            "periods_issued": self.periods_issued,
            "period_counter": self.period_counter,
            "recorded_at": self.recorded_at,
        }


class SupplySchedule:
    """
    Phase-aware token issuance schedule.

    Holds the period counter and last issuance time, and projects how much
    supply is mintable over the periods pending since the last issuance.
    """

    MAX_HISTORY = 100

    def __init__(
        self,
        config: Optional[ScheduleConfig] = None,
        total_supply_query: Optional[TotalSupplyQuery] = None,
        state: Optional[ScheduleState] = None,
    ):
        """
        Initialize the schedule.

        Args:
            config: Schedule constants (defaults to the mainnet schedule)
            total_supply_query: Callable returning the token's total supply,
                used in the terminal phase
            state: Existing state to resume from (default: uninitialized)
        """
        self.config = config or ScheduleConfig()
        if not self.config.validate():
            raise ValueError(f"Invalid schedule configuration: {self.config}")

        self.state = state or ScheduleState()
        self._total_supply_query = total_supply_query
        self._history: List[IssuanceEvent] = []

        print(
            f"[SCHEDULE] Initialized at period {self.state.period_counter} "
            f"({self.status.value})"
        )

    @property
    def status(self) -> ScheduleStatus:
        if self.state.last_issuance_time == 0:
            return ScheduleStatus.UNINITIALIZED
        return ScheduleStatus.ACTIVE

    def set_total_supply_query(self, query: Optional[TotalSupplyQuery]):
        """Point the schedule at a different total supply source."""
        self._total_supply_query = query
        print(f"[SCHEDULE] Total supply source updated: {query!r}")

    # ============================================
    # Read operations (pure)
    # ============================================

    def is_issuance_due(self, now: int) -> bool:
        """True once more than a full period has passed since the last issuance."""
        return now - self.state.last_issuance_time > self.config.period_duration

    def elapsed_periods(self, now: int) -> int:
        """Number of whole periods pending since the last issuance (or inflation start)."""
        if self.state.last_issuance_time > 0:
            reference = self.state.last_issuance_time
        else:
            reference = self.config.inflation_start_time

        if now <= reference:
            return 0
        return (now - reference) // self.config.period_duration

    def phase_for_period(self, period_index: int) -> SchedulePhase:
        """Phase that a (1-based, upcoming) period index falls into."""
        if period_index < self.config.decay_start_period:
            return SchedulePhase.FLAT
        if period_index < self.config.decay_end_period:
            return SchedulePhase.DECAY
        return SchedulePhase.TERMINAL

    def decaying_period_supply(self, decay_count: int) -> int:
        """
        Supply for the n-th period of the decay phase (n = 1 is the first).

        initial_period_supply × (1 - weekly_decay_rate)^n
        """
        effective_decay = power(UNIT - self.config.weekly_decay_rate, decay_count)
        return multiply(self.config.initial_period_supply, effective_decay)

    def terminal_supply_increment(self, total_supply: int, num_periods: int) -> int:
        """
        Supply added by compounding total_supply weekly over num_periods.

        total_supply × ((1 + annual_terminal_rate / 52)^num_periods - 1)
        """
        period_rate = self.config.annual_terminal_rate // PERIODS_PER_YEAR
        effective_compound_rate = power(UNIT + period_rate, num_periods)
        return multiply(total_supply, effective_compound_rate - UNIT)

    def mintable_supply(
        self,
        now: int,
        total_supply_query: Optional[TotalSupplyQuery] = None,
    ) -> int:
        """
        Calculate the supply mintable at `now`.

        Walks each pending period from the recorded counter without touching
        state. Terminal periods are settled together in one compounding step.

        Args:
            now: Current time (seconds since epoch)
            total_supply_query: Override for the injected total supply source

        Returns:
            Mintable amount as a fixed-point integer (0 if nothing is due)

        Raises:
            SupplyQueryError: if the terminal phase is reached and total
                supply cannot be read
        """
        if not self.is_issuance_due(now):
            return 0

        remaining_periods = self.elapsed_periods(now)
        current_period = self.state.period_counter
        total_amount = 0

        while remaining_periods > 0:
            current_period += 1
            phase = self.phase_for_period(current_period)

            if phase == SchedulePhase.FLAT:
                total_amount += self.config.initial_period_supply
                remaining_periods -= 1

            elif phase == SchedulePhase.DECAY:
                decay_count = current_period - (self.config.decay_start_period - 1)
                total_amount += self.decaying_period_supply(decay_count)
                remaining_periods -= 1

            else:
                total_supply = self._query_total_supply(total_supply_query)
                supply_snapshot = total_supply + total_amount
                total_amount += self.terminal_supply_increment(
                    supply_snapshot, remaining_periods
                )
                remaining_periods = 0

        return total_amount

    def _query_total_supply(self, override: Optional[TotalSupplyQuery]) -> int:
        """Read total supply, failing the calculation on any bad answer."""
        query = override or self._total_supply_query
        if query is None:
            raise SupplyQueryError("No total supply source configured")

        try:
            total_supply = query()
        except Exception as e:
            raise SupplyQueryError(f"Total supply query failed: {e}") from e

        if isinstance(total_supply, bool) or not isinstance(total_supply, int):
            raise SupplyQueryError(f"Invalid total supply: {total_supply!r}")
        if total_supply < 0:
            raise SupplyQueryError(f"Negative total supply: {total_supply}")

        return total_supply

    # ============================================
    # State transition
    # ============================================

    def record_issuance(self, now: int, supply_minted: int = 0) -> IssuanceEvent:
        """
        Advance the schedule after an external mint.

        Call exactly once per mint, after the tokens were minted. Calls are
        not deduplicated here; the issuer serializes them.

        Args:
            now: Time of the issuance
            supply_minted: Amount minted (fixed-point), kept for the history

        Returns:
            IssuanceEvent describing the applied transition

        Raises:
            ValueError: if `now` is earlier than the last recorded issuance
        """
        if now < self.state.last_issuance_time:
            raise ValueError(
                f"Issuance time {now} is before last issuance "
                f"{self.state.last_issuance_time}"
            )

        periods_issued = self.elapsed_periods(now)

        self.state.period_counter += periods_issued
        self.state.last_issuance_time = now

        event = IssuanceEvent(
            timestamp=now,
            supply_minted=supply_minted,
            periods_issued=periods_issued,
            period_counter=self.state.period_counter,
        )
        self._history.append(event)
        del self._history[:-self.MAX_HISTORY]

        print(
            f"[SCHEDULE] Issuance recorded: {from_fixed(supply_minted)} tokens, "
            f"{periods_issued} period(s), counter now {self.state.period_counter}"
        )
        return event

    # ============================================
    # History / Status
    # ============================================

    def get_history(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Get recent issuance events, oldest first."""
        if limit <= 0:
            return []
        return [e.to_dict() for e in self._history[-limit:]]

    def get_status(self, now: Optional[int] = None) -> Dict[str, Any]:
        """Get schedule status summary."""
        next_period = self.state.period_counter + 1
        status = {
            "status": self.status.value,
            **self.state.to_dict(),
            "next_period": next_period,
            "next_phase": self.phase_for_period(next_period).value,
            "history_count": len(self._history),
            "last_event": self._history[-1].to_dict() if self._history else None,
        }
        if now is not None:
            status["issuance_due"] = self.is_issuance_due(now)
            status["elapsed_periods"] = self.elapsed_periods(now)
        return status


# Quick test
if __name__ == "__main__":
    print("Supply Schedule Projection")
    print("=" * 60)

    schedule = SupplySchedule(total_supply_query=lambda: 260_000_000 * UNIT)
    start = schedule.config.inflation_start_time
    week = schedule.config.period_duration

    for weeks in (1, 39, 40, 100, 233, 234, 300):
        amount = schedule.mintable_supply(start + weeks * week)
        phase = schedule.phase_for_period(weeks)
        print(f"  {weeks:>4} weeks ({phase.value:<8}): {from_fixed(amount):,.4f} tokens")
