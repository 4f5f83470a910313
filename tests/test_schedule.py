"""
Tests for the supply schedule.
"""

from decimal import Decimal

import pytest

from tokenomics import (
    UNIT,
    ScheduleConfig,
    ScheduleState,
    SupplySchedule,
    SchedulePhase,
    ScheduleStatus,
    SupplyQueryError,
)
from tokenomics.fixed_point import multiply, power, from_fixed
from tokenomics.schedule import (
    DEFAULT_INFLATION_START_TIME,
    WEEK_SECONDS,
    INITIAL_PERIOD_SUPPLY,
    WEEKLY_DECAY_RATE,
    ANNUAL_TERMINAL_RATE,
    SUPPLY_DECAY_START,
    SUPPLY_DECAY_END,
)

START = DEFAULT_INFLATION_START_TIME
WEEK = WEEK_SECONDS
TOTAL_SUPPLY = 300_000_000 * UNIT


def failing_query():
    raise AssertionError("total supply must not be queried")


class TestConstants:
    """Tests for the default schedule constants."""

    def test_initial_period_supply(self):
        assert INITIAL_PERIOD_SUPPLY == 75_000_000 * UNIT // 52

    def test_rates(self):
        assert from_fixed(WEEKLY_DECAY_RATE) == Decimal("0.0125")
        assert from_fixed(ANNUAL_TERMINAL_RATE) == Decimal("0.025")

    def test_default_config_is_valid(self):
        config = ScheduleConfig()
        assert config.validate()
        assert config.period_duration == 604800
        assert config.decay_start_period == 40
        assert config.decay_end_period == 234

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError):
            SupplySchedule(config=ScheduleConfig(period_duration=0))
        with pytest.raises(ValueError):
            SupplySchedule(config=ScheduleConfig(decay_start_period=300))


class TestIssuanceDue:
    """Tests for is_issuance_due."""

    def test_fresh_schedule_is_due(self, schedule):
        assert schedule.is_issuance_due(START + WEEK)

    def test_exactly_one_period_is_not_due(self):
        schedule = SupplySchedule(state=ScheduleState(last_issuance_time=START, period_counter=0))
        assert not schedule.is_issuance_due(START + WEEK)

    def test_just_over_one_period_is_due(self):
        schedule = SupplySchedule(state=ScheduleState(last_issuance_time=START, period_counter=0))
        assert schedule.is_issuance_due(START + WEEK + 1)


class TestElapsedPeriods:
    """Tests for elapsed_periods."""

    def test_counts_from_inflation_start_when_never_issued(self, schedule):
        assert schedule.elapsed_periods(START + 3 * WEEK + 5) == 3

    def test_counts_from_last_issuance(self, schedule_at):
        schedule = schedule_at(10)
        last = schedule.state.last_issuance_time
        assert schedule.elapsed_periods(last + 2 * WEEK + 1) == 2
        assert schedule.elapsed_periods(last + WEEK - 1) == 0

    def test_before_reference_is_zero(self, schedule):
        assert schedule.elapsed_periods(START - WEEK) == 0


class TestPhases:
    """Tests for phase boundaries."""

    @pytest.mark.parametrize("index,phase", [
        (1, SchedulePhase.FLAT),
        (SUPPLY_DECAY_START - 1, SchedulePhase.FLAT),
        (SUPPLY_DECAY_START, SchedulePhase.DECAY),
        (SUPPLY_DECAY_END - 1, SchedulePhase.DECAY),
        (SUPPLY_DECAY_END, SchedulePhase.TERMINAL),
        (1000, SchedulePhase.TERMINAL),
    ])
    def test_phase_for_period(self, schedule, index, phase):
        assert schedule.phase_for_period(index) == phase


class TestPeriodSupply:
    """Tests for per-period supply helpers."""

    def test_decay_count_zero_is_initial_supply(self, schedule):
        assert schedule.decaying_period_supply(0) == INITIAL_PERIOD_SUPPLY

    def test_first_decay_period(self, schedule):
        expected = INITIAL_PERIOD_SUPPLY * (UNIT - WEEKLY_DECAY_RATE) // UNIT
        assert schedule.decaying_period_supply(1) == expected

    def test_decaying_supply_strictly_decreasing(self, schedule):
        supplies = [schedule.decaying_period_supply(n) for n in range(1, 195)]
        for earlier, later in zip(supplies, supplies[1:]):
            assert later < earlier

    def test_terminal_increment_formula(self, schedule):
        period_rate = ANNUAL_TERMINAL_RATE // 52
        expected = multiply(TOTAL_SUPPLY, power(UNIT + period_rate, 5) - UNIT)
        assert schedule.terminal_supply_increment(TOTAL_SUPPLY, 5) == expected

    def test_terminal_increment_close_to_real_compounding(self, schedule):
        increment = schedule.terminal_supply_increment(TOTAL_SUPPLY, 52)
        real = from_fixed(TOTAL_SUPPLY) * ((1 + Decimal("0.025") / 52) ** 52 - 1)
        assert abs(from_fixed(increment) - real) / real < Decimal("1e-9")

    def test_terminal_increment_zero_periods(self, schedule):
        assert schedule.terminal_supply_increment(TOTAL_SUPPLY, 0) == 0


class TestMintableSupply:
    """Tests for mintable_supply."""

    def test_zero_when_not_due(self, schedule_at):
        schedule = schedule_at(SUPPLY_DECAY_END, total_supply_query=failing_query)
        last = schedule.state.last_issuance_time
        assert schedule.mintable_supply(last) == 0
        assert schedule.mintable_supply(last + WEEK) == 0

    def test_flat_phase(self, schedule):
        assert schedule.mintable_supply(START + 3 * WEEK, failing_query) == 3 * INITIAL_PERIOD_SUPPLY

    def test_first_decay_period(self, schedule_at):
        schedule = schedule_at(SUPPLY_DECAY_START - 1)
        now = schedule.state.last_issuance_time + WEEK + 1

        expected = multiply(INITIAL_PERIOD_SUPPLY, UNIT - WEEKLY_DECAY_RATE)
        assert schedule.mintable_supply(now, failing_query) == expected

    def test_crosses_from_flat_into_decay(self, schedule_at):
        schedule = schedule_at(SUPPLY_DECAY_START - 2)
        now = schedule.state.last_issuance_time + 2 * WEEK + 1

        expected = INITIAL_PERIOD_SUPPLY + schedule.decaying_period_supply(1)
        assert schedule.mintable_supply(now, failing_query) == expected

    def test_last_decay_period(self, schedule_at):
        schedule = schedule_at(SUPPLY_DECAY_END - 2)
        now = schedule.state.last_issuance_time + WEEK + 1

        decay_count = (SUPPLY_DECAY_END - 1) - (SUPPLY_DECAY_START - 1)
        assert schedule.mintable_supply(now, failing_query) == schedule.decaying_period_supply(decay_count)

    def test_terminal_phase_single_lump(self, schedule_at):
        calls = []

        def query():
            calls.append(1)
            return TOTAL_SUPPLY

        schedule = schedule_at(SUPPLY_DECAY_END, total_supply_query=query)
        now = schedule.state.last_issuance_time + 5 * WEEK + 1

        amount = schedule.mintable_supply(now)
        assert amount == schedule.terminal_supply_increment(TOTAL_SUPPLY, 5)
        assert len(calls) == 1

        real = from_fixed(TOTAL_SUPPLY) * ((1 + Decimal("0.025") / 52) ** 5 - 1)
        assert abs(from_fixed(amount) - real) / real < Decimal("1e-9")

    def test_decay_into_terminal_uses_accumulated_snapshot(self, schedule_at):
        schedule = schedule_at(SUPPLY_DECAY_END - 2, total_supply_query=lambda: TOTAL_SUPPLY)
        now = schedule.state.last_issuance_time + 3 * WEEK + 1

        decayed = schedule.decaying_period_supply((SUPPLY_DECAY_END - 1) - (SUPPLY_DECAY_START - 1))
        terminal = schedule.terminal_supply_increment(TOTAL_SUPPLY + decayed, 2)
        assert schedule.mintable_supply(now) == decayed + terminal

    def test_override_query_takes_precedence(self, schedule_at):
        schedule = schedule_at(SUPPLY_DECAY_END, total_supply_query=failing_query)
        now = schedule.state.last_issuance_time + WEEK + 1

        amount = schedule.mintable_supply(now, lambda: TOTAL_SUPPLY)
        assert amount == schedule.terminal_supply_increment(TOTAL_SUPPLY, 1)

    def test_does_not_mutate_state(self, schedule):
        before = schedule.state.to_dict()
        schedule.mintable_supply(START + 100 * WEEK, lambda: TOTAL_SUPPLY)
        assert schedule.state.to_dict() == before

    def test_long_gap_spans_all_phases(self, schedule):
        amount = schedule.mintable_supply(START + 300 * WEEK, lambda: TOTAL_SUPPLY)
        flat_and_decay = (SUPPLY_DECAY_START - 1) * INITIAL_PERIOD_SUPPLY + sum(
            schedule.decaying_period_supply(n)
            for n in range(1, SUPPLY_DECAY_END - SUPPLY_DECAY_START + 1)
        )
        remaining = 300 - (SUPPLY_DECAY_END - 1)
        expected = flat_and_decay + schedule.terminal_supply_increment(
            TOTAL_SUPPLY + flat_and_decay, remaining
        )
        assert amount == expected


class TestSupplyQueryFailures:
    """Terminal phase must fail rather than return a partial amount."""

    @pytest.fixture
    def terminal_now(self):
        return START + SUPPLY_DECAY_END * WEEK + 2 * WEEK + 1

    def _terminal_schedule(self, schedule_at, query):
        return schedule_at(SUPPLY_DECAY_END, total_supply_query=query)

    def test_query_exception(self, schedule_at, terminal_now):
        def query():
            raise ConnectionError("ledger down")

        schedule = self._terminal_schedule(schedule_at, query)
        with pytest.raises(SupplyQueryError):
            schedule.mintable_supply(terminal_now)

    @pytest.mark.parametrize("bad_value", [-1, "1000", None, 1.5, True])
    def test_invalid_value(self, schedule_at, terminal_now, bad_value):
        schedule = self._terminal_schedule(schedule_at, lambda: bad_value)
        with pytest.raises(SupplyQueryError):
            schedule.mintable_supply(terminal_now)

    def test_no_query_configured(self, schedule_at, terminal_now):
        schedule = self._terminal_schedule(schedule_at, None)
        with pytest.raises(SupplyQueryError):
            schedule.mintable_supply(terminal_now)

    def test_decay_then_failed_query_returns_nothing(self, schedule_at):
        def query():
            raise ConnectionError("ledger down")

        schedule = schedule_at(SUPPLY_DECAY_END - 3, total_supply_query=query)
        now = schedule.state.last_issuance_time + 4 * WEEK + 1
        with pytest.raises(SupplyQueryError):
            schedule.mintable_supply(now)

    def test_flat_phase_needs_no_query(self, schedule):
        assert schedule.mintable_supply(START + 2 * WEEK) == 2 * INITIAL_PERIOD_SUPPLY


class TestRecordIssuance:
    """Tests for the issuance state transition."""

    def test_advances_counter_and_time(self, schedule):
        now = START + 3 * WEEK + 10
        event = schedule.record_issuance(now, 3 * INITIAL_PERIOD_SUPPLY)

        assert schedule.state.period_counter == 3
        assert schedule.state.last_issuance_time == now
        assert event.periods_issued == 3
        assert event.period_counter == 3
        assert event.supply_minted == 3 * INITIAL_PERIOD_SUPPLY

    def test_status_transition(self, schedule):
        assert schedule.status == ScheduleStatus.UNINITIALIZED
        schedule.record_issuance(START + WEEK)
        assert schedule.status == ScheduleStatus.ACTIVE

    def test_not_due_right_after_recording(self, schedule):
        now = START + 5 * WEEK + 100
        schedule.record_issuance(now)
        assert not schedule.is_issuance_due(now)
        assert schedule.mintable_supply(now) == 0

    def test_counter_is_monotonic(self, schedule):
        now = START + 2 * WEEK
        schedule.record_issuance(now)
        counter = schedule.state.period_counter

        schedule.record_issuance(now)
        assert schedule.state.period_counter == counter

        schedule.record_issuance(now + 4 * WEEK)
        assert schedule.state.period_counter == counter + 4

    def test_earlier_time_rejected(self, schedule):
        now = START + 3 * WEEK
        schedule.record_issuance(now)

        with pytest.raises(ValueError):
            schedule.record_issuance(now - 1)
        assert schedule.state.last_issuance_time == now
        assert schedule.state.period_counter == 3
        assert len(schedule.get_history()) == 1

    def test_next_issuance_continues_from_counter(self, schedule):
        now = START + (SUPPLY_DECAY_START - 1) * WEEK
        schedule.record_issuance(now, (SUPPLY_DECAY_START - 1) * INITIAL_PERIOD_SUPPLY)

        amount = schedule.mintable_supply(now + WEEK + 1, failing_query)
        assert amount == schedule.decaying_period_supply(1)

    def test_history(self, schedule):
        for week in (1, 2, 3):
            schedule.record_issuance(START + week * WEEK + week)

        history = schedule.get_history(limit=2)
        assert len(history) == 2
        assert history[-1]["period_counter"] == 3
        assert schedule.get_history(limit=0) == []

    def test_history_is_bounded(self, schedule):
        for week in range(1, SupplySchedule.MAX_HISTORY + 11):
            schedule.record_issuance(START + week * WEEK)
        assert len(schedule.get_history(limit=1000)) == SupplySchedule.MAX_HISTORY


class TestStatus:
    """Tests for get_status."""

    def test_fresh_status(self, schedule):
        status = schedule.get_status(START + 2 * WEEK)
        assert status["status"] == "uninitialized"
        assert status["period_counter"] == 0
        assert status["next_phase"] == "flat"
        assert status["issuance_due"] is True
        assert status["elapsed_periods"] == 2
        assert status["last_event"] is None

    def test_terminal_status(self, schedule_at):
        status = schedule_at(SUPPLY_DECAY_END).get_status()
        assert status["status"] == "active"
        assert status["next_phase"] == "terminal"
        assert "issuance_due" not in status
