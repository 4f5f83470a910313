# tokenomics/issuer.py
"""
Issuance trigger for the supply schedule.

Wraps the schedule with the pieces around it: who may trigger issuance,
the actual mint on the ledger, and the reward paid to the triggering party.
"""

import threading
from dataclasses import dataclass
from typing import Optional, Dict, Any, Protocol

from .fixed_point import UNIT, from_fixed
from .schedule import SupplySchedule, IssuanceEvent

DEFAULT_MINTER_REWARD = 200 * UNIT
MAX_MINTER_REWARD = 200 * UNIT


class Ledger(Protocol):
    def total_supply(self) -> int: ...

    def mint(self, recipient: str, amount: int) -> Dict[str, Any]: ...


class NotAuthorized(PermissionError):
    """Caller is not the designated issuer."""


class IssuanceNotDue(RuntimeError):
    """No supply is mintable yet."""


@dataclass
class IssuanceReceipt:
    """Result of a completed issuance."""
    recipient: str
    supply_minted: int
    minter: str
    minter_reward: int
    event: IssuanceEvent
    reward_error: Optional[str] = None  # set when the reward mint failed

    def to_dict(self) -> dict:
        return {
            "recipient": self.recipient,
            "supply_minted": str(self.supply_minted),
            "supply_minted_tokens": str(from_fixed(self.supply_minted)),
            "minter": self.minter,
            "minter_reward": str(self.minter_reward),
            "reward_error": self.reward_error,
            "event": self.event.to_dict(),
        }


class IssuanceTrigger:
    """
    Performs scheduled issuance on behalf of the authorized issuer.

    Each issue() call checks the schedule, mints the supply, records the
    issuance, then pays the minter reward. Calls are serialized so the
    supply mint and the schedule update happen as one unit. A failed
    reward mint is reported on the receipt and does not undo the issuance.
    """

    def __init__(
        self,
        schedule: SupplySchedule,
        ledger: Ledger,
        authorized_issuer: str,
        minter_reward: int = DEFAULT_MINTER_REWARD,
    ):
        """
        Initialize the trigger.

        Args:
            schedule: Supply schedule to advance
            ledger: Ledger used for total supply and minting
            authorized_issuer: Caller id allowed to trigger issuance
            minter_reward: Fixed-point reward paid to the caller per issuance
        """
        self.schedule = schedule
        self.authorized_issuer = authorized_issuer
        self._ledger = ledger
        self._minter_reward = 0
        self._lock = threading.Lock()

        self.schedule.set_total_supply_query(ledger.total_supply)
        self.set_minter_reward(minter_reward)

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def minter_reward(self) -> int:
        return self._minter_reward

    def set_minter_reward(self, amount: int):
        """Set the reward paid to the issuer, up to MAX_MINTER_REWARD."""
        if amount < 0:
            raise ValueError(f"Minter reward must be non-negative, got {amount}")
        if amount > MAX_MINTER_REWARD:
            raise ValueError(
                f"Minter reward {amount} exceeds maximum {MAX_MINTER_REWARD}"
            )

        old_value = self._minter_reward
        self._minter_reward = amount
        print(f"[ISSUER] Minter reward: {from_fixed(old_value)} -> {from_fixed(amount)}")

    def set_ledger(self, ledger: Ledger):
        """Point issuance and supply queries at a different ledger."""
        with self._lock:
            self._ledger = ledger
            self.schedule.set_total_supply_query(ledger.total_supply)
        print(f"[ISSUER] Ledger updated: {ledger!r}")

    def issue(self, caller: str, recipient: str, now: int) -> IssuanceReceipt:
        """
        Mint the currently mintable supply and advance the schedule.

        Args:
            caller: Id of the party triggering issuance (receives the reward)
            recipient: Account that receives the issued supply
            now: Current time (seconds since epoch)

        Raises:
            NotAuthorized: caller is not the authorized issuer
            IssuanceNotDue: nothing is mintable at `now`
        """
        if caller != self.authorized_issuer:
            raise NotAuthorized(f"{caller} is not allowed to trigger issuance")

        with self._lock:
            if not self.schedule.is_issuance_due(now):
                raise IssuanceNotDue("Issuance is not due yet")

            amount = self.schedule.mintable_supply(now, self._ledger.total_supply)
            if amount == 0:
                raise IssuanceNotDue("No supply is mintable")

            self._ledger.mint(recipient, amount)
            event = self.schedule.record_issuance(now, amount)

            # Supply is minted and recorded at this point; a failed reward
            # is reported on the receipt, not retried
            reward = self._minter_reward
            reward_error = None
            if reward > 0:
                try:
                    self._ledger.mint(caller, reward)
                except Exception as e:
                    print(f"[WARN] Minter reward to {caller} failed: {e}")
                    reward_error = str(e)
                    reward = 0

        print(
            f"[ISSUER] Issued {from_fixed(amount)} tokens to {recipient}, "
            f"reward {from_fixed(reward)} to {caller}"
        )

        return IssuanceReceipt(
            recipient=recipient,
            supply_minted=amount,
            minter=caller,
            minter_reward=reward,
            event=event,
            reward_error=reward_error,
        )

    def get_status(self, now: Optional[int] = None) -> Dict[str, Any]:
        """Get trigger status including the schedule summary."""
        return {
            "authorized_issuer": self.authorized_issuer,
            "minter_reward": str(self._minter_reward),
            "max_minter_reward": str(MAX_MINTER_REWARD),
            "ledger": repr(self._ledger),
            "schedule": self.schedule.get_status(now),
        }
