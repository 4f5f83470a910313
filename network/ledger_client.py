# network/ledger_client.py
"""
Token ledger client for the supply schedule service.
Reads total supply and submits mint requests to the ledger API.
"""

from typing import Optional, Dict, Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


class LedgerError(RuntimeError):
    """Ledger request failed or returned an unusable answer."""


class LedgerClient:
    """
    Client for the external token ledger.

    Handles:
    - Total supply queries (terminal phase input)
    - Mint submission for issued supply and minter rewards
    - Transient error retries
    """

    TOTAL_SUPPLY_PATH = "/api/token/total-supply"
    MINT_PATH = "/api/token/mint"
    HEALTH_PATH = "/api/health"

    def __init__(
        self,
        ledger_url: str,
        api_key: Optional[str] = None,
        timeout: int = 10,
    ):
        """
        Initialize the ledger client.

        Args:
            ledger_url: Base URL of the ledger API
            api_key: Optional API key for authentication
            timeout: Request timeout in seconds
        """
        self.ledger_url = ledger_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout

        self._session = self._create_session()

        print(f"[LEDGER] Client initialized for {self.ledger_url}")

    def _create_session(self) -> requests.Session:
        """Create HTTP session with retry configuration."""
        session = requests.Session()

        retry_strategy = Retry(
            total=3,
            backoff_factor=0.5,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["GET"],
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({
            "Content-Type": "application/json",
            "User-Agent": "SupplySchedule/1.0",
        })

        if self.api_key:
            session.headers["Authorization"] = f"Bearer {self.api_key}"

        return session

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """Send a request and decode the JSON body, raising LedgerError on failure."""
        url = f"{self.ledger_url}{path}"

        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.ConnectionError as e:
            raise LedgerError(f"Connection error: {e}") from e
        except requests.exceptions.Timeout as e:
            raise LedgerError("Request timeout") from e
        except requests.exceptions.RequestException as e:
            raise LedgerError(f"Request error: {e}") from e

        if response.status_code != 200:
            raise LedgerError(f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise LedgerError(f"Invalid JSON from ledger: {e}") from e

        if not isinstance(data, dict):
            raise LedgerError(f"Expected JSON object from ledger, got {type(data).__name__}")

        return data

    # ============================================
    # Public API
    # ============================================

    def total_supply(self) -> int:
        """
        Get the token's current total supply.

        Returns:
            Total supply as a fixed-point integer

        Raises:
            LedgerError: if the ledger is unreachable or the value is invalid
        """
        data = self._request("GET", self.TOTAL_SUPPLY_PATH)

        raw = data.get("total_supply")
        try:
            total_supply = int(raw)
        except (TypeError, ValueError) as e:
            raise LedgerError(f"Invalid total supply value: {raw!r}") from e

        if total_supply < 0:
            raise LedgerError(f"Negative total supply: {total_supply}")

        return total_supply

    def mint(self, recipient: str, amount: int) -> Dict[str, Any]:
        """
        Mint tokens to a recipient.

        Args:
            recipient: Destination account
            amount: Fixed-point amount to mint

        Returns:
            Ledger response (e.g. transaction id)
        """
        if amount <= 0:
            raise ValueError(f"Mint amount must be positive, got {amount}")

        payload = {
            "recipient": recipient,
            "amount": str(amount),
        }
        result = self._request("POST", self.MINT_PATH, json=payload)
        print(f"[LEDGER] Minted {amount} to {recipient}")
        return result

    def ping(self) -> bool:
        """Check that the ledger answers."""
        try:
            self._request("GET", self.HEALTH_PATH)
            return True
        except LedgerError as e:
            print(f"[LEDGER] Ping failed: {e}")
            return False

    def __repr__(self) -> str:
        return f"LedgerClient({self.ledger_url!r})"
