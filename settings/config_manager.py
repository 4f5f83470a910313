# settings/config_manager.py
"""
Operator configuration manager for the supply schedule service.
Handles the adjustable settings around the schedule (minter reward,
ledger endpoint) without restarting the service.
"""

import json
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Tuple, List, Callable
from dataclasses import dataclass

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from cryptography.exceptions import InvalidSignature

from tokenomics.issuer import DEFAULT_MINTER_REWARD, MAX_MINTER_REWARD


@dataclass
class ConfigChange:
    """Record of a configuration change."""
    key: str
    old_value: Any
    new_value: Any
    changed_at: str
    source: str  # "local", "remote", "api", "reset"

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "changed_at": self.changed_at,
            "source": self.source,
        }


class ConfigManager:
    """
    Manages operator configuration with support for remote updates.

    Features:
    - Load/save configuration from JSON file
    - Validate configuration values
    - Apply Ed25519-signed remote updates
    - Track configuration change history
    - Notify listeners so changes take effect live
    """

    CONFIG_FILE = "schedule_config.json"
    HISTORY_FILE = "config_history.json"
    MAX_HISTORY = 100

    # Configurable fields and their validation rules
    ALLOWED_FIELDS = {
        # Issuance
        "minter_reward": {"type": int, "min": 0, "max": MAX_MINTER_REWARD, "default": DEFAULT_MINTER_REWARD},

        # Ledger
        "ledger_url": {"type": str, "prefixes": ("http://", "https://"), "default": "http://localhost:8545"},
        "api_timeout_seconds": {"type": int, "min": 1, "max": 120, "default": 10},
    }

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        trusted_public_key: Optional[str] = None,
        defaults: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize configuration manager.

        Args:
            config_dir: Directory for config files
            trusted_public_key: Ed25519 public key (hex) for verifying remote configs
            defaults: Overrides for field defaults (e.g. from environment)
        """
        self.config_dir = Path(config_dir) if config_dir else Path.home() / ".supply-schedule"
        self._trusted_public_key_hex = trusted_public_key
        self._defaults = {k: v["default"] for k, v in self.ALLOWED_FIELDS.items()}
        self._config: Dict[str, Any] = {}
        self._history: List[ConfigChange] = []
        self._listeners: List[Callable[[str, Any], None]] = []

        for key, value in (defaults or {}).items():
            valid, error = self.validate_value(key, value)
            if not valid:
                raise ValueError(error)
            self._defaults[key] = value

        self.config_dir.mkdir(parents=True, exist_ok=True)

        self._load_config()
        self._load_history()

        print(f"[CONFIG] Manager initialized with {len(self._config)} settings")

    def _load_config(self):
        """Load configuration from file."""
        config_path = self.config_dir / self.CONFIG_FILE

        # Start with defaults
        self._config = dict(self._defaults)

        if not config_path.exists():
            return

        try:
            with open(config_path, 'r') as f:
                saved_config = json.load(f)
        except (OSError, ValueError) as e:
            print(f"[CONFIG] Failed to load config: {e}")
            return

        # Merge saved values (only allowed, valid fields)
        for key, value in saved_config.items():
            valid, error = self.validate_value(key, value)
            if valid:
                self._config[key] = value
            else:
                print(f"[CONFIG] Ignoring saved value: {error}")

    def _save_config(self):
        """Save configuration to file."""
        config_path = self.config_dir / self.CONFIG_FILE
        with open(config_path, 'w') as f:
            json.dump(self._config, f, indent=2)

    def _load_history(self):
        """Load configuration change history."""
        history_path = self.config_dir / self.HISTORY_FILE
        if not history_path.exists():
            return

        try:
            with open(history_path, 'r') as f:
                history_data = json.load(f)
            self._history = [
                ConfigChange(**item) for item in history_data[-self.MAX_HISTORY:]
            ]
        except (OSError, ValueError, TypeError) as e:
            print(f"[CONFIG] Failed to load history: {e}")

    def _save_history(self):
        """Save configuration change history."""
        history_path = self.config_dir / self.HISTORY_FILE
        history_data = [c.to_dict() for c in self._history[-self.MAX_HISTORY:]]
        with open(history_path, 'w') as f:
            json.dump(history_data, f, indent=2)

    def _record_change(self, key: str, old_value: Any, new_value: Any, source: str):
        """Record a configuration change and notify listeners."""
        change = ConfigChange(
            key=key,
            old_value=old_value,
            new_value=new_value,
            changed_at=datetime.now(timezone.utc).isoformat(),
            source=source,
        )
        self._history.append(change)
        self._save_history()

        for listener in self._listeners:
            listener(key, new_value)

    # ============================================
    # Validation
    # ============================================

    def validate_value(self, key: str, value: Any) -> Tuple[bool, str]:
        """
        Validate a configuration value.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if key not in self.ALLOWED_FIELDS:
            return False, f"Unknown configuration key: {key}"

        rules = self.ALLOWED_FIELDS[key]
        expected_type = rules["type"]

        # bool is an int subclass but never a valid amount
        if isinstance(value, bool) or not isinstance(value, expected_type):
            return False, f"Invalid type for {key}: expected {expected_type.__name__}"

        if expected_type is int:
            if "min" in rules and value < rules["min"]:
                return False, f"{key} must be >= {rules['min']}"
            if "max" in rules and value > rules["max"]:
                return False, f"{key} must be <= {rules['max']}"

        if expected_type is str and not value:
            return False, f"{key} must not be empty"

        if "prefixes" in rules and not value.startswith(rules["prefixes"]):
            return False, f"{key} must start with one of: {list(rules['prefixes'])}"

        return True, ""

    # ============================================
    # Get/Set Configuration
    # ============================================

    @property
    def signed_updates(self) -> bool:
        """True when remote updates must carry a valid signature."""
        return bool(self._trusted_public_key_hex)

    def add_listener(self, callback: Callable[[str, Any], None]):
        """Register a callback invoked as callback(key, new_value) on each change."""
        self._listeners.append(callback)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        return self._config.get(key, default)

    def get_all(self) -> Dict[str, Any]:
        """Get all configuration values."""
        return self._config.copy()

    def set(self, key: str, value: Any, source: str = "local") -> Tuple[bool, str]:
        """
        Set a configuration value.

        Args:
            key: Configuration key
            value: New value
            source: Source of change ("local", "remote", "api")

        Returns:
            Tuple of (success, message)
        """
        valid, error = self.validate_value(key, value)
        if not valid:
            return False, error

        old_value = self._config.get(key)
        if old_value == value:
            return True, "Value unchanged"

        self._config[key] = value
        self._save_config()
        self._record_change(key, old_value, value, source)

        print(f"[CONFIG] {key}: {old_value} -> {value} (source: {source})")
        return True, f"Updated {key}"

    def set_multiple(self, updates: Dict[str, Any], source: str = "local") -> Tuple[bool, Dict[str, str]]:
        """
        Set multiple configuration values.

        Returns:
            Tuple of (all_success, results_dict)
        """
        results = {}
        all_success = True

        for key, value in updates.items():
            success, msg = self.set(key, value, source)
            results[key] = msg
            if not success:
                all_success = False

        return all_success, results

    def reset_to_defaults(self) -> Dict[str, Any]:
        """Reset all configuration to defaults. Returns the previous values."""
        old_config = self._config.copy()

        for key, new_value in self._defaults.items():
            old_value = self._config.get(key)
            if old_value != new_value:
                self._config[key] = new_value
                self._record_change(key, old_value, new_value, "reset")

        self._save_config()
        return old_config

    # ============================================
    # Remote Configuration
    # ============================================

    def apply_remote_config(
        self,
        config_data: Dict[str, Any],
        signature: Optional[str] = None,
    ) -> Tuple[bool, Dict[str, str]]:
        """
        Apply configuration from a remote operator.

        When a trusted key is configured, a valid signature is required.

        Args:
            config_data: Configuration updates
            signature: Ed25519 signature (hex, optionally "ed25519:" prefixed)

        Returns:
            Tuple of (success, results_dict)
        """
        if self.signed_updates:
            if not signature:
                return False, {"_error": "Signature required"}
            if not isinstance(signature, str):
                return False, {"_error": "Signature must be a hex string"}
            valid, msg = self._verify_config_signature(config_data, signature)
            if not valid:
                return False, {"_error": msg}

        # Extract configuration values (ignore metadata fields)
        updates = {
            k: v for k, v in config_data.items()
            if not k.startswith("_") and k in self.ALLOWED_FIELDS
        }

        if not updates:
            return False, {"_error": "No valid configuration fields in update"}

        return self.set_multiple(updates, source="remote")

    def _verify_config_signature(
        self,
        config_data: Dict[str, Any],
        signature: str,
    ) -> Tuple[bool, str]:
        """Verify remote configuration signature."""
        try:
            public_key_bytes = bytes.fromhex(self._trusted_public_key_hex)
            public_key = Ed25519PublicKey.from_public_bytes(public_key_bytes)

            # Canonicalize config (exclude signature field)
            signable = {k: v for k, v in config_data.items() if k != "_signature"}
            content = json.dumps(signable, sort_keys=True, separators=(',', ':')).encode()

            sig_str = signature
            if sig_str.startswith("ed25519:"):
                sig_str = sig_str[8:]
            sig_bytes = bytes.fromhex(sig_str)

            public_key.verify(sig_bytes, content)
            return True, "Signature valid"

        except InvalidSignature:
            return False, "Invalid configuration signature"
        except ValueError as e:
            return False, f"Signature verification error: {e}"

    # ============================================
    # History / Status
    # ============================================

    def get_history(self, limit: int = 50) -> List[Dict]:
        """Get recent configuration changes."""
        if limit <= 0:
            return []
        return [c.to_dict() for c in self._history[-limit:]]

    def get_status(self) -> Dict[str, Any]:
        """Get configuration status summary."""
        return {
            "config_count": len(self._config),
            "history_count": len(self._history),
            "fields": list(self._config.keys()),
            "signed_updates": self.signed_updates,
            "last_change": self._history[-1].to_dict() if self._history else None,
        }
