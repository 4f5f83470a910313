"""
Supply Schedule Service - Flask Application

Exposes the token issuance schedule over HTTP: schedule reads for anyone,
issuance for the authorized issuer, settings for operators.
"""

import hmac
import time
from typing import Any, Callable, Optional

from flask import Flask, request, jsonify

# Configuration
from config import (
    SERVICE_NAME,
    SERVICE_VERSION,
    INFLATION_START_TIME,
    LEDGER_URL,
    LEDGER_API_KEY,
    API_TIMEOUT_SECONDS,
    ISSUANCE_RECIPIENT,
    ISSUER_ID,
    ISSUER_API_KEY,
    OPERATOR_API_KEY,
    CONFIG_DIR,
    CONFIG_TRUSTED_PUBLIC_KEY,
    HOST,
    PORT,
)

# Schedule
from tokenomics import (
    ScheduleConfig,
    SupplySchedule,
    IssuanceTrigger,
    IssuanceNotDue,
    NotAuthorized,
    SupplyQueryError,
)
from tokenomics.fixed_point import FixedPointError, from_fixed

# Ledger
from network import LedgerClient, LedgerError

# Operator settings
from settings import ConfigManager


def _bearer_token() -> Optional[str]:
    """Extract the bearer token from the Authorization header."""
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[7:]
    return None


def _require_key(expected: Optional[str]):
    """Return an error response unless the request carries the expected key."""
    token = _bearer_token()
    if token is None:
        return jsonify({"error": "Authorization required"}), 401
    if not expected or not hmac.compare_digest(token.encode(), expected.encode()):
        return jsonify({"error": "Forbidden"}), 403
    return None


def _amount(value: int) -> dict:
    """Fixed-point amount as raw integer string plus token decimal."""
    return {"raw": str(value), "tokens": str(from_fixed(value))}


def create_app(
    trigger: Optional[IssuanceTrigger] = None,
    config_manager: Optional[ConfigManager] = None,
    clock: Optional[Callable[[], int]] = None,
    issuer_id: str = ISSUER_ID,
    issuer_api_key: Optional[str] = ISSUER_API_KEY,
    operator_api_key: Optional[str] = OPERATOR_API_KEY,
    recipient: str = ISSUANCE_RECIPIENT,
) -> Flask:
    """
    Build the Flask application.

    Args:
        trigger: Issuance trigger (built from config.py when omitted)
        config_manager: Operator settings (built from config.py when omitted)
        clock: Returns the current time in seconds (default: wall clock)
        issuer_id: Caller id bound to the issuer API key
        issuer_api_key: Bearer key required to trigger issuance
        operator_api_key: Bearer key required to change settings
        recipient: Account that receives issued supply
    """
    app = Flask(__name__)
    now = clock or (lambda: int(time.time()))

    if config_manager is None:
        config_manager = ConfigManager(
            config_dir=CONFIG_DIR,
            trusted_public_key=CONFIG_TRUSTED_PUBLIC_KEY,
            defaults={
                "ledger_url": LEDGER_URL,
                "api_timeout_seconds": API_TIMEOUT_SECONDS,
            },
        )

    if trigger is None:
        ledger = LedgerClient(
            ledger_url=config_manager.get("ledger_url"),
            api_key=LEDGER_API_KEY,
            timeout=config_manager.get("api_timeout_seconds"),
        )
        schedule = SupplySchedule(
            config=ScheduleConfig(inflation_start_time=INFLATION_START_TIME),
        )
        trigger = IssuanceTrigger(
            schedule=schedule,
            ledger=ledger,
            authorized_issuer=ISSUER_ID,
            minter_reward=config_manager.get("minter_reward"),
        )

    schedule = trigger.schedule

    # --- Apply operator changes live ---
    def on_config_change(key: str, value: Any):
        if key == "minter_reward":
            trigger.set_minter_reward(value)
        elif key in ("ledger_url", "api_timeout_seconds"):
            trigger.set_ledger(LedgerClient(
                ledger_url=config_manager.get("ledger_url"),
                api_key=LEDGER_API_KEY,
                timeout=config_manager.get("api_timeout_seconds"),
            ))

    config_manager.add_listener(on_config_change)

    app.extensions["supply_schedule"] = {
        "trigger": trigger,
        "config_manager": config_manager,
    }

    # ============================================
    # ROUTES - Service Info
    # ============================================

    @app.route('/api/info', methods=['GET'])
    def service_info():
        """Get service information and schedule constants."""
        return jsonify({
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "schedule": schedule.config.to_dict(),
        })

    # ============================================
    # ROUTES - Schedule
    # ============================================

    @app.route('/api/schedule/status', methods=['GET'])
    def schedule_status():
        """Get schedule state and issuer status."""
        return jsonify(trigger.get_status(now()))

    @app.route('/api/schedule/due', methods=['GET'])
    def schedule_due():
        """Check whether an issuance is due."""
        current = now()
        return jsonify({
            "due": schedule.is_issuance_due(current),
            "elapsed_periods": schedule.elapsed_periods(current),
            "timestamp": current,
        })

    @app.route('/api/schedule/mintable', methods=['GET'])
    def schedule_mintable():
        """Get the supply mintable right now."""
        current = now()
        try:
            amount = schedule.mintable_supply(current)
        except SupplyQueryError as e:
            print(f"[ERR] Mintable supply unavailable: {e}")
            return jsonify({"error": str(e)}), 502
        except FixedPointError as e:
            print(f"[ERR] Mintable supply calculation failed: {e}")
            return jsonify({"error": str(e)}), 500

        return jsonify({
            "mintable_supply": _amount(amount),
            "elapsed_periods": schedule.elapsed_periods(current),
            "timestamp": current,
        })

    @app.route('/api/schedule/issue', methods=['POST'])
    def schedule_issue():
        """
        Mint the mintable supply and advance the schedule.

        Header: Authorization: Bearer <issuer key>
        Body: {"recipient": "..."} (optional)
        """
        denied = _require_key(issuer_api_key)
        if denied:
            return denied

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        target = data.get("recipient", recipient)
        if not isinstance(target, str) or not target:
            return jsonify({"error": "recipient must be a non-empty string"}), 400

        try:
            receipt = trigger.issue(issuer_id, target, now())
        except NotAuthorized as e:
            return jsonify({"error": str(e)}), 403
        except IssuanceNotDue as e:
            return jsonify({"error": str(e)}), 409
        except (SupplyQueryError, LedgerError) as e:
            print(f"[ERR] Issuance failed: {e}")
            return jsonify({"error": str(e)}), 502
        except FixedPointError as e:
            print(f"[ERR] Issuance calculation failed: {e}")
            return jsonify({"error": str(e)}), 500

        return jsonify({
            "status": "issued",
            **receipt.to_dict(),
        })

    @app.route('/api/schedule/history', methods=['GET'])
    def schedule_history():
        """Get recent issuance events."""
        limit = request.args.get('limit', 50, type=int)
        return jsonify({
            "events": schedule.get_history(limit),
        })

    # ============================================
    # ROUTES - Operator Settings
    # ============================================

    @app.route('/api/config', methods=['GET'])
    def get_config():
        """Get current operator settings."""
        return jsonify({
            "config": config_manager.get_all(),
            "status": config_manager.get_status(),
        })

    @app.route('/api/config', methods=['POST'])
    def update_config():
        """
        Update operator settings.

        Header: Authorization: Bearer <operator key>
        Body: {"minter_reward": ..., "ledger_url": ...}
        """
        denied = _require_key(operator_api_key)
        if denied:
            return denied

        data = request.get_json(silent=True)
        if not isinstance(data, dict) or not data:
            return jsonify({"error": "Request body required"}), 400

        try:
            success, results = config_manager.set_multiple(data, source="api")
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        return jsonify({
            "success": success,
            "results": results,
        }), 200 if success else 400

    @app.route('/api/config/remote', methods=['POST'])
    def remote_config():
        """
        Apply a signed configuration update.

        Body: {<settings>..., "_signature": "ed25519:<hex>"}

        Without a trusted signing key, the operator key is required instead.
        """
        if not config_manager.signed_updates:
            denied = _require_key(operator_api_key)
            if denied:
                return denied

        data = request.get_json(silent=True)
        if not isinstance(data, dict) or not data:
            return jsonify({"error": "Request body required"}), 400

        success, results = config_manager.apply_remote_config(
            data, signature=data.get("_signature")
        )

        return jsonify({
            "success": success,
            "results": results,
        }), 200 if success else 400

    @app.route('/api/config/history', methods=['GET'])
    def config_history():
        """Get recent operator setting changes."""
        limit = request.args.get('limit', 50, type=int)
        return jsonify({
            "changes": config_manager.get_history(limit),
        })

    return app


# ============================================
# Main Entry Point
# ============================================

if __name__ == '__main__':
    app = create_app()

    print("=" * 60)
    print(f"  {SERVICE_NAME} v{SERVICE_VERSION}")
    print(f"  Ledger: {app.extensions['supply_schedule']['trigger'].ledger!r}")
    print(f"  Issuer: {ISSUER_ID}")
    print(f"  Issuance key configured: {bool(ISSUER_API_KEY)}")
    print(f"  Operator key configured: {bool(OPERATOR_API_KEY)}")
    print("=" * 60)

    app.run(host=HOST, port=PORT, debug=False)
