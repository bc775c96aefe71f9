"""State store — JSON-based persistence for registry runtime state.

Stores and recovers:
- Role membership and role admin overrides
- Escrow balances
- Status records (aml_id hex-encoded, timestamps ISO-8601)
- Settings (fee account, default fee)
- External custody balances, when the in-memory asset book is in use

This is a simple file-based store suitable for single-node deployment.
The audit trail lives in the event log; this file is a fast-restart
snapshot of the state those events produced.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from amloracle.models.status import StatusRecord


class StateStore:
    """JSON file-based state persistence.

    Usage:
        store = StateStore(Path("data/state.json"))
        store.save_roles(roles.snapshot())
        store.save_statuses(registry.records())

        # On recovery:
        if store.has_state():
            roles.restore(store.load_roles())
    """

    def __init__(self, storage_path: Path) -> None:
        self._path = storage_path
        self._state: dict[str, Any] = {}
        if storage_path.exists():
            self._load()

    def has_state(self) -> bool:
        return bool(self._state)

    def _load(self) -> None:
        with self._path.open("r", encoding="utf-8") as f:
            self._state = json.load(f)

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as f:
            json.dump(self._state, f, indent=2, sort_keys=True, ensure_ascii=False)

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def save_roles(self, snapshot: dict[str, Any]) -> None:
        self._state["roles"] = snapshot
        self._save()

    def load_roles(self) -> dict[str, Any]:
        return self._state.get("roles", {"members": {}, "admins": {}})

    # ------------------------------------------------------------------
    # Escrow
    # ------------------------------------------------------------------

    def save_escrow(self, balances: dict[str, int]) -> None:
        self._state["escrow"] = dict(balances)
        self._save()

    def load_escrow(self) -> dict[str, int]:
        return {k: int(v) for k, v in self._state.get("escrow", {}).items()}

    # ------------------------------------------------------------------
    # Status records and settings
    # ------------------------------------------------------------------

    def save_statuses(self, records: list[StatusRecord]) -> None:
        self._state["statuses"] = [
            {
                "client": r.client,
                "target": r.target,
                "aml_id": r.aml_id.hex(),
                "c_score": r.c_score,
                "flags": r.flags,
                "fee": r.fee,
                "timestamp": r.timestamp.isoformat(),
            }
            for r in records
        ]
        self._save()

    def load_statuses(self) -> list[StatusRecord]:
        return [
            StatusRecord(
                client=data["client"],
                target=data["target"],
                aml_id=bytes.fromhex(data["aml_id"]),
                c_score=data["c_score"],
                flags=data["flags"],
                fee=data["fee"],
                timestamp=datetime.fromisoformat(data["timestamp"]),
            )
            for data in self._state.get("statuses", [])
        ]

    def save_settings(self, fee_account: str, default_fee: int) -> None:
        self._state["settings"] = {
            "fee_account": fee_account,
            "default_fee": default_fee,
        }
        self._save()

    def load_settings(self) -> Optional[dict[str, Any]]:
        return self._state.get("settings")

    # ------------------------------------------------------------------
    # Custody
    # ------------------------------------------------------------------

    def save_custody(self, balances: dict[str, dict[str, int]]) -> None:
        self._state["custody"] = balances
        self._save()

    def load_custody(self) -> Optional[dict[str, dict[str, int]]]:
        return self._state.get("custody")
