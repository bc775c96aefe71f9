"""Status registry — the (client, target) → AML assessment store.

Writes are gated by the operator role; fee settings by the admin role.
Reads of metadata are free and open to anyone (price discovery). The one
read with a financial side effect is fetch(): the caller is the client,
the fee is resolved from the record (or the default fee, per FeePolicy),
and the injected FeeSettlement moves it to the fee account before the
payload is returned.

Like the escrow ledger, this is a pure state holder. Audit events and
transaction boundaries belong to the service layer.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from amloracle.access.roles import ADMIN_ROLE, OPERATOR_ROLE, RoleRegistry
from amloracle.errors import FeeTooHigh, InvalidAmount, NotFound
from amloracle.ledger.settlement import FeeSettlement, Settlement
from amloracle.models.identity import require_identity
from amloracle.models.status import FeePolicy, StatusRecord


class StatusRegistry:
    """Role-gated assessment records with fee-charging fetch.

    Usage:
        registry = StatusRegistry(roles, fee_account="0xFees", default_fee=123)
        registry.set_status(operator, "0xClient", "target", b"id", 99, 0xFF, 100, now)
        record, settlement = registry.fetch("0xClient", 100, "target", prepaid)
    """

    def __init__(
        self,
        roles: RoleRegistry,
        fee_account: str,
        default_fee: int,
        fee_policy: FeePolicy = FeePolicy.UNSET_ONLY,
        write_role: str = OPERATOR_ROLE,
        settings_role: str = ADMIN_ROLE,
    ) -> None:
        self._roles = roles
        self._fee_account = require_identity(fee_account, "The fee account must not be the null identity")
        self._default_fee = _require_fee(default_fee)
        self._fee_policy = fee_policy
        self._write_role = write_role
        self._settings_role = settings_role
        self._records: dict[tuple[str, str], StatusRecord] = {}

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @property
    def fee_account(self) -> str:
        return self._fee_account

    @property
    def default_fee(self) -> int:
        return self._default_fee

    @property
    def fee_policy(self) -> FeePolicy:
        return self._fee_policy

    def set_default_fee(self, caller: str, fee: int) -> int:
        """Replace the default fee. Returns the previous value."""
        self._roles.require(
            self._settings_role, caller, "Caller is not allowed to set the default fee"
        )
        fee = _require_fee(fee)
        previous = self._default_fee
        self._default_fee = fee
        return previous

    def set_fee_account(self, caller: str, account: str) -> str:
        """Replace the fee account. Returns the previous account."""
        self._roles.require(
            self._settings_role, caller, "Caller is not allowed to set the fee account"
        )
        account = require_identity(account, "The fee account must not be the null identity")
        previous = self._fee_account
        self._fee_account = account
        return previous

    # ------------------------------------------------------------------
    # Operator writes
    # ------------------------------------------------------------------

    def set_status(
        self,
        caller: str,
        client: str,
        target: str,
        aml_id: bytes,
        c_score: int,
        flags: int,
        fee: Optional[int],
        now: datetime,
    ) -> StatusRecord:
        """Create or overwrite the record for (client, target)."""
        self._roles.require(
            self._write_role, caller, "Caller is not allowed to set AML statuses"
        )
        client = require_identity(client, "Cannot set AML status for the null identity")
        record = StatusRecord(
            client=client,
            target=target,
            aml_id=aml_id,
            c_score=c_score,
            flags=flags,
            fee=fee,
            timestamp=now,
        )
        self._records[record.key] = record
        return record

    def delete_status(
        self, caller: str, client: str, target: str,
    ) -> Optional[StatusRecord]:
        """Remove the record if present. Returns the removed record, if any."""
        self._roles.require(
            self._write_role, caller, "Caller is not allowed to delete AML statuses"
        )
        client = require_identity(client, "Cannot delete AML status for the null identity")
        return self._records.pop((client, target), None)

    def check_notify(self, caller: str, client: str) -> str:
        """Validate an operator → client notification. Returns the client."""
        self._roles.require(
            self._write_role, caller, "Caller is not allowed to notify the clients"
        )
        return require_identity(client, "Client must not be the null identity")

    # ------------------------------------------------------------------
    # Free reads
    # ------------------------------------------------------------------

    def get_record(self, client: str, target: str) -> StatusRecord:
        client = require_identity(client, "Client must not be the null identity")
        record = self._records.get((client, target))
        if record is None:
            raise NotFound("No such AML status", client=client, target=target)
        return record

    def get_metadata(self, client: str, target: str) -> tuple[datetime, int]:
        """Return (timestamp, effective fee) without charging anything."""
        record = self.get_record(client, target)
        return record.timestamp, self.required_fee(record)

    def get_fee(self, client: str, target: str) -> int:
        return self.get_metadata(client, target)[1]

    def get_timestamp(self, client: str, target: str) -> datetime:
        return self.get_record(client, target).timestamp

    def required_fee(self, record: StatusRecord) -> int:
        return self._fee_policy.resolve(record.fee, self._default_fee)

    def records(self) -> list[StatusRecord]:
        return list(self._records.values())

    # ------------------------------------------------------------------
    # Paid read
    # ------------------------------------------------------------------

    def fetch(
        self,
        caller: str,
        max_fee: int,
        target: str,
        settlement: FeeSettlement,
    ) -> tuple[StatusRecord, Settlement]:
        """Charge the caller for its record about target and return it.

        Raises NotFound if no record exists and FeeTooHigh if the
        required fee exceeds max_fee. Any settlement failure propagates.
        """
        if isinstance(max_fee, bool) or not isinstance(max_fee, int) or max_fee < 0:
            raise InvalidAmount("Maximum fee must be a non-negative integer")
        record = self.get_record(caller, target)
        required = self.required_fee(record)
        if required > max_fee:
            raise FeeTooHigh(
                "Required fee is greater than the maximum specified fee",
                required=required,
                max_fee=max_fee,
            )
        receipt = settlement.settle_fee(record.client, self._fee_account, required)
        return record, receipt

    # ------------------------------------------------------------------
    # Transaction support
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        return {
            "fee_account": self._fee_account,
            "default_fee": self._default_fee,
            "records": dict(self._records),
        }

    def restore(self, state: dict[str, Any]) -> None:
        self._fee_account = state["fee_account"]
        self._default_fee = state["default_fee"]
        self._records = dict(state["records"])


def _require_fee(fee: int) -> int:
    if isinstance(fee, bool) or not isinstance(fee, int) or fee < 0:
        raise InvalidAmount("Fee must be a non-negative integer")
    return fee
