"""AML oracle service — unified facade for the compliance-status registry.

This is the primary interface for programmatic access. It orchestrates
all subsystems:
- Role registry (grant, revoke, renounce, role admins)
- Settings (fee account, default fee)
- Escrow ledger (deposit, deposit on behalf of another identity, withdraw)
- Status registry (set, delete, metadata, fetch, notify, ask)
- Fee settlement (prepaid, and pay-as-you-go where the deployment allows it)
- Stray-asset recovery
- Persistence (audit event log, state store)

Every public operation is one all-or-nothing transaction. The service
snapshots all mutable state (including the custody substrate) before the
operation runs; any failure restores the snapshot exactly. Audit events
are staged in a local buffer and appended to the event log only once the
operation has fully succeeded, so a failed call emits nothing.

All operations produce typed results. Free single-value reads that cannot
fail (has_role, balance_of, ...) return plain values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from amloracle.access.roles import ADMIN_ROLE, OPERATOR_ROLE, RoleRegistry
from amloracle.config import RegistryConfig
from amloracle.errors import InvalidAmount, RegistryError, UnsupportedOperation
from amloracle.ledger.custody import AssetCustody, InMemoryAssetBook
from amloracle.ledger.escrow import EscrowLedger
from amloracle.ledger.recovery import StrayAssetRecovery
from amloracle.ledger.settlement import (
    FeeSettlement,
    PayAsYouGoSettlement,
    PrepaidSettlement,
)
from amloracle.models.identity import canonical_identity, require_identity
from amloracle.persistence.event_log import EventKind, EventLog, EventRecord
from amloracle.persistence.state_store import StateStore
from amloracle.registry.status import StatusRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error_code: Optional[str] = None


@dataclass(frozen=True)
class _StagedEvent:
    kind: EventKind
    actor_id: str
    payload: dict[str, Any]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AmlOracleService:
    """Compliance-status registry facade.

    Usage:
        config = RegistryConfig.native(admin="0xAdmin")
        custody = InMemoryAssetBook()
        service = AmlOracleService(config, custody=custody)

        service.set_status("0xAdmin", "0xClient", "target", b"123456789", 99, 0xFF, 100)
        service.deposit("0xClient", 100)
        result = service.fetch("0xClient", 100, "target")
        result.data["c_score"]   # 99

    Persistence (optional):
        service = AmlOracleService(config, event_log=log, state_store=store)
        # State is persisted after each commit and loaded on construction.
    """

    def __init__(
        self,
        config: RegistryConfig,
        custody: Optional[AssetCustody] = None,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._config = config
        self._custody = custody if custody is not None else InMemoryAssetBook()
        self._event_log = event_log if event_log is not None else EventLog()
        self._state_store = state_store
        self._clock = clock or _utc_now
        self._recover_role = config.recover_role

        self._roles = RoleRegistry()
        self._escrow = EscrowLedger(
            self._custody, config.denomination, config.registry_address,
        )
        self._statuses = StatusRegistry(
            self._roles,
            fee_account=config.admin,
            default_fee=config.default_fee,
            fee_policy=config.fee_policy,
        )
        self._recovery = StrayAssetRecovery(self._escrow, self._custody)

        self._prepaid: FeeSettlement = PrepaidSettlement(self._escrow)
        self._direct: Optional[FeeSettlement] = None
        if config.supports_direct_payment:
            self._direct = PayAsYouGoSettlement(self._escrow, self._custody)

        if state_store is not None and state_store.has_state():
            self._load_state(state_store)
        else:
            for role in (ADMIN_ROLE, OPERATOR_ROLE, self._recover_role):
                self._roles.seed(role, config.admin)

        # Continue numbering from a persisted log to avoid ID collisions
        self._event_counter = self._event_log.count
        self._staged: Optional[list[_StagedEvent]] = None

        # Set when a StateStore write fails after events were appended.
        # In-memory state still matches the audit trail; the store is stale.
        self._persistence_degraded = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def config(self) -> RegistryConfig:
        return self._config

    @property
    def custody(self) -> AssetCustody:
        return self._custody

    @property
    def recover_role(self) -> str:
        return self._recover_role

    @property
    def persistence_degraded(self) -> bool:
        return self._persistence_degraded

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        return self._event_log.events(kind)

    def status(self) -> dict[str, Any]:
        """Summary of registry state."""
        return {
            "variant": self._config.variant.value,
            "denomination": self._config.denomination,
            "registry_address": self._config.registry_address,
            "fee_account": self._statuses.fee_account,
            "default_fee": self._statuses.default_fee,
            "fee_policy": self._statuses.fee_policy.value,
            "status_records": len(self._statuses.records()),
            "escrow_accounts": len(self._escrow.accounts()),
            "total_escrowed": self._escrow.total_escrowed(),
            "held_balance": self._escrow.held_balance(),
            "admins": list(self._roles.members(ADMIN_ROLE)),
            "operators": list(self._roles.members(OPERATOR_ROLE)),
            "events": self._event_log.count,
            "persistence_degraded": self._persistence_degraded,
        }

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def has_role(self, role: str, principal: str) -> bool:
        return self._roles.has_role(role, principal)

    def role_members(self, role: str) -> tuple[str, ...]:
        return self._roles.members(role)

    def role_member_count(self, role: str) -> int:
        return self._roles.member_count(role)

    def role_admin(self, role: str) -> str:
        return self._roles.admin_of(role)

    def role_member(self, role: str, index: int) -> ServiceResult:
        """Look up the index-th holder of role, in grant order."""
        return self._query(lambda: {"account": self._roles.member(role, index)})

    def grant_role(self, caller: str, role: str, principal: str) -> ServiceResult:
        def _grant() -> dict[str, Any]:
            changed = self._roles.grant(caller, role, principal)
            if changed:
                self._emit(EventKind.ROLE_GRANTED, caller, {"role": role, "account": principal})
                logger.info("Role %s granted to %s by %s", role, principal, caller)
            return {"role": role, "account": principal, "changed": changed}

        return self._execute("grant_role", caller, _grant)

    def revoke_role(self, caller: str, role: str, principal: str) -> ServiceResult:
        def _revoke() -> dict[str, Any]:
            changed = self._roles.revoke(caller, role, principal)
            if changed:
                self._emit(EventKind.ROLE_REVOKED, caller, {"role": role, "account": principal})
                logger.info("Role %s revoked from %s by %s", role, principal, caller)
            return {"role": role, "account": principal, "changed": changed}

        return self._execute("revoke_role", caller, _revoke)

    def renounce_role(self, caller: str, role: str, principal: str) -> ServiceResult:
        def _renounce() -> dict[str, Any]:
            changed = self._roles.renounce(caller, role, principal)
            if changed:
                self._emit(EventKind.ROLE_REVOKED, caller, {"role": role, "account": principal})
                logger.info("Role %s renounced by %s", role, principal)
            return {"role": role, "account": principal, "changed": changed}

        return self._execute("renounce_role", caller, _renounce)

    def set_role_admin(self, caller: str, role: str, admin_role: str) -> ServiceResult:
        def _set_admin() -> dict[str, Any]:
            previous = self._roles.set_admin(caller, role, admin_role)
            self._emit(EventKind.ROLE_ADMIN_CHANGED, caller, {
                "role": role,
                "previous_admin_role": previous,
                "new_admin_role": admin_role,
            })
            return {"role": role, "previous_admin_role": previous, "new_admin_role": admin_role}

        return self._execute("set_role_admin", caller, _set_admin)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_default_fee(self) -> int:
        return self._statuses.default_fee

    def get_fee_account(self) -> str:
        return self._statuses.fee_account

    def set_default_fee(self, caller: str, fee: int) -> ServiceResult:
        def _set() -> dict[str, Any]:
            previous = self._statuses.set_default_fee(caller, fee)
            self._emit(EventKind.DEFAULT_FEE_SET, caller, {
                "old_default_fee": previous,
                "new_default_fee": fee,
            })
            logger.info("Default fee changed %d -> %d by %s", previous, fee, caller)
            return {"old_default_fee": previous, "new_default_fee": fee}

        return self._execute("set_default_fee", caller, _set)

    def set_fee_account(self, caller: str, account: str) -> ServiceResult:
        def _set() -> dict[str, Any]:
            previous = self._statuses.set_fee_account(caller, account)
            current = self._escrow.require_external(
                self._statuses.fee_account, "The registry cannot be its own fee account"
            )
            self._emit(EventKind.FEE_ACCOUNT_SET, caller, {
                "old_fee_account": previous,
                "new_fee_account": current,
            })
            logger.info("Fee account changed %s -> %s by %s", previous, current, caller)
            return {"old_fee_account": previous, "new_fee_account": current}

        return self._execute("set_fee_account", caller, _set)

    # ------------------------------------------------------------------
    # Escrow
    # ------------------------------------------------------------------

    def balance_of(self, identity: str) -> int:
        return self._escrow.balance_of(identity)

    def total_escrowed(self) -> int:
        return self._escrow.total_escrowed()

    def held_balance(self, asset: Optional[str] = None) -> int:
        """Balance of asset (default: the denomination) held by the registry."""
        return self._custody.balance_of(
            asset or self._config.denomination, self._config.registry_address,
        )

    def deposit(self, caller: str, amount: int) -> ServiceResult:
        """Move amount from the caller's external balance into its escrow."""
        return self.deposit_for(caller, caller, amount)

    def deposit_for(self, caller: str, beneficiary: str, amount: int) -> ServiceResult:
        """Fund beneficiary's escrow from the caller's external balance."""
        def _deposit() -> dict[str, Any]:
            balance = self._escrow.deposit(caller, beneficiary, amount)
            account = canonical_identity(beneficiary)
            self._emit(EventKind.DEPOSITED, caller, {
                "account": account,
                "payer": caller,
                "amount": amount,
                "balance": balance,
            })
            return {"account": account, "amount": amount, "balance": balance}

        return self._execute("deposit", caller, _deposit)

    def withdraw(self, caller: str, amount: int) -> ServiceResult:
        """Return amount of the caller's escrow to its external balance."""
        def _withdraw() -> dict[str, Any]:
            balance = self._escrow.withdraw(caller, amount)
            self._emit(EventKind.WITHDRAWN, caller, {
                "account": caller,
                "amount": amount,
                "balance": balance,
            })
            return {"account": caller, "amount": amount, "balance": balance}

        return self._execute("withdraw", caller, _withdraw)

    # ------------------------------------------------------------------
    # Status records
    # ------------------------------------------------------------------

    def set_status(
        self,
        caller: str,
        client: str,
        target: str,
        aml_id: bytes,
        c_score: int,
        flags: int,
        fee: Optional[int] = None,
    ) -> ServiceResult:
        """Create or overwrite the assessment for (client, target)."""
        def _set() -> dict[str, Any]:
            record = self._statuses.set_status(
                caller, client, target, aml_id, c_score, flags, fee, self._clock(),
            )
            self._emit(EventKind.AML_STATUS_SET, caller, {
                "client": record.client,
                "target": record.target,
                "c_score": record.c_score,
                "flags": record.flags,
                "fee": record.fee,
            })
            return {
                "client": record.client,
                "target": record.target,
                "timestamp": record.timestamp.isoformat(),
            }

        return self._execute("set_status", caller, _set)

    def delete_status(self, caller: str, client: str, target: str) -> ServiceResult:
        """Remove the assessment for (client, target); absence is not an error."""
        def _delete() -> dict[str, Any]:
            removed = self._statuses.delete_status(caller, client, target)
            existed = removed is not None
            self._emit(EventKind.AML_STATUS_DELETED, caller, {
                "client": canonical_identity(client),
                "target": target,
                "existed": existed,
            })
            return {"client": canonical_identity(client), "target": target, "existed": existed}

        return self._execute("delete_status", caller, _delete)

    def get_metadata(self, client: str, target: str) -> ServiceResult:
        """Free price-discovery read: timestamp and effective fee."""
        def _metadata() -> dict[str, Any]:
            timestamp, fee = self._statuses.get_metadata(client, target)
            return {"timestamp": timestamp, "fee": fee}

        return self._query(_metadata)

    def get_fee(self, client: str, target: str) -> ServiceResult:
        return self._query(lambda: {"fee": self._statuses.get_fee(client, target)})

    def get_timestamp(self, client: str, target: str) -> ServiceResult:
        return self._query(
            lambda: {"timestamp": self._statuses.get_timestamp(client, target)}
        )

    def fetch(self, caller: str, max_fee: int, target: str) -> ServiceResult:
        """Pay from escrow for the caller's assessment of target and return it."""
        return self._fetch_with(caller, max_fee, target, self._prepaid)

    def fetch_direct(self, caller: str, max_fee: int, target: str) -> ServiceResult:
        """Pay-as-you-go fetch: the fee is pulled from the caller's external balance."""
        if self._direct is None:
            err = UnsupportedOperation(
                "Pay-as-you-go fetch is not available in a prepaid deployment"
            )
            return ServiceResult(success=False, errors=[err.message], error_code=err.code)
        return self._fetch_with(caller, max_fee, target, self._direct)

    def notify(self, caller: str, client: str, message: str) -> ServiceResult:
        """One-way operator → client advisory. Audit event only."""
        def _notify() -> dict[str, Any]:
            account = self._statuses.check_notify(caller, client)
            self._emit(EventKind.NOTIFIED, caller, {"client": account, "message": message})
            return {"client": account}

        return self._execute("notify", caller, _notify)

    def ask_status(self, caller: str, max_fee: int, target: str) -> ServiceResult:
        """Signal the operator that caller wants an assessment of target."""
        def _ask() -> dict[str, Any]:
            client = require_identity(caller, "Client must not be the null identity")
            if isinstance(max_fee, bool) or not isinstance(max_fee, int) or max_fee < 0:
                raise InvalidAmount("Maximum fee must be a non-negative integer")
            self._emit(EventKind.AML_STATUS_ASKED, caller, {
                "client": client,
                "max_fee": max_fee,
                "target": target,
            })
            return {"client": client, "max_fee": max_fee, "target": target}

        return self._execute("ask_status", caller, _ask)

    # ------------------------------------------------------------------
    # Stray-asset recovery
    # ------------------------------------------------------------------

    def recoverable(self, asset: str) -> int:
        return self._recovery.recoverable(asset)

    def recover(self, caller: str, asset: str) -> ServiceResult:
        """Send stray balance of asset (beyond escrowed funds) to the caller."""
        def _recover() -> dict[str, Any]:
            self._roles.require(
                self._recover_role, caller, "Caller is not allowed to recover tokens"
            )
            amount = self._recovery.recover(caller, asset)
            self._emit(EventKind.ASSETS_RECOVERED, caller, {
                "asset": asset,
                "amount": amount,
                "recipient": caller,
            })
            logger.info("Recovered %d of %s to %s", amount, asset, caller)
            return {"asset": asset, "amount": amount}

        return self._execute("recover", caller, _recover)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_state(self) -> Optional[str]:
        """Persist current state outside an operation (e.g. after funding
        the in-memory custody book). Returns a warning string on failure."""
        return self._safe_persist_post_audit()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fetch_with(
        self, caller: str, max_fee: int, target: str, settlement: FeeSettlement,
    ) -> ServiceResult:
        def _fetch() -> dict[str, Any]:
            record, receipt = self._statuses.fetch(caller, max_fee, target, settlement)
            self._emit(EventKind.AML_STATUS_FETCHED, caller, {
                "client": record.client,
                "target": record.target,
                "fee": receipt.amount,
                "fee_account": receipt.recipient,
                "source": receipt.source.value,
            })
            aml_id, c_score, flags = record.payload()
            return {
                "aml_id": aml_id,
                "c_score": c_score,
                "flags": flags,
                "fee": receipt.amount,
            }

        return self._execute("fetch", caller, _fetch)

    def _execute(
        self,
        operation: str,
        caller: str,
        body: Callable[[], dict[str, Any]],
    ) -> ServiceResult:
        """Run body as one atomic operation.

        On any failure the pre-call snapshot is restored and staged events
        are discarded. RegistryErrors become failed results; anything else
        propagates after the restore.
        """
        snapshot = self._snapshot()
        self._staged = []
        try:
            try:
                data = body()
            except RegistryError as e:
                self._restore(snapshot)
                logger.warning("%s by %s rolled back: %s", operation, caller, e)
                return ServiceResult(success=False, errors=[e.message], error_code=e.code)
            except Exception:
                self._restore(snapshot)
                raise

            err = self._commit_events(self._staged)
            if err:
                self._restore(snapshot)
                logger.warning("%s by %s rolled back: %s", operation, caller, err)
                return ServiceResult(success=False, errors=[err], error_code="AUDIT_FAILURE")
        finally:
            self._staged = None

        logger.debug("%s by %s committed", operation, caller)
        warning = self._safe_persist_post_audit()
        if warning:
            data["warning"] = warning
        return ServiceResult(success=True, data=data)

    def _query(self, body: Callable[[], dict[str, Any]]) -> ServiceResult:
        """Run a read-only body, converting RegistryErrors to results."""
        try:
            return ServiceResult(success=True, data=body())
        except RegistryError as e:
            return ServiceResult(success=False, errors=[e.message], error_code=e.code)

    def _emit(self, kind: EventKind, actor_id: str, payload: dict[str, Any]) -> None:
        if self._staged is None:
            raise RuntimeError("Audit events can only be emitted inside an operation")
        self._staged.append(_StagedEvent(kind, actor_id, payload))

    def _commit_events(self, staged: list[_StagedEvent]) -> Optional[str]:
        """Append staged events to the log. Returns error string or None."""
        now = self._clock()
        for pending in staged:
            try:
                event = EventRecord.create(
                    event_id=self._next_event_id(),
                    event_kind=pending.kind,
                    actor_id=pending.actor_id,
                    payload=pending.payload,
                    timestamp_utc=now,
                )
                self._event_log.append(event)
            except (ValueError, OSError) as e:
                return f"Event log failure: {e}"
        return None

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _snapshot(self) -> dict[str, Any]:
        return {
            "roles": self._roles.snapshot(),
            "escrow": self._escrow.snapshot(),
            "statuses": self._statuses.snapshot(),
            "custody": self._custody.snapshot(),
        }

    def _restore(self, snapshot: dict[str, Any]) -> None:
        self._roles.restore(snapshot["roles"])
        self._escrow.restore(snapshot["escrow"])
        self._statuses.restore(snapshot["statuses"])
        self._custody.restore(snapshot["custody"])

    def _load_state(self, store: StateStore) -> None:
        self._roles.restore(store.load_roles())
        self._escrow.restore(store.load_escrow())
        settings = store.load_settings() or {}
        self._statuses.restore({
            "fee_account": settings.get("fee_account", self._config.admin),
            "default_fee": settings.get("default_fee", self._config.default_fee),
            "records": {r.key: r for r in store.load_statuses()},
        })
        custody = store.load_custody()
        if custody is not None and isinstance(self._custody, InMemoryAssetBook):
            self._custody.restore(custody)

    def _persist_state(self) -> None:
        """Persist current state to the state store (if wired)."""
        if self._state_store is None:
            return
        self._state_store.save_roles(self._roles.snapshot())
        self._state_store.save_escrow(self._escrow.accounts())
        self._state_store.save_statuses(self._statuses.records())
        self._state_store.save_settings(
            self._statuses.fee_account, self._statuses.default_fee,
        )
        if isinstance(self._custody, InMemoryAssetBook):
            self._state_store.save_custody(self._custody.snapshot())

    def _safe_persist_post_audit(self) -> Optional[str]:
        """Persist state after audit events have been committed.

        MUST NOT roll back in-memory state: the audit trail is already
        durable. On failure the StateStore is stale, the degraded flag is
        set, and a warning string is returned.
        """
        try:
            self._persist_state()
            return None
        except OSError as e:
            self._persistence_degraded = True
            logger.warning("State store write failed: %s", e)
            return (
                f"Persistence degraded: {e} — state committed in audit trail "
                f"but StateStore is stale"
            )
