"""Registry configuration — deployment parameters for one registry instance.

Loaded from config/registry_params.json, optionally overridden by
environment variables (a .env file at the project root is honoured).
No magic defaults on load: if a key is missing from the config file, it
fails loud.

Two presets mirror the two deployment variants:
    RegistryConfig.native(admin)        escrow in native currency,
                                        recovery role keccak("RECOVER_ROLE")
    RegistryConfig.token(admin, token)  escrow in a designated token,
                                        recovery role keccak("recoverTokens()")
"""

from __future__ import annotations

import enum
import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

from dotenv import dotenv_values, find_dotenv

from amloracle.access.roles import RECOVER_ROLE_LABEL, RECOVER_TOKENS_ROLE_LABEL, role_id
from amloracle.ledger.custody import NATIVE_ASSET
from amloracle.errors import InvalidClient
from amloracle.models.identity import require_identity, same_identity
from amloracle.models.status import FeePolicy

CONFIG_FILE = "registry_params.json"
DEFAULT_REGISTRY_ADDRESS = "0x000000000000000000000000000000000a3100a1"
DEFAULT_QUERY_FEE = 123

ENV_PREFIX = "AMLORACLE_"


class DeploymentVariant(str, enum.Enum):
    """How fetch fees may be paid in this deployment."""
    PREPAID = "prepaid"
    PAY_AS_YOU_GO = "pay_as_you_go"


@dataclass(frozen=True)
class RegistryConfig:
    """Immutable construction parameters for AmlOracleService."""
    admin: str
    default_fee: int
    denomination: str = NATIVE_ASSET
    variant: DeploymentVariant = DeploymentVariant.PREPAID
    fee_policy: FeePolicy = FeePolicy.UNSET_ONLY
    recover_role_label: str = RECOVER_ROLE_LABEL
    registry_address: str = DEFAULT_REGISTRY_ADDRESS

    def __post_init__(self) -> None:
        require_identity(self.admin, "The admin must not be the null identity")
        require_identity(
            self.registry_address, "The registry address must not be the null identity"
        )
        if same_identity(self.admin, self.registry_address):
            raise InvalidClient("The admin must not be the registry's own custody address")
        if isinstance(self.default_fee, bool) or not isinstance(self.default_fee, int):
            raise ValueError("default_fee must be an integer")
        if self.default_fee < 0:
            raise ValueError("default_fee must not be negative")
        if not self.denomination:
            raise ValueError("denomination must not be empty")

    @property
    def recover_role(self) -> str:
        """Role identifier gating stray-asset recovery."""
        return role_id(self.recover_role_label)

    @property
    def supports_direct_payment(self) -> bool:
        return self.variant == DeploymentVariant.PAY_AS_YOU_GO

    # ------------------------------------------------------------------
    # Presets
    # ------------------------------------------------------------------

    @classmethod
    def native(
        cls, admin: str, default_fee: int = DEFAULT_QUERY_FEE, **overrides: Any,
    ) -> RegistryConfig:
        """Native-currency deployment."""
        return cls(admin=admin, default_fee=default_fee, **overrides)

    @classmethod
    def token(
        cls,
        admin: str,
        token: str,
        default_fee: int = DEFAULT_QUERY_FEE,
        **overrides: Any,
    ) -> RegistryConfig:
        """Token-denominated deployment."""
        overrides.setdefault("recover_role_label", RECOVER_TOKENS_ROLE_LABEL)
        return cls(admin=admin, default_fee=default_fee, denomination=token, **overrides)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RegistryConfig:
        if "version" not in data:
            raise ValueError(f"{CONFIG_FILE} missing version")
        try:
            return cls(
                admin=data["admin"],
                default_fee=data["default_fee"],
                denomination=data["denomination"],
                variant=DeploymentVariant(data["variant"]),
                fee_policy=FeePolicy(data["fee_policy"]),
                recover_role_label=data["recover_role_label"],
                registry_address=data["registry_address"],
            )
        except KeyError as e:
            raise ValueError(f"{CONFIG_FILE} missing key: {e.args[0]}") from e

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> RegistryConfig:
        """Load from the canonical config directory."""
        path = config_dir / CONFIG_FILE
        with path.open("r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    @classmethod
    def from_env(
        cls, base: RegistryConfig, env_file: Optional[Path] = None,
    ) -> RegistryConfig:
        """Apply AMLORACLE_* environment overrides on top of base.

        Variables already set in the process environment win over the
        .env file, and the .env file is read without touching os.environ.
        """
        dotenv_path = env_file if env_file is not None else find_dotenv(usecwd=True)
        env = {**dotenv_values(dotenv_path), **os.environ}
        parsers: dict[str, tuple[str, Any]] = {
            "ADMIN": ("admin", str),
            "DEFAULT_FEE": ("default_fee", int),
            "DENOMINATION": ("denomination", str),
            "VARIANT": ("variant", DeploymentVariant),
            "FEE_POLICY": ("fee_policy", FeePolicy),
            "REGISTRY_ADDRESS": ("registry_address", str),
        }
        changes: dict[str, Any] = {}
        for suffix, (field_name, parse) in parsers.items():
            raw = env.get(ENV_PREFIX + suffix)
            if raw is not None:
                changes[field_name] = parse(raw)
        return replace(base, **changes) if changes else base
