"""AML oracle — role-gated compliance-status registry with fee-charging reads."""

from amloracle.config import DeploymentVariant, RegistryConfig
from amloracle.service import AmlOracleService, ServiceResult

__all__ = [
    "AmlOracleService",
    "DeploymentVariant",
    "RegistryConfig",
    "ServiceResult",
]
