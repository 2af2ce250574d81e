"""Service layer exported symbols."""

from .prerequisite import PoolContext, PreRequisiteCheckError, PrerequisiteChecker
from .status import derive_status
from .pool_list import PoolListing, PoolListService
from .sfdx import SfdxCli, SfdxCommandError
from .provisioning import ProvisioningError, ProvisioningService
from .allocation import AllocationService
from .pool_fill import PoolFillResult, PoolFillService
from .notification import NotificationService

__all__ = [
    "PoolContext",
    "PreRequisiteCheckError",
    "PrerequisiteChecker",
    "derive_status",
    "PoolListing",
    "PoolListService",
    "SfdxCli",
    "SfdxCommandError",
    "ProvisioningError",
    "ProvisioningService",
    "AllocationService",
    "PoolFillResult",
    "PoolFillService",
    "NotificationService",
]
