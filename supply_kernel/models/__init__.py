"""ORM models for the supply ledger."""

from supply_kernel.models.backup import BackupRecord
from supply_kernel.models.data_log import DataLog, DataLogAction
from supply_kernel.models.document import Document
from supply_kernel.models.material import Batch, Material, PurchaseType
from supply_kernel.models.reference import (
    REFERENCE_KINDS,
    Brand,
    MaterialType,
    Physician,
    ReferenceKind,
    Vendor,
)
from supply_kernel.models.usage import UsageRecord
from supply_kernel.models.user import Permission, User, user_permissions

__all__ = [
    "BackupRecord",
    "Batch",
    "Brand",
    "DataLog",
    "DataLogAction",
    "Document",
    "Material",
    "MaterialType",
    "Permission",
    "Physician",
    "PurchaseType",
    "REFERENCE_KINDS",
    "ReferenceKind",
    "UsageRecord",
    "User",
    "Vendor",
    "import_all_models",
    "user_permissions",
]


def import_all_models() -> None:
    """Ensure every model module is imported so Base.metadata is complete.

    Importing this package already does that; the function gives callers
    (create_tables, tests) an explicit hook.
    """
    return None
