"""
Permissions -- Capability names and normalization-tolerant matching.

Responsibility:
    Names the capabilities the kernel checks and provides the ONE function
    that decides whether a granted permission set satisfies a requirement.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Comparison ignores case, whitespace, and punctuation.  "EditMaterials",
      "edit_materials", and "Edit Materials" are the same permission.
    - No other module compares permission names directly.

Audit relevance:
    Stored permission names were seeded in PascalCase while checks use
    spaced names.  Normalization keeps both spellings valid so existing
    grants are never silently lost.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable

_NON_ALNUM = re.compile(r"[^0-9a-z]")


class Capability(str, Enum):
    """Capabilities required by guarded operations."""

    VIEW_ONLY = "View Only"
    EDIT_MATERIALS = "Edit Materials"
    RECORD_USAGE = "Record Usage"
    EDIT_DOCUMENTS = "Edit Documents"
    MANAGE_SETTINGS = "Manage Settings"
    MANAGE_USERS = "Manage Users"


# Stored names and descriptions used when seeding the permissions table
SEED_PERMISSIONS: dict[Capability, tuple[str, str]] = {
    Capability.VIEW_ONLY: ("ViewOnly", "Can only view data, no modifications"),
    Capability.EDIT_MATERIALS: ("EditMaterials", "Can add, edit, and delete materials and batches"),
    Capability.RECORD_USAGE: ("RecordUsage", "Can record material usage in procedures"),
    Capability.EDIT_DOCUMENTS: ("EditDocuments", "Can upload and manage documents"),
    Capability.MANAGE_SETTINGS: (
        "ManageSettings",
        "Can manage reference data, backups, and view the data log",
    ),
    Capability.MANAGE_USERS: ("ManageUsers", "Can create users and grant permissions"),
}


def normalize_permission_name(name: str) -> str:
    """Fold case and drop everything that is not a letter or digit."""
    return _NON_ALNUM.sub("", name.casefold())


def has_permission(granted: Iterable[str], required: Capability | str) -> bool:
    """
    Check whether any granted permission matches the required one.

    Args:
        granted: Permission names held by the identity, in any spelling.
        required: The capability (or raw name) the operation needs.
    """
    wanted = normalize_permission_name(
        required.value if isinstance(required, Capability) else required
    )
    if not wanted:
        return False
    return any(normalize_permission_name(name) == wanted for name in granted)
