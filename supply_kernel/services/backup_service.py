"""
BackupService -- guarded registration of backup metadata.

Responsibility:
    Records where a backup artifact lives and how large it is.  Producing,
    storing, and restoring the bytes is done outside the kernel.
    Capability: Manage Settings.
"""

from typing import Any, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from supply_kernel.domain.clock import Clock
from supply_kernel.domain.dtos import BackupView, ChangeRecord
from supply_kernel.domain.permissions import Capability
from supply_kernel.domain.values import snapshot
from supply_kernel.exceptions import ValidationError
from supply_kernel.models.backup import BackupRecord
from supply_kernel.services.base import (
    BaseService,
    coerce_uuid,
    reject_unknown_fields,
    require_fields,
)
from supply_kernel.services.mutation_guard import Actor, Mutation, MutationGuard

BACKUP_FIELDS = ("filename", "file_ref", "file_size", "description")


class BackupService(BaseService):
    def __init__(self, session: Session, guard: MutationGuard, clock: Clock | None = None):
        super().__init__(session, clock)
        self._guard = guard

    def create_backup(self, fields: Mapping[str, Any], user_id: UUID | str) -> BackupView:
        fields = dict(fields)
        reject_unknown_fields(fields, BACKUP_FIELDS)
        require_fields(fields, ("filename", "file_ref", "file_size"))
        file_size = fields["file_size"]
        if isinstance(file_size, bool) or not isinstance(file_size, int) or file_size < 0:
            raise ValidationError("file_size must be a non-negative integer", field="file_size")

        def create_backup(actor: Actor) -> Mutation[BackupView]:
            record = BackupRecord(created_by_id=actor.user_id, **fields)
            self.session.add(record)
            self.session.flush()
            return Mutation(
                result=BackupView.from_model(record),
                change=ChangeRecord(
                    action="CREATE",
                    table_name="Backup",
                    record_id=str(record.id),
                    new_values=snapshot(record, BACKUP_FIELDS),
                    description=f"Created backup: {record.filename}",
                ),
            )

        return self._guard.execute(user_id, Capability.MANAGE_SETTINGS, create_backup).value

    def delete_backup(self, backup_id: UUID | str, user_id: UUID | str) -> BackupView:
        def delete_backup(actor: Actor) -> Mutation[BackupView]:
            record = self._get_or_raise(
                BackupRecord, coerce_uuid(backup_id, "backup_id"), "Backup"
            )
            view = BackupView.from_model(record)
            before = snapshot(record, BACKUP_FIELDS)
            self.session.delete(record)
            self.session.flush()
            return Mutation(
                result=view,
                change=ChangeRecord(
                    action="DELETE",
                    table_name="Backup",
                    record_id=str(view.id),
                    old_values=before,
                    description=f"Deleted backup: {view.filename}",
                ),
            )

        return self._guard.execute(user_id, Capability.MANAGE_SETTINGS, delete_backup).value
