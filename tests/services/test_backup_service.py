"""Tests for backup metadata records."""

import pytest

from supply_kernel.exceptions import ForbiddenError, ValidationError


class TestBackups:
    def test_create_and_delete(self, ledger, admin, data_log_rows):
        backup = ledger.create_backup(
            {"filename": "ledger-2024-06-15.sql.gz", "file_ref": "backups/1.gz",
             "file_size": 2048, "description": "Nightly"},
            admin.id,
        )
        assert backup.created_by_id == admin.id

        ledger.delete_backup(backup.id, admin.id)

        actions = sorted(r.action for r in data_log_rows("Backup", backup.id))
        assert actions == ["CREATE", "DELETE"]

    @pytest.mark.parametrize("file_size", [-1, "2048", True])
    def test_file_size_must_be_non_negative_int(self, ledger, admin, file_size):
        with pytest.raises(ValidationError) as exc_info:
            ledger.create_backup(
                {"filename": "x.gz", "file_ref": "backups/x.gz", "file_size": file_size},
                admin.id,
            )
        assert exc_info.value.field == "file_size"

    def test_requires_manage_settings(self, ledger, editor):
        with pytest.raises(ForbiddenError):
            ledger.create_backup(
                {"filename": "x.gz", "file_ref": "backups/x.gz", "file_size": 1}, editor.id
            )
