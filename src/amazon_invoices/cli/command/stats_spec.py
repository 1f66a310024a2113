from __future__ import annotations

"""
Tests for stats and cleanup commands.
"""

from pathlib import Path
from tempfile import TemporaryDirectory

from amazon_invoices.cli.command import cleanup, stats
from amazon_invoices.cli.command import init as cmd_init
from amazon_invoices.storage.gateway import SqliteGateway
from amazon_invoices.storage.processing_log import ProcessingLog
from amazon_invoices.workspace import Workspace


def _workspace_with_old_log(tmpdir: str) -> Workspace:
    workspace = Workspace(root=Path(tmpdir))
    cmd_init.run(workspace=workspace)
    with SqliteGateway(workspace.database_path) as db:
        log = ProcessingLog(db)
        log.add(None, "imported", "recent entry", actor="alice")
        entry_id = log.add(None, "imported", "ancient entry", actor="alice")
        db.execute(
            f"UPDATE {log.log_table} SET created_at = datetime('now', 'localtime', '-400 days') WHERE id = ?",
            [entry_id],
        )
    return workspace


def _log_size(workspace: Workspace) -> int:
    with SqliteGateway(workspace.database_path) as db:
        return len(ProcessingLog(db).recent(100))


class DescribeStats:
    def it_should_report_on_an_empty_workspace(self):
        with TemporaryDirectory() as tmpdir:
            workspace = Workspace(root=Path(tmpdir))
            cmd_init.run(workspace=workspace)

            assert stats.run(workspace=workspace, days=7) == 0

    def it_should_show_recent_activity(self):
        with TemporaryDirectory() as tmpdir:
            workspace = _workspace_with_old_log(tmpdir)

            assert stats.run(workspace=workspace, recent=5) == 0

    def it_should_require_an_initialized_workspace(self):
        with TemporaryDirectory() as tmpdir:
            assert stats.run(workspace=Workspace(root=Path(tmpdir))) == 1


class DescribeCleanup:
    def it_should_remove_old_entries_only_with_write(self):
        with TemporaryDirectory() as tmpdir:
            workspace = _workspace_with_old_log(tmpdir)

            assert cleanup.run(workspace=workspace, days=90) == 0
            assert _log_size(workspace) == 2

            assert cleanup.run(workspace=workspace, days=90, write=True) == 0
            assert _log_size(workspace) == 1

    def it_should_default_to_configured_max_age(self):
        with TemporaryDirectory() as tmpdir:
            workspace = _workspace_with_old_log(tmpdir)

            assert cleanup.run(workspace=workspace, write=True) == 0
            assert _log_size(workspace) == 1
