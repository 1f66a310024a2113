from __future__ import annotations

"""
Tests for download command.
"""

from datetime import date
from pathlib import Path
from tempfile import TemporaryDirectory

from amazon_invoices.cli.command import init as cmd_init
from amazon_invoices.cli.command.download import run
from amazon_invoices.storage.gateway import SqliteGateway
from amazon_invoices.storage.invoice_repository import InvoiceRepository
from amazon_invoices.workspace import Workspace

START = date(2025, 1, 1)
END = date(2025, 1, 31)


def _invoice_count(workspace: Workspace) -> int:
    with SqliteGateway(workspace.database_path) as db:
        return InvoiceRepository(db).count()


class DescribeDownload:
    def it_should_be_dry_run_by_default(self):
        with TemporaryDirectory() as tmpdir:
            workspace = Workspace(root=Path(tmpdir))
            cmd_init.run(workspace=workspace)

            rc = run(workspace=workspace, start=START, end=END, actor="alice", seed=7)

            assert rc == 0
            assert _invoice_count(workspace) == 0

    def it_should_stage_invoices_with_write_and_skip_them_on_rerun(self):
        with TemporaryDirectory() as tmpdir:
            workspace = Workspace(root=Path(tmpdir))
            cmd_init.run(workspace=workspace)

            rc = run(workspace=workspace, start=START, end=END, actor="alice", seed=7, write=True)
            first = _invoice_count(workspace)
            rerun = run(workspace=workspace, start=START, end=END, actor="alice", seed=7, write=True)

            assert rc == 0
            assert rerun == 0
            assert first >= 1
            assert _invoice_count(workspace) == first

    def it_should_reject_reversed_date_range(self):
        with TemporaryDirectory() as tmpdir:
            workspace = Workspace(root=Path(tmpdir))
            cmd_init.run(workspace=workspace)

            rc = run(workspace=workspace, start=END, end=START, actor="alice", write=True)

            assert rc == 2

    def it_should_require_an_initialized_workspace(self):
        with TemporaryDirectory() as tmpdir:
            workspace = Workspace(root=Path(tmpdir))

            rc = run(workspace=workspace, start=START, end=END, actor="alice", write=True)

            assert rc == 1
            assert not workspace.database_path.exists()
