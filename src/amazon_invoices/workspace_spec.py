from __future__ import annotations

from pathlib import Path

from amazon_invoices.workspace import Workspace


class DescribeWorkspace:
    class DescribeResolve:
        def it_should_use_explicit_path_when_provided(self):
            ws = Workspace.resolve(explicit=Path("/tmp/my-invoices"))
            assert ws.root == Path("/tmp/my-invoices")

        def it_should_use_data_env_var_when_set(self, monkeypatch):
            monkeypatch.setenv("AMAZON_INVOICES_DATA", "/tmp/env-invoices")
            ws = Workspace.resolve()
            assert ws.root == Path("/tmp/env-invoices")

        def it_should_prefer_explicit_over_env_var(self, monkeypatch):
            monkeypatch.setenv("AMAZON_INVOICES_DATA", "/tmp/env-invoices")
            ws = Workspace.resolve(explicit=Path("/tmp/explicit"))
            assert ws.root == Path("/tmp/explicit")

        def it_should_fall_back_to_cwd_when_no_env_var(self, monkeypatch):
            monkeypatch.delenv("AMAZON_INVOICES_DATA", raising=False)
            ws = Workspace.resolve()
            assert ws.root == Path.cwd()

    class DescribePaths:
        def it_should_compute_database_path(self):
            ws = Workspace(root=Path("/data"))
            assert ws.database_path == Path("/data/data/amazon_invoices.db")

        def it_should_compute_settings_path(self):
            ws = Workspace(root=Path("/data"))
            assert ws.settings_path == Path("/data/config/settings.yml")

        def it_should_compute_inbox_dir(self):
            ws = Workspace(root=Path("/data"))
            assert ws.inbox_dir == Path("/data/inbox")
