"""Tests for CLI commands."""

import json
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
import yaml
from click.testing import CliRunner

from linknotes.cli import cli
from linknotes.config import ConfigManager
from linknotes.models.config import AppConfig
from linknotes.models.sync import PushResult, SyncState


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    # setenv first so values loaded from a .env file are undone after the test
    for name in ("LINKNOTES_GITHUB_TOKEN", "LINKNOTES_CONFIG_DIR"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


@pytest.fixture
def config_dir():
    """Initialized configuration directory."""
    with tempfile.TemporaryDirectory() as temp_dir:
        config_dir = Path(temp_dir) / ".linknotes"
        runner = CliRunner()
        result = runner.invoke(cli, ["init", "--config-dir", str(config_dir)])
        assert result.exit_code == 0, result.output
        yield config_dir


def _invoke(*args, input=None):
    return CliRunner().invoke(cli, list(args), input=input)


class TestCliInit:
    """Test linknotes init."""

    def test_init_creates_files(self, config_dir):
        cm = ConfigManager(config_dir)

        assert cm.config_file.exists()
        assert cm.env_file.exists()
        assert cm.load_app_config() == AppConfig()

    def test_init_with_token_and_store_path(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config_dir = Path(temp_dir) / "cfg"
            store_path = Path(temp_dir) / "data" / "marks.yaml"

            result = _invoke(
                "init",
                "--config-dir", str(config_dir),
                "--github-token", "tok123",
                "--store-path", str(store_path),
            )

            assert result.exit_code == 0, result.output
            assert "LINKNOTES_GITHUB_TOKEN=tok123" in (config_dir / ".env").read_text()
            assert store_path.parent.is_dir()
            assert ConfigManager(config_dir).load_app_config().store_path == str(store_path)


class TestCliDoctor:
    """Test linknotes doctor."""

    def test_doctor_passes_with_valid_setup(self, config_dir):
        result = _invoke("doctor", "--config-dir", str(config_dir))

        assert result.exit_code == 0, result.output
        assert "[PASS] config.yaml parsed successfully" in result.output
        assert "[WARN] Sync is not connected" in result.output

    def test_doctor_fails_without_config(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            result = _invoke("doctor", "--config-dir", str(Path(temp_dir) / "missing"))

        assert result.exit_code == 1
        assert "[FAIL] Missing config file" in result.output

    def test_doctor_reports_corrupt_store(self, config_dir):
        (config_dir / "bookmarks.yaml").write_text("a.com: [broken", encoding="utf-8")

        result = _invoke("doctor", "--config-dir", str(config_dir))

        assert result.exit_code == 1
        assert "Store document is corrupt" in result.output

    def test_doctor_reports_connected_sync(self, config_dir):
        ConfigManager(config_dir).save_sync_state(
            SyncState(access_token="tok", remote_document_id="gist1")
        )

        result = _invoke("doctor", "--config-dir", str(config_dir))

        assert "[PASS] Sync connected, document gist1" in result.output


class TestCliBookmarks:
    """Test store commands."""

    @staticmethod
    def _export_file(directory: Path) -> Path:
        path = directory / "export.json"
        path.write_text(
            json.dumps(
                {
                    "a.com": [
                        {
                            "url": "https://a.com/1",
                            "title": "Python tips",
                            "created_at": "2024-01-03T00:00:00Z",
                            "notes": [{"text": "read", "created_at": "2024-01-03T00:00:01Z"}],
                        },
                        {"url": "https://a.com/2", "title": "Other", "created_at": "2024-01-02T00:00:00Z"},
                    ],
                    "b.com": [{"url": "https://b.com/1", "title": "B", "created_at": "2024-01-01T00:00:00Z"}],
                }
            ),
            encoding="utf-8",
        )
        return path

    def test_import_stats_search_export(self, config_dir):
        source = self._export_file(config_dir)

        imported = _invoke("import", str(source), "--config-dir", str(config_dir))
        assert imported.exit_code == 0, imported.output
        assert "Imported 3 bookmarks (3 new)" in imported.output

        stats = _invoke("stats", "--config-dir", str(config_dir))
        assert "Domains: 2" in stats.output
        assert "Bookmarks: 3" in stats.output

        found = _invoke("search", "python", "--config-dir", str(config_dir))
        assert "1 match(es)" in found.output
        assert "https://a.com/1" in found.output
        assert "* read" in found.output

        output = config_dir / "out.json"
        exported = _invoke("export", str(output), "--config-dir", str(config_dir))
        assert exported.exit_code == 0
        assert set(json.loads(output.read_text())) == {"a.com", "b.com"}

    def test_import_twice_updates_existing(self, config_dir):
        source = self._export_file(config_dir)
        _invoke("import", str(source), "--config-dir", str(config_dir))

        again = _invoke("import", str(source), "--config-dir", str(config_dir))

        assert "Imported 3 bookmarks (0 new)" in again.output
        stored = yaml.safe_load((config_dir / "bookmarks.yaml").read_text())
        assert [n["text"] for n in stored["a.com"][0]["notes"]] == ["read"]

    def test_import_list_and_synced_document(self, config_dir):
        listed = config_dir / "list.json"
        listed.write_text(
            json.dumps(
                [
                    {"url": "https://a.com/1", "title": "A", "created_at": "2024-01-01T00:00:00Z"},
                    {"url": "https://a.com/broken", "title": "", "created_at": "2024-01-01T00:00:00Z"},
                ]
            ),
            encoding="utf-8",
        )
        document = config_dir / "gist.json"
        document.write_text(
            json.dumps(
                {
                    "bookmarks": [
                        {"url": "https://b.com/1", "title": "B", "created_at": "2024-01-02T00:00:00Z"}
                    ],
                    "exported_at": "2024-01-02T00:00:00Z",
                    "version": "1.0",
                }
            ),
            encoding="utf-8",
        )

        from_list = _invoke("import", str(listed), "--config-dir", str(config_dir))
        from_document = _invoke("import", str(document), "--config-dir", str(config_dir))

        assert from_list.exit_code == 0, from_list.output
        assert "Imported 1 bookmarks (1 new)" in from_list.output
        assert "1 invalid records skipped" in from_list.output
        assert "Imported 1 bookmarks (1 new)" in from_document.output
        stats = _invoke("stats", "--config-dir", str(config_dir))
        assert "Bookmarks: 2" in stats.output

    def test_replace_import_asks_for_confirmation(self, config_dir):
        source = self._export_file(config_dir)

        aborted = _invoke("import", str(source), "--replace", "--config-dir", str(config_dir), input="n\n")
        assert aborted.exit_code == 1

        replaced = _invoke("import", str(source), "--replace", "--config-dir", str(config_dir), input="y\n")
        assert "Replaced store with 3 bookmarks" in replaced.output

    def test_import_invalid_file(self, config_dir):
        bad = config_dir / "bad.json"
        bad.write_text("{not json", encoding="utf-8")

        result = _invoke("import", str(bad), "--config-dir", str(config_dir))

        assert result.exit_code == 1
        assert "not valid JSON" in result.output

    def test_export_to_stdout(self, config_dir):
        result = _invoke("export", "--config-dir", str(config_dir))

        assert result.exit_code == 0
        assert "{}" in result.output

    def test_commands_require_init(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            result = _invoke("stats", "--config-dir", str(Path(temp_dir) / "missing"))

        assert result.exit_code == 1
        assert "linknotes init" in result.output


class TestCliPocketImport:
    """Test linknotes import-pocket."""

    def test_import_pocket_reports_progress(self, config_dir):
        csv_path = config_dir / "pocket.csv"
        csv_path.write_text(
            "title,url,time_added\nOne,https://a.com/1,1700000000\nTwo,https://b.com/2,1700000001\n",
            encoding="utf-8",
        )
        cm = ConfigManager(config_dir)
        config = cm.load_app_config()
        config.import_batch_pause_seconds = 0
        cm.save_app_config(config)

        with patch(
            "linknotes.core.metadata_fetcher.MetadataFetcher.fetch_html",
            return_value=("<title>x</title>", "https://a.com/1"),
        ):
            result = _invoke("import-pocket", str(csv_path), "--config-dir", str(config_dir))

        assert result.exit_code == 0, result.output
        assert "[0/2] Starting import..." in result.output
        assert "Import completed!" in result.output
        assert "Imported: 2  Failed: 0  Skipped: 0" in result.output

        stored = yaml.safe_load((config_dir / "bookmarks.yaml").read_text())
        assert set(stored) == {"a.com", "b.com"}


class TestCliSync:
    """Test sync commands that do not need the network."""

    def test_sync_up_requires_connection(self, config_dir):
        result = _invoke("sync-up", "--config-dir", str(config_dir))

        assert result.exit_code == 1
        assert "Connect to the remote" in result.output

    def test_sync_up_uses_token_from_env_file(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config_dir = Path(temp_dir) / "cfg"
            _invoke("init", "--config-dir", str(config_dir), "--github-token", "ghp_x")

            with patch(
                "linknotes.core.remote_sync.RemoteSyncClient.verify_token",
                new_callable=AsyncMock,
                return_value=True,
            ), patch(
                "linknotes.core.remote_sync.RemoteSyncClient.push",
                new_callable=AsyncMock,
                return_value=PushResult(document_id="gist7"),
            ) as push:
                result = _invoke("sync-up", "--config-dir", str(config_dir))

            assert result.exit_code == 0, result.output
            assert "Uploaded to gist gist7" in result.output
            push.assert_awaited_once()
            assert ConfigManager(config_dir).load_sync_state().access_token == "ghp_x"

    def test_disconnect_clears_state(self, config_dir):
        cm = ConfigManager(config_dir)
        cm.save_sync_state(SyncState(access_token="tok", remote_document_id="gist1"))

        result = _invoke("disconnect", "--config-dir", str(config_dir))

        assert result.exit_code == 0
        assert cm.load_sync_state() == SyncState()

    def test_auto_sync_toggle(self, config_dir):
        result = _invoke("auto-sync", "off", "--config-dir", str(config_dir))

        assert result.exit_code == 0
        assert ConfigManager(config_dir).load_sync_settings().auto_sync_enabled is False
