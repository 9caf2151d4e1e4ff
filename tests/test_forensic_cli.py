"""
Forensic CLI Tests
==================

Runs the reporter against ledger files written to a temp directory.
"""

import json

import pytest

from tapestry.forensic import main
from tapestry.storage import JsonFileStorageBackend

from tests.fixtures import burst, records_for, spaced


@pytest.fixture
def ledger_file(tmp_path):
    path = tmp_path / "ledger.json"
    threads = spaced([("serenity", "dawn", "coast"), ("awe", "night", "sahara"), ("serenity", "dawn", "coast")])
    JsonFileStorageBackend(str(path)).save(threads)
    return str(path), threads


class TestVerify:

    def test_intact_chain_passes(self, ledger_file, capsys):
        path, threads = ledger_file

        assert main(["--storage", path, "verify"]) == 0
        out = capsys.readouterr().out
        assert "[PASS] Verified 3 threads" in out
        assert threads[-1].hash in out

    def test_tampered_chain_fails(self, ledger_file, capsys):
        path, threads = ledger_file
        records = records_for(threads)
        records[2]["region"] = "kasbah"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(records, f)

        assert main(["--storage", path, "verify"]) == 1
        assert "Integrity failure at thread 2" in capsys.readouterr().out

    def test_legacy_records_are_flagged(self, tmp_path, capsys):
        path = tmp_path / "ledger.json"
        path.write_text(json.dumps([{"intention": "awe", "region": "sahara"}]), encoding="utf-8")

        assert main(["--storage", str(path), "verify"]) == 1
        assert "legacy" in capsys.readouterr().out

    def test_unreadable_file(self, tmp_path, capsys):
        path = tmp_path / "ledger.json"
        path.write_text("{oops", encoding="utf-8")

        assert main(["--storage", str(path), "verify"]) == 1
        assert "[FAIL]" in capsys.readouterr().out


class TestReports:

    def test_log_lists_threads_in_order(self, ledger_file, capsys):
        path, threads = ledger_file

        assert main(["--storage", path, "log"]) == 0
        lines = capsys.readouterr().out.splitlines()[2:]
        assert [line.split("|")[2].strip() for line in lines] == [t.id for t in threads]

    def test_scan_prints_defcon(self, tmp_path, capsys):
        path = tmp_path / "ledger.json"
        JsonFileStorageBackend(str(path)).save(burst(6))

        assert main(["--storage", str(path), "scan"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("DEFCON 2 (ALERT)")
        assert "TEMPORAL_SURGE" in out

    def test_scan_json(self, ledger_file, capsys):
        path, _ = ledger_file

        assert main(["--storage", path, "scan", "--json"]) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["total"] == 3

    def test_recall(self, ledger_file, capsys):
        path, threads = ledger_file

        assert main(["--storage", path, "recall", threads[0].id, "--limit", "1"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("100%")
        assert threads[2].id in out

    def test_recall_unknown_id(self, ledger_file, capsys):
        path, _ = ledger_file
        assert main(["--storage", path, "recall", "missing"]) == 1

    def test_missing_file_is_empty(self, tmp_path, capsys):
        assert main(["--storage", str(tmp_path / "none.json"), "scan"]) == 0
        assert "DEFCON 5" in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 2
