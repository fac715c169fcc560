"""
Tests for the detection runner script.
"""

import json
import sys

import pytest

from fraudlink.scripts.run_detection import ingest, load_input, main


@pytest.fixture
def input_file(tmp_path, sample_users, sample_transactions):
    path = tmp_path / "data.json"
    path.write_text(json.dumps({"users": sample_users, "transactions": sample_transactions}))
    return path


class TestLoadInput:
    """Tests for reading the input file."""

    def test_reads_users_and_transactions(self, input_file, sample_users):
        data = load_input(input_file)

        assert [u["id"] for u in data["users"]] == [u["id"] for u in sample_users]
        assert len(data["transactions"]) == 3

    def test_missing_lists_default_empty(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text("{}")

        assert load_input(path) == {"users": [], "transactions": []}

    def test_rejects_non_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[]")

        with pytest.raises(ValueError):
            load_input(path)


class TestIngest:
    """Tests for loading records through the service."""

    @pytest.mark.asyncio
    async def test_invalid_records_skipped(self, service):
        stats = await ingest(service, {
            "users": [
                {"id": "u1", "name": "Ann", "email": "a@x.com"},
                {"id": "u2", "name": "Bob", "email": "no-at-sign"},
            ],
            "transactions": [
                {"id": "t1", "originUserId": "u1", "amount": 5, "type": "payment"},
                {"id": "t2", "originUserId": "u9", "amount": 5, "type": "payment"},
            ],
        })

        assert stats == {"users": 1, "transactions": 1, "rejected": 2}
        assert (await service.get_statistics())["User"] == 1


class TestMain:
    """Tests for the command line entry point."""

    @pytest.mark.asyncio
    async def test_detection_run(self, input_file, monkeypatch, capsys):
        monkeypatch.setattr(
            sys, "argv", ["fraudlink-detect", "--backend", "networkx", "--input", str(input_file)]
        )

        assert await main() == 0

        out = capsys.readouterr().out
        assert "Detection report" in out
        assert "shares_email" in out

    @pytest.mark.asyncio
    async def test_in_memory_backend_needs_input(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["fraudlink-detect", "--backend", "networkx"])

        assert await main() == 1
        assert "pass --input" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_unreadable_input_fails(self, tmp_path, monkeypatch):
        missing = tmp_path / "missing.json"
        monkeypatch.setattr(
            sys, "argv", ["fraudlink-detect", "--backend", "networkx", "--input", str(missing)]
        )

        assert await main() == 1
