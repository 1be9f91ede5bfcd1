"""Integration tests for the top-customers command line entry point."""

import json
from datetime import date

import pandas as pd
import pytest
from sqlalchemy import inspect

from customer_revenue_ranking.cli import _parse_ref, top_customers_cli


@pytest.fixture
def purchase_input(tmp_path):
    """JSON input file with four customers, one purchase before the since date."""
    payload = {
        "events": [
            {"content_ref": 1, "customer_ref": 100, "quantity": 2, "event_ts": "2023-01-15T10:00:00Z"},
            {"content_ref": 1, "customer_ref": 100, "quantity": 1, "event_ts": "2023-01-16T10:00:00Z"},
            {"content_ref": 2, "customer_ref": 200, "quantity": 5, "event_ts": "2023-02-01T09:00:00+00:00"},
            {"content_ref": 2, "customer_ref": 300, "quantity": 1, "event_ts": "2023-03-01T09:00:00"},
            {"content_ref": 3, "customer_ref": 400, "quantity": 1, "event_ts": "2023-03-02T09:00:00"},
            {"content_ref": 1, "customer_ref": 300, "quantity": 50, "event_ts": "2019-01-01T00:00:00"},
        ],
        "prices": {"1": 10.0, "2": "3.00"},
        "identities": {"100": "a@x.com", "200": "b@x.com"},
    }
    path = tmp_path / "purchases.json"
    path.write_text(json.dumps(payload))
    return path


class TestParseRef:
    def test_digit_strings_become_ints(self):
        assert _parse_ref("100") == 100
        assert _parse_ref(7) == 7
        assert _parse_ref("SKU-1") == "SKU-1"

    def test_rejects_booleans(self):
        with pytest.raises(ValueError):
            _parse_ref(True)


class TestOfflineMode:
    def test_writes_top_customers_csv(self, purchase_input, tmp_path):
        output = tmp_path / "out" / "top.csv"

        exit_code = top_customers_cli(
            ["--input", str(purchase_input), "--quantile", "0.5", "--output", str(output)]
        )

        assert exit_code == 0
        df = pd.read_csv(output)
        assert list(df.columns) == ["customer_ref", "identity", "revenue"]
        assert list(df["customer_ref"]) == [100, 200]
        assert list(df["revenue"]) == [30.0, 15.0]

    def test_since_filter_applies(self, purchase_input, tmp_path):
        output = tmp_path / "top.csv"

        exit_code = top_customers_cli(
            [
                "--input",
                str(purchase_input),
                "--quantile",
                "0.25",
                "--since",
                "2023-03-01",
                "--output",
                str(output),
            ]
        )

        assert exit_code == 0
        df = pd.read_csv(output)
        assert list(df["customer_ref"]) == [300]
        assert df["identity"].iloc[0] == "no-email@unknown.com"

    def test_writes_markdown_report(self, purchase_input, tmp_path):
        report = tmp_path / "report.md"

        exit_code = top_customers_cli(
            [
                "--input",
                str(purchase_input),
                "--quantile",
                "0.25",
                "--output",
                str(tmp_path / "top.csv"),
                "--report",
                str(report),
            ]
        )

        assert exit_code == 0
        content = report.read_text()
        assert "## Quantile Buckets" in content
        assert "| 3 | 75.0%-100.0% | 1 |" in content

    def test_invalid_quantile_returns_error(self, purchase_input):
        assert top_customers_cli(["--input", str(purchase_input), "--quantile", "0"]) == 1

    def test_malformed_event_returns_error(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"events": [{"content_ref": 1}]}))

        assert top_customers_cli(["--input", str(path)]) == 1


class TestDatabaseMode:
    def test_exports_to_dated_table(self, seeded_engine, database_url, tmp_path):
        report = tmp_path / "report.md"

        exit_code = top_customers_cli(
            [
                "--database-url",
                database_url,
                "--quantile",
                "0.25",
                "--seed",
                "3",
                "--report",
                str(report),
            ]
        )

        assert exit_code == 0
        table_name = f"test_export_{date.today():%Y%m%d}"
        assert table_name in inspect(seeded_engine).get_table_names()
        assert f"**table:** {table_name}" in report.read_text()

    def test_skip_db_without_input_returns_error(self, monkeypatch):
        monkeypatch.setenv("SKIP_DB", "true")
        assert top_customers_cli([]) == 1

    def test_unreachable_database_returns_error(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'missing' / 'db.sqlite'}"
        assert top_customers_cli(["--database-url", url]) == 1


class TestOfflineInputEdgeCases:
    """Offline mode with heterogeneous identifiers, offsets and previews."""

    def _write(self, tmp_path, events, prices=None):
        path = tmp_path / "purchases.json"
        path.write_text(
            json.dumps({"events": events, "prices": prices or {"1": 10.0}, "identities": {}})
        )
        return path

    def test_mixed_int_and_str_refs_with_tied_revenue(self, tmp_path):
        path = self._write(
            tmp_path,
            [
                {"content_ref": 1, "customer_ref": "abc", "quantity": 1, "event_ts": "2023-01-01T00:00:00"},
                {"content_ref": 1, "customer_ref": "100", "quantity": 1, "event_ts": "2023-01-01T00:00:00"},
            ],
        )
        output = tmp_path / "top.csv"
        report = tmp_path / "report.md"

        exit_code = top_customers_cli(
            [
                "--input",
                str(path),
                "--quantile",
                "0.5",
                "--output",
                str(output),
                "--report",
                str(report),
            ]
        )

        assert exit_code == 0
        df = pd.read_csv(output)
        assert list(df["customer_ref"]) == [100]
        assert "| 1 | 50.0%-100.0% | 1 | 10.00 | 10.00 |" in report.read_text()

    def test_offsets_converted_to_utc_before_since_filter(self, tmp_path):
        path = self._write(
            tmp_path,
            [
                # 2020-03-31 20:00 UTC, before the since date
                {"content_ref": 1, "customer_ref": 500, "quantity": 1, "event_ts": "2020-04-01T01:00:00+05:00"},
                # 2020-04-01 02:30 UTC
                {"content_ref": 1, "customer_ref": 600, "quantity": 1, "event_ts": "2020-04-01T00:30:00-02:00"},
            ],
        )
        output = tmp_path / "top.csv"

        exit_code = top_customers_cli(
            [
                "--input",
                str(path),
                "--quantile",
                "1.0",
                "--since",
                "2020-04-01",
                "--output",
                str(output),
            ]
        )

        assert exit_code == 0
        assert list(pd.read_csv(output)["customer_ref"]) == [600]

    def test_sample_and_seed_apply_offline(self, purchase_input, tmp_path, monkeypatch):
        calls = []

        def record_sample(revenues, count, rng=None, *, seed=None):
            calls.append((sorted(revenues), count, seed))
            return []

        monkeypatch.setattr(
            "customer_revenue_ranking.cli.log_customer_sample", record_sample
        )

        exit_code = top_customers_cli(
            [
                "--input",
                str(purchase_input),
                "--sample",
                "3",
                "--seed",
                "9",
                "--output",
                str(tmp_path / "top.csv"),
            ]
        )

        assert exit_code == 0
        assert calls == [([100, 200, 300, 400], 3, 9)]

    def test_sample_zero_disables_preview(self, purchase_input, tmp_path, monkeypatch):
        calls = []
        monkeypatch.setattr(
            "customer_revenue_ranking.cli.log_customer_sample",
            lambda *args, **kwargs: calls.append(args),
        )

        exit_code = top_customers_cli(
            ["--input", str(purchase_input), "--sample", "0", "--output", str(tmp_path / "top.csv")]
        )

        assert exit_code == 0
        assert calls == []
