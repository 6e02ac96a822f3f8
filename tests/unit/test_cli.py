"""Tests for command line parsing."""

import pytest

from grant_tracker.__main__ import main, parse_args, search_params
from grant_tracker.core.models import SearchQuery


class TestParseArgs:
    """Tests for parse_args function."""

    def test_serve(self):
        args = parse_args(["--log-level", "DEBUG", "serve", "--port", "9000"])
        assert args.command == "serve"
        assert args.port == 9000
        assert args.host is None
        assert args.log_level == "DEBUG"

    def test_search(self):
        args = parse_args([
            "--config", "/tmp/settings.yml",
            "search", "community health",
            "--category", "Health",
            "--min-amount", "10000",
            "--enhanced",
        ])
        assert args.config == "/tmp/settings.yml"
        assert args.query == "community health"
        assert args.category == "Health"
        assert args.min_amount == "10000"
        assert args.enhanced is True
        assert args.fresh is False

    def test_monitor(self):
        assert parse_args(["monitor"]).command == "monitor"

    def test_invalid_log_level(self):
        with pytest.raises(SystemExit):
            parse_args(["--log-level", "LOUD", "serve"])


class TestSearchParams:
    """Tests for search_params function."""

    def test_only_given_values(self):
        args = parse_args(["search", "arts", "--location", "NY", "--fresh"])
        assert search_params(args) == {"query": "arts", "location": "NY", "fresh": "true"}

    def test_builds_query(self):
        args = parse_args(["search", "arts", "--min-amount", "$5,000", "--funder-type", "Federal"])
        query = SearchQuery.from_params(search_params(args))
        assert query.min_amount == 5000
        assert query.funder_type == "Federal"


class TestMain:
    """Tests for main entry point exits."""

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert "grant-tracker" in capsys.readouterr().out

    def test_command_required(self):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 2
