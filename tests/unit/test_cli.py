"""Tests for the CLI module."""

from __future__ import annotations

import base64
import json
import os
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from collectopedia.cli import cli

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep rich from wrapping table cells in captured output."""
    from collectopedia import cli as cli_module

    monkeypatch.setattr(cli_module.console, "width", 200)


@pytest.fixture
def sold_stub(stub_source):
    return stub_source([45, 50, 55, 60, 1000], name="sold")


@pytest.fixture
def aggregator(make_aggregator, stub_source, sold_stub):
    return make_aggregator(active=stub_source([40, 10, 30, 20], name="active"), sold=sold_stub)


@pytest.fixture
def patched(aggregator):
    """Route every create_aggregator call to the stub-backed aggregator."""
    with patch("collectopedia.pricing.create_aggregator", return_value=aggregator) as factory:
        yield factory


@pytest.fixture
def items_file(tmp_path):
    path = tmp_path / "items.json"
    path.write_text(
        json.dumps(
            {
                "items": [
                    {"id": "a", "name": "Optimus Prime G1", "condition": "Used"},
                    {"id": "b", "name": "Megatron G1", "ebayLastUpdated": "2024-01-01T00:00:00Z"},
                    {"id": "c", "name": "Soundwave G1", "isSold": True},
                    {"id": "d", "name": "Starscream G1"},
                ]
            }
        )
    )
    return path


def _invoke(runner, test_config, args):
    return runner.invoke(cli, args, obj={"config": test_config})


# ---------------------------------------------------------------------------
# prices
# ---------------------------------------------------------------------------


class TestPrices:
    def test_json_output(self, runner, test_config, patched):
        result = _invoke(runner, test_config, ["prices", "Optimus", "--format", "json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert (data["lowest"], data["median"], data["highest"]) == (10, 25, 40)
        assert data["listingType"] == "listed"
        assert "items" not in data

    def test_sold_with_condition(self, runner, test_config, patched, sold_stub):
        result = _invoke(
            runner,
            test_config,
            ["prices", "Optimus Prime G1", "-t", "sold", "--condition", "used",
             "-r", "uk", "--format", "json"],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["median"] == 55
        sold_query, region = sold_stub.calls[0]
        assert sold_query.condition.value == "Used"
        assert region.code == "UK"

    def test_include_items(self, runner, test_config, patched):
        result = _invoke(
            runner, test_config, ["prices", "Optimus", "--include-items", "--format", "json"]
        )
        assert len(json.loads(result.stdout)["items"]) == 4

    def test_table_output(self, runner, test_config, patched):
        result = _invoke(runner, test_config, ["prices", "Optimus", "-r", "US"])
        assert result.exit_code == 0, result.output
        assert "$25.00" in result.output
        assert "Listed prices" in result.output

    def test_error_exits_nonzero(self, runner, test_config, make_aggregator, failing_source):
        agg = make_aggregator(active=failing_source)
        with patch("collectopedia.pricing.create_aggregator", return_value=agg):
            result = _invoke(runner, test_config, ["prices", "Optimus"])
        assert result.exit_code == 1
        assert "Failed to fetch active listing prices" in result.output

    def test_invalid_listing_type(self, runner, test_config):
        result = _invoke(runner, test_config, ["prices", "Optimus", "-t", "auction"])
        assert result.exit_code != 0


class TestPricesWithImage:
    @pytest.fixture
    def photo(self, tmp_path):
        path = tmp_path / "optimus.jpg"
        path.write_bytes(b"\xff\xd8\xff\xe0 not really a jpeg")
        return path

    def test_image_result_becomes_combined(
        self, runner, test_config, make_aggregator, stub_source, image_source, photo
    ):
        images = image_source([70, 90, 80])
        agg = make_aggregator(active=stub_source([40, 10, 30, 20]), image_source=images)
        with patch("collectopedia.pricing.create_aggregator", return_value=agg):
            result = _invoke(
                runner,
                test_config,
                ["prices", "Optimus", "--image", str(photo), "--format", "json"],
            )
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["textBased"]["median"] == 25
        assert data["imageBased"]["median"] == 80
        assert data["combined"]["median"] == 80
        sent, _, _ = images.calls[0]
        assert sent == base64.b64encode(photo.read_bytes()).decode("ascii")

    def test_table_output(
        self, runner, test_config, make_aggregator, stub_source, image_source, photo
    ):
        agg = make_aggregator(active=stub_source([40, 10, 30, 20]), image_source=image_source())
        with patch("collectopedia.pricing.create_aggregator", return_value=agg):
            result = _invoke(runner, test_config, ["prices", "Optimus", "--image", str(photo)])
        assert result.exit_code == 0, result.output
        assert "Combined" in result.output
        assert "Image: No results found for this image" in result.output

    def test_sold_rejected(self, runner, test_config, photo):
        result = _invoke(
            runner, test_config, ["prices", "Optimus", "-t", "sold", "--image", str(photo)]
        )
        assert result.exit_code == 2
        assert "only works with listed prices" in result.output


# ---------------------------------------------------------------------------
# refresh
# ---------------------------------------------------------------------------


class TestRefresh:
    def test_single_batch_json(self, runner, test_config, patched, items_file):
        result = _invoke(runner, test_config, ["refresh", str(items_file), "--format", "json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        # batch_size 2 from test config, item c is sold
        assert data["total_processed"] == 2
        assert data["remaining_items"] == 1
        assert data["next_offset"] == 2
        assert [u["item_id"] for u in data["updates"]] == ["a", "b"]
        assert data["total_value"] == 50

    def test_all_batches(self, runner, test_config, patched, items_file):
        result = _invoke(
            runner, test_config, ["refresh", str(items_file), "--all", "--format", "json"]
        )
        data = json.loads(result.stdout)
        assert data["total_processed"] == 3
        assert data["remaining_items"] == 0

    def test_stale_first(self, runner, test_config, patched, items_file):
        result = _invoke(
            runner,
            test_config,
            ["refresh", str(items_file), "--stale-first", "-b", "1", "--format", "json"],
        )
        data = json.loads(result.stdout)
        assert [u["item_id"] for u in data["updates"]] == ["a"]

    def test_sold_listing_type(self, runner, test_config, patched, items_file):
        result = _invoke(
            runner,
            test_config,
            ["refresh", str(items_file), "-t", "sold", "-b", "5", "--format", "json"],
        )
        data = json.loads(result.stdout)
        assert {u["value"] for u in data["updates"]} == {55}

    def test_table_output(self, runner, test_config, patched, items_file):
        result = _invoke(runner, test_config, ["refresh", str(items_file)])
        assert result.exit_code == 0, result.output
        assert "Processed 2 items: 2 updated, 0 failed" in result.output

    def test_invalid_items_file(self, runner, test_config, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        result = _invoke(runner, test_config, ["refresh", str(bad)])
        assert result.exit_code == 2
        assert "not valid JSON" in result.output

    def test_negative_offset(self, runner, test_config, items_file):
        result = _invoke(runner, test_config, ["refresh", str(items_file), "--offset", "-1"])
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# regions / config
# ---------------------------------------------------------------------------


class TestRegions:
    def test_lists_regions(self, runner, test_config):
        result = _invoke(runner, test_config, ["regions"])
        assert result.exit_code == 0, result.output
        assert "EBAY-GB" in result.output
        assert "EBAY-US" in result.output
        assert "UK (default)" in result.output


class TestConfigLoading:
    def test_bad_config_file(self, runner, tmp_path):
        path = tmp_path / "collectopedia.yml"
        path.write_text("regions:\n  default: FR\n")
        result = runner.invoke(cli, ["--config", str(path), "regions"])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_yaml_config(self, runner, tmp_path):
        path = tmp_path / "collectopedia.yml"
        path.write_text("regions:\n  default: us\n")
        result = runner.invoke(cli, ["--config", str(path), "regions"])
        assert result.exit_code == 0, result.output
        assert "US (default)" in result.output


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


class TestServe:
    def test_config_path_reaches_app_factory(self, runner, tmp_path, monkeypatch):
        path = tmp_path / "collectopedia.yml"
        path.write_text("api:\n  api_key: from-file\n  port: 9100\n")
        monkeypatch.setenv("COLLECTOPEDIA_CONFIG", str(tmp_path / "elsewhere.yml"))
        seen = {}

        def fake_run(app, **kwargs):
            seen["config"] = os.environ["COLLECTOPEDIA_CONFIG"]
            seen["app"] = app
            seen.update(kwargs)

        with patch("uvicorn.run", side_effect=fake_run):
            result = runner.invoke(cli, ["--config", str(path), "serve"])

        assert result.exit_code == 0, result.output
        assert seen["config"] == str(path)
        assert seen["app"] == "collectopedia.api.app:create_app"
        assert seen["factory"] is True
        assert seen["port"] == 9100

    def test_host_and_port_flags(self, runner, test_config):
        with patch("uvicorn.run") as run:
            result = _invoke(runner, test_config, ["serve", "--host", "127.0.0.1", "-p", "8123"])
        assert result.exit_code == 0, result.output
        assert run.call_args.kwargs["host"] == "127.0.0.1"
        assert run.call_args.kwargs["port"] == 8123
