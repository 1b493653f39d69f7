"""Tests for the order-archive CLI."""
import base64
import json
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from order_archive.cli import cli


def test_keygen_prints_32_byte_key():
    result = CliRunner().invoke(cli, ["keygen"])
    assert result.exit_code == 0
    assert len(base64.b64decode(result.output.strip())) == 32


def test_salt_prints_16_byte_hex():
    result = CliRunner().invoke(cli, ["salt"])
    assert result.exit_code == 0
    assert len(bytes.fromhex(result.output.strip())) == 16


def test_links():
    result = CliRunner().invoke(cli, ["links", "bafyabc"])
    assert result.exit_code == 0
    body = json.loads(result.output)
    assert body["gatewayUrl"].endswith("/bafyabc")
    assert body["redundantUrls"][-1] == "ipfs://bafyabc"


def test_wait_reports_cid():
    view = {"orderId": "ORD-1", "cid": "bafyready", "archivalStatus": "archived"}
    with patch("order_archive.cli.poll_for_cid", new=AsyncMock(return_value=view)):
        result = CliRunner().invoke(cli, ["wait", "ORD-1"])

    assert result.exit_code == 0
    assert "bafyready" in result.output


def test_wait_reports_failed_archival():
    view = {"orderId": "ORD-1", "cid": None, "archivalStatus": "failed"}
    with patch("order_archive.cli.poll_for_cid", new=AsyncMock(return_value=view)):
        result = CliRunner().invoke(cli, ["wait", "ORD-1"])

    assert result.exit_code == 2
