"""
RewardsClient facade and CLI wiring.
"""

import uuid
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError
from typer.testing import CliRunner

from rewards_store.cli import app
from rewards_store.client import RewardsClient
from rewards_store.config import Settings
from rewards_store.connection import prepare_eagerly
from rewards_store.errors import FatalError, InvalidArgument, NotFound
from rewards_store.models import CatalogItem


@pytest.fixture
def rc(api_client):
    return RewardsClient({"endpoint": "abcdefgh.dsql.us-east-1.on.aws", "api_client": api_client})


@pytest.fixture
def run(rc):
    """Replace the executor so operations never touch the store."""
    rc._executor = MagicMock()
    return rc._executor.run


def test_wires_policy_and_connections(rc, api_client):
    mgr = rc.connections
    assert mgr.config.api_client is api_client
    assert mgr.config.is_admin
    assert mgr.policy.max_attempts == 5
    assert rc.executor.policy is mgr.policy


@patch("rewards_store.client.create_api_client")
def test_creates_api_client_when_missing(mock_create):
    RewardsClient({"endpoint": "e", "region": "eu-west-1"})
    mock_create.assert_called_once_with("eu-west-1")


def test_from_settings(api_client):
    s = Settings(CLUSTER_ENDPOINT="abcdefgh.dsql.us-east-1.on.aws", MAX_DB_RETRIES=7, _env_file=None)

    client = RewardsClient.from_settings(s, api_client=api_client)

    assert client.connections.policy.max_attempts == 7
    assert client.connections.config.endpoint == "abcdefgh.dsql.us-east-1.on.aws"


@patch("rewards_store.client.get_cart_items")
def test_image_region_defaults_to_cluster_region(mock_get_cart_items, monkeypatch, api_client):
    monkeypatch.delenv("IMAGE_REGION", raising=False)
    s = Settings(CLUSTER_ENDPOINT="abcdefgh.dsql.eu-west-1.on.aws", AWS_REGION="eu-west-1", _env_file=None)
    client = RewardsClient.from_settings(s, api_client=api_client)
    client._executor = MagicMock()

    client.cart_items("alice")

    assert client.image_region == "eu-west-1"
    mock_get_cart_items.assert_called_once_with("alice", "eu-west-1")


def test_explicit_image_region_wins(api_client):
    client = RewardsClient(
        {"endpoint": "e", "region": "eu-west-1", "image_region": "us-east-1", "api_client": api_client}
    )
    assert client.image_region == "us-east-1"


@patch("rewards_store.client.list_catalog_items")
def test_catalog_items(mock_list, rc, run):
    run.return_value = []

    assert rc.catalog_items(sort_by="rating", category="Books") == []

    mock_list.assert_called_once_with("rating", None, "Books", "us-east-1")
    assert run.call_args.kwargs["operation"] == "list_catalog_items"


@pytest.mark.parametrize("username", [None, "", "  "])
def test_blank_username_never_reaches_store(rc, run, username):
    with pytest.raises(InvalidArgument):
        rc.checkout(username)
    run.assert_not_called()


def test_invalid_quantity_rejected_before_transaction(rc, run):
    with pytest.raises(ValidationError):
        rc.add_cart_item("alice", uuid.uuid4(), 0)
    run.assert_not_called()


def test_operations_are_labelled(rc, run):
    run.return_value = 10

    assert rc.balance("alice") == 10
    assert run.call_args.kwargs["operation"] == "get_balance"


@patch("rewards_store.cli.RewardsClient")
@patch("rewards_store.cli.get_settings")
def test_cli_checkout(mock_settings, mock_client):
    mock_settings.return_value = MagicMock(LOG_LEVEL="INFO")
    tx_id = uuid.uuid4()
    mock_client.from_settings.return_value.checkout.return_value = tx_id

    result = CliRunner().invoke(app, ["checkout", "alice"])

    assert result.exit_code == 0
    assert str(tx_id) in result.stdout
    mock_client.from_settings.return_value.close.assert_called_once()


@patch("rewards_store.cli.RewardsClient")
@patch("rewards_store.cli.get_settings")
def test_cli_reports_failure(mock_settings, mock_client):
    mock_settings.return_value = MagicMock(LOG_LEVEL="INFO")
    mock_client.from_settings.return_value.balance.side_effect = FatalError(
        "missing", cause=NotFound("Customer bob not found")
    )

    result = CliRunner().invoke(app, ["balance", "bob"])

    assert result.exit_code == 1


def test_prepare_eagerly_hook_is_installed(rc):
    assert prepare_eagerly in rc.connections._setup_hooks


@patch("rewards_store.cli.RewardsClient")
@patch("rewards_store.cli.get_settings")
def test_cli_catalog(mock_settings, mock_client):
    mock_settings.return_value = MagicMock(LOG_LEVEL="INFO")
    rc = mock_client.from_settings.return_value
    rc.catalog_items.return_value = [CatalogItem(id=uuid.uuid4(), name="Mug", points_price=150)]

    result = CliRunner().invoke(app, ["catalog", "--sort-by", "rating", "--order", "desc"])

    assert result.exit_code == 0
    assert '"name": "Mug"' in result.stdout
    rc.catalog_items.assert_called_once_with(sort_by="rating", sort_order="desc", category=None)
