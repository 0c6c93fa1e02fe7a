"""Tests for runtime wiring and the CLI.

**Feature: swapper**
"""

import tempfile
from pathlib import Path

import click
import pytest
import toml
from click.testing import CliRunner

from fakes import make_record
from swapper.cli.main import LAZY_SUBCOMMANDS, LazyGroup, cli
from swapper.config import SwapperConfig
from swapper.db.ledger import SwapLedger
from swapper.errors import ConfigError
from swapper.models import SwapStatus
from swapper.routing import LcdBalanceReader, PaperVenue, SkipClient
from swapper.runtime import build_runtime


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def _config(temp_dir: Path, **sections) -> SwapperConfig:
    data = {
        "storage": {"db_path": str(temp_dir / "swapper.db"), "export_dir": str(temp_dir / "exports")},
        "logging": {"to_file": False},
    }
    data.update(sections)
    return SwapperConfig.model_validate(data)


def _write_config(temp_dir: Path, **sections) -> Path:
    path = temp_dir / "config.toml"
    with open(path, "w") as f:
        toml.dump(_config(temp_dir, **sections).model_dump(mode="json"), f)
    return path


class TestRuntime:
    """Collaborators chosen from configuration."""

    def test_offline_dry_run_uses_paper_venue(self, temp_dir: Path):
        runtime = build_runtime(_config(temp_dir, swap={"dry_run": True}))
        orch = runtime.orchestrator

        assert isinstance(orch._balances, PaperVenue)
        assert orch._routes is orch._driver
        assert orch._signer_resolver is None

    def test_dry_run_with_address_quotes_live(self, temp_dir: Path):
        runtime = build_runtime(
            _config(temp_dir, wallet={"source_address": "kyve1abc"}), dry_run=True
        )
        orch = runtime.orchestrator

        assert isinstance(orch._balances, LcdBalanceReader)
        assert isinstance(orch._routes, SkipClient)
        assert isinstance(orch._driver, PaperVenue)

    def test_live_requires_signer(self, temp_dir: Path):
        with pytest.raises(ConfigError):
            build_runtime(_config(temp_dir, wallet={"source_address": "kyve1abc"}))

    def test_live_requires_address(self, temp_dir: Path):
        with pytest.raises(ConfigError):
            build_runtime(_config(temp_dir))

    def test_notifier_channels(self, temp_dir: Path):
        runtime = build_runtime(_config(
            temp_dir,
            swap={"dry_run": True},
            notification={"discord_webhook_url": "https://discord.test/hook", "telegram_bot_token": "t"},
        ))

        assert [c.name for c in runtime.notifier.channels] == ["discord"]


class TestCommands:
    """Offline CLI commands."""

    def test_init_writes_template(self, temp_dir: Path):
        path = temp_dir / "config.toml"

        result = CliRunner().invoke(cli, ["--config", str(path), "init"])

        assert result.exit_code == 0
        assert toml.load(path)["swap"]["dry_run"] is True

        again = CliRunner().invoke(cli, ["--config", str(path), "init"])
        assert again.exit_code == 1

    def test_history_and_export(self, temp_dir: Path):
        path = _write_config(temp_dir)
        ledger = SwapLedger(temp_dir / "swapper.db")
        ledger.append(make_record())
        ledger.append(make_record(SwapStatus.FAILED))

        history = CliRunner().invoke(cli, ["--config", str(path), "history"])
        assert history.exit_code == 0
        assert "Swap History" in history.output

        out = temp_dir / "out.csv"
        export = CliRunner().invoke(cli, ["--config", str(path), "export", "-o", str(out)])
        assert export.exit_code == 0
        assert len(out.read_text().strip().splitlines()) == 2

    def test_once_offline_dry_run(self, temp_dir: Path, monkeypatch):
        path = _write_config(temp_dir, swap={"paper_balance": 5000.0})

        async def fixed_price(self, symbol):
            from swapper.models import PriceData
            from swapper.models.swap import utcnow
            return PriceData(symbol=symbol, price=0.01, as_of=utcnow(), source="test")

        monkeypatch.setattr("swapper.pricing.sources.CoinGeckoSource.fetch", fixed_price)

        result = CliRunner().invoke(cli, ["--config", str(path), "once", "--dry-run"])

        assert result.exit_code == 0, result.output
        records = SwapLedger(temp_dir / "swapper.db").all()
        assert len(records) == 1
        assert records[0].dry_run is True
        assert list((temp_dir / "exports").glob("swap_accounting_*.csv"))


class TestLazyGroup:
    """Subcommands resolved from module:attribute targets."""

    def test_help_lists_every_command(self):
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        for name in ("init", "run", "once", "status", "history", "export"):
            assert name in result.output

    def test_commands_resolve_by_target(self):
        ctx = click.Context(cli)

        for name, target in LAZY_SUBCOMMANDS.items():
            command = cli.get_command(ctx, name)
            assert isinstance(command, click.Command)
            assert command.callback.__name__ == target.partition(":")[2]

    def test_unknown_command(self):
        assert cli.get_command(click.Context(cli), "nope") is None

    def test_bad_target_raises(self):
        group = LazyGroup(lazy_subcommands={"broken": "swapper.cli.main:LAZY_SUBCOMMANDS"})

        with pytest.raises(click.ClickException):
            group.get_command(click.Context(group), "broken")
