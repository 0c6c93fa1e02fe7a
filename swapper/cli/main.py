"""Swapper command-line entry point."""

import importlib
from pathlib import Path

import click


class LazyGroup(click.Group):
    """Click group whose subcommands are imported on first use.

    ``lazy_subcommands`` maps a command name to ``"module:attribute"``;
    the attribute must be a click command.
    """

    def __init__(self, *args, lazy_subcommands: dict[str, str] | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.lazy_subcommands = dict(lazy_subcommands or {})

    def list_commands(self, ctx: click.Context) -> list[str]:
        return sorted({*super().list_commands(ctx), *self.lazy_subcommands})

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        command = super().get_command(ctx, cmd_name)
        if command is None and cmd_name in self.lazy_subcommands:
            command = self._import_command(cmd_name)
            self.add_command(command, cmd_name)
        return command

    def _import_command(self, cmd_name: str) -> click.Command:
        target = self.lazy_subcommands[cmd_name]
        module_path, _, attr = target.partition(":")
        command = getattr(importlib.import_module(module_path), attr or cmd_name, None)
        if not isinstance(command, click.Command):
            raise click.ClickException(f"{target} is not a click command")
        return command


LAZY_SUBCOMMANDS = {
    "init": "swapper.cli.configure:init",
    "run": "swapper.cli.swap:run",
    "once": "swapper.cli.swap:once",
    "status": "swapper.cli.status:status",
    "history": "swapper.cli.ledger:history",
    "export": "swapper.cli.ledger:export",
}


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(cls=LazyGroup, lazy_subcommands=LAZY_SUBCOMMANDS, context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="swapper")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Config file (default: ~/.config/swapper/config.toml).",
)
@click.option("--log-level", default=None, help="Override the configured log level.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, log_level: str | None) -> None:
    """Swapper - scheduled swaps of a crypto asset into a stablecoin.

    \b
    Quick Start:
      swapper init      # Write a template config
      swapper once      # Run a single swap cycle
      swapper run       # Run on the configured cron schedule
      swapper status    # Balances, statistics and settings
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["log_level"] = log_level


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
