"""
CLI entry point for push_forks.

Installed as `brew-push-forks`, which Homebrew runs for `brew push-forks`.
"""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console

from .cancel import EXIT_INTERRUPTED, CancellationToken, install_signal_handlers
from .config import PushForksConfig
from .errors import ConfigError, OperationCancelled, PushForksError
from .syncer import ForkPusher

err_console = Console(stderr=True)

CONTEXT_SETTINGS = dict(
    help_option_names=["-h", "--help", "-?", "--usage"],
    # Unknown flags are ignored; stray positionals are rejected in the command
    ignore_unknown_options=True,
    allow_extra_args=True,
)


class PushForksCommand(click.Command):
    """Command that maps usage errors to status 1 and interrupts to 130."""

    def main(self, *args, **kwargs):
        kwargs["standalone_mode"] = False
        try:
            rv = super().main(*args, **kwargs)
        except click.ClickException as e:
            e.show()
            sys.exit(1)
        except (click.Abort, OperationCancelled):
            err_console.print("[red]Interrupted.[/red]")
            sys.exit(EXIT_INTERRUPTED)
        sys.exit(rv or 0)


def fail(message: str) -> None:
    err_console.print(f"[red]Error: {message}[/red]")
    raise SystemExit(1)


@click.command(cls=PushForksCommand, context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="push-forks")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Narrate every step and the reason any repository is skipped",
)
@click.option(
    "--debug",
    "-d",
    is_flag=True,
    help="Trace every git command executed",
)
@click.option(
    "--dry-run",
    "-n",
    is_flag=True,
    help="Show which branches would be pushed without changing anything",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="HOMEBREW_PUSH_FORKS_CONFIG",
    default=None,
    help="YAML file overriding branches, remotes and paths",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, dry_run: bool, config_path: Path | None):
    """Push master and stable of Homebrew, and master of every tap, to your fork.

    Each repository must have exactly one remote besides origin; that remote
    is taken to be your fork. Branches are pushed with --force-with-lease.
    Repositories without a single fork remote are skipped.
    """
    positional = [arg for arg in ctx.args if not arg.startswith("-")]
    if positional:
        raise click.UsageError(f"Invalid argument: {positional[0]}", ctx=ctx)

    try:
        Path.cwd()
    except FileNotFoundError:
        fail("The current working directory doesn't exist.")

    config = PushForksConfig.from_env()
    if config_path is not None:
        try:
            config = PushForksConfig.from_yaml(config_path, base=config)
        except ConfigError as e:
            fail(str(e))

    config = config.model_copy(
        update={
            "verbose": config.verbose or verbose,
            "debug": config.debug or debug,
            "dry_run": config.dry_run or dry_run,
        }
    )

    if not config.is_supported_platform:
        fail("brew push-forks is only supported on macOS.")

    if config.debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s - %(levelname)s - %(message)s")

    token = CancellationToken()
    with install_signal_handlers(token):
        try:
            ForkPusher(config, token).run()
        except OperationCancelled:
            raise
        except PushForksError as e:
            fail(str(e))


if __name__ == "__main__":
    cli()
