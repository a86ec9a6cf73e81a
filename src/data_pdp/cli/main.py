"""Main CLI entry point for data-pdp.

Defines the CLI group and registers all subcommands.

Commands:
    rules    - Rule file management (validate, show)
    evaluate - Evaluate rules for one JSON entity
    filter   - Filter a JSON array of entities with the compiled predicate

Subcommand help:
    data-pdp COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli"]

import sys

import click

from data_pdp import __version__
from data_pdp.constants import APP_NAME

from .commands.evaluate import evaluate, filter_entities
from .commands.rules import rules


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Quick Start:
  data-pdp rules validate rules.json
  data-pdp rules show rules.json --principal u1 --operation read
  data-pdp evaluate --rules rules.json --entity post.json --principal u1 --operation update
  data-pdp filter --rules rules.json --entities posts.json --principal u1 --operation read

Exit Codes:
  0   Success (evaluate: allowed, or denied without --fail-on-deny)
  1   Invalid input (missing file, invalid JSON, invalid rules or config)
  2   evaluate --fail-on-deny: the operation was denied
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """data-pdp: data-level permission rule evaluation."""
    if version:
        click.echo(f"{APP_NAME} {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(rules)
cli.add_command(evaluate)
cli.add_command(filter_entities)


def main() -> None:
    """CLI entry point."""
    cli()
