"""Rules command group for data-pdp CLI.

Provides rule file subcommands (validate, show).
"""

from __future__ import annotations

__all__ = ["rules"]

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import click

from data_pdp.pdp.rules import Operation, PermissionRule
from data_pdp.utils.file_helpers import compute_file_checksum
from data_pdp.utils.rules.rule_helpers import load_rules

from ..styling import style_decision, style_dim, style_error, style_label, style_success

_RULES_PATH = click.Path(exists=True, dir_okay=False, path_type=Path)


def _effective_status(rule: PermissionRule, now: datetime) -> str | None:
    """Why a rule is currently not applied, or None if it is."""
    if not rule.is_active:
        return "inactive"
    if rule.effective_from is not None and rule.effective_from > now:
        return "not yet effective"
    if rule.effective_to is not None and rule.effective_to <= now:
        return "expired"
    return None


@click.group()
def rules() -> None:
    """Rule file commands."""
    pass


@rules.command("validate")
@click.argument("path", type=_RULES_PATH)
def rules_validate(path: Path) -> None:
    """Validate a rule file.

    Checks the rule file for:
    - Valid JSON syntax
    - Schema validation (operations, scopes, effective windows)
    - Unique rule IDs

    Rules whose conditions cannot be decoded are reported as warnings:
    they load, but never match.

    Exit codes:
        0: Rule file is valid
        1: Rule file is invalid
    """
    try:
        rule_set = load_rules(path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)

    rule_count = len(rule_set.rules)
    click.echo(style_success(f"Rules valid: {path}"))
    click.echo(f"  {rule_count} rule{'s' if rule_count != 1 else ''} defined")
    click.echo(f"  Checksum: {compute_file_checksum(path)}")

    for rule in rule_set.rules:
        if rule.conditions is not None and rule.conditions.is_malformed:
            click.echo(
                click.style(f"  Warning: rule {rule.id} never matches: {rule.conditions.error}", fg="yellow"),
                err=True,
            )


@rules.command("show")
@click.argument("path", type=_RULES_PATH)
@click.option("--principal", "-p", help="Only rules owned by this principal")
@click.option(
    "--operation",
    "-o",
    type=click.Choice([op.value for op in Operation], case_sensitive=False),
    help="Only rules for this operation",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def rules_show(path: Path, principal: str | None, operation: str | None, as_json: bool) -> None:
    """Display rules in evaluation order (highest priority first)."""
    try:
        rule_set = load_rules(path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)

    selected = rule_set.rules
    if principal is not None:
        selected = rule_set.for_principal(principal)
    if operation is not None:
        wanted = Operation.parse(operation)
        selected = [rule for rule in selected if rule.operation is wanted]
    # sorted() is stable: equal priorities keep file order
    selected = sorted(selected, key=lambda rule: -rule.priority)

    if as_json:
        data = [rule.model_dump(mode="json", exclude_none=True) for rule in selected]
        click.echo(json.dumps(data, indent=2))
        return

    now = datetime.now(timezone.utc)
    click.echo("\n" + style_label("Rules") + f" {path}")
    click.echo(f"Showing {len(selected)} of {len(rule_set.rules)}")
    click.echo()

    if not selected:
        click.echo(style_dim("  (no rules match)"))
        return

    for rule in selected:
        status = _effective_status(rule, now)
        suffix = style_dim(f" ({status})") if status else ""
        click.echo(
            f"  [{rule.id}] {style_decision(rule.is_allowed)} {rule.operation.value} "
            f"scope={rule.scope.value} priority={rule.priority} owner={rule.owner_user_id}{suffix}"
        )
        if rule.conditions is not None:
            if rule.conditions.is_malformed:
                click.echo(style_error(f"    conditions: {rule.conditions.error}"))
            else:
                click.echo(f"    conditions: {json.dumps(rule.conditions.to_raw())}")
        if rule.description:
            click.echo(f"    {rule.description}")
