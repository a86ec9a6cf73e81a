"""Evaluation commands for data-pdp CLI.

Evaluates a rule file offline against JSON entities:
- evaluate: one entity, prints the decision and the evaluation trace
- filter:   an array of entities, prints the entities the predicate keeps
"""

from __future__ import annotations

__all__ = ["evaluate", "filter_entities"]

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import click

from data_pdp.config import AppConfig
from data_pdp.exceptions import ConfigurationError
from data_pdp.pdp.results import PermissionEvaluationResult
from data_pdp.pdp.rules import Operation
from data_pdp.pep.rule_source import InMemoryRuleSource
from data_pdp.pep.service import DataPermissionService

from ..styling import style_decision, style_dim, style_error, style_label

_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)
_OPERATION = click.Choice([op.value for op in Operation], case_sensitive=False)


def _parse_now(value: str | None) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise click.BadParameter(f"not an ISO 8601 timestamp: {value}", param_hint="--now") from e
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _load_json(path: Path, what: str) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        click.echo(style_error(f"Invalid JSON in {what} file {path}: {e}"), err=True)
        sys.exit(1)
    except OSError as e:
        click.echo(style_error(f"Could not read {what} file {path}: {e}"), err=True)
        sys.exit(1)


def _build_service(
    rules_path: Path,
    config_path: Path | None,
    hierarchy_fallback: str | None,
    owner_field: str | None,
    now: datetime,
) -> DataPermissionService:
    """Load rules and config; exits with status 1 on invalid input."""
    try:
        source = InMemoryRuleSource.from_file(rules_path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)

    try:
        config = AppConfig.load_from_file(config_path) if config_path else AppConfig()
    except ConfigurationError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)

    engine_updates: dict[str, str] = {}
    if hierarchy_fallback is not None:
        engine_updates["hierarchy_fallback"] = hierarchy_fallback
    if owner_field is not None:
        engine_updates["default_owner_field"] = owner_field
    if engine_updates:
        config = config.model_copy(update={"engine": config.engine.model_copy(update=engine_updates)})

    if config_path is not None:
        return DataPermissionService.from_config(config, rule_source=source, clock=lambda: now)
    return DataPermissionService(source, config=config, clock=lambda: now)


def _result_to_dict(result: PermissionEvaluationResult) -> dict[str, Any]:
    data: dict[str, Any] = {
        "decision": result.decision.value,
        "is_allowed": result.is_allowed,
        "reason": result.reason,
        "applied_rules": result.applied_rule_ids,
        "trace": [
            {"rule_id": entry.rule.id, "is_match": entry.is_match, "reason": entry.reason}
            for entry in result.trace
        ],
    }
    if result.error is not None:
        data["error"] = result.error
    return data


def _engine_options(command: Any) -> Any:
    """Options shared by evaluate and filter."""
    options = [
        click.option("--rules", "rules_path", required=True, type=_FILE, help="JSON rule file"),
        click.option("--principal", "-p", required=True, help="Acting principal id"),
        click.option("--operation", "-o", required=True, type=_OPERATION, help="Requested operation"),
        click.option("--now", "now_text", help="Evaluation time, ISO 8601 (default: now, UTC)"),
        click.option("--config", "config_path", type=_FILE, help="Config file (enables decision logging)"),
        click.option(
            "--hierarchy-fallback",
            type=click.Choice(["match", "deny"]),
            help="Outcome of department/organization scopes (overrides config)",
        ),
        click.option("--owner-field", help="Entity field holding the owner id (overrides config)"),
    ]
    for option in reversed(options):
        command = option(command)
    return command


@click.command("evaluate")
@_engine_options
@click.option("--entity", "entity_path", required=True, type=_FILE, help="JSON file with one entity object")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--fail-on-deny", is_flag=True, help="Exit with status 2 when the operation is denied")
def evaluate(
    rules_path: Path,
    principal: str,
    operation: str,
    now_text: str | None,
    config_path: Path | None,
    hierarchy_fallback: str | None,
    owner_field: str | None,
    entity_path: Path,
    as_json: bool,
    fail_on_deny: bool,
) -> None:
    """Evaluate the rules for one entity and show the trace."""
    now = _parse_now(now_text)
    entity = _load_json(entity_path, "entity")
    if not isinstance(entity, dict):
        click.echo(style_error(f"Entity file {entity_path} must contain a JSON object"), err=True)
        sys.exit(1)

    service = _build_service(rules_path, config_path, hierarchy_fallback, owner_field, now)
    result = service.check(principal, entity, operation)

    if as_json:
        click.echo(json.dumps(_result_to_dict(result), indent=2))
    else:
        click.echo(style_label("Decision") + f" {style_decision(result.is_allowed)}")
        click.echo(style_label("Reason") + f" {result.reason}")
        if result.error is not None:
            click.echo(style_error(f"Error: {result.error}"))
        click.echo(style_label("Trace"))
        if not result.trace:
            click.echo(style_dim("  (no rules inspected)"))
        for entry in result.trace:
            marker = click.style("✓", fg="green") if entry.is_match else style_dim("·")
            click.echo(f"  {marker} [{entry.rule.id}] priority={entry.rule.priority}: {entry.reason}")

    if fail_on_deny and not result.is_allowed:
        sys.exit(2)


@click.command("filter")
@_engine_options
@click.option(
    "--entities", "entities_path", required=True, type=_FILE, help="JSON file with an array of entity objects"
)
@click.option("--show-expression", is_flag=True, help="Print the compiled predicate to stderr")
@click.option("--verify", is_flag=True, help="Re-check kept entities with full rule evaluation (conditions)")
def filter_entities(
    rules_path: Path,
    principal: str,
    operation: str,
    now_text: str | None,
    config_path: Path | None,
    hierarchy_fallback: str | None,
    owner_field: str | None,
    entities_path: Path,
    show_expression: bool,
    verify: bool,
) -> None:
    """Filter entities with the compiled predicate and print the kept ones.

    The predicate covers rule scopes only; pass --verify to also apply
    rule conditions.
    """
    now = _parse_now(now_text)
    entities = _load_json(entities_path, "entities")
    if not isinstance(entities, list) or not all(isinstance(entity, dict) for entity in entities):
        click.echo(style_error(f"Entities file {entities_path} must contain a JSON array of objects"), err=True)
        sys.exit(1)

    service = _build_service(rules_path, config_path, hierarchy_fallback, owner_field, now)
    if show_expression:
        predicate = service.build_filter(principal, dict, operation)
        click.echo(style_label("Expression") + f" {predicate}", err=True)

    kept = service.filter_with_predicate(principal, entities, operation, entity_type=dict, verify=verify)
    click.echo(json.dumps(kept, indent=2))
