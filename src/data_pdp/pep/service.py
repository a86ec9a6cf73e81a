"""Data permission enforcement service.

Wires a rule source, the evaluation engine and the decision logger:

    source = InMemoryRuleSource.from_file(Path("rules.json"))
    service = DataPermissionService(source, accessor=registry)

    service.require("u1", post, "update")            # raises on deny
    visible = service.filter_accessible("u1", posts, "read")
    stmt = select(Post).where(service.build_filter("u1", Post, "read").to_sqlalchemy(Post))

Every path fails closed: a rule source error, an invalid operation or an
evaluation error is a deny. Decisions are logged after evaluation; a
logging failure never changes a decision. check_batch raises ValueError when
entities cannot be keyed, before anything is evaluated.
"""

from __future__ import annotations

__all__ = ["DataPermissionService"]

import logging
import time
from collections.abc import Callable, Hashable, Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from data_pdp.access.accessor import EntityAccessor, FieldRegistry
from data_pdp.access.hierarchy import HierarchyResolver
from data_pdp.config import AppConfig
from data_pdp.exceptions import PermissionDeniedError
from data_pdp.pdp.engine import RuleEvaluator
from data_pdp.pdp.predicate import FALSE, Predicate, PredicateCompiler
from data_pdp.pdp.results import PermissionEvaluationResult
from data_pdp.pdp.rules import Operation, PermissionRule
from data_pdp.pep.rule_source import InMemoryRuleSource, RuleSource
from data_pdp.telemetry.decision_logger import DecisionEventLogger, create_decision_logger

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class DataPermissionService:
    """Policy enforcement point for data-level permissions.

    Thread-safe as long as the rule source is; the engine is stateless.
    """

    def __init__(
        self,
        rule_source: RuleSource,
        *,
        accessor: EntityAccessor | None = None,
        hierarchy: HierarchyResolver | None = None,
        config: AppConfig | None = None,
        decision_logger: DecisionEventLogger | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            rule_source: Supplies candidate rules per call.
            accessor: Entity field accessor (default: FieldRegistry using the
                configured default owner field).
            hierarchy: Optional department/organization resolver.
            config: Application config (engine settings are used here).
            decision_logger: Where decision events go (default: not logged).
            clock: Returns the evaluation time (default: current UTC time).
        """
        self._config = config or AppConfig()
        engine = self._config.engine
        self._accessor = (
            accessor if accessor is not None else FieldRegistry(default_owner_field=engine.default_owner_field)
        )
        self._rule_source = rule_source
        self._evaluator = RuleEvaluator(self._accessor, hierarchy, engine.hierarchy_fallback)
        self._compiler = PredicateCompiler(self._accessor, hierarchy, engine.hierarchy_fallback)
        self._decision_logger = decision_logger
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        rule_source: RuleSource | None = None,
        accessor: EntityAccessor | None = None,
        hierarchy: HierarchyResolver | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> "DataPermissionService":
        """Build a service from configuration.

        Uses config.rules_path for the rule source when none is given and
        creates the decision logger when decision logging is enabled.

        Raises:
            ValueError: If no rule source is given and config.rules_path is unset
                or the rule file is invalid.
            FileNotFoundError: If the configured rule file does not exist.
        """
        if rule_source is None:
            if config.rules_path is None:
                raise ValueError("No rule source given and rules_path is not configured")
            rule_source = InMemoryRuleSource.from_file(Path(config.rules_path).expanduser())

        decision_logger = None
        if config.logging.decision_log_enabled:
            decision_logger = DecisionEventLogger(
                create_decision_logger(config.logging.log_path, config.logging.level)
            )

        return cls(
            rule_source,
            accessor=accessor,
            hierarchy=hierarchy,
            config=config,
            decision_logger=decision_logger,
            clock=clock,
        )

    @property
    def accessor(self) -> EntityAccessor:
        return self._accessor

    @property
    def evaluator(self) -> RuleEvaluator:
        return self._evaluator

    # -------------------------------------------------------------------------
    # Rule fetching
    # -------------------------------------------------------------------------

    def _fetch_rules(
        self,
        principal_id: Any,
        operation: Operation,
        resource_type: str | None,
    ) -> tuple[list[PermissionRule], str | None]:
        """Fetch rules; a failing source yields (no rules, error reason)."""
        try:
            return list(self._rule_source.get_rules(principal_id, operation, resource_type)), None
        except Exception as e:
            _logger.error(
                "Rule source failed for principal %s, operation %s: %s: %s",
                principal_id,
                operation.value,
                type(e).__name__,
                e,
            )
            return [], f"Rule source error: {e}"

    def _entity_id(self, entity: Any) -> Any:
        """Entity id for logs and batch keys; None if it cannot be read."""
        try:
            return self._accessor.get_id(entity)
        except Exception as e:
            _logger.warning("Could not read id of %s entity: %s: %s", type(entity).__name__, type(e).__name__, e)
            return None

    @staticmethod
    def _parse_operation(operation: Operation | str) -> tuple[Operation | None, str | None]:
        try:
            return Operation.parse(operation), None
        except ValueError as e:
            return None, f"Evaluation error: invalid operation {operation!r}: {e}"

    # -------------------------------------------------------------------------
    # Single-entity checks
    # -------------------------------------------------------------------------

    def check(
        self,
        principal_id: Any,
        entity: Any,
        operation: Operation | str,
        *,
        resource_type: str | None = None,
    ) -> PermissionEvaluationResult:
        """Evaluate one operation on one entity and log the decision."""
        started = time.perf_counter()
        op, error = self._parse_operation(operation)
        rules: list[PermissionRule] = []
        if op is not None:
            rules, error = self._fetch_rules(principal_id, op, resource_type)

        if error is not None:
            result = PermissionEvaluationResult.deny(error, error=error)
        else:
            result = self._evaluator.evaluate(rules, entity, principal_id, op, now=self._clock())

        if self._decision_logger is not None:
            self._decision_logger.log(
                result,
                principal_id=principal_id,
                operation=op.value if op is not None else str(operation),
                entity=entity,
                entity_id=self._entity_id(entity),
                resource_type=resource_type,
                rules_available=len(rules),
                eval_ms=(time.perf_counter() - started) * 1000,
            )
        return result

    def require(
        self,
        principal_id: Any,
        entity: Any,
        operation: Operation | str,
        *,
        resource_type: str | None = None,
    ) -> PermissionEvaluationResult:
        """Like check(), but raise on deny.

        Raises:
            PermissionDeniedError: If the operation is not allowed.
        """
        result = self.check(principal_id, entity, operation, resource_type=resource_type)
        if not result.is_allowed:
            raise PermissionDeniedError(
                result.reason,
                decision=result.decision,
                principal_id=str(principal_id),
                operation=operation.value if isinstance(operation, Operation) else str(operation),
                applied_rules=result.applied_rule_ids,
            )
        return result

    # -------------------------------------------------------------------------
    # Bulk checks and filtering
    # -------------------------------------------------------------------------

    def _evaluate_many(
        self,
        event: str,
        principal_id: Any,
        entities: Iterable[T],
        operation: Operation | str,
        resource_type: str | None,
    ) -> list[tuple[T, bool]]:
        started = time.perf_counter()
        entities = list(entities)
        op, error = self._parse_operation(operation)
        rules: list[PermissionRule] = []
        if op is not None:
            rules, error = self._fetch_rules(principal_id, op, resource_type)

        if error is not None:
            outcomes = [(entity, False) for entity in entities]
        else:
            now = self._clock()
            outcomes = [
                (entity, self._evaluator.evaluate(rules, entity, principal_id, op, now=now).is_allowed)
                for entity in entities
            ]

        if self._decision_logger is not None:
            allowed = sum(1 for _, is_allowed in outcomes if is_allowed)
            self._decision_logger.log_bulk(
                event=event,
                principal_id=principal_id,
                operation=op.value if op is not None else str(operation),
                entity_type=type(entities[0]).__name__ if entities else None,
                total=len(entities),
                allowed=allowed,
                rules_available=len(rules),
                reason=error or f"{allowed} of {len(entities)} entities allowed",
                error=error,
                eval_ms=(time.perf_counter() - started) * 1000,
            )
        return outcomes

    def check_batch(
        self,
        principal_id: Any,
        entities: Iterable[Any],
        operation: Operation | str,
        *,
        key: Callable[[Any], Hashable] | None = None,
        resource_type: str | None = None,
    ) -> dict[Hashable, bool]:
        """Check many entities with one rule fetch.

        Args:
            principal_id: Acting principal.
            entities: Entities to check.
            operation: Requested operation.
            key: Maps an entity to its result key (default: its id, read
                through the accessor's id field for the entity type).
            resource_type: Passed to the rule source.

        Returns:
            Mapping of entity key to allowed flag.

        Raises:
            ValueError: If an entity has no id (default key) or two entities
                share a key.
        """
        entities = list(entities)
        if key is None:
            keys = [self._entity_id(entity) for entity in entities]
            missing = [index for index, entity_key in enumerate(keys) if entity_key is None]
            if missing:
                raise ValueError(f"Entities at positions {missing} have no id; pass key= to check_batch")
        else:
            keys = [key(entity) for entity in entities]

        if len(set(keys)) != len(keys):
            duplicates = sorted({str(k) for k in keys if keys.count(k) > 1})
            raise ValueError(f"Duplicate batch keys: {', '.join(duplicates)}")

        outcomes = self._evaluate_many("batch_decision", principal_id, entities, operation, resource_type)
        return {entity_key: is_allowed for entity_key, (_, is_allowed) in zip(keys, outcomes)}

    def filter_accessible(
        self,
        principal_id: Any,
        entities: Iterable[T],
        operation: Operation | str,
        *,
        resource_type: str | None = None,
    ) -> list[T]:
        """Entities the principal may access, evaluated one by one (exact)."""
        outcomes = self._evaluate_many("filter", principal_id, entities, operation, resource_type)
        return [entity for entity, is_allowed in outcomes if is_allowed]

    def build_filter(
        self,
        principal_id: Any,
        entity_type: type,
        operation: Operation | str,
        *,
        resource_type: str | None = None,
    ) -> Predicate[Any]:
        """Compile the principal's rules into a Predicate over entity_type.

        A failing rule source or an invalid operation yields a constant-false
        predicate.
        """
        op, error = self._parse_operation(operation)
        if op is None:
            _logger.warning("Cannot build filter: %s", error)
            return Predicate(entity_type, FALSE, self._accessor)

        rules, error = self._fetch_rules(principal_id, op, resource_type)
        if error is not None:
            return Predicate(entity_type, FALSE, self._accessor)
        return self._compiler.compile_predicate(entity_type, rules, principal_id, op, now=self._clock())

    def filter_with_predicate(
        self,
        principal_id: Any,
        entities: Iterable[T],
        operation: Operation | str,
        *,
        entity_type: type | None = None,
        verify: bool = True,
        resource_type: str | None = None,
    ) -> list[T]:
        """Pre-filter with the compiled predicate, then optionally verify.

        The predicate ignores rule conditions, so without verify the result
        may include entities a condition would exclude. With verify (the
        default) survivors are re-checked through the rule evaluator.
        """
        entities = list(entities)
        if not entities:
            return []

        op, error = self._parse_operation(operation)
        if op is None:
            _logger.warning("Cannot filter: %s", error)
            return []

        rules, error = self._fetch_rules(principal_id, op, resource_type)
        if error is not None:
            return []

        now = self._clock()
        predicate = self._compiler.compile_predicate(
            entity_type or type(entities[0]), rules, principal_id, op, now=now
        )
        survivors = predicate.filter(entities)
        if not verify:
            return survivors
        return [
            entity
            for entity in survivors
            if self._evaluator.evaluate(rules, entity, principal_id, op, now=now).is_allowed
        ]
