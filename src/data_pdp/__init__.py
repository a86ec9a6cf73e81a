"""data-pdp: data-level permission decision point.

Evaluates per-user permission rules against entity instances and compiles
the same rules into predicates for bulk filtering.

Layout:
    access/     - Entity field access and hierarchy contracts
    pdp/        - Stateless evaluation engine (conditions, scopes, rules, predicates)
    pep/        - Enforcement service (rule sources, decision logging)
    telemetry/  - Audit event models and decision logger
    utils/      - Logging setup, file and rule-file helpers
    cli/        - Developer CLI for evaluating rule files
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
