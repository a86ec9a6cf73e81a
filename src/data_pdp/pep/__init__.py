"""Policy Enforcement Point (PEP) for data-level permissions.

Fetches rules from a rule source, asks the PDP (../pdp/) for decisions,
enforces them and logs them.

Structure:
    rule_source.py - RuleSource protocol and InMemoryRuleSource
    service.py     - DataPermissionService (check, require, batch, filtering)

Note: PermissionDeniedError is defined in data_pdp.exceptions
"""

from data_pdp.exceptions import PermissionDeniedError
from data_pdp.pep.rule_source import InMemoryRuleSource, ReloadResult, RuleSource
from data_pdp.pep.service import DataPermissionService

__all__ = [
    # Errors
    "PermissionDeniedError",
    # Rule sources
    "InMemoryRuleSource",
    "ReloadResult",
    "RuleSource",
    # Service
    "DataPermissionService",
]
