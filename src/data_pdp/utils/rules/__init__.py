"""Rule-file helpers.

Import directly from submodules:
    from data_pdp.utils.rules.rule_helpers import load_rules, save_rules
"""

__all__: list[str] = []
