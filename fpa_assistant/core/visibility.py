"""
Deterministic visibility evaluator for record fields.

Decides whether an optional field is worth asking about given the
values collected so far (e.g. an expiration date only matters once the
application status is Approved). Never delegated to the LLM.
"""

from fpa_assistant.core.schema import ConditionOperator, RecordField, VisibilityCondition


def is_field_visible(field: RecordField, values: dict[str, str]) -> bool:
    """Determine if a field should be prompted for given the current values.

    A field with no `visible_if` rule is always visible. Otherwise every
    condition in the rule's `all` list must pass.

    Args:
        field: The record field to evaluate.
        values: Current resolved values keyed by field ID.

    Returns:
        True if the field is visible, False otherwise.
    """
    if field.visible_if is None:
        return True

    return all(_evaluate_condition(condition, values) for condition in field.visible_if.all)


def _evaluate_condition(condition: VisibilityCondition, values: dict[str, str]) -> bool:
    field_value = values.get(condition.field)
    if field_value == "":
        field_value = None

    match condition.operator:
        case ConditionOperator.EXISTS:
            return field_value is not None

        case ConditionOperator.EQUALS:
            if field_value is None or condition.value is None:
                return False
            return str(field_value) == condition.value

        case ConditionOperator.NOT_EQUALS:
            if field_value is None or condition.value is None:
                return False
            return str(field_value) != condition.value

    return False
