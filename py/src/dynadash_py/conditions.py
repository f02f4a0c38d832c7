from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidExpressionValue, ValidationError
from .expressions import clean_attribute_name

CONDITION_OPS = frozenset({"=", "<>", ">", "<", ">=", "<=", "IN", "BETWEEN"})
CONDITION_FUNCS = frozenset({"attribute_exists", "attribute_not_exists", "size"})
LOGIC_OPS = frozenset({"AND", "OR", "NOT"})


@dataclass(frozen=True)
class FieldCondition:
    key: str
    op: str | None = None
    value: Any = None
    func: str | None = None
    logic_op: str | None = None

    @staticmethod
    def from_mapping(raw: Mapping[str, Any]) -> FieldCondition:
        if "key" not in raw:
            raise ValidationError("condition requires a key")
        return FieldCondition(
            key=str(raw["key"]),
            op=raw.get("op"),
            value=raw.get("value"),
            func=raw.get("func"),
            logic_op=raw.get("logic_op", raw.get("logicOp")),
        )

    @staticmethod
    def exists(key: str, *, logic_op: str | None = None) -> FieldCondition:
        return FieldCondition(key=key, func="attribute_exists", logic_op=logic_op)

    @staticmethod
    def not_exists(key: str, *, logic_op: str | None = None) -> FieldCondition:
        return FieldCondition(key=key, func="attribute_not_exists", logic_op=logic_op)


type ConditionList = str | Sequence[FieldCondition | Mapping[str, Any]]


@dataclass(frozen=True)
class ConditionExpressions:
    update_expression: str | None
    condition_expression: str | None
    names: dict[str, str] = field(default_factory=dict)
    condition_values: dict[str, Any] = field(default_factory=dict)
    update_values: dict[str, Any] = field(default_factory=dict)

    @property
    def values(self) -> dict[str, Any] | None:
        merged = {**self.condition_values, **self.update_values}
        return merged or None


class _Placeholders:
    def __init__(self) -> None:
        self.names: dict[str, str] = {}
        self.condition_values: dict[str, Any] = {}
        self.update_values: dict[str, Any] = {}

    def name(self, original: str) -> str:
        ref = f"#{clean_attribute_name(original)}"
        existing = self.names.get(ref)
        if existing is not None and existing != original:
            raise ValidationError(f"expression attribute name collision: {ref}")
        self.names[ref] = original
        return ref

    def condition_value(self, token: str, value: Any) -> str:
        ref = f":{token}"
        suffix = 0
        while ref in self.condition_values and self.condition_values[ref] != value:
            suffix += 1
            ref = f":{token}_{suffix}"
        self.condition_values[ref] = value
        return ref


def _coerce(cond: FieldCondition | Mapping[str, Any]) -> FieldCondition:
    if isinstance(cond, FieldCondition):
        return cond
    if isinstance(cond, Mapping):
        return FieldCondition.from_mapping(cond)
    raise ValidationError(f"invalid condition: {cond!r}")


def _render(cond: FieldCondition, ph: _Placeholders) -> str:
    op = cond.op.strip().upper() if isinstance(cond.op, str) else None
    func = cond.func.strip() if isinstance(cond.func, str) else None
    key = clean_attribute_name(cond.key)

    if func is not None:
        if func not in CONDITION_FUNCS:
            raise ValidationError(f"unsupported condition function: {cond.func}")
        name = ph.name(cond.key)
        if op is None:
            return f"{func}({name})"
        if func != "size":
            raise ValidationError(f"{func} does not take an operator")
        if op not in CONDITION_OPS or op in {"IN", "BETWEEN"}:
            raise ValidationError(f"unsupported operator for size: {cond.op}")
        if cond.value is None:
            raise InvalidExpressionValue(cond.key)
        return f"{func}({name}) {op} {ph.condition_value(f'{key}Xvv', cond.value)}"

    if op is None:
        raise ValidationError(f"condition on {cond.key} requires an op or a func")
    if op not in CONDITION_OPS:
        raise ValidationError(f"unsupported condition operator: {cond.op}")
    if cond.value is None:
        raise InvalidExpressionValue(cond.key)

    if op == "IN":
        if not isinstance(cond.value, Sequence) or isinstance(cond.value, (str, bytes, bytearray)):
            raise ValidationError("IN requires a sequence of values")
        if not cond.value:
            raise ValidationError("IN requires at least one value")
        if len(cond.value) > 100:
            raise ValidationError("IN supports maximum 100 values")
        name = ph.name(cond.key)
        refs = [ph.condition_value(f"{key}IN_{i}", v) for i, v in enumerate(cond.value)]
        return f"({name} IN ({', '.join(refs)}))"

    if op == "BETWEEN":
        if not isinstance(cond.value, Sequence) or isinstance(cond.value, (str, bytes, bytearray)):
            raise ValidationError("BETWEEN requires two values")
        if len(cond.value) != 2:
            raise ValidationError("BETWEEN requires two values")
        low, high = cond.value
        if low is None or high is None:
            raise InvalidExpressionValue(cond.key)
        name = ph.name(cond.key)
        low_ref = ph.condition_value(f"{key}Xaa", low)
        high_ref = ph.condition_value(f"{key}Xbb", high)
        return f"({name} BETWEEN {low_ref} AND {high_ref})"

    name = ph.name(cond.key)
    return f"{name} {op} {ph.condition_value(f'{key}Xvv', cond.value)}"


def get_condition_expression(
    record: Mapping[str, Any],
    conditions: ConditionList | None = None,
    include_all_fields: bool = False,
) -> ConditionExpressions:
    """Build update and condition expressions over one shared placeholder table.

    With ``include_all_fields`` every field of ``record`` is written with
    ``SET``; without it only fields that some condition references are.
    A ``str`` passed as ``conditions`` is used verbatim as the condition
    expression; its placeholders are the caller's responsibility.
    """
    ph = _Placeholders()
    parts: list[str] = []

    if isinstance(conditions, str):
        if conditions.strip():
            parts.append(conditions)
    elif conditions is not None:
        for raw in conditions:
            cond = _coerce(raw)
            rendered = _render(cond, ph)
            if cond.logic_op is not None:
                logic = str(cond.logic_op).strip().upper()
                if logic not in LOGIC_OPS:
                    raise ValidationError(f"unsupported logic operator: {cond.logic_op}")
                rendered = f"{rendered} {logic}"
            parts.append(rendered)

    updates: list[str] = []
    for original in record:
        key = clean_attribute_name(str(original))
        ref = f"#{key}"
        if not include_all_fields and ref not in ph.names:
            continue
        value = record[original]
        if value is None:
            raise InvalidExpressionValue(str(original))
        value_ref = f":{key}"
        if value_ref in ph.condition_values:
            raise ValidationError(f"expression attribute value collision: {value_ref}")
        ph.name(str(original))
        ph.update_values[value_ref] = value
        updates.append(f"{ref} = {value_ref}")

    return ConditionExpressions(
        update_expression=f"SET {', '.join(updates)}" if updates else None,
        condition_expression=" ".join(parts) or None,
        names=ph.names,
        condition_values=ph.condition_values,
        update_values=ph.update_values,
    )
