from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from .errors import InvalidExpressionValue, ValidationError
from .marshalling import DEFAULT_MARSHALLER, Marshaller

logger = logging.getLogger(__name__)

type ExpressionKind = Literal["KeyConditionExpression", "FilterExpression"]

_UNSAFE_NAME_CHARS = str.maketrans({"*": "_", ".": "_", "-": "_"})
_COMPARISON_OPS = frozenset({"=", "<>", ">", "<", ">=", "<="})


def clean_attribute_name(name: str) -> str:
    if "*" not in name and "." not in name and "-" not in name:
        return name
    return name.translate(_UNSAFE_NAME_CHARS)


@dataclass(frozen=True)
class KeyCondition:
    op: str
    value: Any

    @staticmethod
    def eq(value: Any) -> KeyCondition:
        return KeyCondition(op="=", value=value)

    @staticmethod
    def ne(value: Any) -> KeyCondition:
        return KeyCondition(op="<>", value=value)

    @staticmethod
    def lt(value: Any) -> KeyCondition:
        return KeyCondition(op="<", value=value)

    @staticmethod
    def lte(value: Any) -> KeyCondition:
        return KeyCondition(op="<=", value=value)

    @staticmethod
    def gt(value: Any) -> KeyCondition:
        return KeyCondition(op=">", value=value)

    @staticmethod
    def gte(value: Any) -> KeyCondition:
        return KeyCondition(op=">=", value=value)

    @staticmethod
    def begins_with(prefix: Any) -> KeyCondition:
        return KeyCondition(op="begins_with", value=prefix)


@dataclass(frozen=True)
class BetweenCondition:
    low: Any
    high: Any


type ConditionValue = Any | KeyCondition | BetweenCondition | Mapping[str, Any]
type ExpressionMap = Mapping[str, ConditionValue]


@dataclass(frozen=True)
class CompiledExpression:
    kind: ExpressionKind
    expression: str
    names: dict[str, str] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)

    def encoded_values(self, marshaller: Marshaller = DEFAULT_MARSHALLER) -> dict[str, Any]:
        return marshaller.marshall_values(self.values)

    def to_request(self, marshaller: Marshaller = DEFAULT_MARSHALLER) -> dict[str, Any]:
        return {
            self.kind: self.expression,
            "ExpressionAttributeNames": dict(self.names),
            "ExpressionAttributeValues": self.encoded_values(marshaller),
        }


def _normalize(field_name: str, cond: ConditionValue) -> KeyCondition | BetweenCondition:
    if isinstance(cond, (KeyCondition, BetweenCondition)):
        normalized: KeyCondition | BetweenCondition = cond
    elif isinstance(cond, Mapping):
        op = str(cond.get("op") or "").strip()
        if op.upper() == "BETWEEN":
            normalized = BetweenCondition(low=cond.get("low"), high=cond.get("high"))
        else:
            if "value" not in cond:
                raise InvalidExpressionValue(field_name)
            normalized = KeyCondition(op=op, value=cond["value"])
    else:
        normalized = KeyCondition(op="=", value=cond)

    if isinstance(normalized, BetweenCondition):
        if normalized.low is None or normalized.high is None:
            raise InvalidExpressionValue(field_name)
        return normalized

    if normalized.value is None:
        raise InvalidExpressionValue(field_name)
    op = normalized.op.strip()
    if op.lower() == "begins_with":
        return KeyCondition(op="begins_with", value=normalized.value)
    if op not in _COMPARISON_OPS:
        raise ValidationError(f"unsupported condition operator for {field_name}: {normalized.op}")
    return normalized


def compile_expression_map(mapping: ExpressionMap, *, kind: ExpressionKind) -> CompiledExpression:
    """Compile ``{field: condition}`` into an expression plus placeholder tables.

    Every entry is validated before any placeholder is registered, so a map
    holding an undefined (``None``) value never yields a partial expression.
    Placeholders derive from the sanitized field name, which keeps the output
    deterministic across calls.
    """
    if kind not in {"KeyConditionExpression", "FilterExpression"}:
        raise ValidationError(f"unsupported expression kind: {kind}")

    try:
        normalized = [(str(name), _normalize(str(name), cond)) for name, cond in mapping.items()]
    except ValidationError:
        logger.error("invalid %s map: %r", kind, mapping)
        raise

    clauses: list[str] = []
    names: dict[str, str] = {}
    values: dict[str, Any] = {}

    for original, cond in normalized:
        key = clean_attribute_name(original)
        attribute = f"#{key}"
        anchor = f":{key}"

        existing = names.get(attribute)
        if existing is not None and existing != original:
            raise ValidationError(f"expression attribute name collision: {attribute}")
        names[attribute] = original

        if isinstance(cond, BetweenCondition):
            low_anchor = f"{anchor}_low"
            high_anchor = f"{anchor}_high"
            clauses.append(f"{attribute} BETWEEN {low_anchor} AND {high_anchor}")
            values[low_anchor] = cond.low
            values[high_anchor] = cond.high
        elif cond.op == "begins_with":
            clauses.append(f"begins_with({attribute}, {anchor})")
            values[anchor] = cond.value
        else:
            clauses.append(f"{attribute} {cond.op} {anchor}")
            values[anchor] = cond.value

    return CompiledExpression(kind=kind, expression=" and ".join(clauses), names=names, values=values)


def key_condition_expression(mapping: ExpressionMap) -> CompiledExpression:
    return compile_expression_map(mapping, kind="KeyConditionExpression")


def filter_expression(mapping: ExpressionMap) -> CompiledExpression:
    return compile_expression_map(mapping, kind="FilterExpression")


def _merge_placeholders(req: dict[str, Any], compiled: CompiledExpression, marshaller: Marshaller) -> None:
    names = req.setdefault("ExpressionAttributeNames", {})
    for ref, original in compiled.names.items():
        existing = names.get(ref)
        if existing is not None and existing != original:
            raise ValidationError(f"expression attribute name collision: {ref}")
        names[ref] = original

    values = req.setdefault("ExpressionAttributeValues", {})
    for ref, av in compiled.encoded_values(marshaller).items():
        existing = values.get(ref)
        if existing is not None and existing != av:
            raise ValidationError(f"expression attribute value collision: {ref}")
        values[ref] = av


def build_query_request(
    table_name: str,
    *,
    index_name: str | None = None,
    key_conditions: ExpressionMap | None = None,
    filter_conditions: ExpressionMap | None = None,
    marshaller: Marshaller = DEFAULT_MARSHALLER,
    **params: Any,
) -> dict[str, Any]:
    if not table_name:
        raise ValidationError("table_name is required")

    req: dict[str, Any] = {"TableName": table_name}
    if index_name is not None:
        req["IndexName"] = index_name
    req.update(params)
    if "ExpressionAttributeNames" in req:
        req["ExpressionAttributeNames"] = dict(req["ExpressionAttributeNames"])
    if "ExpressionAttributeValues" in req:
        req["ExpressionAttributeValues"] = dict(req["ExpressionAttributeValues"])

    if key_conditions:
        compiled = key_condition_expression(key_conditions)
        req["KeyConditionExpression"] = compiled.expression
        _merge_placeholders(req, compiled, marshaller)
    if filter_conditions:
        compiled = filter_expression(filter_conditions)
        req["FilterExpression"] = compiled.expression
        _merge_placeholders(req, compiled, marshaller)

    return req
