from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import asdict, is_dataclass
from decimal import Decimal
from typing import Any

from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer

from .errors import ValidationError

type AttributeValue = dict[str, Any]


class Marshaller:
    """Converts plain Python records to DynamoDB's typed wire shape and back.

    Floats become ``Decimal`` (the service's only number type). With
    ``remove_none_values`` a ``None`` field is treated as absent and dropped
    from records and nested maps; with ``convert_class_instances`` dataclass
    instances and plain objects are encoded through their attribute mapping.
    """

    def __init__(
        self,
        *,
        remove_none_values: bool = True,
        convert_class_instances: bool = True,
        native_numbers: bool = False,
    ) -> None:
        self.remove_none_values = remove_none_values
        self.convert_class_instances = convert_class_instances
        self.native_numbers = native_numbers
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    def marshall(self, record: Any) -> dict[str, AttributeValue]:
        prepared = self._prepare(record)
        if not isinstance(prepared, Mapping):
            raise ValidationError(f"record must be a mapping, got {type(record).__name__}")
        return {str(k): self._serialize(v) for k, v in prepared.items()}

    def marshall_value(self, value: Any) -> AttributeValue:
        return self._serialize(self._prepare(value))

    def marshall_values(self, values: Mapping[str, Any]) -> dict[str, AttributeValue]:
        return {k: self.marshall_value(v) for k, v in values.items()}

    def unmarshall(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return {k: self.unmarshall_value(v) for k, v in item.items()}

    def unmarshall_value(self, av: Mapping[str, Any]) -> Any:
        return self._native(self._deserializer.deserialize(dict(av)))

    def project[P](
        self,
        item: Mapping[str, Any],
        transform: Callable[[dict[str, Any]], P] | None = None,
    ) -> dict[str, Any] | P:
        plain = self.unmarshall(item)
        if transform is None:
            return plain
        return transform(plain)

    def _serialize(self, value: Any) -> AttributeValue:
        try:
            return self._serializer.serialize(value)
        except TypeError as err:
            raise ValidationError(str(err)) from err

    def _prepare(self, value: Any) -> Any:
        if value is None or isinstance(value, (str, bool, int, Decimal, bytes, bytearray, Binary)):
            return value
        if isinstance(value, float):
            return Decimal(str(value))
        if isinstance(value, Mapping):
            out: dict[str, Any] = {}
            for k, v in value.items():
                if v is None and self.remove_none_values:
                    continue
                out[str(k)] = self._prepare(v)
            return out
        if isinstance(value, (list, tuple)):
            return [self._prepare(v) for v in value]
        if isinstance(value, (set, frozenset)):
            return {self._prepare(v) for v in value}
        if self.convert_class_instances:
            if is_dataclass(value) and not isinstance(value, type):
                return self._prepare(asdict(value))
            if hasattr(value, "__dict__"):
                return self._prepare({k: v for k, v in vars(value).items() if not k.startswith("_")})
        return value

    def _native(self, value: Any) -> Any:
        if not self.native_numbers:
            return value
        if isinstance(value, Decimal):
            return int(value) if value == value.to_integral_value() else float(value)
        if isinstance(value, dict):
            return {k: self._native(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._native(v) for v in value]
        if isinstance(value, set):
            return {self._native(v) for v in value}
        return value


DEFAULT_MARSHALLER = Marshaller()
