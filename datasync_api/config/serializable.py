import logging
from typing import Mapping

from datasync_api.type_defs import JsonObject, JsonValue, is_json_object

logger = logging.getLogger(__name__)

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off", ""})


def coerce_setting(value: object, type_hint: object) -> object:
    """Convert string values from the environment to the annotated type."""
    if not isinstance(value, str):
        return value
    hint = str(type_hint)
    stripped = value.strip()
    if type_hint is bool or hint == "bool":
        lowered = stripped.lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValueError(f"Expected a boolean, got {value!r}")
    if type_hint is int or hint in {"int", "int | None"}:
        return int(stripped) if stripped else None
    if type_hint is float or hint in {"float", "float | None"}:
        return float(stripped) if stripped else None
    return value


class Serializable:
    def _annotations(self) -> dict[str, object]:
        annotations: dict[str, object] = {}
        for cls in reversed(type(self).mro()):
            cls_annotations = getattr(cls, "__annotations__", None)
            if isinstance(cls_annotations, dict):
                annotations.update(cls_annotations)
        return annotations

    def to_dict(self) -> JsonObject:
        result: JsonObject = {}
        for key in self.get_all_keys():
            if key.startswith("_"):
                continue
            value = getattr(self, key, None)
            if isinstance(value, Serializable):
                result[key] = value.to_dict()
            elif value is not None:
                result[key] = value
        return result

    def from_dict(self, data: Mapping[str, JsonValue]) -> None:
        for key, type_hint in self._annotations().items():
            if key.startswith("_") or key not in data:
                continue
            value = data[key]

            try:
                existing_attr = getattr(self, key)
            except AttributeError:
                logger.warning(f"{key} not in {self.__class__.__name__}. Skipping...")
                continue

            if isinstance(existing_attr, Serializable):
                if not is_json_object(value):
                    logger.warning(
                        f"Expected dict for {key} in {self.__class__.__name__}, got {type(value)}. Skipping..."
                    )
                    continue
                existing_attr.from_dict(value)
            else:
                self.set_value(key, value)

    def set_value(self, key: str, value: object) -> None:
        type_hint = self._annotations().get(key)
        try:
            value = coerce_setting(value, type_hint)
        except ValueError as error:
            logger.warning(
                f"Invalid value for {self.__class__.__name__}.{key}: {error}. Keeping {getattr(self, key, None)!r}"
            )
            return
        setattr(self, key, value)

    def missing_keys(self) -> list[str]:
        return [
            key
            for key in self._annotations()
            if not key.startswith("_") and getattr(self, key, None) in (None, "")
        ]

    def get_all_keys(self) -> set[str]:
        instance_keys = set(self.__dict__.keys())
        annotation_keys = set(self._annotations().keys())
        return instance_keys | annotation_keys
