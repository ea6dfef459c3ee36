"""
Keeps model configuration payloads valid against a model's parameter schema
"""
import copy
import math
from typing import Any, Dict, Mapping, Optional

from promptvc.core.logging_config import LoggingConfig
from promptvc.models.language_model import AiVendor
from promptvc.services.commit_hash import canonical_json
from promptvc.services.parameter_schema_registry import (
    EnumParameter, NumericParameter, ParameterSchema, ParameterSchemaRegistry,
    default_value, enabled_parameters, get_parameter_schema_registry,
    schema_defaults, vendor_key)

logger = LoggingConfig.get_logger(__name__)

RESPONSE_FORMAT = "response_format"
JSON_SCHEMA = "json_schema"
JSON_SCHEMA_FORMAT = "json_schema"
EMPTY_JSON_SCHEMA = "{}"


def _is_number(value: Any) -> bool:
    # NaN and infinities would slip past the bound comparisons
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def configs_equal(left: Optional[Mapping[str, Any]], right: Optional[Mapping[str, Any]]) -> bool:
    """Order-insensitive comparison of two payloads"""
    return canonical_json(left or {}) == canonical_json(right or {})


class ModelConfigReconciler:
    """Validates, clamps, defaults and sanitizes configuration payloads"""

    def __init__(self, registry: Optional[ParameterSchemaRegistry] = None):
        self.registry = registry or get_parameter_schema_registry()

    def resolve_schema(
        self,
        model_name: str,
        vendor: Any,
        schema: Optional[Mapping[str, Any]] = None,
    ) -> Optional[ParameterSchema]:
        return self.registry.resolve(vendor, model_name, schema)

    def default_config(
        self,
        model_name: str,
        vendor: Any,
        schema: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Defaults of the model's schema, or the vendor-level configuration without one"""
        resolved = self.resolve_schema(model_name, vendor, schema)
        if not resolved:
            return self._generic_defaults(vendor)
        return self._apply_coupling(resolved, schema_defaults(resolved))

    def reconcile(
        self,
        model_name: str,
        vendor: Any,
        current_config: Optional[Mapping[str, Any]],
        schema: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Sanitize a payload against the model's schema.

        Out-of-range numbers are clamped, unknown enum values fall back to the
        default, missing parameters are filled with their defaults and keys the
        schema does not enable are dropped. Without any schema the vendor-level
        configuration is returned as is.
        """
        resolved = self.resolve_schema(model_name, vendor, schema)
        if not resolved:
            return self._generic_defaults(vendor)

        current = current_config if isinstance(current_config, Mapping) else {}
        result: Dict[str, Any] = {}

        for name, definition in enabled_parameters(resolved).items():
            if name in current and current[name] is not None:
                value = self._sanitize_value(definition, current[name])
            else:
                value = default_value(definition)
            if value is not None:
                result[name] = value

        dropped = sorted(set(current) - set(enabled_parameters(resolved)))
        if dropped:
            logger.debug(
                f"Dropped parameters not enabled for {model_name}: {dropped}",
                extra={"model_name": model_name, "dropped": dropped}
            )

        return self._apply_coupling(resolved, result)

    def carry_over_config(
        self,
        old_config: Optional[Mapping[str, Any]],
        model_name: str,
        vendor: Any,
        schema: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Configuration for a prompt switching to another model.

        Starts from the new model's defaults and keeps old values the new
        schema understands, including a JSON schema response format.
        """
        resolved = self.resolve_schema(model_name, vendor, schema)
        if not resolved:
            return self._generic_defaults(vendor)

        old = old_config if isinstance(old_config, Mapping) else {}
        enabled = enabled_parameters(resolved)

        merged = schema_defaults(resolved)
        for name, value in old.items():
            if name in enabled:
                merged[name] = copy.deepcopy(value)

        if old.get(RESPONSE_FORMAT) == JSON_SCHEMA_FORMAT and RESPONSE_FORMAT in enabled:
            merged[RESPONSE_FORMAT] = JSON_SCHEMA_FORMAT
            merged[JSON_SCHEMA] = copy.deepcopy(old.get(JSON_SCHEMA))

        return self.reconcile(model_name, vendor, merged, resolved)

    def sanitize_edit(
        self,
        model_name: str,
        vendor: Any,
        config: Optional[Mapping[str, Any]],
        schema: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Payload to store when a user saves a configuration"""
        resolved = self.resolve_schema(model_name, vendor, schema)
        if not resolved and vendor_key(vendor) == AiVendor.CUSTOM_OPENAI_COMPATIBLE.value:
            # Custom models without a schema accept anything
            return copy.deepcopy(dict(config or {}))
        return self.reconcile(model_name, vendor, config, resolved)

    def _generic_defaults(self, vendor: Any) -> Dict[str, Any]:
        if vendor_key(vendor) == AiVendor.CUSTOM_OPENAI_COMPATIBLE.value:
            return {}
        return self.registry.generic_defaults(vendor)

    def _sanitize_value(self, definition, value: Any) -> Any:
        if isinstance(definition, NumericParameter):
            if not _is_number(value):
                return default_value(definition)
            return definition.clamp(value)

        if isinstance(definition, EnumParameter):
            if value in definition.allowed:
                return value
            if definition.default in definition.allowed:
                return definition.default
            return definition.allowed[0]

        # flag
        if isinstance(definition.default, list) and not isinstance(value, list):
            return copy.deepcopy(definition.default)
        return copy.deepcopy(value)

    @staticmethod
    def _apply_coupling(schema: ParameterSchema, config: Dict[str, Any]) -> Dict[str, Any]:
        """json_schema only travels with the json_schema response format"""
        enabled = enabled_parameters(schema)
        if RESPONSE_FORMAT not in enabled or JSON_SCHEMA not in enabled:
            return config

        if config.get(RESPONSE_FORMAT) == JSON_SCHEMA_FORMAT:
            value = config.get(JSON_SCHEMA)
            if not isinstance(value, str) or not value.strip():
                config[JSON_SCHEMA] = EMPTY_JSON_SCHEMA
        else:
            config.pop(JSON_SCHEMA, None)
        return config
