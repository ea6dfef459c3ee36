"""
Parameter schemas of language models

Built-in schemas come from JSON model catalogs; custom models carry a
loosely-typed ``parameters_config`` blob in the database which is parsed into
the same tagged union.
"""
import copy
import json
import threading
from enum import Enum
from pathlib import Path
from typing import (Annotated, Any, Dict, Iterable, List, Literal, Mapping,
                    Optional, Tuple, Union)

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, model_validator

from promptvc.core.config import get_settings
from promptvc.core.exceptions import InvalidParameterSchemaError
from promptvc.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)

CATALOG_DIR = Path(__file__).resolve().parent.parent / "config" / "models"

Number = Union[int, float]


class NumericParameter(BaseModel):
    kind: Literal["numeric"] = "numeric"
    enabled: bool = True
    min: Optional[Number] = None
    max: Optional[Number] = None
    default: Optional[Number] = None

    @model_validator(mode='after')
    def check_bounds(self):
        """Bounds must describe a non-empty range"""
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"min ({self.min}) is greater than max ({self.max})")
        return self

    def clamp(self, value: Number) -> Number:
        if self.min is not None and value < self.min:
            return self.min
        if self.max is not None and value > self.max:
            return self.max
        return value


class EnumParameter(BaseModel):
    kind: Literal["enum"] = "enum"
    enabled: bool = True
    allowed: List[str] = Field(..., min_length=1)
    default: Optional[str] = None


class FlagParameter(BaseModel):
    kind: Literal["flag"] = "flag"
    enabled: bool = True
    default: Any = None


ParameterDefinition = Annotated[
    Union[NumericParameter, EnumParameter, FlagParameter],
    Field(discriminator="kind"),
]
ParameterSchema = Dict[str, Union[NumericParameter, EnumParameter, FlagParameter]]

_definition_adapter = TypeAdapter(ParameterDefinition)


def vendor_key(vendor: Any) -> str:
    """Vendors are compared by their upper-case string value"""
    if isinstance(vendor, Enum):
        vendor = vendor.value
    return str(vendor or "").strip().upper()


def _infer_kind(entry: Mapping[str, Any]) -> str:
    if "kind" in entry:
        return entry["kind"]
    if "allowed" in entry:
        return "enum"
    if "min" in entry or "max" in entry:
        return "numeric"
    return "flag"


def parse_parameters_config(blob: Optional[Mapping[str, Any]]) -> ParameterSchema:
    """Parse a ``{param: {enabled?, min?, max?, default?, allowed?}}`` blob.

    Entries may also be definitions that were parsed already. Raises
    InvalidParameterSchemaError naming the first malformed parameter.
    """
    schema: ParameterSchema = {}
    if not blob:
        return schema
    if not isinstance(blob, Mapping):
        raise InvalidParameterSchemaError("*", f"expected an object, got {type(blob).__name__}")

    for name, entry in blob.items():
        if isinstance(entry, (NumericParameter, EnumParameter, FlagParameter)):
            schema[name] = entry
            continue
        if not isinstance(entry, Mapping):
            raise InvalidParameterSchemaError(name, f"expected an object, got {type(entry).__name__}")

        data = dict(entry)
        data["kind"] = _infer_kind(entry)
        try:
            schema[name] = _definition_adapter.validate_python(data)
        except ValidationError as e:
            errors = "; ".join(err["msg"] for err in e.errors())
            raise InvalidParameterSchemaError(name, errors) from e

    return schema


def enabled_parameters(schema: Optional[ParameterSchema]) -> ParameterSchema:
    return {name: definition for name, definition in (schema or {}).items() if definition.enabled}


def default_value(definition) -> Any:
    """Default of one parameter, kept inside its own constraints; None when it has none"""
    if definition.default is None:
        return None
    if isinstance(definition, NumericParameter):
        return definition.clamp(definition.default)
    if isinstance(definition, EnumParameter):
        return definition.default if definition.default in definition.allowed else definition.allowed[0]
    return copy.deepcopy(definition.default)


def schema_defaults(schema: Optional[ParameterSchema]) -> Dict[str, Any]:
    """Default payload of a schema: enabled parameters that declare a default"""
    defaults: Dict[str, Any] = {}
    for name, definition in enabled_parameters(schema).items():
        value = default_value(definition)
        if value is not None:
            defaults[name] = value
    return defaults


class ParameterSchemaRegistry:
    """Per-(vendor, model) parameter schemas loaded from JSON catalogs"""

    def __init__(self, catalog_dirs: Optional[Iterable[Union[str, Path]]] = None):
        if catalog_dirs is None:
            catalog_dirs = [CATALOG_DIR]
            extra_dir = get_settings().parameter_schemas_dir
            if extra_dir:
                catalog_dirs.append(Path(extra_dir))

        self._schemas: Dict[Tuple[str, str], ParameterSchema] = {}
        self._vendor_defaults: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

        for directory in catalog_dirs:
            self.load_directory(Path(directory))

    def load_directory(self, directory: Path) -> int:
        """Load every *.json catalog in a directory; returns the number of models loaded"""
        if not directory.is_dir():
            logger.warning(f"Model catalog directory {directory} does not exist, skipping")
            return 0

        loaded = 0
        for path in sorted(directory.glob("*.json")):
            try:
                loaded += self.load_catalog(path)
            except (OSError, ValueError, KeyError, TypeError, InvalidParameterSchemaError) as e:
                logger.error(
                    f"Invalid model catalog {path.name}: {e}",
                    extra={"catalog_path": str(path)}
                )
        return loaded

    def load_catalog(self, path: Path) -> int:
        """Load one catalog file: {"vendor_defaults": {...}, "models": [{"name", "vendor", "parameters"}]}"""
        with open(path, 'r', encoding='utf-8') as f:
            catalog = json.load(f)

        # Parse everything before registering so a bad file leaves no partial state
        entries = [
            (model["vendor"], model["name"], parse_parameters_config(model.get("parameters")))
            for model in catalog.get("models", [])
        ]
        vendor_defaults = catalog.get("vendor_defaults") or {}

        with self._lock:
            for vendor, name, schema in entries:
                self._schemas[(vendor_key(vendor), name)] = schema
            for vendor, defaults in vendor_defaults.items():
                self._vendor_defaults[vendor_key(vendor)] = dict(defaults)

        logger.debug(f"Loaded {len(entries)} model schemas from {path.name}")
        return len(entries)

    def register(self, vendor: Any, model_name: str, schema: Mapping[str, Any]) -> ParameterSchema:
        parsed = parse_parameters_config(schema)
        with self._lock:
            self._schemas[(vendor_key(vendor), model_name)] = parsed
        return parsed

    def get(self, vendor: Any, model_name: str) -> Optional[ParameterSchema]:
        """Built-in schema of a model, if the catalogs define one"""
        return self._schemas.get((vendor_key(vendor), model_name))

    def resolve(
        self,
        vendor: Any,
        model_name: str,
        parameters_config: Optional[Mapping[str, Any]] = None,
    ) -> Optional[ParameterSchema]:
        """Effective schema: a non-empty database schema wins over the catalogs.

        Returns None when the model has no schema at all.
        """
        if parameters_config:
            return parse_parameters_config(parameters_config)
        schema = self.get(vendor, model_name)
        return schema or None

    def generic_defaults(self, vendor: Any) -> Dict[str, Any]:
        """Vendor-level configuration for models without a schema"""
        return dict(self._vendor_defaults.get(vendor_key(vendor), {}))

    def known_models(self) -> List[Tuple[str, str]]:
        return sorted(self._schemas)

    @staticmethod
    def custom_params_template() -> Dict[str, Dict[str, Any]]:
        """Starting ``parameters_config`` for a custom-provider model, everything disabled"""
        return {
            "temperature": {"enabled": False, "min": 0, "max": 2, "default": 0.7},
            "max_tokens": {"enabled": False, "min": 1, "max": 128000, "default": 4096},
            "response_format": {
                "enabled": False,
                "allowed": ["text", "json_object", "json_schema"],
                "default": "text",
            },
            "tools": {"enabled": False},
        }


_registry: Optional[ParameterSchemaRegistry] = None
_registry_lock = threading.Lock()


def get_parameter_schema_registry() -> ParameterSchemaRegistry:
    """Process-wide registry loaded from the packaged catalogs"""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = ParameterSchemaRegistry()
    return _registry
