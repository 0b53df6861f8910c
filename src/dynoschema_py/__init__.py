from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .attributes import AttributeRegistry, Translation
from .converters import Converter, iso_date_converter, timestamp_converter
from .errors import (
    AwsError,
    BatchRetryExceededError,
    ConditionFailedError,
    DynoschemaError,
    NotFoundError,
    SchemaDefinitionError,
    ValidationError,
)
from .expressions import Conjunction, ExpressionBuilder, FieldCursor, index, scan, with_condition
from .fields import (
    BooleanField,
    DateField,
    FieldSchema,
    ListField,
    MapField,
    MappedListField,
    MultiTypeField,
    NumberField,
    SlugifyOptions,
    StringField,
    UntypedField,
    parse_field_schema,
    parse_schema,
)
from .nodes import SchemaNode, build_node
from .record import AWS_COLUMN_REGEX, RecordSchema
from .slug import slugify
from .structural import MAPPED_LIST_INDEX
from .update_body import UpdateBody, build_update_parameters, transfer_empty_to_remove

if TYPE_CHECKING:
    from .backoff import backoff_call, exponential_delay, linear_delay
    from .table import Page, TableService, combine_expressions


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name in {"Page", "TableService", "combine_expressions"}:
        from . import table

        return getattr(table, name)
    if name in {"backoff_call", "exponential_delay", "linear_delay"}:
        from . import backoff

        return getattr(backoff, name)
    raise AttributeError(name)


__all__ = [
    "AWS_COLUMN_REGEX",
    "AttributeRegistry",
    "AwsError",
    "BatchRetryExceededError",
    "BooleanField",
    "ConditionFailedError",
    "Conjunction",
    "Converter",
    "DateField",
    "DynoschemaError",
    "ExpressionBuilder",
    "FieldCursor",
    "FieldSchema",
    "ListField",
    "MAPPED_LIST_INDEX",
    "MapField",
    "MappedListField",
    "MultiTypeField",
    "NotFoundError",
    "NumberField",
    "Page",
    "RecordSchema",
    "SchemaDefinitionError",
    "SchemaNode",
    "SlugifyOptions",
    "StringField",
    "TableService",
    "Translation",
    "UntypedField",
    "UpdateBody",
    "ValidationError",
    "__repo_version__",
    "__version__",
    "backoff_call",
    "build_node",
    "build_update_parameters",
    "combine_expressions",
    "exponential_delay",
    "index",
    "iso_date_converter",
    "linear_delay",
    "parse_field_schema",
    "parse_schema",
    "scan",
    "slugify",
    "timestamp_converter",
    "transfer_empty_to_remove",
    "with_condition",
]
