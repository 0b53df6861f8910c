from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any, cast

from .converters import Converter
from .errors import ValidationError
from .fields import FieldSchema, MapField, UntypedField, nested_attributes
from .nodes import NodeStrategy, SchemaNode, build_nodes, type_name
from .update_body import UpdateBody, expand_dotted, flatten_dotted, relative_body

MAPPED_LIST_INDEX = "__mapListIndex__"

# Appended elements become `set` entries at `<field>.<key>`, so a key holding
# "." would address a nested path instead of one element.


def _prefixed(prefix: str, entries: Mapping[str, Any]) -> dict[str, Any]:
    return {f"{prefix}.{k}": v for k, v in entries.items()}


def _without_prefix(prefix: str, entries: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in entries.items() if not k.startswith(prefix + ".")}


class MapStrategy(NodeStrategy):
    def __init__(self, children: Sequence[SchemaNode], *, only_allow_defined_attributes: bool = False) -> None:
        self.children = tuple(children)
        self.only_allow_defined_attributes = only_allow_defined_attributes
        self._names = frozenset(child.name for child in self.children)

    def _forbidden(self, node: SchemaNode, keys: Sequence[str]) -> list[str]:
        if not self.only_allow_defined_attributes:
            return []
        forbidden = [k for k in dict.fromkeys(keys) if k not in self._names]
        if not forbidden:
            return []
        return [f'Map attribute "{node.name}" has forbidden keys "{", ".join(forbidden)}".']

    def validate_put(self, node: SchemaNode, value: Any) -> list[str]:
        if not isinstance(value, Mapping):
            return []
        errors = self._forbidden(node, list(value))
        for child in self.children:
            errors.extend(child.validate_against_schema(value))
        return errors

    def validate_update(self, node: SchemaNode, body: UpdateBody) -> list[str]:
        return self.validate_partial(node, relative_body(body, node.name))

    def validate_partial(self, node: SchemaNode, sub: UpdateBody) -> list[str]:
        """Validates an update body whose paths are relative to this map."""
        if sub.is_empty():
            return []
        heads = [path.split(".", 1)[0] for path in (*sub.set, *sub.append, *sub.prepend)]
        errors = self._forbidden(node, heads)
        for child in self.children:
            errors.extend(child.validate_update_body(sub))
        return errors

    def to_wire(self, node: SchemaNode, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        out = dict(value)
        for child in self.children:
            out = child.convert_to_wire(out)
        return out

    def from_wire(self, node: SchemaNode, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        out = dict(value)
        for child in self.children:
            out = child.convert_from_wire(out)
        return out

    def update_to_wire(self, node: SchemaNode, body: UpdateBody) -> UpdateBody:
        sub = relative_body(body, node.name)
        if sub.is_empty():
            return body

        converted_set: dict[str, Any] = {}
        if sub.set:
            # Dotted entries are expanded into a partial sub-object, converted
            # by the children, then read back under their original paths.
            expanded = self.to_wire(node, expand_dotted(sub.set))
            converted_set = flatten_dotted(expanded, list(sub.set))

        lists = UpdateBody(append=sub.append, prepend=sub.prepend)
        for child in self.children:
            lists = child.convert_update_body_to_wire(lists)
        converted_set.update(lists.set)

        return body.with_changes(
            set={**_without_prefix(node.name, body.set), **_prefixed(node.name, converted_set)},
            append={**_without_prefix(node.name, body.append), **_prefixed(node.name, lists.append)},
            prepend={**_without_prefix(node.name, body.prepend), **_prefixed(node.name, lists.prepend)},
        )


def element_node(name: str, schema: FieldSchema) -> SchemaNode:
    """Builds the Map node that validates and converts one list element."""
    attributes = nested_attributes(schema)
    key_attribute = getattr(schema, "key_attribute", None)
    if key_attribute and key_attribute not in attributes:
        attributes[key_attribute] = UntypedField(required=True)

    only_allow = getattr(schema, "only_allow_defined_attributes", False)
    element_schema = MapField(attributes=attributes, only_allow_defined_attributes=only_allow)
    strategy = MapStrategy(build_nodes(attributes), only_allow_defined_attributes=only_allow)
    return SchemaNode(name, element_schema, value_type="object", strategy=strategy)


class ListStrategy(NodeStrategy):
    def __init__(self, element: SchemaNode | None) -> None:
        self.element = element

    def _validate_items(self, items: Any) -> list[str]:
        if self.element is None or not isinstance(items, (list, tuple)):
            return []
        errors: list[str] = []
        for item in items:
            if isinstance(item, Mapping):
                errors.extend(self.element.validate_value(item))
        return errors

    def _convert_items(self, items: Any, *, to_wire: bool) -> Any:
        if self.element is None or not isinstance(items, (list, tuple)):
            return items
        convert = self.element.value_to_wire if to_wire else self.element.value_from_wire
        return [convert(item) if isinstance(item, Mapping) else item for item in items]

    def validate_put(self, node: SchemaNode, value: Any) -> list[str]:
        return self._validate_items(value)

    def validate_update(self, node: SchemaNode, body: UpdateBody) -> list[str]:
        errors = self._validate_items(body.append.get(node.name))
        errors.extend(self._validate_items(body.prepend.get(node.name)))
        errors.extend(self._dotted_keys(node, body))
        return errors

    def to_wire(self, node: SchemaNode, value: Any) -> Any:
        return self._convert_items(value, to_wire=True)

    def from_wire(self, node: SchemaNode, value: Any) -> Any:
        return self._convert_items(value, to_wire=False)

    def update_to_wire(self, node: SchemaNode, body: UpdateBody) -> UpdateBody:
        if self.element is None or (node.name not in body.append and node.name not in body.prepend):
            return body
        append = dict(body.append)
        prepend = dict(body.prepend)
        if node.name in append:
            append[node.name] = self._convert_items(append[node.name], to_wire=True)
        if node.name in prepend:
            prepend[node.name] = self._convert_items(prepend[node.name], to_wire=True)
        return body.with_changes(append=append, prepend=prepend)


def _key_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal) and value == value.to_integral_value():
        return str(int(value))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def mapped_list_converter(key_attribute: str) -> Converter:
    """Converts between an ordered list of records and a map keyed by ``key_attribute``.

    Each stored record carries its list position under ``MAPPED_LIST_INDEX``.
    Reading sorts by that position; records without one follow in the order
    they are found and the position attribute is stripped.
    """

    def to_wire(value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            return value
        return {
            _key_string(item.get(key_attribute)): {**item, MAPPED_LIST_INDEX: index}
            for index, item in enumerate(value)
            if isinstance(item, Mapping)
        }

    def from_wire(value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        indexed: list[tuple[Any, Mapping[str, Any]]] = []
        unindexed: list[Mapping[str, Any]] = []
        for item in value.values():
            if not isinstance(item, Mapping):
                continue
            if item.get(MAPPED_LIST_INDEX) is None:
                unindexed.append(item)
            else:
                indexed.append((item[MAPPED_LIST_INDEX], item))
        indexed.sort(key=lambda pair: pair[0])
        ordered = [item for _, item in indexed] + unindexed
        return [{k: v for k, v in item.items() if k != MAPPED_LIST_INDEX} for item in ordered]

    return Converter(to_wire=to_wire, from_wire=from_wire)


class MappedListStrategy(NodeStrategy):
    def __init__(self, key_attribute: str, element: SchemaNode) -> None:
        self.key_attribute = key_attribute
        self.element = element
        self._element_map = cast(MapStrategy, element.strategy)

    def _elements(self, value: Any) -> list[Any]:
        if isinstance(value, Mapping):
            return list(value.values())
        if isinstance(value, (list, tuple)):
            return list(value)
        return []

    def _dotted_keys(self, node: SchemaNode, body: UpdateBody) -> list[str]:
        keys = [
            _key_string(item.get(self.key_attribute))
            for items in (body.append.get(node.name), body.prepend.get(node.name))
            for item in items or ()
            if isinstance(item, Mapping)
        ]
        return [
            f'Key "{node.name}" can not add an element whose "{self.key_attribute}" contains ".": "{key}".'
            for key in dict.fromkeys(keys)
            if "." in key
        ]

    def _validate_items(self, items: Any) -> list[str]:
        errors: list[str] = []
        for item in self._elements(items):
            if isinstance(item, Mapping):
                errors.extend(self.element.validate_value(item))
            else:
                errors.append(
                    f'Key "{self.element.name}" is expected to be of type object but got {type_name(item)}.'
                )
        return errors

    def validate_put(self, node: SchemaNode, value: Any) -> list[str]:
        return self._validate_items(value)

    def validate_update(self, node: SchemaNode, body: UpdateBody) -> list[str]:
        errors = self._validate_items(body.append.get(node.name))
        errors.extend(self._validate_items(body.prepend.get(node.name)))

        sub = relative_body(body, node.name)
        for path, value in sub.set.items():
            if "." not in path and value is not None:
                errors.extend(self._validate_items([value]))
        keys = dict.fromkeys(path.split(".", 1)[0] for path in (*sub.set, *sub.append, *sub.prepend, *sub.remove))
        for key in keys:
            errors.extend(self._element_map.validate_partial(self.element, relative_body(sub, key)))
        return errors

    def to_wire(self, node: SchemaNode, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        return {k: self.element.value_to_wire(v) if isinstance(v, Mapping) else v for k, v in value.items()}

    def from_wire(self, node: SchemaNode, value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            return value
        return [self.element.value_from_wire(v) if isinstance(v, Mapping) else v for v in value]

    def update_to_wire(self, node: SchemaNode, body: UpdateBody) -> UpdateBody:
        dotted = self._dotted_keys(node, body)
        if dotted:
            raise ValidationError(dotted)
        added: dict[str, Any] = {}
        for items in (body.append.get(node.name), body.prepend.get(node.name)):
            for item in items or ():
                if isinstance(item, Mapping):
                    key = _key_string(item.get(self.key_attribute))
                    added[f"{node.name}.{key}"] = item

        append = {k: v for k, v in body.append.items() if k != node.name}
        prepend = {k: v for k, v in body.prepend.items() if k != node.name}
        merged = {**added, **body.set}
        body = body.with_changes(set=merged, append=append, prepend=prepend)

        sub = relative_body(body, node.name)
        if not sub.set:
            return body
        converted = flatten_dotted(self.to_wire(node, expand_dotted(sub.set)), list(sub.set))
        return body.with_changes(set={**_without_prefix(node.name, body.set), **_prefixed(node.name, converted)})


def _type_code(value: Any) -> str | None:
    if isinstance(value, bool):
        return "BOOL"
    if isinstance(value, str):
        return "S"
    if isinstance(value, (int, float, Decimal)):
        return "N"
    if isinstance(value, Mapping):
        return "M"
    if isinstance(value, (list, tuple)):
        return "L"
    return None


class MultiTypeStrategy(NodeStrategy):
    """Hands each value to the child node declared for its type."""

    def __init__(self, children: Mapping[str, SchemaNode]) -> None:
        self.children = dict(children)

    def _unsupported(self, node: SchemaNode, value: Any) -> str:
        return f'Type {type_name(value)} is not supported for key "{node.name}".'

    def _child_for(self, node: SchemaNode, value: Any) -> SchemaNode:
        child = self.children.get(_type_code(value) or "")
        if child is None:
            raise ValidationError(self._unsupported(node, value))
        return child

    def validate_put(self, node: SchemaNode, value: Any) -> list[str]:
        child = self.children.get(_type_code(value) or "")
        if child is None:
            return [self._unsupported(node, value)]
        return child.validate_value(value)

    def validate_update(self, node: SchemaNode, body: UpdateBody) -> list[str]:
        errors: list[str] = []
        if node.name in body.append or node.name in body.prepend:
            list_child = self.children.get("L")
            if list_child is None:
                errors.append(f'Key "{node.name}" is not of type List.')
            else:
                errors.extend(list_child.strategy.validate_update(list_child, body))
        if not relative_body(body, node.name).is_empty():
            map_child = self.children.get("M")
            if map_child is None:
                errors.append(f'Key "{node.name}" is not of type Map.')
            else:
                errors.extend(map_child.strategy.validate_update(map_child, body))
        return errors

    def to_wire(self, node: SchemaNode, value: Any) -> Any:
        return self._child_for(node, value).value_to_wire(value)

    def from_wire(self, node: SchemaNode, value: Any) -> Any:
        child = self.children.get(_type_code(value) or "")
        return value if child is None else child.value_from_wire(value)

    def update_to_wire(self, node: SchemaNode, body: UpdateBody) -> UpdateBody:
        list_child = self.children.get("L")
        if list_child is not None and (node.name in body.append or node.name in body.prepend):
            body = list_child.strategy.update_to_wire(list_child, body)
        map_child = self.children.get("M")
        if map_child is not None and not relative_body(body, node.name).is_empty():
            body = map_child.strategy.update_to_wire(map_child, body)
        return body
