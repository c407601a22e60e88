"""
Schema DSL - loose field specs in, strict JSON Schema out.

Structured outputs and strict function tools only accept a subset of JSON
Schema: every object must list all of its properties in `required` and set
`additionalProperties: false`. This module lets callers describe fields
tersely and produces that dialect.

Usage:
    # dict input -> required sorted by key
    build_output({"name": "string", "tags": ("array", "string")})

    # list of pairs -> required in declaration order
    build_function("get_weather", "Weather for a city", [
        ("location", ("string", {"description": "City and country"})),
        ("units", ("string", {"enum": ["celsius", "fahrenheit"]})),
    ])

    # unions and nullables
    normalize(("anyOf", ["string", "integer"]))
    nullable("string")  # {"type": ["string", "null"]}
"""
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from .errors import SchemaError

PRIMITIVE_TYPES = ("string", "number", "integer", "boolean", "null")

ARRAY_TAG = "array"
OBJECT_TAG = "object"
ANY_OF_TAG = "anyOf"


class SchemaList(list):
    """A list inside a SchemaNode (`required`, `anyOf`, `enum`, ...). Read-only."""

    def _readonly(self, *args, **kwargs):
        raise TypeError(f"{type(self).__name__} is immutable")

    __setitem__ = _readonly
    __delitem__ = _readonly
    __iadd__ = _readonly
    __imul__ = _readonly
    append = _readonly
    extend = _readonly
    insert = _readonly
    remove = _readonly
    pop = _readonly
    clear = _readonly
    sort = _readonly
    reverse = _readonly

    def __copy__(self) -> "SchemaList":
        return self

    def __deepcopy__(self, memo) -> "SchemaList":
        return self

    def __reduce__(self):
        return (type(self), (list(self),))


def _freeze(value: Any) -> Any:
    if isinstance(value, (SchemaNode, SchemaList)):
        return value
    if isinstance(value, Mapping):
        return SchemaNode(value)
    if isinstance(value, list):
        return SchemaList(_freeze(item) for item in value)
    return value


class SchemaNode(dict):
    """
    A built JSON schema node.

    Serializes like any dict (json.dumps, requests' json=) but refuses
    mutation, all the way down: nested dicts and lists are frozen too.
    Passing a SchemaNode back into the builder returns it as-is.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for key, value in list(dict.items(self)):
            dict.__setitem__(self, key, _freeze(value))

    def _readonly(self, *args, **kwargs):
        raise TypeError(f"{type(self).__name__} is immutable")

    __setitem__ = _readonly
    __delitem__ = _readonly
    __ior__ = _readonly
    clear = _readonly
    pop = _readonly
    popitem = _readonly
    setdefault = _readonly
    update = _readonly

    def __copy__(self) -> "SchemaNode":
        return self

    def __deepcopy__(self, memo) -> "SchemaNode":
        return self

    def __reduce__(self):
        return (type(self), (dict(self),))

    def __repr__(self) -> str:
        return f"SchemaNode({dict.__repr__(self)})"


# ============================================================================
# Field spec variants
# ============================================================================

@dataclass(frozen=True)
class Primitive:
    """A bare scalar type: "string", "number", "integer", "boolean" or "null"."""
    type: str

    def to_schema(self) -> SchemaNode:
        return SchemaNode({"type": self.type})


@dataclass(frozen=True)
class Annotated:
    """A scalar type with keyword constraints merged onto it unchecked."""
    type: str
    options: Tuple[Tuple[str, Any], ...] = ()

    def to_schema(self) -> SchemaNode:
        node: Dict[str, Any] = {"type": self.type}
        for key, value in self.options:
            node[key] = value
        return SchemaNode(node)


@dataclass(frozen=True)
class Array:
    items: "FieldSpec"

    def to_schema(self) -> SchemaNode:
        return SchemaNode({"type": "array", "items": self.items.to_schema()})


@dataclass(frozen=True)
class AnyOf:
    branches: Tuple["FieldSpec", ...]

    def to_schema(self) -> SchemaNode:
        return SchemaNode({"anyOf": [branch.to_schema() for branch in self.branches]})


@dataclass(frozen=True)
class Object:
    """
    An object whose fields are already in emission order.

    `ordered` records whether that order came from the caller (list of pairs)
    or from sorting a dict's keys.
    """
    fields: Tuple[Tuple[str, "FieldSpec"], ...]
    ordered: bool = True
    options: Tuple[Tuple[str, Any], ...] = ()

    def to_schema(self) -> SchemaNode:
        node: Dict[str, Any] = {"type": "object"}
        for key, value in self.options:
            node[key] = value
        node["properties"] = SchemaNode(
            (name, spec.to_schema()) for name, spec in self.fields
        )
        node["additionalProperties"] = False
        node["required"] = [name for name, _ in self.fields]
        return SchemaNode(node)


@dataclass(frozen=True)
class Nullable:
    """Marker: the wrapped spec may also be null."""
    inner: "FieldSpec"

    def to_schema(self) -> SchemaNode:
        return _make_nullable(self.inner.to_schema())


@dataclass(frozen=True)
class Prebuilt:
    """A node that is already canonical and passes through untouched."""
    node: SchemaNode

    def to_schema(self) -> SchemaNode:
        return self.node


FieldSpec = Union[Primitive, Annotated, Array, AnyOf, Object, Nullable, Prebuilt]

_FIELD_SPEC_TYPES = (Primitive, Annotated, Array, AnyOf, Object, Nullable, Prebuilt)


# ============================================================================
# Parsing surface syntax
# ============================================================================

def parse_spec(spec: Any) -> FieldSpec:
    """
    Map any accepted surface syntax onto a FieldSpec.

    Accepted: a type name; (type, options) and [type, options];
    (array, item) and [array, item]; (anyOf, [specs]);
    (object, {"properties": fields}); a dict (fields sorted by key); a list
    of (name, spec) pairs (fields in declaration order); a FieldSpec; a
    SchemaNode. Anything else raises SchemaError.
    """
    if isinstance(spec, _FIELD_SPEC_TYPES):
        return spec
    if isinstance(spec, SchemaNode):
        return Prebuilt(spec)
    if _is_tag(spec):
        return Primitive(_primitive_type(spec, spec))
    if isinstance(spec, Mapping):
        pairs = sorted(spec.items(), key=lambda kv: _key(kv[0]))
        return _parse_object(pairs, ordered=False, spec=spec)
    if isinstance(spec, (list, tuple)):
        if len(spec) == 2 and _is_tag(spec[0]):
            return _parse_tagged(_tag(spec[0]), spec[1], spec)
        if isinstance(spec, list) and all(_is_pair(item) for item in spec):
            return _parse_object(spec, ordered=True, spec=spec)
    raise SchemaError(f"Unsupported schema specification: {spec!r}", spec)


def _parse_tagged(tag: str, arg: Any, spec: Any) -> FieldSpec:
    if tag == ARRAY_TAG:
        return Array(parse_spec(arg))

    if tag == ANY_OF_TAG:
        if not isinstance(arg, (list, tuple)) or not arg:
            raise SchemaError(f"anyOf needs a non-empty list of specs: {spec!r}", spec)
        return AnyOf(tuple(parse_spec(branch) for branch in arg))

    options = _options(arg, spec)

    if tag == OBJECT_TAG:
        keys = [key for key, _ in options]
        if "properties" not in keys:
            raise SchemaError(f"object spec needs a 'properties' option: {spec!r}", spec)
        rest = tuple((key, value) for key, value in options if key != "properties")
        fields = parse_spec(dict(options)["properties"])
        if not isinstance(fields, Object):
            raise SchemaError(f"object properties must be a mapping or list of pairs: {spec!r}", spec)
        return Object(fields.fields, ordered=fields.ordered, options=rest)

    return Annotated(_primitive_type(tag, spec), options)


def _parse_object(pairs, ordered: bool, spec: Any) -> Object:
    fields = []
    seen = set()
    for name, child in pairs:
        key = _key(name)
        if key in seen:
            raise SchemaError(f"Duplicate field {key!r} in {spec!r}", spec)
        seen.add(key)
        fields.append((key, parse_spec(child)))
    return Object(tuple(fields), ordered=ordered)


def _options(arg: Any, spec: Any) -> Tuple[Tuple[str, Any], ...]:
    if isinstance(arg, Mapping):
        return tuple((_key(key), value) for key, value in arg.items())
    if isinstance(arg, (list, tuple)) and all(_is_pair(item) for item in arg):
        return tuple((_key(key), value) for key, value in arg)
    raise SchemaError(f"Options must be a mapping or a list of (key, value) pairs: {spec!r}", spec)


def _primitive_type(tag: Any, spec: Any) -> str:
    name = _tag(tag)
    if name not in PRIMITIVE_TYPES:
        raise SchemaError(f"Unsupported type {name!r} in {spec!r}", spec)
    return name


def _is_tag(value: Any) -> bool:
    if isinstance(value, Enum):
        return isinstance(value.value, str)
    return isinstance(value, str)


def _tag(value: Any) -> str:
    return value.value if isinstance(value, Enum) else value


def _is_pair(item: Any) -> bool:
    return isinstance(item, tuple) and len(item) == 2


def _key(name: Any) -> str:
    if isinstance(name, Enum):
        return str(name.value)
    return str(name)


def _make_nullable(node: SchemaNode) -> SchemaNode:
    type_value = node.get("type")
    if isinstance(type_value, str):
        if type_value == "null":
            return node
        return SchemaNode({**node, "type": [type_value, "null"]})
    if isinstance(type_value, list):
        if "null" in type_value:
            return node
        return SchemaNode({**node, "type": type_value + ["null"]})
    return SchemaNode({"anyOf": [node, SchemaNode({"type": "null"})]})


# ============================================================================
# Public builders
# ============================================================================

def normalize(spec: Any) -> SchemaNode:
    """Turn any accepted field spec into its canonical schema node."""
    return parse_spec(spec).to_schema()


def build_schema(fields: Any) -> SchemaNode:
    """Build the root object schema. The root must describe an object."""
    parsed = parse_spec(fields)
    if isinstance(parsed, Prebuilt) and parsed.node.get("type") == "object":
        return parsed.node
    if not isinstance(parsed, Object):
        raise SchemaError(f"Root schema must be an object specification: {fields!r}", fields)
    return parsed.to_schema()


def build(
    fields: Any,
    function_parameters: bool = False,
    name: str = "data",
    description: str = "",
) -> Dict[str, Any]:
    """
    Build the envelope the API expects.

    With function_parameters=False this is the `text.format` entry for
    structured output; with True it is a strict function tool definition.
    """
    if function_parameters:
        return {
            "name": name,
            "type": "function",
            "strict": True,
            "description": description,
            "parameters": build_schema(fields),
        }
    return {
        "name": name,
        "type": "json_schema",
        "strict": True,
        "schema": build_schema(fields),
    }


def build_output(fields: Any, name: str = "data") -> Dict[str, Any]:
    """Structured-output format entry, ready for `text.format`."""
    return build(fields, name=name)


def build_function(name: str, description: str, parameters: Any) -> Dict[str, Any]:
    """Strict function tool definition."""
    return build(parameters, function_parameters=True, name=name, description=description)


def nullable(spec: Any) -> SchemaNode:
    """Allow null in addition to the given spec."""
    return Nullable(parse_spec(spec)).to_schema()


# ============================================================================
# Convenience constructors
# ============================================================================

def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _constraints(constraints: Dict[str, Any]) -> Tuple[Tuple[str, Any], ...]:
    return tuple((_camel(key), value) for key, value in constraints.items() if value is not None)


def string(**constraints) -> SchemaNode:
    """string(format="email"), string(min_length=3, max_length=20), string(enum=[...])"""
    return Annotated("string", _constraints(constraints)).to_schema()


def number(**constraints) -> SchemaNode:
    """number(minimum=0, maximum=5), number(multiple_of=0.5)"""
    return Annotated("number", _constraints(constraints)).to_schema()


def integer(**constraints) -> SchemaNode:
    return Annotated("integer", _constraints(constraints)).to_schema()


def boolean() -> SchemaNode:
    return Primitive("boolean").to_schema()


def array(items: Any, min_items: Optional[int] = None, max_items: Optional[int] = None) -> SchemaNode:
    node = Array(parse_spec(items)).to_schema()
    extra = _constraints({"min_items": min_items, "max_items": max_items})
    if not extra:
        return node
    return SchemaNode({**node, **dict(extra)})


def object(fields: Any, name: Optional[str] = None) -> SchemaNode:
    """Object schema; `name` becomes the schema title."""
    node = build_schema(fields)
    if name is None:
        return node
    return SchemaNode({**node, "title": name})


def any_of(*specs: Any) -> SchemaNode:
    if not specs:
        raise SchemaError("any_of needs at least one spec", specs)
    return AnyOf(tuple(parse_spec(spec) for spec in specs)).to_schema()

