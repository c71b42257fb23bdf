"""Type raw descriptor records into FileDescriptor models.

The raw input is an already-deserialized descriptor set shaped as
``{"files": [{"path", "package", "dependencies", "messages", "enums", "services"}]}``.
Declaration order is preserved everywhere; nothing is resolved here.
"""

from __future__ import annotations

import logging
import re
from typing import Any, List, Mapping, Optional

from protoc_docs.errors import StructuralError
from protoc_docs.models import (
    LABELS,
    LABEL_OPTIONAL,
    LABEL_REPEATED,
    DescriptorSet,
    EnumDef,
    EnumValue,
    Field,
    FileDescriptor,
    MapType,
    Message,
    Method,
    Service,
    qualify,
)

log = logging.getLogger(__name__)

_MAP_TYPE_RE = re.compile(r"^map\s*<\s*([\w.]+)\s*,\s*([\w.]+)\s*>$")


def load_descriptor_set(raw: Any, route_base: str = "") -> DescriptorSet:
    """Validate and type a raw descriptor set.

    Raises StructuralError when the input is not shaped as a descriptor set
    or a required attribute is missing.
    """
    if not isinstance(raw, Mapping):
        raise StructuralError(
            f"Descriptor input must be an object with a 'files' list, got {type(raw).__name__}"
        )
    raw_files = raw.get("files")
    if not isinstance(raw_files, list):
        raise StructuralError("Descriptor input is missing the 'files' list")
    if route_base is None:
        route_base = ""
    if not isinstance(route_base, str):
        raise StructuralError(f"Route base must be a string, got {type(route_base).__name__}")

    files = [_load_file(record, index) for index, record in enumerate(raw_files)]
    log.debug("Loaded %d file descriptor(s)", len(files))
    return DescriptorSet(files=files, route_base=route_base)


def load_file_descriptors(raw: Any, route_base: str = "") -> List[FileDescriptor]:
    return load_descriptor_set(raw, route_base).files


# ---------------------------------------------------------------------------
# Record helpers
# ---------------------------------------------------------------------------


def _get(record: Mapping, *keys: str, default: Any = None) -> Any:
    """Return the first present key out of a set of spelling aliases."""
    for key in keys:
        if key in record:
            return record[key]
    return default


def _require_mapping(record: Any, where: str) -> Mapping:
    if not isinstance(record, Mapping):
        raise StructuralError(f"{where}: expected an object, got {type(record).__name__}")
    return record


def _require_name(record: Mapping, where: str) -> str:
    name = record.get("name")
    if not isinstance(name, str) or not name:
        raise StructuralError(f"{where}: missing required attribute 'name'")
    return name


def _list(record: Mapping, key: str, where: str) -> list:
    value = record.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise StructuralError(f"{where}: '{key}' must be a list, got {type(value).__name__}")
    return value


def _text(record: Mapping, where: str, *keys: str) -> str:
    value = _get(record, *(keys or ("description",)))
    if value is None:
        return ""
    if not isinstance(value, str):
        raise StructuralError(f"{where}: '{keys[0] if keys else 'description'}' must be a string")
    return value


def _int(value: Any, where: str, key: str) -> Optional[int]:
    if value is None:
        return None
    # bool is an int subclass; a boolean number is a shape error
    if isinstance(value, bool):
        raise StructuralError(f"{where}: '{key}' must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    raise StructuralError(f"{where}: '{key}' must be an integer, got {value!r}")


def _flag(value: Any, where: str, key: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise StructuralError(f"{where}: '{key}' must be a boolean")
    return value


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


def _load_file(record: Any, index: int) -> FileDescriptor:
    record = _require_mapping(record, f"files[{index}]")
    path = _get(record, "path", "name")
    if not isinstance(path, str) or not path:
        raise StructuralError(f"files[{index}]: missing required attribute 'path'")
    if "package" not in record:
        raise StructuralError(f"{path}: missing required attribute 'package'")
    package = record["package"] or ""
    if not isinstance(package, str):
        raise StructuralError(f"{path}: 'package' must be a string")

    dependencies = _list(record, "dependencies", path)
    if not all(isinstance(dep, str) for dep in dependencies):
        raise StructuralError(f"{path}: 'dependencies' must be a list of file paths")

    return FileDescriptor(
        path=path,
        package=package,
        dependencies=list(dependencies),
        messages=[_load_message(m, package, path) for m in _list(record, "messages", path)],
        enums=[_load_enum(e, package, path) for e in _list(record, "enums", path)],
        services=[_load_service(s, package, path) for s in _list(record, "services", path)],
        description=_text(record, path),
    )


def _load_message(record: Any, scope: str, path: str) -> Message:
    record = _require_mapping(record, f"{path}: message in '{scope}'")
    name = _require_name(record, f"{path}: message in '{scope}'")
    full_name = qualify(scope, name)
    where = f"{path}: message '{full_name}'"
    return Message(
        name=name,
        full_name=full_name,
        fields=[_load_field(f, where) for f in _list(record, "fields", where)],
        messages=[_load_message(m, full_name, path) for m in _list(record, "messages", where)],
        enums=[_load_enum(e, full_name, path) for e in _list(record, "enums", where)],
        description=_text(record, where),
        file_path=path,
    )


def _load_field(record: Any, where: str) -> Field:
    record = _require_mapping(record, f"{where}: field")
    name = _require_name(record, f"{where}: field")
    where = f"{where}: field '{name}'"

    type_name = _get(record, "type", "type_name", "typeName")
    if not isinstance(type_name, str) or not type_name:
        raise StructuralError(f"{where}: missing required attribute 'type'")
    type_name = type_name.strip()

    label = _get(record, "label", default=LABEL_OPTIONAL) or LABEL_OPTIONAL
    if label not in LABELS:
        raise StructuralError(f"{where}: unknown label {label!r}, expected one of {list(LABELS)}")

    map_type = _load_map_type(record, type_name, where)
    if map_type is not None:
        # map fields are repeated entries on the wire
        label = LABEL_REPEATED

    oneof = _get(record, "oneof", "oneof_name", "oneofdecl")
    default_value = _get(record, "default_value", "defaultValue")
    return Field(
        name=name,
        type_name=type_name,
        number=_int(record.get("number"), where, "number"),
        label=label,
        map_type=map_type,
        oneof=oneof or None,
        default_value=None if default_value in (None, "") else str(default_value),
        description=_text(record, where),
    )


def _load_map_type(record: Mapping, type_name: str, where: str) -> Optional[MapType]:
    match = _MAP_TYPE_RE.match(type_name)
    if match:
        return MapType(key_type=match.group(1), value_type=match.group(2))
    if type_name != "map":
        return None
    key_type = _get(record, "key_type", "keyType")
    value_type = _get(record, "value_type", "valueType")
    if not isinstance(key_type, str) or not key_type:
        raise StructuralError(f"{where}: map field is missing 'key_type'")
    if not isinstance(value_type, str) or not value_type:
        raise StructuralError(f"{where}: map field is missing 'value_type'")
    return MapType(key_type=key_type.strip(), value_type=value_type.strip())


def _load_enum(record: Any, scope: str, path: str) -> EnumDef:
    record = _require_mapping(record, f"{path}: enum in '{scope}'")
    name = _require_name(record, f"{path}: enum in '{scope}'")
    full_name = qualify(scope, name)
    where = f"{path}: enum '{full_name}'"

    values: List[EnumValue] = []
    for raw_value in _list(record, "values", where):
        raw_value = _require_mapping(raw_value, f"{where}: value")
        value_name = _require_name(raw_value, f"{where}: value")
        number = _int(raw_value.get("number"), f"{where}: value '{value_name}'", "number")
        if number is None:
            raise StructuralError(f"{where}: value '{value_name}' is missing 'number'")
        values.append(EnumValue(
            name=value_name,
            number=number,
            description=_text(raw_value, where),
        ))

    return EnumDef(
        name=name,
        full_name=full_name,
        values=values,
        description=_text(record, where),
        file_path=path,
    )


def _load_service(record: Any, scope: str, path: str) -> Service:
    record = _require_mapping(record, f"{path}: service")
    name = _require_name(record, f"{path}: service")
    full_name = qualify(scope, name)
    where = f"{path}: service '{full_name}'"

    methods: List[Method] = []
    for raw_method in _list(record, "methods", where):
        raw_method = _require_mapping(raw_method, f"{where}: method")
        method_name = _require_name(raw_method, f"{where}: method")
        method_where = f"{where}: method '{method_name}'"
        request_type = _get(raw_method, "request_type", "requestType", "input_type", "inputType")
        response_type = _get(raw_method, "response_type", "responseType", "output_type", "outputType")
        if not isinstance(request_type, str) or not request_type:
            raise StructuralError(f"{method_where}: missing required attribute 'request_type'")
        if not isinstance(response_type, str) or not response_type:
            raise StructuralError(f"{method_where}: missing required attribute 'response_type'")
        methods.append(Method(
            name=method_name,
            request_type=request_type.strip(),
            response_type=response_type.strip(),
            client_streaming=_flag(
                _get(raw_method, "client_streaming", "clientStreaming", "requestStreaming"),
                method_where, "client_streaming",
            ),
            server_streaming=_flag(
                _get(raw_method, "server_streaming", "serverStreaming", "responseStreaming"),
                method_where, "server_streaming",
            ),
            description=_text(raw_method, method_where),
        ))

    return Service(
        name=name,
        full_name=full_name,
        methods=methods,
        description=_text(record, where),
        file_path=path,
    )
