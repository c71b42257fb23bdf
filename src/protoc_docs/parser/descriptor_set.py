"""Convert a protoc FileDescriptorSet into the raw descriptor record shape."""

from __future__ import annotations

from typing import Dict, List, Tuple

from google.protobuf import descriptor_pb2 as d2

# Source code info path components (see descriptor.proto field numbers).
_FILE_MESSAGE_TYPE = 4
_FILE_ENUM_TYPE = 5
_FILE_SERVICE = 6
_MESSAGE_FIELD = 2
_MESSAGE_NESTED_TYPE = 3
_MESSAGE_ENUM_TYPE = 4
_ENUM_VALUE = 2
_SERVICE_METHOD = 2

Comments = Dict[Tuple[int, ...], str]


def parse_descriptor_set(data: bytes) -> dict:
    """Parse serialized ``protoc --descriptor_set_out`` bytes into raw records."""
    fds = d2.FileDescriptorSet()
    fds.ParseFromString(data)
    return descriptor_set_to_records(fds)


def descriptor_set_to_records(fds: d2.FileDescriptorSet) -> dict:
    return {"files": [_file_record(f) for f in fds.file]}


def _comments(fd: d2.FileDescriptorProto) -> Comments:
    comments: Comments = {}
    for location in fd.source_code_info.location:
        text = location.leading_comments or location.trailing_comments
        if text:
            comments[tuple(location.path)] = text.strip()
    return comments


def _scalar_name(field: d2.FieldDescriptorProto) -> str:
    # TYPE_SFIXED32 -> sfixed32
    return d2.FieldDescriptorProto.Type.Name(field.type)[len("TYPE_"):].lower()


def _field_type(field: d2.FieldDescriptorProto) -> str:
    if field.type in (
        d2.FieldDescriptorProto.TYPE_MESSAGE,
        d2.FieldDescriptorProto.TYPE_ENUM,
        d2.FieldDescriptorProto.TYPE_GROUP,
    ):
        # protoc always writes absolute names with a leading dot
        return field.type_name
    return _scalar_name(field)


def _label(field: d2.FieldDescriptorProto) -> str:
    return d2.FieldDescriptorProto.Label.Name(field.label)[len("LABEL_"):].lower()


def _file_record(fd: d2.FileDescriptorProto) -> dict:
    comments = _comments(fd)
    scope = "." + fd.package if fd.package else ""
    return {
        "path": fd.name,
        "package": fd.package,
        "dependencies": list(fd.dependency),
        "messages": [
            _message_record(m, f"{scope}.{m.name}", (_FILE_MESSAGE_TYPE, i), comments)
            for i, m in enumerate(fd.message_type)
        ],
        "enums": [
            _enum_record(e, (_FILE_ENUM_TYPE, i), comments)
            for i, e in enumerate(fd.enum_type)
        ],
        "services": [
            _service_record(s, (_FILE_SERVICE, i), comments)
            for i, s in enumerate(fd.service)
        ],
    }


def _message_record(
    msg: d2.DescriptorProto,
    full_name: str,
    path: Tuple[int, ...],
    comments: Comments,
) -> dict:
    # Synthetic map entry messages, keyed by their absolute name.
    map_entries: Dict[str, d2.DescriptorProto] = {
        f"{full_name}.{n.name}": n for n in msg.nested_type if n.options.map_entry
    }

    oneof_names = [o.name for o in msg.oneof_decl]
    fields: List[dict] = []
    for i, f in enumerate(msg.field):
        record = {
            "name": f.name,
            "number": f.number,
            "type": _field_type(f),
            "label": _label(f),
            "description": comments.get(path + (_MESSAGE_FIELD, i), ""),
        }
        entry = map_entries.get(f.type_name)
        if entry is not None:
            key, value = entry.field[0], entry.field[1]
            record["type"] = "map"
            record["key_type"] = _field_type(key)
            record["value_type"] = _field_type(value)
        if f.HasField("oneof_index") and not f.proto3_optional:
            record["oneof"] = oneof_names[f.oneof_index]
        if f.HasField("default_value"):
            record["default_value"] = f.default_value
        fields.append(record)

    return {
        "name": msg.name,
        "description": comments.get(path, ""),
        "fields": fields,
        "messages": [
            _message_record(n, f"{full_name}.{n.name}", path + (_MESSAGE_NESTED_TYPE, i), comments)
            for i, n in enumerate(msg.nested_type)
            if not n.options.map_entry
        ],
        "enums": [
            _enum_record(e, path + (_MESSAGE_ENUM_TYPE, i), comments)
            for i, e in enumerate(msg.enum_type)
        ],
    }


def _enum_record(enum: d2.EnumDescriptorProto, path: Tuple[int, ...], comments: Comments) -> dict:
    return {
        "name": enum.name,
        "description": comments.get(path, ""),
        "values": [
            {
                "name": v.name,
                "number": v.number,
                "description": comments.get(path + (_ENUM_VALUE, i), ""),
            }
            for i, v in enumerate(enum.value)
        ],
    }


def _service_record(svc: d2.ServiceDescriptorProto, path: Tuple[int, ...], comments: Comments) -> dict:
    return {
        "name": svc.name,
        "description": comments.get(path, ""),
        "methods": [
            {
                "name": m.name,
                "request_type": m.input_type,
                "response_type": m.output_type,
                "client_streaming": m.client_streaming,
                "server_streaming": m.server_streaming,
                "description": comments.get(path + (_SERVICE_METHOD, i), ""),
            }
            for i, m in enumerate(svc.method)
        ],
    }
