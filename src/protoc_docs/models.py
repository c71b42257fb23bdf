from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

# Proto scalar types. Any field type not in this set is a message or enum reference.
PROTO_PRIMITIVES = (
    "double", "float",
    "int32", "int64", "uint32", "uint64",
    "sint32", "sint64", "fixed32", "fixed64", "sfixed32", "sfixed64",
    "bool", "string", "bytes",
)

LABEL_OPTIONAL = "optional"
LABEL_REQUIRED = "required"
LABEL_REPEATED = "repeated"
LABELS = (LABEL_OPTIONAL, LABEL_REQUIRED, LABEL_REPEATED)

KIND_MESSAGE = "message"
KIND_ENUM = "enum"
KIND_SERVICE = "service"


def qualify(scope: str, name: str) -> str:
    """Join a scope and a simple name into a fully-qualified name."""
    return f"{scope}.{name}" if scope else name


# ---------------------------------------------------------------------------
# Type references
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Primitive:
    kind: str

    @property
    def label(self) -> str:
        return self.kind


@dataclass(frozen=True)
class Resolved:
    """A reference that points at a message or enum in the descriptor set."""

    entity_id: str
    file_path: str
    kind: str

    @property
    def label(self) -> str:
        return self.entity_id


@dataclass(frozen=True)
class Unresolved:
    raw_name: str

    @property
    def label(self) -> str:
        return self.raw_name


TypeReference = Union[Primitive, Resolved, Unresolved]


# ---------------------------------------------------------------------------
# Descriptor entities
# ---------------------------------------------------------------------------


@dataclass
class MapType:
    key_type: str
    value_type: str
    key_ref: Optional[TypeReference] = None
    value_ref: Optional[TypeReference] = None


@dataclass
class Field:
    name: str
    type_name: str
    number: Optional[int] = None
    label: str = LABEL_OPTIONAL
    map_type: Optional[MapType] = None
    oneof: Optional[str] = None
    default_value: Optional[str] = None
    description: str = ""
    type_ref: Optional[TypeReference] = None

    @property
    def is_map(self) -> bool:
        return self.map_type is not None

    @property
    def is_repeated(self) -> bool:
        return self.label == LABEL_REPEATED

    @property
    def type_kind(self) -> str:
        """scalar, message, enum, map, or unresolved once resolution has run."""
        if self.map_type is not None:
            return "map"
        if isinstance(self.type_ref, Primitive):
            return "scalar"
        if isinstance(self.type_ref, Resolved):
            return self.type_ref.kind
        if isinstance(self.type_ref, Unresolved):
            return "unresolved"
        return "scalar" if self.type_name in PROTO_PRIMITIVES else "named"


@dataclass
class EnumValue:
    name: str
    number: int
    description: str = ""


@dataclass
class EnumDef:
    name: str
    full_name: str
    values: List[EnumValue] = field(default_factory=list)
    description: str = ""
    file_path: str = ""


@dataclass
class Message:
    name: str
    full_name: str
    fields: List[Field] = field(default_factory=list)
    messages: List[Message] = field(default_factory=list)
    enums: List[EnumDef] = field(default_factory=list)
    description: str = ""
    # Back-reference by path only; the owning FileDescriptor is looked up, never held.
    file_path: str = ""


@dataclass
class Method:
    name: str
    request_type: str
    response_type: str
    client_streaming: bool = False
    server_streaming: bool = False
    description: str = ""
    request_ref: Optional[TypeReference] = None
    response_ref: Optional[TypeReference] = None


@dataclass
class Service:
    name: str
    full_name: str
    methods: List[Method] = field(default_factory=list)
    description: str = ""
    file_path: str = ""


@dataclass
class FileDescriptor:
    path: str
    package: str = ""
    dependencies: List[str] = field(default_factory=list)
    messages: List[Message] = field(default_factory=list)
    enums: List[EnumDef] = field(default_factory=list)
    services: List[Service] = field(default_factory=list)
    description: str = ""


@dataclass
class DescriptorSet:
    files: List[FileDescriptor] = field(default_factory=list)
    route_base: str = ""


# ---------------------------------------------------------------------------
# Document model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Section:
    kind: str
    title: str
    entities: tuple


@dataclass(frozen=True)
class DocumentPage:
    file: FileDescriptor
    title: str
    route: str
    link: str
    file_name: str
    slug: str
    segments: tuple
    sections: tuple
    # file path -> page link, shared by every page of one run
    links: Dict[str, str] = field(default_factory=dict, compare=False, repr=False)
    body: str = ""


@dataclass
class NavigationNode:
    label: str
    children: List[NavigationNode] = field(default_factory=list)
    page: Optional[DocumentPage] = None

    @property
    def is_leaf(self) -> bool:
        return self.page is not None

    def find_group(self, label: str) -> Optional[NavigationNode]:
        for child in self.children:
            if not child.is_leaf and child.label == label:
                return child
        return None

    def to_dict(self) -> dict:
        if self.page is not None:
            return {"label": self.label, "pageRoute": self.page.link, "fileName": self.page.file_name}
        return {"label": self.label, "children": [c.to_dict() for c in self.children]}
