"""Resolve every type reference in a descriptor set.

Resolution is two-pass: first a global index of fully-qualified names is
built over all files, then every field and method type is looked up in it.
Names are resolved the way protoc scopes them: an absolute name (leading
``.``) is looked up as-is, a relative name is tried in the innermost
enclosing message first and then in each enclosing scope outward, down to
the empty package. The first match wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from protoc_docs.errors import CollisionError, StructuralError
from protoc_docs.models import (
    KIND_ENUM,
    KIND_MESSAGE,
    KIND_SERVICE,
    PROTO_PRIMITIVES,
    FileDescriptor,
    Message,
    Primitive,
    Resolved,
    TypeReference,
    Unresolved,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexEntry:
    kind: str
    entity: object
    file_path: str


@dataclass
class UnresolvedReference:
    """First place an unknown type name was referenced from."""

    raw_name: str
    file_path: str
    referrer: str


@dataclass
class ResolutionResult:
    files: List[FileDescriptor]
    index: Dict[str, IndexEntry] = field(default_factory=dict)
    unresolved: List[UnresolvedReference] = field(default_factory=list)

    @property
    def unresolved_names(self) -> List[str]:
        return [u.raw_name for u in self.unresolved]


def resolve_references(files: List[FileDescriptor]) -> ResolutionResult:
    """Resolve all field and method types of ``files`` in place.

    Raises CollisionError on duplicate fully-qualified names and
    StructuralError on a map field keyed by a message or enum. Unknown
    names become Unresolved and are collected, de-duplicated by raw name.
    """
    index = build_index(files)
    return _Resolver(files, index).resolve()


def build_index(files: List[FileDescriptor]) -> Dict[str, IndexEntry]:
    index: Dict[str, IndexEntry] = {}

    def add(full_name: str, entry: IndexEntry) -> None:
        existing = index.get(full_name)
        if existing is not None:
            raise CollisionError(
                f"Duplicate fully-qualified name '{full_name}': "
                f"{existing.kind} in '{existing.file_path}' and {entry.kind} in '{entry.file_path}'"
            )
        index[full_name] = entry

    for fd in files:
        for msg in fd.messages:
            for nested in _walk_messages(msg):
                add(nested.full_name, IndexEntry(KIND_MESSAGE, nested, fd.path))
                for enum in nested.enums:
                    add(enum.full_name, IndexEntry(KIND_ENUM, enum, fd.path))
        for enum in fd.enums:
            add(enum.full_name, IndexEntry(KIND_ENUM, enum, fd.path))
        for svc in fd.services:
            add(svc.full_name, IndexEntry(KIND_SERVICE, svc, fd.path))

    log.debug("Indexed %d fully-qualified name(s)", len(index))
    return index


def _walk_messages(msg: Message) -> Iterator[Message]:
    """Yield a message and all of its nested messages, depth-first."""
    stack = [msg]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.messages))


def candidate_names(raw_name: str, scope: str) -> List[str]:
    """Fully-qualified names to try for ``raw_name`` seen inside ``scope``.

    ``scope`` is the dotted name of the innermost enclosing message (or the
    package for service methods).
    """
    if raw_name.startswith("."):
        return [raw_name[1:]]
    parts = scope.split(".") if scope else []
    candidates = []
    for depth in range(len(parts), -1, -1):
        prefix = ".".join(parts[:depth])
        candidates.append(f"{prefix}.{raw_name}" if prefix else raw_name)
    return candidates


class _Resolver:
    def __init__(self, files: List[FileDescriptor], index: Dict[str, IndexEntry]) -> None:
        self._files = files
        self._index = index
        self._unresolved: Dict[str, UnresolvedReference] = {}

    def resolve(self) -> ResolutionResult:
        for fd in self._files:
            for msg in fd.messages:
                for nested in _walk_messages(msg):
                    self._resolve_message(fd, nested)
            for svc in fd.services:
                for method in svc.methods:
                    referrer = f"{svc.full_name}.{method.name}"
                    method.request_ref = self._lookup(fd, method.request_type, fd.package, referrer)
                    method.response_ref = self._lookup(fd, method.response_type, fd.package, referrer)

        for ref in self._unresolved.values():
            log.warning(
                "Unresolved type '%s' referenced from %s (%s)",
                ref.raw_name, ref.referrer, ref.file_path,
            )
        return ResolutionResult(
            files=self._files,
            index=self._index,
            unresolved=list(self._unresolved.values()),
        )

    def _resolve_message(self, fd: FileDescriptor, msg: Message) -> None:
        for f in msg.fields:
            referrer = f"{msg.full_name}.{f.name}"
            if f.map_type is None:
                f.type_ref = self._lookup(fd, f.type_name, msg.full_name, referrer)
                continue
            key_ref = self._lookup(fd, f.map_type.key_type, msg.full_name, referrer)
            if isinstance(key_ref, Resolved):
                raise StructuralError(
                    f"{fd.path}: map field '{referrer}' has key type "
                    f"'{f.map_type.key_type}' which resolves to {key_ref.kind} "
                    f"'{key_ref.entity_id}'; map keys must be scalar"
                )
            f.map_type.key_ref = key_ref
            f.map_type.value_ref = self._lookup(fd, f.map_type.value_type, msg.full_name, referrer)
            f.type_ref = f.map_type.value_ref

    def _lookup(self, fd: FileDescriptor, raw_name: str, scope: str, referrer: str) -> TypeReference:
        if raw_name in PROTO_PRIMITIVES:
            return Primitive(raw_name)

        found = self._find(raw_name, scope)
        if found is None:
            if raw_name not in self._unresolved:
                self._unresolved[raw_name] = UnresolvedReference(raw_name, fd.path, referrer)
            return Unresolved(raw_name)

        full_name, entry = found
        if entry.file_path != fd.path and entry.file_path not in fd.dependencies:
            log.debug(
                "%s: '%s' resolved to '%s' in '%s' which is not a declared dependency",
                fd.path, referrer, full_name, entry.file_path,
            )
        return Resolved(entity_id=full_name, file_path=entry.file_path, kind=entry.kind)

    def _find(self, raw_name: str, scope: str) -> Optional[Tuple[str, IndexEntry]]:
        for candidate in candidate_names(raw_name, scope):
            entry = self._index.get(candidate)
            # Services share the namespace but are never field or method types.
            if entry is not None and entry.kind != KIND_SERVICE:
                return candidate, entry
        return None


def iter_type_references(fd: FileDescriptor) -> Iterator[Tuple[str, Optional[TypeReference]]]:
    """Yield (referrer, reference) for every type slot in a file."""
    for msg in fd.messages:
        for nested in _walk_messages(msg):
            for f in nested.fields:
                referrer = f"{nested.full_name}.{f.name}"
                if f.map_type is not None:
                    yield referrer, f.map_type.key_ref
                    yield referrer, f.map_type.value_ref
                else:
                    yield referrer, f.type_ref
    for svc in fd.services:
        for method in svc.methods:
            referrer = f"{svc.full_name}.{method.name}"
            yield referrer, method.request_ref
            yield referrer, method.response_ref


def find_entity(index: Dict[str, IndexEntry], ref: TypeReference) -> Optional[object]:
    """Return the Message or EnumDef a Resolved reference points at."""
    if not isinstance(ref, Resolved):
        return None
    entry = index.get(ref.entity_id)
    return entry.entity if entry is not None else None
