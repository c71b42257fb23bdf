from __future__ import annotations

import logging
import posixpath
from typing import Dict, List, Optional, Set

from protoc_docs.errors import ContentError
from protoc_docs.models import (
    KIND_ENUM,
    KIND_MESSAGE,
    KIND_SERVICE,
    DocumentPage,
    FileDescriptor,
    Section,
)

log = logging.getLogger(__name__)

SECTION_TITLES = (
    (KIND_MESSAGE, "Messages"),
    (KIND_ENUM, "Enums"),
    (KIND_SERVICE, "Services"),
)


def normalize_route_base(route_base: str) -> str:
    """'docs/', '/docs' and 'docs' all become '/docs'; an empty base stays empty."""
    stripped = (route_base or "").strip().strip("/")
    return f"/{stripped}" if stripped else ""


def _strip_extension(path: str) -> str:
    root, _ = posixpath.splitext(path)
    return root


def page_segments(fd: FileDescriptor) -> List[str]:
    """Grouping segments for a file: its package parts, or its directory parts."""
    if fd.package:
        return [p for p in fd.package.split(".") if p]
    directory = posixpath.dirname(fd.path.strip("/"))
    return [p for p in directory.split("/") if p]


def _disambiguate(slug: str, path: str, prefix: str, taken: Set[str]) -> str:
    """Return a slug whose page file name is not taken yet.

    The first file keeps its plain stem; a later file with the same stem in
    the same group gets its whole path flattened into the slug.
    """
    if f"{prefix}{slug}" not in taken:
        return slug
    flattened = _strip_extension(path).replace("/", "_") or slug
    candidate = flattened
    n = 2
    while f"{prefix}{candidate}" in taken:
        candidate = f"{flattened}_{n}"
        n += 1
    return candidate


def build_page(
    fd: FileDescriptor,
    route_base: str,
    links: Dict[str, str],
    taken: Optional[Set[str]] = None,
) -> DocumentPage:
    """Build the page model for a single resolved file.

    ``taken`` holds the page file names already used in this run.
    """
    base = normalize_route_base(route_base)
    path = (fd.path or "").strip("/")
    slug = posixpath.basename(_strip_extension(path))
    segments = page_segments(fd)

    if fd.package:
        package_path = "/".join(segments)
        if not package_path:
            raise ContentError(
                f"Cannot derive a route for file '{fd.path}' with package '{fd.package}'"
            )
        route = f"{base}/{package_path}"
        # a path without a stem still has a package to name the page after
        slug = slug or segments[-1]
    else:
        if not slug:
            raise ContentError(
                f"Cannot derive a route for file '{fd.path}': no package and no usable path"
            )
        route = f"{base}/{_strip_extension(path)}"

    prefix = "".join(f"{s}/" for s in segments)
    slug = _disambiguate(slug, path, prefix, taken or set())
    file_name = f"{prefix}{slug}"

    sections = tuple(
        Section(kind=kind, title=title, entities=tuple(_entities(fd, kind)))
        for kind, title in SECTION_TITLES
    )
    return DocumentPage(
        file=fd,
        title=fd.path,
        route=route,
        link=f"{base}/{file_name}",
        file_name=file_name,
        slug=slug,
        segments=tuple(segments),
        sections=sections,
        links=links,
    )


def _entities(fd: FileDescriptor, kind: str) -> list:
    if kind == KIND_MESSAGE:
        return fd.messages
    if kind == KIND_ENUM:
        return fd.enums
    return fd.services


def build_pages(files: List[FileDescriptor], route_base: str = "") -> List[DocumentPage]:
    """Build one DocumentPage per file, in input order.

    Raises ContentError only when a file has no usable package or path.
    Files sharing a group and a stem get distinct page file names.
    """
    links: Dict[str, str] = {}
    pages: List[DocumentPage] = []
    taken: Set[str] = set()

    for fd in files:
        page = build_page(fd, route_base, links, taken)
        taken.add(page.file_name)
        links[fd.path] = page.link
        pages.append(page)
        log.debug("Built page %s for %s", page.link, fd.path)

    return pages
