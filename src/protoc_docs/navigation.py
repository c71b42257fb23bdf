from __future__ import annotations

import logging
from typing import List

from protoc_docs.errors import ContentError
from protoc_docs.models import DocumentPage, NavigationNode

log = logging.getLogger(__name__)


def build_navigation(pages: List[DocumentPage]) -> NavigationNode:
    """Fold pages into a tree of package/directory groups.

    Pages must be given in input order. Siblings keep the order in which
    they were first seen; an existing group is reused when a later page
    shares its prefix. Every page becomes exactly one leaf.
    """
    root = NavigationNode(label="")
    seen = set()

    for page in pages:
        if page.file_name in seen:
            raise ContentError(f"Page '{page.file_name}' was given twice")
        seen.add(page.file_name)

        node = root
        for segment in page.segments:
            group = node.find_group(segment)
            if group is None:
                group = NavigationNode(label=segment)
                node.children.append(group)
            node = group
        node.children.append(NavigationNode(label=page.slug, page=page))

    log.debug("Navigation tree built with %d top-level node(s)", len(root.children))
    return root


def iter_leaves(node: NavigationNode):
    """Yield leaf nodes depth-first in sibling order."""
    for child in node.children:
        if child.is_leaf:
            yield child
        else:
            yield from iter_leaves(child)
