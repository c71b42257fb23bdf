"""End-to-end documentation generation over an in-memory descriptor set.

load -> resolve -> build pages, then render every page and build the
navigation tree. The last two stages are independent of each other and
may run on a thread pool; results are always collected in input order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from protoc_docs.builder import build_pages
from protoc_docs.generator.markdown_generator import get_renderer, page_context, render_page
from protoc_docs.models import DocumentPage, NavigationNode
from protoc_docs.navigation import build_navigation
from protoc_docs.parser.descriptor_loader import load_descriptor_set
from protoc_docs.resolver import UnresolvedReference, resolve_references

log = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    pages: List[DocumentPage]
    navigation: NavigationNode
    unresolved: List[UnresolvedReference] = field(default_factory=list)

    @property
    def documents(self) -> Dict[str, str]:
        """Rendered page text keyed by page file name, in input order."""
        return {page.file_name: page.body for page in self.pages}

    @property
    def warnings(self) -> List[str]:
        return [u.raw_name for u in self.unresolved]

    def structured_pages(self) -> List[dict]:
        return [page_context(page) for page in self.pages]


def generate_docs(
    raw_descriptors: Any,
    route_base: str = "",
    template: Optional[str] = None,
    workers: int = 1,
) -> GenerationResult:
    """Run the whole pipeline over an already-deserialized descriptor set.

    Any fatal error (StructuralError, CollisionError, ContentError,
    TemplateError) propagates unchanged and no partial result is returned.
    """
    descriptor_set = load_descriptor_set(raw_descriptors, route_base)
    resolution = resolve_references(descriptor_set.files)
    pages = build_pages(resolution.files, descriptor_set.route_base)
    renderer = get_renderer(template)

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            navigation_future = pool.submit(build_navigation, pages)
            rendered = list(pool.map(lambda page: render_page(page, renderer), pages))
            navigation = navigation_future.result()
    else:
        rendered = [render_page(page, renderer) for page in pages]
        navigation = build_navigation(pages)

    log.info(
        "Generated %d page(s) with %d unresolved type name(s)",
        len(rendered), len(resolution.unresolved),
    )
    # Leaves must point at the rendered pages, not the pre-render ones.
    by_name = {page.file_name: page for page in rendered}
    _relink(navigation, by_name)
    return GenerationResult(pages=rendered, navigation=navigation, unresolved=resolution.unresolved)


def _relink(node: NavigationNode, by_name: Dict[str, DocumentPage]) -> None:
    for child in node.children:
        if child.page is not None:
            child.page = by_name[child.page.file_name]
        else:
            _relink(child, by_name)
