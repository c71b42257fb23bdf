"""Serialize the navigation tree as a Docusaurus ``sidebars.js`` module."""

from __future__ import annotations

import json
from typing import List

from protoc_docs.models import NavigationNode

DEFAULT_SIDEBAR_NAME = "protobufSidebar"


def sidebar_items(node: NavigationNode, id_prefix: str = "") -> List[dict]:
    items: List[dict] = []
    prefix = id_prefix.strip("/")
    for child in node.children:
        if child.page is not None:
            doc_id = f"{prefix}/{child.page.file_name}" if prefix else child.page.file_name
            items.append({"type": "doc", "id": doc_id, "label": child.label})
        else:
            items.append({
                "type": "category",
                "label": child.label,
                "items": sidebar_items(child, id_prefix),
            })
    return items


def generate_sidebar_file_contents(
    navigation: NavigationNode,
    sidebar_name: str = DEFAULT_SIDEBAR_NAME,
    id_prefix: str = "",
) -> str:
    sidebars = {sidebar_name: sidebar_items(navigation, id_prefix)}
    return f"module.exports = {json.dumps(sidebars, indent=2)};\n"
