from __future__ import annotations

import functools
import json
import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined
from jinja2 import TemplateError as JinjaTemplateError
from markupsafe import Markup

from protoc_docs.errors import TemplateError
from protoc_docs.models import (
    DocumentPage,
    EnumDef,
    Field,
    Message,
    Primitive,
    Resolved,
    Service,
    TypeReference,
    Unresolved,
)

log = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "page.mdx.j2"

Renderer = Callable[[DocumentPage], str]

# Characters that would otherwise be read as JSX, expressions or table syntax by MDX.
_MDX_ESCAPES = str.maketrans({
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    "{": "&#123;",
    "}": "&#125;",
    "|": "&#124;",
    "`": "&#96;",
})

_WHITESPACE_RE = re.compile(r"\s+")


def escape_mdx(value: object) -> str:
    return str(value).translate(_MDX_ESCAPES)


def _finalize(value: object) -> Markup:
    # Macro output and |safe values are already markup.
    if isinstance(value, Markup):
        return value
    if value is None:
        return Markup("")
    return Markup(escape_mdx(value))


def _oneline(value: object) -> str:
    if value is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value)).strip()


def _yaml_str(value: object) -> Markup:
    # A JSON string is a valid double-quoted YAML scalar.
    return Markup(json.dumps("" if value is None else str(value)))


@functools.lru_cache(maxsize=None)
def _get_template_env() -> Environment:
    template_dir = Path(__file__).parent.parent / "templates"
    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=True,
        finalize=_finalize,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["oneline"] = _oneline
    env.filters["yaml_str"] = _yaml_str
    return env


# ---------------------------------------------------------------------------
# Template bindings
# ---------------------------------------------------------------------------


def _type_context(ref: Optional[TypeReference], raw_name: str, links: Dict[str, str]) -> dict:
    if isinstance(ref, Primitive):
        return {"kind": "scalar", "label": ref.kind, "href": None}
    if isinstance(ref, Resolved):
        page_link = links.get(ref.file_path)
        href = f"{page_link}#{ref.entity_id}" if page_link is not None else None
        return {"kind": ref.kind, "label": ref.entity_id, "href": href}
    if isinstance(ref, Unresolved):
        return {"kind": "unresolved", "label": ref.raw_name, "href": None}
    return {"kind": "unresolved", "label": raw_name, "href": None}


def _field_context(f: Field, links: Dict[str, str]) -> dict:
    map_context = None
    if f.map_type is not None:
        map_context = {
            "key": _type_context(f.map_type.key_ref, f.map_type.key_type, links),
            "value": _type_context(f.map_type.value_ref, f.map_type.value_type, links),
        }
    return {
        "name": f.name,
        "number": f.number,
        "label": f.label,
        "kind": f.type_kind,
        "type": _type_context(f.type_ref, f.type_name, links),
        "map": map_context,
        "oneof": f.oneof,
        "default_value": f.default_value,
        "description": f.description,
    }


def _enum_context(enum: EnumDef) -> dict:
    return {
        "name": enum.name,
        "full_name": enum.full_name,
        "anchor": enum.full_name,
        "description": enum.description,
        "entries": [
            {"name": v.name, "number": v.number, "description": v.description}
            for v in enum.values
        ],
    }


def _message_context(msg: Message, links: Dict[str, str]) -> dict:
    return {
        "name": msg.name,
        "full_name": msg.full_name,
        "anchor": msg.full_name,
        "description": msg.description,
        "fields": [_field_context(f, links) for f in msg.fields],
        "messages": [_message_context(m, links) for m in msg.messages],
        "enums": [_enum_context(e) for e in msg.enums],
    }


def _service_context(svc: Service, links: Dict[str, str]) -> dict:
    return {
        "name": svc.name,
        "full_name": svc.full_name,
        "anchor": svc.full_name,
        "description": svc.description,
        "methods": [
            {
                "name": m.name,
                "description": m.description,
                "request": _type_context(m.request_ref, m.request_type, links),
                "response": _type_context(m.response_ref, m.response_type, links),
                "client_streaming": m.client_streaming,
                "server_streaming": m.server_streaming,
            }
            for m in svc.methods
        ],
    }


_ENTITY_CONTEXT = {
    "message": _message_context,
    "enum": lambda entity, links: _enum_context(entity),
    "service": _service_context,
}


def page_context(page: DocumentPage) -> dict:
    """Structured bindings for one page: name, route, sections and resolved types."""
    fd = page.file
    sections: List[dict] = []
    for section in page.sections:
        build = _ENTITY_CONTEXT[section.kind]
        sections.append({
            "kind": section.kind,
            "title": section.title,
            "entities": [build(entity, page.links) for entity in section.entities],
        })
    by_kind = {s["kind"]: s["entities"] for s in sections}
    return {
        "title": page.title,
        "path": fd.path,
        "package": fd.package,
        "description": fd.description,
        "route": page.route,
        "link": page.link,
        "file_name": page.file_name,
        "slug": page.slug,
        "dependencies": [
            {"path": dep, "href": page.links.get(dep)} for dep in fd.dependencies
        ],
        "sections": sections,
        "messages": by_kind.get("message", []),
        "enums": by_kind.get("enum", []),
        "services": by_kind.get("service", []),
    }


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def _render(template, page: DocumentPage) -> str:
    context = page_context(page)
    try:
        return template.render(page=context, **context)
    except JinjaTemplateError as exc:
        raise TemplateError(f"{page.file.path}: failed to render page: {exc}") from exc
    except (TypeError, ValueError, AttributeError, KeyError, IndexError) as exc:
        # e.g. iterating a value that is not a list, or a bad filter argument
        raise TemplateError(
            f"{page.file.path}: template does not match the page model: {type(exc).__name__}: {exc}"
        ) from exc


def default_renderer(page: DocumentPage) -> str:
    """Render a page with the built-in layout."""
    template = _get_template_env().get_template(DEFAULT_TEMPLATE)
    return _render(template, page)


def template_renderer(template_text: str) -> Renderer:
    """Compile a custom template once and return a renderer for it.

    The template shares the built-in environment, so it can import the
    default macros with ``{% import "macros.mdx.j2" as docs %}``.
    """
    try:
        template = _get_template_env().from_string(template_text)
    except JinjaTemplateError as exc:
        raise TemplateError(f"Custom template could not be compiled: {exc}") from exc

    def render(page: DocumentPage) -> str:
        return _render(template, page)

    return render


def get_renderer(template_text: Optional[str] = None) -> Renderer:
    if template_text is None:
        return default_renderer
    log.debug("Using custom page template")
    return template_renderer(template_text)


def render_page(page: DocumentPage, renderer: Renderer = default_renderer) -> DocumentPage:
    return replace(page, body=renderer(page))
