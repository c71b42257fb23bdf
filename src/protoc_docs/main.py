from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

from google.protobuf.message import DecodeError

from protoc_docs.errors import ProtocDocsError, StructuralError
from protoc_docs.generator.sidebar_generator import DEFAULT_SIDEBAR_NAME, generate_sidebar_file_contents
from protoc_docs.options import PluginOptions, validate_options
from protoc_docs.parser.descriptor_set import parse_descriptor_set
from protoc_docs.pipeline import GenerationResult, generate_docs

log = logging.getLogger(__name__)


def read_descriptors(path: str) -> Any:
    """Read a JSON descriptor set, or a binary protoc FileDescriptorSet."""
    data = Path(path).read_bytes()
    if path.endswith(".json"):
        try:
            return json.loads(data.decode("utf-8"))
        except ValueError as e:
            raise StructuralError(f"{path}: not a valid JSON descriptor set: {e}") from e
    try:
        return parse_descriptor_set(data)
    except DecodeError as e:
        raise StructuralError(f"{path}: not a valid FileDescriptorSet: {e}") from e


def write_outputs(result: GenerationResult, options: PluginOptions) -> List[str]:
    """Write every page and the sidebar module. Returns the written page paths."""
    written: List[str] = []
    for file_name, contents in result.documents.items():
        file_path = os.path.join(options.proto_docs_path, f"{file_name}{options.doc_extension}")
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        Path(file_path).write_text(contents, encoding="utf-8")
        written.append(file_path)

    sidebar = generate_sidebar_file_contents(
        result.navigation,
        sidebar_name=options.sidebar_name,
        id_prefix=options.doc_id_prefix,
    )
    sidebar_dir = os.path.dirname(options.sidebar_path)
    if sidebar_dir:
        os.makedirs(sidebar_dir, exist_ok=True)
    Path(options.sidebar_path).write_text(sidebar, encoding="utf-8")
    return written


def run(options: PluginOptions) -> GenerationResult:
    """Main pipeline: read descriptors, generate, write pages and sidebar."""
    validate_options(options)

    raw = read_descriptors(options.file_descriptors_path)
    log.debug("Read descriptors from %s", options.file_descriptors_path)
    template = None
    if options.template_path:
        template = Path(options.template_path).read_text(encoding="utf-8")

    result = generate_docs(
        raw,
        route_base=options.route_base_path,
        template=template,
        workers=options.workers,
    )
    for name in result.warnings:
        print(f"  Warning: unresolved type '{name}'")

    for f in write_outputs(result, options):
        print(f"  Generated page: {f}")
    print(f"  Generated sidebar: {options.sidebar_path}")
    print("Done!")
    return result


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="protoc-docs",
        description="Generate documentation pages and a sidebar from protobuf file descriptors",
    )
    parser.add_argument(
        "--file-descriptors-path",
        required=True,
        help="JSON descriptor set or binary FileDescriptorSet (protoc --descriptor_set_out)",
    )
    parser.add_argument(
        "--proto-docs-path",
        required=True,
        help="Directory to write the generated pages to",
    )
    parser.add_argument(
        "--sidebar-path",
        required=True,
        help="File to write the sidebar module to",
    )
    parser.add_argument("--route-base-path", default="", help="URL route for the docs section")
    parser.add_argument("--template-path", default=None, help="Custom Jinja2 page template")
    parser.add_argument("--doc-extension", default=".mdx", help="Extension of generated pages")
    parser.add_argument("--sidebar-name", default=DEFAULT_SIDEBAR_NAME, help="Sidebar key in the module")
    parser.add_argument("--doc-id-prefix", default="", help="Prefix for sidebar doc ids")
    parser.add_argument("--workers", type=int, default=1, help="Threads used for rendering")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    options = PluginOptions(
        file_descriptors_path=args.file_descriptors_path,
        proto_docs_path=args.proto_docs_path,
        sidebar_path=args.sidebar_path,
        route_base_path=args.route_base_path,
        template_path=args.template_path,
        doc_extension=args.doc_extension,
        sidebar_name=args.sidebar_name,
        doc_id_prefix=args.doc_id_prefix,
        workers=args.workers,
    )
    try:
        run(options)
    except ProtocDocsError as e:
        print(f"FATAL: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
