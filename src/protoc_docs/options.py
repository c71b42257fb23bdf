from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from protoc_docs.errors import OptionsError
from protoc_docs.generator.sidebar_generator import DEFAULT_SIDEBAR_NAME


@dataclass
class PluginOptions:
    # JSON descriptor set (or binary FileDescriptorSet) produced from the proto workspace.
    file_descriptors_path: str
    # Directory the generated pages are written to.
    proto_docs_path: str
    # File the sidebar module is written to.
    sidebar_path: str
    # URL route for the docs section of the site.
    route_base_path: str = ""
    # Optional Jinja2 page template replacing the built-in layout.
    template_path: Optional[str] = None
    doc_extension: str = ".mdx"
    sidebar_name: str = DEFAULT_SIDEBAR_NAME
    doc_id_prefix: str = ""
    workers: int = 1


def validate_options(options: PluginOptions) -> PluginOptions:
    """Check paths before anything is generated. Raises OptionsError."""
    if not options.file_descriptors_path or not os.path.isfile(options.file_descriptors_path):
        raise OptionsError(
            "Expected file_descriptors_path option to reference a present file."
        )

    # only checked when the directory already exists
    if not options.proto_docs_path or (
        os.path.exists(options.proto_docs_path) and not os.path.isdir(options.proto_docs_path)
    ):
        raise OptionsError("Expected proto_docs_path option to reference a directory.")

    if not options.sidebar_path:
        raise OptionsError("Expected sidebar_path option to reference a file.")

    if options.template_path and not os.path.isfile(options.template_path):
        raise OptionsError(
            f'Could not find the template file "{options.template_path}" '
            f"referenced in option template_path."
        )

    if not options.doc_extension.startswith("."):
        raise OptionsError(f"Expected doc_extension to start with '.', got {options.doc_extension!r}")

    if options.workers < 1:
        raise OptionsError(f"Expected workers to be at least 1, got {options.workers}")

    return options
