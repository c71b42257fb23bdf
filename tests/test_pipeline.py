import copy

import pytest

from protoc_docs.errors import CollisionError, StructuralError, TemplateError
from protoc_docs.generator.sidebar_generator import generate_sidebar_file_contents
from protoc_docs.models import Unresolved
from protoc_docs.pipeline import generate_docs

DESCRIPTORS = {
    "files": [
        {
            "path": "shop/orders.proto",
            "package": "shop.orders",
            "dependencies": ["shop/catalog.proto"],
            "messages": [
                {"name": "Order", "fields": [
                    {"name": "id", "number": 1, "type": "string"},
                    {"name": "items", "number": 2, "type": "LineItem", "label": "repeated"},
                    {"name": "placed_by", "number": 3, "type": "Customer"},
                ]},
                {"name": "LineItem", "fields": [
                    {"name": "product", "number": 1, "type": "shop.catalog.Product"},
                    {"name": "quantity", "number": 2, "type": "uint32"},
                ]},
            ],
            "services": [{"name": "Orders", "methods": [
                {"name": "Place", "request_type": "Order", "response_type": "Order"},
            ]}],
        },
        {
            "path": "shop/catalog.proto",
            "package": "shop.catalog",
            "messages": [{"name": "Product", "fields": [
                {"name": "sku", "number": 1, "type": "string"},
                {"name": "related", "number": 2, "type": "Product", "label": "repeated"},
                {"name": "supplier", "number": 3, "type": "Customer"},
            ]}],
            "enums": [{"name": "Availability", "values": [
                {"name": "IN_STOCK", "number": 0},
                {"name": "AVAILABLE", "number": 0},
            ]}],
        },
    ],
}


class TestGenerateDocs:
    def test_one_document_per_file(self):
        result = generate_docs(DESCRIPTORS, route_base="docs")
        assert list(result.documents) == ["shop/orders/orders", "shop/catalog/catalog"]
        assert all(text for text in result.documents.values())

    def test_unresolved_reported_once(self):
        result = generate_docs(DESCRIPTORS, route_base="docs")
        assert result.warnings == ["Customer"]
        order = result.pages[0].file.messages[0]
        assert order.fields[2].type_ref == Unresolved("Customer")

    def test_cross_file_reference_is_linked(self):
        result = generate_docs(DESCRIPTORS, route_base="docs")
        orders_page = result.documents["shop/orders/orders"]
        assert "[shop.catalog.Product](/docs/shop/catalog/catalog#shop.catalog.Product)" in orders_page

    def test_idempotent(self):
        first = generate_docs(copy.deepcopy(DESCRIPTORS), route_base="docs")
        second = generate_docs(copy.deepcopy(DESCRIPTORS), route_base="docs")
        assert first.documents == second.documents
        assert first.navigation.to_dict() == second.navigation.to_dict()
        assert generate_sidebar_file_contents(first.navigation) == \
            generate_sidebar_file_contents(second.navigation)

    def test_threaded_matches_sequential(self):
        sequential = generate_docs(copy.deepcopy(DESCRIPTORS), route_base="docs")
        threaded = generate_docs(copy.deepcopy(DESCRIPTORS), route_base="docs", workers=4)
        assert threaded.documents == sequential.documents
        assert threaded.navigation.to_dict() == sequential.navigation.to_dict()

    def test_navigation_leaves_carry_rendered_pages(self):
        result = generate_docs(DESCRIPTORS, route_base="docs")
        shop = result.navigation.children[0]
        orders_leaf = shop.children[0].children[0]
        assert orders_leaf.page.body == result.documents["shop/orders/orders"]

    def test_structured_pages(self):
        result = generate_docs(DESCRIPTORS, route_base="docs")
        structured = result.structured_pages()
        assert [p["route"] for p in structured] == ["/docs/shop/orders", "/docs/shop/catalog"]
        assert structured[1]["enums"][0]["entries"] == [
            {"name": "IN_STOCK", "number": 0, "description": ""},
            {"name": "AVAILABLE", "number": 0, "description": ""},
        ]

    def test_top_level_and_nested_enums_render(self):
        result = generate_docs({"files": [{
            "path": "status.proto",
            "package": "status",
            "messages": [{
                "name": "Job",
                "fields": [{"name": "state", "number": 1, "type": "State"}],
                "enums": [{"name": "State", "values": [
                    {"name": "QUEUED", "number": 0},
                    {"name": "DONE", "number": 1},
                ]}],
            }],
            "enums": [{"name": "Severity", "values": [{"name": "LOW", "number": 0}]}],
        }]}, route_base="docs")
        text = result.documents["status/status"]
        assert '<a id="status.Job.State"></a>' in text
        assert '<a id="status.Severity"></a>' in text
        assert "| QUEUED | 0 |" in text
        assert "| DONE | 1 |" in text
        assert "| LOW | 0 |" in text
        assert text.index("#### State") < text.index("## Enums") < text.index("### Severity")

    def test_files_with_same_stem_in_one_package(self):
        result = generate_docs({"files": [
            {"path": "api/v1/common.proto", "package": "acme",
             "messages": [{"name": "Page"}]},
            {"path": "internal/common.proto", "package": "acme",
             "messages": [{"name": "Cursor", "fields": [{"name": "page", "number": 1, "type": "Page"}]}]},
        ]}, route_base="docs")
        assert list(result.documents) == ["acme/common", "acme/internal_common"]
        assert "[acme.Page](/docs/acme/common#acme.Page)" in result.documents["acme/internal_common"]
        acme = result.navigation.children[0]
        assert [leaf.label for leaf in acme.children] == ["common", "internal_common"]

    def test_custom_template(self):
        result = generate_docs(DESCRIPTORS, route_base="docs", template="{{ title }}")
        assert result.documents == {
            "shop/orders/orders": "shop/orders.proto",
            "shop/catalog/catalog": "shop/catalog.proto",
        }


class TestFatalErrors:
    def test_collision_aborts(self):
        descriptors = copy.deepcopy(DESCRIPTORS)
        descriptors["files"].append({
            "path": "shop/legacy.proto",
            "package": "shop.catalog",
            "messages": [{"name": "Product"}],
        })
        with pytest.raises(CollisionError, match="shop.catalog.Product"):
            generate_docs(descriptors, route_base="docs")

    def test_structural_error_aborts(self):
        with pytest.raises(StructuralError):
            generate_docs({"files": [{"path": "a.proto"}]})

    def test_template_error_aborts(self):
        with pytest.raises(TemplateError):
            generate_docs(DESCRIPTORS, template="{{ nothing_here }}")
