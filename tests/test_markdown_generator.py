import re

import pytest

from protoc_docs.builder import build_pages
from protoc_docs.errors import TemplateError
from protoc_docs.generator.markdown_generator import (
    default_renderer,
    escape_mdx,
    get_renderer,
    page_context,
    render_page,
    template_renderer,
)
from protoc_docs.parser.descriptor_loader import load_file_descriptors
from protoc_docs.resolver import resolve_references

FILES = [
    {
        "path": "acme/v1/user.proto",
        "package": "acme.v1",
        "dependencies": ["acme/v1/common.proto", "google/protobuf/timestamp.proto"],
        "description": "User management.",
        "messages": [
            {
                "name": "User",
                "description": "A person with an account.",
                "fields": [
                    {"name": "id", "number": 1, "type": "int64", "description": "Unique id\nnever reused"},
                    {"name": "address", "number": 2, "type": "Address"},
                    {"name": "labels", "number": 3, "type": "map<string, Label>"},
                    {"name": "created", "number": 4, "type": "google.protobuf.Timestamp"},
                    {"name": "role", "number": 5, "type": "Role"},
                ],
                "messages": [
                    {"name": "Address", "fields": [{"name": "city", "number": 1, "type": "string"}]},
                ],
                "enums": [
                    {"name": "Role", "values": [{"name": "MEMBER", "number": 0}, {"name": "OWNER", "number": 1}]},
                ],
            },
        ],
        "services": [
            {
                "name": "UserService",
                "methods": [
                    {"name": "Watch", "request_type": "User", "response_type": "User",
                     "server_streaming": True, "description": "Streams <changes>"},
                ],
            },
        ],
    },
    {
        "path": "acme/v1/common.proto",
        "package": "acme.v1",
        "messages": [{"name": "Label", "fields": [{"name": "value", "number": 1, "type": "string"}]}],
    },
]


def _pages(files=FILES):
    loaded = load_file_descriptors({"files": files})
    resolve_references(loaded)
    return build_pages(loaded, "docs")


def _headings(text):
    return [line for line in text.splitlines() if line.startswith("#")]


class TestEscaping:
    def test_reserved_characters(self):
        assert escape_mdx("map<string, {x}> | `y` & z") == (
            "map&lt;string, &#123;x&#125;&gt; &#124; &#96;y&#96; &amp; z"
        )

    def test_plain_text_untouched(self):
        assert escape_mdx("acme.v1.User_Name") == "acme.v1.User_Name"


class TestPageContext:
    def test_structured_bindings(self):
        context = page_context(_pages()[0])
        assert context["title"] == "acme/v1/user.proto"
        assert context["route"] == "/docs/acme/v1"
        assert [s["kind"] for s in context["sections"]] == ["message", "enum", "service"]
        user = context["messages"][0]
        assert user["anchor"] == "acme.v1.User"
        types = {f["name"]: f["type"] for f in user["fields"]}
        assert types["id"] == {"kind": "scalar", "label": "int64", "href": None}
        assert types["address"]["href"] == "/docs/acme/v1/user#acme.v1.User.Address"
        assert types["role"]["kind"] == "enum"
        assert types["created"] == {
            "kind": "unresolved", "label": "google.protobuf.Timestamp", "href": None,
        }

    def test_map_bindings_link_value_type(self):
        user = page_context(_pages()[0])["messages"][0]
        labels = next(f for f in user["fields"] if f["name"] == "labels")
        assert labels["map"]["key"]["label"] == "string"
        assert labels["map"]["value"]["href"] == "/docs/acme/v1/common#acme.v1.Label"

    def test_dependencies_link_to_known_pages_only(self):
        deps = page_context(_pages()[0])["dependencies"]
        assert deps == [
            {"path": "acme/v1/common.proto", "href": "/docs/acme/v1/common"},
            {"path": "google/protobuf/timestamp.proto", "href": None},
        ]


class TestDefaultLayout:
    def test_sections_and_entities_in_order(self):
        text = default_renderer(_pages()[0])
        assert text.startswith("---\n")
        assert 'title: "acme/v1/user.proto"' in text
        positions = [
            text.index("## Messages"),
            text.index("### User"),
            text.index("#### Address"),
            text.index("#### Role"),
            text.index("## Services"),
            text.index("### UserService"),
        ]
        assert positions == sorted(positions)
        assert "## Enums" not in text

    def test_links_and_escaping(self):
        text = default_renderer(_pages()[0])
        assert '<a id="acme.v1.User.Address"></a>' in text
        assert "[acme.v1.User.Address](/docs/acme/v1/user#acme.v1.User.Address)" in text
        assert "map&lt;string, [acme.v1.Label](/docs/acme/v1/common#acme.v1.Label)&gt;" in text
        assert "| id | int64 | optional | Unique id never reused |" in text
        assert "stream [acme.v1.User](/docs/acme/v1/user#acme.v1.User)" in text
        assert "Streams &lt;changes&gt;" in text
        assert "<changes>" not in text

    def test_enum_values_listed(self):
        text = default_renderer(_pages()[0])
        assert "| MEMBER | 0 |" in text
        assert "| OWNER | 1 |" in text

    def test_render_is_deterministic(self):
        assert default_renderer(_pages()[0]) == default_renderer(_pages()[0])

    def test_deep_nesting_keeps_order_and_caps_headings(self):
        deep = {
            "path": "deep.proto",
            "package": "p",
            "messages": [{
                "name": "A",
                "messages": [{
                    "name": "B",
                    "messages": [{
                        "name": "C",
                        "messages": [{
                            "name": "D",
                            "fields": [{"name": "mode", "number": 1, "type": "Mode"}],
                            "enums": [{"name": "Mode", "values": [{"name": "OFF", "number": 0}]}],
                        }],
                    }],
                }],
                "enums": [{"name": "Kind", "values": [{"name": "PLAIN", "number": 0}]}],
            }],
        }
        text = default_renderer(_pages([deep])[0])
        assert re.findall(r'<a id="([^"]+)"></a>', text) == [
            "p.A", "p.A.B", "p.A.B.C", "p.A.B.C.D", "p.A.B.C.D.Mode", "p.A.Kind",
        ]
        assert _headings(text) == [
            "# deep.proto",
            "## Messages",
            "### A",
            "#### B",
            "##### C",
            "###### D",
            "###### Mode",
            "#### Kind",
        ]
        assert "| mode | [p.A.B.C.D.Mode](/docs/p/deep#p.A.B.C.D.Mode) | optional |" in text
        assert "| OFF | 0 |" in text
        assert "| PLAIN | 0 |" in text

    def test_title_with_quotes_in_front_matter(self):
        page = _pages([{"path": 'we"ird\\name.proto', "package": "p"}])[0]
        text = default_renderer(page)
        assert text.splitlines()[1] == 'title: "we\\"ird\\\\name.proto"'


class TestCustomTemplate:
    def test_bindings_are_available(self):
        renderer = template_renderer(
            "{{ title }} at {{ route }}\n"
            "{% for m in messages %}{{ m.name }}:{% for f in m.fields %} {{ f.type.label }}{% endfor %}{% endfor %}"
        )
        text = renderer(_pages()[0])
        assert text.startswith("acme/v1/user.proto at /docs/acme/v1\n")
        assert "User: int64 acme.v1.User.Address acme.v1.Label" in text

    def test_custom_template_output_is_escaped(self):
        renderer = template_renderer("{{ services[0].methods[0].description }}")
        assert renderer(_pages()[0]) == "Streams &lt;changes&gt;"

    def test_can_import_default_macros(self):
        renderer = template_renderer(
            '{% import "macros.mdx.j2" as docs %}{{ docs.type_ref(messages[0].fields[1].type) }}'
        )
        assert renderer(_pages()[0]) == "[acme.v1.User.Address](/docs/acme/v1/user#acme.v1.User.Address)"

    def test_missing_binding_is_an_error(self):
        renderer = template_renderer("{{ title }} {{ author }}")
        with pytest.raises(TemplateError, match="acme/v1/user.proto.*author"):
            renderer(_pages()[0])

    def test_missing_attribute_is_an_error(self):
        renderer = template_renderer("{% for m in messages %}{{ m.version }}{% endfor %}")
        with pytest.raises(TemplateError, match="version"):
            renderer(_pages()[0])

    def test_python_error_in_template_is_a_template_error(self):
        renderer = template_renderer('{{ sections | length + "x" }}')
        with pytest.raises(TemplateError, match="acme/v1/user.proto.*TypeError"):
            renderer(_pages()[0])

    def test_enum_entries_binding(self):
        renderer = template_renderer(
            "{% for e in messages[0].enums %}{{ e.name }}:"
            "{% for v in e.entries %} {{ v.name }}={{ v.number }}{% endfor %}{% endfor %}"
        )
        assert renderer(_pages()[0]) == "Role: MEMBER=0 OWNER=1"

    def test_syntax_error(self):
        with pytest.raises(TemplateError, match="compiled"):
            template_renderer("{% for m in messages %}")


class TestRendererSelection:
    def test_default_without_template(self):
        assert get_renderer(None) is default_renderer

    def test_render_page_sets_body(self):
        page = _pages()[1]
        rendered = render_page(page, get_renderer("{{ file_name }}"))
        assert rendered.body == "acme/v1/common"
        assert page.body == ""
