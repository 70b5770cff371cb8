"""Tests for template interning, placeholder ordering and rendering."""

import pytest

from logaspect.options import DEFAULT_EXECUTING_TEMPLATE, DEFAULT_SCOPE_TEMPLATE
from logaspect.templates import (
    NOT_FOUND,
    Template,
    TemplateOrderResolver,
    compute_offsets,
    order_names,
    placeholder_names,
    render_template,
    template_properties,
)

NAMES = ("Asm", "Cls", "Mtd")


@pytest.fixture
def resolver():
    return TemplateOrderResolver()


class TestOrderNames:
    """Names come back in the order their tokens appear."""

    def test_method_class_assembly(self, resolver):
        template = "{MethodName} on {ClassName} in {AssemblyName}"

        assert resolver.order_names(template, *NAMES) == ("Mtd", "Cls", "Asm")

    def test_identity_order(self, resolver):
        template = "{AssemblyName} {ClassName} {MethodName}"

        assert resolver.order_names(template, *NAMES) == ("Asm", "Cls", "Mtd")

    @pytest.mark.parametrize(
        "template,expected",
        [
            ("{AssemblyName} {MethodName} {ClassName}", ("Asm", "Mtd", "Cls")),
            ("{ClassName} {AssemblyName} {MethodName}", ("Cls", "Asm", "Mtd")),
            ("{ClassName} {MethodName} {AssemblyName}", ("Cls", "Mtd", "Asm")),
            ("{MethodName} {AssemblyName} {ClassName}", ("Mtd", "Asm", "Cls")),
        ],
    )
    def test_all_permutations(self, resolver, template, expected):
        assert resolver.order_names(template, *NAMES) == expected

    def test_case_insensitive(self, resolver):
        template = "{methodname} {ASSEMBLYNAME} {className}"

        assert resolver.order_names(template, *NAMES) == ("Mtd", "Asm", "Cls")

    def test_default_templates(self, resolver):
        assert resolver.order_names(DEFAULT_EXECUTING_TEMPLATE, *NAMES) == ("Mtd", "Cls", "Asm")
        assert resolver.order_names(DEFAULT_SCOPE_TEMPLATE, *NAMES) == ("Cls", "Mtd", "Asm")

    def test_absent_token_sorts_last(self, resolver):
        assert resolver.order_names("{ClassName}.{MethodName}", *NAMES) == ("Cls", "Mtd", "Asm")

    def test_two_absent_tokens_fall_through(self, resolver):
        # class and method tie at NOT_FOUND, so method is placed before class
        assert resolver.order_names("{AssemblyName} only", *NAMES) == ("Asm", "Mtd", "Cls")

    def test_no_tokens(self, resolver):
        assert resolver.order_names("nothing here", *NAMES) == ("Mtd", "Cls", "Asm")

    def test_template_and_string_agree(self, resolver):
        text = "{ClassName}::{MethodName} [{AssemblyName}]"

        assert resolver.order_names(Template.of(text), *NAMES) == resolver.order_names(text, *NAMES)

    def test_module_level_helper(self):
        assert order_names("{MethodName} on {ClassName} in {AssemblyName}", *NAMES) == ("Mtd", "Cls", "Asm")


class TestOffsets:
    """Offsets are computed once per template."""

    def test_compute_offsets(self):
        assert compute_offsets("{AssemblyName}/{ClassName}") == (0, 15, NOT_FOUND)

    def test_first_occurrence_wins(self):
        assert compute_offsets("{MethodName} {ClassName} {MethodName}")[2] == 0

    def test_cached_by_template_id(self, resolver):
        template = Template.of("{ClassName} {MethodName}")

        assert resolver.offsets(template) is resolver.offsets(template)

    def test_cached_by_string(self, resolver):
        text = "{MethodName} {ClassName}"

        assert resolver.offsets(text) is resolver.offsets(text)

    def test_clear(self, resolver):
        text = "{MethodName} {ClassName}"
        first = resolver.offsets(text)
        resolver.clear()

        assert resolver.offsets(text) == first


class TestTemplate:
    """Interned templates."""

    def test_interned(self):
        assert Template.of("interned {MethodName}") is Template.of("interned {MethodName}")

    def test_distinct_ids(self):
        first = Template.of("first {MethodName}")
        second = Template.of("second {MethodName}")

        assert first.id != second.id

    def test_of_template_is_identity(self):
        template = Template.of("same {ClassName}")

        assert Template.of(template) is template

    def test_str(self):
        assert str(Template.of("{ClassName}")) == "{ClassName}"


class TestRendering:
    """Positional substitution of placeholder values."""

    def test_placeholder_names(self):
        assert placeholder_names("{B} {a} {b} {C}") == ["B", "a", "C"]

    def test_render_default_scope(self):
        rendered = render_template(DEFAULT_SCOPE_TEMPLATE, ["Cls", "Mtd", "Asm"])

        assert rendered == "Cls.Mtd (Asm)"

    def test_repeated_placeholder_reuses_value(self):
        rendered = render_template("{MethodName} then {methodname} on {ClassName}", ["Mtd", "Cls"])

        assert rendered == "Mtd then Mtd on Cls"

    def test_missing_value_left_as_written(self):
        assert render_template("{First} {Second}", ["x"]) == "x {Second}"

    def test_template_properties(self):
        properties = template_properties("{ClassName}.{MethodName}", ["Cls", "Mtd"])

        assert properties == {"ClassName": "Cls", "MethodName": "Mtd"}
