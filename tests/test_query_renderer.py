"""Tests for Jinja2 GraphQL document rendering."""

import pytest
from jinja2 import TemplateNotFound

from catalog_autoconfig.generation.query_renderer import QueryRenderer, operation_name, validate_document
from catalog_autoconfig.types import GraphQLArgument


@pytest.fixture
def renderer():
    return QueryRenderer()


class TestRenderQuery:
    def test_renders_arguments_and_selections(self, renderer):
        document = renderer.render_query(
            "SearchShows",
            "shows",
            [GraphQLArgument(name="search", type_name="SearchInput"), GraphQLArgument(name="limit", type_name="Int")],
            ["_id", "name"],
        )

        assert document == (
            "query SearchShows($search: SearchInput, $limit: Int) {\n"
            "  shows(search: $search, limit: $limit) {\n"
            "    _id\n"
            "    name\n"
            "  }\n"
            "}\n"
        )

    def test_no_arguments(self, renderer):
        document = renderer.render_query("Viewer", "viewer", [], ["login"])

        assert document.startswith("query Viewer {\n  viewer {\n")

    def test_empty_selection_uses_typename(self, renderer):
        document = renderer.render_query("Ping", "ping", [], [])
        assert "    __typename\n" in document

    def test_nested_selection(self, renderer):
        document = renderer.render_query("Shows", "shows", [], ["edges { _id name }"])
        assert "    edges { _id name }\n" in document

    def test_operation_name_is_sanitized(self, renderer):
        document = renderer.render_query("get by ID show", "show", [], ["_id"])
        assert document.startswith("query GetByIDShow {")

    def test_missing_template_dir(self, tmp_path):
        with pytest.raises(TemplateNotFound):
            QueryRenderer(template_dir=tmp_path).render_query("Q", "q", [], ["a"])


class TestOperationName:
    def test_camel_cases_words(self):
        assert operation_name("search shows-v2") == "SearchShowsV2"

    def test_strips_invalid_characters(self):
        assert operation_name("get.episodes!") == "Getepisodes"

    def test_leading_digit(self):
        assert operation_name("2nd query") == "Q2ndQuery"


class TestValidateDocument:
    def test_balanced(self):
        validate_document("query { a(b: 1) { c } }")

    @pytest.mark.parametrize("document", ["query { a", "query { a } }", "query { a(b: 1 }"])
    def test_unbalanced(self, document):
        with pytest.raises(ValueError):
            validate_document(document)
