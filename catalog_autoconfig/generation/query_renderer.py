"""Jinja2 rendering of synthesized GraphQL documents.

Templates live in catalog_autoconfig/templates/. Rendered documents are
checked for balanced braces and parentheses before they are returned.
"""

import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

from catalog_autoconfig.types.graphql import GraphQLArgument

QUERY_TEMPLATE = "query.graphql.j2"

_OPERATION_NAME = re.compile(r"[^A-Za-z0-9_]")


class QueryRenderer:
    """Render GraphQL query documents from Jinja2 templates.

    Example:
        >>> renderer = QueryRenderer()
        >>> print(renderer.render_query(
        ...     "SearchShows",
        ...     "shows",
        ...     [GraphQLArgument(name="search", type_name="SearchInput")],
        ...     ["_id", "name"],
        ... ))
        query SearchShows($search: SearchInput) {
          shows(search: $search) {
            _id
            name
          }
        }
    """

    def __init__(self, template_dir: Optional[Path] = None):
        """Initialize query renderer.

        Args:
            template_dir: Directory containing templates.
                         Defaults to catalog_autoconfig/templates/
        """
        if template_dir is None:
            template_dir = Path(__file__).parent.parent / "templates"

        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            autoescape=False,
            undefined=StrictUndefined,
        )

    def render_query(
        self,
        operation: str,
        field: str,
        arguments: Sequence[GraphQLArgument],
        selections: Iterable[str],
    ) -> str:
        """Render one query document.

        Args:
            operation: Operation name (sanitized to a GraphQL name)
            field: Root field the query calls
            arguments: Declared arguments, bound one-to-one to variables
            selections: Selection set lines (scalar names or nested blocks)

        Returns:
            GraphQL document text

        Raises:
            TemplateNotFound: If the query template is missing
            ValueError: If the rendered document is malformed
        """
        try:
            template = self.env.get_template(QUERY_TEMPLATE)
        except TemplateNotFound:
            raise TemplateNotFound(
                f"Template not found: {QUERY_TEMPLATE} in {self.template_dir}"
            )

        lines: List[str] = list(selections) or ["__typename"]
        document = template.render(
            operation=operation_name(operation),
            field=field,
            arguments=list(arguments),
            selections=lines,
        )
        validate_document(document)
        return document


def operation_name(text: str) -> str:
    """Coerce arbitrary text into a valid GraphQL operation name.

    Example:
        >>> operation_name("search shows-v2")
        'SearchShowsV2'
    """
    words = re.split(r"[\s\-_]+", text)
    name = "".join(word[:1].upper() + word[1:] for word in words if word)
    name = _OPERATION_NAME.sub("", name)
    if not name or name[0].isdigit():
        name = f"Q{name}"
    return name


def validate_document(document: str) -> None:
    """Raise ValueError unless braces and parentheses are balanced."""
    for opening, closing in (("{", "}"), ("(", ")")):
        depth = 0
        for char in document:
            if char == opening:
                depth += 1
            elif char == closing:
                depth -= 1
                if depth < 0:
                    raise ValueError(f"Unbalanced '{closing}' in rendered GraphQL document")
        if depth != 0:
            raise ValueError(f"Unclosed '{opening}' in rendered GraphQL document")
