"""Typed model of an introspected GraphQL schema."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from catalog_autoconfig.types.enums import GraphQLTypeKind, QueryPurpose


class GraphQLArgument(BaseModel):
    """Argument of a field.

    type_name is the GraphQL type reference as written in a document,
    wrappers included (e.g. "String!", "[ID!]").
    """

    model_config = ConfigDict(frozen=True)

    name: str
    type_name: str
    is_required: bool = False
    default_value: Optional[str] = None

    @property
    def named_type(self) -> str:
        """Underlying named type with NON_NULL/LIST wrappers removed."""
        return self.type_name.strip("[]!")


class GraphQLField(BaseModel):
    """Field of an object type, flattened to its named return type."""

    model_config = ConfigDict(frozen=True)

    name: str
    type_name: str
    is_list: bool = False
    arguments: List[GraphQLArgument] = Field(default_factory=list)


class GraphQLType(BaseModel):
    """Named type from __schema.types."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: GraphQLTypeKind = GraphQLTypeKind.OBJECT
    fields: List[GraphQLField] = Field(default_factory=list)


class GraphQLQuery(BaseModel):
    """Root query field with its inferred purpose."""

    model_config = ConfigDict(frozen=True)

    name: str
    return_type: str
    returns_list: bool = False
    arguments: List[GraphQLArgument] = Field(default_factory=list)
    inferred_purpose: QueryPurpose = QueryPurpose.UNKNOWN
    purpose_confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class GraphQLMutation(BaseModel):
    """Root mutation field."""

    model_config = ConfigDict(frozen=True)

    name: str
    return_type: str
    arguments: List[GraphQLArgument] = Field(default_factory=list)


class GraphQLSchemaInfo(BaseModel):
    """Result of a successful introspection.

    Attributes:
        endpoint: Absolute URL that answered the introspection query
        types: Named, non-introspection types
        queries: Fields of the query root type
        mutations: Fields of the mutation root type (often empty)
        supports_introspection: True when __schema was returned
        query_type_name: Name of the query root type
    """

    model_config = ConfigDict(frozen=True)

    endpoint: str
    types: List[GraphQLType] = Field(default_factory=list)
    queries: List[GraphQLQuery] = Field(default_factory=list)
    mutations: List[GraphQLMutation] = Field(default_factory=list)
    supports_introspection: bool = True
    query_type_name: str = "Query"

    def get_type(self, name: str) -> Optional[GraphQLType]:
        """Look up a type by name (wrappers are stripped)."""
        bare = name.strip("[]!")
        for gql_type in self.types:
            if gql_type.name == bare:
                return gql_type
        return None

    def queries_for(self, purpose: QueryPurpose) -> List[GraphQLQuery]:
        """Queries with the given purpose, highest confidence first."""
        matches = [q for q in self.queries if q.inferred_purpose == purpose]
        return sorted(matches, key=lambda q: q.purpose_confidence, reverse=True)


class GeneratedQuery(BaseModel):
    """Candidate GraphQL document synthesized from the schema.

    Candidates are advisory and ranked by confidence.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Operation name")
    field_name: str = Field(..., description="Root field the document calls")
    purpose: QueryPurpose
    document: str = Field(..., description="GraphQL document text")
    variables: Dict[str, Any] = Field(default_factory=dict, description="Placeholder variables")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
