"""
Pydantic schemas for request definitions.

A request definition is the templated, caller-owned description of one
HTTP (or GraphQL) call. Authentication and body are tagged unions keyed
on their ``type`` field.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator


# HTTP methods supported by the system
HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]

# Methods that never carry a request body
BODYLESS_METHODS = frozenset({"GET", "HEAD"})


class KeyValuePair(BaseModel):
    """A header, query parameter or url-encoded field. Missing ``enabled`` means enabled."""
    key: str = ""
    value: str = ""
    enabled: bool = True
    description: str | None = None


class FormDataField(BaseModel):
    """A multipart field; ``value`` is a local file path when ``type`` is ``file``."""
    key: str = ""
    value: str = ""
    type: Literal["text", "file"] = "text"
    enabled: bool = True


# Authentication variants

class NoAuth(BaseModel):
    type: Literal["noauth"] = "noauth"


class BearerAuth(BaseModel):
    type: Literal["bearer"] = "bearer"
    token: str = ""


class BasicAuth(BaseModel):
    type: Literal["basic"] = "basic"
    username: str = ""
    password: str = ""


class ApiKeyAuth(BaseModel):
    type: Literal["apikey"] = "apikey"
    key: str = ""
    value: str = ""
    add_to: Literal["header", "query"] = "header"


class OAuth2Auth(BaseModel):
    """Token acquisition happens outside the engine; this variant adds nothing at send time."""
    type: Literal["oauth2"] = "oauth2"
    access_token: str | None = None


Auth = Annotated[
    Union[NoAuth, BearerAuth, BasicAuth, ApiKeyAuth, OAuth2Auth],
    Field(discriminator="type"),
]


# Body variants

class NoBody(BaseModel):
    type: Literal["none"] = "none"


class JsonBody(BaseModel):
    type: Literal["json"] = "json"
    content: str = ""


class RawBody(BaseModel):
    type: Literal["raw"] = "raw"
    content: str = ""


class XmlBody(BaseModel):
    type: Literal["xml"] = "xml"
    content: str = ""


class BinaryBody(BaseModel):
    type: Literal["binary"] = "binary"
    content: str = ""


class UrlEncodedBody(BaseModel):
    """Either a list of pairs or its JSON encoding; anything else is sent verbatim."""
    type: Literal["x-www-form-urlencoded"] = "x-www-form-urlencoded"
    content: list[KeyValuePair] | str = ""


class FormDataBody(BaseModel):
    type: Literal["form-data"] = "form-data"
    content: list[FormDataField] | str = ""


class GraphQLBody(BaseModel):
    type: Literal["graphql"] = "graphql"
    query: str = ""
    variables: dict[str, Any] | None = None
    operation_name: str | None = None


Body = Annotated[
    Union[NoBody, JsonBody, RawBody, XmlBody, BinaryBody, UrlEncodedBody, FormDataBody, GraphQLBody],
    Field(discriminator="type"),
]


class RequestDefinition(BaseModel):
    """
    Templated request as supplied by the caller.

    Every string field may contain ``{{name}}`` placeholders. The engine never
    mutates an instance; resolution produces a copy.
    """
    method: HttpMethod = "GET"
    url: str
    headers: list[KeyValuePair] = []
    params: list[KeyValuePair] = []
    auth: Auth = Field(default_factory=NoAuth)
    body: Body = Field(default_factory=NoBody)
    pre_request_script: str | None = None
    test_script: str | None = None
    timeout_ms: int | None = Field(default=None, gt=0)
    follow_redirects: bool = True
    max_redirects: int | None = Field(default=None, ge=0)
    validate_ssl: bool = True

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value):
        return value.upper() if isinstance(value, str) else value

    @field_validator("headers", "params", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return [] if value is None else value

    @field_validator("auth", mode="before")
    @classmethod
    def _default_auth(cls, value):
        return {"type": "noauth"} if value is None else value

    @field_validator("body", mode="before")
    @classmethod
    def _default_body(cls, value):
        return {"type": "none"} if value is None else value
