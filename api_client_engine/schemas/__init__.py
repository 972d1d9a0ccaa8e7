"""
Pydantic schemas package.

Exports all schemas for request definitions, variable scopes and execution results.
"""

from .request import (
    HttpMethod,
    BODYLESS_METHODS,
    KeyValuePair,
    FormDataField,
    NoAuth,
    BearerAuth,
    BasicAuth,
    ApiKeyAuth,
    OAuth2Auth,
    Auth,
    NoBody,
    JsonBody,
    RawBody,
    XmlBody,
    BinaryBody,
    UrlEncodedBody,
    FormDataBody,
    GraphQLBody,
    Body,
    RequestDefinition,
)

from .variables import (
    ScopeKind,
    VariableType,
    VariableUpdates,
    VariableEntry,
    VariableCollection,
)

from .execute import (
    ExecuteCommand,
    RequestEcho,
    Cookie,
    ResponseTiming,
    ResponseSize,
    ResponseData,
    ExecutionError,
    ScriptTestResult,
    ScriptTestSummary,
    ExecutionResult,
    ScriptOutcome,
)

__all__ = [
    # Request definition schemas
    "HttpMethod",
    "BODYLESS_METHODS",
    "KeyValuePair",
    "FormDataField",
    "NoAuth",
    "BearerAuth",
    "BasicAuth",
    "ApiKeyAuth",
    "OAuth2Auth",
    "Auth",
    "NoBody",
    "JsonBody",
    "RawBody",
    "XmlBody",
    "BinaryBody",
    "UrlEncodedBody",
    "FormDataBody",
    "GraphQLBody",
    "Body",
    "RequestDefinition",
    # Variable schemas
    "ScopeKind",
    "VariableType",
    "VariableUpdates",
    "VariableEntry",
    "VariableCollection",
    # Execute schemas
    "ExecuteCommand",
    "RequestEcho",
    "Cookie",
    "ResponseTiming",
    "ResponseSize",
    "ResponseData",
    "ExecutionError",
    "ScriptTestResult",
    "ScriptTestSummary",
    "ExecutionResult",
    "ScriptOutcome",
]
