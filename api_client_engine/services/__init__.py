# Services package

from .variable_substitution import (
    extract_variables,
    substitute,
    variables_from_entries,
    build_variable_map,
    resolve_definition,
)
from .variable_store import VariableStore, SqlVariableStore, apply_updates, find_root_collection
from .script_hooks import ScriptRunner
from .request_builder import TransportRequest, build_request, build_headers, build_url
from .http_executor import HttpTransport, TransportResponse
from .result_assembler import parse_cookies, calculate_body_size, calculate_headers_size
from .orchestrator import RequestExecutor

__all__ = [
    "extract_variables",
    "substitute",
    "variables_from_entries",
    "build_variable_map",
    "resolve_definition",
    "VariableStore",
    "SqlVariableStore",
    "apply_updates",
    "find_root_collection",
    "ScriptRunner",
    "TransportRequest",
    "build_request",
    "build_headers",
    "build_url",
    "HttpTransport",
    "TransportResponse",
    "parse_cookies",
    "calculate_body_size",
    "calculate_headers_size",
    "RequestExecutor",
]
