"""
Variable substitution service for replacing {{variable}} placeholders.

This service handles extraction and substitution of variable placeholders
and resolves whole request definitions (URL, headers, query params, auth,
body) against the merged environment and collection scopes.
"""

import json
import re
from typing import Iterable, List, Mapping, Tuple, Union

from loguru import logger

from ..schemas.request import (
    ApiKeyAuth,
    BasicAuth,
    BearerAuth,
    BinaryBody,
    FormDataBody,
    FormDataField,
    GraphQLBody,
    JsonBody,
    KeyValuePair,
    OAuth2Auth,
    RawBody,
    RequestDefinition,
    UrlEncodedBody,
    XmlBody,
)
from ..schemas.variables import VariableEntry


# Pattern to match {{variable_name}} placeholders; surrounding whitespace is trimmed
VARIABLE_PATTERN = re.compile(r'\{\{([^}]+)\}\}')

Scope = Union[Mapping[str, str], Iterable[VariableEntry], None]


def extract_variables(template: str) -> List[str]:
    """
    Extract all variable names from a template string.

    Args:
        template: String containing {{variable}} placeholders

    Returns:
        List of variable names found in the template

    Example:
        >>> extract_variables("Hello {{name}}, your id is {{ id }}")
        ['name', 'id']
    """
    if not template:
        return []

    return [name.strip() for name in VARIABLE_PATTERN.findall(template)]


def substitute(template: str, variables: Mapping[str, str]) -> Tuple[str, List[str]]:
    """
    Replace variable placeholders in a template with their values.

    Args:
        template: String containing {{variable}} placeholders
        variables: Mapping of variable names to their values

    Returns:
        Tuple of (substituted string, list of unmatched variable names)

    Example:
        >>> substitute("Hello {{name}}", {"name": "World"})
        ('Hello World', [])
        >>> substitute("Hello {{name}}", {})
        ('Hello {{name}}', ['name'])
    """
    if not template:
        return template, []

    unmatched: List[str] = []

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1).strip()
        if var_name in variables:
            return variables[var_name]
        else:
            unmatched.append(var_name)
            return match.group(0)  # Keep original placeholder

    result = VARIABLE_PATTERN.sub(replace_match, template)
    return result, unmatched


def variables_from_entries(entries: Iterable[VariableEntry]) -> dict[str, str]:
    """
    Flatten variable entries into a lookup, dropping disabled and keyless entries.

    Later entries with the same key win.
    """
    return {
        entry.key: entry.value or ""
        for entry in entries
        if entry.enabled and entry.key
    }


def _as_mapping(scope: Scope) -> dict[str, str]:
    if scope is None:
        return {}
    if isinstance(scope, Mapping):
        return {key: "" if value is None else str(value) for key, value in scope.items() if key}
    return variables_from_entries(scope)


def build_variable_map(env_vars: Scope, coll_vars: Scope) -> dict[str, str]:
    """
    Merge both scopes into one lookup.

    Collection variables go in first and environment variables are laid
    over them, so the environment wins on shared keys.
    """
    variables = _as_mapping(coll_vars)
    variables.update(_as_mapping(env_vars))
    return variables


def _resolve_pairs(pairs: list[KeyValuePair], replace) -> list[KeyValuePair]:
    return [
        pair.model_copy(update={"key": replace(pair.key), "value": replace(pair.value)})
        for pair in pairs
    ]


def _decode_fields(content: str, model) -> list | None:
    """Return the fields encoded in ``content``, or None when it is not a JSON array of fields."""
    try:
        decoded = json.loads(content)
        if not isinstance(decoded, list):
            return None
        return [model.model_validate(item) for item in decoded]
    except (TypeError, ValueError):
        return None


def _resolve_body(definition: RequestDefinition, replace) -> None:
    body = definition.body

    if isinstance(body, (JsonBody, RawBody, XmlBody, BinaryBody)):
        body.content = replace(body.content)

    elif isinstance(body, UrlEncodedBody):
        content = body.content
        if isinstance(content, str):
            content = _decode_fields(content, KeyValuePair)
            if content is None:
                body.content = replace(body.content)
                return
        body.content = _resolve_pairs(content, replace)

    elif isinstance(body, FormDataBody):
        content = body.content
        if isinstance(content, str):
            content = _decode_fields(content, FormDataField)
            if content is None:
                return
        # File fields keep their path untouched
        body.content = [
            field.model_copy(update={
                "key": replace(field.key),
                "value": replace(field.value) if field.type == "text" else field.value,
            })
            for field in content
        ]

    elif isinstance(body, GraphQLBody):
        body.query = replace(body.query)
        if body.variables:
            resolved = replace(json.dumps(body.variables))
            try:
                body.variables = json.loads(resolved)
            except ValueError as e:
                logger.warning(f"GraphQL variables are not valid JSON after substitution: {e}")


def _resolve_auth(definition: RequestDefinition, replace) -> None:
    auth = definition.auth
    if isinstance(auth, BearerAuth):
        auth.token = replace(auth.token)
    elif isinstance(auth, BasicAuth):
        auth.username = replace(auth.username)
        auth.password = replace(auth.password)
    elif isinstance(auth, ApiKeyAuth):
        auth.key = replace(auth.key)
        auth.value = replace(auth.value)
    elif isinstance(auth, OAuth2Auth) and auth.access_token:
        auth.access_token = replace(auth.access_token)


def resolve_definition(
    definition: RequestDefinition,
    env_vars: Scope,
    coll_vars: Scope,
) -> RequestDefinition:
    """
    Substitute placeholders throughout a request definition.

    Args:
        definition: The templated request; never modified
        env_vars: Environment scope, as a mapping or as variable entries
        coll_vars: Collection scope, as a mapping or as variable entries

    Returns:
        The input itself when there are no variables, otherwise a resolved deep copy.
        Unknown placeholders are left verbatim.
    """
    variables = build_variable_map(env_vars, coll_vars)
    if not variables:
        return definition

    def replace(text: str) -> str:
        return substitute(text, variables)[0]

    resolved = definition.model_copy(deep=True)
    resolved.url = replace(resolved.url)
    resolved.headers = _resolve_pairs(resolved.headers, replace)
    resolved.params = _resolve_pairs(resolved.params, replace)
    _resolve_auth(resolved, replace)
    _resolve_body(resolved, replace)
    return resolved
