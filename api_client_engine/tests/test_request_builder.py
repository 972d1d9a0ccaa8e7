"""
Tests for the request builder.

Covers URL normalization and query merging, header and authentication
assembly, body serialization per body type and transport options.
"""

import base64
import json
from urllib.parse import parse_qsl, urlsplit

import pytest
from hypothesis import given, strategies as st, settings

from api_client_engine.exceptions import FormFileError, InvalidJSONBodyError, RequestBuildError
from api_client_engine.schemas.request import (
    ApiKeyAuth,
    BasicAuth,
    BearerAuth,
    BinaryBody,
    FormDataBody,
    FormDataField,
    GraphQLBody,
    JsonBody,
    KeyValuePair,
    NoBody,
    OAuth2Auth,
    RawBody,
    RequestDefinition,
    UrlEncodedBody,
    XmlBody,
)
from api_client_engine.services.request_builder import (
    build_headers,
    build_request,
    build_url,
    normalize_url,
)


param_strategy = st.text(
    alphabet=st.characters(blacklist_categories=("Cs",)), min_size=1, max_size=15
)


class TestProperty1UrlConstruction:
    """
    Property 1: URL construction

    Scheme-less URLs get ``http://``; enabled params are percent-encoded and
    appended after any existing query string.
    """

    @pytest.mark.parametrize("url, expected", [
        ("example.com/users", "http://example.com/users"),
        ("  https://example.com  ", "https://example.com"),
        ("ws://example.com", "ws://example.com"),
        ("localhost:8000/health", "http://localhost:8000/health"),
    ])
    def test_normalize_url(self, url, expected):
        assert normalize_url(url) == expected

    def test_disabled_and_keyless_params_are_skipped(self):
        params = [
            KeyValuePair(key="page", value="1"),
            KeyValuePair(key="debug", value="true", enabled=False),
            KeyValuePair(key="  ", value="ignored"),
        ]

        assert build_url("http://x/items", params) == "http://x/items?page=1"

    def test_existing_query_is_preserved(self):
        url = build_url("http://x/items?sort=asc", [KeyValuePair(key="page", value="2")])

        assert url == "http://x/items?sort=asc&page=2"

    def test_values_are_percent_encoded(self):
        url = build_url("http://x", [KeyValuePair(key="q", value="a b&c")])

        assert url == "http://x?q=a+b%26c"

    def test_malformed_url_is_rejected(self):
        with pytest.raises(RequestBuildError) as exc_info:
            build_url("http://[::1/x", [KeyValuePair(key="a", value="b")])

        assert exc_info.value.code == "ERR_INVALID_URL"

    @given(key=param_strategy, value=param_strategy)
    @settings(max_examples=100)
    def test_single_param_round_trips_through_query(self, key: str, value: str):
        """
        Property: Any enabled param can be read back from the built query string.
        """
        if not key.strip():
            return

        url = build_url("http://x/path", [KeyValuePair(key=key, value=value)])

        assert parse_qsl(urlsplit(url).query, keep_blank_values=True) == [(key, value)]


class TestProperty2HeaderAssembly:
    """
    Property 2: Header assembly

    Enabled custom headers come first, later duplicates (in any case) win,
    and authentication is layered on top.
    """

    def test_disabled_headers_are_skipped(self):
        headers = build_headers(
            [KeyValuePair(key="Accept", value="*/*"), KeyValuePair(key="X-Off", value="1", enabled=False)],
            OAuth2Auth(),
        )

        assert headers == {"Accept": "*/*"}

    def test_later_duplicate_wins_case_insensitively(self):
        headers = build_headers(
            [KeyValuePair(key="accept", value="text/html"), KeyValuePair(key="Accept", value="application/json")],
            OAuth2Auth(),
        )

        assert headers == {"Accept": "application/json"}

    def test_bearer_auth(self):
        headers = build_headers([], BearerAuth(token="abc"))

        assert headers == {"Authorization": "Bearer abc"}

    def test_bearer_overrides_custom_authorization(self):
        headers = build_headers(
            [KeyValuePair(key="authorization", value="Token old")], BearerAuth(token="new")
        )

        assert headers == {"Authorization": "Bearer new"}

    def test_empty_bearer_token_adds_nothing(self):
        assert build_headers([], BearerAuth(token="")) == {}

    def test_basic_auth(self):
        headers = build_headers([], BasicAuth(username="user", password="pass"))

        expected = base64.b64encode(b"user:pass").decode()
        assert headers == {"Authorization": f"Basic {expected}"}

    def test_api_key_in_header(self):
        headers = build_headers([], ApiKeyAuth(key="X-API-Key", value="k1"))

        assert headers == {"X-API-Key": "k1"}

    def test_api_key_in_query(self):
        definition = RequestDefinition(
            url="http://x/items", auth=ApiKeyAuth(key="api_key", value="k1", add_to="query")
        )

        request = build_request(definition)

        assert request.url == "http://x/items?api_key=k1"
        assert "api_key" not in request.headers

    def test_oauth2_adds_nothing(self):
        assert build_headers([], OAuth2Auth(access_token="t")) == {}

    @pytest.mark.parametrize("key, value", [("X-Name", "José"), ("X-Ünï", "v")])
    def test_non_ascii_header_is_rejected(self, key, value):
        with pytest.raises(RequestBuildError) as exc_info:
            build_headers([KeyValuePair(key=key, value=value)], OAuth2Auth())

        assert exc_info.value.code == "INVALID_HEADER"

    def test_non_ascii_basic_credentials_are_encoded(self):
        headers = build_headers([], BasicAuth(username="josé", password="pass"))

        expected = base64.b64encode("josé:pass".encode()).decode()
        assert headers == {"Authorization": f"Basic {expected}"}


class TestProperty3BodySerialization:
    """
    Property 3: Body serialization

    Each body type serializes to its wire form with a default Content-Type
    that never overrides a caller-supplied one. GET and HEAD never carry a body.
    """

    @pytest.mark.parametrize("method", ["GET", "HEAD"])
    def test_bodyless_methods_drop_the_body(self, method):
        definition = RequestDefinition(method=method, url="http://x", body=JsonBody(content='{"a": 1}'))

        request = build_request(definition)

        assert request.content is None
        assert request.files is None
        assert "Content-Type" not in request.headers

    def test_json_body(self):
        definition = RequestDefinition(method="POST", url="http://x", body=JsonBody(content='{"a": 1}'))

        request = build_request(definition)

        assert request.content == b'{"a": 1}'
        assert request.headers["Content-Type"] == "application/json"
        assert request.body_echo == {"a": 1}

    def test_invalid_json_body_is_rejected(self):
        definition = RequestDefinition(method="POST", url="http://x", body=JsonBody(content="{bad"))

        with pytest.raises(InvalidJSONBodyError) as exc_info:
            build_request(definition)

        assert exc_info.value.code == "INVALID_JSON_BODY"
        assert isinstance(exc_info.value, RequestBuildError)

    def test_empty_json_body_sends_nothing(self):
        definition = RequestDefinition(method="POST", url="http://x", body=JsonBody(content="  "))

        assert build_request(definition).content is None

    def test_caller_content_type_is_kept(self):
        definition = RequestDefinition(
            method="POST",
            url="http://x",
            headers=[KeyValuePair(key="content-type", value="application/vnd.api+json")],
            body=JsonBody(content="{}"),
        )

        request = build_request(definition)

        assert request.headers == {"content-type": "application/vnd.api+json"}

    @pytest.mark.parametrize("body, content_type", [
        (RawBody(content="hello"), "text/plain"),
        (XmlBody(content="<a/>"), "application/xml"),
        (BinaryBody(content="\x00\x01"), "application/octet-stream"),
    ])
    def test_text_bodies(self, body, content_type):
        request = build_request(RequestDefinition(method="PUT", url="http://x", body=body))

        assert request.content == body.content.encode("utf-8")
        assert request.headers["Content-Type"] == content_type

    def test_urlencoded_pairs(self):
        body = UrlEncodedBody(content=[
            KeyValuePair(key="user", value="a b"),
            KeyValuePair(key="skip", value="x", enabled=False),
        ])

        request = build_request(RequestDefinition(method="POST", url="http://x", body=body))

        assert request.content == b"user=a+b"
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"

    def test_urlencoded_json_string(self):
        body = UrlEncodedBody(content=json.dumps([{"key": "a", "value": "1"}, {"key": "b", "value": "2"}]))

        request = build_request(RequestDefinition(method="POST", url="http://x", body=body))

        assert request.content == b"a=1&b=2"

    def test_urlencoded_plain_text_is_sent_verbatim(self):
        body = UrlEncodedBody(content="a=1&b=2")

        request = build_request(RequestDefinition(method="POST", url="http://x", body=body))

        assert request.content == b"a=1&b=2"

    def test_form_data_text_and_file(self, tmp_path):
        upload = tmp_path / "report.txt"
        upload.write_bytes(b"file-contents")
        body = FormDataBody(content=[
            FormDataField(key="name", value="report"),
            FormDataField(key="upload", value=str(upload), type="file"),
            FormDataField(key="off", value="x", enabled=False),
        ])

        request = build_request(RequestDefinition(method="POST", url="http://x", body=body))

        assert request.content is None
        assert request.files == [
            ("name", (None, "report")),
            ("upload", ("report.txt", b"file-contents")),
        ]
        # httpx sets the multipart boundary itself
        assert "Content-Type" not in request.headers

    def test_form_data_missing_file_is_rejected(self, tmp_path):
        body = FormDataBody(content=[
            FormDataField(key="upload", value=str(tmp_path / "missing.bin"), type="file"),
        ])

        with pytest.raises(FormFileError) as exc_info:
            build_request(RequestDefinition(method="POST", url="http://x", body=body))

        assert exc_info.value.code == "FORM_FILE_ERROR"

    @pytest.mark.parametrize("content", ["not json", '{"key": "a"}', "[1, 2]"])
    def test_form_data_string_must_encode_fields(self, content):
        body = FormDataBody(content=content)

        with pytest.raises(RequestBuildError) as exc_info:
            build_request(RequestDefinition(method="POST", url="http://x", body=body))

        assert exc_info.value.code == "INVALID_FORM_DATA"

    def test_graphql_payload(self):
        body = GraphQLBody(query="{ me { id } }", variables={"a": 1}, operation_name="Me")

        request = build_request(RequestDefinition(method="POST", url="http://x/graphql", body=body))

        assert json.loads(request.content) == {
            "query": "{ me { id } }",
            "variables": {"a": 1},
            "operationName": "Me",
        }
        assert request.headers["Content-Type"] == "application/json"

    def test_no_body(self):
        request = build_request(RequestDefinition(method="DELETE", url="http://x", body=NoBody()))

        assert request.content is None
        assert request.body_echo is None


class TestProperty4TransportOptions:
    """
    Property 4: Transport options

    Timeout, redirect handling and TLS verification flow from the
    definition, falling back to configured defaults.
    """

    def test_defaults(self):
        request = build_request(RequestDefinition(url="http://x"))

        assert request.timeout == 30.0
        assert request.follow_redirects is True
        assert request.max_redirects == 5
        assert request.verify is True

    def test_explicit_options(self):
        definition = RequestDefinition(
            url="http://x", timeout_ms=1500, max_redirects=2, validate_ssl=False
        )

        request = build_request(definition)

        assert request.timeout == 1.5
        assert request.max_redirects == 2
        assert request.verify is False

    def test_redirects_disabled(self):
        request = build_request(RequestDefinition(url="http://x", follow_redirects=False, max_redirects=9))

        assert request.follow_redirects is False
        assert request.max_redirects == 0

    def test_redirect_limit_is_capped(self):
        request = build_request(RequestDefinition(url="http://x", max_redirects=10_000))

        assert request.max_redirects == 20

    def test_method_is_uppercased(self):
        assert build_request(RequestDefinition(method="post", url="http://x")).method == "POST"
