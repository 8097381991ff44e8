#!/usr/bin/env python3
"""
Test script for the AFS connector

This verifies:
1. Config loading works
2. URL construction is correct
3. Replies and failures are decoded correctly

Runs without network access: HTTP calls go through httpx.MockTransport.
"""

import sys
import os
import json
import tempfile
from types import SimpleNamespace

import httpx

HERE = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, HERE)

from afs_connector import (
    AcpConnector,
    CallerContext,
    Connector,
    ConnectorConfig,
    FacetSort,
    SearchConnector,
    Service,
    get_api_version,
)
from afs_connector.connector import CANNOT_INITIALIZE, EXECUTION_FAILED

EXAMPLE_CONFIG = ConnectorConfig(
    host="example.com",
    service=Service(id="42", status="1"),
    scheme="http",
)

EXAMPLE_REPLY = {"header": {}, "reply": {"results": []}}


def error_reply(message):
    return {"header": {"error": {"message": [message]}}}


def mock_transport(handler, calls=None):
    """Transport answering with handler(request), recording requests in calls."""
    def record(request):
        if calls is not None:
            calls.append(request)
        return handler(request)
    return httpx.MockTransport(record)


def json_handler(data, status_code=200):
    return lambda request: httpx.Response(status_code, json=data)


def body_handler(body):
    return lambda request: httpx.Response(200, content=body)


def failing_handler(request):
    raise httpx.ConnectError("Connection refused", request=request)


def test_config_loading():
    """Test that configs load correctly."""
    print("=" * 50)
    print("TEST: Config Loading")
    print("=" * 50)

    config = ConnectorConfig.from_file(os.path.join(HERE, "configs", "search.json"))

    assert config.host == "eu1-afs.antidot.net"
    assert config.scheme == "http"
    assert config.service.id == 42
    assert config.service.status == "stable"
    assert config.timeout_seconds == 30

    yaml_config = ConnectorConfig.from_file(os.path.join(HERE, "configs", "search.yaml"))

    assert yaml_config.scheme == "https"
    assert yaml_config.service.status == "rc"
    assert yaml_config.timeout_seconds == 10
    assert ConnectorConfig.from_dict(yaml_config.to_dict()) == yaml_config

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "saved.json")
        yaml_config.to_json_file(path)
        assert ConnectorConfig.from_file(path) == yaml_config

    print("✅ JSON and YAML configs loaded correctly")
    print()


def test_config_validation():
    """Unknown schemes and file types are rejected."""
    for build in (
        lambda: ConnectorConfig(host="example.com", service=Service(id=1), scheme="ftp"),
        lambda: ConnectorConfig.from_file("configs/search.ini"),
    ):
        try:
            build()
        except ValueError:
            continue
        raise AssertionError("ValueError not raised")

    config = ConnectorConfig.from_dict({"host": "example.com", "service": {"id": 7}})
    assert config.scheme == "http"
    assert config.service.status == "stable"
    print("✅ Config validation works")


def test_url_construction():
    """Test that URLs are constructed correctly."""
    print("=" * 50)
    print("TEST: URL Construction")
    print("=" * 50)

    connector = SearchConnector(EXAMPLE_CONFIG)
    url = connector.build_url("search", {"query": "shoes"})

    expected = (
        "http://example.com/search?afs:service=42&afs:status=1&afs:output=json,2"
        f"&afs:log={get_api_version()}&query=shoes"
    )
    assert url == expected, url
    assert connector.get_generated_url() == expected

    # Deterministic given the same inputs
    assert connector.build_url("search", {"query": "shoes"}) == url

    print("✅ URL constructed correctly")
    print(f"   URL: {url}")
    print()


def test_standard_parameters_win():
    """Caller parameters cannot override the standard ones."""
    connector = SearchConnector(EXAMPLE_CONFIG)
    parameters = {"afs:service": "666", "afs:query": "red shoes", "afs:page": 2}

    url = connector.build_url("search", parameters)

    assert "afs:service=42" in url
    assert "afs:service=666" not in url
    assert url.endswith("&afs:query=red+shoes&afs:page=2")
    # Caller mapping left untouched
    assert parameters == {"afs:service": "666", "afs:query": "red shoes", "afs:page": 2}
    print("✅ Standard parameters are forced")


def test_parameter_encoding():
    """Values are URL-encoded, lists give repeated keys."""
    connector = AcpConnector(EXAMPLE_CONFIG)
    url = connector.build_url(
        connector.web_service_name(),
        {"afs:filter": ["lang=fr", "price<10"], "afs:query": "a&b"},
    )

    assert url.startswith("http://example.com/acp?")
    assert "afs:filter=lang%3Dfr&afs:filter=price%3C10" in url
    assert url.endswith("afs:query=a%26b")
    print("✅ Parameters encoded correctly")


def test_caller_context_parameters():
    """Caller IP and user agent are added after the fixed defaults."""
    context = CallerContext(ip="10.0.0.1", user_agent="Mozilla/5.0 (X11)")
    connector = SearchConnector(EXAMPLE_CONFIG, context=context)

    url = connector.build_url("search", {"query": "shoes"})

    assert (
        f"afs:log={get_api_version()}&afs:ip=10.0.0.1"
        "&afs:userAgent=Mozilla%2F5.0+%28X11%29&query=shoes"
    ) in url

    # An explicit context replaces the connector one
    other = connector.build_url("search", {}, CallerContext(ip="192.168.1.1"))
    assert "afs:ip=192.168.1.1" in other
    assert "afs:userAgent" not in other
    print("✅ Caller context forwarded as parameters")


def test_caller_context_from_environ():
    context = CallerContext.from_environ({
        "REMOTE_ADDR": "10.0.0.1",
        "HTTP_X_FORWARDED_FOR": "1.1.1.1, 2.2.2.2",
        "HTTP_USER_AGENT": "curl/8.0",
    })

    assert context.ip == "10.0.0.1"
    assert context.user_agent == "curl/8.0"
    assert context.forwarded_header() == "1.1.1.1, 2.2.2.2, 10.0.0.1"
    assert CallerContext(ip="10.0.0.1").forwarded_header() == "10.0.0.1"
    assert CallerContext(forwarded_for="1.1.1.1").forwarded_header() is None
    assert CallerContext.from_environ({}) == CallerContext()
    print("✅ Caller context read from environ")


def test_send_map_reply():
    """Test a successful query decoded as dicts."""
    print("=" * 50)
    print("TEST: Send (map decoding)")
    print("=" * 50)

    calls = []
    connector = SearchConnector(
        EXAMPLE_CONFIG,
        transport=mock_transport(json_handler(EXAMPLE_REPLY), calls),
    )
    connector.configure_decoding(as_map=True)

    assert connector.get_generated_url() is None

    reply = connector.send({"query": "shoes"})

    assert reply == EXAMPLE_REPLY
    assert len(calls) == 1
    assert calls[0].method == "GET"
    assert calls[0].url.host == "example.com"
    assert calls[0].url.path == "/search"
    assert calls[0].url.params["afs:output"] == "json,2"
    assert calls[0].url.params["query"] == "shoes"
    assert "X-Forwarded-For" not in calls[0].headers

    print("✅ Reply decoded correctly")
    print(f"   Reply: {json.dumps(reply)}")
    print()


def test_send_structured_reply():
    """Test a successful query decoded as records."""
    connector = SearchConnector(
        EXAMPLE_CONFIG,
        transport=mock_transport(json_handler({"a": 1, "reply": {"results": []}})),
    )

    reply = connector.send({"query": "shoes"})

    assert isinstance(reply, SimpleNamespace)
    assert reply.a == 1
    assert reply.reply.results == []
    print("✅ Reply decoded as records")


def test_send_headers():
    """X-Forwarded-For and User-Agent headers forward the caller."""
    calls = []
    connector = SearchConnector(
        EXAMPLE_CONFIG,
        transport=mock_transport(json_handler(EXAMPLE_REPLY), calls),
    )
    context = CallerContext(ip="10.0.0.1", forwarded_for="1.1.1.1", user_agent="Mozilla/5.0")

    connector.send({"query": "shoes"}, context)

    headers = calls[0].headers
    assert headers["X-Forwarded-For"] == "1.1.1.1, 10.0.0.1"
    assert headers["User-Agent"] == "Mozilla/5.0"
    assert "afs:ip=10.0.0.1" in connector.get_generated_url()
    print("✅ Caller headers forwarded")


def test_send_non_ascii_user_agent():
    """Non-ASCII caller values are forwarded as UTF-8 headers."""
    calls = []
    connector = SearchConnector(
        EXAMPLE_CONFIG,
        transport=mock_transport(json_handler(EXAMPLE_REPLY), calls),
    )
    connector.configure_decoding(as_map=True)
    context = CallerContext(ip="1.2.3.4", user_agent="Mozilla/5.0 (Bär)")

    reply = connector.send({"q": "x"}, context)

    assert reply == EXAMPLE_REPLY
    assert len(calls) == 1
    assert (b"User-Agent", "Mozilla/5.0 (Bär)".encode("utf-8")) in calls[0].headers.raw
    assert (b"X-Forwarded-For", b"1.2.3.4") in calls[0].headers.raw
    assert "afs:userAgent=Mozilla%2F5.0+%28B%C3%A4r%29" in connector.get_generated_url()
    print("✅ Non-ASCII user agent forwarded")


def test_send_generated_url_tracks_last_call():
    connector = SearchConnector(
        EXAMPLE_CONFIG,
        transport=mock_transport(json_handler(EXAMPLE_REPLY)),
    )

    connector.send({"query": "shoes"})
    connector.send({"query": "boots"})

    assert connector.get_generated_url().endswith("&query=boots")
    print("✅ Generated URL is the last one")


def test_send_http_error_status_is_decoded():
    """The body is decoded whatever the HTTP status."""
    body = error_reply("Unknown service")
    connector = SearchConnector(
        EXAMPLE_CONFIG,
        transport=mock_transport(json_handler(body, status_code=500)),
    )
    connector.configure_decoding(as_map=True)

    assert connector.send({"query": "shoes"}) == body
    print("✅ Error status body decoded")


def test_send_failures():
    """Test that failures are turned into error replies."""
    print("=" * 50)
    print("TEST: Failures")
    print("=" * 50)

    handlers = {
        "transport failure": failing_handler,
        "empty body": body_handler(b""),
        "malformed JSON": body_handler(b"{not json"),
        "null reply": body_handler(b"null"),
        "empty object": body_handler(b"{}"),
        "empty list": body_handler(b"[]"),
        "false reply": body_handler(b"false"),
        "zero string reply": body_handler(b"\"0\""),
        "deeply nested JSON": body_handler(b"[" * 100000 + b"]" * 100000),
    }

    for name, handler in handlers.items():
        connector = SearchConnector(EXAMPLE_CONFIG, transport=mock_transport(handler))
        connector.configure_decoding(as_map=True)

        reply = connector.send({"query": "shoes"})

        assert reply == error_reply(EXECUTION_FAILED), name
        assert connector.get_generated_url().endswith("&query=shoes")
        print(f"✅ {name} handled")
    print()


def test_send_failure_structured():
    connector = SearchConnector(EXAMPLE_CONFIG, transport=mock_transport(failing_handler))

    reply = connector.send({"query": "shoes"})

    assert reply.header.error.message == [EXECUTION_FAILED]
    print("✅ Error reply decoded as records")


def test_empty_object_is_a_reply_in_structured_mode():
    """Records are never empty, only maps are."""
    connector = SearchConnector(EXAMPLE_CONFIG, transport=mock_transport(body_handler(b"{}")))

    reply = connector.send({})

    assert reply == SimpleNamespace()
    print("✅ Empty record kept")


def test_send_init_failure():
    """Unusable URLs never reach the transport."""
    calls = []
    for host in ("", "example.com:notaport"):
        config = ConnectorConfig(host=host, service=Service(id=42))
        connector = SearchConnector(
            config,
            transport=mock_transport(json_handler(EXAMPLE_REPLY), calls),
        )
        connector.configure_decoding(as_map=True)

        reply = connector.send({"query": "shoes"})

        assert reply == error_reply(CANNOT_INITIALIZE), host
        assert connector.get_generated_url().startswith(f"http://{host}/search?")

    assert calls == []
    print("✅ Initialization failure handled")


def test_web_service_name_required():
    """A connector without a web service name cannot be used."""

    class Nameless(Connector):
        pass

    try:
        Nameless(EXAMPLE_CONFIG)
    except TypeError:
        pass
    else:
        raise AssertionError("TypeError not raised")

    class CallsBase(Connector):
        def web_service_name(self):
            return super().web_service_name()

    connector = CallsBase(EXAMPLE_CONFIG, transport=mock_transport(json_handler(EXAMPLE_REPLY)))
    try:
        connector.send({"query": "shoes"})
    except NotImplementedError:
        pass
    else:
        raise AssertionError("NotImplementedError not raised")

    assert SearchConnector(EXAMPLE_CONFIG).web_service_name() == "search"
    assert AcpConnector(EXAMPLE_CONFIG).web_service_name() == "acp"
    print("✅ web_service_name is required")


def test_facet_sort():
    assert FacetSort.STRICT.value == "STRICT"
    assert FacetSort.SMOOTH.value == "SMOOTH"
    assert FacetSort("SMOOTH") is FacetSort.SMOOTH
    assert FacetSort.is_valid_name("STRICT")
    assert not FacetSort.is_valid_name("LOOSE")
    assert FacetSort.is_valid_value("SMOOTH")
    assert not FacetSort.is_valid_value("smooth")
    print("✅ FacetSort defined correctly")


def test_cli_parameters():
    from main import parse_parameters

    parameters = parse_parameters(["afs:query=a=b", "afs:filter=x", "afs:filter=y"])

    assert parameters == {"afs:query": "a=b", "afs:filter": ["x", "y"]}
    assert parse_parameters(None) == {}
    try:
        parse_parameters(["novalue"])
    except ValueError:
        pass
    else:
        raise AssertionError("ValueError not raised")
    print("✅ CLI parameters parsed")


def run_all_tests():
    """Run all tests."""
    print("\n" + "=" * 50)
    print("AFS CONNECTOR - TEST SUITE")
    print("=" * 50 + "\n")

    tests = [
        value for name, value in globals().items()
        if name.startswith("test_") and callable(value)
    ]

    try:
        for test in tests:
            test()

        print("=" * 50)
        print("ALL TESTS PASSED ✅")
        print("=" * 50)
        print("\nTo query a real AFS service:")
        print("  python main.py --config configs/search.json --param afs:query=shoes")

    except AssertionError as e:
        print(f"\n❌ TEST FAILED: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"\n❌ ERROR: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    run_all_tests()
