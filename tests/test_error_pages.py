import pytest

from vhost_server.core.config import SiteDescriptor
from vhost_server.core.response import ServeResult, build_response, FALLBACK_RESPONSE
from vhost_server.features.error_pages import default_error_body, render_error_page
from vhost_server.features.mime_types import guess_content_type
from vhost_server.features.virtual_host import VirtualHost


@pytest.fixture
def site(tmp_path):
    root = tmp_path / "site"
    root.mkdir()
    (root / "404.html").write_bytes(b"<p>custom not found</p>")
    (root / "index.txt").write_bytes(b"plain index")
    return SiteDescriptor(
        name="site",
        hostname="Site.Test",
        document_root=root,
        index="index.txt",
        error_pages={404: root / "404.html", 405: root / "missing-405.html"},
    )


@pytest.mark.asyncio
async def test_custom_error_page_is_used(site):
    result = await render_error_page(site, 404)
    assert result.status == 404
    assert result.reason == "Not Found"
    assert result.body == b"<p>custom not found</p>"
    assert result.content_type == "text/html"


@pytest.mark.asyncio
async def test_unreadable_custom_page_falls_back(site):
    result = await render_error_page(site, 405)
    assert result.status == 405
    assert result.reason == "Method Not Allowed"
    assert b"405 Method Not Allowed" in result.body


@pytest.mark.asyncio
async def test_builtin_page_without_site():
    result = await render_error_page(None, 404, "should not appear")
    assert result.status == 404
    assert result.content_type == "text/html"
    assert b"404 Not Found" in result.body
    assert b"should not appear" not in result.body


@pytest.mark.asyncio
async def test_detail_only_on_server_errors():
    result = await render_error_page(None, 500, "disk on fire")
    assert b"500 Internal Server Error" in result.body
    assert b"disk on fire" in result.body


def test_detail_is_inserted_verbatim():
    body = default_error_body(500, "Internal Server Error", "<b>raw</b>")
    assert b"<p><b>raw</b></p>" in body


@pytest.mark.asyncio
async def test_virtual_host_serves_file(site):
    host = VirtualHost(site)
    assert host.hostname == "site.test"
    path = host.resolve_file_path("/")
    assert path == site.document_root / "index.txt"

    result = await host.serve_file(path)
    assert result.status == 200
    assert result.body == b"plain index"
    assert result.content_type == "text/plain"


@pytest.mark.asyncio
async def test_virtual_host_read_error_becomes_500(site):
    host = VirtualHost(site)
    result = await host.serve_file(site.document_root / "vanished.txt")
    assert result.status == 500
    assert b"vanished.txt" in result.body


def test_build_response_exact_bytes():
    result = ServeResult(404, "Not Found", b"gone", "text/plain")
    assert build_response(result) == (
        b"HTTP/1.1 404 Not Found\r\n"
        b"Content-Type: text/plain\r\n"
        b"Content-Length: 4\r\n"
        b"\r\n"
        b"gone"
    )


def test_content_length_counts_bytes():
    body = "héllo".encode("utf-8")
    response = build_response(ServeResult(200, "OK", body, "text/plain"))
    assert b"Content-Length: 6\r\n" in response
    assert response.endswith(body)


def test_empty_body():
    response = build_response(ServeResult(200, "OK", b"", "text/plain"))
    assert response.endswith(b"Content-Length: 0\r\n\r\n")


def test_fallback_response_is_well_formed():
    head, _, body = FALLBACK_RESPONSE.partition(b"\r\n\r\n")
    assert head.startswith(b"HTTP/1.1 500 ")
    assert b"Content-Length: %d" % len(body) in head


@pytest.mark.parametrize("status", [0, 99, 600, 1000])
def test_invalid_status_rejected(status):
    with pytest.raises(ValueError):
        ServeResult(status, "Bad", b"")


@pytest.mark.parametrize("name,expected", [
    ("index.html", "text/html"),
    ("INDEX.HTM", "text/html"),
    ("app.js", "application/javascript"),
    ("logo.PNG", "image/png"),
    ("data.json", "application/json"),
    ("archive.tar.unknown", "application/octet-stream"),
    ("README", "application/octet-stream"),
])
def test_guess_content_type(name, expected):
    assert guess_content_type(name) == expected
