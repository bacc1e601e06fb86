"""
Tests for carrier media download.
"""

from unittest.mock import Mock

import pytest
import requests

from importflow.intake.errors import MediaFetchError
from importflow.models.webhook import MediaRef
from importflow.utils.media import MediaFetcher, detect_image_mime_type, file_extension

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 16


def response(content: bytes = JPEG, status_code: int = 200, content_type: str = "image/jpeg"):
    mock_response = Mock()
    mock_response.ok = 200 <= status_code < 300
    mock_response.status_code = status_code
    mock_response.reason = "OK" if mock_response.ok else "Not Found"
    mock_response.content = content
    mock_response.text = content.decode("latin-1")
    mock_response.headers = {"Content-Type": content_type}
    return mock_response


def fetcher_with(mock_response) -> tuple[MediaFetcher, Mock]:
    session = Mock(spec=requests.Session)
    session.get.return_value = mock_response
    return MediaFetcher(account_sid="AC123", auth_token="secret", timeout=3, session=session), session


def test_fetch_uses_account_credentials():
    fetcher, session = fetcher_with(response())

    media = fetcher.fetch(MediaRef(url="https://media.test/1"))

    assert media.content == JPEG
    assert media.content_type == "image/jpeg"
    session.get.assert_called_once_with(
        "https://media.test/1", auth=("AC123", "secret"), timeout=3
    )


def test_fetch_sniffs_generic_content_type():
    fetcher, _ = fetcher_with(response(PNG, content_type="application/octet-stream"))

    media = fetcher.fetch(MediaRef(url="https://media.test/1", content_type="image/jpeg"))

    assert media.content_type == "image/png"


def test_fetch_falls_back_to_declared_type():
    fetcher, _ = fetcher_with(response(b"????", content_type=""))

    media = fetcher.fetch(MediaRef(url="https://media.test/1", content_type="image/webp"))

    assert media.content_type == "image/webp"


def test_fetch_http_error():
    fetcher, _ = fetcher_with(response(b"gone", status_code=404))

    with pytest.raises(MediaFetchError) as exc_info:
        fetcher.fetch(MediaRef(url="https://media.test/1"))

    assert "404" in exc_info.value.reason


def test_fetch_network_error():
    session = Mock(spec=requests.Session)
    session.get.side_effect = requests.Timeout("read timeout")
    fetcher = MediaFetcher(account_sid="AC123", auth_token="secret", session=session)

    with pytest.raises(MediaFetchError):
        fetcher.fetch(MediaRef(url="https://media.test/1"))


def test_fetch_empty_body():
    fetcher, _ = fetcher_with(response(b""))

    with pytest.raises(MediaFetchError):
        fetcher.fetch(MediaRef(url="https://media.test/1"))


def test_fetch_without_credentials():
    session = Mock(spec=requests.Session)
    fetcher = MediaFetcher(account_sid="", auth_token="", session=session)

    with pytest.raises(MediaFetchError):
        fetcher.fetch(MediaRef(url="https://media.test/1"))
    session.get.assert_not_called()


@pytest.mark.parametrize(
    "data,expected",
    [
        (PNG, "image/png"),
        (JPEG, "image/jpeg"),
        (b"GIF89a....", "image/gif"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
        (b"%PDF-1.7", None),
    ],
)
def test_detect_image_mime_type(data, expected):
    assert detect_image_mime_type(data) == expected


def test_file_extension():
    assert file_extension("image/png") == "png"
    assert file_extension("image/jpeg; charset=binary") == "jpg"
    assert file_extension("application/octet-stream") == "jpg"
