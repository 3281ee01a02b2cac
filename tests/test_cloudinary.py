"""Cloudinary client against a stubbed SDK."""
import cloudinary.api
import cloudinary.exceptions
import cloudinary.uploader
import pytest

from devsource_platform.cloudinary.client import CloudinaryClient, image_format
from devsource_platform.errors import UpstreamFailure, ValidationError


class _Recorder:
    def __init__(self, result=None, exc=None):
        self.result = result
        self.exc = exc
        self.calls = []

    def __call__(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        if self.exc:
            raise self.exc
        return self.result


@pytest.fixture
def upload(monkeypatch):
    rec = _Recorder({"secure_url": "https://res.cloudinary.com/demo/image/upload/devsource_profiles/x.png"})
    monkeypatch.setattr(cloudinary.uploader, "upload", rec)
    return rec


@pytest.fixture
def ping(monkeypatch):
    rec = _Recorder({"status": "ok"})
    monkeypatch.setattr(cloudinary.api, "ping", rec)
    return rec


def _client(**kwargs):
    return CloudinaryClient(cloud_name="demo", api_key="key", api_secret="shh", **kwargs)


def test_upload_returns_secure_url(upload):
    url = _client().upload_image(filename="x.png", content=b"png", content_type="image/png")
    assert url == "https://res.cloudinary.com/demo/image/upload/devsource_profiles/x.png"

    (args, kwargs), = upload.calls
    assert args[0].read() == b"png"
    assert kwargs["folder"] == "devsource_profiles"
    assert kwargs["allowed_formats"] == ["jpg", "png", "jpeg"]
    assert kwargs["resource_type"] == "image"
    assert kwargs["timeout"] == 60
    # Credentials go with the call, not the global SDK config.
    assert (kwargs["cloud_name"], kwargs["api_key"], kwargs["api_secret"]) == ("demo", "key", "shh")
    assert "upload_prefix" not in kwargs


def test_upload_prefix_and_folder_are_passed_through(upload):
    _client(folder="avatars", upload_prefix="https://api-eu.cloudinary.com/").upload_image(
        filename="me.jpg", content=b"jpg"
    )
    (_args, kwargs), = upload.calls
    assert kwargs["folder"] == "avatars"
    assert kwargs["upload_prefix"] == "https://api-eu.cloudinary.com"


def test_upload_sdk_error_is_upstream_failure(upload):
    upload.exc = cloudinary.exceptions.Error("Invalid Signature")
    with pytest.raises(UpstreamFailure) as ei:
        _client().upload_image(filename="x.png", content=b"png")
    assert ei.value.message == "Upload failed"
    assert "Invalid Signature" in ei.value.error


def test_upload_unexpected_payload(upload):
    upload.result = {"public_id": "x"}
    with pytest.raises(UpstreamFailure):
        _client().upload_image(filename="x.png", content=b"png")


def test_upload_rejects_empty_and_wrong_format(upload):
    with pytest.raises(ValidationError):
        _client().upload_image(filename="x.png", content=b"")
    with pytest.raises(ValidationError):
        _client().upload_image(filename="x.bmp", content=b"bmp", content_type="image/bmp")
    assert upload.calls == []


def test_image_format_from_extension_or_content_type():
    assert image_format("a.JPEG", None) == "jpeg"
    assert image_format("blob", "image/jpeg") == "jpg"
    assert image_format(None, "image/png; charset=binary") == "png"
    with pytest.raises(ValidationError):
        image_format("a.gif", "image/gif")


def test_ping(ping):
    assert _client().ping() is True
    (_args, kwargs), = ping.calls
    assert kwargs["cloud_name"] == "demo"

    ping.exc = cloudinary.exceptions.Error("Unexpected error")
    assert _client().ping() is False


def test_requires_credentials():
    with pytest.raises(ValueError):
        CloudinaryClient(cloud_name="demo", api_key="", api_secret="shh")
