"""
Tests for the outbound HTTP clients (storefront revalidation and Resend).
"""

import asyncio
import threading

import pytest
import requests

from app.services.inventory.revalidation import RevalidationClient
from app.services.notifications.email_sender import EmailSendError, ResendEmailSender


class Response:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.body = body or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        return self.body


class RecordingPost:
    def __init__(self, response=None, error=None):
        self.response = response or Response()
        self.error = error
        self.calls = []
        self.threads = []

    def __call__(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        self.threads.append(threading.get_ident())
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def post(monkeypatch):
    recorder = RecordingPost()
    monkeypatch.setattr(requests, "post", recorder)
    return recorder


def test_revalidate_posts_path_off_the_event_loop(post):
    client = RevalidationClient("https://shop.test/api/revalidate", secret="s3cret")

    assert asyncio.run(client.revalidate_path("/produit/office-2021-pro")) is True

    call = post.calls[0]
    assert call["url"] == "https://shop.test/api/revalidate"
    assert call["json"] == {"path": "/produit/office-2021-pro"}
    assert call["headers"]["X-Revalidate-Secret"] == "s3cret"
    assert call["timeout"] == RevalidationClient.TIMEOUT
    assert post.threads[0] != threading.get_ident()


def test_revalidate_failure_is_reported_not_raised(post):
    post.error = requests.ConnectionError("refused")
    client = RevalidationClient("https://shop.test/api/revalidate")

    assert asyncio.run(client.revalidate_path("/produit/x")) is False


def test_revalidate_rejected_by_storefront(post):
    post.response = Response(status_code=401)
    client = RevalidationClient("https://shop.test/api/revalidate")

    assert asyncio.run(client.revalidate_path("/produit/x")) is False


def test_revalidate_without_endpoint_does_nothing(post):
    assert asyncio.run(RevalidationClient(None).revalidate_path("/produit/x")) is False
    assert post.calls == []


def test_send_email(post):
    post.response = Response(body={"id": "email_1"})
    sender = ResendEmailSender("re_key", "Shop <noreply@shop.test>")

    message_id = asyncio.run(sender.send("buyer@example.com", "Hi", "<p>Hi</p>"))

    assert message_id == "email_1"
    call = post.calls[0]
    assert call["url"] == "https://api.resend.com/emails"
    assert call["json"]["to"] == ["buyer@example.com"]
    assert call["headers"]["Authorization"] == "Bearer re_key"
    assert post.threads[0] != threading.get_ident()


def test_send_email_failure_raises(post):
    post.response = Response(status_code=503)
    sender = ResendEmailSender("re_key", "Shop <noreply@shop.test>")

    with pytest.raises(EmailSendError):
        asyncio.run(sender.send("buyer@example.com", "Hi", "<p>Hi</p>"))
