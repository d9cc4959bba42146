"""Tests for the document service and webhook clients (httpx mock transport)"""
import json

import httpx
import pytest

from govflow.domain.errors import DocumentServiceError, WebhookError
from govflow.services.document_service import DocumentService
from govflow.services.webhook_client import WebhookClient


def _recording_transport(status_code=200, body=None):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if body is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=body)

    return httpx.MockTransport(handler), requests


def _failing_transport():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.MockTransport(handler)


class TestDocumentService:

    def test_update_document_state(self):
        transport, requests = _recording_transport(body={"doc_ref": "DOC-1", "state": "Approved"})
        service = DocumentService(base_url="https://dms.example.org/api/", api_key="secret", transport=transport)

        result = service.update_document_state("DOC-1", "Approved", "officer@unite.org")

        assert result == {"doc_ref": "DOC-1", "state": "Approved"}
        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://dms.example.org/api/documents/DOC-1/state"
        assert request.headers["Authorization"] == "Bearer secret"
        assert json.loads(request.content) == {"state": "Approved", "actor": "officer@unite.org"}

    def test_empty_response_body(self):
        transport, _ = _recording_transport(status_code=204)
        service = DocumentService(base_url="https://dms.example.org", api_key="", transport=transport)

        assert service.update_document_state("DOC-1", "Published", "a@unite.org") == {}

    def test_error_status_raises(self):
        transport, _ = _recording_transport(status_code=503)
        service = DocumentService(base_url="https://dms.example.org", api_key="", transport=transport)

        with pytest.raises(DocumentServiceError) as exc_info:
            service.update_document_state("DOC-1", "Approved", "a@unite.org")
        assert exc_info.value.details["status_code"] == 503

    def test_unreachable_raises(self):
        service = DocumentService(base_url="https://dms.example.org", api_key="", transport=_failing_transport())

        with pytest.raises(DocumentServiceError):
            service.update_document_state("DOC-1", "Approved", "a@unite.org")

    def test_not_configured_raises(self):
        service = DocumentService(base_url="", api_key="")

        with pytest.raises(DocumentServiceError):
            service.update_document_state("DOC-1", "Approved", "a@unite.org")


class TestWebhookClient:

    def test_post_delivers_json(self):
        transport, requests = _recording_transport(status_code=202)
        client = WebhookClient(transport=transport)

        assert client.post("https://hooks.example.org/x", {"instance_id": "WFI-1"}) == 202
        assert json.loads(requests[0].content) == {"instance_id": "WFI-1"}

    def test_error_status_raises(self):
        transport, _ = _recording_transport(status_code=500)

        with pytest.raises(WebhookError):
            WebhookClient(transport=transport).post("https://hooks.example.org/x", {})

    def test_unreachable_raises(self):
        with pytest.raises(WebhookError):
            WebhookClient(transport=_failing_transport()).post("https://hooks.example.org/x", {})
