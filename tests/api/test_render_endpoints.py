"""API endpoint tests for the render service."""

import base64

import pytest
from fastapi.testclient import TestClient
from playwright.async_api import Error as PlaywrightError

from app.api.main import create_app
from app.render import RequestCoordinator, RequestCoordinatorConfig
from app.render.config import RenderConfig

from conftest import FAKE_JPEG, FAKE_PDF, FAKE_PNG, CountingContextProvider, quick_presets


def build_client(provider):
    coordinator = RequestCoordinator(
        context_provider=provider,
        config=RequestCoordinatorConfig(presets=quick_presets(), job_timeout_ms=5000),
    )
    config = RenderConfig(service={'name': 'PDF Generator'})
    return TestClient(create_app(config=config, coordinator=coordinator))


@pytest.fixture
def client(provider):
    with build_client(provider) as test_client:
        yield test_client


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data['status'] == "ok"
        assert data['serviceName'] == "PDF Generator"
        assert "timestamp" in data

    def test_health_does_not_touch_browser(self, client, provider):
        client.get("/health")
        assert provider.acquired == 0

    def test_request_id_header(self, client):
        response = client.get("/health", headers={"X-Request-ID": "abc12345"})
        assert response.headers["X-Request-ID"] == "abc12345"

    def test_stats(self, client):
        client.post("/generate-pdf", json={"content": "<p>x</p>"})

        data = client.get("/stats").json()

        assert data['jobs_succeeded'] == 1
        assert data['active_contexts'] == 0


class TestGeneratePdf:
    """Tests for POST /generate-pdf."""

    def test_minimal_document(self, client, provider):
        response = client.post("/generate-pdf", json={"content": "<html><body>Hi</body></html>"})

        assert response.status_code == 200
        data = response.json()
        assert data['success'] is True
        assert base64.b64decode(data['bytes']) == FAKE_PDF
        assert data['sizeBytes'] == len(FAKE_PDF)
        assert data['contentType'] == "application/pdf"
        assert provider.acquired == provider.released == 1

    def test_html_alias_and_options(self, client, provider):
        response = client.post("/generate-pdf", json={
            "html": "<p>x</p>",
            "options": {"format": "Letter", "margin": {"top": "1in"}, "printBackground": False},
        })

        assert response.status_code == 200
        pdf = provider.pages[0].last_call('pdf')
        assert pdf['format'] == "Letter"
        assert pdf['margin'] == {'top': '1in', 'right': '20px', 'bottom': '20px', 'left': '20px'}
        assert pdf['print_background'] is False

    def test_missing_content(self, client, provider):
        response = client.post("/generate-pdf", json={})

        assert response.status_code == 400
        data = response.json()
        assert data['success'] is False
        assert data['error'] == {'kind': 'ValidationError', 'message': 'HTML content is required'}
        assert data['requestId'] == response.headers["X-Request-ID"]
        assert provider.acquired == 0

    def test_request_id_becomes_job_id(self, client):
        response = client.post(
            "/generate-pdf",
            json={"content": "<p>x</p>"},
            headers={"X-Request-ID": "job-77"},
        )

        assert response.json()['jobId'] == "job-77"

    def test_render_failure(self):
        provider = CountingContextProvider(
            lambda page: setattr(page, 'pdf_error', PlaywrightError("Target closed"))
        )
        with build_client(provider) as client:
            response = client.post("/generate-pdf", json={"content": "<p>x</p>"})

        assert response.status_code == 500
        assert response.json()['error']['kind'] == "CaptureFailure"
        assert provider.released == 1


class TestCaptureScreenshot:
    """Tests for POST /capture-screenshot."""

    def test_defaults(self, client, provider):
        response = client.post("/capture-screenshot", json={"target": "https://example.com"})

        assert response.status_code == 200
        data = response.json()
        assert base64.b64decode(data['bytes']) == FAKE_JPEG
        assert data['format'] == "jpeg"
        assert data['viewport'] == {'width': 1920, 'height': 1080}
        assert data['readiness']['loader_absence'] == "ready"
        assert data['readinessDegraded'] is False

    def test_camel_case_options(self, client, provider):
        response = client.post("/capture-screenshot", json={
            "url": "https://example.com",
            "options": {
                "viewportWidth": 1280,
                "viewportHeight": 800,
                "deviceScaleFactor": 2,
                "format": "png",
                "fullPage": False,
                "waitTime": 0,
                "blockedResourceTypes": ["font", "media"],
            },
        })

        assert response.status_code == 200
        data = response.json()
        assert base64.b64decode(data['bytes']) == FAKE_PNG
        assert data['format'] == "png"
        assert data['viewport'] == {'width': 1280, 'height': 800}
        assert provider.overrides[0]['device_scale_factor'] == 2
        assert provider.pages[0].last_call('screenshot') == {'type': 'png', 'full_page': False}

    def test_missing_url(self, client):
        response = client.post("/capture-screenshot", json={"options": {}})

        assert response.status_code == 400
        assert response.json()['error']['message'] == "URL is required"

    def test_relative_url_rejected(self, client):
        response = client.post("/capture-screenshot", json={"target": "/dashboard"})

        assert response.status_code == 400
        assert response.json()['error']['kind'] == "ValidationError"

    def test_schema_violation(self, client, provider):
        response = client.post("/capture-screenshot", json={
            "target": "https://example.com",
            "options": {"quality": 500},
        })

        assert response.status_code == 422
        data = response.json()
        assert data['success'] is False
        assert data['error']['kind'] == "ValidationError"
        assert data['details']['validation_errors']
        assert provider.acquired == 0

    def test_unreachable_host(self):
        provider = CountingContextProvider(
            lambda page: setattr(page, 'goto_error', PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
        )
        with build_client(provider) as client:
            response = client.post("/capture-screenshot", json={"target": "https://nope.invalid/"})

        assert response.status_code == 500
        assert response.json()['error']['kind'] == "NetworkUnreachable"


class TestEngineUnavailable:
    """Tests for requests arriving without a running engine."""

    def test_returns_503(self):
        coordinator = RequestCoordinator(config=RequestCoordinatorConfig(presets=quick_presets()))
        app = create_app(config=RenderConfig(), coordinator=coordinator)
        client = TestClient(app)

        response = client.post("/generate-pdf", json={"content": "<p>x</p>"})

        assert response.status_code == 503
        assert response.json()['error']['kind'] == "InternalError"
