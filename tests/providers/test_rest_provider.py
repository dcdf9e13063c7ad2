"""Tests for the REST provider adapter (HTTP mocked)."""

from unittest.mock import Mock, patch
import pytest
import requests
from graphapply.providers.rest import RestProvider
from graphapply.utils.errors import NotFoundError, ProviderError, UnsupportedUpdateError


def _response(status_code, body=None, text=None):
    response = Mock(status_code=status_code, reason="reason")
    response.text = text if text is not None else ("" if body is None else "json")
    if body is None:
        response.json = Mock(side_effect=ValueError("no json"))
    else:
        response.json = Mock(return_value=body)
    return response


@pytest.fixture
def provider():
    return RestProvider("bucket", "https://infra.example.test/api", token_env="GRAPHAPPLY_TEST_TOKEN")


class TestRestCalls:
    """Test request construction and success paths."""

    @patch('graphapply.providers.rest.requests.request')
    def test_create_posts_to_collection(self, mock_request, provider, monkeypatch):
        """Test create POSTs desired attributes and returns the body id."""
        monkeypatch.setenv("GRAPHAPPLY_TEST_TOKEN", "secret")
        mock_request.return_value = _response(201, {"id": 42, "name": "logs"})

        provider_id, actual = provider.create({"name": "logs"})

        assert provider_id == "42"
        assert actual == {"id": 42, "name": "logs"}
        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://infra.example.test/api/bucket")
        assert kwargs["json"] == {"name": "logs"}
        assert kwargs["headers"]["Authorization"] == "Bearer secret"
        assert kwargs["timeout"] == 30.0

    @patch('graphapply.providers.rest.requests.request')
    def test_update_patches_resource(self, mock_request, provider):
        """Test update PATCHes only the diff."""
        mock_request.return_value = _response(200, {"id": "b-1", "versioning": True})

        actual = provider.update("b-1", {"versioning": True})

        assert actual["versioning"] is True
        args, kwargs = mock_request.call_args
        assert args == ("PATCH", "https://infra.example.test/api/bucket/b-1")
        assert kwargs["json"] == {"versioning": True}

    @patch('graphapply.providers.rest.requests.request')
    def test_delete_absent_succeeds(self, mock_request, provider):
        """Test deleting an already-absent resource returns normally."""
        mock_request.return_value = _response(404)
        provider.delete("b-1")
        assert mock_request.call_args[0][0] == "DELETE"


class TestRestFailures:
    """Test mapping of HTTP failures onto the error taxonomy."""

    @patch('graphapply.providers.rest.requests.request')
    def test_server_error_is_transient(self, mock_request, provider):
        """Test 503 responses are retryable."""
        mock_request.return_value = _response(503, text="unavailable")

        with pytest.raises(ProviderError) as exc_info:
            provider.create({"name": "logs"})
        assert exc_info.value.transient

    @patch('graphapply.providers.rest.requests.request')
    def test_client_error_is_permanent(self, mock_request, provider):
        """Test 400 responses are not retried."""
        mock_request.return_value = _response(400, text="bad name")

        with pytest.raises(ProviderError, match="HTTP 400") as exc_info:
            provider.create({"name": "??"})
        assert exc_info.value.permanent

    @patch('graphapply.providers.rest.requests.request')
    def test_timeout_is_transient(self, mock_request, provider):
        """Test network timeouts are retryable."""
        mock_request.side_effect = requests.exceptions.Timeout("timed out")

        with pytest.raises(ProviderError) as exc_info:
            provider.read("b-1")
        assert exc_info.value.transient

    @patch('graphapply.providers.rest.requests.request')
    def test_read_missing(self, mock_request, provider):
        """Test 404 on read raises NotFoundError."""
        mock_request.return_value = _response(404)

        with pytest.raises(NotFoundError):
            provider.read("b-1")

    @patch('graphapply.providers.rest.requests.request')
    def test_update_conflict_requires_replacement(self, mock_request, provider):
        """Test 409 on update raises UnsupportedUpdateError with the server's attribute list."""
        mock_request.return_value = _response(409, {"attributes": ["region"]})

        with pytest.raises(UnsupportedUpdateError) as exc_info:
            provider.update("b-1", {"region": "eu", "tags": {}})
        assert exc_info.value.attributes == ["region"]

    @patch('graphapply.providers.rest.requests.request')
    def test_create_without_id(self, mock_request, provider):
        """Test a create response lacking the id field is an error."""
        mock_request.return_value = _response(201, {"name": "logs"})

        with pytest.raises(ProviderError, match="missing 'id'"):
            provider.create({"name": "logs"})
