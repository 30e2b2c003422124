"""
Tests for the Datafiniti client.
HTTP is mocked; no network access.
"""
from unittest.mock import MagicMock, patch

import pytest
import requests

from suitematch.client.datafiniti import (
    ConfigurationError,
    DatafinitiClient,
    UpstreamCallError,
)
from suitematch.config import DatafinitiConfig


def make_response(status_code: int = 200, payload=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


class TestDatafinitiClient:
    """Tests for DatafinitiClient."""

    @pytest.fixture
    def client(self) -> DatafinitiClient:
        return DatafinitiClient(DatafinitiConfig(
            api_key="test-key",
            base_url="https://api.example.test/v4",
            max_attempts=1,
        ))

    def test_build_query(self):
        assert DatafinitiClient.build_query("Berkeley") == 'province:CA AND city:"Berkeley"'
        assert (
            DatafinitiClient.build_query("San Jose", " numBedroom:2 ")
            == 'province:CA AND city:"San Jose" AND (numBedroom:2)'
        )

    def test_is_available(self, client):
        assert client.is_available()
        assert not DatafinitiClient(DatafinitiConfig(api_key="")).is_available()
        assert not DatafinitiClient(DatafinitiConfig(api_key="your-api-key-here")).is_available()

    def test_request_shape(self, client):
        payload = {"records": [{"id": "1"}], "num_found": 12}
        with patch("suitematch.client.datafiniti.requests.post", return_value=make_response(payload=payload)) as post:
            result = client.search('province:CA AND city:"Berkeley"', num_records=1)

        post.assert_called_once()
        args, kwargs = post.call_args
        assert args[0] == "https://api.example.test/v4/properties/search"
        assert kwargs["json"] == {
            "query": 'province:CA AND city:"Berkeley"',
            "format": "JSON",
            "num_records": 1,
        }
        assert kwargs["headers"]["Authorization"] == "Bearer test-key"
        assert kwargs["timeout"] == client.config.request_timeout
        assert result.record_list == [{"id": "1"}]
        assert result.num_found == 12

    def test_missing_key_issues_no_request(self):
        client = DatafinitiClient(DatafinitiConfig(api_key=""))
        with patch("suitematch.client.datafiniti.requests.post") as post:
            with pytest.raises(ConfigurationError):
                client.search("anything")
        post.assert_not_called()

    @pytest.mark.parametrize("status", [400, 401, 429, 500, 503])
    def test_error_status(self, client, status):
        with patch("suitematch.client.datafiniti.requests.post", return_value=make_response(status, text="nope")):
            with pytest.raises(UpstreamCallError) as exc_info:
                client.search("q")
        assert exc_info.value.status_code == status

    def test_invalid_json(self, client):
        response = make_response(payload=ValueError("Expecting value"))
        with patch("suitematch.client.datafiniti.requests.post", return_value=response):
            with pytest.raises(UpstreamCallError):
                client.search("q")

    def test_non_object_payload(self, client):
        with patch("suitematch.client.datafiniti.requests.post", return_value=make_response(payload=[1, 2])):
            with pytest.raises(UpstreamCallError):
                client.search("q")

    def test_malformed_envelope(self, client):
        with patch("suitematch.client.datafiniti.requests.post", return_value=make_response(payload={"records": "bad"})):
            with pytest.raises(UpstreamCallError):
                client.search("q")

    def test_missing_records_is_zero_results(self, client):
        with patch("suitematch.client.datafiniti.requests.post", return_value=make_response(payload={})):
            result = client.search("q")
        assert result.record_list == []

    def test_network_error(self, client):
        with patch(
            "suitematch.client.datafiniti.requests.post",
            side_effect=requests.ConnectionError("unreachable"),
        ):
            with pytest.raises(UpstreamCallError):
                client.search("q")

    def test_transient_error_retried(self):
        client = DatafinitiClient(DatafinitiConfig(api_key="k", max_attempts=2))
        responses = [requests.Timeout("slow"), make_response(payload={"records": []})]
        with patch("suitematch.client.datafiniti.requests.post", side_effect=responses) as post, \
                patch("tenacity.nap.time.sleep"):
            result = client.search("q")
        assert post.call_count == 2
        assert result.record_list == []
