"""Tests for the Logstash monitoring API health check."""

from unittest import mock

import requests

from logstash_metrics.health import check_endpoint

URL = "http://logstash:9600/"


class TestCheckEndpoint:
    """Test cases for check_endpoint."""

    def test_accessible(self):
        response = mock.MagicMock()
        response.json.return_value = {"name": "node-1", "version": "8.11.0"}

        with mock.patch("logstash_metrics.health.requests.get", return_value=response) as get:
            assert check_endpoint(URL, timeout=1) is True

        get.assert_called_once_with(URL, timeout=1)

    def test_connection_errors_are_retried(self):
        with mock.patch(
            "logstash_metrics.health.requests.get",
            side_effect=requests.ConnectionError("refused")
        ) as get:
            assert check_endpoint(URL, max_retries=3, retry_delay=0) is False

        assert get.call_count == 3

    def test_http_error_is_not_retried(self):
        response = mock.MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("503 Server Error")

        with mock.patch("logstash_metrics.health.requests.get", return_value=response) as get:
            assert check_endpoint(URL, max_retries=3, retry_delay=0) is False

        assert get.call_count == 1

    def test_non_object_body_is_accepted(self):
        response = mock.MagicMock()
        response.json.return_value = ["unexpected"]

        with mock.patch("logstash_metrics.health.requests.get", return_value=response):
            assert check_endpoint(URL) is True
