"""Tests for the IMS OData client wrapper."""
from __future__ import annotations

import json
import os
from unittest import TestCase
from unittest.mock import MagicMock

import requests

from packages.ims_client import ImsClient, ImsClientError, ImsHttpError, ImsPayloadError, ImsResponse


def _response(status: int, body: object = None, headers: dict | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.text = body if isinstance(body, str) else json.dumps(body)
    response.headers = headers or {}
    return response


class TestImsClient(TestCase):
    def setUp(self) -> None:
        self.env_backup = dict(os.environ)
        self.session = MagicMock()

    def tearDown(self) -> None:
        os.environ.clear()
        os.environ.update(self.env_backup)

    def _client(self) -> ImsClient:
        return ImsClient("https://ims.example.com/server/odata", session=self.session)

    def test_missing_base_url_raises(self) -> None:
        os.environ.pop("IMS_BASE_URL", None)
        with self.assertRaises(ImsClientError):
            ImsClient()

    def test_base_url_from_env_gets_trailing_slash(self) -> None:
        os.environ["IMS_BASE_URL"] = "https://ims.example.com/odata"
        os.environ["IMS_TIMEOUT_SECONDS"] = "5"
        client = ImsClient(session=self.session)
        self.assertEqual(client.base_url, "https://ims.example.com/odata/")
        self.assertEqual(client.timeout, 5.0)

    def test_fetch_values_forwards_token_and_params(self) -> None:
        self.session.request.return_value = _response(200, {"value": [{"id": "1"}, "junk"]})

        rows = self._client().fetch_values("m_Instance", token="abc", params={"$top": "1"})

        self.assertEqual(rows, [{"id": "1"}])
        method, url = self.session.request.call_args[0]
        kwargs = self.session.request.call_args[1]
        self.assertEqual(method, "GET")
        self.assertEqual(url, "https://ims.example.com/server/odata/m_Instance")
        self.assertEqual(kwargs["params"], {"$top": "1"})
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer abc")

    def test_non_success_status_raises_http_error(self) -> None:
        self.session.request.return_value = _response(401, "token expired")

        with self.assertRaises(ImsHttpError) as ctx:
            self._client().fetch("m_Project", token="abc")

        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(ctx.exception.body, "token expired")

    def test_invalid_json_raises_payload_error(self) -> None:
        self.session.request.return_value = _response(200, "<html>")

        with self.assertRaises(ImsPayloadError) as ctx:
            self._client().fetch("m_Project", token="abc")

        self.assertEqual(ctx.exception.text, "<html>")

    def test_transport_failure_is_wrapped(self) -> None:
        self.session.request.side_effect = requests.ConnectionError("boom")

        with self.assertRaises(ImsClientError):
            self._client().fetch("m_Project", token="abc")

    def test_send_sets_headers_and_omits_missing_token(self) -> None:
        self.session.request.return_value = _response(204, "", {"Location": "m_Instance('1')"})

        response = self._client().send(
            "PATCH",
            "m_Instance('1')",
            token=None,
            payload={"spare_value": 2},
            prefer="return=minimal",
            headers={"If-Match": "*"},
        )

        kwargs = self.session.request.call_args[1]
        self.assertNotIn("Authorization", kwargs["headers"])
        self.assertEqual(kwargs["headers"]["Prefer"], "return=minimal")
        self.assertEqual(kwargs["headers"]["If-Match"], "*")
        self.assertEqual(json.loads(kwargs["data"]), {"spare_value": 2})
        self.assertEqual(response.status_code, 204)
        self.assertEqual(response.location, "m_Instance('1')")


def test_ims_response_helpers() -> None:
    response = ImsResponse(201, '{"id": "x"}', {"location": "here"})
    assert response.ok
    assert response.location == "here"
    assert response.json() == {"id": "x"}
    assert not ImsResponse(404).ok
