from __future__ import annotations

import base64
import json
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional
from unittest.mock import patch

from fastapi.testclient import TestClient

from apps.web import create_app
from apps.web.app import _default_client_provider
from apps.web.config import AppConfig
from packages.ims_client import ImsHttpError, ImsPayloadError, ImsResponse
from services.procurement import ProcurementConfig

AUTH = {"Authorization": "Bearer tok"}


class FakeImsClient:
    def __init__(
        self,
        rows: Optional[List[Dict[str, Any]]] = None,
        *,
        payload: Optional[Dict[str, Any]] = None,
        response: Optional[ImsResponse] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.rows = rows or []
        self.payload = payload or {"value": self.rows}
        self.response = response or ImsResponse(201, '{"id": "new"}', {"Location": "m_Inventory('new')"})
        self.error = error
        self.fetches: List[tuple] = []
        self.sends: List[Dict[str, Any]] = []

    def fetch(self, entity, *, token, params=None):
        if self.error:
            raise self.error
        self.fetches.append((entity, token, dict(params or {})))
        return self.payload

    def fetch_values(self, entity, *, token, params=None):
        if self.error:
            raise self.error
        self.fetches.append((entity, token, dict(params or {})))
        return [dict(row) for row in self.rows]

    def send(self, method, entity, *, token, payload, prefer=None, headers=None):
        self.sends.append(
            {"method": method, "entity": entity, "token": token, "payload": dict(payload), "prefer": prefer}
        )
        return self.response


def _client(fake: FakeImsClient, config: Optional[AppConfig] = None) -> TestClient:
    app = create_app(client_provider=lambda: fake, config=config or AppConfig())
    return TestClient(app)


def _row(row_id: str, item: str, quantity: int, project: str) -> Dict[str, Any]:
    return {
        "id": row_id,
        "m_inventory_item": {"item_number": item},
        "m_quantity": quantity,
        "m_project": project,
        "classification": "Inventoried",
    }


def test_root_endpoint_lists_links() -> None:
    response = _client(FakeImsClient()).get("/")
    assert response.status_code == 200
    assert response.json()["links"]["parts"] == "/api/parts"


def test_health_reports_timestamp() -> None:
    body = _client(FakeImsClient()).get("/api/health").json()
    assert body["status"] == "ok"
    assert isinstance(body["timestamp"], int)


def test_parts_requires_bearer_token() -> None:
    fake = FakeImsClient()
    client = _client(fake)

    for headers in ({}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer"}):
        response = client.get("/api/parts", headers=headers)
        assert response.status_code == 401
        assert response.json() == {"error": "Missing or invalid access token. Please log in."}
    assert fake.fetches == []


def test_parts_groups_backend_rows() -> None:
    fake = FakeImsClient([_row("a", "X-100", 3, "General Inventory"), _row("b", "X-100", 2, "Proj-A")])

    response = _client(fake).get("/api/parts", headers=AUTH)

    assert response.status_code == 200
    values = response.json()["value"]
    assert [(v["total"], v["spare"], v["inUse"], v["generalInventory"]) for v in values] == [
        (5, 3, 2, True),
        (5, 3, 2, False),
    ]
    _, token, params = fake.fetches[0]
    assert token == "tok"
    assert params["$top"] == "500"


def test_parts_translates_query_parameters() -> None:
    fake = FakeImsClient([_row("a", "X-100", 3, "Proj-A")])
    condition = json.dumps({"operator": "is", "value": "X-100"})

    response = _client(fake).get(
        "/api/parts",
        params=[
            ("m_inventory_item", condition),
            ("m_mfg_name", "acme"),
            ("m_mfg_name", "!bolt"),
            ("logicalOperator", "or"),
            ("classification", "ignored"),
        ],
        headers=AUTH,
    )

    assert response.status_code == 200
    assert fake.fetches[0][2]["$filter"] == (
        "classification eq 'Inventoried' and (m_inventory_item/item_number eq 'X-100' or "
        "(contains(m_mfg_name, 'acme') or not contains(m_mfg_name, 'bolt')))"
    )
    assert response.json()["value"][0]["_matches"] == {"m_inventory_item": ["x-100"]}


def test_parts_propagates_backend_status() -> None:
    fake = FakeImsClient(error=ImsHttpError(403, "forbidden"))
    response = _client(fake).get("/api/parts", headers=AUTH)
    assert response.status_code == 403
    assert response.json() == {"error": "forbidden"}


def test_parts_reports_unparseable_backend_body() -> None:
    fake = FakeImsClient(error=ImsPayloadError("<html>"))
    response = _client(fake).get("/api/parts-client-side", headers=AUTH)
    assert response.status_code == 500
    assert response.json()["details"] == "<html>"


def test_parts_reports_unexpected_errors() -> None:
    fake = FakeImsClient(error=RuntimeError("kaboom"))
    response = _client(fake).get("/api/parts/bulk-order", headers=AUTH)
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error: kaboom"}


def test_create_inventory_echoes_created_item() -> None:
    fake = FakeImsClient()
    response = _client(fake).post("/api/m_Inventory", json={"item_number": "N-1"}, headers=AUTH)

    assert response.status_code == 201
    assert response.json() == {"id": "new"}
    assert response.headers["location"] == "m_Inventory('new')"
    assert fake.sends[0]["prefer"] == "return=representation"


def test_create_inventory_minimal_and_errors() -> None:
    fake = FakeImsClient(response=ImsResponse(204, "", {"Location": "m_Inventory('n')"}))
    response = _client(fake).post(
        "/api/m_Inventory", json={}, headers={**AUTH, "Prefer": "return=minimal"}
    )
    assert response.status_code == 204
    assert response.headers["location"] == "m_Inventory('n')"

    failing = FakeImsClient(response=ImsResponse(400, "bad part"))
    response = _client(failing).post("/api/m_Inventory", json={}, headers=AUTH)
    assert response.status_code == 400
    assert response.text == "bad part"


def test_spare_value_validation() -> None:
    fake = FakeImsClient()
    client = _client(fake)

    response = client.patch("/api/m_Instance/abc/spare-value", json={"spare_value": "3"})
    assert response.status_code == 400
    assert response.json() == {"error": "spare_value must be a number"}

    response = client.patch("/api/m_Instance/abc/spare-value", json={})
    assert response.status_code == 400
    assert response.json() == {"error": "No valid fields to update (spare_value, bulk_order)"}
    assert fake.sends == []


def test_spare_value_forwards_patch_without_token() -> None:
    fake = FakeImsClient(response=ImsResponse(200, '{"id": "abc", "spare_value": 4}'))

    response = _client(fake).patch("/api/m_Instance/abc/spare-value", json={"spare_value": 4, "bulk_order": True})

    assert response.status_code == 200
    assert response.json() == {"id": "abc", "spare_value": 4}
    sent = fake.sends[0]
    assert sent["method"] == "PATCH"
    assert sent["entity"] == "m_Instance('abc')"
    assert sent["token"] is None
    assert sent["payload"] == {"spare_value": 4, "bulk_order": True}


def test_spare_value_backend_failure() -> None:
    fake = FakeImsClient(response=ImsResponse(412, "precondition failed"))
    response = _client(fake).patch("/api/m_Instance/abc/spare-value", json={"bulk_order": False}, headers=AUTH)
    assert response.status_code == 412
    assert response.json() == {"error": "precondition failed"}


def test_projects_and_suppliers() -> None:
    fake = FakeImsClient([{"id": "1", "keyed_name": "Alpha"}, {"id": "2"}])
    client = _client(fake)

    assert client.get("/api/projects", headers=AUTH).json() == {
        "value": [{"id": "1", "name": "Alpha"}, {"id": "2", "name": "Unnamed Project"}]
    }
    assert client.get("/api/suppliers", headers=AUTH).json()["value"][1] == {"id": "2", "name": "Unnamed Supplier"}
    assert client.get("/api/projects").status_code == 401


def test_orders_endpoint() -> None:
    fake = FakeImsClient(payload={"@odata.count": 7, "value": [{"id": "o1"}]})
    client = _client(fake)

    missing = client.get("/api/orders")
    assert missing.status_code == 400
    assert missing.json() == {"error": "Missing Authorization header"}

    response = client.get("/api/orders", params={"search": "PR-1", "field": "bogus"}, headers=AUTH)
    assert response.status_code == 200
    assert response.json()["totalCount"] == 7
    assert response.headers["cache-control"].startswith("no-store")
    entity, _, params = fake.fetches[0]
    assert entity == "m_Procurement_Request"
    assert params["$filter"] == "contains(keyed_name,'PR-1')"


def test_workflow_lookups() -> None:
    fake = FakeImsClient(
        [
            {"id": "w1", "created_on": "2024-01-01T00:00:00Z"},
            {"id": "w2", "created_on": "2024-06-01T00:00:00Z"},
        ]
    )
    client = _client(fake)

    process = client.get("/api/workflow-processes", params={"orderItemNumber": "PR-1"}, headers=AUTH).json()
    assert process == {"workflowProcess": {"id": "w2", "created_on": "2024-06-01T00:00:00Z"}}
    activity = client.get("/api/workflow-process-activities", params={"workflowProcessId": "w2"}, headers=AUTH)
    assert activity.json()["workflowProcessActivity"]["id"] == "w2"
    assert client.get("/api/workflow-processes").status_code == 400


def test_procurement_request_json_submission() -> None:
    fake = FakeImsClient(response=ImsResponse(201, '{"id": "PR-1"}', {"Location": "m_Procurement_Request('PR-1')"}))
    config = AppConfig(procurement=ProcurementConfig(reviewers=("Sam",), default_reviewer="Sam"))

    response = _client(fake, config).post(
        "/api/m_Procurement_Request",
        json={"m_project": "P", "m_supplier": "S", "poOwnerAlias": "jdoe", "fid": "false"},
        headers=AUTH,
    )

    assert response.status_code == 201
    assert response.json() == {"id": "PR-1"}
    assert response.headers["location"] == "m_Procurement_Request('PR-1')"
    payload = fake.sends[0]["payload"]
    assert payload["m_po_owner"] == "jdoe"
    assert payload["m_reviewer"] == "Sam"
    assert len(payload["m_Procurement_Request_Files"]) == 1


def test_procurement_request_validation_errors() -> None:
    fake = FakeImsClient()
    client = _client(fake)

    unauthorised = client.post("/api/m_Procurement_Request", json={})
    assert unauthorised.status_code == 401
    assert unauthorised.json()["error"]["message"] == "Authorization token required"

    missing = client.post("/api/m_Procurement_Request", json={"m_project": "P"}, headers=AUTH)
    assert missing.status_code == 400
    assert missing.json()["error"]["message"] == "Missing required fields: m_supplier"
    assert fake.sends == []


def test_procurement_request_multipart_with_quote() -> None:
    fake = FakeImsClient(response=ImsResponse(204, "", {"Location": "m_Procurement_Request('PR-2')"}))

    response = _client(fake).post(
        "/api/m_Procurement_Request",
        data={"m_project": "P", "m_supplier": "S", "m_po_owner": "jdoe"},
        files={"m_quote": ("quote.pdf", b"%PDF-1.4", "application/pdf")},
        headers={**AUTH, "Prefer": "return=minimal"},
    )

    assert response.status_code == 204
    assert response.headers["location"] == "m_Procurement_Request('PR-2')"
    files = fake.sends[0]["payload"]["m_Procurement_Request_Files"]
    assert files == [
        {
            "file_name": "quote.pdf",
            "file_content": base64.b64encode(b"%PDF-1.4").decode("ascii"),
            "file_type": "application/pdf",
        }
    ]
    assert fake.sends[0]["prefer"] == "return=minimal"


def test_procurement_request_rejects_disallowed_quote() -> None:
    fake = FakeImsClient()
    response = _client(fake).post(
        "/api/m_Procurement_Request",
        data={"m_project": "P", "m_supplier": "S", "m_po_owner": "jdoe"},
        files={"m_quote": ("run.exe", b"MZ", "application/x-msdownload")},
        headers=AUTH,
    )
    assert response.status_code == 400
    assert "not allowed" in response.json()["error"]["message"]
    assert fake.sends == []


def test_procurement_backend_error_is_structured() -> None:
    fake = FakeImsClient(response=ImsResponse(400, '{"error": {"message": "bad supplier"}}'))
    response = _client(fake).post(
        "/api/m_Procurement_Request",
        json={"m_project": "P", "m_supplier": "S", "m_po_owner": "jdoe"},
        headers=AUTH,
    )
    body = response.json()
    assert response.status_code == 400
    assert body["error"]["status"] == 400
    assert body["error"]["message"] == "bad supplier"
    assert body["error"]["details"] == {"error": {"message": "bad supplier"}}


def test_procurement_file_upload() -> None:
    fake = FakeImsClient()
    client = _client(fake)

    missing = client.post("/api/m_Procurement_Request_Files", data={"source_id": "PR-1"}, headers=AUTH)
    assert missing.status_code == 400
    assert missing.json()["error"]["message"] == "File attachment is required"

    response = client.post(
        "/api/m_Procurement_Request_Files",
        data={"source_id": "PR-1", "description": "quote"},
        files={"file": ("q.png", b"\x89PNG", "image/png")},
        headers=AUTH,
    )
    assert response.status_code == 201
    sent = fake.sends[-1]
    assert sent["entity"] == "m_Procurement_Request_Files"
    assert sent["payload"]["source_id"] == "PR-1"
    assert sent["payload"]["description"] == "quote"
    assert sent["payload"]["file_name"] == "q.png"


def test_default_client_is_built_once_across_threads() -> None:
    with patch("apps.web.app.ImsClient") as client_cls:
        client_cls.side_effect = lambda: object()
        provider = _default_client_provider()
        with ThreadPoolExecutor(max_workers=8) as pool:
            clients = list(pool.map(lambda _: provider(), range(32)))

    assert client_cls.call_count == 1
    assert len({id(client) for client in clients}) == 1
