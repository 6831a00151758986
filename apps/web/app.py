"""FastAPI application proxying the procurement UI to the IMS backend."""
from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from fastapi import Body, FastAPI, Header, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, StrictFloat, StrictInt, ValidationError
from starlette.datastructures import UploadFile

from packages.ims_client import (
    DEFAULT_PREFER,
    ImsClient,
    ImsClientError,
    ImsHttpError,
    ImsPayloadError,
    ImsResponse,
)
from services.parts import PartsService, collect_field_params
from services.procurement import Attachment, AttachmentError, ProcurementService, validate_request_fields

from .config import AppConfig, load_config

ClientProvider = Callable[[], Optional[ImsClient]]

BEARER_PREFIX = "Bearer "
MINIMAL_PREFER = "return=minimal"
FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")
LOGIN_REQUIRED = "Missing or invalid access token. Please log in."
MISSING_AUTH_HEADER = "Missing Authorization header"
NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
}


class SpareValueUpdate(BaseModel):
    spare_value: Union[StrictInt, StrictFloat] = None  # type: ignore[assignment]
    bulk_order: Any = None

    def changes(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in ("spare_value", "bulk_order") if name in self.model_fields_set}


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _structured_error(status: int, message: str, details: Any = None) -> JSONResponse:
    error: Dict[str, Any] = {"status": status, "message": message}
    if details is not None:
        error["details"] = details
    error["timestamp"] = _timestamp()
    return JSONResponse({"error": error}, status_code=status)


def _location_headers(response: ImsResponse) -> Dict[str, str]:
    location = response.location
    return {"Location": location} if location else {}


def odata_write_response(response: ImsResponse, prefer: str) -> Response:
    """Translate a backend write response for procurement endpoints."""

    headers = _location_headers(response)
    if prefer == MINIMAL_PREFER and response.status_code == 204:
        return Response(status_code=204, headers=headers)
    if response.status_code in (200, 201):
        return JSONResponse(response.json(), status_code=response.status_code, headers=headers)
    try:
        error_data = response.json()
    except ImsPayloadError:
        error_data = {"error": {"message": response.text}}
    message = "Unknown OData error"
    if isinstance(error_data, Mapping) and isinstance(error_data.get("error"), Mapping):
        message = error_data["error"].get("message") or message
    return _structured_error(response.status_code, message, error_data)


def create_app(
    *,
    client_provider: ClientProvider | None = None,
    config: AppConfig | None = None,
    logger: logging.Logger | None = None,
) -> FastAPI:
    """Construct the FastAPI application."""

    app_logger = logger or logging.getLogger("procureflow.web")
    app_config = config or load_config()
    provider = client_provider or _default_client_provider()
    field_config = app_config.parts.field_config()

    def _client() -> ImsClient:
        client = provider()
        if client is None:
            raise ImsClientError("IMS client is not configured")
        return client

    def _parts() -> PartsService:
        return PartsService(_client(), config=field_config, logger=logging.getLogger("procureflow.parts"))

    def _procurement() -> ProcurementService:
        return ProcurementService(
            _client(), config=app_config.procurement, logger=logging.getLogger("procureflow.procurement")
        )

    def _failure(exc: Exception, prefix: str = "Internal server error") -> JSONResponse:
        if isinstance(exc, ImsHttpError):
            return JSONResponse({"error": exc.body}, status_code=exc.status_code)
        if isinstance(exc, ImsPayloadError):
            app_logger.error("IMS returned an unparseable body")
            return JSONResponse({"error": "Failed to parse IMS response", "details": exc.text}, status_code=500)
        app_logger.exception("%s", prefix)
        return JSONResponse({"error": f"{prefix}: {exc}"}, status_code=500)

    app = FastAPI(title="ProcureFlow API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(app_config.allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        app_logger.error("Unhandled application error on %s", request.url.path, exc_info=exc)
        return JSONResponse({"error": f"Internal server error: {exc}"}, status_code=500)

    @app.get("/", response_class=JSONResponse)
    def index() -> dict[str, object]:
        return {
            "app": "ProcureFlow API",
            "status": "ok",
            "links": {
                "health": "/api/health",
                "parts": "/api/parts",
                "parts_client_side": "/api/parts-client-side",
                "parts_bulk_order": "/api/parts/bulk-order",
                "projects": "/api/projects",
                "suppliers": "/api/suppliers",
                "orders": "/api/orders",
                "workflow_processes": "/api/workflow-processes",
                "workflow_process_activities": "/api/workflow-process-activities",
                "procurement_request": "/api/m_Procurement_Request",
                "procurement_request_files": "/api/m_Procurement_Request_Files",
            },
        }

    @app.get("/api/health", response_class=JSONResponse)
    def health() -> dict[str, object]:
        return {"status": "ok", "timestamp": int(time.time() * 1000)}

    # Parts ----------------------------------------------------------------------
    @app.get("/api/parts", response_class=JSONResponse)
    def parts(
        request: Request,
        search: Optional[str] = Query(None),
        logical_operator: Optional[str] = Query(None, alias="logicalOperator"),
        authorization: Optional[str] = Header(None),
    ):
        token = bearer_token(authorization)
        if not token:
            return JSONResponse({"error": LOGIN_REQUIRED}, status_code=401)
        field_params = collect_field_params(request.query_params.multi_items())
        try:
            results = _parts().list_parts(token, field_params, search=search, logical_operator=logical_operator)
        except Exception as exc:
            return _failure(exc)
        return {"value": results}

    @app.get("/api/parts-client-side", response_class=JSONResponse)
    def parts_client_side(
        search: Optional[str] = Query(None),
        authorization: Optional[str] = Header(None),
    ):
        token = bearer_token(authorization)
        if not token:
            return JSONResponse({"error": LOGIN_REQUIRED}, status_code=401)
        try:
            results = _parts().list_parts_client_side(token, search=search)
        except Exception as exc:
            return _failure(exc)
        return {"value": results}

    @app.get("/api/parts/bulk-order", response_class=JSONResponse)
    def parts_bulk_order(authorization: Optional[str] = Header(None)):
        token = bearer_token(authorization)
        if not token:
            return JSONResponse({"error": LOGIN_REQUIRED}, status_code=401)
        try:
            results = _parts().list_bulk_order_parts(token)
        except Exception as exc:
            return _failure(exc)
        return {"value": results}

    @app.post("/api/m_Inventory")
    def create_inventory(
        payload: Optional[Dict[str, Any]] = Body(None),
        authorization: Optional[str] = Header(None),
        prefer: Optional[str] = Header(None),
    ):
        prefer_value = prefer or DEFAULT_PREFER
        try:
            response = _parts().create_inventory(bearer_token(authorization), payload or {}, prefer=prefer_value)
            headers = _location_headers(response)
            if prefer_value == MINIMAL_PREFER and response.status_code == 204:
                return Response(status_code=204, headers=headers)
            if response.status_code == 201:
                return JSONResponse(response.json(), status_code=201, headers=headers)
        except Exception as exc:
            return _failure(exc, "Failed to add new inventory part")
        app_logger.error("IMS rejected new inventory item with status %s", response.status_code)
        return Response(content=response.text, status_code=response.status_code)

    @app.patch("/api/m_Instance/{instance_id}/spare-value")
    def update_spare_value(
        instance_id: str,
        payload: Optional[Dict[str, Any]] = Body(None),
        authorization: Optional[str] = Header(None),
        prefer: Optional[str] = Header(None),
    ):
        try:
            update = SpareValueUpdate.model_validate(payload or {})
        except ValidationError:
            return JSONResponse({"error": "spare_value must be a number"}, status_code=400)
        changes = update.changes()
        if not changes:
            return JSONResponse({"error": "No valid fields to update (spare_value, bulk_order)"}, status_code=400)
        try:
            response = _parts().update_instance(
                instance_id, bearer_token(authorization), changes, prefer=prefer or DEFAULT_PREFER
            )
            if not response.ok:
                return JSONResponse({"error": response.text}, status_code=response.status_code)
            headers = _location_headers(response)
            if response.status_code == 204:
                return Response(status_code=204, headers=headers)
            return JSONResponse(response.json(), headers=headers)
        except Exception as exc:
            return _failure(exc, "Failed to update instance in IMS")

    # Pick lists -----------------------------------------------------------------
    @app.get("/api/projects", response_class=JSONResponse)
    def projects(authorization: Optional[str] = Header(None)):
        token = bearer_token(authorization)
        if not token:
            return JSONResponse({"error": LOGIN_REQUIRED}, status_code=401)
        try:
            return {"value": _procurement().list_projects(token)}
        except Exception as exc:
            return _failure(exc)

    @app.get("/api/suppliers", response_class=JSONResponse)
    def suppliers(authorization: Optional[str] = Header(None)):
        token = bearer_token(authorization)
        if not token:
            return JSONResponse({"error": LOGIN_REQUIRED}, status_code=401)
        try:
            return {"value": _procurement().list_suppliers(token)}
        except Exception as exc:
            return _failure(exc)

    # Orders ---------------------------------------------------------------------
    @app.get("/api/orders", response_class=JSONResponse)
    def orders(
        search: Optional[str] = Query(None),
        field: Optional[str] = Query(None),
        authorization: Optional[str] = Header(None),
    ):
        token = bearer_token(authorization)
        if not token:
            return JSONResponse({"error": MISSING_AUTH_HEADER}, status_code=400, headers=NO_CACHE_HEADERS)
        try:
            result = _procurement().list_orders(token, search=search, field=field)
        except Exception as exc:
            failure = _failure(exc, "Failed to fetch orders")
            failure.headers.update(NO_CACHE_HEADERS)
            return failure
        return JSONResponse(result, headers=NO_CACHE_HEADERS)

    @app.get("/api/workflow-processes", response_class=JSONResponse)
    def workflow_processes(
        order_item_number: Optional[str] = Query(None, alias="orderItemNumber"),
        authorization: Optional[str] = Header(None),
    ):
        token = bearer_token(authorization)
        if not token:
            return JSONResponse({"error": MISSING_AUTH_HEADER}, status_code=400)
        try:
            process = _procurement().latest_workflow_process(token, order_item_number)
        except Exception as exc:
            return _failure(exc, "Failed to fetch workflow processes")
        return {"workflowProcess": process}

    @app.get("/api/workflow-process-activities", response_class=JSONResponse)
    def workflow_process_activities(
        workflow_process_id: Optional[str] = Query(None, alias="workflowProcessId"),
        authorization: Optional[str] = Header(None),
    ):
        token = bearer_token(authorization)
        if not token:
            return JSONResponse({"error": MISSING_AUTH_HEADER}, status_code=400)
        try:
            activity = _procurement().latest_workflow_activity(token, workflow_process_id)
        except Exception as exc:
            return _failure(exc, "Failed to fetch workflow process activities")
        return {"workflowProcessActivity": activity}

    # Procurement requests -------------------------------------------------------
    @app.post("/api/m_Procurement_Request")
    async def create_procurement_request(request: Request):
        token = bearer_token(request.headers.get("authorization"))
        if not token:
            return _structured_error(401, "Authorization token required")
        prefer_value = request.headers.get("prefer") or DEFAULT_PREFER
        body, attachment = await _read_submission(request, "m_quote")
        app_logger.info(
            "Incoming procurement request (%s)", "multipart" if attachment is not None else "JSON"
        )
        problem = validate_request_fields(body)
        if problem:
            return _structured_error(400, problem)
        try:
            response = await run_in_threadpool(
                _procurement().create_request, token, body, attachment=attachment, prefer=prefer_value
            )
            return odata_write_response(response, prefer_value)
        except AttachmentError as exc:
            return _structured_error(400, str(exc))
        except ImsPayloadError as exc:
            return _structured_error(500, "Failed to parse IMS response", exc.text)
        except Exception as exc:
            app_logger.exception("Failed to create procurement request")
            return _structured_error(500, "Failed to create procurement request", str(exc))

    @app.post("/api/m_Procurement_Request_Files")
    async def upload_procurement_file(request: Request):
        token = bearer_token(request.headers.get("authorization"))
        if not token:
            return _structured_error(401, "Authorization token required")
        prefer_value = request.headers.get("prefer") or DEFAULT_PREFER
        metadata, attachment = await _read_submission(request, "file")
        source_id = metadata.pop("source_id", None)
        if not source_id:
            return _structured_error(400, "source_id is required")
        if attachment is None:
            return _structured_error(400, "File attachment is required")
        try:
            response = await run_in_threadpool(
                _procurement().upload_file, token, str(source_id), attachment, metadata=metadata, prefer=prefer_value
            )
            return odata_write_response(response, prefer_value)
        except AttachmentError as exc:
            return _structured_error(400, str(exc))
        except ImsPayloadError as exc:
            return _structured_error(500, "Failed to parse IMS response", exc.text)
        except Exception as exc:
            app_logger.exception("Failed to upload procurement request file")
            return _structured_error(500, "Failed to upload procurement request file", str(exc))

    return app


async def _read_submission(request: Request, file_field: str) -> Tuple[Dict[str, Any], Optional[Attachment]]:
    """Return form fields and the optional uploaded file for JSON or multipart bodies."""

    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        fields: Dict[str, Any] = {}
        attachment: Optional[Attachment] = None
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key == file_field and attachment is None:
                    attachment = Attachment(
                        filename=value.filename or "upload",
                        content_type=value.content_type or "application/octet-stream",
                        data=await value.read(),
                    )
                continue
            fields[key] = value
        return fields, attachment
    raw = await request.body()
    if not raw:
        return {}, None
    try:
        body = await request.json()
    except ValueError:
        return {}, None
    return (dict(body) if isinstance(body, Mapping) else {}), None


def _default_client_provider() -> ClientProvider:
    cache: Dict[str, ImsClient] = {}
    lock = threading.Lock()

    def _provide() -> Optional[ImsClient]:
        with lock:
            if "client" not in cache:
                cache["client"] = ImsClient()
            return cache["client"]

    return _provide


__all__ = ["ClientProvider", "bearer_token", "create_app", "odata_write_response"]
