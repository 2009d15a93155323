"""
The import_app saga: uploadFile -> validateAppIdentifier -> importApp.

Steps run strictly in order and stop at the first failure. There is no
compensating action: when importApp fails after a successful upload, the
backend is left holding an uploaded but unimported artifact. The failure
details report how far the saga got so the caller can decide what to do;
the saga is never retried as a whole.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from apps_broker.file_selector import FileSelector, ImportFileNotFoundError
from apps_broker.gateways import AppsGateway
from apps_broker.handlers import parse_params
from apps_broker.identifiers import generate_identifier
from apps_broker.models import ErrorCode, Failure, Outcome, Success, ToolRequest, UpstreamResponse
from apps_broker.params import ImportAppParams, is_blank

logger = logging.getLogger(__name__)

REQUIRED_UPLOAD_FIELDS = ("appName", "appIdentifier", "appUuid")


def _as_map(body: Any) -> dict[str, Any]:
    return body if isinstance(body, dict) else {}


def _as_str(value: Any) -> str | None:
    return None if value is None else str(value)


@dataclass(frozen=True, slots=True)
class ConflictDecision:
    exists: bool
    new_identifier: str | None = None
    new_name: str | None = None


def decide_conflict(
    validate_body: dict[str, Any],
    uploaded: dict[str, Any],
    requested_identifier: str | None,
    requested_name: str | None,
) -> ConflictDecision:
    """Work out whether the uploaded app clashes with an existing one, and how to rename it."""
    exists = not is_blank(_as_str(validate_body.get("existAppName"))) or (
        validate_body.get("allowMerge") is True
    )
    if not exists:
        return ConflictDecision(exists=False)

    uploaded_identifier = _as_str(uploaded.get("appIdentifier"))
    if is_blank(requested_identifier):
        new_identifier = generate_identifier(exclude=uploaded_identifier)
    else:
        new_identifier = requested_identifier.strip().upper()

    if is_blank(requested_name):
        new_name = f"{_as_str(uploaded.get('appName'))} (Imported)"
    else:
        new_name = requested_name.strip()
    return ConflictDecision(exists=True, new_identifier=new_identifier, new_name=new_name)


def build_import_payload(upload_body: dict[str, Any], decision: ConflictDecision) -> dict[str, Any]:
    """Copy the full upload body (importApp needs its nested fields) and apply renames."""
    payload = dict(upload_body)
    if decision.exists:
        payload["replaceAppIdentifier"] = True
        payload["newAppIdentifier"] = decision.new_identifier
        payload["newAppName"] = decision.new_name
    return payload


def _upload_summary(upload_body: dict[str, Any]) -> dict[str, Any]:
    return {
        "appName": _as_str(upload_body.get("appName")),
        "appIdentifier": _as_str(upload_body.get("appIdentifier")),
        "appUuid": _as_str(upload_body.get("appUuid")),
        "version": _as_str(upload_body.get("version")),
    }


class ImportOrchestrator:
    """Run the import saga for a single tool call."""

    def __init__(self, apps_gateway: AppsGateway, file_selector: FileSelector) -> None:
        self._apps = apps_gateway
        self._files = file_selector

    async def __call__(self, request: ToolRequest, client_id: str | None = None) -> Outcome:
        params = parse_params(ImportAppParams, request)
        if isinstance(params, Failure):
            return params
        if is_blank(params.app_name):
            return Failure.of(request, ErrorCode.VALIDATION_FAILED, "appName is required")
        if is_blank(params.session_token):
            return Failure.of(request, ErrorCode.VALIDATION_FAILED, "Missing sessionToken")

        try:
            selected = self._files.resolve_newest_file(params.app_name.strip())
        except ImportFileNotFoundError as exc:
            return Failure.of(
                request,
                ErrorCode.NOT_FOUND,
                str(exc),
                {"importAppsDir": str(self._files.root), "appName": params.app_name},
            )

        try:
            return await self._run(request, params, selected)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to import app")
            return Failure.of(request, ErrorCode.INTERNAL_ERROR, str(exc))

    async def _run(self, request: ToolRequest, params: ImportAppParams, selected: Path) -> Outcome:
        token = params.session_token
        logger.info("Importing app", extra={"app_name": params.app_name, "file": str(selected)})

        upload = await self._apps.upload_import_file(selected, token)
        if not upload.ok:
            return _step_failed(request, "uploadFile failed", upload)

        upload_body = _as_map(upload.body)
        missing = [name for name in REQUIRED_UPLOAD_FIELDS if is_blank(_as_str(upload_body.get(name)))]
        if missing:
            return Failure.of(
                request,
                ErrorCode.UPSTREAM_ERROR,
                "uploadFile response missing required fields",
                {"missing": missing, "uploadBody": upload_body},
            )

        validate = await self._apps.validate_app_identifier(
            {name: _as_str(upload_body[name]) for name in REQUIRED_UPLOAD_FIELDS},
            token,
        )
        if not validate.ok:
            return _step_failed(request, "validateAppIdentifier failed", validate)

        validate_body = _as_map(validate.body)
        decision = decide_conflict(
            validate_body, upload_body, params.new_app_identifier, params.new_app_name
        )
        payload = build_import_payload(upload_body, decision)

        imported = await self._apps.import_app(payload, token)
        if not imported.ok:
            # The upload already happened; report it so the caller knows what was left behind.
            return _step_failed(
                request,
                "importApp failed",
                imported,
                selectedFile=str(selected),
                uploaded=_upload_summary(upload_body),
            )

        import_body = _as_map(imported.body)
        result: dict[str, Any] = {
            "message": "imported_with_conflict_resolution" if decision.exists else "imported",
            "selectedFile": str(selected),
            "uploaded": _upload_summary(upload_body),
            "validate": {
                "isValid": validate_body.get("isValid"),
                "existAppName": validate_body.get("existAppName"),
                "allowMerge": validate_body.get("allowMerge"),
            },
            "import": (
                {"returnValue": import_body.get("returnValue")}
                if import_body
                else {"body": imported.body_or_empty()}
            ),
            "conflictResolution": {
                "exists": decision.exists,
                "requestedNewAppIdentifier": params.new_app_identifier or "",
                "requestedNewAppName": params.new_app_name or "",
            },
        }
        if decision.exists:
            result["importedAs"] = {
                "newAppName": decision.new_name,
                "newAppIdentifier": decision.new_identifier,
            }
        if params.debug:
            result["debugUpstream"] = {
                "uploadFile": {"status_code": upload.status_code, "body": upload_body},
                "validateAppIdentifier": {"status_code": validate.status_code, "body": validate_body},
                "importApp": {"status_code": imported.status_code, "body": imported.body},
            }

        logger.info(
            "App imported",
            extra={"app_name": params.app_name, "conflict": decision.exists},
        )
        return Success(request.id, result)


def _step_failed(
    request: ToolRequest,
    message: str,
    response: UpstreamResponse,
    **partial: Any,
) -> Failure:
    logger.warning("%s (status=%s)", message, response.status_code)
    return Failure.of(
        request,
        ErrorCode.UPSTREAM_ERROR,
        message,
        {**response.summary(), **partial},
    )
