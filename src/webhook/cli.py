from __future__ import annotations

import base64
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import uvicorn
import yaml
from kubernetes.config import ConfigException
from uvicorn.config import LOG_LEVELS as UVICORN_LOG_LEVELS

from src.common.config import EngineConfig
from src.common.logs import configure_logging, resolve_log_level
from src.sanitizer.guards import PatchError, apply_patch

from .engine import ROUTE_MUTATE_PSP, ROUTE_VALIDATE, ROUTES, AdmissionEngine
from .server import create_app
from .watcher import WebhookConfigWatcher

app = typer.Typer(help="Admission filter and PodSecurityPolicy hardening webhook.")

_GROUPS_HELP = 'Comma-separated API groups in scope of the filter ("*" for any).'
_RESOURCES_HELP = 'Comma-separated resources in scope of the filter ("*" for any).'
_OPERATIONS_HELP = 'Comma-separated operations/verbs in scope of the filter ("*" for any).'


@app.command()
def serve(
    groups: Optional[str] = typer.Option(None, "--groups", help=_GROUPS_HELP),
    resources: Optional[str] = typer.Option(None, "--resources", help=_RESOURCES_HELP),
    operations: Optional[str] = typer.Option(None, "--operations", help=_OPERATIONS_HELP),
    host: str = typer.Option("0.0.0.0", "--host", help="Listen address."),
    port: int = typer.Option(9443, "--port", help="Listen port number."),
    tls_cert_file: Optional[Path] = typer.Option(None, "--tls-cert-file", help="File path for TLS certificate."),
    tls_key_file: Optional[Path] = typer.Option(None, "--tls-key-file", help="File path for key of TLS certificate."),
    kubeconfig: Optional[Path] = typer.Option(
        None,
        "--kubeconfig",
        help="Path to a kubeconfig. Enables logging of ValidatingWebhookConfiguration changes.",
    ),
    debug: bool = typer.Option(False, "--debug", help="Log requested group/resource/operation."),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Python logging level (defaults to LOG_LEVEL, then INFO)."
    ),
) -> None:
    if (tls_cert_file is None) != (tls_key_file is None):
        raise typer.BadParameter("--tls-cert-file and --tls-key-file must be given together")
    for path in (tls_cert_file, tls_key_file):
        if path is not None and not path.exists():
            raise typer.BadParameter(f"TLS file not found: {path}")
    try:
        level = resolve_log_level(log_level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    uvicorn_level = logging.getLevelName(level).lower()
    if uvicorn_level not in UVICORN_LOG_LEVELS:
        raise typer.BadParameter(f"Log level {uvicorn_level.upper()} is not supported by the HTTP server")
    configure_logging(log_level)

    engine = AdmissionEngine(
        EngineConfig.from_env(groups, resources, operations, debug=True if debug else None)
    )

    if kubeconfig is not None:
        try:
            watcher = WebhookConfigWatcher(kubeconfig=str(kubeconfig))
        except (ConfigException, OSError) as exc:
            raise typer.BadParameter(f"Error building kubeconfig: {exc}") from exc
        watcher.start()

    uvicorn.run(
        create_app(engine),
        host=host,
        port=port,
        ssl_certfile=str(tls_cert_file) if tls_cert_file else None,
        ssl_keyfile=str(tls_key_file) if tls_key_file else None,
        log_level=uvicorn_level,
    )


@app.command()
def review(
    review_file: Path = typer.Option(
        ...,
        "--in",
        "-i",
        help="AdmissionReview or SubjectAccessReview file (JSON or YAML).",
    ),
    route: str = typer.Option(ROUTE_VALIDATE, "--route", "-r", help=f"One of: {', '.join(ROUTES)}."),
    groups: Optional[str] = typer.Option(None, "--groups", help=_GROUPS_HELP),
    resources: Optional[str] = typer.Option(None, "--resources", help=_RESOURCES_HELP),
    operations: Optional[str] = typer.Option(None, "--operations", help=_OPERATIONS_HELP),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Where to write the response review JSON."),
    apply: bool = typer.Option(
        False,
        "--apply",
        help="Also render the object with the returned patch applied (mutate-psp only).",
    ),
    patched_out: Optional[Path] = typer.Option(
        None,
        "--patched-out",
        help="Where to write the patched object YAML (defaults to stdout).",
    ),
) -> None:
    if route not in ROUTES:
        raise typer.BadParameter(f"Unknown route {route!r}; expected one of {', '.join(ROUTES)}")
    if apply and route != ROUTE_MUTATE_PSP:
        raise typer.BadParameter("--apply is only meaningful with --route mutate-psp")

    document = _load_document(review_file)
    engine = AdmissionEngine(EngineConfig.from_strings(groups, resources, operations))
    response = engine.handle(route, json.dumps(document).encode("utf-8"))

    rendered = json.dumps(response, indent=2)
    if out is not None:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(rendered, encoding="utf-8")
        typer.echo(f"Review response written to {out.resolve()}")
    else:
        typer.echo(rendered)

    if apply:
        patched = _patched_object(document, response)
        patched_yaml = yaml.safe_dump(patched, sort_keys=False)
        if patched_out is not None:
            patched_out.parent.mkdir(parents=True, exist_ok=True)
            patched_out.write_text(patched_yaml, encoding="utf-8")
        else:
            typer.echo(patched_yaml)


def _load_document(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise typer.BadParameter(f"Review file not found: {path}") from exc
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise typer.BadParameter(f"Review file is not valid JSON or YAML: {exc}") from exc


def _patched_object(document: Any, response: Dict[str, Any]) -> Dict[str, Any]:
    request = document.get("request") if isinstance(document, dict) else None
    obj = request.get("object") if isinstance(request, dict) else None
    if not isinstance(obj, dict):
        raise typer.BadParameter("Review has no request.object to patch")
    encoded = response.get("response", {}).get("patch")
    ops: List[Dict[str, Any]] = []
    if encoded:
        ops = json.loads(base64.b64decode(encoded))
    try:
        return apply_patch(obj, ops)
    except PatchError as exc:
        raise typer.BadParameter(f"Patch does not apply to the object: {exc}") from exc


if __name__ == "__main__":  # pragma: no cover
    app()
