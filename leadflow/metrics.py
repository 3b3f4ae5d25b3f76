from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

cadence_applications_total = Counter(
    "crm_cadence_applications_total",
    "Total cadences applied to leads",
)

cadence_activities_created_total = Counter(
    "crm_cadence_activities_created_total",
    "Total activities scheduled by cadence applications",
)

lead_cadence_transitions_total = Counter(
    "crm_lead_cadence_transitions_total",
    "Lead cadence lifecycle transitions",
    ["from_status", "to_status"],
)

lead_cadence_shifted_activities_total = Counter(
    "crm_lead_cadence_shifted_activities_total",
    "Activities shifted forward on resume",
)

entity_sharing_operations_total = Counter(
    "crm_entity_sharing_operations_total",
    "Ownership and sharing operations",
    ["entity_type", "operation"],
)

lead_conversions_total = Counter(
    "crm_lead_conversions_total",
    "Leads converted into organizations",
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _normalize_route_template(path: str) -> str:
    # entity routes keep {entity_type} so the label still tells lead shares from deal shares
    return _PATH_PARAM_RE.sub(lambda m: m.group(0) if m.group(0) == "{entity_type}" else "{id}", path)


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return _normalize_route_template(path_format)
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _normalize_route_template(route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_cadence_applied(activity_count: int) -> None:
    cadence_applications_total.inc()
    if activity_count > 0:
        cadence_activities_created_total.inc(activity_count)


def observe_lead_cadence_transition(from_status: str, to_status: str) -> None:
    lead_cadence_transitions_total.labels(from_status=from_status, to_status=to_status).inc()


def observe_shifted_activities(count: int) -> None:
    if count > 0:
        lead_cadence_shifted_activities_total.inc(count)


def observe_sharing_operation(entity_type: str, operation: str) -> None:
    entity_sharing_operations_total.labels(entity_type=entity_type, operation=operation).inc()


def observe_lead_conversion() -> None:
    lead_conversions_total.inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
