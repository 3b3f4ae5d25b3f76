from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from leadflow.api.routes import router as api_router
from leadflow.core.config import get_settings
from leadflow.core.events import InternalEvent, event_bus
from leadflow.events import REVALIDATE_EVENT
from leadflow.logging import configure_logging
from leadflow.middleware.correlation_id import CorrelationIdMiddleware
from leadflow.middleware.request_logging import RequestLoggingMiddleware
from leadflow.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("leadflow.lifecycle")
_subscriptions_registered = False


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"event_name": event.name})


def _on_revalidate(event: InternalEvent) -> None:
    paths = event.payload.get("payload", {}).get("paths", [])
    logger.debug("ui.revalidate", extra={"event_name": event.name, "paths": paths})


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _subscriptions_registered
    if not _subscriptions_registered:
        event_bus.subscribe("system.started", _on_system_started)
        event_bus.subscribe(REVALIDATE_EVENT, _on_revalidate)
        _subscriptions_registered = True
    event_bus.publish("system.started", {"service": "leadflow"})
    yield


settings = get_settings()

app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)

if settings.otel_enabled:
    setup_otel("leadflow", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
