import uuid

from fastapi import FastAPI, Request
import structlog
from prometheus_fastapi_instrumentator import Instrumentator

from mediashop.version import VERSION
from mediashop.api import routes_admin, routes_library, routes_orders, routes_payments
from mediashop.core.errors import install_error_handlers
from mediashop.core.logging import configure_logging, get_logger
from mediashop.kafka import producer

configure_logging()
log = get_logger("main")

# Create instrumentator first
instrumentator = Instrumentator()

app = FastAPI(title="Mediashop Commerce Service", version=VERSION)

# Instrument the app BEFORE adding routes or middleware
instrumentator.instrument(app).expose(
    app,
    include_in_schema=False,
    endpoint="/metrics",
    should_gzip=True,
)

install_error_handlers(app)

@app.middleware("http")
async def bind_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

# Health endpoints
@app.get("/health")
def health():
    return {"status": "ok"}

@app.get("/v1/_info")
def info():
    return {"service": "mediashop", "version": VERSION}

@app.on_event("startup")
async def startup_event():
    for route in app.routes:
        if hasattr(route, "methods") and hasattr(route, "path"):
            log.debug("route", methods=sorted(route.methods), path=route.path)
    log.info("startup", version=VERSION)

@app.on_event("shutdown")
async def shutdown_event():
    producer.close()

# Include routers
app.include_router(routes_orders.router, prefix="/v1", tags=["orders"])
app.include_router(routes_payments.router, prefix="/v1", tags=["payments"])
app.include_router(routes_library.router, prefix="/v1", tags=["library"])
app.include_router(routes_admin.router, prefix="/v1/admin", tags=["admin"])
