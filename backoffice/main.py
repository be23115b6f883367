from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from backoffice.api.customers import router as customers_router
from backoffice.api.promo_codes import router as promo_codes_router
from backoffice.errors import register_error_handlers
from backoffice.logging import configure_logging
from backoffice.observability import ObservabilityMiddleware

app = FastAPI(title="Billing back-office API")

configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(customers_router)
_include_api_router(promo_codes_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
