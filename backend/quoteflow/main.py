import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quoteflow.core.config import settings
from quoteflow.core.exceptions import InvoicingError
from quoteflow.routers import invoices, payments, webhook_endpoints

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {
        "name": "Invoices",
        "description": "Master invoices, child invoice splits, and invoice lifecycle.",
    },
    {"name": "Payments", "description": "Apply and remove payments against invoices."},
    {"name": "Webhooks", "description": "Manage webhook endpoints and monitor deliveries."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Partial invoicing API. Split master invoices into prorated child "
        "invoices against tracked remaining quantities and record payments "
        "with overpayment protection."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count", "Idempotency-Replayed"],
)


@app.exception_handler(InvoicingError)
async def invoicing_error_handler(request: Request, exc: InvoicingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(invoices.router, prefix="/v1/invoices", tags=["Invoices"])
app.include_router(payments.router, prefix="/v1/payments", tags=["Payments"])
app.include_router(
    webhook_endpoints.router,
    prefix="/v1/webhook_endpoints",
    tags=["Webhooks"],
)


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }
