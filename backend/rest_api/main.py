"""
REST API main application.
Entry point for the FastAPI REST server.
"""

from fastapi import FastAPI

from rest_api.core import configure_cors, lifespan, register_middlewares
from rest_api.routers import approvals_router, audit_router, health_router, orders_router
from shared.config.settings import settings


app = FastAPI(
    title="Hospitality Order Workflow API",
    description="Orders, manager approvals and the audit trail",
    version="0.1.0",
    lifespan=lifespan,
)

register_middlewares(app)
configure_cors(app)

app.include_router(health_router)
app.include_router(orders_router)
app.include_router(approvals_router)
app.include_router(audit_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rest_api.main:app",
        host="0.0.0.0",
        port=settings.rest_api_port,
        reload=True,
    )
