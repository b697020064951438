# backend/backoffice/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from backoffice.core.config import settings
from backoffice.core.init_db import init_db
from backoffice.api import customers, materials, orders, products, reports, sales

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Back-office API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup():
    await init_db()
    logger.info("Back-office API started")


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Database error, please retry later"})


app.include_router(customers.router)
app.include_router(materials.router)
app.include_router(products.router)
app.include_router(sales.router)
app.include_router(orders.router)
app.include_router(reports.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
