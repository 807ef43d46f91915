import logging
import os
from contextlib import asynccontextmanager

import uvicorn

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from starlette.middleware.cors import CORSMiddleware
from routers import auth
from routers import (employee_management, department, designation, attendance,
                     leave_management, notifications, dashboard, uploads)
from config import settings
from db import ensure_indexes
from middleware import SecurityHeadersMiddleware, RateLimitMiddleware
from utils.date_utils import utc_now

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
)

logger = logging.getLogger(__name__)

PROD_MODE = settings.PRODUCTION_MODE

upload_directory = os.path.abspath(settings.UPLOAD_DIR)
os.makedirs(upload_directory, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await ensure_indexes()
    logger.info("Connected to MongoDB database %s", settings.DATABASE_NAME)
    yield


app = FastAPI(title=settings.PROJECT_TITLE, lifespan=lifespan)

app.mount("/uploads", StaticFiles(directory=upload_directory), name="uploads")

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(employee_management.router, prefix="/employees", tags=["employees"])
app.include_router(department.router, prefix="/departments", tags=["departments"])
app.include_router(designation.router, prefix="/designations", tags=["designations"])
app.include_router(attendance.router, prefix="/attendance", tags=["attendance"])
app.include_router(leave_management.router, prefix="/leaves", tags=["leaves"])
app.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
app.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
app.include_router(uploads.router, prefix="/upload", tags=["uploads"])

allowed_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.CLIENT_URL:
    allowed_origins.append(settings.CLIENT_URL)

# Middleware
app.add_middleware(SecurityHeadersMiddleware, production=PROD_MODE)
if PROD_MODE:
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.RATE_LIMIT_REQUESTS,
        window_size=settings.RATE_LIMIT_WINDOW_SECONDS,
    )
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check():
    return {"status": "ok", "timestamp": utc_now()}


if __name__ == "__main__":
    if PROD_MODE == True:
        # Run Uvicorn without reload in production
        uvicorn.run("main:app", host="0.0.0.0", port=11000, reload=False)

    else:
        # Run Uvicorn with reload=True in development mode
        uvicorn.run("main:app", host="0.0.0.0", port=11000, reload=True)
