from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn
import logging

from imagehoster.storage.dynamodb import DynamoDBService
from imagehoster.storage.s3 import S3Service
from imagehoster.settings import settings
from imagehoster.routers.image_service import router as image_router
from imagehoster.exceptions import add_exception_handlers

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("image-hoster")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
        Async context manager for FastAPI application lifecycle events.
        Opens the payload bucket and the metadata tables, and closes both on shutdown.
    """
    app.state.s3 = S3Service()
    app.state.db = DynamoDBService()
    log.info("Storage ready: bucket %s, tables %s", settings.s3_bucket, ", ".join(app.state.db.table_names.values()))
    yield
    app.state.s3.close()
    app.state.db.close()

# Initialize App
app = FastAPI(
    title=settings.app_title,
    lifespan=lifespan,
    description="Image sharing service with tags, comments and per-owner editing",
    root_path = "/api/v1"
)

# Add exception handlers
add_exception_handlers(app)

# CORS - Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add the routers
app.include_router(image_router)

# Check Health
@app.get("/")
def read_root():
    """
        Default end point

    """
    return "Image Hoster is running."

if __name__ == "__main__":
    uvicorn.run("imagehoster.main:app", host="0.0.0.0", port=8000, reload=True)
