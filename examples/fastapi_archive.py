"""Example FastAPI application hosting the archive intake.

Run with:
    uvicorn examples.fastapi_archive:app --reload

Endpoints:
    PUT /upload/{category}/{stream_id}  - Accept shipped log chunks
    GET /healthz                        - Plain OK

Batches are kept in memory here; set SHIPLOG_ARCHIVE_STORAGE_BACKEND=sqlite
or s3 to store them somewhere durable.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from shiplog.adapters.frameworks.fastapi import create_intake_router
from shiplog.config import ArchiveSettings
from shiplog.server import build_intake, build_storage

settings = ArchiveSettings(storage_backend="memory", delay_threshold=10.0)
intake = build_intake(settings, build_storage(settings))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # Commit whatever is still buffered before the process exits
    await intake.close(settings.shutdown_grace)


app = FastAPI(title="Log Archive Example", lifespan=lifespan)
app.include_router(create_intake_router(intake, max_body_size=settings.max_body_size))
