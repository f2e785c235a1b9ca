"""Archive server: wires settings, storage, committer and intake together.

Run with:
    shiplog-archive

or, with any ASGI server:
    uvicorn shiplog.server:create_app --factory
"""

import logging

import uvicorn

from shiplog.adapters.frameworks.asgi import ASGIApp, create_asgi_app
from shiplog.adapters.logging import configure_logging
from shiplog.adapters.storage import InMemoryBlobStorage, S3BlobStorage, SQLiteBlobStorage
from shiplog.adapters.storage.s3 import new_session
from shiplog.config import ArchiveSettings
from shiplog.core.committer import BlobCommitter
from shiplog.core.intake import IntakeService
from shiplog.core.ports import BlobStoragePort

logger = logging.getLogger(__name__)


def build_storage(settings: ArchiveSettings) -> BlobStoragePort:
    """Create the blob storage adapter selected by settings.

    Raises:
        RuntimeError: If the s3 backend is selected but aioboto3 is missing.
    """
    if settings.storage_backend == "memory":
        return InMemoryBlobStorage()
    if settings.storage_backend == "sqlite":
        return SQLiteBlobStorage(settings.sqlite_path)
    return S3BlobStorage(
        endpoint_url=settings.s3_endpoint_url,
        region=settings.s3_region,
        session=new_session(),
    )


def build_intake(settings: ArchiveSettings, storage: BlobStoragePort) -> IntakeService:
    """Create the intake with one accumulator per configured category."""
    committer = BlobCommitter(storage, settings.bucket)
    return IntakeService.create(
        settings.categories,
        committer.commit,
        delay_threshold=settings.delay_threshold,
        byte_threshold=settings.byte_threshold,
        buffered_byte_limit=settings.buffered_byte_limit,
        handler_timeout=settings.commit_timeout,
    )


def create_app(
    settings: ArchiveSettings | None = None,
    storage: BlobStoragePort | None = None,
) -> ASGIApp:
    """Create the archive ASGI app.

    Args:
        settings: Archive settings; read from the environment when omitted.
        storage: Storage adapter; built from settings when omitted.
    """
    if settings is None:
        settings = ArchiveSettings()
    if storage is None:
        storage = build_storage(settings)
    intake = build_intake(settings, storage)
    logger.info(
        "archive configured",
        extra={
            "bucket": settings.bucket,
            "storage_backend": settings.storage_backend,
            "categories": ",".join(settings.categories),
        },
    )
    return create_asgi_app(
        intake,
        max_body_size=settings.max_body_size,
        grace_period=settings.shutdown_grace,
    )


def main() -> None:
    """Console entry point: serve the archive over HTTP."""
    settings = ArchiveSettings()
    configure_logging(settings.log_level)
    app = create_app(settings)
    logger.info("listening over HTTP", extra={"bind": f"{settings.host}:{settings.port}"})
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        lifespan="on",
        log_config=None,
        timeout_graceful_shutdown=int(settings.shutdown_grace) + 1,
    )


if __name__ == "__main__":
    main()
