"""FastAPI adapter for the archive's intake endpoint."""

from fastapi import APIRouter, HTTPException, Request, Response

from shiplog.adapters.frameworks.asgi import DEFAULT_MAX_BODY_SIZE
from shiplog.core.errors import (
    AccumulatorClosedError,
    OversizedEntryError,
    SerializationError,
    UnknownCategoryError,
)
from shiplog.core.intake import IntakeService


def create_intake_router(
    intake: IntakeService,
    max_body_size: int = DEFAULT_MAX_BODY_SIZE,
) -> APIRouter:
    """Create a FastAPI router with /upload and /healthz endpoints.

    The application owns the intake's lifecycle and should call
    ``intake.close()`` from its lifespan shutdown.

    Args:
        intake: Service the uploads are submitted to.
        max_body_size: Largest accepted request body in bytes.

    Returns:
        APIRouter with the intake endpoints configured.
    """
    router = APIRouter()

    @router.get("/healthz")
    async def healthz() -> Response:
        """Return a plain OK."""
        return Response(content="OK\n", media_type="text/plain")

    @router.put("/upload/{category}/{stream_id}")
    async def upload(category: str, stream_id: str, request: Request) -> Response:
        """Accept one shipped payload for category and stream_id."""
        if not intake.accepts(category):
            raise HTTPException(status_code=404, detail="unknown category")

        declared = request.headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > max_body_size:
            raise HTTPException(status_code=413, detail="request body too large")

        body = bytearray()
        async for chunk in request.stream():
            body.extend(chunk)
            if len(body) > max_body_size:
                raise HTTPException(status_code=413, detail="request body too large")

        try:
            await intake.submit(category, stream_id, bytes(body))
        except UnknownCategoryError as e:
            raise HTTPException(status_code=404, detail="unknown category") from e
        except OversizedEntryError as e:
            raise HTTPException(status_code=413, detail="entry too large") from e
        except SerializationError as e:
            raise HTTPException(status_code=400, detail="can't serialize entry") from e
        except AccumulatorClosedError as e:
            raise HTTPException(status_code=503, detail="shutting down") from e

        return Response(status_code=200)

    return router
