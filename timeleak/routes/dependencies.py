"""FastAPI dependencies shared by the routers."""

from fastapi import HTTPException, Request, status

from timeleak.runtime import SyncRuntime


def get_runtime(request: Request) -> SyncRuntime:
    """The runtime built by the app lifespan."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not initialized"
        )
    return runtime
