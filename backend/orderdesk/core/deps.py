"""FastAPI dependencies exposing the offline runtime and its services."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from orderdesk.runtime import OfflineRuntime


def get_runtime(request: Request) -> OfflineRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Offline runtime is not started.",
        )
    return runtime


RuntimeDep = Annotated[OfflineRuntime, Depends(get_runtime)]
