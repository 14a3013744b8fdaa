"""
api/routes/files.py -- GET /secret, raw file bytes from FILES_ROOT.

All path validation lives in ResourceGateway; this handler only moves the
query parameter in and the bytes out. A missing ?file= is treated as an empty
path and rejected with 400 like any other invalid path.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from api.dependencies import request_deadline
from core.deadline import Deadline, run_with_deadline
from resources.gateway import ResourceGateway

router = APIRouter()


@router.get("/secret")
async def fetch_file(request: Request, file: str = "", deadline: Deadline = Depends(request_deadline)) -> Response:
    gateway: ResourceGateway = request.app.state.gateway
    data = await run_with_deadline(deadline, gateway.fetch, file, deadline=deadline)
    return Response(content=data, media_type="application/octet-stream")
