"""
API Routes
===========
REST endpoints for the dashboard: connection control, buffer reads and
the AI coach.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter()


class ConnectRequest(BaseModel):
    source: Literal["synthetic", "serial"] = "synthetic"
    port: Optional[str] = None
    seed: Optional[int] = None


def _pipeline(request: Request):
    return request.app.state.pipeline


@router.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "NeuroFlow API"}


@router.get("/status")
async def get_status(request: Request):
    """Connection state, latest reading, stress level and advice state."""
    status = _pipeline(request).get_status()
    status["ws_clients"] = request.app.state.ws_manager.client_count
    return status


@router.get("/snapshot")
async def get_snapshot(request: Request):
    """Rolling window contents, oldest first."""
    points = [p.to_dict() for p in _pipeline(request).get_snapshot()]
    return {"data": points, "count": len(points)}


@router.get("/latest")
async def get_latest(request: Request):
    latest = _pipeline(request).get_latest_point()
    return {"data": latest.to_dict() if latest else None}


@router.post("/connect")
async def connect(request: Request, body: Optional[ConnectRequest] = None):
    body = body or ConnectRequest()
    pipeline = _pipeline(request)
    if body.source == "serial":
        kwargs = {}
        serial_factory = getattr(request.app.state, "serial_factory", None)
        if serial_factory is not None:
            kwargs["serial_factory"] = serial_factory
        pipeline.connect_serial(port=body.port, **kwargs)
    else:
        pipeline.connect_synthetic(seed=body.seed)
    return {"state": pipeline.get_connection_state().value, "error": pipeline.last_error}


@router.post("/disconnect")
async def disconnect(request: Request):
    state = _pipeline(request).disconnect()
    return {"state": state.value}


@router.get("/advice")
async def get_advice(request: Request):
    return _pipeline(request).get_advice_state().model_dump()


@router.post("/advice")
async def request_advice(request: Request):
    """Manual 'Analyze Now'. Obeys the in-flight and minimum-sample gates only."""
    decision = _pipeline(request).request_advice_now()
    return {"fired": decision.fire, "reason": decision.reason}


@router.get("/stats")
async def get_stats(request: Request):
    return _pipeline(request).get_stats()
