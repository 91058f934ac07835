"""
NeuroFlow API Server
=====================
FastAPI server exposing the biometric pipeline to the browser dashboard.

Usage:
    neuroflow                               # synthetic sensor on demand
    neuroflow --autoconnect synthetic       # start streaming immediately
    neuroflow --autoconnect serial --serial-port /dev/ttyUSB0
"""

import argparse
import json
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from neuroflow.api.routes import router
from neuroflow.api.ws_handler import ConnectionManager
from neuroflow.config.settings import API_HOST, API_PORT, SERIAL_PORT
from neuroflow.pipeline import BiometricPipeline
from neuroflow.scheduling import AsyncioScheduler

logger = logging.getLogger("Server")


def _wire_broadcasts(pipeline: BiometricPipeline, ws_manager: ConnectionManager):
    pipeline.sample_listeners.append(
        lambda point: ws_manager.publish({"type": "sample", "data": point.to_dict()})
    )
    pipeline.state_listeners.append(
        lambda state: ws_manager.publish({
            "type": "state", "state": state.value, "error": pipeline.last_error,
        })
    )
    pipeline.advice.listeners.append(
        lambda advice: ws_manager.publish({"type": "advice", "data": advice.model_dump()})
    )


def create_app(
    pipeline: Optional[BiometricPipeline] = None,
    autoconnect: str = "",
    serial_port: str = "",
    serial_factory: Optional[Callable] = None,
) -> FastAPI:
    """
    Build the FastAPI app around one pipeline instance.

    Args:
        pipeline: pipeline to serve; a Groq-backed one on the server's event loop if None
        autoconnect: "synthetic" or "serial" to connect on startup
        serial_port: port used for serial autoconnect
        serial_factory: replacement for serial.Serial (used by tests)
    """
    pipeline = pipeline or BiometricPipeline(AsyncioScheduler())
    ws_manager = ConnectionManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if autoconnect == "synthetic":
            pipeline.connect_synthetic()
        elif autoconnect == "serial":
            pipeline.connect_serial(port=serial_port or None)
        yield
        pipeline.disconnect()

    app = FastAPI(title="NeuroFlow API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.include_router(router, prefix="/api")

    app.state.pipeline = pipeline
    app.state.ws_manager = ws_manager
    app.state.serial_factory = serial_factory
    _wire_broadcasts(pipeline, ws_manager)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await ws_manager.connect(websocket)
        try:
            await websocket.send_text(json.dumps({"type": "status", "data": pipeline.get_status()}))
            while True:
                data = await websocket.receive_text()
                try:
                    msg = json.loads(data)
                except json.JSONDecodeError:
                    continue
                action = msg.get("action") if isinstance(msg, dict) else None
                if action == "status":
                    await websocket.send_text(json.dumps({"type": "status", "data": pipeline.get_status()}))
                elif action == "analyze":
                    decision = pipeline.request_advice_now()
                    await websocket.send_text(json.dumps({
                        "type": "advice_request", "fired": decision.fire, "reason": decision.reason,
                    }))
        except WebSocketDisconnect:
            ws_manager.disconnect(websocket)

    return app


def main():
    import uvicorn

    parser = argparse.ArgumentParser(description="NeuroFlow API Server")
    parser.add_argument("--host", default=API_HOST)
    parser.add_argument("--port", type=int, default=API_PORT)
    parser.add_argument("--autoconnect", default="", choices=["", "synthetic", "serial"])
    parser.add_argument("--serial-port", default=SERIAL_PORT, help="e.g. /dev/ttyUSB0 or COM3")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = create_app(autoconnect=args.autoconnect, serial_port=args.serial_port)
    logger.info(f"Serving on http://{args.host}:{args.port}/api")
    uvicorn.run(app, host=args.host, port=args.port, log_level="warning")


if __name__ == "__main__":
    main()
