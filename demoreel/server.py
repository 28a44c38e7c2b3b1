"""HTTP upload endpoint that parses a demo and renders its highlight reel."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from fastapi import FastAPI, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from demoreel.config import Settings
from demoreel.ingest.parser import parse_demo
from demoreel.pipeline import HighlightPipeline

logger = logging.getLogger(__name__)


def create_app(settings: Settings) -> FastAPI:
    app = FastAPI(title="demoreel", description="Demo highlight renderer")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    pipeline = HighlightPipeline(settings)
    # one renderer and one movies directory: uploads are processed one at a time
    run_lock = asyncio.Lock()

    @app.post("/parse-demo")
    async def parse_demo_upload(demo: UploadFile | None = File(None)) -> Response:
        """Store the upload, render its highlights and return the parsed payload."""
        if demo is None or not demo.filename:
            return JSONResponse(status_code=400, content={"error": "No file uploaded"})

        upload_dir = Path(settings.server.upload_dir)
        upload_dir.mkdir(parents=True, exist_ok=True)
        demo_path = upload_dir / Path(demo.filename).name
        demo_path.write_bytes(await demo.read())
        logger.info("Received demo upload %s", demo_path.name)

        if run_lock.locked():
            logger.info("Another demo is being processed; %s is waiting.", demo_path.name)
        try:
            async with run_lock:
                payload, record = await run_in_threadpool(parse_demo, demo_path, settings)
                result = await pipeline.run(demo_path, record)
        except (RuntimeError, ValueError, OSError) as exc:
            logger.error("Processing %s failed: %s", demo_path.name, exc)
            return PlainTextResponse("Error processing demo", status_code=500)

        if result.post_process is not None and result.post_process.output_path is not None:
            logger.info("Highlight reel ready: %s", result.post_process.output_path)
        return Response(content=payload, media_type="application/json")

    return app
