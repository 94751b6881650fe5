# api.py (HTTP transport for the analysis engine)
import logging
from typing import Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from analyzer import ResumeAnalysisEngine
from config import EngineConfig
from models import AnalysisFailure, RawDocument

logger = logging.getLogger(__name__)

FAILURE_STATUS_CODES = {
    "OversizedDocument": 413,
    "UnsupportedFormat": 415,
    "CorruptDocument": 422,
    "EmptyDocument": 422,
}


def create_app(engine: Optional[ResumeAnalysisEngine] = None) -> FastAPI:
    """Build the API around one engine; a taxonomy that cannot load stops startup here."""
    if engine is None:
        engine = ResumeAnalysisEngine.from_config(EngineConfig.from_env())

    app = FastAPI(title="Resume Analyzer")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=engine.config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.engine = engine

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "taxonomy_version": engine.taxonomy.version}

    @app.post("/api/analyze")
    async def analyze_endpoint(
        file: UploadFile = File(...),
        job_description: str = Form(""),
    ):
        # One byte past the limit is enough for the engine to reject the upload.
        content = await file.read(engine.config.max_upload_size_bytes + 1)
        document = RawDocument(
            content=content,
            mime_type=file.content_type or "",
            filename=file.filename or "resume",
        )
        logger.info("Received %s (%d bytes)", document.filename, document.size)

        result = await engine.analyze_async(document, job_description or "")
        if isinstance(result, AnalysisFailure):
            raise HTTPException(
                status_code=FAILURE_STATUS_CODES.get(result.kind, 422),
                detail=result.to_dict(),
            )
        return result.to_dict()

    return app


app = create_app()
