import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request

from dal.credential_dal import CredentialDAL
from dal.draft_dal import DraftDAL
from routes.analysis_route import router as analysis_router
from routes.draft_route import router as draft_router
from routes.session_route import router as session_router
from routes.settings_route import router as settings_router
from services.enhancement.image_enhancer import ImageEnhancer
from services.image_store import ImageFileStore
from services.inference.openai_gateway import OpenAIInferenceGateway
from services.inference.remote_gateway import RemoteAnalysisClient
from services.pipeline.orchestrator import ListingOrchestrator
from services.pricing.pricing_estimator import PricingEstimator
from utils.app_settings import load_settings
from utils.database_init import AsyncDatabaseInitializer

load_dotenv()  # Load environment variables from .env file if present


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite database holding drafts and the credential
      - the inference gateway and enhancement transform
      - the orchestrator that owns the capture session
    and attach them to `app.state`.
    """
    settings = load_settings()
    configure_logging(settings.log_level)

    db_initializer = AsyncDatabaseInitializer(settings.database_dir)
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    credentials = CredentialDAL(db_initializer)
    if settings.openai_api_key and not await credentials.get():
        await credentials.set(settings.openai_api_key)
        logging.info("Seeded stored credential from OPENAI_API_KEY")

    remote = None
    if settings.analysis_server_url:
        remote = RemoteAnalysisClient(
            settings.analysis_server_url,
            analysis_timeout=settings.analysis_timeout_seconds,
            enhance_timeout=settings.enhance_timeout_seconds,
        )
        logging.info("Using remote analysis server at %s", settings.analysis_server_url)

    gateway = getattr(app.state, "gateway", None) or remote or OpenAIInferenceGateway(
        model=settings.openai_model,
        max_output_tokens=settings.analysis_max_tokens,
    )
    enhancer = getattr(app.state, "image_enhancer", None) or remote or ImageEnhancer()

    app.state.settings = settings
    app.state.credentials = credentials
    app.state.drafts = DraftDAL(db_initializer)
    app.state.gateway = gateway
    app.state.image_enhancer = enhancer
    app.state.pricing = PricingEstimator()
    app.state.image_files = ImageFileStore(db_initializer.image_dir)
    app.state.orchestrator = ListingOrchestrator(
        gateway=gateway,
        enhancer=enhancer,
        drafts=app.state.drafts,
        credentials=credentials,
        pricing=app.state.pricing,
        image_files=app.state.image_files,
        analysis_timeout=settings.analysis_timeout_seconds,
        enhance_timeout=settings.enhance_timeout_seconds,
    )

    try:
        yield
    finally:
        await app.state.orchestrator.aclose()
        for client in {id(c): c for c in (gateway, remote) if c is not None}.values():
            aclose = getattr(client, "aclose", None)
            if aclose is None:
                continue
            try:
                await aclose()
            except Exception as exc:
                logging.warning("Gateway shutdown failed: %s", exc)


def create_app(gateway: Optional[Any] = None, enhancer: Optional[Any] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    `gateway` and `enhancer` replace the OpenAI gateway and the Pillow
    enhancer, e.g. with a `RemoteAnalysisClient`.
    """
    app = FastAPI(lifespan=lifespan)
    if gateway is not None:
        app.state.gateway = gateway
    if enhancer is not None:
        app.state.image_enhancer = enhancer

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that verifies DB initializer and gateway presence.
        """
        has_db = hasattr(request.app.state, "db_initializer")
        has_gateway = getattr(request.app.state, "gateway", None) is not None
        return {"ok": True, "db_initialized": has_db, "gateway_available": has_gateway}

    # Register application routers
    app.include_router(analysis_router)
    app.include_router(session_router)
    app.include_router(draft_router)
    app.include_router(settings_router)

    return app


app = create_app()
