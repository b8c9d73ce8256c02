import asyncio
import io
import logging
import time
from typing import Optional

import httpx
from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from .backoff import Sleep
from .cache import DeckCache
from .config import Settings, get_settings
from .errors import DeckGenError, InputValidationError
from .images import ImagenClient, ImageResolver
from .llm_providers import GeminiClient
from .models import Deck, ExportRequest, GenerateRequest, ImageRequest, ImageResponse
from .pptx_builder import build_presentation
from .security import mask_api_key

PPTX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
EXPORT_FILENAME = "AI-deck.pptx"

logger = logging.getLogger("topic2pptx")

router = APIRouter()


@router.get("/healthz")
def healthz():
    return {"status": "ok"}


@router.post("/api/ai/generate", response_model=Deck, response_model_exclude_none=True)
async def generate(body: GenerateRequest, request: Request):
    settings: Settings = request.app.state.settings

    # Basic validations
    topic = (body.topic or "").strip()
    if not topic:
        raise InputValidationError("Missing topic")
    api_key = settings.require_api_key()

    decks: DeckCache = request.app.state.decks
    try:
        return await decks.get_or_generate(topic, body.slides, body.lang, body.model)
    except DeckGenError as e:
        logger.error("[/api/ai/generate] error: %s (key=%s)", e, mask_api_key(api_key))
        raise


@router.post("/api/export-pptx")
async def export_pptx(body: ExportRequest, request: Request):
    if not body.slides:
        raise InputValidationError("Deck.slides is empty")

    resolver: ImageResolver = request.app.state.images
    deck = await resolver.resolve_deck(body.to_deck(), augment=body.wants_images)

    try:
        pptx_bytes = build_presentation(deck)
    except Exception as e:
        logger.error("[/api/export-pptx] build failed: %s", e)
        raise HTTPException(500, detail=f"Export PPTX failed: {e}")

    return StreamingResponse(
        io.BytesIO(pptx_bytes),
        media_type=PPTX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"',
            "Content-Length": str(len(pptx_bytes)),
            "Cache-Control": "no-store",
        },
    )


@router.post("/api/images/generate", response_model=ImageResponse)
async def generate_image(body: ImageRequest, request: Request):
    settings: Settings = request.app.state.settings

    prompt = (body.prompt or "").strip()
    if not prompt:
        raise InputValidationError("Missing prompt")
    settings.require_api_key()

    imagen: ImagenClient = request.app.state.imagen
    data_url = await imagen.generate_data_url(prompt, body.model)
    return ImageResponse(image_data_url=data_url)


async def _deckgen_error(request: Request, exc: DeckGenError):
    return JSONResponse({"error": str(exc)}, status_code=exc.status_code)


async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)


async def _validation_error(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors())
    return JSONResponse({"error": f"Invalid request: {problems}"}, status_code=400)


async def _unexpected_error(request: Request, exc: Exception):
    logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
    return JSONResponse({"error": str(exc) or "Internal error"}, status_code=500)


def create_app(settings: Optional[Settings] = None,
               transport: Optional[httpx.AsyncBaseTransport] = None,
               sleep: Sleep = asyncio.sleep,
               clock=time.monotonic) -> FastAPI:
    """Composition root: wires settings, clients, cache and routes.

    ``transport``, ``sleep`` and ``clock`` exist so tests can fake the
    network, the backoff delays and the cache clock.
    """
    settings = settings or get_settings()

    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(levelname)s: %(message)s")
    api_key = settings.GOOGLE_AI_STUDIO_API_KEY or ""
    logger.info("GEMINI_API_BASE = %s", settings.GEMINI_API_BASE)
    logger.info("GOOGLE_AI_STUDIO_API_KEY = %s", mask_api_key(api_key) or "(not set)")

    app = FastAPI(title="Topic→PPTX", version="1.0.0")

    # CORS: allow public use (you can restrict in production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    gemini = GeminiClient(api_key, settings.GEMINI_API_BASE,
                          timeout=settings.HTTP_TIMEOUT_SECONDS, transport=transport, sleep=sleep)
    imagen = ImagenClient(api_key, settings.GEMINI_API_BASE, default_model=settings.IMAGEN_MODEL,
                          timeout=settings.HTTP_TIMEOUT_SECONDS, transport=transport)

    app.state.settings = settings
    app.state.imagen = imagen
    app.state.decks = DeckCache(gemini, ttl=settings.DECK_CACHE_TTL_SECONDS, clock=clock,
                                timeout=settings.GENERATION_TIMEOUT_SECONDS)
    app.state.images = ImageResolver(imagen if api_key else None,
                                     max_image_slides=settings.MAX_IMAGE_SLIDES,
                                     timeout=settings.HTTP_TIMEOUT_SECONDS, transport=transport)

    app.add_exception_handler(DeckGenError, _deckgen_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unexpected_error)
    app.include_router(router)
    return app


app = create_app()
