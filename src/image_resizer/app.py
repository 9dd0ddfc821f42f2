"""FastAPI application and router exposing the resize handler."""

from typing import Optional

import httpx
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import Response

from . import __version__
from .core.cache import DiskCacheStore
from .core.error_handling import ErrorClassifier
from .core.factories import EngineFactory, LoggerFactory
from .core.models import ImageRequest, ResizerConfig
from .core.observability import MetricsCollector
from .core.pipeline import TransformPipeline
from .core.protocols import ImageEngine, LoggerProtocol
from .core.source import SourceAcquirer
from .core.streaming import ResponseStreamer
from .handler import ImageResizeHandler


def create_handler(
    config: ResizerConfig,
    engine: Optional[ImageEngine] = None,
    logger: Optional[LoggerProtocol] = None,
    metrics_collector: Optional[MetricsCollector] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ImageResizeHandler:
    """Create a fully configured handler, building defaults from config."""
    if engine is None:
        engine = EngineFactory.create_engine(config.engine)

    if logger is None:
        logger = LoggerFactory.create_logger(debug=config.debug)

    if metrics_collector is None:
        metrics_collector = MetricsCollector()

    cache_store = DiskCacheStore(config.cache_folder, config.ttl_ms, engine, logger)
    acquirer = SourceAcquirer(
        allow_proxy=config.allow_proxy,
        image_dir=config.image_dir,
        logger=logger,
        timeout=config.fetch_timeout,
        transport=transport,
    )

    return ImageResizeHandler(
        config=config,
        cache_store=cache_store,
        acquirer=acquirer,
        pipeline=TransformPipeline(engine, logger),
        streamer=ResponseStreamer(cache_store, logger, metrics_collector),
        classifier=ErrorClassifier(logger, metrics_collector),
        logger=logger,
        metrics_collector=metrics_collector,
    )


def create_router(handler: ImageResizeHandler, route: str = "/") -> APIRouter:
    """Create a router serving resized images on route."""
    router = APIRouter()

    @router.get(route)
    async def resize_image(
        request: Request,
        image: str = Query(..., description="Absolute URL or path of the source image"),
        resize: str = Query("0x0", description="Bounding box as WxH; either side may be empty"),
        crop: str = Query("0x0", description="Aspect ratio to crop to, as WxH"),
        quality: Optional[str] = Query(None, description="Encoding quality"),
        sx: Optional[str] = Query(None, description="Custom crop x offset"),
        sy: Optional[str] = Query(None, description="Custom crop y offset"),
        sw: Optional[str] = Query(None, description="Custom crop width"),
        sh: Optional[str] = Query(None, description="Custom crop height"),
        upscale: Optional[str] = Query(None, description="'true' allows enlarging"),
    ) -> Response:
        image_request = ImageRequest(
            image=image,
            resize=resize,
            crop=crop,
            quality=quality,
            sx=sx,
            sy=sy,
            sw=sw,
            sh=sh,
            upscale=upscale,
        )
        return await handler.handle(request, image_request)

    return router


def create_app(
    config: Optional[ResizerConfig] = None,
    handler: Optional[ImageResizeHandler] = None,
) -> FastAPI:
    """
    Create the resizer application.

    The configuration is read from the environment when not given and is
    fixed for the lifetime of the app.
    """
    if config is None:
        config = handler.config if handler else ResizerConfig.from_env()
    if handler is None:
        handler = create_handler(config)

    app = FastAPI(title="Image Resizer", version=__version__)
    app.state.handler = handler
    app.include_router(create_router(handler, config.route))
    return app
