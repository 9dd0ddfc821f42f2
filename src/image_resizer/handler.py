"""Request handler tying the cache, source, pipeline and streamer together."""

from typing import Optional

from fastapi import Request
from fastapi.responses import Response, StreamingResponse

from .core.cache import CachedImage, DiskCacheStore
from .core.error_handling import ErrorClassifier
from .core.fingerprint import build_fingerprint
from .core.models import ImageRequest, ResizerConfig, TransformSpec
from .core.observability import LogContext, MetricsCollector, track_operation
from .core.pipeline import TransformPipeline
from .core.protocols import LoggerProtocol
from .core.source import SourceAcquirer, resolve_location
from .core.streaming import ResponseStreamer, iter_chunks


class ImageResizeHandler:
    """Serves one resize request, from the cache when possible."""

    def __init__(
        self,
        config: ResizerConfig,
        cache_store: DiskCacheStore,
        acquirer: SourceAcquirer,
        pipeline: TransformPipeline,
        streamer: ResponseStreamer,
        classifier: ErrorClassifier,
        logger: LoggerProtocol,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self.config = config
        self.cache_store = cache_store
        self.acquirer = acquirer
        self.pipeline = pipeline
        self.streamer = streamer
        self.classifier = classifier
        self.logger = logger
        self.metrics_collector = metrics_collector

    async def handle(self, request: Request, image_request: ImageRequest) -> Response:
        """
        Answer a resize request.

        Unsupported source formats become a 415 JSON response; any other
        failure is re-raised for the framework's error handlers.
        """
        context = LogContext(component="image_resize_handler")
        try:
            return await self._serve(request, image_request, context)
        except Exception as exc:
            response = self.classifier.classify(exc, context)
            if response is None:
                raise
            return response

    async def _serve(
        self, request: Request, image_request: ImageRequest, context: LogContext
    ) -> Response:
        location = resolve_location(
            image_request.image,
            request.url.scheme,
            request.headers.get("host", request.url.netloc),
            self.config.allow_proxy,
        )
        resolved = image_request.with_location(location)
        fingerprint = build_fingerprint(resolved)
        context = context.with_fingerprint(fingerprint).with_metadata(location=location)

        cached = await self.cache_store.try_serve(fingerprint, context)
        if cached is not None:
            return self._serve_cached(cached, context)

        if self.metrics_collector:
            self.metrics_collector.record_event("cache_miss")

        async with track_operation(
            "acquire", self.logger, self.metrics_collector, context
        ) as stage_context:
            source = await self.acquirer.acquire(location, stage_context)

        spec = TransformSpec.from_request(resolved)
        async with track_operation(
            "transform", self.logger, self.metrics_collector, context
        ) as stage_context:
            result = await self.pipeline.run(source, spec, stage_context)
            if not result.success:
                raise result.error  # type: ignore[misc]

        self.logger.info(
            "Serving transformed image", context, format=result.output.format  # type: ignore[union-attr]
        )
        return await self.streamer.stream(fingerprint, result.output, context)  # type: ignore[arg-type]

    def _serve_cached(self, cached: CachedImage, context: LogContext) -> Response:
        if self.metrics_collector:
            self.metrics_collector.record_event("cache_hit")
        self.logger.info("Serving cached image", context, format=cached.format)

        async def body():
            for chunk in iter_chunks(cached.data):
                yield chunk

        return StreamingResponse(body(), media_type=cached.content_type)
