"""Ordered transformation stages run against the image engine."""

import asyncio
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Tuple

from .exceptions import ImageResizerError
from .geometry import GeometryPlanner
from .models import GeometryPlan, Size, TransformSpec
from .observability import LogContext
from .protocols import EngineImage, ImageEngine, LoggerProtocol


@dataclass(frozen=True)
class EncodedImage:
    """Final encoded output of the pipeline."""

    data: bytes
    format: str

    @property
    def content_type(self) -> str:
        return f"image/{self.format.lower()}"


@dataclass(frozen=True)
class PipelineContext:
    """State handed from stage to stage; every stage returns a new copy."""

    source: bytes
    spec: TransformSpec
    image: Optional[EngineImage] = None
    format: Optional[str] = None
    size: Optional[Size] = None
    plan: Optional[GeometryPlan] = None
    quality: Optional[int] = None
    output: Optional[EncodedImage] = None


@dataclass(frozen=True)
class TransformResult:
    """Outcome of a pipeline run: an output or the first stage failure."""

    success: bool
    output: Optional[EncodedImage] = None
    error: Optional[ImageResizerError] = None
    failed_stage: Optional[str] = None

    @classmethod
    def ok(cls, output: EncodedImage) -> "TransformResult":
        return cls(success=True, output=output)

    @classmethod
    def failed(cls, stage: str, error: ImageResizerError) -> "TransformResult":
        return cls(success=False, error=error, failed_stage=stage)


Stage = Callable[[PipelineContext], PipelineContext]


class TransformPipeline:
    """
    Runs the resize/crop stages in their required order.

    Measurement must follow the custom crop and the geometry plan must follow
    measurement, so stages run strictly one after another. Each stage runs in
    a worker thread so engine work never blocks the event loop.
    """

    def __init__(
        self,
        engine: ImageEngine,
        logger: LoggerProtocol,
        planner: Optional[GeometryPlanner] = None,
    ):
        self._engine = engine
        self._logger = logger
        self._planner = planner or GeometryPlanner()

    @property
    def stages(self) -> List[Tuple[str, Stage]]:
        return [
            ("probe_format", self._probe_format),
            ("custom_crop", self._custom_crop),
            ("measure", self._measure),
            ("aspect_crop", self._aspect_crop),
            ("resize", self._resize),
            ("quality", self._quality),
            ("auto_orient", self._auto_orient),
            ("encode", self._encode),
        ]

    async def run(
        self,
        source: bytes,
        spec: TransformSpec,
        context: Optional[LogContext] = None,
    ) -> TransformResult:
        state = PipelineContext(source=source, spec=spec)

        for name, stage in self.stages:
            try:
                state = await asyncio.to_thread(stage, state)
            except ImageResizerError as exc:
                self._logger.warning(f"Stage {name} failed: {exc}", context)
                return TransformResult.failed(name, exc)

        self._logger.debug(
            "Transform complete",
            context,
            format=state.format,
            bytes=len(state.output.data),  # type: ignore[union-attr]
        )
        return TransformResult.ok(state.output)  # type: ignore[arg-type]

    def _probe_format(self, state: PipelineContext) -> PipelineContext:
        image = self._engine.open(state.source)
        return replace(state, image=image, format=image.format)

    def _custom_crop(self, state: PipelineContext) -> PipelineContext:
        if state.spec.custom_crop is None:
            return state
        return replace(state, image=state.image.crop(state.spec.custom_crop))

    def _measure(self, state: PipelineContext) -> PipelineContext:
        return replace(state, size=state.image.size())

    def _aspect_crop(self, state: PipelineContext) -> PipelineContext:
        plan = self._planner.plan(state.size, state.spec)
        image = state.image
        if plan.aspect_crop is not None:
            image = image.crop(plan.aspect_crop)
        return replace(state, plan=plan, image=image)

    def _resize(self, state: PipelineContext) -> PipelineContext:
        if state.plan.resize_to is None:
            return state
        return replace(state, image=state.image.resize(state.plan.resize_to))

    def _quality(self, state: PipelineContext) -> PipelineContext:
        return replace(state, quality=state.spec.quality)

    def _auto_orient(self, state: PipelineContext) -> PipelineContext:
        return replace(state, image=state.image.auto_orient())

    def _encode(self, state: PipelineContext) -> PipelineContext:
        data = state.image.encode(state.quality)
        return replace(
            state, output=EncodedImage(data=data, format=state.image.output_format)
        )
