"""Pipeline that wires scanning, classification and rendering together."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from threading import Event
from typing import Callable, Optional, Tuple, TypeVar

from .buildpacks import BuildpackRegistry, classify, discover_registry
from .config import ReleasePackConfig, load_config
from .logging import get_logger
from .manifest import ManifestEngine, ManifestTemplate
from .models import ClassificationResult, ReleaseMetadata, RenderedManifest
from .scanner import ScanOmission, SignalScanner, validate_root

T = TypeVar("T")


@dataclass(frozen=True)
class Detection:
    """Classification outcome plus the scan details that produced it."""

    result: ClassificationResult
    omissions: Tuple[ScanOmission, ...] = ()
    signal_count: int = 0


def run_with_timeout(
    func: Callable[[], T],
    timeout: float | None,
    label: str,
    *,
    cancel: Event | None = None,
) -> T:
    """Run ``func`` and return its result, or raise ``TimeoutError`` after ``timeout`` seconds.

    On timeout ``cancel`` is set so a cooperative worker stops early, and the
    worker's eventual result is discarded, never returned.
    """
    if timeout is None:
        return func()

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="releasepack")
    future = executor.submit(func)
    try:
        return future.result(timeout=timeout)
    except TimeoutError:
        future.cancel()
        if cancel is not None:
            cancel.set()
        raise TimeoutError(f"{label} did not finish within {timeout:g}s") from None
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


class ReleasePipeline:
    """Detects project types and renders release manifests."""

    def __init__(
        self,
        config: ReleasePackConfig | None = None,
        registry: BuildpackRegistry | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.logger = get_logger("pipeline")

    def detect(self, project_path: str, *, timeout: float | None = None) -> Detection:
        """Classify the project at ``project_path``.

        The root is validated before the configured override is consulted, so
        a missing or unreadable root always raises ``ScanError``.
        """
        validate_root(project_path)
        config = self._config_for(project_path)
        registry = self.registry if self.registry is not None else discover_registry(
            config.registry_path, include_defaults=config.include_default_buildpacks
        )

        if config.buildpack:
            definition = registry.get(config.buildpack)
            if definition is not None:
                self.logger.info("Using configured buildpack: %s", definition.name)
                return Detection(result=ClassificationResult(buildpack=definition, overridden=True))
            self.logger.warning(
                "Could not find buildpack %s; detecting the project type instead", config.buildpack
            )

        scanner = SignalScanner(
            max_depth=config.scanner.max_depth,
            workers=config.scanner.workers,
        )

        cancel = Event()

        def _work() -> Detection:
            report = scanner.collect(project_path, cancel=cancel)
            self.logger.debug("Scanner produced %d signals", len(report.signals))
            return Detection(
                result=classify(report.signals, registry),
                omissions=report.omissions,
                signal_count=len(report.signals),
            )

        effective_timeout = timeout if timeout is not None else config.timeout
        detection = run_with_timeout(
            _work, effective_timeout, "classification", cancel=cancel
        )
        if detection.omissions:
            self.logger.warning(
                "%d file(s) could not be read; classification used the remaining signals",
                len(detection.omissions),
            )
        self.logger.info("Selected buildpack: %s", detection.result.name)
        return detection

    def render(
        self,
        template: ManifestTemplate,
        metadata: ReleaseMetadata,
        *,
        strict: Optional[bool] = None,
        timeout: float | None = None,
    ) -> RenderedManifest:
        """Render ``template`` for ``metadata`` under the configured timeout."""
        config = self.config
        if strict is None:
            strict = config.render.strict if config is not None else False
        if timeout is None and config is not None:
            timeout = config.timeout
        engine = ManifestEngine(strict=strict)
        return run_with_timeout(lambda: engine.render(template, metadata), timeout, "render")

    def _config_for(self, project_path: str) -> ReleasePackConfig:
        if self.config is not None:
            return self.config
        path = Path(project_path).expanduser()
        if path.is_dir():
            return load_config(path)
        return ReleasePackConfig(root=path)


__all__ = ["Detection", "ReleasePipeline", "run_with_timeout"]
