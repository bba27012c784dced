"""Render pipeline components.

Main Components:
- Browser Factory: browser launch and one fresh context per job
- Resource Filter: aborts blocked sub-resource requests during load
- Network Idle Tracker: in-flight request counting for near-idle waits
- Navigation Controller: inline content loading and address navigation
- Readiness Detector: loader poll, per-image waits and settle delay
- Capture Engine: PDF and raster artifact production
- Request Coordinator: per-job orchestration with guaranteed teardown

Usage:
    from app.render.capture import create_request_coordinator
    from app.render.models import RenderJob

    coordinator = create_request_coordinator()
    async with coordinator.session():
        outcome = await coordinator.execute(RenderJob.capture("https://example.com"))
"""

__all__ = [
    "BrowserFactory",
    "BrowserConfig",
    "BrowserEngineType",
    "create_browser_factory",
    "ResourceFilterPolicy",
    "NetworkIdleTracker",
    "NavigationController",
    "ContentReadinessProbe",
    "LoaderAbsenceProbe",
    "ReadinessDetector",
    "CaptureEngine",
    "RequestCoordinator",
    "RequestCoordinatorConfig",
    "create_request_coordinator",
]

from .browser_factory import (
    BrowserFactory,
    BrowserConfig,
    BrowserEngineType,
    create_browser_factory,
)

from .resource_filter import ResourceFilterPolicy
from .network_idle import NetworkIdleTracker
from .navigation import NavigationController

from .readiness import (
    ContentReadinessProbe,
    LoaderAbsenceProbe,
    ReadinessDetector,
)

from .engine import CaptureEngine

from .coordinator import (
    RequestCoordinator,
    RequestCoordinatorConfig,
    create_request_coordinator,
)
