"""Unit tests for readiness detection."""

import asyncio

import pytest

from app.render.capture.readiness import (
    IMAGE_SIGNAL,
    LOADER_SIGNAL,
    SETTLE_SIGNAL,
    LoaderAbsenceProbe,
    ReadinessDetector,
)
from app.render.errors import ImageWaitTimeoutError
from app.render.models import SignalOutcome
from app.render.presets import ReadinessPolicy

from conftest import FakePage


def quick_policy(**overrides) -> ReadinessPolicy:
    values = dict(loader_timeout_ms=100, image_timeout_ms=100, settle_delay_ms=0)
    values.update(overrides)
    return ReadinessPolicy(**values)


class TestLoaderAbsenceProbe:
    """Tests for the default content-readiness probe."""

    @pytest.mark.asyncio
    async def test_passes_selectors_to_page(self):
        page = FakePage()
        probe = LoaderAbsenceProbe(loader_selectors=['.busy'], coverage_ratio=0.7, min_content_nodes=0)

        await probe.wait(page, timeout_ms=1000, polling_ms=100)

        call = page.last_call('wait_for_function')
        assert call['timeout'] == 1000
        assert call['polling'] == 100
        assert call['arg']['loaderSelectors'] == ['.busy']
        assert call['arg']['coverageRatio'] == 0.7
        assert call['arg']['minContentNodes'] == 0


class TestReadinessDetector:
    """Tests for ReadinessDetector signals."""

    @pytest.mark.asyncio
    async def test_all_ready(self):
        page = FakePage()
        page.images = ['loaded', 'loaded']

        report = await ReadinessDetector(quick_policy()).evaluate(page)

        assert [s.name for s in report.signals] == [LOADER_SIGNAL, IMAGE_SIGNAL, SETTLE_SIGNAL]
        assert report.get(LOADER_SIGNAL).outcome == SignalOutcome.READY
        assert report.get(IMAGE_SIGNAL).outcome == SignalOutcome.READY
        assert report.get(SETTLE_SIGNAL).outcome == SignalOutcome.NOT_APPLICABLE
        assert report.degraded is False

    @pytest.mark.asyncio
    async def test_loader_timeout_degrades_without_failing(self):
        page = FakePage()
        page.loader = 'timeout'

        report = await ReadinessDetector(quick_policy()).evaluate(page)

        assert report.get(LOADER_SIGNAL).outcome == SignalOutcome.DEGRADED
        assert report.degraded is True

    @pytest.mark.asyncio
    async def test_loader_probe_error_degrades(self):
        page = FakePage()
        page.loader = 'error'

        report = await ReadinessDetector(quick_policy()).evaluate(page)

        assert report.get(LOADER_SIGNAL).outcome == SignalOutcome.DEGRADED

    @pytest.mark.asyncio
    async def test_loader_poll_disabled(self):
        page = FakePage()
        page.loader = 'hang'

        report = await ReadinessDetector(quick_policy(loader_poll_enabled=False)).evaluate(page)

        assert report.get(LOADER_SIGNAL).outcome == SignalOutcome.NOT_APPLICABLE

    @pytest.mark.asyncio
    async def test_never_completing_image_is_capped(self):
        page = FakePage()
        page.images = ['loaded', 'hang', 'error']
        loop = asyncio.get_running_loop()
        started = loop.time()

        report = await ReadinessDetector(quick_policy(image_timeout_ms=50)).evaluate(page)

        signal = report.get(IMAGE_SIGNAL)
        assert signal.outcome == SignalOutcome.DEGRADED
        assert "timeout=1" in signal.detail
        # Broken images count as finished
        assert "error=1" in signal.detail
        assert loop.time() - started < 1.0

    @pytest.mark.asyncio
    async def test_images_waited_concurrently(self):
        page = FakePage()
        page.images = ['hang'] * 5
        loop = asyncio.get_running_loop()
        started = loop.time()

        await ReadinessDetector(quick_policy(image_timeout_ms=100)).evaluate(page)

        # Five capped images joined together, not one after another
        assert loop.time() - started < 0.4

    @pytest.mark.asyncio
    async def test_strict_image_wait_raises(self):
        page = FakePage()
        page.images = ['hang']

        with pytest.raises(ImageWaitTimeoutError):
            await ReadinessDetector(quick_policy(image_timeout_ms=20, strict_image_wait=True)).evaluate(page)

    @pytest.mark.asyncio
    async def test_no_images(self):
        report = await ReadinessDetector(quick_policy()).evaluate(FakePage())

        signal = report.get(IMAGE_SIGNAL)
        assert signal.outcome == SignalOutcome.READY
        assert signal.detail == "no images"

    @pytest.mark.asyncio
    async def test_settle_delay_override(self):
        detector = ReadinessDetector(quick_policy(settle_delay_ms=3000), settle_delay_ms=10)

        report = await detector.evaluate(FakePage())

        signal = report.get(SETTLE_SIGNAL)
        assert signal.outcome == SignalOutcome.READY
        assert signal.duration_ms == 10.0

    @pytest.mark.asyncio
    async def test_custom_probe(self):
        calls = []

        class AlwaysReady(LoaderAbsenceProbe):
            name = "custom"

            async def wait(self, page, timeout_ms, polling_ms):
                calls.append(timeout_ms)

        report = await ReadinessDetector(quick_policy(), probe=AlwaysReady()).evaluate(FakePage())

        assert calls == [100]
        assert report.get(LOADER_SIGNAL).outcome == SignalOutcome.READY
