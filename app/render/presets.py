"""Named pipeline presets.

A preset bundles the navigation wait policy, the readiness policy and the
default sub-resource block-set used for a job. Callers select a preset by
name per job; explicit per-job options override the preset's values.

Blocking fonts speeds up loading but changes layout and glyph rendering on
pages that depend on web fonts, so only the ``fast`` preset blocks them.
"""

from typing import Dict, FrozenSet, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models.job import ResourceType


LoadState = Literal["load", "domcontentloaded", "networkidle", "commit"]


class NavigationPolicy(BaseModel):
    """Wait conditions and budgets for loading job input."""

    model_config = ConfigDict(frozen=True)

    content_wait_until: LoadState = Field(
        default="networkidle",
        description="Load state awaited after injecting inline markup"
    )
    content_timeout_ms: int = Field(default=30000, ge=0)
    address_wait_until: LoadState = Field(
        default="load",
        description="Load event awaited when navigating to an address"
    )
    address_timeout_ms: int = Field(default=45000, ge=0)
    max_inflight_requests: Optional[int] = Field(
        default=2,
        ge=0,
        description="Near-idle threshold after load; None disables the idle wait"
    )
    idle_window_ms: int = Field(
        default=500,
        ge=0,
        description="How long the in-flight count must stay at or below the threshold"
    )


class ReadinessPolicy(BaseModel):
    """Configuration of the post-navigation readiness checks."""

    model_config = ConfigDict(frozen=True)

    loader_poll_enabled: bool = True
    loader_timeout_ms: int = Field(default=15000, ge=0)
    loader_polling_ms: int = Field(default=100, ge=16)
    image_wait_enabled: bool = True
    image_timeout_ms: int = Field(
        default=5000,
        ge=0,
        description="Individual cap applied to each image"
    )
    strict_image_wait: bool = Field(
        default=False,
        description="Fail the job when any image misses its cap"
    )
    settle_delay_ms: int = Field(default=3000, ge=0)


class RenderPreset(BaseModel):
    """Complete pipeline policy selectable by name."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    navigation: NavigationPolicy = Field(default_factory=NavigationPolicy)
    readiness: ReadinessPolicy = Field(default_factory=ReadinessPolicy)
    document_readiness: ReadinessPolicy = Field(
        default_factory=lambda: ReadinessPolicy(
            loader_poll_enabled=False,
            settle_delay_ms=0,
        ),
        description="Readiness policy applied to inline document jobs"
    )
    blocked_resource_types: FrozenSet[ResourceType] = Field(default_factory=frozenset)

    def merged(self, overrides: Dict) -> 'RenderPreset':
        """Return a copy with nested overrides applied."""
        data = self.model_dump()
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key].update(value)
            else:
                data[key] = value
        return RenderPreset(**data)


FAST = RenderPreset(
    name="fast",
    description="Load event only, aggressive blocking, short waits",
    navigation=NavigationPolicy(
        address_wait_until="load",
        address_timeout_ms=30000,
        max_inflight_requests=None,
    ),
    readiness=ReadinessPolicy(
        loader_timeout_ms=5000,
        image_timeout_ms=3000,
        settle_delay_ms=1000,
    ),
    blocked_resource_types=frozenset({
        ResourceType.MEDIA,
        ResourceType.FONT,
        ResourceType.WEBSOCKET,
        ResourceType.MANIFEST,
        ResourceType.OTHER,
    }),
)

STANDARD = RenderPreset(
    name="standard",
    description="Load event plus near-idle network, fonts kept for fidelity",
    navigation=NavigationPolicy(
        address_wait_until="load",
        address_timeout_ms=45000,
        max_inflight_requests=2,
        idle_window_ms=500,
    ),
    readiness=ReadinessPolicy(
        loader_timeout_ms=15000,
        image_timeout_ms=5000,
        settle_delay_ms=3000,
    ),
    blocked_resource_types=frozenset({
        ResourceType.MEDIA,
        ResourceType.WEBSOCKET,
        ResourceType.MANIFEST,
        ResourceType.OTHER,
    }),
)

THOROUGH = RenderPreset(
    name="thorough",
    description="Load event plus full network idle, nothing blocked, strict image wait",
    navigation=NavigationPolicy(
        address_wait_until="load",
        address_timeout_ms=60000,
        max_inflight_requests=0,
        idle_window_ms=500,
    ),
    readiness=ReadinessPolicy(
        loader_timeout_ms=20000,
        image_timeout_ms=10000,
        strict_image_wait=True,
        settle_delay_ms=3000,
    ),
    blocked_resource_types=frozenset(),
)

DEFAULT_PRESET = STANDARD.name


class PresetRegistry:
    """Lookup of named presets, built explicitly per service."""

    def __init__(self, presets: Optional[List[RenderPreset]] = None):
        self._presets: Dict[str, RenderPreset] = {}
        for preset in presets if presets is not None else builtin_presets():
            self.register(preset)

    def register(self, preset: RenderPreset) -> None:
        self._presets[preset.name] = preset

    def get(self, name: str) -> Optional[RenderPreset]:
        return self._presets.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._presets

    @property
    def names(self) -> List[str]:
        return sorted(self._presets)

    @classmethod
    def from_overrides(cls, overrides: Dict[str, Dict]) -> 'PresetRegistry':
        """Build a registry from the built-ins plus configured overrides.

        Overrides for an existing name are merged into the built-in preset;
        unknown names define new presets on top of ``standard``.
        """
        registry = cls()
        for name, values in (overrides or {}).items():
            base = registry.get(name) or STANDARD
            registry.register(base.merged({**values, 'name': name}))
        return registry


def builtin_presets() -> List[RenderPreset]:
    return [FAST, STANDARD, THOROUGH]
