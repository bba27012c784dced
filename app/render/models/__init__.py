"""Render data models package."""

from .job import (
    JobKind,
    ResourceType,
    ImageFormat,
    Margin,
    DocumentOptions,
    CaptureOptions,
    JobOptions,
    RenderJob,
    new_job_id,
)

from .result import (
    ErrorKind,
    JobState,
    SignalOutcome,
    SignalResult,
    ReadinessReport,
    CaptureResult,
    ClassifiedError,
    JobEvent,
)

__all__ = [
    # Job models
    'JobKind',
    'ResourceType',
    'ImageFormat',
    'Margin',
    'DocumentOptions',
    'CaptureOptions',
    'JobOptions',
    'RenderJob',
    'new_job_id',

    # Result models
    'ErrorKind',
    'JobState',
    'SignalOutcome',
    'SignalResult',
    'ReadinessReport',
    'CaptureResult',
    'ClassifiedError',
    'JobEvent',
]
