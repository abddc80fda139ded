"""Data models for the workflow orchestrator"""

from .workflow import (
    Scene,
    SceneModels,
    VoiceoverPlan,
    RecommendedModels,
    WorkflowPlan,
)
from .records import (
    RunStatus,
    JobStatus,
    NodeType,
    ArtifactType,
    TransType,
    Run,
    Job,
    Artifact,
    CreditTransaction,
)
from .render import (
    TransitionType,
    TransitionSpec,
    VideoClip,
    OutputSpec,
    RenderState,
    RenderStatusReport,
    RenderOutput,
)

__all__ = [
    # Plan
    "Scene",
    "SceneModels",
    "VoiceoverPlan",
    "RecommendedModels",
    "WorkflowPlan",

    # Records
    "RunStatus",
    "JobStatus",
    "NodeType",
    "ArtifactType",
    "TransType",
    "Run",
    "Job",
    "Artifact",
    "CreditTransaction",

    # Render
    "TransitionType",
    "TransitionSpec",
    "VideoClip",
    "OutputSpec",
    "RenderState",
    "RenderStatusReport",
    "RenderOutput",
]
