# Data models for the forge
from .asset import (
    AssetContent,
    AssetKind,
    GeneratedAsset,
    GenerationRun,
    RunStatus,
    VariationRequest,
)

__all__ = [
    "AssetContent",
    "AssetKind",
    "GeneratedAsset",
    "GenerationRun",
    "RunStatus",
    "VariationRequest",
]
