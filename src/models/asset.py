"""Models for themed asset generation runs."""

import base64
import random
import re
import string
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from utils.retry import ErrorKind

ASSET_ID_ALPHABET = string.ascii_lowercase + string.digits
ASSET_ID_LENGTH = 9


class AssetKind(str, Enum):
    """Supported asset categories (values are the labels shown to users)."""

    STICKER = "Sticker"
    PNG_ELEMENT = "PNG Element"
    GRAPHIC = "Graphic"
    SHAPE_3D = "3D Shape"
    MOCKUP = "Mockup"
    PHOTO = "Photo"
    STAMP = "Stamp"
    GIF = "GIF (Motion)"

    @property
    def is_motion(self) -> bool:
        return self is AssetKind.GIF

    @property
    def needs_transparency(self) -> bool:
        """Whether fetched images get their white background keyed out."""
        return self in TRANSPARENT_KINDS

    @property
    def slug(self) -> str:
        return re.sub(r"\s+", "-", self.value.lower())


TRANSPARENT_KINDS = frozenset(
    {
        AssetKind.STICKER,
        AssetKind.PNG_ELEMENT,
        AssetKind.GRAPHIC,
        AssetKind.SHAPE_3D,
        AssetKind.STAMP,
    }
)


class RunStatus(str, Enum):
    """Lifecycle of a generation run."""

    PENDING = "pending"
    EXPANDING = "expanding"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


def new_asset_id() -> str:
    """Short random base36 token identifying an asset within a session."""
    return "".join(random.choices(ASSET_ID_ALPHABET, k=ASSET_ID_LENGTH))


@dataclass(frozen=True)
class VariationRequest:
    """One user submission: theme, category and how many variations to make."""

    base_prompt: str
    kind: AssetKind
    count: int = 20

    def __post_init__(self):
        if not self.base_prompt or not self.base_prompt.strip():
            raise ValueError("base_prompt is required")
        if self.count < 1:
            raise ValueError("count must be at least 1")


@dataclass(frozen=True)
class AssetContent:
    """Binary payload of a fetched image or video."""

    data: bytes
    mime_type: str = "image/png"

    def to_data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


@dataclass(frozen=True)
class GeneratedAsset:
    """A single successfully generated asset."""

    id: str
    content: AssetContent
    kind: AssetKind
    source_prompt: str
    created_at: datetime = field(default_factory=datetime.now)
    is_motion: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "url": self.content.to_data_uri(),
            "mime_type": self.content.mime_type,
            "type": self.kind.value,
            "prompt": self.source_prompt,
            "timestamp": int(self.created_at.timestamp() * 1000),
            "is_video": self.is_motion,
        }


@dataclass
class GenerationRun:
    """Transient state of one orchestration invocation."""

    run_id: str
    request: VariationRequest
    completed_assets: list[GeneratedAsset] = field(default_factory=list)
    progress_percent: int = 0
    status: RunStatus = RunStatus.PENDING
    terminal_error: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    attempted_prompts: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in (RunStatus.PENDING, RunStatus.EXPANDING, RunStatus.GENERATING)

    def advance_progress(self, completed: int, total: int) -> int:
        """Move progress to ``round(100 * completed / total)``, never backwards."""
        if total <= 0:
            return self.progress_percent
        value = min(100, round(100 * completed / total))
        self.progress_percent = max(self.progress_percent, value)
        return self.progress_percent

    def find_asset(self, asset_id: str) -> Optional[GeneratedAsset]:
        for asset in self.completed_assets:
            if asset.id == asset_id:
                return asset
        return None

    def to_dict(self, include_assets: bool = True) -> dict:
        """Convert to dictionary for API responses."""
        result = {
            "run_id": self.run_id,
            "prompt": self.request.base_prompt,
            "type": self.request.kind.value,
            "requested_count": self.request.count,
            "status": self.status.value,
            "progress": self.progress_percent,
            "completed_count": len(self.completed_assets),
            "error": self.error_message,
            "error_kind": self.terminal_error.value if self.terminal_error else None,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
        if include_assets:
            result["assets"] = [a.to_dict() for a in self.completed_assets]
        return result
