from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from toss.core.models import COLUMN_ORDER, Classification, ImageFile


def format_size(num_bytes: int) -> str:
    """Human-readable byte count (B, KB, MB, GB)."""
    size = float(num_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


@dataclass
class StatusBarInfo:
    filename: str
    size_bytes: int
    width: Optional[int]
    height: Optional[int]
    position: Optional[int] = None
    total: Optional[int] = None
    classification: Optional[Classification] = None

    def to_message(self) -> str:
        parts = [self.filename]
        if self.position is not None and self.total is not None:
            parts.append(f"{self.position}/{self.total}")
        parts.append(format_size(self.size_bytes))
        if self.width and self.height:
            parts.append(f"{self.width}x{self.height}")
        if self.classification is not None:
            parts.append(self.classification.value.title())
        return " | ".join(parts)


def build_status_bar_info(
    image: ImageFile,
    position: Optional[int] = None,
    total: Optional[int] = None,
    classification: Optional[Classification] = None,
) -> StatusBarInfo:
    return StatusBarInfo(
        filename=image.name,
        size_bytes=image.size,
        width=image.width,
        height=image.height,
        position=position,
        total=total,
        classification=classification,
    )


def format_counts(counts: Dict[Classification, int]) -> str:
    """e.g. 'Keep 3 · Maybe 1 · Yeet 7'."""
    return " · ".join(
        f"{bucket.value.title()} {counts.get(bucket, 0)}" for bucket in COLUMN_ORDER
    )
