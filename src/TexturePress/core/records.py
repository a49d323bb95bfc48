"""Sidecar metadata records."""

import json
from dataclasses import dataclass, asdict


@dataclass(frozen=True)
class ImageMetadata:
    """Metadata written beside each block-compressed blob."""

    extension: str
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"ImageMetadata dimensions must be positive, got {self.width}x{self.height}"
            )

    def to_dict(self) -> dict:
        """Return dataclass fields as a plain dictionary."""
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "ImageMetadata":
        return cls(
            extension=str(data["extension"]),
            width=int(data["width"]),
            height=int(data["height"]),
        )
