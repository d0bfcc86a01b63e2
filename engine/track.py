from __future__ import annotations
from dataclasses import dataclass

@dataclass(frozen=True, slots=True)
class TrackMetadata:
    file_path: str
    file_name: str
    mime_type: str
    size_bytes: int

    @property
    def size_label(self) -> str:
        return f"{self.size_bytes} bytes"
