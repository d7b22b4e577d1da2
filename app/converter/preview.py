"""Preview tiles shown for each converted page."""

from __future__ import annotations

from dataclasses import dataclass, field

from .storage import PageImage


@dataclass(frozen=True)
class PreviewTile:
    """Display data for one converted page and its download control."""

    record: PageImage

    @property
    def page_number(self) -> int:
        return self.record.page_number

    @property
    def image_format(self) -> str:
        return self.record.image_format

    @property
    def width(self) -> int:
        return self.record.width

    @property
    def height(self) -> int:
        return self.record.height

    @property
    def image_url(self) -> str:
        # encoded on each read; tiles only hold the raw record
        return self.record.data_url

    @property
    def caption(self) -> str:
        return f"Page {self.page_number}"

    @property
    def detail(self) -> str:
        return f"{self.width} × {self.height} px • {self.image_format.upper()}"

    @property
    def download_path(self) -> str:
        return f"/pages/{self.page_number}/download"

    @classmethod
    def from_record(cls, record: PageImage) -> "PreviewTile":
        return cls(record=record)


@dataclass
class PreviewBoard:
    """Append-only list of preview tiles; cleared only by a new run or reset."""

    tiles: list[PreviewTile] = field(default_factory=list)

    def add(self, record: PageImage) -> PreviewTile:
        tile = PreviewTile.from_record(record)
        self.tiles.append(tile)
        return tile

    def clear(self) -> None:
        self.tiles.clear()

    def __len__(self) -> int:
        return len(self.tiles)
