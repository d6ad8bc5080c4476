"""Document data models."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class TextFragment:
    """One positioned run of text as emitted by the PDF parser."""
    text: Optional[str]
    x: Optional[float] = None
    y: Optional[float] = None  # PDF user space: measured up from the bottom edge
    width: Optional[float] = None


@dataclass
class PageRecord:
    """Represents a single reconstructed page of a manual."""
    page_num: int  # 1-indexed
    text: str
    image_ref: Optional[str] = None  # data URL of the page thumbnail
    links: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pageNum": self.page_num,
            "text": self.text,
            "imageSrc": self.image_ref,
            "links": list(self.links),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PageRecord":
        return cls(
            page_num=int(data["pageNum"]),
            text=data.get("text") or "",
            image_ref=data.get("imageSrc"),
            links=list(data.get("links") or []),
        )
