"""Base class for page renderers and their outcomes."""

from abc import ABC, abstractmethod
from typing import Literal, Union

from bs4 import BeautifulSoup
from pydantic import BaseModel, ConfigDict


class Rendered(BaseModel):
    """A page that rendered, with or without a populated result."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["rendered"] = "rendered"
    target: str
    head: str = ""
    fragment: str | None = None  # None when the markers were not found
    result_present: bool = False
    title: str | None = None


class Failed(BaseModel):
    """A page that could not be rendered."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["failed"] = "failed"
    target: str
    reason: str


RenderOutcome = Union[Rendered, Failed]


def title_from_head(head_html: str) -> str | None:
    """Return the text of the <title> element in a serialized head."""
    if not head_html:
        return None
    soup = BeautifulSoup(head_html, "lxml")
    title = soup.find("title")
    if title is None:
        return None
    text = title.get_text(strip=True)
    return text or None


class BaseRenderer(ABC):
    """Abstract base class for page renderers.

    A renderer owns one browser instance for its whole lifetime and renders
    targets one at a time.
    """

    def __init__(self, worker_id: int = 1):
        self.worker_id = worker_id

    @abstractmethod
    async def render(self, target: str) -> RenderOutcome:
        """Render one target. Never raises for per-target problems."""
        pass

    @abstractmethod
    async def __aenter__(self):
        """Launch the underlying browser."""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Tear down the underlying browser."""
        pass
