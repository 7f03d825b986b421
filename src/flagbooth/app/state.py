from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from flagbooth.core.locations import GROUP_STAGE
from flagbooth.core.models import Location, Transform, Window, window_for

if TYPE_CHECKING:  # avoid importing Pillow at module import time
    from PIL import Image


@dataclass
class AppState:
    """
    Mutable state for a single booth session.

    The UI reads this state and forwards events; the session and the gesture handler
    are the only writers (upload -> position -> export -> check in).
    """
    screen: str = "home"

    # Selection
    location_slug: Optional[str] = None
    location: Optional[Location] = None
    format_name: Optional[str] = None

    # Photo
    photo: Optional["Image.Image"] = None
    photo_path: Optional[str] = None
    transform: Optional[Transform] = None
    min_scale: float = 1.0

    # Campaign phase, from the config endpoint
    phase: str = GROUP_STAGE
    overrides: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def window(self) -> Window:
        return window_for(self.format_name)

    @property
    def has_photo(self) -> bool:
        return self.photo is not None

    def reset_photo(self) -> None:
        """Drop the photo and its transform (new photo, back, or capture another)."""
        self.photo = None
        self.photo_path = None
        self.transform = None
        self.min_scale = 1.0

    def reset(self) -> None:
        """Clear the photo and the format selection; keep location and phase."""
        self.reset_photo()
        self.format_name = None
