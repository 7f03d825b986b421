from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppPaths:
    """
    Files the booth keeps between runs: the local store (visitor, progress, retry
    queue), the last preview render and the exported photos.
    """
    base_dir: Path
    store_file: Path
    preview_image: Path
    exports_dir: Path

    @staticmethod
    def default(app_name: str = "flagbooth") -> "AppPaths":
        base = Path(tempfile.gettempdir()) / app_name
        exports = base / "exports"
        exports.mkdir(parents=True, exist_ok=True)
        return AppPaths(
            base_dir=base,
            store_file=base / "store.json",
            preview_image=base / "preview.jpg",
            exports_dir=exports,
        )

    def export_path(self, filename: str) -> Path:
        return self.exports_dir / filename

    def cleanup(self) -> None:
        """
        Best-effort removal of the preview render. Safe to call multiple times.
        """
        try:
            if self.preview_image.exists():
                self.preview_image.unlink()
        except OSError as e:
            logger.debug("Could not remove %s: %s", self.preview_image, e)
