from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AppConfig:
    """
    Deployment settings for the booth.

    api_base:
        Base URL of the campaign API (the `/api` prefix of the web deployment).
    frames_dir:
        Directory holding designer frames named `<slug>-<format>.png`.
    public_url:
        Public site URL; location QR codes point at `<public_url>/?loc=<slug>`.
    request_timeout:
        Seconds before an API call counts as a network failure.
    """
    api_base: str = "http://localhost:3000/api"
    frames_dir: str = "assets/frames"
    public_url: str = "http://localhost:3000"
    request_timeout: float = 10.0
    app_name: str = "flagbooth"

    @staticmethod
    def from_env() -> "AppConfig":
        d = AppConfig()
        return AppConfig(
            api_base=os.getenv("FLAGBOOTH_API_BASE", d.api_base).rstrip("/"),
            frames_dir=os.getenv("FLAGBOOTH_FRAMES_DIR", d.frames_dir),
            public_url=os.getenv("FLAGBOOTH_PUBLIC_URL", d.public_url).rstrip("/"),
            request_timeout=float(os.getenv("FLAGBOOTH_TIMEOUT", d.request_timeout)),
        )
