"""
Client for the campaign API with offline support.

Check-ins are recorded locally first and then posted; when the post fails they
go to a retry queue that `flush_queue` replays later. Reads fall back to the
locally cached copy when the network is down.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from flagbooth.app.config import AppConfig
from flagbooth.app.storage import KEY_CONFIG, KEY_KNOCKOUT, KEY_PROGRESS, KEY_QUEUE, KEY_VISITOR, LocalStore
from flagbooth.core.locations import GROUP_STAGE, TOTAL_LOCATIONS

logger = logging.getLogger(__name__)

HTTP_CONFLICT = 409  # already checked in at this location


@dataclass(frozen=True)
class CheckinResult:
    success: bool
    queued: bool = False
    offer: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class Progress:
    visited: List[str] = field(default_factory=list)
    total: int = TOTAL_LOCATIONS

    @property
    def count(self) -> int:
        return len(self.visited)

    @property
    def complete(self) -> bool:
        return self.count >= self.total


@dataclass(frozen=True)
class UploadResult:
    success: bool
    photo_url: Optional[str] = None


@dataclass(frozen=True)
class SubmitResult:
    success: bool
    submission_id: Optional[Any] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class GameConfig:
    phase: str = GROUP_STAGE
    overrides: List[Dict[str, Any]] = field(default_factory=list)


def _merge_unique(*lists: List[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for items in lists:
        for item in items:
            seen.setdefault(item, None)
    return list(seen)


def _json_object(res: requests.Response) -> Dict[str, Any]:
    """Response body as a dict; anything else counts as a malformed response."""
    data = res.json()
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _without_sent(queue: Optional[List[Dict[str, Any]]], sent: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """The queue minus one occurrence of each sent entry; entries added meanwhile stay."""
    remaining = list(queue or [])
    for entry in sent:
        if entry in remaining:
            remaining.remove(entry)
    return remaining


class CampaignClient:
    def __init__(self, config: AppConfig, store: LocalStore, session: Optional[requests.Session] = None):
        self.config = config
        self.store = store
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.config.api_base}/{path.lstrip('/')}"

    def _post(self, path: str, payload: Dict[str, Any]) -> requests.Response:
        return self.session.post(self._url(path), json=payload, timeout=self.config.request_timeout)

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        return self.session.get(self._url(path), params=params, timeout=self.config.request_timeout)

    # ---------- Visitor ----------

    def cached_visitor(self) -> Optional[Dict[str, str]]:
        return self.store.get(KEY_VISITOR)

    def cache_visitor(self, email: str, first_name: str) -> None:
        self.store.set(KEY_VISITOR, {"email": email, "firstName": first_name})

    # ---------- Retry queue ----------

    def queued_checkins(self) -> List[Dict[str, Any]]:
        return list(self.store.get(KEY_QUEUE, []))

    def _enqueue(self, entry: Dict[str, Any]) -> None:
        self.store.update(KEY_QUEUE, lambda queue: list(queue or []) + [entry])

    def flush_queue(self) -> int:
        """
        Replay queued check-ins. Entries the server accepts (or already has, 409) are
        dropped; everything else stays queued, as do check-ins queued while the
        replay was running. Returns how many remain.
        """
        queue = self.queued_checkins()
        if not queue:
            return 0

        sent = []
        for entry in queue:
            try:
                res = self._post("checkin", entry)
            except requests.RequestException as e:
                logger.info("Check-in replay for %s failed: %s", entry.get("locationId"), e)
                continue
            if res.ok or res.status_code == HTTP_CONFLICT:
                sent.append(entry)

        remaining = self.store.update(KEY_QUEUE, lambda current: _without_sent(current, sent))
        logger.info("Flushed retry queue: %d sent, %d still queued", len(sent), len(remaining))
        return len(remaining)

    # ---------- Check-in ----------

    def checkin(
        self,
        email: str,
        first_name: str,
        location_id: str,
        format_name: str,
        phase: Optional[str] = None,
    ) -> CheckinResult:
        """
        Register a check-in. Local progress is updated before the request, so the
        visitor sees the capture even when offline; failed requests are queued.
        """
        payload: Dict[str, Any] = {
            "email": email,
            "firstName": first_name,
            "locationId": location_id,
            "format": format_name,
        }
        if phase and phase != GROUP_STAGE:
            payload["phase"] = phase
            self._record_knockout(location_id, phase)

        self._update_local_progress(location_id)
        self.cache_visitor(email, first_name)

        try:
            res = self._post("checkin", payload)
        except requests.RequestException as e:
            logger.warning("Check-in for %s queued (network error: %s)", location_id, e)
            self._enqueue(payload)
            return CheckinResult(success=True, queued=True)

        if res.ok or res.status_code == HTTP_CONFLICT:
            offer = None
            if res.ok:
                try:
                    offer = _json_object(res).get("offer")
                except ValueError:
                    offer = None
            return CheckinResult(success=True, offer=offer)

        logger.warning("Check-in for %s queued (HTTP %s)", location_id, res.status_code)
        self._enqueue(payload)
        return CheckinResult(success=True, queued=True)

    # ---------- Progress ----------

    def _update_local_progress(self, location_id: str) -> None:
        def add(progress: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            progress = dict(progress or {})
            progress["visited"] = _merge_unique(progress.get("visited", []), [location_id])
            return progress

        self.store.update(KEY_PROGRESS, add)

    def cached_progress(self) -> Progress:
        data = self.store.get(KEY_PROGRESS) or {}
        return Progress(visited=list(data.get("visited", [])), total=int(data.get("total", TOTAL_LOCATIONS)))

    def fetch_progress(self, email: str) -> Progress:
        """Server progress merged with local captures; the local copy when offline."""
        try:
            res = self._get("progress", params={"email": email})
            if res.ok:
                data = _json_object(res)
                total = int(data.get("total", TOTAL_LOCATIONS))
                saved = self.store.update(
                    KEY_PROGRESS,
                    lambda local: {
                        "visited": _merge_unique(data.get("visited", []), (local or {}).get("visited", [])),
                        "total": total,
                    },
                )
                return Progress(visited=list(saved["visited"]), total=total)
            logger.info("Progress request failed with HTTP %s", res.status_code)
        except (requests.RequestException, ValueError) as e:
            logger.info("Progress unavailable, using local cache: %s", e)
        return self.cached_progress()

    def _record_knockout(self, location_id: str, phase: str) -> None:
        entry = {"location_id": location_id, "phase": phase}

        def add(entries: Optional[List[Dict[str, str]]]) -> List[Dict[str, str]]:
            entries = list(entries or [])
            if entry not in entries:
                entries.append(entry)
            return entries

        self.store.update(KEY_KNOCKOUT, add)

    def cached_knockout_progress(self) -> List[Dict[str, str]]:
        return list(self.store.get(KEY_KNOCKOUT, []))

    # ---------- Photo upload / submission ----------

    def upload_photo(self, email: str, location_id: str, image_data: str) -> UploadResult:
        try:
            res = self._post("upload-photo", {"email": email, "locationId": location_id, "imageData": image_data})
            if res.ok:
                return UploadResult(success=True, photo_url=_json_object(res).get("photoUrl"))
            logger.warning("Photo upload for %s failed with HTTP %s", location_id, res.status_code)
        except (requests.RequestException, ValueError) as e:
            logger.warning("Photo upload for %s failed: %s", location_id, e)
        return UploadResult(success=False)

    def submit_for_review(self, email: str) -> SubmitResult:
        """Ask for review once all locations are captured."""
        try:
            res = self._post("submit", {"email": email})
            data = _json_object(res)
        except requests.RequestException as e:
            logger.warning("Submission failed: %s", e)
            return SubmitResult(success=False, error="Network error")
        except ValueError:
            return SubmitResult(success=False, error="Unexpected response from server")

        if res.ok:
            return SubmitResult(success=True, submission_id=data.get("submissionId"))
        return SubmitResult(success=False, error=data.get("error"))

    # ---------- Leaderboard / config ----------

    def fetch_leaderboard(self) -> Dict[str, List[Dict[str, Any]]]:
        try:
            res = self._get("leaderboard")
            if res.ok:
                data = _json_object(res)
                return {"leaders": data.get("leaders", []), "locationStats": data.get("locationStats", [])}
        except (requests.RequestException, ValueError) as e:
            logger.info("Leaderboard unavailable: %s", e)
        return {"leaders": [], "locationStats": []}

    def cached_config(self) -> GameConfig:
        data = self.store.get(KEY_CONFIG) or {}
        return GameConfig(phase=data.get("phase") or GROUP_STAGE, overrides=list(data.get("overrides") or []))

    def fetch_config(self) -> GameConfig:
        """Current phase and location overrides; the cached copy when unreachable."""
        try:
            res = self._get("config")
            if res.ok:
                data = _json_object(res)
                cfg = GameConfig(phase=data.get("phase") or GROUP_STAGE, overrides=list(data.get("overrides") or []))
                self.store.set(KEY_CONFIG, {"phase": cfg.phase, "overrides": cfg.overrides})
                return cfg
            logger.info("Config request failed with HTTP %s", res.status_code)
        except (requests.RequestException, ValueError) as e:
            logger.info("Config unavailable, using cached: %s", e)
        return self.cached_config()
