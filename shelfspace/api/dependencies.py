"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- Per-session analysis services
"""

import asyncio
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Optional

from fastapi import Request
from loguru import logger

from shelfspace.config import DetectionConfig, ShelfSpaceConfig
from shelfspace.exceptions import SessionNotFoundError
from shelfspace.service import FrameAnalysis, ShelfSpaceService
from shelfspace.vision.external_detector import ExternalDetector, HttpDetectorClient
from shelfspace.vision.pixel_buffer import PixelBuffer


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Detection
    sensitivity_profile: str = "balanced"
    edge_threshold: Optional[float] = None
    max_workers: int = 1

    # External detector
    detector_url: Optional[str] = None
    refine_url: Optional[str] = None
    detector_timeout: float = 10.0

    # Sessions
    max_sessions: int = 100

    # File uploads
    max_upload_size_mb: int = 10
    allowed_image_types: str = "image/jpeg,image/png,image/webp"

    # Environment
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        edge_threshold = os.getenv("SHELFSPACE_EDGE_THRESHOLD")
        return cls(
            sensitivity_profile=os.getenv("SHELFSPACE_PROFILE", cls.sensitivity_profile),
            edge_threshold=float(edge_threshold) if edge_threshold else None,
            max_workers=int(os.getenv("SHELFSPACE_MAX_WORKERS", cls.max_workers)),
            detector_url=os.getenv("SHELFSPACE_DETECTOR_URL"),
            refine_url=os.getenv("SHELFSPACE_REFINE_URL"),
            detector_timeout=float(os.getenv("SHELFSPACE_DETECTOR_TIMEOUT", cls.detector_timeout)),
            max_sessions=int(os.getenv("SHELFSPACE_MAX_SESSIONS", cls.max_sessions)),
            max_upload_size_mb=int(os.getenv("MAX_UPLOAD_SIZE_MB", cls.max_upload_size_mb)),
            allowed_image_types=os.getenv("ALLOWED_IMAGE_TYPES", cls.allowed_image_types),
            environment=os.getenv("SHELFSPACE_ENV", cls.environment),
            debug=os.getenv("DEBUG", "true").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
        )

    def build_config(self) -> ShelfSpaceConfig:
        """Analysis configuration for new sessions."""
        overrides = {"max_workers": self.max_workers}
        if self.edge_threshold is not None:
            overrides["edge_threshold"] = self.edge_threshold
            overrides["retry_edge_threshold"] = self.edge_threshold / 2

        return ShelfSpaceConfig(
            detection=DetectionConfig.for_profile(self.sensitivity_profile, **overrides),
            detector_timeout=self.detector_timeout,
        )

    def build_detector(self) -> Optional[ExternalDetector]:
        """External detector client, when one is configured."""
        if not self.detector_url:
            return None
        return HttpDetectorClient(
            detect_url=self.detector_url,
            refine_url=self.refine_url,
            timeout=self.detector_timeout,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()


# =============================================================================
# Sessions
# =============================================================================

@dataclass
class Session:
    """One camera stream: its service and the lock serializing its frames."""
    service: ShelfSpaceService
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class SessionRegistry:
    """
    Analysis services keyed by session id.

    Each session carries its own stabilizer state. Frames of one session
    are processed one at a time; different sessions run independently.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.config = settings.build_config()
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get_or_create(self, session_id: str) -> Session:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            # Most recently used sessions live at the end
            self._sessions[session_id] = session
        else:
            if len(self._sessions) >= self.settings.max_sessions:
                # Evict the least recently used session
                stale = next(iter(self._sessions))
                del self._sessions[stale]
                logger.info(f"Evicted session {stale}")

            session = Session(
                service=ShelfSpaceService(self.config, self.settings.build_detector())
            )
            self._sessions[session_id] = session
            logger.info(f"Created session {session_id}")
        return session

    async def analyze(self, session_id: str, buffer: PixelBuffer) -> FrameAnalysis:
        """Run one frame through the session's service."""
        session = self.get_or_create(session_id)
        async with session.lock:
            return await session.service.process_frame_async(buffer)

    def remove(self, session_id: str) -> int:
        """
        Drop a session.

        Returns:
            Number of frames the session had processed

        Raises:
            SessionNotFoundError: No such session
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)
        logger.info(f"Removed session {session_id}")
        return session.service.frame_count

    def clear(self) -> None:
        self._sessions.clear()


def get_session_registry(request: Request) -> SessionRegistry:
    """Dependency for the application's session registry."""
    return request.app.state.sessions
