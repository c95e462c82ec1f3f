"""
Video Storage

In-memory store for generated videos. Records are immutable once created and
identified by an increasing integer ID.
"""

import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional

from app.models.videos import Video, VideoCreate

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class VideoStorage:
    """Process-local video store shared by the generation jobs and the API."""

    DEFAULT_LIST_LIMIT = 10

    def __init__(self):
        self._videos: Dict[int, Video] = {}
        self._next_id = 1
        # Generation jobs write from the threadpool
        self._lock = threading.Lock()

    async def get_video(self, video_id: int) -> Optional[Video]:
        return self._videos.get(video_id)

    async def list_videos(
        self, wallet_address: Optional[str] = None, limit: int = DEFAULT_LIST_LIMIT
    ) -> List[Video]:
        """
        List stored videos, newest first.

        Args:
            wallet_address: Only return videos paid for by this address
            limit: Maximum number of videos to return
        """
        videos = list(self._videos.values())
        if wallet_address:
            videos = [
                v
                for v in videos
                if v.wallet_address and v.wallet_address.lower() == wallet_address.lower()
            ]
        videos.sort(key=lambda v: (v.created_at, v.id), reverse=True)
        return videos[:limit]

    def create_video_sync(self, video: VideoCreate) -> Video:
        with self._lock:
            video_id = self._next_id
            self._next_id += 1
            stored = Video(id=video_id, created_at=datetime.utcnow(), **video.model_dump())
            self._videos[video_id] = stored

        logger.info(f"Stored video {video_id}: {stored.ipfs_cid}")
        return stored
