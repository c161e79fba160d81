from harvester.domain.entities.credential import SessionCredential
from harvester.domain.entities.crawl import Cursor, FeedPage, ProducerCrawlResult, RunSummary
from harvester.domain.entities.media import MediaDescriptor, MediaKind, MediaRecord
from harvester.domain.entities.post import Post, PostStatus
from harvester.domain.entities.producer import Producer, ProducerKind

__all__ = [
    "Cursor",
    "FeedPage",
    "MediaDescriptor",
    "MediaKind",
    "MediaRecord",
    "Post",
    "PostStatus",
    "Producer",
    "ProducerCrawlResult",
    "ProducerKind",
    "RunSummary",
    "SessionCredential",
]
