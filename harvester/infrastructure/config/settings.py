from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings

from harvester.domain.exceptions import ConfigurationError


# ──────────────────────────────────────────
# 환경변수 기반 시크릿 설정 (.env)
# ──────────────────────────────────────────
class Settings(BaseSettings):
    # 세션 storage state를 보관하는 GitHub Gist
    gist_id: str = ""
    gist_token: str = ""
    gist_storage_state_filename: str = "weibo.storage.json"
    storage_state_path: str = "weibo.storage.json"
    # 小红书 storage state (같은 Gist의 별도 파일)
    gist_xhs_storage_state_filename: str = "xhs.storage.json"
    xhs_storage_state_path: str = "xhs.storage.json"

    # 미디어 갤러리 (오브젝트 스토어)
    gallery_url: str = "https://gallery233.pages.dev"

    # Firebase
    firebase_credential_path: str = "firebase-service-account.json"
    firebase_project_id: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def require_secret_store(self) -> None:
        """시크릿 저장소 설정이 없으면 시작할 수 없다."""
        missing = [name for name in ("gist_id", "gist_token") if not getattr(self, name)]
        if missing:
            raise ConfigurationError(f"필수 환경변수 누락: {', '.join(n.upper() for n in missing)}")


# ──────────────────────────────────────────
# YAML 기반 앱 설정 (config/settings.yaml)
# ──────────────────────────────────────────
class CrawlConfig:
    def __init__(self, data: dict[str, Any]):
        self.max_pages: int = data.get("max_pages", 20)
        self.incremental_pages_personal: int = data.get("incremental_pages_personal", 1)
        self.incremental_pages_topic: int = data.get("incremental_pages_topic", 5)
        self.incremental_pages_xhs: int = data.get("incremental_pages_xhs", 5)
        self.xhs_max_scrolls: int = data.get("xhs_max_scrolls", 12)
        self.page_delay_seconds: float = data.get("page_delay_seconds", 5.0)
        self.producer_delay_seconds: float = data.get("producer_delay_seconds", 5.0)


class SessionConfig:
    def __init__(self, data: dict[str, Any]):
        self.max_refreshes: int = data.get("max_refreshes", 2)
        self.transient_retries: int = data.get("transient_retries", 2)
        self.transient_backoff_seconds: float = data.get("transient_backoff_seconds", 2.0)
        self.session_keywords: list[str] = data.get("session_keywords", [])


class IngestionConfig:
    def __init__(self, data: dict[str, Any]):
        self.concurrency: int = data.get("concurrency", 4)
        self.max_download_mb: int = data.get("max_download_mb", 50)
        self.download_timeout_seconds: float = data.get("download_timeout_seconds", 60.0)
        self.referer: str = data.get("referer", "https://weibo.com/")
        self.upload_attempts: int = data.get("upload_attempts", 3)
        self.upload_backoff_seconds: float = data.get("upload_backoff_seconds", 1.0)
        self.upload_backoff_factor: float = data.get("upload_backoff_factor", 2.0)
        self.upload_timeout_seconds: float = data.get("upload_timeout_seconds", 120.0)
        self.image_quality: int = data.get("image_quality", 80)
        self.thumbnail_max_side: int = data.get("thumbnail_max_side", 600)
        self.thumbnail_quality: int = data.get("thumbnail_quality", 50)


class BrowserConfig:
    def __init__(self, data: dict[str, Any]):
        self.headless: bool = data.get("headless", True)
        self.navigation_timeout_ms: int = data.get("navigation_timeout_ms", 30000)
        self.scroll_step_px: int = data.get("scroll_step_px", 1200)
        self.scroll_wait_ms: int = data.get("scroll_wait_ms", 800)
        self.user_agents: list[str] = data.get("user_agents", [
            "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
        ])
        # 小红书 웹은 데스크톱 UA로 연다
        self.xhs_user_agents: list[str] = data.get("xhs_user_agents", [
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
        ])


class RunConfig:
    def __init__(self, data: dict[str, Any]):
        self.deadline_hours: float = data.get("deadline_hours", 5.0)


class AppConfig:
    """YAML에서 로드된 전체 앱 설정."""

    def __init__(self, data: dict[str, Any]):
        self.name: str = data.get("app", {}).get("name", "Weibo Media Harvester")
        self.crawl = CrawlConfig(data.get("crawl", {}))
        self.session = SessionConfig(data.get("session", {}))
        self.ingestion = IngestionConfig(data.get("ingestion", {}))
        self.browser = BrowserConfig(data.get("browser", {}))
        self.run = RunConfig(data.get("run", {}))


def load_app_config(path: str = "config/settings.yaml") -> AppConfig:
    """YAML 설정 파일을 로드하여 AppConfig를 반환."""
    config_path = Path(path)
    if not config_path.exists():
        return AppConfig({})
    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return AppConfig(data)
