"""Weibo Media Harvester — 엔트리포인트.

1. 설정 로드 (.env + config/settings.yaml)
2. Firebase Firestore 초기화
3. 의존성 컨테이너 조립
4. Gist에서 세션을 받아 브라우저 시작
5. crawl: Producer 피드를 돌며 새 게시물을 PENDING으로 저장
   (Weibo 개인 계정·슈퍼토픽, 小红书 개인 계정)
   consume: PENDING Weibo 게시물의 미디어를 갤러리에 업로드

시작 단계(설정/자격 증명/DB 초기화) 실패만 종료 코드 1. 그 외 오류는 로그로 남기고 계속한다.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# 프로젝트 루트를 sys.path에 추가
sys.path.insert(0, str(Path(__file__).parent))

from harvester.domain.entities import ProducerKind
from harvester.domain.exceptions import ConfigurationError, CredentialUnavailableError
from harvester.infrastructure.config.container import Container
from harvester.infrastructure.config.settings import AppConfig, Settings, load_app_config
from harvester.infrastructure.database.firebase_client import init_firebase

Path("logs").mkdir(exist_ok=True)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler("logs/app.log", encoding="utf-8"),
    ],
)
logger = logging.getLogger(__name__)

MODES = {
    "all": [ProducerKind.PERSONAL, ProducerKind.TOPIC, ProducerKind.XHS_PERSONAL],
    "weibo": [ProducerKind.PERSONAL, ProducerKind.TOPIC],
    "personal": [ProducerKind.PERSONAL],
    "topic": [ProducerKind.TOPIC],
    "xhs": [ProducerKind.XHS_PERSONAL],
}


def build_container(settings: Settings, config: AppConfig) -> Container:
    settings.require_secret_store()
    try:
        db = init_firebase(
            credential_path=settings.firebase_credential_path,
            project_id=settings.firebase_project_id or None,
        )
    except Exception as e:
        raise ConfigurationError(f"Firebase 초기화 실패: {e}") from e
    return Container(settings=settings, app_config=config, firestore_db=db)


async def run_crawl(settings: Settings, config: AppConfig, max_pages: int, mode: str) -> int:
    container = build_container(settings, config)
    try:
        await container.open_session(MODES[mode])
        uc = container.crawl_producers_use_case()
        await uc.execute(MODES[mode], max_pages)
    finally:
        await container.aclose()
    return 0


async def run_consume(settings: Settings, config: AppConfig, max_posts: int | None) -> int:
    container = build_container(settings, config)
    try:
        await container.open_session()
        uc = container.consume_posts_use_case()
        await uc.execute(max_posts)
    finally:
        await container.aclose()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Weibo Media Harvester")
    subparsers = parser.add_subparsers(dest="command", help="실행 명령")

    # crawl 명령
    crawl_parser = subparsers.add_parser("crawl", help="Producer 피드 수집")
    crawl_parser.add_argument("--max-pages", type=int, default=None, help="Producer당 최대 페이지 (기본: 설정값)")
    crawl_parser.add_argument("--mode", choices=sorted(MODES), default="all", help="수집할 Producer 종류")

    # consume 명령
    consume_parser = subparsers.add_parser("consume", help="PENDING 게시물 미디어 업로드")
    consume_parser.add_argument("--max-posts", type=int, default=None, help="처리할 최대 게시물 수")

    args = parser.parse_args()

    settings = Settings()
    config = load_app_config()

    try:
        if args.command == "crawl":
            max_pages = args.max_pages or config.crawl.max_pages
            code = asyncio.run(run_crawl(settings, config, max_pages, args.mode))
        elif args.command == "consume":
            code = asyncio.run(run_consume(settings, config, args.max_posts))
        else:
            parser.print_help()
            print("\n사용 방법:")
            print("  1. .env에 GIST_ID, GIST_TOKEN, Firebase 설정 입력")
            print("  2. Gist에 Playwright storage state(weibo.storage.json) 업로드")
            print("  3. 실행:")
            print("     python main.py crawl                    # 전체 Producer 수집")
            print("     python main.py crawl --mode topic        # 슈퍼토픽만")
            print("     python main.py crawl --mode xhs          # 小红书 계정만")
            print("     python main.py consume --max-posts 50    # 미디어 업로드")
            code = 0
    except (ConfigurationError, CredentialUnavailableError) as e:
        logger.error(f"시작 실패: {e}")
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
