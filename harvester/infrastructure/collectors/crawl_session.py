"""Playwright 브라우징 세션.

하나의 브라우저 context와 하나의 page를 직렬로 재사용한다.
open()/close() (또는 async with)로 수명이 명시적이며 모듈 전역 싱글톤을 두지 않는다.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Callable, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Response, async_playwright

from harvester.domain.entities import SessionCredential
from harvester.domain.exceptions import TransientFetchError
from harvester.infrastructure.config.settings import BrowserConfig

logger = logging.getLogger(__name__)


class CrawlSession:
    """Playwright 브라우저 생명주기 및 세션(storage state) 관리."""

    def __init__(self, config: BrowserConfig, user_agents: Optional[list[str]] = None):
        self._config = config
        self._user_agents = user_agents if user_agents is not None else config.user_agents
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._credential: Optional[SessionCredential] = None

    @property
    def credential(self) -> Optional[SessionCredential]:
        return self._credential

    @property
    def current_url(self) -> str:
        return self._page.url if self._page else ""

    async def open(self, credential: Optional[SessionCredential] = None) -> CrawlSession:
        """Playwright 브라우저를 시작하고 자격 증명을 적용한다."""
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self._config.headless,
                args=["--disable-blink-features=AutomationControlled"],
            )
        except Exception as e:
            await self._playwright.stop()
            self._playwright = None
            logger.error(f"브라우저 시작 실패: {e}")
            raise
        await self._new_context(credential)
        logger.info("Playwright 브라우저 초기화 완료")
        return self

    async def close(self) -> None:
        """context와 브라우저를 종료."""
        if self._context is not None:
            try:
                await self._context.close()
            except Exception as e:
                logger.warning(f"context 종료 중 오류: {e}")
        self._context = None
        self._page = None

        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        logger.info("Playwright 브라우저 종료 완료")

    async def __aenter__(self) -> CrawlSession:
        if self._browser is None:
            await self.open(self._credential)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ─── 자격 증명 ───

    async def apply_credential(self, credential: SessionCredential) -> None:
        """기존 context를 버리고 새 storage state로 context를 다시 만든다."""
        context, self._context, self._page = self._context, None, None
        if context is not None:
            try:
                await context.close()
            except Exception as e:
                logger.warning(f"이전 context 종료 중 오류: {e}")
        await self._new_context(credential)
        logger.info("새 세션 자격 증명 적용")

    async def export_credential(self) -> SessionCredential:
        """서버가 교체한 쿠키를 포함한 현재 storage state. 세션의 현재 자격 증명도 이것으로 바뀐다."""
        if self._context is None:
            raise RuntimeError("세션이 열려 있지 않습니다.")
        state = await self._context.storage_state()
        self._credential = SessionCredential(storage_state=dict(state))
        return self._credential

    # ─── 브라우징 ───

    async def navigate(
        self, url: str, wait_until: str = "domcontentloaded", timeout_ms: Optional[int] = None
    ) -> Optional[int]:
        page = await self._ensure_page()
        try:
            response = await page.goto(
                url,
                wait_until=wait_until,
                timeout=timeout_ms or self._config.navigation_timeout_ms,
            )
        except Exception as e:
            raise TransientFetchError(f"페이지 이동 실패 {url}: {e}") from e
        return response.status if response else None

    async def evaluate(self, script: str) -> Any:
        return await self._require_page().evaluate(script)

    async def raw_text_body(self) -> str:
        return await self._require_page().inner_text("body")

    async def scroll_for_json(
        self,
        url_fragment: str,
        accept: Optional[Callable[[Any], bool]] = None,
        max_scrolls: int = 12,
    ) -> Any:
        """페이지를 조금씩 스크롤하며 url_fragment 응답을 기다린다. accept를 통과한 첫 JSON 본문을 반환."""
        page = self._require_page()
        matched: list[Response] = []

        def on_response(response: Response) -> None:
            if url_fragment in response.url and response.status == 200:
                matched.append(response)

        page.on("response", on_response)
        try:
            for _ in range(max_scrolls):
                await page.mouse.wheel(0, self._config.scroll_step_px)
                await page.wait_for_timeout(self._config.scroll_wait_ms)
                while matched:
                    response = matched.pop(0)
                    try:
                        body = await response.json()
                    except Exception as e:
                        logger.warning(f"응답 JSON 파싱 실패 {response.url}: {e}")
                        continue
                    if accept is None or accept(body):
                        return body
        finally:
            page.remove_listener("response", on_response)
        return None

    # ─── 내부 ───

    async def _new_context(self, credential: Optional[SessionCredential]) -> None:
        if self._browser is None:
            raise RuntimeError("브라우저가 시작되지 않았습니다.")
        ua = random.choice(self._user_agents) if self._user_agents else None
        context = await self._browser.new_context(
            storage_state=credential.storage_state if credential else None,
            user_agent=ua,
            locale="zh-CN",
            timezone_id="Asia/Shanghai",
        )
        try:
            page = await context.new_page()
        except Exception:
            await context.close()
            raise
        self._context, self._page = context, page
        self._credential = credential

    async def _ensure_page(self) -> Page:
        # 자격 증명 적용이 실패해 context가 없으면 마지막 자격 증명으로 다시 만든다
        if self._page is None and self._browser is not None:
            logger.warning("context 없음 — 현재 자격 증명으로 다시 생성")
            await self._new_context(self._credential)
        return self._require_page()

    def _require_page(self) -> Page:
        if self._page is None:
            raise RuntimeError("세션이 열려 있지 않습니다.")
        return self._page
