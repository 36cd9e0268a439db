import logging
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page
from playwright_stealth import stealth_async

from .hook import install_geometry_hook

logger = logging.getLogger(__name__)


class Session:
    """一个浏览器 context 加一个当前页面；页面关闭后在 ensure_page() 中整体替换"""

    def __init__(self, browser: Browser, context: BrowserContext, page: Page, default_timeout_ms: int = 60000):
        self.browser = browser
        self.context = context
        self.page = page
        self.default_timeout_ms = default_timeout_ms

    @classmethod
    async def attach(cls, browser: Browser, default_timeout_ms: int = 60000,
                     http_credentials: Optional[dict] = None) -> "Session":
        """
        使用已有的第一个 context 和页面，没有页面时新建

        代理需要认证时新建带 http_credentials 的 context，由 Playwright 应答 407
        """
        if http_credentials:
            context = await browser.new_context(http_credentials=http_credentials)
        elif browser.contexts:
            context = browser.contexts[0]
        else:
            context = await browser.new_context()
        page = context.pages[0] if context.pages else await context.new_page()
        session = cls(browser, context, page, default_timeout_ms)
        await session._prepare(page)
        return session

    async def _prepare(self, page: Page) -> None:
        page.set_default_timeout(self.default_timeout_ms)
        # 抹掉 navigator.webdriver 等自动化特征
        await stealth_async(page)
        await install_geometry_hook(page)

    async def ensure_page(self) -> Page:
        """确保持有一个可用页面"""
        if self.page.is_closed():
            logger.warning("⚠️ 页面已关闭，重新创建页面")
            page = await self.context.new_page()
            await self._prepare(page)
            self.page = page
        return self.page

    async def close(self) -> None:
        await self.browser.close()
