import asyncio
import logging
import os
from datetime import datetime
from typing import List, Sequence

from playwright.async_api import async_playwright

from .browser import check_proxy, connect_session, ensure_running
from .config import Settings, load_accounts, load_settings
from .errors import SetupError
from .models import Account, RenewalOutcome
from .notify import STATUS_EMOJI, TelegramNotifier, escape_html
from .renewal import process_account
from .session import Session

logger = logging.getLogger(__name__)


async def run(session: Session, settings: Settings, accounts: Sequence[Account],
              notifier: TelegramNotifier) -> List[RenewalOutcome]:
    """按顺序处理所有账号，上一个账号的结果记录后才开始下一个"""
    outcomes = []
    for i, account in enumerate(accounts, 1):
        logger.info(f"\n=== 正在处理用户 {i}/{len(accounts)} ===")
        outcome = await process_account(session, settings, account)
        outcomes.append(outcome)

        caption = f"{STATUS_EMOJI.get(outcome.status, '•')} <b>{escape_html(outcome.account)}</b>: {escape_html(outcome.note)}"
        if outcome.screenshot:
            notifier.notify_with_image(caption, outcome.screenshot)
        else:
            notifier.notify(caption)
    return outcomes


def _summary(outcomes: Sequence[RenewalOutcome], start_time: datetime) -> str:
    ok = sum(1 for o in outcomes if o.ok)
    duration = (datetime.now() - start_time).total_seconds()
    verdict = "全部完成" if ok == len(outcomes) else "部分失败"
    return f"{verdict}: {ok}/{len(outcomes)}，耗时 {duration:.1f} 秒"


async def main() -> int:
    """主函数，返回进程退出码"""
    os.environ["NO_PROXY"] = "localhost,127.0.0.1"
    try:
        settings = load_settings()
        accounts = load_accounts()
        check_proxy(settings)
        endpoint = ensure_running(settings)
    except SetupError as e:
        logger.error(f"❌ {e}")
        return 1

    notifier = TelegramNotifier.from_settings(settings)
    start_time = datetime.now()
    print("=" * 70)
    print("  🔐 Katabump 自动续期脚本 (Playwright + CDP 版)")
    print(f"  👥 账号数量: {len(accounts)}")
    print("=" * 70)
    print()
    notifier.notify(
        f"🚀 <b>Katabump 自动续期开始</b>\n\n"
        f"🕐 时间: <code>{start_time.strftime('%Y-%m-%d %H:%M:%S')}</code>\n"
        f"👥 账号: {len(accounts)}"
    )

    async with async_playwright() as playwright:
        try:
            session = await connect_session(playwright, settings, endpoint)
        except SetupError as e:
            logger.error(f"❌ {e}")
            notifier.notify(f"❌ <b>Katabump 续期失败</b>\n\n{escape_html(str(e))}")
            return 1

        try:
            outcomes = await run(session, settings, accounts, notifier)
        finally:
            await session.close()

    notifier.notify_renew_results(outcomes, _summary(outcomes, start_time))
    logger.info("完成。")
    return 0


def cli() -> int:
    logging.basicConfig(level=logging.INFO)
    return asyncio.run(main())
