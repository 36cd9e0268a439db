"""
续期状态机：登录 -> 进入服务器页 -> Renew 弹窗 -> 过盾 -> 确认 -> 轮询结果

每个账号独立处理，异常只影响当前账号。
"""
import asyncio
import logging
from typing import List, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .config import Settings
from .errors import AuthError
from .models import Account, AttemptOutcome, RenewalOutcome, RenewAttempt, RenewStatus
from .screenshots import capture
from .session import Session
from .turnstile import resolve_challenge
from .utils import random_delay

logger = logging.getLogger(__name__)

LOGIN_ERROR_TEXT = "Incorrect password or no account"
CAPTCHA_ERROR_TEXT = "Please complete the captcha to continue"
TOO_EARLY_TEXT = "You can't renew your server yet"
RENEW_MODAL_SELECTOR = "#renew-modal"


async def wait_visible(locator: Locator, timeout_ms: int) -> bool:
    """等待元素可见，超时返回 False"""
    try:
        await locator.wait_for(state="visible", timeout=timeout_ms)
        return True
    except PlaywrightTimeoutError:
        return False


async def is_visible(locator: Locator) -> bool:
    try:
        return await locator.is_visible()
    except PlaywrightError:
        return False


async def is_dismissed(locator: Locator) -> bool:
    """只有成功查询到不可见才算关闭，页面崩溃或关闭时查询出错不算"""
    try:
        return not await locator.is_visible()
    except PlaywrightError as e:
        logger.debug(f"查询弹窗状态失败: {e}")
        return False


async def reload_and_settle(page: Page, settings: Settings) -> None:
    await page.reload()
    await asyncio.sleep(settings.reload_settle)


async def login(page: Page, settings: Settings, account: Account) -> None:
    """登录；登录表单缺失或密码错误时抛出 AuthError"""
    logger.info("🌐 访问登录页面...")
    await page.goto(settings.login_url)
    # 等 Turnstile iframe 出来
    await asyncio.sleep(3)
    await resolve_challenge(page, "登录阶段", settings.login_probe_attempts, settings.login_settle)

    logger.info("⌨️ 正在输入凭据...")
    email_input = page.get_by_role("textbox", name="Email")
    if not await wait_visible(email_input, 5000):
        raise AuthError("未找到登录表单")
    await email_input.fill(account.username)
    await page.get_by_role("textbox", name="Password").fill(account.password)
    await random_delay(mu=0.5, sigma=0.1)
    await page.get_by_role("button", name="Login", exact=True).click()

    if await wait_visible(page.get_by_text(LOGIN_ERROR_TEXT), 3000):
        logger.error("   >> ❌ 登录失败: 账号或密码错误")
        raise AuthError("账号或密码错误")


async def open_server_view(page: Page) -> None:
    """点击 dashboard 上的 See 链接进入服务器管理页"""
    logger.info('🔍 正在寻找 "See" 链接...')
    see_link = page.get_by_role("link", name="See").first
    if not await wait_visible(see_link, 15000):
        logger.error('❌ 未找到 "See" 链接 (可能登录未成功或界面变动)')
        raise AuthError('未找到 "See" 链接')
    await asyncio.sleep(1)
    await see_link.click()


async def race_confirmation(page: Page, modal: Locator, budget: float = 3.0,
                            interval: float = 0.2) -> AttemptOutcome:
    """
    点击确认后轮询三种互斥信号，先出现者为准：
    验证码未通过、还没到续期时间、弹窗关闭。都没出现返回 NEEDS_RETRY。
    """
    captcha_error = page.get_by_text(CAPTCHA_ERROR_TEXT)
    too_early = page.get_by_text(TOO_EARLY_TEXT)
    ticks = max(1, round(budget / interval))

    for tick in range(ticks + 1):
        if await is_visible(captcha_error):
            logger.warning('   >> ⚠️ 错误: "Please complete the captcha"')
            return AttemptOutcome.CAPTCHA_REJECTED
        if await is_visible(too_early):
            logger.info("   >> ⏳ 暂无法续期 (还没到时间)")
            return AttemptOutcome.TOO_EARLY
        if await is_dismissed(modal):
            logger.info("   >> ✅ Renew successful!")
            return AttemptOutcome.MODAL_CLOSED
        if tick < ticks:
            await asyncio.sleep(interval)

    logger.warning("   >> 模态框未关闭")
    return AttemptOutcome.NEEDS_RETRY


async def _hover_modal(page: Page, modal: Locator) -> None:
    try:
        box = await modal.bounding_box()
        if box:
            await page.mouse.move(box["x"] + box["width"] / 2, box["y"] + box["height"] / 2, steps=5)
            await random_delay()
    except PlaywrightError as e:
        logger.debug(f"鼠标移动失败: {e}")


async def _close_modal(modal: Locator) -> None:
    close_btn = modal.get_by_label("Close")
    try:
        if await close_btn.is_visible():
            await close_btn.click()
    except PlaywrightError as e:
        logger.debug(f"关闭弹窗失败: {e}")


async def renew_once(page: Page, settings: Settings, attempt: RenewAttempt) -> AttemptOutcome:
    """执行一轮续期，结果写回 attempt.outcome"""
    renew_btn = page.get_by_role("button", name="Renew", exact=True).first
    if not await wait_visible(renew_btn, 5000):
        logger.info("未找到 Renew 按钮 (可能已结束)")
        attempt.outcome = AttemptOutcome.NO_RENEW_CONTROL
        return attempt.outcome

    await renew_btn.click()
    logger.info("Renew 按钮已点击，等待模态框...")

    modal = page.locator(RENEW_MODAL_SELECTOR)
    if not await wait_visible(modal, 5000):
        logger.warning("⚠️ 模态框未出现")
        attempt.outcome = AttemptOutcome.NEEDS_RETRY
        return attempt.outcome

    await _hover_modal(page, modal)
    await resolve_challenge(page, "Renew阶段", settings.renew_probe_attempts, settings.renew_settle)

    confirm_btn = modal.get_by_role("button", name="Renew")
    if not await is_visible(confirm_btn):
        logger.warning("⚠️ 未找到弹窗内的 Renew 确认按钮")
        attempt.outcome = AttemptOutcome.NEEDS_RETRY
        return attempt.outcome

    logger.info("   >> 点击 Renew 确认按钮...")
    await confirm_btn.click()

    attempt.outcome = await race_confirmation(page, modal, settings.race_budget, settings.race_interval)
    if attempt.outcome is AttemptOutcome.TOO_EARLY:
        await _close_modal(modal)
    return attempt.outcome


async def renew_loop(page: Page, settings: Settings) -> List[RenewAttempt]:
    """最多 max_renew_attempts 轮，遇到终止结果即停止；其余情况刷新页面重试"""
    attempts = []
    total = settings.max_renew_attempts
    for number in range(1, total + 1):
        logger.info(f"\n[尝试 {number}/{total}] 正在寻找 Renew 按钮...")
        attempt = RenewAttempt(number)
        attempts.append(attempt)

        outcome = await renew_once(page, settings, attempt)
        if outcome.terminal or number == total:
            break

        if outcome is AttemptOutcome.CAPTCHA_REJECTED:
            logger.info("   >> 验证码未通过，刷新页面重试...")
        else:
            logger.info("   >> 刷新页面重试...")
        await reload_and_settle(page, settings)
    return attempts


def summarize_attempts(attempts: List[RenewAttempt]) -> Tuple[RenewStatus, str]:
    if not attempts:
        return RenewStatus.FAILED, "未执行续期"

    last = attempts[-1].outcome
    if last is AttemptOutcome.MODAL_CLOSED:
        return RenewStatus.SUCCESS, "续期成功"
    if last is AttemptOutcome.TOO_EARLY:
        return RenewStatus.SKIPPED_TOO_EARLY, "还没到续期时间"
    if last is AttemptOutcome.NO_RENEW_CONTROL:
        if len(attempts) == 1:
            return RenewStatus.NOTHING_TO_RENEW, "没有需要续期的服务器"
        return RenewStatus.NOTHING_TO_RENEW, f"第 {len(attempts)} 轮时 Renew 按钮消失"
    return RenewStatus.FAILED, f"{len(attempts)} 次尝试后仍未成功"


async def process_account(session: Session, settings: Settings, account: Account) -> RenewalOutcome:
    """处理单个账号，所有异常在这里转成 failed 结果，结束时截图"""
    page = session.page
    attempts = []
    try:
        page = await session.ensure_page()
        # 每个账号从未登录状态开始
        await session.context.clear_cookies()
        await login(page, settings, account)
        await open_server_view(page)
        attempts = await renew_loop(page, settings)
        status, note = summarize_attempts(attempts)
    except AuthError as e:
        status, note = RenewStatus.FAILED, str(e)
    except Exception as e:
        logger.exception(f"❌ 处理用户出错: {e}")
        status, note = RenewStatus.FAILED, f"异常: {str(e)[:100]}"

    screenshot = await capture(page, account.username, settings.screenshot_dir)
    logger.info(f"用户处理完成: {status.value} ({note})\n")
    return RenewalOutcome(
        account=account.username,
        status=status,
        note=note,
        attempts=len(attempts),
        screenshot=screenshot,
    )
