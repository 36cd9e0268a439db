"""
Cloudflare Turnstile 过盾：定位 + CDP 点击 + 重试循环
"""
import asyncio
import logging
import random
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Frame, Page

from .hook import GEOMETRY_SLOT
from .models import ChallengeTarget, GeometryReport

logger = logging.getLogger(__name__)

DETECT_INTERVAL = 1.0


def compute_click_point(report: GeometryReport, box: dict) -> ChallengeTarget:
    """把 frame 内的比例投影到页面坐标"""
    return ChallengeTarget(
        x=box["x"] + box["width"] * report.x_ratio,
        y=box["y"] + box["height"] * report.y_ratio,
    )


async def read_geometry_report(frame: Frame) -> Optional[GeometryReport]:
    """读取 frame 内注入脚本发布的坐标比例，frame 已分离时返回 None"""
    try:
        data = await frame.evaluate(f"() => window.{GEOMETRY_SLOT}")
    except PlaywrightError as e:
        logger.debug(f"读取 frame 数据失败 ({frame.url[:60]}): {e}")
        return None
    return GeometryReport.from_js(data)


async def locate_challenge(page: Page) -> Optional[ChallengeTarget]:
    """遍历所有 frame，第一个有坐标数据的 frame 胜出"""
    for frame in page.frames:
        report = await read_geometry_report(frame)
        if report is None:
            continue

        logger.info(f">> 发现 Turnstile 数据。比例: x={report.x_ratio:.3f}, y={report.y_ratio:.3f}")
        try:
            iframe_element = await frame.frame_element()
            box = await iframe_element.bounding_box()
        except PlaywrightError as e:
            logger.debug(f"获取 iframe 位置失败: {e}")
            return None
        if not box:
            logger.debug("iframe 不可见或已分离")
            return None

        target = compute_click_point(report, box)
        logger.info(f">> 计算点击坐标: ({target.x:.2f}, {target.y:.2f})")
        return target
    return None


async def dispatch_click(page: Page, target: ChallengeTarget) -> bool:
    """通过 CDP Input.dispatchMouseEvent 发送按下/抬起，页面 JS 无法区分真实输入"""
    client = None
    try:
        client = await page.context.new_cdp_session(page)
        event = {"x": target.x, "y": target.y, "button": "left", "clickCount": 1}
        await client.send("Input.dispatchMouseEvent", {"type": "mousePressed", **event})
        await asyncio.sleep(random.uniform(0.05, 0.15))
        await client.send("Input.dispatchMouseEvent", {"type": "mouseReleased", **event})
        logger.info(">> CDP 点击已发送")
        return True
    except PlaywrightError as e:
        logger.warning(f"⚠️ CDP 点击失败: {e}")
        return False
    finally:
        if client is not None:
            try:
                await client.detach()
            except PlaywrightError:
                pass


async def resolve_challenge(page: Page, label: str = "通用", max_attempts: int = 10,
                            settle_delay: float = 5.0) -> bool:
    """
    检测并点击 Turnstile

    Args:
        label: 日志中的阶段名
        max_attempts: 检测次数
        settle_delay: 点击后等待验证完成的秒数

    Returns:
        True 表示已点击；False 表示始终未出现验证框（不是错误）
    """
    logger.info(f"[{label}] 🔍 开始检测 Cloudflare Turnstile...")
    for attempt in range(max_attempts):
        target = await locate_challenge(page)
        if target is not None and await dispatch_click(page, target):
            logger.info(f"[{label}] ✅ 成功点击 Turnstile，等待验证通过 ({settle_delay:.0f}s)...")
            await asyncio.sleep(settle_delay)
            return True
        if attempt < max_attempts - 1:
            await asyncio.sleep(DETECT_INTERVAL)

    logger.info(f"[{label}] 未检测到 Turnstile 或无需点击")
    return False
