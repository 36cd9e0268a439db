import logging
import os
import re
from typing import Optional

from PIL import Image
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

logger = logging.getLogger(__name__)

# Telegram sendPhoto 限制
MAX_PHOTO_SIDES = 10000
MAX_PHOTO_RATIO = 20


def safe_label(label: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", label, flags=re.IGNORECASE)


async def capture(page: Page, label: str, directory: str = "screenshots") -> Optional[str]:
    """整页截图保存到 directory/<label>.png，失败返回 None"""
    path = os.path.join(directory, f"{safe_label(label)}.png")
    try:
        os.makedirs(directory, exist_ok=True)
        await page.screenshot(path=path, full_page=True)
    except (PlaywrightError, OSError) as e:
        logger.warning(f"⚠️ 截图失败 {path}: {e}")
        return None
    logger.info(f"📸 截图保存: {path}")
    return path


def prepare_photo(path: str) -> Optional[str]:
    """把整页长截图处理成 Telegram 可接受的尺寸，尺寸合格时原样返回"""
    try:
        img = Image.open(path)
        img.load()
        width, height = img.size
    except (OSError, ValueError) as e:
        logger.error(f"❌ 读取截图失败 {path}: {e}")
        return None

    if width + height <= MAX_PHOTO_SIDES and max(width, height) <= MAX_PHOTO_RATIO * min(width, height):
        return path

    # 长截图只保留顶部
    max_height = min(height, width * MAX_PHOTO_RATIO, MAX_PHOTO_SIDES)
    img = img.convert("RGB").crop((0, 0, width, max_height))
    if img.width + img.height > MAX_PHOTO_SIDES:
        scale = (MAX_PHOTO_SIDES - 1) / (img.width + img.height)
        img = img.resize((max(1, int(img.width * scale)), max(1, int(img.height * scale))), Image.BILINEAR)

    out_path = os.path.splitext(path)[0] + "_tg.jpg"
    try:
        img.save(out_path, quality=85)
    except OSError as e:
        logger.error(f"❌ 保存缩放截图失败 {out_path}: {e}")
        return None
    logger.info(f"📸 截图已缩放: {path} {width}x{height} -> {img.size[0]}x{img.size[1]}")
    return out_path
