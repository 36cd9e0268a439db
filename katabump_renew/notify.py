"""
Telegram 通知模块
通过 Bot API 发送消息和图片，需配置 TELEGRAM_BOT_TOKEN 和 TELEGRAM_CHAT_ID
发送失败只记日志，不影响续期流程
"""
import logging
import os
from typing import Iterable

import requests

from .config import Settings
from .models import RenewalOutcome, RenewStatus
from .screenshots import prepare_photo

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"
MAX_CAPTION = 1024

STATUS_EMOJI = {
    RenewStatus.SUCCESS: "✅",
    RenewStatus.SKIPPED_TOO_EARLY: "⏳",
    RenewStatus.NOTHING_TO_RENEW: "⏭️",
    RenewStatus.FAILED: "❌",
}


def escape_html(text) -> str:
    """转义 HTML 特殊字符，避免在 parse_mode=HTML 下格式错误"""
    if not isinstance(text, str):
        return ""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


class TelegramNotifier:

    def __init__(self, bot_token: str, chat_id: str, timeout: int = 30):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout = timeout
        self._warned = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "TelegramNotifier":
        return cls(settings.telegram_bot_token, settings.telegram_chat_id)

    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def _check(self) -> bool:
        if self.is_configured():
            return True
        if not self._warned:
            logger.warning("⚠️ 未设置 Telegram 配置，跳过消息推送")
            self._warned = True
        return False

    def _url(self, method: str) -> str:
        return f"{API_BASE}/bot{self.bot_token}/{method}"

    def notify(self, text: str, parse_mode: str = "HTML") -> bool:
        """发送文本消息"""
        if not self._check():
            return False
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "disable_web_page_preview": True,
        }
        try:
            response = requests.post(self._url("sendMessage"), json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"❌ Telegram 消息发送出错: {e}")
            return False
        if response.status_code == 200:
            logger.info("✅ Telegram 消息发送成功")
            return True
        logger.warning(f"⚠️ Telegram 消息发送失败: {response.status_code} {response.text[:200]}")
        return False

    def notify_with_image(self, text: str, photo_path: str, parse_mode: str = "HTML") -> bool:
        """发送图片，text 作为说明文字"""
        if not self._check():
            return False
        if not photo_path or not os.path.exists(photo_path):
            logger.error(f"❌ 图片不存在: {photo_path}")
            return False
        photo_path = prepare_photo(photo_path)
        if photo_path is None:
            return False

        data = {"chat_id": self.chat_id, "caption": text[:MAX_CAPTION], "parse_mode": parse_mode}
        try:
            with open(photo_path, "rb") as photo:
                response = requests.post(
                    self._url("sendPhoto"),
                    data=data,
                    files={"photo": (os.path.basename(photo_path), photo)},
                    timeout=self.timeout * 2,
                )
        except (requests.RequestException, OSError) as e:
            logger.error(f"❌ Telegram 图片发送出错: {e}")
            return False
        if response.status_code == 200:
            logger.info("✅ Telegram 图片发送成功")
            return True
        logger.warning(f"⚠️ Telegram 图片发送失败: {response.status_code} {response.text[:200]}")
        return False

    def notify_renew_results(self, outcomes: Iterable[RenewalOutcome], summary: str = "") -> bool:
        """格式化每个账号的续期结果并发送"""
        lines = ["<b>🔔 Katabump 续期完成</b>", ""]
        if summary:
            lines += [escape_html(summary), ""]
        for outcome in outcomes:
            emoji = STATUS_EMOJI.get(outcome.status, "•")
            message = escape_html(outcome.note) if outcome.note else outcome.status.value
            lines.append(f"{emoji} {escape_html(outcome.account)}: {message}")
        return self.notify("\n".join(lines))
