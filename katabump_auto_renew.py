"""
Katabump 自动续期脚本 - Playwright + CDP 版本
- 注入脚本 Hook Shadow DOM 获取 Turnstile 复选框坐标
- 通过 CDP 底层鼠标事件点击，触发 Turnstile 自动验证
- 多账号依次登录续期，结果推送到 Telegram

环境变量: USERS_JSON, HTTP_PROXY, CHROME_PATH, TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID
"""
import sys

from katabump_renew.runner import cli

if __name__ == "__main__":
    sys.exit(cli())
