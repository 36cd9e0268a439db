"""
Katabump 自动续期 - Playwright + CDP 版本
- 通过注入脚本 Hook Shadow DOM，获取 Turnstile 复选框坐标
- 通过 CDP Input.dispatchMouseEvent 发送底层点击
- 逐个账号登录并续期，结果推送到 Telegram
"""

__version__ = "1.0.0"
