"""
Chrome 进程管理：代理检查、启动带远程调试端口的 Chrome、通过 CDP 连接
"""
import asyncio
import logging
import subprocess
import time

import requests
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Playwright

from .config import Settings
from .errors import SetupError
from .session import Session

logger = logging.getLogger(__name__)

CHROME_ARGS = [
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-gpu",
    "--window-size=1280,720",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]


def _local_http() -> requests.Session:
    # 本地调试端口不走代理
    session = requests.Session()
    session.trust_env = False
    return session


def check_proxy(settings: Settings) -> None:
    """通过代理访问 google，失败抛出 SetupError"""
    if not settings.proxy:
        return
    logger.info("🌐 正在验证代理连接...")
    try:
        response = requests.get(
            "https://www.google.com",
            proxies=settings.proxy.requests_proxies(),
            timeout=10,
        )
        response.raise_for_status()
    except requests.RequestException as e:
        raise SetupError(f"代理连接失败: {e}") from e
    logger.info("✅ 代理连接成功！")


def check_port(port: int) -> bool:
    try:
        with _local_http() as http:
            http.get(f"http://localhost:{port}/json/version", timeout=2)
        return True
    except requests.RequestException:
        return False


def build_chrome_command(settings: Settings) -> list:
    args = [
        settings.chrome_path,
        f"--remote-debugging-port={settings.debug_port}",
        f"--user-data-dir={settings.user_data_dir}",
        *CHROME_ARGS,
    ]
    if settings.proxy:
        args.append(f"--proxy-server={settings.proxy.server}")
        args.append("--proxy-bypass-list=<-loopback>")
    return args


def ensure_running(settings: Settings, wait_seconds: int = 20) -> str:
    """确保 Chrome 已在调试端口运行，返回 CDP 地址"""
    endpoint = f"http://localhost:{settings.debug_port}"
    logger.info(f"🔍 检查 Chrome 是否已在端口 {settings.debug_port} 上运行...")
    if check_port(settings.debug_port):
        logger.info("✅ Chrome 已开启")
        return endpoint

    logger.info(f"🚀 正在启动 Chrome (路径: {settings.chrome_path})...")
    try:
        subprocess.Popen(
            build_chrome_command(settings),
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        raise SetupError(f"Chrome 启动失败: {e}") from e

    logger.info("⏳ 正在等待 Chrome 初始化...")
    for _ in range(wait_seconds):
        if check_port(settings.debug_port):
            logger.info("✅ Chrome 启动成功")
            return endpoint
        time.sleep(1)
    raise SetupError("Chrome 启动失败: 调试端口无响应")


async def connect_session(playwright: Playwright, settings: Settings, endpoint: str,
                          retries: int = 5) -> Session:
    """通过 CDP 连接 Chrome 并返回 Session，重试 retries 次"""
    logger.info("🔗 正在连接 Chrome...")
    browser = None
    for k in range(retries):
        try:
            browser = await playwright.chromium.connect_over_cdp(endpoint)
            logger.info("✅ 连接成功！")
            break
        except PlaywrightError as e:
            logger.warning(f"⚠️ 连接尝试 {k + 1} 失败: {e}，2秒后重试...")
            await asyncio.sleep(2)
    if browser is None:
        raise SetupError("无法连接到 Chrome")

    credentials = None
    if settings.proxy and settings.proxy.has_auth:
        credentials = {"username": settings.proxy.username, "password": settings.proxy.password or ""}
    return await Session.attach(browser, settings.default_timeout_ms, http_credentials=credentials)
