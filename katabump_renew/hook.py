"""
注入脚本：Hook Element.prototype.attachShadow，获取 Turnstile 复选框坐标

Turnstile 渲染在跨域 iframe 的 closed shadow root 里，外部拿不到元素位置。
脚本在每个子 frame 创建时运行，shadow root 挂载后找到复选框，
把中心点相对视口的比例写入 window.__turnstile_data，控制端只负责轮询读取。
同一脚本还把子 frame 里 MouseEvent 的 screenX/screenY 固定为随机的合理值，
让 CDP 点击的事件看起来像真实鼠标。
"""
import logging

from playwright.async_api import Page

logger = logging.getLogger(__name__)

GEOMETRY_SLOT = "__turnstile_data"

INJECTED_SCRIPT = """
(function() {
    if (window.self === window.top) return;
    if (window.__turnstile_hooked) return;
    window.__turnstile_hooked = true;

    // 真实鼠标事件的屏幕坐标不会是 0
    try {
        const screenX = Math.floor(Math.random() * 400) + 800;
        const screenY = Math.floor(Math.random() * 200) + 400;
        Object.defineProperty(MouseEvent.prototype, 'screenX', { get: () => screenX });
        Object.defineProperty(MouseEvent.prototype, 'screenY', { get: () => screenY });
    } catch (e) {
        console.error('[hook] screenX/screenY override failed:', e);
    }

    try {
        const originalAttachShadow = Element.prototype.attachShadow;
        Element.prototype.attachShadow = function(init) {
            const shadowRoot = originalAttachShadow.call(this, init);
            if (shadowRoot) {
                const checkAndReport = () => {
                    const checkbox = shadowRoot.querySelector('input[type="checkbox"]');
                    if (!checkbox) return false;
                    const rect = checkbox.getBoundingClientRect();
                    // 视口或元素尚未布局时不发布
                    if (rect.width <= 0 || rect.height <= 0) return false;
                    if (window.innerWidth <= 0 || window.innerHeight <= 0) return false;
                    window.__SLOT__ = {
                        xRatio: (rect.left + rect.width / 2) / window.innerWidth,
                        yRatio: (rect.top + rect.height / 2) / window.innerHeight
                    };
                    return true;
                };
                if (!checkAndReport()) {
                    // iframe 从 0x0 变大时 shadow root 内没有变动，靠 resize 补查
                    const stop = () => {
                        observer.disconnect();
                        window.removeEventListener('resize', onResize);
                    };
                    const observer = new MutationObserver(() => {
                        if (checkAndReport()) stop();
                    });
                    const onResize = () => {
                        if (checkAndReport()) stop();
                    };
                    observer.observe(shadowRoot, { childList: true, subtree: true, attributes: true });
                    window.addEventListener('resize', onResize);
                }
            }
            return shadowRoot;
        };
    } catch (e) {
        console.error('[hook] attachShadow hook failed:', e);
    }
})();
""".replace("__SLOT__", GEOMETRY_SLOT)


async def install_geometry_hook(page: Page) -> None:
    """在页面及其之后创建的所有 frame 中注入坐标 Hook"""
    await page.add_init_script(INJECTED_SCRIPT)
    logger.debug("已注入 Turnstile 坐标 Hook")
