class SetupError(RuntimeError):
    """启动阶段的致命错误（无账号、浏览器不可达、代理验证失败），终止整个运行"""


class AuthError(Exception):
    """账号级错误（密码错误、找不到服务器入口），只跳过当前账号"""
