from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Account:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Account(username={self.username!r})"


@dataclass(frozen=True)
class GeometryReport:
    """注入脚本在 frame 内发布的复选框中心比例，取值 [0, 1]"""
    x_ratio: float
    y_ratio: float

    @classmethod
    def from_js(cls, data) -> Optional["GeometryReport"]:
        """解析 window.__turnstile_data，不合法时返回 None"""
        if not isinstance(data, dict):
            return None
        try:
            x = float(data["xRatio"])
            y = float(data["yRatio"])
        except (KeyError, TypeError, ValueError):
            return None
        if not (0.0 <= x <= 1.0 and 0.0 <= y <= 1.0):
            return None
        return cls(x, y)


@dataclass(frozen=True)
class ChallengeTarget:
    """页面坐标系下的点击点，每次检测重新计算"""
    x: float
    y: float


class AttemptOutcome(str, Enum):
    PENDING = "pending"
    NO_RENEW_CONTROL = "noRenewControl"
    CAPTCHA_REJECTED = "captchaRejected"
    TOO_EARLY = "tooEarly"
    MODAL_CLOSED = "modalClosed"
    NEEDS_RETRY = "needsRetry"

    @property
    def terminal(self) -> bool:
        return self in (AttemptOutcome.NO_RENEW_CONTROL, AttemptOutcome.TOO_EARLY, AttemptOutcome.MODAL_CLOSED)


@dataclass
class RenewAttempt:
    number: int
    outcome: AttemptOutcome = AttemptOutcome.PENDING


class RenewStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED_TOO_EARLY = "skipped-too-early"
    NOTHING_TO_RENEW = "nothing-to-renew"
    FAILED = "failed"


@dataclass(frozen=True)
class RenewalOutcome:
    account: str
    status: RenewStatus
    note: str = ""
    attempts: int = 0
    screenshot: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (RenewStatus.SUCCESS, RenewStatus.SKIPPED_TOO_EARLY)
