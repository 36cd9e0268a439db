import asyncio

import numpy as np


def jitter(mu: float, sigma: float, floor: float = 0.0) -> float:
    """正态分布的随机时长（秒），不低于 floor"""
    return max(floor, float(np.random.normal(mu, sigma)))


async def random_delay(mu=0.3, sigma=0.1):
    """随机延迟"""
    await asyncio.sleep(jitter(mu, sigma, floor=0.05))
