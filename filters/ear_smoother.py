"""EAR 滑动平均滤波，抑制单帧噪声"""

from typing import List


class EarSmoother:
    """固定窗口的滑动平均（环形缓冲区 + 累计和）"""

    def __init__(self, window_size: int = 5):
        if window_size < 1:
            raise ValueError(f"窗口大小必须 >= 1: {window_size}")
        self.capacity = window_size
        self._buffer: List[float] = [0.0] * window_size
        self._count = 0
        self._index = 0
        self._sum = 0.0

    def add(self, value: float) -> float:
        """
        加入一个原始 EAR 值并返回当前平均值。

        缓冲区未满时只对已有样本求平均，不补零。
        """
        if self._count < self.capacity:
            self._count += 1
        else:
            self._sum -= self._buffer[self._index]
        self._buffer[self._index] = value
        self._sum += value
        self._index = (self._index + 1) % self.capacity
        return self._sum / self._count

    def reset(self):
        """清空缓冲区（人脸丢失后调用）"""
        self._count = 0
        self._index = 0
        self._sum = 0.0

    def __len__(self) -> int:
        return self._count
