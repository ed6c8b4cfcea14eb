"""疲劳报警模块：DROWSY 时循环播放报警音，其余状态停止"""

import logging
import threading
from typing import Callable, Optional

import numpy as np
import pygame

from models.data_models import DrowsinessEvent, DrowsinessState

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100


class PygameAlarm:
    """
    基于 pygame mixer 的循环报警音。

    提供 sound_path 时用 mixer.music 循环播放音频文件，否则生成一段“蜂鸣 + 静音”的正弦波循环播放。
    mixer 在首次播放时才初始化，无音频设备的环境下创建对象不会失败。
    """

    def __init__(
        self,
        sound_path: Optional[str] = None,
        frequency: float = 1100.0,
        beep_duration: float = 0.5,
        gap_duration: float = 0.3,
        volume: float = 0.8,
    ):
        self.sound_path = sound_path
        self.frequency = frequency
        self.beep_duration = beep_duration
        self.gap_duration = gap_duration
        self.volume = volume
        self._sound = None

    def play(self) -> None:
        """开始循环播放（pygame.error 由调用方处理）"""
        if not pygame.mixer.get_init():
            pygame.mixer.init(SAMPLE_RATE, -16, 1, 512)

        if self.sound_path:
            pygame.mixer.music.load(self.sound_path)
            pygame.mixer.music.set_volume(self.volume)
            pygame.mixer.music.play(-1)
            return

        if self._sound is None:
            self._sound = self._make_tone()
        self._sound.play(loops=-1)

    def stop(self) -> None:
        if not pygame.mixer.get_init():
            return
        if self.sound_path:
            pygame.mixer.music.stop()
        elif self._sound is not None:
            self._sound.stop()

    def close(self) -> None:
        """停止播放并关闭 mixer"""
        self.stop()
        self._sound = None
        if pygame.mixer.get_init():
            pygame.mixer.quit()

    def _make_tone(self):
        rate, _, channels = pygame.mixer.get_init()
        t = np.linspace(0, self.beep_duration, int(rate * self.beep_duration), False)
        beep = np.sin(2 * np.pi * self.frequency * t) * self.volume * 32767
        gap = np.zeros(int(rate * self.gap_duration))
        wav = np.concatenate([beep, gap]).astype(np.int16)
        if channels > 1:
            wav = np.repeat(wav[:, np.newaxis], channels, axis=1)
        return pygame.sndarray.make_sound(wav)


class AlertManager:
    """
    报警开关，重复 start/stop 调用会被忽略。

    默认通过 PygameAlarm 循环播放报警音；传入 beep 回调时改为在后台线程中按 interval 周期调用。
    """

    def __init__(
        self,
        alarm: Optional[PygameAlarm] = None,
        beep: Optional[Callable[[], None]] = None,
        interval: float = 0.8,
    ):
        self._beep = beep
        if beep is not None:
            self._alarm = None
        else:
            self._alarm = alarm if alarm is not None else PygameAlarm()
        self.interval = interval
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._active = False
        self._released = False

    @property
    def is_alerting(self) -> bool:
        with self._lock:
            return self._active

    def on_state_changed(self, event: DrowsinessEvent) -> None:
        """状态事件回调"""
        if event.state is DrowsinessState.DROWSY:
            self.start_alert()
        else:
            self.stop_alert()

    def start_alert(self) -> None:
        with self._lock:
            if self._active or self._released:
                return
            self._active = True
            if self._alarm is not None:
                try:
                    self._alarm.play()
                except pygame.error:
                    logger.exception("报警提示音播放失败")
            else:
                self._stop_event.clear()
                self._thread = threading.Thread(target=self._beep_loop, daemon=True)
                self._thread.start()
        logger.warning("疲劳报警开始")

    def stop_alert(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
            if self._alarm is not None:
                try:
                    self._alarm.stop()
                except pygame.error:
                    logger.exception("报警提示音停止失败")
            thread = self._thread
            self._thread = None
            self._stop_event.set()
        if thread is not None:
            thread.join(timeout=self.interval * 2)
        logger.debug("疲劳报警停止")

    def release(self) -> None:
        """停止报警、释放音频设备并拒绝后续 start_alert"""
        self.stop_alert()
        with self._lock:
            self._released = True
            if self._alarm is not None:
                try:
                    self._alarm.close()
                except pygame.error:
                    logger.exception("音频设备释放失败")

    def _beep_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self._beep()
            except Exception:
                logger.exception("报警提示音播放失败")
                return
            self._stop_event.wait(self.interval)
