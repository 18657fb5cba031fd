"""
Источники поз для захвата (TF-листенер, запись, синтетика).

Ядро зависит только от интерфейса PoseSource.lookup_pose(); конкретный
трекер (ROS tf и т.п.) подключается снаружи.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence, Tuple

from spatialmath import SE3

from .transforms import as_se3


class PoseLookupError(TimeoutError):
    """Поза не получена за отведённое время (или источник недоступен)."""


class PoseSource(ABC):
    @abstractmethod
    def lookup_pose(self, target_frame: str, source_frame: str,
                    stamp: Optional[float] = None, timeout: float = 0.0) -> SE3:
        """Поза source_frame в target_frame на момент stamp; PoseLookupError при неудаче."""


class StaticPoseSource(PoseSource):
    """Таблица (target, source) → поза. Нет записи — PoseLookupError."""

    def __init__(self, poses: Optional[Dict[Tuple[str, str], SE3]] = None):
        self._poses: Dict[Tuple[str, str], SE3] = {}
        for key, T in (poses or {}).items():
            self.set_pose(key[0], key[1], T)

    def set_pose(self, target_frame: str, source_frame: str, T):
        self._poses[(target_frame, source_frame)] = as_se3(T)

    def drop_pose(self, target_frame: str, source_frame: str):
        self._poses.pop((target_frame, source_frame), None)

    def lookup_pose(self, target_frame, source_frame, stamp=None, timeout=0.0) -> SE3:
        try:
            return self._poses[(target_frame, source_frame)]
        except KeyError:
            raise PoseLookupError(
                f"no transform between {target_frame} and {source_frame}") from None


class SequencePoseSource(PoseSource):
    """
    Отдаёт записанные пары поз по одной на захват.

    frames_a/frames_b: (target, source) для потоков A и B. Как только обе
    позы текущей пары выданы, переходим к следующей; после конца записи —
    PoseLookupError.
    """

    def __init__(self, pairs: Sequence[Tuple[SE3, SE3]],
                 frames_a: Tuple[str, str], frames_b: Tuple[str, str]):
        if tuple(frames_a) == tuple(frames_b):
            raise ValueError(f"streams A and B use the same frame pair {tuple(frames_a)}")
        self._pairs = [(as_se3(a), as_se3(b)) for a, b in pairs]
        self._frames = {tuple(frames_a): 0, tuple(frames_b): 1}
        self._idx = 0
        self._served = set()

    @property
    def remaining(self) -> int:
        return max(len(self._pairs) - self._idx, 0)

    def lookup_pose(self, target_frame, source_frame, stamp=None, timeout=0.0) -> SE3:
        which = self._frames.get((target_frame, source_frame))
        if which is None:
            raise PoseLookupError(f"unknown frame pair {target_frame} -> {source_frame}")
        if self._idx >= len(self._pairs):
            raise PoseLookupError("recorded sequence exhausted")
        T = self._pairs[self._idx][which]
        self._served.add(which)
        if len(self._served) == 2:
            self._idx += 1
            self._served.clear()
        return T
