"""
Накопление пар абсолютных поз (A, B), снятых в один момент.

Пара 0 — опорная (начало калибровки). Поддерживаются только append/undo,
как в интерактивном захвате; перестановок и произвольной записи нет.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from spatialmath import SE3

from .transforms import as_se3
from .motions import derive_all

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PosePair:
    pose_a: SE3   # base → tip
    pose_b: SE3   # tag → camera


class PoseStore:
    def __init__(self):
        self._pairs: List[PosePair] = []
        self._motions = None   # кэш derive_all, сбрасывается при любой мутации

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[SE3, SE3]]) -> "PoseStore":
        store = cls()
        for pose_a, pose_b in pairs:
            store.append(pose_a, pose_b)
        return store

    def append(self, pose_a, pose_b) -> PosePair:
        """
        Добавить пару в конец. Обе позы проверяются и копируются;
        при невалидной позе ValueError и хранилище не меняется.
        """
        pair = PosePair(as_se3(pose_a), as_se3(pose_b))
        self._pairs.append(pair)
        self._motions = None
        return pair

    def remove_last(self) -> Optional[PosePair]:
        if not self._pairs:
            log.warning("[CAL] nothing to undo: pose store is empty")
            return None
        self._motions = None
        return self._pairs.pop()

    def clear(self):
        self._pairs.clear()
        self._motions = None

    def size(self) -> int:
        return len(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def pairs(self) -> Tuple[PosePair, ...]:
        """Снимок в порядке захвата."""
        return tuple(self._pairs)

    def motions(self):
        """Относительные движения текущего снимка (N-1 штук), с кэшем."""
        if self._motions is None:
            self._motions = tuple(derive_all(self._pairs))
        return self._motions
