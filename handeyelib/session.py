"""
Интерактивная сессия калибровки: capture / undo / finalize.

Сессия владеет PoseStore; источник поз (TF, запись) передаётся снаружи.
Ошибки получения поз, записи файлов и нехватки данных не фатальны:
предупреждение в лог, состояние остаётся прежним.
"""
from __future__ import annotations
import logging
import time
from pathlib import Path
from typing import Callable, Optional

import numpy as np

from . import config as cfg
from .calibration import CalibrationEstimate, InsufficientDataError, solve
from .logutil import format_matrix, log_pose
from .pose_source import PoseLookupError, PoseSource
from .pose_store import PoseStore
from .report import format_report
from .storage import PersistenceError, read_pose_pairs, write_calibration, write_pose_pairs

log = logging.getLogger(__name__)

KEY_HELP = (
    "Press s to add the current frame transformation to the cache.",
    "Press d to delete last frame transformation.",
    "Press q to calibrate frame transformation and exit the application.",
)


class CalibrationSession:
    def __init__(self, source: PoseSource, config: Optional[cfg.SessionConfig] = None,
                 store: Optional[PoseStore] = None):
        self.source = source
        self.config = config or cfg.SessionConfig()
        self.store = store if store is not None else PoseStore()
        self.estimate: Optional[CalibrationEstimate] = None
        self.done = False

    # ------------------------------------------------------------------ #
    def _lookup(self, target: str, source: str, stamp: float):
        try:
            return self.source.lookup_pose(target, source, stamp, self.config.lookup_timeout)
        except PoseLookupError as e:
            log.warning("[TF] failed to get transform between %s and %s: %s", target, source, e)
            return None

    def capture(self) -> bool:
        """Снять пару поз (A: base→ee, B: tag→camera) и сохранить файл пар."""
        c = self.config
        stamp = time.time()
        T_cam = self._lookup(c.tag_frame, c.camera_frame, stamp)
        T_ee = self._lookup(c.base_frame, c.ee_frame, stamp)
        if T_cam is None or T_ee is None:
            log.warning("[TF] failed to get one/both of needed TF transforms; capture dropped")
            return False

        try:
            self.store.append(T_ee, T_cam)
        except ValueError as e:
            log.warning("[CAL] rejected capture: %s", e)
            return False

        if len(self.store) == 1:
            log.info("[CAL] adding first transform")
        else:
            m = self.store.motions()[-1]
            # у AX = XB углы поворота A_i и B_i совпадают
            log.info("[CAL] adding transform #%d: angle A %.3f deg vs B %.3f deg",
                     len(self.store) - 1, np.degrees(np.linalg.norm(m.rot_a)),
                     np.degrees(np.linalg.norm(m.rot_b)))
        log_pose(log, "EE", T_ee)
        log_pose(log, "Cam", T_cam)

        self._save_pairs()
        return True

    def _save_pairs(self):
        try:
            write_pose_pairs(self.config.pairs_record_file, self.store.pairs())
        except PersistenceError as e:
            log.error("[IO] %s", e)

    def undo(self) -> bool:
        removed = self.store.remove_last()
        if removed is None:
            return False
        log.info("[CAL] deleted last frame transformation, %d pairs (%d motions) left",
                 len(self.store), len(self.store.motions()))
        return True

    def finalize(self) -> Optional[CalibrationEstimate]:
        """
        Решить AX = XB по всем движениям, отчитаться и записать результат.

        Меньше рекомендованного числа движений — только предупреждение.
        При InsufficientDataError возвращает None, сессия продолжается.
        """
        motions = self.store.motions()
        if len(motions) < self.config.solver.recommended_motions:
            log.warning("[CAL] number of calibration transform pairs < %d",
                        self.config.solver.recommended_motions)
        log.info("[CAL] calculating calibration...")
        try:
            est = solve(motions, self.config.solver)
        except InsufficientDataError as e:
            log.warning("[CAL] cannot calibrate: %s", e)
            return None

        log.info("[CAL]\n%s", format_report(est, self.config.ee_frame, self.config.camera_frame))
        try:
            write_calibration(self.config.result_file, est)
        except PersistenceError as e:
            log.error("[IO] %s", e)
        self.estimate = est
        self.done = True
        return est

    # ------------------------------------------------------------------ #
    def handle_key(self, key: str) -> bool:
        """Обработать одну клавишу. False — сессия завершена."""
        k = (key or "").strip().lower()
        if k == "s":
            self.capture()
        elif k == "d":
            self.undo()
        elif k == "q":
            self.finalize()
        elif k:
            log.info("%s pressed.", key.strip())
        return not self.done

    def run(self, read_key: Callable[[], Optional[str]]):
        """Цикл событий до finalize или конца ввода (read_key → None)."""
        for line in KEY_HELP:
            log.info(line)
        while not self.done:
            key = read_key()
            if key is None:
                log.info("[CAL] input closed; %d pairs captured, no calibration", len(self.store))
                break
            self.handle_key(key)
        return self.estimate


def solve_from_file(pairs_path, result_path=None,
                    config: Optional[cfg.SessionConfig] = None) -> CalibrationEstimate:
    """
    Режим «загрузить пары из файла»: прочитать, решить, записать результат.
    Битый/отсутствующий файл пар → PersistenceError (операция прерывается).
    """
    c = config or cfg.SessionConfig()
    result_path = Path(result_path) if result_path is not None else c.result_file
    store = PoseStore.from_pairs(read_pose_pairs(pairs_path))
    for i, p in enumerate(store.pairs()):
        log.debug("[CAL] pair %d EE transform:\n%s", i, format_matrix(p.pose_a.A))
        log.debug("[CAL] pair %d Cam transform:\n%s", i, format_matrix(p.pose_b.A))
    est = solve(store.motions(), c.solver)
    log.info("[CAL]\n%s", format_report(est, c.ee_frame, c.camera_frame))
    try:
        write_calibration(result_path, est)
    except PersistenceError as e:
        log.error("[IO] %s", e)
    return est
