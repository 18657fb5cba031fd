"""
Относительные движения из последовательности пар абсолютных поз.

Для пары i ≥ 1:
    A_i = poseA[0]⁻¹ · poseA[i]
    B_i = poseB[0]⁻¹ · poseB[i]
Поворот каждого движения хранится как ось-угол, перенос — как 3-вектор.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
from spatialmath import SE3

from .transforms import rotvec_from_R, se3_from_rotvec
from .logutil import format_matrix

log = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class RelativeMotion:
    rot_a: np.ndarray   # ось-угол A_i
    t_a: np.ndarray
    rot_b: np.ndarray   # ось-угол B_i
    t_b: np.ndarray

    def motion_a(self) -> SE3:
        return se3_from_rotvec(self.rot_a, self.t_a)

    def motion_b(self) -> SE3:
        return se3_from_rotvec(self.rot_b, self.t_b)


def relative_motion(reference, pair) -> RelativeMotion:
    """Движение пары ``pair`` относительно опорной пары ``reference``."""
    A = reference.pose_a.inv() * pair.pose_a
    B = reference.pose_b.inv() * pair.pose_b
    motion = RelativeMotion(
        rot_a=rotvec_from_R(A.R),
        t_a=np.array(A.t, dtype=float),
        rot_b=rotvec_from_R(B.R),
        t_b=np.array(B.t, dtype=float),
    )
    if log.isEnabledFor(logging.DEBUG):
        log.debug("[CAL] A relative transform:\n%s", format_matrix(A.A))
        log.debug("[CAL] B relative transform:\n%s", format_matrix(B.A))
        # у корректной пары нормы переносов сопоставимы по масштабу
        log.debug("[CAL] L2Norm A: %.6f vs B: %.6f",
                  np.linalg.norm(motion.t_a), np.linalg.norm(motion.t_b))
    return motion


def derive_all(pairs: Sequence) -> List[RelativeMotion]:
    """N пар → N-1 движений; пара 0 только задаёт начало отсчёта."""
    if len(pairs) == 0:
        return []
    ref = pairs[0]
    return [relative_motion(ref, p) for p in pairs[1:]]
