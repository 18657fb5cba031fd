"""Логгирование положений и ориентаций, форматирование чисел."""
import logging

import numpy as np
from spatialmath import SE3

from .transforms import quat_xyzw

_FMT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level=logging.INFO):
    """Консольный хендлер для скриптов (run_handeye.py)."""
    logging.basicConfig(level=level, format=_FMT, datefmt="%H:%M:%S")


def format_pose(tag: str, T: SE3) -> str:
    p = T.t
    q = quat_xyzw(T.R)
    return (f"{tag}: pos [{p[0]:.4f} {p[1]:.4f} {p[2]:.4f}] "
            f"quat [{q[0]:.4f} {q[1]:.4f} {q[2]:.4f} {q[3]:.4f}]")


def format_matrix(M) -> str:
    return np.array2string(np.asarray(M, float), precision=6, suppress_small=True)


def log_pose(logger: logging.Logger, tag: str, T: SE3, level=logging.DEBUG):
    """Печать позы SE3 в формате pos[...] quat[xyzw]."""
    if logger.isEnabledFor(level):
        logger.log(level, format_pose(tag, T))
