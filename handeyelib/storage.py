"""
Чтение/запись файлов калибровки через cv2.FileStorage (YAML).

Файл пар:
    frameCount: N
    T1_i: 4×4 (поток A, base → tip),  T2_i: 4×4 (поток B, tag → camera)
Файл результата: см. report.calibration_record().
"""
from __future__ import annotations
import logging
from pathlib import Path
from typing import List, Sequence, Tuple

import cv2
import numpy as np
from spatialmath import SE3

from .calibration import CalibrationError, CalibrationEstimate
from .report import calibration_record
from .transforms import as_se3

log = logging.getLogger(__name__)


class PersistenceError(CalibrationError):
    """Файл не открыть / не записать / содержимое битое."""


def _open(path, mode) -> cv2.FileStorage:
    try:
        fs = cv2.FileStorage(str(path), mode)
    except cv2.error as e:
        raise PersistenceError(f"failed to open {path}: {e}") from e
    if not fs.isOpened():
        raise PersistenceError(f"failed to open {path}")
    return fs


def _node(fs: cv2.FileStorage, key: str, path):
    node = fs.getNode(key)
    if node.empty() or node.isNone():
        raise PersistenceError(f"{path}: missing key '{key}'")
    return node


def _mat(fs: cv2.FileStorage, key: str, shape, path) -> np.ndarray:
    m = _node(fs, key, path).mat()
    if m is None or np.asarray(m).shape != shape:
        raise PersistenceError(f"{path}: '{key}' is not a {shape[0]}x{shape[1]} matrix")
    return np.asarray(m, dtype=float)


# --------------------------------------------------------------------------- #
#  Пары поз
# --------------------------------------------------------------------------- #
def write_pose_pairs(path, pairs: Sequence) -> None:
    """pairs: последовательность PosePair."""
    log.info('[IO] writing %d pairs to "%s"', len(pairs), path)
    fs = _open(path, cv2.FILE_STORAGE_WRITE)
    try:
        fs.write("frameCount", int(len(pairs)))
        for i, p in enumerate(pairs):
            fs.write(f"T1_{i}", np.array(p.pose_a.A, dtype=np.float64))
            fs.write(f"T2_{i}", np.array(p.pose_b.A, dtype=np.float64))
    except cv2.error as e:
        raise PersistenceError(f"failed to write {path}: {e}") from e
    finally:
        fs.release()


def read_pose_pairs(path) -> List[Tuple[SE3, SE3]]:
    path = Path(path)
    if not path.is_file():
        raise PersistenceError(f"failed to open input file {path}")
    fs = _open(path, cv2.FILE_STORAGE_READ)
    try:
        n_real = _node(fs, "frameCount", path).real()
        n = int(n_real)
        if n < 0 or n != n_real:
            raise PersistenceError(f"{path}: bad frameCount {n_real}")
        out = []
        for i in range(n):
            T1 = _mat(fs, f"T1_{i}", (4, 4), path)
            T2 = _mat(fs, f"T2_{i}", (4, 4), path)
            try:
                out.append((as_se3(T1), as_se3(T2)))
            except ValueError as e:
                raise PersistenceError(f"{path}: pair {i}: {e}") from e
    finally:
        fs.release()
    log.info('[IO] loaded %d pairs from "%s"', len(out), path)
    return out


# --------------------------------------------------------------------------- #
#  Результат калибровки
# --------------------------------------------------------------------------- #
def write_calibration(path, est: CalibrationEstimate) -> None:
    log.info('[IO] writing calibration to "%s"', path)
    rec = calibration_record(est)
    fs = _open(path, cv2.FILE_STORAGE_WRITE)
    try:
        fs.write("handToEyeTF", rec["handToEyeTF"].reshape(1, 7))
        fs.write("handToEyeTransform", rec["handToEyeTransform"])
        for key in ("initial_cost", "final_cost", "change_cost"):
            fs.write(key, float(rec[key]))
        fs.write("termination_type", rec["termination_type"])
        for key in ("num_successful_iteration", "num_unsuccessful_iteration", "num_iteration"):
            fs.write(key, int(rec[key]))
    except cv2.error as e:
        raise PersistenceError(f"failed to write {path}: {e}") from e
    finally:
        fs.release()


def read_calibration(path) -> dict:
    path = Path(path)
    if not path.is_file():
        raise PersistenceError(f"failed to open input file {path}")
    fs = _open(path, cv2.FILE_STORAGE_READ)
    try:
        rec = {
            "handToEyeTF": _mat(fs, "handToEyeTF", (1, 7), path).ravel(),
            "handToEyeTransform": _mat(fs, "handToEyeTransform", (4, 4), path),
            "termination_type": _node(fs, "termination_type", path).string(),
        }
        for key in ("initial_cost", "final_cost", "change_cost"):
            rec[key] = float(_node(fs, key, path).real())
        for key in ("num_successful_iteration", "num_unsuccessful_iteration", "num_iteration"):
            rec[key] = int(_node(fs, key, path).real())
    finally:
        fs.release()
    return rec
