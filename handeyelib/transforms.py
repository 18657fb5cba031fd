# handeyelib/transforms.py
"""
Утилиты жёстких преобразований (SE(3)) для hand-eye калибровки.

Представления:
    SE3       : spatialmath.SE3, основной тип позы во всём пакете.
    rotvec    : ось-угол, 3-вектор (angle · unit_axis), log-map SO(3).
    quat_xyzw : кватернион в порядке (x, y, z, w), как в tf / Eigen-выводе.
    rpy       : (roll, pitch, yaw), R = Rz(yaw) · Ry(pitch) · Rx(roll).

log/exp map считаем через scipy Rotation (через кватернион, без потери
точности около нуля, в отличие от arccos(trace)).
"""

from __future__ import annotations
import numpy as np
from scipy.spatial.transform import Rotation
from spatialmath import SE3, UnitQuaternion, SO3

from . import config as cfg

# --------------------------------------------------------------------------- #
#  Линейные утилиты
# --------------------------------------------------------------------------- #
def ortho_project(R: np.ndarray) -> np.ndarray:
    """Проецирует произвольную 3×3 на ближайшую ортонормированную SO(3)."""
    R = np.asarray(R, float).reshape(3, 3)
    U, _, Vt = np.linalg.svd(R)
    Rn = U @ Vt
    if np.linalg.det(Rn) < 0:
        U[:, -1] *= -1
        Rn = U @ Vt
    return Rn


def make_se3(R, t) -> SE3:
    """Создать SE3 из (R,t) с ортогонализацией."""
    Rn = ortho_project(np.asarray(R, float).reshape(3, 3))
    t = np.asarray(t, float).reshape(3)
    T = np.eye(4)
    T[:3, :3] = Rn
    T[:3, 3] = t
    return SE3(T, check=False)


def is_rigid(T, tol: float = cfg.RIGID_TOL) -> bool:
    """True, если T — 4×4 конечная матрица жёсткого преобразования."""
    T = np.asarray(T, float)
    if T.shape != (4, 4) or not np.all(np.isfinite(T)):
        return False
    if not np.allclose(T[3], [0.0, 0.0, 0.0, 1.0], atol=tol):
        return False
    R = T[:3, :3]
    if not np.allclose(R @ R.T, np.eye(3), atol=tol):
        return False
    return abs(np.linalg.det(R) - 1.0) < tol


def as_se3(T) -> SE3:
    """
    Проверить и скопировать позу в новый SE3.

    Принимает SE3 или 4×4 массив. ValueError, если это не жёсткое
    преобразование (NaN/inf, неортонормальный поворот, кривая нижняя строка).
    """
    M = T.A if isinstance(T, SE3) else np.asarray(T, float)
    if not is_rigid(M):
        raise ValueError(f"not a rigid transform:\n{np.array2string(np.asarray(M), precision=6)}")
    return SE3(np.array(M, dtype=float, copy=True), check=False)


# --------------------------------------------------------------------------- #
#  SO(3) log / exp
# --------------------------------------------------------------------------- #
def rotvec_from_R(R) -> np.ndarray:
    """Ось-угол (angle · axis) из матрицы поворота. Нулевой угол → нулевой вектор."""
    return Rotation.from_matrix(np.asarray(R, float).reshape(3, 3)).as_rotvec()


def R_from_rotvec(rv) -> np.ndarray:
    """Матрица поворота из вектора ось-угол."""
    return Rotation.from_rotvec(np.asarray(rv, float).reshape(3)).as_matrix()


def se3_from_rotvec(rv, t) -> SE3:
    T = np.eye(4)
    T[:3, :3] = R_from_rotvec(rv)
    T[:3, 3] = np.asarray(t, float).reshape(3)
    return SE3(T, check=False)


# --------------------------------------------------------------------------- #
#  Кватернионы / Эйлеры
# --------------------------------------------------------------------------- #
def safe_uq_from_R(R) -> UnitQuaternion:
    """UnitQuaternion из R c ортогонализацией."""
    return UnitQuaternion(SO3(ortho_project(R), check=False))


def quat_xyzw(R) -> np.ndarray:
    """Кватернион (x, y, z, w). UnitQuaternion.vec хранит скаляр первым."""
    uq = safe_uq_from_R(R)
    return np.r_[uq.v, uq.s]


def rpy_zyx(T: SE3) -> np.ndarray:
    """(roll, pitch, yaw) в радианах."""
    return np.asarray(T.rpy(order="zyx"), float)


def rel_angle_deg(Ra, Rb) -> float:
    """Угол поворота Ra→Rb в градусах."""
    return float(np.degrees(np.linalg.norm(rotvec_from_R(ortho_project(Ra) @ ortho_project(Rb).T))))
