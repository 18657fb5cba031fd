"""
Отчёт по результату калибровки: текст для человека и запись для файла.

Только конверсия представлений (матрица ↔ кватернион ↔ Эйлер, инверсия);
CalibrationEstimate не меняется.
"""
from __future__ import annotations

import numpy as np

from .calibration import CalibrationEstimate
from .logutil import format_matrix
from .transforms import quat_xyzw, rpy_zyx


def _vec(v, prec=6) -> str:
    return " ".join(f"{x:.{prec}f}" for x in np.asarray(v, float).ravel())


def brief_report(est: CalibrationEstimate) -> str:
    """Одна строка, как BriefReport у решателя."""
    return (f"Trust-region solver: motions={est.num_motions}, "
            f"Iterations: {est.num_iterations}, "
            f"Initial cost: {est.initial_cost:.6e}, Final cost: {est.final_cost:.6e}, "
            f"Termination: {est.termination.name}")


def format_report(est: CalibrationEstimate, from_frame: str = "A", to_frame: str = "B") -> str:
    T = est.transform
    Ti = T.inv()
    q, qi = quat_xyzw(T.R), quat_xyzw(Ti.R)
    lines = [
        f"Result from {from_frame} to {to_frame}:",
        format_matrix(T.A),
        "",
        f"Translation (x,y,z) : {_vec(T.t)}",
        f"Rotation q(x,y,z,w): {_vec(q)}",
        f"Rotation (roll,pitch,yaw): {_vec(rpy_zyx(T))}",
        "",
        f"Now you can publish tf in: [ Translation, Rotation] {from_frame} {to_frame}",
        "",
        f"Inverted transform from {to_frame} to {from_frame}:",
        format_matrix(Ti.A),
        f"Inverted translation (x,y,z) : {_vec(Ti.t)}",
        f"Inverted rotation q(x,y,z,w): {_vec(qi)}",
        f"Inverted rotation (roll,pitch,yaw): {_vec(rpy_zyx(Ti))}",
        "",
        brief_report(est),
        f"Successful steps: {est.num_successful_iterations}, "
        f"unsuccessful steps: {est.num_unsuccessful_iterations}, "
        f"change cost: {est.change_cost:.6e}",
    ]
    if est.num_motions:
        lines.append(
            f"Per-motion error: rot max {np.max(est.rotation_errors_deg):.4f} deg, "
            f"trans max {np.max(est.translation_errors):.6f}")
    if not est.well_conditioned:
        lines.append(f"WARNING: ill-conditioned motion set (rotation rank {est.rotation_rank}, "
                     f"translation rank {est.translation_rank})")
    return "\n".join(lines)


def calibration_record(est: CalibrationEstimate) -> dict:
    """Структура для CalibratedTransform.yml."""
    T = est.transform
    return {
        "handToEyeTF": np.r_[T.t, quat_xyzw(T.R)].astype(float),
        "handToEyeTransform": np.array(T.A, dtype=float),
        "initial_cost": float(est.initial_cost),
        "final_cost": float(est.final_cost),
        "change_cost": float(est.change_cost),
        "termination_type": est.termination.name,
        "num_successful_iteration": int(est.num_successful_iterations),
        "num_unsuccessful_iteration": int(est.num_unsuccessful_iterations),
        "num_iteration": int(est.num_iterations),
    }
