"""
Оценка hand-eye преобразования X из пар относительных движений: A_i · X = X · B_i.

Две стадии, каждая — отдельная чистая функция:
  1) закрытая форма:
       • поворот: log R_A = R_X · log R_B  →  корреляция M = Σ a_i b_iᵀ,
         ближайший поворот через SVD (как в Kabsch/Procrustes);
       • перенос: (R_Ai − I) · t_X = R_X · t_Bi − t_Ai, линейный МНК;
  2) уточнение: нелинейный МНК (trust-region, scipy least_squares) по
     локальной поправке X = X0 · exp(δ), невязка на движение —
     6-вектор [log-поворот, перенос] между A_i·X и X·B_i.

Стоимость считаем как ½‖r‖², как в Ceres.
"""
from __future__ import annotations
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import least_squares
from scipy.spatial.transform import Rotation
from spatialmath import SE3

from . import config as cfg
from .transforms import make_se3, R_from_rotvec

log = logging.getLogger(__name__)


class CalibrationError(Exception):
    """Базовая ошибка калибровки."""


class InsufficientDataError(CalibrationError):
    """Слишком мало относительных движений для решения."""


class TerminationType(enum.Enum):
    CONVERGENCE = "CONVERGENCE"
    NO_CONVERGENCE = "NO_CONVERGENCE"   # лимит итераций / нет улучшения
    FAILURE = "FAILURE"                 # численный сбой, X = закрытая форма


@dataclass(frozen=True)
class RefineResult:
    transform: SE3
    initial_cost: float
    final_cost: float
    num_successful_iterations: int
    num_unsuccessful_iterations: int
    termination: TerminationType
    message: str = ""


@dataclass(frozen=True)
class CalibrationEstimate:
    transform: SE3
    initial_transform: SE3
    initial_cost: float
    final_cost: float
    num_successful_iterations: int
    num_unsuccessful_iterations: int
    termination: TerminationType
    message: str
    num_motions: int
    rotation_rank: int
    translation_rank: int
    well_conditioned: bool
    rotation_errors_deg: np.ndarray
    translation_errors: np.ndarray

    @property
    def change_cost(self) -> float:
        return self.initial_cost - self.final_cost

    @property
    def num_iterations(self) -> int:
        return self.num_successful_iterations + self.num_unsuccessful_iterations

    @property
    def converged(self) -> bool:
        return self.termination is TerminationType.CONVERGENCE


# --------------------------------------------------------------------------- #
#  Упаковка движений в массивы
# --------------------------------------------------------------------------- #
def _stack(motions: Sequence):
    rot_a = np.array([m.rot_a for m in motions], float).reshape(-1, 3)
    rot_b = np.array([m.rot_b for m in motions], float).reshape(-1, 3)
    t_a = np.array([m.t_a for m in motions], float).reshape(-1, 3)
    t_b = np.array([m.t_b for m in motions], float).reshape(-1, 3)
    RA = Rotation.from_rotvec(rot_a).as_matrix().reshape(-1, 3, 3)
    RB = Rotation.from_rotvec(rot_b).as_matrix().reshape(-1, 3, 3)
    return rot_a, t_a, RA, rot_b, t_b, RB


def _rank(sv: np.ndarray, rel_tol: float) -> int:
    if sv.size == 0 or sv[0] <= 0.0:
        return 0
    return int(np.sum(sv > rel_tol * sv[0]))


# --------------------------------------------------------------------------- #
#  Стадия 1: закрытая форма
# --------------------------------------------------------------------------- #
def solve_rotation(motions: Sequence, rank_tol: float = cfg.RANK_TOL) -> Tuple[np.ndarray, int]:
    """
    R_X из осей поворотов. Возврат: (R_X (3,3), ранг корреляционной матрицы).
    Ранг < 2 — оси параллельны, поворот вокруг общей оси не определён.
    """
    rot_a, _, _, rot_b, _, _ = _stack(motions)
    M = np.zeros((3, 3))
    for a, b in zip(rot_a, rot_b):
        M += np.outer(a, b)
    U, S, Vt = np.linalg.svd(M)
    R = U @ Vt
    if np.linalg.det(R) < 0:
        U[:, -1] *= -1
        R = U @ Vt
    return R, _rank(S, rank_tol)


def solve_translation(motions: Sequence, R_X: np.ndarray,
                      rank_tol: float = cfg.RANK_TOL) -> Tuple[np.ndarray, int]:
    """
    t_X при фиксированном R_X: (R_Ai − I) · t_X = R_X · t_Bi − t_Ai.
    При вырожденной системе возвращается решение минимальной нормы.
    """
    _, t_a, RA, _, t_b, _ = _stack(motions)
    R_X = np.asarray(R_X, float).reshape(3, 3)
    C = (RA - np.eye(3)).reshape(-1, 3)
    d = (t_b @ R_X.T - t_a).reshape(-1)
    t, _, _, sv = np.linalg.lstsq(C, d, rcond=None)
    return t, _rank(sv, rank_tol)


# --------------------------------------------------------------------------- #
#  Невязки
# --------------------------------------------------------------------------- #
def _residual_blocks(t_a, RA, t_b, RB, R, t):
    R_ax = RA @ R                         # (n,3,3)
    R_xb = R @ RB
    E = np.transpose(R_ax, (0, 2, 1)) @ R_xb
    r_rot = Rotation.from_matrix(E).as_rotvec().reshape(-1, 3)
    t_ax = RA @ t + t_a
    t_xb = t_b @ R.T + t
    return r_rot, t_xb - t_ax


def residuals(motions: Sequence, X: SE3) -> np.ndarray:
    """Сложенный вектор невязок (6 на движение) для кандидата X."""
    _, t_a, RA, _, t_b, RB = _stack(motions)
    r_rot, r_t = _residual_blocks(t_a, RA, t_b, RB, X.R, X.t)
    return np.hstack([r_rot, r_t]).reshape(-1)


def motion_errors(motions: Sequence, X: SE3) -> Tuple[np.ndarray, np.ndarray]:
    """Ошибки согласованности A_i·X vs X·B_i: (угол в градусах, норма переноса)."""
    _, t_a, RA, _, t_b, RB = _stack(motions)
    r_rot, r_t = _residual_blocks(t_a, RA, t_b, RB, X.R, X.t)
    return np.degrees(np.linalg.norm(r_rot, axis=1)), np.linalg.norm(r_t, axis=1)


def _cost(r: np.ndarray) -> float:
    return float(0.5 * r @ r)


# --------------------------------------------------------------------------- #
#  Стадия 2: нелинейное уточнение
# --------------------------------------------------------------------------- #
def refine(motions: Sequence, X0: SE3,
           options: Optional[cfg.SolverOptions] = None) -> RefineResult:
    """
    Уточнить X0 методом trust-region (демпфированный Гаусс-Ньютон).

    Успешные шаги = пересчёты якобиана после принятого шага (njev − 1),
    неуспешные = отвергнутые пробные шаги (nfev − njev).
    При сбое возвращается X0 с TerminationType.FAILURE.
    """
    opts = options or cfg.DEFAULT_SOLVER
    _, t_a, RA, _, t_b, RB = _stack(motions)
    R0 = np.array(X0.R, float)
    t0 = np.array(X0.t, float)

    def fun(d):
        R = R0 @ R_from_rotvec(d[:3])
        r_rot, r_t = _residual_blocks(t_a, RA, t_b, RB, R, t0 + d[3:])
        return np.hstack([r_rot, r_t]).reshape(-1)

    x0 = np.zeros(6)
    initial_cost = _cost(fun(x0))
    if not np.isfinite(initial_cost):
        return RefineResult(X0, initial_cost, initial_cost, 0, 0,
                            TerminationType.FAILURE, "non-finite residuals at initial point")
    try:
        sol = least_squares(fun, x0, method="trf", ftol=opts.ftol, xtol=opts.xtol,
                            gtol=opts.gtol, max_nfev=opts.max_nfev)
    except (ValueError, np.linalg.LinAlgError) as e:
        log.warning("[CAL] refinement failed: %s", e)
        return RefineResult(X0, initial_cost, initial_cost, 0, 0,
                            TerminationType.FAILURE, str(e))

    n_ok = max(int(sol.njev or 1) - 1, 0)
    n_bad = max(int(sol.nfev) - int(sol.njev or 1), 0)
    if sol.status < 0 or not np.all(np.isfinite(sol.x)) or not np.isfinite(sol.cost):
        return RefineResult(X0, initial_cost, initial_cost, n_ok, n_bad,
                            TerminationType.FAILURE, str(sol.message))

    X = make_se3(R0 @ R_from_rotvec(sol.x[:3]), t0 + sol.x[3:])
    term = TerminationType.CONVERGENCE if sol.status > 0 else TerminationType.NO_CONVERGENCE
    return RefineResult(X, initial_cost, float(sol.cost), n_ok, n_bad, term, str(sol.message))


# --------------------------------------------------------------------------- #
#  Композиция
# --------------------------------------------------------------------------- #
def solve(motions: Sequence, options: Optional[cfg.SolverOptions] = None) -> CalibrationEstimate:
    """
    Решить AX = XB по всем относительным движениям.

    InsufficientDataError, если движений меньше options.min_motions (минимум 1).
    Плохая обусловленность (параллельные оси, вырожденный перенос) не ошибка:
    предупреждение в лог и well_conditioned=False в результате.
    """
    opts = options or cfg.DEFAULT_SOLVER
    motions = list(motions)
    n = len(motions)
    if n < max(1, opts.min_motions):
        raise InsufficientDataError(
            f"need at least {max(1, opts.min_motions)} relative motions, got {n}")
    if n < opts.recommended_motions:
        log.warning("[CAL] only %d relative motions (< %d recommended); result may be ill-conditioned",
                    n, opts.recommended_motions)

    R_X, rot_rank = solve_rotation(motions, opts.rank_tol)
    t_X, tr_rank = solve_translation(motions, R_X, opts.rank_tol)
    well = rot_rank >= 2 and tr_rank == 3
    if not well:
        log.warning("[CAL] degenerate motion set: rotation rank %d, translation rank %d "
                    "(need non-parallel rotation axes)", rot_rank, tr_rank)
    X0 = make_se3(R_X, t_X)

    if opts.refine:
        ref = refine(motions, X0, opts)
    else:
        c = _cost(residuals(motions, X0))
        ref = RefineResult(X0, c, c, 0, 0, TerminationType.CONVERGENCE, "refinement disabled")
    if ref.termination is TerminationType.FAILURE:
        log.warning("[CAL] refinement failed (%s); keeping closed-form estimate", ref.message)
    log.info("[CAL] cost %.6e -> %.6e, %d/%d successful steps, %s",
             ref.initial_cost, ref.final_cost, ref.num_successful_iterations,
             ref.num_successful_iterations + ref.num_unsuccessful_iterations, ref.termination.name)

    rot_err, tr_err = motion_errors(motions, ref.transform)
    return CalibrationEstimate(
        transform=ref.transform,
        initial_transform=X0,
        initial_cost=ref.initial_cost,
        final_cost=ref.final_cost,
        num_successful_iterations=ref.num_successful_iterations,
        num_unsuccessful_iterations=ref.num_unsuccessful_iterations,
        termination=ref.termination,
        message=ref.message,
        num_motions=n,
        rotation_rank=rot_rank,
        translation_rank=tr_rank,
        well_conditioned=well,
        rotation_errors_deg=rot_err,
        translation_errors=tr_err,
    )
