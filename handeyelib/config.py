"""
Глобальный конфиг hand-eye калибровки.

Измени здесь имена TF-кадров, файлы записи/загрузки пар, таймауты и
параметры решателя AX = XB.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path

# ── файлы ─────────────────────────────────────────────────────────────────────
TRANSFORM_PAIRS_RECORD_FILE = "TransformPairsInput.yml"    # сюда пишем пары при захвате
TRANSFORM_PAIRS_LOAD_FILE   = "TransformPairsOutput.yml"   # отсюда читаем в режиме --load
CALIBRATED_TRANSFORM_FILE   = "CalibratedTransform.yml"    # итоговый X

# ── TF-кадры ──────────────────────────────────────────────────────────────────
# поток A: base → tip (рука),  поток B: tag → camera (фидуциал)
BASE_TF   = "/base_link"
EE_TF     = "/ee_fixed_link"
ARTAG_TF  = "/camera_2/ar_marker_0"
CAMERA_TF = "/camera_2_link"

# ── время ОЖИДАНИЯ ────────────────────────────────────────────────────────────
LOOKUP_TIMEOUT_SEC = 10.0         # ожидание позы от источника на один захват

# ── пороги по данным ──────────────────────────────────────────────────────────
MIN_MOTIONS             = 2       # меньше — решать нечего (InsufficientDataError)
MIN_RECOMMENDED_MOTIONS = 5       # меньше — только предупреждение

# ── решатель ──────────────────────────────────────────────────────────────────
MAX_NFEV  = 200                   # лимит вычислений невязки в уточнении
FTOL      = 1e-12
XTOL      = 1e-12
GTOL      = 1e-12
RANK_TOL  = 1e-9                  # относительный порог сингулярных чисел
RIGID_TOL = 1e-6                  # допуск ортонормальности входных поз


# ── dataclass'ы для быстрых overrides ─────────────────────────────────────────
@dataclass
class SolverOptions:
    min_motions: int = MIN_MOTIONS
    recommended_motions: int = MIN_RECOMMENDED_MOTIONS
    refine: bool = True
    max_nfev: int = MAX_NFEV
    ftol: float = FTOL
    xtol: float = XTOL
    gtol: float = GTOL
    rank_tol: float = RANK_TOL


@dataclass
class SessionConfig:
    base_frame: str = BASE_TF
    ee_frame: str = EE_TF
    tag_frame: str = ARTAG_TF
    camera_frame: str = CAMERA_TF
    lookup_timeout: float = LOOKUP_TIMEOUT_SEC
    pairs_record_file: Path = Path(TRANSFORM_PAIRS_RECORD_FILE)
    result_file: Path = Path(CALIBRATED_TRANSFORM_FILE)
    solver: SolverOptions = field(default_factory=SolverOptions)


DEFAULT_SOLVER  = SolverOptions()
DEFAULT_SESSION = SessionConfig()
