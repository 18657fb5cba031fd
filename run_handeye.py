#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
run_handeye.py — hand-eye калибровка (AX = XB) рука ↔ камера.

Режимы:
  --load FILE    прочитать пары поз из файла, решить, записать результат;
  --replay FILE  прогнать записанные пары через интерактивную сессию
                 (клавиши s / d / q со stdin, по строке на событие).

Живой TF-листенер здесь не подключается: сессия работает с любым
handeyelib.pose_source.PoseSource.
"""

import argparse
import logging
import sys
from pathlib import Path

from handeyelib import config as cfg
from handeyelib.logutil import setup_logging
from handeyelib.pose_source import SequencePoseSource
from handeyelib.session import CalibrationSession, solve_from_file
from handeyelib.calibration import CalibrationError
from handeyelib.storage import read_pose_pairs

log = logging.getLogger("run_handeye")


def _read_key():
    line = sys.stdin.readline()
    return line if line else None


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Hand-eye (AX = XB) calibration")
    mode = ap.add_mutually_exclusive_group(required=True)
    mode.add_argument("--load", type=Path, nargs="?", const=Path(cfg.TRANSFORM_PAIRS_LOAD_FILE),
                      help="pose pairs file to solve from (default: %(const)s)")
    mode.add_argument("--replay", type=Path, help="pose pairs file to replay through the session")
    ap.add_argument("--out", type=Path, default=Path(cfg.CALIBRATED_TRANSFORM_FILE),
                    help="calibrated transform output file")
    ap.add_argument("--record", type=Path, default=Path(cfg.TRANSFORM_PAIRS_RECORD_FILE),
                    help="where captured pairs are written in --replay mode")
    ap.add_argument("--min-recommended", type=int, default=cfg.MIN_RECOMMENDED_MOTIONS,
                    help="warn when fewer relative motions are captured (default: %(default)s)")
    ap.add_argument("--no-refine", action="store_true", help="closed-form estimate only")
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    solver = cfg.SolverOptions(recommended_motions=args.min_recommended,
                               refine=not args.no_refine)
    conf = cfg.SessionConfig(pairs_record_file=args.record, result_file=args.out, solver=solver)
    log.info("Calibrated output file: %s", conf.result_file)

    try:
        if args.load is not None:
            log.info("Transform pairs loading file: %s", args.load)
            solve_from_file(args.load, conf.result_file, conf)
            return 0

        pairs = read_pose_pairs(args.replay)
    except CalibrationError as e:
        log.error("%s", e)
        return 1

    log.info("Transform pairs recording to file: %s", conf.pairs_record_file)
    source = SequencePoseSource(pairs,
                                frames_a=(conf.base_frame, conf.ee_frame),
                                frames_b=(conf.tag_frame, conf.camera_frame))
    session = CalibrationSession(source, conf)
    est = session.run(_read_key)
    return 0 if est is not None else 2


if __name__ == "__main__":
    sys.exit(main())
