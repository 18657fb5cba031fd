import logging
import numpy as np
import pytest

import run_handeye
from handeyelib import config as cfg
from handeyelib.pose_source import PoseLookupError, SequencePoseSource, StaticPoseSource
from handeyelib.session import CalibrationSession, solve_from_file
from handeyelib.storage import PersistenceError, read_calibration, read_pose_pairs, write_pose_pairs
from handeyelib.pose_store import PoseStore
from handeyelib.transforms import rel_angle_deg
from conftest import pairs_for, random_se3


@pytest.fixture
def conf(tmp_path):
    return cfg.SessionConfig(pairs_record_file=tmp_path / "pairs.yml",
                             result_file=tmp_path / "calib.yml")


def _feed(source, conf, pose_a, pose_b):
    source.set_pose(conf.base_frame, conf.ee_frame, pose_a)
    source.set_pose(conf.tag_frame, conf.camera_frame, pose_b)


def test_capture_appends_and_persists(conf, rng, X_true):
    source = StaticPoseSource()
    session = CalibrationSession(source, conf)
    for pose_a, pose_b in pairs_for(X_true, 3, rng):
        _feed(source, conf, pose_a, pose_b)
        assert session.capture()
    assert session.store.size() == 3
    assert len(read_pose_pairs(conf.pairs_record_file)) == 3


def test_capture_lookup_failure_leaves_store_unchanged(conf, rng):
    source = StaticPoseSource()
    session = CalibrationSession(source, conf)
    _feed(source, conf, random_se3(rng), random_se3(rng))
    assert session.capture()

    source.drop_pose(conf.tag_frame, conf.camera_frame)
    assert not session.capture()
    assert session.store.size() == 1


def test_capture_survives_unwritable_record_file(tmp_path, rng):
    conf = cfg.SessionConfig(pairs_record_file=tmp_path / "missing" / "pairs.yml",
                             result_file=tmp_path / "calib.yml")
    source = StaticPoseSource()
    _feed(source, conf, random_se3(rng), random_se3(rng))
    session = CalibrationSession(source, conf)
    assert session.capture()
    assert session.store.size() == 1


def test_undo(conf, rng):
    source = StaticPoseSource()
    session = CalibrationSession(source, conf)
    assert not session.undo()
    _feed(source, conf, random_se3(rng), random_se3(rng))
    session.capture()
    session.capture()
    assert session.undo()
    assert session.store.size() == 1


def test_finalize_with_too_few_motions_keeps_session_open(conf, rng, X_true):
    source = StaticPoseSource()
    session = CalibrationSession(source, conf)
    for pose_a, pose_b in pairs_for(X_true, 2, rng):
        _feed(source, conf, pose_a, pose_b)
        session.capture()
    assert session.finalize() is None
    assert not session.done
    assert session.store.size() == 2
    assert not conf.result_file.exists()


def test_keys_drive_full_calibration(conf, rng, X_true):
    pairs = pairs_for(X_true, 7, rng)
    source = SequencePoseSource(pairs, (conf.base_frame, conf.ee_frame),
                                (conf.tag_frame, conf.camera_frame))
    session = CalibrationSession(source, conf)
    keys = iter(["s"] * 7 + ["x", "d", "S", "q", "s"])
    est = session.run(lambda: next(keys, None))

    assert session.done
    # 'd' выкинул 7-ю пару, повторный 's' — запись закончилась
    assert session.store.size() == 6
    assert est is not None and est.num_motions == 5
    assert rel_angle_deg(est.transform.R, X_true.R) < 1e-6
    np.testing.assert_allclose(est.transform.t, X_true.t, atol=1e-6)

    rec = read_calibration(conf.result_file)
    np.testing.assert_allclose(rec["handToEyeTransform"], est.transform.A, atol=1e-12)
    assert next(keys) == "s"


def test_handle_key_returns_false_after_finalize(conf, rng, X_true):
    source = StaticPoseSource()
    session = CalibrationSession(source, conf)
    for pose_a, pose_b in pairs_for(X_true, 6, rng):
        _feed(source, conf, pose_a, pose_b)
        assert session.handle_key("s")
    assert not session.handle_key("Q")


def test_run_stops_on_end_of_input(conf):
    session = CalibrationSession(StaticPoseSource(), conf)
    assert session.run(lambda: None) is None
    assert not session.done


def test_sequence_source_exhausts():
    src = SequencePoseSource([(np.eye(4), np.eye(4))], ("a", "b"), ("c", "d"))
    src.lookup_pose("a", "b")
    src.lookup_pose("c", "d")
    assert src.remaining == 0
    with pytest.raises(PoseLookupError):
        src.lookup_pose("a", "b")
    with pytest.raises(TimeoutError):
        src.lookup_pose("x", "y")


def test_solve_from_file(tmp_path, rng, X_true):
    pairs_path = tmp_path / "in.yml"
    store = PoseStore.from_pairs(pairs_for(X_true, 8, rng))
    write_pose_pairs(pairs_path, store.pairs())

    est = solve_from_file(pairs_path, tmp_path / "out.yml")
    assert rel_angle_deg(est.transform.R, X_true.R) < 1e-6
    assert (tmp_path / "out.yml").is_file()


def test_solve_from_missing_file(tmp_path):
    with pytest.raises(PersistenceError):
        solve_from_file(tmp_path / "nope.yml", tmp_path / "out.yml")


def test_cli_load_mode(tmp_path, rng, X_true):
    pairs_path = tmp_path / "in.yml"
    write_pose_pairs(pairs_path, PoseStore.from_pairs(pairs_for(X_true, 6, rng)).pairs())
    out = tmp_path / "out.yml"
    assert run_handeye.main(["--load", str(pairs_path), "--out", str(out)]) == 0
    rec = read_calibration(out)
    np.testing.assert_allclose(rec["handToEyeTransform"][:3, 3], X_true.t, atol=1e-6)


def test_cli_missing_file(tmp_path):
    assert run_handeye.main(["--load", str(tmp_path / "nope.yml")]) == 1


def test_dropped_capture_warns(conf, rng, caplog):
    source = StaticPoseSource()
    source.set_pose(conf.base_frame, conf.ee_frame, random_se3(rng))
    session = CalibrationSession(source, conf)
    with caplog.at_level(logging.WARNING, logger="handeyelib.session"):
        assert not session.capture()
    assert f"failed to get transform between {conf.tag_frame} and {conf.camera_frame}" in caplog.text
    assert "capture dropped" in caplog.text
    assert session.store.size() == 0


def test_finalize_with_too_few_motions_warns(conf, rng, X_true, caplog):
    source = StaticPoseSource()
    session = CalibrationSession(source, conf)
    for pose_a, pose_b in pairs_for(X_true, 2, rng):
        _feed(source, conf, pose_a, pose_b)
        session.capture()
    with caplog.at_level(logging.WARNING, logger="handeyelib.session"):
        assert session.finalize() is None
    assert "number of calibration transform pairs < 5" in caplog.text
    assert "cannot calibrate" in caplog.text


def test_sequence_source_rejects_same_frames_for_both_streams():
    with pytest.raises(ValueError):
        SequencePoseSource([(np.eye(4), np.eye(4))], ("a", "b"), ("a", "b"))
