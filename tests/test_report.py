import numpy as np
from scipy.spatial.transform import Rotation

from handeyelib.calibration import solve
from handeyelib.report import brief_report, calibration_record, format_report
from conftest import motions_for, random_se3

RECORD_KEYS = {
    "handToEyeTF", "handToEyeTransform", "initial_cost", "final_cost", "change_cost",
    "termination_type", "num_successful_iteration", "num_unsuccessful_iteration", "num_iteration",
}


def _estimate(rng, X):
    return solve(motions_for(X, [random_se3(rng) for _ in range(6)]))


def test_record_schema_and_values(rng, X_true):
    est = _estimate(rng, X_true)
    rec = calibration_record(est)
    assert set(rec) == RECORD_KEYS

    tf = rec["handToEyeTF"]
    assert tf.shape == (7,)
    np.testing.assert_allclose(tf[:3], est.transform.t)
    assert abs(np.linalg.norm(tf[3:]) - 1.0) < 1e-12
    np.testing.assert_allclose(Rotation.from_quat(tf[3:]).as_matrix(), est.transform.R, atol=1e-9)
    np.testing.assert_array_equal(rec["handToEyeTransform"], est.transform.A)

    assert rec["termination_type"] == "CONVERGENCE"
    assert rec["num_iteration"] == rec["num_successful_iteration"] + rec["num_unsuccessful_iteration"]
    assert rec["change_cost"] == rec["initial_cost"] - rec["final_cost"]


def test_report_does_not_mutate_estimate(rng, X_true):
    est = _estimate(rng, X_true)
    before = est.transform.A.copy()
    format_report(est)
    calibration_record(est)["handToEyeTransform"][0, 0] = 42.0
    np.testing.assert_array_equal(est.transform.A, before)


def test_format_report_contents(rng, X_true):
    est = _estimate(rng, X_true)
    text = format_report(est, "/ee_fixed_link", "/camera_2_link")
    assert "Result from /ee_fixed_link to /camera_2_link:" in text
    assert "Translation (x,y,z)" in text
    assert "Rotation q(x,y,z,w)" in text
    assert "Rotation (roll,pitch,yaw)" in text
    assert "Inverted translation (x,y,z)" in text
    assert "Inverted rotation q(x,y,z,w)" in text
    assert brief_report(est) in text
    assert "WARNING" not in text


def test_inverse_translation_in_report(rng, X_true):
    est = _estimate(rng, X_true)
    text = format_report(est)
    inv_t = est.transform.inv().t
    line = next(l for l in text.splitlines() if l.startswith("Inverted translation"))
    values = np.array([float(v) for v in line.split(":")[1].split()])
    np.testing.assert_allclose(values, inv_t, atol=1e-6)
