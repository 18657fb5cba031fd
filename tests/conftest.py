import numpy as np
import pytest
from spatialmath import SE3

from handeyelib.motions import RelativeMotion
from handeyelib.transforms import R_from_rotvec, rotvec_from_R


def random_se3(rng, min_angle=0.2, max_angle=2.5, t_scale=0.5) -> SE3:
    axis = rng.normal(size=3)
    axis /= np.linalg.norm(axis)
    angle = rng.uniform(min_angle, max_angle)
    T = np.eye(4)
    T[:3, :3] = R_from_rotvec(axis * angle)
    T[:3, 3] = rng.uniform(-t_scale, t_scale, size=3)
    return SE3(T, check=False)


def motions_for(X: SE3, Bs):
    out = []
    for B in Bs:
        A = X * B * X.inv()
        out.append(RelativeMotion(rotvec_from_R(A.R), np.array(A.t), rotvec_from_R(B.R), np.array(B.t)))
    return out


def pairs_for(X: SE3, n, rng):
    """Абсолютные пары (A, B) с относительными движениями A_i = X·B_i·X⁻¹."""
    W = random_se3(rng)
    pairs = []
    for _ in range(n):
        pose_b = random_se3(rng)
        pose_a = W * X * pose_b * X.inv()
        pairs.append((pose_a, pose_b))
    return pairs


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def X_true(rng):
    return random_se3(rng, t_scale=0.2)
