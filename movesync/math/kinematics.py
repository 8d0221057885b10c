from __future__ import annotations
import numpy as np
from scipy.spatial.transform import Rotation

__all__ = [
    "IDENTITY_QUAT",
    "normalize_quat",
    "quat_conjugate",
    "quat_multiply",
    "canonicalize_quat",
    "quats_to_R_batch",
    "quats_to_euler_batch",
    "relative_angle_deg",
    "rotate_vectors",
    "quat_from_acc_mag",
    "nearest_index",
]

IDENTITY_QUAT = np.array([1.0, 0.0, 0.0, 0.0], dtype=float)


def normalize_quat(q: np.ndarray) -> np.ndarray:
    """Unit-normalize (...,4) quaternions; zero-norm rows become identity."""
    q = np.asarray(q, dtype=float)
    n = np.linalg.norm(q, axis=-1, keepdims=True)
    out = np.divide(q, n, out=np.zeros_like(q), where=n > 1e-12)
    bad = (n[..., 0] <= 1e-12) | ~np.isfinite(n[..., 0])
    if np.any(bad):
        out[bad] = IDENTITY_QUAT
    return out


def quat_conjugate(q: np.ndarray) -> np.ndarray:
    q = np.asarray(q, dtype=float)
    return q * np.array([1.0, -1.0, -1.0, -1.0])


def quat_multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Hamilton product a*b for (...,4) arrays in w,x,y,z order."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    aw, ax, ay, az = a[..., 0], a[..., 1], a[..., 2], a[..., 3]
    bw, bx, by, bz = b[..., 0], b[..., 1], b[..., 2], b[..., 3]
    return np.stack(
        [
            aw * bw - ax * bx - ay * by - az * bz,
            aw * bx + ax * bw + ay * bz - az * by,
            aw * by - ax * bz + ay * bw + az * bx,
            aw * bz + ax * by - ay * bx + az * bw,
        ],
        axis=-1,
    )


def canonicalize_quat(q: np.ndarray) -> np.ndarray:
    """Flip sign so the scalar part is non-negative (q and -q are the same rotation)."""
    q = np.asarray(q, dtype=float)
    sign = np.where(q[..., :1] < 0, -1.0, 1.0)
    return q * sign


def quats_to_R_batch(quats: np.ndarray) -> np.ndarray:
    q = normalize_quat(np.asarray(quats, dtype=float).reshape(-1, 4))
    w, x, y, z = q[:, 0], q[:, 1], q[:, 2], q[:, 3]
    ww, xx, yy, zz = w * w, x * x, y * y, z * z
    wx, wy, wz = w * x, w * y, w * z
    xy, xz, yz = x * y, x * z, y * z
    R = np.empty((q.shape[0], 3, 3), dtype=float)
    R[:, 0, 0] = 1 - 2 * (yy + zz)
    R[:, 0, 1] = 2 * (xy - wz)
    R[:, 0, 2] = 2 * (xz + wy)
    R[:, 1, 0] = 2 * (xy + wz)
    R[:, 1, 1] = 1 - 2 * (xx + zz)
    R[:, 1, 2] = 2 * (yz - wx)
    R[:, 2, 0] = 2 * (xz - wy)
    R[:, 2, 1] = 2 * (yz + wx)
    R[:, 2, 2] = 1 - 2 * (xx + yy)
    return R


def quats_to_euler_batch(quats: np.ndarray) -> np.ndarray:
    """Roll/pitch/yaw (radians) per quaternion, shape (N,3).

    Pitch saturates at +/-pi/2 instead of going NaN when |sin(pitch)| >= 1.
    """
    q = np.asarray(quats, dtype=float).reshape(-1, 4)
    w, x, y, z = q[:, 0], q[:, 1], q[:, 2], q[:, 3]
    roll = np.arctan2(2 * (w * x + y * z), 1 - 2 * (x * x + y * y))
    sinp = 2 * (w * y - z * x)
    pitch = np.where(
        np.abs(sinp) >= 1,
        np.copysign(np.pi / 2, sinp),
        np.arcsin(np.clip(sinp, -1.0, 1.0)),
    )
    yaw = np.arctan2(2 * (w * z + x * y), 1 - 2 * (y * y + z * z))
    return np.stack([roll, pitch, yaw], axis=1)


def relative_angle_deg(q_a: np.ndarray, q_b: np.ndarray) -> np.ndarray:
    """Rotation angle between paired orientations, in degrees.

    Both inputs are canonicalized, then angle = 2*acos(w) of q_b * conj(q_a).
    """
    a = canonicalize_quat(q_a)
    b = canonicalize_quat(q_b)
    q_rel = quat_multiply(b, quat_conjugate(a))
    w = np.clip(q_rel[..., 0], -1.0, 1.0)
    return np.degrees(2.0 * np.arccos(w))


def rotate_vectors(quats: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Rotate vector(s) by quaternion(s): v' = R(q) v."""
    R = quats_to_R_batch(quats)
    v = np.asarray(v, dtype=float)
    out = (R @ v.reshape(-1, 3)[..., None]).squeeze(-1)
    if np.asarray(quats).ndim == 1 and v.ndim == 1:
        return out[0]
    return out


def quat_from_acc_mag(acc: np.ndarray, mag: np.ndarray) -> np.ndarray:
    """Sensor-to-world quaternion from one gravity and one magnetic reading.

    World z follows the accelerometer reading (the reaction to gravity), world x
    follows the horizontal part of the magnetic field. Degenerate readings
    (zero gravity, field parallel to gravity) give identity.
    """
    a = np.asarray(acc, dtype=float).reshape(3)
    m = np.asarray(mag, dtype=float).reshape(3)
    na = np.linalg.norm(a)
    if not np.isfinite(na) or na < 1e-9:
        return IDENTITY_QUAT.copy()
    ez = a / na
    mh = m - np.dot(m, ez) * ez
    nm = np.linalg.norm(mh)
    if not np.isfinite(nm) or nm < 1e-9:
        return IDENTITY_QUAT.copy()
    ex = mh / nm
    ey = np.cross(ez, ex)
    R_ws = np.vstack([ex, ey, ez])
    x, y, z, w = Rotation.from_matrix(R_ws).as_quat()
    return canonicalize_quat(np.array([w, x, y, z], dtype=float))


def nearest_index(times: np.ndarray, x: float) -> int:
    """Index of the sample closest to x in an ascending time array (-1 if empty).

    Ties resolve to the earlier sample.
    """
    t = np.asarray(times, dtype=float)
    n = t.size
    if n == 0:
        return -1
    if x <= t[0]:
        return 0
    if x >= t[-1]:
        return n - 1
    b = int(np.searchsorted(t, x, side="left"))
    if t[b] == x:
        return b
    a = b - 1
    return b if abs(t[b] - x) < abs(t[a] - x) else a
