from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, eq=False)
class RigidTransform:
    """4x4 homogeneous transform (rotation block is trusted to be orthonormal)."""

    matrix: np.ndarray

    def __post_init__(self) -> None:
        m = np.asarray(self.matrix, dtype=np.float64)
        if m.shape != (4, 4):
            raise ValueError(f"RigidTransform needs a 4x4 matrix, got shape {m.shape}")
        object.__setattr__(self, "matrix", m)

    @classmethod
    def from_row_major(cls, values: np.ndarray) -> RigidTransform:
        """Build from 16 values ordered m[4*row+col]."""
        v = np.asarray(values, dtype=np.float64).reshape(-1)
        if v.shape != (16,):
            raise ValueError("row-major transform needs 16 values")
        return cls(v.reshape(4, 4))

    @classmethod
    def identity(cls) -> RigidTransform:
        return cls(np.eye(4, dtype=np.float64))

    @classmethod
    def from_rotation_translation(cls, R: np.ndarray, t: np.ndarray) -> RigidTransform:
        m = np.eye(4, dtype=np.float64)
        m[:3, :3] = np.asarray(R, dtype=np.float64).reshape(3, 3)
        m[:3, 3] = np.asarray(t, dtype=np.float64).reshape(3)
        return cls(m)

    @property
    def rotation(self) -> np.ndarray:
        return self.matrix[:3, :3]

    @property
    def translation(self) -> np.ndarray:
        return self.matrix[:3, 3]

    def to_row_major(self) -> np.ndarray:
        return self.matrix.reshape(16).copy()


def translation_error(a: RigidTransform, b: RigidTransform) -> float:
    """Euclidean distance between the two translations (document length unit, usually mm)."""
    return float(np.linalg.norm(a.translation - b.translation))


def rotation_error(a: RigidTransform, b: RigidTransform) -> float:
    """
    Angle (degrees) of the relative rotation R_a^T R_b.

    Uses angle = arccos((trace(R_rel) - 1) / 2); the cosine is clipped to [-1, 1]
    so round-off on nearly identical orientations stays finite. Identical
    rotation blocks give exactly 0.
    """
    if np.array_equal(a.rotation, b.rotation):
        return 0.0
    R_rel = a.rotation.T @ b.rotation
    cos_angle = (float(np.trace(R_rel)) - 1.0) / 2.0
    cos_angle = float(np.clip(cos_angle, -1.0, 1.0))
    return float(np.degrees(np.arccos(cos_angle)))


def rotation_about_axis(axis: np.ndarray, angle_deg: float) -> np.ndarray:
    """Rodrigues rotation matrix for a rotation of `angle_deg` about `axis`."""
    k = np.asarray(axis, dtype=np.float64).reshape(3)
    n = float(np.linalg.norm(k))
    if n == 0.0:
        raise ValueError("rotation axis must be non-zero")
    k = k / n
    theta = np.radians(float(angle_deg))
    K = np.array(
        [
            [0.0, -k[2], k[1]],
            [k[2], 0.0, -k[0]],
            [-k[1], k[0], 0.0],
        ],
        dtype=np.float64,
    )
    return np.eye(3) + np.sin(theta) * K + (1.0 - np.cos(theta)) * (K @ K)
