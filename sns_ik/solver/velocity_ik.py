"""
速度级逆运动学求解器（零空间饱和，Saturation in the Null Space）

所有变体实现同一个接口 VelocityIK：
- set_joints_capabilities: 设置关节位置/速度/加速度限位
- use_position_limits: 是否在速度求解中考虑位置限位
- get_joint_velocity: 给定任务栈与当前关节位置，返回关节速度

五个变体互相独立，由 create_velocity_ik 按 VelocitySolveType 构造。
"""
import numpy as np
from abc import ABC, abstractmethod
from enum import Enum
from scipy.optimize import linprog
from typing import List, Sequence, Tuple

from ..errors import ConfigError
from .task import Task

_TOL = 1e-9


class VelocitySolveType(Enum):
    SNS = "sns"
    SNS_FAST = "sns_fast"
    SNS_OPTIMAL = "sns_optimal"
    SNS_OPTIMAL_SCALE_MARGIN = "sns_optimal_scale_margin"
    SNS_FAST_OPTIMAL = "sns_fast_optimal"


def _pinv(A: np.ndarray, tol: float = 1e-10) -> np.ndarray:
    """截断奇异值的伪逆"""
    if A.size == 0:
        return np.zeros((A.shape[1], A.shape[0]), dtype=np.float64)
    U, s, Vt = np.linalg.svd(A, full_matrices=False)
    s_inv = np.zeros_like(s)
    nonzero = s > tol * max(1.0, s[0])
    s_inv[nonzero] = 1.0 / s[nonzero]
    return (Vt.T * s_inv) @ U.T


def _rank(A: np.ndarray, tol: float = 1e-10) -> int:
    """与 _pinv 相同截断阈值下的秩"""
    if A.size == 0:
        return 0
    s = np.linalg.svd(A, compute_uv=False)
    return int(np.sum(s > tol * max(1.0, s[0])))


def _within(dq: np.ndarray, lower: np.ndarray, upper: np.ndarray) -> bool:
    return bool(np.all(dq >= lower - _TOL) and np.all(dq <= upper + _TOL))


def _task_solution(J: np.ndarray, dx: np.ndarray, dq_prev: np.ndarray, P: np.ndarray,
                   saturated: np.ndarray, dq_sat: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    在给定饱和集合下求解一个任务，返回仿射形式 dq(s) = a * s + b 以及投影 P_bar

    饱和关节固定在 dq_sat；其余关节在高优先级任务的零空间 P 内求解。
    """
    S = np.diag(saturated.astype(np.float64))
    A = S @ P
    A_pinv = _pinv(A)
    # P_bar: P 中去掉饱和关节方向后的正交投影
    P_bar = P - A_pinv @ A
    base = dq_prev + A_pinv @ (S @ (dq_sat - dq_prev))
    JP_pinv = P_bar @ _pinv(J @ P_bar)
    a = JP_pinv @ dx
    b = base - JP_pinv @ (J @ base)
    return a, b, P_bar


def _max_scale(a: np.ndarray, b: np.ndarray,
               lower: np.ndarray, upper: np.ndarray) -> Tuple[float, np.ndarray]:
    """
    a * s + b 在关节速度限位内时允许的最大任务缩放因子 s ∈ [0, 1]

    :return: (缩放因子，不可行时为 -1；每个关节各自允许的最大缩放因子)
    """
    n = a.shape[0]
    s_max = np.full(n, np.inf)
    s_min = np.full(n, -np.inf)
    moving = np.abs(a) > _TOL
    with np.errstate(divide='ignore', invalid='ignore'):
        to_upper = (upper - b) / a
        to_lower = (lower - b) / a
    pos = moving & (a > 0)
    neg = moving & (a < 0)
    s_max[pos], s_min[pos] = to_upper[pos], to_lower[pos]
    s_max[neg], s_min[neg] = to_lower[neg], to_upper[neg]
    s_max[~moving & ((b < lower - _TOL) | (b > upper + _TOL))] = -np.inf

    scale = min(1.0, float(s_max.min()))
    if scale < max(0.0, float(s_min.max())) - _TOL:
        return -1.0, s_max
    return scale, s_max


def _saturation_task(J: np.ndarray, dx: np.ndarray, dq_prev: np.ndarray, P: np.ndarray,
                     lower: np.ndarray, upper: np.ndarray, saturate_all: bool):
    """
    单个任务的 SNS 迭代：逐步把越限关节饱和到限位上，直到满缩放因子可行或没有剩余自由度

    :param saturate_all: True 时每轮饱和所有越限关节，否则只饱和最关键的一个
    :return: (dq, 缩放因子, 饱和掩码, 饱和值)
    """
    n = dq_prev.shape[0]
    saturated = np.zeros(n, dtype=bool)
    dq_sat = np.zeros(n, dtype=np.float64)
    if J.shape[0] == 0:
        return dq_prev, 1.0, saturated, dq_sat

    task_rank = _rank(J @ P)
    best_scale = -1.0
    best = (dq_prev, saturated.copy(), dq_sat.copy())
    for _ in range(n + 1):
        a, b, P_bar = _task_solution(J, dx, dq_prev, P, saturated, dq_sat)
        # 饱和后剩余自由度不足以完成任务时停止
        if saturated.any() and _rank(J @ P_bar) < task_rank:
            break
        dq = a + b
        violating = (dq < lower - _TOL) | (dq > upper + _TOL)
        if not violating.any():
            return dq, 1.0, saturated, dq_sat

        scale, s_max = _max_scale(a, b, lower, upper)
        if scale > best_scale:
            best_scale = scale
            best = (a * scale + b, saturated.copy(), dq_sat.copy())

        candidates = np.flatnonzero(violating & ~saturated)
        if candidates.size == 0:
            break
        if not saturate_all:
            candidates = candidates[[int(np.argmin(s_max[candidates]))]]
        saturated[candidates] = True
        dq_sat[candidates] = np.where(dq[candidates] > upper[candidates],
                                      upper[candidates], lower[candidates])

    if best_scale < 0:
        return dq_prev, 0.0, np.zeros(n, dtype=bool), np.zeros(n, dtype=np.float64)
    return best[0], best_scale, best[1], best[2]


def _release_saturations(J: np.ndarray, dx: np.ndarray, dq_prev: np.ndarray, P: np.ndarray,
                         lower: np.ndarray, upper: np.ndarray,
                         dq: np.ndarray, scale: float,
                         saturated: np.ndarray, dq_sat: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    依次尝试释放饱和关节：释放后缩放因子不下降且仍可行则接受
    """
    saturated = saturated.copy()
    for j in np.flatnonzero(saturated):
        trial = saturated.copy()
        trial[j] = False
        a, b, _ = _task_solution(J, dx, dq_prev, P, trial, dq_sat)
        trial_scale, _ = _max_scale(a, b, lower, upper)
        if trial_scale >= scale - _TOL and trial_scale >= 0:
            candidate = a * trial_scale + b
            if _within(candidate, lower, upper):
                saturated, dq, scale = trial, candidate, trial_scale
    return dq, scale


def _optimal_task(J: np.ndarray, dx: np.ndarray, dq_prev: np.ndarray, P: np.ndarray,
                  lower: np.ndarray, upper: np.ndarray, margin: float = 0.0) -> Tuple[np.ndarray, float]:
    """
    用线性规划求解高优先级零空间内可达到的最大缩放因子

    max s  s.t.  (J P) y = s r,  lower <= dq_prev + P y <= upper,  0 <= s <= 1
    其中 r 是任务残差在 J P 值域上的投影。优先取最小范数解，不可行时退回线性规划的可行解。

    :param margin: 任务需要缩放时额外让出的缩放比例，为低优先级任务保留余量
    """
    m, n = J.shape
    if m == 0:
        return dq_prev, 1.0
    JP = J @ P
    JP_pinv = _pinv(JP)
    r = JP @ (JP_pinv @ (dx - J @ dq_prev))
    if np.linalg.norm(r) < _TOL:
        return dq_prev, 1.0

    step = P @ (JP_pinv @ r)
    if _within(dq_prev + step, lower, upper):
        return dq_prev + step, 1.0

    has_upper = np.isfinite(upper)
    has_lower = np.isfinite(lower)
    A_ub = np.vstack([P[has_upper], -P[has_lower]])
    A_ub = np.hstack([A_ub, np.zeros((A_ub.shape[0], 1))])
    b_ub = np.concatenate([upper[has_upper] - dq_prev[has_upper],
                           dq_prev[has_lower] - lower[has_lower]])
    A_eq = np.hstack([JP, -r.reshape(-1, 1)])
    c = np.zeros(n + 1)
    c[-1] = -1.0

    result = linprog(c,
                     A_ub=A_ub if A_ub.shape[0] else None,
                     b_ub=b_ub if A_ub.shape[0] else None,
                     A_eq=A_eq, b_eq=np.zeros(m),
                     bounds=[(None, None)] * n + [(0.0, 1.0)],
                     method="highs")
    if result.status != 0 or result.x is None:
        return dq_prev, 0.0

    best_scale = float(np.clip(result.x[-1], 0.0, 1.0))
    if best_scale <= _TOL:
        return dq_prev, 0.0
    scale = best_scale * (1.0 - margin) if best_scale < 1.0 else best_scale

    candidate = dq_prev + scale * step
    if _within(candidate, lower, upper):
        return candidate, scale
    # 可行域是凸集，线性规划解与 y=0 的凸组合仍可行
    return dq_prev + (scale / best_scale) * (P @ result.x[:n]), scale


def _nullspace_update(P: np.ndarray, J: np.ndarray) -> np.ndarray:
    JP = J @ P
    return P - _pinv(JP) @ JP


class VelocityIK(ABC):
    """
    速度求解器接口

    关节速度限位由速度限位决定；启用位置限位时，还受一个控制周期内到位置限位的距离
    以及由加速度限位推出的制动距离约束。速度限位为0视为未声明（不限）。
    """

    solve_type: VelocitySolveType

    def __init__(self, num_joints: int, control_period: float):
        """
        :param num_joints: 关节数
        :param control_period: 控制周期（秒）
        """
        self.num_joints = num_joints
        self.control_period = control_period
        self.lower = np.full(num_joints, -np.inf)
        self.upper = np.full(num_joints, np.inf)
        self.max_velocity = np.zeros(num_joints)
        self.max_acceleration = np.zeros(num_joints)
        self.position_limits_enabled = True
        # 最近一次求解中每个任务的缩放因子
        self.task_scales: List[float] = []

    def set_joints_capabilities(self, lower: Sequence[float], upper: Sequence[float],
                                max_velocity: Sequence[float], max_acceleration: Sequence[float]):
        arrays = [np.asarray(v, dtype=np.float64).reshape(-1)
                  for v in (lower, upper, max_velocity, max_acceleration)]
        for values in arrays:
            if values.shape != (self.num_joints,):
                raise ValueError(f"Expected {self.num_joints} joint capabilities, got {values.shape[0]}")
        self.lower, self.upper, self.max_velocity, self.max_acceleration = arrays

    def use_position_limits(self, enabled: bool):
        self.position_limits_enabled = bool(enabled)

    def joint_velocity_bounds(self, q: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        :param q: 当前关节位置
        :return: (dq_min, dq_max)
        """
        vmax = np.where(self.max_velocity > 0, self.max_velocity, np.inf)
        dq_min = -vmax
        dq_max = vmax.copy()
        if self.position_limits_enabled:
            dq_min = np.maximum(dq_min, (self.lower - q) / self.control_period)
            dq_max = np.minimum(dq_max, (self.upper - q) / self.control_period)
            braking = self.max_acceleration > 0
            if braking.any():
                acc = self.max_acceleration[braking]
                to_upper = np.maximum(self.upper[braking] - q[braking], 0.0)
                to_lower = np.maximum(q[braking] - self.lower[braking], 0.0)
                dq_max[braking] = np.minimum(dq_max[braking], np.sqrt(2.0 * acc * to_upper))
                dq_min[braking] = np.maximum(dq_min[braking], -np.sqrt(2.0 * acc * to_lower))
            dq_max = np.maximum(dq_max, dq_min)
        return dq_min, dq_max

    def _check_inputs(self, tasks: Sequence[Task], q: Sequence[float]) -> np.ndarray:
        q = np.asarray(q, dtype=np.float64).reshape(-1)
        if q.shape != (self.num_joints,):
            raise ValueError(f"Expected {self.num_joints} joint positions, got {q.shape[0]}")
        for task in tasks:
            if task.jacobian.shape[1] != self.num_joints:
                raise ValueError(f"Task jacobian has {task.jacobian.shape[1]} columns, "
                                 f"expected {self.num_joints}")
        return q

    @abstractmethod
    def get_joint_velocity(self, tasks: Sequence[Task], q: Sequence[float]) -> np.ndarray:
        """
        :param tasks: 按优先级递减排列的任务栈
        :param q: 当前关节位置
        :return: 关节速度
        """
        pass

    def __repr__(self):
        return f"<{self.__class__.__name__}: {self.num_joints} joints>"


class SNSVelocityIK(VelocityIK):
    """标准 SNS：每轮饱和最关键的一个关节，保留缩放因子最大的解"""

    solve_type = VelocitySolveType.SNS

    def get_joint_velocity(self, tasks: Sequence[Task], q: Sequence[float]) -> np.ndarray:
        q = self._check_inputs(tasks, q)
        lower, upper = self.joint_velocity_bounds(q)
        P = np.identity(self.num_joints)
        dq = np.zeros(self.num_joints)
        scales = []
        for task in tasks:
            dq, scale, _, _ = _saturation_task(task.jacobian, task.desired, dq, P,
                                               lower, upper, saturate_all=False)
            scales.append(scale)
            P = _nullspace_update(P, task.jacobian)
        self.task_scales = scales
        return dq


class FastSNSVelocityIK(VelocityIK):
    """快速 SNS：每轮同时饱和所有越限关节，迭代次数更少，结果为近似最优"""

    solve_type = VelocitySolveType.SNS_FAST

    def get_joint_velocity(self, tasks: Sequence[Task], q: Sequence[float]) -> np.ndarray:
        q = self._check_inputs(tasks, q)
        lower, upper = self.joint_velocity_bounds(q)
        P = np.identity(self.num_joints)
        dq = np.zeros(self.num_joints)
        scales = []
        for task in tasks:
            dq, scale, _, _ = _saturation_task(task.jacobian, task.desired, dq, P,
                                               lower, upper, saturate_all=True)
            scales.append(scale)
            P = _nullspace_update(P, task.jacobian)
        self.task_scales = scales
        return dq


class OptimalSNSVelocityIK(VelocityIK):
    """最优 SNS：按优先级依次用线性规划求每个任务可达到的最大缩放因子"""

    solve_type = VelocitySolveType.SNS_OPTIMAL

    def get_joint_velocity(self, tasks: Sequence[Task], q: Sequence[float]) -> np.ndarray:
        q = self._check_inputs(tasks, q)
        lower, upper = self.joint_velocity_bounds(q)
        P = np.identity(self.num_joints)
        dq = np.zeros(self.num_joints)
        scales = []
        for task in tasks:
            dq, scale = _optimal_task(task.jacobian, task.desired, dq, P, lower, upper)
            scales.append(scale)
            P = _nullspace_update(P, task.jacobian)
        self.task_scales = scales
        return dq


class OptimalScaleMarginSNSVelocityIK(VelocityIK):
    """
    带缩放余量的最优 SNS：需要缩放的高优先级任务额外让出 scale_margin 比例，
    为低优先级任务保留关节速度余量（最后一个任务不让出）
    """

    solve_type = VelocitySolveType.SNS_OPTIMAL_SCALE_MARGIN

    def __init__(self, num_joints: int, control_period: float, scale_margin: float = 0.1):
        super().__init__(num_joints, control_period)
        if not 0.0 <= scale_margin < 1.0:
            raise ValueError(f"Scale margin must be in [0, 1), got {scale_margin}")
        self.scale_margin = scale_margin

    def get_joint_velocity(self, tasks: Sequence[Task], q: Sequence[float]) -> np.ndarray:
        q = self._check_inputs(tasks, q)
        lower, upper = self.joint_velocity_bounds(q)
        P = np.identity(self.num_joints)
        dq = np.zeros(self.num_joints)
        scales = []
        for i, task in enumerate(tasks):
            margin = self.scale_margin if i < len(tasks) - 1 else 0.0
            dq, scale = _optimal_task(task.jacobian, task.desired, dq, P, lower, upper, margin)
            scales.append(scale)
            P = _nullspace_update(P, task.jacobian)
        self.task_scales = scales
        return dq


class FastOptimalSNSVelocityIK(VelocityIK):
    """快速最优 SNS：标准饱和迭代之后，释放不影响缩放因子的饱和关节"""

    solve_type = VelocitySolveType.SNS_FAST_OPTIMAL

    def get_joint_velocity(self, tasks: Sequence[Task], q: Sequence[float]) -> np.ndarray:
        q = self._check_inputs(tasks, q)
        lower, upper = self.joint_velocity_bounds(q)
        P = np.identity(self.num_joints)
        dq = np.zeros(self.num_joints)
        scales = []
        for task in tasks:
            dq_prev = dq
            dq, scale, saturated, dq_sat = _saturation_task(task.jacobian, task.desired, dq_prev, P,
                                                            lower, upper, saturate_all=False)
            if saturated.any():
                dq, scale = _release_saturations(task.jacobian, task.desired, dq_prev, P,
                                                 lower, upper, dq, scale, saturated, dq_sat)
            scales.append(scale)
            P = _nullspace_update(P, task.jacobian)
        self.task_scales = scales
        return dq


_VELOCITY_SOLVERS = {
    VelocitySolveType.SNS: SNSVelocityIK,
    VelocitySolveType.SNS_FAST: FastSNSVelocityIK,
    VelocitySolveType.SNS_OPTIMAL: OptimalSNSVelocityIK,
    VelocitySolveType.SNS_OPTIMAL_SCALE_MARGIN: OptimalScaleMarginSNSVelocityIK,
    VelocitySolveType.SNS_FAST_OPTIMAL: FastOptimalSNSVelocityIK,
}


def parse_solve_type(tag) -> VelocitySolveType:
    """
    接受 VelocitySolveType 或其字符串值（如 "sns_fast"）

    :raises ConfigError: 未知的求解器类型
    """
    if isinstance(tag, VelocitySolveType):
        return tag
    try:
        return VelocitySolveType(tag)
    except ValueError:
        raise ConfigError(f"Unknown velocity solver type requested: {tag!r}") from None


def create_velocity_ik(tag, num_joints: int, control_period: float) -> VelocityIK:
    """按类型构造新的速度求解器实例"""
    return _VELOCITY_SOLVERS[parse_solve_type(tag)](num_joints, control_period)
