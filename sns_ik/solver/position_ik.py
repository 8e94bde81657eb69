"""
位置级逆运动学求解器
反复调用速度求解器逼近目标位姿，位置限位在本层通过截断关节位置来保证
"""
import numpy as np
from typing import Optional, Sequence

from ..errors import DelegateError
from ..utils import get_logger
from .ik_core import KinematicChain, compute_error_vector
from .task import Task
from .velocity_ik import VelocityIK

logger = get_logger("position_ik")


def apply_error_bounds(delta_x: np.ndarray, bounds: Optional[Sequence[float]]) -> np.ndarray:
    """
    容差截断：绝对值不超过对应容差的误差分量视为已满足（置零）

    :param delta_x: 6维位姿误差
    :param bounds: 6维逐轴容差，None 表示不截断
    """
    if bounds is None:
        return delta_x
    bounds = np.abs(np.asarray(bounds, dtype=np.float64).reshape(-1))
    if bounds.shape != (6,):
        raise ValueError(f"Error bounds must have 6 components, got {bounds.shape[0]}")
    return np.where(np.abs(delta_x) <= bounds, 0.0, delta_x)


class PositionIK:
    """
    位置求解器：包装一个速度求解器，与之共用同一条运动链
    """

    def __init__(self, chain: KinematicChain, velocity_ik: VelocityIK,
                 eps: float = 1e-5,
                 max_iterations: int = 150,
                 line_search_alpha: float = 1.0,
                 line_search_alpha_min: float = 1e-3):
        """
        :param chain: 运动链
        :param velocity_ik: 速度求解器（其位置限位应已关闭）
        :param eps: 收敛容差（6维误差的模长）
        :param max_iterations: 最大迭代次数
        :param line_search_alpha: 线搜索初始步长
        :param line_search_alpha_min: 线搜索最小步长；若步长小于该值仍无法改进，则求解失败
        """
        self.chain = chain
        self.velocity_ik = velocity_ik
        self.eps = eps
        self.max_iterations = max_iterations
        self.line_search_alpha = line_search_alpha
        self.line_search_alpha_min = line_search_alpha_min

    def _clip(self, q: np.ndarray) -> np.ndarray:
        return np.clip(q, self.velocity_ik.lower, self.velocity_ik.upper)

    def _error(self, q: np.ndarray, target_pose: np.ndarray, bounds) -> np.ndarray:
        return apply_error_bounds(compute_error_vector(self.chain.forward(q), target_pose), bounds)

    def solve(self, q_init: Sequence[float], target_pose: np.ndarray,
              bias_values: Optional[Sequence[float]] = None,
              bias_jacobian: Optional[np.ndarray] = None,
              bias_indices: Optional[Sequence[int]] = None,
              gain: float = 1.0,
              bounds: Optional[Sequence[float]] = None) -> np.ndarray:
        """
        求解使末端到达 target_pose 的关节位置

        :param q_init: 初始关节位置
        :param target_pose: 目标 4x4 变换矩阵
        :param bias_values: 零空间偏置目标值（与 bias_jacobian / bias_indices 同时给出）
        :param bias_jacobian: 偏置任务的选择雅可比
        :param bias_indices: 偏置关节的列索引
        :param gain: 零空间增益
        :param bounds: 6维逐轴误差容差
        :return: 关节位置
        :raises DelegateError: 未收敛或线搜索失败
        """
        target_pose = np.asarray(target_pose, dtype=np.float64)
        if target_pose.shape != (4, 4):
            raise ValueError(f"Target pose must be a 4x4 transform, got shape {target_pose.shape}")
        use_bias = bias_jacobian is not None
        if use_bias:
            bias_values = np.asarray(bias_values, dtype=np.float64)
            bias_indices = list(bias_indices)

        q = self._clip(np.asarray(q_init, dtype=np.float64).reshape(-1))
        delta_x = self._error(q, target_pose, bounds)
        error_norm = np.linalg.norm(delta_x)

        for iteration in range(max(self.max_iterations, 1)):
            if error_norm < self.eps:
                logger.debug(f"Position solve converged after {iteration} iterations")
                return q

            tasks = [Task(jacobian=self.chain.jacobian(q), desired=delta_x)]
            if use_bias:
                tasks.append(Task(jacobian=bias_jacobian, desired=gain * (bias_values - q[bias_indices])))
            dq = self.velocity_ik.get_joint_velocity(tasks, q)

            # 线搜索：不断缩小步长，直到误差减小
            alpha = self.line_search_alpha
            while True:
                q_new = self._clip(q + alpha * dq)
                new_delta_x = self._error(q_new, target_pose, bounds)
                new_error_norm = np.linalg.norm(new_delta_x)
                if new_error_norm < error_norm:
                    break
                alpha = alpha / 2.0
                if alpha < self.line_search_alpha_min:
                    # 目标不可达或已处于局部最优
                    raise DelegateError(f"Position solve stalled at error {error_norm:.3e} "
                                        f"after {iteration} iterations")

            q, delta_x, error_norm = q_new, new_delta_x, new_error_norm

        if error_norm < self.eps:
            return q
        raise DelegateError(f"Position solve did not converge in {self.max_iterations} iterations "
                            f"(error {error_norm:.3e})")
