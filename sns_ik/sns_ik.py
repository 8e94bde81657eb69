"""
SNS 逆运动学入口

把笛卡尔位姿 / 末端速度 (twist) 指令转换为关节空间指令，同时满足逐关节的位置/速度/加速度限位，
并可在主任务的零空间内把指定关节拉向偏置目标。

状态：构造成功后为就绪状态；构造失败（ConfigError）则永久处于未初始化状态，
此后所有求解调用都抛出 NotReadyError。切换速度求解器类型不会改变就绪状态。

同一实例不做内部加锁：求解与求解器切换不可并发调用，需要由调用方串行化。
"""
import math
import numbers
import numpy as np
from typing import Callable, List, Optional, Sequence

from .errors import ConfigError, DelegateError, NotReadyError, BiasLookupError, SNSIKError
from .model.chain_config import (
    ChainConfig,
    JointLimitOverrides,
    JointType,
    chain_config_from_bounds,
    load_chain_config
)
from .solver.ik_core import KinematicChain
from .solver.selector import SolverStrategySelector
from .solver.task import NullspaceBias, build_task_stack, nullspace_bias_task
from .solver.velocity_ik import VelocityIK, VelocitySolveType
from .utils import get_logger

logger = get_logger("sns_ik")


def _positive_number(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool) and math.isfinite(value) and value > 0


class SNSIK:
    """
    逆运动学门面：组合运动链配置、求解器选择与任务栈构建
    """

    def __init__(self,
                 chain: Optional[KinematicChain] = None,
                 lower: Optional[Sequence[float]] = None,
                 upper: Optional[Sequence[float]] = None,
                 max_velocity: Optional[Sequence[float]] = None,
                 max_acceleration: Optional[Sequence[float]] = None,
                 joint_names: Optional[Sequence[str]] = None,
                 *,
                 robot=None,
                 base_link: Optional[str] = None,
                 tip_link: Optional[str] = None,
                 overrides: Optional[JointLimitOverrides] = None,
                 control_period: float = 0.01,
                 eps: float = 1e-5,
                 solve_type=VelocitySolveType.SNS):
        """
        两种构造方式：
        - 给出 chain 与五个限位/名称数组：直接使用，不做推导
        - 给出 robot（以及 base_link / tip_link 或现成的 chain）：从机器人描述与覆盖源推导限位

        :param chain: 运动链协作者
        :param lower: 位置下限
        :param upper: 位置上限
        :param max_velocity: 最大速度
        :param max_acceleration: 最大加速度
        :param joint_names: 关节名
        :param robot: 机器人描述
        :param base_link: 链的根关节名（配合 robot 使用）
        :param tip_link: 链的末端关节名（配合 robot 使用）
        :param overrides: 限位覆盖源（配合 robot 使用）
        :param control_period: 控制周期（秒），零空间偏置速度按此周期计算
        :param eps: 位置求解器收敛容差
        :param solve_type: 初始速度求解器类型
        """
        self.chain = chain
        self.control_period = control_period
        self.eps = eps
        self.nullspace_gain = 1.0
        self.config: Optional[ChainConfig] = None
        self.config_error: Optional[ConfigError] = None
        self._selector: Optional[SolverStrategySelector] = None

        try:
            if not _positive_number(control_period):
                raise ConfigError(f"Control period must be a positive number, got {control_period!r}")
            if not _positive_number(eps):
                raise ConfigError(f"Convergence tolerance must be a positive number, got {eps!r}")
            if robot is not None:
                if self.chain is None:
                    self.chain = KinematicChain.from_robot(robot, base_link, tip_link)
                config = load_chain_config(self.chain, robot, overrides)
            else:
                if self.chain is None:
                    raise ConfigError("A kinematic chain or a robot description is required")
                if any(v is None for v in (lower, upper, max_velocity, max_acceleration, joint_names)):
                    raise ConfigError("Joint bounds and names are required when no robot description is given")
                config = chain_config_from_bounds(self.chain, lower, upper,
                                                  max_velocity, max_acceleration, joint_names)
            selector = SolverStrategySelector(self.chain, config, control_period, eps)
            selector.set_strategy(solve_type)
        except ConfigError as e:
            self.config_error = e
            logger.error(f"Failed to initialize solver based on inputs arguments: {e}")
            return

        self.config = config
        self._selector = selector

    @classmethod
    def from_robot(cls, robot, base_link: str, tip_link: str, **kwargs) -> 'SNSIK':
        """从机器人描述中 base_link 到 tip_link 的运动链构造"""
        return cls(robot=robot, base_link=base_link, tip_link=tip_link, **kwargs)

    @property
    def initialized(self) -> bool:
        return self._selector is not None and self._selector.handle is not None

    def _check_ready(self):
        if not self.initialized:
            logger.error("SNS_IK was not properly initialized with a valid chain or limits.")
            raise NotReadyError("SNS_IK was not properly initialized with a valid chain or limits.")

    # 访问器

    @property
    def joint_names(self) -> List[str]:
        self._check_ready()
        return self.config.names

    @property
    def joint_types(self) -> List[JointType]:
        self._check_ready()
        return self.config.types

    @property
    def position_bounds(self):
        """(lower, upper)"""
        self._check_ready()
        return self.config.lower_bounds, self.config.upper_bounds

    @property
    def velocity_bounds(self) -> np.ndarray:
        self._check_ready()
        return self.config.velocity_bounds

    @property
    def acceleration_bounds(self) -> np.ndarray:
        self._check_ready()
        return self.config.acceleration_bounds

    @property
    def solve_type(self) -> VelocitySolveType:
        self._check_ready()
        return self._selector.solve_type

    @property
    def velocity_solver(self) -> VelocityIK:
        self._check_ready()
        return self._selector.handle.velocity_ik

    def set_velocity_solve_type(self, solve_type) -> bool:
        """
        切换速度求解器类型

        :return: True 表示已切换；False 表示与当前类型相同，未做改动（旧求解器仍可用）
        :raises ConfigError: 未知类型
        """
        self._check_ready()
        return self._selector.set_strategy(solve_type)

    def _joint_array(self, q: Sequence[float]) -> np.ndarray:
        q = np.asarray(q, dtype=np.float64).reshape(-1)
        if q.shape != (len(self.config),):
            raise ValueError(f"Expected {len(self.config)} joint values, got {q.shape[0]}")
        return q

    @staticmethod
    def _delegate(call: Callable, *args, **kwargs):
        """调用外部协作者，非 sns_ik 异常统一包装为 DelegateError"""
        try:
            return call(*args, **kwargs)
        except SNSIKError:
            raise
        except Exception as e:
            raise DelegateError(str(e)) from e

    @staticmethod
    def _active_bias(bias: Optional[NullspaceBias]) -> Optional[NullspaceBias]:
        if bias is None or (len(bias.names) == 0 and len(bias.values) == 0):
            return None
        return bias

    def solve_velocity(self, q: Sequence[float], twist: Sequence[float],
                       bias: Optional[NullspaceBias] = None) -> np.ndarray:
        """
        求解关节速度

        :param q: 当前关节位置
        :param twist: 6维目标末端速度 [vx, vy, vz, wx, wy, wz]
        :param bias: 可选的零空间偏置请求
        :return: 关节速度
        :raises NotReadyError: 实例未初始化
        :raises BiasLookupError: 偏置关节名不存在或数量不一致
        :raises DelegateError: 雅可比计算或速度求解器失败
        """
        self._check_ready()
        q = self._joint_array(q)
        bias = self._active_bias(bias)
        handle = self._selector.handle

        try:
            jacobian = self._delegate(self.chain.jacobian, q)
        except DelegateError:
            logger.error("SNS_IK::solve_velocity -> jacobian solver failed")
            raise

        try:
            tasks = build_task_stack(jacobian, twist, q, self.config, bias,
                                     self.nullspace_gain, self.control_period)
        except BiasLookupError as e:
            logger.error(f"Could not create nullspace bias task: {e}")
            raise

        return self._delegate(handle.velocity_ik.get_joint_velocity, tasks, q)

    def solve_position(self, q_init: Sequence[float], target_pose: np.ndarray,
                       bias: Optional[NullspaceBias] = None,
                       bounds: Optional[Sequence[float]] = None) -> np.ndarray:
        """
        求解到达目标位姿的关节位置

        :param q_init: 初始关节位置
        :param target_pose: 目标 4x4 变换矩阵（与运动链同一世界坐标系）
        :param bias: 可选的零空间偏置请求
        :param bounds: 可选的6维逐轴误差容差
        :return: 关节位置
        :raises NotReadyError: 实例未初始化
        :raises BiasLookupError: 偏置关节名不存在或数量不一致
        :raises DelegateError: 位置求解器失败
        """
        self._check_ready()
        q_init = self._joint_array(q_init)
        target_pose = np.asarray(target_pose, dtype=np.float64)
        if target_pose.shape != (4, 4):
            raise ValueError(f"Target pose must be a 4x4 transform, got shape {target_pose.shape}")
        bias = self._active_bias(bias)
        handle = self._selector.handle

        if bias is None:
            return self._delegate(handle.position_ik.solve, q_init, target_pose, bounds=bounds)

        try:
            bias_jacobian, indices = nullspace_bias_task(self.config, bias)
        except BiasLookupError as e:
            logger.error(f"Could not create nullspace bias task: {e}")
            raise
        return self._delegate(handle.position_ik.solve, q_init, target_pose,
                              bias_values=bias.values,
                              bias_jacobian=bias_jacobian,
                              bias_indices=indices,
                              gain=self.nullspace_gain,
                              bounds=bounds)

    def __repr__(self):
        state = self._selector.solve_type.value if self.initialized else "uninitialized"
        return f"<SNSIK: {state}>"
