"""
任务栈 (Task Stack) 构建

任务栈按优先级严格递减排列：
- 索引0：主任务，末端笛卡尔速度（雅可比 + 6维期望速度）
- 索引1（可选）：零空间偏置任务，只在主任务剩余的自由度内把指定关节拉向偏置目标
"""
import numpy as np
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..errors import BiasLookupError
from ..model.chain_config import ChainConfig


@dataclass
class Task:
    """
    一个任务：jacobian (m x n) 与期望速度 desired (m,)
    """
    jacobian: np.ndarray
    desired: np.ndarray

    def __post_init__(self):
        self.jacobian = np.atleast_2d(np.asarray(self.jacobian, dtype=np.float64))
        self.desired = np.asarray(self.desired, dtype=np.float64).reshape(-1)
        if self.jacobian.shape[0] != self.desired.shape[0]:
            raise ValueError(f"Task jacobian has {self.jacobian.shape[0]} rows "
                             f"but desired velocity has {self.desired.shape[0]} entries")

    @property
    def dim(self) -> int:
        return self.desired.shape[0]


@dataclass(frozen=True)
class NullspaceBias:
    """
    零空间偏置请求：关节名与对应的偏置目标值
    数量是否一致在构建任务时检查
    """
    names: Tuple[str, ...]
    values: Tuple[float, ...]

    def __init__(self, names: Sequence[str], values: Sequence[float]):
        object.__setattr__(self, 'names', tuple(names))
        object.__setattr__(self, 'values', tuple(float(v) for v in values))

    def __len__(self) -> int:
        return len(self.values)


def nullspace_bias_task(config: ChainConfig, bias: NullspaceBias) -> Tuple[np.ndarray, List[int]]:
    """
    构建零空间偏置任务的选择雅可比及对应的关节列索引

    第 i 行只在偏置关节 i 的列上为 1，其余为 0。

    :param config: 运动链配置（提供关节名到列索引的映射）
    :param bias: 偏置请求
    :return: (len(bias) x 关节总数 的选择雅可比, 列索引列表)
    :raises BiasLookupError: 名称与值数量不一致，或有关节名不在链中；此时不产生任何任务
    """
    if len(bias.names) != len(bias.values):
        raise BiasLookupError("Number of joint bias and names differ in nullspace bias request.")

    jacobian = np.zeros((len(bias.names), len(config)), dtype=np.float64)
    indices: List[int] = []
    for row, name in enumerate(bias.names):
        index = config.index_of(name)
        if index is None:
            raise BiasLookupError(f"Could not find bias joint name: {name}")
        jacobian[row, index] = 1.0
        indices.append(index)
    return jacobian, indices


def nullspace_bias_velocity(bias_values: Sequence[float],
                            q: np.ndarray,
                            indices: Sequence[int],
                            gain: float,
                            control_period: float) -> np.ndarray:
    """
    零空间速度：gain * (bias_i - q[index_i]) / control_period
    即在一个控制周期内把关节拉向偏置目标的比例控制律
    """
    bias_values = np.asarray(bias_values, dtype=np.float64)
    return gain * (bias_values - np.asarray(q, dtype=np.float64)[list(indices)]) / control_period


def build_task_stack(jacobian: np.ndarray,
                     twist: Sequence[float],
                     q: Sequence[float],
                     config: Optional[ChainConfig] = None,
                     bias: Optional[NullspaceBias] = None,
                     gain: float = 1.0,
                     control_period: float = 0.01) -> List[Task]:
    """
    组装任务栈

    :param jacobian: 当前关节位置下运动链的雅可比 (6 x n)
    :param twist: 6维目标末端速度 [v, w]
    :param q: 当前关节位置
    :param config: 运动链配置，仅在有偏置请求时需要
    :param bias: 可选的零空间偏置请求
    :param gain: 零空间增益
    :param control_period: 控制周期（秒）
    :return: [主任务] 或 [主任务, 偏置任务]
    """
    twist = np.asarray(twist, dtype=np.float64).reshape(-1)
    if twist.shape != (6,):
        raise ValueError(f"Twist must have 6 components, got {twist.shape[0]}")

    stack = [Task(jacobian=jacobian, desired=twist)]
    if bias is not None:
        if config is None:
            raise ValueError("A chain config is required to build a nullspace bias task")
        bias_jacobian, indices = nullspace_bias_task(config, bias)
        desired = nullspace_bias_velocity(bias.values, np.asarray(q, dtype=np.float64),
                                          indices, gain, control_period)
        stack.append(Task(jacobian=bias_jacobian, desired=desired))
    return stack
