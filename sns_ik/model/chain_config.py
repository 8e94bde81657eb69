"""
运动链配置 (ChainConfig) 的加载与校验

两条构造路径：
- load_chain_config: 由机器人描述 + 可选的限位覆盖源推导每个关节的位置/速度/加速度限位
- chain_config_from_bounds: 直接使用调用方给出的限位数组与关节名

两条路径都经过同一套校验，失败时抛出 ConfigError。
"""
import math
import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..errors import ConfigError
from ..utils import get_logger
from .joint import MotionClass

logger = get_logger("chain_config")

# 连续旋转关节的位置限位哨兵值；与任何浮点宽度无关
CONTINUOUS_LOWER = -math.inf
CONTINUOUS_UPPER = math.inf


class JointType(Enum):
    REVOLUTE = "revolute"
    CONTINUOUS = "continuous"
    PRISMATIC = "prismatic"


@dataclass(frozen=True)
class JointSpec:
    name: str
    joint_type: JointType
    lower: float
    upper: float
    max_velocity: float
    max_acceleration: float


@dataclass(frozen=True)
class JointLimitOverride:
    """单个关节的限位覆盖项，None 表示该项未覆盖"""
    min_position: Optional[float] = None
    max_position: Optional[float] = None
    max_velocity: Optional[float] = None
    max_acceleration: Optional[float] = None


class JointLimitOverrides:
    """
    只读的限位覆盖源，按关节名查询。仅在构造阶段被读取。
    """

    def __init__(self, limits: Optional[Mapping[str, JointLimitOverride]] = None):
        self._limits: Dict[str, JointLimitOverride] = dict(limits or {})

    @classmethod
    def from_mapping(cls, data: Mapping[str, Mapping[str, float]]) -> 'JointLimitOverrides':
        """
        从 {关节名: {max_position: .., min_position: .., max_velocity: .., max_acceleration: ..}} 构建
        未知的键被忽略
        """
        limits = {}
        for name, entry in data.items():
            entry = entry or {}
            limits[name] = JointLimitOverride(
                min_position=_optional_float(entry.get('min_position')),
                max_position=_optional_float(entry.get('max_position')),
                max_velocity=_optional_float(entry.get('max_velocity')),
                max_acceleration=_optional_float(entry.get('max_acceleration')),
            )
        return cls(limits)

    def get(self, joint_name: str) -> Optional[JointLimitOverride]:
        return self._limits.get(joint_name)

    def __contains__(self, joint_name: str) -> bool:
        return joint_name in self._limits


def _optional_float(value) -> Optional[float]:
    return None if value is None else float(value)


def _bound_value(value) -> float:
    """位置限位：None 或非数值视为未解析 (nan)"""
    if value is None or isinstance(value, (bool, str)):
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _capability_value(value, label: str, name: str) -> float:
    """速度/加速度限位：None 视为未声明 (0)，其余必须是有限数值"""
    if value is None:
        return 0.0
    number = _bound_value(value)
    if not math.isfinite(number):
        raise ConfigError(f"Invalid {label} {value!r} for joint {name}")
    return abs(number)


class ChainConfig:
    """
    按运动链关节顺序排列的 JointSpec 序列（构造后不可变）
    """

    def __init__(self, joints: Iterable[JointSpec]):
        self.joints: Tuple[JointSpec, ...] = tuple(joints)
        self._index: Dict[str, int] = {spec.name: i for i, spec in enumerate(self.joints)}

    def __len__(self) -> int:
        return len(self.joints)

    def __iter__(self):
        return iter(self.joints)

    def index_of(self, name: str) -> Optional[int]:
        """返回关节在链中的列索引，不存在时返回None"""
        return self._index.get(name)

    @property
    def names(self) -> List[str]:
        return [spec.name for spec in self.joints]

    @property
    def types(self) -> List[JointType]:
        return [spec.joint_type for spec in self.joints]

    @property
    def lower_bounds(self) -> np.ndarray:
        return np.array([spec.lower for spec in self.joints], dtype=np.float64)

    @property
    def upper_bounds(self) -> np.ndarray:
        return np.array([spec.upper for spec in self.joints], dtype=np.float64)

    @property
    def velocity_bounds(self) -> np.ndarray:
        return np.array([spec.max_velocity for spec in self.joints], dtype=np.float64)

    @property
    def acceleration_bounds(self) -> np.ndarray:
        return np.array([spec.max_acceleration for spec in self.joints], dtype=np.float64)

    def __repr__(self):
        return f"<ChainConfig: {self.names}>"


def classify_joint(motion_class: MotionClass, lower: float, upper: float) -> Optional[JointType]:
    """
    根据运动类别与已解析的限位判定关节类型

    - 旋转关节且限位恰为哨兵值 (-inf, +inf) -> CONTINUOUS
    - 其他旋转关节 -> REVOLUTE
    - 平移关节 -> PRISMATIC
    - 其他（固定/未知） -> None
    """
    if motion_class is MotionClass.ROTATIONAL:
        if lower <= CONTINUOUS_LOWER and upper >= CONTINUOUS_UPPER:
            return JointType.CONTINUOUS
        return JointType.REVOLUTE
    if motion_class is MotionClass.TRANSLATIONAL:
        return JointType.PRISMATIC
    return None


def chain_config_from_bounds(chain,
                             lower: Sequence[float],
                             upper: Sequence[float],
                             velocity: Sequence[float],
                             acceleration: Sequence[float],
                             names: Sequence[str]) -> ChainConfig:
    """
    直接由限位数组构造 ChainConfig，不做任何推导

    :param chain: 运动链协作者（提供 num_joints 与 motion_classes）
    :param lower: 位置下限
    :param upper: 位置上限
    :param velocity: 最大速度
    :param acceleration: 最大加速度
    :param names: 关节名，与运动链关节顺序一一对应
    :raises ConfigError: 长度不一致、零关节、名称重复、非连续关节的限位无法解析
    """
    num_joints = chain.num_joints
    for label, values in (("lower bounds", lower),
                          ("upper bounds", upper),
                          ("max joint velocity bounds", velocity),
                          ("max joint acceleration bounds", acceleration),
                          ("joint names", names)):
        if values is None or isinstance(values, (str, bytes)) or not hasattr(values, '__len__'):
            raise ConfigError(f"Expected a sequence of {label}, got {values!r}")
        if len(values) != num_joints:
            raise ConfigError(f"Number of {label} ({len(values)}) does not equal number of joints ({num_joints})")
    if num_joints == 0:
        raise ConfigError("Requested chain contains zero non-fixed joints. There is no IK to solve.")
    if len(set(names)) != len(names):
        raise ConfigError(f"Joint names are not unique: {list(names)}")

    specs = []
    for i, motion_class in enumerate(chain.motion_classes):
        lo, hi = _bound_value(lower[i]), _bound_value(upper[i])
        joint_type = classify_joint(motion_class, lo, hi)
        if joint_type is None:
            raise ConfigError(f"Could not determine joint type for joint {names[i]}")
        if joint_type is not JointType.CONTINUOUS:
            if not (math.isfinite(lo) and math.isfinite(hi)):
                raise ConfigError(f"Could not determine joint limits for non-continuous joint {names[i]}")
            if lo >= hi:
                raise ConfigError(f"Lower bound {lo} is not below upper bound {hi} for joint {names[i]}")
        specs.append(JointSpec(
            name=names[i],
            joint_type=joint_type,
            lower=lo,
            upper=hi,
            max_velocity=_capability_value(velocity[i], "max velocity", names[i]),
            max_acceleration=_capability_value(acceleration[i], "max acceleration", names[i]),
        ))
    return ChainConfig(specs)


def load_chain_config(chain, robot, overrides: Optional[JointLimitOverrides] = None) -> ChainConfig:
    """
    由机器人描述推导每个可动关节的限位

    - 连续关节：位置限位为哨兵值 (-inf, +inf)
    - 其他关节：硬限位与软安全限位取交集
    - 速度限位取硬速度限位的绝对值（未声明则为0），加速度默认为0
    - 覆盖源可进一步收窄位置限位，收紧/替换速度限位，替换加速度限位

    :param chain: 运动链协作者（提供 joint_names, motion_classes, num_joints）
    :param robot: 机器人描述协作者（get_joint(name) 返回带限位信息的关节）
    :param overrides: 可选的限位覆盖源
    :raises ConfigError: 同 chain_config_from_bounds；另外关节在机器人描述中不存在时也会抛出
    """
    names = list(chain.joint_names)
    lower: List[float] = []
    upper: List[float] = []
    velocity: List[float] = []
    acceleration: List[float] = []

    for name in names:
        joint = robot.get_joint(name)
        if joint is None:
            raise ConfigError(f"Joint {name} not found in robot description")

        lo: Optional[float] = None
        hi: Optional[float] = None
        vel = 0.0
        acc = 0.0

        if joint.continuous:
            lo, hi = CONTINUOUS_LOWER, CONTINUOUS_UPPER
        elif joint.limits is not None:
            lo, hi = joint.limits
            if joint.safety_limits is not None:
                soft_lower, soft_upper = joint.safety_limits
                lo = max(lo, soft_lower)
                hi = min(hi, soft_upper)
        if joint.velocity_limit is not None:
            vel = abs(joint.velocity_limit)

        override = overrides.get(name) if overrides is not None else None
        if override is not None:
            if override.max_position is not None:
                hi = override.max_position if hi is None else min(hi, override.max_position)
            if override.min_position is not None:
                lo = override.min_position if lo is None else max(lo, override.min_position)
            if override.max_velocity is not None:
                vel = min(vel, abs(override.max_velocity)) if vel > 0 else abs(override.max_velocity)
            if override.max_acceleration is not None:
                acc = abs(override.max_acceleration)

        # 未解析的限位用 nan 占位，由统一校验报错
        lower.append(math.nan if lo is None else lo)
        upper.append(math.nan if hi is None else hi)
        velocity.append(vel)
        acceleration.append(acc)

    config = chain_config_from_bounds(chain, lower, upper, velocity, acceleration, names)
    for spec in config:
        logger.info(f"Using joint {spec.name} lb: {spec.lower:.3f}, ub: {spec.upper:.3f}, "
                    f"v: {spec.max_velocity:.3f}, a: {spec.max_acceleration:.3f}")
    return config
