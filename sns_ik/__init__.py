"""
sns_ik
冗余机械臂的零空间饱和 (SNS) 逆运动学：笛卡尔位姿/速度指令 -> 关节指令
"""

from .errors import SNSIKError, ConfigError, NotReadyError, BiasLookupError, DelegateError
from .model import (
    JointType,
    JointSpec,
    JointLimitOverride,
    JointLimitOverrides,
    ChainConfig,
    RobotModel
)
from .solver import (
    KinematicChain,
    Task,
    NullspaceBias,
    VelocitySolveType,
    VelocityIK,
    PositionIK
)
from .sns_ik import SNSIK

__all__ = [
    'SNSIKError',
    'ConfigError',
    'NotReadyError',
    'BiasLookupError',
    'DelegateError',
    'JointType',
    'JointSpec',
    'JointLimitOverride',
    'JointLimitOverrides',
    'ChainConfig',
    'RobotModel',
    'KinematicChain',
    'Task',
    'NullspaceBias',
    'VelocitySolveType',
    'VelocityIK',
    'PositionIK',
    'SNSIK'
]
