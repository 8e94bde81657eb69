"""
模型层 (Model Layer)
场景图与运动链配置：关节对象、机器人描述、每个关节的限位表

- JointNode: 抽象基类，定义所有关节的通用接口
- FixedJoint: 固定关节，无自由度，用于结构连接或末端执行器
- RevoluteJoint: 旋转关节，1自由度，绕固定轴旋转（可为连续关节）
- PrismaticJoint: 移动关节，1自由度，沿固定轴滑动
- RobotModel: 机器人描述，按关节名查询限位信息
- ChainConfig: 经过校验的逐关节限位/类型表
"""

from .joint import (
    MotionClass,
    JointNode,
    FixedJoint,
    RevoluteJoint,
    PrismaticJoint
)
from .robot import RobotModel
from .chain_config import (
    CONTINUOUS_LOWER,
    CONTINUOUS_UPPER,
    JointType,
    JointSpec,
    JointLimitOverride,
    JointLimitOverrides,
    ChainConfig,
    classify_joint,
    chain_config_from_bounds,
    load_chain_config
)

__all__ = [
    'MotionClass',
    'JointNode',
    'FixedJoint',
    'RevoluteJoint',
    'PrismaticJoint',
    'RobotModel',
    'CONTINUOUS_LOWER',
    'CONTINUOUS_UPPER',
    'JointType',
    'JointSpec',
    'JointLimitOverride',
    'JointLimitOverrides',
    'ChainConfig',
    'classify_joint',
    'chain_config_from_bounds',
    'load_chain_config'
]
