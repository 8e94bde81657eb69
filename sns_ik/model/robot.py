"""
机器人描述：场景图根节点 + 关节名称索引
"""
from typing import Dict, Optional

from .joint import JointNode


class RobotModel:
    """
    按关节名提供运动类别、硬限位、速度限位和软安全限位（即关节节点本身）
    """

    def __init__(self, root: JointNode, joint_map: Dict[str, JointNode]):
        self.root = root
        self.joint_map = joint_map

    def get_joint(self, name: str) -> Optional[JointNode]:
        return self.joint_map.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self.joint_map

    def __repr__(self):
        return f"<RobotModel: root={self.root.name}, {len(self.joint_map)} joints>"
