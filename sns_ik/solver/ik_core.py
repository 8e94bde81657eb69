"""
运动链核心计算：链路径提取、逐段正向运动学、雅可比矩阵、位姿误差

所有计算只依赖传入的关节位置，不修改场景图节点
"""
import numpy as np
from scipy.spatial.transform import Rotation as R
from typing import List, Optional, Sequence, Tuple

from ..errors import ConfigError
from ..model.joint import JointNode, MotionClass


def chain_path(root: JointNode, effector: JointNode) -> List[JointNode]:
    """
    root 到 effector 的节点路径（含两端及中间的固定关节）

    :raises ValueError: effector 不在 root 的子树中
    """
    path: List[JointNode] = []
    node = effector
    while node is not None and node is not root:
        path.append(node)
        node = node.parent
    if node is None:
        raise ValueError(f"Cannot find path from {root.name} to {effector.name}")
    path.append(root)
    return path[::-1]


def base_transform(root: JointNode) -> np.ndarray:
    """
    root 的父节点在世界坐标系中的变换，链外祖先按零位计算
    """
    transform = np.identity(4, dtype=np.float64)
    node = root.parent
    while node is not None:
        transform = node.get_local_matrix() @ transform
        node = node.parent
    return transform


def forward_frames(path: Sequence[JointNode], base: np.ndarray,
                   q: np.ndarray) -> Tuple[List[np.ndarray], np.ndarray]:
    """
    沿路径累乘局部变换

    :param path: chain_path 给出的节点路径
    :param base: 路径首节点父级的世界变换
    :param q: 可动关节位置（按路径顺序）
    :return: (每个可动关节施加关节变量后的世界变换, 末端世界变换)
    """
    frames: List[np.ndarray] = []
    frame = base
    index = 0
    for node in path:
        if node.get_dof() > 0:
            frame = frame @ node.get_local_matrix(q[index])
            frames.append(frame)
            index += 1
        else:
            frame = frame @ node.get_local_matrix()
    return frames, frame


def compute_jacobian(joints: Sequence[JointNode], frames: Sequence[np.ndarray],
                     end_effector_pos: np.ndarray) -> np.ndarray:
    """
    6 x N 雅可比，行顺序 [线速度(3), 角速度(3)]

    :param joints: 可动关节
    :param frames: 与 joints 一一对应的世界变换
    :param end_effector_pos: 末端世界位置
    """
    columns = [node.compute_jacobian_column(frame, end_effector_pos)
               for node, frame in zip(joints, frames)]
    if not columns:
        return np.zeros((6, 0), dtype=np.float64)
    return np.column_stack(columns)


def compute_error_vector(current_transform: np.ndarray,
                         target_transform: np.ndarray) -> np.ndarray:
    """
    从当前末端位姿到目标位姿的 6 维误差 [位置差, 姿态差的旋转向量]（世界坐标系）
    """
    delta_p = target_transform[:3, 3] - current_transform[:3, 3]
    delta_r = (R.from_matrix(target_transform[:3, :3]) *
               R.from_matrix(current_transform[:3, :3]).inv()).as_rotvec()
    return np.concatenate([delta_p, delta_r])


class KinematicChain:
    """
    运动链协作者：可动关节枚举、给定关节位置下的雅可比与正向运动学

    链根之外的祖先变换在构造时固定下来；之后每次计算都从传入的关节位置重新累乘，
    同一场景图上的多条运动链互不影响。
    """

    def __init__(self, root: JointNode, effector: JointNode,
                 path: Optional[List[JointNode]] = None):
        """
        :param root: 链的根节点
        :param effector: 末端执行器节点
        :param path: root 到 effector 的节点路径（可选，为None时自动提取）
        """
        self.root = root
        self.effector = effector
        self.path: Tuple[JointNode, ...] = tuple(path if path is not None else chain_path(root, effector))
        self.joints: List[JointNode] = []
        for node in self.path:
            node.append_to_ik_chain(self.joints)
        self.base = base_transform(root)
        self.base.setflags(write=False)

    @classmethod
    def from_robot(cls, robot, base_link: str, tip_link: str) -> 'KinematicChain':
        """
        从机器人描述中截取 base_link 到 tip_link 的运动链

        :raises ConfigError: 关节不存在或两者之间没有路径
        """
        root = robot.get_joint(base_link)
        effector = robot.get_joint(tip_link)
        if root is None or effector is None:
            raise ConfigError(f"Couldn't find chain {base_link} to {tip_link}")
        try:
            path = chain_path(root, effector)
        except ValueError as e:
            raise ConfigError(f"Couldn't find chain {base_link} to {tip_link}") from e
        return cls(root, effector, path)

    @property
    def num_joints(self) -> int:
        return len(self.joints)

    @property
    def joint_names(self) -> List[str]:
        return [node.name for node in self.joints]

    @property
    def motion_classes(self) -> List[MotionClass]:
        return [node.motion_class for node in self.joints]

    def _frames(self, q: Sequence[float]) -> Tuple[List[np.ndarray], np.ndarray]:
        q = np.asarray(q, dtype=np.float64)
        if q.shape != (self.num_joints,):
            raise ValueError(f"Expected {self.num_joints} joint positions, got shape {q.shape}")
        return forward_frames(self.path, self.base, q)

    def jacobian(self, q: Sequence[float]) -> np.ndarray:
        """
        :param q: 关节位置
        :return: 6 x num_joints 雅可比矩阵（世界坐标系）
        """
        frames, effector_frame = self._frames(q)
        return compute_jacobian(self.joints, frames, effector_frame[:3, 3])

    def forward(self, q: Sequence[float]) -> np.ndarray:
        """返回末端执行器的 4x4 世界变换"""
        return self._frames(q)[1].copy()

    def __repr__(self):
        return f"<KinematicChain: {self.root.name} -> {self.effector.name}, {self.num_joints} joints>"
