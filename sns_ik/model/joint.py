"""
场景图关节节点
场景图节点同时承载机器人描述中的限位信息（硬限位、软安全限位、速度限位）

节点只描述结构（偏移、轴向、限位），不保存关节变量或世界变换；
位姿由调用方传入关节变量逐段计算，同一场景图可被多条运动链同时使用
"""
import numpy as np
from abc import ABC, abstractmethod
from enum import Enum
from scipy.spatial.transform import Rotation as R
from typing import Optional, Tuple, List

from ..utils import get_logger

logger = get_logger("joint")


class MotionClass(Enum):
    """关节的运动类别（与限位无关）"""
    FIXED = "fixed"
    ROTATIONAL = "rotational"
    TRANSLATIONAL = "translational"


class JointNode(ABC):
    """
    场景图节点基类：局部变换、雅可比列、自由度由子类给出
    """

    motion_class: MotionClass = MotionClass.FIXED
    continuous: bool = False

    def __init__(self, name: str, offset: np.ndarray):
        """
        :param name: 关节名（在机器人描述中唯一）
        :param offset: 在父节点坐标系中的固定平移 (Vec3)
        """
        self.name = name
        self.parent: Optional['JointNode'] = None
        self.children: List['JointNode'] = []
        self.local_offset: np.ndarray = np.asarray(offset, dtype=np.float64)

    def add_child(self, child: 'JointNode'):
        """添加子节点，建立父子关系"""
        child.parent = self
        self.children.append(child)

    @abstractmethod
    def get_local_matrix(self, q: float = 0.0) -> np.ndarray:
        """
        :param q: 关节变量（固定关节忽略）
        :return: 相对父节点的 4x4 变换
        """
        pass

    @abstractmethod
    def compute_jacobian_column(self, frame: np.ndarray, end_effector_pos: np.ndarray) -> np.ndarray:
        """
        :param frame: 本关节（已施加关节变量后）的 4x4 世界变换
        :param end_effector_pos: 末端在世界坐标系中的位置
        :return: 该关节的雅可比列 [线速度(3), 角速度(3)]
        """
        pass

    @abstractmethod
    def get_dof(self) -> int:
        """
        自由度：固定关节为0，其余为1
        """
        pass

    def append_to_ik_chain(self, ik_chain: List['JointNode']):
        """
        可动关节追加到 ik_chain 末尾，固定关节不占列
        """
        if self.get_dof() > 0:
            ik_chain.append(self)

    def __repr__(self):
        return f"<{self.__class__.__name__}: {self.name}>"


class _MovableJoint(JointNode):
    """
    1 自由度关节的公共部分：轴向与限位信息
    """

    def __init__(self, name: str, offset: np.ndarray, axis: np.ndarray,
                 limits: Optional[Tuple[float, float]] = None,
                 velocity_limit: Optional[float] = None,
                 safety_limits: Optional[Tuple[float, float]] = None):
        """
        :param name: 关节名称
        :param offset: 相对父级的静态位移 (Vec3)
        :param axis: 运动轴（局部坐标系，不能为零向量。程序自动归一化）
        :param limits: 硬位置限位 [min, max]，None 表示未声明
        :param velocity_limit: 硬速度限位，None 表示未声明
        :param safety_limits: 软安全限位 [soft_lower, soft_upper]，None 表示未声明
        """
        super().__init__(name, offset)
        axis = np.asarray(axis, dtype=np.float64)
        axis_norm = np.linalg.norm(axis)
        if axis_norm <= 1e-6:
            raise ValueError(f"Joint {name} has a degenerate axis: {axis}")
        self.axis = axis / axis_norm
        self.limits: Optional[Tuple[float, float]] = limits
        self.velocity_limit: Optional[float] = velocity_limit
        self.safety_limits: Optional[Tuple[float, float]] = safety_limits

    def _world_axis(self, frame: np.ndarray) -> np.ndarray:
        # 旋转部分不改变局部轴向，故用施加关节变量后的世界变换即可
        return frame[:3, :3] @ self.axis

    def get_dof(self) -> int:
        return 1


class RevoluteJoint(_MovableJoint):
    """
    旋转关节，关节变量 q 为绕 axis 的转角（弧度）
    continuous=True 时为无位置限位的连续旋转关节
    """

    motion_class = MotionClass.ROTATIONAL

    def __init__(self, name: str, offset: np.ndarray, axis: np.ndarray,
                 limits: Optional[Tuple[float, float]] = None,
                 velocity_limit: Optional[float] = None,
                 safety_limits: Optional[Tuple[float, float]] = None,
                 continuous: bool = False):
        super().__init__(name, offset, axis, limits, velocity_limit, safety_limits)
        self.continuous = continuous

    def get_local_matrix(self, q: float = 0.0) -> np.ndarray:
        """平移 offset 后绕 axis 转 q"""
        local_transform = np.identity(4, dtype=np.float64)
        local_transform[:3, :3] = R.from_rotvec(self.axis * q).as_matrix()
        local_transform[:3, 3] = self.local_offset
        return local_transform

    def compute_jacobian_column(self, frame: np.ndarray, end_effector_pos: np.ndarray) -> np.ndarray:
        """J_i = [z_i x (p_end - p_i), z_i]，均在世界坐标系下"""
        z_i = self._world_axis(frame)
        return np.concatenate([np.cross(z_i, end_effector_pos - frame[:3, 3]), z_i])


class PrismaticJoint(_MovableJoint):
    """
    移动关节，关节变量 q 为沿 axis 的位移
    """

    motion_class = MotionClass.TRANSLATIONAL

    def get_local_matrix(self, q: float = 0.0) -> np.ndarray:
        """T = [I | offset + q * axis]"""
        local_transform = np.identity(4, dtype=np.float64)
        local_transform[:3, 3] = self.local_offset + q * self.axis
        return local_transform

    def compute_jacobian_column(self, frame: np.ndarray, end_effector_pos: np.ndarray) -> np.ndarray:
        """移动关节只贡献线速度: J_i = [z_i, 0]"""
        return np.concatenate([self._world_axis(frame), np.zeros(3)])


class FixedJoint(JointNode):
    """
    固定关节：链的根、中间的结构连接或末端工具
    quaternion 为本地旋转姿态，顺序 [w, x, y, z]
    """

    def __init__(self, name: str, offset: np.ndarray, quaternion: Optional[np.ndarray] = None):
        """
        :param name: 关节名称
        :param offset: 相对父级的静态位移 (Vec3)
        :param quaternion: 本地旋转，若为None则为单位四元数
        """
        super().__init__(name, offset)
        rotation = np.identity(3)
        if quaternion is not None:
            w, x, y, z = np.asarray(quaternion, dtype=np.float64)
            if np.linalg.norm([w, x, y, z]) <= 1e-6:
                raise ValueError(f"Quaternion norm too small for joint {name}: {quaternion}")
            # scipy 的四元数顺序为 [x, y, z, w]，from_quat 会自动归一化
            rotation = R.from_quat([x, y, z, w]).as_matrix()
        self._local = np.identity(4, dtype=np.float64)
        self._local[:3, :3] = rotation
        self._local[:3, 3] = self.local_offset
        self._local.setflags(write=False)

    def get_local_matrix(self, q: float = 0.0) -> np.ndarray:
        return self._local

    def compute_jacobian_column(self, frame: np.ndarray, end_effector_pos: np.ndarray) -> np.ndarray:
        """返回 6x1 零向量（固定关节不参与雅可比构建）"""
        logger.warning(f"Fixed joint {self.name} should not be part of an IK chain")
        return np.zeros(6)

    def get_dof(self) -> int:
        return 0
