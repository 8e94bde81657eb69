"""
数据交换功能实现
- 机器人描述 (robot.json)
- 关节限位覆盖 (joint_limits.yaml)
- 目标位姿序列 (targets.json) 与求解结果导出
"""
import json
import numpy as np
import yaml
from scipy.spatial.transform import Rotation as R
from typing import Dict, List, Optional, Sequence, Tuple

from .model.chain_config import JointLimitOverrides
from .model.joint import JointNode, RevoluteJoint, PrismaticJoint, FixedJoint
from .model.robot import RobotModel


def _limits_from(joint_data: Dict) -> Tuple[Optional[Tuple[float, float]], Optional[float]]:
    """解析 "limits": {"lower", "upper", "velocity"}，返回 (位置限位, 速度限位)"""
    limits = joint_data.get('limits')
    if limits is None:
        return None, None
    position = None
    if limits.get('lower') is not None and limits.get('upper') is not None:
        position = (float(limits['lower']), float(limits['upper']))
    velocity = limits.get('velocity')
    return position, (None if velocity is None else float(velocity))


def _safety_from(joint_data: Dict) -> Optional[Tuple[float, float]]:
    safety = joint_data.get('safety')
    if safety is None:
        return None
    return float(safety['soft_lower_limit']), float(safety['soft_upper_limit'])


def load_robot(json_path: str) -> RobotModel:
    """
    从robot.json加载机器人描述，构建场景图

    关节类型：fixed / revolute / continuous / prismatic
    可动关节可声明 "limits": {"lower", "upper", "velocity"} 与 "safety": {"soft_lower_limit", "soft_upper_limit"}

    :param json_path: robot.json文件路径
    :return: RobotModel
    """
    with open(json_path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return build_robot(data)


def build_robot(data: Dict) -> RobotModel:
    """由已解析的机器人描述字典构建场景图"""
    root_name = data['root_name']
    joints_data = data['joints']

    joint_map: Dict[str, JointNode] = {}
    for joint_data in joints_data:
        name = joint_data['name']
        joint_type = joint_data['type']
        offset = np.array(joint_data.get('offset', [0.0, 0.0, 0.0]), dtype=np.float64)

        if name in joint_map:
            raise ValueError(f"Duplicate joint name: {name}")

        if joint_type == 'fixed':
            quat = joint_data.get('quaternion')
            joint = FixedJoint(name, offset, None if quat is None else np.array(quat, dtype=np.float64))
        elif joint_type in ('revolute', 'continuous'):
            position, velocity = _limits_from(joint_data)
            joint = RevoluteJoint(name, offset, np.array(joint_data['axis'], dtype=np.float64),
                                  limits=position,
                                  velocity_limit=velocity,
                                  safety_limits=_safety_from(joint_data),
                                  continuous=(joint_type == 'continuous'))
        elif joint_type == 'prismatic':
            position, velocity = _limits_from(joint_data)
            joint = PrismaticJoint(name, offset, np.array(joint_data['axis'], dtype=np.float64),
                                   limits=position,
                                   velocity_limit=velocity,
                                   safety_limits=_safety_from(joint_data))
        else:
            raise ValueError(f"Unknown joint type: {joint_type}")

        joint_map[name] = joint

    # 建立父子关系
    for joint_data in joints_data:
        parent_name = joint_data.get('parent')
        if parent_name is not None:
            if parent_name not in joint_map:
                raise ValueError(f"Parent '{parent_name}' not found for joint '{joint_data['name']}'")
            joint_map[parent_name].add_child(joint_map[joint_data['name']])

    if root_name not in joint_map:
        raise ValueError(f"Root node '{root_name}' not found")
    return RobotModel(joint_map[root_name], joint_map)


def load_joint_limits(yaml_path: str) -> JointLimitOverrides:
    """
    从 joint_limits.yaml 加载关节限位覆盖

    格式:
        joint_limits:
          j1:
            max_position: 2.5
            min_position: -2.5
            max_velocity: 1.0
            max_acceleration: 4.0
    """
    with open(yaml_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    return JointLimitOverrides.from_mapping(data.get('joint_limits') or {})


def load_targets(json_path: str) -> List[Dict]:
    """
    从targets.json加载目标位姿

    :param json_path: targets.json文件路径
    :return: 关键帧列表，每个元素为 {"frame": int, "pos": [x,y,z], "euler": [x,y,z]}（按帧号排序）
    """
    with open(json_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    keyframes = []
    for item in data:
        keyframes.append({
            'frame': int(item['frame']),
            'pos': np.array(item['pos'], dtype=np.float64),
            'euler': np.array(item['euler'], dtype=np.float64)  # 度
        })
    keyframes.sort(key=lambda kf: kf['frame'])
    return keyframes


def euler_to_transform(pos: np.ndarray, euler_deg: np.ndarray) -> np.ndarray:
    """
    将位置和欧拉角（度，内旋XYZ顺序）转换为4x4变换矩阵
    """
    transform = np.identity(4, dtype=np.float64)
    transform[:3, :3] = R.from_euler('XYZ', np.deg2rad(euler_deg), degrees=False).as_matrix()
    transform[:3, 3] = pos
    return transform


def export_solutions(solutions: List[Dict], joint_names: Sequence[str], output_path: str):
    """
    导出求解结果到JSON

    :param solutions: 每个元素为 {"frame": int, "q": 关节位置或None(求解失败), "error": 失败原因或None}
    :param joint_names: 关节名（与 q 同序）
    :param output_path: 输出文件路径
    """
    frames = []
    for solution in solutions:
        q = solution.get('q')
        frame = {
            'frame': solution['frame'],
            'success': q is not None,
            'joints': {} if q is None else {name: float(value) for name, value in zip(joint_names, q)}
        }
        if solution.get('error'):
            frame['error'] = solution['error']
        frames.append(frame)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump({'frames': frames}, f, indent=2, ensure_ascii=False)
