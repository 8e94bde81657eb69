import numpy as np
import pytest

from sns_ik.model import FixedJoint, RevoluteJoint, PrismaticJoint, RobotModel
from sns_ik.solver import KinematicChain

# (轴, 相对父级偏移)
ARM_LAYOUT = [
    ([0, 0, 1], [0.0, 0.0, 0.10]),
    ([0, 1, 0], [0.0, 0.0, 0.20]),
    ([0, 1, 0], [0.05, 0.0, 0.40]),
    ([0, 0, 1], [0.0, 0.0, 0.35]),
    ([0, 1, 0], [0.0, 0.02, 0.05]),
    ([0, 0, 1], [0.0, 0.0, 0.05]),
    ([0, 1, 0], [0.0, 0.0, 0.05]),
]

Q6 = np.array([0.1, 0.4, 0.8, 0.2, 0.6, 0.3])
Q7 = np.array([0.1, 0.4, 0.8, 0.2, 0.6, 0.3, 0.2])


def build_arm(num_joints=6, limits=(-3.14, 3.14), velocity_limit=2.0, continuous=()):
    """
    串联机械臂场景图：base(固定) -> j1 ... jN -> tool(固定)

    :return: (RobotModel, KinematicChain)
    """
    base = FixedJoint("base", [0.0, 0.0, 0.0])
    joint_map = {"base": base}
    parent = base
    for i in range(num_joints):
        axis, offset = ARM_LAYOUT[i]
        name = f"j{i + 1}"
        is_continuous = name in continuous
        joint = RevoluteJoint(name, offset, axis,
                              limits=None if is_continuous else limits,
                              velocity_limit=velocity_limit,
                              continuous=is_continuous)
        parent.add_child(joint)
        joint_map[name] = joint
        parent = joint
    tool = FixedJoint("tool", [0.0, 0.0, 0.10])
    parent.add_child(tool)
    joint_map["tool"] = tool

    robot = RobotModel(base, joint_map)
    return robot, KinematicChain(base, tool)


@pytest.fixture
def arm6():
    return build_arm(6)


@pytest.fixture
def arm7():
    return build_arm(7)


@pytest.fixture
def chain6(arm6):
    return arm6[1]


@pytest.fixture
def chain7(arm7):
    return arm7[1]


def uniform_bounds(num_joints, lower=-3.14, upper=3.14, velocity=2.0, acceleration=5.0):
    names = [f"j{i + 1}" for i in range(num_joints)]
    return dict(
        lower=[lower] * num_joints,
        upper=[upper] * num_joints,
        max_velocity=[velocity] * num_joints,
        max_acceleration=[acceleration] * num_joints,
        joint_names=names,
    )


@pytest.fixture
def bounds6():
    return uniform_bounds(6)


@pytest.fixture
def bounds7():
    return uniform_bounds(7)


@pytest.fixture
def slider_chain():
    """一个移动关节 + 一个旋转关节"""
    base = FixedJoint("base", [0.0, 0.0, 0.0])
    rail = PrismaticJoint("rail", [0.0, 0.0, 0.0], [1, 0, 0], limits=(-0.5, 0.5), velocity_limit=0.3)
    wrist = RevoluteJoint("wrist", [0.0, 0.0, 0.2], [0, 0, 1], limits=(-1.0, 1.0), velocity_limit=1.0)
    tool = FixedJoint("tool", [0.1, 0.0, 0.0])
    base.add_child(rail)
    rail.add_child(wrist)
    wrist.add_child(tool)
    joint_map = {j.name: j for j in (base, rail, wrist, tool)}
    return RobotModel(base, joint_map), KinematicChain(base, tool)
