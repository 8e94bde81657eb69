import numpy as np
import pytest

from sns_ik.model import FixedJoint, RevoluteJoint
from sns_ik.solver import KinematicChain, chain_path, compute_error_vector

from conftest import Q7, build_arm


def _numeric_jacobian(chain, q, step=1e-6):
    base = chain.forward(q)
    columns = []
    for i in range(len(q)):
        dq = np.zeros(len(q))
        dq[i] = step
        error = compute_error_vector(base, chain.forward(q + dq))
        columns.append(error / step)
    return np.column_stack(columns)


def test_jacobian_matches_finite_differences(chain7):
    np.testing.assert_allclose(chain7.jacobian(Q7), _numeric_jacobian(chain7, Q7), atol=1e-5)


def test_prismatic_jacobian_matches_finite_differences(slider_chain):
    _, chain = slider_chain
    q = np.array([0.2, 0.7])
    np.testing.assert_allclose(chain.jacobian(q), _numeric_jacobian(chain, q), atol=1e-5)


def test_zero_pose():
    _, chain = build_arm(2)
    # 两个关节沿 z 叠加：0.1 + 0.2 + 工具 0.1
    np.testing.assert_allclose(chain.forward([0.0, 0.0])[:3, 3], [0.0, 0.0, 0.4])


def test_fixed_joint_rotation():
    base = FixedJoint("base", [0.0, 0.0, 0.0], quaternion=[np.cos(np.pi / 4), 0.0, 0.0, np.sin(np.pi / 4)])
    joint = RevoluteJoint("j1", [0.0, 0.0, 0.0], [0, 0, 1], limits=(-1.0, 1.0))
    tool = FixedJoint("tool", [1.0, 0.0, 0.0])
    base.add_child(joint)
    joint.add_child(tool)
    chain = KinematicChain(base, tool)

    # 基座绕 z 转 90 度，再绕关节转 90 度：工具落在 -x
    np.testing.assert_allclose(chain.forward([np.pi / 2])[:3, 3], [-1.0, 0.0, 0.0], atol=1e-12)


def test_forward_does_not_depend_on_call_history(chain7):
    pose = chain7.forward(Q7)
    chain7.jacobian(-Q7)
    chain7.forward(np.zeros(7))
    np.testing.assert_array_equal(chain7.forward(Q7), pose)


def test_sub_chain_fixes_ancestors_at_zero():
    robot, full = build_arm(6)
    wrist = KinematicChain.from_robot(robot, "j4", "tool")
    q = np.array([0.3, -0.2, 0.5])

    assert wrist.joint_names == ["j4", "j5", "j6"]
    np.testing.assert_allclose(wrist.forward(q), full.forward(np.concatenate([np.zeros(3), q])))


def test_chain_path():
    robot, _ = build_arm(3)
    path = chain_path(robot.get_joint("j1"), robot.get_joint("tool"))
    assert [node.name for node in path] == ["j1", "j2", "j3", "tool"]

    with pytest.raises(ValueError):
        chain_path(robot.get_joint("j3"), robot.get_joint("j1"))


def test_wrong_joint_count(chain7):
    with pytest.raises(ValueError):
        chain7.jacobian(Q7[:3])


def test_error_vector():
    current = np.identity(4)
    target = np.identity(4)
    target[:3, 3] = [0.1, 0.0, -0.2]
    c, s = np.cos(0.3), np.sin(0.3)
    target[:3, :3] = [[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]]

    np.testing.assert_allclose(compute_error_vector(current, target), [0.1, 0.0, -0.2, 0.0, 0.0, 0.3])
