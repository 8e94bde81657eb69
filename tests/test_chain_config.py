import math

import numpy as np
import pytest

from sns_ik.errors import ConfigError
from sns_ik.model import (
    FixedJoint,
    MotionClass,
    JointType,
    JointLimitOverrides,
    chain_config_from_bounds,
    classify_joint,
    load_chain_config
)
from sns_ik.solver import KinematicChain

from conftest import build_arm, uniform_bounds


def _from_bounds(chain, bounds):
    return chain_config_from_bounds(chain, bounds["lower"], bounds["upper"],
                                    bounds["max_velocity"], bounds["max_acceleration"],
                                    bounds["joint_names"])


def test_explicit_bounds_are_taken_as_given(chain6, bounds6):
    config = _from_bounds(chain6, bounds6)

    assert len(config) == 6
    assert config.names == ["j1", "j2", "j3", "j4", "j5", "j6"]
    assert config.types == [JointType.REVOLUTE] * 6
    np.testing.assert_allclose(config.lower_bounds, [-3.14] * 6)
    np.testing.assert_allclose(config.upper_bounds, [3.14] * 6)
    np.testing.assert_allclose(config.velocity_bounds, [2.0] * 6)
    np.testing.assert_allclose(config.acceleration_bounds, [5.0] * 6)
    assert config.index_of("j4") == 3
    assert config.index_of("missing") is None


@pytest.mark.parametrize("key", ["lower", "upper", "max_velocity", "max_acceleration", "joint_names"])
def test_length_mismatch_is_a_config_error(chain6, bounds6, key):
    bounds6[key] = bounds6[key][:-1]
    with pytest.raises(ConfigError):
        _from_bounds(chain6, bounds6)


def test_zero_movable_joints_is_a_config_error():
    base = FixedJoint("base", [0.0, 0.0, 0.0])
    chain = KinematicChain(base, base)
    assert chain.num_joints == 0

    with pytest.raises(ConfigError, match="zero non-fixed joints"):
        chain_config_from_bounds(chain, [], [], [], [], [])


def test_duplicate_joint_names_are_rejected(chain6, bounds6):
    bounds6["joint_names"][1] = "j1"
    with pytest.raises(ConfigError):
        _from_bounds(chain6, bounds6)


def test_unresolved_revolute_bounds_are_rejected(chain6, bounds6):
    bounds6["lower"][2] = -math.inf
    with pytest.raises(ConfigError, match="j3"):
        _from_bounds(chain6, bounds6)


def test_sentinel_bounds_classify_as_continuous(chain6, bounds6):
    bounds6["lower"][0] = -math.inf
    bounds6["upper"][0] = math.inf
    config = _from_bounds(chain6, bounds6)

    assert config.types[0] is JointType.CONTINUOUS
    assert config.types[1:] == [JointType.REVOLUTE] * 5


def test_classify_joint():
    assert classify_joint(MotionClass.ROTATIONAL, -math.inf, math.inf) is JointType.CONTINUOUS
    assert classify_joint(MotionClass.ROTATIONAL, -1e30, 1e30) is JointType.REVOLUTE
    assert classify_joint(MotionClass.ROTATIONAL, -math.inf, 1.0) is JointType.REVOLUTE
    assert classify_joint(MotionClass.TRANSLATIONAL, -math.inf, math.inf) is JointType.PRISMATIC
    assert classify_joint(MotionClass.FIXED, -1.0, 1.0) is None


def test_prismatic_joints_are_classified_from_motion_class(slider_chain):
    robot, chain = slider_chain
    config = load_chain_config(chain, robot)

    assert config.types == [JointType.PRISMATIC, JointType.REVOLUTE]
    np.testing.assert_allclose(config.velocity_bounds, [0.3, 1.0])


def test_robot_description_derivation():
    robot, chain = build_arm(6, continuous=("j6",))
    robot.get_joint("j2").safety_limits = (-2.0, 4.0)
    robot.get_joint("j3").velocity_limit = -1.5
    robot.get_joint("j4").velocity_limit = None

    config = load_chain_config(chain, robot)

    # 软安全限位与硬限位取交集
    assert config.joints[1].lower == pytest.approx(-2.0)
    assert config.joints[1].upper == pytest.approx(3.14)
    assert config.joints[2].max_velocity == pytest.approx(1.5)
    assert config.joints[3].max_velocity == 0.0
    assert config.joints[5].joint_type is JointType.CONTINUOUS
    assert config.joints[5].lower == -math.inf
    assert config.joints[5].upper == math.inf
    np.testing.assert_allclose(config.acceleration_bounds, [0.0] * 6)


def test_overrides_narrow_and_replace_limits():
    robot, chain = build_arm(6)
    overrides = JointLimitOverrides.from_mapping({
        "j1": {"max_position": 1.0, "min_position": -5.0},
        "j2": {"max_velocity": 1.0, "max_acceleration": -3.0},
        "j3": {"max_velocity": 4.0},
        "unrelated": {"max_position": 0.0},
    })
    robot.get_joint("j4").velocity_limit = None
    overrides_j4 = JointLimitOverrides.from_mapping({"j4": {"max_velocity": -0.7}})

    config = load_chain_config(chain, robot, overrides)
    assert config.joints[0].upper == pytest.approx(1.0)
    # 覆盖值只能收窄位置限位
    assert config.joints[0].lower == pytest.approx(-3.14)
    assert config.joints[1].max_velocity == pytest.approx(1.0)
    assert config.joints[1].max_acceleration == pytest.approx(3.0)
    assert config.joints[2].max_velocity == pytest.approx(2.0)

    config = load_chain_config(chain, robot, overrides_j4)
    assert config.joints[3].max_velocity == pytest.approx(0.7)


def test_missing_limits_fail_unless_overridden():
    robot, chain = build_arm(6)
    robot.get_joint("j5").limits = None

    with pytest.raises(ConfigError, match="j5"):
        load_chain_config(chain, robot)

    overrides = JointLimitOverrides.from_mapping({"j5": {"min_position": -1.0, "max_position": 1.0}})
    config = load_chain_config(chain, robot, overrides)
    assert (config.joints[4].lower, config.joints[4].upper) == (-1.0, 1.0)
    assert config.joints[4].joint_type is JointType.REVOLUTE


def test_joint_missing_from_description_is_a_config_error():
    robot, chain = build_arm(6)
    del robot.joint_map["j3"]
    with pytest.raises(ConfigError, match="j3"):
        load_chain_config(chain, robot)


def test_uniform_bounds_helper_matches_chain(chain7):
    config = _from_bounds(chain7, uniform_bounds(7, velocity=0.5))
    np.testing.assert_allclose(config.velocity_bounds, [0.5] * 7)


def test_absent_position_bound_is_unresolved(chain6, bounds6):
    bounds6["upper"][4] = None
    with pytest.raises(ConfigError, match="j5"):
        _from_bounds(chain6, bounds6)


def test_absent_capability_is_undeclared(chain6, bounds6):
    bounds6["max_velocity"][1] = None
    bounds6["max_acceleration"][1] = None
    config = _from_bounds(chain6, bounds6)
    assert config.joints[1].max_velocity == 0.0
    assert config.joints[1].max_acceleration == 0.0


def test_bound_arrays_must_be_sequences(chain6, bounds6):
    bounds6["lower"] = -3.14
    with pytest.raises(ConfigError, match="lower bounds"):
        _from_bounds(chain6, bounds6)
