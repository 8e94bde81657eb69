import numpy as np
import pytest

from sns_ik.errors import ConfigError
from sns_ik.model import chain_config_from_bounds
from sns_ik.solver import (
    FastSNSVelocityIK,
    Task,
    SNSVelocityIK,
    SolverStrategySelector,
    VelocitySolveType
)

from conftest import Q6


@pytest.fixture
def selector(chain6, bounds6):
    config = chain_config_from_bounds(chain6, bounds6["lower"], bounds6["upper"],
                                      bounds6["max_velocity"], bounds6["max_acceleration"],
                                      bounds6["joint_names"])
    selector = SolverStrategySelector(chain6, config, control_period=0.01, eps=1e-5)
    assert selector.set_strategy(VelocitySolveType.SNS)
    return selector


def test_initial_strategy(selector):
    handle = selector.handle
    assert selector.solve_type is VelocitySolveType.SNS
    assert isinstance(handle.velocity_ik, SNSVelocityIK)
    assert handle.position_ik.velocity_ik is handle.velocity_ik
    assert handle.position_ik.chain is selector.chain


def test_capabilities_come_from_config(selector):
    velocity_ik = selector.handle.velocity_ik
    np.testing.assert_allclose(velocity_ik.lower, [-3.14] * 6)
    np.testing.assert_allclose(velocity_ik.upper, [3.14] * 6)
    np.testing.assert_allclose(velocity_ik.max_velocity, [2.0] * 6)
    np.testing.assert_allclose(velocity_ik.max_acceleration, [5.0] * 6)
    assert velocity_ik.position_limits_enabled is False


def test_same_strategy_is_a_no_op(selector):
    handle = selector.handle
    assert selector.set_strategy(VelocitySolveType.SNS) is False
    assert selector.set_strategy("sns") is False
    assert selector.handle is handle


def test_switching_replaces_the_handle(selector):
    old = selector.handle
    assert selector.set_strategy("sns_fast") is True

    new = selector.handle
    assert new is not old
    assert new.solve_type is VelocitySolveType.SNS_FAST
    assert isinstance(new.velocity_ik, FastSNSVelocityIK)
    assert new.position_ik.velocity_ik is new.velocity_ik
    # 旧求解器对仍然完整可用
    assert isinstance(old.velocity_ik, SNSVelocityIK)
    assert old.position_ik.velocity_ik is old.velocity_ik


@pytest.mark.parametrize("tag", list(VelocitySolveType)[1:])
def test_every_strategy_can_be_installed(selector, tag):
    assert selector.set_strategy(tag) is True
    assert selector.handle.velocity_ik.solve_type is tag


def test_unknown_strategy_keeps_current_handle(selector):
    handle = selector.handle
    with pytest.raises(ConfigError):
        selector.set_strategy("sns_turbo")
    assert selector.handle is handle


def test_no_op_keeps_a_working_strategy(selector):
    velocity_ik = selector.handle.velocity_ik
    assert selector.set_strategy("sns") is False

    np.testing.assert_allclose(velocity_ik.lower, [-3.14] * 6)
    np.testing.assert_allclose(velocity_ik.max_velocity, [2.0] * 6)
    assert velocity_ik.position_limits_enabled is False
    twist = np.array([0.0, 0.0, 0.1, 0.0, 0.0, 0.0])
    J = selector.chain.jacobian(Q6)
    dq = selector.handle.velocity_ik.get_joint_velocity([Task(J, twist)], Q6)
    np.testing.assert_allclose(J @ dq, twist, atol=1e-8)
