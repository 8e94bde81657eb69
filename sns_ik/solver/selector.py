"""
求解器选择：持有当前的速度求解器与位置求解器，切换类型时整体替换
"""
from dataclasses import dataclass
from typing import Optional

from ..model.chain_config import ChainConfig
from ..utils import get_logger
from .ik_core import KinematicChain
from .position_ik import PositionIK
from .velocity_ik import VelocityIK, VelocitySolveType, create_velocity_ik, parse_solve_type

logger = get_logger("selector")

_SOLVER_DESCRIPTIONS = {
    VelocitySolveType.SNS: "Standard SNS solver",
    VelocitySolveType.SNS_FAST: "Fast SNS solver",
    VelocitySolveType.SNS_OPTIMAL: "SNS Optimal solver",
    VelocitySolveType.SNS_OPTIMAL_SCALE_MARGIN: "SNS Optimal Scale Margin solver",
    VelocitySolveType.SNS_FAST_OPTIMAL: "Fast Optimal SNS solver",
}


@dataclass(frozen=True)
class SolverHandle:
    """一对速度/位置求解器，以及它们对应的类型；只会被整体替换"""
    solve_type: VelocitySolveType
    velocity_ik: VelocityIK
    position_ik: PositionIK


class SolverStrategySelector:
    """
    构造并切换当前的速度求解器（及包装它的位置求解器）
    """

    def __init__(self, chain: KinematicChain, config: ChainConfig,
                 control_period: float, eps: float):
        """
        :param chain: 运动链
        :param config: 已校验的关节限位表
        :param control_period: 控制周期（秒）
        :param eps: 位置求解器收敛容差
        """
        self.chain = chain
        self.config = config
        self.control_period = control_period
        self.eps = eps
        self.handle: Optional[SolverHandle] = None

    @property
    def solve_type(self) -> Optional[VelocitySolveType]:
        return self.handle.solve_type if self.handle is not None else None

    def set_strategy(self, tag) -> bool:
        """
        切换速度求解器类型

        :param tag: VelocitySolveType 或其字符串值
        :return: True 表示安装了新的求解器；False 表示该类型已是当前类型，未做任何改动
        :raises ConfigError: 未知类型，现有求解器保持不变
        """
        solve_type = parse_solve_type(tag)
        if self.handle is not None and self.handle.solve_type is solve_type:
            return False

        velocity_ik = create_velocity_ik(solve_type, len(self.config), self.control_period)
        velocity_ik.set_joints_capabilities(self.config.lower_bounds, self.config.upper_bounds,
                                            self.config.velocity_bounds, self.config.acceleration_bounds)
        # 位置限位由位置求解器负责
        velocity_ik.use_position_limits(False)
        position_ik = PositionIK(self.chain, velocity_ik, self.eps)
        self.handle = SolverHandle(solve_type, velocity_ik, position_ik)
        logger.info(f"Set velocity solver to {_SOLVER_DESCRIPTIONS[solve_type]}.")
        return True
