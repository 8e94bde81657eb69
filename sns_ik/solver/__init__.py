"""
求解层 (Solver Layer)
运动链计算、任务栈构建、速度/位置求解器及其选择
"""

from .ik_core import (
    chain_path,
    base_transform,
    forward_frames,
    compute_jacobian,
    compute_error_vector,
    KinematicChain
)
from .task import (
    Task,
    NullspaceBias,
    nullspace_bias_task,
    nullspace_bias_velocity,
    build_task_stack
)
from .velocity_ik import (
    VelocitySolveType,
    VelocityIK,
    SNSVelocityIK,
    FastSNSVelocityIK,
    OptimalSNSVelocityIK,
    OptimalScaleMarginSNSVelocityIK,
    FastOptimalSNSVelocityIK,
    parse_solve_type,
    create_velocity_ik
)
from .position_ik import PositionIK, apply_error_bounds
from .selector import SolverHandle, SolverStrategySelector

__all__ = [
    'chain_path',
    'base_transform',
    'forward_frames',
    'compute_jacobian',
    'compute_error_vector',
    'KinematicChain',
    'Task',
    'NullspaceBias',
    'nullspace_bias_task',
    'nullspace_bias_velocity',
    'build_task_stack',
    'VelocitySolveType',
    'VelocityIK',
    'SNSVelocityIK',
    'FastSNSVelocityIK',
    'OptimalSNSVelocityIK',
    'OptimalScaleMarginSNSVelocityIK',
    'FastOptimalSNSVelocityIK',
    'parse_solve_type',
    'create_velocity_ik',
    'PositionIK',
    'apply_error_bounds',
    'SolverHandle',
    'SolverStrategySelector'
]
