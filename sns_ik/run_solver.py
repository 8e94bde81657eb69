"""
无界面求解入口：按 config.json 加载机器人与目标位姿，逐个求解并导出关节位置

config.json 字段:
    robot_path, joint_limits_path (可选), base_link, tip_link,
    targets_path, output_path, solve_type, control_period, eps,
    bias (可选, {"names": [...], "values": [...]}), initial_positions (可选), log_level
"""
import json
import os
import sys
import time
import numpy as np

from .data_io import load_robot, load_joint_limits, load_targets, euler_to_transform, export_solutions
from .errors import SNSIKError
from .sns_ik import SNSIK
from .solver.task import NullspaceBias
from .solver.velocity_ik import VelocitySolveType
from .utils import setup_logging, get_logger

logger = get_logger("run_solver")


def run_solver(config_path: str = "config.json") -> bool:
    """
    :param config_path: 配置文件路径
    :return: True 表示所有目标都求解成功
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")
    with open(config_path, 'r', encoding='utf-8') as f:
        config = json.load(f)

    setup_logging(config.get('log_level', 'INFO'))
    logger.info(f"Loaded config: {config_path}")

    robot = load_robot(config['robot_path'])
    overrides = None
    if config.get('joint_limits_path'):
        overrides = load_joint_limits(config['joint_limits_path'])

    ik = SNSIK.from_robot(
        robot,
        config['base_link'],
        config['tip_link'],
        overrides=overrides,
        control_period=config.get('control_period', 0.01),
        eps=config.get('eps', 1e-5),
        solve_type=config.get('solve_type', VelocitySolveType.SNS.value),
    )
    if not ik.initialized:
        logger.error(f"Solver initialization failed: {ik.config_error}")
        return False
    logger.info(f"Chain joints: {ik.joint_names}")

    bias = None
    if config.get('bias'):
        bias = NullspaceBias(config['bias']['names'], config['bias']['values'])

    keyframes = load_targets(config['targets_path'])
    logger.info(f"Loaded {len(keyframes)} targets from {config['targets_path']}")

    # 初值：默认零位，限制在位置限位内；之后用上一个成功解热启动
    lower, upper = ik.position_bounds
    q = np.clip(np.asarray(config.get('initial_positions') or np.zeros(len(ik.joint_names)),
                           dtype=np.float64), lower, upper)

    solutions = []
    start_time = time.time()
    for kf in keyframes:
        target = euler_to_transform(kf['pos'], kf['euler'])
        try:
            q = ik.solve_position(q, target, bias=bias)
            solutions.append({'frame': kf['frame'], 'q': q.tolist(), 'error': None})
        except SNSIKError as e:
            logger.warning(f"Frame {kf['frame']}: {e}")
            solutions.append({'frame': kf['frame'], 'q': None, 'error': str(e)})
    logger.info(f"Solved {len(solutions)} targets in {time.time() - start_time:.2f} s")

    output_path = config.get('output_path', 'solutions.json')
    os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
    export_solutions(solutions, ik.joint_names, output_path)
    logger.info(f"Exported to {output_path}")
    return all(s['q'] is not None for s in solutions)


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    ok = run_solver(argv[0]) if argv else run_solver()
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
