"""
异常类型

- ConfigError: 构造阶段的配置错误（长度不一致、零关节、限位无法解析、未知求解器类型），对实例是终态
- NotReadyError: 在未成功初始化的实例上调用求解
- BiasLookupError: 零空间偏置请求中的关节名不存在，或名称与目标值数量不一致
- DelegateError: 外部协作者（雅可比计算、速度/位置求解器）报告失败，原因原样透传
"""


class SNSIKError(Exception):
    """sns_ik 所有异常的基类"""


class ConfigError(SNSIKError, ValueError):
    pass


class NotReadyError(SNSIKError, RuntimeError):
    pass


class BiasLookupError(SNSIKError, LookupError):
    pass


class DelegateError(SNSIKError, RuntimeError):
    pass
