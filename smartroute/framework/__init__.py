"""
framework/ - 框架层

提供共用基础设施：
- orchestrators/: 统一路由器、LLM 意图分析、供应商客户端构建
- shared/: 配置、日志、异常与错误处理

设计原则：
- 与路由算法解耦
- 便于测试和替换
"""

from . import shared

__all__ = ["shared"]
