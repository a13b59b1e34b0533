"""
smartroute - LLM 请求路由决策引擎

为每个对话请求选择最合适的后端模型。

主要功能：
- 显式模型切换检测（"换成gpt4.1"、"use claude"）
- 关键词/能力驱动的语义打分
- 置信度门控与逐级升级
- 多策略模型选择与回退链

架构分层：
- framework/: 框架层 - 配置、日志、异常、LangChain 编排
- domain/: 领域层 - 路由领域模型与决策算法
- cli/: 工具层 - Typer 命令行工具
"""

__version__ = "0.1.0"
__author__ = "smartroute Team"
__description__ = "LLM 请求路由决策引擎"
