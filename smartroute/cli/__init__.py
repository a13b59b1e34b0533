"""
cli/ - 命令行入口

基于 Typer + Rich：
- route: 对一条消息做路由决策
- models: 查看目录中的模型
- validate: 校验配置
- version: 版本信息
"""
