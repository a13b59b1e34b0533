"""
tests/ - 测试目录

- unit/: 领域与共享组件单元测试
- integration/: 路由主流程集成测试
- cli_snapshots/: CLI 命令测试
"""
