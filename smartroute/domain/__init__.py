"""
domain/ - 领域层

- routing/: 路由领域模型与决策算法
"""
