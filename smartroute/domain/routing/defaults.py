"""
默认关键词表与别名表

配置文件未提供 routing_rules / keywords / model_aliases 时使用这些默认值。
关键词全部小写；中文关键词按分词结果匹配，英文关键词按子串匹配。
"""

# 升级阶梯上各路由的触发词
DEFAULT_ROUTE_TRIGGERS: dict[str, tuple[str, ...]] = {
    "basic": ("简单", "快速", "直接", "什么是", "怎么样", "hello", "hi", "你好"),
    "enhanced": (
        "分析", "详细", "深入", "全面", "比较", "评估", "策略", "复杂", "专业", "高级",
        "analyze", "analysis", "in detail", "detailed", "in-depth", "compare", "evaluate",
    ),
    "rag": ("查找", "搜索", "文档", "资料", "数据库", "知识库", "历史", "之前", "记录", "档案"),
    "agent": ("执行", "调用", "工具", "计算", "运行", "处理", "操作", "自动"),
}

# 能力型路由目标默认要求的模型能力
DEFAULT_DESTINATION_CAPABILITIES: dict[str, frozenset[str]] = {
    "vision_processing": frozenset({"vision"}),
    "complex_reasoning": frozenset({"reasoning"}),
    "code_generation": frozenset({"code_generation"}),
    "chinese_conversation": frozenset({"chinese"}),
    "web_search": frozenset({"web_search"}),
    "mathematical_computation": frozenset({"mathematical_computation"}),
    "structured_analysis": frozenset({"structured_output"}),
    "creative_writing": frozenset({"creative_writing"}),
    "agent_execution": frozenset({"agents"}),
}

# 能力检测关键词
DEFAULT_CAPABILITY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "vision": ("image", "picture", "photo", "screenshot", "图片", "图像", "照片", "截图"),
    "reasoning": ("reasoning", "logic", "prove", "推理", "逻辑", "证明", "为什么"),
    "code_generation": ("code", "python", "javascript", "debug", "代码", "编程", "函数", "程序"),
    "search": ("search", "latest", "news", "搜索", "最新", "新闻"),
    "web_search": ("internet", "online", "website", "网上", "联网", "网页"),
    "structured_output": ("json", "table", "schema", "表格", "格式化", "结构化"),
    "creative_writing": ("story", "poem", "novel", "故事", "诗歌", "创作", "小说"),
    "mathematical_computation": ("math", "equation", "calculate", "数学", "方程", "计算"),
    "tool_calling": ("tool", "function call", "工具", "调用"),
    "agents": ("agent", "automate", "workflow", "智能体", "自动化"),
    "chinese": ("chinese", "中文", "汉语"),
}

# 切换意图关键词
SWITCH_KEYWORDS: tuple[str, ...] = (
    "切换到", "使用", "换成", "改用", "换到", "用", "让", "请", "要", "想要", "希望",
    "换个", "来个", "要个", "用个", "switch to", "use", "change to", "with",
)

# 质量形容词
QUALITY_KEYWORDS: tuple[str, ...] = (
    "高级", "更好", "强", "厉害", "顶级", "最好",
    "better", "advanced", "premium", "top", "best",
)

# 高质量模型排名（目录未提供质量评分时使用）
DEFAULT_HIGH_QUALITY_MODELS: tuple[str, ...] = (
    "claude-sonnet-4-all",
    "gpt4.1",
    "gpt-4o-all",
    "hunyuan-t1-latest",
    "deepseek-reasoner",
)

# 别名 -> 规范模型 ID，按顺序匹配，先命中者胜出
DEFAULT_MODEL_ALIASES: tuple[tuple[str, str], ...] = (
    ("gpt4.1", "gpt4.1"),
    ("gpt-4.1", "gpt4.1"),
    ("4.1", "gpt4.1"),
    ("gpt-4o", "gpt-4o-all"),
    ("gpt4o", "gpt-4o-all"),
    ("gpt4", "gpt-4o-all"),
    ("gpt", "gpt-4o-all"),
    ("4o", "gpt-4o-all"),
    ("claude", "claude-sonnet-4-all"),
    ("sonnet", "claude-sonnet-4-all"),
    ("deepseek", "deepseek-reasoner"),
    ("reasoner", "deepseek-reasoner"),
    ("qwen", "qwen-turbo"),
    ("qvq", "qvq-plus"),
    ("gemini", "gemini-flash-lite"),
    ("flash", "gemini-flash-lite"),
    ("lite", "gemini-flash-lite"),
    ("hunyuan", "hunyuan-turbos-latest"),
    ("混元", "hunyuan-turbos-latest"),
    ("t1", "hunyuan-t1-latest"),
    ("o4", "o4-mini"),
    ("mini", "o4-mini"),
)

# 复杂度分析
COMPLEX_PATTERNS: tuple[str, ...] = (
    r"如果.*那么",
    r"因为.*所以",
    r"不仅.*而且",
    r"一方面.*另一方面",
    r"if.*then",
    r"because.*therefore",
    r"not only.*but also",
)

TECHNICAL_TERMS: tuple[str, ...] = (
    "算法", "数据结构", "机器学习", "深度学习", "神经网络",
    "algorithm", "data structure", "machine learning", "deep learning", "neural network",
    "微积分", "线性代数", "概率论", "统计学",
    "calculus", "linear algebra", "probability", "statistics",
)
