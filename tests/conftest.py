"""
测试公共夹具

提供一份小型模型目录（含视觉/推理/默认模型）以及对应的凭据表。
"""

import copy
import json

import pytest

from smartroute.domain.routing.catalog import parse_catalog

CATALOG_DATA = {
    "models": {
        "gemini-flash-lite": {
            "type": "google_gemini",
            "config": {"apiKey": "GEMINI_API_KEY", "model": "gemini-2.0-flash-lite"},
            "capabilities": {"chinese": True, "vision": False},
            "priority": {"basic": 1},
            "cost_per_1k_tokens": 0.0001,
            "speed_rating": 10,
            "quality_rating": 6,
        },
        "gpt4.1": {
            "type": "openai_compatible",
            "config": {"apiKey": "OPENAI_API_KEY", "baseURL": "OPENAI_BASE_URL", "model": "gpt-4.1"},
            "capabilities": {"reasoning": True, "tool_calling": True, "code_generation": True},
            "priority": {"enhanced": 1, "agent": 2},
            "cost_per_1k_tokens": 0.008,
            "speed_rating": 7,
            "quality_rating": 9,
        },
        "gpt-4o-all": {
            "type": "openai_compatible",
            "config": {"apiKey": "OPENAI_API_KEY"},
            "capabilities": {"vision": True, "reasoning": True},
            "priority": {"vision_processing": 1, "rag": 1},
            "cost_per_1k_tokens": 0.01,
            "speed_rating": 7,
            "quality_rating": 8,
        },
        "claude-sonnet-4-all": {
            "type": "openai_compatible",
            "config": {"apiKey": "CLAUDE_API_KEY"},
            "capabilities": {"vision": True, "reasoning": True, "agents": True},
            "priority": {"agent": 1, "vision_processing": 2},
            "cost_per_1k_tokens": 0.015,
            "speed_rating": 6,
            "quality_rating": 10,
        },
        "deepseek-reasoner": {
            "type": "deepseek",
            "config": {"apiKey": "DEEPSEEK_API_KEY"},
            "capabilities": {"reasoning": True, "mathematical_computation": True},
            "priority": {"complex_reasoning": 1},
            "cost_per_1k_tokens": 0.002,
            "speed_rating": 4,
            "quality_rating": 8,
        },
    },
    "selection_strategy": {
        "default_model": "gemini-flash-lite",
        "fallback_chain": ["gemini-flash-lite", "deepseek-reasoner"],
        "speed_optimization": True,
        "quality_optimization": False,
    },
}

ALL_CREDENTIALS = {
    "GEMINI_API_KEY": "gm-test-key",
    "OPENAI_API_KEY": "sk-test-key",
    "CLAUDE_API_KEY": "cl-test-key",
    "DEEPSEEK_API_KEY": "ds-test-key",
}


@pytest.fixture
def catalog_data():
    """可修改的目录配置副本"""
    return copy.deepcopy(CATALOG_DATA)


@pytest.fixture
def catalog(catalog_data):
    return parse_catalog(catalog_data, source="test")


@pytest.fixture
def credentials():
    return dict(ALL_CREDENTIALS)


@pytest.fixture
def catalog_file(tmp_path, catalog_data):
    """写入临时目录的目录配置文件"""
    path = tmp_path / "models-config.json"
    path.write_text(json.dumps(catalog_data, ensure_ascii=False), encoding="utf-8")
    return path
