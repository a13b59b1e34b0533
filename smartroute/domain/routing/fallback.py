"""回退链解析"""

from .catalog import ModelCatalog


def resolve_fallback_chain(selected_model: str, catalog: ModelCatalog) -> tuple[str, ...]:
    """
    目录中除选中模型以外的全部模型 ID，按目录顺序排列且不重复

    不做可用性探测，存活判断由执行层负责。
    """
    seen = {selected_model}
    chain: list[str] = []
    for model_id in catalog.ids():
        if model_id not in seen:
            seen.add(model_id)
            chain.append(model_id)
    return tuple(chain)
