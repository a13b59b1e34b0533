"""
CLI 主入口

基于 Typer 实现：
- route: 对一条消息执行完整路由决策（可附带图片、显式模型）
- models: 列出目录中的模型，可按能力过滤
- validate: 校验环境配置与模型目录
- version: 版本信息

输出使用 Rich 表格；--json 时直接输出决策 JSON，便于脚本消费。
"""

from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.traceback import install as install_traceback

from smartroute.domain.routing.catalog import load_catalog
from smartroute.domain.routing.models import ChatMessage, ContentPart, RoutingRequest
from smartroute.framework.orchestrators import UnifiedRouter
from smartroute.framework.shared.config import Settings
from smartroute.framework.shared.exceptions import ConfigurationError

# 初始化 Rich
console = Console()
install_traceback()

app = typer.Typer(
    name="smartroute",
    help="LLM 请求路由决策引擎",
    rich_markup_mode="markdown",
    pretty_exceptions_enable=True,
)


def setup_logging(verbose: int = 0) -> None:
    """设置日志配置"""
    logger.remove()

    if verbose > 1:
        log_level = "DEBUG"
    elif verbose == 1:
        log_level = "INFO"
    else:
        log_level = "WARNING"

    logger.add(
        RichHandler(
            console=console,
            markup=True,
            rich_tracebacks=True,
        ),
        level=log_level,
        format="{message}",
    )


# 命令选项常量
VERBOSE_OPTION = typer.Option(0, "--verbose", "-v", count=True, help="增加输出详细程度")
CONFIG_OPTION = typer.Option(None, "--config", "-c", help="模型目录配置文件路径")
TEXT_ARG = typer.Argument(..., help="用户消息文本")
IMAGE_OPTION = typer.Option(None, "--image", help="附带的图片 URL")
INTENT_OPTION = typer.Option(None, "--intent", help="显式指定的模型 ID")
JSON_OPTION = typer.Option(False, "--json", help="以 JSON 输出决策")
CAPABILITY_OPTION = typer.Option(None, "--capability", help="只显示具备该能力的模型（可重复）")


@app.callback()
def main_callback(verbose: int = VERBOSE_OPTION) -> None:
    """主回调函数，处理全局选项"""
    setup_logging(verbose)
    logger.debug("smartroute CLI 启动")


def _load_settings(config: Path | None) -> Settings:
    if config is not None:
        return Settings(MODELS_CONFIG_PATH=str(config))
    return Settings()


def _build_request(text: str, image: str | None, intent: str | None) -> RoutingRequest:
    if image:
        message = ChatMessage(
            role="user",
            content=(
                ContentPart(type="text", text=text),
                ContentPart(type="image_url", image_url={"url": image}),
            ),
        )
    else:
        message = ChatMessage(role="user", content=text)
    return RoutingRequest(messages=(message,), user_intent=intent)


@app.command()
def version() -> None:
    """显示版本信息"""
    from smartroute import __description__, __version__

    console.print(f"[bold]smartroute[/bold] {__version__}")
    console.print(f"{__description__}")


@app.command()
def route(
    text: str = TEXT_ARG,
    image: str = IMAGE_OPTION,
    intent: str = INTENT_OPTION,
    config: Path = CONFIG_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """对一条消息做路由决策"""
    settings = _load_settings(config)
    try:
        router = UnifiedRouter.from_settings(settings)
    except ConfigurationError as e:
        logger.error(f"加载模型目录失败: {e.message}")
        console.print(f"[red]❌[/red] 加载模型目录失败: {e.message}")
        raise typer.Exit(code=1)

    decision = router.route_sync(_build_request(text, image, intent))

    if as_json:
        typer.echo(decision.model_dump_json(by_alias=True, indent=2))
        return

    metadata = decision.metadata
    table = Table(title="路由决策", show_header=False)
    table.add_column("字段", style="cyan")
    table.add_column("值")
    table.add_row("模型", f"[bold green]{decision.selected_model}[/bold green]")
    table.add_row("置信度", f"{decision.confidence:.2f}")
    table.add_row("路由方式", metadata.routing_strategy.value)
    table.add_row("路由目标", metadata.destination or "-")
    table.add_row("能力匹配", str(metadata.capability_match))
    table.add_row("升级次数", str(metadata.escalations))
    table.add_row("成本估计", f"{metadata.cost_estimate}")
    table.add_row("回退链", ", ".join(decision.fallback_chain) or "-")
    console.print(table)
    console.print(f"💡 {decision.reasoning}")


@app.command()
def models(
    capability: list[str] = CAPABILITY_OPTION,
    config: Path = CONFIG_OPTION,
) -> None:
    """列出目录中的模型"""
    settings = _load_settings(config)
    try:
        router = UnifiedRouter.from_settings(settings)
    except ConfigurationError as e:
        console.print(f"[red]❌[/red] 加载模型目录失败: {e.message}")
        raise typer.Exit(code=1)

    catalog = router.service.catalog
    if capability:
        listed = router.analyze_capabilities(capability)
    else:
        listed = list(catalog.models)
    available = {model.id for model in router.get_available_models()}

    table = Table(title=f"模型目录（{len(listed)}/{len(catalog)}）")
    table.add_column("ID", style="cyan")
    table.add_column("供应商")
    table.add_column("能力")
    table.add_column("质量", justify="right")
    table.add_column("速度", justify="right")
    table.add_column("可用", justify="center")
    for model in listed:
        table.add_row(
            model.id,
            model.provider_type.value,
            ", ".join(sorted(model.capabilities)),
            str(model.quality_rating),
            str(model.speed_rating),
            "✅" if model.id in available else "❌",
        )
    console.print(table)
    console.print(f"默认模型: [bold]{catalog.default_model}[/bold]")


@app.command()
def validate(config: Path = CONFIG_OPTION) -> None:
    """校验环境配置与模型目录"""
    settings = _load_settings(config)
    errors = settings.validate_config()

    if not errors:
        try:
            catalog = load_catalog(settings.MODELS_CONFIG_PATH)
        except ConfigurationError as e:
            errors.append(e.message)
        else:
            console.print(
                f"[green]✅[/green] 模型目录有效: {len(catalog)} 个模型，"
                f"{len(catalog.routing_rules)} 个路由目标，默认模型 {catalog.default_model}"
            )

    if errors:
        console.print("[red]❌ 配置校验失败[/red]")
        for message in errors:
            console.print(f"  • {message}")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
