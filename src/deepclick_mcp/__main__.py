"""
DeepClick MCP 网关主入口点

提供命令行接口启动网关服务器。
"""

import asyncio
import json
import logging
import sys

import click
import uvicorn

from .core.config_manager import ConfigManager
from .core.upstream_client import DeepClickClient
from .protocols.mcp_server import MCPServer
from .protocols.rpc_dispatcher import RPCDispatcher
from .protocols.tool_schemas import MCP_TOOLS

# 设置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class GatewayServer:
    """DeepClick MCP 网关服务器"""

    def __init__(self, config_manager: ConfigManager):
        """
        初始化服务器

        Args:
            config_manager: 配置管理器
        """
        self.config_manager = config_manager
        self.mcp_server = MCPServer(config_manager)

    async def start(self):
        """启动服务器"""
        logger.info("正在启动 DeepClick MCP 网关...")

        server_config = self.config_manager.get_server_config()
        config = uvicorn.Config(
            self.mcp_server.get_app(),
            host=server_config.host,
            port=server_config.port,
            log_level=self.config_manager.get_log_level().lower(),
            # 会话只保存在进程内存中，必须单进程运行
            workers=1,
        )
        server = uvicorn.Server(config)

        logger.info(f"服务器已启动: http://{server_config.host}:{server_config.port}")
        await server.serve()


@click.group()
@click.option('--config', '-c', help='配置文件路径')
@click.option('--debug', '-d', is_flag=True, help='启用调试模式')
@click.pass_context
def cli(ctx, config, debug):
    """DeepClick MCP 网关命令行工具"""
    ctx.ensure_object(dict)
    ctx.obj['config'] = config
    ctx.obj['debug'] = debug

    if debug:
        logging.getLogger().setLevel(logging.DEBUG)


def _load_config(ctx) -> ConfigManager:
    config_manager = ConfigManager(ctx.obj.get('config'))
    if ctx.obj.get('debug'):
        config_manager.set('server.debug', True)
    return config_manager


@cli.command()
@click.option('--host', '-h', default=None, help='服务器主机地址')
@click.option('--port', '-p', default=None, type=int, help='服务器端口')
@click.pass_context
def serve(ctx, host, port):
    """启动 MCP 网关服务器"""
    try:
        config_manager = _load_config(ctx)

        # 命令行参数覆盖配置
        if host:
            config_manager.set('server.host', host)
        if port:
            config_manager.set('server.port', port)

        asyncio.run(GatewayServer(config_manager).start())

    except KeyboardInterrupt:
        logger.info("服务器已停止")
    except Exception as e:
        logger.error(f"服务器运行失败: {e}")
        sys.exit(1)


@cli.command()
def tools():
    """列出可用的 MCP 工具"""
    for tool in MCP_TOOLS:
        schema = tool["inputSchema"]
        required = schema.get("required", [])
        click.echo(f"{tool['name']}: {tool['description']}")
        for name, prop in schema["properties"].items():
            marker = "必需" if name in required else "可选"
            click.echo(f"  {name} ({prop['type']}, {marker}) - {prop.get('description', '')}")


@cli.command()
@click.argument('method')
@click.option('--params', default=None, help='JSON 格式的 params 对象')
@click.option('--id', 'request_id', default="1", help='请求ID')
@click.pass_context
def call(ctx, method, params, request_id):
    """在本地分发一条 JSON-RPC 请求（用于调试）"""
    try:
        parsed_params = json.loads(params) if params else {}
    except json.JSONDecodeError as e:
        click.echo(f"params 不是合法的 JSON: {e}", err=True)
        sys.exit(2)

    config_manager = _load_config(ctx)
    dispatcher = RPCDispatcher(DeepClickClient(config_manager.get_upstream_config()))
    response = asyncio.run(dispatcher.dispatch({
        "jsonrpc": "2.0",
        "id": request_id,
        "method": method,
        "params": parsed_params,
    }))

    click.echo(json.dumps(response, ensure_ascii=False, indent=2))
    if "error" in response:
        sys.exit(1)


@cli.command()
@click.pass_context
def config_check(ctx):
    """检查配置文件"""
    try:
        config = _load_config(ctx).get_config()

        click.echo("配置检查:")
        click.echo(f"  服务器: {config.server.host}:{config.server.port}")
        click.echo(f"  调试模式: {config.server.debug}")
        click.echo(f"  心跳间隔: {config.session.heartbeat_interval}秒")
        click.echo(f"  会话超时: {config.session.session_timeout}秒")
        sweep = config.session.sweep_interval
        click.echo(f"  后台清理: {f'每 {sweep} 秒' if sweep else '仅在新连接时清理'}")
        click.echo(f"  上游地址: {config.upstream.base_url}")
        click.echo("配置有效 ✓")

    except Exception as e:
        logger.error(f"配置检查失败: {e}")
        sys.exit(1)


@cli.command()
def version():
    """显示版本信息"""
    from . import __version__, __author__, __description__

    click.echo(f"DeepClick MCP Gateway v{__version__}")
    click.echo(f"作者: {__author__}")
    click.echo(f"描述: {__description__}")


def main():
    """主入口点"""
    cli()


if __name__ == "__main__":
    main()
