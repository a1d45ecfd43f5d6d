"""FastMCPベースのMCPサーバーエントリポイント。"""

import logging

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from swadeploy.config import DeployConfig, ServerConfig
from swadeploy.logging_config import configure_logging
from swadeploy.prompts.deploy import register_deploy_prompts
from swadeploy.resources.parameters import register_parameter_resources
from swadeploy.services.deploy import DeploymentPipeline
from swadeploy.tools.deploy import register_deploy_tools

logger = logging.getLogger(__name__)


def create_server(config: ServerConfig | None = None, deploy_config: DeployConfig | None = None) -> FastMCP:
    """swadeploy MCPサーバーを作成し、ツール・リソース・プロンプトを登録する。

    Args:
        config: サーバー設定。Noneの場合はデフォルト設定を使用。
        deploy_config: デプロイ先の設定。Noneの場合は環境変数から読み込む。

    Returns:
        設定済みのFastMCPインスタンス。
    """
    if config is None:
        config = ServerConfig()
    if deploy_config is None:
        deploy_config = DeployConfig()

    mcp = FastMCP("swadeploy")

    # サーバー経由では対話入力を行わない
    pipeline = DeploymentPipeline.from_config(config, deploy_config)

    register_deploy_tools(mcp, pipeline)
    register_parameter_resources(mcp, pipeline.templates)
    register_deploy_prompts(mcp)

    # ヘルスチェックエンドポイント
    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok"})

    return mcp


def main() -> None:
    import uvicorn
    from starlette.middleware import Middleware

    from swadeploy.middleware import TokenAuthMiddleware

    config = ServerConfig()
    configure_logging(config.log_level)
    mcp = create_server(config)
    app = mcp.http_app(
        transport="streamable-http",
        middleware=[Middleware(TokenAuthMiddleware, url_token=config.url_token)],
    )
    if not config.url_token:
        logger.warning("SWADEPLOY_URL_TOKEN is not set; deployment tools are unauthenticated")
    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
