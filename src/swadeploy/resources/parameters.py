"""パラメータ関連のMCPリソース定義。"""

import yaml
from fastmcp import FastMCP

from swadeploy.models.parameters import (
    ALLOWED_LOCATIONS,
    ALLOWED_SKUS,
    APPLICATION_NAME_MAX_LENGTH,
    COMBINED_NAME_MAX_LENGTH,
    ENVIRONMENT_NAME_MAX_LENGTH,
    SECURE_PARAMETER_NAMES,
)
from swadeploy.services.template import TemplateService


def parameter_schema() -> dict[str, object]:
    return {
        "parameters": {
            "environmentName": {"type": "string", "maxLength": ENVIRONMENT_NAME_MAX_LENGTH, "required": True},
            "applicationName": {
                "type": "string",
                "maxLength": APPLICATION_NAME_MAX_LENGTH,
                "default": "wikidocs",
            },
            "location": {"type": "string", "allowed": list(ALLOWED_LOCATIONS), "default": "centralus"},
            "staticWebAppSku": {"type": "string", "allowed": list(ALLOWED_SKUS), "default": "Free"},
            "tags": {"type": "object", "default": {}},
        },
        # applicationName と environmentName の合計文字数
        "combined_name_max_length": COMBINED_NAME_MAX_LENGTH,
        "secure_parameters": sorted(SECURE_PARAMETER_NAMES),
    }


def register_parameter_resources(mcp: FastMCP, templates: TemplateService) -> None:
    """パラメータ関連のMCPリソースを登録する。"""

    @mcp.resource("swadeploy://parameters/schema")
    async def parameters_schema() -> str:
        """デプロイパラメータの制約を取得する。

        許可されたリージョン・SKU、名前の長さ制約（個別と合計）、@secureパラメータ名を返します。
        """
        return yaml.dump(parameter_schema(), allow_unicode=True, default_flow_style=False, sort_keys=False)

    @mcp.resource("swadeploy://environments")
    async def environments() -> str:
        """環境プリセット（defaults と環境ごとの上書き値）を取得する。"""
        return yaml.dump(templates.list_environments(), allow_unicode=True, default_flow_style=False)
