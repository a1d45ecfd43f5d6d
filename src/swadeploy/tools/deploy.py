"""デプロイ系のMCPツール定義。"""

from typing import Any

from fastmcp import FastMCP
from pydantic import SecretStr

from swadeploy.models.deployment import DeploymentRequest
from swadeploy.models.errors import DeploymentError, SwaDeployError, TemplateValidationError, ValidationError
from swadeploy.models.parameters import validate_parameters
from swadeploy.services.deploy import DeploymentPipeline
from swadeploy.services.naming import derive_naming, resource_group_scope


def _error_response(e: SwaDeployError) -> dict[str, Any]:
    response: dict[str, Any] = {"error": type(e).__name__, "message": str(e)}
    if isinstance(e, ValidationError) and e.errors:
        response["errors"] = e.errors
    if isinstance(e, (TemplateValidationError, DeploymentError)):
        response["stderr"] = e.stderr
        response["exit_code"] = e.exit_code
    return response


def _request(
    environment_name: str,
    what_if: bool,
    client_id: str,
    tenant_id: str | None,
    application_name: str | None,
    sku: str | None,
    location: str | None,
    tags: dict[str, str] | None,
) -> DeploymentRequest:
    return DeploymentRequest(
        environment_name=environment_name,
        what_if=what_if,
        application_name=application_name,
        sku=sku,
        location=location,
        tags=tags or {},
        client_id=SecretStr(client_id) if client_id else None,
        tenant_id=SecretStr(tenant_id) if tenant_id else None,
    )


def register_deploy_tools(mcp: FastMCP, pipeline: DeploymentPipeline) -> None:
    """デプロイ関連のMCPツールを登録する。"""

    @mcp.tool()
    async def validate_deployment_parameters(parameters: dict[str, Any]) -> dict[str, Any]:
        """デプロイパラメータを検証する。

        リージョン・SKUの許可値と、環境名（10文字以内）・アプリ名（20文字以内）の
        長さ制約、両者の合計（19文字以内）を検証します。Azureへの呼び出しは行いません。

        Args:
            parameters: environmentName, applicationName, location, staticWebAppSku, tags などのマッピング。
        """
        try:
            params = validate_parameters(parameters)
            return {"valid": True, "parameters": params.model_dump(mode="json", by_alias=True)}
        except SwaDeployError as e:
            return {"valid": False, **_error_response(e)}

    @mcp.tool()
    async def derive_resource_names(
        application_name: str,
        environment_name: str,
        subscription_id: str,
        resource_group: str | None = None,
    ) -> dict[str, Any]:
        """リソースグループのスコープからStatic Web App名を導出する。

        同じ入力からは常に同じ名前が返ります。

        Args:
            application_name: アプリケーション名。
            environment_name: 環境名。
            subscription_id: サブスクリプションID。
            resource_group: リソースグループ名。省略時は設定値。
        """
        scope = resource_group_scope(subscription_id, resource_group or pipeline.resource_group)
        return derive_naming(application_name, environment_name, scope).model_dump()

    @mcp.tool()
    async def export_template(
        environment_name: str,
        subscription_id: str,
        application_name: str | None = None,
        sku: str | None = None,
        location: str | None = None,
        tags: dict[str, str] | None = None,
        include_auth_settings: bool = True,
    ) -> dict[str, Any]:
        """main.bicep とパラメータファイルを生成する。

        生成されたファイルはサーバー側の作業ディレクトリに書き出されます。
        シークレット（クライアントID・テナントID）はパラメータファイルに含まれません。

        Args:
            environment_name: 環境名。
            subscription_id: 名前の導出に使うサブスクリプションID。
            application_name: アプリケーション名。省略時は環境プリセット。
            sku: Free または Standard。省略時は環境プリセット。
            location: リージョン。省略時は設定値。
            tags: 追加タグ。
            include_auth_settings: 認証設定（config/appsettings）を宣言に含めるか。
        """
        try:
            request = _request(environment_name, False, "", None, application_name, sku, location, tags)
            params = pipeline.build_parameters(request)
            naming = pipeline.derive_naming(params, subscription_id)
            output_dir = pipeline.work_dir / params.environment_name
            result = pipeline.templates.export(params, naming, output_dir, include_auth_settings)
            result["static_web_app_name"] = naming.static_web_app_name
            return result
        except SwaDeployError as e:
            return _error_response(e)

    @mcp.tool()
    async def render_auth_config(tenant_id: str) -> dict[str, Any]:
        """staticwebapp.config.json のテナントIDプレースホルダーを置換した内容を返す。

        Args:
            tenant_id: Entra IDテナントID。
        """
        try:
            return {"content": pipeline.templates.render_auth_config(tenant_id)}
        except SwaDeployError as e:
            return _error_response(e)

    @mcp.tool()
    async def preview_deployment(
        environment_name: str,
        client_id: str,
        tenant_id: str | None = None,
        application_name: str | None = None,
        sku: str | None = None,
        location: str | None = None,
        tags: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """what-ifでデプロイ内容をプレビューする。クラウド側の状態は変更しません。

        リソースグループも作成しません。

        Args:
            environment_name: 環境名。
            client_id: Entra IDアプリケーション（クライアント）ID。
            tenant_id: テナントID。省略時はログイン中のテナント。
            application_name: アプリケーション名。
            sku: Free または Standard。
            location: リージョン。
            tags: 追加タグ。
        """
        try:
            request = _request(environment_name, True, client_id, tenant_id, application_name, sku, location, tags)
            result = await pipeline.run(request)
            return result.model_dump(mode="json")
        except SwaDeployError as e:
            return _error_response(e)

    @mcp.tool()
    async def run_deployment(
        environment_name: str,
        client_id: str,
        tenant_id: str | None = None,
        application_name: str | None = None,
        sku: str | None = None,
        location: str | None = None,
        tags: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """リソースグループを確保し、テンプレートを検証してデプロイする。

        成功すると出力値を deployment-outputs.json に保存します。
        失敗時はロールバックせず、プロバイダーの診断内容を返します。

        Args:
            environment_name: 環境名。
            client_id: Entra IDアプリケーション（クライアント）ID。
            tenant_id: テナントID。省略時はログイン中のテナント。
            application_name: アプリケーション名。
            sku: Free または Standard。
            location: リージョン。
            tags: 追加タグ。
        """
        try:
            request = _request(environment_name, False, client_id, tenant_id, application_name, sku, location, tags)
            result = await pipeline.run(request)
            return result.model_dump(mode="json")
        except SwaDeployError as e:
            return _error_response(e)

    @mcp.tool()
    async def get_deployment_outputs() -> dict[str, Any]:
        """直近のデプロイ出力を取得する。デプロイトークンは伏せ字で返します。"""
        try:
            outputs = await pipeline.store.load_outputs()
            return {**outputs.model_dump(mode="json"), "redirect_uri": outputs.redirect_uri}
        except SwaDeployError as e:
            return _error_response(e)
