"""リソース宣言の構築とBicep・パラメータファイルの生成を行うサービス。"""

import copy
import logging
from pathlib import Path
from typing import Any

import yaml

from swadeploy.models.deployment import (
    CLIENT_ID_SETTING,
    TENANT_ID_SETTING,
    AppSettingsDeclaration,
    DerivedNaming,
    ResourceDeclaration,
    StaticSiteDeclaration,
)
from swadeploy.models.errors import ConfigNotFoundError, TemplateNotFoundError, ValidationError
from swadeploy.models.parameters import (
    ALLOWED_LOCATIONS,
    ALLOWED_SKUS,
    APPLICATION_NAME_MAX_LENGTH,
    ENVIRONMENT_NAME_MAX_LENGTH,
    DeploymentParameters,
    ParameterFile,
    validate_parameters,
)
from swadeploy.services.naming import MANAGED_BY, merge_tags

logger = logging.getLogger(__name__)

ENVIRONMENTS_FILE = "environments.yaml"
TEMPLATE_FILE = "main.bicep"
PARAMETERS_FILE = "main.parameters.json"
AUTH_CONFIG_TEMPLATE = "staticwebapp.config.json"
TENANT_PLACEHOLDER = "<TENANT_ID>"

# 認証設定キー → テンプレートのパラメータ名
_AUTH_SETTING_PARAMETERS: dict[str, str] = {
    CLIENT_ID_SETTING: "entraClientId",
    TENANT_ID_SETTING: "entraTenantId",
}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class TemplateService:
    """パラメータとリソース名から望ましい状態の宣言とテンプレートを生成する。"""

    def __init__(self, config_dir: Path) -> None:
        self._config_dir = config_dir
        self._environments: dict[str, Any] | None = None

    def _load_environments(self) -> dict[str, Any]:
        """環境プリセットをYAMLファイルから読み込む。

        Raises:
            ConfigNotFoundError: 設定ディレクトリにプリセットファイルが無い場合。
        """
        if self._environments is not None:
            return self._environments

        env_file = self._config_dir / ENVIRONMENTS_FILE
        if not env_file.exists():
            raise ConfigNotFoundError(str(env_file))
        with open(env_file, encoding="utf-8") as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}
        self._environments = data
        return data

    def load_environment(self, environment_name: str) -> dict[str, Any]:
        """環境プリセットをdefaultsにマージした生のパラメータを返す。

        未定義の環境はdefaultsのみを使う。
        """
        data = self._load_environments()
        defaults = data.get("defaults") or {}
        overrides = (data.get("environments") or {}).get(environment_name) or {}
        merged = _deep_merge(defaults, overrides)
        merged["environment_name"] = environment_name
        return merged

    def list_environments(self) -> dict[str, Any]:
        return copy.deepcopy(self._load_environments())

    def build_parameters(self, environment_name: str, **overrides: Any) -> DeploymentParameters:
        """環境プリセットに上書き値を適用し、検証済みパラメータを返す。

        Raises:
            ValidationError: いずれかの値が制約に違反する場合。
        """
        raw = self.load_environment(environment_name)
        for key, value in overrides.items():
            if value is None:
                continue
            if key == "tags":
                raw["tags"] = {**(raw.get("tags") or {}), **value}
            else:
                raw[key] = value
        return validate_parameters(raw)

    def declare(
        self,
        params: DeploymentParameters,
        naming: DerivedNaming,
        include_auth_settings: bool | None = None,
    ) -> ResourceDeclaration:
        """ホスティングリソースと認証設定の宣言を構築する。

        認証設定は既定ではクライアントIDが与えられた場合のみ宣言し、
        親リソースの子として宣言する。
        """
        if include_auth_settings is None:
            include_auth_settings = params.has_credentials
        static_site = StaticSiteDeclaration(
            name=naming.static_web_app_name,
            location=params.location,
            sku_name=params.sku,
            sku_tier=params.sku,
            tags=merge_tags(params.tags, params.environment_name, params.application_name),
        )
        app_settings: AppSettingsDeclaration | None = None
        if include_auth_settings:
            app_settings = AppSettingsDeclaration(
                parent=static_site.name,
                settings=dict(_AUTH_SETTING_PARAMETERS),
            )
        return ResourceDeclaration(static_site=static_site, app_settings=app_settings)

    @staticmethod
    def _format_bicep_value(value: Any) -> str:
        """Python値をBicepリテラルに変換する。"""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
        return f"'{escaped}'"

    def _render_allowed(self, values: tuple[str, ...]) -> list[str]:
        lines = ["@allowed(["]
        lines.extend(f"  {self._format_bicep_value(v)}" for v in values)
        lines.append("])")
        return lines

    def render_bicep(self, declaration: ResourceDeclaration) -> str:
        """宣言からmain.bicepの内容を生成する。"""
        site = declaration.static_site
        build = site.build_properties
        fmt = self._format_bicep_value

        lines: list[str] = []
        lines.append("// Auto-generated by swadeploy")
        lines.append(f"// Static Web App: {site.name}")
        lines.append("targetScope = 'resourceGroup'")
        lines.append("")

        # パラメータ
        lines.append("@description('Environment name (e.g. dev, prod)')")
        lines.append(f"@maxLength({ENVIRONMENT_NAME_MAX_LENGTH})")
        lines.append("param environmentName string")
        lines.append("")
        lines.append("@description('Application name used in resource names')")
        lines.append(f"@maxLength({APPLICATION_NAME_MAX_LENGTH})")
        lines.append("param applicationName string = 'wikidocs'")
        lines.append("")
        lines.append("@description('Azure region for the Static Web App')")
        lines.extend(self._render_allowed(ALLOWED_LOCATIONS))
        lines.append(f"param location string = {fmt(site.location)}")
        lines.append("")
        lines.append("@description('Static Web App pricing tier')")
        lines.extend(self._render_allowed(ALLOWED_SKUS))
        lines.append(f"param staticWebAppSku string = {fmt(site.sku_name)}")
        lines.append("")
        lines.append("@secure()")
        lines.append("@description('Entra ID application (client) ID')")
        lines.append("param entraClientId string = ''")
        lines.append("")
        lines.append("@secure()")
        lines.append("@description('Entra ID tenant ID')")
        lines.append("param entraTenantId string = ''")
        lines.append("")
        lines.append("@description('Additional resource tags')")
        lines.append("param tags object = {}")
        lines.append("")
        lines.append("@description('Uniqueness token for resource names')")
        lines.append("param resourceToken string = uniqueString(resourceGroup().id)")
        lines.append("")

        # 変数
        lines.append("var staticWebAppName = toLower('stapp-${applicationName}-${environmentName}-${resourceToken}')")
        lines.append("var systemTags = {")
        lines.append("  Environment: environmentName")
        lines.append("  Application: applicationName")
        lines.append(f"  ManagedBy: {fmt(MANAGED_BY)}")
        lines.append("}")
        lines.append("// system tags take precedence over user tags")
        lines.append("var allTags = union(tags, systemTags)")
        lines.append("")

        # ホスティングリソース
        lines.append(f"resource staticWebApp '{site.type}@{site.api_version}' = {{")
        lines.append("  name: staticWebAppName")
        lines.append("  location: location")
        lines.append("  tags: allTags")
        lines.append("  sku: {")
        lines.append("    name: staticWebAppSku")
        lines.append("    tier: staticWebAppSku")
        lines.append("  }")
        lines.append("  properties: {")
        lines.append(f"    stagingEnvironmentPolicy: {fmt(site.staging_environment_policy)}")
        lines.append(f"    allowConfigFileUpdates: {fmt(site.allow_config_file_updates)}")
        lines.append("    buildProperties: {")
        lines.append(f"      appLocation: {fmt(build.app_location)}")
        lines.append(f"      outputLocation: {fmt(build.output_location)}")
        lines.append(f"      skipGithubActionWorkflowGeneration: {fmt(build.skip_github_action_workflow_generation)}")
        lines.append("    }")
        lines.append("  }")
        lines.append("}")
        lines.append("")

        # 認証設定（parentで親リソースの完了後に適用される）
        settings = declaration.app_settings
        if settings is not None:
            lines.append(
                f"resource {settings.name} '{settings.type}@{settings.api_version}' = if (!empty(entraClientId)) {{"
            )
            lines.append("  parent: staticWebApp")
            lines.append(f"  name: {fmt(settings.name)}")
            lines.append("  properties: {")
            for key, param_name in settings.settings.items():
                lines.append(f"    {key}: {param_name}")
            lines.append("  }")
            lines.append("}")
            lines.append("")

        # 出力
        lines.append("output staticWebAppId string = staticWebApp.id")
        lines.append("output staticWebAppName string = staticWebApp.name")
        lines.append("output defaultHostname string = staticWebApp.properties.defaultHostname")
        lines.append("output siteUrl string = 'https://${staticWebApp.properties.defaultHostname}'")
        lines.append("#disable-next-line outputs-should-not-contain-secrets")
        lines.append("output deploymentToken string = staticWebApp.listSecrets().properties.apiKey")
        lines.append("output location string = location")
        lines.append("output environmentName string = environmentName")

        return "\n".join(lines) + "\n"

    def render_parameter_file(self, params: DeploymentParameters, naming: DerivedNaming) -> str:
        """パラメータファイルのJSONを生成する。@secureパラメータは含めない。"""
        return ParameterFile.from_parameters(params, naming.resource_token).to_json()

    def export(
        self,
        params: DeploymentParameters,
        naming: DerivedNaming,
        output_dir: Path,
        include_auth_settings: bool | None = None,
    ) -> dict[str, Any]:
        """テンプレートとパラメータファイルを書き出す。

        Args:
            params: 検証済みパラメータ。
            naming: 導出済みリソース名。
            output_dir: 書き出し先ディレクトリ。
            include_auth_settings: 認証設定を含めるか。Noneの場合はクライアントIDの有無で決める。

        Returns:
            template_files（ファイル名→内容）とtemplate_dir（書き出し先パス）を含む辞書。
        """
        declaration = self.declare(params, naming, include_auth_settings)
        files = {
            TEMPLATE_FILE: self.render_bicep(declaration),
            PARAMETERS_FILE: self.render_parameter_file(params, naming),
        }

        output_dir.mkdir(parents=True, exist_ok=True)
        for filename, content in files.items():
            (output_dir / filename).write_text(content, encoding="utf-8")
        logger.info("Wrote %s and %s to %s", TEMPLATE_FILE, PARAMETERS_FILE, output_dir)

        return {"template_files": files, "template_dir": str(output_dir)}

    def render_auth_config(self, tenant_id: str, template_path: Path | None = None) -> str:
        """認証設定ファイルのテナントIDプレースホルダーを置換する。

        Raises:
            ValidationError: テナントIDが空、またはプレースホルダーがない場合。
            TemplateNotFoundError: テンプレートが存在しない場合。
        """
        if not tenant_id.strip():
            raise ValidationError("Tenant ID is required to render the auth configuration")

        path = template_path or self._config_dir / "templates" / AUTH_CONFIG_TEMPLATE
        if not path.exists():
            raise TemplateNotFoundError(str(path))

        content = path.read_text(encoding="utf-8")
        if TENANT_PLACEHOLDER not in content:
            raise ValidationError(f"No {TENANT_PLACEHOLDER} placeholder found in {path}")
        return content.replace(TENANT_PLACEHOLDER, tenant_id.strip())

    def write_auth_config(self, tenant_id: str, destination: Path, template_path: Path | None = None) -> Path:
        """置換済みの認証設定ファイルを書き出す。"""
        content = self.render_auth_config(tenant_id, template_path)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(content, encoding="utf-8")
        logger.info("Wrote auth configuration to %s", destination)
        return destination
