"""リソース宣言・デプロイ結果関連のデータモデル。"""

from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr, computed_field
from pydantic import ValidationError as PydanticValidationError

from swadeploy.models.errors import DeploymentError
from swadeploy.models.parameters import DeploymentParameters

STATIC_SITE_TYPE = "Microsoft.Web/staticSites"
STATIC_SITE_API_VERSION = "2023-01-01"
APP_SETTINGS_TYPE = "Microsoft.Web/staticSites/config"

# 認証サブシステムが実行時に読む設定名
CLIENT_ID_SETTING = "AZURE_CLIENT_ID"
TENANT_ID_SETTING = "AZURE_TENANT_ID"


class DerivedNaming(BaseModel):
    """パラメータとスコープIDから導出したリソース名。"""

    static_web_app_name: str
    resource_token: str
    scope_id: str


class BuildProperties(BaseModel):
    """Static Web Appのビルド出力設定。"""

    app_location: str = "/"
    output_location: str = "build"
    skip_github_action_workflow_generation: bool = True


class StaticSiteDeclaration(BaseModel):
    """ホスティングリソースの望ましい状態。"""

    type: str = STATIC_SITE_TYPE
    api_version: str = STATIC_SITE_API_VERSION
    name: str
    location: str
    sku_name: str
    sku_tier: str
    tags: dict[str, str] = Field(default_factory=dict)
    build_properties: BuildProperties = Field(default_factory=BuildProperties)
    staging_environment_policy: Literal["Enabled", "Disabled"] = "Enabled"
    allow_config_file_updates: bool = True


class AppSettingsDeclaration(BaseModel):
    """親リソース配下の認証設定（config/appsettings）。

    値はテンプレートのパラメータ参照のみを保持し、シークレットは持たない。
    親リソースとの依存関係はテンプレートの parent で表す。
    """

    type: str = APP_SETTINGS_TYPE
    api_version: str = STATIC_SITE_API_VERSION
    name: str = "appsettings"
    parent: str
    settings: dict[str, str]


class ResourceDeclaration(BaseModel):
    """ホスティングリソースと入れ子の認証設定からなる宣言。"""

    static_site: StaticSiteDeclaration
    app_settings: AppSettingsDeclaration | None = None

    @property
    def resource_count(self) -> int:
        return 1 if self.app_settings is None else 2


def _output_value(outputs: dict[str, Any], key: str, required: bool = True) -> Any:
    entry = outputs.get(key)
    if entry is None:
        if required:
            raise DeploymentError(f"Deployment output '{key}' is missing")
        return None
    # az deployment group show は {"type": ..., "value": ...} 形式で返す
    if isinstance(entry, dict) and "value" in entry:
        return entry["value"]
    return entry


class DeploymentOutputs(BaseModel):
    """デプロイ成功時にテンプレートが返す出力値。"""

    static_web_app_id: str
    static_web_app_name: str
    default_hostname: str
    site_url: str
    deployment_token: SecretStr | None = None
    location: str
    environment_name: str

    @classmethod
    def from_arm(cls, outputs: dict[str, Any]) -> "DeploymentOutputs":
        """ARMの出力マッピングからモデルを構築する。

        Raises:
            DeploymentError: 必須の出力が欠けている、または値の型が不正な場合。
        """
        token = _output_value(outputs, "deploymentToken", required=False)
        try:
            return cls(
                static_web_app_id=_output_value(outputs, "staticWebAppId"),
                static_web_app_name=_output_value(outputs, "staticWebAppName"),
                default_hostname=_output_value(outputs, "defaultHostname"),
                site_url=_output_value(outputs, "siteUrl"),
                deployment_token=SecretStr(token) if token else None,
                location=_output_value(outputs, "location"),
                environment_name=_output_value(outputs, "environmentName"),
            )
        except PydanticValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise DeploymentError(f"Invalid deployment outputs: {fields}") from None

    @property
    def redirect_uri(self) -> str:
        """Entra IDアプリ登録に設定するリダイレクトURI。"""
        return f"https://{self.default_hostname}/.auth/login/aad/callback"


class AccountInfo(BaseModel):
    """az account show で得られるログイン中のアカウント情報。"""

    subscription_id: str
    subscription_name: str
    tenant_id: str
    user_name: str = ""


class AzResult(BaseModel):
    """Azure CLI実行結果。"""

    success: bool
    stdout: str
    stderr: str
    exit_code: int


ChangeType = Literal["Create", "Delete", "Deploy", "Ignore", "Modify", "NoChange", "Unsupported"]


class ResourceChange(BaseModel):
    """what-ifが報告する個別リソースの変更。"""

    resource_id: str
    change_type: ChangeType


class WhatIfResult(BaseModel):
    """what-ifプレビューの結果。"""

    success: bool
    summary: str
    changes: list[ResourceChange] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_changes(self) -> bool:
        return any(c.change_type not in ("NoChange", "Ignore") for c in self.changes)


class DeploymentRequest(BaseModel):
    """パイプライン1回分の入力。Noneの項目は環境プリセットの値を使う。"""

    environment_name: str = "prod"
    what_if: bool = False
    application_name: str | None = None
    sku: str | None = None
    location: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)
    client_id: SecretStr | None = None
    tenant_id: SecretStr | None = None


class DeploymentResult(BaseModel):
    """パイプライン1回分の実行結果。"""

    deployment_name: str
    resource_group: str
    what_if: bool
    naming: DerivedNaming
    resource_group_created: bool = False
    template_dir: str
    parameters: DeploymentParameters | None = None
    outputs: DeploymentOutputs | None = None
    what_if_result: WhatIfResult | None = None
    outputs_file: Path | None = None
    completed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
