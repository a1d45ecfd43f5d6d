"""デプロイパラメータ関連のデータモデル。"""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator
from pydantic import ValidationError as PydanticValidationError

from swadeploy.models.errors import ValidationError

# Static Web Appsが提供されているリージョン
ALLOWED_LOCATIONS: tuple[str, ...] = ("centralus", "eastus2", "westus2", "westeurope", "eastasia")
ALLOWED_SKUS: tuple[str, ...] = ("Free", "Standard")

ENVIRONMENT_NAME_MAX_LENGTH = 10
APPLICATION_NAME_MAX_LENGTH = 20

# Static Web App名 stapp-{app}-{env}-{token} の上限
STATIC_WEB_APP_PREFIX = "stapp"
TOKEN_LENGTH = 13
STATIC_WEB_APP_NAME_MAX_LENGTH = 40
COMBINED_NAME_MAX_LENGTH = STATIC_WEB_APP_NAME_MAX_LENGTH - len(STATIC_WEB_APP_PREFIX) - 3 - TOKEN_LENGTH

PARAMETERS_SCHEMA = "https://schema.management.azure.com/schemas/2019-04-01/deploymentParameters.json#"
PARAMETERS_CONTENT_VERSION = "1.0.0.0"

# テンプレートの@secureパラメータ。パラメータファイルには書き出さない
SECURE_PARAMETER_NAMES = frozenset({"entraClientId", "entraTenantId"})

Location = Literal["centralus", "eastus2", "westus2", "westeurope", "eastasia"]
Sku = Literal["Free", "Standard"]

_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9-]*$"


class DeploymentParameters(BaseModel):
    """Bicepテンプレートに渡すデプロイパラメータ。

    フィールド名はsnake_case、エイリアスはテンプレート側のcamelCase名。
    どちらのキーでも生成できる。
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    environment_name: str = Field(
        alias="environmentName",
        min_length=1,
        max_length=ENVIRONMENT_NAME_MAX_LENGTH,
        pattern=_NAME_PATTERN,
    )
    application_name: str = Field(
        default="wikidocs",
        alias="applicationName",
        min_length=1,
        max_length=APPLICATION_NAME_MAX_LENGTH,
        pattern=_NAME_PATTERN,
    )
    location: Location = "centralus"
    sku: Sku = Field(default="Free", alias="staticWebAppSku")
    entra_client_id: SecretStr = Field(default=SecretStr(""), alias="entraClientId")
    entra_tenant_id: SecretStr = Field(default=SecretStr(""), alias="entraTenantId")
    tags: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_name_length(self) -> "DeploymentParameters":
        combined = len(self.application_name) + len(self.environment_name)
        if combined > COMBINED_NAME_MAX_LENGTH:
            raise ValueError(
                f"applicationName and environmentName together must not exceed {COMBINED_NAME_MAX_LENGTH} "
                f"characters (got {combined}); the Static Web App name is limited to "
                f"{STATIC_WEB_APP_NAME_MAX_LENGTH} characters"
            )
        return self

    @property
    def has_credentials(self) -> bool:
        return bool(self.entra_client_id.get_secret_value())

    def with_credentials(self, client_id: str, tenant_id: str) -> "DeploymentParameters":
        """シークレットを埋めた検証済みのコピーを返す。"""
        data = self.model_dump()
        data["entra_client_id"] = client_id
        data["entra_tenant_id"] = tenant_id
        return validate_parameters(data)

    def template_values(self) -> dict[str, Any]:
        """テンプレートのパラメータ名をキーとした非シークレット値を返す。"""
        return {
            "environmentName": self.environment_name,
            "applicationName": self.application_name,
            "location": self.location,
            "staticWebAppSku": self.sku,
            "tags": dict(self.tags),
        }

    def secure_values(self) -> dict[str, str]:
        """@secureパラメータの平文値を返す。Azure CLIへ渡す直前にのみ使う。"""
        return {
            "entraClientId": self.entra_client_id.get_secret_value(),
            "entraTenantId": self.entra_tenant_id.get_secret_value(),
        }


def _format_error(error: Mapping[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ())) or "parameters"
    return f"{location}: {error.get('msg', 'invalid value')}"


def validate_parameters(raw: Mapping[str, Any]) -> DeploymentParameters:
    """生のキー・値集合を検証してDeploymentParametersを返す。

    Args:
        raw: snake_caseまたはテンプレートのcamelCaseキーを持つマッピング。

    Returns:
        検証済みのパラメータ。

    Raises:
        ValidationError: 列挙値・長さ制約などに違反する場合。
    """
    try:
        return DeploymentParameters.model_validate(dict(raw))
    except PydanticValidationError as e:
        # 入力値はシークレットを含み得るため、位置とメッセージのみを残す
        errors = [_format_error(err) for err in e.errors()]
        raise ValidationError(f"Invalid deployment parameters: {'; '.join(errors)}", errors) from None


class ParameterValue(BaseModel):
    """パラメータファイル内の個別値。"""

    value: Any


class ParameterFile(BaseModel):
    """ARMデプロイパラメータファイル（$schema / contentVersion 付きJSON）。"""

    model_config = ConfigDict(populate_by_name=True)

    schema_uri: str = Field(default=PARAMETERS_SCHEMA, alias="$schema")
    content_version: str = Field(default=PARAMETERS_CONTENT_VERSION, alias="contentVersion")
    parameters: dict[str, ParameterValue] = Field(default_factory=dict)

    @classmethod
    def from_parameters(cls, params: DeploymentParameters, resource_token: str | None = None) -> "ParameterFile":
        """パラメータからファイル表現を構築する。@secureパラメータは含めない。"""
        values = params.template_values()
        if resource_token:
            values["resourceToken"] = resource_token
        return cls(parameters={name: ParameterValue(value=value) for name, value in values.items()})

    @classmethod
    def load(cls, path: Path) -> "ParameterFile":
        """既存のパラメータファイルを読み込む。

        Raises:
            ValidationError: JSONまたはスキーマが不正な場合。
        """
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return cls.model_validate(data)
        except (OSError, json.JSONDecodeError) as e:
            raise ValidationError(f"Cannot read parameter file {path}: {e}") from e
        except PydanticValidationError as e:
            errors = [_format_error(err) for err in e.errors()]
            raise ValidationError(f"Invalid parameter file {path}", errors) from None

    def to_raw(self) -> dict[str, Any]:
        """validate_parametersに渡せるcamelCaseマッピングを返す。"""
        return {name: param.value for name, param in self.parameters.items() if name != "resourceToken"}

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2) + "\n"
