"""デプロイパイプライン（前提確認→収集→RG確保→検証→デプロイ→出力取得）。"""

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from swadeploy.config import DeployConfig, ServerConfig
from swadeploy.models.deployment import (
    AccountInfo,
    DeploymentOutputs,
    DeploymentRequest,
    DeploymentResult,
    DerivedNaming,
    ResourceChange,
    WhatIfResult,
)
from swadeploy.models.errors import PrerequisiteError, ValidationError
from swadeploy.models.parameters import DeploymentParameters
from swadeploy.services.azure import AzureCliService
from swadeploy.services.naming import derive_naming, resource_group_scope, resource_group_tags
from swadeploy.services.template import PARAMETERS_FILE, TEMPLATE_FILE, TemplateService
from swadeploy.storage.service import OutputStore

logger = logging.getLogger(__name__)

# (表示ラベル, 既定値) -> 入力値
Prompt = Callable[[str, str], str]


class DeploymentPipeline:
    """各ステージを順に実行し、失敗した時点で例外を送出して中断する。

    ロールバックは行わない。途中までのクラウド側の状態はリソースグループに残り、
    同じ入力で再実行できる。
    """

    def __init__(
        self,
        azure: AzureCliService,
        templates: TemplateService,
        store: OutputStore,
        deploy_config: DeployConfig,
        work_dir: Path,
        prompt: Prompt | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._azure = azure
        self._templates = templates
        self._store = store
        self._config = deploy_config
        self._work_dir = work_dir
        self._prompt = prompt
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        server_config: ServerConfig,
        deploy_config: DeployConfig,
        work_dir: Path | None = None,
        prompt: Prompt | None = None,
    ) -> "DeploymentPipeline":
        """設定から各サービスを組み立てる。"""
        work_dir = work_dir or server_config.work_dir
        return cls(
            azure=AzureCliService(az_executable=server_config.az_executable),
            templates=TemplateService(config_dir=server_config.config_dir),
            store=OutputStore(output_dir=work_dir),
            deploy_config=deploy_config,
            work_dir=work_dir,
            prompt=prompt,
        )

    @property
    def work_dir(self) -> Path:
        return self._work_dir

    @property
    def templates(self) -> TemplateService:
        return self._templates

    @property
    def store(self) -> OutputStore:
        return self._store

    @property
    def resource_group(self) -> str:
        return self._config.resource_group

    def build_parameters(self, request: DeploymentRequest) -> DeploymentParameters:
        """シークレット以外の入力を検証する。副作用はない。

        Raises:
            ValidationError: 列挙値・長さ制約に違反する場合。
        """
        return self._templates.build_parameters(
            request.environment_name,
            application_name=request.application_name,
            sku=request.sku,
            location=request.location or self._config.location,
            tags=request.tags or None,
        )

    def _collect_credentials(
        self, params: DeploymentParameters, request: DeploymentRequest, account: AccountInfo
    ) -> DeploymentParameters:
        """クライアントID（必須）とテナントID（既定はログイン中のテナント）を集める。"""
        client_id = request.client_id.get_secret_value() if request.client_id else ""
        if not client_id and self._prompt is not None:
            client_id = self._prompt("Entra ID Client ID", "")
        if not client_id.strip():
            raise ValidationError("Entra Client ID is required")

        tenant_id = request.tenant_id.get_secret_value() if request.tenant_id else ""
        if not tenant_id and self._prompt is not None:
            tenant_id = self._prompt("Tenant ID", account.tenant_id)
        tenant_id = tenant_id.strip() or account.tenant_id

        logger.info("Configuration collected")
        return params.with_credentials(client_id.strip(), tenant_id)

    def _check_subscription(self, account: AccountInfo) -> None:
        expected = self._config.subscription_id
        if expected and expected.lower() != account.subscription_id.lower():
            raise PrerequisiteError(
                f"Active subscription {account.subscription_id} does not match AZURE_SUBSCRIPTION_ID {expected}",
                f"Please run: az account set --subscription {expected}",
            )

    def derive_naming(self, params: DeploymentParameters, subscription_id: str) -> DerivedNaming:
        scope = resource_group_scope(subscription_id, self.resource_group)
        return derive_naming(params.application_name, params.environment_name, scope)

    def render(self, request: DeploymentRequest) -> DeploymentResult:
        """Azureを呼ばずにテンプレートとパラメータファイルだけを書き出す。

        スコープの算出に AZURE_SUBSCRIPTION_ID を使う。
        """
        params = self.build_parameters(request)
        if not self._config.subscription_id:
            raise ValidationError("AZURE_SUBSCRIPTION_ID is required to render without signing in")
        if request.client_id:
            tenant_id = request.tenant_id.get_secret_value() if request.tenant_id else ""
            params = params.with_credentials(request.client_id.get_secret_value(), tenant_id)

        naming = self.derive_naming(params, self._config.subscription_id)
        template_dir = self._work_dir / params.environment_name
        self._templates.export(params, naming, template_dir)
        return DeploymentResult(
            deployment_name="",
            resource_group=self.resource_group,
            what_if=True,
            naming=naming,
            template_dir=str(template_dir),
            parameters=params,
        )

    async def run(self, request: DeploymentRequest) -> DeploymentResult:
        """パイプラインを実行する。

        Args:
            request: 環境名・what-ifフラグ・上書き値。

        Returns:
            実行結果。what-ifの場合はwhat_if_result、それ以外はoutputsを含む。

        Raises:
            ValidationError: パラメータが不正な場合（クラウド呼び出し前）。
            PrerequisiteError: CLI未導入・未ログインの場合（クラウド呼び出し前）。
            TemplateValidationError: テンプレート検証に失敗した場合。
            DeploymentError: デプロイまたは出力取得に失敗した場合。
        """
        # 1. パラメータ検証（副作用なし）
        params = self.build_parameters(request)

        # 2. 前提条件
        logger.info("Checking prerequisites...")
        account = await self._azure.check_prerequisites()
        self._check_subscription(account)
        logger.info("Logged into Azure: %s (%s)", account.subscription_name, account.subscription_id)

        # 3. 対話的な値の収集
        params = self._collect_credentials(params, request, account)
        naming = self.derive_naming(params, account.subscription_id)
        rg = self.resource_group

        # 4. リソースグループ（what-ifでは作成しない）
        created = False
        if request.what_if:
            exists = await self._azure.resource_group_exists(rg)
        else:
            created = await self._azure.ensure_resource_group(
                rg, self._config.location, resource_group_tags(params.environment_name)
            )
            exists = True

        # 5. テンプレート出力と検証
        template_dir = self._work_dir / params.environment_name
        self._templates.export(params, naming, template_dir)
        template_file = template_dir / TEMPLATE_FILE
        parameters_file = template_dir / PARAMETERS_FILE
        secure = params.secure_values()

        deployment_name = f"{params.application_name}-{self._clock():%Y%m%d-%H%M%S}"
        result = DeploymentResult(
            deployment_name=deployment_name,
            resource_group=rg,
            what_if=request.what_if,
            naming=naming,
            resource_group_created=created,
            template_dir=str(template_dir),
            parameters=params,
        )

        if not exists:
            # 存在しないRGに対してはvalidate/what-ifを実行できない
            logger.warning("Resource group '%s' does not exist; skipping validation", rg)
            declaration = self._templates.declare(params, naming)
            changes = [ResourceChange(resource_id=naming.scope_id, change_type="Create")]
            changes.append(
                ResourceChange(
                    resource_id=f"{naming.scope_id}/providers/{declaration.static_site.type}/{naming.static_web_app_name}",
                    change_type="Create",
                )
            )
            result.what_if_result = WhatIfResult(
                success=True,
                summary=f"Resource group '{rg}' does not exist; all resources would be created.",
                changes=changes,
            )
            return result

        logger.info("Validating Bicep template...")
        await self._azure.validate_template(rg, template_file, parameters_file, secure)
        logger.info("Template validation passed")

        # 6. デプロイ（またはwhat-if）
        if request.what_if:
            logger.warning("Running in WHAT-IF mode (no changes will be made)")
            result.what_if_result = await self._azure.what_if(rg, template_file, parameters_file, secure)
            return result

        logger.info("Deploying infrastructure as '%s'...", deployment_name)
        await self._azure.create_deployment(rg, deployment_name, template_file, parameters_file, secure)
        logger.info("Deployment completed successfully")

        # 7. 出力の取得と保存（不完全な出力は保存しない）
        raw_outputs = await self._azure.show_outputs(rg, deployment_name)
        result.outputs = DeploymentOutputs.from_arm(raw_outputs)
        result.outputs_file = await self._store.save_outputs(raw_outputs)
        logger.info("Deployment outputs saved to %s", result.outputs_file)
        return result
