"""Azure CLIをサブプロセスとして呼び出すアダプター。"""

import asyncio
import json
import logging
import shutil
from collections import Counter
from pathlib import Path
from typing import Any

from swadeploy.models.deployment import AccountInfo, AzResult, ResourceChange, WhatIfResult
from swadeploy.models.errors import DeploymentError, PrerequisiteError, TemplateValidationError

logger = logging.getLogger(__name__)

AZURE_CLI_INSTALL_URL = "https://aka.ms/azure-cli"

_REDACTED = "***"

# what-ifサマリーに表示する変更種別と表示名
_CHANGE_LABELS: tuple[tuple[str, str], ...] = (
    ("Create", "to create"),
    ("Modify", "to modify"),
    ("Delete", "to delete"),
    ("NoChange", "unchanged"),
)


def _redact(args: list[str], secrets: list[str]) -> str:
    """コマンドラインからシークレット値を伏せ字にする。"""
    line = " ".join(args)
    for secret in secrets:
        if secret:
            line = line.replace(secret, _REDACTED)
    return line


def _summarize_changes(changes: list[ResourceChange]) -> str:
    """what-ifの変更リストからサマリー行を作る。"""
    if not any(c.change_type not in ("NoChange", "Ignore") for c in changes):
        return "No changes. Infrastructure is up-to-date."
    counts = Counter(c.change_type for c in changes)
    parts = [f"{counts.get(kind, 0)} {label}" for kind, label in _CHANGE_LABELS]
    return ", ".join(parts)


class AzureCliService:
    """az コマンドを1つずつ同期的に待ち合わせて実行する。"""

    def __init__(self, az_executable: str = "az") -> None:
        self._az = az_executable

    async def _run_subprocess(self, args: list[str], cwd: str | None = None) -> tuple[int, str, str]:
        """サブプロセスを非同期で実行し、結果を返す。

        Args:
            args: 実行するコマンドと引数のリスト。
            cwd: 作業ディレクトリ。

        Returns:
            (exit_code, stdout, stderr) のタプル。
        """
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
        stdout_bytes, stderr_bytes = await proc.communicate()
        return (
            proc.returncode or 0,
            stdout_bytes.decode("utf-8", errors="replace"),
            stderr_bytes.decode("utf-8", errors="replace"),
        )

    async def run_az(self, args: list[str], secrets: list[str] | None = None) -> AzResult:
        """az サブコマンドを実行する。ログにはシークレットを出さない。"""
        command = [self._az, *args]
        logger.debug("Running: %s", _redact(command, secrets or []))
        exit_code, stdout, stderr = await self._run_subprocess(command)
        return AzResult(success=exit_code == 0, stdout=stdout, stderr=stderr, exit_code=exit_code)

    @staticmethod
    def _parse_json(result: AzResult, what: str) -> Any:
        try:
            return json.loads(result.stdout) if result.stdout.strip() else None
        except json.JSONDecodeError as e:
            raise DeploymentError(f"Unexpected output from {what}: {e}", result.stdout, result.exit_code) from e

    async def check_prerequisites(self) -> AccountInfo:
        """CLIのインストール状況とログイン状態を確認する。

        Returns:
            ログイン中のアカウント情報。

        Raises:
            PrerequisiteError: az未インストール、Bicep導入失敗、未ログインの場合。
        """
        if shutil.which(self._az) is None:
            raise PrerequisiteError("Azure CLI is not installed", f"Please install it from {AZURE_CLI_INSTALL_URL}")

        version = await self.run_az(["version", "--query", '"azure-cli"', "--output", "tsv"])
        if version.success:
            logger.info("Azure CLI: %s", version.stdout.strip())

        bicep = await self.run_az(["bicep", "version"])
        if not bicep.success:
            logger.warning("Bicep CLI not found. Installing...")
            installed = await self.run_az(["bicep", "install"])
            if not installed.success:
                raise PrerequisiteError("Bicep CLI installation failed", "Run: az bicep install")
            bicep = await self.run_az(["bicep", "version"])
        logger.info("Bicep: %s", bicep.stdout.strip())

        account = await self.run_az(["account", "show", "--output", "json"])
        if not account.success:
            raise PrerequisiteError("Not logged into Azure", "Please run: az login")

        data = self._parse_json(account, "az account show") or {}
        info = AccountInfo(
            subscription_id=data.get("id", ""),
            subscription_name=data.get("name", ""),
            tenant_id=data.get("tenantId", ""),
            user_name=(data.get("user") or {}).get("name", ""),
        )
        if not info.subscription_id:
            raise PrerequisiteError("No active Azure subscription", "Please run: az account set --subscription <id>")
        return info

    async def resource_group_exists(self, name: str) -> bool:
        result = await self.run_az(["group", "exists", "--name", name, "--output", "tsv"])
        if not result.success:
            raise DeploymentError(f"Failed to query resource group '{name}'", result.stderr, result.exit_code)
        return result.stdout.strip().lower() == "true"

    async def create_resource_group(self, name: str, location: str, tags: dict[str, str]) -> None:
        args = ["group", "create", "--name", name, "--location", location]
        if tags:
            args.extend(["--tags", *(f"{k}={v}" for k, v in tags.items())])
        args.extend(["--output", "none"])
        result = await self.run_az(args)
        if not result.success:
            raise DeploymentError(f"Failed to create resource group '{name}'", result.stderr, result.exit_code)

    async def ensure_resource_group(self, name: str, location: str, tags: dict[str, str]) -> bool:
        """リソースグループが無ければ作成する。

        Returns:
            新規作成した場合はTrue。
        """
        if await self.resource_group_exists(name):
            logger.info("Resource group '%s' already exists", name)
            return False
        logger.info("Creating resource group '%s' in '%s'...", name, location)
        await self.create_resource_group(name, location, tags)
        return True

    @staticmethod
    def _template_args(
        resource_group: str,
        template_file: Path,
        parameters_file: Path,
        secure_parameters: dict[str, str],
    ) -> list[str]:
        args = [
            "--resource-group",
            resource_group,
            "--template-file",
            str(template_file),
            "--parameters",
            f"@{parameters_file}",
        ]
        inline = [f"{k}={v}" for k, v in secure_parameters.items() if v]
        if inline:
            args.extend(["--parameters", *inline])
        return args

    async def validate_template(
        self,
        resource_group: str,
        template_file: Path,
        parameters_file: Path,
        secure_parameters: dict[str, str],
    ) -> AzResult:
        """テンプレートをドライランで検証する。

        Raises:
            TemplateValidationError: プロビジョニングエンジンが拒否した場合。
        """
        args = [
            "deployment",
            "group",
            "validate",
            *self._template_args(resource_group, template_file, parameters_file, secure_parameters),
            "--output",
            "none",
        ]
        result = await self.run_az(args, secrets=list(secure_parameters.values()))
        if not result.success:
            raise TemplateValidationError("Template validation failed", result.stderr, result.exit_code)
        return result

    async def what_if(
        self,
        resource_group: str,
        template_file: Path,
        parameters_file: Path,
        secure_parameters: dict[str, str],
    ) -> WhatIfResult:
        """what-ifで変更内容をプレビューする。クラウド側の状態は変更しない。

        Raises:
            DeploymentError: what-ifの実行に失敗した場合。
        """
        args = [
            "deployment",
            "group",
            "what-if",
            *self._template_args(resource_group, template_file, parameters_file, secure_parameters),
            "--no-pretty-print",
            "--output",
            "json",
        ]
        result = await self.run_az(args, secrets=list(secure_parameters.values()))
        if not result.success:
            raise DeploymentError("What-if preview failed", result.stderr, result.exit_code)

        data = self._parse_json(result, "az deployment group what-if") or {}
        changes = [
            ResourceChange(resource_id=c.get("resourceId", ""), change_type=c.get("changeType", "Unsupported"))
            for c in data.get("changes", [])
        ]
        return WhatIfResult(success=True, summary=_summarize_changes(changes), changes=changes)

    async def create_deployment(
        self,
        resource_group: str,
        deployment_name: str,
        template_file: Path,
        parameters_file: Path,
        secure_parameters: dict[str, str],
    ) -> dict[str, Any]:
        """デプロイを実行し、プロバイダーの応答を返す。

        Raises:
            DeploymentError: 調整（reconciliation）中に失敗した場合。
        """
        args = [
            "deployment",
            "group",
            "create",
            "--name",
            deployment_name,
            *self._template_args(resource_group, template_file, parameters_file, secure_parameters),
            "--output",
            "json",
        ]
        result = await self.run_az(args, secrets=list(secure_parameters.values()))
        if not result.success:
            raise DeploymentError("Deployment failed", result.stderr, result.exit_code)
        return self._parse_json(result, "az deployment group create") or {}

    async def show_outputs(self, resource_group: str, deployment_name: str) -> dict[str, Any]:
        """デプロイの出力値（properties.outputs）を取得する。"""
        result = await self.run_az(
            [
                "deployment",
                "group",
                "show",
                "--resource-group",
                resource_group,
                "--name",
                deployment_name,
                "--query",
                "properties.outputs",
                "--output",
                "json",
            ]
        )
        if not result.success:
            raise DeploymentError(
                f"Failed to retrieve outputs for deployment '{deployment_name}'", result.stderr, result.exit_code
            )
        return self._parse_json(result, "az deployment group show") or {}
