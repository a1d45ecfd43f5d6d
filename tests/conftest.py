"""テスト共通フィクスチャ。"""

import json
from datetime import datetime
from pathlib import Path

import pytest

from swadeploy.config import DeployConfig, ServerConfig
from swadeploy.services.azure import AzureCliService
from swadeploy.services.deploy import DeploymentPipeline
from swadeploy.services.template import TemplateService
from swadeploy.storage.service import OutputStore

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000001"
TENANT_ID = "11111111-1111-1111-1111-111111111111"
CLIENT_ID = "22222222-2222-2222-2222-222222222222"
DEFAULT_HOSTNAME = "happy-sea-0123abcd.5.azurestaticapps.net"

ACCOUNT = {
    "id": SUBSCRIPTION_ID,
    "name": "Test Subscription",
    "tenantId": TENANT_ID,
    "user": {"name": "operator@example.com"},
}


def arm_outputs(name: str = "stapp-wikidocs-dev-abc", hostname: str = DEFAULT_HOSTNAME) -> dict:
    """az deployment group show --query properties.outputs の応答。"""
    return {
        "staticWebAppId": {
            "type": "String",
            "value": f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg-wikidocs-test"
            f"/providers/Microsoft.Web/staticSites/{name}",
        },
        "staticWebAppName": {"type": "String", "value": name},
        "defaultHostname": {"type": "String", "value": hostname},
        "siteUrl": {"type": "String", "value": f"https://{hostname}"},
        "deploymentToken": {"type": "String", "value": "deployment-token-value"},
        "location": {"type": "String", "value": "Central US"},
        "environmentName": {"type": "String", "value": "dev"},
    }


class FakeAzureCli:
    """_run_subprocess の代替。サブコマンドの前方一致で応答を返し、呼び出しを記録する。"""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self._responses: dict[tuple[str, ...], tuple[int, str, str]] = {}
        self.respond("version", stdout="2.67.0\n")
        self.respond("bicep", "version", stdout="Bicep CLI version 0.30.23\n")
        self.respond("account", "show", stdout=json.dumps(ACCOUNT))
        self.respond("group", "exists", stdout="true\n")
        self.respond(
            "deployment",
            "group",
            "what-if",
            stdout=json.dumps({"status": "Succeeded", "changes": []}),
        )
        self.respond("deployment", "group", "create", stdout=json.dumps({"properties": {}}))
        self.respond("deployment", "group", "show", stdout=json.dumps(arm_outputs()))

    def respond(self, *prefix: str, exit_code: int = 0, stdout: str = "", stderr: str = "") -> None:
        self._responses[prefix] = (exit_code, stdout, stderr)

    async def run(self, args: list[str], cwd: str | None = None) -> tuple[int, str, str]:
        self.calls.append(list(args))
        subcommand = tuple(args[1:])
        for prefix in sorted(self._responses, key=len, reverse=True):
            if subcommand[: len(prefix)] == prefix:
                return self._responses[prefix]
        return (0, "", "")

    def called(self, *prefix: str) -> list[list[str]]:
        """指定したサブコマンドで始まる呼び出しを返す。"""
        return [c for c in self.calls if tuple(c[1 : len(prefix) + 1]) == prefix]


class FakePrompt:
    """対話入力の代替。ラベルごとの回答を返し、質問を記録する。"""

    def __init__(self, answers: dict[str, str] | None = None) -> None:
        self.answers = answers or {}
        self.asked: list[tuple[str, str]] = []

    def __call__(self, label: str, default: str) -> str:
        self.asked.append((label, default))
        return self.answers.get(label, default)


@pytest.fixture
def tmp_work_dir(tmp_path: Path) -> Path:
    """テスト用の一時作業ディレクトリ。"""
    return tmp_path / "swadeploy-test"


@pytest.fixture
def config_dir() -> Path:
    """設定ファイルディレクトリ。"""
    return Path(__file__).parent.parent / "src" / "swadeploy" / "data"


@pytest.fixture
def template_service(config_dir: Path) -> TemplateService:
    return TemplateService(config_dir=config_dir)


@pytest.fixture
def output_store(tmp_work_dir: Path) -> OutputStore:
    return OutputStore(output_dir=tmp_work_dir)


@pytest.fixture
def fake_az() -> FakeAzureCli:
    return FakeAzureCli()


@pytest.fixture
def azure_service(fake_az: FakeAzureCli, monkeypatch: pytest.MonkeyPatch) -> AzureCliService:
    """az がインストール済みで、サブプロセスをFakeAzureCliに置き換えたAzureCliService。"""
    service = AzureCliService()
    monkeypatch.setattr("swadeploy.services.azure.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(service, "_run_subprocess", fake_az.run)
    return service


@pytest.fixture
def deploy_config() -> DeployConfig:
    return DeployConfig(resource_group="rg-wikidocs-test", location="centralus", subscription_id="")


@pytest.fixture
def prompt() -> FakePrompt:
    return FakePrompt({"Entra ID Client ID": CLIENT_ID})


@pytest.fixture
def pipeline(
    azure_service: AzureCliService,
    template_service: TemplateService,
    output_store: OutputStore,
    deploy_config: DeployConfig,
    tmp_work_dir: Path,
    prompt: FakePrompt,
) -> DeploymentPipeline:
    """テスト用DeploymentPipeline。時刻は固定。"""
    return DeploymentPipeline(
        azure=azure_service,
        templates=template_service,
        store=output_store,
        deploy_config=deploy_config,
        work_dir=tmp_work_dir,
        prompt=prompt,
        clock=lambda: datetime(2026, 1, 15, 9, 30, 0),
    )


@pytest.fixture
def server_config(tmp_work_dir: Path, config_dir: Path) -> ServerConfig:
    """テスト用ServerConfig。"""
    return ServerConfig(work_dir=tmp_work_dir, config_dir=config_dir)
