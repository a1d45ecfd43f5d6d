"""swadeployのカスタム例外クラス。"""


class SwaDeployError(Exception):
    """swadeployの基底例外クラス。"""


class ValidationError(SwaDeployError):
    """パラメータ値が不正な場合の例外。クラウド呼び出し前に送出される。"""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class PrerequisiteError(SwaDeployError):
    """必要なCLIツールの欠如や未ログイン状態を表す例外。"""

    def __init__(self, message: str, remediation: str = "") -> None:
        super().__init__(f"{message}. {remediation}" if remediation else message)
        self.remediation = remediation


class TemplateValidationError(SwaDeployError):
    """プロビジョニングエンジンがテンプレートを拒否した場合の例外。"""

    def __init__(self, message: str, stderr: str, exit_code: int) -> None:
        super().__init__(message)
        self.stderr = stderr
        self.exit_code = exit_code


class DeploymentError(SwaDeployError):
    """デプロイ実行中の失敗。プロバイダーの診断内容を保持する。"""

    def __init__(self, message: str, stderr: str = "", exit_code: int = 1) -> None:
        super().__init__(message)
        self.stderr = stderr
        self.exit_code = exit_code


class OutputsNotFoundError(SwaDeployError):
    """デプロイ出力ファイルが存在しない場合の例外。"""

    def __init__(self, path: str) -> None:
        super().__init__(f"Deployment outputs not found: {path}. Run a deployment without --what-if first.")
        self.path = path


class TemplateNotFoundError(SwaDeployError):
    """同梱テンプレートが見つからない場合の例外。"""

    def __init__(self, template_name: str) -> None:
        super().__init__(f"Template not found: {template_name}")
        self.template_name = template_name


class ConfigNotFoundError(SwaDeployError):
    """設定ディレクトリに必要なファイルが無い場合の例外。"""

    def __init__(self, path: str) -> None:
        super().__init__(f"Configuration file not found: {path}. Check SWADEPLOY_CONFIG_DIR.")
        self.path = path
