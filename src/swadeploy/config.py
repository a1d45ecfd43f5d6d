"""swadeployの設定管理。"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

_PACKAGE_ROOT = Path(__file__).parent
# 環境プリセットと認証設定テンプレートはパッケージに同梱する
_DATA_DIR = _PACKAGE_ROOT / "data"


class DeployConfig(BaseSettings):
    """デプロイ先の設定。AZURE_ で始まる環境変数で上書きできる。"""

    model_config = {"env_prefix": "AZURE_"}

    resource_group: str = "rg-wikidocs-prod"
    location: str = "centralus"
    # 空の場合はログイン中のサブスクリプションを使う
    subscription_id: str = ""


class ServerConfig(BaseSettings):
    """ツール・サーバー設定。環境変数から読み込み可能。"""

    model_config = {"env_prefix": "SWADEPLOY_"}

    # 既定はカレントディレクトリ配下
    work_dir: Path = Field(default_factory=lambda: Path.cwd() / ".swadeploy")
    config_dir: Path = _DATA_DIR
    az_executable: str = "az"
    log_level: str = "INFO"

    # MCPサーバー
    host: str = "127.0.0.1"
    port: int = 8000
    url_token: str = ""
