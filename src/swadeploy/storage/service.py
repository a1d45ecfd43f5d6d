"""デプロイ出力をローカルファイルに保存するストレージサービス。"""

import json
from pathlib import Path
from typing import Any

from swadeploy.models.deployment import DeploymentOutputs
from swadeploy.models.errors import OutputsNotFoundError

OUTPUTS_FILE = "deployment-outputs.json"


class OutputStore:
    """デプロイ出力（ARMのproperties.outputs）の永続化層。

    下流の自動化（CI、リダイレクトURI更新）が読めるよう、
    プロバイダーが返した形式のままJSONで保存する。
    """

    def __init__(self, output_dir: Path) -> None:
        self._output_dir = output_dir

    @property
    def outputs_file(self) -> Path:
        return self._output_dir / OUTPUTS_FILE

    async def save_outputs(self, outputs: dict[str, Any]) -> Path:
        """出力をファイルシステムに保存する。"""
        self._output_dir.mkdir(parents=True, exist_ok=True)
        self.outputs_file.write_text(json.dumps(outputs, indent=2) + "\n", encoding="utf-8")
        return self.outputs_file

    async def load_raw_outputs(self) -> dict[str, Any]:
        """保存済みの出力を生のマッピングとして読み込む。

        Raises:
            OutputsNotFoundError: 出力ファイルが存在しない場合。
        """
        if not self.outputs_file.exists():
            raise OutputsNotFoundError(str(self.outputs_file))
        data: dict[str, Any] = json.loads(self.outputs_file.read_text(encoding="utf-8"))
        return data

    async def load_outputs(self) -> DeploymentOutputs:
        """保存済みの出力を読み込んでモデルに変換する。"""
        return DeploymentOutputs.from_arm(await self.load_raw_outputs())

    async def delete_outputs(self) -> None:
        if self.outputs_file.exists():
            self.outputs_file.unlink()
