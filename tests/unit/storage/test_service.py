"""OutputStoreのユニットテスト。"""

import json

import pytest
from conftest import DEFAULT_HOSTNAME, arm_outputs

from swadeploy.models.errors import OutputsNotFoundError
from swadeploy.storage.service import OUTPUTS_FILE, OutputStore


class TestOutputStore:
    async def test_save_and_load(self, output_store: OutputStore) -> None:
        path = await output_store.save_outputs(arm_outputs())
        assert path.name == OUTPUTS_FILE

        outputs = await output_store.load_outputs()
        assert outputs.default_hostname == DEFAULT_HOSTNAME
        assert outputs.site_url == f"https://{DEFAULT_HOSTNAME}"

    async def test_saved_in_provider_format(self, output_store: OutputStore) -> None:
        await output_store.save_outputs(arm_outputs())
        raw = json.loads(output_store.outputs_file.read_text(encoding="utf-8"))
        assert raw["staticWebAppName"] == {"type": "String", "value": "stapp-wikidocs-dev-abc"}

    async def test_save_overwrites_existing(self, output_store: OutputStore) -> None:
        await output_store.save_outputs(arm_outputs(name="stapp-old"))
        await output_store.save_outputs(arm_outputs(name="stapp-new"))
        outputs = await output_store.load_outputs()
        assert outputs.static_web_app_name == "stapp-new"

    async def test_load_missing_raises(self, output_store: OutputStore) -> None:
        with pytest.raises(OutputsNotFoundError) as exc_info:
            await output_store.load_outputs()
        assert exc_info.value.path == str(output_store.outputs_file)

    async def test_delete_outputs(self, output_store: OutputStore) -> None:
        await output_store.save_outputs(arm_outputs())
        await output_store.delete_outputs()
        with pytest.raises(OutputsNotFoundError):
            await output_store.load_raw_outputs()

    async def test_delete_missing_is_noop(self, output_store: OutputStore) -> None:
        await output_store.delete_outputs()
        assert not output_store.outputs_file.exists()
