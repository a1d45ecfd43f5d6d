"""TemplateServiceのユニットテスト。"""

import json
from pathlib import Path

import pytest

from swadeploy.models.errors import ConfigNotFoundError, TemplateNotFoundError, ValidationError
from swadeploy.services.naming import derive_naming, resource_group_scope
from swadeploy.services.template import PARAMETERS_FILE, TEMPLATE_FILE, TemplateService

SCOPE = resource_group_scope("00000000-0000-0000-0000-000000000001", "rg-wikidocs-test")


class TestEnvironmentPresets:
    def test_load_known_environment(self, template_service: TemplateService) -> None:
        raw = template_service.load_environment("prod")
        assert raw["environment_name"] == "prod"
        assert raw["sku"] == "Standard"
        assert raw["tags"] == {"Project": "wikidocs", "Criticality": "high"}

    def test_unknown_environment_uses_defaults(self, template_service: TemplateService) -> None:
        raw = template_service.load_environment("qa")
        assert raw["sku"] == "Free"
        assert raw["application_name"] == "wikidocs"

    def test_list_environments(self, template_service: TemplateService) -> None:
        data = template_service.list_environments()
        assert set(data["environments"]) == {"dev", "staging", "prod"}

    def test_missing_config_file(self, tmp_path: Path) -> None:
        service = TemplateService(config_dir=tmp_path)
        with pytest.raises(ConfigNotFoundError) as exc_info:
            service.build_parameters("prod")
        assert exc_info.value.path == str(tmp_path / "environments.yaml")


class TestBuildParameters:
    def test_overrides_applied(self, template_service: TemplateService) -> None:
        params = template_service.build_parameters("dev", sku="Standard", location="eastasia")
        assert params.sku == "Standard"
        assert params.location == "eastasia"

    def test_none_overrides_ignored(self, template_service: TemplateService) -> None:
        params = template_service.build_parameters("prod", sku=None, application_name=None)
        assert params.sku == "Standard"
        assert params.application_name == "wikidocs"

    def test_tags_merged_per_key(self, template_service: TemplateService) -> None:
        params = template_service.build_parameters("dev", tags={"Owner": "docs", "Project": "override"})
        assert params.tags == {"Project": "override", "Lifecycle": "ephemeral", "Owner": "docs"}

    def test_invalid_override(self, template_service: TemplateService) -> None:
        with pytest.raises(ValidationError):
            template_service.build_parameters("dev", location="unsupported-region")


class TestDeclare:
    def test_without_credentials_has_no_auth_settings(self, template_service: TemplateService) -> None:
        params = template_service.build_parameters("dev")
        declaration = template_service.declare(params, derive_naming("wikidocs", "dev", SCOPE))
        assert declaration.app_settings is None
        assert declaration.resource_count == 1

    def test_auth_settings_are_child_of_site(self, template_service: TemplateService) -> None:
        params = template_service.build_parameters("dev").with_credentials("client", "tenant")
        naming = derive_naming("wikidocs", "dev", SCOPE)
        declaration = template_service.declare(params, naming)

        settings = declaration.app_settings
        assert settings is not None
        assert settings.parent == naming.static_web_app_name
        assert settings.settings == {"AZURE_CLIENT_ID": "entraClientId", "AZURE_TENANT_ID": "entraTenantId"}
        assert declaration.resource_count == 2

    def test_auth_settings_forced(self, template_service: TemplateService) -> None:
        params = template_service.build_parameters("dev")
        declaration = template_service.declare(params, derive_naming("wikidocs", "dev", SCOPE), True)
        assert declaration.app_settings is not None

    def test_site_tags_include_system_tags(self, template_service: TemplateService) -> None:
        params = template_service.build_parameters("dev", tags={"Environment": "spoofed"})
        declaration = template_service.declare(params, derive_naming("wikidocs", "dev", SCOPE))
        tags = declaration.static_site.tags
        assert tags["Environment"] == "dev"
        assert tags["ManagedBy"] == "Bicep"
        assert tags["Project"] == "wikidocs"


class TestRenderBicep:
    def test_parameters_and_outputs(self, template_service: TemplateService) -> None:
        params = template_service.build_parameters("dev").with_credentials("client", "tenant")
        bicep = template_service.render_bicep(template_service.declare(params, derive_naming("wikidocs", "dev", SCOPE)))

        assert "@maxLength(10)\nparam environmentName string" in bicep
        assert "@maxLength(20)\nparam applicationName string = 'wikidocs'" in bicep
        assert "  'eastasia'" in bicep
        assert "  'Standard'" in bicep
        assert "@secure()\n@description('Entra ID application (client) ID')\nparam entraClientId string" in bicep
        assert "param resourceToken string = uniqueString(resourceGroup().id)" in bicep
        assert "var allTags = union(tags, systemTags)" in bicep
        assert "resource staticWebApp 'Microsoft.Web/staticSites@2023-01-01'" in bicep
        for output in ("staticWebAppId", "staticWebAppName", "defaultHostname", "siteUrl", "location"):
            assert f"output {output} string" in bicep
        assert "output siteUrl string = 'https://${staticWebApp.properties.defaultHostname}'" in bicep

    def test_auth_settings_use_parent(self, template_service: TemplateService) -> None:
        params = template_service.build_parameters("dev").with_credentials("client", "tenant")
        bicep = template_service.render_bicep(template_service.declare(params, derive_naming("wikidocs", "dev", SCOPE)))

        child = bicep[bicep.index("resource appsettings 'Microsoft.Web/staticSites/config@2023-01-01'") :]
        assert child.splitlines()[1] == "  parent: staticWebApp"
        assert bicep.index("resource staticWebApp ") < bicep.index("resource appsettings ")
        assert "    AZURE_CLIENT_ID: entraClientId" in bicep
        assert "    AZURE_TENANT_ID: entraTenantId" in bicep

    def test_secrets_never_rendered(self, template_service: TemplateService) -> None:
        params = template_service.build_parameters("dev").with_credentials("client-secret-id", "tenant-secret-id")
        bicep = template_service.render_bicep(template_service.declare(params, derive_naming("wikidocs", "dev", SCOPE)))
        assert "client-secret-id" not in bicep
        assert "tenant-secret-id" not in bicep

    def test_no_auth_settings_without_credentials(self, template_service: TemplateService) -> None:
        params = template_service.build_parameters("dev")
        bicep = template_service.render_bicep(template_service.declare(params, derive_naming("wikidocs", "dev", SCOPE)))
        assert "Microsoft.Web/staticSites/config" not in bicep


class TestExport:
    def test_writes_files(self, template_service: TemplateService, tmp_path: Path) -> None:
        params = template_service.build_parameters("dev").with_credentials("client-secret-id", "tenant")
        naming = derive_naming("wikidocs", "dev", SCOPE)
        result = template_service.export(params, naming, tmp_path / "out")

        assert result["template_dir"] == str(tmp_path / "out")
        assert set(result["template_files"]) == {TEMPLATE_FILE, PARAMETERS_FILE}
        assert (tmp_path / "out" / TEMPLATE_FILE).exists()

        parameters = json.loads((tmp_path / "out" / PARAMETERS_FILE).read_text(encoding="utf-8"))
        assert parameters["parameters"]["resourceToken"]["value"] == naming.resource_token
        assert "client-secret-id" not in (tmp_path / "out" / PARAMETERS_FILE).read_text(encoding="utf-8")

    def test_export_is_deterministic(self, template_service: TemplateService, tmp_path: Path) -> None:
        params = template_service.build_parameters("prod")
        naming = derive_naming("wikidocs", "prod", SCOPE)
        first = template_service.export(params, naming, tmp_path / "a")
        second = template_service.export(params, naming, tmp_path / "b")
        assert first["template_files"] == second["template_files"]


class TestAuthConfig:
    def test_render_substitutes_tenant(self, template_service: TemplateService) -> None:
        content = template_service.render_auth_config("tenant-123")
        assert "<TENANT_ID>" not in content
        data = json.loads(content)
        registration = data["auth"]["identityProviders"]["azureActiveDirectory"]["registration"]
        assert registration["openIdIssuer"] == "https://login.microsoftonline.com/tenant-123/v2.0"

    def test_empty_tenant(self, template_service: TemplateService) -> None:
        with pytest.raises(ValidationError):
            template_service.render_auth_config("  ")

    def test_missing_template(self, tmp_path: Path) -> None:
        service = TemplateService(config_dir=tmp_path)
        with pytest.raises(TemplateNotFoundError):
            service.render_auth_config("tenant")

    def test_template_without_placeholder(self, template_service: TemplateService, tmp_path: Path) -> None:
        path = tmp_path / "staticwebapp.config.json"
        path.write_text("{}", encoding="utf-8")
        with pytest.raises(ValidationError, match="placeholder"):
            template_service.render_auth_config("tenant", path)

    def test_write_auth_config(self, template_service: TemplateService, tmp_path: Path) -> None:
        destination = tmp_path / "site" / "staticwebapp.config.json"
        written = template_service.write_auth_config("tenant-123", destination)
        assert written == destination
        assert "tenant-123" in destination.read_text(encoding="utf-8")
