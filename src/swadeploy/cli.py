"""オペレーター向けデプロイCLI。

Usage:
    swadeploy [environment] [--what-if]

Examples:
    swadeploy prod
    swadeploy dev --what-if
"""

import argparse
import asyncio
import logging
import os
import sys
from enum import Enum
from pathlib import Path

from pydantic import SecretStr

from swadeploy.config import DeployConfig, ServerConfig
from swadeploy.logging_config import configure_logging
from swadeploy.models.deployment import DeploymentRequest, DeploymentResult
from swadeploy.models.errors import DeploymentError, SwaDeployError, TemplateValidationError, ValidationError
from swadeploy.services.deploy import DeploymentPipeline

logger = logging.getLogger("swadeploy.cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

_RULE = "═" * 59

PALETTE_KEYS = ("heading", "info", "success", "warning", "error", "reset")


class ColorMode(str, Enum):
    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"


def _supports_color_output() -> bool:
    stream = getattr(sys.stdout, "isatty", None)
    return bool(stream and stream()) and os.environ.get("NO_COLOR") is None


def build_console_palette(requested_mode: str) -> dict[str, str]:
    try:
        mode = ColorMode(requested_mode or ColorMode.AUTO.value)
    except ValueError:
        mode = ColorMode.AUTO

    use_color = mode is ColorMode.ALWAYS or (mode is ColorMode.AUTO and _supports_color_output())
    palette = {key: "" for key in PALETTE_KEYS}
    if use_color:
        palette.update({
            "heading": "\033[1m",
            "info": "\033[0;34m",
            "success": "\033[0;32m",
            "warning": "\033[1;33m",
            "error": "\033[0;31m",
            "reset": "\033[0m",
        })
    return palette


def parse_tags(values: list[str] | None) -> dict[str, str]:
    """KEY=VALUE 形式のタグ指定を辞書にする。

    Raises:
        ValidationError: '=' を含まない、またはキーが空の場合。
    """
    tags: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValidationError(f"Invalid tag '{item}': expected KEY=VALUE")
        tags[key.strip()] = value.strip()
    return tags


def prompt_value(label: str, default: str) -> str:
    """標準入力から値を読む。入力が空なら既定値を返す。"""
    suffix = f" [{default}]" if default else ""
    try:
        value = input(f"{label}{suffix}: ")
    except EOFError:
        value = ""
    return value.strip() or default


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="swadeploy",
        description="Deploy the Azure Static Web App (Entra ID auth) with the Azure CLI.",
    )
    parser.add_argument("environment", nargs="?", default="prod", help="Environment name (default: prod).")
    parser.add_argument(
        "--what-if",
        action="store_true",
        help="Preview the deployment without making changes.",
    )
    parser.add_argument("--application-name", help="Application name used in resource names.")
    parser.add_argument("--sku", help="Static Web App tier (Free or Standard).")
    parser.add_argument("--location", help="Region for the Static Web App (default: $AZURE_LOCATION).")
    parser.add_argument(
        "--tag",
        action="append",
        metavar="KEY=VALUE",
        help="Additional resource tag. Can be repeated.",
    )
    parser.add_argument("--client-id", help="Entra ID application (client) ID. Prompted when omitted.")
    parser.add_argument("--tenant-id", help="Entra ID tenant ID. Defaults to the signed-in tenant.")
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory for the generated template and deployment-outputs.json.",
    )
    parser.add_argument(
        "--render-only",
        action="store_true",
        help="Write main.bicep and the parameter file without calling Azure.",
    )
    parser.add_argument(
        "--auth-config",
        type=Path,
        metavar="PATH",
        help="Write staticwebapp.config.json with the tenant ID substituted.",
    )
    parser.add_argument(
        "--color",
        choices=[mode.value for mode in ColorMode],
        default=ColorMode.AUTO.value,
        help="Colorize console output.",
    )
    parser.add_argument("--verbose", action="store_true", help="Show Azure CLI commands as they run.")
    return parser.parse_args(argv)


def _request_from_args(args: argparse.Namespace) -> DeploymentRequest:
    return DeploymentRequest(
        environment_name=args.environment,
        what_if=args.what_if,
        application_name=args.application_name,
        sku=args.sku,
        location=args.location,
        tags=parse_tags(args.tag),
        client_id=SecretStr(args.client_id) if args.client_id else None,
        tenant_id=SecretStr(args.tenant_id) if args.tenant_id else None,
    )


def print_banner(environment: str, palette: dict[str, str]) -> None:
    print("")
    print(_RULE)
    print(f"  {palette['heading']}Azure Static Web App - Local Deployment{palette['reset']}")
    print(f"  Environment: {environment}")
    print(_RULE)
    print("")


def _success(message: str, palette: dict[str, str]) -> None:
    print(f"{palette['success']}✓{palette['reset']} {message}")


def print_result(result: DeploymentResult, palette: dict[str, str]) -> None:
    """デプロイ結果と手動で行う後続作業を表示する。"""
    if result.what_if_result is not None:
        print("")
        logger.info("=== What-if Preview ===")
        print(result.what_if_result.summary)
        for change in result.what_if_result.changes:
            print(f"  {change.change_type:<10} {change.resource_id}")
        print("")
        return

    outputs = result.outputs
    if outputs is None:
        print(f"Static Web App Name: {result.naming.static_web_app_name}")
        print(f"Template directory:  {result.template_dir}")
        return

    print("")
    logger.info("=== Deployment Outputs ===")
    print(f"Static Web App Name: {outputs.static_web_app_name}")
    print(f"Default Hostname:    {outputs.default_hostname}")
    print(f"Site URL:            {outputs.site_url}")
    print("")
    logger.warning("IMPORTANT: Update your Entra ID app registration redirect URI:")
    print(f"  {outputs.redirect_uri}")
    print("")
    logger.warning("Set GitHub repository variables:")
    print(f"  AZURE_RESOURCE_GROUP={result.resource_group}")
    print(f"  AZURE_STATIC_WEB_APP_NAME={outputs.static_web_app_name}")
    # クライアントIDは画面にも出さない
    print("  ENTRA_CLIENT_ID=<the client ID entered above>")
    print("")


def _write_auth_config(pipeline: DeploymentPipeline, result: DeploymentResult, path: Path) -> None:
    tenant_id = result.parameters.entra_tenant_id.get_secret_value() if result.parameters else ""
    pipeline.templates.write_auth_config(tenant_id, path)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    palette = build_console_palette(args.color)
    server_config = ServerConfig()
    configure_logging("DEBUG" if args.verbose else server_config.log_level, palette)

    pipeline = DeploymentPipeline.from_config(
        server_config,
        DeployConfig(),
        work_dir=args.output_dir,
        prompt=prompt_value,
    )

    try:
        request = _request_from_args(args)
        if args.render_only:
            result = pipeline.render(request)
        else:
            print_banner(request.environment_name, palette)
            result = asyncio.run(pipeline.run(request))
        if args.auth_config is not None:
            _write_auth_config(pipeline, result, args.auth_config)
            _success(f"Auth configuration written to {args.auth_config}", palette)
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return EXIT_INTERRUPTED
    except (TemplateValidationError, DeploymentError) as e:
        logger.error("%s", e)
        if e.stderr:
            print(e.stderr.rstrip(), file=sys.stderr)
        return EXIT_FAILURE
    except SwaDeployError as e:
        logger.error("%s", e)
        return EXIT_FAILURE

    print_result(result, palette)
    if args.render_only:
        _success(f"Template written to {result.template_dir}", palette)
        return EXIT_OK
    if result.outputs_file is not None:
        _success(f"Deployment outputs saved to {result.outputs_file}", palette)
    print("")
    _success("Deployment process completed!", palette)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
