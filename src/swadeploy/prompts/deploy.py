"""デプロイ後作業のMCPプロンプト定義。"""

from fastmcp import FastMCP


def register_deploy_prompts(mcp: FastMCP) -> None:
    """デプロイ関連のMCPプロンプトを登録する。"""

    @mcp.prompt()
    async def deployment_workflow(environment_name: str = "prod") -> str:
        """プレビューから本番デプロイまでの流れをガイドするプロンプト。

        Args:
            environment_name: 環境名。
        """
        return (
            f"環境 `{environment_name}` にStatic Web Appをデプロイします。\n\n"
            "## 手順\n\n"
            "1. `validate_deployment_parameters` ツールでパラメータを検証してください。\n"
            "2. `preview_deployment` ツールでwhat-ifを実行し、`what_if_result.summary` を利用者に提示してください。\n"
            "3. 利用者の承認を得てから `run_deployment` ツールを実行してください。\n"
            "4. 成功したら `get_deployment_outputs` ツールで出力値を取得してください。\n\n"
            "## エラー時の対応\n\n"
            "- `PrerequisiteError` の場合は `message` に含まれる対処方法を利用者に伝えてください。\n"
            "- `TemplateValidationError` や `DeploymentError` の場合は `stderr` を分析してください。\n"
            "- デプロイはロールバックされません。原因を解消したら同じ入力で再実行できます。\n"
        )

    @mcp.prompt()
    async def post_deployment_checklist(default_hostname: str) -> str:
        """デプロイ後に手動で行う設定をガイドするプロンプト。

        Args:
            default_hostname: Static Web Appの既定ホスト名。
        """
        return (
            "デプロイ後に以下の設定を行ってください。\n\n"
            "## Entra IDアプリ登録\n\n"
            "リダイレクトURIに次の値を追加してください。\n\n"
            f"- `https://{default_hostname}/.auth/login/aad/callback`\n\n"
            "## GitHubリポジトリ変数\n\n"
            "- `AZURE_RESOURCE_GROUP`: デプロイ先のリソースグループ名\n"
            "- `AZURE_STATIC_WEB_APP_NAME`: `get_deployment_outputs` の `static_web_app_name`\n"
            "- `ENTRA_CLIENT_ID`: デプロイ時に入力したクライアントID\n\n"
            "## 注意事項\n\n"
            "- `render_auth_config` ツールでテナントIDを埋めた `staticwebapp.config.json` を生成し、"
            "アプリのルートに配置してください。\n"
            "- デプロイトークンやクライアントIDをチャットに貼り付けないでください。\n"
        )
