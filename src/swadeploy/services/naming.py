"""リソース名とタグの導出。副作用を持たない純粋関数のみ。"""

import base64
import hashlib

from swadeploy.models.deployment import DerivedNaming
from swadeploy.models.parameters import STATIC_WEB_APP_PREFIX, TOKEN_LENGTH

MANAGED_BY = "Bicep"
DEPLOYED_FROM = "LocalScript"


def resource_group_scope(subscription_id: str, resource_group: str) -> str:
    """resourceGroup().id と同じ形式のスコープIDを返す。"""
    return f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}"


def unique_token(scope_id: str) -> str:
    """スコープIDから決定的な13文字のトークンを生成する。

    ARMのリソースIDは大文字小文字を区別しないため、正規化してからハッシュする。
    """
    digest = hashlib.sha256(scope_id.strip().lower().encode("utf-8")).digest()
    return base64.b32encode(digest).decode("ascii").lower()[:TOKEN_LENGTH]


def static_web_app_name(application_name: str, environment_name: str, token: str) -> str:
    return f"{STATIC_WEB_APP_PREFIX}-{application_name}-{environment_name}-{token}".lower()


def derive_naming(application_name: str, environment_name: str, scope_id: str) -> DerivedNaming:
    """アプリ名・環境名・スコープIDからリソース名を導出する。

    同じ入力からは常に同じ名前が得られる。
    """
    token = unique_token(scope_id)
    return DerivedNaming(
        static_web_app_name=static_web_app_name(application_name, environment_name, token),
        resource_token=token,
        scope_id=scope_id,
    )


def system_tags(environment_name: str, application_name: str) -> dict[str, str]:
    return {
        "Environment": environment_name,
        "Application": application_name,
        "ManagedBy": MANAGED_BY,
    }


def merge_tags(user_tags: dict[str, str] | None, environment_name: str, application_name: str) -> dict[str, str]:
    """ユーザータグとシステムタグを結合する。

    テンプレートの union(tags, systemTags) と同じく、キーが衝突した場合は
    システムタグが優先される。
    """
    merged = dict(user_tags or {})
    merged.update(system_tags(environment_name, application_name))
    return merged


def resource_group_tags(environment_name: str) -> dict[str, str]:
    """リソースグループ作成時に付与するタグ。"""
    return {
        "Environment": environment_name,
        "ManagedBy": MANAGED_BY,
        "DeployedFrom": DEPLOYED_FROM,
    }
