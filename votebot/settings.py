import json
import os
from dotenv import load_dotenv

load_dotenv()

# === Raw environment values ===

GITHUB_WEBHOOK_SECRET = os.getenv("GITHUB_WEBHOOK_SECRET")

# GitHub App authentication
GITHUB_APP_ID = os.getenv("GITHUB_APP_ID")
GITHUB_PRIVATE_KEY_PATH = os.getenv("GITHUB_PRIVATE_KEY_PATH")
GITHUB_ORG = os.getenv("GITHUB_ORG", "ClassIsland")
GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com")

BOT_NAME = os.getenv("BOT_NAME", "votebot")

# Discussions are always created in this repository (node id)
VOTING_REPO_ID = os.getenv("VOTING_REPO_ID", "")

# Monitored repository node id -> voting discussion category slug
REPO_CATEGORY_MAP: dict[str, str] = json.loads(
    os.getenv("REPO_CATEGORY_MAP", "{}")
)

PRIVILEGED_ROLES = [
    role.strip().lower()
    for role in os.getenv("PRIVILEGED_ROLES", "owner,member").split(",")
    if role.strip()
]

# Association store
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# Work queue / sync sweep
QUEUE_CAPACITY = int(os.getenv("QUEUE_CAPACITY", "100"))
SYNC_ON_STARTUP = os.getenv("SYNC_ON_STARTUP", "true").lower() == "true"
SYNC_INTERVAL_SECONDS = float(os.getenv("SYNC_INTERVAL_SECONDS", "3600"))

# Labels

FEATURE_LABEL = "新功能"
IMPROVEMENT_LABEL = "功能优化"
WIP_LABEL = "处理中"
VOTING_LABEL = "投票中"
REVIEWING_LABEL = "待查看"
BUG_LABEL = "Bug"
AWAITING_RELEASE_LABEL = "待发布"

FEATURE_LABELS = (FEATURE_LABEL, IMPROVEMENT_LABEL)
EXCLUDED_LABELS = (VOTING_LABEL, WIP_LABEL, REVIEWING_LABEL)

# Configurable messages

DISCUSSION_FOOTER = """

***

> [!note]
> 这个 Discussion 复制自 Issue [#{number}]({url}) 。点击左下角的“↑”来给这个功能进行投票，开发者会优先处理票数较高的帖子。
>
> 请在源 Issue 下进行讨论，不要在这个 Discussion 下面发表评论，**否则您的评论可能会在清除此 Discussion 时被清除**。
"""

DISCUSSION_REF_COMMENT = (
    "已为此功能请求创建投票 Discussion：{url}\n\n"
    "点击 Discussion 左下角的“↑”为此功能投票，开发者会优先处理票数较高的功能请求。"
)

UNAUTHORIZED_COMMENT = "你没有进行此操作的权限。"

PING_COMMENT = """
Pong!
"""

TRACK_VOTING_COMMENT = "已开始跟踪此 Issue 的功能投票。"

UNTRACK_VOTING_COMMENT = "已停止跟踪此 Issue 的功能投票。"

TRACK_VOTING_SKIPPED_COMMENT = "此仓库未启用功能投票，未创建投票讨论。"

UNTRACK_VOTING_SKIPPED_COMMENT = "此 Issue 当前没有正在跟踪的功能投票。"

COMMAND_FAILED_COMMENT = "处理命令时出现错误，请稍后再试。"

RELEASE_STABLE_COMMENT = (
    "包含此{kind}的版本已在稳定通道[{name}]({url})发布，"
    "请及时更新以获取包含此{kind}的版本。"
)

RELEASE_PREVIEW_COMMENT = (
    "包含此{kind}的版本已在测试通道[{name}]({url})发布，"
    "请及时更新以获取包含此{kind}的版本。"
    "要在应用内升级到此版本，您可能需要在【应用设置】->【更新】->【更新设置】"
    "中将更新通道切换到对应的测试通道。"
)

NO_RELEASE_TRACKING_TAG = "{!no_release_tracking}"


def validate_github_settings() -> None:
    """
    Validate required GitHub App configuration.

    Raises RuntimeError if required values are missing or invalid.
    """
    if not GITHUB_APP_ID:
        raise RuntimeError("GITHUB_APP_ID is not set")

    if not GITHUB_PRIVATE_KEY_PATH:
        raise RuntimeError("GITHUB_PRIVATE_KEY_PATH is not set")

    if not os.path.exists(GITHUB_PRIVATE_KEY_PATH):
        raise RuntimeError(
            f"GITHUB_PRIVATE_KEY_PATH does not exist: {GITHUB_PRIVATE_KEY_PATH}"
        )

    if not GITHUB_WEBHOOK_SECRET:
        raise RuntimeError("GITHUB_WEBHOOK_SECRET is not set")

    if not VOTING_REPO_ID:
        raise RuntimeError("VOTING_REPO_ID is not set")

    if QUEUE_CAPACITY <= 0:
        raise RuntimeError(f"QUEUE_CAPACITY must be positive: {QUEUE_CAPACITY}")
