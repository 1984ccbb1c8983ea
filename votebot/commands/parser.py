import re
from dataclasses import dataclass
from typing import Optional

from votebot.settings import BOT_NAME


@dataclass(frozen=True)
class BotCommand:
    name: str
    args: list[str]


def strip_blockquotes(text: str):
    return "\n".join(
        line for line in text.splitlines()
        if not line.lstrip().startswith(">")
    )


def parse_command(text: str, bot_name: str = BOT_NAME) -> Optional[BotCommand]:
    """
    Find `@<bot> /<command> [args]` outside quoted lines.
    """
    clean = strip_blockquotes(text or "")

    m = re.search(
        rf"@{re.escape(bot_name)}\s+/(\S+)(?:[ \t]+([^\r\n]*))?",
        clean,
        re.IGNORECASE,
    )
    if not m:
        return None

    args = (m.group(2) or "").split()
    return BotCommand(name=m.group(1).lower(), args=args)
