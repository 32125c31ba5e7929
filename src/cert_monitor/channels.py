"""
External notification channels.

Every channel receives the same plain-text digest ``{title, content}``. A
channel config is either the target URL or a mapping with channel-specific
keys.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_TIMEOUT = 10.0

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"


def _option(config: Any, *names: str) -> Any:
    """First present option among ``names``; a bare string config is the URL."""
    if isinstance(config, str):
        return config
    if isinstance(config, Mapping):
        for name in names:
            if config.get(name):
                return config[name]
    return None


def _require(config: Any, channel: str, *names: str) -> Any:
    value = _option(config, *names)
    if not value:
        raise ValueError(f"Channel '{channel}' requires one of: {', '.join(names)}")
    return value


async def _post_json(url: str, payload: Dict[str, Any], config: Any) -> None:
    headers = config.get('headers') if isinstance(config, Mapping) else None
    timeout = aiohttp.ClientTimeout(
        total=config.get('timeout', DEFAULT_CHANNEL_TIMEOUT) if isinstance(config, Mapping) else DEFAULT_CHANNEL_TIMEOUT
    )
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.post(url, json=payload, headers=headers) as response:
            response.raise_for_status()


async def send_webhook(config: Any, message: Mapping[str, str]) -> None:
    url = _require(config, 'webhook', 'url')
    await _post_json(url, {'title': message['title'], 'content': message['content']}, config)


async def send_slack(config: Any, message: Mapping[str, str]) -> None:
    url = _require(config, 'slack', 'webhook_url', 'url')
    payload = {
        "text": f"*{message['title']}*\n{message['content']}"
    }
    await _post_json(url, payload, config)


async def send_discord(config: Any, message: Mapping[str, str]) -> None:
    url = _require(config, 'discord', 'webhook_url', 'url')
    payload = {
        "embeds": [
            {
                "title": message['title'][:256],
                "description": message['content'][:4096],
                "color": 0xffa500,
            }
        ]
    }
    await _post_json(url, payload, config)


async def send_telegram(config: Any, message: Mapping[str, str]) -> None:
    if not isinstance(config, Mapping):
        raise ValueError("Channel 'telegram' requires a mapping with bot_token and chat_id")
    token = _require(config, 'telegram', 'bot_token')
    chat_id = _require(config, 'telegram', 'chat_id')
    payload = {
        "chat_id": chat_id,
        "text": f"{message['title']}\n\n{message['content']}",
    }
    url = config.get('api_url') or TELEGRAM_API_URL.format(token=token)
    await _post_json(url, payload, config)


CHANNEL_SENDERS: Dict[str, Callable[[Any, Mapping[str, str]], Awaitable[None]]] = {
    'webhook': send_webhook,
    'slack': send_slack,
    'discord': send_discord,
    'telegram': send_telegram,
}

VALID_CHANNELS = set(CHANNEL_SENDERS)


async def send_notification(channel: str, channel_config: Any, message: Mapping[str, str]) -> None:
    """
    Send ``message`` (``{'title', 'content'}``) through one channel.

    Raises:
        ValueError: If the channel is unknown or misconfigured
        aiohttp.ClientError: If the HTTP request fails
    """
    sender = CHANNEL_SENDERS.get(channel)
    if sender is None:
        raise ValueError(f"Unknown notification channel: '{channel}'")
    logger.debug(f"Sending notification via {channel}: {message['title']}")
    await sender(channel_config, message)
    logger.info(f"Notification sent via {channel}")
