"""进程入口。

启动顺序：读取运行参数 -> 初始化日志 -> 加载机器人配置 -> 组装路由与回复引擎
-> 连接 Discord 并阻塞运行 -> 退出时关闭日志。

只有启动阶段的错误（配置错误、无法连接平台）会让进程以非零状态退出。
"""

import argparse
import logging
from typing import List, Optional

from relay_core.agents import ContextAssembler, ReplyEngineConfig, StreamingReplyEngine, ThreadRouter
from relay_core.config.settings import BotConfig, RelaySettings, load_bot_config
from relay_core.domain.exceptions import ConfigError, PlatformConnectionError
from relay_core.domain.platform import ChatPlatform
from relay_core.infrastructure.logging.logger import setup_logger, teardown_logger
from relay_core.providers import CompletionClient, create_completion_client


def build_router(
    platform: ChatPlatform,
    bot_config: BotConfig,
    settings: RelaySettings,
    logger: logging.Logger,
    client: Optional[CompletionClient] = None,
) -> ThreadRouter:
    """把平台会话、补全客户端与配置组装成 ThreadRouter。"""

    assembler = ContextAssembler(
        platform,
        thread_history_limit=settings.thread_history_limit,
        anchor_search_limit=settings.anchor_search_limit,
        logger=logger,
    )
    engine = StreamingReplyEngine(
        platform,
        client or create_completion_client(settings),
        config=ReplyEngineConfig(update_interval=settings.update_interval),
        logger=logger,
    )
    return ThreadRouter(
        platform,
        bot_config,
        assembler,
        engine,
        auto_archive_minutes=settings.thread_auto_archive_minutes,
        logger=logger,
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Relay Discord messages to a streaming chat-completion API.")
    parser.add_argument("--config", help="Path to the bot YAML config (default: RELAY_CONFIG_FILE or config.yml).")
    parser.add_argument("--log_dir", help="Directory for the JSON log file.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    # Discord 依赖只在真正启动时导入，便于单独使用核心模块
    from relay_core.platforms.discord_platform import DiscordGateway, EventKind

    args = parse_args(argv)
    settings = RelaySettings()
    logger = setup_logger(args.log_dir or settings.log_dir, redact_content=settings.log_redact_content)
    try:
        config_path = args.config or settings.config_file
        try:
            bot_config = load_bot_config(config_path)
        except ConfigError as e:
            logger.error("Failed to load config", extra={"extra": {"code": e.code, "error": e.message, **e.extra}})
            print(f"Failed to read `{config_path}`: {e.message}")
            return 1

        gateway = DiscordGateway(bot_config.token, presence_status=settings.presence_status, logger=logger)
        router = build_router(gateway.platform, bot_config, settings, logger)
        gateway.register(EventKind.MESSAGE_CREATE, router.handle_message)

        logger.info("Bot is starting..", extra={"extra": {"channels": len(bot_config.channel_profiles)}})
        print("Bot is now running. Press CTRL+C to exit.")
        try:
            gateway.run()
        except PlatformConnectionError as e:
            logger.error("Failed to connect to Discord", extra={"extra": {"code": e.code, "error": e.message}})
            print(f"Error opening connection: {e.message}")
            return 1
        logger.info("Bot is stopping..")
        return 0
    finally:
        teardown_logger(logger)
