from relay_core.config.settings import (
    BotConfig,
    ChannelProfile,
    RelaySettings,
    load_bot_config,
)

__all__ = ["BotConfig", "ChannelProfile", "RelaySettings", "load_bot_config"]
