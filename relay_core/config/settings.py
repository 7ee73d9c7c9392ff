"""配置管理模块。

分为两部分：

- RelaySettings: 运行参数（日志目录、超时、刷新间隔等），从环境变量与 .env 加载。
- BotConfig: 机器人令牌与按频道划分的补全端点配置，从 YAML 文件加载，
  启动时读取一次，之后只读。
"""

from pathlib import Path
from typing import Any, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from relay_core.domain.exceptions import ConfigError


class RelaySettings(BaseSettings):
    """运行参数（使用 Pydantic）。"""

    config_file: str = Field(default="config.yml", description="机器人 YAML 配置文件路径")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")
    http_timeout: float = Field(default=120.0, ge=1.0, description="补全请求超时时间（秒）")
    update_interval: float = Field(default=5.0, gt=0, description="流式回复的消息刷新间隔（秒）")
    thread_history_limit: int = Field(default=100, ge=1, le=100, description="线程历史最大拉取条数")
    anchor_search_limit: int = Field(
        default=15,
        ge=1,
        le=15,
        description="在父频道中查找线程起始消息的最近消息条数",
    )
    thread_auto_archive_minutes: int = Field(default=60, description="新线程自动归档时间（分钟）")
    presence_status: str = Field(default="Chat with AI", description="机器人在线状态文本")

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class ChannelProfile(BaseModel):
    """单个聊天频道绑定的补全端点配置。"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    endpoint: str = Field(alias="api-url")
    auth_token: Optional[str] = Field(default=None, alias="api-auth-token")
    model_name: str = Field(alias="model-name")
    system_preamble: Tuple[str, ...] = Field(default=(), alias="system-role-messages")
    channel_id: str = Field(alias="chat-channel-id")

    @field_validator("channel_id", mode="before")
    @classmethod
    def _channel_id_as_str(cls, v: Any) -> Any:
        # YAML 中未加引号的频道 ID 会被解析成整数
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("auth_token", mode="before")
    @classmethod
    def _empty_token_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("system_preamble", mode="before")
    @classmethod
    def _null_preamble(cls, v: Any) -> Any:
        return () if v is None else v


class BotConfig(BaseModel):
    """机器人整体配置。"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token: str = Field(min_length=1)
    channel_profiles: List[ChannelProfile] = Field(default_factory=list, alias="api-channel-configs")

    def find_channel_profile(self, channel_id: str) -> Optional[ChannelProfile]:
        """返回与频道 ID 匹配的第一条配置，没有则返回 None。"""

        for profile in self.channel_profiles:
            if profile.channel_id == channel_id:
                return profile
        return None


def load_bot_config(path: str | Path) -> BotConfig:
    """从 YAML 文件加载 BotConfig，任何读取或校验错误都包装为 ConfigError。"""

    path = Path(path).expanduser()
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(code="CONFIG_READ_ERROR", message=str(e), path=str(path))
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise ConfigError(code="CONFIG_PARSE_ERROR", message=str(e), path=str(path))
    if not isinstance(data, dict):
        raise ConfigError(
            code="CONFIG_PARSE_ERROR",
            message=f"Config file {path} is not a mapping",
            path=str(path),
        )
    try:
        return BotConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(code="CONFIG_INVALID", message=str(e), path=str(path))
