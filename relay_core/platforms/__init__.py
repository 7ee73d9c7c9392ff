"""聊天平台适配层（目前仅 Discord）。"""
