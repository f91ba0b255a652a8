"""Team chat (Mattermost) poster."""

from src.chat.mattermost import MattermostClient, clip_message

__all__ = ["MattermostClient", "clip_message"]
