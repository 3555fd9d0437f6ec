"""
Slack Events API payloads
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SlackEvent(BaseModel):
    """Inner event of an event_callback"""
    model_config = ConfigDict(extra="ignore")

    type: str = ""
    user: str = ""
    text: str = ""
    channel: str = ""
    bot_id: Optional[str] = None


class SlackEventEnvelope(BaseModel):
    """Outer Events API envelope"""
    model_config = ConfigDict(extra="ignore")

    type: str = ""
    event_id: str = ""
    team_id: Optional[str] = None
    event: SlackEvent = Field(default_factory=SlackEvent)
