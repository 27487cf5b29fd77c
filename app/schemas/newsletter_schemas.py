from typing import Optional

from pydantic import BaseModel, Field


class SubscribeRequest(BaseModel):
    # 格式校验在 SubscriberService 中完成, 以返回统一的错误信息
    email: Optional[str] = Field(default=None, max_length=254)
    source: Optional[str] = Field(default="website", max_length=50)
