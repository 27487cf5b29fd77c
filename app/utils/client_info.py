from typing import Optional
from fastapi import Request
from app.core.logger import logger_manager


class ClientInfoUtils:
    """Client details taken from proxy headers"""

    PROXY_HEADERS = (
        "X-Real-IP",
        "X-Forwarded-For",
        "CF-Connecting-IP",
        "X-Client-IP",
        "True-Client-IP",
    )

    def __init__(self):
        self.logger = logger_manager.get_logger(__name__)

    def get_client_ip(self, request: Request) -> Optional[str]:
        """获取客户端真实IP地址"""
        for header in self.PROXY_HEADERS:
            ip = request.headers.get(header)
            if ip and ip.lower() != "unknown":
                return ip.split(",")[0].strip()

        return request.client.host if request.client else None

    def get_user_agent(self, request: Request) -> Optional[str]:
        return request.headers.get("User-Agent")


client_info_utils = ClientInfoUtils()
