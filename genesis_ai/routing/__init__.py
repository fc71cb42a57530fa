"""Provider 路由层。"""

from genesis_ai.routing.router import Router

__all__ = ["Router"]
