from .bootstrap import create_app
from .service import JagService

__all__ = ["JagService", "create_app"]
