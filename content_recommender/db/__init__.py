from .mongodb import MongoDB
from .redis import check_redis_connection, create_redis_client

__all__ = ["MongoDB", "create_redis_client", "check_redis_connection"]
