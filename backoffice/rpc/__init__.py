"""Remote procedure contracts and the HTTP transport that carries them."""

from backoffice.rpc.procedures import LIST_PRODUCTS, LIST_SUBSCRIPTIONS, MRR_LOG, PROCEDURES, RemoteProcedure
from backoffice.rpc.transport import RpcClient, get_rpc_client

__all__ = [
    "LIST_PRODUCTS",
    "LIST_SUBSCRIPTIONS",
    "MRR_LOG",
    "PROCEDURES",
    "RemoteProcedure",
    "RpcClient",
    "get_rpc_client",
]
