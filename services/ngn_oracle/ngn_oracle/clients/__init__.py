from .contract import OracleContract, decode_answer_updated
from .rpc import RpcClient

__all__ = ["OracleContract", "RpcClient", "decode_answer_updated"]
