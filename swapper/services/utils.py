import threading
from collections import OrderedDict
from typing import Any, Callable, Hashable
from hexbytes import HexBytes
from web3 import Web3

def to_json_safe(obj: Any) -> Any:
    """
    Recursively convert web3 / HexBytes-heavy structures (receipts, pool ids)
    into plain JSON-serializable primitives.

    - HexBytes / bytes -> "0x..." str
    - dict (incl. AttributeDict) -> {k: to_json_safe(v)}
    - list/tuple -> [to_json_safe(v), ...]
    - everything else -> unchanged if natively serializable, else str(obj)
    """
    if isinstance(obj, HexBytes):
        return Web3.to_hex(obj)

    if isinstance(obj, (bytes, bytearray)):
        return "0x" + bytes(obj).hex()

    if isinstance(obj, (str, int, float, bool)) or obj is None:
        return obj

    if hasattr(obj, "items"):
        return {str(k): to_json_safe(v) for (k, v) in obj.items()}

    if isinstance(obj, (list, tuple, set)):
        return [to_json_safe(v) for v in obj]

    return str(obj)


def pool_id_hex(pool_id: Any) -> str:
    """Normalize a bytes32 pool id (HexBytes, bytes or str) to 0x-prefixed hex."""
    if isinstance(pool_id, str):
        return pool_id if pool_id.startswith("0x") else "0x" + pool_id
    return Web3.to_hex(HexBytes(pool_id))


class BoundedRegistry:
    """
    Keyed objects built on first use, least recently used evicted past
    `maxsize`. Safe to share between request threads.
    """

    def __init__(self, maxsize: int = 32):
        self.maxsize = maxsize
        self._items: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._lock = threading.Lock()

    def get_or_create(self, key: Hashable, factory: Callable[[], Any]) -> Any:
        with self._lock:
            if key in self._items:
                self._items.move_to_end(key)
                return self._items[key]
            value = factory()
            self._items[key] = value
            while len(self._items) > self.maxsize:
                self._items.popitem(last=False)
            return value

    def __contains__(self, key: Hashable) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)
