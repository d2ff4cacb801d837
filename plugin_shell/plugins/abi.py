"""Wire format between the host and a guest's linear memory.

Values follow the canonical ABI layout for 32-bit core modules:

- ``string``: ``(ptr: u32, len: u32)`` pointing at UTF-8 bytes.
- ``list<T>``: ``(ptr: u32, len: u32)`` pointing at ``len`` packed elements.
- ``command-decl``: ``{name, usage, description}``, three strings, 24 bytes.
- ``plugin-info``: ``{name, description, version, commands}``, 32 bytes.

All integers are little-endian and every record is 4-byte aligned.
"""

import struct
from typing import List, Optional, Sequence, Tuple

import wasmtime

from .errors import AbiError
from .interface import CommandDecl, PluginInfo

ALIGN = 4
STRING_SIZE = 8
COMMAND_DECL_SIZE = 3 * STRING_SIZE
PLUGIN_INFO_SIZE = 4 * STRING_SIZE

_PAIR = struct.Struct("<II")


class GuestMemory:
    """Typed access to a guest's memory and allocator.

    ``store`` may be a ``wasmtime.Store`` or the ``wasmtime.Caller`` handed
    to a host function; both are accepted by the memory accessors.
    """

    def __init__(
        self,
        store,
        memory: wasmtime.Memory,
        realloc: Optional[wasmtime.Func] = None,
    ):
        self.store = store
        self.memory = memory
        self.realloc = realloc

    def _check_range(self, ptr: int, length: int) -> None:
        size = self.memory.data_len(self.store)
        if ptr < 0 or length < 0 or ptr + length > size:
            raise AbiError(
                f"range {ptr:#x}..{ptr + length:#x} is outside guest memory of {size} bytes"
            )

    def read(self, ptr: int, length: int) -> bytes:
        """Read raw bytes."""
        if length == 0:
            return b""
        self._check_range(ptr, length)
        return bytes(self.memory.read(self.store, ptr, ptr + length))

    def read_pair(self, ptr: int) -> Tuple[int, int]:
        """Read a ``(ptr, len)`` pair stored at ``ptr``."""
        if ptr % ALIGN:
            raise AbiError(f"misaligned pointer {ptr:#x}")
        return _PAIR.unpack(self.read(ptr, _PAIR.size))

    def read_string(self, ptr: int, length: int) -> str:
        """Decode a UTF-8 string."""
        try:
            return self.read(ptr, length).decode("utf-8")
        except UnicodeDecodeError as e:
            raise AbiError(f"string at {ptr:#x} is not valid UTF-8: {e}") from e

    def read_string_field(self, ptr: int) -> str:
        """Decode a string whose ``(ptr, len)`` header lives at ``ptr``."""
        return self.read_string(*self.read_pair(ptr))

    def read_command_decl(self, ptr: int) -> CommandDecl:
        return CommandDecl(
            name=self.read_string_field(ptr),
            usage=self.read_string_field(ptr + STRING_SIZE),
            description=self.read_string_field(ptr + 2 * STRING_SIZE),
        )

    def read_plugin_info(self, ptr: int) -> PluginInfo:
        """Lift the ``plugin-info`` record returned by ``init``."""
        name = self.read_string_field(ptr)
        description = self.read_string_field(ptr + STRING_SIZE)
        version = self.read_string_field(ptr + 2 * STRING_SIZE)
        list_ptr, count = self.read_pair(ptr + 3 * STRING_SIZE)

        if count:
            if list_ptr % ALIGN:
                raise AbiError(f"misaligned command list at {list_ptr:#x}")
            self._check_range(list_ptr, count * COMMAND_DECL_SIZE)
        commands = tuple(
            self.read_command_decl(list_ptr + i * COMMAND_DECL_SIZE)
            for i in range(count)
        )

        if not name:
            raise AbiError("plugin name must not be empty")

        return PluginInfo(
            name=name,
            description=description,
            version=version,
            commands=commands,
        )

    def alloc(self, size: int, align: int = 1) -> int:
        """Allocate ``size`` bytes inside the guest through ``cabi_realloc``."""
        if self.realloc is None:
            raise AbiError("guest allocator is not available")
        ptr = self.realloc(self.store, 0, 0, align, size)
        if not isinstance(ptr, int):
            raise AbiError(f"cabi_realloc returned {ptr!r}")
        if ptr % align:
            raise AbiError(f"cabi_realloc returned misaligned pointer {ptr:#x}")
        self._check_range(ptr, size)
        return ptr

    def write(self, ptr: int, data: bytes) -> None:
        if not data:
            return
        self._check_range(ptr, len(data))
        self.memory.write(self.store, data, ptr)

    def write_string(self, value: str) -> Tuple[int, int]:
        """Lower a string, returning its ``(ptr, len)``.

        Raises:
            AbiError: ``value`` has no UTF-8 encoding (lone surrogates).
        """
        try:
            data = value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise AbiError(f"string {value!r} is not valid UTF-8: {e.reason}") from e
        if not data:
            return 0, 0
        ptr = self.alloc(len(data), 1)
        self.write(ptr, data)
        return ptr, len(data)

    def write_string_list(self, values: Sequence[str]) -> Tuple[int, int]:
        """Lower a ``list<string>``, returning its ``(ptr, len)``.

        An empty list is passed as ``(0, 0)`` without calling the allocator.
        """
        if not values:
            return 0, 0
        pairs: List[Tuple[int, int]] = [self.write_string(value) for value in values]
        list_ptr = self.alloc(len(pairs) * STRING_SIZE, ALIGN)
        self.write(list_ptr, b"".join(_PAIR.pack(p, n) for p, n in pairs))
        return list_ptr, len(pairs)
