import struct

import pytest
import wasmtime

from plugin_shell.plugins.abi import COMMAND_DECL_SIZE, PLUGIN_INFO_SIZE, GuestMemory
from plugin_shell.plugins.capabilities import HostCapabilities
from plugin_shell.plugins.errors import AbiError
from plugin_shell.plugins.interface import CommandDecl
from plugin_shell.plugins.runtime import SandboxRuntime

from wasm_guest import HEAP_START, build_plugin_wat


@pytest.fixture
def memory() -> GuestMemory:
    store = wasmtime.Store()
    mem = wasmtime.Memory(store, wasmtime.MemoryType(wasmtime.Limits(1, None)))
    return GuestMemory(store, mem)


def _put(memory: GuestMemory, ptr: int, data: bytes) -> None:
    memory.memory.write(memory.store, data, ptr)


def _put_pair(memory: GuestMemory, ptr: int, a: int, b: int) -> None:
    _put(memory, ptr, struct.pack("<II", a, b))


def test_record_sizes() -> None:
    assert COMMAND_DECL_SIZE == 24
    assert PLUGIN_INFO_SIZE == 32


def test_read_string(memory: GuestMemory) -> None:
    _put(memory, 100, "héllo".encode("utf-8"))
    assert memory.read_string(100, 6) == "héllo"
    assert memory.read_string(0, 0) == ""


def test_read_string_rejects_invalid_utf8(memory: GuestMemory) -> None:
    _put(memory, 100, b"\xff\xfe")
    with pytest.raises(AbiError, match="UTF-8"):
        memory.read_string(100, 2)


def test_read_outside_memory(memory: GuestMemory) -> None:
    with pytest.raises(AbiError, match="outside guest memory"):
        memory.read(65530, 10)


def test_read_pair_rejects_misaligned_pointer(memory: GuestMemory) -> None:
    with pytest.raises(AbiError, match="misaligned"):
        memory.read_pair(6)


def test_read_plugin_info(memory: GuestMemory) -> None:
    strings = {
        256: b"demo",
        272: b"A demo plugin",
        304: b"2.1.0",
        320: b"greet",
        336: b"greet <who>",
        352: b"Greets someone",
    }
    for ptr, data in strings.items():
        _put(memory, ptr, data)

    _put_pair(memory, 512, 256, 4)
    _put_pair(memory, 520, 272, 13)
    _put_pair(memory, 528, 304, 5)
    _put_pair(memory, 536, 600, 1)
    _put_pair(memory, 600, 320, 5)
    _put_pair(memory, 608, 336, 11)
    _put_pair(memory, 616, 352, 14)

    info = memory.read_plugin_info(512)

    assert info.name == "demo"
    assert info.description == "A demo plugin"
    assert info.version == "2.1.0"
    assert len(info.commands) == 1
    assert info.commands[0] == CommandDecl("greet", "greet <who>", "Greets someone")


def test_read_plugin_info_with_no_commands(memory: GuestMemory) -> None:
    _put(memory, 256, b"bare")
    _put_pair(memory, 512, 256, 4)

    info = memory.read_plugin_info(512)

    assert info.name == "bare"
    assert info.description == ""
    assert info.commands == ()


def test_read_plugin_info_requires_a_name(memory: GuestMemory) -> None:
    with pytest.raises(AbiError, match="name"):
        memory.read_plugin_info(512)


def test_read_plugin_info_checks_command_list_bounds(memory: GuestMemory) -> None:
    _put(memory, 256, b"demo")
    _put_pair(memory, 512, 256, 4)
    _put_pair(memory, 536, 65000, 100)
    with pytest.raises(AbiError):
        memory.read_plugin_info(512)


def test_alloc_without_allocator(memory: GuestMemory) -> None:
    with pytest.raises(AbiError, match="allocator"):
        memory.alloc(8)


def test_empty_values_are_not_allocated(memory: GuestMemory) -> None:
    assert memory.write_string("") == (0, 0)
    assert memory.write_string_list([]) == (0, 0)


def test_write_string_list_through_guest_allocator() -> None:
    runtime = SandboxRuntime()
    module = wasmtime.Module(runtime.engine, build_plugin_wat("alloc"))
    store, instance = runtime.instantiate(runtime.link(HostCapabilities("alloc")), module)
    exports = instance.exports(store)
    memory = GuestMemory(store, exports["memory"], exports["cabi_realloc"])

    list_ptr, count = memory.write_string_list(["load", "", "ünï"])

    assert count == 3
    assert list_ptr >= HEAP_START
    assert list_ptr % 4 == 0
    assert memory.read_string_field(list_ptr) == "load"
    assert memory.read_pair(list_ptr + 8) == (0, 0)
    assert memory.read_string_field(list_ptr + 16) == "ünï"
