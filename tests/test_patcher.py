import pytest

from respatch.config import PatchDescriptor
from respatch.errors import BufferBoundsError, PatternNotFound
from respatch.patcher import apply_offsets, apply_patch, find_patch_offsets
from respatch.signature import Signature

SIG_BYTES = bytes([0x80, 0x02, 0x00, 0x00, 0xC7, 0x01, 0xE0, 0x01, 0x00, 0x00])
PATCHED_BYTES = bytes([0x80, 0x07, 0x00, 0x00, 0xC7, 0x01, 0x38, 0x04, 0x00, 0x00])


def descriptor(**kwargs):
    values = {
        "modfile": "game.exe",
        "signature": Signature.from_strings("test", "80020000C701E0010000", "0000110000"),
        "xoffset": 0,
        "yoffset": 6,
        "occur": 1,
    }
    values.update(kwargs)
    return PatchDescriptor(**values)


def two_occurrences():
    return bytearray(bytes(20) + SIG_BYTES + bytes(20) + SIG_BYTES)


def test_apply_patches_every_occurrence():
    data = two_occurrences()

    assert apply_patch(data, descriptor(occur=2), 1920, 1080)

    assert data == bytes(20) + PATCHED_BYTES + bytes(20) + PATCHED_BYTES


def test_apply_only_requested_occurrences():
    data = two_occurrences()

    assert apply_patch(data, descriptor(occur=1), 1920, 1080)

    assert data == bytes(20) + PATCHED_BYTES + bytes(20) + SIG_BYTES


def test_apply_missing_occurrence_keeps_earlier_writes():
    data = bytearray(bytes(4) + SIG_BYTES + bytes(4))

    assert not apply_patch(data, descriptor(occur=2), 1920, 1080)

    assert data == bytes(4) + PATCHED_BYTES + bytes(4)


def test_apply_without_match_leaves_buffer_untouched():
    data = bytearray(bytes(32))
    assert not apply_patch(data, descriptor(), 1920, 1080)
    assert data == bytes(32)


def test_occurrences_do_not_overlap():
    sig = Signature.from_strings("test", "0000", "00")
    data = bytearray(3)
    assert not apply_patch(data, descriptor(signature=sig, xoffset=0, yoffset=None, occur=2), 1, 1)
    assert data == bytes([0x01, 0x00, 0x00])


def test_search_resumes_after_match():
    sig = Signature.from_strings("test", "AA", "0")
    data = bytearray([0xAA, 0x00, 0x00, 0xAA, 0x00, 0x00])
    assert apply_patch(data, descriptor(signature=sig, xoffset=1, yoffset=None, occur=2), 0x1234, 0)
    assert data == bytes([0xAA, 0x34, 0x12, 0xAA, 0x34, 0x12])


def test_rescan_after_patch():
    data = two_occurrences()
    patch = descriptor(occur=1)

    assert apply_patch(data, patch, 1920, 1080)
    assert patch.signature.find_first(data) == 50

    assert apply_patch(data, patch, 1920, 1080)
    assert patch.signature.find_first(data) is None


def test_zero_occurrences_is_a_no_op():
    data = two_occurrences()
    assert apply_patch(data, descriptor(occur=0), 1920, 1080)
    assert data == two_occurrences()


def test_no_offsets_configured():
    data = two_occurrences()
    assert apply_patch(data, descriptor(xoffset=None, yoffset=None), 1920, 1080)
    assert data == two_occurrences()


def test_only_height_written():
    data = bytearray(SIG_BYTES)
    assert apply_patch(data, descriptor(xoffset=None), 1920, 1080)
    assert data == bytes([0x80, 0x02, 0x00, 0x00, 0xC7, 0x01, 0x38, 0x04, 0x00, 0x00])


def test_out_of_bounds_write_raises_without_writing():
    data = bytearray(SIG_BYTES)
    with pytest.raises(BufferBoundsError) as exc:
        apply_patch(data, descriptor(yoffset=9), 1920, 1080)
    assert exc.value.offset == 9
    assert exc.value.length == 10
    assert data == SIG_BYTES


def test_write_ending_at_buffer_end_is_allowed():
    data = bytearray(SIG_BYTES)
    assert apply_patch(data, descriptor(xoffset=None, yoffset=8), 0, 0xFFFF)
    assert data[8:] == b"\xff\xff"


def test_rejects_immutable_buffer():
    with pytest.raises(TypeError):
        apply_patch(bytes(SIG_BYTES), descriptor(), 1920, 1080)
    with pytest.raises(TypeError):
        apply_patch(memoryview(bytes(SIG_BYTES)), descriptor(), 1920, 1080)


def test_accepts_writable_memoryview():
    data = bytearray(SIG_BYTES)
    assert apply_patch(memoryview(data), descriptor(), 1920, 1080)
    assert data == PATCHED_BYTES


@pytest.mark.parametrize("width,height", [(-1, 0), (0, 65536), (70000, 1080)])
def test_rejects_values_outside_16_bits(width, height):
    with pytest.raises(ValueError):
        apply_patch(bytearray(SIG_BYTES), descriptor(), width, height)


def test_find_patch_offsets():
    assert find_patch_offsets(two_occurrences(), descriptor(occur=2)) == [20, 50]


def test_find_patch_offsets_does_not_modify():
    data = two_occurrences()
    find_patch_offsets(data, descriptor(occur=2))
    assert data == two_occurrences()


def test_find_patch_offsets_missing_occurrence():
    with pytest.raises(PatternNotFound) as exc:
        find_patch_offsets(two_occurrences(), descriptor(occur=3), index=2)
    assert exc.value.modfile == "game.exe"
    assert exc.value.index == 2
    assert exc.value.occurrence == 2


def test_find_patch_offsets_checks_bounds():
    with pytest.raises(BufferBoundsError):
        find_patch_offsets(bytes(SIG_BYTES), descriptor(xoffset=20))


def test_apply_offsets():
    data = two_occurrences()
    apply_offsets(data, descriptor(), [50], 1920, 1080)
    assert data == bytes(20) + SIG_BYTES + bytes(20) + PATCHED_BYTES
