import errno
import os

import pytest

from gpioline.uapi_v2 import (
    DebouncePeriod,
    LineAttribute,
    LineAttributeID,
    LineBitmap,
    LineConfig,
    LineConfigAttribute,
    LineEvent,
    LineEventID,
    LineFlagV2,
    LineInfoChangedV2,
    LineInfoV2,
    LineRequest,
    LineValues,
    OutputValues,
    get_line_info_v2,
    get_line_values_v2,
    new_line_bit_mask,
    new_line_bitmap,
    new_line_bits,
    read_line_event,
    read_line_info_changed_v2,
)


@pytest.fixture
def pipe():
    r, w = os.pipe()
    yield r, w
    for fd in (r, w):
        try:
            os.close(fd)
        except OSError:
            pass


def test_line_attribute():
    la = LineAttribute.from_u32(1, 1000000)
    assert la.id == 1
    assert la.padding == 0
    assert la.value32() == 1000000

    la = LineAttribute.from_u64(2, 200000000000)
    assert la.id == 2
    assert la.padding == 0
    assert la.value64() == 200000000000


def test_line_flag_v2_encode_decode():
    la = LineFlagV2(0).encode()
    assert la.id == LineAttributeID.FLAGS
    assert la.padding == 0
    assert la.value64() == 0
    la = LineAttribute.from_u64(LineAttributeID.FLAGS, 42000)
    assert LineFlagV2.decode(la) == 42000

    la = LineFlagV2(1234567).encode()
    assert la.id == LineAttributeID.FLAGS
    assert la.padding == 0
    assert la.value64() == 1234567
    assert LineFlagV2.decode(la) == 1234567


def test_debounce_period():
    la = DebouncePeriod(0).encode()
    assert la.id == LineAttributeID.DEBOUNCE
    assert la.padding == 0
    assert la.value32() == 0
    la = LineAttribute.from_u32(LineAttributeID.DEBOUNCE, 42000)
    assert DebouncePeriod.decode(la) == 42_000_000

    la = DebouncePeriod(1234567).encode()
    assert la.id == LineAttributeID.DEBOUNCE
    assert la.padding == 0
    assert la.value32() == 1234
    assert DebouncePeriod.decode(la) == 1_234_000


def test_output_values():
    la = OutputValues(0).encode()
    assert la.id == LineAttributeID.OUTPUT_VALUES
    assert la.padding == 0
    assert la.value64() == 0
    la = LineAttribute.from_u64(LineAttributeID.OUTPUT_VALUES, 42234)
    assert OutputValues.decode(la) == 42234

    la = OutputValues(0x123456789).encode()
    assert la.id == LineAttributeID.OUTPUT_VALUES
    assert la.value64() == 0x123456789
    assert OutputValues.decode(la) == 0x123456789


@pytest.mark.parametrize(
    "bits,mask",
    [
        ([0], 1),
        ([1], 2),
        ([3], 8),
        ([0, 1, 2], 7),
        ([63], 0x8000000000000000),
        ([0, 63], 0x8000000000000001),
        ([64], 0),
    ],
)
def test_new_line_bits(bits, mask):
    assert new_line_bits(*bits) == mask


@pytest.mark.parametrize(
    "values,mask",
    [
        ([0], 0),
        ([1], 1),
        ([1, 1], 3),
        ([1, 1, 1], 7),
        ([1] * 64, 0xFFFFFFFFFFFFFFFF),
        ([1] * 80, 0xFFFFFFFFFFFFFFFF),
    ],
)
def test_new_line_bitmap(values, mask):
    assert new_line_bitmap(*values) == mask


@pytest.mark.parametrize(
    "n,mask",
    [(0, 0), (1, 1), (2, 3), (3, 7), (64, 0xFFFFFFFFFFFFFFFF), (65, 0xFFFFFFFFFFFFFFFF)],
)
def test_new_line_bit_mask(n, mask):
    assert new_line_bit_mask(n) == mask


def test_line_bitmap():
    lb = LineBitmap(0)
    assert lb.get(0) == 0
    lb = lb.set(2, 1)
    assert lb == 4
    assert (lb.get(0), lb.get(1), lb.get(2)) == (0, 0, 1)

    lb = lb.set(0, 1)
    assert lb == 5
    assert (lb.get(0), lb.get(1), lb.get(2)) == (1, 0, 1)

    lb = lb.set(0, 0)
    assert lb == 4
    assert (lb.get(0), lb.get(1), lb.get(2)) == (0, 0, 1)

    lb = lb.set(2, 0)
    assert lb.get(0) == 0
    assert lb == 0


def test_line_config():
    lc = LineConfig()
    assert lc.num_attrs == 0
    lc.remove_attribute_id(1)
    assert lc.num_attrs == 0
    lc.remove_attribute_id(0)
    assert lc.num_attrs == 0

    lca = LineConfigAttribute(attr=LineAttribute(id=56), mask=new_line_bit_mask(63))
    lca2 = LineConfigAttribute(attr=LineAttribute(id=23), mask=new_line_bit_mask(64))

    lc.add_attribute(lca)
    assert lc.num_attrs == 1
    lc.add_attribute(lca2)
    assert lc.num_attrs == 2
    lc.add_attribute(lca)
    assert lc.num_attrs == 3
    assert lc.attrs == [lca, lca2, lca]

    lc.remove_attribute_id(42)
    assert lc.num_attrs == 3
    lc.remove_attribute_id(56)
    assert lc.num_attrs == 1

    lc.add_attribute(lca)
    lc.add_attribute(lca)
    assert lc.num_attrs == 3
    lc.remove_attribute(lca2)
    assert lc.num_attrs == 2
    lc.remove_attribute(lca)
    assert lc.num_attrs == 0


def test_line_config_add_is_limited():
    lc = LineConfig()
    for i in range(12):
        lc.add_attribute(LineConfigAttribute(LineAttribute(id=i), 1))
    assert lc.num_attrs == 10
    assert lc.attrs[-1].attr.id == 9


def test_line_flags_v2():
    zero = LineFlagV2(0)
    assert zero.is_available()
    assert not zero.is_used()
    assert not zero.is_active_low()
    assert not zero.is_input()
    assert not zero.is_output()
    assert not zero.is_rising_edge()
    assert not zero.is_falling_edge()
    assert not zero.is_both_edges()
    assert not zero.is_open_drain()
    assert not zero.is_open_source()
    assert not zero.is_bias_disabled()
    assert not zero.is_bias_pull_up()
    assert not zero.is_bias_pull_down()
    assert not zero.has_realtime_event_clock()
    assert not LineFlagV2.USED.is_available()
    assert LineFlagV2.USED.is_used()
    assert LineFlagV2.ACTIVE_LOW.is_active_low()
    assert LineFlagV2.INPUT.is_input()
    assert LineFlagV2.OUTPUT.is_output()
    assert LineFlagV2.EDGE_RISING.is_rising_edge()
    assert LineFlagV2.EDGE_FALLING.is_falling_edge()
    assert LineFlagV2.EDGE_BOTH.is_both_edges()
    assert not LineFlagV2.EDGE_RISING.is_both_edges()
    assert not LineFlagV2.EDGE_FALLING.is_both_edges()
    assert LineFlagV2.BIAS_DISABLED.is_bias_disabled()
    assert LineFlagV2.BIAS_PULL_UP.is_bias_pull_up()
    assert LineFlagV2.BIAS_PULL_DOWN.is_bias_pull_down()
    assert LineFlagV2.EVENT_CLOCK_REALTIME.has_realtime_event_clock()
    assert LineFlagV2.OPEN_DRAIN.is_open_drain()
    assert LineFlagV2.OPEN_SOURCE.is_open_source()


@pytest.mark.parametrize(
    "cls,size",
    [
        (LineAttribute, 16),
        (LineConfigAttribute, 24),
        (LineConfig, 272),
        (LineRequest, 592),
        (LineValues, 16),
        (LineEvent, 48),
        (LineInfoV2, 256),
        (LineInfoChangedV2, 288),
    ],
)
def test_struct_sizes(cls, size):
    assert cls.SIZE == size
    assert len(cls().pack()) == size


def test_line_request_round_trip():
    config = LineConfig(
        flags=LineFlagV2.INPUT | LineFlagV2.EDGE_BOTH,
        attrs=[LineConfigAttribute(DebouncePeriod(20_000).encode(), 7)],
    )
    request = LineRequest(
        offsets=[1, 2, 3],
        consumer="test-round-trip",
        config=config,
        event_buffer_size=42,
    )
    restored = LineRequest.unpack(request.pack())
    assert restored == request
    assert restored.lines == 3
    assert restored.config.attrs[0].attr.value32() == 20


def test_line_config_padding_round_trip():
    lc = LineConfig(padding=(1,))
    assert lc.padding == (1, 0, 0, 0, 0)
    assert LineConfig.unpack(lc.pack()).padding == (1, 0, 0, 0, 0)


def test_line_request_too_many_offsets():
    with pytest.raises(ValueError):
        LineRequest(offsets=list(range(65))).pack()


def test_unpack_wrong_size():
    with pytest.raises(ValueError):
        LineEvent.unpack(bytes(10))


def test_line_values():
    lv = LineValues(bits=new_line_bits(0, 2), mask=new_line_bit_mask(3))
    assert (lv.get(0), lv.get(1), lv.get(2)) == (1, 0, 1)
    assert LineValues.unpack(lv.pack()) == lv


def test_line_info_round_trip():
    info = LineInfoV2(
        name="gpio-mockup-A-3",
        consumer="testwatch",
        offset=3,
        flags=LineFlagV2.INPUT | LineFlagV2.USED,
        attrs=[DebouncePeriod(20_000).encode()],
    )
    restored = LineInfoV2.unpack(info.pack())
    assert restored == info
    assert restored.num_attrs == 1
    assert restored.flags.is_used()


def test_read_line_event(pipe):
    r, w = pipe
    event = LineEvent(
        timestamp=123456789, id=LineEventID.FALLING_EDGE, offset=1, seqno=2, line_seqno=1
    )
    os.write(w, event.pack())
    got = read_line_event(r)
    assert got == event
    assert got.id is LineEventID.FALLING_EDGE


def test_read_line_event_short(pipe):
    r, w = pipe
    os.write(w, bytes(20))
    os.close(w)
    with pytest.raises(EOFError):
        read_line_event(r)


def test_read_line_info_changed(pipe):
    r, w = pipe
    change = LineInfoChangedV2(
        info=LineInfoV2(name="line", offset=3, flags=LineFlagV2.INPUT),
        timestamp=99,
        change_type=1,
    )
    os.write(w, change.pack())
    assert read_line_info_changed_v2(r) == change


def test_ioctl_on_closed_fd(pipe):
    r, _ = pipe
    os.close(r)
    with pytest.raises(OSError) as excinfo:
        get_line_info_v2(r, 0)
    assert excinfo.value.errno == errno.EBADF


def test_ioctl_on_non_gpio_fd(pipe):
    r, _ = pipe
    with pytest.raises(OSError) as excinfo:
        get_line_values_v2(r, LineValues(mask=1))
    assert excinfo.value.errno in (errno.ENOTTY, errno.EINVAL)