# gpioline

gpioline gives access to Linux GPIO lines through the character device uAPI v2
(`/dev/gpiochipN`). It has two modules:

- `gpioline.uapi_v2` holds the kernel structures as Python objects:
  `LineRequest`, `LineConfig`, `LineConfigAttribute`, `LineAttribute`,
  `LineValues`, `LineInfoV2`, `LineInfoChangedV2` and `LineEvent`. Each one has
  `pack()`, which gives the bytes in the kernel's layout, and `unpack(data)`,
  which reads those bytes back. The module also has thin wrappers around the v2
  ioctls and reads.
- `gpioline.watcher` holds `Watcher`. It waits on the file descriptor of a line
  request on a background thread and passes each edge event to a callback.

You need Linux 5.10 or later for the v2 ioctls. The package has no third-party
dependencies.

## Installation

```
pip install .
```

## Requesting lines and reading values

Each wrapper takes either an integer file descriptor or any object that has a
`fileno()` method.

```python
import os
from gpioline.uapi_v2 import (
    LineConfig, LineFlagV2, LineRequest, LineValues,
    get_line, get_line_values_v2, new_line_bit_mask,
)

chip = os.open("/dev/gpiochip0", os.O_RDONLY)
try:
    request = LineRequest(
        offsets=[1, 3],
        consumer="example",
        config=LineConfig(flags=LineFlagV2.INPUT),
    )
    line_fd = get_line(chip, request)   # fd of the new line request
    values = get_line_values_v2(line_fd, LineValues(mask=new_line_bit_mask(2)))
    print(values.get(0), values.get(1))
    os.close(line_fd)
finally:
    os.close(chip)
```

The wrappers do not change the objects you pass them. Results come back as
return values:

| Function | Returns |
| --- | --- |
| `get_line_info_v2(fd, offset)` | `LineInfoV2` for the line at that offset |
| `get_line(fd, request)` | file descriptor of the line request |
| `get_line_values_v2(fd, values)` | a new `LineValues` holding the bits read for `values.mask` |
| `set_line_values_v2(fd, values)` | `None` |
| `set_line_config_v2(fd, config)` | `None` |
| `watch_line_info_v2(fd, info)` | current `LineInfoV2` of the watched line |
| `read_line_event(fd)` | one `LineEvent`, blocking until it arrives |
| `read_line_info_changed_v2(fd)` | one `LineInfoChangedV2`, blocking until it arrives |

When the kernel rejects a call, the wrapper raises `OSError` with its `errno`
set, for example to `EBUSY`, `EINVAL` or `EPERM`. A read that reaches end of
file before a whole record has arrived raises `EOFError`.

## Flags, bitmaps and attributes

`LineFlagV2` is an `IntFlag`. Its members are `USED`, `ACTIVE_LOW`, `INPUT`,
`OUTPUT`, `EDGE_RISING`, `EDGE_FALLING`, `OPEN_DRAIN`, `OPEN_SOURCE`,
`BIAS_PULL_UP`, `BIAS_PULL_DOWN`, `BIAS_DISABLED` and `EVENT_CLOCK_REALTIME`.
There are also the masks `DIRECTION_MASK`, `EDGE_MASK`, `EDGE_BOTH`,
`DRIVE_MASK` and `BIAS_MASK`. Predicates such as `is_input()`,
`is_both_edges()` and `has_realtime_event_clock()` test single flags.

`LineBitmap` is an `int` with one bit per requested line. `get(n)` returns the
value of bit `n`. `set(n, value)` returns a new bitmap. Bits outside 0..63 read
as 0 and are never set. Three helpers build bitmaps:

- `new_line_bits(*bits)` sets the listed bit numbers.
- `new_line_bitmap(*values)` takes bit values in order, starting at bit 0.
- `new_line_bit_mask(n)` sets the low `n` bits. It saturates at 64 bits.

`LineFlagV2`, `DebouncePeriod` and `OutputValues` each have `encode()`, which
returns a `LineAttribute`, and `decode(attr)`, which reads one back.
`DebouncePeriod` is given in nanoseconds. The attribute stores it in whole
microseconds, so anything below a microsecond is truncated.

```python
from gpioline.uapi_v2 import DebouncePeriod, LineConfig, LineConfigAttribute

config = LineConfig()
config.add_attribute(
    LineConfigAttribute(attr=DebouncePeriod(20_000).encode(), mask=0b111)
)
```

A `LineConfig` holds up to 10 attributes. `add_attribute` ignores any attribute
added beyond that limit. `remove_attribute(attr)` removes every equal
attribute. `remove_attribute_id(attr_id)` removes every attribute with that id.

## Watching edge events

```python
from gpioline.watcher import Watcher

def on_edge(event):
    print(event.offset, event.type, event.timestamp, event.seqno, event.line_seqno)

with Watcher(line_fd, on_edge):
    ...  # events are delivered on a background thread
```

The handler receives `EdgeEvent` objects in the order they are read. `type` is
a `LineEventID` (`RISING_EDGE` or `FALLING_EDGE`). `timestamp` is in
nanoseconds, taken from the clock the line was configured with. Calling
`close()`, or leaving the `with` block, stops the thread and waits for it to
finish. The line request fd stays open afterwards, so you still have to close
it yourself.

## What the package does not do

There is no higher-level chip or line object, no support for the older v1
ioctls, and no command-line tool. You open the chip device, build the requests
and close the file descriptors yourself.

## Tests

```
pip install -e ".[test]"
pytest
```