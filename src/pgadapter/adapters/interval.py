"""
Interval text form.

With `IntervalStyle = postgres` the server prints a pure-seconds interval as
`[-]HHH:MM:SS[.ffffff]`, where the hour component may exceed 24 (one nominal
day is `24:00:00`). A leading `N day(s)` part appears when the value was built
from day units; each day counts as 86400 seconds. Month and year units have no
fixed length in seconds and are not parsed here.
"""
import decimal
import re

from pgadapter.exceptions import TypeConversionError

_INTERVAL = re.compile(r"""
    ^(?:(?P<days>[+-]?\d+)\s+days?\s*)?
    (?P<sign>[+-])?
    (?P<hours>\d+):(?P<minutes>\d{2}):(?P<seconds>\d{2})(?:\.(?P<fraction>\d+))?$
""", re.VERBOSE)

_DAYS_ONLY = re.compile(r'^(?P<days>[+-]?\d+)\s+days?$')


def parse_interval(text: str) -> decimal.Decimal:
    """Parse interval text into seconds.

    Up to 12 fractional-second digits are kept; further digits are dropped.

    Raises
        TypeConversionError: If the text is not in the supported form
    """
    text = text.strip()
    if match := _DAYS_ONLY.match(text):
        return decimal.Decimal(int(match['days']) * 86400)

    match = _INTERVAL.match(text)
    if not match:
        raise TypeConversionError(f'Invalid interval: {text!r}')

    minutes = int(match['minutes'])
    fraction = (match['fraction'] or '')[:12]
    seconds = decimal.Decimal(f"{match['seconds']}.{fraction or '0'}")
    if minutes >= 60 or seconds > 60:
        raise TypeConversionError(f'Invalid interval: {text!r}')

    total = seconds + 60 * minutes + 3600 * int(match['hours'])
    if match['sign'] == '-':
        total = -total
    if match['days']:
        total += 86400 * int(match['days'])
    return _strip(total)


def format_interval(seconds: decimal.Decimal) -> str:
    """Format seconds as `[-]H:MM:SS[.f]`, accepted back by the server.
    """
    sign = '-' if seconds < 0 else ''
    seconds = abs(seconds)
    whole = int(seconds)
    fraction = seconds - whole
    hours, rest = divmod(whole, 3600)
    minutes, secs = divmod(rest, 60)
    text = f'{sign}{hours:02d}:{minutes:02d}:{secs:02d}'
    if fraction:
        digits = format(fraction, 'f').split('.')[1].rstrip('0')
        text += f'.{digits}'
    return text


def _strip(value: decimal.Decimal) -> decimal.Decimal:
    if value == value.to_integral_value():
        return value.quantize(decimal.Decimal(1))
    return value.normalize()
