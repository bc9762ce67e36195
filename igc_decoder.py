"""A decoder for IGC flight recorder files.

Main abstraction defined in this file is the FlightRecord, which
represents a decoded IGC file. A FlightRecord is a collection of:
    the flight recorder identity, extracted from the A record,
    the flight date and the pilot/glider metadata, from H records,
    PositionFix objects, one per B record in the file.

Decoding is a single pass over the lines of the file. Some records depend
on records seen earlier: B records need the date from the HFDTE header,
and the extensions of a B record are described by the most recent I record.
This state lives in a DecodeSession, one per decoded file.

Any malformed record aborts the whole decode with a DecodeError; there is
no partially decoded FlightRecord. For example usage see the attached
igc_decoder_demo.py file.
"""

import collections
import datetime
import logging
import re
import types

import flightlib.manufacturers

logger = logging.getLogger(__name__)

ONE_HOUR_MILLIS = 60 * 60 * 1000
ONE_DAY_MILLIS = 24 * ONE_HOUR_MILLIS

# A fix is allowed to be this much older than the previous fix before
# it is moved to the next day.
ROLLOVER_TOLERANCE_MILLIS = ONE_HOUR_MILLIS

# Altitude field value meaning "altitude not available".
ALTITUDE_NOT_AVAILABLE = '00000'

ENGINE_NOISE_CHANNEL = 'ENL'
FIX_ACCURACY_CHANNEL = 'FXA'

_EPOCH = datetime.date(1970, 1, 1)

_A_RECORD = re.compile(
    r'^A(?P<manufacturer>\w{3})(?P<logger_id>\w{3,}?)'
    r'(?:FLIGHT:(?P<flight_number>\d+)|:(?P<additional_data>.+))?(?!\w)',
    re.ASCII)

_DATE_HEADER = re.compile(
    r'^HFDTE(?:DATE:)?(?P<day>\d{2})(?P<month>\d{2})(?P<year>\d{2})',
    re.ASCII)

# Applied right after the header prefix: either "<label>:<text>", taking
# the text after the first colon, or the bare text.
_HEADER_TEXT = re.compile(r'(?:.*?:(?P<labeled>.*)|(?P<bare>.*))$')

_B_RECORD = re.compile(
    r'^B(?P<hours>\d{2})(?P<minutes>\d{2})(?P<seconds>\d{2})'
    r'(?P<lat_deg>\d{2})(?P<lat_min>\d{2})(?P<lat_min_dec>\d{3})'
    r'(?P<lat_sign>[NS])'
    r'(?P<lon_deg>\d{3})(?P<lon_min>\d{2})(?P<lon_min_dec>\d{3})'
    r'(?P<lon_sign>[EW])'
    r'(?P<validity>[AV])'
    r'(?P<press_alt>-\d{4}|\d{5})(?P<gnss_alt>-\d{4}|\d{5})',
    re.ASCII)

_I_RECORD = re.compile(r'^I(?P<count>\d{2})', re.ASCII)
_I_RECORD_GROUP = re.compile(
    r'(?P<start>\d{2})(?P<end>\d{2})(?P<code>[A-Z]{3})', re.ASCII)
_I_RECORD_GROUP_LENGTH = 7

_DIGITS = re.compile(r'^\d+$', re.ASCII)

# Record kinds and the line prefixes they are recognized by. Prefixes are
# tried in this order and the first match wins.
RECORD_KINDS = (
    ('A', ('A',)),
    ('HFDTE', ('HFDTE',)),
    ('HFPLT', ('HFPLT', 'HOPLT', 'HFOPLT')),
    ('HFCM2', ('HFCM2', 'HOCM2', 'HFOCM2')),
    ('HFGTY', ('HFGTY', 'HOGTY')),
    ('HFGID', ('HFGID', 'HOGID')),
    ('HFCID', ('HFCID', 'HOCID')),
    ('HFCCL', ('HFCCL', 'HOCCL')),
    ('HFFTY', ('HFFTY', 'HOFTY')),
    ('HFRFW', ('HFRFW', 'HORFW')),
    ('HFRHW', ('HFRHW', 'HORHW')),
    ('HFGPS', ('HFGPS', 'HOGPS')),
    ('HFPRS', ('HFPRS', 'HOPRS')),
    ('B', ('B',)),
    ('I', ('I',)),
)

# Free-text headers stored verbatim, by record kind.
_TEXT_HEADERS = {
    'HFGTY': 'glider_type',
    'HFGID': 'glider_id',
    'HFCID': 'competition_id',
    'HFCCL': 'competition_class',
    'HFFTY': 'recorder_type',
    'HFRFW': 'firmware_version',
    'HFRHW': 'hardware_version',
    'HFGPS': 'gps_receiver',
    'HFPRS': 'pressure_sensor',
}

# Header text outcomes, see HeaderText.
NO_TEXT = 'no_text'
LABELED_TEXT = 'labeled_text'
BARE_TEXT = 'bare_text'


class DecodeError(ValueError):
    """Base class of all errors raised while decoding an IGC file."""


class GrammarError(DecodeError):
    """A record was recognized by its prefix but its contents are invalid.

    Attributes:
        record_kind: a string, the kind of the offending record, e.g. 'B'
        line: a string, the offending line
    """

    def __init__(self, record_kind, line, reason=None):
        message = 'Invalid %s record: %r' % (record_kind, line)
        if reason:
            message += ' (%s)' % reason
        super().__init__(message)
        self.record_kind = record_kind
        self.line = line


class SequenceError(DecodeError):
    """A B record appeared before the HFDTE date header."""

    def __init__(self, line):
        super().__init__(
            'Missing HFDTE record before first B record: %r' % line)
        self.record_kind = 'B'
        self.line = line


class StructuralError(DecodeError):
    """A mandatory record was missing from the file."""

    def __init__(self, record_kind):
        super().__init__('Missing %s record' % record_kind)
        self.record_kind = record_kind
        self.line = None


class DecoderConfig:
    """Configuration for decoding an IGC file.

    Subclass and pass the subclass as `config_class` to override.
    """

    # Registry used to resolve the manufacturer code of the A record.
    # Must provide a total lookup(code) -> name.
    registry = flightlib.manufacturers.DEFAULT_REGISTRY

    # Text decoding of files read by decode_file(). Free-text headers
    # written by some recorders are not valid UTF-8.
    encoding = 'utf-8'
    encoding_errors = 'replace'


class DeviceIdentity(collections.namedtuple('DeviceIdentity', [
        'manufacturer', 'manufacturer_code', 'logger_id',
        'flight_number', 'additional_data'])):
    """Flight recorder identity, decoded from the A record.

    Attributes:
        manufacturer: a string, the manufacturer name, or the raw code if
        the registry does not know it
        manufacturer_code: a string, the raw three-letter code
        logger_id: a string, the recorder serial
        flight_number: an int or None, the flight of the day
        additional_data: a string or None, free text after the logger id
    """
    __slots__ = ()


class RecorderInfo(collections.namedtuple('RecorderInfo', [
        'recorder_type', 'firmware_version', 'hardware_version',
        'gps_receiver', 'pressure_sensor'])):
    """Flight recorder hardware description, from H records.

    Every attribute is a string, or None if the header is missing.
    """
    __slots__ = ()


class FlightRecord(collections.namedtuple('FlightRecord', [
        'identity', 'date', 'pilot', 'copilot', 'fixes',
        'glider_type', 'glider_id', 'competition_id', 'competition_class',
        'recorder'])):
    """A decoded IGC file.

    Attributes:
        identity: a DeviceIdentity
        date: a datetime.date, the UTC date of the flight
        pilot: a string, empty if the header has no text, or None if
        there is no pilot header
        copilot: a string or None, like pilot
        fixes: a tuple of PositionFix objects, in file order
        glider_type: a string or None
        glider_id: a string or None, usually the registration
        competition_id: a string or None
        competition_class: a string or None
        recorder: a RecorderInfo
    """
    __slots__ = ()


Extension = collections.namedtuple('Extension', ['code', 'start', 'length'])


class ExtensionLayout:
    """Describes the B record extensions declared by an I record.

    Attributes:
        entries: a tuple of Extension, in declaration order; start is a
        zero-based offset into the B record line
    """

    @staticmethod
    def build_from_I_record(I_record_line):
        """Creates ExtensionLayout from IGC I-record line.

        Args:
            I_record_line: a string, I record line from an IGC file

        Returns:
            The created ExtensionLayout

        Raises:
            GrammarError: the line does not describe a valid layout
        """
        match = _I_RECORD.match(I_record_line)
        if match is None:
            raise GrammarError('I', I_record_line)

        count = int(match.group('count'))
        if len(I_record_line) < 3 + count * _I_RECORD_GROUP_LENGTH:
            raise GrammarError(
                'I', I_record_line,
                'declares %d extensions, too short' % count)

        entries = []
        for i in range(count):
            offset = 3 + i * _I_RECORD_GROUP_LENGTH
            group = _I_RECORD_GROUP.match(I_record_line, offset)
            if group is None:
                raise GrammarError('I', I_record_line)
            start = int(group.group('start'))
            end = int(group.group('end'))
            if end < start:
                raise GrammarError(
                    'I', I_record_line,
                    'extension %s ends before it starts' % group.group('code'))
            entries.append(
                Extension(group.group('code'), start, end - start + 1))
        return ExtensionLayout(entries)

    def __init__(self, entries=()):
        self.entries = tuple(entries)

    def __len__(self):
        return len(self.entries)

    def __repr__(self):
        return 'ExtensionLayout(%s)' % ', '.join(
            '%s@%d+%d' % entry for entry in self.entries)

    def width(self, code):
        """Returns the declared width of the extension, or None."""
        width = None
        for entry in self.entries:
            if entry.code == code:
                width = entry.length
        return width

    def extract(self, line):
        """Slices every declared extension out of a B record line.

        Returns:
            A dict, extension code to the raw characters of the line.
        """
        return dict(
            (entry.code, line[entry.start:entry.start + entry.length])
            for entry in self.entries)


class HeaderText(collections.namedtuple('HeaderText', ['kind', 'text'])):
    """The text carried by a free-text H record.

    kind is one of NO_TEXT (nothing after the prefix), LABELED_TEXT
    ("HFPLTPILOTINCHARGE:John") or BARE_TEXT ("HFPLTJohn"). A header that
    is present always yields a string, possibly empty.
    """
    __slots__ = ()

    @staticmethod
    def build_from_H_record(record_kind, H_record_line, prefix):
        if len(H_record_line) == len(prefix):
            return HeaderText(NO_TEXT, '')
        match = _HEADER_TEXT.match(H_record_line, len(prefix))
        if match is None:
            raise GrammarError(record_kind, H_record_line)
        if match.group('labeled') is not None:
            return HeaderText(LABELED_TEXT, match.group('labeled'))
        return HeaderText(BARE_TEXT, match.group('bare'))

    def as_name(self):
        """Returns the text as a person's name, underscores are spaces."""
        return self.text.replace('_', ' ').strip()

    def as_text(self):
        """Returns the stripped text."""
        return self.text.strip()


class PositionFix(collections.namedtuple('PositionFix', [
        'index', 'timestamp', 'time', 'lat', 'lon', 'valid',
        'pressure_altitude', 'gps_altitude', 'extensions',
        'fix_accuracy', 'engine_noise_level'])):
    """Stores single GNSS flight recorder fix (a B-record).

    Attributes:
        index: an integer, the position of the fix in the fix sequence
        timestamp: an integer, UTC milliseconds since the epoch, corrected
        for days the flight rolled over
        time: a string, the UTC time of day "hh:mm:ss" as recorded
        lat: a float, latitude in degrees
        lon: a float, longitude in degrees
        valid: a bool, whether the recorder marked the fix as 3D valid
        pressure_altitude: an int or None, meters
        gps_altitude: an int or None, meters
        extensions: a read-only mapping, extension code to its raw
        characters
        fix_accuracy: an int or None, from the FXA extension
        engine_noise_level: a float in [0, 1] or None, from the ENL extension
    """
    __slots__ = ()

    @property
    def coordinate(self):
        return (self.lat, self.lon)

    @property
    def instant(self):
        """The fix timestamp as an aware UTC datetime."""
        return (datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc) +
                datetime.timedelta(milliseconds=self.timestamp))

    def __repr__(self):
        return self.__str__()

    def __str__(self):
        return (
            "PositionFix(time=%s, lat=%f, lon=%f, press_alt=%s, gps_alt=%s)" %
            (self.instant.strftime('%Y-%m-%dT%H:%M:%SZ'), self.lat, self.lon,
             self.pressure_altitude, self.gps_altitude))


def classify(line):
    """Finds the record kind of a trimmed IGC line.

    Returns:
        A (record_kind, prefix) tuple, or (None, None) for lines of
        kinds that are not decoded.
    """
    for record_kind, prefixes in RECORD_KINDS:
        for prefix in prefixes:
            if line.startswith(prefix):
                return record_kind, prefix
    return None, None


def _date_to_millis(date):
    return (date - _EPOCH).days * ONE_DAY_MILLIS


def _parse_coordinate(degrees, minutes, minutes_dec, hemisphere, negative):
    """Converts degrees, minutes and thousandths of minutes to degrees."""
    value = int(degrees) + float('%s.%s' % (minutes, minutes_dec)) / 60.0
    if hemisphere == negative:
        value = -value
    return value


def _parse_altitude(field):
    if field == ALTITUDE_NOT_AVAILABLE:
        return None
    return int(field)


def _parse_channel(raw):
    raw = raw.strip()
    if not _DIGITS.match(raw):
        return None
    return int(raw)


class DecodeSession:
    """Accumulates the records of one IGC file, in file order.

    Feed every line with feed(), then call finish() to get the
    FlightRecord. A session decodes a single file and must not be reused.
    """

    def __init__(self, config):
        self._config = config
        self.identity = None
        self.date = None
        self.pilot = None
        self.copilot = None
        self.headers = dict.fromkeys(_TEXT_HEADERS.values())
        self.layout = ExtensionLayout()
        self.fixes = []
        self.prev_timestamp = None
        self.finished = False
        self._date_millis = None
        self._ignored = set()

    def feed(self, line):
        """Decodes a single line.

        Args:
            line: a string, one line of the file; surrounding whitespace is
            ignored, as are blank lines and records of unknown kinds

        Raises:
            DecodeError: the line is malformed or out of sequence
        """
        if self.finished:
            raise RuntimeError('DecodeSession already finished')
        line = line.strip()
        if not line:
            return

        record_kind, prefix = classify(line)
        if record_kind is None:
            if line[0] not in self._ignored:
                self._ignored.add(line[0])
                logger.debug('Ignoring %s records', line[0])
        elif record_kind == 'A':
            self._decode_identity(line)
        elif record_kind == 'HFDTE':
            self._decode_date(line)
        elif record_kind == 'HFPLT':
            self.pilot = HeaderText.build_from_H_record(
                record_kind, line, prefix).as_name()
        elif record_kind == 'HFCM2':
            self.copilot = HeaderText.build_from_H_record(
                record_kind, line, prefix).as_name()
        elif record_kind == 'B':
            self.fixes.append(self._decode_fix(line))
        elif record_kind == 'I':
            self.layout = ExtensionLayout.build_from_I_record(line)
            logger.debug('New B record extension layout: %r', self.layout)
        else:
            self.headers[_TEXT_HEADERS[record_kind]] = (
                HeaderText.build_from_H_record(
                    record_kind, line, prefix).as_text())

    def _decode_identity(self, line):
        match = _A_RECORD.match(line)
        if match is None:
            raise GrammarError('A', line)

        code = match.group('manufacturer')
        flight_number = match.group('flight_number')
        if flight_number is not None:
            flight_number = int(flight_number)
        self.identity = DeviceIdentity(
            manufacturer=self._config.registry.lookup(code),
            manufacturer_code=code,
            logger_id=match.group('logger_id'),
            flight_number=flight_number,
            additional_data=match.group('additional_data'))

    def _decode_date(self, line):
        match = _DATE_HEADER.match(line)
        if match is None:
            raise GrammarError('HFDTE', line)

        # Two digit years from the 80s and 90s are from the last century.
        yy = match.group('year')
        century = '19' if yy[0] in '89' else '20'
        try:
            self.date = datetime.date(
                int(century + yy), int(match.group('month')),
                int(match.group('day')))
        except ValueError as err:
            raise GrammarError('HFDTE', line, str(err)) from err
        self._date_millis = _date_to_millis(self.date)

    def _decode_fix(self, line):
        if self.date is None:
            raise SequenceError(line)

        match = _B_RECORD.match(line)
        if match is None:
            raise GrammarError('B', line)

        hours = int(match.group('hours'))
        minutes = int(match.group('minutes'))
        seconds = int(match.group('seconds'))
        if hours > 23 or minutes > 59 or seconds > 59:
            raise GrammarError('B', line, 'time of day out of range')

        lat = _parse_coordinate(
            match.group('lat_deg'), match.group('lat_min'),
            match.group('lat_min_dec'), match.group('lat_sign'), 'S')
        lon = _parse_coordinate(
            match.group('lon_deg'), match.group('lon_min'),
            match.group('lon_min_dec'), match.group('lon_sign'), 'W')
        if abs(lat) > 90.0 or abs(lon) > 180.0:
            raise GrammarError('B', line, 'coordinates out of range')

        timestamp = (self._date_millis +
                     ((hours * 60 + minutes) * 60 + seconds) * 1000)
        days_added = 0
        while (self.prev_timestamp is not None and
               timestamp < self.prev_timestamp - ROLLOVER_TOLERANCE_MILLIS):
            timestamp += ONE_DAY_MILLIS
            days_added += 1
        if days_added:
            logger.debug('Fix %d crossed 0:00 UTC, added %d day(s)',
                         len(self.fixes), days_added)
        self.prev_timestamp = timestamp

        extensions = self.layout.extract(line)

        engine_noise_level = None
        if extensions.get(ENGINE_NOISE_CHANNEL):
            raw = _parse_channel(extensions[ENGINE_NOISE_CHANNEL])
            if raw is not None:
                engine_noise_level = (
                    raw / float(10 ** self.layout.width(ENGINE_NOISE_CHANNEL)))

        fix_accuracy = None
        if extensions.get(FIX_ACCURACY_CHANNEL):
            fix_accuracy = _parse_channel(extensions[FIX_ACCURACY_CHANNEL])

        return PositionFix(
            index=len(self.fixes),
            timestamp=timestamp,
            time='%s:%s:%s' % (match.group('hours'), match.group('minutes'),
                               match.group('seconds')),
            lat=lat,
            lon=lon,
            valid=match.group('validity') == 'A',
            pressure_altitude=_parse_altitude(match.group('press_alt')),
            gps_altitude=_parse_altitude(match.group('gnss_alt')),
            extensions=types.MappingProxyType(extensions),
            fix_accuracy=fix_accuracy,
            engine_noise_level=engine_noise_level)

    def finish(self):
        """Builds the FlightRecord out of the decoded lines.

        Raises:
            StructuralError: the A record or the HFDTE header is missing
        """
        if self.identity is None:
            raise StructuralError('A')
        if self.date is None:
            raise StructuralError('HFDTE')
        self.finished = True

        record = FlightRecord(
            identity=self.identity,
            date=self.date,
            pilot=self.pilot,
            copilot=self.copilot,
            fixes=tuple(self.fixes),
            glider_type=self.headers['glider_type'],
            glider_id=self.headers['glider_id'],
            competition_id=self.headers['competition_id'],
            competition_class=self.headers['competition_class'],
            recorder=RecorderInfo(
                recorder_type=self.headers['recorder_type'],
                firmware_version=self.headers['firmware_version'],
                hardware_version=self.headers['hardware_version'],
                gps_receiver=self.headers['gps_receiver'],
                pressure_sensor=self.headers['pressure_sensor']))
        logger.info('Decoded flight of %s on %s: %d fixes',
                    record.identity.manufacturer, record.date.isoformat(),
                    len(record.fixes))
        return record


def decode(text, config_class=DecoderConfig):
    """Decodes the contents of an IGC file.

    Args:
        text: a string, the complete file contents
        config_class: a class that implements DecoderConfig

    Returns:
        The decoded FlightRecord.

    Raises:
        DecodeError: the file is malformed
    """
    session = DecodeSession(config_class())
    for line in text.split('\n'):
        session.feed(line)
    return session.finish()


def decode_file(filename, config_class=DecoderConfig):
    """Decodes an IGC file from disk.

    Args:
        filename: a string, the name of the input IGC file
        config_class: a class that implements DecoderConfig

    Returns:
        The decoded FlightRecord.
    """
    config = config_class()
    # Line endings are left to decode(), the same as for in-memory text.
    with open(filename, 'r', encoding=config.encoding,
              errors=config.encoding_errors, newline='') as igc_file:
        return decode(igc_file.read(), config_class=config_class)
