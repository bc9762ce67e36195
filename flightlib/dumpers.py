import logging
from pathlib import Path

import simplekml

logger = logging.getLogger(__name__)


def _format_optional(value, fmt):
    if value is None:
        return u''
    return fmt % value


def dump_flight_to_kml(record, kml_filename_local):
    """Dumps the decoded flight track to KML format.

    The track is written as a single line string with absolute altitudes
    (GPS altitude, or pressure altitude where GPS altitude is missing),
    plus placemarks at the first and the last fix.

    Args:
        record: an igc_decoder.FlightRecord, the flight to be saved
        kml_filename_local: a string, the name of the output file
    """
    kml = simplekml.Kml()
    kml.document.name = u'%s %s' % (
        record.identity.logger_id, record.date.isoformat())

    def add_point(name, fix):
        kml.newpoint(name=name, coords=[(fix.lon, fix.lat)])

    coords = []
    for fix in record.fixes:
        alt = fix.gps_altitude
        if alt is None:
            alt = fix.pressure_altitude
        coords.append((fix.lon, fix.lat, alt or 0))
    track = kml.newlinestring(name=record.pilot or u'Track', coords=coords)
    track.altitudemode = simplekml.AltitudeMode.absolute

    if record.fixes:
        add_point(name="Takeoff", fix=record.fixes[0])
        add_point(name="Landing", fix=record.fixes[-1])

    kml_filename = Path(kml_filename_local).expanduser().absolute()
    kml.save(kml_filename.as_posix())
    logger.debug('Wrote %d fixes to %s', len(record.fixes), kml_filename)


def dump_flight_to_csv(record, track_filename_local):
    """Dumps the decoded fixes to a CSV file, one row per fix.

    Missing altitudes and extensions are written as empty cells.

    Args:
        record: an igc_decoder.FlightRecord, the flight to be written
        track_filename_local: a string, the name of the output CSV
    """
    track_filename = Path(track_filename_local).expanduser().absolute()
    with track_filename.open('wt') as csv:
        csv.write(u"timestamp,time,lat,lon,valid,pressure_alt,gps_alt,"
                  u"fix_accuracy,enl\n")
        for fix in record.fixes:
            csv.write(u"%d,%s,%f,%f,%s,%s,%s,%s,%s\n" % (
                fix.timestamp, fix.time, fix.lat, fix.lon, str(fix.valid),
                _format_optional(fix.pressure_altitude, u'%d'),
                _format_optional(fix.gps_altitude, u'%d'),
                _format_optional(fix.fix_accuracy, u'%d'),
                _format_optional(fix.engine_noise_level, u'%.3f')))
    logger.debug('Wrote %d fixes to %s', len(record.fixes), track_filename)
