#!/usr/bin/env python
import argparse
import logging
import sys

import igc_decoder
import flightlib.dumpers as dumpers


def print_flight_details(record):
    identity = record.identity
    print("Recorder:", identity.manufacturer, identity.logger_id)
    if identity.flight_number is not None:
        print("Flight number:", identity.flight_number)
    print("Date:", record.date.isoformat())
    print("Pilot:", record.pilot)
    if record.copilot:
        print("Copilot:", record.copilot)
    if record.glider_type or record.glider_id:
        print("Glider:", record.glider_type, record.glider_id)
    print("Fixes:", len(record.fixes))
    if record.fixes:
        print("  first:", record.fixes[0])
        print("  last:", record.fixes[-1])


def main():
    parser = argparse.ArgumentParser(
        description="Decode an IGC flight recorder file.")
    parser.add_argument("file", help="the IGC file to decode")
    parser.add_argument("--kml", help="write the track to this KML file")
    parser.add_argument("--csv", help="write the fixes to this CSV file")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log decoder details")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s")

    try:
        record = igc_decoder.decode_file(args.file)
    except igc_decoder.DecodeError as err:
        print("Provided flight is invalid:")
        print(err)
        sys.exit(1)

    print_flight_details(record)

    if args.kml:
        print("Dumping flight to %s" % args.kml)
        dumpers.dump_flight_to_kml(record, args.kml)
    if args.csv:
        print("Dumping fixes to %s" % args.csv)
        dumpers.dump_flight_to_csv(record, args.csv)


if __name__ == "__main__":
    main()
