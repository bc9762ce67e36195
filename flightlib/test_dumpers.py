import os
import shutil
import unittest
import tempfile

import igc_decoder
import flightlib.dumpers as dumpers

TESTFILES = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), os.pardir, 'testfiles')


class TestDumpers(unittest.TestCase):

    def setUp(self):
        igc_file = os.path.join(TESTFILES, 'olsztyn_short.igc')
        self.record = igc_decoder.decode_file(igc_file)
        self.tmp_output_dir = tempfile.mkdtemp()

    def tearDown(self):
        # Best-effort removal of temporary output files
        shutil.rmtree(self.tmp_output_dir, ignore_errors=True)

    def assertFileNotEmpty(self, filename):
        self.assertTrue(os.path.isfile(filename))
        self.assertGreater(os.path.getsize(filename), 0)

    def testKmlDumpNotEmpty(self):
        tmp_kml_file = os.path.join(self.tmp_output_dir, 'flight.kml')
        dumpers.dump_flight_to_kml(self.record, tmp_kml_file)
        self.assertFileNotEmpty(tmp_kml_file)
        with open(tmp_kml_file) as kml:
            contents = kml.read()
        self.assertIn('Takeoff', contents)
        self.assertIn('Landing', contents)

    def testCsvDumpHasRowPerFix(self):
        tmp_csv_file = os.path.join(self.tmp_output_dir, 'flight.csv')
        dumpers.dump_flight_to_csv(self.record, tmp_csv_file)
        self.assertFileNotEmpty(tmp_csv_file)
        with open(tmp_csv_file) as csv:
            rows = csv.read().splitlines()
        self.assertEqual(len(rows), len(self.record.fixes) + 1)
        self.assertEqual(rows[1].split(',')[:2],
                         ['1314964800000', '12:00:00'])

    def testCsvDumpLeavesMissingValuesEmpty(self):
        tmp_csv_file = os.path.join(self.tmp_output_dir, 'flight.csv')
        dumpers.dump_flight_to_csv(self.record, tmp_csv_file)
        with open(tmp_csv_file) as csv:
            last = csv.read().splitlines()[-1].split(',')
        # valid, pressure_alt, gps_alt, fix_accuracy, enl
        self.assertEqual(last[4:], ['False', '', '', '15', '0.999'])


if __name__ == '__main__':
    unittest.main()
