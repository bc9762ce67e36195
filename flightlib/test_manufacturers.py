import unittest

import flightlib.manufacturers as manufacturers


class TestManufacturerRegistry(unittest.TestCase):

    def setUp(self):
        self.registry = manufacturers.ManufacturerRegistry()

    def testKnownCodes(self):
        self.assertEqual(self.registry.lookup('LXN'), 'LX Navigation')
        self.assertEqual(self.registry.lookup('FLA'), 'FLARM (Flight Alarm)')
        self.assertEqual(self.registry.lookup('XCS'), 'XCSoar')

    def testLookupIsCaseInsensitive(self):
        self.assertEqual(self.registry.lookup('lxn'), 'LX Navigation')
        self.assertIn('gcs', self.registry)

    def testUnknownCodePassesThrough(self):
        self.assertEqual(self.registry.lookup('XGD'), 'XGD')
        self.assertNotIn('XGD', self.registry)

    def testCustomNames(self):
        registry = manufacturers.ManufacturerRegistry({'abc': 'Test'})
        self.assertEqual(len(registry), 1)
        self.assertEqual(registry.lookup('ABC'), 'Test')
        self.assertEqual(registry.lookup('LXN'), 'LXN')

    def testModuleLookup(self):
        self.assertEqual(manufacturers.lookup('CAM'),
                         'Cambridge Aero Instruments')
        self.assertEqual(manufacturers.lookup('QQQ'), 'QQQ')


if __name__ == '__main__':
    unittest.main()
