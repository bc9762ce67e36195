"""Flight recorder manufacturer codes.

The A record of an IGC file starts with a three-letter manufacturer code
assigned by the IGC GNSS Flight Recorder Approval Committee. The registry
below maps those codes to the long manufacturer names.
"""

# Three-letter IGC manufacturer codes, from the IGC FR specification.
MANUFACTURERS = {
    'ACT': 'Aircotec',
    'CAM': 'Cambridge Aero Instruments',
    'CNI': 'ClearNav Instruments',
    'DSX': 'Data Swan/DSX',
    'EWA': 'EW Avionics',
    'FIL': 'Filser',
    'FLA': 'FLARM (Flight Alarm)',
    'FLY': 'Flytech',
    'GCS': 'Garrecht',
    'IMI': 'IMI Gliding Equipment',
    'LGS': 'Logstream',
    'LXN': 'LX Navigation',
    'LXV': 'LXNAV d.o.o.',
    'NAV': 'Naviter',
    'NKL': 'Nielsen Kellerman',
    'NTE': 'New Technologies s.r.l.',
    'PES': 'Peschges',
    'PFE': 'PressFinish Electronics',
    'PRT': 'Print Technik',
    'SCH': 'Scheffel',
    'SDI': 'Streamline Data Instruments',
    'TRI': 'Triadis Engineering GmbH',
    'WES': 'Westerboer',
    'XCS': 'XCSoar',
    'XCT': 'XCTrack',
    'ZAN': 'Zander',
}


class ManufacturerRegistry:
    """Read-only lookup of manufacturer names by IGC code.

    Attributes:
        names: a dict, upper-case three-letter code to manufacturer name
    """

    def __init__(self, names=None):
        if names is None:
            names = MANUFACTURERS
        self.names = dict((code.upper(), name) for code, name in names.items())

    def lookup(self, code):
        """Resolves a manufacturer code to its long name.

        Codes are matched case-insensitively.

        Args:
            code: a string, the manufacturer code from an A record

        Returns:
            A string, the manufacturer name, or the code itself when the
            code is not registered.
        """
        return self.names.get(code.upper(), code)

    def __contains__(self, code):
        return code.upper() in self.names

    def __len__(self):
        return len(self.names)


DEFAULT_REGISTRY = ManufacturerRegistry()


def lookup(code):
    """Resolves a manufacturer code using the default registry."""
    return DEFAULT_REGISTRY.lookup(code)
