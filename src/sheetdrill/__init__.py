"""sheetdrill: adaptive multiple-choice drills backed by a spreadsheet deck."""

from sheetdrill.consts import VERSION

__version__ = VERSION
